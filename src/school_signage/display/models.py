"""
Typed views over the settings bundle.

The settings API stores untyped JSON. Each known key is parsed here into a
dataclass; malformed values raise ValueError so the caller can log and skip
that one domain. Unknown keys are ignored.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Dict, FrozenSet, List, Optional

# Known bundle keys
CUSTOM_THEME = "customTheme"
CUSTOM_THEMES = "customThemes"
CUSTOM_SLIDES = "customSlides"
GENERAL_CONFIG = "generalConfig"
LIVESTREAM_CONFIG = "livestreamConfig"
USE_IMAGE_SLIDES = "USE_IMAGE_SLIDES"
SLIDE_SCHEDULES = "slideSchedules"

KNOWN_KEYS = (
    CUSTOM_THEME,
    CUSTOM_THEMES,
    CUSTOM_SLIDES,
    GENERAL_CONFIG,
    LIVESTREAM_CONFIG,
    USE_IMAGE_SLIDES,
    SLIDE_SCHEDULES,
)

DEFAULT_LIVESTREAM_CHECK_INTERVAL_MS = 60000

# Stored theme key -> Theme attribute
THEME_COLOR_FIELDS = {
    "bgGradientStart": "bg_gradient_start",
    "bgGradientEnd": "bg_gradient_end",
    "mainContentBg": "main_content_bg",
    "weatherPanelBg": "weather_panel_bg",
    "bottomPanelBg": "bottom_panel_bg",
    "accentColor": "accent_color",
}
THEME_OPACITY_FIELDS = {
    "mainContentOpacity": "main_content_opacity",
    "weatherPanelOpacity": "weather_panel_opacity",
    "bottomPanelOpacity": "bottom_panel_opacity",
}


def _require_mapping(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _opacity(value: Any, key: str) -> Optional[int]:
    """Parse an opacity percentage, clamped to 0-100."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number")
    try:
        percent = int(float(value))
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {value!r}")
    return max(0, min(100, percent))


def _positive_ms(value: Any, key: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{key} must be a number")
    try:
        ms = int(float(value))
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {value!r}")
    if ms <= 0:
        raise ValueError(f"{key} must be positive, got {ms}")
    return ms


@dataclass(frozen=True)
class Theme:
    """Color theme. Fields left as None were not present in the stored theme."""

    name: Optional[str] = None
    bg_gradient_start: Optional[str] = None
    bg_gradient_end: Optional[str] = None
    main_content_bg: Optional[str] = None
    main_content_opacity: Optional[int] = None
    weather_panel_bg: Optional[str] = None
    weather_panel_opacity: Optional[int] = None
    bottom_panel_bg: Optional[str] = None
    bottom_panel_opacity: Optional[int] = None
    accent_color: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Theme":
        data = _require_mapping(data, "customTheme")
        values: Dict[str, Any] = {"name": _optional_str(data, "name")}
        for key, attr in THEME_COLOR_FIELDS.items():
            values[attr] = _optional_str(data, key)
        for key, attr in THEME_OPACITY_FIELDS.items():
            values[attr] = _opacity(data.get(key), key)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored key names, dropping fields that are not set."""
        data: Dict[str, Any] = {}
        if self.name is not None:
            data["name"] = self.name
        for key, attr in list(THEME_COLOR_FIELDS.items()) + list(THEME_OPACITY_FIELDS.items()):
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class GeneralConfig:
    """School name and slideshow timing."""

    school_name: Optional[str] = None
    slideshow_interval_ms: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "GeneralConfig":
        data = _require_mapping(data, "generalConfig")
        return cls(
            school_name=_optional_str(data, "schoolName"),
            slideshow_interval_ms=_positive_ms(data.get("slideshowInterval"), "slideshowInterval"),
        )


@dataclass(frozen=True)
class LivestreamConfig:
    """Livestream URL and auto-detection settings."""

    enabled: bool = False
    url: Optional[str] = None
    auto_detect: bool = False
    check_interval_ms: int = DEFAULT_LIVESTREAM_CHECK_INTERVAL_MS

    @classmethod
    def from_dict(cls, data: Any) -> "LivestreamConfig":
        data = _require_mapping(data, "livestreamConfig")
        interval = _positive_ms(data.get("checkInterval"), "checkInterval")
        return cls(
            enabled=bool(data.get("enabled", False)),
            url=_optional_str(data, "url"),
            auto_detect=bool(data.get("autoDetect", False)),
            check_interval_ms=interval or DEFAULT_LIVESTREAM_CHECK_INTERVAL_MS,
        )


@dataclass(frozen=True)
class Slide:
    """One HTML slide as stored in customSlides."""

    slide_id: str
    content: str
    slide_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any, index: int) -> "Slide":
        data = _require_mapping(data, f"customSlides[{index}]")
        content = data.get("content", "")
        if not isinstance(content, str):
            raise ValueError(f"customSlides[{index}].content must be a string")
        slide_id = data.get("id")
        return cls(
            slide_id=str(slide_id) if slide_id not in (None, "") else str(index),
            content=content,
            slide_type=data.get("type") or data.get("template"),
        )


def parse_slides(value: Any) -> List[Slide]:
    """Parse the customSlides list."""
    if not isinstance(value, list):
        raise ValueError(f"customSlides must be a list, got {type(value).__name__}")
    return [Slide.from_dict(item, index) for index, item in enumerate(value)]


def _parse_date(value: Any, key: str) -> Optional[date]:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a YYYY-MM-DD string")
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValueError(f"{key} is not a valid date: {value!r}")


def _parse_time(value: Any, key: str) -> Optional[time]:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be an HH:MM string")
    parts = value.split(":")
    try:
        return time(int(parts[0]), int(parts[1]) if len(parts) > 1 else 0)
    except (ValueError, IndexError):
        raise ValueError(f"{key} is not a valid time: {value!r}")


@dataclass(frozen=True)
class Schedule:
    """
    When a slide may be shown. Absent fields impose no constraint and all
    bounds are inclusive. Days of week use 0 = Sunday .. 6 = Saturday.
    """

    enabled: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    days_of_week: Optional[FrozenSet[int]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Schedule":
        data = _require_mapping(data, "schedule")

        days = data.get("daysOfWeek")
        days_of_week = None
        if days:
            if not isinstance(days, (list, tuple)):
                raise ValueError("daysOfWeek must be a list")
            parsed = set()
            for day in days:
                day = int(day)
                if not 0 <= day <= 6:
                    raise ValueError(f"daysOfWeek entry out of range: {day}")
                parsed.add(day)
            days_of_week = frozenset(parsed)

        return cls(
            enabled=bool(data.get("enabled", False)),
            start_date=_parse_date(data.get("startDate"), "startDate"),
            end_date=_parse_date(data.get("endDate"), "endDate"),
            start_time=_parse_time(data.get("startTime"), "startTime"),
            end_time=_parse_time(data.get("endTime"), "endTime"),
            days_of_week=days_of_week,
        )


def parse_schedules(value: Any) -> Dict[str, Schedule]:
    """Parse the slideSchedules mapping (slide id -> schedule)."""
    value = _require_mapping(value, "slideSchedules")
    return {str(slide_id): Schedule.from_dict(schedule) for slide_id, schedule in value.items()}


def parse_use_image_slides(value: Any) -> bool:
    """USE_IMAGE_SLIDES may arrive as a bool or as the string 'true'."""
    return value is True or value == "true"


@dataclass(frozen=True)
class EmergencyAlert:
    """Emergency alert payload. Extra server fields are kept in `raw`."""

    message: str
    title: Optional[str] = None
    severity: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Any) -> "EmergencyAlert":
        data = _require_mapping(data, "alert")
        message = data.get("message") or data.get("text") or ""
        return cls(
            message=str(message),
            title=data.get("title"),
            severity=data.get("severity") or data.get("type"),
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.raw)
        data.update({"message": self.message, "title": self.title, "severity": self.severity})
        return data
