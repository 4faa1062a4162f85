"""
Settings Applier for the School Signage Display.

Turns a settings bundle into consumer calls: theme style properties, school
name, slideshow interval, livestream monitor, slide list, slide schedules
and slide mode. Each domain is applied independently; a malformed value in
one domain is logged and does not stop the others.
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from school_signage.common.logger import setup_logger
from . import models
from .livestream import Livestream
from .models import GeneralConfig, LivestreamConfig, Theme
from .slideshow import Slideshow
from .surface import DisplaySurface

logger = setup_logger(__name__)

# CSS custom properties driven by the theme
PROP_GRADIENT_START = "--color-bg-gradient-start"
PROP_GRADIENT_END = "--color-bg-gradient-end"
PROP_PANEL_BG = "--color-panel-bg"
PROP_PANEL_DARK = "--color-panel-dark"
PROP_PANEL_DARKER = "--color-panel-darker"
PROP_ACCENT = "--color-accent-gold"

# (color attribute, opacity attribute, property)
_PANEL_PROPERTIES = (
    ("main_content_bg", "main_content_opacity", PROP_PANEL_BG),
    ("weather_panel_bg", "weather_panel_opacity", PROP_PANEL_DARK),
    ("bottom_panel_bg", "bottom_panel_opacity", PROP_PANEL_DARKER),
)

_HEX_COLOR = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)

# Outcomes of a single domain
APPLIED = "applied"
FAILED = "failed"
NO_INPUT = "no_input"


def hex_to_rgb(value: str) -> Tuple[int, int, int]:
    """Convert '#1e3c72' (or '1e3c72') to (30, 60, 114). Unparseable input gives black."""
    match = _HEX_COLOR.match(value or "")
    if not match:
        return (0, 0, 0)
    return tuple(int(part, 16) for part in match.groups())


def to_rgba(color: str, opacity: int) -> str:
    """Hex color plus opacity percentage to a CSS rgba() value."""
    r, g, b = hex_to_rgb(color)
    return f"rgba({r}, {g}, {b}, {opacity / 100:g})"


@dataclass
class AppliedChanges:
    """What one apply_all() call did, by bundle key."""
    applied: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.applied)

    def __str__(self) -> str:
        return f"applied={self.applied} failed={self.failed} unchanged={len(self.unchanged)}"


class SettingsApplier:
    """
    Applies settings bundles to the display consumers.

    apply_all() remembers the last value applied for each key and skips
    keys whose value has not changed, so an update to one domain does not
    restart the slideshow or livestream monitor for the others. The
    per-domain apply_* methods always apply and clear the remembered value,
    so the next apply_all() applies that key again.
    """

    def __init__(self, surface: DisplaySurface, slideshow: Slideshow, livestream: Livestream):
        self._surface = surface
        self._slideshow = slideshow
        self._livestream = livestream
        self._last_applied: Dict[str, Any] = {}

    @property
    def surface(self) -> DisplaySurface:
        return self._surface

    @property
    def slideshow(self) -> Slideshow:
        return self._slideshow

    @property
    def livestream(self) -> Livestream:
        return self._livestream

    # -------------------------------------------------------------------------
    # Whole bundle
    # -------------------------------------------------------------------------

    def apply_all(self, bundle: Optional[Dict[str, Any]]) -> AppliedChanges:
        """
        Apply every known key of `bundle`.

        Missing and null keys leave that domain as it is. Calling this twice
        with the same bundle has no further effect.

        Args:
            bundle: Settings bundle (key -> JSON value)

        Returns:
            AppliedChanges report
        """
        bundle = bundle or {}
        report = AppliedChanges()

        pending = [
            key for key in self._domain_order()
            if bundle.get(key) is not None and self._last_applied.get(key) != bundle[key]
        ]
        report.unchanged = [
            key for key in self._domain_order()
            if bundle.get(key) is not None and key not in pending
        ]

        # A new slide list restarts the slideshow with the new schedules anyway
        recheck = models.CUSTOM_SLIDES not in pending

        for key in pending:
            value = bundle[key]
            if key == models.SLIDE_SCHEDULES:
                outcome = self._run(key, lambda v: self._apply_schedules(v, recheck), value)
            else:
                outcome = self._run(key, self._appliers()[key], value)

            if outcome == APPLIED:
                self._last_applied[key] = copy.deepcopy(value)
                report.applied.append(key)
            elif outcome == FAILED:
                report.failed.append(key)

        if report.changed or report.failed:
            logger.info("Settings applied: %s", report)
        return report

    def forget(self) -> None:
        """Drop change tracking so the next apply_all() applies every key."""
        self._last_applied = {}

    @staticmethod
    def _domain_order() -> List[str]:
        # Schedules go before slides so a slideshow restart sees them
        return [
            models.CUSTOM_THEME,
            models.GENERAL_CONFIG,
            models.LIVESTREAM_CONFIG,
            models.SLIDE_SCHEDULES,
            models.CUSTOM_SLIDES,
            models.USE_IMAGE_SLIDES,
        ]

    def _appliers(self) -> Dict[str, Callable[[Any], None]]:
        return {
            models.CUSTOM_THEME: self._apply_theme,
            models.GENERAL_CONFIG: self._apply_general_settings,
            models.LIVESTREAM_CONFIG: self._apply_livestream_settings,
            models.SLIDE_SCHEDULES: self._apply_schedules,
            models.CUSTOM_SLIDES: self._apply_slides,
            models.USE_IMAGE_SLIDES: self._apply_slide_mode,
        }

    def _run(self, key: str, func: Callable[[Any], None], value: Any) -> str:
        if value is None:
            return NO_INPUT
        try:
            func(value)
            return APPLIED
        except Exception as e:
            logger.error("Error applying %s: %s", key, e)
            return FAILED

    # -------------------------------------------------------------------------
    # Per-domain appliers
    # -------------------------------------------------------------------------

    def _apply_one(self, key: str, func: Callable[[Any], None], value: Any) -> bool:
        # Applied outside apply_all(): the next apply_all() must re-apply this key
        self._last_applied.pop(key, None)
        return self._run(key, func, value) == APPLIED

    def apply_theme(self, theme: Optional[Dict[str, Any]]) -> bool:
        """Apply a customTheme value. Returns True if it was applied."""
        return self._apply_one(models.CUSTOM_THEME, self._apply_theme, theme)

    def apply_general_settings(self, config: Optional[Dict[str, Any]]) -> bool:
        """Apply a generalConfig value. Returns True if it was applied."""
        return self._apply_one(models.GENERAL_CONFIG, self._apply_general_settings, config)

    def apply_livestream_settings(self, config: Optional[Dict[str, Any]]) -> bool:
        """Apply a livestreamConfig value. Returns True if it was applied."""
        return self._apply_one(models.LIVESTREAM_CONFIG, self._apply_livestream_settings, config)

    def apply_slides(self, slides: Optional[List[Dict[str, Any]]]) -> bool:
        """Apply a customSlides value. Returns True if it was applied."""
        return self._apply_one(models.CUSTOM_SLIDES, self._apply_slides, slides)

    def apply_schedules(self, schedules: Optional[Dict[str, Any]]) -> bool:
        """Apply a slideSchedules value. Returns True if it was applied."""
        return self._apply_one(models.SLIDE_SCHEDULES, self._apply_schedules, schedules)

    def apply_slide_mode(self, value: Any) -> bool:
        """Apply USE_IMAGE_SLIDES. Returns True if it was applied."""
        return self._apply_one(models.USE_IMAGE_SLIDES, self._apply_slide_mode, value)

    def _apply_theme(self, value: Any) -> None:
        theme = Theme.from_dict(value)
        properties: Dict[str, str] = {}

        if theme.bg_gradient_start and theme.bg_gradient_end:
            properties[PROP_GRADIENT_START] = theme.bg_gradient_start
            properties[PROP_GRADIENT_END] = theme.bg_gradient_end

        for color_attr, opacity_attr, prop in _PANEL_PROPERTIES:
            color = getattr(theme, color_attr)
            opacity = getattr(theme, opacity_attr)
            if color is not None and opacity is not None:
                properties[prop] = to_rgba(color, opacity)

        if theme.accent_color:
            properties[PROP_ACCENT] = theme.accent_color

        self._surface.set_style_properties(properties)
        logger.info("Custom theme applied (%s)", theme.name or "unnamed")

    def _apply_general_settings(self, value: Any) -> None:
        config = GeneralConfig.from_dict(value)

        if config.school_name:
            self._surface.set_school_name(config.school_name)
            logger.info("School name updated to: %s", config.school_name)

        if config.slideshow_interval_ms:
            self._slideshow.interval_ms = config.slideshow_interval_ms
            self._slideshow.restart()
            logger.info("Slideshow interval updated to %.1fs", config.slideshow_interval_ms / 1000.0)

    def _apply_livestream_settings(self, value: Any) -> None:
        config = LivestreamConfig.from_dict(value)

        if config.enabled:
            self._livestream.configure(
                config.url,
                auto_detect=config.auto_detect,
                check_interval=config.check_interval_ms / 1000.0
            )
            self._livestream.stop_monitoring()
            if config.auto_detect:
                self._livestream.start_monitoring()
            logger.info("Livestream settings applied")
        else:
            self._livestream.configure(None, auto_detect=False)
            self._livestream.stop_monitoring()
            if self._livestream.is_active():
                self._livestream.show(None)
            logger.info("Livestream disabled")

    def _apply_slides(self, value: Any) -> None:
        slides = models.parse_slides(value)
        if not slides:
            logger.info("Slide list is empty, keeping current slides")
            return

        self._surface.replace_slides(slides)
        self._slideshow.restart()
        logger.info("Loaded %d custom slides", len(slides))

    def _apply_schedules(self, value: Any, recheck: bool = True) -> None:
        schedules = models.parse_schedules(value)
        self._slideshow.set_schedules(schedules)
        if recheck:
            self._slideshow.check_schedule()
        logger.info("Loaded %d slide schedule(s)", len(schedules))

    def _apply_slide_mode(self, value: Any) -> None:
        self._slideshow.use_image_slides = models.parse_use_image_slides(value)
        logger.info("Slide mode: %s", "Images" if self._slideshow.use_image_slides else "HTML")
