"""
Theme presets and saved custom themes.

customThemes is stored on the server as a list of theme objects, each with a
unique `name`. Functions here return new lists and never modify their input.
"""

from typing import Any, Dict, List, Optional

from school_signage.display.models import Theme

PRESET_THEMES: Dict[str, Dict[str, Any]] = {
    "default": {
        "name": "Default Blue",
        "bgGradientStart": "#1e3c72",
        "bgGradientEnd": "#2a5298",
        "mainContentBg": "#ffffff",
        "mainContentOpacity": 10,
        "weatherPanelBg": "#000000",
        "weatherPanelOpacity": 30,
        "bottomPanelBg": "#000000",
        "bottomPanelOpacity": 40,
        "accentColor": "#ffd700",
    },
    "sunset": {
        "name": "Sunset Orange",
        "bgGradientStart": "#fc4a1a",
        "bgGradientEnd": "#f7b733",
        "mainContentBg": "#ffffff",
        "mainContentOpacity": 15,
        "weatherPanelBg": "#000000",
        "weatherPanelOpacity": 35,
        "bottomPanelBg": "#000000",
        "bottomPanelOpacity": 45,
        "accentColor": "#fff5e6",
    },
    "forest": {
        "name": "Forest Green",
        "bgGradientStart": "#134e5e",
        "bgGradientEnd": "#71b280",
        "mainContentBg": "#ffffff",
        "mainContentOpacity": 12,
        "weatherPanelBg": "#000000",
        "weatherPanelOpacity": 32,
        "bottomPanelBg": "#000000",
        "bottomPanelOpacity": 42,
        "accentColor": "#a8e6cf",
    },
    "purple": {
        "name": "Purple Dream",
        "bgGradientStart": "#667eea",
        "bgGradientEnd": "#764ba2",
        "mainContentBg": "#ffffff",
        "mainContentOpacity": 13,
        "weatherPanelBg": "#000000",
        "weatherPanelOpacity": 33,
        "bottomPanelBg": "#000000",
        "bottomPanelOpacity": 43,
        "accentColor": "#e0c3fc",
    },
    "ocean": {
        "name": "Deep Ocean",
        "bgGradientStart": "#0f2027",
        "bgGradientEnd": "#2c5364",
        "mainContentBg": "#ffffff",
        "mainContentOpacity": 11,
        "weatherPanelBg": "#000000",
        "weatherPanelOpacity": 31,
        "bottomPanelBg": "#000000",
        "bottomPanelOpacity": 41,
        "accentColor": "#8dd4e8",
    },
    "crimson": {
        "name": "Royal Crimson",
        "bgGradientStart": "#8e2de2",
        "bgGradientEnd": "#4a00e0",
        "mainContentBg": "#ffffff",
        "mainContentOpacity": 14,
        "weatherPanelBg": "#000000",
        "weatherPanelOpacity": 34,
        "bottomPanelBg": "#000000",
        "bottomPanelOpacity": 44,
        "accentColor": "#ffd700",
    },
}


def normalize_theme(theme: Any) -> Dict[str, Any]:
    """Validate a theme and return it with only the stored keys. Raises ValueError."""
    return Theme.from_dict(theme).to_dict()


def parse_custom_themes(value: Any) -> List[Dict[str, Any]]:
    """Read the customThemes setting; anything other than a list counts as empty."""
    if not isinstance(value, list):
        return []
    return [theme for theme in value if isinstance(theme, dict) and theme.get("name")]


def find_theme(name: str, custom_themes: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Look up a theme by preset key, preset display name or custom theme name.

    Custom themes win over presets with the same name. Matching ignores case.
    """
    wanted = name.strip().lower()

    for theme in custom_themes:
        if str(theme.get("name", "")).lower() == wanted:
            return dict(theme)

    for key, theme in PRESET_THEMES.items():
        if key == wanted or theme["name"].lower() == wanted:
            return dict(theme)

    return None


def add_custom_theme(
    custom_themes: List[Dict[str, Any]],
    theme: Dict[str, Any],
    name: str
) -> List[Dict[str, Any]]:
    """Save `theme` under `name`, replacing an existing custom theme with that name."""
    name = name.strip()
    if not name:
        raise ValueError("Theme name must not be empty")

    saved = normalize_theme(dict(theme, name=name))
    kept = [t for t in custom_themes if str(t.get("name", "")).lower() != name.lower()]
    return kept + [saved]


def delete_custom_theme(custom_themes: List[Dict[str, Any]], name: str) -> List[Dict[str, Any]]:
    """Remove the custom theme called `name`. Raises KeyError if there is none."""
    kept = [t for t in custom_themes if str(t.get("name", "")).lower() != name.strip().lower()]
    if len(kept) == len(custom_themes):
        raise KeyError(name)
    return kept
