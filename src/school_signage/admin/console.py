"""
Admin console for the School Signage system.

Command-line replacement for the browser admin panel. Every change is
written to the settings API, which pushes it to all connected displays.

    signage-admin login
    signage-admin theme apply sunset
    signage-admin general --school-name "Lincoln HS" --interval 10
    signage-admin livestream --enable --url https://... --auto-detect --interval 30
    signage-admin schedule set 2 --start-time 07:30 --end-time 08:15 --days 1,2,3,4,5
    signage-admin emergency send "Shelter in place" --title "Weather alert"
"""

import argparse
import getpass
import json
import sys
from typing import Any, Dict, List, Optional, TextIO

from school_signage.common.config import Config
from school_signage.common.errors import AuthError, ConfigError, SignageError
from school_signage.common.local_cache import LocalCache
from school_signage.common.logger import set_log_level, setup_logger
from school_signage.common.settings_client import SettingsClient
from school_signage.display import models
from . import themes

logger = setup_logger(__name__)


def _parse_value(text: str) -> Any:
    """Parse a command-line value as JSON, falling back to the raw string."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def _parse_days(text: str) -> List[int]:
    """'1,2,3' -> [1, 2, 3] (0 = Sunday)."""
    days = []
    for part in text.split(","):
        part = part.strip()
        if part:
            days.append(int(part))
    return days


class AdminConsole:
    """Implements the admin commands on top of a SettingsClient."""

    def __init__(self, client: SettingsClient, cache: LocalCache, out: TextIO = sys.stdout):
        """
        Args:
            client: Settings API client (session token restored from the cache)
            cache: Local cache holding the session token and a copy of saved settings
            out: Where command output goes
        """
        self.client = client
        self.cache = cache
        self.out = out

    def _print(self, text: str = "") -> None:
        print(text, file=self.out)

    def _print_json(self, value: Any) -> None:
        self._print(json.dumps(value, indent=2, sort_keys=True))

    def _save(self, key: str, value: Any) -> None:
        """Save one key to the server, keeping a local copy as backup."""
        self.client.save(key, value)
        self.cache.set(key, value)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def login(self, password: str) -> None:
        token = self.client.login(password)
        self.cache.session_token = token
        self._print("Logged in")

    def logout(self) -> None:
        self.client.logout()
        self.cache.session_token = None
        self._print("Logged out")

    def status(self) -> None:
        """Show server health and whether the stored session is still valid."""
        try:
            health = self.client.health()
        except SignageError as e:
            self._print(f"API offline: {e}")
        else:
            connections = health.get("connections") or {}
            self._print(f"API status: {health.get('status', 'unknown')}")
            if "sse_clients" in connections:
                self._print(f"Displays connected: {connections['sse_clients']}")
            if "uptime" in health:
                self._print(f"Uptime: {int(health['uptime']) // 60}m")

        if self.client.session_token is None:
            self._print("Session: not logged in")
        elif self.client.validate_session():
            self._print("Session: valid")
        else:
            self._print("Session: expired, run 'signage-admin login'")

    # -------------------------------------------------------------------------
    # Raw settings
    # -------------------------------------------------------------------------

    def get(self, key: Optional[str] = None) -> None:
        if key is None:
            self._print_json(self.client.get_all())
        else:
            self._print_json(self.client.get(key))

    def set(self, key: str, value: Any) -> None:
        self._save(key, value)
        self._print(f"Saved {key}")

    def reset(self, key: str) -> None:
        self._save(key, None)
        self._print(f"Reset {key}")

    # -------------------------------------------------------------------------
    # Themes
    # -------------------------------------------------------------------------

    def _custom_themes(self) -> List[Dict[str, Any]]:
        return themes.parse_custom_themes(self.client.get(models.CUSTOM_THEMES))

    def theme_list(self) -> None:
        self._print("Presets:")
        for key, theme in themes.PRESET_THEMES.items():
            self._print(f"  {key:<10} {theme['name']}")

        custom = self._custom_themes()
        if custom:
            self._print("Custom:")
            for theme in custom:
                self._print(f"  {theme['name']}")

    def theme_apply(self, name: str) -> None:
        theme = themes.find_theme(name, self._custom_themes())
        if theme is None:
            raise ValueError(f"No theme named {name!r}")

        self._save(models.CUSTOM_THEME, themes.normalize_theme(theme))
        self._print(f"Applied theme {theme['name']}")

    def theme_save(self, name: str) -> None:
        """Save the theme currently on the displays as a named custom theme."""
        current = self.client.get(models.CUSTOM_THEME) or themes.PRESET_THEMES["default"]
        updated = themes.add_custom_theme(self._custom_themes(), current, name)
        self._save(models.CUSTOM_THEMES, updated)
        self._print(f"Custom theme {name!r} saved")

    def theme_delete(self, name: str) -> None:
        try:
            updated = themes.delete_custom_theme(self._custom_themes(), name)
        except KeyError:
            raise ValueError(f"No custom theme named {name!r}")

        self._save(models.CUSTOM_THEMES, updated)
        self._print(f"Custom theme {name!r} deleted")

    def theme_reset(self) -> None:
        self._save(models.CUSTOM_THEME, None)
        self._print("Theme reset to default")

    # -------------------------------------------------------------------------
    # Slide schedules
    # -------------------------------------------------------------------------

    def _schedules(self) -> Dict[str, Any]:
        value = self.client.get(models.SLIDE_SCHEDULES)
        return dict(value) if isinstance(value, dict) else {}

    def schedule_set(
        self,
        slide_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        days: Optional[List[int]] = None,
        enabled: bool = True
    ) -> None:
        schedule: Dict[str, Any] = {"enabled": enabled}
        for key, value in (
            ("startDate", start_date),
            ("endDate", end_date),
            ("startTime", start_time),
            ("endTime", end_time),
            ("daysOfWeek", days),
        ):
            if value:
                schedule[key] = value

        # Reject bad dates or times before they reach the displays
        models.Schedule.from_dict(schedule)

        schedules = self._schedules()
        schedules[str(slide_id)] = schedule
        self._save(models.SLIDE_SCHEDULES, schedules)
        self._print(f"Schedule saved for slide {slide_id}")

    def schedule_remove(self, slide_id: str) -> None:
        schedules = self._schedules()
        if schedules.pop(str(slide_id), None) is None:
            raise ValueError(f"Slide {slide_id} has no schedule")

        self._save(models.SLIDE_SCHEDULES, schedules)
        self._print(f"Schedule removed for slide {slide_id}")

    def schedule_list(self) -> None:
        schedules = self._schedules()
        if not schedules:
            self._print("No slide schedules")
            return
        self._print_json(schedules)

    # -------------------------------------------------------------------------
    # General and livestream settings
    # -------------------------------------------------------------------------

    def general(self, school_name: Optional[str] = None, interval_seconds: Optional[float] = None) -> None:
        config = self.client.get(models.GENERAL_CONFIG)
        config = dict(config) if isinstance(config, dict) else {}

        if school_name is not None:
            config["schoolName"] = school_name
        if interval_seconds is not None:
            config["slideshowInterval"] = int(interval_seconds * 1000)

        models.GeneralConfig.from_dict(config)
        self._save(models.GENERAL_CONFIG, config)
        self._print("General settings saved")

    def livestream(
        self,
        enabled: Optional[bool] = None,
        url: Optional[str] = None,
        auto_detect: Optional[bool] = None,
        interval_seconds: Optional[float] = None
    ) -> None:
        config = self.client.get(models.LIVESTREAM_CONFIG)
        config = dict(config) if isinstance(config, dict) else {"enabled": False}

        if enabled is not None:
            config["enabled"] = enabled
        if url is not None:
            config["url"] = url
        if auto_detect is not None:
            config["autoDetect"] = auto_detect
        if interval_seconds is not None:
            config["checkInterval"] = int(interval_seconds * 1000)

        models.LivestreamConfig.from_dict(config)
        self._save(models.LIVESTREAM_CONFIG, config)
        self._print("Livestream settings saved")

    # -------------------------------------------------------------------------
    # Emergency alerts
    # -------------------------------------------------------------------------

    def emergency_send(self, message: str, title: Optional[str] = None, severity: Optional[str] = None) -> None:
        alert: Dict[str, Any] = {"message": message}
        if title:
            alert["title"] = title
        if severity:
            alert["severity"] = severity

        self.client.send_emergency(alert)
        self._print("Emergency alert sent to all displays")

    def emergency_cancel(self) -> None:
        self.client.cancel_emergency()
        self._print("Emergency alert cancelled")

    def emergency_status(self) -> None:
        status = self.client.get_emergency_status()
        if status["active"]:
            self._print("Emergency alert ACTIVE")
            self._print_json(status["alert"])
        else:
            self._print("No active emergency alert")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="signage-admin", description="School Signage admin console")
    parser.add_argument('--config', help="Path to config.yaml")
    parser.add_argument('--api-url', help="Settings API base URL override")
    parser.add_argument('--cache-dir', help="Local cache directory override")
    parser.add_argument('--log-level', default="WARNING", help="DEBUG, INFO, WARNING or ERROR")

    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and store the session token")
    login.add_argument('--password', help="Admin password (prompted if omitted)")
    sub.add_parser("logout", help="End the session")
    sub.add_parser("status", help="Show server health and session state")

    get = sub.add_parser("get", help="Print one setting, or all of them")
    get.add_argument('key', nargs='?')

    set_ = sub.add_parser("set", help="Save a setting (value parsed as JSON)")
    set_.add_argument('key')
    set_.add_argument('value')

    reset = sub.add_parser("reset", help="Clear a setting")
    reset.add_argument('key')

    theme = sub.add_parser("theme", help="Theme management")
    theme_sub = theme.add_subparsers(dest="theme_command", required=True)
    theme_sub.add_parser("list", help="List preset and custom themes")
    theme_apply = theme_sub.add_parser("apply", help="Apply a preset or custom theme")
    theme_apply.add_argument('name')
    theme_save = theme_sub.add_parser("save", help="Save the current theme under a name")
    theme_save.add_argument('name')
    theme_delete = theme_sub.add_parser("delete", help="Delete a custom theme")
    theme_delete.add_argument('name')
    theme_sub.add_parser("reset", help="Go back to the default theme")

    schedule = sub.add_parser("schedule", help="Slide schedules")
    schedule_sub = schedule.add_subparsers(dest="schedule_command", required=True)
    schedule_set = schedule_sub.add_parser("set", help="Set the schedule of a slide")
    schedule_set.add_argument('slide_id')
    schedule_set.add_argument('--start-date', help="YYYY-MM-DD")
    schedule_set.add_argument('--end-date', help="YYYY-MM-DD")
    schedule_set.add_argument('--start-time', help="HH:MM")
    schedule_set.add_argument('--end-time', help="HH:MM")
    schedule_set.add_argument('--days', type=_parse_days, help="Comma separated, 0 = Sunday")
    schedule_set.add_argument('--disabled', action='store_true', help="Store the schedule but do not enforce it")
    schedule_remove = schedule_sub.add_parser("remove", help="Remove the schedule of a slide")
    schedule_remove.add_argument('slide_id')
    schedule_sub.add_parser("list", help="Show all slide schedules")

    general = sub.add_parser("general", help="School name and slideshow interval")
    general.add_argument('--school-name')
    general.add_argument('--interval', type=float, help="Seconds per slide")

    livestream = sub.add_parser("livestream", help="Livestream settings")
    enable = livestream.add_mutually_exclusive_group()
    enable.add_argument('--enable', dest='enabled', action='store_true', default=None)
    enable.add_argument('--disable', dest='enabled', action='store_false')
    livestream.add_argument('--url')
    detect = livestream.add_mutually_exclusive_group()
    detect.add_argument('--auto-detect', dest='auto_detect', action='store_true', default=None)
    detect.add_argument('--no-auto-detect', dest='auto_detect', action='store_false')
    livestream.add_argument('--interval', type=float, help="Seconds between availability checks")

    emergency = sub.add_parser("emergency", help="Emergency alerts")
    emergency_sub = emergency.add_subparsers(dest="emergency_command", required=True)
    send = emergency_sub.add_parser("send", help="Show an alert on every display")
    send.add_argument('message')
    send.add_argument('--title')
    send.add_argument('--severity')
    emergency_sub.add_parser("cancel", help="Cancel the active alert")
    emergency_sub.add_parser("status", help="Show the active alert")

    return parser


def run_command(console: AdminConsole, args: argparse.Namespace) -> None:
    """Dispatch parsed arguments to the console."""
    command = args.command

    if command == "login":
        console.login(args.password or getpass.getpass("Admin password: "))
    elif command == "logout":
        console.logout()
    elif command == "status":
        console.status()
    elif command == "get":
        console.get(args.key)
    elif command == "set":
        console.set(args.key, _parse_value(args.value))
    elif command == "reset":
        console.reset(args.key)
    elif command == "theme":
        if args.theme_command == "list":
            console.theme_list()
        elif args.theme_command == "apply":
            console.theme_apply(args.name)
        elif args.theme_command == "save":
            console.theme_save(args.name)
        elif args.theme_command == "delete":
            console.theme_delete(args.name)
        else:
            console.theme_reset()
    elif command == "schedule":
        if args.schedule_command == "set":
            console.schedule_set(
                args.slide_id,
                start_date=args.start_date,
                end_date=args.end_date,
                start_time=args.start_time,
                end_time=args.end_time,
                days=args.days,
                enabled=not args.disabled
            )
        elif args.schedule_command == "remove":
            console.schedule_remove(args.slide_id)
        else:
            console.schedule_list()
    elif command == "general":
        console.general(school_name=args.school_name, interval_seconds=args.interval)
    elif command == "livestream":
        console.livestream(
            enabled=args.enabled,
            url=args.url,
            auto_detect=args.auto_detect,
            interval_seconds=args.interval
        )
    elif command == "emergency":
        if args.emergency_command == "send":
            console.emergency_send(args.message, title=args.title, severity=args.severity)
        elif args.emergency_command == "cancel":
            console.emergency_cancel()
        else:
            console.emergency_status()


def main(argv=None) -> int:
    """Main entry point for signage-admin."""
    args = build_parser().parse_args(argv)
    set_log_level(args.log_level)

    try:
        config = Config(args.config)
        if args.api_url:
            config.set('api.base_url', args.api_url)
        if args.cache_dir:
            config.set('cache.dir', args.cache_dir)
        config.validate()
    except (ConfigError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    cache = LocalCache(str(config.cache_dir))
    client = SettingsClient(
        config.api_base_url,
        session_token=cache.session_token,
        timeout=config.get('api.timeout', 10)
    )
    console = AdminConsole(client, cache)

    try:
        run_command(console, args)
    except AuthError as e:
        print(f"Not authorized: {e}. Run 'signage-admin login' first.", file=sys.stderr)
        return 1
    except SignageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
