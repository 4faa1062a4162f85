"""
Local cache for the last-known-good settings bundle.

A small durable key/value store backed by JSON files in the cache directory.
Survives restarts so a display that boots while the settings server is down
still shows the school's theme, slides and name.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from school_signage.common.logger import setup_logger

logger = setup_logger(__name__)


class LocalCache:
    """Manages JSON cache files for the display and admin console."""

    # Default cache directory
    DEFAULT_CACHE_DIR = "~/.school-signage"

    SETTINGS_FILE = "settings.json"
    SESSION_FILE = "session.json"

    def __init__(self, cache_dir: Optional[str] = None):
        """
        Initialize the cache.

        Args:
            cache_dir: Path to cache directory. If None, uses DEFAULT_CACHE_DIR
        """
        if cache_dir is None:
            cache_dir = self.DEFAULT_CACHE_DIR

        self.cache_dir = Path(os.path.expanduser(str(cache_dir)))
        self._lock = threading.Lock()

    def _load_json(self, filename: str) -> Dict[str, Any]:
        """
        Load a JSON cache file.

        Args:
            filename: Name of the JSON file to load

        Returns:
            Parsed JSON data, or an empty dict if missing or unreadable
        """
        file_path = self.cache_dir / filename
        if not file_path.exists():
            return {}

        try:
            with open(file_path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", file_path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring cache file %s: not a JSON object", file_path)
            return {}

        return data

    def _save_json(self, filename: str, data: Dict[str, Any]) -> None:
        """
        Atomically write data to a JSON cache file.

        Args:
            filename: Name of the JSON file to save
            data: Dictionary to save as JSON
        """
        # Ensure cache directory exists
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        file_path = self.cache_dir / filename
        fd, tmp_path = tempfile.mkstemp(dir=str(self.cache_dir), prefix=f".{filename}.")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # Settings bundle

    def load_bundle(self) -> Dict[str, Any]:
        """Get the cached settings bundle (empty if nothing cached)."""
        with self._lock:
            return self._load_json(self.SETTINGS_FILE)

    def save_bundle(self, bundle: Dict[str, Any]) -> None:
        """
        Replace the cached bundle. Keys with a None value are dropped.

        Write failures are logged; the display keeps running on the
        in-memory bundle.
        """
        data = {k: v for k, v in bundle.items() if v is not None}
        with self._lock:
            try:
                self._save_json(self.SETTINGS_FILE, data)
            except (OSError, TypeError, ValueError) as e:
                logger.error("Failed to write settings cache: %s", e)
                return

        logger.debug("Cached settings bundle: %s", sorted(data.keys()))

    def get(self, key: str, default: Any = None) -> Any:
        """Get one cached setting."""
        return self.load_bundle().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set one cached setting. A value of None removes the key."""
        with self._lock:
            data = self._load_json(self.SETTINGS_FILE)
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            self._save_json(self.SETTINGS_FILE, data)

    def remove(self, key: str) -> None:
        """Remove one cached setting."""
        self.set(key, None)

    # Admin session

    @property
    def session_token(self) -> Optional[str]:
        """Get the stored admin session token."""
        with self._lock:
            return self._load_json(self.SESSION_FILE).get('token')

    @session_token.setter
    def session_token(self, value: Optional[str]) -> None:
        """Store (or clear, with None) the admin session token."""
        with self._lock:
            if value is None:
                file_path = self.cache_dir / self.SESSION_FILE
                if file_path.exists():
                    file_path.unlink()
                return
            self._save_json(self.SESSION_FILE, {'token': value})

    def clear(self) -> None:
        """Delete every cache file."""
        with self._lock:
            for filename in (self.SETTINGS_FILE, self.SESSION_FILE):
                file_path = self.cache_dir / filename
                if file_path.exists():
                    file_path.unlink()

    def __repr__(self) -> str:
        """String representation."""
        return f"LocalCache(cache_dir={self.cache_dir})"
