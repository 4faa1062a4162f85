"""
Emergency alert overlay.
"""

import threading
from typing import Any, Dict, Optional

from school_signage.common.ipc import MessageType
from school_signage.common.logger import setup_logger
from .models import EmergencyAlert
from .surface import DisplaySurface

logger = setup_logger(__name__)


class EmergencyAlertOverlay:
    """Shows one emergency alert above everything else on the display."""

    def __init__(self, surface: DisplaySurface):
        self._surface = surface
        self._lock = threading.Lock()
        self._current: Optional[EmergencyAlert] = None

    @property
    def current(self) -> Optional[EmergencyAlert]:
        """The alert on screen, or None."""
        with self._lock:
            return self._current

    @property
    def is_showing(self) -> bool:
        return self.current is not None

    def show(self, alert: Dict[str, Any]) -> None:
        """Show `alert`, replacing any alert already on screen."""
        parsed = EmergencyAlert.from_dict(alert)
        with self._lock:
            self._current = parsed

        logger.warning("EMERGENCY ALERT: %s", parsed.message)
        self._surface.publish(MessageType.EMERGENCY, {"active": True, "alert": parsed.to_dict()})

    def hide(self) -> None:
        """Remove the alert from screen."""
        with self._lock:
            was_showing = self._current is not None
            self._current = None

        if was_showing:
            logger.info("Emergency alert cleared")
        self._surface.publish(MessageType.EMERGENCY, {"active": False, "alert": None})
