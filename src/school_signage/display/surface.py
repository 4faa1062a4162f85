"""
Display surface - the renderer-facing state of one display.

Holds what the page shows (style properties, school name, title, slide
list) and publishes each change over IPC so the renderer process can redraw.
"""

import threading
from typing import Any, Dict, List, Optional

from school_signage.common.ipc import MessagePublisher, MessageType
from school_signage.common.logger import setup_logger
from .models import Slide

logger = setup_logger(__name__)

TITLE_PREFIX = "School Announcements"


class DisplaySurface:
    """In-memory model of the rendered page."""

    def __init__(
        self,
        school_name: str = "School Name",
        publisher: Optional[MessagePublisher] = None
    ):
        """
        Args:
            school_name: Name shown until settings arrive
            publisher: IPC publisher for the renderer (None disables publishing)
        """
        self._publisher = publisher
        self._lock = threading.Lock()

        self._style_properties: Dict[str, str] = {}
        self._slides: List[Slide] = []
        self._school_name = school_name

    def _publish(self, msg_type: MessageType, data: Dict[str, Any]) -> None:
        if self._publisher is not None:
            self._publisher.publish(msg_type, data)

    # Theme

    def set_style_properties(self, properties: Dict[str, str]) -> None:
        """Set CSS custom properties. Properties not given keep their value."""
        if not properties:
            return

        with self._lock:
            self._style_properties.update(properties)
            snapshot = dict(self._style_properties)

        self._publish(MessageType.THEME, {"properties": snapshot})

    def get_style_property(self, name: str) -> Optional[str]:
        with self._lock:
            return self._style_properties.get(name)

    @property
    def style_properties(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._style_properties)

    # School name

    def set_school_name(self, name: str) -> None:
        """Update the school label, welcome message and page title."""
        with self._lock:
            self._school_name = name

        self._publish(MessageType.GENERAL, {
            "school_name": name,
            "welcome_message": self.welcome_message,
            "title": self.title,
        })

    @property
    def school_name(self) -> str:
        with self._lock:
            return self._school_name

    @property
    def welcome_message(self) -> str:
        return f"Welcome to {self.school_name}"

    @property
    def title(self) -> str:
        return f"{TITLE_PREFIX} - {self.school_name}"

    # Slides

    def replace_slides(self, slides: List[Slide]) -> None:
        """Replace the whole rendered slide list."""
        with self._lock:
            self._slides = list(slides)

        self._publish(MessageType.SLIDES, {
            "slides": [
                {"id": s.slide_id, "type": s.slide_type, "content": s.content}
                for s in slides
            ]
        })

    @property
    def slides(self) -> List[Slide]:
        with self._lock:
            return list(self._slides)

    def publish(self, msg_type: MessageType, data: Dict[str, Any]) -> None:
        """Publish state owned by another consumer (slideshow, livestream, alerts)."""
        self._publish(msg_type, data)
