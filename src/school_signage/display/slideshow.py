"""
Slideshow - cycles through the eligible slides on a timer.
"""

import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from school_signage.common.ipc import MessageType
from school_signage.common.logger import setup_logger
from school_signage.common.timers import IntervalFactory, IntervalTimer
from .models import Schedule, Slide
from .schedule import filter_scheduled_slides
from .surface import DisplaySurface

logger = setup_logger(__name__)


class Slideshow:
    """
    Advances through the surface's slides every `interval_ms`.

    Only slides whose schedule allows them are shown. restart() always
    begins at index 0 and replaces the running timer.
    """

    DEFAULT_INTERVAL_MS = 8000

    def __init__(
        self,
        surface: DisplaySurface,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        interval_factory: Optional[IntervalFactory] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Args:
            surface: Surface holding the rendered slides
            interval_ms: Milliseconds each slide stays on screen
            interval_factory: Builds the advance timer (seconds, callback)
            clock: Returns the current local time for schedule checks
        """
        self._surface = surface
        self._interval_ms = interval_ms
        self._interval_factory = interval_factory or (
            lambda seconds, callback: IntervalTimer(seconds, callback, name="Slideshow")
        )
        self._clock = clock

        self._lock = threading.RLock()
        self._schedules: Dict[str, Schedule] = {}
        self._active_slides: List[Slide] = []
        self._current_index = 0
        self._timer: Optional[IntervalTimer] = None
        self._visible = True
        self.use_image_slides = False

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @interval_ms.setter
    def interval_ms(self, value: int) -> None:
        self._interval_ms = value

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._current_index

    @property
    def current_slide(self) -> Optional[Slide]:
        with self._lock:
            if not self._active_slides:
                return None
            return self._active_slides[self._current_index]

    @property
    def active_slides(self) -> List[Slide]:
        with self._lock:
            return list(self._active_slides)

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    @property
    def is_visible(self) -> bool:
        return self._visible

    def set_schedules(self, schedules: Dict[str, Schedule]) -> None:
        """Replace the slide schedules used when picking eligible slides."""
        with self._lock:
            self._schedules = dict(schedules)

    def _eligible_slides(self) -> List[Slide]:
        return filter_scheduled_slides(self._surface.slides, self._schedules, self._clock())

    def show_slide(self, index: int) -> None:
        """Show slide `index`, wrapping around at either end."""
        with self._lock:
            count = len(self._active_slides)
            if count == 0:
                return

            if index >= count:
                self._current_index = 0
            elif index < 0:
                self._current_index = count - 1
            else:
                self._current_index = index

            slide = self._active_slides[self._current_index]

        self._surface.publish(MessageType.SLIDESHOW, {
            "index": self._current_index,
            "slide_id": slide.slide_id,
        })

    def next(self) -> None:
        """Advance to the next slide."""
        self.show_slide(self.current_index + 1)

    def previous(self) -> None:
        """Go back to the previous slide."""
        self.show_slide(self.current_index - 1)

    def stop(self) -> None:
        """Stop auto-advancing."""
        with self._lock:
            timer = self._timer
            self._timer = None

        if timer is not None:
            timer.cancel()

    def restart(self) -> None:
        """Stop the timer, re-pick eligible slides, show slide 0 and start a fresh timer."""
        self.stop()

        with self._lock:
            self._active_slides = self._eligible_slides()
            self._current_index = 0

            if not self._active_slides or not self._visible:
                logger.debug("Slideshow idle (slides=%d, visible=%s)", len(self._active_slides), self._visible)
                return

            self._timer = self._interval_factory(self._interval_ms / 1000.0, self.next)
            self._timer.start()

        self.show_slide(0)
        logger.info(
            "Slideshow restarted: %d slide(s), %.1fs interval",
            len(self._active_slides),
            self._interval_ms / 1000.0
        )

    def check_schedule(self) -> None:
        """Restart only if the set of eligible slides changed since the last restart."""
        with self._lock:
            eligible = [s.slide_id for s in self._eligible_slides()]
            current = [s.slide_id for s in self._active_slides]

        if eligible != current:
            logger.info("Scheduled slides changed (%d -> %d), restarting slideshow", len(current), len(eligible))
            self.restart()

    def show(self) -> None:
        """Make the slideshow visible and restart it."""
        self._visible = True
        self.restart()

    def hide(self) -> None:
        """Hide the slideshow and stop advancing."""
        self._visible = False
        self.stop()

    def __repr__(self) -> str:
        """String representation."""
        return f"Slideshow(slides={len(self._active_slides)}, index={self._current_index}, interval_ms={self._interval_ms})"
