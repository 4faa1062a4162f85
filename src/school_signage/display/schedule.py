"""
Slide scheduling.
Decides which slides are eligible right now and re-checks once a minute.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional

from school_signage.common.logger import setup_logger
from school_signage.common.timers import IntervalFactory, IntervalTimer
from .models import Schedule, Slide

logger = setup_logger(__name__)

DEFAULT_CHECK_INTERVAL = 60.0


def _day_of_week(now: datetime) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (now.weekday() + 1) % 7


def should_show_slide(schedule: Optional[Schedule], now: Optional[datetime] = None) -> bool:
    """
    Check whether a schedule allows its slide to be shown.

    A missing or disabled schedule imposes no constraint. Each bound is
    inclusive and compared at minute resolution; a bound that is not set
    leaves that axis open.

    Args:
        schedule: The slide's schedule, or None
        now: Time to evaluate at (defaults to local now)

    Returns:
        True if the slide is eligible at `now`
    """
    if schedule is None or not schedule.enabled:
        return True

    if now is None:
        now = datetime.now()

    today = now.date()
    if schedule.start_date and today < schedule.start_date:
        return False
    if schedule.end_date and today > schedule.end_date:
        return False

    if schedule.days_of_week and _day_of_week(now) not in schedule.days_of_week:
        return False

    current_minutes = now.hour * 60 + now.minute
    if schedule.start_time is not None:
        if current_minutes < schedule.start_time.hour * 60 + schedule.start_time.minute:
            return False
    if schedule.end_time is not None:
        if current_minutes > schedule.end_time.hour * 60 + schedule.end_time.minute:
            return False

    return True


def filter_scheduled_slides(
    slides: List[Slide],
    schedules: Dict[str, Schedule],
    now: Optional[datetime] = None
) -> List[Slide]:
    """
    Keep the slides whose schedule allows them now.

    Slides without a schedule entry are always kept.
    """
    return [
        slide for slide in slides
        if should_show_slide(schedules.get(slide.slide_id), now)
    ]


class ScheduleChecker:
    """Periodically asks the slideshow to re-evaluate slide schedules."""

    def __init__(
        self,
        on_check: Callable[[], None],
        interval: float = DEFAULT_CHECK_INTERVAL,
        interval_factory: Optional[IntervalFactory] = None
    ):
        """
        Args:
            on_check: Called on every tick (usually Slideshow.check_schedule)
            interval: Seconds between checks
            interval_factory: Builds the repeating timer (interval, callback)
        """
        self._on_check = on_check
        self.interval = interval
        self._interval_factory = interval_factory or (
            lambda seconds, callback: IntervalTimer(seconds, callback, name="ScheduleChecker")
        )
        self._timer: Optional[IntervalTimer] = None

    def start(self) -> None:
        """Start (or restart) the periodic check."""
        self.stop()
        self._timer = self._interval_factory(self.interval, self._on_check)
        self._timer.start()
        logger.info("Schedule checking started (every %ds)", self.interval)

    def stop(self) -> None:
        """Stop the periodic check."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None
