"""
Pytest fixtures shared across the display and admin tests.

Fake timers replace OneShotTimer/IntervalTimer so tests fire them by hand
instead of sleeping.
"""

from unittest.mock import MagicMock

import pytest

from school_signage.common.local_cache import LocalCache
from school_signage.display.surface import DisplaySurface


class FakeTimer:
    """Stands in for OneShotTimer and IntervalTimer."""

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fire_count = 0

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    @property
    def is_alive(self):
        return self.started and not self.cancelled

    def fire(self):
        """Run the callback as if the delay elapsed."""
        self.fire_count += 1
        self.callback()


class FakeTimerFactory:
    """Records every timer it builds."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        """Timers that are started and not cancelled."""
        return [t for t in self.timers if t.is_alive]

    @property
    def last(self):
        return self.timers[-1] if self.timers else None


@pytest.fixture
def timer_factory():
    """Factory for one-shot timers fired by hand."""
    return FakeTimerFactory()


@pytest.fixture
def interval_factory():
    """Factory for interval timers ticked by hand."""
    return FakeTimerFactory()


@pytest.fixture
def cache(tmp_path):
    """LocalCache in a temporary directory."""
    return LocalCache(str(tmp_path / "cache"))


@pytest.fixture
def publisher():
    """Mock IPC publisher."""
    return MagicMock()


@pytest.fixture
def surface(publisher):
    """DisplaySurface publishing to a mock."""
    return DisplaySurface(school_name="School Name", publisher=publisher)
