"""
Timer handles used by background services.

OneShotTimer runs a callback once after a delay; IntervalTimer runs it
repeatedly on a daemon thread until stopped. Services take a factory for
each so tests can substitute timers they fire by hand.
"""

import threading
from typing import Callable, Optional

from .logger import setup_logger

logger = setup_logger(__name__)


class OneShotTimer:
    """Cancellable single-fire timer backed by threading.Timer."""

    def __init__(self, delay: float, callback: Callable[[], None], name: str = "timer"):
        """
        Args:
            delay: Seconds to wait before firing
            callback: Function to call when the delay elapses
            name: Thread name for diagnostics
        """
        self.delay = delay
        self._callback = callback
        self._timer = threading.Timer(delay, self._fire)
        self._timer.name = name
        self._timer.daemon = True

    def _fire(self) -> None:
        try:
            self._callback()
        except Exception as e:
            logger.error("Error in timer callback (%s): %s", self._timer.name, e)

    def start(self) -> None:
        """Start counting down."""
        self._timer.start()

    def cancel(self) -> None:
        """Cancel the timer if it has not fired yet."""
        self._timer.cancel()

    @property
    def is_alive(self) -> bool:
        """True while the timer is counting down or firing."""
        return self._timer.is_alive()


class IntervalTimer:
    """Calls a function every `interval` seconds on a background thread."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        name: str = "interval",
        run_immediately: bool = False
    ):
        """
        Args:
            interval: Seconds between calls
            callback: Function to call
            name: Thread name for diagnostics
            run_immediately: Call once right away before the first wait
        """
        self.interval = interval
        self._callback = callback
        self._name = name
        self._run_immediately = run_immediately
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the background loop."""
        if self._thread is not None:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name=self._name,
            daemon=True
        )
        self._thread.start()

    def _loop(self) -> None:
        if self._run_immediately:
            self._tick()

        while not self._stop_event.wait(timeout=self.interval):
            self._tick()

    def _tick(self) -> None:
        try:
            self._callback()
        except Exception as e:
            logger.error("Error in interval callback (%s): %s", self._name, e)

    def cancel(self) -> None:
        """Stop the loop. Safe to call from inside the callback."""
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2)

    @property
    def is_alive(self) -> bool:
        """True while the loop is running."""
        return self._thread is not None and not self._stop_event.is_set()


TimerFactory = Callable[[float, Callable[[], None]], OneShotTimer]
IntervalFactory = Callable[[float, Callable[[], None]], IntervalTimer]
