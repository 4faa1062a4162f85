"""
Health Monitor for the School Signage Display.

Polls the settings server's /api/health endpoint and tracks an online/offline
state with hysteresis so a single slow answer does not flip the display into
degraded mode.
"""

import threading
import time
from typing import Callable, Optional

from school_signage.common.errors import SignageError
from school_signage.common.logger import setup_logger
from school_signage.common.settings_client import SettingsClient
from school_signage.common.timers import IntervalFactory, IntervalTimer

logger = setup_logger(__name__)

DEFAULT_INTERVAL = 30.0

# Hysteresis: require N consecutive results before changing state
ONLINE_THRESHOLD = 1   # 1 success -> online immediately
OFFLINE_THRESHOLD = 3  # 3 consecutive failures -> offline


class HealthMonitor:
    """
    Tracks whether the settings server is reachable.

    Usage:
        monitor = HealthMonitor(client, on_state_changed=print)
        monitor.start()
        if monitor.is_online:
            ...
        monitor.stop()
    """

    def __init__(
        self,
        client: SettingsClient,
        interval: float = DEFAULT_INTERVAL,
        on_state_changed: Optional[Callable[[bool], None]] = None,
        interval_factory: Optional[IntervalFactory] = None
    ):
        """
        Args:
            client: Settings client used for GET /api/health
            interval: Seconds between checks
            on_state_changed: Callback(is_online) when state changes
            interval_factory: Builds the polling timer (seconds, callback)
        """
        self._client = client
        self.interval = interval
        self._on_state_changed = on_state_changed
        self._interval_factory = interval_factory or (
            lambda seconds, callback: IntervalTimer(seconds, callback, name="HealthMonitor", run_immediately=True)
        )

        self._lock = threading.Lock()
        self._online = False
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._last_check_time: Optional[float] = None
        self._last_status: Optional[dict] = None
        self._timer: Optional[IntervalTimer] = None

        self._total_checks = 0
        self._total_failures = 0

    @property
    def is_online(self) -> bool:
        """True if the server answered recently. Thread-safe."""
        with self._lock:
            return self._online

    def get_status(self) -> dict:
        """Monitor status for diagnostics."""
        with self._lock:
            return {
                "online": self._online,
                "consecutive_failures": self._consecutive_failures,
                "consecutive_successes": self._consecutive_successes,
                "last_check_time": self._last_check_time,
                "last_status": self._last_status,
                "total_checks": self._total_checks,
                "total_failures": self._total_failures,
            }

    def check_now(self) -> bool:
        """
        Poll the server once and update state.

        Returns:
            True if the server answered.
        """
        try:
            status = self._client.health()
            reachable = True
        except SignageError as e:
            logger.debug("Health check failed: %s", e)
            status = None
            reachable = False

        self._update_state(reachable, status)
        return reachable

    def _update_state(self, reachable: bool, status: Optional[dict]) -> None:
        """Update online/offline state with hysteresis."""
        state_changed = False

        with self._lock:
            self._total_checks += 1
            self._last_check_time = time.time()
            if status is not None:
                self._last_status = status

            if reachable:
                self._consecutive_successes += 1
                self._consecutive_failures = 0

                if not self._online and self._consecutive_successes >= ONLINE_THRESHOLD:
                    self._online = True
                    state_changed = True
                    logger.info("Settings server ONLINE (%s)", self._client.base_url)
            else:
                self._consecutive_failures += 1
                self._consecutive_successes = 0
                self._total_failures += 1

                if self._online and self._consecutive_failures >= OFFLINE_THRESHOLD:
                    self._online = False
                    state_changed = True
                    logger.warning(
                        "Settings server OFFLINE after %d failures (%s)",
                        self._consecutive_failures, self._client.base_url,
                    )

        # Fire callback outside lock
        if state_changed and self._on_state_changed:
            try:
                self._on_state_changed(reachable)
            except Exception as e:
                logger.error("Health state callback error: %s", e)

    def start(self) -> None:
        """Start polling in the background."""
        if self._timer is not None:
            return

        self._timer = self._interval_factory(self.interval, self.check_now)
        self._timer.start()
        logger.info("HealthMonitor started (every %.0fs)", self.interval)

    def stop(self) -> None:
        """Stop polling."""
        if self._timer is None:
            return

        self._timer.cancel()
        self._timer = None
        logger.info("HealthMonitor stopped")
