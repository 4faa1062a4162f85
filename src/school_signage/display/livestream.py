"""
Livestream consumer.

Switches the display between the slideshow and a livestream, and optionally
polls the stream URL so the display flips over automatically when a stream
goes live and back when it ends.
"""

import threading
from typing import Optional

import requests

from school_signage.common.ipc import MessageType
from school_signage.common.logger import setup_logger
from school_signage.common.timers import IntervalFactory, IntervalTimer
from .slideshow import Slideshow
from .surface import DisplaySurface

logger = setup_logger(__name__)

DEFAULT_CHECK_INTERVAL = 60.0
DEFAULT_CHECK_TIMEOUT = 5.0

# Embeds on these hosts cannot be probed without an API key
_ALWAYS_AVAILABLE_HOSTS = ("youtube.com", "youtu.be")


class Livestream:
    """
    Livestream display and auto-detection monitor.

    Usage:
        livestream = Livestream(surface, slideshow)
        livestream.configure("https://stream.example.org/live.m3u8", auto_detect=True)
        livestream.start_monitoring()
    """

    def __init__(
        self,
        surface: DisplaySurface,
        slideshow: Slideshow,
        check_timeout: float = DEFAULT_CHECK_TIMEOUT,
        http: Optional[requests.Session] = None,
        interval_factory: Optional[IntervalFactory] = None
    ):
        """
        Args:
            surface: Surface the livestream state is published through
            slideshow: Slideshow hidden while the livestream is showing
            check_timeout: Seconds to wait for the stream URL to answer
            http: requests.Session used for availability checks
            interval_factory: Builds the monitor timer (seconds, callback)
        """
        self._surface = surface
        self._slideshow = slideshow
        self.check_timeout = check_timeout
        self._http = http or requests.Session()
        self._interval_factory = interval_factory or (
            lambda seconds, callback: IntervalTimer(seconds, callback, name="LivestreamMonitor")
        )

        self._lock = threading.RLock()
        self._url: Optional[str] = None
        self._auto_detect = False
        self._check_interval = DEFAULT_CHECK_INTERVAL
        self._monitor: Optional[IntervalTimer] = None
        self._active_url: Optional[str] = None
        # Bumped whenever settings change or monitoring stops; checks started
        # under an older value are discarded
        self._generation = 0

        self._checks = 0

    def configure(
        self,
        url: Optional[str],
        auto_detect: bool = False,
        check_interval: float = DEFAULT_CHECK_INTERVAL
    ) -> None:
        """Set the stream URL and monitor settings. Takes effect on the next start_monitoring()."""
        with self._lock:
            self._url = url
            self._auto_detect = auto_detect
            self._check_interval = check_interval
            self._generation += 1

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def check_interval(self) -> float:
        return self._check_interval

    @property
    def is_monitoring(self) -> bool:
        with self._lock:
            return self._monitor is not None

    @property
    def check_count(self) -> int:
        """Number of availability checks run since creation."""
        return self._checks

    def is_active(self) -> bool:
        """True while the livestream is on screen."""
        with self._lock:
            return self._active_url is not None

    def start_monitoring(self) -> None:
        """Start polling the stream URL, replacing any running monitor. Checks once right away."""
        self.stop_monitoring()

        with self._lock:
            if not self._url:
                logger.info("No livestream URL configured, auto-detection disabled")
                return

            generation = self._generation
            self._monitor = self._interval_factory(
                self._check_interval,
                lambda: self.check_and_switch(generation)
            )
            self._monitor.start()

        logger.info("Livestream auto-detection enabled, checking every %.0fs", self._check_interval)
        self.check_and_switch(generation)

    def stop_monitoring(self) -> None:
        """Stop polling. Does not change what is on screen."""
        with self._lock:
            monitor = self._monitor
            self._monitor = None
            self._generation += 1

        if monitor is not None:
            monitor.cancel()
            logger.info("Livestream monitoring stopped")

    def check_status(self, url: Optional[str]) -> bool:
        """
        Check whether the stream at `url` is reachable.

        YouTube embeds are assumed available. Other URLs get a HEAD request;
        any successful answer counts as live.
        """
        if not url:
            return False

        self._checks += 1

        if any(host in url for host in _ALWAYS_AVAILABLE_HOSTS):
            return True

        try:
            response = self._http.head(url, timeout=self.check_timeout, allow_redirects=True)
            return response.ok
        except requests.exceptions.RequestException as e:
            logger.debug("Livestream not available: %s", e)
            return False

    def check_and_switch(self, generation: Optional[int] = None) -> None:
        """
        Switch to the stream when it comes online and back when it drops.

        Args:
            generation: Monitor generation the check belongs to. The result
                is dropped if settings changed or monitoring stopped while
                the availability check was in flight.
        """
        with self._lock:
            if generation is None:
                generation = self._generation
            url = self._url
            if not url or generation != self._generation:
                return

        online = self.check_status(url)

        # Held across show() so a concurrent disable sees the switch it made
        with self._lock:
            if generation != self._generation:
                logger.debug("Livestream settings changed during check, result dropped")
                return

            if online and not self.is_active():
                logger.info("Livestream detected online, switching")
                self.show(url)
            elif not online and self.is_active():
                logger.info("Livestream went offline, switching to slideshow")
                self.show(None)

    def show(self, url: Optional[str]) -> None:
        """Show the livestream at `url`, or pass None to go back to the slideshow."""
        with self._lock:
            self._active_url = url or None

        if url:
            self._slideshow.hide()
            logger.info("Switched to livestream: %s", url)
        else:
            self._slideshow.show()
            logger.info("Switched to slideshow")

        self._surface.publish(MessageType.LIVESTREAM, {
            "active": bool(url),
            "url": url or None,
        })

    def __repr__(self) -> str:
        """String representation."""
        return f"Livestream(url={self._url}, monitoring={self.is_monitoring}, active={self.is_active()})"
