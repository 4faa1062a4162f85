"""
School Signage Display application.

Builds the display from configuration and runs it until SIGINT/SIGTERM:
settings client, local cache, consumers, applier, stream subscriber,
schedule checker, health monitor and orchestrator.
"""

import argparse
import signal
import sys
import threading
from typing import Optional

from school_signage.common.config import Config
from school_signage.common.errors import ConfigError
from school_signage.common.ipc import MessagePublisher
from school_signage.common.local_cache import LocalCache
from school_signage.common.logger import set_log_level, setup_logger
from school_signage.common.settings_client import SettingsClient
from school_signage.common.timers import IntervalTimer
from .applier import SettingsApplier
from .emergency import EmergencyAlertOverlay
from .health_monitor import HealthMonitor
from .livestream import Livestream
from .orchestrator import DisplayOrchestrator
from .schedule import ScheduleChecker
from .slideshow import Slideshow
from .stream_subscriber import StreamSubscriber
from .surface import DisplaySurface

logger = setup_logger(__name__)


class DisplayApp:
    """
    One running display.

    Usage:
        app = DisplayApp(Config("/etc/school-signage/config.yaml"))
        app.run()  # blocks until a signal arrives
    """

    def __init__(self, config: Config, enable_ipc: Optional[bool] = None):
        """
        Args:
            config: Validated configuration
            enable_ipc: Override ipc.enabled from the config
        """
        self.config = config
        self._stop_event = threading.Event()
        self._running = False

        if enable_ipc is None:
            enable_ipc = bool(config.get('ipc.enabled', True))

        self.publisher: Optional[MessagePublisher] = None
        self._republish_timer: Optional[IntervalTimer] = None
        if enable_ipc:
            self.publisher = MessagePublisher(port=int(config.get('ipc.port', 5560)))
            self._republish_timer = IntervalTimer(
                config.get('ipc.republish_interval_ms', 30000) / 1000.0,
                self.publisher.republish,
                name="StateRepublish"
            )

        self.cache = LocalCache(str(config.cache_dir))
        self.client = SettingsClient(config.api_base_url, timeout=config.get('api.timeout', 10))

        self.surface = DisplaySurface(school_name=config.school_name, publisher=self.publisher)
        self.slideshow = Slideshow(self.surface, interval_ms=config.get('display.slideshow_interval_ms', 8000))
        self.livestream = Livestream(
            self.surface,
            self.slideshow,
            check_timeout=config.get('livestream.check_timeout_ms', 5000) / 1000.0
        )
        self.emergency = EmergencyAlertOverlay(self.surface)
        self.applier = SettingsApplier(self.surface, self.slideshow, self.livestream)

        self.subscriber = StreamSubscriber(
            reconnect_delay=config.reconnect_delay,
            connect_timeout=config.get('stream.connect_timeout', 10)
        )
        self.schedule_checker = ScheduleChecker(
            self.slideshow.check_schedule,
            interval=config.get('schedule.check_interval_ms', 60000) / 1000.0
        )
        self.health_monitor = HealthMonitor(
            self.client,
            interval=config.get('health.interval_ms', 30000) / 1000.0
        )

        self.orchestrator = DisplayOrchestrator(
            client=self.client,
            cache=self.cache,
            applier=self.applier,
            subscriber=self.subscriber,
            emergency=self.emergency,
            stream_url=config.stream_url,
            schedule_checker=self.schedule_checker,
            health_monitor=self.health_monitor
        )

    def start(self) -> None:
        """Start the display without blocking."""
        self._running = True
        self._stop_event.clear()
        self.orchestrator.start()
        if self._republish_timer is not None:
            self._republish_timer.start()
        logger.info("Display started (api=%s)", self.config.api_base_url)

    def stop(self) -> None:
        """Stop the display and release the IPC socket."""
        if not self._running:
            return

        self._running = False
        self._stop_event.set()
        self.orchestrator.stop()

        if self._republish_timer is not None:
            self._republish_timer.cancel()
        if self.publisher is not None:
            self.publisher.close()

        logger.info("Display stopped")

    def run(self) -> None:
        """Run the display (blocking) until SIGINT/SIGTERM."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        self.start()
        logger.info("Display running - press Ctrl+C to stop")

        try:
            while self._running:
                if self._stop_event.wait(timeout=1.0):
                    break
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")

        self.stop()

    def _signal_handler(self, signum: int, frame) -> None:
        """Handle system signals for graceful shutdown."""
        logger.info("Received signal: %s", signal.Signals(signum).name)
        self._stop_event.set()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="School Signage Display")
    parser.add_argument('--config', help="Path to config.yaml")
    parser.add_argument('--api-url', help="Settings API base URL override")
    parser.add_argument('--cache-dir', help="Local cache directory override")
    parser.add_argument('--no-ipc', action='store_true', help="Do not publish state to a renderer")
    parser.add_argument('--log-level', help="DEBUG, INFO, WARNING or ERROR")
    return parser


def main(argv=None) -> int:
    """Main entry point for the display."""
    args = build_parser().parse_args(argv)

    try:
        config = Config(args.config)
        if args.api_url:
            config.set('api.base_url', args.api_url)
        if args.cache_dir:
            config.set('cache.dir', args.cache_dir)
        config.validate()
    except (ConfigError, FileNotFoundError) as e:
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    set_log_level(args.log_level or str(config.get('logging.level', 'INFO')))
    logger.info("School Signage Display starting...")

    app = DisplayApp(config, enable_ipc=False if args.no_ipc else None)
    app.run()
    return 0
