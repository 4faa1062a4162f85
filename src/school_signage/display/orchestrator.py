"""
Display Orchestrator for the School Signage Display.

Owns the settings bundle of one display and wires the settings sources to
the consumers:

    BOOTSTRAPPING  one-shot fetch of the full bundle (cache on failure)
    SYNCING        bundle applied, stream connection started
    LIVE           at least one `initial` event received from the stream

Emergency events go straight to the alert overlay; settings events go
through the applier.
"""

import copy
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from school_signage.common.errors import SignageError
from school_signage.common.local_cache import LocalCache
from school_signage.common.logger import setup_logger
from school_signage.common.settings_client import SettingsClient
from .applier import AppliedChanges, SettingsApplier
from .emergency import EmergencyAlertOverlay
from .events import EventKind, StreamEvent
from .health_monitor import HealthMonitor
from .schedule import ScheduleChecker
from .stream_subscriber import ConnectionState, StreamSubscriber

logger = setup_logger(__name__)


class SyncState(Enum):
    """Synchronisation state of the display."""
    BOOTSTRAPPING = "bootstrapping"  # Initial fetch in flight
    SYNCING = "syncing"              # Bundle applied, waiting for the stream
    LIVE = "live"                    # Receiving updates from the stream


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


class DisplayOrchestrator:
    """
    Top-level controller of one display.

    Usage:
        orchestrator = DisplayOrchestrator(client, cache, applier, subscriber,
                                           emergency, stream_url)
        orchestrator.start()
        ...
        orchestrator.stop()
    """

    VALID_TRANSITIONS: Dict[SyncState, List[SyncState]] = {
        SyncState.BOOTSTRAPPING: [SyncState.SYNCING],
        SyncState.SYNCING: [SyncState.LIVE],
        SyncState.LIVE: [],
    }

    def __init__(
        self,
        client: SettingsClient,
        cache: LocalCache,
        applier: SettingsApplier,
        subscriber: StreamSubscriber,
        emergency: EmergencyAlertOverlay,
        stream_url: str,
        schedule_checker: Optional[ScheduleChecker] = None,
        health_monitor: Optional[HealthMonitor] = None,
        on_state_changed: Optional[Callable[[SyncState, SyncState], None]] = None
    ):
        """
        Args:
            client: Settings API client
            cache: Local cache holding the last-known-good bundle
            applier: Applies bundles to the display consumers
            subscriber: Stream subscriber (its event handler is replaced)
            emergency: Emergency alert overlay
            stream_url: Full URL of the settings stream
            schedule_checker: Periodic slide schedule re-check
            health_monitor: Periodic server health poll
            on_state_changed: Callback(old_state, new_state)
        """
        self._client = client
        self._cache = cache
        self._applier = applier
        self._subscriber = subscriber
        self._emergency = emergency
        self._stream_url = stream_url
        self._schedule_checker = schedule_checker
        self._health_monitor = health_monitor
        self._on_state_changed = on_state_changed

        self._lock = threading.RLock()
        self._state = SyncState.BOOTSTRAPPING
        self._bundle: Dict[str, Any] = {}
        self._bundle_source: Optional[str] = None
        self._bootstrap_thread: Optional[threading.Thread] = None

        self._subscriber.on_event(self.handle_event)
        self._subscriber.on_state_changed(self._on_stream_state_changed)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        with self._lock:
            return self._state

    @property
    def settings(self) -> Dict[str, Any]:
        """Copy of the current settings bundle."""
        with self._lock:
            return copy.deepcopy(self._bundle)

    @property
    def bundle_source(self) -> Optional[str]:
        """Where the current bundle came from: 'server', 'cache', 'stream' or 'manual'."""
        return self._bundle_source

    def _check_transition(self, target: SyncState) -> None:
        """Raise StateTransitionError unless the current state may move to (or is) `target`."""
        with self._lock:
            old_state = self._state
            if old_state != target and target not in self.VALID_TRANSITIONS.get(old_state, []):
                raise StateTransitionError(
                    f"Invalid transition: {old_state.name} -> {target.name}"
                )

    def _transition(self, target: SyncState) -> None:
        with self._lock:
            self._check_transition(target)
            old_state = self._state
            if old_state == target:
                return
            self._state = target

        logger.info("Display state: %s -> %s", old_state.name, target.name)

        if self._on_state_changed:
            try:
                self._on_state_changed(old_state, target)
            except Exception as e:
                logger.error("Error in state change callback: %s", e)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start background services and bootstrap off the calling thread."""
        if self._schedule_checker is not None:
            self._schedule_checker.start()
        if self._health_monitor is not None:
            self._health_monitor.start()

        self._bootstrap_thread = threading.Thread(
            target=self.bootstrap,
            name="DisplayBootstrap",
            daemon=True
        )
        self._bootstrap_thread.start()

    def bootstrap(self) -> None:
        """
        Load and apply the initial bundle, then open the stream.

        The server bundle is written to the local cache. If the server cannot
        be reached the cached bundle is applied instead. The stream is only
        connected once this bundle is applied, so the stream's `initial`
        event always lands after it.
        """
        try:
            bundle = self._client.get_all()
            source = "server"
            logger.info("Settings loaded from server: %s", sorted(bundle.keys()))
        except SignageError as e:
            logger.error("Error loading settings from API: %s", e)
            logger.info("Falling back to cached settings")
            bundle = self._cache.load_bundle()
            source = "cache"
        else:
            self._cache.save_bundle(bundle)

        self._replace_and_apply(bundle, source)
        self._transition(SyncState.SYNCING)
        self._subscriber.connect(self._stream_url)

    def stop(self) -> None:
        """Close the stream and stop every timer the display owns."""
        self._subscriber.disconnect()

        if self._schedule_checker is not None:
            self._schedule_checker.stop()
        if self._health_monitor is not None:
            self._health_monitor.stop()

        self._applier.livestream.stop_monitoring()
        self._applier.slideshow.stop()

        logger.info("Display orchestrator stopped")

    # -------------------------------------------------------------------------
    # Bundle handling
    # -------------------------------------------------------------------------

    def apply_all(self, bundle: Dict[str, Any]) -> AppliedChanges:
        """Replace the current bundle with one obtained out of band and apply it."""
        return self._replace_and_apply(bundle, "manual")

    def _replace_and_apply(self, bundle: Dict[str, Any], source: str) -> AppliedChanges:
        with self._lock:
            self._bundle = copy.deepcopy(bundle or {})
            self._bundle_source = source
            return self._applier.apply_all(self._bundle)

    # -------------------------------------------------------------------------
    # Stream events
    # -------------------------------------------------------------------------

    def handle_event(self, event: StreamEvent) -> None:
        """Dispatch one stream event by kind."""
        kind = event.kind

        if kind is EventKind.EMERGENCY_ALERT:
            logger.warning("EMERGENCY ALERT RECEIVED")
            self._emergency.show(event.alert)

        elif kind is EventKind.EMERGENCY_CANCEL:
            logger.info("Emergency alert cancelled")
            self._emergency.hide()

        elif kind is EventKind.INITIAL:
            logger.info("Received initial settings from stream")
            self._check_transition(SyncState.LIVE)
            self._replace_and_apply(event.bundle, "stream")
            self._cache.save_bundle(event.bundle)
            self._transition(SyncState.LIVE)
            self.check_emergency_status()

        elif kind is EventKind.SETTINGS_UPDATE:
            logger.info("Settings updated from server (key: %s)", event.changed_key or "all settings")
            self._replace_and_apply(event.bundle, "stream")
            self._cache.save_bundle(event.bundle)

        elif kind is EventKind.SERVER_SHUTDOWN:
            logger.info("Server is shutting down, will reconnect")

    def check_emergency_status(self) -> None:
        """Show an alert that became active while the stream was down, or clear one that ended."""
        try:
            status = self._client.get_emergency_status()
        except SignageError as e:
            logger.error("Error checking emergency status: %s", e)
            return

        if status["active"] and status["alert"]:
            logger.warning("Active emergency alert found")
            self._emergency.show(status["alert"])
        elif not status["active"] and self._emergency.is_showing:
            self._emergency.hide()

    def _on_stream_state_changed(self, old_state: ConnectionState, new_state: ConnectionState) -> None:
        # Runs under the subscriber's lock: log only
        if new_state is ConnectionState.ERROR:
            logger.warning("Settings stream lost, showing last applied settings until it returns")

    def __repr__(self) -> str:
        """String representation."""
        return f"DisplayOrchestrator(state={self.state.name}, source={self._bundle_source})"
