"""
Stream Subscriber for the School Signage Display.

Holds the long-lived GET /api/settings/stream connection, decodes one event
per line and hands it to the registered handler. Transport failures never
escape: the connection is closed and exactly one reconnect is scheduled
after a fixed delay, forever, until disconnect() is called.
"""

import threading
from enum import Enum
from typing import Callable, Optional

import requests

from school_signage.common.errors import DecodeError
from school_signage.common.logger import setup_logger
from school_signage.common.timers import OneShotTimer, TimerFactory
from .events import StreamEvent, decode_event

logger = setup_logger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle of the subscriber."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    ERROR = "error"
    CLOSED = "closed"


# SSE field lines that carry no payload for us
_SSE_IGNORED_PREFIXES = ("event:", "id:", "retry:")


class StreamSubscriber:
    """
    Reconnecting subscriber for the settings push channel.

    Each connect() starts a new connection generation. Callbacks from an
    older generation (a reader thread still unwinding after its response was
    closed) are ignored, so at most one connection ever reports events or
    errors.
    """

    # Fixed reconnect delay in seconds
    DEFAULT_RECONNECT_DELAY = 5.0

    # Seconds to wait for the server to accept the connection
    DEFAULT_CONNECT_TIMEOUT = 10

    def __init__(
        self,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
        timer_factory: Optional[TimerFactory] = None,
        on_event: Optional[Callable[[StreamEvent], None]] = None,
        on_state_changed: Optional[Callable[[ConnectionState, ConnectionState], None]] = None
    ):
        """
        Initialize the subscriber.

        Args:
            reconnect_delay: Seconds between a failure and the reconnect attempt
            connect_timeout: Seconds to wait for the connection to open
            read_timeout: Seconds of silence before the connection is treated
                as dead (None waits forever)
            http: requests.Session to use (created if None)
            timer_factory: Builds the reconnect timer (delay, callback)
            on_event: Handler for decoded events
            on_state_changed: Callback(old_state, new_state)
        """
        self.reconnect_delay = reconnect_delay
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._http = http or requests.Session()
        self._timer_factory = timer_factory or (
            lambda delay, callback: OneShotTimer(delay, callback, name="StreamReconnect")
        )
        self._on_event = on_event
        self._on_state_changed = on_state_changed

        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._url: Optional[str] = None
        self._generation = 0
        self._response: Optional[requests.Response] = None
        self._reconnect_timer: Optional[OneShotTimer] = None
        self._closed = False

        # Statistics
        self._reconnect_attempts = 0
        self._events_received = 0
        self._decode_errors = 0

    # -------------------------------------------------------------------------
    # Public interface
    # -------------------------------------------------------------------------

    def on_event(self, handler: Callable[[StreamEvent], None]) -> None:
        """
        Set or replace the event handler.

        Args:
            handler: Called once per decoded event, in server-send order
        """
        self._on_event = handler

    def on_state_changed(self, callback: Callable[[ConnectionState, ConnectionState], None]) -> None:
        """Set or replace the state change callback(old_state, new_state)."""
        self._on_state_changed = callback

    def connect(self, url: str) -> None:
        """
        Open the stream. Any existing connection is torn down first.

        Args:
            url: Full stream URL, e.g. http://server/api/settings/stream
        """
        with self._lock:
            self._close_connection()
            self._closed = False
            self._url = url
            self._generation += 1
            generation = self._generation
            self._set_state(ConnectionState.CONNECTING)

        logger.info("Connecting to settings stream: %s", url)
        self._spawn_reader(generation, url)

    def disconnect(self) -> None:
        """Close the stream and cancel any pending reconnect. No callbacks fire afterwards."""
        with self._lock:
            self._closed = True
            self._generation += 1
            self._cancel_reconnect()
            self._close_connection()
            self._set_state(ConnectionState.CLOSED)

        logger.info("Settings stream disconnected")

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        """True while the stream is open."""
        return self.state == ConnectionState.OPEN

    @property
    def has_pending_reconnect(self) -> bool:
        """True while a reconnect timer is waiting to fire."""
        with self._lock:
            return self._reconnect_timer is not None

    @property
    def reconnect_attempts(self) -> int:
        """Number of reconnects scheduled since creation."""
        return self._reconnect_attempts

    @property
    def stats(self) -> dict:
        """Counters for diagnostics."""
        with self._lock:
            return {
                "state": self._state.value,
                "reconnect_attempts": self._reconnect_attempts,
                "events_received": self._events_received,
                "decode_errors": self._decode_errors,
            }

    # -------------------------------------------------------------------------
    # Connection handling
    # -------------------------------------------------------------------------

    def _spawn_reader(self, generation: int, url: str) -> None:
        """Run the blocking read loop for one connection on its own thread."""
        thread = threading.Thread(
            target=self._read_stream,
            args=(generation, url),
            name=f"StreamSubscriber-{generation}",
            daemon=True
        )
        thread.start()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self._closed

    def _read_stream(self, generation: int, url: str) -> None:
        """Open the connection and process lines until it ends or fails."""
        try:
            response = self._http.get(
                url,
                stream=True,
                timeout=(self.connect_timeout, self.read_timeout),
                headers={"Accept": "text/event-stream, application/x-ndjson"}
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self._on_transport_error(generation, e)
            return

        with self._lock:
            if not self._is_current(generation):
                response.close()
                return
            self._response = response
            self._on_open(generation)

        try:
            for line in response.iter_lines(decode_unicode=True):
                if not self._is_current(generation):
                    return
                self._handle_line(generation, line)
        except (requests.exceptions.RequestException, OSError, ValueError) as e:
            self._on_transport_error(generation, e)
            return

        self._on_transport_error(generation, "stream closed by server")

    def _on_open(self, generation: int) -> None:
        """Connection established: cancel any pending reconnect."""
        with self._lock:
            if not self._is_current(generation):
                return
            self._cancel_reconnect()
            self._set_state(ConnectionState.OPEN)

        logger.info("Connected to real-time settings stream")

    def _handle_line(self, generation: int, line) -> None:
        """Decode one line and dispatch it. Bad payloads are dropped."""
        if line is None:
            return
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")

        payload = line.strip()
        if not payload or payload.startswith(":"):
            return
        if payload.startswith(_SSE_IGNORED_PREFIXES):
            return
        if payload.startswith("data:"):
            payload = payload[len("data:"):].strip()
            if not payload:
                return

        try:
            event = decode_event(payload)
        except DecodeError as e:
            self._decode_errors += 1
            logger.warning("Dropping malformed stream message: %s", e)
            return

        if event is None:
            logger.debug("Ignoring stream message of unknown kind")
            return

        self._events_received += 1
        self._dispatch(generation, event)

    def _dispatch(self, generation: int, event: StreamEvent) -> None:
        handler = self._on_event
        if handler is None or not self._is_current(generation):
            return

        try:
            handler(event)
        except Exception as e:
            logger.error("Error in stream event handler (%s): %s", event.kind.value, e)

    def _on_transport_error(self, generation: int, error) -> None:
        """Close the failed connection and schedule a single reconnect."""
        with self._lock:
            if not self._is_current(generation):
                return

            logger.error("Settings stream connection error: %s", error)
            self._set_state(ConnectionState.ERROR)
            self._close_connection()
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        with self._lock:
            if self._reconnect_timer is not None:
                return

            self._reconnect_attempts += 1
            self._reconnect_timer = self._timer_factory(self.reconnect_delay, self._reconnect)
            self._reconnect_timer.start()

        logger.info("Reconnecting to settings stream in %.1fs", self.reconnect_delay)

    def _reconnect(self) -> None:
        with self._lock:
            self._reconnect_timer = None
            if self._closed or self._url is None:
                return
            url = self._url

        logger.info("Reconnecting to settings stream...")
        self.connect(url)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _close_connection(self) -> None:
        response = self._response
        self._response = None
        if response is not None:
            try:
                response.close()
            except Exception as e:
                logger.debug("Error closing stream response: %s", e)

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.debug("Stream state: %s -> %s", old_state.name, new_state.name)

        if self._on_state_changed:
            try:
                self._on_state_changed(old_state, new_state)
            except Exception as e:
                logger.error("Error in stream state callback: %s", e)

    def __repr__(self) -> str:
        """String representation."""
        return f"StreamSubscriber(url={self._url}, state={self.state.name})"
