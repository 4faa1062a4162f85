"""
Display state publishing over ZeroMQ.

The display process owns no window. Every change to what should be on
screen is published on a PUB socket as "<topic> <json>" and a renderer
process (kiosk browser, LED wall driver) subscribes and redraws.
"""

import zmq
import json
import threading
import time
from typing import Optional, Dict, Any
from enum import Enum
from .logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_PORT = 5560


class MessageType(Enum):
    """Display state topics."""
    THEME = "theme"               # Style properties changed
    GENERAL = "general"           # School name / page title changed
    SLIDES = "slides"             # Rendered slide list replaced
    SLIDESHOW = "slideshow"       # Active slide index changed
    LIVESTREAM = "livestream"     # Livestream shown or hidden
    EMERGENCY = "emergency"       # Emergency alert shown or hidden


class StateMessage:
    """One published display state change."""

    def __init__(
        self,
        msg_type: MessageType,
        data: Dict[str, Any],
        sequence: int,
        sent_at: Optional[float] = None
    ):
        """
        Args:
            msg_type: Topic of the change
            data: New state for that topic
            sequence: Publisher-wide counter, lets a renderer notice gaps
            sent_at: Unix timestamp (now if None)
        """
        self.msg_type = msg_type
        self.data = data
        self.sequence = sequence
        self.sent_at = sent_at or time.time()

    def encode(self) -> str:
        """Wire form: topic, one space, JSON body."""
        body = json.dumps({
            "seq": self.sequence,
            "sent_at": self.sent_at,
            "data": self.data,
        })
        return f"{self.msg_type.value} {body}"

    @classmethod
    def decode(cls, frame: str) -> "StateMessage":
        """Parse a frame produced by encode(). Raises ValueError on bad input."""
        topic, _, body = frame.partition(" ")
        obj = json.loads(body)
        return cls(
            msg_type=MessageType(topic),
            data=obj["data"],
            sequence=int(obj["seq"]),
            sent_at=obj["sent_at"]
        )

    def __repr__(self) -> str:
        return f"StateMessage({self.msg_type.value} #{self.sequence})"


class MessagePublisher:
    """
    PUB socket for display state.

    The last message of every topic is retained so republish() can bring a
    renderer that (re)connected late up to date.
    """

    def __init__(self, port: int = DEFAULT_PORT, bind_host: str = "*"):
        """
        Args:
            port: TCP port to bind
            bind_host: Interface to bind, '*' for all
        """
        self.port = port
        self.context = zmq.Context()
        self.socket = self.context.socket(zmq.PUB)
        self.socket.bind(f"tcp://{bind_host}:{port}")

        self._lock = threading.Lock()
        self._sequence = 0
        self._retained: Dict[MessageType, StateMessage] = {}

        # PUB drops messages sent before a subscriber has joined
        time.sleep(0.1)

        logger.info("State publisher bound on port %d", port)

    def publish(self, msg_type: MessageType, data: Dict[str, Any]) -> None:
        """
        Publish a state change. Send failures are logged, never raised.

        Args:
            msg_type: Topic
            data: New state for the topic
        """
        with self._lock:
            self._sequence += 1
            message = StateMessage(msg_type, data, self._sequence)
            self._retained[msg_type] = message
            self._send(message)

    def republish(self) -> int:
        """Send the retained state of every topic again. Returns the count sent."""
        with self._lock:
            messages = list(self._retained.values())
            for message in messages:
                self._send(message)
        return len(messages)

    def last_state(self, msg_type: MessageType) -> Optional[Dict[str, Any]]:
        """Data of the last message published on `msg_type`, if any."""
        with self._lock:
            message = self._retained.get(msg_type)
        return message.data if message is not None else None

    def _send(self, message: StateMessage) -> None:
        try:
            self.socket.send_string(message.encode())
        except zmq.ZMQError as e:
            logger.error("Failed to publish %s: %s", message.msg_type.value, e)
            return
        logger.debug("Published %r", message)

    def close(self) -> None:
        """Close the socket without waiting for unsent messages."""
        self.socket.close(linger=0)
        self.context.term()
        logger.info("State publisher closed")
