"""
Settings stream events.

Each line of GET /api/settings/stream is one JSON object whose `kind` field
selects the event type. Older servers send `type`/`settings`/`key` instead
of `kind`/`bundle`/`changedKey`; both spellings are accepted.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from school_signage.common.errors import DecodeError


class EventKind(Enum):
    """Stream event discriminator values."""
    INITIAL = "initial"
    SETTINGS_UPDATE = "settings_update"
    EMERGENCY_ALERT = "emergency_alert"
    EMERGENCY_CANCEL = "emergency_cancel"
    SERVER_SHUTDOWN = "server_shutdown"


@dataclass(frozen=True)
class InitialEvent:
    """Full settings bundle sent right after the stream opens."""
    bundle: Dict[str, Any] = field(default_factory=dict)
    kind: EventKind = EventKind.INITIAL


@dataclass(frozen=True)
class SettingsUpdateEvent:
    """Full settings bundle after an admin change; changed_key names the key if known."""
    bundle: Dict[str, Any] = field(default_factory=dict)
    changed_key: Optional[str] = None
    kind: EventKind = EventKind.SETTINGS_UPDATE


@dataclass(frozen=True)
class EmergencyAlertEvent:
    """An emergency alert to show immediately."""
    alert: Dict[str, Any] = field(default_factory=dict)
    kind: EventKind = EventKind.EMERGENCY_ALERT


@dataclass(frozen=True)
class EmergencyCancelEvent:
    kind: EventKind = EventKind.EMERGENCY_CANCEL


@dataclass(frozen=True)
class ServerShutdownEvent:
    kind: EventKind = EventKind.SERVER_SHUTDOWN


StreamEvent = Union[
    InitialEvent,
    SettingsUpdateEvent,
    EmergencyAlertEvent,
    EmergencyCancelEvent,
    ServerShutdownEvent,
]


def _bundle(obj: Dict[str, Any]) -> Dict[str, Any]:
    bundle = obj.get("bundle", obj.get("settings"))
    if bundle is None:
        return {}
    if not isinstance(bundle, dict):
        raise DecodeError(f"Event bundle must be an object, got {type(bundle).__name__}")
    return bundle


def decode_event(payload: str) -> Optional[StreamEvent]:
    """
    Decode one stream message.

    Args:
        payload: JSON text of a single event

    Returns:
        The decoded event, or None for a kind this client does not know

    Raises:
        DecodeError: If the payload is not a JSON object or a field has the
            wrong shape
    """
    try:
        obj = json.loads(payload)
    except ValueError as e:
        raise DecodeError(f"Invalid JSON in stream message: {e}") from e

    if not isinstance(obj, dict):
        raise DecodeError("Stream message must be a JSON object")

    raw_kind = obj.get("kind", obj.get("type"))
    try:
        kind = EventKind(raw_kind)
    except ValueError:
        return None

    if kind is EventKind.INITIAL:
        return InitialEvent(bundle=_bundle(obj))

    if kind is EventKind.SETTINGS_UPDATE:
        changed_key = obj.get("changedKey", obj.get("key"))
        return SettingsUpdateEvent(
            bundle=_bundle(obj),
            changed_key=str(changed_key) if changed_key is not None else None
        )

    if kind is EventKind.EMERGENCY_ALERT:
        alert = obj.get("alert") or {}
        if not isinstance(alert, dict):
            raise DecodeError("Emergency alert must be an object")
        return EmergencyAlertEvent(alert=alert)

    if kind is EventKind.EMERGENCY_CANCEL:
        return EmergencyCancelEvent()

    return ServerShutdownEvent()
