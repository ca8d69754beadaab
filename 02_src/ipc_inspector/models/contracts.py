"""Inspector wire protocol: channel names and message payloads.

Direction of each channel:

- ``INSPECTOR:HELLO`` (viewer -> host): viewer is ready, host answers with INIT
- ``INSPECTOR:COMMAND`` (viewer -> host): control command, answered with
  ``INSPECTOR:COMMAND_RESPONSE``
- ``INSPECTOR:TRACE`` (window -> host): a trace fragment produced in a window
- ``INSPECTOR:INIT`` (host -> viewer): snapshot of the buffer plus config
- ``INSPECTOR:EVENT`` / ``INSPECTOR:EVENT_BATCH`` (host -> viewer): live events
- ``INSPECTOR:STATUS`` (host -> viewer): state changed
- ``INSPECTOR:PAYLOAD_MODE_CHANGED`` (host -> every window)
"""

from dataclasses import dataclass, field
from typing import Any

from .tracing import PayloadMode

INSPECTOR_PREFIX = "INSPECTOR:"
INSPECTOR_ROLE = "inspector"

HELLO = "INSPECTOR:HELLO"
COMMAND = "INSPECTOR:COMMAND"
TRACE = "INSPECTOR:TRACE"
INIT = "INSPECTOR:INIT"
EVENT = "INSPECTOR:EVENT"
EVENT_BATCH = "INSPECTOR:EVENT_BATCH"
STATUS = "INSPECTOR:STATUS"
COMMAND_RESPONSE = "INSPECTOR:COMMAND_RESPONSE"
PAYLOAD_MODE_CHANGED = "INSPECTOR:PAYLOAD_MODE_CHANGED"

# Cross-window routing
ROUTE_REQUEST = "__RENDERER_ROUTE__"
ROUTE_RESULT = "__RENDERER_ROUTE_RESULT__"
ROUTE_RESPONSE = "__RENDERER_RESPONSE__"

EXPORT_FORMAT_VERSION = "1.0"


def is_inspector_channel(channel: str) -> bool:
    """Check whether a channel belongs to the inspector itself."""
    return channel.startswith(INSPECTOR_PREFIX)


def handler_channel(channel: str) -> str:
    """Inbound address of a routed-call handler inside the target window."""
    return f"__RENDERER_HANDLER_{channel}__"


@dataclass
class InspectorConfigPayload:
    """Configuration part of INIT."""

    enabled: bool
    max_events: int
    payload_mode: PayloadMode
    max_payload_preview_bytes: int

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "max_events": self.max_events,
            "payload_mode": self.payload_mode.value,
            "max_payload_preview_bytes": self.max_payload_preview_bytes,
        }


@dataclass
class InspectorStatus:
    """STATUS payload."""

    is_tracing: bool
    event_count: int
    buffer_capacity: int
    dropped_count: int
    payload_mode: PayloadMode

    def to_dict(self) -> dict:
        return {
            "is_tracing": self.is_tracing,
            "event_count": self.event_count,
            "buffer_capacity": self.buffer_capacity,
            "dropped_count": self.dropped_count,
            "payload_mode": self.payload_mode.value,
        }


@dataclass
class CommandResponse:
    """COMMAND_RESPONSE payload."""

    success: bool
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class ExportStats:
    """Stats block of the export document."""

    total_events: int
    dropped_events: int
    capacity: int


@dataclass
class ExportDocument:
    """Versioned, self-describing export of the buffer."""

    timestamp: float
    events: list[dict] = field(default_factory=list)
    stats: ExportStats | None = None
    format_version: str = EXPORT_FORMAT_VERSION

    def to_dict(self) -> dict:
        return {
            "format_version": self.format_version,
            "timestamp": self.timestamp,
            "events": self.events,
            "stats": {
                "total_events": self.stats.total_events if self.stats else 0,
                "dropped_events": self.stats.dropped_events if self.stats else 0,
                "capacity": self.stats.capacity if self.stats else 0,
            },
        }
