"""Core data models for the IPC inspector."""

from .contracts import (
    CommandResponse,
    ExportDocument,
    ExportStats,
    InspectorConfigPayload,
    InspectorStatus,
    handler_channel,
    is_inspector_channel,
)
from .tracing import (
    STREAM_KINDS,
    Direction,
    PayloadMode,
    PayloadPreview,
    SerializedError,
    StreamEndReason,
    StreamType,
    TraceContext,
    TraceEnvelope,
    TraceEvent,
    TraceKind,
    TraceSource,
    TraceStatus,
    TraceTarget,
)

__all__ = [
    # Tracing
    "STREAM_KINDS",
    "Direction",
    "PayloadMode",
    "PayloadPreview",
    "SerializedError",
    "StreamEndReason",
    "StreamType",
    "TraceContext",
    "TraceEnvelope",
    "TraceEvent",
    "TraceKind",
    "TraceSource",
    "TraceStatus",
    "TraceTarget",
    # Contracts
    "CommandResponse",
    "ExportDocument",
    "ExportStats",
    "InspectorConfigPayload",
    "InspectorStatus",
    "handler_channel",
    "is_inspector_channel",
]
