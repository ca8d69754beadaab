"""Tracing and observability data models."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class TraceKind(str, Enum):
    """Type of traced IPC operation."""

    INVOKE = "invoke"
    EVENT = "event"
    BROADCAST = "broadcast"
    STREAM_INVOKE = "streamInvoke"
    STREAM_UPLOAD = "streamUpload"
    STREAM_DOWNLOAD = "streamDownload"


STREAM_KINDS = (
    TraceKind.STREAM_INVOKE,
    TraceKind.STREAM_UPLOAD,
    TraceKind.STREAM_DOWNLOAD,
)


class TraceStatus(str, Enum):
    """Status of a traced operation."""

    OK = "ok"
    ERROR = "error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class Direction(str, Enum):
    """Direction of communication."""

    RENDERER_TO_MAIN = "renderer→main"
    MAIN_TO_RENDERER = "main→renderer"
    RENDERER_TO_RENDERER = "renderer→renderer"


class PayloadMode(str, Enum):
    """How much of a payload is captured in a trace."""

    NONE = "none"
    REDACTED = "redacted"
    FULL = "full"


class StreamType(str, Enum):
    """Stream operation type."""

    INVOKE = "invoke"
    UPLOAD = "upload"
    DOWNLOAD = "download"


class StreamEndReason(str, Enum):
    """Why a stream ended."""

    COMPLETE = "complete"
    ERROR = "error"
    CANCEL = "cancel"


@dataclass(frozen=True)
class TraceContext:
    """Causal identity threaded across process boundaries."""

    trace_id: str
    span_id: str
    parent_span_id: str | None = None

    def to_dict(self) -> dict:
        data = {"trace_id": self.trace_id, "span_id": self.span_id}
        if self.parent_span_id is not None:
            data["parent_span_id"] = self.parent_span_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TraceContext":
        return cls(
            trace_id=data["trace_id"],
            span_id=data["span_id"],
            parent_span_id=data.get("parent_span_id"),
        )


@dataclass
class TraceEnvelope:
    """A trace context plus the span's timestamps."""

    trace_id: str
    span_id: str
    ts_start: float
    parent_span_id: str | None = None
    ts_end: float | None = None

    @property
    def context(self) -> TraceContext:
        return TraceContext(self.trace_id, self.span_id, self.parent_span_id)


@dataclass
class TraceSource:
    """Sender of a traced message."""

    endpoint_id: int | None = None
    window_id: int | None = None
    role: str | None = None
    url: str | None = None
    title: str | None = None


@dataclass
class TraceTarget:
    """Receiver of a traced message."""

    endpoint_id: int | None = None
    window_id: int | None = None
    role: str | None = None


@dataclass
class PayloadPreview:
    """Preview of payload data."""

    mode: PayloadMode
    bytes: int | None = None
    summary: str | None = None
    data: Any = None
    truncated: bool = False


@dataclass
class SerializedError:
    """A thrown value normalized for transport."""

    name: str
    message: str
    stack: str | None = None
    code: str | None = None


@dataclass
class TraceEvent:
    """One observed lifecycle point (fragment) of one cross-process operation."""

    id: str
    kind: TraceKind
    channel: str
    direction: Direction
    status: TraceStatus
    ts_start: float
    ts_end: float | None = None
    duration_ms: float | None = None
    seq: int | None = None
    api_name: str | None = None
    trace: TraceEnvelope | None = None
    source: TraceSource | None = None
    target: TraceTarget | None = None

    # invoke
    request: PayloadPreview | None = None
    response: PayloadPreview | None = None
    error: SerializedError | None = None

    # event / broadcast
    payload: PayloadPreview | None = None
    broadcast_to_all: bool | None = None
    excluded_roles: list[str] | None = None

    # streams
    stream_id: str | None = None
    stream_type: StreamType | None = None
    chunk_count: int = 0
    total_bytes: int = 0
    first_chunk: PayloadPreview | None = None
    last_chunk: PayloadPreview | None = None
    end_reason: StreamEndReason | None = None

    # Key used for span aggregation; events without an envelope are singletons
    @property
    def trace_id(self) -> str:
        return self.trace.trace_id if self.trace else self.id

    @property
    def span_id(self) -> str:
        return self.trace.span_id if self.trace else self.id

    @property
    def parent_span_id(self) -> str | None:
        return self.trace.parent_span_id if self.trace else None

    def to_dict(self) -> dict:
        """Convert to the JSON wire form, omitting absent fields."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            data[f.name] = _to_wire(value)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TraceEvent":
        """Build from the wire form. Missing or unknown values get defaults."""
        ts_start = _as_float(data.get("ts_start")) or 0.0
        return cls(
            id=str(data.get("id") or ""),
            kind=_as_enum(TraceKind, data.get("kind"), TraceKind.EVENT),
            channel=str(data.get("channel") or ""),
            direction=_as_enum(
                Direction, data.get("direction"), Direction.RENDERER_TO_MAIN
            ),
            status=_as_enum(TraceStatus, data.get("status"), TraceStatus.OK),
            ts_start=ts_start,
            ts_end=_as_float(data.get("ts_end")),
            duration_ms=_as_float(data.get("duration_ms")),
            seq=data.get("seq"),
            api_name=data.get("api_name"),
            trace=_envelope_from(data.get("trace")),
            source=_record_from(TraceSource, data.get("source")),
            target=_record_from(TraceTarget, data.get("target")),
            request=_preview_from(data.get("request")),
            response=_preview_from(data.get("response")),
            error=_error_from(data.get("error")),
            payload=_preview_from(data.get("payload")),
            broadcast_to_all=data.get("broadcast_to_all"),
            excluded_roles=data.get("excluded_roles"),
            stream_id=data.get("stream_id"),
            stream_type=_as_enum(StreamType, data.get("stream_type"), None),
            chunk_count=int(data.get("chunk_count") or 0),
            total_bytes=int(data.get("total_bytes") or 0),
            first_chunk=_preview_from(data.get("first_chunk")),
            last_chunk=_preview_from(data.get("last_chunk")),
            end_reason=_as_enum(StreamEndReason, data.get("end_reason"), None),
        )


def _to_wire(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (TraceEnvelope, TraceSource, TraceTarget, PayloadPreview, SerializedError)):
        return {
            f.name: _to_wire(getattr(value, f.name))
            for f in fields(value)
            if getattr(value, f.name) is not None
        }
    if isinstance(value, list):
        return [_to_wire(v) for v in value]
    return value


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_enum(enum_cls, value, default):
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _envelope_from(data: Any) -> TraceEnvelope | None:
    if not isinstance(data, dict):
        return None
    trace_id = data.get("trace_id")
    span_id = data.get("span_id")
    if not isinstance(trace_id, str) or not isinstance(span_id, str):
        return None
    return TraceEnvelope(
        trace_id=trace_id,
        span_id=span_id,
        parent_span_id=data.get("parent_span_id"),
        ts_start=_as_float(data.get("ts_start")) or 0.0,
        ts_end=_as_float(data.get("ts_end")),
    )


def _record_from(cls, data: Any):
    if not isinstance(data, dict):
        return None
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


def _preview_from(data: Any) -> PayloadPreview | None:
    if not isinstance(data, dict):
        return None
    return PayloadPreview(
        mode=_as_enum(PayloadMode, data.get("mode"), PayloadMode.REDACTED),
        bytes=data.get("bytes"),
        summary=data.get("summary"),
        data=data.get("data"),
        truncated=bool(data.get("truncated", False)),
    )


def _error_from(data: Any) -> SerializedError | None:
    if not isinstance(data, dict):
        return None
    return SerializedError(
        name=str(data.get("name") or "Error"),
        message=str(data.get("message") or ""),
        stack=data.get("stack"),
        code=data.get("code"),
    )
