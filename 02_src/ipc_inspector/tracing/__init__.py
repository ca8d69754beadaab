"""Tracing module: identity, propagation, payload previews and the tracing port."""

from .context import (
    UnwrappedPayload,
    create_context,
    generate_id,
    generate_span_id,
    get_current_context,
    is_trace_envelope,
    run_with_context,
    unwrap_payload,
    use_context,
    wrap_payload,
)
from .payload import create_preview, estimate_size, serialize_error, summarize
from .port import ITracePort, TracePort, TraceSink, get_trace_port, reset_trace_port
from .tracer import (
    StreamTracer,
    envelope,
    finish_span,
    now_ms,
    trace_broadcast,
    trace_event,
    trace_invoke,
)

__all__ = [
    # Context
    "UnwrappedPayload",
    "create_context",
    "generate_id",
    "generate_span_id",
    "get_current_context",
    "is_trace_envelope",
    "run_with_context",
    "unwrap_payload",
    "use_context",
    "wrap_payload",
    # Payload
    "create_preview",
    "estimate_size",
    "serialize_error",
    "summarize",
    # Port
    "ITracePort",
    "TracePort",
    "TraceSink",
    "get_trace_port",
    "reset_trace_port",
    # Call-site helpers
    "StreamTracer",
    "envelope",
    "finish_span",
    "now_ms",
    "trace_broadcast",
    "trace_event",
    "trace_invoke",
]
