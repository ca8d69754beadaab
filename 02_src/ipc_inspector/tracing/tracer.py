"""Call-site tracing helpers.

These are what instrumented message wrappers call at each lifecycle point of
a cross-process operation: they derive a context, build fragments and emit
them through a tracing port. Untraceable channels still run the call, they
just emit nothing.
"""

import asyncio
import time
from dataclasses import replace
from typing import Any, Awaitable, Callable

from ..models import (
    Direction,
    PayloadPreview,
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
from .context import create_context, generate_id, get_current_context, run_with_context, wrap_payload
from .payload import estimate_size, serialize_error
from .port import ITracePort, TracePort

Invoke = Callable[[str, Any], Awaitable[Any]]


def now_ms() -> float:
    return time.time() * 1000


def envelope(context: TraceContext, ts_start: float, ts_end: float | None = None) -> TraceEnvelope:
    """Trace envelope for a span with its timestamps."""
    return TraceEnvelope(
        trace_id=context.trace_id,
        span_id=context.span_id,
        parent_span_id=context.parent_span_id,
        ts_start=ts_start,
        ts_end=ts_end,
    )


def finish_span(event: TraceEvent, context: TraceContext, **changes) -> TraceEvent:
    ts_end = now_ms()
    return replace(
        event,
        ts_end=ts_end,
        duration_ms=ts_end - event.ts_start,
        trace=envelope(context, event.ts_start, ts_end),
        **changes,
    )


async def trace_invoke(
    port: TracePort,
    channel: str,
    request: Any,
    invoke: Invoke,
    parent: TraceContext | None = None,
    source: TraceSource | None = None,
    api_name: str | None = None,
    propagate: bool = False,
) -> Any:
    """
    Trace a request/response call.

    Emits a start fragment, then a success or error fragment for the same span.
    ``invoke`` runs under the span's context, so traced calls it makes become
    children. With ``propagate`` the request is sent wrapped with the context.
    """
    role = source.role if source else None
    if not port.should_trace(channel, role):
        return await invoke(channel, request)

    context = create_context(parent or get_current_context())
    ts_start = now_ms()
    start = TraceEvent(
        id=context.span_id,
        kind=TraceKind.INVOKE,
        channel=channel,
        direction=Direction.RENDERER_TO_MAIN,
        status=TraceStatus.OK,
        ts_start=ts_start,
        api_name=api_name,
        trace=envelope(context, ts_start),
        source=source,
        request=port.preview(request),
    )
    port.emit(start)

    outgoing = wrap_payload(request, context) if propagate else request
    try:
        response = await run_with_context(context, invoke, channel, outgoing)
    except asyncio.CancelledError:
        port.emit(finish_span(start, context, status=TraceStatus.CANCELLED))
        raise
    except Exception as e:
        port.emit(
            finish_span(start, context, status=TraceStatus.ERROR, error=serialize_error(e))
        )
        raise

    port.emit(finish_span(start, context, response=port.preview(response)))
    return response


def trace_event(
    port: TracePort,
    channel: str,
    payload: Any,
    parent: TraceContext | None = None,
    source: TraceSource | None = None,
) -> TraceContext | None:
    """Trace a fire-and-forget event. Returns the span's context when traced."""
    role = source.role if source else None
    if not port.should_trace(channel, role):
        return None

    context = create_context(parent or get_current_context())
    ts = now_ms()
    port.emit(
        TraceEvent(
            id=context.span_id,
            kind=TraceKind.EVENT,
            channel=channel,
            direction=Direction.RENDERER_TO_MAIN,
            status=TraceStatus.OK,
            ts_start=ts,
            ts_end=ts,
            duration_ms=0.0,
            trace=envelope(context, ts, ts),
            source=source,
            payload=port.preview(payload),
        )
    )
    return context


def trace_broadcast(
    port: TracePort,
    channel: str,
    payload: Any,
    parent: TraceContext | None = None,
    target: TraceTarget | None = None,
    broadcast_to_all: bool | None = None,
    excluded_roles: list[str] | None = None,
) -> TraceContext | None:
    """Trace a host-to-window broadcast. Returns the span's context when traced."""
    role = target.role if target else None
    if not port.should_trace(channel, role):
        return None

    context = create_context(parent or get_current_context())
    ts = now_ms()
    port.emit(
        TraceEvent(
            id=context.span_id,
            kind=TraceKind.BROADCAST,
            channel=channel,
            direction=Direction.MAIN_TO_RENDERER,
            status=TraceStatus.OK,
            ts_start=ts,
            ts_end=ts,
            duration_ms=0.0,
            trace=envelope(context, ts, ts),
            target=target,
            payload=port.preview(payload),
            broadcast_to_all=broadcast_to_all,
            excluded_roles=excluded_roles,
        )
    )
    return context


_STREAM_SHAPES = {
    TraceKind.STREAM_INVOKE: (StreamType.INVOKE, Direction.RENDERER_TO_MAIN),
    TraceKind.STREAM_UPLOAD: (StreamType.UPLOAD, Direction.RENDERER_TO_MAIN),
    TraceKind.STREAM_DOWNLOAD: (StreamType.DOWNLOAD, Direction.MAIN_TO_RENDERER),
}


class StreamTracer:
    """Traces one chunked transfer from start to its end reason."""

    def __init__(
        self,
        port: ITracePort,
        kind: TraceKind,
        channel: str,
        parent: TraceContext | None = None,
        source: TraceSource | None = None,
        target: TraceTarget | None = None,
        request: Any = None,
    ):
        if kind not in _STREAM_SHAPES:
            raise ValueError(f"Not a stream kind: {kind}")

        self._port = port
        self._kind = kind
        self._channel = channel
        self._parent = parent
        self._source = source
        self._target = target
        self._request = request
        self._traced = port.should_trace(channel, source.role if source else None)

        self.stream_id = generate_id()
        self.context: TraceContext | None = None
        self.chunk_count = 0
        self.total_bytes = 0
        self._first_chunk: PayloadPreview | None = None
        self._last_chunk: PayloadPreview | None = None
        self._start: TraceEvent | None = None
        self._ended = False

    def start(self) -> TraceContext | None:
        """Emit the start fragment."""
        if not self._traced or self._start is not None:
            return self.context

        self.context = create_context(self._parent or get_current_context())
        stream_type, direction = _STREAM_SHAPES[self._kind]
        ts_start = now_ms()
        self._start = TraceEvent(
            id=self.context.span_id,
            kind=self._kind,
            channel=self._channel,
            direction=direction,
            status=TraceStatus.OK,
            ts_start=ts_start,
            trace=envelope(self.context, ts_start),
            source=self._source,
            target=self._target,
            request=self._port.preview(self._request) if self._request is not None else None,
            stream_id=self.stream_id,
            stream_type=stream_type,
        )
        self._port.emit(self._start)
        return self.context

    def chunk(self, data: Any) -> None:
        """Count a transferred chunk."""
        if self._ended:
            return
        self.chunk_count += 1
        self.total_bytes += estimate_size(data)
        if not self._traced:
            return
        preview = self._port.preview(data)
        if self._first_chunk is None:
            self._first_chunk = preview
        self._last_chunk = preview

    def complete(self) -> None:
        self._end(StreamEndReason.COMPLETE, TraceStatus.OK)

    def fail(self, error: BaseException) -> None:
        self._end(StreamEndReason.ERROR, TraceStatus.ERROR, serialize_error(error))

    def cancel(self) -> None:
        self._end(StreamEndReason.CANCEL, TraceStatus.CANCELLED)

    def _end(self, reason: StreamEndReason, status: TraceStatus, error=None) -> None:
        if self._ended:
            return
        self._ended = True
        if self._start is None or self.context is None:
            return

        self._port.emit(
            finish_span(
                self._start,
                self.context,
                status=status,
                error=error,
                end_reason=reason,
                chunk_count=self.chunk_count,
                total_bytes=self.total_bytes,
                first_chunk=self._first_chunk,
                last_chunk=self._last_chunk,
            )
        )
