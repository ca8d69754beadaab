"""InvokeRouter: request/response calls between windows, mediated by the host."""

import asyncio
from dataclasses import dataclass
from typing import Any

from ..endpoints import EndpointRegistry
from ..errors import DestroyedEndpointError, RemoteInvokeError, RoutingError, RoutingTimeoutError
from ..logging_config import get_logger
from ..models import (
    Direction,
    SerializedError,
    TraceContext,
    TraceEvent,
    TraceKind,
    TraceSource,
    TraceStatus,
    TraceTarget,
    handler_channel,
)
from ..tracing import (
    TracePort,
    create_context,
    envelope,
    finish_span,
    generate_id,
    get_current_context,
    now_ms,
    wrap_payload,
)

logger = get_logger(__name__)


@dataclass
class PendingInvocation:
    """A routed call waiting for its response."""

    correlation_id: str
    future: asyncio.Future
    timer: asyncio.TimerHandle
    source_endpoint_id: int
    channel: str
    target_role: str
    ts_start: float
    context: TraceContext | None = None
    span: TraceEvent | None = None


class InvokeRouter:
    """Routes invoke calls from one window to a handler in another."""

    def __init__(
        self,
        registry: EndpointRegistry,
        trace_port: TracePort | None = None,
        default_timeout: float = 5.0,
    ):
        self._registry = registry
        self._trace_port = trace_port
        self._default_timeout = default_timeout
        self._pending: dict[str, PendingInvocation] = {}

    def route(
        self,
        source_endpoint_id: int,
        target_role: str,
        channel: str,
        request: Any,
        timeout: float | None = None,
        trace: TraceContext | None = None,
    ) -> asyncio.Future:
        """
        Forward a request to the first endpoint registered under ``target_role``.

        Returns a future settled by the matching response or the timeout.

        Raises:
            RoutingError: unknown source, no endpoint with the role, or the target is gone
        """
        source = self._registry.get_by_id(source_endpoint_id)
        if source is None:
            raise RoutingError(f"Source endpoint {source_endpoint_id} not found")

        targets = self._registry.get_by_role(target_role)
        if not targets:
            raise RoutingError(f"No endpoint with role '{target_role}' found")

        target = targets[0]
        if target.endpoint.is_destroyed():
            raise DestroyedEndpointError(f"Target endpoint '{target_role}' is destroyed")

        loop = asyncio.get_running_loop()
        timeout = self._default_timeout if timeout is None else timeout
        correlation_id = f"rr-{generate_id()}"
        ts_start = now_ms()

        context = None
        span = None
        parent = trace or get_current_context()
        if parent is not None and self._traces(channel, source.role):
            context = create_context(parent)
            span = TraceEvent(
                id=context.span_id,
                kind=TraceKind.INVOKE,
                channel=channel,
                direction=Direction.RENDERER_TO_RENDERER,
                status=TraceStatus.OK,
                ts_start=ts_start,
                trace=envelope(context, ts_start),
                source=TraceSource(endpoint_id=source.id, role=source.role),
                target=TraceTarget(endpoint_id=target.id, role=target.role),
                request=self._trace_port.preview(request),
            )
            self._trace_port.emit(span)

        future = loop.create_future()
        pending = PendingInvocation(
            correlation_id=correlation_id,
            future=future,
            timer=loop.call_later(timeout, self._on_timeout, correlation_id, timeout),
            source_endpoint_id=source.id,
            channel=channel,
            target_role=target_role,
            ts_start=ts_start,
            context=context,
            span=span,
        )
        self._pending[correlation_id] = pending
        future.add_done_callback(lambda _: self._on_caller_done(correlation_id))

        try:
            target.endpoint.send(
                handler_channel(channel),
                {
                    "correlation_id": correlation_id,
                    "request": wrap_payload(request, context) if context else request,
                    "source_endpoint_id": source.id,
                    "source_role": source.role,
                },
            )
        except Exception as e:
            self._discard(pending)
            error = DestroyedEndpointError(
                f"Failed to deliver '{channel}' to endpoint '{target_role}': {e}"
            )
            self._emit_end(pending, TraceStatus.ERROR, error=error)
            future.cancel()
            raise error from e

        logger.debug("Routed %s to %s as %s", channel, target_role, correlation_id)
        return future

    def handle_response(self, envelope_data: dict) -> None:
        """Settle the pending call named by ``correlation_id``. Unknown ids are ignored."""
        correlation_id = envelope_data.get("correlation_id")
        pending = self._pending.get(correlation_id) if isinstance(correlation_id, str) else None
        if pending is None:
            logger.debug("Ignoring late or unknown response %s", correlation_id)
            return

        error = envelope_data.get("error")
        remote = _to_remote_error(error) if error else None
        self._discard(pending)
        if remote is not None:
            self._emit_end(pending, TraceStatus.ERROR, error=remote)
            if not pending.future.done():
                pending.future.set_exception(remote)
            return

        response = envelope_data.get("response")
        self._emit_end(pending, TraceStatus.OK, response=response)
        if not pending.future.done():
            pending.future.set_result(response)

    def cleanup(self) -> None:
        """Fail every pending call, e.g. on shutdown."""
        pending_calls = list(self._pending.values())
        self._pending.clear()
        for pending in pending_calls:
            pending.timer.cancel()
            self._emit_end(pending, TraceStatus.CANCELLED)
            if not pending.future.done():
                pending.future.set_exception(RoutingError("Router cleanup: request cancelled"))
        if pending_calls:
            logger.info("Router cleanup cancelled %d pending calls", len(pending_calls))

    def get_stats(self) -> dict:
        now = now_ms()
        return {
            "pending_requests": len(self._pending),
            "requests": [
                {
                    "channel": pending.channel,
                    "target_role": pending.target_role,
                    "waiting_ms": now - pending.ts_start,
                }
                for pending in self._pending.values()
            ],
        }

    def _on_timeout(self, correlation_id: str, timeout: float) -> None:
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return

        error = RoutingTimeoutError(pending.channel, timeout)
        logger.warning(
            "Routed call %s timed out after %.1fs", correlation_id, timeout
        )
        self._emit_end(pending, TraceStatus.TIMEOUT, error=error)
        if not pending.future.done():
            pending.future.set_exception(error)

    def _on_caller_done(self, correlation_id: str) -> None:
        # Only still pending when the caller cancelled the future
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return
        pending.timer.cancel()
        self._emit_end(pending, TraceStatus.CANCELLED)

    def _discard(self, pending: PendingInvocation) -> None:
        pending.timer.cancel()
        self._pending.pop(pending.correlation_id, None)

    def _traces(self, channel: str, role: str | None) -> bool:
        return self._trace_port is not None and self._trace_port.should_trace(channel, role)

    def _emit_end(
        self,
        pending: PendingInvocation,
        status: TraceStatus,
        response: Any = None,
        error: BaseException | None = None,
    ) -> None:
        if pending.span is None or pending.context is None or self._trace_port is None:
            return

        changes: dict[str, Any] = {"status": status}
        if status == TraceStatus.OK:
            changes["response"] = self._trace_port.preview(response)
        if error is not None:
            changes["error"] = _to_serialized(error)
        self._trace_port.emit(finish_span(pending.span, pending.context, **changes))


def _to_serialized(error: BaseException) -> SerializedError:
    if isinstance(error, RemoteInvokeError):
        return SerializedError(name=error.name, message=str(error), stack=error.remote_stack)
    return SerializedError(name=type(error).__name__, message=str(error))


def _to_remote_error(error: Any) -> RemoteInvokeError:
    # Windows may reply with a bare string instead of a serialized error
    if not isinstance(error, dict):
        return RemoteInvokeError(str(error))
    return RemoteInvokeError(
        str(error.get("message") or "Remote handler failed"),
        name=str(error.get("name") or "Error"),
        remote_stack=error.get("stack"),
    )
