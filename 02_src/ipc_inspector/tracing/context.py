"""Trace identity, context propagation and payload envelopes."""

import contextvars
import inspect
import random
import string
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from ..models import TraceContext

TRACE_CONTEXT_KEY = "__ipcTrace"
TRACE_DATA_KEY = "__ipcData"

_BASE36 = string.digits + string.ascii_lowercase

_current_context: contextvars.ContextVar[TraceContext | None] = contextvars.ContextVar(
    "ipc_inspector_trace_context", default=None
)


def _random_base36(length: int) -> str:
    return "".join(random.choices(_BASE36, k=length))


def generate_id() -> str:
    """Time-prefixed, random-suffixed id. Collision-avoiding, not globally unique."""
    return f"{int(time.time() * 1000)}-{_random_base36(9)}"


def generate_span_id() -> str:
    return _random_base36(8)


def create_context(parent: TraceContext | None = None) -> TraceContext:
    """Create a root context, or a child of ``parent``."""
    if parent is not None:
        return TraceContext(
            trace_id=parent.trace_id,
            span_id=generate_span_id(),
            parent_span_id=parent.span_id,
        )

    trace_id = generate_id()
    return TraceContext(trace_id=trace_id, span_id=trace_id)


@dataclass
class UnwrappedPayload:
    """Result of unwrap_payload."""

    payload: Any
    trace: TraceContext | None = None


def is_trace_context(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    parent = value.get("parent_span_id")
    return (
        isinstance(value.get("trace_id"), str)
        and isinstance(value.get("span_id"), str)
        and (parent is None or isinstance(parent, str))
    )


def is_trace_envelope(value: Any) -> bool:
    """Check whether ``value`` is a payload wrapped by wrap_payload."""
    if not isinstance(value, dict):
        return False
    if TRACE_CONTEXT_KEY not in value or TRACE_DATA_KEY not in value:
        return False
    return is_trace_context(value[TRACE_CONTEXT_KEY])


def wrap_payload(payload: Any, context: TraceContext | None = None) -> Any:
    """Attach ``context`` to ``payload``. Returns ``payload`` itself without a context."""
    if context is None:
        return payload
    if is_trace_envelope(payload):
        return payload
    return {
        TRACE_CONTEXT_KEY: context.to_dict(),
        TRACE_DATA_KEY: payload,
    }


def unwrap_payload(value: Any) -> UnwrappedPayload:
    """Split an envelope into payload and context; plain values pass through."""
    if is_trace_envelope(value):
        return UnwrappedPayload(
            payload=value[TRACE_DATA_KEY],
            trace=TraceContext.from_dict(value[TRACE_CONTEXT_KEY]),
        )
    return UnwrappedPayload(payload=value)


def get_current_context() -> TraceContext | None:
    """Context of the current call chain, if any."""
    return _current_context.get()


def run_with_context(context: TraceContext | None, fn: Callable, *args, **kwargs):
    """
    Run ``fn`` with ``context`` as the current trace context.

    For coroutine functions the returned coroutine keeps the context for its
    whole awaited extent; tasks it spawns inherit it. The previous context is
    restored once the call completes.
    """
    if context is None:
        return fn(*args, **kwargs)

    if inspect.iscoroutinefunction(fn):
        return _run_async_with_context(context, fn, *args, **kwargs)

    ctx = contextvars.copy_context()
    return ctx.run(_call_with_context, context, fn, args, kwargs)


def _call_with_context(context: TraceContext, fn: Callable, args, kwargs):
    _current_context.set(context)
    result = fn(*args, **kwargs)
    if inspect.isawaitable(result):
        # Awaited later in the caller's context, so set it again there
        return _await_with_context(context, result)
    return result


async def _run_async_with_context(context: TraceContext, fn: Callable, *args, **kwargs):
    token = _current_context.set(context)
    try:
        return await fn(*args, **kwargs)
    finally:
        _current_context.reset(token)


async def _await_with_context(context: TraceContext, awaitable):
    token = _current_context.set(context)
    try:
        return await awaitable
    finally:
        _current_context.reset(token)


@contextmanager
def use_context(context: TraceContext | None) -> Iterator[TraceContext | None]:
    """Context-manager form of run_with_context."""
    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)
