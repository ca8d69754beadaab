"""Tests for trace identity and context propagation."""

import asyncio

import pytest

from ipc_inspector.models import TraceContext
from ipc_inspector.tracing import (
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
from ipc_inspector.tracing.context import TRACE_CONTEXT_KEY, TRACE_DATA_KEY


class TestIds:
    """Tests for id generation."""

    def test_generate_id_shape(self):
        """Test ids are time-prefixed with a random suffix."""
        prefix, suffix = generate_id().split("-")

        assert prefix.isdigit()
        assert len(suffix) == 9

    def test_ids_differ(self):
        """Test consecutive ids do not collide."""
        assert len({generate_id() for _ in range(200)}) == 200
        assert len(generate_span_id()) == 8


class TestCreateContext:
    """Tests for root and child contexts."""

    def test_root_context(self):
        """Test a root context has span_id == trace_id and no parent."""
        root = create_context()

        assert root.span_id == root.trace_id
        assert root.parent_span_id is None

    def test_child_context(self):
        """Test a child keeps the trace id and points at its parent."""
        root = create_context()
        child = create_context(root)

        assert child.trace_id == root.trace_id
        assert child.span_id != root.span_id
        assert child.parent_span_id == root.span_id


class TestWrapPayload:
    """Tests for wrap/unwrap."""

    def test_wrap_without_context_is_identity(self):
        """Test payload shape is untouched when there is no context."""
        payload = {"a": 1}

        assert wrap_payload(payload) is payload
        assert unwrap_payload(payload).payload is payload
        assert unwrap_payload(payload).trace is None

    def test_roundtrip(self):
        """Test the context travels alongside the payload."""
        context = create_context(create_context())
        wrapped = wrap_payload([1, 2], context)

        assert is_trace_envelope(wrapped)
        assert wrapped[TRACE_DATA_KEY] == [1, 2]
        unwrapped = unwrap_payload(wrapped)
        assert unwrapped.payload == [1, 2]
        assert unwrapped.trace == context

    def test_lookalike_dict_is_not_envelope(self):
        """Test a dict with the keys but a bad context passes through."""
        value = {TRACE_CONTEXT_KEY: {"trace_id": 5}, TRACE_DATA_KEY: 1}

        assert not is_trace_envelope(value)
        assert unwrap_payload(value).payload is value

    def test_already_wrapped_is_not_rewrapped(self):
        """Test wrapping an envelope again leaves it as is."""
        wrapped = wrap_payload("x", create_context())

        assert wrap_payload(wrapped, create_context()) is wrapped

    def test_context_dict_omits_missing_parent(self):
        """Test a root context serializes without a parent key."""
        root = create_context()

        assert root.to_dict() == {"trace_id": root.trace_id, "span_id": root.span_id}
        assert TraceContext.from_dict(root.to_dict()) == root


class TestAmbientContext:
    """Tests for run_with_context and use_context."""

    def test_no_context_by_default(self):
        """Test there is no current context outside a traced call."""
        assert get_current_context() is None

    def test_sync_function(self):
        """Test a sync function sees the context, and it is restored after."""
        context = create_context()

        seen = run_with_context(context, get_current_context)

        assert seen == context
        assert get_current_context() is None

    def test_none_context_just_calls(self):
        """Test a None context runs the function unchanged."""
        assert run_with_context(None, lambda x: x * 2, 21) == 42

    @pytest.mark.asyncio
    async def test_async_function_across_awaits(self):
        """Test the context survives suspension points."""
        context = create_context()

        async def work():
            await asyncio.sleep(0)
            first = get_current_context()
            await asyncio.sleep(0)
            return first, get_current_context()

        first, second = await run_with_context(context, work)

        assert first == context
        assert second == context
        assert get_current_context() is None

    @pytest.mark.asyncio
    async def test_concurrent_calls_do_not_leak(self):
        """Test two concurrent calls keep their own contexts."""
        a = create_context()
        b = create_context()

        async def work():
            await asyncio.sleep(0.01)
            return get_current_context()

        seen_a, seen_b = await asyncio.gather(
            run_with_context(a, work), run_with_context(b, work)
        )

        assert seen_a == a
        assert seen_b == b

    @pytest.mark.asyncio
    async def test_spawned_task_inherits(self):
        """Test tasks created inside the call inherit the context."""
        context = create_context()

        async def work():
            return await asyncio.create_task(_current())

        async def _current():
            return get_current_context()

        assert await run_with_context(context, work) == context

    def test_use_context_restores(self):
        """Test the context manager restores the previous context."""
        outer = create_context()
        inner = create_context(outer)

        with use_context(outer):
            with use_context(inner):
                assert get_current_context() == inner
            assert get_current_context() == outer
        assert get_current_context() is None
