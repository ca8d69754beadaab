"""Pytest configuration and fixtures."""

import itertools
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ipc_inspector.config import InspectorOptions  # noqa: E402
from ipc_inspector.models import (  # noqa: E402
    Direction,
    TraceEnvelope,
    TraceEvent,
    TraceKind,
    TraceStatus,
)

_event_ids = itertools.count(1)


@pytest.fixture
def options():
    """Options with batching off so pushes are delivered synchronously."""
    return InspectorOptions(max_events=100, batching_enabled=False)


@pytest.fixture
def registry():
    """Create an empty endpoint registry."""
    from ipc_inspector.endpoints import EndpointRegistry

    return EndpointRegistry()


@pytest.fixture
def trace_port():
    """Create a detached trace port."""
    from ipc_inspector.tracing import TracePort

    return TracePort()


@pytest.fixture
def collected(trace_port):
    """Attach a list sink to the trace port and return the list."""
    events: list[TraceEvent] = []
    trace_port.set_sink(events.append)
    return events


@pytest.fixture
def server(options, registry, trace_port):
    """Create InspectorServer without batching."""
    from ipc_inspector.server import InspectorServer

    return InspectorServer(options=options, registry=registry, trace_port=trace_port)


@pytest.fixture
def viewer(server):
    """An inspector endpoint subscribed to the server."""
    from ipc_inspector.endpoints import InMemoryEndpoint

    endpoint = InMemoryEndpoint()
    server.subscribe(endpoint)
    return endpoint


@pytest_asyncio.fixture
async def application(trace_port):
    """Started application with batching off."""
    from ipc_inspector.app import Application

    app = Application(
        options=InspectorOptions(max_events=100, batching_enabled=False, router_timeout=1.0),
        trace_port=trace_port,
    )
    await app.start()
    yield app
    await app.stop()


@pytest.fixture
def make_event():
    """Factory for trace fragments."""

    def _make(
        channel: str = "ping",
        kind: TraceKind = TraceKind.INVOKE,
        status: TraceStatus = TraceStatus.OK,
        ts_start: float = 1000.0,
        ts_end: float | None = None,
        trace_id: str | None = None,
        span_id: str | None = None,
        parent_span_id: str | None = None,
        **fields,
    ) -> TraceEvent:
        event_id = fields.pop("id", None) or f"evt-{next(_event_ids)}"
        trace = None
        if trace_id is not None:
            trace = TraceEnvelope(
                trace_id=trace_id,
                span_id=span_id or event_id,
                parent_span_id=parent_span_id,
                ts_start=ts_start,
                ts_end=ts_end,
            )
        return TraceEvent(
            id=event_id,
            kind=kind,
            channel=channel,
            direction=fields.pop("direction", Direction.RENDERER_TO_MAIN),
            status=status,
            ts_start=ts_start,
            ts_end=ts_end,
            duration_ms=ts_end - ts_start if ts_end is not None else None,
            trace=trace,
            **fields,
        )

    return _make
