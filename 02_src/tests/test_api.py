"""Tests for the HTTP and websocket API."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from ipc_inspector.api import create_fastapi_app, set_app
from ipc_inspector.api.routes import control
from ipc_inspector.app import Application
from ipc_inspector.config import InspectorOptions
from ipc_inspector.models import TraceKind, TraceStatus, contracts
from ipc_inspector.tracing import TracePort


@pytest.fixture
def application():
    """Application with its own trace port, not yet started."""
    app = Application(
        options=InspectorOptions(max_events=100, batching_enabled=False),
        trace_port=TracePort(),
    )
    set_app(app)
    control.set_sim_instance(None)
    yield app
    set_app(None)
    control.set_sim_instance(None)


@pytest.fixture
def client(application):
    """TestClient running the FastAPI lifespan."""
    with TestClient(create_fastapi_app()) as test_client:
        yield test_client


class TestObservabilityRoutes:
    """Tests for /api trace, metrics and export routes."""

    def test_trace_events(self, client, application, make_event):
        """Test recent fragments are returned oldest first."""
        for channel in ("a", "b", "c"):
            application.server.push(make_event(channel=channel))

        response = client.get("/api/trace-events", params={"limit": 2})

        assert response.status_code == 200
        assert [e["channel"] for e in response.json()] == ["b", "c"]

    def test_trace_events_rejects_bad_limit(self, client):
        """Test the limit is validated."""
        assert client.get("/api/trace-events", params={"limit": 0}).status_code == 422

    def test_traces(self, client, application, make_event):
        """Test grouped rows with filters and visibility."""
        application.server.push(make_event(channel="getUser", trace_id="t1", span_id="a", ts_end=1001.0))
        application.server.push(
            make_event(channel="save", trace_id="t2", span_id="b", status=TraceStatus.ERROR)
        )

        everything = client.get("/api/traces").json()
        filtered = client.get("/api/traces", params={"channel": "User"}).json()
        errors = client.get("/api/traces", params={"visibility": "errorsAndIncompleteOnly"}).json()

        assert everything["span_count"] == 2
        assert everything["rows"][0]["type"] == "trace"
        assert filtered["span_count"] == 1
        assert [r["trace_id"] for r in errors["rows"] if r["type"] == "trace"] == ["t2"]

    def test_metrics(self, client, application, make_event):
        """Test per-channel metrics."""
        application.server.push(make_event(channel="log", kind=TraceKind.EVENT))

        (row,) = client.get("/api/metrics").json()

        assert row["channel"] == "log"
        assert row["kind"] == "event"
        assert row["count"] == 1

    def test_export(self, client, application, make_event):
        """Test JSON and CSV export."""
        application.server.push(make_event(channel="x"))

        document = client.get("/api/export").json()
        csv_response = client.get("/api/export", params={"format": "csv"})

        assert document["format_version"] == "1.0"
        assert document["stats"]["total_events"] == 1
        assert csv_response.headers["content-type"].startswith("text/csv")
        assert csv_response.text.splitlines()[0].startswith("seq,id")


class TestInspectorRoutes:
    """Tests for /api/inspector."""

    def test_status(self, client):
        """Test status includes subscriber count."""
        status = client.get("/api/inspector/status").json()

        assert status["is_tracing"] is True
        assert status["buffer_capacity"] == 100
        assert status["subscriber_count"] == 0

    def test_command(self, client, application):
        """Test commands run against the server."""
        response = client.post("/api/inspector/command", json={"type": "setBufferSize", "size": 5})

        assert response.json() == {"success": True, "data": {"size": 5}, "error": None}
        assert application.server.get_status().buffer_capacity == 5

    def test_command_validation(self, client):
        """Test malformed commands are rejected by the request model."""
        assert client.post("/api/inspector/command", json={"type": "explode"}).status_code == 422
        assert (
            client.post("/api/inspector/command", json={"type": "setBufferSize", "size": 0}).status_code
            == 422
        )

    def test_router_stats(self, client):
        """Test router stats with nothing pending."""
        assert client.get("/api/inspector/router").json() == {"pending_requests": 0, "requests": []}


class TestControlRoutes:
    """Tests for /api/control."""

    def test_reset(self, client, application, make_event):
        """Test reset clears the buffer."""
        application.server.push(make_event())

        assert client.post("/api/control/reset").json() == {"status": "ok"}
        assert application.server.snapshot() == []

    def test_sim_not_configured(self, client):
        """Test sim routes report a missing simulator."""
        assert client.post("/api/control/sim/start").status_code == 404
        assert client.get("/api/control/sim/stats").status_code == 404


class TestWindowSocket:
    """Tests for the websocket window route."""

    def test_inspector_hello_gets_init(self, client, application, make_event):
        """Test an inspector window receives INIT after HELLO."""
        application.server.push(make_event(channel="before"))

        with client.websocket_connect("/ws/windows/inspector") as socket:
            socket.send_json({"channel": contracts.HELLO})
            message = socket.receive_json()

        assert message["channel"] == contracts.INIT
        assert [e["channel"] for e in message["payload"]["events"]] == ["before"]

    def test_window_traces_and_commands(self, client, application):
        """Test fragments sent by a window are stored and commands answered in order."""
        fragment = {
            "id": "ws-1",
            "kind": "event",
            "channel": "log",
            "direction": "renderer→main",
            "status": "ok",
            "ts_start": 1.0,
        }
        with client.websocket_connect("/ws/windows/main") as socket:
            socket.send_text("not json")
            socket.send_json({"payload": "no channel"})
            socket.send_json({"channel": contracts.TRACE, "payload": fragment})
            socket.send_json(
                {"channel": contracts.COMMAND, "payload": {"command": {"type": "resume"}, "request_id": 1}}
            )
            reply = socket.receive_json()

        assert reply["channel"] == contracts.COMMAND_RESPONSE
        assert reply["payload"]["request_id"] == 1
        (event,) = application.server.snapshot()
        assert event.id == "ws-1"
        assert event.source.role == "main"


class TestSimRoutes:
    """Tests for the simulator control routes."""

    @pytest.fixture
    def mock_sim(self):
        """Create a mock simulator."""
        sim = Mock()
        sim.start = AsyncMock(return_value="test-1")
        sim.stop = AsyncMock()
        sim.stats = {"running": True, "generated": 3}
        control.set_sim_instance(sim)
        return sim

    def test_sim_lifecycle(self, application, mock_sim):
        """Test the sim is attached on startup and driven through the routes."""
        with TestClient(create_fastapi_app()) as client:
            mock_sim.attach.assert_called_once_with(
                application.trace_port, application.router, application.registry
            )

            started = client.post(
                "/api/control/sim/start",
                json={"mode": "burst", "events_per_second": 10, "duration": 1.0},
            )
            stats = client.get("/api/control/sim/stats").json()
            stopped = client.post("/api/control/sim/stop")

        assert started.json() == {"status": "ok", "test_id": "test-1"}
        mock_sim.start.assert_awaited_once_with(
            mode="burst", events_per_second=10, duration=1.0, payload_size=256
        )
        assert stats == {"running": True, "generated": 3}
        assert stopped.json() == {"status": "ok"}

    def test_sim_start_validation(self, application, mock_sim):
        """Test sim settings are validated."""
        with TestClient(create_fastapi_app()) as client:
            response = client.post("/api/control/sim/start", json={"mode": "chaos"})

        assert response.status_code == 422
        mock_sim.start.assert_not_awaited()
