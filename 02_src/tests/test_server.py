"""Tests for InspectorServer."""

import asyncio
import csv
import io
import json

import pytest

from ipc_inspector.config import InspectorOptions
from ipc_inspector.endpoints import InMemoryEndpoint
from ipc_inspector.errors import ConfigurationError
from ipc_inspector.models import PayloadMode, contracts
from ipc_inspector.server import InspectorServer


class TestServerPush:
    """Tests for storing events."""

    def test_overflow_counts_drops(self, registry, make_event):
        """Test capacity 5 with seven pushes keeps events 3..7 and counts 2 drops."""
        server = InspectorServer(
            InspectorOptions(max_events=5, batching_enabled=False), registry=registry
        )
        events = [make_event(id=f"e{i}") for i in range(1, 8)]
        for event in events:
            server.push(event)

        assert [e.id for e in server.snapshot()] == ["e3", "e4", "e5", "e6", "e7"]
        assert server.dropped_count == 2
        status = server.get_status()
        assert status.event_count == 5
        assert status.dropped_count == 2

    def test_paused_push_is_ignored(self, server, make_event):
        """Test nothing is stored while paused."""
        server.pause()
        server.push(make_event())

        assert server.snapshot() == []

    def test_reserved_channel_is_ignored(self, server, make_event):
        """Test the inspector's own channels never enter the buffer."""
        server.push(make_event(channel="INSPECTOR:STATUS"))

        assert server.snapshot() == []

    def test_seq_assigned(self, server, make_event):
        """Test missing sequence numbers are filled in increasing order."""
        server.push(make_event())
        server.push(make_event())
        server.push(make_event(seq=99))

        assert [e.seq for e in server.snapshot()] == [1, 2, 99]

    def test_unbatched_push_broadcasts_event(self, server, viewer, make_event):
        """Test with batching off each push is sent on its own."""
        event = make_event(channel="hello")
        server.push(event)

        (payload,) = viewer.messages(contracts.EVENT)
        assert payload["event"]["channel"] == "hello"


class TestServerBatching:
    """Tests for batched delivery."""

    @pytest.mark.asyncio
    async def test_batch_delivered_after_delay(self, registry, make_event):
        """Test pushes are coalesced into one batch message."""
        server = InspectorServer(
            InspectorOptions(max_batch_size=50, max_batch_delay=0.01), registry=registry
        )
        viewer = InMemoryEndpoint()
        server.subscribe(viewer)

        for _ in range(3):
            server.push(make_event())
        assert viewer.messages(contracts.EVENT_BATCH) == []

        await asyncio.sleep(0.05)

        (batch,) = viewer.messages(contracts.EVENT_BATCH)
        assert len(batch["events"]) == 3

    @pytest.mark.asyncio
    async def test_batch_flushes_at_size(self, registry, make_event):
        """Test a full batch goes out without waiting."""
        server = InspectorServer(
            InspectorOptions(max_batch_size=2, max_batch_delay=10), registry=registry
        )
        viewer = InMemoryEndpoint()
        server.subscribe(viewer)

        server.push(make_event())
        server.push(make_event())

        assert len(viewer.messages(contracts.EVENT_BATCH)) == 1
        server.close()

    @pytest.mark.asyncio
    async def test_clear_drops_pending_batch(self, registry, make_event):
        """Test clearing also discards undelivered events."""
        server = InspectorServer(
            InspectorOptions(max_batch_size=50, max_batch_delay=0.01), registry=registry
        )
        viewer = InMemoryEndpoint()
        server.subscribe(viewer)

        server.push(make_event())
        server.clear()
        await asyncio.sleep(0.05)

        assert viewer.messages(contracts.EVENT_BATCH) == []


class TestServerSubscribers:
    """Tests for the subscriber set."""

    def test_subscribe_sends_nothing_until_init(self, server, make_event):
        """Test subscribing does not send a snapshot."""
        server.push(make_event())
        viewer = InMemoryEndpoint()
        server.subscribe(viewer)

        assert viewer.sent == []

        server.send_init(server.get_subscriber(viewer.id))
        (init,) = viewer.messages(contracts.INIT)
        assert len(init["events"]) == 1
        assert init["config"]["max_events"] == 100
        assert init["config"]["payload_mode"] == "redacted"
        assert "timestamp" in init

    def test_subscribe_is_idempotent(self, server):
        """Test subscribing twice keeps one entry."""
        viewer = InMemoryEndpoint()
        server.subscribe(viewer)
        server.subscribe(viewer)

        assert server.get_subscriber_count() == 1

    def test_destroyed_endpoint_is_ignored(self, server):
        """Test an already-closed endpoint is not subscribed."""
        viewer = InMemoryEndpoint()
        viewer.close()
        server.subscribe(viewer)

        assert server.get_subscriber_count() == 0

    def test_close_unsubscribes(self, server, viewer):
        """Test closing the endpoint removes the subscriber."""
        viewer.close()

        assert server.get_subscriber_count() == 0
        server.unsubscribe(viewer)
        assert server.get_subscriber_count() == 0

    def test_broadcast_isolates_failures(self, server, make_event):
        """Test one failing subscriber does not block the others and is removed."""
        bad = InMemoryEndpoint(fail_sends=True)
        good_a = InMemoryEndpoint()
        good_b = InMemoryEndpoint()
        for endpoint in (good_a, bad, good_b):
            server.subscribe(endpoint)

        server.push(make_event())

        assert len(good_a.messages(contracts.EVENT)) == 1
        assert len(good_b.messages(contracts.EVENT)) == 1
        assert server.get_subscriber(bad.id) is None
        assert server.get_subscriber_count() == 2

    def test_broadcast_skips_destroyed(self, server, make_event):
        """Test endpoints destroyed without notification are dropped lazily."""

        class SilentEndpoint(InMemoryEndpoint):
            def on_closed(self, callback):
                pass

        silent = SilentEndpoint()
        server.subscribe(silent)
        silent.close()

        server.push(make_event())

        assert silent.sent == []
        assert server.get_subscriber_count() == 0

    def test_send_init_failure_removes_subscriber(self, server, viewer):
        """Test a subscriber that cannot take its snapshot is removed."""
        subscriber = server.get_subscriber(viewer.id)
        viewer.fail_sends = True

        server.send_init(subscriber)

        assert server.get_subscriber_count() == 0


class TestServerControl:
    """Tests for control operations."""

    def test_pause_resume_broadcast_status(self, server, viewer):
        """Test state changes are announced."""
        server.pause()
        server.resume()

        statuses = viewer.messages(contracts.STATUS)
        assert [s["is_tracing"] for s in statuses] == [False, True]

    def test_clear(self, server, viewer, make_event):
        """Test clear empties the buffer and resets drops."""
        server.push(make_event())
        server.clear()

        assert server.snapshot() == []
        assert viewer.messages(contracts.STATUS)[-1]["event_count"] == 0

    def test_set_buffer_size_discards_history(self, server, make_event):
        """Test resizing reallocates the buffer."""
        for _ in range(5):
            server.push(make_event())
        server.set_buffer_size(3)

        status = server.get_status()
        assert status.buffer_capacity == 3
        assert status.event_count == 0
        assert status.dropped_count == 0

    def test_set_buffer_size_rejects_zero(self, server):
        """Test an invalid size raises."""
        with pytest.raises(ConfigurationError):
            server.set_buffer_size(0)

    def test_set_payload_mode_notifies_windows(self, server, registry, trace_port):
        """Test the mode reaches the trace port and every registered window."""
        window = InMemoryEndpoint()
        registry.register(window, "main")

        server.set_payload_mode(PayloadMode.FULL)

        assert trace_port.payload_mode == PayloadMode.FULL
        assert server.get_status().payload_mode == PayloadMode.FULL
        assert window.messages(contracts.PAYLOAD_MODE_CHANGED) == [{"mode": "full"}]

    def test_options_not_shared(self, options, make_event):
        """Test the server works on its own copy of the options."""
        server = InspectorServer(options)
        server.set_buffer_size(7)

        assert options.max_events == 100


class TestServerExport:
    """Tests for export."""

    def test_export_snapshot(self, server, make_event):
        """Test the export document is versioned and carries stats."""
        server.push(make_event(channel="a"))
        server.push(make_event(channel="b"))

        document = server.export_snapshot().to_dict()

        assert document["format_version"] == "1.0"
        assert [e["channel"] for e in document["events"]] == ["a", "b"]
        assert document["stats"] == {"total_events": 2, "dropped_events": 0, "capacity": 100}

    def test_export_json(self, server, make_event):
        """Test JSON export parses back."""
        server.push(make_event())

        assert json.loads(server.export_json())["stats"]["total_events"] == 1

    def test_export_csv(self, server, make_event):
        """Test CSV export has a header and one row per event."""
        server.push(make_event(channel="a", ts_end=1005.0))

        rows = list(csv.DictReader(io.StringIO(server.export_csv())))

        assert len(rows) == 1
        assert rows[0]["channel"] == "a"
        assert rows[0]["kind"] == "invoke"
        assert rows[0]["duration_ms"] == "5.0"
