"""InspectorServer: owns the event buffer and fans events out to viewers."""

import csv
import io
import json
import time
from dataclasses import dataclass, replace
from typing import Any, Protocol

from ..batcher import EventBatcher
from ..config import InspectorOptions
from ..endpoints import EndpointRegistry, IEndpoint
from ..errors import ConfigurationError
from ..logging_config import get_logger
from ..models import (
    ExportDocument,
    ExportStats,
    InspectorConfigPayload,
    InspectorStatus,
    PayloadMode,
    TraceEvent,
)
from ..models import contracts
from ..ring_buffer import RingBuffer
from ..tracing import TracePort

logger = get_logger(__name__)

CSV_COLUMNS = [
    "seq",
    "id",
    "kind",
    "channel",
    "direction",
    "status",
    "ts_start",
    "ts_end",
    "duration_ms",
    "trace_id",
    "span_id",
    "parent_span_id",
    "source_endpoint_id",
    "target_endpoint_id",
    "error",
]


@dataclass
class InspectorSubscriber:
    """A viewer endpoint receiving live events."""

    endpoint: IEndpoint
    subscribed_at: float


class IInspectorServer(Protocol):
    """Bounded event store with live fan-out to viewers."""

    def push(self, event: TraceEvent) -> None:
        """Store an event and queue it for delivery."""
        ...

    def subscribe(self, endpoint: IEndpoint) -> None:
        """Register a viewer endpoint."""
        ...

    def unsubscribe(self, endpoint: IEndpoint) -> None:
        """Remove a viewer endpoint."""
        ...

    def clear(self) -> None:
        ...

    def pause(self) -> None:
        ...

    def resume(self) -> None:
        ...

    def set_payload_mode(self, mode: PayloadMode) -> None:
        ...

    def set_buffer_size(self, size: int) -> None:
        ...

    def export_snapshot(self) -> ExportDocument:
        ...

    def export_csv(self) -> str:
        ...


class InspectorServer:
    """Keeps a ring buffer of trace events and broadcasts them to subscribers."""

    def __init__(
        self,
        options: InspectorOptions | None = None,
        registry: EndpointRegistry | None = None,
        trace_port: TracePort | None = None,
    ):
        self._options = replace(options or InspectorOptions()).validate()
        self._registry = registry
        self._trace_port = trace_port
        self._buffer: RingBuffer[TraceEvent] = RingBuffer(self._options.max_events)
        self._subscribers: dict[int, InspectorSubscriber] = {}
        self._paused = False
        self._dropped = 0
        self._seq = 0

        self._batcher: EventBatcher[TraceEvent] | None = None
        if self._options.batching_enabled:
            self._batcher = EventBatcher(
                max_batch_size=self._options.max_batch_size,
                max_batch_delay=self._options.max_batch_delay,
                on_flush=self._send_batch,
            )

    # Events

    def push(self, event: TraceEvent) -> None:
        """Store an event (counting a drop on overflow) and hand it to delivery."""
        if self._paused:
            return
        if event.channel.startswith(self._options.reserved_prefix):
            return

        if event.seq is None:
            self._seq += 1
            event = replace(event, seq=self._seq)

        if self._buffer.is_full():
            self._dropped += 1
        self._buffer.push(event)

        if self._batcher is not None:
            self._batcher.add(event)
        else:
            self.broadcast(contracts.EVENT, {"event": event.to_dict()})

    def snapshot(self) -> list[TraceEvent]:
        """All buffered events, oldest first."""
        return self._buffer.get_all()

    def recent(self, count: int) -> list[TraceEvent]:
        return self._buffer.get_recent(count)

    def _send_batch(self, events: list[TraceEvent]) -> None:
        self.broadcast(
            contracts.EVENT_BATCH,
            {"events": [event.to_dict() for event in events]},
        )

    # Control operations

    def clear(self) -> None:
        """Drop all buffered and pending events."""
        self._buffer.clear()
        self._dropped = 0
        if self._batcher is not None:
            self._batcher.clear()
        logger.info("Inspector buffer cleared")
        self._broadcast_status()

    def pause(self) -> None:
        self._paused = True
        logger.info("Inspector paused")
        self._broadcast_status()

    def resume(self) -> None:
        self._paused = False
        logger.info("Inspector resumed")
        self._broadcast_status()

    def set_payload_mode(self, mode: PayloadMode) -> None:
        """Change the payload mode and tell every window about it."""
        mode = PayloadMode(mode)
        self._options.payload_mode = mode
        if self._trace_port is not None:
            self._trace_port.payload_mode = mode
        logger.info("Payload mode set to %s", mode.value)
        self._broadcast_status()

        if self._registry is None:
            return
        for meta in self._registry.get_all():
            try:
                meta.endpoint.send(contracts.PAYLOAD_MODE_CHANGED, {"mode": mode.value})
            except Exception as e:
                logger.debug("Payload mode notification to %s failed: %s", meta.id, e)

    def set_buffer_size(self, size: int) -> None:
        """Reallocate the buffer. History is discarded."""
        if size < 1:
            raise ConfigurationError(f"Buffer size must be greater than 0, got {size}")

        self._options.max_events = size
        self._buffer = RingBuffer(size)
        self._dropped = 0
        logger.info("Inspector buffer resized to %d, history discarded", size)
        self._broadcast_status()

    def close(self) -> None:
        """Deliver any pending batch."""
        if self._batcher is not None:
            self._batcher.flush()

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def get_status(self) -> InspectorStatus:
        return InspectorStatus(
            is_tracing=not self._paused,
            event_count=self._buffer.size(),
            buffer_capacity=self._buffer.capacity(),
            dropped_count=self._dropped,
            payload_mode=self._options.payload_mode,
        )

    def get_options(self) -> InspectorOptions:
        return replace(self._options)

    # Subscribers

    def subscribe(self, endpoint: IEndpoint) -> None:
        """
        Register a viewer. Nothing is sent until the viewer says hello,
        so a window still being built does not miss its first snapshot.
        """
        if endpoint.is_destroyed():
            return
        if endpoint.id in self._subscribers:
            return

        self._subscribers[endpoint.id] = InspectorSubscriber(
            endpoint=endpoint, subscribed_at=time.time() * 1000
        )
        endpoint.on_closed(lambda: self.unsubscribe(endpoint))
        logger.info("Inspector subscriber %s added", endpoint.id)

    def unsubscribe(self, endpoint: IEndpoint) -> None:
        if self._subscribers.pop(endpoint.id, None) is not None:
            logger.info("Inspector subscriber %s removed", endpoint.id)

    def get_subscriber(self, endpoint_id: int) -> InspectorSubscriber | None:
        return self._subscribers.get(endpoint_id)

    def get_subscriber_count(self) -> int:
        return len(self._subscribers)

    def send_init(self, subscriber: InspectorSubscriber) -> None:
        """Send the full buffer plus configuration to one subscriber."""
        endpoint = subscriber.endpoint
        if endpoint.is_destroyed():
            self._subscribers.pop(endpoint.id, None)
            return

        config = InspectorConfigPayload(
            enabled=self._options.enabled,
            max_events=self._buffer.capacity(),
            payload_mode=self._options.payload_mode,
            max_payload_preview_bytes=self._options.max_payload_preview_bytes,
        )
        try:
            endpoint.send(
                contracts.INIT,
                {
                    "events": [event.to_dict() for event in self.snapshot()],
                    "config": config.to_dict(),
                    "status": self.get_status().to_dict(),
                    "timestamp": time.time() * 1000,
                },
            )
        except Exception as e:
            logger.warning("Failed to send init to %s: %s", endpoint.id, e)
            self._subscribers.pop(endpoint.id, None)

    def broadcast(self, channel: str, payload: Any) -> None:
        """Send to every subscriber; failed or destroyed ones are removed afterwards."""
        to_remove: list[int] = []

        for endpoint_id, subscriber in list(self._subscribers.items()):
            endpoint = subscriber.endpoint
            if endpoint.is_destroyed():
                to_remove.append(endpoint_id)
                continue
            try:
                endpoint.send(channel, payload)
            except Exception as e:
                logger.warning("Failed to broadcast %s to %s: %s", channel, endpoint_id, e)
                to_remove.append(endpoint_id)

        for endpoint_id in to_remove:
            self._subscribers.pop(endpoint_id, None)

    def _broadcast_status(self) -> None:
        self.broadcast(contracts.STATUS, self.get_status().to_dict())

    # Export

    def export_snapshot(self) -> ExportDocument:
        """Buffer contents plus stats in a versioned document."""
        return ExportDocument(
            timestamp=time.time() * 1000,
            events=[event.to_dict() for event in self.snapshot()],
            stats=ExportStats(
                total_events=self._buffer.size(),
                dropped_events=self._dropped,
                capacity=self._buffer.capacity(),
            ),
        )

    def export_json(self) -> str:
        return json.dumps(self.export_snapshot().to_dict(), indent=2, default=str)

    def export_csv(self) -> str:
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        for event in self.snapshot():
            writer.writerow(
                {
                    "seq": event.seq,
                    "id": event.id,
                    "kind": event.kind.value,
                    "channel": event.channel,
                    "direction": event.direction.value,
                    "status": event.status.value,
                    "ts_start": event.ts_start,
                    "ts_end": event.ts_end,
                    "duration_ms": event.duration_ms,
                    "trace_id": event.trace_id,
                    "span_id": event.span_id,
                    "parent_span_id": event.parent_span_id,
                    "source_endpoint_id": event.source.endpoint_id if event.source else None,
                    "target_endpoint_id": event.target.endpoint_id if event.target else None,
                    "error": event.error.message if event.error else None,
                }
            )
        return output.getvalue()
