"""Tracing port: the process-wide sink that trace fragments are emitted into."""

from typing import Any, Callable, Protocol

from ..logging_config import get_logger
from ..models import PayloadMode, PayloadPreview, TraceEvent
from ..models.contracts import INSPECTOR_PREFIX, INSPECTOR_ROLE
from .payload import DEFAULT_MAX_PREVIEW_BYTES, create_preview

logger = get_logger(__name__)


TraceSink = Callable[[TraceEvent], None]


class ITracePort(Protocol):
    """Where instrumented call sites send their trace fragments."""

    @property
    def enabled(self) -> bool:
        """Whether a sink is attached."""
        ...

    def emit(self, event: TraceEvent) -> None:
        """Hand a fragment to the sink. Never raises."""
        ...

    def should_trace(self, channel: str, role: str | None = None) -> bool:
        """Whether calls on ``channel`` are traced."""
        ...

    def preview(self, value: Any) -> PayloadPreview:
        """Payload preview in the port's current mode."""
        ...


class TracePort:
    """Explicit tracing dependency. Disabled until a sink is attached."""

    def __init__(
        self,
        sink: TraceSink | None = None,
        payload_mode: PayloadMode = PayloadMode.REDACTED,
        max_preview_bytes: int = DEFAULT_MAX_PREVIEW_BYTES,
        reserved_prefix: str = INSPECTOR_PREFIX,
    ):
        self._sink = sink
        self.payload_mode = payload_mode
        self.max_preview_bytes = max_preview_bytes
        self.reserved_prefix = reserved_prefix

    @property
    def enabled(self) -> bool:
        return self._sink is not None

    def set_sink(self, sink: TraceSink | None) -> None:
        """Attach a sink, or detach with None."""
        self._sink = sink

    def emit(self, event: TraceEvent) -> None:
        """Deliver a fragment to the sink; sink errors are logged and ignored."""
        sink = self._sink
        if sink is None:
            return

        try:
            sink(event)
        except Exception:
            logger.exception("Trace sink error on channel %s", event.channel)

    def should_trace(self, channel: str, role: str | None = None) -> bool:
        if not self.enabled:
            return False
        # The inspector never traces its own traffic
        if channel.startswith(self.reserved_prefix):
            return False
        if role == INSPECTOR_ROLE:
            return False
        return True

    def preview(self, value: Any) -> PayloadPreview:
        return create_preview(value, self.payload_mode, self.max_preview_bytes)


_default_port = TracePort()


def get_trace_port() -> TracePort:
    """Process-wide port for call sites that are not handed one explicitly."""
    return _default_port


def reset_trace_port() -> TracePort:
    """Replace the process-wide port with a fresh, disabled one (for testing)."""
    global _default_port
    _default_port = TracePort()
    return _default_port
