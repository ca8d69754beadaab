"""In-process endpoint that records what it is sent."""

from typing import Any

from ..logging_config import get_logger
from .base import CloseCallback, next_endpoint_id

logger = get_logger(__name__)


class InMemoryEndpoint:
    """Endpoint kept entirely in memory (simulator windows, tests)."""

    def __init__(self, endpoint_id: int | None = None, fail_sends: bool = False):
        self._id = endpoint_id if endpoint_id is not None else next_endpoint_id()
        self._destroyed = False
        self._close_callbacks: list[CloseCallback] = []
        self.fail_sends = fail_sends
        self.sent: list[tuple[str, Any]] = []

    @property
    def id(self) -> int:
        return self._id

    def is_destroyed(self) -> bool:
        return self._destroyed

    def send(self, channel: str, payload: Any) -> None:
        if self._destroyed:
            raise ConnectionError(f"Endpoint {self._id} is destroyed")
        if self.fail_sends:
            raise ConnectionError(f"Send to endpoint {self._id} failed")
        self.sent.append((channel, payload))

    def on_closed(self, callback: CloseCallback) -> None:
        self._close_callbacks.append(callback)

    def close(self) -> None:
        """Destroy the endpoint and fire close callbacks once."""
        if self._destroyed:
            return
        self._destroyed = True
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Close callback failed for endpoint %s", self._id)

    def messages(self, channel: str) -> list[Any]:
        """Payloads sent on ``channel``, in order."""
        return [payload for sent_channel, payload in self.sent if sent_channel == channel]
