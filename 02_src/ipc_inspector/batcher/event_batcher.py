"""EventBatcher implementation: size/time windowed coalescing."""

import asyncio
from typing import Callable, Generic, Protocol, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

BatchCallback = Callable[[list[T]], None]


class IEventBatcher(Protocol[T]):
    """Coalesces items and delivers them in batches."""

    def add(self, item: T) -> None:
        """Queue an item; flush at max size or after max delay."""
        ...

    def flush(self) -> None:
        """Deliver pending items now."""
        ...

    def clear(self) -> None:
        """Drop pending items without delivering them."""
        ...


class EventBatcher(Generic[T]):
    """Batches events and flushes them on a size-or-delay trigger."""

    def __init__(
        self,
        max_batch_size: int,
        max_batch_delay: float,
        on_flush: BatchCallback,
    ):
        self._max_batch_size = max_batch_size
        self._max_batch_delay = max_batch_delay
        self._on_flush = on_flush
        self._batch: list[T] = []
        self._timer: asyncio.TimerHandle | None = None

    def add(self, item: T) -> None:
        """Add an item to the pending batch."""
        self._batch.append(item)

        if len(self._batch) >= self._max_batch_size:
            self.flush()
            return

        if self._timer is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No event loop to schedule on: deliver right away
                self.flush()
                return
            self._timer = loop.call_later(self._max_batch_delay, self._on_timer)

    def flush(self) -> None:
        """Cancel the timer and deliver the pending batch, if any."""
        self._cancel_timer()

        if not self._batch:
            return

        batch = list(self._batch)
        self._batch.clear()
        try:
            self._on_flush(batch)
        except Exception:
            logger.exception("Batch flush callback failed (%d events)", len(batch))

    def clear(self) -> None:
        """Cancel the timer and discard pending items."""
        self._cancel_timer()
        self._batch.clear()

    def pending_count(self) -> int:
        return len(self._batch)

    def _on_timer(self) -> None:
        self._timer = None
        self.flush()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
