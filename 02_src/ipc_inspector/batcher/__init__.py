"""EventBatcher module."""

from .event_batcher import BatchCallback, EventBatcher, IEventBatcher

__all__ = ["BatchCallback", "EventBatcher", "IEventBatcher"]
