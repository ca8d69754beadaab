"""RingBuffer module."""

from .ring_buffer import RingBuffer

__all__ = ["RingBuffer"]
