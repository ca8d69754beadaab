"""Endpoints module."""

from .base import CloseCallback, IEndpoint, next_endpoint_id
from .memory import InMemoryEndpoint
from .registry import DEFAULT_ROLE, MAIN_ROLE, EndpointMetadata, EndpointRegistry
from .websocket import WebSocketEndpoint

__all__ = [
    "CloseCallback",
    "DEFAULT_ROLE",
    "EndpointMetadata",
    "EndpointRegistry",
    "IEndpoint",
    "InMemoryEndpoint",
    "MAIN_ROLE",
    "WebSocketEndpoint",
    "next_endpoint_id",
]
