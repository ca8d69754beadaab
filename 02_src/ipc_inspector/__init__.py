"""IPC inspector: trace capture, buffering and cross-window routing."""

from .app import Application, IApplication
from .config import InspectorOptions
from .endpoints import EndpointRegistry, IEndpoint, InMemoryEndpoint, WebSocketEndpoint
from .errors import (
    CommandError,
    ConfigurationError,
    DestroyedEndpointError,
    InspectorError,
    RemoteInvokeError,
    RoutingError,
    RoutingTimeoutError,
)
from .grouping import TraceVisibility, build_render_rows
from .metrics import MetricsRow, compute_metrics
from .models import PayloadMode, TraceContext, TraceEvent, TraceKind, TraceStatus
from .ring_buffer import RingBuffer
from .routing import InvokeRouter
from .server import InspectorServer
from .tracing import TracePort

__all__ = [
    # Application
    "Application",
    "IApplication",
    "InspectorOptions",
    # Models
    "PayloadMode",
    "TraceContext",
    "TraceEvent",
    "TraceKind",
    "TraceStatus",
    # Components
    "EndpointRegistry",
    "IEndpoint",
    "InMemoryEndpoint",
    "InspectorServer",
    "InvokeRouter",
    "MetricsRow",
    "RingBuffer",
    "TracePort",
    "TraceVisibility",
    "WebSocketEndpoint",
    "build_render_rows",
    "compute_metrics",
    # Errors
    "CommandError",
    "ConfigurationError",
    "DestroyedEndpointError",
    "InspectorError",
    "RemoteInvokeError",
    "RoutingError",
    "RoutingTimeoutError",
]
