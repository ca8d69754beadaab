"""Server module."""

from .commands import (
    ClearCommand,
    ExportCommand,
    ExportFormat,
    InspectorCommand,
    PauseCommand,
    ResumeCommand,
    SetBufferSizeCommand,
    SetPayloadModeCommand,
    execute_command,
    parse_command,
)
from .server import IInspectorServer, InspectorServer, InspectorSubscriber

__all__ = [
    "ClearCommand",
    "ExportCommand",
    "ExportFormat",
    "IInspectorServer",
    "InspectorCommand",
    "InspectorServer",
    "InspectorSubscriber",
    "PauseCommand",
    "ResumeCommand",
    "SetBufferSizeCommand",
    "SetPayloadModeCommand",
    "execute_command",
    "parse_command",
]
