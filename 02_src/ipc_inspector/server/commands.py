"""Control commands a viewer can send to the inspector server."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from ..errors import CommandError
from ..logging_config import get_logger
from ..models import PayloadMode
from .server import IInspectorServer

logger = get_logger(__name__)


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True)
class ClearCommand:
    pass


@dataclass(frozen=True)
class PauseCommand:
    pass


@dataclass(frozen=True)
class ResumeCommand:
    pass


@dataclass(frozen=True)
class SetPayloadModeCommand:
    mode: PayloadMode


@dataclass(frozen=True)
class SetBufferSizeCommand:
    size: int


@dataclass(frozen=True)
class ExportCommand:
    format: ExportFormat = ExportFormat.JSON


InspectorCommand = Union[
    ClearCommand,
    PauseCommand,
    ResumeCommand,
    SetPayloadModeCommand,
    SetBufferSizeCommand,
    ExportCommand,
]


def parse_command(data: Any) -> InspectorCommand:
    """
    Build a command from its wire form, e.g. ``{"type": "setBufferSize", "size": 100}``.

    Raises:
        CommandError: unknown type or invalid arguments
    """
    if not isinstance(data, dict):
        raise CommandError("Command must be an object")

    command_type = data.get("type")
    if command_type == "clear":
        return ClearCommand()
    if command_type == "pause":
        return PauseCommand()
    if command_type == "resume":
        return ResumeCommand()

    if command_type == "setPayloadMode":
        try:
            return SetPayloadModeCommand(mode=PayloadMode(data.get("mode")))
        except ValueError:
            raise CommandError(f"Invalid payload mode: {data.get('mode')!r}") from None

    if command_type == "setBufferSize":
        size = data.get("size")
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise CommandError(f"Buffer size must be a positive integer, got {size!r}")
        return SetBufferSizeCommand(size=size)

    if command_type == "export":
        try:
            return ExportCommand(format=ExportFormat(data.get("format", "json")))
        except ValueError:
            raise CommandError(f"Unsupported export format: {data.get('format')!r}") from None

    raise CommandError(f"Unknown command: {command_type!r}")


def execute_command(server: IInspectorServer, command: InspectorCommand) -> dict:
    """Apply a command to the server and return its result."""
    logger.info("Executing inspector command %s", type(command).__name__)

    if isinstance(command, ClearCommand):
        server.clear()
        return {"cleared": True}

    if isinstance(command, PauseCommand):
        server.pause()
        return {"paused": True}

    if isinstance(command, ResumeCommand):
        server.resume()
        return {"resumed": True}

    if isinstance(command, SetPayloadModeCommand):
        server.set_payload_mode(command.mode)
        return {"mode": command.mode.value}

    if isinstance(command, SetBufferSizeCommand):
        server.set_buffer_size(command.size)
        return {"size": command.size}

    if isinstance(command, ExportCommand):
        if command.format is ExportFormat.CSV:
            return {"format": command.format.value, "data": server.export_csv()}
        return {"format": command.format.value, "data": server.export_snapshot().to_dict()}

    raise CommandError(f"Unhandled command: {command!r}")
