"""Tests for inspector control commands."""

import pytest

from ipc_inspector.errors import CommandError
from ipc_inspector.models import PayloadMode
from ipc_inspector.server import (
    ClearCommand,
    ExportCommand,
    ExportFormat,
    PauseCommand,
    ResumeCommand,
    SetBufferSizeCommand,
    SetPayloadModeCommand,
    execute_command,
    parse_command,
)


class TestParseCommand:
    """Tests for parse_command."""

    @pytest.mark.parametrize(
        "data, expected",
        [
            ({"type": "clear"}, ClearCommand()),
            ({"type": "pause"}, PauseCommand()),
            ({"type": "resume"}, ResumeCommand()),
            ({"type": "setPayloadMode", "mode": "full"}, SetPayloadModeCommand(PayloadMode.FULL)),
            ({"type": "setBufferSize", "size": 10}, SetBufferSizeCommand(10)),
            ({"type": "export"}, ExportCommand(ExportFormat.JSON)),
            ({"type": "export", "format": "csv"}, ExportCommand(ExportFormat.CSV)),
        ],
    )
    def test_valid_commands(self, data, expected):
        """Test each wire form maps to its command."""
        assert parse_command(data) == expected

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "explode"},
            {},
            "clear",
            {"type": "setPayloadMode", "mode": "everything"},
            {"type": "setBufferSize", "size": 0},
            {"type": "setBufferSize", "size": "10"},
            {"type": "setBufferSize", "size": True},
            {"type": "export", "format": "xml"},
        ],
    )
    def test_invalid_commands(self, data):
        """Test unknown types and bad arguments raise CommandError."""
        with pytest.raises(CommandError):
            parse_command(data)


class TestExecuteCommand:
    """Tests for execute_command."""

    def test_pause_and_resume(self, server):
        """Test pause and resume toggle tracing."""
        assert execute_command(server, PauseCommand()) == {"paused": True}
        assert server.is_paused

        assert execute_command(server, ResumeCommand()) == {"resumed": True}
        assert not server.is_paused

    def test_clear(self, server, make_event):
        """Test clear empties the buffer."""
        server.push(make_event())

        assert execute_command(server, ClearCommand()) == {"cleared": True}
        assert server.snapshot() == []

    def test_set_payload_mode(self, server):
        """Test payload mode changes."""
        result = execute_command(server, SetPayloadModeCommand(PayloadMode.NONE))

        assert result == {"mode": "none"}
        assert server.get_status().payload_mode == PayloadMode.NONE

    def test_set_buffer_size(self, server):
        """Test buffer resize."""
        assert execute_command(server, SetBufferSizeCommand(20)) == {"size": 20}
        assert server.get_status().buffer_capacity == 20

    def test_export_json(self, server, make_event):
        """Test JSON export returns the document."""
        server.push(make_event())

        result = execute_command(server, ExportCommand())

        assert result["format"] == "json"
        assert result["data"]["stats"]["total_events"] == 1

    def test_export_csv(self, server, make_event):
        """Test CSV export returns text."""
        server.push(make_event(channel="abc"))

        result = execute_command(server, ExportCommand(ExportFormat.CSV))

        assert result["format"] == "csv"
        assert result["data"].splitlines()[0].startswith("seq,id,kind,channel")
        assert "abc" in result["data"]

    def test_unknown_command_object(self, server):
        """Test anything that is not a command is rejected."""
        with pytest.raises(CommandError):
            execute_command(server, object())
