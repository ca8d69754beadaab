"""Exception hierarchy for the IPC inspector."""


class InspectorError(Exception):
    """Base class for all inspector errors."""


class ConfigurationError(InspectorError, ValueError):
    """Invalid construction parameters (e.g. non-positive buffer capacity)."""


class CommandError(InspectorError, ValueError):
    """Invalid or unsupported control command."""


class RoutingError(InspectorError):
    """A cross-window call could not be routed."""


class DestroyedEndpointError(RoutingError):
    """The target endpoint went away before the request could be delivered."""


class RoutingTimeoutError(RoutingError, TimeoutError):
    """No response arrived within the configured timeout."""

    def __init__(self, channel: str, timeout: float):
        super().__init__(
            f"Renderer invoke timeout after {timeout:g}s for channel '{channel}'"
        )
        self.channel = channel
        self.timeout = timeout


class RemoteInvokeError(InspectorError):
    """The remote handler failed; carries the remote error details."""

    def __init__(
        self,
        message: str,
        name: str = "Error",
        remote_stack: str | None = None,
    ):
        super().__init__(message)
        self.name = name
        self.remote_stack = remote_stack
