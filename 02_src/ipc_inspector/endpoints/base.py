"""Endpoint interface: an addressable message-passing participant."""

import itertools
from typing import Any, Callable, Protocol

CloseCallback = Callable[[], None]

_endpoint_ids = itertools.count(1)


def next_endpoint_id() -> int:
    """Allocate a stable numeric endpoint id."""
    return next(_endpoint_ids)


class IEndpoint(Protocol):
    """A host or window process the inspector can talk to."""

    @property
    def id(self) -> int:
        """Stable numeric id."""
        ...

    def is_destroyed(self) -> bool:
        """Whether the endpoint is gone."""
        ...

    def send(self, channel: str, payload: Any) -> None:
        """Deliver a named message. Raises if the endpoint cannot receive it."""
        ...

    def on_closed(self, callback: CloseCallback) -> None:
        """Register a callback fired once when the endpoint goes away."""
        ...
