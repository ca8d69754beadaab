"""Endpoint backed by a websocket connection to a window process."""

import asyncio
import json
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from ..logging_config import get_logger
from .base import CloseCallback, next_endpoint_id

logger = get_logger(__name__)

_CLOSE = object()

# Outbound frames held for a slow reader before it is dropped
DEFAULT_MAX_QUEUE = 10_000


class WebSocketEndpoint:
    """Queues outbound messages; a writer task drains them to the socket."""

    def __init__(self, websocket: WebSocket, max_queue: int = DEFAULT_MAX_QUEUE):
        self._id = next_endpoint_id()
        self._websocket = websocket
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._destroyed = False
        self._overflowed = False
        self._close_callbacks: list[CloseCallback] = []

    @property
    def id(self) -> int:
        return self._id

    def is_destroyed(self) -> bool:
        return self._destroyed

    def send(self, channel: str, payload: Any) -> None:
        if self._destroyed:
            raise ConnectionError(f"Endpoint {self._id} is closed")
        try:
            self._queue.put_nowait({"channel": channel, "payload": payload})
        except asyncio.QueueFull:
            logger.warning("Endpoint %s outbound queue full, dropping connection", self._id)
            self._overflowed = True
            self.close()
            raise ConnectionError(f"Endpoint {self._id} is not keeping up") from None

    def on_closed(self, callback: CloseCallback) -> None:
        self._close_callbacks.append(callback)

    async def run_writer(self) -> None:
        """Drain queued messages to the websocket until closed."""
        while True:
            message = await self._queue.get()
            if message is _CLOSE or self._overflowed:
                return
            try:
                await self._websocket.send_text(json.dumps(message, default=str))
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.info("Endpoint %s writer stopped: %s", self._id, e)
                self.close()
                return

    def close(self) -> None:
        """Mark closed, stop the writer and fire close callbacks once."""
        if self._destroyed:
            return
        self._destroyed = True
        try:
            self._queue.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            # The writer stops on its next item once overflowed
            self._overflowed = True
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Close callback failed for endpoint %s", self._id)
