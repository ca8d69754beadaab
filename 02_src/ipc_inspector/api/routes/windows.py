"""Websocket route through which window processes connect to the host."""

import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...app import Application
from ...endpoints import WebSocketEndpoint
from ...logging_config import get_logger

logger = get_logger(__name__)


def create_windows_router(app: Application) -> APIRouter:
    """Create windows router."""
    router = APIRouter(tags=["windows"])

    @router.websocket("/ws/windows/{role}")
    async def window_socket(websocket: WebSocket, role: str) -> None:
        """One window per connection; frames are ``{"channel", "payload"}`` objects."""
        await websocket.accept()
        endpoint = WebSocketEndpoint(websocket)
        app.connect_endpoint(endpoint, role)
        writer = asyncio.create_task(endpoint.run_writer())

        try:
            while not endpoint.is_destroyed():
                text = await websocket.receive_text()
                try:
                    message = json.loads(text)
                except json.JSONDecodeError:
                    logger.warning("Non-JSON frame from endpoint %s", endpoint.id)
                    continue
                if not isinstance(message, dict) or not isinstance(message.get("channel"), str):
                    logger.warning("Frame without channel from endpoint %s", endpoint.id)
                    continue
                app.handle_message(endpoint, message["channel"], message.get("payload"))
            # Dropped by the host, e.g. its outbound queue overflowed
            await _close_quietly(websocket, endpoint.id)
        except WebSocketDisconnect:
            logger.info("Endpoint %s (%s) disconnected", endpoint.id, role)
        finally:
            endpoint.close()
            await writer

    return router


async def _close_quietly(websocket: WebSocket, endpoint_id: int) -> None:
    try:
        await websocket.close(code=1013)
    except RuntimeError as e:
        logger.debug("Endpoint %s socket already closed: %s", endpoint_id, e)
