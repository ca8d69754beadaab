"""Inspector control API routes."""

from typing import Annotated, Any, Literal, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ...app import Application
from ...errors import InspectorError
from ...logging_config import get_logger
from ...models import CommandResponse, PayloadMode
from ...server import ExportFormat, execute_command, parse_command

logger = get_logger(__name__)


class StatusResponse(BaseModel):
    """Response model for inspector status."""

    is_tracing: bool
    event_count: int
    buffer_capacity: int
    dropped_count: int
    payload_mode: PayloadMode
    subscriber_count: int


class ClearRequest(BaseModel):
    type: Literal["clear"]


class PauseRequest(BaseModel):
    type: Literal["pause"]


class ResumeRequest(BaseModel):
    type: Literal["resume"]


class SetPayloadModeRequest(BaseModel):
    type: Literal["setPayloadMode"]
    mode: PayloadMode


class SetBufferSizeRequest(BaseModel):
    type: Literal["setBufferSize"]
    size: int = Field(ge=1)


class ExportRequest(BaseModel):
    type: Literal["export"]
    format: ExportFormat = ExportFormat.JSON


CommandRequest = Annotated[
    Union[
        ClearRequest,
        PauseRequest,
        ResumeRequest,
        SetPayloadModeRequest,
        SetBufferSizeRequest,
        ExportRequest,
    ],
    Field(discriminator="type"),
]


class CommandResponseModel(BaseModel):
    """Response model for a command."""

    success: bool
    data: Any = None
    error: str | None = None


def create_inspector_router(app: Application) -> APIRouter:
    """Create inspector router."""
    router = APIRouter(prefix="/api/inspector", tags=["inspector"])

    @router.get("/status", response_model=StatusResponse)
    async def get_status() -> dict:
        """Current tracing state and buffer occupancy."""
        try:
            status = app.server.get_status().to_dict()
            status["subscriber_count"] = app.server.get_subscriber_count()
            return status
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/command", response_model=CommandResponseModel)
    async def run_command(request: CommandRequest) -> dict:
        """Run a control command against the inspector server."""
        try:
            command = parse_command(request.model_dump(mode="json"))
            result = execute_command(app.server, command)
            return CommandResponse(success=True, data=result).to_dict()
        except InspectorError as e:
            logger.info("Inspector command rejected: %s", e)
            return CommandResponse(success=False, error=str(e)).to_dict()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/router", response_model=dict[str, Any])
    async def get_router_stats() -> dict:
        """Pending cross-window calls."""
        try:
            return app.router.get_stats()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
