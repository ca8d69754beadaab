"""Control API routes: reset and the traffic simulator."""

from typing import Any, Literal

from pydantic import BaseModel, Field
from fastapi import APIRouter, HTTPException

from ...app import IApplication


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


class SimStartRequest(BaseModel):
    """Traffic generator settings."""

    mode: Literal["burst", "sustained", "mixed"] = "sustained"
    events_per_second: int = Field(100, ge=1, le=100_000)
    duration: float = Field(5.0, gt=0)
    payload_size: int = Field(256, ge=0)


class SimStartResponse(StatusResponse):
    """Response model for a started simulation run."""

    test_id: str


# Global SIM instance (will be set by main app)
_sim_instance: Any = None


def set_sim_instance(sim: Any) -> None:
    """Set the global SIM instance."""
    global _sim_instance
    _sim_instance = sim


def get_sim_instance() -> Any:
    """Get the global SIM instance."""
    return _sim_instance


def _require_sim() -> Any:
    if _sim_instance is None:
        raise HTTPException(status_code=404, detail="SIM not configured")
    return _sim_instance


def create_control_router(app: IApplication) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system() -> dict:
        """Clear captured traces."""
        try:
            await app.reset()
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/sim/start", response_model=SimStartResponse)
    async def start_sim(request: SimStartRequest | None = None) -> dict:
        """Start generating synthetic traffic."""
        sim = _require_sim()
        settings = request or SimStartRequest()
        try:
            test_id = await sim.start(**settings.model_dump())
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"status": "ok", "test_id": test_id}

    @router.post("/sim/stop", response_model=StatusResponse)
    async def stop_sim() -> dict:
        """Stop generating synthetic traffic."""
        sim = _require_sim()
        try:
            await sim.stop()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"status": "ok"}

    @router.get("/sim/stats", response_model=dict[str, Any])
    async def sim_stats() -> dict:
        """Counters of the running or last simulation."""
        return _require_sim().stats

    return router
