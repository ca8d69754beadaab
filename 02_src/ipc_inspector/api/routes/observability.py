"""Observability API routes: buffered events, grouped traces, metrics, export."""

from typing import Any

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ...app import Application
from ...grouping import TraceVisibility, build_render_rows
from ...metrics import compute_metrics
from ...models import TraceEvent, TraceKind, TraceStatus
from ...server import ExportFormat


class TracesResponse(BaseModel):
    """Response model for grouped traces."""

    span_count: int
    rows: list[dict[str, Any]]


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/trace-events", response_model=list[dict[str, Any]])
    async def get_trace_events(
        limit: int = Query(100, ge=1, le=100_000),
    ) -> list[dict]:
        """Most recent buffered fragments, oldest first."""
        try:
            return [event.to_dict() for event in app.server.recent(limit)]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/traces", response_model=TracesResponse)
    async def get_traces(
        visibility: TraceVisibility = Query(TraceVisibility.ALL),
        channel: str | None = Query(None, description="Substring of the channel name"),
        kind: TraceKind | None = Query(None, description="Filter by kind"),
        status: TraceStatus | None = Query(None, description="Filter by aggregated status"),
    ) -> dict:
        """Buffered fragments grouped into traces and span rows."""

        def passes(span: TraceEvent) -> bool:
            if channel and channel not in span.channel:
                return False
            if kind is not None and span.kind != kind:
                return False
            if status is not None and span.status != status:
                return False
            return True

        try:
            result = build_render_rows(app.server.snapshot(), passes, visibility)
            return {
                "span_count": len(result.spans),
                "rows": [row.to_dict() for row in result.rows],
            }
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/metrics", response_model=list[dict[str, Any]])
    async def get_metrics() -> list[dict]:
        """Per-channel counts, latency percentiles and volume."""
        try:
            return [row.to_dict() for row in compute_metrics(app.server.snapshot())]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/export")
    async def export(format: ExportFormat = Query(ExportFormat.JSON)) -> Any:
        """Export the buffer as a versioned JSON document or as CSV."""
        try:
            if format is ExportFormat.CSV:
                return PlainTextResponse(app.server.export_csv(), media_type="text/csv")
            return app.server.export_snapshot().to_dict()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
