"""Grouping module."""

from .trace_grouping import (
    RenderResult,
    RenderRow,
    SpanFilter,
    SpanRow,
    TraceRow,
    TraceVisibility,
    aggregate_spans,
    aggregate_status,
    build_render_rows,
)

__all__ = [
    "RenderResult",
    "RenderRow",
    "SpanFilter",
    "SpanRow",
    "TraceRow",
    "TraceVisibility",
    "aggregate_spans",
    "aggregate_status",
    "build_render_rows",
]
