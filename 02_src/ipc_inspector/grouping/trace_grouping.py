"""
Trace grouping: turns the flat fragment stream into render rows.

Fragments sharing (trace_id, span_id) are merged into one span, spans are
grouped per trace and laid out as a forest ordered by start time. Nothing
here mutates its inputs.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Union

from ..models import TraceEnvelope, TraceEvent, TraceKind, TraceStatus

SpanFilter = Callable[[TraceEvent], bool]


class TraceVisibility(str, Enum):
    """Which trace-summary rows to keep. Span rows are never affected."""

    ALL = "all"
    ERRORS_AND_INCOMPLETE_ONLY = "errorsAndIncompleteOnly"
    HIDDEN_TRACE_SUMMARIES = "hiddenTraceSummaries"


@dataclass
class TraceRow:
    """Summary row for one trace."""

    trace_id: str
    ts_start: float
    ts_end: float | None
    duration_ms: float | None
    status: TraceStatus
    span_count: int
    error_count: int
    incomplete_count: int

    def to_dict(self) -> dict:
        return {
            "type": "trace",
            "trace_id": self.trace_id,
            "ts_start": self.ts_start,
            "ts_end": self.ts_end,
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "span_count": self.span_count,
            "error_count": self.error_count,
            "incomplete_count": self.incomplete_count,
        }


@dataclass
class SpanRow:
    """One aggregated span at its depth in the trace tree."""

    event: TraceEvent
    depth: int
    is_incomplete: bool
    trace_id: str
    span_id: str

    def to_dict(self) -> dict:
        return {
            "type": "span",
            "event": self.event.to_dict(),
            "depth": self.depth,
            "is_incomplete": self.is_incomplete,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
        }


RenderRow = Union[TraceRow, SpanRow]


@dataclass
class RenderResult:
    spans: list[TraceEvent] = field(default_factory=list)
    rows: list[RenderRow] = field(default_factory=list)


@dataclass
class _SpanGroup:
    trace_id: str
    span_id: str
    parent_span_id: str | None
    ts_start: float
    ts_end: float | None = None
    events: list[TraceEvent] = field(default_factory=list)


def build_render_rows(
    events: list[TraceEvent],
    passes_filter: SpanFilter | None = None,
    visibility: TraceVisibility = TraceVisibility.ALL,
) -> RenderResult:
    """Aggregate, filter, group and flatten fragments into render rows."""
    spans = aggregate_spans(events)
    if passes_filter is not None:
        spans = [span for span in spans if passes_filter(span)]

    rows = _apply_visibility(_build_rows(spans), TraceVisibility(visibility))
    return RenderResult(spans=spans, rows=rows)


def aggregate_spans(events: list[TraceEvent]) -> list[TraceEvent]:
    """Merge fragments of the same span into one event, sorted by start time."""
    groups: dict[tuple[str, str], _SpanGroup] = {}

    for event in events:
        key = (event.trace_id, event.span_id)
        group = groups.get(key)
        if group is None:
            group = _SpanGroup(
                trace_id=event.trace_id,
                span_id=event.span_id,
                parent_span_id=event.parent_span_id,
                ts_start=event.ts_start,
            )
            groups[key] = group

        if group.parent_span_id is None and event.parent_span_id is not None:
            group.parent_span_id = event.parent_span_id

        group.events.append(event)
        group.ts_start = min(group.ts_start, event.ts_start)
        if event.ts_end is not None:
            group.ts_end = event.ts_end if group.ts_end is None else max(group.ts_end, event.ts_end)

    spans = [_merge(group) for group in groups.values()]
    spans.sort(key=lambda span: span.ts_start)
    return spans


def aggregate_status(events: list[TraceEvent]) -> TraceStatus:
    """Status by precedence: error, timeout, cancelled, ok."""
    statuses = {event.status for event in events}
    for status in (TraceStatus.ERROR, TraceStatus.TIMEOUT, TraceStatus.CANCELLED):
        if status in statuses:
            return status
    return TraceStatus.OK


def _merge(group: _SpanGroup) -> TraceEvent:
    base = min(group.events, key=lambda event: event.ts_start)
    changes = dict(
        id=group.span_id,
        ts_start=group.ts_start,
        ts_end=group.ts_end,
        duration_ms=group.ts_end - group.ts_start if group.ts_end is not None else None,
        status=aggregate_status(group.events),
        trace=TraceEnvelope(
            trace_id=group.trace_id,
            span_id=group.span_id,
            parent_span_id=group.parent_span_id,
            ts_start=group.ts_start,
            ts_end=group.ts_end,
        ),
    )

    if base.kind == TraceKind.INVOKE:
        invokes = [event for event in group.events if event.kind == TraceKind.INVOKE]
        changes["request"] = next((e.request for e in invokes if e.request), None)
        changes["response"] = next((e.response for e in invokes if e.response), None)
        error = next((e.error for e in invokes if e.error), None)
        changes["error"] = error
        if error is not None:
            changes["status"] = TraceStatus.ERROR
    elif base.kind in (
        TraceKind.STREAM_INVOKE,
        TraceKind.STREAM_UPLOAD,
        TraceKind.STREAM_DOWNLOAD,
    ):
        # The end fragment carries the transfer totals
        ended = [event for event in group.events if event.end_reason is not None]
        if ended:
            last = max(ended, key=lambda event: event.ts_end or event.ts_start)
            changes.update(
                end_reason=last.end_reason,
                chunk_count=last.chunk_count,
                total_bytes=last.total_bytes,
                first_chunk=last.first_chunk,
                last_chunk=last.last_chunk,
                error=last.error,
            )

    return replace(base, **changes)


def _build_rows(spans: list[TraceEvent]) -> list[RenderRow]:
    traces: dict[str, list[TraceEvent]] = {}
    for span in spans:
        traces.setdefault(span.trace_id, []).append(span)

    ordered = sorted(
        traces.items(), key=lambda item: min(span.ts_start for span in item[1])
    )

    rows: list[RenderRow] = []
    for trace_id, nodes in ordered:
        rows.append(_summary_row(trace_id, nodes))

        span_ids = {node.span_id for node in nodes}
        children: dict[str, list[TraceEvent]] = {}
        roots: list[TraceEvent] = []
        for node in nodes:
            parent = node.parent_span_id
            if parent is not None and parent in span_ids and parent != node.span_id:
                children.setdefault(parent, []).append(node)
            else:
                roots.append(node)

        visited: set[str] = set()
        for root in sorted(roots, key=lambda node: node.ts_start):
            _append_span_rows(rows, root, children, 0, visited)
        # Spans caught in a parent cycle are unreachable from any root
        for node in nodes:
            if node.span_id not in visited:
                _append_span_rows(rows, node, children, 0, visited)

    return rows


def _summary_row(trace_id: str, nodes: list[TraceEvent]) -> TraceRow:
    ts_start = min(node.ts_start for node in nodes)
    ends = [node.ts_end for node in nodes if node.ts_end is not None]
    ts_end = max(ends) if ends else None
    return TraceRow(
        trace_id=trace_id,
        ts_start=ts_start,
        ts_end=ts_end,
        duration_ms=ts_end - ts_start if ts_end is not None else None,
        status=aggregate_status(nodes),
        span_count=len(nodes),
        error_count=sum(1 for node in nodes if node.status == TraceStatus.ERROR),
        incomplete_count=sum(1 for node in nodes if node.ts_end is None),
    )


def _append_span_rows(
    rows: list[RenderRow],
    root: TraceEvent,
    children: dict[str, list[TraceEvent]],
    depth: int,
    visited: set[str],
) -> None:
    """Depth-first rows under ``root``, children in start order."""
    stack = [(root, depth)]
    while stack:
        node, node_depth = stack.pop()
        # Guards against parent cycles in malformed input
        if node.span_id in visited:
            continue
        visited.add(node.span_id)

        rows.append(
            SpanRow(
                event=node,
                depth=node_depth,
                is_incomplete=node.ts_end is None,
                trace_id=node.trace_id,
                span_id=node.span_id,
            )
        )

        ordered = sorted(children.get(node.span_id, []), key=lambda child: child.ts_start)
        stack.extend((child, node_depth + 1) for child in reversed(ordered))


def _apply_visibility(rows: list[RenderRow], visibility: TraceVisibility) -> list[RenderRow]:
    if visibility == TraceVisibility.ALL:
        return rows

    def keep(row: RenderRow) -> bool:
        if not isinstance(row, TraceRow):
            return True
        if visibility == TraceVisibility.HIDDEN_TRACE_SUMMARIES:
            return False
        return row.error_count > 0 or row.incomplete_count > 0

    return [row for row in rows if keep(row)]
