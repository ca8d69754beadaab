"""Per-channel latency, error and volume metrics over buffered fragments."""

import math
from dataclasses import asdict, dataclass, field

from ..models import STREAM_KINDS, PayloadPreview, TraceEvent, TraceKind, TraceStatus


@dataclass
class MetricsRow:
    channel: str
    kind: TraceKind
    count: int
    error_count: int
    error_rate: float
    p50: float | None
    p95: float | None
    bytes: int
    throughput_bps: int | None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass
class _Bucket:
    channel: str
    kind: TraceKind
    count: int = 0
    error_count: int = 0
    durations: list[float] = field(default_factory=list)
    bytes: int = 0
    stream_bytes: int = 0
    stream_start: float | None = None
    stream_end: float | None = None


def compute_metrics(events: list[TraceEvent]) -> list[MetricsRow]:
    """
    Bucket fragments by (channel, kind).

    Invokes and streams count once they have finished; start fragments of a
    still-running call are ignored. Events and broadcasts always count.
    """
    buckets: dict[tuple[str, TraceKind], _Bucket] = {}

    for event in events:
        key = (event.channel, event.kind)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = _Bucket(channel=event.channel, kind=event.kind)
            buckets[key] = bucket

        if not _is_countable(event):
            continue

        bucket.count += 1
        if event.status == TraceStatus.ERROR:
            bucket.error_count += 1
        duration = _duration_ms(event)
        if duration is not None:
            bucket.durations.append(duration)
        bucket.bytes += _event_bytes(event)

        if event.kind in STREAM_KINDS and event.total_bytes > 0:
            start = event.ts_start
            end = event.ts_end if event.ts_end is not None else event.ts_start
            bucket.stream_bytes += event.total_bytes
            bucket.stream_start = start if bucket.stream_start is None else min(bucket.stream_start, start)
            bucket.stream_end = end if bucket.stream_end is None else max(bucket.stream_end, end)

    rows = [_to_row(bucket) for bucket in buckets.values()]
    rows.sort(key=lambda row: (-row.count, row.channel))
    return rows


def percentile(values: list[float], p: float) -> float | None:
    """Nearest-rank percentile."""
    if not values:
        return None
    ordered = sorted(values)
    index = math.ceil(p * len(ordered)) - 1
    return ordered[max(0, index)]


def _is_countable(event: TraceEvent) -> bool:
    if event.kind == TraceKind.INVOKE:
        return (
            event.ts_end is not None
            or event.response is not None
            or event.status == TraceStatus.ERROR
        )
    if event.kind in STREAM_KINDS:
        return event.end_reason is not None or event.ts_end is not None
    return True


def _duration_ms(event: TraceEvent) -> float | None:
    if event.duration_ms is not None:
        return event.duration_ms
    if event.ts_end is not None:
        return event.ts_end - event.ts_start
    return None


def _preview_bytes(preview: PayloadPreview | None) -> int:
    if preview is None or preview.bytes is None:
        return 0
    return preview.bytes


def _event_bytes(event: TraceEvent) -> int:
    if event.kind == TraceKind.INVOKE:
        return _preview_bytes(event.request) + _preview_bytes(event.response)
    if event.kind in STREAM_KINDS:
        return _preview_bytes(event.request) + event.total_bytes
    return _preview_bytes(event.payload)


def _to_row(bucket: _Bucket) -> MetricsRow:
    throughput = None
    if (
        bucket.stream_bytes > 0
        and bucket.stream_start is not None
        and bucket.stream_end is not None
        and bucket.stream_end > bucket.stream_start
    ):
        seconds = (bucket.stream_end - bucket.stream_start) / 1000
        throughput = round(bucket.stream_bytes / seconds)

    return MetricsRow(
        channel=bucket.channel,
        kind=bucket.kind,
        count=bucket.count,
        error_count=bucket.error_count,
        error_rate=bucket.error_count / bucket.count if bucket.count else 0.0,
        p50=percentile(bucket.durations, 0.5),
        p95=percentile(bucket.durations, 0.95),
        bytes=bucket.bytes,
        throughput_bps=throughput,
    )
