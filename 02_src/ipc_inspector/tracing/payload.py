"""Bounded-cost payload size estimation, previews and error normalization."""

import errno
import json
import traceback
from typing import Any

from ..errors import RemoteInvokeError
from ..models import PayloadMode, PayloadPreview, SerializedError

DEFAULT_MAX_PREVIEW_BYTES = 10_000

_SAMPLE_SIZE = 10
_SCAN_BUDGET = 200
_FALLBACK_CAP = 1_000
_MAX_DEPTH = 32
_CONTAINERS = (dict, list, tuple, set, frozenset)


class _CycleDetected(Exception):
    pass


def estimate_size(value: Any) -> int:
    """
    Approximate the serialized size of ``value`` in bytes.

    Primitives and binary buffers are O(1); strings use their UTF-8 length.
    Small containers are measured by serializing them, large ones by sampling
    the first entries and extrapolating. Never raises, including on
    self-referential structures.
    """
    try:
        return _estimate(value, set(), 0)
    except RecursionError:
        return _FALLBACK_CAP


def _estimate(value: Any, active: set[int], depth: int) -> int:
    if value is None:
        return 0
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    if isinstance(value, memoryview):
        return value.nbytes
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (bool, int, float)):
        return 8
    if isinstance(value, _CONTAINERS):
        return _estimate_container(value, active, depth)
    return 0


def _estimate_container(value, active: set[int], depth: int) -> int:
    if id(value) in active:
        return 0
    # Nesting this deep is summarized rather than walked
    if depth >= _MAX_DEPTH:
        return _FALLBACK_CAP

    count = len(value)
    if count == 0:
        return 2  # "[]" / "{}"

    if count <= _SAMPLE_SIZE:
        try:
            small = _within_budget(value, set(), [_SCAN_BUDGET])
        except _CycleDetected:
            return _fallback_size(value)
        if small:
            try:
                return len(json.dumps(value, default=_json_default))
            except (TypeError, ValueError, RecursionError):
                return _fallback_size(value)

    active.add(id(value))
    try:
        if isinstance(value, dict):
            sample = [
                len(str(key)) + _estimate(item, active, depth + 1)
                for key, item in _first(value.items())
            ]
        else:
            sample = [_estimate(item, active, depth + 1) for item in _first(value)]
    finally:
        active.discard(id(value))

    return int(sum(sample) / len(sample) * count)


def _first(iterable) -> list:
    result = []
    for item in iterable:
        result.append(item)
        if len(result) >= _SAMPLE_SIZE:
            break
    return result


def _within_budget(value: Any, path: set[int], budget: list[int]) -> bool:
    """True when ``value`` has few enough nodes to serialize in full."""
    budget[0] -= 1
    if budget[0] < 0:
        return False
    if not isinstance(value, _CONTAINERS):
        return True
    if id(value) in path:
        raise _CycleDetected()

    path.add(id(value))
    try:
        children = value.values() if isinstance(value, dict) else value
        for child in children:
            if not _within_budget(child, path, budget):
                return False
        return True
    except RecursionError:
        return False
    finally:
        path.discard(id(value))


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return list(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(value)} bytes>"
    return str(value)


def _serializable(value: Any) -> bool:
    """False for cyclic or too deeply nested values."""
    try:
        json.dumps(value, default=_json_default)
    except (TypeError, ValueError, RecursionError):
        return False
    return True


def _fallback_size(value: Any) -> int:
    # repr() handles self-references in builtin containers
    try:
        return min(len(repr(value)), _FALLBACK_CAP)
    except Exception:
        return 0


def summarize(value: Any) -> str:
    """Human-readable one-line description of a payload."""
    if value is None:
        return "null"
    if isinstance(value, str):
        return f"string({len(value)} chars)" if len(value) > 50 else f'"{value}"'
    if isinstance(value, bool):
        return f"boolean: {str(value).lower()}"
    if isinstance(value, (int, float)):
        return f"number: {value}"
    if isinstance(value, (bytes, bytearray)):
        return f"{type(value).__name__}({len(value)} bytes)"
    if isinstance(value, memoryview):
        return f"memoryview({value.nbytes} bytes)"
    if isinstance(value, (list, tuple)):
        return f"{type(value).__name__}({len(value)} items)"
    if isinstance(value, (set, frozenset)):
        return f"set({len(value)} items)"
    if isinstance(value, dict):
        keys = [str(key) for key in _first(value.keys())][:5]
        more = f", ...{len(value) - 5} more" if len(value) > 5 else ""
        return "{" + ", ".join(keys) + more + "}"
    return type(value).__name__


def create_preview(
    value: Any,
    mode: PayloadMode = PayloadMode.REDACTED,
    max_bytes: int = DEFAULT_MAX_PREVIEW_BYTES,
) -> PayloadPreview:
    """Build a payload preview according to ``mode``."""
    if mode == PayloadMode.NONE:
        return PayloadPreview(mode=PayloadMode.NONE)

    size = estimate_size(value)

    if mode == PayloadMode.REDACTED:
        return PayloadPreview(mode=PayloadMode.REDACTED, bytes=size, summary=summarize(value))

    if size <= max_bytes and _serializable(value):
        return PayloadPreview(mode=PayloadMode.FULL, bytes=size, data=value)

    # Too large: degrade to the redacted summary
    return PayloadPreview(
        mode=PayloadMode.FULL,
        bytes=size,
        summary=f"{summarize(value)} (truncated, too large for preview)",
        truncated=True,
    )


def serialize_error(error: Any) -> SerializedError:
    """Normalize any raised value to name/message/stack/code."""
    if isinstance(error, BaseException):
        stack = None
        if error.__traceback__ is not None:
            stack = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        return SerializedError(
            name=error.name if isinstance(error, RemoteInvokeError) else type(error).__name__,
            message=str(error),
            stack=stack,
            code=_error_code(error),
        )

    return SerializedError(name="Error", message=str(error))


def _error_code(error: BaseException) -> str | None:
    if isinstance(error, OSError) and error.errno is not None:
        return errno.errorcode.get(error.errno, str(error.errno))
    code = getattr(error, "code", None)
    return str(code) if code is not None else None
