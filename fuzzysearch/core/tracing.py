from __future__ import annotations

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from fuzzysearch.core.context import span_id_ctx_var, trace_id_ctx_var, trace_sampled_ctx_var

_TRACE_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_SPAN_ID_RE = re.compile(r"^[0-9a-f]{16}$")

B3_HEADER = "b3"


def is_valid_trace_id(value: str) -> bool:
    return bool(_TRACE_ID_RE.fullmatch(value)) and value != "0" * 32


def is_valid_span_id(value: str) -> bool:
    return bool(_SPAN_ID_RE.fullmatch(value)) and value != "0" * 16


@contextmanager
def trace_context(
    trace_id: str | None = None,
    span_id: str | None = None,
    *,
    sampled: bool = True,
) -> Iterator[str]:
    """Activate a trace for the current task and yield its trace id.

    Requests issued inside the block carry a B3 header so the service can
    join its spans to the caller's trace. Missing ids are generated.
    """
    tid = (trace_id or uuid.uuid4().hex).strip().lower()
    sid = (span_id or uuid.uuid4().hex[:16]).strip().lower()
    if not is_valid_trace_id(tid):
        raise ValueError(f"invalid trace id: {trace_id!r}")
    if not is_valid_span_id(sid):
        raise ValueError(f"invalid span id: {span_id!r}")

    trace_token = trace_id_ctx_var.set(tid)
    span_token = span_id_ctx_var.set(sid)
    sampled_token = trace_sampled_ctx_var.set(bool(sampled))
    try:
        yield tid
    finally:
        trace_sampled_ctx_var.reset(sampled_token)
        span_id_ctx_var.reset(span_token)
        trace_id_ctx_var.reset(trace_token)


def current_trace_id() -> str | None:
    tid = trace_id_ctx_var.get()
    return None if tid == "-" else tid


def b3_headers() -> dict[str, str]:
    """Single B3 header for the trace activated by :func:`trace_context`.

    Only this module's context is read. Spans started by another tracer,
    such as OpenTelemetry, are not seen, so callers using one should wrap
    requests in ``trace_context`` with that span's ids.
    """
    tid = trace_id_ctx_var.get()
    sid = span_id_ctx_var.get()
    if tid == "-" or sid == "-":
        return {}
    flag = "1" if trace_sampled_ctx_var.get() else "0"
    return {B3_HEADER: f"{tid}-{sid}-{flag}"}
