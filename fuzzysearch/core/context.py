from __future__ import annotations

from contextvars import ContextVar

trace_id_ctx_var: ContextVar[str] = ContextVar("trace_id", default="-")
span_id_ctx_var: ContextVar[str] = ContextVar("span_id", default="-")
trace_sampled_ctx_var: ContextVar[bool] = ContextVar("trace_sampled", default=True)
