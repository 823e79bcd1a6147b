"""Correlation of log records within one reconcile pass."""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace

# Set by the worker for the duration of a pass; None outside of one.
correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def get_correlation_id() -> str | None:
    return correlation_id.get()


@contextmanager
def with_correlation_id(corr_id: str) -> Iterator[str]:
    """Tag every record logged inside the block with ``corr_id``.

    The previous value is restored on exit.
    """
    token = correlation_id.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id.reset(token)


def get_context_dict() -> dict[str, Any]:
    """Return the fields that tie a log record to its pass and trace.

    Returns:
        ``correlation_id`` when a pass is running, plus ``trace_id`` when the
        current span is being recorded
    """
    ctx: dict[str, Any] = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        ctx["trace_id"] = format(span_context.trace_id, "032x")

    return ctx
