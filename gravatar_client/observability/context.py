"""Trace IDs for tying log events to one logical operation.

A trace ID lives in a ContextVar, so it follows the tasks spawned by a batch
fetch without being passed around. Callers rendering a page can install
their own ID and every client log event emitted underneath carries it.

Usage:
    with trace_scope("render-42"):
        results = await client.get_profiles(emails)
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_trace_id: ContextVar[Optional[str]] = ContextVar("gravatar_trace_id", default=None)


def new_trace_id() -> str:
    """Short random identifier (12 hex chars)."""
    return uuid.uuid4().hex[:12]


def current_trace_id() -> Optional[str]:
    return _trace_id.get()


@contextmanager
def trace_scope(trace_id: Optional[str] = None) -> Iterator[str]:
    """Install ``trace_id`` (or a fresh one) for the duration of the block.

    The previous value is restored on exit, including when the block raises.
    """
    token = _trace_id.set(trace_id or new_trace_id())
    try:
        yield _trace_id.get()  # type: ignore[misc]
    finally:
        _trace_id.reset(token)


@contextmanager
def inherit_or_start_trace() -> Iterator[str]:
    """Join the caller's trace when one is active, otherwise start one."""
    active = _trace_id.get()
    if active:
        yield active
    else:
        with trace_scope() as trace_id:
            yield trace_id
