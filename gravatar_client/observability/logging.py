"""Structured logging setup for applications embedding the client.

Library modules only ever call ``structlog.get_logger()``; nothing is
configured on import. An application opts in once at startup:

    from gravatar_client.observability import setup_logging
    setup_logging("DEBUG", renderer="console")

Every event then carries the active trace ID (see ``context.trace_scope``)
and a ``lib`` field so client events are easy to filter out of app logs.
"""

import logging
import sys
from typing import Any, Dict, List, Literal

import structlog
from structlog.typing import EventDict, WrappedLogger

from gravatar_client.observability.context import current_trace_id

LIBRARY_NAME = "gravatar_client"

Renderer = Literal["json", "console"]


def inject_trace_id(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ``trace_id`` and ``lib`` to the event unless already present."""
    trace_id = current_trace_id()
    if trace_id is not None:
        event_dict.setdefault("trace_id", trace_id)
    event_dict.setdefault("lib", LIBRARY_NAME)
    return event_dict


def setup_logging(
    level: str = "INFO",
    renderer: Renderer = "json",
    timestamps: bool = True,
) -> None:
    """Configure structlog output for client events.

    Args:
        level: Minimum level name; unknown names fall back to INFO
        renderer: ``json`` for machine-readable lines, ``console`` for humans
        timestamps: Prefix events with an ISO-8601 UTC timestamp
    """
    min_level = logging.getLevelName(level.upper())
    if not isinstance(min_level, int):
        min_level = logging.INFO

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        inject_trace_id,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
    ]
    if timestamps:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if renderer == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def component_logger(component: str, **fields: Any) -> Any:
    """Logger bound to ``component`` plus any extra fields."""
    return structlog.get_logger().bind(component=component, **fields)


def tag_events(**fields: Any) -> None:
    """Attach fields to every event logged from the current context."""
    structlog.contextvars.bind_contextvars(**fields)


def untag_events(*names: str) -> None:
    """Remove context fields; with no names, remove all of them."""
    if names:
        structlog.contextvars.unbind_contextvars(*names)
    else:
        structlog.contextvars.clear_contextvars()


def bound_fields() -> Dict[str, Any]:
    """Fields currently attached with ``tag_events``."""
    return structlog.contextvars.get_contextvars()
