"""Logging setup and trace IDs for the Gravatar client."""

from gravatar_client.observability.context import (
    current_trace_id,
    inherit_or_start_trace,
    new_trace_id,
    trace_scope,
)
from gravatar_client.observability.logging import (
    bound_fields,
    component_logger,
    inject_trace_id,
    setup_logging,
    tag_events,
    untag_events,
)

__all__ = [
    "current_trace_id",
    "inherit_or_start_trace",
    "new_trace_id",
    "trace_scope",
    "bound_fields",
    "component_logger",
    "inject_trace_id",
    "setup_logging",
    "tag_events",
    "untag_events",
]
