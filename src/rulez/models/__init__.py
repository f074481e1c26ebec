"""Canonical data model: events, responses and audit records."""

from ._event import Event, resolve_field_path, sanitize_payload, schema_deviations
from ._log import (
    EventDetails,
    LogEntry,
    MatcherResults,
    ResponseSummary,
    RuleEvaluation,
)
from ._response import Response, Timing

__all__ = [
    "Event",
    "EventDetails",
    "LogEntry",
    "MatcherResults",
    "Response",
    "ResponseSummary",
    "RuleEvaluation",
    "Timing",
    "resolve_field_path",
    "sanitize_payload",
    "schema_deviations",
]
