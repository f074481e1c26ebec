"""Audit log record models.

One ``LogEntry`` is produced per pipeline run and appended to the audit log
as a single JSON line. Fields marked debug-only are populated when debug
logging is enabled for the invocation.
"""

from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from rulez.enums import Decision, Outcome, PolicyMode, TrustLevel

from ._event import Event
from ._response import Response, Timing

_FILE_TOOLS: frozenset[str] = frozenset({"Write", "Edit", "Read"})
_SEARCH_TOOLS: frozenset[str] = frozenset({"Glob", "Grep"})


class EventDetails(BaseModel):
    """Tool-specific summary of an event for log readers."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    tool_type: str = Field(
        ..., description="Bash, Write, Edit, Read, Glob, Grep, Session or Unknown."
    )
    command: str | None = None
    file_path: str | None = None
    pattern: str | None = None
    path: str | None = None
    source: str | None = None
    reason: str | None = None
    tool_name: str | None = None

    @classmethod
    def extract(cls, event: Event) -> "EventDetails":
        """Summarize the parts of an event relevant to its tool."""
        tool_name = event.tool_name
        if tool_name == "Bash":
            return cls(tool_type="Bash", command=event.command())
        if tool_name in _FILE_TOOLS:
            return cls(tool_type=tool_name, file_path=event.file_path())
        if tool_name in _SEARCH_TOOLS:
            return cls(
                tool_type=tool_name,
                pattern=event.input_str("pattern"),
                path=event.input_str("path"),
            )
        if tool_name is None and event.event_type.startswith("Session"):
            return cls(
                tool_type="Session",
                source=event.input_str("source"),
                reason=event.input_str("reason"),
            )
        return cls(tool_type="Unknown", tool_name=tool_name)


class ResponseSummary(BaseModel):
    """Condensed view of the response that was returned."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, populate_by_name=True)

    continue_: bool = Field(..., alias="continue")
    reason: str | None = None
    context_length: int | None = None

    @classmethod
    def from_response(cls, response: Response) -> "ResponseSummary":
        """Summarize a response without copying injected context."""
        return cls(
            continue_=response.continue_,
            reason=response.reason,
            context_length=len(response.context) if response.context else None,
        )


class MatcherResults(BaseModel):
    """Per-matcher outcome for one rule.

    ``None`` means the matcher was not configured on the rule.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    tools_matched: bool | None = None
    command_match_matched: bool | None = None
    extensions_matched: bool | None = None
    directories_matched: bool | None = None
    operations_matched: bool | None = None
    prompt_match_matched: bool | None = None
    field_validation_matched: bool | None = None
    enabled_when_matched: bool | None = None


class RuleEvaluation(BaseModel):
    """Debug trace of one rule's evaluation."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    rule_name: str
    matched: bool
    matcher_results: MatcherResults = Field(default_factory=MatcherResults)


class LogEntry(BaseModel):
    """Structured audit record for one pipeline run."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    event_type: str
    session_id: str
    tool_name: str | None = None
    rules_matched: list[str] = Field(default_factory=list)
    outcome: Outcome
    timing: Timing = Field(default_factory=Timing)
    event_details: EventDetails | None = None
    response: ResponseSummary | None = None

    # Governance fields of the primary (highest-priority) matched rule
    mode: PolicyMode | None = None
    priority: int | None = None
    decision: Decision | None = None
    governance: dict[str, Any] | None = None  # pyright: ignore[reportExplicitAny]
    trust_level: TrustLevel | None = None

    # Debug-only
    raw_event: dict[str, Any] | None = None  # pyright: ignore[reportExplicitAny]
    rule_evaluations: list[RuleEvaluation] | None = None

    def to_json_line(self) -> str:
        """Serialize to one compact JSON line without a trailing newline."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
