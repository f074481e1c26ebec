"""Canonical hook event model.

Every platform adapter normalizes its vendor payload into an ``Event``; the
matcher engine and the decision pipeline only ever see this type.
"""

from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from rulez.enums import EventType

# Optional top-level keys and the JSON types they must carry
_OPTIONAL_STRING_FIELDS: tuple[str, ...] = (
    "tool_name",
    "user_id",
    "cwd",
    "transcript_path",
    "permission_mode",
    "tool_use_id",
    "prompt",
)

_KNOWN_FIELDS: frozenset[str] = frozenset(
    {
        "hook_event_name",
        "event_type",
        "session_id",
        "tool_input",
        "timestamp",
        *_OPTIONAL_STRING_FIELDS,
    }
)


def resolve_field_path(data: object, path: str) -> Any:  # pyright: ignore[reportExplicitAny]
    """Resolve a dotted path against nested mappings.

    Args:
        data: The root value, normally an event's ``tool_input``.
        path: Dot-separated key path such as ``"user.address.city"``.

    Returns:
        The value at the path, or None if any segment is missing or a
        non-mapping is traversed.
    """
    current: object = data
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
        if current is None:
            return None
    return current


def _parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string or epoch seconds, returning None if invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


class Event(BaseModel):
    """A vendor-agnostic hook occurrence.

    Built once per invocation by an adapter and never mutated afterwards.
    ``tool_input`` keeps vendor keys verbatim and in their original order.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    event_type: EventType = Field(
        ...,
        validation_alias=AliasChoices("hook_event_name", "event_type"),
        serialization_alias="hook_event_name",
        description="Canonical event type.",
    )
    session_id: str = Field(..., description="Agent session identifier.")
    tool_name: str | None = Field(
        default=None, description="Canonical tool name, when the event has one."
    )
    tool_input: dict[str, Any] | None = Field(  # pyright: ignore[reportExplicitAny]
        default=None, description="Untyped tool arguments with vendor keys preserved."
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(tz=UTC),
        description="When the event occurred; defaults to the time of parsing.",
    )
    user_id: str | None = Field(default=None, description="User identifier.")
    cwd: str | None = Field(default=None, description="Working directory.")
    transcript_path: str | None = Field(
        default=None, description="Path to the session transcript."
    )
    permission_mode: str | None = Field(
        default=None, description="Permission mode reported by the agent."
    )
    tool_use_id: str | None = Field(default=None, description="Tool call identifier.")
    prompt: str | None = Field(default=None, description="Submitted prompt text.")

    @field_validator("event_type", mode="before")
    @classmethod
    def _resolve_event_type(cls, value: object) -> object:
        if isinstance(value, str):
            return EventType.parse(value)
        return value

    def input_value(self, path: str) -> Any:  # pyright: ignore[reportExplicitAny]
        """Return the tool_input value at a dotted path, or None."""
        if self.tool_input is None:
            return None
        return resolve_field_path(self.tool_input, path)

    def input_str(self, key: str) -> str | None:
        """Return a top-level tool_input string, or None if absent or not a string."""
        if self.tool_input is None:
            return None
        value = self.tool_input.get(key)
        return value if isinstance(value, str) else None

    def file_path(self) -> str | None:
        """Return the target file path, preferring ``filePath`` over ``file_path``."""
        return self.input_str("filePath") or self.input_str("file_path")

    def command(self) -> str | None:
        """Return the shell command carried in ``tool_input.command``."""
        return self.input_str("command")

    def with_event_type(self, event_type: EventType) -> "Event":
        """Return a copy of this event re-typed for dual-fire evaluation."""
        return self.model_copy(update={"event_type": event_type})

    def to_json_dict(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Serialize to a JSON-compatible dict keyed by ``hook_event_name``."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def schema_deviations(payload: dict[str, Any]) -> list[str]:  # pyright: ignore[reportExplicitAny]
    """Describe structural deviations of a payload from the Event schema.

    Deviations are advisory. Callers log them and keep processing; only the
    absence of required fields makes a payload unusable.

    Args:
        payload: The raw event payload.

    Returns:
        Human-readable deviation messages, empty when the payload conforms.
    """
    issues: list[str] = []
    for key in payload:
        if key not in _KNOWN_FIELDS:
            issues.append(f"unexpected field '{key}'")
    for key in _OPTIONAL_STRING_FIELDS:
        value = payload.get(key)
        if value is not None and not isinstance(value, str):
            issues.append(
                f"field '{key}' should be a string, got {type(value).__name__}"
            )
    if "timestamp" in payload and _parse_timestamp(payload["timestamp"]) is None:
        issues.append("field 'timestamp' is not a valid timestamp")
    tool_input = payload.get("tool_input")
    if tool_input is not None and not isinstance(tool_input, dict):
        issues.append(
            f"field 'tool_input' should be an object, got {type(tool_input).__name__}"
        )
    return issues


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Coerce optional fields so that type deviations never reject an event.

    Optional string fields carrying another JSON type are dropped, and a
    non-object ``tool_input`` is wrapped as ``{"tool_input": value}``.
    Required fields are left untouched so that their absence still fails.

    Args:
        payload: The raw event payload.

    Returns:
        A new payload dict safe to validate into an Event.
    """
    cleaned = dict(payload)
    for key in _OPTIONAL_STRING_FIELDS:
        value = cleaned.get(key)
        if value is not None and not isinstance(value, str):
            del cleaned[key]
    if "timestamp" in cleaned and _parse_timestamp(cleaned["timestamp"]) is None:
        del cleaned["timestamp"]
    tool_input = cleaned.get("tool_input")
    if tool_input is not None and not isinstance(tool_input, dict):
        cleaned["tool_input"] = {"tool_input": tool_input}
    return cleaned
