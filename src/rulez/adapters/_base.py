"""Shared adapter plumbing.

An adapter turns one vendor hook payload into canonical events and turns the
pipeline's canonical Response back into the vendor's reply format. The vendor
adapters (Gemini, Copilot, OpenCode) share one parsing routine that differs
only in its lookup tables; the Claude adapter is native and parses directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

import orjson
from pydantic import ValidationError

from rulez.exceptions import EventParseError
from rulez.models import Event, Response, sanitize_payload

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from structlog.typing import FilteringBoundLogger

    from rulez.enums import EventType

type Evaluate = Callable[[Sequence[Event]], Response]

# Top-level keys every vendor payload maps onto Event fields
_VENDOR_FIELDS: frozenset[str] = frozenset(
    {
        "session_id",
        "hook_event_name",
        "timestamp",
        "tool_name",
        "tool_input",
        "cwd",
        "user_id",
        "transcript_path",
    }
)

PLATFORM_TOOL_NAME_KEY: str = "platform_tool_name"


@dataclass(frozen=True, slots=True)
class ParsedEvent:
    """Result of parsing one vendor payload.

    Attributes:
        event: The primary canonical event.
        additional: Dual-fire events evaluated after the primary one.
        hook_event_name: The event name exactly as the vendor sent it.
        is_tool_event: Whether the vendor event concerns a tool call.
    """

    event: Event
    hook_event_name: str
    is_tool_event: bool = False
    additional: tuple[Event, ...] = field(default_factory=tuple)

    @property
    def events(self) -> tuple[Event, ...]:
        """The primary event followed by its dual-fire companions."""
        return (self.event, *self.additional)


class Adapter(Protocol):
    """Translation between one platform's hook protocol and canonical events."""

    name: ClassVar[str]
    block_exit_code: ClassVar[int | None]

    def parse_event(
        self,
        payload: dict[str, Any],  # pyright: ignore[reportExplicitAny]
        *,
        logger: FilteringBoundLogger,
    ) -> ParsedEvent:
        """Parse a vendor payload.

        Raises:
            EventParseError: If a required field is missing or malformed.
        """
        ...

    def translate_response(
        self, response: Response, parsed: ParsedEvent
    ) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Render a canonical response in the vendor's reply format."""
        ...

    def safe_reply(self, reason: str) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Build the allow reply used when processing could not complete."""
        ...

    def dispatch(
        self,
        parsed: ParsedEvent,
        evaluate: Evaluate,
        *,
        logger: FilteringBoundLogger,
    ) -> Response:
        """Run the pipeline for a parsed event through ``evaluate``."""
        ...


def canonicalize_tool(name: str, table: Mapping[str, str]) -> tuple[str, str | None]:
    """Map a vendor tool name to its canonical name.

    Unknown names pass through unchanged. Canonical names are never keys of
    a table, so canonicalizing twice gives the same result.

    Returns:
        Tuple of (canonical name, original name if it was remapped else None).
    """
    canonical = table.get(name, name)
    return canonical, (name if canonical != name else None)


def wrap_tool_input(value: object) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Copy an object tool_input, or wrap any other value under ``tool_input``."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)  # pyright: ignore[reportUnknownArgumentType]
    return {"tool_input": value}


def is_tool_failure(
    tool_input: object,
    extra: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
) -> bool:
    """Check whether a tool result reports failure.

    A result failed when ``success`` is false or an ``error`` key is present,
    either inside tool_input or at the top level of the payload.
    """
    sources: list[Mapping[str, Any]] = [extra]  # pyright: ignore[reportExplicitAny]
    if isinstance(tool_input, dict):
        sources.insert(0, tool_input)  # pyright: ignore[reportUnknownArgumentType]
    return any(
        source.get("success") is False or "error" in source for source in sources
    )


def context_object(context: str | None) -> dict[str, Any] | None:  # pyright: ignore[reportExplicitAny]
    """Parse injected context as a JSON object, or return None if it is not one."""
    if context is None:
        return None
    try:
        value = orjson.loads(context)  # pyright: ignore[reportAny]
    except orjson.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None  # pyright: ignore[reportUnknownVariableType]


def require_string(
    payload: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    key: str,
    *,
    platform: str,
) -> str:
    """Return a required string field.

    Raises:
        EventParseError: If the field is missing or not a string.
    """
    value = payload.get(key)
    if value is None:
        raise EventParseError(
            f"Missing required field: {key}", platform=platform, field=key
        )
    if not isinstance(value, str):
        raise EventParseError(
            f"Field '{key}' must be a string, got {type(value).__name__}",
            platform=platform,
            field=key,
        )
    return value


def parse_error_from_validation(
    error: ValidationError, *, platform: str
) -> EventParseError:
    """Convert a pydantic validation failure into an EventParseError."""
    first = error.errors()[0]
    loc = first.get("loc", ())
    key = str(loc[0]) if loc else None
    if first.get("type") == "missing" and key is not None:
        message = f"Missing required field: {key}"
    else:
        message = f"Invalid {platform} event: {first.get('msg', str(error))}"
    return EventParseError(message, platform=platform, field=key, cause=error)


class BaseAdapter:
    """Behavior shared by every adapter."""

    name: ClassVar[str] = ""
    block_exit_code: ClassVar[int | None] = None

    def safe_reply(self, reason: str) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Build the allow reply used when processing could not complete."""
        return Response.allow(reason).to_json_dict()

    def dispatch(
        self,
        parsed: ParsedEvent,
        evaluate: Evaluate,
        *,
        logger: FilteringBoundLogger,
    ) -> Response:
        """Evaluate every event of ``parsed``."""
        del logger
        return evaluate(parsed.events)


class VendorAdapter(BaseAdapter):
    """Adapter for a platform whose payloads need translation.

    Subclasses supply the tool-name table, the vendor key that preserves the
    original event name, the set of tool event names, and the event mapping.
    """

    hook_name_key: ClassVar[str] = ""
    tool_names: ClassVar[Mapping[str, str]] = {}
    tool_event_names: ClassVar[frozenset[str]] = frozenset()

    def map_event_types(
        self,
        hook_event_name: str,
        tool_input: object,
        extra: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    ) -> list[EventType]:
        """Map a vendor event name to canonical event types.

        The first entry is the primary type; the rest are dual-fire targets.
        """
        raise NotImplementedError

    def parse_event(
        self,
        payload: dict[str, Any],  # pyright: ignore[reportExplicitAny]
        *,
        logger: FilteringBoundLogger,
    ) -> ParsedEvent:
        """Parse a vendor payload into canonical events.

        Unknown top-level fields are merged into tool_input without
        overwriting existing keys. When the vendor event name differs from
        the canonical one it is kept under ``hook_name_key``, and a remapped
        tool name is kept under ``platform_tool_name``.

        Raises:
            EventParseError: If session_id or hook_event_name is missing.
        """
        session_id = require_string(payload, "session_id", platform=self.name)
        hook_event_name = require_string(payload, "hook_event_name", platform=self.name)

        raw_input = payload.get("tool_input")
        extra = {k: v for k, v in payload.items() if k not in _VENDOR_FIELDS}
        event_types = self.map_event_types(hook_event_name, raw_input, extra)
        primary = event_types[0]

        tool_input = wrap_tool_input(raw_input)
        for key, value in extra.items():
            _ = tool_input.setdefault(key, value)
        if hook_event_name != primary.value:
            _ = tool_input.setdefault(self.hook_name_key, hook_event_name)

        tool_name: str | None = None
        raw_tool = payload.get("tool_name")
        if isinstance(raw_tool, str):
            tool_name, original = canonicalize_tool(raw_tool, self.tool_names)
            if original is not None:
                tool_input[PLATFORM_TOOL_NAME_KEY] = original

        prompt = extra.get("prompt")
        fields: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
            "hook_event_name": primary.value,
            "session_id": session_id,
            "tool_name": tool_name,
            "tool_input": tool_input or None,
            "timestamp": payload.get("timestamp"),
            "cwd": payload.get("cwd"),
            "user_id": payload.get("user_id"),
            "transcript_path": payload.get("transcript_path"),
            "prompt": prompt if isinstance(prompt, str) else None,
        }
        try:
            event = Event.model_validate(
                sanitize_payload({k: v for k, v in fields.items() if v is not None})
            )
        except ValidationError as e:
            raise parse_error_from_validation(e, platform=self.name) from e

        logger.debug(
            "event_parsed",
            platform=self.name,
            hook_event_name=hook_event_name,
            event_types=[t.value for t in event_types],
        )
        return ParsedEvent(
            event=event,
            hook_event_name=hook_event_name,
            is_tool_event=hook_event_name in self.tool_event_names,
            additional=tuple(event.with_event_type(t) for t in event_types[1:]),
        )
