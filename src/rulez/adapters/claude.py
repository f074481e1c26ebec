"""Claude Code adapter.

Claude Code payloads are already canonical: the payload is the Event and the
reply is the Response. Structural deviations from the event schema are logged
and tolerated; only missing required fields are fatal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import ValidationError

from rulez.exceptions import EventParseError
from rulez.models import Event, sanitize_payload, schema_deviations

from ._base import BaseAdapter, ParsedEvent, parse_error_from_validation

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from rulez.models import Response


class ClaudeAdapter(BaseAdapter):
    """Adapter for Claude Code hooks."""

    name: ClassVar[str] = "claude"
    block_exit_code: ClassVar[int | None] = 2

    def parse_event(
        self,
        payload: dict[str, Any],  # pyright: ignore[reportExplicitAny]
        *,
        logger: FilteringBoundLogger,
    ) -> ParsedEvent:
        """Parse a Claude Code payload.

        ``hook_event_name`` may also be sent as ``event_type``.

        Raises:
            EventParseError: If the event name or session_id is missing.
        """
        deviations = schema_deviations(payload)
        if deviations:
            logger.warning(
                "event_schema_deviation", platform=self.name, deviations=deviations
            )

        hook_event_name = payload.get("hook_event_name", payload.get("event_type"))
        if hook_event_name is None:
            raise EventParseError(
                "Missing required field: hook_event_name",
                platform=self.name,
                field="hook_event_name",
            )

        try:
            event = Event.model_validate(sanitize_payload(payload))
        except ValidationError as e:
            raise parse_error_from_validation(e, platform=self.name) from e

        return ParsedEvent(
            event=event,
            hook_event_name=str(hook_event_name),  # pyright: ignore[reportAny]
            is_tool_event=event.tool_name is not None,
        )

    def translate_response(
        self, response: Response, parsed: ParsedEvent
    ) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Return the canonical Response as the reply."""
        del parsed
        return response.to_json_dict()
