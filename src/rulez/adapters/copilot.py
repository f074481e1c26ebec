"""GitHub Copilot adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from rulez.enums import EventType

from ._base import ParsedEvent, VendorAdapter, context_object
from ._outputs import CopilotHookReply

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rulez.models import Response

HOOK_NAME_KEY: str = "copilot_hook_event_name"

TOOL_NAMES: dict[str, str] = {
    "shell": "Bash",
    "write": "Write",
    "edit": "Edit",
    "read": "Read",
    "glob": "Glob",
    "grep": "Grep",
    "task": "Task",
    "fetch": "WebFetch",
}

EVENT_TYPES: dict[str, EventType] = {
    "preToolUse": EventType.PRE_TOOL_USE,
    "postToolUse": EventType.POST_TOOL_USE,
    "promptSubmit": EventType.USER_PROMPT_SUBMIT,
    "sessionStart": EventType.SESSION_START,
    "sessionEnd": EventType.SESSION_END,
    "errorOccurred": EventType.POST_TOOL_USE_FAILURE,
    "preCompact": EventType.PRE_COMPACT,
}


class CopilotAdapter(VendorAdapter):
    """Adapter for GitHub Copilot hooks."""

    name: ClassVar[str] = "copilot"
    hook_name_key: ClassVar[str] = HOOK_NAME_KEY
    tool_names: ClassVar[Mapping[str, str]] = TOOL_NAMES
    tool_event_names: ClassVar[frozenset[str]] = frozenset(
        {"preToolUse", "postToolUse"}
    )

    def map_event_types(
        self,
        hook_event_name: str,
        tool_input: object,
        extra: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    ) -> list[EventType]:
        """Map a Copilot event name. Copilot events never dual-fire."""
        del tool_input, extra
        return [EVENT_TYPES.get(hook_event_name, EventType.NOTIFICATION)]

    def translate_response(
        self, response: Response, parsed: ParsedEvent
    ) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Render a response as a Copilot reply.

        The reason is only sent with a denial. On tool events, context that
        is a JSON object replaces the tool input.
        """
        tool_input = context_object(response.context) if parsed.is_tool_event else None
        reply = CopilotHookReply(
            permission_decision="deny" if response.blocked else "allow",
            permission_decision_reason=response.reason if response.blocked else None,
            tool_input=tool_input,
        )
        return reply.to_json_dict()

    def safe_reply(self, reason: str) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Build an allow reply carrying ``reason``."""
        return CopilotHookReply(
            permission_decision="allow", permission_decision_reason=reason
        ).to_json_dict()
