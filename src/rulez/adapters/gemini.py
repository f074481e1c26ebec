"""Gemini CLI adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from rulez.enums import EventType

from ._base import ParsedEvent, VendorAdapter, context_object, is_tool_failure
from ._outputs import GeminiHookReply

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rulez.models import Response

HOOK_NAME_KEY: str = "gemini_hook_event_name"

TOOL_NAMES: dict[str, str] = {
    "run_shell_command": "Bash",
    "execute_code": "Bash",
    "write_file": "Write",
    "replace": "Edit",
    "read_file": "Read",
    "glob": "Glob",
    "search_file_content": "Grep",
    "grep_search": "Grep",
    "web_fetch": "WebFetch",
}

_SINGLE_EVENTS: dict[str, EventType] = {
    "BeforeTool": EventType.PRE_TOOL_USE,
    "AfterAgent": EventType.AFTER_AGENT,
    "BeforeModel": EventType.BEFORE_MODEL,
    "AfterModel": EventType.AFTER_MODEL,
    "BeforeToolSelection": EventType.BEFORE_TOOL_SELECTION,
    "SessionStart": EventType.SESSION_START,
    "SessionEnd": EventType.SESSION_END,
    "PreCompact": EventType.PRE_COMPACT,
}


def _is_tool_permission(
    tool_input: object,
    extra: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
) -> bool:
    """Check whether a notification asks for tool permission."""
    if isinstance(tool_input, dict):
        value = tool_input.get("notification_type")  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
        if isinstance(value, str):
            return value == "ToolPermission"
    return extra.get("notification_type") == "ToolPermission"


class GeminiAdapter(VendorAdapter):
    """Adapter for Gemini CLI hooks.

    Gemini replies never use an exit code to block; the decision is carried
    in the reply body.
    """

    name: ClassVar[str] = "gemini"
    hook_name_key: ClassVar[str] = HOOK_NAME_KEY
    tool_names: ClassVar[Mapping[str, str]] = TOOL_NAMES
    tool_event_names: ClassVar[frozenset[str]] = frozenset({"BeforeTool", "AfterTool"})

    def map_event_types(
        self,
        hook_event_name: str,
        tool_input: object,
        extra: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    ) -> list[EventType]:
        """Map a Gemini event name, adding dual-fire targets.

        AfterTool also fires PostToolUseFailure for a failed tool, BeforeAgent
        also fires UserPromptSubmit, and a ToolPermission notification also
        fires PermissionRequest.
        """
        match hook_event_name:
            case "AfterTool":
                types = [EventType.POST_TOOL_USE]
                if is_tool_failure(tool_input, extra):
                    types.append(EventType.POST_TOOL_USE_FAILURE)
                return types
            case "BeforeAgent":
                return [EventType.BEFORE_AGENT, EventType.USER_PROMPT_SUBMIT]
            case "Notification":
                types = [EventType.NOTIFICATION]
                if _is_tool_permission(tool_input, extra):
                    types.append(EventType.PERMISSION_REQUEST)
                return types
            case _:
                return [_SINGLE_EVENTS.get(hook_event_name, EventType.NOTIFICATION)]

    def translate_response(
        self, response: Response, parsed: ParsedEvent
    ) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Render a response as a Gemini reply.

        On tool events, context that is a JSON object replaces the tool input
        and is tagged with the Gemini event name; any other context becomes
        the system message. ``continue`` is false only for blocked non-tool
        events.
        """
        system_message: str | None = None
        tool_input: dict[str, Any] | None = None  # pyright: ignore[reportExplicitAny]
        if response.context is not None:
            if parsed.is_tool_event:
                tool_input = context_object(response.context)
            if tool_input is None:
                system_message = response.context
            else:
                _ = tool_input.setdefault(HOOK_NAME_KEY, parsed.hook_event_name)

        reply = GeminiHookReply(
            decision="deny" if response.blocked else "allow",
            reason=response.reason,
            continue_=False if response.blocked and not parsed.is_tool_event else None,
            system_message=system_message,
            tool_input=tool_input,
        )
        return reply.to_json_dict()

    def safe_reply(self, reason: str) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Build an allow reply carrying ``reason``."""
        return GeminiHookReply(decision="allow", reason=reason).to_json_dict()
