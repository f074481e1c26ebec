"""Pydantic models for vendor hook replies."""

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ReplyModel(BaseModel):
    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel, populate_by_name=True
    )

    def to_json_dict(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Serialize to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_output_json(self) -> str:
        """Serialize to JSON string with camelCase keys."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class GeminiHookReply(_ReplyModel):
    """Reply to a Gemini CLI hook.

    ``continue`` is only emitted as false, for blocked non-tool events.
    """

    decision: Literal["allow", "deny"] = Field(
        ..., description="Permission decision: 'allow' or 'deny'"
    )
    reason: str | None = Field(
        default=None, description="Why the action was denied, or warnings"
    )
    continue_: bool | None = Field(
        default=None, alias="continue", description="False stops the agent"
    )
    system_message: str | None = Field(
        default=None, description="Context shown to the model"
    )
    tool_input: dict[str, Any] | None = Field(  # pyright: ignore[reportExplicitAny]
        default=None,
        alias="tool_input",
        description="Replacement tool input for tool events",
    )


class CopilotHookReply(_ReplyModel):
    """Reply to a GitHub Copilot hook."""

    permission_decision: Literal["allow", "deny"] = Field(
        ..., description="Permission decision: 'allow' or 'deny'"
    )
    permission_decision_reason: str | None = Field(
        default=None, description="Human-readable reason, only for denials"
    )
    tool_input: dict[str, Any] | None = Field(  # pyright: ignore[reportExplicitAny]
        default=None,
        alias="tool_input",
        description="Replacement tool input for tool events",
    )


class OpenCodeTool(_ReplyModel):
    """A tool the OpenCode plugin registers with the agent."""

    name: str = Field(..., description="Tool name")
    description: str = Field(..., description="What the tool does")


DEFAULT_OPENCODE_TOOLS: tuple[OpenCodeTool, ...] = (
    OpenCodeTool(name="rulez.check", description="Run a RuleZ policy check on demand"),
    OpenCodeTool(
        name="rulez.explain", description="Explain why a policy decision was made"
    ),
)


class OpenCodeHookReply(_ReplyModel):
    """Reply to an OpenCode plugin hook."""

    continue_: bool = Field(
        default=True, alias="continue", description="False blocks the action"
    )
    reason: str | None = Field(default=None, description="Why the action was blocked")
    context: str | None = Field(default=None, description="Context to inject")
    tools: list[OpenCodeTool] = Field(
        default_factory=lambda: list(DEFAULT_OPENCODE_TOOLS),
        description="Tools registered in the OpenCode environment",
    )
