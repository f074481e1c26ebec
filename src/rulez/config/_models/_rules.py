"""Rule configuration models.

This module provides Pydantic models for policy rules: their matchers,
actions, priority and mode, and the governance metadata recorded in the
audit log.
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rulez.enums import Anchor, Confidence, MatchMode, PolicyMode, TrustLevel

DEFAULT_PRIORITY: int = 50


class PromptMatch(BaseModel):
    """Regex patterns matched against a submitted prompt.

    Accepts either a plain list of patterns (any-mode, case sensitive,
    unanchored) or a mapping with explicit options.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    patterns: list[str] = Field(
        default_factory=list,
        description=(
            "Regex patterns. Prefix with 'not:' to negate; "
            "'contains_word:<word>' matches a whole word."
        ),
    )
    mode: MatchMode = Field(
        default=MatchMode.ANY, description="Whether any or all patterns must match."
    )
    case_insensitive: bool = Field(
        default=False, description="Compile patterns case-insensitively."
    )
    anchor: Anchor | None = Field(
        default=None, description="Anchor patterns at start, end, or not at all."
    )


class RunAction(BaseModel):
    """External validator script reference."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    script: str = Field(..., description="Path of the validator script to execute.")
    trust: TrustLevel | None = Field(
        default=None, description="Declared provenance of the script."
    )


class Matchers(BaseModel):
    """Predicates selecting the events a rule applies to.

    Every configured predicate must hold; an absent predicate imposes no
    constraint.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    tools: list[str] | None = Field(default=None, description="Tool names to match.")
    extensions: list[str] | None = Field(
        default=None, description="File extensions to match, such as '.py'."
    )
    directories: list[str] | None = Field(
        default=None, description="Directory fragments the file path must contain."
    )
    operations: list[str] | None = Field(
        default=None, description="Event types the rule applies to."
    )
    command_match: str | None = Field(
        default=None, description="Regex searched in tool_input.command."
    )
    prompt_match: PromptMatch | None = Field(
        default=None, description="Patterns matched against the prompt."
    )
    require_fields: list[str] | None = Field(
        default=None, description="Dotted tool_input paths that must be present."
    )
    field_types: dict[str, str] | None = Field(
        default=None, description="Dotted tool_input paths and their required type."
    )

    @field_validator("prompt_match", mode="before")
    @classmethod
    def _expand_simple_prompt_match(cls, value: object) -> object:
        if isinstance(value, list):
            return {"patterns": value}
        return value


class Actions(BaseModel):
    """What a matching rule does."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    inject: str | None = Field(
        default=None, description="File whose contents are injected as context."
    )
    inject_inline: str | None = Field(
        default=None, description="Literal context to inject. Highest precedence."
    )
    inject_command: str | None = Field(
        default=None, description="Shell command whose stdout is injected."
    )
    run: RunAction | None = Field(
        default=None, description="Validator script executed with the event on stdin."
    )
    block: bool | None = Field(default=None, description="Unconditionally block.")
    block_if_match: str | None = Field(
        default=None, description="Block when written content or command matches."
    )
    validate_expr: str | None = Field(
        default=None, description="Expression that must evaluate true to proceed."
    )
    inline_script: str | None = Field(
        default=None, description="Shell script that must exit 0 to proceed."
    )

    @field_validator("run", mode="before")
    @classmethod
    def _expand_run_path(cls, value: object) -> object:
        if isinstance(value, str):
            return {"script": value}
        return value

    @property
    def trust_level(self) -> TrustLevel | None:
        """Trust level of the validator script, if one is configured."""
        if self.run is None:
            return None
        return self.run.trust or TrustLevel.LOCAL


class RuleMetadata(BaseModel):
    """Legacy per-rule tuning."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    priority: int | None = Field(default=None, description="Legacy priority.")
    timeout: int | None = Field(
        default=None, description="Script timeout in seconds for this rule."
    )
    enabled: bool = Field(default=True, description="Whether the rule is enabled.")


class GovernanceMetadata(BaseModel):
    """Provenance of a rule, copied into audit records."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    author: str | None = None
    created_by: str | None = None
    reason: str | None = None
    confidence: Confidence | None = None
    last_reviewed: str | None = None
    ticket: str | None = None
    tags: list[str] | None = None

    @field_validator("last_reviewed", "ticket", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        # YAML turns bare dates and numbers into non-string scalars
        if value is None or isinstance(value, str):
            return value
        return str(value)


class Rule(BaseModel):
    """A named policy rule."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., description="Unique rule name ([a-zA-Z0-9_-]+).")
    description: str | None = Field(default=None, description="What the rule does.")
    enabled_when: str | None = Field(
        default=None, description="Expression gating whether the rule is active."
    )
    matchers: Matchers = Field(
        default_factory=Matchers, description="Event selection predicates."
    )
    actions: Actions = Field(
        default_factory=Actions, description="Actions run when the rule matches."
    )
    priority: int | None = Field(
        default=None, description="Evaluation priority; higher runs first."
    )
    mode: PolicyMode | None = Field(
        default=None, description="enforce (default), warn or audit."
    )
    metadata: RuleMetadata | None = Field(default=None, description="Legacy tuning.")
    governance: GovernanceMetadata | None = Field(
        default=None, description="Provenance recorded in the audit log."
    )

    @field_validator("name", "description", mode="before")
    @classmethod
    def _stringify_numbers(cls, value: object) -> object:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def effective_priority(self) -> int:
        """Explicit priority, then legacy metadata priority, then the default."""
        if self.priority is not None:
            return self.priority
        if self.metadata is not None and self.metadata.priority is not None:
            return self.metadata.priority
        return DEFAULT_PRIORITY

    @property
    def effective_mode(self) -> PolicyMode:
        """Configured mode, defaulting to enforce."""
        return self.mode or PolicyMode.ENFORCE

    @property
    def is_enabled(self) -> bool:
        """Whether metadata leaves the rule enabled."""
        return self.metadata is None or self.metadata.enabled

    def timeout_seconds(self, default: int) -> int:
        """Script timeout for this rule, falling back to ``default``."""
        if self.metadata is not None and self.metadata.timeout is not None:
            return self.metadata.timeout
        return default

    def governance_summary(self) -> dict[str, Any] | None:  # pyright: ignore[reportExplicitAny]
        """Governance metadata as a plain dict for audit records."""
        if self.governance is None:
            return None
        return self.governance.model_dump(mode="json", exclude_none=True)
