"""Canonical decision returned by the pipeline."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class Timing(BaseModel):
    """Processing time and rule count for one decision."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    processing_ms: int = Field(default=0, description="Wall-clock processing time.")
    rules_evaluated: int = Field(
        default=0, description="Number of enabled rules considered."
    )


class Response(BaseModel):
    """Allow, block, or allow-with-context decision for one event.

    ``continue_`` is serialized as ``continue``; False means the action is
    blocked and ``reason`` explains why.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, populate_by_name=True)

    continue_: bool = Field(
        default=True, alias="continue", description="False blocks the action."
    )
    context: str | None = Field(
        default=None, description="Context to inject into the agent conversation."
    )
    reason: str | None = Field(
        default=None, description="Why the action was blocked, or warnings on allow."
    )
    timing: Timing | None = Field(default=None, description="Processing metrics.")

    @classmethod
    def allow(cls, reason: str | None = None) -> "Response":
        """Create an allow response, optionally carrying an advisory reason."""
        return cls(continue_=True, reason=reason)

    @classmethod
    def block(cls, reason: str) -> "Response":
        """Create a blocking response."""
        return cls(continue_=False, reason=reason)

    @classmethod
    def inject(cls, context: str) -> "Response":
        """Create an allow response that injects context."""
        return cls(continue_=True, context=context)

    @property
    def blocked(self) -> bool:
        """Whether this response blocks the action."""
        return not self.continue_

    def to_json_dict(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Serialize to a JSON-compatible dict with the ``continue`` key."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_output_json(self) -> str:
        """Serialize to a JSON string with the ``continue`` key."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
