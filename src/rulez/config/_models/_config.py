"""Top-level policy document models."""

from pathlib import Path  # noqa: TC003
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ._rules import Rule

DEFAULT_VERSION: str = "1.0"
DEFAULT_MAX_CONTEXT_SIZE: int = 1024 * 1024
DEFAULT_SCRIPT_TIMEOUT: int = 5


class Settings(BaseModel):
    """Global settings.

    Attributes:
        log_level: Level for the operational hooks log.
        log_max_bytes: Size of the hooks log before rotation.
        log_backup_count: Number of rotated hooks logs to keep.
        max_context_size: Largest injected context, in bytes.
        script_timeout: Default script timeout in seconds.
        fail_open: Whether execution failures degrade to allow (True) or
            block (False).
        debug_logs: Whether audit records carry the full debug trace.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    log_level: Literal["error", "warning", "warn", "info", "debug", "trace"] = Field(
        default="info", description="Log level for the operational hooks log."
    )
    log_max_bytes: int | None = Field(
        default=None,
        description=(
            "Maximum size of the hooks log in bytes before rotation. "
            "Must be set together with log_backup_count."
        ),
    )
    log_backup_count: int | None = Field(
        default=None,
        description=(
            "Number of rotated hooks logs to keep. "
            "Must be set together with log_max_bytes."
        ),
    )
    max_context_size: int = Field(
        default=DEFAULT_MAX_CONTEXT_SIZE,
        description="Maximum injected context size in bytes.",
    )
    script_timeout: int = Field(
        default=DEFAULT_SCRIPT_TIMEOUT,
        description="Default timeout in seconds for validator and inject scripts.",
    )
    fail_open: bool = Field(
        default=True,
        description="Degrade execution failures to allow instead of block.",
    )
    debug_logs: bool = Field(
        default=False, description="Include raw events and rule traces in audit logs."
    )


class Config(BaseModel):
    """A loaded and validated policy document."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    version: str = Field(default=DEFAULT_VERSION, description="MAJOR.MINOR version.")
    rules: list[Rule] = Field(default_factory=list, description="Ordered rules.")
    settings: Settings = Field(default_factory=Settings, description="Global settings.")

    # Source tracking field (set by loader, not user-specified)
    source_file: Path | None = Field(
        default=None, description="File this configuration was loaded from."
    )

    @field_validator("version", mode="before")
    @classmethod
    def _stringify_version(cls, value: object) -> object:
        # An unquoted 1.0 arrives as a float; 1.10 arrives as 1.1 and needs quoting
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_file(cls, path: Path) -> "Config":
        """Load and validate a configuration file.

        Args:
            path: The YAML file to read.

        Returns:
            The validated configuration.

        Raises:
            ConfigLoadError: If the file cannot be read or parsed.
            ConfigValidationError: If the content fails validation.
        """
        from rulez.config._load import load_config_file  # noqa: PLC0415

        return load_config_file(path)

    def enabled_rules(self) -> list[Rule]:
        """Rules enabled by metadata, highest effective priority first.

        Ties keep declaration order.
        """
        enabled = [rule for rule in self.rules if rule.is_enabled]
        return sorted(enabled, key=lambda rule: -rule.effective_priority)
