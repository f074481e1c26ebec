"""RuleZ exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class RulezError(Exception):
    """Base exception for RuleZ errors."""


class ExpressionError(RulezError):
    """Raised when an expression is invalid or cannot be evaluated."""

    def __init__(
        self,
        message: str,
        *,
        expression: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and expression context."""
        super().__init__(message)
        self.expression: str = expression
        self.cause: Exception | None = cause


class ConfigError(RulezError):
    """Base exception for configuration errors.

    Configuration errors are always fatal for an invocation: a policy that
    cannot be loaded must never be evaluated, and the failure is never
    downgraded to an allow decision.
    """


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be read or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails structural or semantic validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected
        self.source: str | None = source


class EventError(RulezError):
    """Base exception for incoming event errors."""


class EventParseError(EventError):
    """Raised when an incoming hook payload cannot be turned into an event.

    Attributes:
        platform: The adapter that rejected the payload.
        field: The offending field, when the failure is a missing or
            malformed required field.
    """

    def __init__(
        self,
        message: str,
        *,
        platform: str,
        field: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and payload context.

        Args:
            message: Human-readable error message.
            platform: The adapter that rejected the payload.
            field: The offending field, if known.
            cause: The underlying exception, if any.
        """
        super().__init__(message)
        self.platform: str = platform
        self.field: str | None = field
        self.cause: Exception | None = cause


class AdapterNotFoundError(RulezError, KeyError):
    """Raised when no adapter is registered under the requested name."""

    def __init__(self, message: str, *, name: str) -> None:
        """Initialize with error message and the requested adapter name."""
        super().__init__(message)
        self.name: str = name

    def __str__(self) -> str:
        return str(self.args[0])
