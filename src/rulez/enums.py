"""Enumeration types for RuleZ."""

from enum import StrEnum


class EventType(StrEnum):
    """Canonical hook event types.

    Every platform adapter resolves vendor event names into one of these.
    Names that no adapter table knows about resolve to NOTIFICATION.
    """

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    POST_TOOL_USE_FAILURE = "PostToolUseFailure"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"
    PRE_COMPACT = "PreCompact"
    BEFORE_AGENT = "BeforeAgent"
    AFTER_AGENT = "AfterAgent"
    BEFORE_MODEL = "BeforeModel"
    AFTER_MODEL = "AfterModel"
    BEFORE_TOOL_SELECTION = "BeforeToolSelection"
    NOTIFICATION = "Notification"
    PERMISSION_REQUEST = "PermissionRequest"

    @classmethod
    def parse(cls, name: str) -> "EventType":
        """Resolve an event name, falling back to NOTIFICATION.

        Args:
            name: The event name as it appears on the wire.

        Returns:
            The matching event type, or NOTIFICATION for unknown names.
        """
        try:
            return cls(name)
        except ValueError:
            return cls.NOTIFICATION


class PolicyMode(StrEnum):
    """How a matched rule's actions are applied."""

    ENFORCE = "enforce"
    WARN = "warn"
    AUDIT = "audit"


class Decision(StrEnum):
    """Governance decision recorded in the audit log."""

    ALLOWED = "allowed"
    BLOCKED = "blocked"
    WARNED = "warned"
    AUDITED = "audited"


class Outcome(StrEnum):
    """Overall outcome of one pipeline run."""

    ALLOW = "allow"
    BLOCK = "block"
    INJECT = "inject"


class TrustLevel(StrEnum):
    """Declared provenance of a validator script."""

    LOCAL = "local"
    VERIFIED = "verified"
    UNTRUSTED = "untrusted"


class MatchMode(StrEnum):
    """How multiple prompt patterns combine."""

    ANY = "any"
    ALL = "all"


class Anchor(StrEnum):
    """Where a prompt pattern is anchored."""

    START = "start"
    END = "end"
    CONTAINS = "contains"


class FieldType(StrEnum):
    """JSON value types accepted by the field_types matcher."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


class Confidence(StrEnum):
    """Author confidence recorded in governance metadata."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
