"""Configuration models.

This module provides Pydantic models for the policy document, its rules
and its global settings.
"""

from rulez.config._models._config import (
    DEFAULT_MAX_CONTEXT_SIZE,
    DEFAULT_SCRIPT_TIMEOUT,
    DEFAULT_VERSION,
    Config,
    Settings,
)
from rulez.config._models._rules import (
    DEFAULT_PRIORITY,
    Actions,
    GovernanceMetadata,
    Matchers,
    PromptMatch,
    Rule,
    RuleMetadata,
    RunAction,
)

__all__ = [
    "DEFAULT_MAX_CONTEXT_SIZE",
    "DEFAULT_PRIORITY",
    "DEFAULT_SCRIPT_TIMEOUT",
    "DEFAULT_VERSION",
    "Actions",
    "Config",
    "GovernanceMetadata",
    "Matchers",
    "PromptMatch",
    "Rule",
    "RuleMetadata",
    "RunAction",
    "Settings",
]
