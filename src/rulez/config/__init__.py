"""RuleZ configuration.

This module provides the public API for policy configuration: loading the
hooks.yaml document, validating it, and typed access to its rules and
settings.

Example:
    >>> from rulez.config import load_config
    >>> config = load_config()
    >>> config.settings.fail_open
    True
"""

# Re-export exceptions from main exceptions module
from rulez.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
)

from ._load import (
    config_from_dict,
    find_config_file,
    load_config,
    load_config_file,
    parse_config,
    read_yaml_file,
)
from ._models import (
    DEFAULT_MAX_CONTEXT_SIZE,
    DEFAULT_PRIORITY,
    DEFAULT_SCRIPT_TIMEOUT,
    DEFAULT_VERSION,
    Actions,
    Config,
    GovernanceMetadata,
    Matchers,
    PromptMatch,
    Rule,
    RuleMetadata,
    RunAction,
    Settings,
)
from ._validation import ValidationIssue, collect_issues, validate_config

__all__ = [
    "DEFAULT_MAX_CONTEXT_SIZE",
    "DEFAULT_PRIORITY",
    "DEFAULT_SCRIPT_TIMEOUT",
    "DEFAULT_VERSION",
    "Actions",
    "Config",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "GovernanceMetadata",
    "Matchers",
    "PromptMatch",
    "Rule",
    "RuleMetadata",
    "RunAction",
    "Settings",
    "ValidationIssue",
    "collect_issues",
    "config_from_dict",
    "find_config_file",
    "load_config",
    "load_config_file",
    "parse_config",
    "read_yaml_file",
    "validate_config",
]
