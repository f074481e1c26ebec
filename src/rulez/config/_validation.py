"""Semantic validation of a parsed policy document.

Pydantic already enforces the shape of the document. This module checks the
properties a schema cannot express: unique rule names, compilable regexes and
expressions, well-formed field paths, and mutually exclusive actions.
"""

import re
from dataclasses import dataclass
from typing import Any

from rulez.engine._expression import check_expression
from rulez.engine._regex import prepare_prompt_pattern
from rulez.enums import FieldType
from rulez.exceptions import ConfigValidationError

from ._models import Config, Rule

VERSION_PATTERN: re.Pattern[str] = re.compile(r"^\d+\.\d+\Z")
RULE_NAME_PATTERN: re.Pattern[str] = re.compile(r"^[a-zA-Z0-9_-]+\Z")


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Represents a configuration validation issue.

    Attributes:
        key: Dotted path to the offending key (e.g., "rules.block-rm.actions").
        message: Human-readable description of the issue.
        expected: Description of the expected value.
        actual: The value that caused the issue.
    """

    key: str
    message: str
    expected: str
    actual: Any  # pyright: ignore[reportExplicitAny]


def _regex_error(pattern: str) -> str | None:
    try:
        _ = re.compile(pattern)
    except re.error as e:
        return str(e)
    return None


def _field_path_error(path: str) -> str | None:
    if not path:
        return "cannot be empty"
    if path.startswith("."):
        return "cannot start with '.'"
    if path.endswith("."):
        return "cannot end with '.'"
    if ".." in path:
        return "cannot contain consecutive dots"
    return None


def _check_expressions(rule: Rule, key: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if rule.enabled_when is not None:
        error = check_expression(rule.enabled_when)
        if error is not None:
            issues.append(
                ValidationIssue(
                    key=f"{key}.enabled_when",
                    message=(
                        "Invalid enabled_when expression in rule "
                        f"'{rule.name}': {error}"
                    ),
                    expected="a valid expression",
                    actual=rule.enabled_when,
                )
            )

    actions = rule.actions
    if actions.validate_expr is not None and actions.inline_script is not None:
        issues.append(
            ValidationIssue(
                key=f"{key}.actions",
                message=(
                    f"Rule '{rule.name}' cannot have both validate_expr "
                    "and inline_script"
                ),
                expected="at most one of validate_expr, inline_script",
                actual=["validate_expr", "inline_script"],
            )
        )
    if actions.validate_expr is not None:
        error = check_expression(actions.validate_expr)
        if error is not None:
            issues.append(
                ValidationIssue(
                    key=f"{key}.actions.validate_expr",
                    message=f"Invalid validate_expr in rule '{rule.name}': {error}",
                    expected="a valid expression",
                    actual=actions.validate_expr,
                )
            )
    if actions.inline_script is not None and not actions.inline_script.strip():
        issues.append(
            ValidationIssue(
                key=f"{key}.actions.inline_script",
                message=f"Empty inline_script in rule '{rule.name}'",
                expected="a non-empty script",
                actual=actions.inline_script,
            )
        )
    return issues


def _check_regexes(rule: Rule, key: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    prompt_match = rule.matchers.prompt_match
    if prompt_match is not None:
        if not prompt_match.patterns:
            issues.append(
                ValidationIssue(
                    key=f"{key}.matchers.prompt_match.patterns",
                    message=(
                        "Empty patterns array in prompt_match for rule "
                        f"'{rule.name}'"
                    ),
                    expected="at least one pattern",
                    actual=[],
                )
            )
        for pattern in prompt_match.patterns:
            _, source = prepare_prompt_pattern(pattern, prompt_match.anchor)
            error = _regex_error(source)
            if error is not None:
                issues.append(
                    ValidationIssue(
                        key=f"{key}.matchers.prompt_match.patterns",
                        message=(
                            f"Invalid regex pattern '{pattern}' in prompt_match "
                            f"for rule '{rule.name}': {error}"
                        ),
                        expected="a valid regular expression",
                        actual=pattern,
                    )
                )

    named = (
        ("matchers.command_match", rule.matchers.command_match),
        ("actions.block_if_match", rule.actions.block_if_match),
    )
    for suffix, pattern in named:
        if pattern is None:
            continue
        error = _regex_error(pattern)
        if error is not None:
            field_name = suffix.rsplit(".", 1)[-1]
            issues.append(
                ValidationIssue(
                    key=f"{key}.{suffix}",
                    message=(
                        f"Invalid regex pattern '{pattern}' in {field_name} "
                        f"for rule '{rule.name}': {error}"
                    ),
                    expected="a valid regular expression",
                    actual=pattern,
                )
            )
    return issues


def _check_field_paths(rule: Rule, key: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    matchers = rule.matchers

    if matchers.require_fields is not None:
        if not matchers.require_fields:
            issues.append(
                ValidationIssue(
                    key=f"{key}.matchers.require_fields",
                    message=f"Empty require_fields array for rule '{rule.name}'",
                    expected="at least one field path",
                    actual=[],
                )
            )
        for path in matchers.require_fields:
            error = _field_path_error(path)
            if error is not None:
                issues.append(
                    ValidationIssue(
                        key=f"{key}.matchers.require_fields",
                        message=(
                            f"Invalid field path '{path}' in require_fields "
                            f"for rule '{rule.name}': {error}"
                        ),
                        expected="a dotted field path",
                        actual=path,
                    )
                )

    if matchers.field_types is not None:
        if not matchers.field_types:
            issues.append(
                ValidationIssue(
                    key=f"{key}.matchers.field_types",
                    message=f"Empty field_types map for rule '{rule.name}'",
                    expected="at least one field path",
                    actual={},
                )
            )
        allowed = {member.value for member in FieldType}
        for path, type_name in matchers.field_types.items():
            error = _field_path_error(path)
            if error is not None:
                issues.append(
                    ValidationIssue(
                        key=f"{key}.matchers.field_types",
                        message=(
                            f"Invalid field path '{path}' in field_types "
                            f"for rule '{rule.name}': {error}"
                        ),
                        expected="a dotted field path",
                        actual=path,
                    )
                )
            if type_name not in allowed:
                issues.append(
                    ValidationIssue(
                        key=f"{key}.matchers.field_types.{path}",
                        message=(
                            f"Invalid type '{type_name}' for field '{path}' "
                            f"in rule '{rule.name}'"
                        ),
                        expected=", ".join(sorted(allowed)),
                        actual=type_name,
                    )
                )
    return issues


def collect_issues(config: Config) -> list[ValidationIssue]:
    """Check a parsed configuration for semantic problems.

    Args:
        config: The configuration to check.

    Returns:
        List of ValidationIssue objects. Empty list indicates valid config.
    """
    issues: list[ValidationIssue] = []

    if not VERSION_PATTERN.match(config.version):
        issues.append(
            ValidationIssue(
                key="version",
                message=(
                    f"Invalid version format: {config.version}"
                    ' (quote it, e.g. version: "1.0")'
                ),
                expected='a quoted MAJOR.MINOR string, e.g. version: "1.0"',
                actual=config.version,
            )
        )

    seen: set[str] = set()
    for rule in config.rules:
        key = f"rules.{rule.name}"
        if rule.name in seen:
            issues.append(
                ValidationIssue(
                    key=key,
                    message=f"Duplicate rule name: {rule.name}",
                    expected="unique rule names",
                    actual=rule.name,
                )
            )
        seen.add(rule.name)

        if not RULE_NAME_PATTERN.match(rule.name):
            issues.append(
                ValidationIssue(
                    key=key,
                    message=f"Invalid rule name format: {rule.name!r}",
                    expected="letters, digits, '_' and '-' only",
                    actual=rule.name,
                )
            )

        issues.extend(_check_expressions(rule, key))
        issues.extend(_check_regexes(rule, key))
        issues.extend(_check_field_paths(rule, key))

    return issues


def validate_config(config: Config) -> None:
    """Validate a parsed configuration.

    Args:
        config: The configuration to validate.

    Raises:
        ConfigValidationError: For the first problem found.
    """
    issues = collect_issues(config)
    if not issues:
        return
    first = issues[0]
    source = str(config.source_file) if config.source_file is not None else None
    raise ConfigValidationError(
        first.message,
        key=first.key,
        value=first.actual,
        expected=first.expected,
        source=source,
    )
