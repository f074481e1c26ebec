"""Rule matching against canonical events.

This module decides whether a rule's matchers select an event and whether its
``enabled_when`` gate lets it run. Predicates are checked in a fixed order and
short-circuit on the first one that fails; the trace form evaluates every
configured predicate so the audit log can show which ones failed.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from rulez.enums import FieldType, MatchMode
from rulez.exceptions import ExpressionError
from rulez.models import MatcherResults, resolve_field_path

from ._expression import evaluate_expression
from ._regex import prepare_prompt_pattern

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from structlog.typing import FilteringBoundLogger

    from rulez.config._models import Matchers, PromptMatch, Rule
    from rulez.models import Event

    from ._regex import RegexCache


def _normalize_extension(extension: str) -> str:
    return extension if extension.startswith(".") else f".{extension}"


def _directory_fragment(directory: str) -> str:
    for suffix in ("/**", "/*"):
        if directory.endswith(suffix):
            return directory[: -len(suffix)]
    return directory


def _match_tools(matchers: Matchers, event: Event) -> bool:
    tools = matchers.tools or []
    return event.tool_name is not None and event.tool_name in tools


def _match_command(
    matchers: Matchers,
    event: Event,
    regex_cache: RegexCache,
    logger: FilteringBoundLogger,
) -> bool:
    command = event.command()
    if command is None or matchers.command_match is None:
        return False
    try:
        regex = regex_cache.get_or_compile(matchers.command_match)
    except re.error as e:
        logger.warning(
            "invalid_command_match_pattern",
            pattern=matchers.command_match,
            error=str(e),
        )
        return False
    return regex.search(command) is not None


def _match_extensions(matchers: Matchers, event: Event) -> bool:
    file_path = event.file_path()
    if file_path is None:
        return False
    suffix = PurePosixPath(file_path).suffix
    return any(_normalize_extension(ext) == suffix for ext in matchers.extensions or [])


def _match_directories(matchers: Matchers, event: Event) -> bool:
    file_path = event.file_path()
    if file_path is None:
        return False
    return any(
        _directory_fragment(directory) in file_path
        for directory in matchers.directories or []
    )


def _match_operations(matchers: Matchers, event: Event) -> bool:
    return event.event_type.value in (matchers.operations or [])


def matches_prompt(
    prompt: str,
    prompt_match: PromptMatch,
    *,
    regex_cache: RegexCache,
    logger: FilteringBoundLogger,
) -> bool:
    """Check prompt text against a prompt_match configuration.

    Each pattern is prepared (negation stripped, shorthand expanded, anchor
    applied) and searched in the prompt; negated results are inverted before
    the any/all combination. A pattern that fails to compile counts as a
    non-match.

    Args:
        prompt: The submitted prompt text.
        prompt_match: The configured patterns and options.
        regex_cache: Cache used to compile patterns.
        logger: Logger for invalid pattern warnings.

    Returns:
        True if the prompt satisfies the configuration.
    """
    if not prompt_match.patterns:
        return False

    results: list[bool] = []
    for pattern in prompt_match.patterns:
        negated, source = prepare_prompt_pattern(pattern, prompt_match.anchor)
        try:
            regex = regex_cache.get_or_compile(
                source, case_insensitive=prompt_match.case_insensitive
            )
        except re.error as e:
            logger.warning("invalid_prompt_pattern", pattern=pattern, error=str(e))
            results.append(False)
            continue
        matched = regex.search(prompt) is not None
        results.append(not matched if negated else matched)

    if prompt_match.mode == MatchMode.ALL:
        return all(results)
    return any(results)


def _match_prompt(
    matchers: Matchers,
    event: Event,
    regex_cache: RegexCache,
    logger: FilteringBoundLogger,
) -> bool:
    if event.prompt is None or matchers.prompt_match is None:
        return False
    return matches_prompt(
        event.prompt, matchers.prompt_match, regex_cache=regex_cache, logger=logger
    )


def _type_matches(value: Any, expected: str) -> bool:  # pyright: ignore[reportExplicitAny, reportAny]
    match expected:
        case FieldType.ANY:
            return True
        case FieldType.STRING:
            return isinstance(value, str)
        case FieldType.NUMBER:
            return isinstance(value, int | float) and not isinstance(value, bool)
        case FieldType.BOOLEAN:
            return isinstance(value, bool)
        case FieldType.ARRAY:
            return isinstance(value, list)
        case FieldType.OBJECT:
            return isinstance(value, dict)
        case _:
            return False


def _type_name(value: object) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "null"


def validate_fields(rule: Rule, event: Event, logger: FilteringBoundLogger) -> bool:
    """Check require_fields and field_types against the event's tool_input.

    Every configured path is checked before returning so that the warning
    lists all problems. Null values count as missing, and a field_types entry
    also requires the field to exist. Messages name types, never values.

    Returns:
        True if every field is present with the expected type.
    """
    matchers = rule.matchers
    if matchers.require_fields is None and matchers.field_types is None:
        return True

    tool_input = event.tool_input
    if tool_input is None:
        logger.warning(
            "field_validation_failed",
            rule=rule.name,
            errors=["tool_input is missing"],
        )
        return False

    field_types = matchers.field_types or {}
    paths = dict.fromkeys([*(matchers.require_fields or []), *field_types])

    errors: list[str] = []
    for path in paths:
        value = resolve_field_path(tool_input, path)
        if value is None:
            errors.append(f"field '{path}' is missing")
            continue
        expected = field_types.get(path)
        if expected is not None and not _type_matches(value, expected):
            errors.append(
                f"field '{path}' expected {expected}, got {_type_name(value)}"
            )

    if errors:
        logger.warning("field_validation_failed", rule=rule.name, errors=errors)
        return False
    return True


def _predicates(
    rule: Rule,
    event: Event,
    regex_cache: RegexCache,
    logger: FilteringBoundLogger,
) -> list[tuple[str, Callable[[], bool]]]:
    """Configured predicates in evaluation order, keyed by trace field."""
    matchers = rule.matchers
    checks: list[tuple[str, Callable[[], bool]]] = []
    if matchers.tools is not None:
        checks.append(("tools_matched", lambda: _match_tools(matchers, event)))
    if matchers.command_match is not None:
        checks.append(
            (
                "command_match_matched",
                lambda: _match_command(matchers, event, regex_cache, logger),
            )
        )
    if matchers.extensions is not None:
        checks.append(
            ("extensions_matched", lambda: _match_extensions(matchers, event))
        )
    if matchers.directories is not None:
        checks.append(
            ("directories_matched", lambda: _match_directories(matchers, event))
        )
    if matchers.operations is not None:
        checks.append(
            ("operations_matched", lambda: _match_operations(matchers, event))
        )
    if matchers.prompt_match is not None:
        checks.append(
            (
                "prompt_match_matched",
                lambda: _match_prompt(matchers, event, regex_cache, logger),
            )
        )
    if matchers.require_fields is not None or matchers.field_types is not None:
        checks.append(
            ("field_validation_matched", lambda: validate_fields(rule, event, logger))
        )
    return checks


def rule_matches(
    rule: Rule,
    event: Event,
    *,
    regex_cache: RegexCache,
    logger: FilteringBoundLogger,
) -> bool:
    """Check whether every configured matcher selects the event.

    Predicates run in the order tools, command_match, extensions,
    directories, operations, prompt_match, field validation, and stop at the
    first that fails. A rule with no matchers matches every event.
    """
    for name, check in _predicates(rule, event, regex_cache, logger):
        if not check():
            logger.debug("rule_matcher_failed", rule=rule.name, matcher=name)
            return False
    return True


def evaluate_matchers(
    rule: Rule,
    event: Event,
    *,
    regex_cache: RegexCache,
    logger: FilteringBoundLogger,
) -> tuple[bool, MatcherResults]:
    """Evaluate every configured matcher and report each result.

    Returns:
        Tuple of (overall match, per-matcher results). Unconfigured matchers
        are left as None in the results.
    """
    results: dict[str, bool] = {
        name: check() for name, check in _predicates(rule, event, regex_cache, logger)
    }
    return all(results.values()), MatcherResults(**results)


def is_rule_active(
    rule: Rule,
    event: Event,
    *,
    environ: Mapping[str, str] | None,
    logger: FilteringBoundLogger,
) -> bool:
    """Evaluate a rule's ``enabled_when`` gate.

    A rule without a gate is active. An evaluation error deactivates the rule
    and is logged as a warning.
    """
    if rule.enabled_when is None:
        return True
    try:
        result = evaluate_expression(rule.enabled_when, event, environ)
    except ExpressionError as e:
        logger.warning(
            "enabled_when_evaluation_failed",
            rule=rule.name,
            expression=rule.enabled_when,
            error=str(e),
        )
        return False
    logger.debug(
        "enabled_when_evaluated",
        rule=rule.name,
        expression=rule.enabled_when,
        result=result,
    )
    return result


