"""Expression evaluation for rule gates.

This module provides the evaluator behind ``enabled_when`` and
``validate_expr``, using rule-engine as the underlying expression parser and
evaluator with RuleZ-specific variables and functions.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import rule_engine
import rule_engine.builtins as rule_builtins
from rule_engine import errors as rule_errors

from rulez.exceptions import ExpressionError
from rulez.models import resolve_field_path

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from rulez.models import Event

ENV_PREFIX: str = "env_"


class GetFieldFunction:
    """Return a scalar tool_input value by dotted path, or "" if absent.

    Only strings, numbers and booleans are returned; objects, arrays and
    nulls read as "" so that comparisons stay well-typed.
    """

    def __init__(self, tool_input: Mapping[str, Any] | None) -> None:  # pyright: ignore[reportExplicitAny]
        self._tool_input: Mapping[str, Any] | None = tool_input  # pyright: ignore[reportExplicitAny]

    def __call__(self, path: object) -> object:
        if self._tool_input is None or not isinstance(path, str):
            return ""
        value = resolve_field_path(dict(self._tool_input), path)
        if isinstance(value, str | bool | int | float):
            return value
        return ""


class HasFieldFunction:
    """Return whether a dotted tool_input path resolves to a non-null value."""

    def __init__(self, tool_input: Mapping[str, Any] | None) -> None:  # pyright: ignore[reportExplicitAny]
        self._tool_input: Mapping[str, Any] | None = tool_input  # pyright: ignore[reportExplicitAny]

    def __call__(self, path: object) -> bool:
        if self._tool_input is None or not isinstance(path, str):
            return False
        return resolve_field_path(dict(self._tool_input), path) is not None


@dataclass(frozen=True, slots=True)
class FunctionRegistry:
    """Registry of custom expression functions.

    Provides lookup for custom functions by name (without the $ prefix).
    """

    _functions: dict[str, Callable[..., object]] = field(default_factory=dict)

    def get(self, name: str) -> Callable[..., object] | None:
        """Get function by name (without $ prefix)."""
        return self._functions.get(name)

    def all_functions(self) -> dict[str, Callable[..., object]]:
        """Get all registered functions as a copy."""
        return dict(self._functions)


def create_function_registry(event: Event | None = None) -> FunctionRegistry:
    """Create a registry with the field inspection functions.

    Args:
        event: Event whose tool_input the functions read. When None, the
            functions behave as if tool_input were absent, which is enough
            for syntax validation.

    Returns:
        A FunctionRegistry with ``get_field`` and ``has_field``.
    """
    tool_input = event.tool_input if event is not None else None
    functions: dict[str, Callable[..., object]] = {
        "get_field": GetFieldFunction(tool_input),
        "has_field": HasFieldFunction(tool_input),
    }
    return FunctionRegistry(_functions=functions)


def adapt_event(
    event: Event,
    environ: Mapping[str, str] | None = None,
) -> dict[str, object]:
    """Convert an Event into expression variables.

    Every environment variable is exposed as ``env_<NAME>``. ``tool_name``
    is "" when the event has no tool so that equality tests never fail on
    null.

    Args:
        event: The event to adapt.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        A dictionary suitable for rule-engine evaluation.
    """
    env = os.environ if environ is None else environ
    result: dict[str, object] = {
        f"{ENV_PREFIX}{key}": value for key, value in env.items()
    }
    result["tool_name"] = event.tool_name or ""
    result["event_type"] = event.event_type.value
    result["prompt"] = event.prompt or ""
    result["session_id"] = event.session_id
    result["cwd"] = event.cwd
    result["permission_mode"] = event.permission_mode
    result["tool_input"] = event.tool_input
    return result


def _create_rule_context(registry: FunctionRegistry) -> rule_engine.Context:
    """Create a rule-engine Context with custom function support.

    Custom functions are registered as builtins (``$has_field(...)``) and are
    also resolvable without the $ prefix (``has_field(...)``).
    """
    functions = registry.all_functions()

    def resolver(thing: dict[str, Any], name: str) -> object:  # pyright: ignore[reportExplicitAny]
        if name in functions:
            return functions[name]
        return thing.get(name)

    ctx = rule_engine.Context(
        resolver=resolver,
        default_value=None,
    )
    ctx.builtins = rule_builtins.Builtins.from_defaults(
        values=functions,
    )
    return ctx


@dataclass(frozen=True, slots=True)
class ExpressionEvaluator:
    """Evaluates a boolean expression against event variables.

    Compiles an expression string once at creation time and can evaluate
    it against multiple variable sets.
    """

    expression: str
    _rule: rule_engine.Rule | None = field(default=None, repr=False, compare=False)

    @classmethod
    def compile(
        cls,
        expression: str,
        registry: FunctionRegistry | None = None,
    ) -> ExpressionEvaluator:
        """Compile an expression string.

        Args:
            expression: The expression to compile. Empty/whitespace returns
                an evaluator that always matches.
            registry: Function registry for custom functions.

        Returns:
            An ExpressionEvaluator instance.

        Raises:
            ExpressionError: If the expression is syntactically invalid.
        """
        if not expression.strip():
            return cls(expression=expression, _rule=None)

        rule_context = _create_rule_context(registry or create_function_registry())

        try:
            rule = rule_engine.Rule(expression, context=rule_context)
        except rule_errors.RuleSyntaxError as e:
            msg = f"Invalid expression syntax: {e.message}"
            raise ExpressionError(msg, expression=expression, cause=e) from e
        except rule_errors.SymbolResolutionError as e:
            msg = f"Unknown symbol in expression: {e.symbol_name}"
            raise ExpressionError(msg, expression=expression, cause=e) from e
        except rule_errors.EngineError as e:
            msg = f"Invalid expression: {e.message}"
            raise ExpressionError(msg, expression=expression, cause=e) from e
        return cls(expression=expression, _rule=rule)

    def evaluate(self, variables: Mapping[str, object]) -> bool:
        """Evaluate the expression against the given variables.

        Args:
            variables: Expression variables, normally from ``adapt_event``.

        Returns:
            The truthiness of the result (True for an empty expression).

        Raises:
            ExpressionError: If evaluation fails.
        """
        if self._rule is None:
            return True

        try:
            return bool(self._rule.evaluate(dict(variables)))
        except rule_errors.EvaluationError as e:
            msg = f"Expression evaluation failed: {e.message}"
            raise ExpressionError(msg, expression=self.expression, cause=e) from e


def evaluate_expression(
    expression: str,
    event: Event,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Compile and evaluate an expression against one event.

    Args:
        expression: The expression to evaluate.
        event: The event supplying variables and field functions.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        True if the expression holds, False otherwise.

    Raises:
        ExpressionError: If the expression is invalid or evaluation fails.
    """
    evaluator = ExpressionEvaluator.compile(expression, create_function_registry(event))
    return evaluator.evaluate(adapt_event(event, environ))


def check_expression(expression: str) -> str | None:
    """Validate expression syntax without evaluating it.

    Returns:
        The error message if the expression is invalid, None otherwise.
    """
    try:
        _ = ExpressionEvaluator.compile(expression)
    except ExpressionError as e:
        return str(e)
    return None
