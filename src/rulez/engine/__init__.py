"""Rule evaluation engine.

This module provides the decision pipeline and its parts: the regex cache,
the expression evaluator, the matcher, the action executors and the audit
sinks.
"""

from ._actions import (
    ACTION_SEQUENCE,
    Action,
    ActionContext,
    FailurePolicy,
    RuleOutcome,
    execute_rule_actions,
    format_warning,
)
from ._audit import AuditSink, JsonlAuditSink, MemoryAuditSink, NullAuditSink
from ._expression import (
    ExpressionEvaluator,
    FunctionRegistry,
    adapt_event,
    check_expression,
    create_function_registry,
    evaluate_expression,
)
from ._matcher import (
    evaluate_matchers,
    is_rule_active,
    matches_prompt,
    rule_matches,
    validate_fields,
)
from ._pipeline import (
    ExecutionContext,
    PipelineResult,
    determine_decision,
    merge_responses,
    process_event,
    run_event,
    run_events,
)
from ._regex import RegexCache, expand_pattern, prepare_prompt_pattern, split_negation

__all__ = [
    "ACTION_SEQUENCE",
    "Action",
    "ActionContext",
    "AuditSink",
    "ExecutionContext",
    "ExpressionEvaluator",
    "FailurePolicy",
    "FunctionRegistry",
    "JsonlAuditSink",
    "MemoryAuditSink",
    "NullAuditSink",
    "PipelineResult",
    "RegexCache",
    "RuleOutcome",
    "adapt_event",
    "check_expression",
    "create_function_registry",
    "determine_decision",
    "evaluate_expression",
    "evaluate_matchers",
    "execute_rule_actions",
    "expand_pattern",
    "format_warning",
    "is_rule_active",
    "matches_prompt",
    "merge_responses",
    "prepare_prompt_pattern",
    "process_event",
    "rule_matches",
    "run_event",
    "run_events",
    "split_negation",
    "validate_fields",
]
