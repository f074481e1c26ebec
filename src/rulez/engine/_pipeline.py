"""Decision pipeline.

This module evaluates the enabled rules of a loaded policy against one event
in priority order, runs the actions of each matching rule, and produces the
Response returned to the platform together with the audit LogEntry.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rulez.enums import Decision, Outcome, PolicyMode
from rulez.models import (
    EventDetails,
    LogEntry,
    MatcherResults,
    Response,
    ResponseSummary,
    RuleEvaluation,
    Timing,
)
from rulez.utils import truncate_output

from ._actions import ActionContext, FailurePolicy, RuleOutcome, execute_rule_actions
from ._audit import AuditSink, NullAuditSink
from ._matcher import evaluate_matchers, is_rule_active, rule_matches
from ._regex import RegexCache

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from structlog.typing import FilteringBoundLogger

    from rulez.config._models import Config, Rule
    from rulez.models import Event

CONTEXT_SEPARATOR: str = "\n\n"


@dataclass(slots=True)
class ExecutionContext:
    """Per-process state shared by every pipeline run.

    Attributes:
        logger: Operational logger.
        regex_cache: Compiled pattern cache.
        audit_sink: Destination for audit records.
        debug: Whether audit records carry the raw event and rule trace.
        environ: Environment for expressions, or None for ``os.environ``.
    """

    logger: FilteringBoundLogger
    regex_cache: RegexCache = field(default_factory=RegexCache)
    audit_sink: AuditSink = field(default_factory=NullAuditSink)
    debug: bool = False
    environ: Mapping[str, str] | None = None


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of one pipeline run.

    Attributes:
        response: The decision returned to the platform.
        log_entry: The audit record emitted for the run.
    """

    response: Response
    log_entry: LogEntry


def determine_decision(response: Response, mode: PolicyMode) -> Decision:
    """Classify a response for the audit log from the primary rule's mode."""
    if mode == PolicyMode.AUDIT:
        return Decision.AUDITED
    if mode == PolicyMode.WARN:
        return Decision.WARNED if response.context is not None else Decision.ALLOWED
    return Decision.BLOCKED if response.blocked else Decision.ALLOWED


def _outcome_of(response: Response) -> Outcome:
    if response.blocked:
        return Outcome.BLOCK
    if response.context is not None:
        return Outcome.INJECT
    return Outcome.ALLOW


def _finalize_context(
    contexts: list[str],
    outcome: RuleOutcome,
    *,
    max_size: int,
    policy: FailurePolicy,
    logger: FilteringBoundLogger,
) -> str | None:
    """Join context fragments and enforce the size limit.

    An oversized context is an execution failure: fail-open truncates it,
    fail-closed blocks through ``outcome``.
    """
    if not contexts:
        return None
    context = CONTEXT_SEPARATOR.join(contexts)
    size = len(context.encode("utf-8"))
    if size <= max_size:
        return context
    policy.handle(
        f"Injected context of {size} bytes exceeds max_context_size ({max_size})",
        rule_name=None,
        outcome=outcome,
        logger=logger,
    )
    if outcome.blocked:
        return None
    return truncate_output(context, max_size)


def _build_response(
    block_reason: str | None,
    context: str | None,
    warnings: list[str],
) -> Response:
    if block_reason is not None:
        return Response.block(block_reason)
    reason = "; ".join(warnings) if warnings else None
    return Response(continue_=True, context=context, reason=reason)


def process_event(
    event: Event, config: Config, context: ExecutionContext
) -> PipelineResult:
    """Evaluate a policy against one event.

    Enabled rules are visited by descending effective priority. A rule is
    skipped when its ``enabled_when`` gate is false or its matchers do not
    select the event. The first block stops evaluation and discards any
    context gathered so far; otherwise context fragments accumulate in order.

    Args:
        event: The canonical event.
        config: The loaded and validated policy.
        context: Shared execution state.

    Returns:
        The response and the audit record, which has already been written to
        the context's audit sink.
    """
    start = time.perf_counter()
    logger = context.logger
    settings = config.settings
    policy = FailurePolicy(fail_open=settings.fail_open)
    rules = config.enabled_rules()

    matched: list[Rule] = []
    evaluations: list[RuleEvaluation] = []
    contexts: list[str] = []
    warnings: list[str] = []
    block_reason: str | None = None

    for rule in rules:
        if not is_rule_active(rule, event, environ=context.environ, logger=logger):
            logger.debug("rule_skipped_inactive", rule=rule.name)
            if context.debug:
                evaluations.append(
                    RuleEvaluation(
                        rule_name=rule.name,
                        matched=False,
                        matcher_results=MatcherResults(enabled_when_matched=False),
                    )
                )
            continue

        if context.debug:
            is_match, results = evaluate_matchers(
                rule, event, regex_cache=context.regex_cache, logger=logger
            )
            if rule.enabled_when is not None:
                results = results.model_copy(update={"enabled_when_matched": True})
            evaluations.append(
                RuleEvaluation(
                    rule_name=rule.name, matched=is_match, matcher_results=results
                )
            )
        else:
            is_match = rule_matches(
                rule, event, regex_cache=context.regex_cache, logger=logger
            )

        if not is_match:
            continue

        matched.append(rule)
        logger.info(
            "rule_matched",
            rule=rule.name,
            priority=rule.effective_priority,
            mode=rule.effective_mode.value,
        )

        outcome = execute_rule_actions(
            ActionContext(
                event=event,
                rule=rule,
                settings=settings,
                policy=policy,
                regex_cache=context.regex_cache,
                logger=logger,
                environ=context.environ,
            )
        )
        warnings.extend(outcome.warnings)
        if outcome.blocked:
            block_reason = outcome.block_reason
            logger.info("rule_blocked", rule=rule.name, reason=block_reason)
            break
        contexts.extend(outcome.contexts)

    final_context: str | None = None
    if block_reason is None:
        size_outcome = RuleOutcome()
        final_context = _finalize_context(
            contexts,
            size_outcome,
            max_size=settings.max_context_size,
            policy=policy,
            logger=logger,
        )
        warnings.extend(size_outcome.warnings)
        block_reason = size_outcome.block_reason

    timing = Timing(
        processing_ms=int((time.perf_counter() - start) * 1000),
        rules_evaluated=len(rules),
    )
    response = _build_response(block_reason, final_context, warnings).model_copy(
        update={"timing": timing}
    )

    entry = _build_log_entry(
        event, response, matched, evaluations, timing=timing, debug=context.debug
    )
    context.audit_sink.write(entry)
    logger.debug(
        "event_processed",
        event_type=event.event_type.value,
        outcome=entry.outcome.value,
        rules_matched=entry.rules_matched,
        processing_ms=timing.processing_ms,
    )
    return PipelineResult(response=response, log_entry=entry)


def _build_log_entry(
    event: Event,
    response: Response,
    matched: list[Rule],
    evaluations: list[RuleEvaluation],
    *,
    timing: Timing,
    debug: bool,
) -> LogEntry:
    primary = matched[0] if matched else None
    mode = primary.effective_mode if primary is not None else None
    return LogEntry(
        timestamp=event.timestamp,
        event_type=event.event_type.value,
        session_id=event.session_id,
        tool_name=event.tool_name,
        rules_matched=[rule.name for rule in matched],
        outcome=_outcome_of(response),
        timing=timing,
        event_details=EventDetails.extract(event),
        response=ResponseSummary.from_response(response),
        mode=mode,
        priority=primary.effective_priority if primary is not None else None,
        decision=determine_decision(response, mode) if mode is not None else None,
        governance=primary.governance_summary() if primary is not None else None,
        trust_level=primary.actions.trust_level if primary is not None else None,
        raw_event=event.to_json_dict() if debug else None,
        rule_evaluations=evaluations if debug else None,
    )


def merge_responses(responses: Sequence[Response]) -> Response:
    """Combine the responses of dual-fired events.

    Any block wins and its reason is used. Otherwise contexts and reasons are
    joined in order and the timings summed.
    """
    for response in responses:
        if response.blocked:
            return response

    contexts = [r.context for r in responses if r.context]
    reasons = [r.reason for r in responses if r.reason]
    timings = [r.timing for r in responses if r.timing is not None]
    timing = (
        Timing(
            processing_ms=sum(t.processing_ms for t in timings),
            rules_evaluated=max(t.rules_evaluated for t in timings),
        )
        if timings
        else None
    )
    return Response(
        continue_=True,
        context=CONTEXT_SEPARATOR.join(contexts) if contexts else None,
        reason="; ".join(reasons) if reasons else None,
        timing=timing,
    )


def run_events(
    events: Sequence[Event],
    config: Config,
    context: ExecutionContext,
) -> Response:
    """Run the pipeline once per event and merge the responses.

    Events run sequentially and evaluation stops at the first block, so a
    blocked primary event never fires its dual-fire companions.
    """
    responses: list[Response] = []
    for event in events:
        result = process_event(event, config, context)
        responses.append(result.response)
        if result.response.blocked:
            break
    return merge_responses(responses)


def run_event(
    events: Sequence[Event],
    context: ExecutionContext,
    *,
    config: Config | None = None,
) -> Response:
    """Load the policy for the events' project and run the pipeline.

    The policy is loaded from the first event's ``cwd`` when no config is
    given.

    Raises:
        ConfigError: If the policy cannot be loaded or is invalid.
    """
    if config is None:
        from rulez.config._load import load_config  # noqa: PLC0415

        cwd = events[0].cwd if events else None
        config = load_config(Path(cwd) if cwd else None)
    return run_events(events, config, context)
