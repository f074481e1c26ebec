"""Action implementations for matched rules.

This module provides the handlers a matched rule runs, in order: the
validation gate (``validate_expr`` or ``inline_script``), unconditional and
pattern blocks, context injection, and the external validator script. Each
handler records its effect on a ``RuleOutcome``; execution problems go
through the ``FailurePolicy``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import orjson

from rulez.enums import PolicyMode
from rulez.exceptions import ExpressionError
from rulez.utils import ScriptConfig, ScriptResult, run_script

from ._expression import evaluate_expression

if TYPE_CHECKING:
    from collections.abc import Mapping

    from structlog.typing import FilteringBoundLogger

    from rulez.config._models import Rule, Settings
    from rulez.models import Event

    from ._regex import RegexCache

# Exit code a validator script uses to block deliberately
VALIDATOR_BLOCK_EXIT_CODE: int = 2

# tool_input keys inspected by block_if_match, in order
CONTENT_KEYS: tuple[str, ...] = ("command", "newString", "new_string", "content")

WARN_MODE_SUFFIX: str = "This rule is in 'warn' mode - operation will proceed."


def format_warning(message: str) -> str:
    """Render a would-be block as warn-mode context."""
    return f"[WARNING] {message}\n{WARN_MODE_SUFFIX}"


@dataclass(slots=True)
class RuleOutcome:
    """Mutable accumulator for the effects of one rule's actions.

    Attributes:
        mode: The rule's effective mode.
        block_reason: Why the rule blocked, if it did.
        contexts: Context fragments to inject, in order.
        warnings: Fail-open execution warnings for the response reason.
        stopped: Whether remaining actions of the rule should be skipped.
    """

    mode: PolicyMode = PolicyMode.ENFORCE
    block_reason: str | None = None
    contexts: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stopped: bool = False

    @property
    def blocked(self) -> bool:
        """Whether the rule blocked the operation."""
        return self.block_reason is not None

    def set_block(self, reason: str) -> None:
        """Block unconditionally and stop the rule."""
        self.block_reason = reason
        self.stopped = True

    def deny(self, reason: str, warning: str) -> None:
        """Block in enforce mode, or inject a warning in warn mode.

        Args:
            reason: Block reason used in enforce mode.
            warning: Warning text (without the warn-mode framing).
        """
        if self.mode == PolicyMode.WARN:
            self.contexts.append(format_warning(warning))
            self.stopped = True
        else:
            self.set_block(reason)

    def add_context(self, content: str) -> None:
        """Add a context fragment."""
        self.contexts.append(content)

    def add_warning(self, message: str) -> None:
        """Add a fail-open execution warning."""
        self.warnings.append(message)


@dataclass(frozen=True, slots=True)
class FailurePolicy:
    """Decides what an execution failure does to the decision.

    With ``fail_open`` the failure is logged and carried as a warning in the
    final reason; otherwise the rule blocks with a reason naming the failure.
    The policy applies in every mode, so a warn-mode rule still blocks on
    failure when fail-open is off.
    """

    fail_open: bool = True

    def handle(
        self,
        failure: str,
        *,
        rule_name: str | None,
        outcome: RuleOutcome,
        logger: FilteringBoundLogger,
    ) -> None:
        """Apply the policy to one failure.

        Args:
            failure: Description of what failed.
            rule_name: The rule whose action failed, or None for failures of
                the combined decision.
            outcome: The accumulator to record the effect on.
            logger: Logger for the failure.
        """
        if self.fail_open:
            logger.warning(
                "execution_failure_ignored", rule=rule_name, failure=failure
            )
            prefix = f"Rule '{rule_name}': " if rule_name is not None else ""
            outcome.add_warning(f"{prefix}{failure}")
            return
        logger.warning("execution_failure_blocked", rule=rule_name, failure=failure)
        subject = f" by rule '{rule_name}'" if rule_name is not None else ""
        outcome.set_block(f"Blocked{subject} (fail-closed): {failure}")


@dataclass(frozen=True, slots=True)
class ActionContext:
    """Everything an action needs to run for one rule and event.

    Attributes:
        event: The event being evaluated.
        rule: The matched rule.
        settings: Global settings of the loaded policy.
        policy: Failure policy derived from the settings.
        regex_cache: Shared regex cache.
        logger: Logger for action diagnostics.
        environ: Environment for expressions, or None for ``os.environ``.
    """

    event: Event
    rule: Rule
    settings: Settings
    policy: FailurePolicy
    regex_cache: RegexCache
    logger: FilteringBoundLogger
    environ: Mapping[str, str] | None = None

    @property
    def timeout_ms(self) -> int:
        """Script timeout for this rule in milliseconds."""
        return self.rule.timeout_seconds(self.settings.script_timeout) * 1000

    @property
    def cwd(self) -> Path | None:
        """The event's working directory, when it exists."""
        if self.event.cwd is None:
            return None
        path = Path(self.event.cwd)
        return path if path.is_dir() else None

    def resolve_path(self, value: str) -> Path:
        """Resolve a configured path against the event's working directory."""
        path = Path(value).expanduser()
        cwd = self.cwd
        if not path.is_absolute() and cwd is not None:
            return cwd / path
        return path

    def event_json(self) -> bytes:
        """The event serialized for a script's stdin."""
        return orjson.dumps(self.event.to_json_dict())

    def fail(self, failure: str, outcome: RuleOutcome) -> None:
        """Route an execution failure through the failure policy."""
        self.policy.handle(
            failure, rule_name=self.rule.name, outcome=outcome, logger=self.logger
        )


class Action(Protocol):
    """Protocol for rule actions."""

    def run(self, context: ActionContext, outcome: RuleOutcome) -> None:
        """Execute the action.

        Args:
            context: The action context.
            outcome: The accumulator for this rule's effects.
        """
        ...


def _describe_failure(result: ScriptResult, what: str, timeout_ms: int) -> str:
    if result.timed_out:
        return f"{what} timed out after {timeout_ms // 1000}s"
    if result.command_not_found:
        return f"{what} could not be started: {result.error}"
    if not result.success:
        return f"{what} failed: {result.error}"
    stderr = result.stderr.strip()
    detail = f": {stderr}" if stderr else ""
    return f"{what} exited with code {result.exit_code}{detail}"


class ValidationGateAction:
    """Runs ``validate_expr`` or ``inline_script`` before any other action.

    A false expression, an expression error, or a nonzero inline script exit
    denies the operation. An inline script that times out or cannot be
    started is an execution failure.
    """

    def _validate_expr(
        self, expression: str, context: ActionContext, outcome: RuleOutcome
    ) -> None:
        name = context.rule.name
        try:
            passed = evaluate_expression(expression, context.event, context.environ)
        except ExpressionError as e:
            context.logger.warning(
                "validate_expr_failed", rule=name, expression=expression, error=str(e)
            )
            outcome.deny(
                f"Validation error for rule '{name}': {e}",
                f"Rule '{name}' validation expression error: {e}.",
            )
            return
        context.logger.debug(
            "validate_expr_evaluated", rule=name, expression=expression, result=passed
        )
        if not passed:
            outcome.deny(
                f"Validation failed for rule '{name}': "
                f"expression '{expression}' returned false",
                f"Rule '{name}' validation expression '{expression}' returned false.",
            )

    def _inline_script(
        self, script: str, context: ActionContext, outcome: RuleOutcome
    ) -> None:
        name = context.rule.name
        result = run_script(
            ScriptConfig(
                script=script,
                shell="sh",
                cwd=context.cwd,
                stdin=context.event_json(),
                timeout_ms=context.timeout_ms,
            )
        )
        if not result.success:
            context.logger.warning(
                "inline_script_failed",
                rule=name,
                error=result.error,
                timed_out=result.timed_out,
            )
            context.fail(
                _describe_failure(result, "Inline script", context.timeout_ms), outcome
            )
            return
        if result.exit_code != 0:
            context.logger.info(
                "inline_script_rejected", rule=name, exit_code=result.exit_code
            )
            outcome.deny(
                f"Inline script validation failed for rule '{name}'",
                f"Rule '{name}' inline script validation failed.",
            )

    def run(self, context: ActionContext, outcome: RuleOutcome) -> None:
        """Execute the validation gate."""
        actions = context.rule.actions
        if actions.validate_expr is not None:
            self._validate_expr(actions.validate_expr, context, outcome)
        elif actions.inline_script is not None:
            self._inline_script(actions.inline_script, context, outcome)


class BlockAction:
    """Blocks unconditionally when ``block: true``."""

    def run(self, context: ActionContext, outcome: RuleOutcome) -> None:
        """Execute the block action."""
        if not context.rule.actions.block:
            return
        name = context.rule.name
        description = context.rule.description or "No description"
        outcome.deny(
            f"Blocked by rule '{name}': {description}",
            f"Rule '{name}' would block this operation: {description}",
        )


class BlockIfMatchAction:
    """Blocks when written content or a command matches a pattern."""

    def run(self, context: ActionContext, outcome: RuleOutcome) -> None:
        """Execute the conditional block action."""
        pattern = context.rule.actions.block_if_match
        if pattern is None:
            return
        try:
            regex = context.regex_cache.get_or_compile(pattern)
        except re.error as e:
            context.logger.warning(
                "invalid_block_if_match_pattern",
                rule=context.rule.name,
                pattern=pattern,
                error=str(e),
            )
            return

        for key in CONTENT_KEYS:
            content = context.event.input_str(key)
            if content is not None and regex.search(content) is not None:
                name = context.rule.name
                outcome.deny(
                    f"Content blocked by rule '{name}': matches pattern '{pattern}'",
                    f"Rule '{name}' would block this content "
                    f"(matches pattern '{pattern}').",
                )
                return


class InjectAction:
    """Injects context from the first source that yields content.

    Sources are tried in the order ``inject_inline``, ``inject_command``,
    ``inject``. A failing source goes through the failure policy and, when
    that does not block, the next source is tried. A successful injection
    ends the rule, so the validator script does not run.
    """

    def _inject_command(
        self, command: str, context: ActionContext, outcome: RuleOutcome
    ) -> str | None:
        result = run_script(
            ScriptConfig(
                command=command,
                shell="sh",
                cwd=context.cwd,
                timeout_ms=context.timeout_ms,
            )
        )
        if not result.success or result.exit_code != 0:
            context.fail(
                _describe_failure(result, "inject_command", context.timeout_ms),
                outcome,
            )
            return None
        if not result.stdout.strip():
            context.logger.debug("inject_command_empty", rule=context.rule.name)
            return None
        return result.stdout

    def _inject_file(
        self, path_value: str, context: ActionContext, outcome: RuleOutcome
    ) -> str | None:
        path = context.resolve_path(path_value)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            context.fail(f"Failed to read context file '{path_value}': {e}", outcome)
            return None

    def run(self, context: ActionContext, outcome: RuleOutcome) -> None:
        """Execute the injection action."""
        actions = context.rule.actions
        content = actions.inject_inline
        if content is None and actions.inject_command is not None:
            content = self._inject_command(actions.inject_command, context, outcome)
        if content is None and not outcome.blocked and actions.inject is not None:
            content = self._inject_file(actions.inject, context, outcome)
        if content is not None:
            outcome.add_context(content)
            outcome.stopped = True


class RunValidatorAction:
    """Runs the external validator script with the event on stdin.

    Exit 0 injects any stdout; exit 2 blocks with stderr as the reason. Any
    other exit, a timeout, or a spawn failure is an execution failure.
    """

    def run(self, context: ActionContext, outcome: RuleOutcome) -> None:
        """Execute the validator script."""
        run_action = context.rule.actions.run
        if run_action is None:
            return

        script = context.resolve_path(run_action.script)
        context.logger.debug(
            "validator_script_started",
            rule=context.rule.name,
            script=str(script),
            trust=(run_action.trust.value if run_action.trust else None),
        )
        result = run_script(
            ScriptConfig(
                args=(str(script),),
                cwd=context.cwd,
                stdin=context.event_json(),
                timeout_ms=context.timeout_ms,
            )
        )

        if result.success and result.exit_code == 0:
            stdout = result.stdout.strip()
            if stdout:
                outcome.add_context(stdout)
            return

        if result.success and result.exit_code == VALIDATOR_BLOCK_EXIT_CODE:
            stderr = result.stderr.strip()
            reason = (
                f"Blocked by validator script: {stderr}"
                if stderr
                else f"Blocked by validator script '{run_action.script}'"
            )
            outcome.deny(
                reason,
                f"Validator script '{run_action.script}' would block this "
                f"operation: {stderr or 'No reason'}",
            )
            return

        context.fail(
            _describe_failure(
                result, f"Validator script '{run_action.script}'", context.timeout_ms
            ),
            outcome,
        )


# Actions in execution order
ACTION_SEQUENCE: tuple[type[Action], ...] = (
    ValidationGateAction,
    BlockAction,
    BlockIfMatchAction,
    InjectAction,
    RunValidatorAction,
)


def execute_rule_actions(context: ActionContext) -> RuleOutcome:
    """Run a matched rule's actions according to its mode.

    Audit-mode rules run no actions. Otherwise actions run in sequence until
    one stops the rule: a block, a warn-mode warning, or an injection.

    Args:
        context: The action context for the rule and event.

    Returns:
        The accumulated RuleOutcome.
    """
    outcome = RuleOutcome(mode=context.rule.effective_mode)
    if outcome.mode == PolicyMode.AUDIT:
        context.logger.info("rule_audited", rule=context.rule.name)
        return outcome

    for action_class in ACTION_SEQUENCE:
        action_class().run(context, outcome)
        if outcome.stopped:
            break
    return outcome
