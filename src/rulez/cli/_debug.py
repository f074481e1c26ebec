# pyright: reportExplicitAny=false
# ruff: noqa: D415, TC003, UP037 - Path needed at runtime for cyclopts parameter parsing
"""The ``rulez debug`` command: simulate an event against the policy."""

import time
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from cyclopts import Parameter
from rich.console import Console
from rich.table import Table

from rulez.config import Config, ConfigError, load_config, load_config_file
from rulez.engine import ExecutionContext, MemoryAuditSink, RegexCache, process_event
from rulez.enums import EventType, Outcome
from rulez.models import Event
from rulez.utils import create_null_logger

from ._shared import ExitCode, exit_with_error, format_json

if TYPE_CHECKING:
    from rulez.config import Rule
    from rulez.engine import PipelineResult

EVENT_ALIASES: dict[str, EventType] = {
    "pretooluse": EventType.PRE_TOOL_USE,
    "pre": EventType.PRE_TOOL_USE,
    "pre-tool-use": EventType.PRE_TOOL_USE,
    "posttooluse": EventType.POST_TOOL_USE,
    "post": EventType.POST_TOOL_USE,
    "post-tool-use": EventType.POST_TOOL_USE,
    "sessionstart": EventType.SESSION_START,
    "session": EventType.SESSION_START,
    "start": EventType.SESSION_START,
    "permissionrequest": EventType.PERMISSION_REQUEST,
    "permission": EventType.PERMISSION_REQUEST,
    "perm": EventType.PERMISSION_REQUEST,
    "userpromptsubmit": EventType.USER_PROMPT_SUBMIT,
    "prompt": EventType.USER_PROMPT_SUBMIT,
    "user-prompt": EventType.USER_PROMPT_SUBMIT,
    "user-prompt-submit": EventType.USER_PROMPT_SUBMIT,
    "sessionend": EventType.SESSION_END,
    "end": EventType.SESSION_END,
    "session-end": EventType.SESSION_END,
    "precompact": EventType.PRE_COMPACT,
    "compact": EventType.PRE_COMPACT,
    "pre-compact": EventType.PRE_COMPACT,
}

_OUTCOME_LABELS: dict[Outcome, str] = {
    Outcome.BLOCK: "Block",
    Outcome.INJECT: "Inject",
    Outcome.ALLOW: "Allow",
}


def resolve_event_type(name: str) -> EventType | None:
    """Resolve a simulated event name or alias, case-insensitively."""
    return EVENT_ALIASES.get(name.lower())


def build_event(
    event_type: EventType,
    *,
    tool: str | None = None,
    command: str | None = None,
    path: str | None = None,
    prompt: str | None = None,
    cwd: str | None = None,
) -> Event:
    """Build a simulated event.

    Prompt submissions carry no tool unless one is given. Other events default
    to a Bash tool call, with tool_input shaped after the tool.
    """
    tool_name = tool
    tool_input: dict[str, Any] | None = None
    if event_type != EventType.USER_PROMPT_SUBMIT:
        tool_name = tool or "Bash"
        match tool_name:
            case "Bash":
                tool_input = {
                    "command": command or "echo 'test'",
                    "description": "Debug simulated command",
                }
            case "Write" | "Edit" | "Read":
                tool_input = {
                    "file_path": path or "src/main.py",
                    "content": "# Simulated content",
                }
            case "Glob" | "Grep":
                tool_input = {"pattern": command or "*.py", "path": path or "."}
            case _:
                tool_input = {"description": "Simulated tool input"}

    return Event(
        event_type=event_type,
        session_id=f"debug-{uuid.uuid4().hex[:8]}",
        tool_name=tool_name,
        tool_input=tool_input,
        prompt=prompt,
        cwd=cwd,
    )


def _rule_pattern(rule: "Rule") -> str | None:
    matchers = rule.matchers
    if matchers.command_match is not None:
        return matchers.command_match
    if matchers.prompt_match is not None and matchers.prompt_match.patterns:
        return ", ".join(matchers.prompt_match.patterns)
    if matchers.tools:
        return ", ".join(matchers.tools)
    return None


def _event_input(event: Event) -> str | None:
    return event.command() or event.file_path() or event.prompt


def debug_summary(
    event: Event,
    config: Config,
    result: "PipelineResult",
    *,
    evaluation_time_ms: float,
) -> dict[str, Any]:
    """Summarize a simulated run as a JSON-compatible dict."""
    rules = {rule.name: rule for rule in config.rules}
    evaluations: list[dict[str, Any]] = []
    for evaluation in result.log_entry.rule_evaluations or []:
        rule = rules.get(evaluation.rule_name)
        evaluations.append(
            {
                "ruleName": evaluation.rule_name,
                "matched": evaluation.matched,
                "details": "Rule matched" if evaluation.matched else "No match",
                "pattern": _rule_pattern(rule) if rule is not None else None,
                "input": _event_input(event),
                "matcherResults": evaluation.matcher_results.model_dump(
                    exclude_none=True
                ),
            }
        )
    return {
        "outcome": _OUTCOME_LABELS[result.log_entry.outcome],
        "reason": result.response.reason,
        "matchedRules": result.log_entry.rules_matched,
        "evaluationTimeMs": evaluation_time_ms,
        "evaluations": evaluations,
    }


def simulate(event: Event, config: Config) -> tuple["PipelineResult", float]:
    """Run the pipeline once with a fresh regex cache and debug tracing.

    Returns:
        Tuple of (pipeline result, elapsed milliseconds).
    """
    context = ExecutionContext(
        logger=create_null_logger(),
        regex_cache=RegexCache(),
        audit_sink=MemoryAuditSink(),
        debug=True,
    )
    start = time.perf_counter()
    result = process_event(event, config, context)
    return result, (time.perf_counter() - start) * 1000


def _print_report(
    console: Console,
    event: Event,
    config: Config,
    result: "PipelineResult",
    elapsed_ms: float,
) -> None:
    console.print("[bold]RuleZ Debug Mode[/bold]")
    console.print(f"Loaded {len(config.rules)} rules from configuration\n")
    console.print("[bold]Simulated event[/bold]")
    console.print_json(format_json(event.to_json_dict()))
    console.print("\n[bold]Response[/bold]")
    console.print_json(result.response.to_output_json())

    table = Table(title="Rule evaluations")
    table.add_column("Rule")
    table.add_column("Matched")
    table.add_column("Failed matchers")
    for evaluation in result.log_entry.rule_evaluations or []:
        failed = [
            name.removesuffix("_matched")
            for name, value in evaluation.matcher_results.model_dump().items()
            if value is False
        ]
        table.add_row(
            evaluation.rule_name,
            "[green]yes[/green]" if evaluation.matched else "no",
            ", ".join(failed),
        )
    console.print(table)

    rules_evaluated = result.log_entry.timing.rules_evaluated
    console.print(
        f"Processed in {elapsed_ms:.2f}ms ({rules_evaluated} rules evaluated)"
    )

    response = result.response
    if response.blocked:
        console.print(f"[red]Blocked:[/red] {response.reason or 'No reason provided'}")
    elif response.context is not None:
        size = len(response.context)
        console.print(f"[green]Allowed[/green] with injected context ({size} chars)")
    else:
        console.print("[green]Allowed[/green]")


def debug(
    event: Annotated[
        str,
        Parameter(help="Event to simulate, e.g. PreToolUse, pre, prompt, compact"),
    ],
    *,
    tool: Annotated[
        str | None, Parameter(help="Tool name (defaults to Bash for tool events)")
    ] = None,
    command: Annotated[
        str | None, Parameter(help="Command for Bash, pattern for Glob and Grep")
    ] = None,
    path: Annotated[str | None, Parameter(help="File path for file tools")] = None,
    prompt: Annotated[str | None, Parameter(help="Prompt text")] = None,
    json_output: Annotated[
        bool, Parameter(name="--json", help="Print a JSON summary")
    ] = False,
    config_file: Annotated[
        Path | None,
        Parameter(name=["--config", "-c"], help="Policy file to simulate against"),
    ] = None,
) -> None:
    """Simulate an event against the current policy

    Exit codes:
        0: Simulation ran
        1: Unknown event or invalid policy
    """
    event_type = resolve_event_type(event)
    if event_type is None:
        valid = ", ".join(
            sorted({t.value for t in EVENT_ALIASES.values()}, key=str.lower)
        )
        exit_with_error(f"Unknown event type: '{event}'. Valid types: {valid}")

    try:
        config = (
            load_config_file(config_file) if config_file is not None else load_config()
        )
    except ConfigError as e:
        exit_with_error(str(e))

    simulated = build_event(
        event_type,
        tool=tool,
        command=command,
        path=path,
        prompt=prompt,
        cwd=str(Path.cwd()),
    )
    result, elapsed_ms = simulate(simulated, config)

    if json_output:
        summary = debug_summary(
            simulated, config, result, evaluation_time_ms=elapsed_ms
        )
        print(format_json(summary, indent=False))  # noqa: T201
    else:
        _print_report(Console(), simulated, config, result, elapsed_ms)
    raise SystemExit(ExitCode.SUCCESS)
