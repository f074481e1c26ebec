# ruff: noqa: TC003 - Path needed at runtime for cyclopts parameter parsing
"""The ``rulez hook`` command.

Reads one hook payload from stdin, evaluates the policy against it, and
writes one reply to stdout.

Exit codes follow agent hook semantics:
- 0: Success, the reply on stdout carries the decision
- 1: Malformed input or invalid configuration (message on stderr)
- 2: Blocked, for platforms that read blocks from the exit code
"""

import sys
from pathlib import Path
from typing import IO, TYPE_CHECKING, Annotated, Any, Literal

import orjson
from cyclopts import Parameter

from rulez.adapters import get_adapter
from rulez.config import ConfigError, load_config
from rulez.engine import ExecutionContext, JsonlAuditSink, run_events
from rulez.exceptions import AdapterNotFoundError, EventParseError
from rulez.utils import create_hooks_logger, create_null_logger, get_audit_log_file

from ._shared import ExitCode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from structlog.typing import FilteringBoundLogger

    from rulez.config import Settings
    from rulez.engine import AuditSink
    from rulez.models import Event, Response

Platform = Literal["claude", "gemini", "copilot", "opencode"]

EMPTY_INPUT_REASON: str = "No input received on stdin"


def _write_reply(stream: IO[str], reply: dict[str, Any]) -> None:  # pyright: ignore[reportExplicitAny]
    _ = stream.write(orjson.dumps(reply).decode("utf-8") + "\n")


def _create_logger(settings: "Settings") -> "FilteringBoundLogger":  # noqa: UP037
    """Create the hooks logger, or a null logger if the log is unwritable."""
    try:
        return create_hooks_logger(
            settings.log_level,
            max_bytes=settings.log_max_bytes,
            backup_count=settings.log_backup_count,
        )
    except OSError:
        return create_null_logger()


def _project_root(payload: dict[str, Any]) -> Path | None:  # pyright: ignore[reportExplicitAny]
    cwd = payload.get("cwd")
    return Path(cwd) if isinstance(cwd, str) and cwd else None


def run_hook(  # noqa: PLR0911
    platform: str,
    stdin_text: str,
    *,
    stdout: IO[str],
    stderr: IO[str],
    debug_logs: bool = False,
    logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    audit_sink: "AuditSink | None" = None,  # noqa: UP037
) -> int:
    """Process one hook invocation.

    Args:
        platform: Name of the adapter for the calling agent.
        stdin_text: The raw payload.
        stdout: Stream for the reply.
        stderr: Stream for error messages and block reasons.
        debug_logs: Record the raw event and rule trace in the audit log.
        logger: Logger to use instead of the hooks log.
        audit_sink: Audit destination to use instead of the JSONL audit log.

    Returns:
        The process exit code.
    """
    try:
        adapter = get_adapter(platform)
    except AdapterNotFoundError as e:
        _ = stderr.write(f"{e}\n")
        return ExitCode.ERROR

    if not stdin_text.strip():
        _write_reply(stdout, adapter.safe_reply(EMPTY_INPUT_REASON))
        return ExitCode.SUCCESS

    try:
        payload = orjson.loads(stdin_text)  # pyright: ignore[reportAny]
    except orjson.JSONDecodeError as e:
        _ = stderr.write(f"Failed to parse hook input as JSON: {e}\n")
        return ExitCode.ERROR
    if not isinstance(payload, dict):
        _ = stderr.write("Hook input must be a JSON object\n")
        return ExitCode.ERROR

    try:
        config = load_config(_project_root(payload))  # pyright: ignore[reportUnknownArgumentType]
    except ConfigError as e:
        _ = stderr.write(f"Configuration error: {e}\n")
        return ExitCode.ERROR

    settings = config.settings
    if logger is None:
        logger = _create_logger(settings)

    try:
        parsed = adapter.parse_event(payload, logger=logger)  # pyright: ignore[reportUnknownArgumentType]
    except EventParseError as e:
        logger.warning("hook_input_invalid", platform=platform, error=str(e))
        _ = stderr.write(f"Invalid {platform} hook input: {e}\n")
        return ExitCode.ERROR

    logger.info(
        "hook_started",
        platform=platform,
        hook_event=parsed.hook_event_name,
        session_id=parsed.event.session_id,
    )

    context = ExecutionContext(
        logger=logger,
        audit_sink=(
            audit_sink
            if audit_sink is not None
            else JsonlAuditSink(get_audit_log_file(), logger)
        ),
        debug=debug_logs or settings.debug_logs,
    )

    def evaluate(events: "Sequence[Event]") -> "Response":  # noqa: UP037
        return run_events(events, config, context)

    try:
        response = adapter.dispatch(parsed, evaluate, logger=logger)
        reply = adapter.translate_response(response, parsed)
    except Exception as e:  # noqa: BLE001 - Never let an internal error break the agent session
        logger.exception("hook_failed", platform=platform)
        _write_reply(stdout, adapter.safe_reply(f"RuleZ internal error: {e}"))
        return ExitCode.SUCCESS

    _write_reply(stdout, reply)
    logger.info(
        "hook_completed",
        platform=platform,
        hook_event=parsed.hook_event_name,
        blocked=response.blocked,
    )

    if response.blocked and adapter.block_exit_code is not None:
        _ = stderr.write(f"{response.reason or 'Blocked by RuleZ policy'}\n")
        return adapter.block_exit_code
    return ExitCode.SUCCESS


def hook(
    platform: Annotated[
        Platform, Parameter(help="Agent platform that sent the event")
    ] = "claude",
    *,
    debug_logs: Annotated[
        bool,
        Parameter(
            name="--debug-logs",
            help="Record the raw event and rule trace in the audit log",
        ),
    ] = False,
) -> None:
    """Process one hook event read from stdin

    Reads the platform's hook payload from stdin, evaluates the policy and
    prints the platform's reply on stdout.
    """
    code = run_hook(
        platform,
        sys.stdin.read(),
        stdout=sys.stdout,
        stderr=sys.stderr,
        debug_logs=debug_logs,
    )
    raise SystemExit(code)
