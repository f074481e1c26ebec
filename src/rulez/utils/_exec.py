"""Execution utilities for validator scripts and shell commands.

This module provides the one subprocess primitive used by rule actions:
spawn a command in its own session, feed it stdin, wait under a deadline, and
kill the whole process group when the deadline passes. The child is always
reaped and temporary script files are always removed.
"""

import contextlib
import os
import shlex
import signal
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

# Default timeout in milliseconds
DEFAULT_TIMEOUT_MS: int = 5000  # 5 seconds

# Maximum output size in bytes
MAX_OUTPUT_BYTES: int = 102400  # 100KB

# Grace period for reaping a killed process group
_REAP_TIMEOUT_SECONDS: float = 1.0


@dataclass(frozen=True, slots=True)
class ScriptConfig:
    """Configuration for script execution.

    Attributes:
        command: Single-line command to execute.
        script: Multi-line script content to execute via temp file.
        args: Explicit argument vector; takes precedence over command.
        shell: Shell to use (default: /bin/sh for scripts, None for commands).
        cwd: Working directory for execution.
        env: Additional environment variables to set.
        stdin: Optional stdin data to pipe to the command.
        timeout_ms: Execution timeout in milliseconds.
    """

    command: str | None = None
    script: str | None = None
    args: tuple[str, ...] = ()
    shell: str | None = None
    cwd: str | Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    stdin: bytes | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS


@dataclass(frozen=True, slots=True)
class ScriptResult:
    """Result from script execution.

    Attributes:
        success: Whether the command ran to completion (any exit code).
        exit_code: Process exit code, or None if execution failed.
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        error: Error message if execution failed (timeout, not found, etc.).
        timed_out: Whether the command timed out.
        command_not_found: Whether the command was not found.
    """

    success: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    timed_out: bool = False
    command_not_found: bool = False


def truncate_output(output: str, max_bytes: int = MAX_OUTPUT_BYTES) -> str:
    """Truncate output to max bytes, preserving valid UTF-8.

    Args:
        output: The string to truncate.
        max_bytes: Maximum size in bytes.

    Returns:
        Truncated string with indicator if truncated.
    """
    if not output:
        return output

    encoded = output.encode("utf-8")
    if len(encoded) <= max_bytes:
        return output

    # 'ignore' drops a multi-byte sequence split at the boundary
    truncated = encoded[:max_bytes].decode("utf-8", errors="ignore")

    return truncated + "\n... [output truncated]"


def build_command(config: ScriptConfig) -> tuple[list[str], str | None]:
    """Build command list and determine if temp file is needed.

    Args:
        config: Script configuration.

    Returns:
        Tuple of (command list, temp script path or None).
    """
    if config.script:
        shell_cmd = config.shell or "/bin/sh"
        with tempfile.NamedTemporaryFile(mode="w", suffix=".sh", delete=False) as f:
            _ = f.write(config.script)
            return [shell_cmd, f.name], f.name

    if config.args:
        return list(config.args), None

    if config.command:
        if config.shell:
            return [config.shell, "-c", config.command], None
        return shlex.split(config.command), None

    return [], None


def _kill_process_group(process: subprocess.Popen[bytes]) -> None:
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, signal.SIGKILL)
    with contextlib.suppress(ProcessLookupError):
        process.kill()


def run_script(config: ScriptConfig) -> ScriptResult:
    """Execute a shell command or script under a deadline.

    The child runs in a new session so that, on timeout, the whole process
    group (including grandchildren spawned by a shell) is killed.

    Args:
        config: Script configuration specifying command, env, cwd, timeout, etc.

    Returns:
        ScriptResult with execution outcome.
    """
    cmd, temp_script_path = build_command(config)
    if not cmd:
        return ScriptResult(
            success=False,
            error="No command or script specified",
        )

    env = {**os.environ, **config.env}
    cwd = str(config.cwd) if config.cwd else None
    timeout_seconds = config.timeout_ms / 1000.0

    try:
        process = subprocess.Popen(  # noqa: S603
            cmd,
            env=env,
            cwd=cwd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )
    except FileNotFoundError as e:
        _remove_temp_script(temp_script_path)
        return ScriptResult(
            success=False,
            error=str(e),
            command_not_found=True,
        )
    except OSError as e:
        _remove_temp_script(temp_script_path)
        return ScriptResult(
            success=False,
            error=f"Failed to spawn process: {e}",
        )

    try:
        try:
            stdout_bytes, stderr_bytes = process.communicate(
                input=config.stdin, timeout=timeout_seconds
            )
        except subprocess.TimeoutExpired:
            _kill_process_group(process)
            with contextlib.suppress(subprocess.TimeoutExpired):
                _ = process.communicate(timeout=_REAP_TIMEOUT_SECONDS)
            return ScriptResult(
                success=False,
                error=f"Command timed out after {timeout_seconds}s",
                timed_out=True,
            )
        except OSError as e:
            # Broken stdin pipe when the child exits without reading
            _kill_process_group(process)
            _ = process.wait()
            return ScriptResult(
                success=False,
                error=f"Failed to communicate with process: {e}",
            )

        return ScriptResult(
            success=True,
            exit_code=process.returncode,
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
        )
    finally:
        if process.returncode is None:
            _kill_process_group(process)
            _ = process.wait()
        _remove_temp_script(temp_script_path)


def _remove_temp_script(path: str | None) -> None:
    if path:
        with contextlib.suppress(OSError):
            Path(path).unlink()
