"""Shared utilities: subprocess execution, logging and well-known paths."""

from ._exec import (
    DEFAULT_TIMEOUT_MS,
    MAX_OUTPUT_BYTES,
    ScriptConfig,
    ScriptResult,
    build_command,
    run_script,
    truncate_output,
)
from ._logging import create_hooks_logger, create_null_logger, log_level_from_string
from ._paths import (
    get_audit_log_file,
    get_claude_dir,
    get_hooks_log_file,
    get_log_dir,
    get_opencode_plugin_dir,
    get_project_config_file,
    get_user_claude_dir,
    get_user_config_file,
)

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "MAX_OUTPUT_BYTES",
    "ScriptConfig",
    "ScriptResult",
    "build_command",
    "create_hooks_logger",
    "create_null_logger",
    "get_audit_log_file",
    "get_claude_dir",
    "get_hooks_log_file",
    "get_log_dir",
    "get_opencode_plugin_dir",
    "get_project_config_file",
    "get_user_claude_dir",
    "get_user_config_file",
    "log_level_from_string",
    "run_script",
    "truncate_output",
]
