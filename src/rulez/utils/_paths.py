import os
from pathlib import Path

CONFIG_FILE_NAME: str = "hooks.yaml"
AUDIT_LOG_ENV_VAR: str = "RULEZ_LOG_PATH"


def get_claude_dir(root: Path | None = None) -> Path:
    """Get the path to the .claude/ directory under a project root.

    Args:
        root: Project root. Defaults to the current working directory.
    """
    return (root if root is not None else Path.cwd()) / ".claude"


def get_user_claude_dir() -> Path:
    """Get the path to the user's ~/.claude/ directory."""
    return Path.home() / ".claude"


def get_project_config_file(root: Path | None = None) -> Path:
    """Get the path to the project policy file, .claude/hooks.yaml."""
    return get_claude_dir(root) / CONFIG_FILE_NAME


def get_user_config_file() -> Path:
    """Get the path to the user policy file, ~/.claude/hooks.yaml."""
    return get_user_claude_dir() / CONFIG_FILE_NAME


def get_log_dir() -> Path:
    """Get the path to the ~/.claude/logs/ directory."""
    return get_user_claude_dir() / "logs"


def get_audit_log_file() -> Path:
    """Get the path to the JSONL audit log.

    ``RULEZ_LOG_PATH`` overrides the default ~/.claude/logs/rulez.log.
    """
    override = os.environ.get(AUDIT_LOG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return get_log_dir() / "rulez.log"


def get_hooks_log_file() -> Path:
    """Get the path to the operational hooks log."""
    return get_log_dir() / "rulez-hooks.log"


def get_opencode_plugin_dir() -> Path:
    """Get the OpenCode plugin directory for rulez."""
    return Path.home() / ".config" / "opencode" / "plugins" / "rulez-plugin"
