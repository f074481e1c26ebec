# ruff: noqa: D415, TC003 - Path needed at runtime for cyclopts parameter parsing
"""The ``rulez validate`` command."""

from pathlib import Path
from typing import Annotated

from cyclopts import Parameter
from rich.console import Console

from rulez.config import (
    ConfigError,
    ValidationIssue,
    collect_issues,
    find_config_file,
    parse_config,
    read_yaml_file,
)

from ._shared import ExitCode, exit_with_error, get_error_console


def validate_file(path: Path) -> tuple[int, list[ValidationIssue]]:
    """Load a policy file and collect every semantic issue.

    Returns:
        Tuple of (number of rules, issues found).

    Raises:
        ConfigError: If the file cannot be read, parsed, or fails the schema.
    """
    config = parse_config(read_yaml_file(path), source_file=path)
    return len(config.rules), collect_issues(config)


def validate(
    *,
    config_file: Annotated[
        Path | None,
        Parameter(
            name=["--config", "-c"],
            help="Policy file to validate (defaults to the active hooks.yaml)",
        ),
    ] = None,
) -> None:
    """Validate a policy file

    Checks YAML syntax, the policy schema, rule names, regular expressions,
    expressions and field paths.

    Exit codes:
        0: Policy valid, or no policy file found
        1: Policy could not be loaded or has issues
    """
    console = Console()
    path = config_file if config_file is not None else find_config_file()
    if path is None:
        console.print("No hooks.yaml found; the default empty policy applies.")
        raise SystemExit(ExitCode.SUCCESS)

    try:
        rule_count, issues = validate_file(path)
    except ConfigError as e:
        exit_with_error(str(e))

    if issues:
        error_console = get_error_console()
        error_console.print(f"[red]{path}: {len(issues)} issue(s)[/red]")
        for issue in issues:
            error_console.print(f"  {issue.key}: {issue.message}")
        raise SystemExit(ExitCode.ERROR)

    console.print(f"[green]{path}: valid[/green] ({rule_count} rules)")
    raise SystemExit(ExitCode.SUCCESS)
