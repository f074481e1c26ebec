"""The command-line interface for RuleZ."""

from cyclopts import App
from rich.console import Console

from rulez import __version__

from ._debug import debug
from ._hook import hook
from ._validate import validate

APP_HELP = "Policy enforcement for AI coding agent hooks."


def register_commands(app: App) -> None:
    """Register every RuleZ command on ``app``."""
    app.command(hook, name="hook")
    app.command(validate, name="validate")
    app.command(debug, name="debug")


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    """Create the RuleZ application.

    Args:
        console: Console for regular output.
        error_console: Console for errors.
        exit_on_error: Whether parse errors exit the process.
    """
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="rulez",
        help=APP_HELP,
        version=__version__,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )
    register_commands(app)
    return app
