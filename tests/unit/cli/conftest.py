from collections.abc import Callable

import pytest
from rich.console import Console

from rulez.cli._app import create_app


@pytest.fixture
def rulez_cli(console: Console) -> Callable[..., int]:
    """Run the CLI in-process and return its exit code."""
    app = create_app(console=console, error_console=console)

    def _run(*args: str) -> int:
        try:
            app(args)
        except SystemExit as e:
            if e.code is None:
                return 0
            return e.code if isinstance(e.code, int) else 1
        else:
            return 0

    return _run
