"""The RuleZ command-line interface.

The entry point defers every import so that a broken installation still
exits with a code that no agent platform reads as a block.
"""

# ruff: noqa: PLC0415 - Deferred imports required for catastrophic error handling

import sys


def main() -> None:
    """Default entrypoint for the `rulez` CLI.

    Exits 130 on interrupt. Any other escaping failure, including import
    errors, prints a traceback to stderr and exits 128.
    """
    try:
        from ._app import create_app

        app = create_app()
        app()
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception:  # noqa: BLE001 - Intentional catch-all for catastrophic failures
        import traceback

        traceback.print_exc(file=sys.stderr)
        sys.exit(128)


__all__ = ["main"]
