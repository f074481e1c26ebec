import io
import sys
from collections.abc import Callable
from pathlib import Path
from typing import cast

import orjson
import pytest
from cyclopts import App
from pytest_mock import MockerFixture

from rulez import __version__
from rulez.cli import main
from rulez.cli._app import register_commands


class TestCommandRegistration:
    def test_registers_every_command(self, mocker: MockerFixture) -> None:
        mock_app = mocker.MagicMock(spec=App)

        register_commands(mock_app)

        names = [call.kwargs["name"] for call in mock_app.command.call_args_list]
        assert names == ["hook", "validate", "debug"]
        call_count = cast("int", mock_app.command.call_count)  # pyright: ignore[reportAny]
        assert call_count == 3


class TestHookCommand:
    def test_reads_stdin_and_writes_reply(
        self,
        rulez_cli: Callable[..., int],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        payload = {
            "hook_event_name": "SessionStart",
            "session_id": "s",
            "cwd": str(tmp_path),
        }
        monkeypatch.setattr(sys, "stdin", io.StringIO(orjson.dumps(payload).decode()))

        code = rulez_cli("hook", "claude")

        assert code == 0
        assert orjson.loads(capsys.readouterr().out)["continue"] is True

    def test_rejects_unknown_platform(self, rulez_cli: Callable[..., int]) -> None:
        assert rulez_cli("hook", "cursor") != 0


class TestVersion:
    def test_prints_version(
        self,
        rulez_cli: Callable[..., int],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = rulez_cli("--version")

        assert code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:
    def test_unexpected_error_exits_128(
        self,
        mocker: MockerFixture,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _ = mocker.patch("rulez.cli._app.create_app", side_effect=RuntimeError("boom"))

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 128
        assert "RuntimeError: boom" in capsys.readouterr().err

    def test_interrupt_exits_130(self, mocker: MockerFixture) -> None:
        _ = mocker.patch("rulez.cli._app.create_app", side_effect=KeyboardInterrupt)

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 130
