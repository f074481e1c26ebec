from collections.abc import Callable
from pathlib import Path
from typing import Any

import orjson
import pytest

from rulez.cli._debug import (
    build_event,
    debug_summary,
    resolve_event_type,
    simulate,
)
from rulez.enums import EventType

FORCE_PUSH_POLICY: dict[str, Any] = {
    "version": "1.0",
    "rules": [
        {
            "name": "no-force-push",
            "matchers": {"tools": ["Bash"], "command_match": "--force"},
            "actions": {"block": True},
        },
        {
            "name": "python-style",
            "matchers": {"tools": ["Write"], "extensions": [".py"]},
            "actions": {"inject_inline": "Follow PEP 8"},
        },
    ],
}


class TestResolveEventType:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("PreToolUse", EventType.PRE_TOOL_USE),
            ("pre", EventType.PRE_TOOL_USE),
            ("prompt", EventType.USER_PROMPT_SUBMIT),
            ("compact", EventType.PRE_COMPACT),
            ("perm", EventType.PERMISSION_REQUEST),
            ("SESSION-END", EventType.SESSION_END),
        ],
    )
    def test_aliases(self, name: str, expected: EventType) -> None:
        assert resolve_event_type(name) == expected

    def test_unknown(self) -> None:
        assert resolve_event_type("bogus") is None


class TestBuildEvent:
    def test_defaults_to_bash(self) -> None:
        event = build_event(EventType.PRE_TOOL_USE, command="ls")

        assert event.tool_name == "Bash"
        assert event.command() == "ls"
        assert event.session_id.startswith("debug-")

    def test_file_tool_uses_path(self) -> None:
        event = build_event(EventType.PRE_TOOL_USE, tool="Write", path="app.py")

        assert event.file_path() == "app.py"

    def test_prompt_event_has_no_tool(self) -> None:
        event = build_event(EventType.USER_PROMPT_SUBMIT, prompt="hello")

        assert event.tool_name is None
        assert event.tool_input is None
        assert event.prompt == "hello"


class TestSimulate:
    def test_block_summary(self, make_config) -> None:
        config = make_config(*FORCE_PUSH_POLICY["rules"])
        event = build_event(EventType.PRE_TOOL_USE, command="git push --force")

        result, elapsed = simulate(event, config)
        summary = debug_summary(event, config, result, evaluation_time_ms=elapsed)

        assert summary["outcome"] == "Block"
        assert summary["matchedRules"] == ["no-force-push"]
        first = summary["evaluations"][0]
        assert first["ruleName"] == "no-force-push"
        assert first["matched"] is True
        assert first["pattern"] == "--force"
        assert first["input"] == "git push --force"

    def test_inject_summary(self, make_config) -> None:
        config = make_config(*FORCE_PUSH_POLICY["rules"])
        event = build_event(EventType.PRE_TOOL_USE, tool="Write", path="main.py")

        result, elapsed = simulate(event, config)
        summary = debug_summary(event, config, result, evaluation_time_ms=elapsed)

        assert summary["outcome"] == "Inject"
        assert result.response.context == "Follow PEP 8"
        assert [e["matched"] for e in summary["evaluations"]] == [False, True]
        assert summary["evaluations"][0]["matcherResults"] == {
            "tools_matched": False,
            "command_match_matched": False,
        }


class TestDebugCommand:
    def test_json_output(
        self,
        rulez_cli: Callable[..., int],
        project_dir: Path,
        write_policy,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _ = write_policy(project_dir, FORCE_PUSH_POLICY)
        monkeypatch.chdir(project_dir)

        code = rulez_cli("debug", "pre", "--command", "git push --force", "--json")

        assert code == 0
        summary = orjson.loads(capsys.readouterr().out)
        assert summary["outcome"] == "Block"

    def test_report_output(
        self,
        rulez_cli: Callable[..., int],
        project_dir: Path,
        write_policy,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = write_policy(project_dir, FORCE_PUSH_POLICY)

        code = rulez_cli(
            "debug", "PreToolUse", "--tool", "Write", "--path", "a.py", "-c", str(path)
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "RuleZ Debug Mode" in out
        assert "python-style" in out
        assert "Allowed" in out

    def test_unknown_event(
        self,
        rulez_cli: Callable[..., int],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code = rulez_cli("debug", "bogus")

        assert code == 1
        assert "Unknown event type: 'bogus'" in capsys.readouterr().err
