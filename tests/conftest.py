"""Shared test fixtures for RuleZ tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import yaml
from rich.console import Console

from rulez.config import Config, config_from_dict
from rulez.models import Event


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a scratch directory and clear RuleZ environment overrides."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in (
        "RULEZ_DEBUG",
        "RULEZ_LOG_LEVEL",
        "RULEZ_LOG_PATH",
        "RULEZ_AUDIT_LOG_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def mock_logger() -> MagicMock:
    return MagicMock()


EventFactory = Callable[..., Event]


@pytest.fixture
def make_event() -> EventFactory:
    """Return a factory for canonical events with test defaults."""

    def _make(
        event_type: str = "PreToolUse",
        *,
        tool_name: str | None = "Bash",
        tool_input: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Event:
        return Event.model_validate(
            {
                "hook_event_name": event_type,
                "session_id": "test-session",
                "tool_name": tool_name,
                "tool_input": tool_input,
                **kwargs,
            }
        )

    return _make


ConfigFactory = Callable[..., Config]


@pytest.fixture
def make_config() -> ConfigFactory:
    """Return a factory building validated configs from rule dicts."""

    def _make(
        *rules: dict[str, Any],
        settings: dict[str, Any] | None = None,
    ) -> Config:
        data: dict[str, Any] = {"version": "1.0", "rules": list(rules)}
        if settings is not None:
            data["settings"] = settings
        return config_from_dict(data)

    return _make


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create an empty project directory with a .claude/ folder."""
    root = tmp_path / "project"
    (root / ".claude").mkdir(parents=True)
    return root


PolicyWriter = Callable[[Path, dict[str, Any]], Path]


@pytest.fixture
def write_policy() -> PolicyWriter:
    """Return a function writing a hooks.yaml policy into a project."""

    def _write(project: Path, data: dict[str, Any]) -> Path:
        path = project / ".claude" / "hooks.yaml"
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


ScriptWriter = Callable[[Path, str], Path]


@pytest.fixture
def write_script() -> ScriptWriter:
    """Return a function writing an executable shell script."""

    def _write(path: Path, body: str) -> Path:
        _ = path.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
        path.chmod(0o755)
        return path

    return _write


@pytest.fixture
def console() -> Console:
    return Console(
        width=100,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )
