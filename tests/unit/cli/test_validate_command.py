from collections.abc import Callable
from pathlib import Path

import pytest

from rulez.cli._validate import validate_file
from rulez.exceptions import ConfigLoadError


class TestValidateFile:
    def test_counts_rules(self, project_dir: Path, write_policy) -> None:
        path = write_policy(
            project_dir, {"version": "1.0", "rules": [{"name": "a"}, {"name": "b"}]}
        )

        rule_count, issues = validate_file(path)

        assert rule_count == 2
        assert issues == []

    def test_reports_all_issues(self, project_dir: Path, write_policy) -> None:
        path = write_policy(
            project_dir,
            {
                "version": "x",
                "rules": [
                    {"name": "a", "matchers": {"command_match": "("}},
                    {"name": "a"},
                ],
            },
        )

        _, issues = validate_file(path)

        assert [issue.key for issue in issues] == [
            "version",
            "rules.a.matchers.command_match",
            "rules.a",
        ]

    def test_unreadable_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "hooks.yaml"
        _ = path.write_text("rules: [", encoding="utf-8")

        with pytest.raises(ConfigLoadError):
            _ = validate_file(path)


class TestValidateCommand:
    def test_valid_policy(
        self,
        rulez_cli: Callable[..., int],
        project_dir: Path,
        write_policy,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = write_policy(project_dir, {"version": "1.0", "rules": [{"name": "a"}]})

        code = rulez_cli("validate", "--config", str(path))

        assert code == 0
        assert "valid" in capsys.readouterr().out

    def test_invalid_policy_exits_one(
        self,
        rulez_cli: Callable[..., int],
        project_dir: Path,
        write_policy,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = write_policy(
            project_dir, {"version": "1.0", "rules": [{"name": "a"}, {"name": "a"}]}
        )

        code = rulez_cli("validate", "-c", str(path))

        assert code == 1
        assert "Duplicate rule name: a" in capsys.readouterr().err

    def test_schema_error_exits_one(
        self,
        rulez_cli: Callable[..., int],
        project_dir: Path,
        write_policy,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = write_policy(project_dir, {"rules": [{"priority": 1}]})

        code = rulez_cli("validate", "--config", str(path))

        assert code == 1
        assert "Error:" in capsys.readouterr().err

    def test_no_policy_found(
        self,
        rulez_cli: Callable[..., int],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.chdir(tmp_path)

        code = rulez_cli("validate")

        assert code == 0
        assert "No hooks.yaml found" in capsys.readouterr().out
