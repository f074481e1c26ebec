from typing import Any

import pytest

from rulez.config import PromptMatch, Rule
from rulez.engine import (
    RegexCache,
    evaluate_matchers,
    is_rule_active,
    matches_prompt,
    rule_matches,
    validate_fields,
)


def _rule(matchers: dict[str, Any], **kwargs: Any) -> Rule:
    return Rule.model_validate({"name": "r", "matchers": matchers, **kwargs})


class TestRuleMatches:
    def test_rule_without_matchers_matches_everything(
        self, make_event, mock_logger
    ) -> None:
        event = make_event("SessionStart", tool_name=None)

        assert rule_matches(
            _rule({}), event, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_tools_require_tool_name(self, make_event, mock_logger) -> None:
        rule = _rule({"tools": ["Bash"]})

        assert rule_matches(
            rule, make_event(), regex_cache=RegexCache(), logger=mock_logger
        )
        assert not rule_matches(
            rule,
            make_event(tool_name=None),
            regex_cache=RegexCache(),
            logger=mock_logger,
        )

    def test_command_match_searches_command(self, make_event, mock_logger) -> None:
        rule = _rule({"tools": ["Bash"], "command_match": r"git\s+push.*--force"})
        event = make_event(tool_input={"command": "git push origin main --force"})

        assert rule_matches(rule, event, regex_cache=RegexCache(), logger=mock_logger)

    def test_command_match_without_command_fails(
        self, make_event, mock_logger
    ) -> None:
        rule = _rule({"command_match": "ls"})

        assert not rule_matches(
            rule,
            make_event(tool_input={"content": "ls"}),
            regex_cache=RegexCache(),
            logger=mock_logger,
        )

    def test_invalid_command_pattern_is_non_match(
        self, make_event, mock_logger
    ) -> None:
        rule = _rule({"command_match": "[broken"})

        assert not rule_matches(
            rule,
            make_event(tool_input={"command": "ls"}),
            regex_cache=RegexCache(),
            logger=mock_logger,
        )
        mock_logger.warning.assert_called_once()

    @pytest.mark.parametrize(
        ("extension", "path", "expected"),
        [
            (".py", "src/main.py", True),
            ("py", "src/main.py", True),
            (".py", "src/main.pyc", False),
            (".rs", "src/main.py", False),
        ],
    )
    def test_extensions(
        self, make_event, mock_logger, extension: str, path: str, expected: bool
    ) -> None:
        rule = _rule({"extensions": [extension]})
        event = make_event(tool_name="Write", tool_input={"file_path": path})

        assert (
            rule_matches(rule, event, regex_cache=RegexCache(), logger=mock_logger)
            is expected
        )

    def test_directories_strip_glob_suffix(self, make_event, mock_logger) -> None:
        rule = _rule({"directories": ["src/**"]})
        inside = make_event(tool_name="Edit", tool_input={"filePath": "/p/src/a.py"})
        outside = make_event(tool_name="Edit", tool_input={"filePath": "/p/lib/a.py"})

        assert rule_matches(rule, inside, regex_cache=RegexCache(), logger=mock_logger)
        assert not rule_matches(
            rule, outside, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_operations_compare_event_type(self, make_event, mock_logger) -> None:
        rule = _rule({"operations": ["PostToolUse"]})

        assert not rule_matches(
            rule, make_event(), regex_cache=RegexCache(), logger=mock_logger
        )
        assert rule_matches(
            rule,
            make_event("PostToolUse"),
            regex_cache=RegexCache(),
            logger=mock_logger,
        )

    def test_simple_prompt_match_list(self, make_event, mock_logger) -> None:
        rule = _rule({"prompt_match": ["delete", "drop"]})
        event = make_event(
            "UserPromptSubmit", tool_name=None, prompt="please drop the table"
        )

        assert rule_matches(rule, event, regex_cache=RegexCache(), logger=mock_logger)

    def test_prompt_match_without_prompt_fails(self, make_event, mock_logger) -> None:
        rule = _rule({"prompt_match": ["x"]})

        assert not rule_matches(
            rule, make_event(), regex_cache=RegexCache(), logger=mock_logger
        )


class TestMatchesPrompt:
    def test_any_mode(self, mock_logger) -> None:
        prompt_match = PromptMatch(patterns=["alpha", "beta"])

        assert matches_prompt(
            "beta only", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_all_mode(self, mock_logger) -> None:
        prompt_match = PromptMatch.model_validate(
            {"patterns": ["alpha", "beta"], "mode": "all"}
        )

        assert not matches_prompt(
            "beta only", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )
        assert matches_prompt(
            "alpha and beta", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_negated_pattern(self, mock_logger) -> None:
        prompt_match = PromptMatch.model_validate(
            {"patterns": ["deploy", "not:staging"], "mode": "all"}
        )

        assert matches_prompt(
            "deploy prod", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )
        assert not matches_prompt(
            "deploy staging", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_case_insensitive_with_start_anchor(self, mock_logger) -> None:
        prompt_match = PromptMatch.model_validate(
            {"patterns": ["delete"], "case_insensitive": True, "anchor": "start"}
        )

        assert matches_prompt(
            "DELETE everything",
            prompt_match,
            regex_cache=RegexCache(),
            logger=mock_logger,
        )
        assert not matches_prompt(
            "please delete", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_end_anchor_ignores_prompt_with_trailing_newline(self, mock_logger) -> None:
        prompt_match = PromptMatch.model_validate(
            {"patterns": ["please"], "anchor": "end"}
        )

        assert matches_prompt(
            "yes please", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )
        assert not matches_prompt(
            "yes please\n", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_contains_word(self, mock_logger) -> None:
        prompt_match = PromptMatch(patterns=["contains_word:test"])

        assert matches_prompt(
            "run the test suite",
            prompt_match,
            regex_cache=RegexCache(),
            logger=mock_logger,
        )
        assert not matches_prompt(
            "run testing", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )

    def test_empty_patterns_never_match(self, mock_logger) -> None:
        assert not matches_prompt(
            "anything",
            PromptMatch(patterns=[]),
            regex_cache=RegexCache(),
            logger=mock_logger,
        )

    def test_invalid_pattern_counts_as_non_match(self, mock_logger) -> None:
        prompt_match = PromptMatch(patterns=["(", "ok"])

        assert matches_prompt(
            "ok", prompt_match, regex_cache=RegexCache(), logger=mock_logger
        )
        mock_logger.warning.assert_called_once()


class TestValidateFields:
    def test_passes_when_fields_present_with_types(
        self, make_event, mock_logger
    ) -> None:
        rule = _rule(
            {
                "require_fields": ["file_path"],
                "field_types": {"options.count": "number"},
            }
        )
        event = make_event(
            tool_name="Write",
            tool_input={"file_path": "a.py", "options": {"count": 2}},
        )

        assert validate_fields(rule, event, mock_logger)

    def test_reports_every_problem_without_values(
        self, make_event, mock_logger
    ) -> None:
        rule = _rule(
            {
                "require_fields": ["file_path", "content"],
                "field_types": {"mode": "string"},
            }
        )
        event = make_event(tool_name="Write", tool_input={"mode": 12345})

        assert not validate_fields(rule, event, mock_logger)

        errors = mock_logger.warning.call_args.kwargs["errors"]
        assert errors == [
            "field 'file_path' is missing",
            "field 'content' is missing",
            "field 'mode' expected string, got number",
        ]
        assert "12345" not in " ".join(errors)

    def test_boolean_is_not_a_number(self, make_event, mock_logger) -> None:
        rule = _rule({"field_types": {"flag": "number"}})
        event = make_event(tool_input={"flag": True})

        assert not validate_fields(rule, event, mock_logger)

    def test_missing_tool_input_fails(self, make_event, mock_logger) -> None:
        rule = _rule({"require_fields": ["command"]})

        assert not validate_fields(rule, make_event(tool_input=None), mock_logger)

    def test_no_field_matchers_passes(self, make_event, mock_logger) -> None:
        assert validate_fields(_rule({}), make_event(tool_input=None), mock_logger)


class TestEvaluateMatchers:
    def test_records_every_configured_matcher(self, make_event, mock_logger) -> None:
        rule = _rule({"tools": ["Write"], "command_match": "ls"})
        event = make_event(tool_input={"command": "ls -la"})

        matched, results = evaluate_matchers(
            rule, event, regex_cache=RegexCache(), logger=mock_logger
        )

        assert not matched
        assert results.tools_matched is False
        assert results.command_match_matched is True
        assert results.extensions_matched is None


class TestIsRuleActive:
    def test_rule_without_gate_is_active(self, make_event, mock_logger) -> None:
        assert is_rule_active(_rule({}), make_event(), environ={}, logger=mock_logger)

    def test_gate_reads_environment(self, make_event, mock_logger) -> None:
        rule = _rule({}, enabled_when='env_CI == "true"')

        assert is_rule_active(
            rule, make_event(), environ={"CI": "true"}, logger=mock_logger
        )
        assert not is_rule_active(rule, make_event(), environ={}, logger=mock_logger)

    def test_gate_error_deactivates_rule(self, make_event, mock_logger) -> None:
        rule = _rule({}, enabled_when="tool_name ==")

        assert not is_rule_active(rule, make_event(), environ={}, logger=mock_logger)
        mock_logger.warning.assert_called_once()
