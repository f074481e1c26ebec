from rulez.engine import (
    ExecutionContext,
    MemoryAuditSink,
    determine_decision,
    merge_responses,
    process_event,
    run_event,
    run_events,
)
from rulez.enums import Decision, Outcome, PolicyMode
from rulez.models import Response, Timing


def _context(mock_logger, *, debug: bool = False) -> ExecutionContext:
    return ExecutionContext(
        logger=mock_logger, audit_sink=MemoryAuditSink(), debug=debug, environ={}
    )


class TestProcessEvent:
    def test_no_rules_allows(self, make_event, make_config, mock_logger) -> None:
        context = _context(mock_logger)

        result = process_event(make_event(), make_config(), context)

        assert result.response.continue_
        assert result.response.context is None
        assert result.log_entry.outcome == Outcome.ALLOW
        assert result.log_entry.rules_matched == []

    def test_higher_priority_rule_runs_first(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "low", "priority": 10, "actions": {"inject_inline": "low"}},
            {"name": "high", "priority": 90, "actions": {"inject_inline": "high"}},
            {"name": "default", "actions": {"inject_inline": "default"}},
        )

        result = process_event(make_event(), config, _context(mock_logger))

        assert result.response.context == "high\n\ndefault\n\nlow"
        assert result.log_entry.rules_matched == ["high", "default", "low"]

    def test_equal_priority_keeps_declaration_order(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "a", "actions": {"inject_inline": "a"}},
            {"name": "b", "actions": {"inject_inline": "b"}},
        )

        result = process_event(make_event(), config, _context(mock_logger))

        assert result.response.context == "a\n\nb"

    def test_block_discards_context_and_stops(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "ctx", "priority": 100, "actions": {"inject_inline": "ctx"}},
            {"name": "stop", "priority": 50, "actions": {"block": True}},
            {"name": "never", "priority": 1, "actions": {"inject_inline": "never"}},
        )

        result = process_event(make_event(), config, _context(mock_logger))

        assert result.response.blocked
        assert result.response.context is None
        assert result.response.reason == "Blocked by rule 'stop': No description"
        assert result.log_entry.rules_matched == ["ctx", "stop"]
        assert result.log_entry.outcome == Outcome.BLOCK

    def test_disabled_rule_is_skipped(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "off", "metadata": {"enabled": False}, "actions": {"block": True}}
        )

        result = process_event(make_event(), config, _context(mock_logger))

        assert not result.response.blocked

    def test_inactive_rule_is_skipped(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {
                "name": "ci-only",
                "enabled_when": 'env_CI == "true"',
                "actions": {"block": True},
            }
        )

        result = process_event(make_event(), config, _context(mock_logger))

        assert not result.response.blocked

    def test_fail_open_warnings_become_reason(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "ctx", "actions": {"inject": "/nonexistent/context.md"}}
        )

        result = process_event(make_event(), config, _context(mock_logger))

        assert result.response.continue_
        assert result.response.reason is not None
        assert result.response.reason.startswith("Rule 'ctx': Failed to read")

    def test_oversized_context_truncated_when_fail_open(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "big", "actions": {"inject_inline": "x" * 200}},
            settings={"max_context_size": 50},
        )

        result = process_event(make_event(), config, _context(mock_logger))

        context = result.response.context
        assert context is not None
        assert context.startswith("x" * 50)
        assert context.endswith("[output truncated]")
        assert result.response.reason is not None

    def test_oversized_context_blocks_when_fail_closed(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "big", "actions": {"inject_inline": "x" * 200}},
            settings={"max_context_size": 50, "fail_open": False},
        )

        result = process_event(make_event(), config, _context(mock_logger))

        assert result.response.blocked
        assert result.response.reason is not None
        assert "exceeds max_context_size" in result.response.reason

    def test_writes_one_audit_entry(
        self, make_event, make_config, mock_logger
    ) -> None:
        context = _context(mock_logger)

        _ = process_event(make_event(), make_config(), context)

        assert isinstance(context.audit_sink, MemoryAuditSink)
        assert len(context.audit_sink.entries) == 1

    def test_audit_entry_carries_primary_rule_governance(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {
                "name": "audited",
                "mode": "audit",
                "priority": 70,
                "governance": {"author": "sec-team", "ticket": 1234},
                "actions": {"block": True},
            }
        )

        result = process_event(make_event(), config, _context(mock_logger))

        entry = result.log_entry
        assert not result.response.blocked
        assert entry.mode == PolicyMode.AUDIT
        assert entry.priority == 70
        assert entry.decision == Decision.AUDITED
        assert entry.governance == {"author": "sec-team", "ticket": "1234"}

    def test_debug_records_rule_evaluations(
        self, make_event, make_config, mock_logger
    ) -> None:
        config = make_config(
            {"name": "writes", "matchers": {"tools": ["Write"]}},
            {"name": "bash", "matchers": {"tools": ["Bash"]}},
        )

        result = process_event(make_event(), config, _context(mock_logger, debug=True))

        evaluations = result.log_entry.rule_evaluations
        assert evaluations is not None
        assert [(e.rule_name, e.matched) for e in evaluations] == [
            ("writes", False),
            ("bash", True),
        ]
        assert result.log_entry.raw_event is not None

    def test_without_debug_no_trace(
        self, make_event, make_config, mock_logger
    ) -> None:
        result = process_event(make_event(), make_config(), _context(mock_logger))

        assert result.log_entry.rule_evaluations is None
        assert result.log_entry.raw_event is None


class TestDetermineDecision:
    def test_enforce_block(self) -> None:
        assert (
            determine_decision(Response.block("x"), PolicyMode.ENFORCE)
            == Decision.BLOCKED
        )

    def test_warn_with_context(self) -> None:
        assert (
            determine_decision(Response.inject("w"), PolicyMode.WARN) == Decision.WARNED
        )

    def test_warn_without_context(self) -> None:
        assert determine_decision(Response.allow(), PolicyMode.WARN) == Decision.ALLOWED


class TestMergeResponses:
    def test_block_wins(self) -> None:
        merged = merge_responses([Response.inject("a"), Response.block("stop")])

        assert merged.blocked
        assert merged.reason == "stop"

    def test_joins_contexts_and_sums_timing(self) -> None:
        merged = merge_responses(
            [
                Response(
                    continue_=True,
                    context="a",
                    timing=Timing(processing_ms=2, rules_evaluated=3),
                ),
                Response(
                    continue_=True,
                    context="b",
                    reason="warned",
                    timing=Timing(processing_ms=1, rules_evaluated=3),
                ),
            ]
        )

        assert merged.context == "a\n\nb"
        assert merged.reason == "warned"
        assert merged.timing == Timing(processing_ms=3, rules_evaluated=3)


class TestRunEvents:
    def test_stops_at_first_block(self, make_event, make_config, mock_logger) -> None:
        config = make_config(
            {
                "name": "block-pre",
                "matchers": {"operations": ["PreToolUse"]},
                "actions": {"block": True},
            }
        )
        context = _context(mock_logger)

        response = run_events(
            [make_event("PreToolUse"), make_event("PostToolUse")], config, context
        )

        assert response.blocked
        assert isinstance(context.audit_sink, MemoryAuditSink)
        assert len(context.audit_sink.entries) == 1

    def test_merges_all_events(self, make_event, make_config, mock_logger) -> None:
        config = make_config({"name": "ctx", "actions": {"inject_inline": "hi"}})

        response = run_events(
            [make_event("PostToolUse"), make_event("PostToolUseFailure")],
            config,
            _context(mock_logger),
        )

        assert response.context == "hi\n\nhi"

    def test_run_event_loads_policy_from_cwd(
        self, make_event, mock_logger, project_dir, write_policy
    ) -> None:
        _ = write_policy(
            project_dir,
            {"version": "1.0", "rules": [{"name": "all", "actions": {"block": True}}]},
        )

        response = run_event(
            [make_event(cwd=str(project_dir))], _context(mock_logger)
        )

        assert response.blocked
