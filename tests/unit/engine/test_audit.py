from pathlib import Path

import orjson

from rulez.engine import JsonlAuditSink, MemoryAuditSink, NullAuditSink
from rulez.enums import Outcome
from rulez.models import LogEntry


def _entry(session_id: str = "s") -> LogEntry:
    return LogEntry(
        event_type="PreToolUse", session_id=session_id, outcome=Outcome.ALLOW
    )


class TestJsonlAuditSink:
    def test_appends_one_line_per_entry(self, tmp_path: Path, mock_logger) -> None:
        path = tmp_path / "logs" / "rulez.log"
        sink = JsonlAuditSink(path=path, logger=mock_logger)

        sink.write(_entry("one"))
        sink.write(_entry("two"))

        lines = path.read_text(encoding="utf-8").splitlines()
        assert [orjson.loads(line)["session_id"] for line in lines] == ["one", "two"]

    def test_unwritable_path_logs_warning(self, tmp_path: Path, mock_logger) -> None:
        blocker = tmp_path / "file"
        _ = blocker.write_text("", encoding="utf-8")
        sink = JsonlAuditSink(path=blocker / "rulez.log", logger=mock_logger)

        sink.write(_entry())

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.args[0] == "audit_write_failed"


def test_memory_sink_keeps_entries() -> None:
    sink = MemoryAuditSink()

    sink.write(_entry())

    assert len(sink.entries) == 1


def test_null_sink_discards() -> None:
    NullAuditSink().write(_entry())
