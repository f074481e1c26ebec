"""Audit log sinks.

The audit log is append-only JSONL, one ``LogEntry`` per pipeline run.
Writing is best-effort: a sink never raises, so an unwritable log can never
change a policy decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path

    from structlog.typing import FilteringBoundLogger

    from rulez.models import LogEntry


class AuditSink(Protocol):
    """Destination for audit records."""

    def write(self, entry: LogEntry) -> None:
        """Record one entry. Must not raise."""
        ...


@dataclass(frozen=True, slots=True)
class JsonlAuditSink:
    """Appends entries as JSON lines to a file."""

    path: Path
    logger: FilteringBoundLogger

    def write(self, entry: LogEntry) -> None:
        """Append one entry, logging a warning if the file cannot be written."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                _ = f.write(entry.to_json_line() + "\n")
        except OSError as e:
            self.logger.warning(
                "audit_write_failed", path=str(self.path), error=str(e)
            )


class NullAuditSink:
    """Discards every entry."""

    def write(self, entry: LogEntry) -> None:
        """Discard the entry."""
        del entry


@dataclass(slots=True)
class MemoryAuditSink:
    """Keeps entries in memory, for simulations and tests."""

    entries: list[LogEntry] = field(default_factory=list)

    def write(self, entry: LogEntry) -> None:
        """Keep the entry."""
        self.entries.append(entry)
