"""OpenCode adapter and plugin dispatch.

Besides translating payloads, the OpenCode integration reads its own plugin
settings, can filter events out before they reach the pipeline, and writes a
plugin audit record for every dispatched event.
"""

from __future__ import annotations

import os
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Literal

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rulez import __version__
from rulez.enums import EventType
from rulez.models import Response
from rulez.utils import get_opencode_plugin_dir

from ._base import ParsedEvent, VendorAdapter, is_tool_failure
from ._outputs import OpenCodeHookReply

if TYPE_CHECKING:
    from collections.abc import Mapping

    from structlog.typing import FilteringBoundLogger

    from ._base import Evaluate

HOOK_NAME_KEY: str = "opencode_hook_event_name"
PLUGIN_NAME: str = "rulez-plugin"
SETTINGS_FILE_NAME: str = "settings.json"
AUDIT_LOG_ENV_VAR: str = "RULEZ_AUDIT_LOG_PATH"

TOOL_NAMES: dict[str, str] = {
    "bash": "Bash",
    "write": "Write",
    "edit": "Edit",
    "read": "Read",
    "glob": "Glob",
    "grep": "Grep",
    "task": "Task",
    "webfetch": "WebFetch",
    "fetch": "WebFetch",
}

_SINGLE_EVENTS: dict[str, EventType] = {
    "tool.execute.before": EventType.PRE_TOOL_USE,
    "session.created": EventType.SESSION_START,
    "session.deleted": EventType.SESSION_END,
    "session.updated": EventType.USER_PROMPT_SUBMIT,
    "session.compacted": EventType.PRE_COMPACT,
}


def _default_audit_log_path() -> Path:
    return get_opencode_plugin_dir() / "audit.log"


class OpenCodePluginConfig(BaseModel):
    """Settings of the OpenCode plugin."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    audit_log_path: Path = Field(
        default_factory=_default_audit_log_path,
        description="Where plugin audit records are appended.",
    )
    event_filters: list[str] = Field(
        default_factory=list,
        description="OpenCode event names that are allowed without evaluation.",
    )


def load_plugin_config(
    *,
    logger: FilteringBoundLogger,
    settings_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> OpenCodePluginConfig:
    """Load the plugin settings.

    Settings come from ``settings.json`` in the plugin directory, with
    ``RULEZ_AUDIT_LOG_PATH`` overriding the audit log path. An unreadable
    or invalid settings file is logged and replaced by the defaults.

    Args:
        logger: Logger for load warnings.
        settings_file: Settings file to read instead of the default one.
        environ: Environment to read overrides from, or None for os.environ.
    """
    path = (
        settings_file
        if settings_file is not None
        else get_opencode_plugin_dir() / SETTINGS_FILE_NAME
    )
    data: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    if path.is_file():
        try:
            loaded = orjson.loads(path.read_bytes())  # pyright: ignore[reportAny]
        except (OSError, orjson.JSONDecodeError) as e:
            logger.warning(
                "opencode_settings_load_failed", path=str(path), error=str(e)
            )
        else:
            if isinstance(loaded, dict):
                data = loaded  # pyright: ignore[reportUnknownVariableType]
            else:
                logger.warning(
                    "opencode_settings_load_failed",
                    path=str(path),
                    error="settings must be a JSON object",
                )

    env = os.environ if environ is None else environ
    override = env.get(AUDIT_LOG_ENV_VAR)
    if override:
        data = {**data, "audit_log_path": Path(override).expanduser()}

    try:
        return OpenCodePluginConfig.model_validate(data)
    except ValidationError as e:
        logger.warning("opencode_settings_invalid", path=str(path), error=str(e))
        if override:
            return OpenCodePluginConfig(audit_log_path=Path(override).expanduser())
        return OpenCodePluginConfig()


class OpenCodeAuditEntry(BaseModel):
    """One plugin audit record, written per dispatched event."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="When the event was dispatched.")
    event_id: str = Field(..., description="Unique identifier of the dispatch.")
    event_name: str = Field(..., description="The OpenCode event name.")
    decision: Literal["allow", "deny"] = Field(..., description="Final decision.")
    reason: str | None = Field(default=None, description="Reason, if any.")
    latency_ms: int = Field(..., description="Evaluation time in milliseconds.")
    plugin_name: str = Field(default=PLUGIN_NAME, description="Plugin name.")
    plugin_version: str = Field(default=__version__, description="Plugin version.")
    session_id: str = Field(..., description="OpenCode session identifier.")

    def to_json_line(self) -> str:
        """Serialize to a single JSON line."""
        return self.model_dump_json()


@dataclass(frozen=True, slots=True)
class OpenCodeAuditLog:
    """Appends plugin audit records to a JSONL file."""

    path: Path
    logger: FilteringBoundLogger

    def write(self, entry: OpenCodeAuditEntry) -> None:
        """Append one entry, logging a warning if the file cannot be written."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                _ = f.write(entry.to_json_line() + "\n")
        except OSError as e:
            self.logger.warning(
                "opencode_audit_write_failed", path=str(self.path), error=str(e)
            )


class OpenCodeAdapter(VendorAdapter):
    """Adapter for OpenCode plugin hooks.

    Args:
        plugin_config: Plugin settings; loaded on first dispatch when None.
    """

    name: ClassVar[str] = "opencode"
    block_exit_code: ClassVar[int | None] = 2
    hook_name_key: ClassVar[str] = HOOK_NAME_KEY
    tool_names: ClassVar[Mapping[str, str]] = TOOL_NAMES
    tool_event_names: ClassVar[frozenset[str]] = frozenset(
        {"tool.execute.before", "tool.execute.after"}
    )

    def __init__(self, plugin_config: OpenCodePluginConfig | None = None) -> None:
        self.plugin_config: OpenCodePluginConfig | None = plugin_config

    def map_event_types(
        self,
        hook_event_name: str,
        tool_input: object,
        extra: Mapping[str, Any],  # pyright: ignore[reportExplicitAny]
    ) -> list[EventType]:
        """Map an OpenCode event name; a failed tool also fires PostToolUseFailure."""
        if hook_event_name == "tool.execute.after":
            types = [EventType.POST_TOOL_USE]
            if is_tool_failure(tool_input, extra):
                types.append(EventType.POST_TOOL_USE_FAILURE)
            return types
        return [_SINGLE_EVENTS.get(hook_event_name, EventType.NOTIFICATION)]

    def translate_response(
        self, response: Response, parsed: ParsedEvent
    ) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Render a response as an OpenCode reply with the plugin tools."""
        del parsed
        reply = OpenCodeHookReply(
            continue_=response.continue_,
            reason=response.reason,
            context=response.context,
        )
        return reply.to_json_dict()

    def safe_reply(self, reason: str) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Build an allow reply carrying ``reason``."""
        return OpenCodeHookReply(continue_=True, reason=reason).to_json_dict()

    def dispatch(
        self,
        parsed: ParsedEvent,
        evaluate: Evaluate,
        *,
        logger: FilteringBoundLogger,
    ) -> Response:
        """Evaluate an event unless it is filtered, and audit the decision.

        Filtered events are allowed without evaluation or audit record.
        """
        if self.plugin_config is None:
            self.plugin_config = load_plugin_config(logger=logger)
        config = self.plugin_config

        if parsed.hook_event_name in config.event_filters:
            logger.debug("opencode_event_filtered", event_name=parsed.hook_event_name)
            return Response.allow()

        start = time.perf_counter()
        response = evaluate(parsed.events)
        entry = OpenCodeAuditEntry(
            timestamp=datetime.now(tz=UTC),
            event_id=str(uuid.uuid4()),
            event_name=parsed.hook_event_name,
            decision="deny" if response.blocked else "allow",
            reason=response.reason,
            latency_ms=int((time.perf_counter() - start) * 1000),
            session_id=parsed.event.session_id,
        )
        OpenCodeAuditLog(config.audit_log_path, logger).write(entry)
        return response
