"""Platform adapters.

Each supported agent platform has an adapter that parses its hook payloads
into canonical events and renders canonical responses in its reply format.

Example:
    >>> adapter = get_adapter("gemini")
    >>> parsed = adapter.parse_event(payload, logger=logger)
    >>> reply = adapter.translate_response(response, parsed)
"""

from rulez.exceptions import AdapterNotFoundError

from ._base import (
    PLATFORM_TOOL_NAME_KEY,
    Adapter,
    BaseAdapter,
    Evaluate,
    ParsedEvent,
    VendorAdapter,
    canonicalize_tool,
    context_object,
    is_tool_failure,
)
from ._outputs import (
    DEFAULT_OPENCODE_TOOLS,
    CopilotHookReply,
    GeminiHookReply,
    OpenCodeHookReply,
    OpenCodeTool,
)
from .claude import ClaudeAdapter
from .copilot import CopilotAdapter
from .gemini import GeminiAdapter
from .opencode import (
    OpenCodeAdapter,
    OpenCodeAuditEntry,
    OpenCodeAuditLog,
    OpenCodePluginConfig,
    load_plugin_config,
)

ADAPTERS: dict[str, type[Adapter]] = {
    ClaudeAdapter.name: ClaudeAdapter,
    GeminiAdapter.name: GeminiAdapter,
    CopilotAdapter.name: CopilotAdapter,
    OpenCodeAdapter.name: OpenCodeAdapter,
}


def get_adapter(name: str) -> Adapter:
    """Create the adapter registered under ``name``.

    Raises:
        AdapterNotFoundError: If no adapter has that name.
    """
    adapter_cls = ADAPTERS.get(name)
    if adapter_cls is None:
        available = ", ".join(sorted(ADAPTERS))
        raise AdapterNotFoundError(
            f"Unknown platform '{name}'. Available: {available}", name=name
        )
    return adapter_cls()


__all__ = [
    "ADAPTERS",
    "DEFAULT_OPENCODE_TOOLS",
    "PLATFORM_TOOL_NAME_KEY",
    "Adapter",
    "BaseAdapter",
    "ClaudeAdapter",
    "CopilotAdapter",
    "CopilotHookReply",
    "Evaluate",
    "GeminiAdapter",
    "GeminiHookReply",
    "OpenCodeAdapter",
    "OpenCodeAuditEntry",
    "OpenCodeAuditLog",
    "OpenCodeHookReply",
    "OpenCodePluginConfig",
    "OpenCodeTool",
    "ParsedEvent",
    "VendorAdapter",
    "canonicalize_tool",
    "context_object",
    "get_adapter",
    "is_tool_failure",
    "load_plugin_config",
]
