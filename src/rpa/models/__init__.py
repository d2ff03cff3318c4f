"""Convenience exports for reasoning/execution backend clients."""

from .command import CommandClient
from .guard import GuardedClient
from .llm_client import (
    AskResult,
    LLMBusyError,
    LLMClient,
    LLMClientError,
    LLMTimeoutError,
    LLMTransportError,
    ToolStatsClient,
    supports_tool_stats,
)
from .responses import ResponsesClient

__all__ = [
    "AskResult",
    "CommandClient",
    "GuardedClient",
    "LLMBusyError",
    "LLMClient",
    "LLMClientError",
    "LLMTimeoutError",
    "LLMTransportError",
    "ResponsesClient",
    "ToolStatsClient",
    "supports_tool_stats",
]
