"""Client base classes shared by all reasoning/execution backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

__all__ = [
    "AskResult",
    "LLMBusyError",
    "LLMClient",
    "LLMClientError",
    "LLMTimeoutError",
    "LLMTransportError",
    "ToolStatsClient",
    "is_busy_error",
    "is_timeout_error",
    "supports_tool_stats",
]


class LLMClientError(RuntimeError):
    """Base error raised for backend failures."""


class LLMTransportError(LLMClientError):
    """Raised when the underlying transport fails to return a response."""


class LLMTimeoutError(LLMTransportError):
    """Raised when a call exceeds its deadline."""


class LLMBusyError(LLMTransportError):
    """Raised when the backend is still processing a previous prompt."""


@dataclass(frozen=True, slots=True)
class AskResult:
    """Reply text plus the tool invocation counters reported by the backend.

    Counters are ``None`` when the backend cannot observe tool calls.
    """

    text: str
    tool_calls: Optional[int] = None
    write_tool_calls: Optional[int] = None

    @property
    def counters_available(self) -> bool:
        return self.tool_calls is not None and self.write_tool_calls is not None


class LLMClient:
    """Plain prompt-in, text-out capability."""

    def ask(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        """Send ``prompt`` and return the reply text.

        ``timeout`` is a deadline in seconds; implementations raise
        :class:`LLMTimeoutError` when it elapses.
        """
        raise NotImplementedError("Subclasses must implement ask().")

    def close(self) -> None:
        """Release backend resources."""


class ToolStatsClient(LLMClient):
    """Optional extension for backends that report tool invocation counts."""

    def ask_with_stats(self, prompt: str, *, timeout: Optional[float] = None) -> AskResult:
        raise NotImplementedError("Subclasses must implement ask_with_stats().")

    def ask(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        return self.ask_with_stats(prompt, timeout=timeout).text


def supports_tool_stats(client: LLMClient) -> bool:
    """Return True when the supplied client implements :class:`ToolStatsClient`."""
    return isinstance(client, ToolStatsClient)


def is_timeout_error(error: BaseException) -> bool:
    """Return True for deadline failures, including foreign timeout exceptions."""
    if isinstance(error, (LLMTimeoutError, TimeoutError)):
        return True
    message = str(error).strip().lower()
    return "deadline exceeded" in message or "timeout" in message or "timed out" in message


def is_busy_error(error: BaseException) -> bool:
    """Return True when the backend rejected the prompt because it is still busy."""
    if isinstance(error, LLMBusyError):
        return True
    message = str(error).strip().lower()
    return "already streaming" in message or "already processing" in message
