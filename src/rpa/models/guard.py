"""Deadline and busy-retry policy wrapped around any backend client."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .llm_client import (
    AskResult,
    LLMClient,
    LLMClientError,
    LLMTimeoutError,
    ToolStatsClient,
    is_busy_error,
    is_timeout_error,
    supports_tool_stats,
)

__all__ = ["GuardedClient"]

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0
RETRY_TIMEOUT_FLOOR = 60.0
BUSY_MAX_ATTEMPTS = 8
BUSY_RETRY_DELAY = 0.3


class GuardedClient(ToolStatsClient):
    """Apply a per-call deadline, one enlarged-deadline retry and busy backoff.

    Timeouts are retried once with ``max(2 * timeout, 60s)``. Busy failures
    are retried after a fixed delay while the current deadline allows it.
    Every other failure propagates on the first occurrence.
    """

    def __init__(
        self,
        inner: LLMClient,
        *,
        timeout: float = 300.0,
        busy_max_attempts: int = BUSY_MAX_ATTEMPTS,
        busy_retry_delay: float = BUSY_RETRY_DELAY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._inner = inner
        self._timeout = timeout if timeout > 0 else DEFAULT_TIMEOUT
        self._busy_max_attempts = max(1, busy_max_attempts)
        self._busy_retry_delay = busy_retry_delay
        self._clock = clock
        self._sleep = sleep

    @property
    def timeout(self) -> float:
        return self._timeout

    def ask_with_stats(self, prompt: str, *, timeout: Optional[float] = None) -> AskResult:
        base = timeout if timeout and timeout > 0 else self._timeout
        try:
            return self._call_with_busy_retry(prompt, base)
        except LLMClientError as error:
            if not is_timeout_error(error):
                raise
            retry_timeout = max(base * 2, RETRY_TIMEOUT_FLOOR)
            LOGGER.warning("Call timed out after %.0fs; retrying once with %.0fs", base, retry_timeout)
            return self._call_with_busy_retry(prompt, retry_timeout)

    def close(self) -> None:
        self._inner.close()

    def _call_with_busy_retry(self, prompt: str, timeout: float) -> AskResult:
        deadline = self._clock() + timeout
        last_error: Exception | None = None
        for attempt in range(1, self._busy_max_attempts + 1):
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise LLMTimeoutError(f"deadline exceeded after {timeout:.0f}s") from last_error
            try:
                return self._invoke(prompt, remaining)
            except LLMClientError as error:
                if not is_busy_error(error):
                    raise
                last_error = error
                LOGGER.debug("Backend busy (attempt %d/%d): %s", attempt, self._busy_max_attempts, error)
            if attempt < self._busy_max_attempts:
                self._sleep(self._busy_retry_delay)
        assert last_error is not None
        raise last_error

    def _invoke(self, prompt: str, timeout: float) -> AskResult:
        if supports_tool_stats(self._inner):
            return self._inner.ask_with_stats(prompt, timeout=timeout)  # type: ignore[attr-defined]
        return AskResult(text=self._inner.ask(prompt, timeout=timeout))
