"""Client for OpenAI-compatible Responses API endpoints."""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from typing import Any, Callable, Dict, Optional

from .llm_client import AskResult, LLMTimeoutError, LLMTransportError, ToolStatsClient

__all__ = ["DEFAULT_WRITE_TOOLS", "ResponsesClient"]


Transport = Callable[[Dict[str, Any], float], str]

DEFAULT_WRITE_TOOLS: frozenset[str] = frozenset(
    {"write", "write_file", "edit", "edit_file", "apply_patch", "create_file"}
)


class ResponsesClient(ToolStatsClient):
    """Thin adapter around the Responses API that also counts tool calls.

    Each ``function_call`` output item counts as a tool invocation; those
    whose name is in ``write_tools`` also count as write invocations.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://api.openai.com/v1/responses",
        model: str = "gpt-5-mini",
        transport: Optional[Transport] = None,
        timeout: float = 120.0,
        write_tools: Iterable[str] = DEFAULT_WRITE_TOOLS,
        tools: Optional[list[Dict[str, Any]]] = None,
    ) -> None:
        self._api_key = api_key or os.getenv("RPA_API_KEY") or os.getenv("OPENAI_API_KEY")
        self._base_url = base_url
        self._model = model
        self._timeout = timeout
        self._write_tools = frozenset(name.strip().lower() for name in write_tools if name.strip())
        self._tools = list(tools or [])
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise ValueError("An API key is required when using the default transport.")

    @property
    def model(self) -> str:
        return self._model

    @property
    def tools(self) -> list[Dict[str, Any]]:
        """Tool definitions sent with every request."""
        return list(self._tools)

    def ask_with_stats(self, prompt: str, *, timeout: Optional[float] = None) -> AskResult:
        payload: Dict[str, Any] = {
            "model": self._model,
            "input": [
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                }
            ],
        }
        if self._tools:
            payload["tools"] = self._tools
        effective_timeout = timeout if timeout and timeout > 0 else self._timeout
        try:
            raw_response = self._transport(payload, effective_timeout)
        except LLMTransportError:
            raise
        except Exception as error:  # pragma: no cover - defensive path
            raise LLMTransportError(f"Transport rejected the request: {error}") from error
        return self._extract_result(raw_response)

    def _http_transport(self, payload: Dict[str, Any], timeout: float) -> str:
        """Default HTTP transport that targets the configured endpoint."""
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise LLMTimeoutError("Responses API call timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise LLMTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            if isinstance(error.reason, TimeoutError):
                raise LLMTimeoutError("Responses API call timed out.") from error
            raise LLMTransportError(f"Failed to reach endpoint: {error.reason}") from error

        if status >= 400:
            raise LLMTransportError(f"Unexpected HTTP status {status}")

        return raw.decode("utf-8")

    def _extract_result(self, raw_response: str) -> AskResult:
        """Collect output text and tool call counters from a Responses payload."""
        if not raw_response:
            raise LLMTransportError("Endpoint returned an empty response.")
        try:
            data = json.loads(raw_response)
        except json.JSONDecodeError:
            return AskResult(text=raw_response.strip())
        if not isinstance(data, dict):
            return AskResult(text=raw_response.strip())

        if data.get("error"):
            raise LLMTransportError(f"Endpoint reported an error: {data['error']}")

        output = data.get("output") or []
        texts: list[str] = []
        tool_calls = 0
        write_calls = 0
        for item in output if isinstance(output, list) else []:
            if not isinstance(item, dict):
                continue
            kind = item.get("type")
            if kind == "function_call":
                tool_calls += 1
                name = str(item.get("name") or "").strip().lower()
                if name in self._write_tools:
                    write_calls += 1
                continue
            if kind != "message":
                continue
            for content in item.get("content") or []:
                if isinstance(content, dict) and isinstance(content.get("text"), str):
                    texts.append(content["text"])

        text = "\n".join(part.strip() for part in texts if part.strip())
        if not text and isinstance(data.get("output_text"), str):
            text = data["output_text"].strip()
        return AskResult(text=text, tool_calls=tool_calls, write_tool_calls=write_calls)
