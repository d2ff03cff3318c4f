from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from rpa.models.command import CommandClient
from rpa.models.llm_client import LLMTimeoutError, LLMTransportError, supports_tool_stats
from rpa.models.responses import ResponsesClient


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def test_command_client_pipes_prompt_on_stdin() -> None:
    client = CommandClient(_python("import sys; print(sys.stdin.read().upper())"))

    assert client.ask("hello") == "HELLO"
    assert not supports_tool_stats(client)


def test_command_client_runs_inside_cwd(tmp_path: Path) -> None:
    client = CommandClient(_python("import os; print(os.getcwd())"), cwd=tmp_path)

    assert Path(client.ask("ignored")) == tmp_path.resolve()


def test_command_client_reports_failed_exit() -> None:
    client = CommandClient(_python("import sys; sys.stderr.write('bad flag'); sys.exit(3)"))

    with pytest.raises(LLMTransportError, match="failed: bad flag"):
        client.ask("hello")


def test_command_client_maps_timeouts() -> None:
    client = CommandClient(_python("import time; time.sleep(5)"))

    with pytest.raises(LLMTimeoutError):
        client.ask("hello", timeout=0.2)


def test_command_client_reports_missing_executable(tmp_path: Path) -> None:
    client = CommandClient([str(tmp_path / "no-such-binary")])

    with pytest.raises(LLMTransportError):
        client.ask("hello")


def test_command_client_splits_string_commands() -> None:
    assert CommandClient("gopi --print").command == ("gopi", "--print")
    with pytest.raises(ValueError):
        CommandClient("")


def _response(*items: dict, **extra) -> str:
    return json.dumps({"output": list(items), **extra})


def test_responses_client_counts_tool_calls() -> None:
    sent = []

    def transport(payload: dict, timeout: float) -> str:
        sent.append((payload, timeout))
        return _response(
            {"type": "function_call", "name": "read_file"},
            {"type": "function_call", "name": "write_file"},
            {"type": "function_call", "name": "Edit"},
            {"type": "message", "content": [{"type": "output_text", "text": " saved "}]},
        )

    client = ResponsesClient(model="m", transport=transport, timeout=30)

    result = client.ask_with_stats("write it")

    assert result.text == "saved"
    assert (result.tool_calls, result.write_tool_calls) == (3, 2)
    payload, timeout = sent[0]
    assert payload["model"] == "m"
    assert payload["input"][0]["content"][0]["text"] == "write it"
    assert timeout == 30
    assert supports_tool_stats(client)


def test_responses_client_uses_custom_write_tools() -> None:
    def transport(_payload: dict, _timeout: float) -> str:
        return _response({"type": "function_call", "name": "put"}, output_text="ok")

    client = ResponsesClient(transport=transport, write_tools=["put"])

    result = client.ask_with_stats("x", timeout=5)

    assert result.text == "ok"
    assert result.write_tool_calls == 1


def test_responses_client_raises_reported_errors() -> None:
    client = ResponsesClient(transport=lambda _p, _t: json.dumps({"error": {"message": "quota"}}))

    with pytest.raises(LLMTransportError, match="quota"):
        client.ask("x")


def test_responses_client_returns_plain_text_bodies() -> None:
    client = ResponsesClient(transport=lambda _p, _t: "  not json  ")

    assert client.ask("x") == "not json"


def test_responses_client_requires_key_without_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("RPA_API_KEY", raising=False)

    with pytest.raises(ValueError, match="API key"):
        ResponsesClient()
