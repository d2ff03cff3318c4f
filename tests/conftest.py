from __future__ import annotations

import json
import sys
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Optional, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from rpa.models.llm_client import AskResult, LLMClient, ToolStatsClient  # noqa: E402
from rpa.phases import PhaseName  # noqa: E402
from rpa.prompts import detect_phase  # noqa: E402

Reply = Union[str, AskResult, Exception, Callable[[str], Union[str, AskResult]]]


def plan_json(*steps: dict, goal: str = "demo goal") -> str:
    """Serialise a planner reply with ``steps`` filled from keyword dicts."""

    payload = {"goal": goal, "steps": []}
    for index, step in enumerate(steps, start=1):
        item = {
            "id": f"s{index}",
            "title": "",
            "reason": "because",
            "risk": "low",
            "requires_approval": False,
        }
        item.update(step)
        payload["steps"].append(item)
    return json.dumps(payload, ensure_ascii=False)


class ScriptedClient(LLMClient):
    """Replays queued replies per phase and records every prompt it receives."""

    def __init__(self) -> None:
        self.replies: dict[PhaseName, list[Reply]] = {}
        self.prompts: list[str] = []

    def queue(self, phase: PhaseName, *replies: Reply) -> "ScriptedClient":
        self.replies.setdefault(phase, []).extend(replies)
        return self

    def prompts_for(self, phase: PhaseName) -> list[str]:
        return [prompt for prompt in self.prompts if detect_phase(prompt) is phase]

    def _next(self, prompt: str) -> Union[str, AskResult]:
        self.prompts.append(prompt)
        phase = detect_phase(prompt)
        queue = self.replies.get(phase) if phase is not None else None
        if not queue:
            raise AssertionError(f"unexpected prompt for phase {phase}: {prompt[:40]!r}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply

    def ask(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        reply = self._next(prompt)
        return reply.text if isinstance(reply, AskResult) else reply


class ScriptedStatsClient(ScriptedClient, ToolStatsClient):
    """Scripted client that also reports tool counters."""

    def ask_with_stats(self, prompt: str, *, timeout: Optional[float] = None) -> AskResult:
        reply = self._next(prompt)
        return reply if isinstance(reply, AskResult) else AskResult(text=reply)

    def ask(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        return self.ask_with_stats(prompt, timeout=timeout).text


def scripted(
    *,
    read: Iterable[Reply] = ("summary",),
    plan: Iterable[Reply] = (),
    act: Iterable[Reply] = ("ok",),
    final: Iterable[Reply] = ("all done",),
    repair: Iterable[Reply] = (),
    stats: bool = False,
) -> ScriptedClient:
    """Build a scripted client; the last reply of each phase repeats."""

    client: ScriptedClient = ScriptedStatsClient() if stats else ScriptedClient()
    client.queue(PhaseName.READ, *read)
    client.queue(PhaseName.PLAN, *plan)
    client.queue(PhaseName.PLAN_REPAIR, *repair)
    client.queue(PhaseName.ACT, *act)
    client.queue(PhaseName.FINAL, *final)
    return client


@pytest.fixture()
def audit_dir(tmp_path: Path) -> Path:
    return tmp_path / "audits"


@pytest.fixture()
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path
