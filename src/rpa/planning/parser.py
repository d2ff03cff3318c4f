"""Turn raw plan-phase replies into :class:`Plan` objects."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.type_adapter import TypeAdapter

from .schemas import BULLET_FALLBACK_REASON, DEFAULT_GOAL, RISK_MEDIUM, Plan, PlanStep

__all__ = ["parse_bullets", "parse_plan", "strip_code_fence"]

_BULLET_RE = re.compile(r"^[-*\d.]+\s*(\S.*)$")


class _StepPayload(BaseModel):
    """Wire shape of a single step inside the planner JSON."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = ""
    title: Optional[str] = ""
    reason: Optional[str] = ""
    risk: Optional[str] = ""
    requires_approval: Optional[bool] = False


class _PlanPayload(BaseModel):
    """Wire shape of the planner JSON reply."""

    model_config = ConfigDict(extra="ignore")

    goal: Optional[str] = ""
    steps: Optional[list[_StepPayload]] = None


_PLAN_ADAPTER = TypeAdapter(_PlanPayload)


def parse_plan(raw: str) -> Plan:
    """Parse a plan reply, preferring strict JSON and falling back to bullet lines."""
    text = strip_code_fence((raw or "").strip())

    structured = _decode_structured(text)
    if structured is not None:
        return structured

    steps = tuple(
        PlanStep(
            id=f"s{index}",
            title=title,
            reason=BULLET_FALLBACK_REASON,
            risk=RISK_MEDIUM,
            requires_approval=False,
        )
        for index, title in enumerate(parse_bullets(text), start=1)
    )
    return Plan(goal=DEFAULT_GOAL, steps=steps)


def strip_code_fence(text: str) -> str:
    """Remove one enclosing Markdown fence when a matching closing fence exists."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.split("\n")
    if len(lines) < 3:
        return stripped
    end: int | None = None
    for index in range(len(lines) - 1, 0, -1):
        if lines[index].strip().startswith("```"):
            end = index
            break
    if end is None or end <= 1:
        return stripped
    return "\n".join(lines[1:end]).strip()


def parse_bullets(text: str) -> list[str]:
    """Return bullet or numbered line bodies; the whole text when none are present."""
    normalised = (text or "").replace("\r\n", "\n")
    results: list[str] = []
    for line in normalised.split("\n"):
        match = _BULLET_RE.match(line.strip())
        if not match:
            continue
        value = match.group(1).strip()
        if any(char.isalnum() for char in value):
            results.append(value)
    if not results and normalised.strip():
        results.append(normalised.strip())
    return results


def _decode_structured(text: str) -> Plan | None:
    """Return a plan when ``text`` is a JSON object with at least one step."""
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        payload = _PLAN_ADAPTER.validate_python(data)
    except ValidationError:
        return None
    if not payload.steps:
        return None
    steps = tuple(
        PlanStep(
            id=item.id or "",
            title=item.title or "",
            reason=item.reason or "",
            risk=item.risk or "",
            requires_approval=bool(item.requires_approval),
        )
        for item in payload.steps
    )
    return Plan(goal=payload.goal or "", steps=steps)
