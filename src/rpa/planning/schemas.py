"""Typed plan payloads produced by the plan phase."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"
RISK_LEVELS: tuple[str, ...] = (RISK_LOW, RISK_MEDIUM, RISK_HIGH)

DEFAULT_GOAL = "完成用户请求"
DEFAULT_REASON = "根据规划执行"
BULLET_FALLBACK_REASON = "fallback from bullets"


@dataclass(frozen=True, slots=True)
class PlanStep:
    """Single ordered step emitted by the planner."""

    id: str = ""
    title: str = ""
    reason: str = ""
    risk: str = RISK_MEDIUM
    requires_approval: bool = False

    @property
    def text(self) -> str:
        """Return the text the classifier heuristics inspect."""
        return f"{self.title} {self.reason}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Plan:
    """Goal plus the ordered steps required to reach it."""

    goal: str = ""
    steps: tuple[PlanStep, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"goal": self.goal, "steps": [step.to_dict() for step in self.steps]}


__all__ = [
    "BULLET_FALLBACK_REASON",
    "DEFAULT_GOAL",
    "DEFAULT_REASON",
    "Plan",
    "PlanStep",
    "RISK_HIGH",
    "RISK_LEVELS",
    "RISK_LOW",
    "RISK_MEDIUM",
]
