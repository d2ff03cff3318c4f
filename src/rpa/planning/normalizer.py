"""Validation and clean-up for parsed plans."""

from __future__ import annotations

from .schemas import DEFAULT_GOAL, DEFAULT_REASON, RISK_LEVELS, RISK_MEDIUM, Plan, PlanStep

__all__ = ["normalize_plan"]


def normalize_plan(plan: Plan) -> tuple[Plan, bool]:
    """Return a cleaned copy of ``plan`` and whether any step survived.

    Steps with a blank title are dropped. Missing identifiers become
    ``s<position>`` and duplicates receive a ``_<position>`` suffix, where
    position is the 1-based index in the original step list. Unknown risk
    levels collapse to ``medium`` and blank reasons get a default phrase.
    """
    goal = (plan.goal or "").strip() or DEFAULT_GOAL

    seen: set[str] = set()
    normalised: list[PlanStep] = []
    for index, step in enumerate(plan.steps):
        title = (step.title or "").strip()
        if not title:
            continue
        position = index + 1
        step_id = (step.id or "").strip() or f"s{position}"
        while step_id in seen:
            step_id = f"{step_id}_{position}"
        seen.add(step_id)

        risk = (step.risk or "").strip().lower()
        if risk not in RISK_LEVELS:
            risk = RISK_MEDIUM

        normalised.append(
            PlanStep(
                id=step_id,
                title=title,
                reason=(step.reason or "").strip() or DEFAULT_REASON,
                risk=risk,
                requires_approval=bool(step.requires_approval),
            )
        )

    if not normalised:
        return Plan(goal=goal, steps=()), False
    return Plan(goal=goal, steps=tuple(normalised)), True
