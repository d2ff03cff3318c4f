"""Shared phase enumerations and execution ordering."""

from __future__ import annotations

from enum import Enum


class PhaseName(str, Enum):
    """Enumeration of the runner phases."""

    READ = "read"
    PLAN = "plan"
    PLAN_REPAIR = "plan_repair"
    TODO_INIT = "todo_init"
    ACT = "act"
    FINAL = "final"
    AUDIT = "audit"


PHASE_SEQUENCE = [
    PhaseName.READ,
    PhaseName.PLAN,
    PhaseName.PLAN_REPAIR,
    PhaseName.TODO_INIT,
    PhaseName.ACT,
    PhaseName.FINAL,
    PhaseName.AUDIT,
]


__all__ = ["PHASE_SEQUENCE", "PhaseName"]
