"""Typed records produced by a single agent run."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


def local_now() -> datetime:
    """Return a timezone-aware timestamp in the local zone."""
    return datetime.now().astimezone()


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class TodoStatus(str, Enum):
    """Lifecycle states for a todo item."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    SKIPPED = "skipped"
    BLOCKED = "blocked"

    @property
    def terminal(self) -> bool:
        return self in {TodoStatus.DONE, TodoStatus.SKIPPED, TodoStatus.BLOCKED}


class TodoItem(RecordModel):
    """Single tracked step title and its latest status."""

    id: int
    title: str
    status: TodoStatus = TodoStatus.TODO


class ActionStepLog(RecordModel):
    """Outcome of one plan step during the act phase."""

    step_id: str
    title: str
    status: TodoStatus
    attempts: int = 0
    output: str = ""
    error_text: str = ""
    tool_calls: int = 0
    write_tool_calls: int = 0


class AuditPlanStep(RecordModel):
    """Persisted shape of a plan step."""

    id: str
    title: str
    reason: str = ""
    risk: str = "medium"
    requires_approval: bool = False


class AuditPlan(RecordModel):
    """Persisted shape of the normalised plan."""

    goal: str
    steps: List[AuditPlanStep] = Field(default_factory=list)


class RunAudit(RecordModel):
    """Immutable summary of one completed run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    started_at: datetime
    finished_at: datetime
    duration_ms: int
    user_input: str
    read_summary: str
    plan: AuditPlan
    action_logs: List[ActionStepLog] = Field(default_factory=list)
    final: str = ""
    todos: List[TodoItem] = Field(default_factory=list)

    def to_json_payload(self) -> Dict[str, Any]:
        """Return a JSON-ready mapping with RFC 3339 timestamps."""
        payload = self.model_dump(mode="json")
        payload["started_at"] = self.started_at.isoformat(timespec="seconds")
        payload["finished_at"] = self.finished_at.isoformat(timespec="seconds")
        return payload


__all__ = [
    "ActionStepLog",
    "AuditPlan",
    "AuditPlanStep",
    "RecordModel",
    "RunAudit",
    "TodoItem",
    "TodoStatus",
    "local_now",
]
