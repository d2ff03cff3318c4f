"""Per-run records and the todo tracker."""

from .schema import ActionStepLog, RunAudit, TodoItem, TodoStatus
from .todo import EMPTY_TODOS_TEXT, TodoStore

__all__ = [
    "ActionStepLog",
    "EMPTY_TODOS_TEXT",
    "RunAudit",
    "TodoItem",
    "TodoStatus",
    "TodoStore",
]
