"""Ordered, case-insensitive status tracker keyed by step title."""

from __future__ import annotations

from collections import Counter

from .schema import TodoItem, TodoStatus

__all__ = ["EMPTY_TODOS_TEXT", "TodoStore"]

EMPTY_TODOS_TEXT = "(no todos)"


class TodoStore:
    """Track step titles in insertion order; one store belongs to one run."""

    def __init__(self) -> None:
        self._items: list[TodoItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def upsert(self, title: str, status: TodoStatus | str) -> TodoItem | None:
        """Update the status of a matching title or append a new item.

        Titles match case-insensitively after trimming; an existing item
        keeps its id and position. Blank titles are ignored.
        """
        cleaned = (title or "").strip()
        if not cleaned:
            return None
        resolved = TodoStatus(status)
        key = cleaned.casefold()
        for item in self._items:
            if item.title.casefold() == key:
                item.status = resolved
                return item.model_copy()
        item = TodoItem(id=len(self._items) + 1, title=cleaned, status=resolved)
        self._items.append(item)
        return item.model_copy()

    def all(self) -> list[TodoItem]:
        """Return copies of every item in insertion order."""
        return [item.model_copy() for item in self._items]

    def counts(self) -> Counter[TodoStatus]:
        return Counter(item.status for item in self._items)

    def terminal_count(self) -> int:
        return sum(1 for item in self._items if item.status.terminal)

    def render(self) -> str:
        if not self._items:
            return EMPTY_TODOS_TEXT
        return "\n".join(
            f"- [{item.status.value}] {item.id}. {item.title}" for item in self._items
        )
