from __future__ import annotations

from rpa.memory.schema import TodoStatus
from rpa.memory.todo import EMPTY_TODOS_TEXT, TodoStore


def test_upsert_matches_titles_case_insensitively() -> None:
    store = TodoStore()
    store.upsert("Write File", TodoStatus.TODO)
    store.upsert("Review", TodoStatus.TODO)

    updated = store.upsert("  write file ", TodoStatus.DONE)

    assert updated is not None
    assert updated.id == 1
    assert updated.title == "Write File"
    assert len(store) == 2
    assert [(item.id, item.status) for item in store.all()] == [
        (1, TodoStatus.DONE),
        (2, TodoStatus.TODO),
    ]


def test_upsert_ignores_blank_titles() -> None:
    store = TodoStore()

    assert store.upsert("   ", TodoStatus.TODO) is None
    assert len(store) == 0
    assert store.render() == EMPTY_TODOS_TEXT


def test_upsert_accepts_status_strings() -> None:
    store = TodoStore()

    item = store.upsert("Plan", "in_progress")

    assert item is not None
    assert item.status is TodoStatus.IN_PROGRESS


def test_render_lists_items_in_insertion_order() -> None:
    store = TodoStore()
    store.upsert("first", TodoStatus.DONE)
    store.upsert("second", TodoStatus.BLOCKED)
    store.upsert("third", TodoStatus.SKIPPED)

    assert store.render() == "\n".join(
        [
            "- [done] 1. first",
            "- [blocked] 2. second",
            "- [skipped] 3. third",
        ]
    )
    assert store.terminal_count() == 3
    assert store.counts()[TodoStatus.DONE] == 1


def test_all_returns_copies() -> None:
    store = TodoStore()
    store.upsert("first", TodoStatus.TODO)

    snapshot = store.all()
    snapshot[0].status = TodoStatus.DONE

    assert store.all()[0].status is TodoStatus.TODO
