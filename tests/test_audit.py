from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from rpa.memory.schema import ActionStepLog, AuditPlan, AuditPlanStep, RunAudit, TodoStatus
from rpa.tools.audit import AuditWriter, list_audit_files, load_audit, summarize_audit


def _audit(final: str = "done", *, second: int = 0) -> RunAudit:
    started = datetime(2024, 1, 2, 3, 4, second, tzinfo=timezone.utc)
    return RunAudit(
        started_at=started,
        finished_at=started,
        duration_ms=1500,
        user_input="do things",
        read_summary="summary",
        plan=AuditPlan(goal="ship", steps=[AuditPlanStep(id="s1", title="Build")]),
        action_logs=[
            ActionStepLog(step_id="s1", title="Build", status=TodoStatus.DONE, attempts=1),
            ActionStepLog(step_id="s2", title="Deploy", status=TodoStatus.BLOCKED, attempts=2),
            ActionStepLog(step_id="s3", title="Announce", status=TodoStatus.SKIPPED),
        ],
        final=final,
    )


def test_writer_creates_directory_and_names_file(tmp_path: Path) -> None:
    writer = AuditWriter(tmp_path / "nested" / "runs")

    path = writer.write(_audit())

    assert path.name == "run-20240102-030400.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["plan"]["goal"] == "ship"
    assert payload["duration_ms"] == 1500


def test_writer_keeps_non_ascii_text_readable(tmp_path: Path) -> None:
    path = AuditWriter(tmp_path).write(_audit(final="任务完成"))

    assert "任务完成" in path.read_text(encoding="utf-8")


def test_list_audit_files_sorts_newest_first_with_name_ties(tmp_path: Path) -> None:
    for name, mtime in [
        ("run-a.json", 100),
        ("run-b.json", 300),
        ("run-c.json", 300),
        ("notes.json", 999),
    ]:
        path = tmp_path / name
        path.write_text("{}", encoding="utf-8")
        os.utime(path, (mtime, mtime))

    names = [item.name for item in list_audit_files(tmp_path)]

    assert names == ["run-c.json", "run-b.json", "run-a.json"]


def test_list_audit_files_requires_directory(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        list_audit_files(tmp_path / "missing")


def test_summary_counts_statuses_and_truncates_final(tmp_path: Path) -> None:
    path = AuditWriter(tmp_path).write(_audit(final="x" * 300))

    lines = summarize_audit(load_audit(path))

    assert "started_at: 2024-01-02T03:04:00+00:00" in lines
    assert "duration_ms: 1500" in lines
    assert "goal: ship" in lines
    assert "steps: 1" in lines
    assert "action_logs: 3 (done=1 blocked=1 skipped=1)" in lines
    assert "user_input: do things" in lines
    assert lines[-1] == "final: " + "x" * 240 + "..."


def test_writer_never_replaces_existing_record(tmp_path: Path) -> None:
    writer = AuditWriter(tmp_path)
    first = writer.write(_audit(final="first"))

    with pytest.raises(FileExistsError):
        writer.write(_audit(final="second"))

    assert writer.try_write(_audit(final="second")) == ""
    assert json.loads(first.read_text(encoding="utf-8"))["final"] == "first"


def test_load_audit_rejects_non_objects(tmp_path: Path) -> None:
    path = tmp_path / "run-bad.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_audit(path)
