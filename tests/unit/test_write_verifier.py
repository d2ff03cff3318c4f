from __future__ import annotations

from pathlib import Path

from rpa.tools.write_verifier import existence_summary, missing_files, write_failure_reason


def test_missing_files_resolves_relative_to_working_dir(tmp_path: Path) -> None:
    (tmp_path / "present.txt").write_text("x", encoding="utf-8")
    absolute = tmp_path / "abs.txt"
    absolute.write_text("x", encoding="utf-8")

    assert missing_files(["present.txt", "absent.txt", str(absolute)], tmp_path) == ["absent.txt"]


def test_failure_reason_distinguishes_counter_states() -> None:
    unavailable = write_failure_reason(["sort.py"], None, None)
    no_tools = write_failure_reason(["sort.py"], 0, 0)
    no_writes = write_failure_reason(["sort.py"], 3, 0)
    silent = write_failure_reason(["sort.py"], 2, 1)

    assert "sort.py" in unavailable
    assert "counters unavailable" in unavailable
    assert "no tool invocation observed" in no_tools
    assert "tool invoked but no write call observed" in no_writes
    assert "tool_calls=3, write_tool_calls=0" in no_writes
    assert "path mismatch or silent write failure" in silent
    assert len({unavailable, no_tools, no_writes, silent}) == 4


def test_existence_summary_reports_each_path(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("x", encoding="utf-8")
    (tmp_path / "pkg").mkdir()

    summary = existence_summary(["a.txt", "pkg", "b.txt"], tmp_path)

    lines = summary.splitlines()
    assert lines[0] == f"工作目录: {tmp_path} (存在)"
    assert lines[1:] == ["- a.txt: 存在", "- pkg: 存在 (目录)", "- b.txt: 不存在"]


def test_existence_summary_lists_directory_without_paths(tmp_path: Path) -> None:
    (tmp_path / "b.txt").write_text("x", encoding="utf-8")
    (tmp_path / "a").mkdir()

    summary = existence_summary([], tmp_path)

    assert summary.splitlines()[1:] == ["- a/", "- b.txt"]


def test_existence_summary_of_empty_directory(tmp_path: Path) -> None:
    assert existence_summary([], tmp_path).endswith("(目录为空)")
