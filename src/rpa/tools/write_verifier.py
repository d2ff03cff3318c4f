"""Check on-disk side effects instead of trusting claimed completion."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Optional

__all__ = ["existence_summary", "missing_files", "resolve_path", "write_failure_reason"]

_LISTING_LIMIT = 20


def resolve_path(path: str, working_dir: Path | str) -> Path:
    """Resolve ``path`` against ``working_dir`` unless it is absolute."""
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return Path(working_dir) / candidate


def missing_files(expected: Sequence[str], working_dir: Path | str) -> list[str]:
    """Return the expected paths that do not exist, in the given order."""
    return [path for path in expected if not resolve_path(path, working_dir).exists()]


def write_failure_reason(
    missing: Sequence[str],
    tool_calls: Optional[int],
    write_tool_calls: Optional[int],
) -> str:
    """Explain why an expected file is absent using the observed tool counters."""
    targets = ", ".join(missing) if missing else "(none)"
    prefix = f"expected file(s) not found after the step reported completion: {targets}"
    if tool_calls is None or write_tool_calls is None:
        return f"{prefix}; tool call counters unavailable, cannot tell whether a write was attempted"
    if tool_calls <= 0:
        return f"{prefix}; no tool invocation observed, the reply only claimed the work was done"
    if write_tool_calls <= 0:
        return (
            f"{prefix}; tool invoked but no write call observed "
            f"(tool_calls={tool_calls}, write_tool_calls=0)"
        )
    return (
        f"{prefix}; write tool invoked (write_tool_calls={write_tool_calls}) but target still absent, "
        "possible path mismatch or silent write failure"
    )


def existence_summary(paths: Sequence[str], working_dir: Path | str) -> str:
    """Render a human-readable existence report for local probe steps."""
    root = Path(working_dir)
    lines = [f"工作目录: {root} ({'存在' if root.is_dir() else '不存在'})"]
    if paths:
        for path in paths:
            resolved = resolve_path(path, root)
            if resolved.is_dir():
                state = "存在 (目录)"
            elif resolved.exists():
                state = "存在"
            else:
                state = "不存在"
            lines.append(f"- {path}: {state}")
        return "\n".join(lines)

    if not root.is_dir():
        return "\n".join(lines)
    entries = sorted(root.iterdir(), key=lambda item: item.name)
    if not entries:
        lines.append("(目录为空)")
        return "\n".join(lines)
    for entry in entries[:_LISTING_LIMIT]:
        suffix = "/" if entry.is_dir() else ""
        lines.append(f"- {entry.name}{suffix}")
    if len(entries) > _LISTING_LIMIT:
        lines.append(f"... ({len(entries) - _LISTING_LIMIT} more)")
    return "\n".join(lines)
