"""Persist run audits and load them back for inspection."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from ..memory.schema import RunAudit

__all__ = [
    "AuditEntry",
    "AuditFile",
    "AuditWriter",
    "DEFAULT_AUDIT_DIR",
    "audit_file_name",
    "list_audit_files",
    "load_audit",
    "summarize_audit",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_AUDIT_DIR = Path(".rpa") / "runs"
_FINAL_PREVIEW_LIMIT = 240


def audit_file_name(started_at: datetime) -> str:
    """Return ``run-<YYYYMMDD-HHMMSS>.json`` for a run start time."""
    return f"run-{started_at.strftime('%Y%m%d-%H%M%S')}.json"


class AuditWriter:
    """Write one JSON record per completed run under ``audit_dir``."""

    def __init__(self, audit_dir: Path | str | None = None) -> None:
        raw = str(audit_dir).strip() if audit_dir is not None else ""
        self._audit_dir = Path(raw) if raw else DEFAULT_AUDIT_DIR

    @property
    def audit_dir(self) -> Path:
        return self._audit_dir

    def write(self, audit: RunAudit) -> Path:
        """Persist ``audit`` and return its path.

        Existing records are never replaced; ``FileExistsError`` is raised when
        another run already claimed the same file name.
        """
        self._audit_dir.mkdir(parents=True, exist_ok=True)
        path = self._audit_dir / audit_file_name(audit.started_at)
        payload = audit.to_json_payload()
        with path.open("x", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
        return path

    def try_write(self, audit: RunAudit) -> str:
        """Persist ``audit``; return an empty string instead of raising."""
        try:
            return str(self.write(audit))
        except (OSError, TypeError, ValueError) as error:
            LOGGER.warning("Failed to persist run audit under %s: %s", self._audit_dir, error)
            return ""


@dataclass(slots=True)
class AuditFile:
    """Audit file discovered on disk."""

    name: str
    path: Path
    modified: float


@dataclass(slots=True)
class AuditEntry:
    """In-memory representation of a stored run audit."""

    path: Path
    raw: str
    payload: Mapping[str, Any]

    @property
    def action_logs(self) -> list[Mapping[str, Any]]:
        value = self.payload.get("action_logs")
        if isinstance(value, list):
            return [item for item in value if isinstance(item, Mapping)]
        return []

    @property
    def plan(self) -> Mapping[str, Any]:
        value = self.payload.get("plan")
        if isinstance(value, Mapping):
            return value
        return {}

    def text(self, key: str) -> str:
        value = self.payload.get(key)
        if value is None:
            return ""
        return str(value).strip()


def list_audit_files(audit_dir: Path | str) -> list[AuditFile]:
    """Return ``run-*.json`` files, newest first; ties sort by name descending.

    Raises ``FileNotFoundError`` when ``audit_dir`` does not exist.
    """
    base = Path(audit_dir)
    if not base.is_dir():
        raise FileNotFoundError(base)
    files: list[AuditFile] = []
    for entry in base.iterdir():
        if not entry.name.startswith("run-") or not entry.name.endswith(".json"):
            continue
        try:
            if not entry.is_file():
                continue
            modified = entry.stat().st_mtime
        except OSError:
            continue
        files.append(AuditFile(name=entry.name, path=entry, modified=modified))
    files.sort(key=lambda item: (item.modified, item.name), reverse=True)
    return files


def load_audit(path: Path | str) -> AuditEntry:
    """Load a stored run audit from disk."""
    audit_path = Path(path)
    raw = audit_path.read_text(encoding="utf-8")
    payload = json.loads(raw)
    if not isinstance(payload, Mapping):
        raise ValueError(f"Audit record must be a JSON object: {audit_path}")
    return AuditEntry(path=audit_path, raw=raw, payload=payload)


def summarize_audit(entry: AuditEntry) -> list[str]:
    """Return display lines summarising an audit record."""
    statuses = Counter(str(log.get("status") or "").strip().lower() for log in entry.action_logs)
    steps = entry.plan.get("steps")
    step_count = len(steps) if isinstance(steps, list) else 0

    final = entry.text("final") or "(empty)"
    if len(final) > _FINAL_PREVIEW_LIMIT:
        final = final[:_FINAL_PREVIEW_LIMIT] + "..."

    duration = entry.payload.get("duration_ms")
    return [
        f"started_at: {entry.text('started_at')}",
        f"finished_at: {entry.text('finished_at')}",
        f"duration_ms: {duration if isinstance(duration, int) else 0}",
        f"goal: {str(entry.plan.get('goal') or '').strip()}",
        f"steps: {step_count}",
        (
            f"action_logs: {len(entry.action_logs)} "
            f"(done={statuses['done']} blocked={statuses['blocked']} skipped={statuses['skipped']})"
        ),
        f"user_input: {entry.text('user_input')}",
        f"final: {final}",
    ]
