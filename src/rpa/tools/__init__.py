"""Filesystem-facing helpers used by the runner."""

from .audit import AuditEntry, AuditFile, AuditWriter, list_audit_files, load_audit, summarize_audit
from .write_verifier import existence_summary, missing_files, write_failure_reason

__all__ = [
    "AuditEntry",
    "AuditFile",
    "AuditWriter",
    "existence_summary",
    "list_audit_files",
    "load_audit",
    "missing_files",
    "summarize_audit",
    "write_failure_reason",
]
