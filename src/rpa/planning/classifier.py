"""Keyword heuristics that decide how a plan step is executed."""

from __future__ import annotations

import re
from collections.abc import Sequence
from enum import Enum

from .keywords import KeywordTables, matches_any
from .schemas import PlanStep

__all__ = ["StepClassifier", "StepKind", "detect_file_paths"]

_PATH_RE = re.compile(
    r"(?<![A-Za-z0-9_./\\-])"
    r"([A-Za-z0-9_./\\-]*[A-Za-z0-9_-]\.(?=[A-Za-z0-9]*[A-Za-z])[A-Za-z0-9]{1,16})"
    r"(?![A-Za-z0-9_/\\-])"
)
_SURROUNDING_PUNCTUATION = "\"'`“”‘’()[]{}<>,;:!?，。；：！？、（）《》【】「」"


class StepKind(str, Enum):
    """Execution path selected for a plan step."""

    INTENT_CONFIRMATION = "intent_confirmation"
    LOCAL_PROBE = "local_probe"
    STRICT_WRITE = "strict_write"
    GENERAL = "general"


def detect_file_paths(text: str) -> list[str]:
    """Return path-like tokens with an extension, deduplicated in first-seen order."""
    results: list[str] = []
    seen: set[str] = set()
    for token in (text or "").split():
        if "://" in token:
            continue
        cleaned = token.strip(_SURROUNDING_PUNCTUATION)
        for match in _PATH_RE.finditer(cleaned):
            candidate = match.group(1).replace("\\", "/")
            while candidate.startswith("./"):
                candidate = candidate[2:]
            if not candidate or candidate in seen:
                continue
            seen.add(candidate)
            results.append(candidate)
    return results


class StepClassifier:
    """Pure predicates over ``title + " " + reason`` backed by :class:`KeywordTables`."""

    def __init__(self, keywords: KeywordTables | None = None) -> None:
        self._keywords = keywords or KeywordTables()

    @property
    def keywords(self) -> KeywordTables:
        return self._keywords

    def is_intent_confirmation(self, step: PlanStep) -> bool:
        return matches_any(step.text, self._keywords.intent_phrases)

    def is_local_probe(self, step: PlanStep) -> bool:
        return matches_any(step.text, self._keywords.probe_phrases)

    def is_strict_write(self, step: PlanStep, requested_files: Sequence[str] = ()) -> bool:
        """Return True when the step is expected to leave a file on disk."""
        if detect_file_paths(step.text):
            return True
        return bool(requested_files) and matches_any(step.text, self._keywords.persist_phrases)

    def expected_files(self, step: PlanStep, requested_files: Sequence[str] = ()) -> list[str]:
        """Return the files a step should produce, preferring paths named by the step."""
        own = detect_file_paths(step.text)
        if own:
            return own
        return list(requested_files)

    def classify(self, step: PlanStep, requested_files: Sequence[str] = ()) -> StepKind:
        if self.is_intent_confirmation(step):
            return StepKind.INTENT_CONFIRMATION
        if self.is_local_probe(step):
            return StepKind.LOCAL_PROBE
        if self.is_strict_write(step, requested_files):
            return StepKind.STRICT_WRITE
        return StepKind.GENERAL
