"""Bilingual phrase tables that drive step classification."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

INTENT_CONFIRMATION_PHRASES: tuple[str, ...] = (
    "确认用户意图",
    "确认用户需求",
    "确认需求",
    "确认意图",
    "明确需求",
    "明确用户需求",
    "理解用户需求",
    "理解需求",
    "澄清需求",
    "分析用户需求",
    "confirm user intent",
    "confirm the user's intent",
    "confirm intent",
    "confirm requirement",
    "confirm the requirement",
    "clarify requirement",
    "clarify the requirement",
    "understand the request",
    "understand user requirement",
)

LOCAL_PROBE_PHRASES: tuple[str, ...] = (
    "检查工作目录",
    "查看工作目录",
    "确认工作目录",
    "检查当前目录",
    "查看当前目录",
    "检查文件是否存在",
    "确认文件是否存在",
    "检查文件存在",
    "检查目标文件",
    "check working directory",
    "check the working directory",
    "inspect working directory",
    "inspect the working directory",
    "check current directory",
    "check the current directory",
    "check if file exists",
    "check whether the file exists",
    "check file existence",
    "verify file exists",
    "verify file existence",
)

PERSIST_PHRASES: tuple[str, ...] = (
    "写入",
    "保存",
    "落盘",
    "创建文件",
    "生成文件",
    "新建文件",
    "输出到文件",
    "write to file",
    "write the file",
    "write to disk",
    "save to file",
    "save to disk",
    "save the file",
    "create the file",
    "create file",
    "persist",
)


@dataclass(frozen=True, slots=True)
class KeywordTables:
    """Lower-cased phrase sets consulted by :class:`~rpa.planning.classifier.StepClassifier`."""

    intent_phrases: tuple[str, ...] = field(default=INTENT_CONFIRMATION_PHRASES)
    probe_phrases: tuple[str, ...] = field(default=LOCAL_PROBE_PHRASES)
    persist_phrases: tuple[str, ...] = field(default=PERSIST_PHRASES)

    def extended(
        self,
        *,
        intent: Iterable[str] = (),
        probe: Iterable[str] = (),
        persist: Iterable[str] = (),
    ) -> "KeywordTables":
        """Return a copy with extra phrases appended to each table."""
        return replace(
            self,
            intent_phrases=_merge(self.intent_phrases, intent),
            probe_phrases=_merge(self.probe_phrases, probe),
            persist_phrases=_merge(self.persist_phrases, persist),
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "KeywordTables":
        """Build tables from the optional ``classifier`` config section."""
        section = (config or {}).get("classifier") or {}
        if not isinstance(section, Mapping):
            return cls()
        return cls().extended(
            intent=_string_list(section.get("intent_phrases")),
            probe=_string_list(section.get("probe_phrases")),
            persist=_string_list(section.get("persist_phrases")),
        )


def matches_any(text: str, phrases: Iterable[str]) -> bool:
    """Return True when any phrase occurs in ``text`` (case-insensitive)."""
    lowered = (text or "").lower()
    if not lowered.strip():
        return False
    return any(phrase.lower() in lowered for phrase in phrases if phrase)


def _merge(base: tuple[str, ...], extra: Iterable[str]) -> tuple[str, ...]:
    merged = list(base)
    known = {item.lower() for item in base}
    for phrase in extra:
        cleaned = phrase.strip().lower()
        if cleaned and cleaned not in known:
            known.add(cleaned)
            merged.append(cleaned)
    return tuple(merged)


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, Iterable):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "INTENT_CONFIRMATION_PHRASES",
    "KeywordTables",
    "LOCAL_PROBE_PHRASES",
    "PERSIST_PHRASES",
    "matches_any",
]
