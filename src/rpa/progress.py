"""Observational progress events fired at phase and step boundaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .phases import PhaseName

__all__ = ["ProgressEvent", "ProgressSink", "emit_progress"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Snapshot of runner progress handed to the optional sink."""

    phase: PhaseName
    message: str
    total: int = 0
    completed: int = 0
    todo_text: str = ""


ProgressSink = Callable[[ProgressEvent], None]


def emit_progress(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    """Deliver ``event`` to ``sink``; sink failures never affect the run."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception:  # noqa: BLE001 - sinks are observational only
        LOGGER.warning("Progress sink raised for %s event", event.phase.value, exc_info=True)
