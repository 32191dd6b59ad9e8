from __future__ import annotations

from typing import Sequence, Tuple

from .models import PHASES, Phase, Task

DEFAULT_PHASE: Phase = "research"

# Checked in order, first match wins.
PHASE_KEYWORDS: Tuple[Tuple[Phase, Tuple[str, ...]], ...] = (
    ("research", ("research", "topic", "find", "article")),
    ("outline", ("outline", "structure", "diagram", "key concept")),
    ("draft", ("draft", "write")),
    ("revision", ("revis", "refine", "theory")),
    ("polish", ("polish", "final", "submission")),
)

DRAFT_NAME_MARKERS: Tuple[str, ...] = ("draft", "write")


def classify_phase(name: str) -> Phase:
    lowered = (name or "").lower()
    for phase, keywords in PHASE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return phase
    return DEFAULT_PHASE


def effective_phase(task: Task) -> Phase:
    if task.phase in PHASES:
        return task.phase  # type: ignore[return-value]
    return classify_phase(task.name)


def is_draft_task(task: Task) -> bool:
    """Draft either by phase or by its name mentioning drafting/writing."""
    if effective_phase(task) == "draft":
        return True
    lowered = (task.name or "").lower()
    return any(marker in lowered for marker in DRAFT_NAME_MARKERS)


def final_phase(tasks: Sequence[Task]) -> Phase:
    if not tasks:
        return DEFAULT_PHASE
    return effective_phase(tasks[-1])
