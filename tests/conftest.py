"""Shared fixtures: a fixed planning date and the standard five-phase item."""
from datetime import date, timedelta
from typing import Optional, Sequence

import pytest

from deadline_planner.models import ScheduleOptions, Task, WorkItem

# A Monday, so week buckets start on the planning date itself.
TODAY = date(2025, 1, 6)

STANDARD_TASK_NAMES = (
    "Research & Topic Selection",
    "Outline & Structure",
    "First Draft",
    "Revision & Refinement",
    "Final Polish",
)
STANDARD_TASK_HOURS = (2.0, 1.5, 5.0, 2.5, 1.0)


def make_item(
    item_id: str,
    name: Optional[str] = None,
    hours: Sequence[float] = STANDARD_TASK_HOURS,
    names: Sequence[str] = STANDARD_TASK_NAMES,
    buffer_multiplier: float = 1.2,
) -> WorkItem:
    tasks = tuple(
        Task(
            id=f"{item_id}-{idx + 1}",
            item_id=item_id,
            name=task_name,
            estimated_hours=task_hours,
            buffer_multiplier=buffer_multiplier,
        )
        for idx, (task_name, task_hours) in enumerate(zip(names, hours))
    )
    return WorkItem(id=item_id, name=name or item_id.title(), tasks=tasks)


def dated_task(
    task_id: str,
    item_id: str,
    name: str,
    hours: float,
    start_offset: int,
    end_offset: int,
    completed: bool = False,
) -> Task:
    return Task(
        id=task_id,
        item_id=item_id,
        name=name,
        estimated_hours=hours,
        buffer_multiplier=1.2,
        completed=completed,
        start_date=TODAY + timedelta(days=start_offset),
        deadline=TODAY + timedelta(days=end_offset),
    )


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def standard_item() -> WorkItem:
    return make_item("essay", "Essay")


@pytest.fixture
def roomy_options() -> ScheduleOptions:
    return ScheduleOptions(weekly_hours_budget=6, master_deadline=TODAY + timedelta(weeks=8))


@pytest.fixture
def course_items():
    """Seven items without tasks, estimated from the base-hours table."""
    ids = ["math", "english", "econ-intl", "physics", "econ-micro", "history", "econ-macro"]
    return [WorkItem(id=item_id, name=item_id.replace("-", " ").title()) for item_id in ids]
