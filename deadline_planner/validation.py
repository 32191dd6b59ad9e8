from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .models import ScheduleOptions, WeekBucket, WorkItem
from .phases import effective_phase

BUDGET_TOLERANCE = 0.1


def draft_week_ranges(
    items: Sequence[WorkItem], weeks: Sequence[WeekBucket]
) -> List[Tuple[str, int, int]]:
    """(item id, first week index, last week index) of each item's incomplete draft work."""
    ranges: List[Tuple[str, int, int]] = []
    for item in items:
        draft_ids = {
            task.id
            for task in item.tasks
            if not task.completed and effective_phase(task) == "draft"
        }
        if not draft_ids:
            continue
        touched = [
            week.index
            for week in weeks
            if any(entry.task_id in draft_ids and entry.item_id == item.id for entry in week.entries)
        ]
        if touched:
            ranges.append((item.id, min(touched), max(touched)))
    return ranges


def validate_schedule(
    items: Sequence[WorkItem],
    weeks: Sequence[WeekBucket],
    options: ScheduleOptions,
) -> List[str]:
    violations: List[str] = []

    for week in weeks:
        if week.allocated_hours > options.weekly_hours_budget + BUDGET_TOLERANCE:
            violations.append(
                f"Week {week.week_number} exceeds budget: "
                f"{week.allocated_hours:.1f}h > {options.weekly_hours_budget:g}h"
            )

    if options.draft_exclusivity_enabled:
        periods = draft_week_ranges(items, weeks)
        for i, (a_id, a_start, a_end) in enumerate(periods):
            for b_id, b_start, b_end in periods[i + 1:]:
                if a_id == b_id:
                    continue
                if a_start <= b_end and b_start <= a_end:
                    violations.append(
                        f"Draft phases overlap: {a_id} (weeks {a_start + 1}-{a_end + 1}) "
                        f"and {b_id} (weeks {b_start + 1}-{b_end + 1})"
                    )

    for week in weeks:
        if len(week.active_items) > options.max_concurrent_items_per_week:
            violations.append(
                f"Week {week.week_number} has {len(week.active_items)} items "
                f"(max: {options.max_concurrent_items_per_week})"
            )

    return violations


def conservation_gap(items: Sequence[WorkItem], weeks: Sequence[WeekBucket]) -> float:
    """Difference between buffered hours owed and hours placed; 0 for a clean run."""
    placed: Dict[str, float] = {}
    for week in weeks:
        for entry in week.entries:
            placed[entry.task_id] = placed.get(entry.task_id, 0.0) + entry.hours
    owed = sum(task.buffered_hours for item in items for task in item.incomplete_tasks())
    return owed - sum(placed.values())
