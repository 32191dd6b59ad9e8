from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .models import Task, WorkItem
from .phases import is_draft_task


@dataclass
class RescheduleResult:
    item: WorkItem
    message: str
    impacted_items: List[str] = field(default_factory=list)
    deadline_at_risk: bool = False
    new_completion_date: Optional[date] = None


def _shift(task: Task, days: int) -> Task:
    if days == 0:
        return task
    delta = timedelta(days=days)
    return replace(
        task,
        start_date=task.start_date + delta if task.start_date else None,
        deadline=task.deadline + delta if task.deadline else None,
    )


def _completion_date(tasks: Sequence[Task]) -> Optional[date]:
    deadlines = [task.deadline for task in tasks if not task.completed and task.deadline]
    return max(deadlines) if deadlines else None


def _result(item: WorkItem, message: str, master_deadline: date) -> RescheduleResult:
    completion = _completion_date(item.tasks)
    return RescheduleResult(
        item=item,
        message=message,
        impacted_items=[item.id],
        deadline_at_risk=completion is not None and completion > master_deadline,
        new_completion_date=completion,
    )


def reschedule_after_completion(
    item: WorkItem,
    completed_task_id: str,
    master_deadline: date,
    today: date,
) -> RescheduleResult:
    """Pull remaining tasks earlier after an early finish, push them back after a late one."""
    task = item.find_task(completed_task_id)
    if task is None:
        return RescheduleResult(item=item, message="Task not found")
    remaining = [t for t in item.tasks if not t.completed and t.id != completed_task_id]
    if not remaining:
        return RescheduleResult(item=item, message="All tasks completed!")
    if task.deadline is None:
        return _result(item, "Completed task has no deadline; nothing to shift", master_deadline)

    days_saved = (task.deadline - today).days
    if days_saved == 0:
        return _result(item, "Completed on time!", master_deadline)

    shift = -days_saved
    tasks = [
        t if (t.completed or t.id == completed_task_id) else _shift(t, shift)
        for t in item.tasks
    ]
    updated = item.with_tasks(tasks)
    if days_saved > 0:
        message = f"Saved {days_saved} days - remaining tasks moved earlier"
    else:
        message = f"{-days_saved} days behind schedule - remaining tasks pushed back"
    return _result(updated, message, master_deadline)


def reschedule_after_deadline_change(
    item: WorkItem,
    changed_task_id: str,
    new_deadline: date,
    master_deadline: date,
) -> RescheduleResult:
    index = next((i for i, t in enumerate(item.tasks) if t.id == changed_task_id), None)
    if index is None:
        return RescheduleResult(item=item, message="Task not found")
    changed = item.tasks[index]
    if changed.deadline is None:
        days = 0
    else:
        days = (new_deadline - changed.deadline).days
    if changed.deadline is not None and days == 0:
        return RescheduleResult(item=item, message="No change in deadline")

    tasks: List[Task] = list(item.tasks[:index])
    tasks.append(replace(_shift(changed, days), deadline=new_deadline))
    tasks.extend(_shift(t, days) for t in item.tasks[index + 1:])
    updated = item.with_tasks(tasks)

    direction = "back" if days > 0 else "forward"
    downstream = len(item.tasks) - index - 1
    message = f"Deadline moved {abs(days)} days {direction}. {downstream} downstream tasks updated."
    return _result(updated, message, master_deadline)


def resolve_draft_overlaps(items: Sequence[WorkItem]) -> List[WorkItem]:
    """Push drafts later until no two items draft at the same time.

    Drafts are settled earliest first by their current dates. A draft that
    overlaps an already settled draft of another item moves past it, together
    with the tasks after it in the same item; earlier tasks stay put.
    """
    by_id: Dict[str, WorkItem] = {item.id: item for item in items}
    pending: Set[Tuple[str, str]] = {
        (item.id, task.id)
        for item in items
        for task in item.tasks
        if not task.completed and is_draft_task(task) and task.start_date and task.deadline
    }
    settled: List[Tuple[str, date]] = []

    while pending:
        start, item_id, task_id = min(
            (by_id[item_id].find_task(task_id).start_date, item_id, task_id)  # type: ignore[union-attr]
            for item_id, task_id in pending
        )
        pending.discard((item_id, task_id))
        other_ends = [end for owner, end in settled if owner != item_id]
        if other_ends and start <= max(other_ends):
            days = (max(other_ends) - start).days + 1
            item = by_id[item_id]
            index = next(i for i, t in enumerate(item.tasks) if t.id == task_id)
            shifted = [
                t if (i < index or t.completed) else _shift(t, days)
                for i, t in enumerate(item.tasks)
            ]
            by_id[item_id] = item.with_tasks(shifted)
        current = by_id[item_id].find_task(task_id)
        settled.append((item_id, current.deadline))  # type: ignore[union-attr]
    return [by_id[item.id] for item in items]
