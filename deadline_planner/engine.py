from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from dateutil.relativedelta import relativedelta

from .feasibility import analyze_feasibility
from .models import ScheduleOptions, ScheduleResult, Task, WeekBucket, WorkItem
from .phases import effective_phase, final_phase
from .sequencing import sequence_items
from .validation import conservation_gap, validate_schedule

logger = logging.getLogger(__name__)

EPSILON = 1e-6


class UnschedulableTaskError(RuntimeError):
    def __init__(self, task: Task, reason: str) -> None:
        super().__init__(f"Task {task.id} unschedulable: {reason}")
        self.task = task
        self.reason = reason


def week_start_of(value: date) -> date:
    return value - timedelta(days=value.weekday())


def build_week_buckets(today: date, options: ScheduleOptions) -> List[WeekBucket]:
    days = (options.master_deadline - today).days
    total_weeks = max(0, int(math.ceil(days / 7)))
    first_monday = week_start_of(today)
    weeks: List[WeekBucket] = []
    for idx in range(total_weeks):
        start = first_monday + relativedelta(weeks=idx)
        weeks.append(
            WeekBucket(
                index=idx,
                week_start=start,
                week_end=start + timedelta(days=6),
                capacity=options.weekly_hours_budget,
            )
        )
    return weeks


@dataclass
class _TaskFailure:
    task: Task
    reason: str


class WeekAllocator:
    """Greedy forward-only packer of task hours into week buckets.

    One allocator is one run: it owns the buckets, the cursor into them and
    the draft lock, and items are fed to ``allocate`` in sequence order.
    """

    def __init__(
        self,
        weeks: Sequence[WeekBucket],
        options: ScheduleOptions,
        today: Optional[date] = None,
    ) -> None:
        self.weeks: List[WeekBucket] = list(weeks)
        self.options = options
        self.today = today
        self.cursor = 0
        self.draft_holder: Optional[str] = None
        self.warnings: List[str] = []
        self.errors: List[str] = []
        self.failures: List[_TaskFailure] = []
        self._allocated: Dict[str, WorkItem] = {}
        self._released_holder: Optional[str] = None

    def allocate(self, item: WorkItem) -> WorkItem:
        if not item.has_tasks():
            self._allocated[item.id] = item
            return item
        updated: List[Task] = []
        for task in item.tasks:
            if task.completed:
                updated.append(task)
                continue
            updated.append(self._allocate_task(item, task))
        if self.draft_holder == item.id and final_phase(item.tasks) == "polish":
            self.draft_holder = None
            self._released_holder = item.id
        scheduled = item.with_tasks(updated)
        self._allocated[item.id] = scheduled
        return scheduled

    def _draft_end_week(self, holder_id: str) -> Optional[int]:
        holder = self._allocated.get(holder_id)
        if holder is None:
            return None
        draft_ids: Set[str] = {
            task.id for task in holder.tasks if not task.completed and effective_phase(task) == "draft"
        }
        if not draft_ids:
            return None
        for week in reversed(self.weeks):
            if any(entry.item_id == holder_id and entry.task_id in draft_ids for entry in week.entries):
                return week.index
        return None

    def _blocking_draft_holder(self, item_id: str) -> Optional[str]:
        # A released holder still bounds the next draft when its last draft week is not behind the cursor.
        for candidate in (self.draft_holder, self._released_holder):
            if candidate is not None and candidate != item_id:
                return candidate
        return None

    def _claim_draft_lock(self, item: WorkItem) -> None:
        holder_id = self._blocking_draft_holder(item.id)
        if holder_id is not None:
            end_week = self._draft_end_week(holder_id)
            if end_week is not None and end_week >= self.cursor:
                self.cursor = end_week + 1
                holder = self._allocated.get(holder_id)
                holder_name = holder.name if holder else holder_id
                message = f"Delayed {item.name} draft to avoid overlap with {holder_name}"
                self.warnings.append(message)
                logger.debug(message)
        self.draft_holder = item.id
        self._released_holder = None

    def _week_or_none(self, idx: int) -> Optional[WeekBucket]:
        if 0 <= idx < len(self.weeks):
            return self.weeks[idx]
        return None

    def _fail(self, item: WorkItem, task: Task, reason: str) -> None:
        message = f"Could not fully schedule {task.name} for {item.name} - {reason}"
        self.errors.append(message)
        self.failures.append(_TaskFailure(task=task, reason=reason))
        logger.warning(message)

    def _allocate_task(self, item: WorkItem, task: Task) -> Task:
        phase = effective_phase(task)
        min_session = self.options.min_session_for(phase)
        hours_needed = task.buffered_hours

        if phase == "draft" and self.options.draft_exclusivity_enabled:
            self._claim_draft_lock(item)

        start_cursor = self.cursor
        touched: List[int] = []
        remaining = hours_needed

        if min_session > self.options.weekly_hours_budget + EPSILON and remaining >= min_session - EPSILON:
            self._fail(
                item,
                task,
                f"{phase} sessions need {min_session:g}h but the weekly budget is "
                f"{self.options.weekly_hours_budget:g}h",
            )
            return self._dated(task, phase, start_cursor, touched)

        cap = self.options.max_concurrent_items_per_week
        while remaining > EPSILON and self.cursor < len(self.weeks):
            week = self.weeks[self.cursor]
            if len(week.active_items) >= cap and item.id not in week.active_items:
                self.cursor += 1
                continue
            hours = min(remaining, week.remaining_hours)
            if hours <= EPSILON or (
                hours < min_session - EPSILON and remaining >= min_session - EPSILON
            ):
                self.cursor += 1
                continue
            # A remainder below the minimum session goes into one week whole when a week can hold it.
            if (
                remaining < min_session - EPSILON
                and hours < remaining - EPSILON
                and remaining <= self.options.weekly_hours_budget + EPSILON
            ):
                self.cursor += 1
                continue
            week.assign(task.id, item.id, hours)
            remaining -= hours
            touched.append(self.cursor)
            if week.remaining_hours <= EPSILON:
                self.cursor += 1

        if remaining > EPSILON:
            self._fail(item, task, f"{remaining:.1f} hours remaining")
        return self._dated(task, phase, start_cursor, touched)

    def _dated(self, task: Task, phase: str, start_cursor: int, touched: List[int]) -> Task:
        first = self._week_or_none(touched[0] if touched else start_cursor)
        last = self._week_or_none(touched[-1] if touched else start_cursor)
        start_date = first.week_start if first else (self.today or self.options.master_deadline)
        deadline = last.week_end if last else self.options.master_deadline
        return replace(task, start_date=start_date, deadline=deadline, phase=phase)


def generate_schedule(
    items: Sequence[WorkItem],
    options: ScheduleOptions,
    today: date,
    estimator: object = None,
    clusters: Optional[Sequence[Sequence[str]]] = None,
    *,
    strict: bool = False,
) -> ScheduleResult:
    feasibility = analyze_feasibility(items, options, today, estimator)
    if not feasibility.is_feasible:
        return ScheduleResult(
            success=False,
            feasibility=feasibility,
            items=list(items),
            weeks=[],
            errors=[feasibility.message],
        )

    sequenced = sequence_items(items, clusters)
    weeks = build_week_buckets(today, options)
    allocator = WeekAllocator(weeks, options, today)
    scheduled = [allocator.allocate(item) for item in sequenced]

    if strict and allocator.failures:
        failure = allocator.failures[0]
        raise UnschedulableTaskError(failure.task, failure.reason)

    violations = validate_schedule(scheduled, weeks, options)
    errors = allocator.errors + violations
    logger.info(
        "Scheduled %d items into %d weeks (%d warnings, %d errors)",
        len(scheduled),
        len(weeks),
        len(allocator.warnings),
        len(errors),
    )
    return ScheduleResult(
        success=not errors,
        feasibility=feasibility,
        items=scheduled,
        weeks=weeks,
        warnings=list(allocator.warnings),
        errors=errors,
    )


@dataclass(frozen=True)
class ItemSpan:
    item_id: str
    item_name: str
    start_date: date
    end_date: date


@dataclass
class ScheduleSummary:
    total_weeks: int
    total_hours: float
    unplaced_hours: float
    item_spans: List[ItemSpan] = field(default_factory=list)
    weekly_breakdown: List[Tuple[int, float, List[str]]] = field(default_factory=list)


def summarize_schedule(result: ScheduleResult) -> ScheduleSummary:
    spans: List[ItemSpan] = []
    for item in result.items:
        open_tasks = [task for task in item.tasks if not task.completed]
        if not open_tasks:
            continue
        first, last = open_tasks[0], open_tasks[-1]
        if first.start_date is None or last.deadline is None:
            continue
        spans.append(ItemSpan(item.id, item.name, first.start_date, last.deadline))
    used = [week for week in result.weeks if week.allocated_hours > EPSILON]
    breakdown = [
        (week.week_number, week.allocated_hours, sorted(week.active_items)) for week in used
    ]
    gap = conservation_gap(result.items, result.weeks) if result.weeks else 0.0
    return ScheduleSummary(
        total_weeks=len(used),
        total_hours=result.allocated_total(),
        unplaced_hours=max(0.0, gap),
        item_spans=spans,
        weekly_breakdown=breakdown,
    )
