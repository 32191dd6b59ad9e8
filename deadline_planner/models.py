from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional, Set, Tuple


Phase = str

PHASES: Tuple[Phase, ...] = ("research", "outline", "draft", "revision", "polish")

MINIMUM_SESSION_HOURS: Dict[Phase, float] = {
    "research": 2.0,
    "outline": 1.5,
    "draft": 3.0,
    "revision": 2.0,
    "polish": 1.0,
}


@dataclass(frozen=True)
class Task:
    """Single milestone of a work item with its effort estimate and dates."""

    id: str
    item_id: str
    name: str
    estimated_hours: float
    buffer_multiplier: float = 1.2
    phase: Optional[Phase] = None
    completed: bool = False
    start_date: Optional[date] = None
    deadline: Optional[date] = None
    dependencies: Tuple[str, ...] = ()

    @property
    def buffered_hours(self) -> float:
        """Estimated hours times the buffer; 0 when either value is unusable."""
        try:
            hours = float(self.estimated_hours) * float(self.buffer_multiplier)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(hours) or hours < 0:
            return 0.0
        return hours

    def with_dates(self, start_date: Optional[date], deadline: Optional[date]) -> "Task":
        return replace(self, start_date=start_date, deadline=deadline)


@dataclass(frozen=True)
class WorkItem:
    id: str
    name: str
    tasks: Tuple[Task, ...] = ()

    def incomplete_tasks(self) -> List[Task]:
        return [task for task in self.tasks if not task.completed]

    def has_tasks(self) -> bool:
        return len(self.tasks) > 0

    def remaining_hours(self) -> float:
        return sum(task.buffered_hours for task in self.incomplete_tasks())

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def with_tasks(self, tasks: List[Task]) -> "WorkItem":
        return replace(self, tasks=tuple(tasks))


@dataclass(frozen=True)
class ScheduleOptions:
    weekly_hours_budget: float
    master_deadline: date
    buffer_multiplier: float = 1.2
    max_concurrent_items_per_week: int = 2
    draft_exclusivity_enabled: bool = True
    minimum_session_hours: Dict[Phase, float] = field(
        default_factory=lambda: dict(MINIMUM_SESSION_HOURS)
    )
    logging_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.weekly_hours_budget <= 0:
            raise ValueError("weekly_hours_budget must be positive")
        if self.buffer_multiplier <= 0:
            raise ValueError("buffer_multiplier must be positive")
        if self.max_concurrent_items_per_week < 1:
            raise ValueError("max_concurrent_items_per_week must be at least 1")

    def min_session_for(self, phase: Phase) -> float:
        return float(self.minimum_session_hours.get(phase, MINIMUM_SESSION_HOURS.get(phase, 0.0)))


@dataclass
class WeekEntry:
    task_id: str
    item_id: str
    hours: float


@dataclass
class WeekBucket:
    """Fixed seven-day capacity container filled by the allocator."""

    index: int
    week_start: date
    week_end: date
    capacity: float
    allocated_hours: float = 0.0
    entries: List[WeekEntry] = field(default_factory=list)
    active_items: Set[str] = field(default_factory=set)

    @property
    def remaining_hours(self) -> float:
        return self.capacity - self.allocated_hours

    @property
    def week_number(self) -> int:
        return self.index + 1

    def assign(self, task_id: str, item_id: str, hours: float) -> None:
        if hours <= 0:
            return
        self.allocated_hours += hours
        self.entries.append(WeekEntry(task_id=task_id, item_id=item_id, hours=hours))
        self.active_items.add(item_id)


@dataclass(frozen=True)
class ItemFeasibility:
    item_id: str
    item_name: str
    hours_needed: float
    weeks_needed: int


@dataclass(frozen=True)
class FeasibilityReport:
    is_feasible: bool
    total_hours_needed: float
    available_hours: float
    weeks_needed: int
    weeks_available: float
    days_until_deadline: int
    minimum_deadline: date
    message: str
    breakdown: Tuple[ItemFeasibility, ...] = ()

    @property
    def hours_short(self) -> float:
        return max(0.0, self.total_hours_needed - self.available_hours)


@dataclass
class ScheduleResult:
    success: bool
    feasibility: FeasibilityReport
    items: List[WorkItem]
    weeks: List[WeekBucket]
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def allocated_total(self) -> float:
        return sum(week.allocated_hours for week in self.weeks)


@dataclass(frozen=True)
class PlanState:
    """The current persisted plan as seen by the warning engine."""

    items: Tuple[WorkItem, ...]
    master_deadline: Optional[date]
    weekly_hours_budget: float
    buffer_multiplier: float = 1.2
    max_concurrent_items_per_week: int = 2
