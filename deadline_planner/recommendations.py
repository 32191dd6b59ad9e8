"""
Warning engine for the live plan.

Re-reads the current persisted plan (not an allocator run) and reports
problems a person editing dates by hand can act on:
- Deadline feasibility (not enough weeks or hours before the deadline)
- Weekly overload (tasks spread over their date span exceed the budget)
- Context switching (more than two items active on the same day)
- Draft overlap (two items drafting at the same time)

Every warning carries fixes. A fix is plain data; ``apply_fix`` turns it into
a state patch without touching the state it was computed from.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from dateutil import parser as dateparser

from .engine import generate_schedule
from .feasibility import analyze_feasibility, minimum_weekly_hours
from .models import PlanState, ScheduleOptions, Task, WorkItem
from .phases import is_draft_task
from .reschedule import resolve_draft_overlaps

logger = logging.getLogger(__name__)

EPSILON = 1e-6
MAX_ITEMS_PER_DAY = 2
SWITCH_COST_HOURS = 0.5
MAX_SANE_WEEKLY_HOURS = 40
MEDIUM_RISK_WEEKLY_HOURS = 12

FIX_KINDS = (
    "extend_deadline",
    "increase_hours",
    "spread_work",
    "consolidate_items",
    "sequence_drafts",
)

DAILY_COLUMNS = ["day", "iso_year", "iso_week", "item_id", "task_id", "hours"]


@dataclass(frozen=True)
class Fix:
    """Invocable remediation, described entirely by its kind and parameters."""
    id: str
    kind: str
    label: str
    description: str
    impact: str
    risk: str = "low"  # "low", "medium", "high"
    recommended: bool = False
    params: Dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class ScheduleWarning:
    id: str
    kind: str
    severity: str  # "critical", "warning", "info"
    title: str
    message: str
    impact: float
    impact_label: str
    fixes: Tuple[Fix, ...] = ()
    affected_ids: Tuple[str, ...] = ()
    affected_names: Tuple[str, ...] = ()
    affected_weeks: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StatePatch:
    master_deadline: Optional[date] = None
    weekly_hours_budget: Optional[float] = None
    items: Optional[Tuple[WorkItem, ...]] = None

    def is_empty(self) -> bool:
        return self.master_deadline is None and self.weekly_hours_budget is None and self.items is None


@dataclass
class FixOutcome:
    success: bool
    changes: List[str] = field(default_factory=list)
    new_deadline: Optional[date] = None
    new_weekly_hours: Optional[float] = None
    rescheduled_tasks: int = 0


@dataclass(frozen=True)
class OptimizationScenario:
    id: str
    name: str
    description: str
    fix: Fix
    tradeoffs: Tuple[str, ...]
    recommended: bool = False


def coerce_date(value: object) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return dateparser.isoparse(value.strip()).date()
        except (ValueError, OverflowError):
            return None
    return None


def _positive_number(value: object) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or value <= 0:
        return None
    return float(value)


class WarningEngine:
    """Analyzes the live plan and generates warnings with fixes."""

    def __init__(self, state: PlanState, today: date, estimator: object = None) -> None:
        self.state = state
        self.today = today
        self.estimator = estimator
        self.budget = _positive_number(state.weekly_hours_budget)
        self.deadline = coerce_date(state.master_deadline)

    def analyze(self) -> List[ScheduleWarning]:
        warnings: List[ScheduleWarning] = []
        daily = self._daily_load()
        for check in (
            self._check_deadline_feasibility,
            lambda: self._check_weekly_budget(daily),
            lambda: self._check_context_switching(daily),
            self._check_draft_overlaps,
        ):
            warning = check()
            if warning is not None:
                warnings.append(warning)
        return warnings

    def _options(self) -> Optional[ScheduleOptions]:
        if self.budget is None or self.deadline is None:
            return None
        multiplier = _positive_number(self.state.buffer_multiplier) or 1.2
        return ScheduleOptions(
            weekly_hours_budget=self.budget,
            master_deadline=self.deadline,
            buffer_multiplier=multiplier,
        )

    def _dated_tasks(self) -> List[Tuple[WorkItem, Task, date, date]]:
        dated = []
        for item in self.state.items or ():
            for task in item.tasks:
                if task.completed:
                    continue
                start = coerce_date(task.start_date)
                end = coerce_date(task.deadline)
                if start is None or end is None or end < start:
                    continue
                dated.append((item, task, start, end))
        return dated

    def _daily_load(self) -> pd.DataFrame:
        """One row per task per calendar day, with the task's hours spread evenly."""
        rows: List[Dict[str, object]] = []
        for item, task, start, end in self._dated_tasks():
            span_days = (end - start).days + 1
            per_day = task.buffered_hours / span_days
            for offset in range(span_days):
                day = start + timedelta(days=offset)
                iso_year, iso_week, _ = day.isocalendar()
                rows.append(
                    {
                        "day": day,
                        "iso_year": iso_year,
                        "iso_week": iso_week,
                        "item_id": item.id,
                        "task_id": task.id,
                        "hours": per_day,
                    }
                )
        return pd.DataFrame(rows, columns=DAILY_COLUMNS)

    def _check_deadline_feasibility(self) -> Optional[ScheduleWarning]:
        options = self._options()
        if options is None:
            return None
        report = analyze_feasibility(self.state.items or (), options, self.today, self.estimator)
        if report.is_feasible:
            return None

        hours_short = report.hours_short
        extra_weeks = report.weeks_needed - int(math.floor(report.weeks_available))
        fixes = [
            Fix(
                id="extend-deadline",
                kind="extend_deadline",
                label=f"Extend to {report.minimum_deadline:%b %d, %Y}",
                description=f"Move deadline to allow {report.weeks_needed} weeks of work",
                impact=f"Adds {max(extra_weeks, 0)} weeks",
                risk="low",
                recommended=True,
                params={"master_deadline": report.minimum_deadline.isoformat()},
            )
        ]
        suggested_hours = minimum_weekly_hours(report.total_hours_needed, report.weeks_available)
        if suggested_hours is not None and suggested_hours <= MAX_SANE_WEEKLY_HOURS:
            fixes.append(
                Fix(
                    id="increase-hours",
                    kind="increase_hours",
                    label=f"Increase to {suggested_hours}h/week",
                    description="Work more hours each week to meet current deadline",
                    impact=f"+{suggested_hours - self.budget:g}h per week",
                    risk="medium" if suggested_hours <= MEDIUM_RISK_WEEKLY_HOURS else "high",
                    params={"weekly_hours_budget": suggested_hours},
                )
            )
        return ScheduleWarning(
            id="deadline-feasibility",
            kind="deadline_impossible",
            severity="critical",
            title="Schedule exceeds available time",
            message=(
                f"You need {report.total_hours_needed:.0f} hours but only have "
                f"{report.available_hours:.0f} hours available."
            ),
            impact=hours_short,
            impact_label=f"{hours_short:.0f} hours short",
            fixes=tuple(fixes),
            affected_ids=tuple(entry.item_id for entry in report.breakdown),
        )

    def _check_weekly_budget(self, daily: pd.DataFrame) -> Optional[ScheduleWarning]:
        if self.budget is None or daily.empty:
            return None
        weekly = daily.groupby(["iso_year", "iso_week"], sort=True)["hours"].sum()
        over = weekly[weekly > self.budget + EPSILON]
        if over.empty:
            return None

        total_over = float((over - self.budget).sum())
        peak_hours = int(math.ceil(float(weekly.max()) - EPSILON))
        week_labels = tuple(f"{int(year)}-W{int(week):02d}" for year, week in over.index)
        week_keys = pd.MultiIndex.from_frame(daily[["iso_year", "iso_week"]])
        affected = daily.loc[week_keys.isin(list(over.index)), "item_id"]
        count = len(over)
        fixes = (
            Fix(
                id="spread-work",
                kind="spread_work",
                label="Auto-balance weeks",
                description="Spread overloaded work across adjacent weeks",
                impact=f"Balances {count} weeks",
                risk="low",
                recommended=True,
                params={
                    "max_concurrent_items_per_week": self.state.max_concurrent_items_per_week,
                    "draft_exclusivity_enabled": True,
                },
            ),
            Fix(
                id="increase-budget",
                kind="increase_hours",
                label=f"Increase to {peak_hours}h/week",
                description="Increase weekly budget to accommodate peak weeks",
                impact="No schedule changes needed",
                risk="medium",
                params={"weekly_hours_budget": peak_hours},
            ),
        )
        return ScheduleWarning(
            id="weekly-budget",
            kind="weekly_budget_exceeded",
            severity="critical" if count > 2 else "warning",
            title=f"{count} week{'s' if count > 1 else ''} over budget",
            message=f"Some weeks have more work scheduled than your {self.budget:g}h/week budget",
            impact=total_over,
            impact_label=f"{total_over:.1f}h over budget total",
            fixes=fixes,
            affected_ids=tuple(affected.drop_duplicates().tolist()),
            affected_weeks=week_labels,
        )

    def _check_context_switching(self, daily: pd.DataFrame) -> Optional[ScheduleWarning]:
        if daily.empty:
            return None
        active_per_day = daily.groupby("day")["item_id"].nunique()
        problematic = active_per_day[active_per_day > MAX_ITEMS_PER_DAY]
        if problematic.empty:
            return None

        switches = int((problematic - MAX_ITEMS_PER_DAY).sum())
        hours_lost = switches * SWITCH_COST_HOURS
        busy_days = set(problematic.index)
        affected = daily.loc[daily["day"].isin(sorted(busy_days)), "item_id"]
        fixes = (
            Fix(
                id="consolidate",
                kind="consolidate_items",
                label="Consolidate work",
                description=f"Limit each week to max {MAX_ITEMS_PER_DAY} items",
                impact=f"Saves ~{hours_lost:.0f}h",
                risk="low",
                recommended=True,
                params={"max_concurrent_items_per_week": MAX_ITEMS_PER_DAY},
            ),
            Fix(
                id="sequential",
                kind="consolidate_items",
                label="Sequential scheduling",
                description="Work on one item at a time",
                impact="Maximum focus, longer timeline",
                risk="medium",
                params={"max_concurrent_items_per_week": 1},
            ),
        )
        return ScheduleWarning(
            id="context-switching",
            kind="context_switching",
            severity="critical" if hours_lost > 10 else "warning",
            title=f"{hours_lost:.0f}h lost to context switching",
            message=f"{len(problematic)} days have more than {MAX_ITEMS_PER_DAY} items scheduled",
            impact=hours_lost,
            impact_label=f"~{hours_lost:.1f} hours of productivity lost",
            fixes=fixes,
            affected_ids=tuple(affected.drop_duplicates().tolist()),
        )

    def _check_draft_overlaps(self) -> Optional[ScheduleWarning]:
        drafts = [entry for entry in self._dated_tasks() if is_draft_task(entry[1])]
        pairs: List[Tuple[WorkItem, WorkItem]] = []
        for i, (a_item, _, a_start, a_end) in enumerate(drafts):
            for b_item, _, b_start, b_end in drafts[i + 1:]:
                if a_item.id == b_item.id:
                    continue
                if a_start <= b_end and b_start <= a_end:
                    pairs.append((a_item, b_item))
        if not pairs:
            return None

        affected: Dict[str, str] = {}
        for a_item, b_item in pairs:
            affected.setdefault(a_item.id, a_item.name)
            affected.setdefault(b_item.id, b_item.name)
        count = len(pairs)
        return ScheduleWarning(
            id="draft-overlap",
            kind="draft_overlap",
            severity="critical" if count > 2 else "warning",
            title=f"{count} draft phase{'s' if count > 1 else ''} overlap",
            message="Writing multiple drafts simultaneously reduces quality and focus",
            impact=float(count),
            impact_label="Reduced draft quality, mental fatigue",
            fixes=(
                Fix(
                    id="sequence-drafts",
                    kind="sequence_drafts",
                    label="Sequence drafts",
                    description="Schedule one draft at a time",
                    impact="Better focus, may extend timeline",
                    risk="low",
                    recommended=True,
                    params={},
                ),
            ),
            affected_ids=tuple(affected.keys()),
            affected_names=tuple(affected.values()),
        )


def analyze_schedule_warnings(
    state: PlanState, today: date, estimator: object = None
) -> List[ScheduleWarning]:
    return WarningEngine(state, today, estimator).analyze()


# --- applying fixes -------------------------------------------------------


def _apply_extend_deadline(
    state: PlanState, fix: Fix, today: date, estimator: object
) -> Tuple[StatePatch, FixOutcome]:
    new_deadline = coerce_date(fix.params.get("master_deadline"))
    if new_deadline is None:
        return StatePatch(), FixOutcome(success=False)
    return StatePatch(master_deadline=new_deadline), FixOutcome(
        success=True,
        changes=[f"Deadline extended to {new_deadline:%b %d, %Y}"],
        new_deadline=new_deadline,
    )


def _apply_increase_hours(
    state: PlanState, fix: Fix, today: date, estimator: object
) -> Tuple[StatePatch, FixOutcome]:
    hours = _positive_number(fix.params.get("weekly_hours_budget"))
    if hours is None:
        return StatePatch(), FixOutcome(success=False)
    return StatePatch(weekly_hours_budget=hours), FixOutcome(
        success=True,
        changes=[f"Weekly hours increased to {hours:g}h"],
        new_weekly_hours=hours,
    )


def _apply_replan(
    state: PlanState, fix: Fix, today: date, estimator: object
) -> Tuple[StatePatch, FixOutcome]:
    deadline = coerce_date(state.master_deadline)
    budget = _positive_number(state.weekly_hours_budget)
    if deadline is None or budget is None:
        return StatePatch(), FixOutcome(success=False)
    try:
        options = ScheduleOptions(
            weekly_hours_budget=budget,
            master_deadline=deadline,
            buffer_multiplier=_positive_number(state.buffer_multiplier) or 1.2,
            max_concurrent_items_per_week=int(
                fix.params.get("max_concurrent_items_per_week", state.max_concurrent_items_per_week)
            ),
            draft_exclusivity_enabled=bool(fix.params.get("draft_exclusivity_enabled", True)),
        )
    except (TypeError, ValueError) as exc:
        logger.debug("Fix %s not applicable: %s", fix.id, exc)
        return StatePatch(), FixOutcome(success=False)

    result = generate_schedule(list(state.items), options, today, estimator)
    if not result.success:
        logger.debug("Fix %s could not re-plan: %s", fix.id, "; ".join(result.errors))
        return StatePatch(), FixOutcome(success=False)

    scheduled = {item.id: item for item in result.items}
    new_items = tuple(scheduled.get(item.id, item) for item in state.items)
    return _items_patch(state.items, new_items)


def _apply_sequence_drafts(
    state: PlanState, fix: Fix, today: date, estimator: object
) -> Tuple[StatePatch, FixOutcome]:
    return _items_patch(state.items, tuple(resolve_draft_overlaps(list(state.items))))


def _items_patch(
    before_items: Sequence[WorkItem], after_items: Tuple[WorkItem, ...]
) -> Tuple[StatePatch, FixOutcome]:
    moved = 0
    touched_items = set()
    for before, after in zip(before_items, after_items):
        for old_task, new_task in zip(before.tasks, after.tasks):
            if (old_task.start_date, old_task.deadline) != (new_task.start_date, new_task.deadline):
                moved += 1
                touched_items.add(before.id)
    if moved == 0:
        return StatePatch(), FixOutcome(success=False)
    return StatePatch(items=after_items), FixOutcome(
        success=True,
        changes=[f"Rescheduled {moved} tasks across {len(touched_items)} items"],
        rescheduled_tasks=moved,
    )


_FIX_HANDLERS: Dict[str, Callable[[PlanState, Fix, date, object], Tuple[StatePatch, FixOutcome]]] = {
    "extend_deadline": _apply_extend_deadline,
    "increase_hours": _apply_increase_hours,
    "spread_work": _apply_replan,
    "consolidate_items": _apply_replan,
    "sequence_drafts": _apply_sequence_drafts,
}


def apply_fix(
    state: PlanState, fix: Fix, today: date, estimator: object = None
) -> Tuple[StatePatch, FixOutcome]:
    handler = _FIX_HANDLERS.get(fix.kind)
    if handler is None:
        raise ValueError(f"unsupported fix kind '{fix.kind}'")
    return handler(state, fix, today, estimator)


def apply_patch(state: PlanState, patch: StatePatch) -> PlanState:
    updated = state
    if patch.master_deadline is not None:
        updated = replace(updated, master_deadline=patch.master_deadline)
    if patch.weekly_hours_budget is not None:
        updated = replace(updated, weekly_hours_budget=patch.weekly_hours_budget)
    if patch.items is not None:
        updated = replace(updated, items=patch.items)
    return updated


def generate_optimization_scenarios(warnings: Sequence[ScheduleWarning]) -> List[OptimizationScenario]:
    scenarios: List[OptimizationScenario] = []
    deadline_warning = next((w for w in warnings if w.kind == "deadline_impossible"), None)
    if deadline_warning is None:
        return scenarios
    extend_fix = next((f for f in deadline_warning.fixes if f.kind == "extend_deadline"), None)
    hours_fix = next((f for f in deadline_warning.fixes if f.kind == "increase_hours"), None)
    if extend_fix:
        scenarios.append(
            OptimizationScenario(
                id="extend-deadline",
                name="Extend Deadline",
                description=extend_fix.description,
                fix=extend_fix,
                tradeoffs=("Later completion date", "No changes to weekly workload"),
                recommended=True,
            )
        )
    if hours_fix:
        scenarios.append(
            OptimizationScenario(
                id="increase-hours",
                name="Increase Weekly Hours",
                description=hours_fix.description,
                fix=hours_fix,
                tradeoffs=("More work per week", "Keep current deadline"),
            )
        )
    return scenarios


# --- serialization --------------------------------------------------------


def fix_to_dict(fix: Fix) -> Dict[str, object]:
    return {
        "id": fix.id,
        "kind": fix.kind,
        "label": fix.label,
        "description": fix.description,
        "impact": fix.impact,
        "risk": fix.risk,
        "recommended": fix.recommended,
        "params": dict(fix.params),
    }


def fix_from_dict(data: Dict[str, object]) -> Fix:
    kind = data.get("kind")
    if kind not in FIX_KINDS:
        raise ValueError(f"unsupported fix kind '{kind}'")
    params = data.get("params") or {}
    if not isinstance(params, dict):
        raise ValueError("fix params must be an object")
    return Fix(
        id=str(data.get("id") or kind),
        kind=str(kind),
        label=str(data.get("label", "")),
        description=str(data.get("description", "")),
        impact=str(data.get("impact", "")),
        risk=str(data.get("risk", "low")),
        recommended=bool(data.get("recommended", False)),
        params=dict(params),
    )


def warning_to_dict(warning: ScheduleWarning) -> Dict[str, object]:
    return {
        "id": warning.id,
        "kind": warning.kind,
        "severity": warning.severity,
        "title": warning.title,
        "message": warning.message,
        "impact": round(warning.impact, 4),
        "impact_label": warning.impact_label,
        "affected_ids": list(warning.affected_ids),
        "affected_names": list(warning.affected_names),
        "affected_weeks": list(warning.affected_weeks),
        "fixes": [fix_to_dict(fix) for fix in warning.fixes],
    }


def outcome_to_dict(outcome: FixOutcome) -> Dict[str, object]:
    return {
        "success": outcome.success,
        "changes": list(outcome.changes),
        "new_deadline": outcome.new_deadline.isoformat() if outcome.new_deadline else None,
        "new_weekly_hours": outcome.new_weekly_hours,
        "rescheduled_tasks": outcome.rescheduled_tasks,
    }
