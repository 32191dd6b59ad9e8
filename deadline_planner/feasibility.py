from __future__ import annotations

import logging
import math
from datetime import date
from typing import List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from .estimates import DEFAULT_ESTIMATOR
from .models import FeasibilityReport, ItemFeasibility, ScheduleOptions, WorkItem

logger = logging.getLogger(__name__)

EPSILON = 1e-6
SAFETY_MARGIN_WEEKS = 2


def weeks_for_hours(hours: float, weekly_budget: float) -> int:
    if hours <= EPSILON:
        return 0
    return int(math.ceil(hours / weekly_budget - EPSILON))


def item_hours_needed(item: WorkItem, options: ScheduleOptions, estimator: object = None) -> float:
    """Buffered hours still owed by ``item``; estimated when it has no tasks yet."""
    if item.has_tasks():
        return item.remaining_hours()
    strategy = estimator if estimator is not None else DEFAULT_ESTIMATOR
    return strategy.estimate(item) * options.buffer_multiplier  # type: ignore[attr-defined]


def _feasibility_message(
    is_feasible: bool,
    total: float,
    available: float,
    days_until_deadline: int,
    weekly_budget: float,
) -> str:
    if is_feasible:
        return (
            f"Schedule is feasible. You have {available:.1f} hours available "
            f"and need {total:.1f} hours."
        )
    shortage = total - available
    if available > EPSILON:
        pace = f"You would need to work {total / available:.1f}x faster than your weekly budget allows. "
    else:
        pace = "No working time remains before the deadline. "
    return (
        f"IMPOSSIBLE SCHEDULE: You need {total:.1f} hours but only have {available:.1f} hours "
        f"available ({days_until_deadline} days at {weekly_budget:g}h/week). "
        f"{pace}Shortage: {shortage:.1f} hours."
    )


def analyze_feasibility(
    items: Sequence[WorkItem],
    options: ScheduleOptions,
    today: date,
    estimator: object = None,
) -> FeasibilityReport:
    days_until_deadline = (options.master_deadline - today).days
    weeks_available = max(0.0, days_until_deadline / 7)
    available_hours = weeks_available * options.weekly_hours_budget

    breakdown: List[ItemFeasibility] = []
    total_hours_needed = 0.0
    for item in items:
        hours = item_hours_needed(item, options, estimator)
        breakdown.append(
            ItemFeasibility(
                item_id=item.id,
                item_name=item.name,
                hours_needed=hours,
                weeks_needed=weeks_for_hours(hours, options.weekly_hours_budget),
            )
        )
        total_hours_needed += hours

    weeks_needed = weeks_for_hours(total_hours_needed, options.weekly_hours_budget)
    is_feasible = total_hours_needed <= available_hours + EPSILON
    minimum_deadline = today + relativedelta(weeks=weeks_needed + SAFETY_MARGIN_WEEKS)
    message = _feasibility_message(
        is_feasible,
        total_hours_needed,
        available_hours,
        days_until_deadline,
        options.weekly_hours_budget,
    )
    if not is_feasible:
        logger.debug(message)
    return FeasibilityReport(
        is_feasible=is_feasible,
        total_hours_needed=total_hours_needed,
        available_hours=available_hours,
        weeks_needed=weeks_needed,
        weeks_available=weeks_available,
        days_until_deadline=days_until_deadline,
        minimum_deadline=minimum_deadline,
        message=message,
        breakdown=tuple(breakdown),
    )


def minimum_weekly_hours(total_hours: float, weeks_available: float) -> Optional[int]:
    """Smallest whole-hour weekly budget that fits ``total_hours``; None when no time is left."""
    if weeks_available <= EPSILON:
        return None
    return int(math.ceil(total_hours / weeks_available - EPSILON))
