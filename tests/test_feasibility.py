"""Tests for the deadline feasibility check."""
from dataclasses import replace
from datetime import timedelta

import pytest

from conftest import TODAY, make_item
from deadline_planner.estimates import BaseHoursEstimator, FlatEstimator
from deadline_planner.feasibility import analyze_feasibility, minimum_weekly_hours, weeks_for_hours
from deadline_planner.models import ScheduleOptions, Task, WorkItem


def test_half_year_is_feasible_for_seven_courses(course_items) -> None:
    options = ScheduleOptions(weekly_hours_budget=6, master_deadline=TODAY + timedelta(weeks=26))

    report = analyze_feasibility(course_items, options, TODAY)

    assert report.is_feasible
    assert 85 < report.total_hours_needed < 130
    assert report.total_hours_needed == pytest.approx(102.0)
    assert report.total_hours_needed <= report.weeks_available * options.weekly_hours_budget
    assert report.message.startswith("Schedule is feasible")
    assert len(report.breakdown) == 7


def test_three_days_is_infeasible(course_items) -> None:
    deadline = TODAY + timedelta(days=3)
    options = ScheduleOptions(weekly_hours_budget=6, master_deadline=deadline)

    report = analyze_feasibility(course_items, options, TODAY)

    assert not report.is_feasible
    assert report.message.startswith("IMPOSSIBLE SCHEDULE")
    assert report.minimum_deadline > deadline
    # 17 weeks of work plus the two week safety margin.
    assert report.minimum_deadline == TODAY + timedelta(weeks=19)
    assert report.hours_short == pytest.approx(102.0 - 18.0 / 7)


def test_empty_plan_is_feasible() -> None:
    options = ScheduleOptions(weekly_hours_budget=6, master_deadline=TODAY + timedelta(days=1))
    report = analyze_feasibility([], options, TODAY)
    assert report.is_feasible
    assert report.total_hours_needed == 0
    assert report.weeks_needed == 0


def test_past_deadline_reports_no_time_left(standard_item) -> None:
    options = ScheduleOptions(weekly_hours_budget=6, master_deadline=TODAY - timedelta(days=2))
    report = analyze_feasibility([standard_item], options, TODAY)
    assert not report.is_feasible
    assert report.available_hours == 0
    assert "No working time remains" in report.message


def test_completed_tasks_do_not_count(standard_item, roomy_options) -> None:
    tasks = [replace(task, completed=True) for task in standard_item.tasks[:2]] + list(standard_item.tasks[2:])
    item = standard_item.with_tasks(tasks)

    report = analyze_feasibility([item], roomy_options, TODAY)

    assert report.total_hours_needed == pytest.approx((5.0 + 2.5 + 1.0) * 1.2)


def test_items_without_tasks_use_injected_estimator(roomy_options) -> None:
    item = WorkItem(id="thesis", name="Thesis")
    report = analyze_feasibility([item], roomy_options, TODAY, FlatEstimator(10))
    assert report.total_hours_needed == pytest.approx(12.0)


def test_base_hours_estimator_table() -> None:
    estimator = BaseHoursEstimator()
    assert estimator.estimate(WorkItem(id="econ-anything", name="Econ")) == 7
    assert estimator.estimate(WorkItem(id="math", name="Math")) == 19
    assert estimator.estimate(WorkItem(id="art", name="Art")) == 15
    custom = BaseHoursEstimator(base_hours={"art": 4}, prefix_hours=(), fallback_hours=1)
    assert custom.estimate(WorkItem(id="art", name="Art")) == 4
    assert custom.estimate(WorkItem(id="econ-micro", name="Micro")) == 1


def test_task_hours_override_estimator(roomy_options) -> None:
    item = make_item("math", hours=(1.0,), names=("Research",))
    report = analyze_feasibility([item], roomy_options, TODAY)
    assert report.total_hours_needed == pytest.approx(1.2)


def test_weeks_and_minimum_weekly_hours() -> None:
    assert weeks_for_hours(0, 6) == 0
    assert weeks_for_hours(12, 6) == 2
    assert weeks_for_hours(12.5, 6) == 3
    assert minimum_weekly_hours(30, 4) == 8
    assert minimum_weekly_hours(30, 0) is None


def test_unusable_task_hours_count_as_zero(roomy_options) -> None:
    task = Task(id="t", item_id="x", name="Research", estimated_hours=None)  # type: ignore[arg-type]
    item = WorkItem(id="x", name="X", tasks=(task,))

    report = analyze_feasibility([item], roomy_options, TODAY)

    assert task.buffered_hours == 0.0
    assert report.total_hours_needed == 0.0
    assert report.is_feasible
