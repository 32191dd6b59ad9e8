"""Tests for warnings on the live plan and the fixes they offer."""
from datetime import date, timedelta

import pytest

from conftest import TODAY, dated_task
from deadline_planner.models import PlanState, Task, WorkItem
from deadline_planner.recommendations import (
    Fix,
    WarningEngine,
    analyze_schedule_warnings,
    apply_fix,
    apply_patch,
    fix_from_dict,
    fix_to_dict,
    generate_optimization_scenarios,
    outcome_to_dict,
    warning_to_dict,
)

HALF_YEAR = TODAY + timedelta(weeks=26)


def _state(items, budget=20.0, deadline=HALF_YEAR, **kwargs) -> PlanState:
    return PlanState(items=tuple(items), master_deadline=deadline, weekly_hours_budget=budget, **kwargs)


def _single(item_id: str, name: str, task: Task) -> WorkItem:
    return WorkItem(id=item_id, name=name, tasks=(task,))


@pytest.fixture
def overlapping_drafts() -> PlanState:
    return _state(
        [
            _single("a", "Essay A", dated_task("a1", "a", "First Draft", 5, 0, 6)),
            _single("b", "Essay B", dated_task("b1", "b", "First Draft", 5, 3, 10)),
            _single("c", "Essay C", dated_task("c1", "c", "First Draft", 5, 20, 26)),
        ]
    )


@pytest.fixture
def overloaded_week() -> PlanState:
    return _state([_single("r", "Report", dated_task("r1", "r", "Research notes", 10, 0, 6))], budget=6)


@pytest.fixture
def short_deadline() -> PlanState:
    big = WorkItem(
        id="big",
        name="Big Project",
        tasks=(Task(id="big-1", item_id="big", name="Research", estimated_hours=25),),
    )
    return _state([big], budget=6, deadline=TODAY + timedelta(days=28))


def test_overlapping_drafts_name_exactly_the_two_items(overlapping_drafts) -> None:
    warnings = analyze_schedule_warnings(overlapping_drafts, TODAY)

    assert [w.kind for w in warnings] == ["draft_overlap"]
    warning = warnings[0]
    assert set(warning.affected_ids) == {"a", "b"}
    assert set(warning.affected_names) == {"Essay A", "Essay B"}
    assert warning.title == "1 draft phase overlap"
    assert warning.severity == "warning"
    assert [fix.kind for fix in warning.fixes] == ["sequence_drafts"]


def test_sequence_drafts_fix_clears_the_overlap(overlapping_drafts) -> None:
    fix = analyze_schedule_warnings(overlapping_drafts, TODAY)[0].fixes[0]

    patch, outcome = apply_fix(overlapping_drafts, fix, TODAY)

    assert outcome.success
    assert outcome.rescheduled_tasks == 1
    assert outcome.changes == ["Rescheduled 1 tasks across 1 items"]
    updated = apply_patch(overlapping_drafts, patch)
    assert updated.items[1].tasks[0].start_date == TODAY + timedelta(days=7)
    assert analyze_schedule_warnings(updated, TODAY) == []
    # The original state is untouched.
    assert overlapping_drafts.items[1].tasks[0].start_date == TODAY + timedelta(days=3)


def test_weekly_overload(overloaded_week) -> None:
    warnings = analyze_schedule_warnings(overloaded_week, TODAY)

    assert [w.kind for w in warnings] == ["weekly_budget_exceeded"]
    warning = warnings[0]
    assert warning.title == "1 week over budget"
    assert warning.affected_weeks == ("2025-W02",)
    assert warning.affected_ids == ("r",)
    assert warning.impact == pytest.approx(6.0)
    spread, raise_budget = warning.fixes
    assert spread.kind == "spread_work" and spread.recommended
    assert raise_budget.kind == "increase_hours"
    assert raise_budget.params == {"weekly_hours_budget": 12}


def test_spread_work_replans_over_more_weeks(overloaded_week) -> None:
    fix = analyze_schedule_warnings(overloaded_week, TODAY)[0].fixes[0]

    patch, outcome = apply_fix(overloaded_week, fix, TODAY)

    assert outcome.success
    assert outcome.rescheduled_tasks == 1
    task = patch.items[0].tasks[0]
    assert (task.start_date, task.deadline) == (TODAY, TODAY + timedelta(days=13))
    assert analyze_schedule_warnings(apply_patch(overloaded_week, patch), TODAY) == []


def test_context_switching() -> None:
    items = [
        _single(f"i{n}", f"Item {n}", dated_task(f"i{n}-1", f"i{n}", "Research", 1, 0, 0))
        for n in range(1, 5)
    ]
    state = _state(items)

    warnings = analyze_schedule_warnings(state, TODAY)

    assert [w.kind for w in warnings] == ["context_switching"]
    warning = warnings[0]
    assert warning.title == "1h lost to context switching"
    assert warning.impact == pytest.approx(1.0)
    assert sorted(warning.affected_ids) == ["i1", "i2", "i3", "i4"]
    assert [fix.params["max_concurrent_items_per_week"] for fix in warning.fixes] == [2, 1]

    patch, outcome = apply_fix(state, warning.fixes[0], TODAY)
    assert outcome.success
    assert outcome.rescheduled_tasks == 4
    assert patch.items is not None


def test_deadline_fixes(short_deadline) -> None:
    warnings = analyze_schedule_warnings(short_deadline, TODAY)

    assert [w.kind for w in warnings] == ["deadline_impossible"]
    warning = warnings[0]
    assert warning.severity == "critical"
    assert warning.message == "You need 30 hours but only have 24 hours available."
    assert warning.impact_label == "6 hours short"
    extend, more_hours = warning.fixes
    assert extend.kind == "extend_deadline" and extend.recommended
    assert extend.label == "Extend to Feb 24, 2025"
    assert extend.params == {"master_deadline": "2025-02-24"}
    assert more_hours.label == "Increase to 8h/week"
    assert more_hours.impact == "+2h per week"
    assert more_hours.risk == "medium"


def test_increase_hours_risk_and_limit() -> None:
    def plan(hours: float) -> PlanState:
        task = Task(id="t", item_id="x", name="Research", estimated_hours=hours, buffer_multiplier=1.0)
        item = WorkItem(id="x", name="X", tasks=(task,))
        return _state([item], budget=6, deadline=TODAY + timedelta(weeks=12))

    high = analyze_schedule_warnings(plan(200), TODAY)[0]
    assert [fix.kind for fix in high.fixes] == ["extend_deadline", "increase_hours"]
    assert high.fixes[1].params == {"weekly_hours_budget": 17}
    assert high.fixes[1].risk == "high"

    too_much = analyze_schedule_warnings(plan(600), TODAY)[0]
    assert [fix.kind for fix in too_much.fixes] == ["extend_deadline"]


def test_apply_deadline_and_hours_fixes(short_deadline) -> None:
    extend, more_hours = analyze_schedule_warnings(short_deadline, TODAY)[0].fixes

    patch, outcome = apply_fix(short_deadline, extend, TODAY)
    assert outcome.changes == ["Deadline extended to Feb 24, 2025"]
    updated = apply_patch(short_deadline, patch)
    assert updated.master_deadline == date(2025, 2, 24)
    assert short_deadline.master_deadline == TODAY + timedelta(days=28)
    assert analyze_schedule_warnings(updated, TODAY) == []

    patch, outcome = apply_fix(short_deadline, more_hours, TODAY)
    assert outcome.changes == ["Weekly hours increased to 8h"]
    assert apply_patch(short_deadline, patch).weekly_hours_budget == 8


def test_unusable_fix_params_fail_without_patch(short_deadline) -> None:
    fix = Fix(id="x", kind="extend_deadline", label="", description="", impact="", params={"master_deadline": "soon"})
    patch, outcome = apply_fix(short_deadline, fix, TODAY)
    assert not outcome.success
    assert patch.is_empty()


def test_unknown_fix_kind_is_rejected(short_deadline) -> None:
    fix = Fix(id="x", kind="bogus", label="", description="", impact="")
    with pytest.raises(ValueError):
        apply_fix(short_deadline, fix, TODAY)
    with pytest.raises(ValueError):
        fix_from_dict({"kind": "bogus"})


def test_optimization_scenarios(short_deadline, overlapping_drafts) -> None:
    scenarios = generate_optimization_scenarios(analyze_schedule_warnings(short_deadline, TODAY))
    assert [s.id for s in scenarios] == ["extend-deadline", "increase-hours"]
    assert [s.recommended for s in scenarios] == [True, False]
    assert generate_optimization_scenarios(analyze_schedule_warnings(overlapping_drafts, TODAY)) == []


def test_degenerate_states_produce_no_warnings() -> None:
    assert analyze_schedule_warnings(_state([], budget=0, deadline=None), TODAY) == []
    garbled = Task(
        id="g",
        item_id="g",
        name="First Draft",
        estimated_hours=1,
        start_date="not a date",  # type: ignore[arg-type]
        deadline=None,
    )
    state = PlanState(
        items=(WorkItem(id="g", name="G", tasks=(garbled,)),),
        master_deadline="2025-07-01",  # type: ignore[arg-type]
        weekly_hours_budget=float("nan"),
    )
    assert analyze_schedule_warnings(state, TODAY) == []


def test_serialization(short_deadline) -> None:
    warning = analyze_schedule_warnings(short_deadline, TODAY)[0]

    payload = warning_to_dict(warning)
    assert payload["kind"] == "deadline_impossible"
    assert [fix["kind"] for fix in payload["fixes"]] == ["extend_deadline", "increase_hours"]
    assert fix_from_dict(fix_to_dict(warning.fixes[0])) == warning.fixes[0]

    _, outcome = apply_fix(short_deadline, warning.fixes[0], TODAY)
    assert outcome_to_dict(outcome)["new_deadline"] == "2025-02-24"


def test_analyze_is_repeatable(overlapping_drafts) -> None:
    engine = WarningEngine(overlapping_drafts, TODAY)

    first = engine.analyze()
    second = engine.analyze()

    assert [w.id for w in first] == ["draft-overlap"]
    assert second == first


def test_sequence_drafts_with_an_item_holding_two_drafts() -> None:
    state = _state(
        [
            WorkItem(
                id="a",
                name="Essay A",
                tasks=(
                    dated_task("a1", "a", "First Draft", 3, 0, 3),
                    dated_task("a2", "a", "Second Draft", 3, 4, 8),
                ),
            ),
            _single("b", "Essay B", dated_task("b1", "b", "First Draft", 3, 2, 5)),
        ]
    )
    warning = analyze_schedule_warnings(state, TODAY)[0]
    assert warning.kind == "draft_overlap"
    assert warning.title == "2 draft phases overlap"

    patch, outcome = apply_fix(state, warning.fixes[0], TODAY)

    assert outcome.success
    assert outcome.changes == ["Rescheduled 2 tasks across 2 items"]
    updated = apply_patch(state, patch)
    assert [w.kind for w in analyze_schedule_warnings(updated, TODAY)] == []


def test_malformed_hours_do_not_break_analysis() -> None:
    task = Task(
        id="m1",
        item_id="m",
        name="First Draft",
        estimated_hours="lots",  # type: ignore[arg-type]
        start_date=TODAY,
        deadline=TODAY + timedelta(days=6),
    )
    state = _state([_single("m", "Messy", task)], budget=6)

    assert analyze_schedule_warnings(state, TODAY) == []
