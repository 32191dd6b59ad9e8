from __future__ import annotations

import logging
import os
from datetime import date
from typing import Dict, List, Optional

from flask import Flask, jsonify, request

from deadline_planner.engine import generate_schedule, summarize_schedule
from deadline_planner.feasibility import analyze_feasibility
from deadline_planner.io_utils import (
    item_to_dict,
    parse_date,
    parse_items,
    parse_options,
    parse_state,
    state_to_dict,
)
from deadline_planner.models import FeasibilityReport, ScheduleResult, WeekBucket
from deadline_planner.recommendations import (
    OptimizationScenario,
    analyze_schedule_warnings,
    apply_fix,
    apply_patch,
    fix_from_dict,
    fix_to_dict,
    generate_optimization_scenarios,
    outcome_to_dict,
    warning_to_dict,
)
from deadline_planner.reschedule import (
    RescheduleResult,
    reschedule_after_completion,
    reschedule_after_deadline_change,
)

logger = logging.getLogger(__name__)


def _resolve_fixed_today() -> Optional[date]:
    env_value = os.getenv("DEADLINE_PLANNER_TODAY")
    if env_value:
        return parse_date(env_value, "DEADLINE_PLANNER_TODAY")
    return None


def _request_today(payload: Dict[str, object], fixed_today: Optional[date]) -> date:
    if payload.get("today"):
        return parse_date(payload["today"], "today")
    return fixed_today or date.today()


def _payload() -> Dict[str, object]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def _feasibility_to_dict(report: FeasibilityReport) -> Dict[str, object]:
    return {
        "is_feasible": report.is_feasible,
        "total_hours_needed": round(report.total_hours_needed, 4),
        "available_hours": round(report.available_hours, 4),
        "weeks_needed": report.weeks_needed,
        "weeks_available": round(report.weeks_available, 4),
        "days_until_deadline": report.days_until_deadline,
        "minimum_deadline": report.minimum_deadline.isoformat(),
        "hours_short": round(report.hours_short, 4),
        "message": report.message,
        "breakdown": [
            {
                "item_id": entry.item_id,
                "item_name": entry.item_name,
                "hours_needed": round(entry.hours_needed, 4),
                "weeks_needed": entry.weeks_needed,
            }
            for entry in report.breakdown
        ],
    }


def _week_to_dict(week: WeekBucket) -> Dict[str, object]:
    return {
        "week_number": week.week_number,
        "week_start": week.week_start.isoformat(),
        "week_end": week.week_end.isoformat(),
        "capacity": week.capacity,
        "allocated_hours": round(week.allocated_hours, 4),
        "active_items": sorted(week.active_items),
    }


def _result_to_dict(result: ScheduleResult) -> Dict[str, object]:
    summary = summarize_schedule(result)
    return {
        "success": result.success,
        "feasibility": _feasibility_to_dict(result.feasibility),
        "items": [item_to_dict(item) for item in result.items],
        "weeks": [_week_to_dict(week) for week in result.weeks],
        "warnings": list(result.warnings),
        "errors": list(result.errors),
        "summary": {
            "total_weeks": summary.total_weeks,
            "total_hours": round(summary.total_hours, 4),
            "unplaced_hours": round(summary.unplaced_hours, 4),
        },
    }


def _scenario_to_dict(scenario: OptimizationScenario) -> Dict[str, object]:
    return {
        "id": scenario.id,
        "name": scenario.name,
        "description": scenario.description,
        "fix": fix_to_dict(scenario.fix),
        "tradeoffs": list(scenario.tradeoffs),
        "recommended": scenario.recommended,
    }


def _reschedule_to_dict(result: RescheduleResult) -> Dict[str, object]:
    return {
        "item": item_to_dict(result.item),
        "message": result.message,
        "impacted_items": list(result.impacted_items),
        "deadline_at_risk": result.deadline_at_risk,
        "new_completion_date": result.new_completion_date.isoformat() if result.new_completion_date else None,
    }


def _single_item(payload: Dict[str, object]):
    items = parse_items([payload.get("item")])
    return items[0]


def create_app() -> Flask:
    app = Flask(__name__)
    fixed_today = _resolve_fixed_today()
    app.config["FIXED_TODAY"] = fixed_today

    @app.post("/api/feasibility")
    def feasibility():
        try:
            data = _payload()
            options = parse_options(data.get("options"))
            items = parse_items(data.get("items"), options.buffer_multiplier)
            today = _request_today(data, app.config["FIXED_TODAY"])
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        report = analyze_feasibility(items, options, today)
        return jsonify(_feasibility_to_dict(report))

    @app.post("/api/schedule")
    def schedule():
        try:
            data = _payload()
            options = parse_options(data.get("options"))
            items = parse_items(data.get("items"), options.buffer_multiplier)
            today = _request_today(data, app.config["FIXED_TODAY"])
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        result = generate_schedule(items, options, today)
        logger.info("Schedule request for %d items: success=%s", len(items), result.success)
        return jsonify(_result_to_dict(result))

    @app.post("/api/warnings")
    def warnings():
        try:
            data = _payload()
            state = parse_state(data.get("state"))
            today = _request_today(data, app.config["FIXED_TODAY"])
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        found = analyze_schedule_warnings(state, today)
        scenarios: List[OptimizationScenario] = generate_optimization_scenarios(found)
        return jsonify(
            {
                "warnings": [warning_to_dict(warning) for warning in found],
                "scenarios": [_scenario_to_dict(scenario) for scenario in scenarios],
            }
        )

    @app.post("/api/fixes/apply")
    def apply_fix_endpoint():
        try:
            data = _payload()
            state = parse_state(data.get("state"))
            raw_fix = data.get("fix")
            if not isinstance(raw_fix, dict):
                raise ValueError("fix must be an object")
            fix = fix_from_dict(raw_fix)
            today = _request_today(data, app.config["FIXED_TODAY"])
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        patch, outcome = apply_fix(state, fix, today)
        updated = apply_patch(state, patch)
        return jsonify({"outcome": outcome_to_dict(outcome), "state": state_to_dict(updated)})

    @app.post("/api/reschedule/completion")
    def reschedule_completion():
        try:
            data = _payload()
            item = _single_item(data)
            task_id = data.get("task_id")
            if not task_id:
                raise ValueError("task_id is required")
            master_deadline = parse_date(data.get("master_deadline"), "master_deadline")
            today = _request_today(data, app.config["FIXED_TODAY"])
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        result = reschedule_after_completion(item, str(task_id), master_deadline, today)
        return jsonify(_reschedule_to_dict(result))

    @app.post("/api/reschedule/deadline")
    def reschedule_deadline():
        try:
            data = _payload()
            item = _single_item(data)
            task_id = data.get("task_id")
            if not task_id:
                raise ValueError("task_id is required")
            new_deadline = parse_date(data.get("new_deadline"), "new_deadline")
            master_deadline = parse_date(data.get("master_deadline"), "master_deadline")
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        result = reschedule_after_deadline_change(item, str(task_id), new_deadline, master_deadline)
        return jsonify(_reschedule_to_dict(result))

    return app


if __name__ == "__main__":
    create_app().run(debug=False)
