from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
from dateutil import parser as dateparser

from .models import MINIMUM_SESSION_HOURS, PHASES, PlanState, ScheduleOptions, ScheduleResult, Task, WorkItem

DATE_FMT = "%Y-%m-%d"

_ITEM_REQUIRED_FIELDS = ("id", "name")
_TASK_REQUIRED_FIELDS = ("id", "name", "estimated_hours")

TIMELINE_COLUMNS = [
    "item_id",
    "item_name",
    "task_id",
    "task_name",
    "phase",
    "buffered_hours",
    "start_date",
    "deadline",
    "completed",
]

WEEK_COLUMNS = [
    "week_number",
    "week_start",
    "week_end",
    "allocated_hours",
    "remaining_hours",
    "active_items",
]


def _require_fields(entry: Dict[str, object], required: Iterable[str], source: str) -> None:
    missing = [name for name in required if entry.get(name) in (None, "")]
    if missing:
        raise ValueError(f"{source} missing required fields: {', '.join(missing)}")


def _parse_number(value: object, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"invalid numeric value in '{field_name}'")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid numeric value in '{field_name}'") from exc
    if number < 0:
        raise ValueError(f"'{field_name}' must not be negative")
    return number


def _parse_bool(value: object, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "t", "1", "yes", "y"}:
            return True
        if lowered in {"false", "f", "0", "no", "n"}:
            return False
    raise ValueError(f"cannot interpret boolean value '{value}' in '{field_name}'")


def parse_date(value: object, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return dateparser.isoparse(str(value)).date()
    except (ValueError, TypeError, OverflowError) as exc:
        raise ValueError(f"invalid date in '{field_name}': {value}") from exc


def _parse_optional_date(value: object, field_name: str) -> Optional[date]:
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    return parse_date(value, field_name)


def parse_task(entry: Dict[str, object], item_id: str, default_multiplier: float = 1.2) -> Task:
    if not isinstance(entry, dict):
        raise ValueError(f"tasks of item {item_id} must be objects")
    _require_fields(entry, _TASK_REQUIRED_FIELDS, f"task in item {item_id}")
    phase = entry.get("phase")
    if phase is not None and phase not in PHASES:
        raise ValueError(f"unsupported phase '{phase}' for task {entry['id']}")
    dependencies = entry.get("dependencies") or ()
    if not isinstance(dependencies, (list, tuple)):
        raise ValueError(f"dependencies of task {entry['id']} must be an array")
    return Task(
        id=str(entry["id"]),
        item_id=item_id,
        name=str(entry["name"]),
        estimated_hours=_parse_number(entry["estimated_hours"], "estimated_hours"),
        buffer_multiplier=_parse_number(entry.get("buffer_multiplier", default_multiplier), "buffer_multiplier"),
        phase=phase,  # type: ignore[arg-type]
        completed=_parse_bool(entry.get("completed", False), "completed"),
        start_date=_parse_optional_date(entry.get("start_date"), "start_date"),
        deadline=_parse_optional_date(entry.get("deadline"), "deadline"),
        dependencies=tuple(str(dep) for dep in dependencies),
    )


def parse_items(data: object, default_multiplier: float = 1.2) -> List[WorkItem]:
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise ValueError("plan must contain an 'items' array")
    items: List[WorkItem] = []
    seen = set()
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError("items must be objects")
        _require_fields(entry, _ITEM_REQUIRED_FIELDS, "item")
        item_id = str(entry["id"])
        if item_id in seen:
            raise ValueError(f"duplicate item id '{item_id}'")
        seen.add(item_id)
        tasks_raw = entry.get("tasks") or []
        if not isinstance(tasks_raw, list):
            raise ValueError(f"tasks of item {item_id} must be an array")
        tasks = [parse_task(task, item_id, default_multiplier) for task in tasks_raw]
        items.append(WorkItem(id=item_id, name=str(entry["name"]), tasks=tuple(tasks)))
    return items


def parse_options(data: object) -> ScheduleOptions:
    if not isinstance(data, dict):
        raise ValueError("options must be an object")
    try:
        budget = _parse_number(data["weekly_hours_budget"], "weekly_hours_budget")
    except KeyError as exc:
        raise ValueError("weekly_hours_budget is required") from exc
    if budget <= 0:
        raise ValueError("weekly_hours_budget must be positive")
    if "master_deadline" not in data:
        raise ValueError("master_deadline is required")
    master_deadline = parse_date(data["master_deadline"], "master_deadline")
    multiplier = _parse_number(data.get("buffer_multiplier", 1.2), "buffer_multiplier")
    if multiplier <= 0:
        raise ValueError("buffer_multiplier must be positive")
    max_concurrent = data.get("max_concurrent_items_per_week", 2)
    if isinstance(max_concurrent, bool) or not isinstance(max_concurrent, (int, float)):
        raise ValueError("max_concurrent_items_per_week must be a number")
    if int(max_concurrent) <= 0:
        raise ValueError("max_concurrent_items_per_week must be positive")
    exclusivity = _parse_bool(data.get("draft_exclusivity_enabled", True), "draft_exclusivity_enabled")

    sessions_cfg = data.get("minimum_session_hours")
    minimum_session_hours = dict(MINIMUM_SESSION_HOURS)
    if sessions_cfg is not None:
        if not isinstance(sessions_cfg, dict):
            raise ValueError("minimum_session_hours must be an object")
        for phase, value in sessions_cfg.items():
            if phase not in PHASES:
                raise ValueError(f"minimum_session_hours has unsupported phase '{phase}'")
            minimum_session_hours[phase] = _parse_number(value, f"minimum_session_hours[{phase}]")

    logging_level = data.get("logging_level", "INFO")
    if not isinstance(logging_level, str):
        raise ValueError("logging_level must be a string")

    return ScheduleOptions(
        weekly_hours_budget=budget,
        master_deadline=master_deadline,
        buffer_multiplier=multiplier,
        max_concurrent_items_per_week=int(max_concurrent),
        draft_exclusivity_enabled=exclusivity,
        minimum_session_hours=minimum_session_hours,
        logging_level=logging_level,
    )


def parse_state(data: object) -> PlanState:
    """Plan plus settings as persisted by the app; dates may be missing."""
    if not isinstance(data, dict):
        raise ValueError("state must be an object")
    multiplier = _parse_number(data.get("buffer_multiplier", 1.2), "buffer_multiplier")
    items = parse_items(data.get("items", []), multiplier)
    return PlanState(
        items=tuple(items),
        master_deadline=_parse_optional_date(data.get("master_deadline"), "master_deadline"),
        weekly_hours_budget=_parse_number(data.get("weekly_hours_budget", 0), "weekly_hours_budget"),
        buffer_multiplier=multiplier,
        max_concurrent_items_per_week=int(
            _parse_number(data.get("max_concurrent_items_per_week", 2), "max_concurrent_items_per_week")
        ),
    )


def load_plan(path: str | Path, default_multiplier: float = 1.2) -> List[WorkItem]:
    data = json.loads(Path(path).read_text())
    return parse_items(data, default_multiplier)


def load_options(path: str | Path) -> ScheduleOptions:
    data = json.loads(Path(path).read_text())
    return parse_options(data)


def _format_date(value: Optional[date]) -> Optional[str]:
    return value.strftime(DATE_FMT) if value else None


def task_to_dict(task: Task) -> Dict[str, object]:
    return {
        "id": task.id,
        "name": task.name,
        "estimated_hours": task.estimated_hours,
        "buffer_multiplier": task.buffer_multiplier,
        "phase": task.phase,
        "completed": task.completed,
        "start_date": _format_date(task.start_date),
        "deadline": _format_date(task.deadline),
        "dependencies": list(task.dependencies),
    }


def item_to_dict(item: WorkItem) -> Dict[str, object]:
    return {
        "id": item.id,
        "name": item.name,
        "tasks": [task_to_dict(task) for task in item.tasks],
    }


def timeline_frame(result: ScheduleResult) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for item in result.items:
        for task in item.tasks:
            rows.append(
                {
                    "item_id": item.id,
                    "item_name": item.name,
                    "task_id": task.id,
                    "task_name": task.name,
                    "phase": task.phase,
                    "buffered_hours": round(task.buffered_hours, 4),
                    "start_date": _format_date(task.start_date),
                    "deadline": _format_date(task.deadline),
                    "completed": task.completed,
                }
            )
    return pd.DataFrame(rows, columns=TIMELINE_COLUMNS)


def weeks_frame(result: ScheduleResult) -> pd.DataFrame:
    rows = [
        {
            "week_number": week.week_number,
            "week_start": _format_date(week.week_start),
            "week_end": _format_date(week.week_end),
            "allocated_hours": round(week.allocated_hours, 4),
            "remaining_hours": round(week.remaining_hours, 4),
            "active_items": ";".join(sorted(week.active_items)),
        }
        for week in result.weeks
    ]
    return pd.DataFrame(rows, columns=WEEK_COLUMNS)


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def state_to_dict(state: PlanState) -> Dict[str, object]:
    return {
        "items": [item_to_dict(item) for item in state.items],
        "master_deadline": _format_date(state.master_deadline),
        "weekly_hours_budget": state.weekly_hours_budget,
        "buffer_multiplier": state.buffer_multiplier,
        "max_concurrent_items_per_week": state.max_concurrent_items_per_week,
    }
