"""End-to-end tests for the command line entry point."""
import json

import pandas as pd
import pytest

from deadline_planner import main as cli

PLAN = {
    "items": [
        {
            "id": "essay",
            "name": "Essay",
            "tasks": [
                {"id": "t1", "name": "Research & Topic Selection", "estimated_hours": 2},
                {"id": "t2", "name": "Outline & Structure", "estimated_hours": 1.5},
                {"id": "t3", "name": "First Draft", "estimated_hours": 5},
                {"id": "t4", "name": "Revision & Refinement", "estimated_hours": 2.5},
                {"id": "t5", "name": "Final Polish", "estimated_hours": 1},
            ],
        }
    ]
}


@pytest.fixture
def inputs(tmp_path):
    plan_path = tmp_path / "plan.json"
    options_path = tmp_path / "options.json"
    plan_path.write_text(json.dumps(PLAN))
    options_path.write_text(json.dumps({"weekly_hours_budget": 6, "master_deadline": "2025-03-03"}))
    return plan_path, options_path


def test_writes_outputs(tmp_path, inputs, capsys) -> None:
    plan_path, options_path = inputs
    outdir = tmp_path / "out"

    cli.main(["--plan", str(plan_path), "--options", str(options_path), "--today", "2025-01-06", "--outdir", str(outdir)])

    timeline = pd.read_csv(outdir / "task_timeline.csv")
    weeks = pd.read_csv(outdir / "week_allocations.csv")
    assert list(timeline["task_id"]) == ["t1", "t2", "t3", "t4", "t5"]
    assert weeks["allocated_hours"].sum() == pytest.approx(14.4)
    warnings_md = (outdir / "schedule_warnings.md").read_text()
    assert warnings_md.startswith("# Schedule Warnings")
    assert "No problems found" in warnings_md
    assert "task_timeline.csv" in capsys.readouterr().out


def test_dry_run_prints_summary(tmp_path, inputs, capsys) -> None:
    plan_path, options_path = inputs
    outdir = tmp_path / "out"

    cli.main(["--plan", str(plan_path), "--options", str(options_path), "--today", "2025-01-06", "--outdir", str(outdir), "--dry-run"])

    out = capsys.readouterr().out
    assert "Schedule is feasible" in out
    assert "essay Essay: 2025-01-06" in out
    assert not outdir.exists()


def test_missing_input_exits_with_2(tmp_path, inputs) -> None:
    _, options_path = inputs
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--plan", str(tmp_path / "nope.json"), "--options", str(options_path)])
    assert excinfo.value.code == 2


def test_invalid_options_exit_with_2(tmp_path, inputs) -> None:
    plan_path, options_path = inputs
    options_path.write_text(json.dumps({"weekly_hours_budget": -1, "master_deadline": "2025-03-03"}))
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--plan", str(plan_path), "--options", str(options_path), "--today", "2025-01-06"])
    assert excinfo.value.code == 2


def test_infeasible_plan_exits_with_1(tmp_path, inputs, capsys) -> None:
    plan_path, options_path = inputs
    options_path.write_text(json.dumps({"weekly_hours_budget": 6, "master_deadline": "2025-01-09"}))
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--plan", str(plan_path), "--options", str(options_path), "--today", "2025-01-06", "--outdir", str(tmp_path / "out")])
    assert excinfo.value.code == 1
    assert "IMPOSSIBLE SCHEDULE" in capsys.readouterr().err


def test_strict_failure_exits_with_1(tmp_path, inputs) -> None:
    plan_path, options_path = inputs
    options_path.write_text(json.dumps({"weekly_hours_budget": 2, "master_deadline": "2025-06-30"}))
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--plan", str(plan_path), "--options", str(options_path), "--today", "2025-01-06", "--strict"])
    assert excinfo.value.code == 1
