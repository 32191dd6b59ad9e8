from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional, Tuple

from . import engine
from .engine import UnschedulableTaskError
from .io_utils import (
    ensure_directory,
    load_options,
    load_plan,
    parse_date,
    timeline_frame,
    weeks_frame,
    write_csv,
)
from .models import PlanState, ScheduleResult
from .recommendations import ScheduleWarning, analyze_schedule_warnings


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Deadline feasibility check and weekly schedule builder (JSON in, CSV out)."
    )
    parser.add_argument("--plan", required=True, help="Path to plan JSON with items and tasks")
    parser.add_argument("--options", required=True, help="Path to schedule options JSON")
    parser.add_argument(
        "--today",
        help="Planning date as YYYY-MM-DD (default: the current date)",
    )
    parser.add_argument(
        "--outdir",
        default="out",
        help="Output directory for generated CSV files (default: ./out)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail if any task cannot be fully placed before the deadline",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan and print summary without writing output files",
    )
    return parser.parse_args(argv)


def _resolve_inputs(args: argparse.Namespace) -> Tuple[Path, Path, date]:
    plan_path = Path(args.plan)
    options_path = Path(args.options)
    for label, path in (("plan", plan_path), ("options", options_path)):
        if not path.exists():
            raise ValueError(f"{label} file not found at {path}")
    today = parse_date(args.today, "--today") if args.today else date.today()
    return plan_path, options_path, today


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _print_summary(result: ScheduleResult) -> None:
    summary = engine.summarize_schedule(result)
    print(f"Feasibility: {result.feasibility.message}")
    if summary.item_spans:
        print("Scheduled items:")
        for span in summary.item_spans:
            print(f"- {span.item_id} {span.item_name}: {span.start_date} → {span.end_date}")
    print(f"{summary.total_hours:.1f}h over {summary.total_weeks} weeks")
    for message in result.warnings:
        print(f"Warning: {message}")
    for message in result.errors:
        print(f"Error: {message}")


def _write_warnings_markdown(warnings: List[ScheduleWarning], outdir: Path) -> Path:
    path = outdir / "schedule_warnings.md"
    lines: List[str] = ["# Schedule Warnings", ""]
    if not warnings:
        lines.append("No problems found in the current plan.")
    else:
        for warning in warnings:
            lines.append(f"- **{warning.title}** ({warning.severity})")
            lines.append(f"  - {warning.message}")
            lines.append(f"  - Impact: {warning.impact_label}")
            if warning.affected_names:
                lines.append(f"  - Affected: {', '.join(warning.affected_names)}")
            for fix in warning.fixes:
                marker = " (recommended)" if fix.recommended else ""
                lines.append(f"  - Fix: {fix.label}{marker}, {fix.risk} risk. {fix.description}")
            lines.append("")
    path.write_text("\n".join(lines).strip() + "\n")
    return path


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    try:
        plan_path, options_path, today = _resolve_inputs(args)
        options = load_options(options_path)
        items = load_plan(plan_path, options.buffer_multiplier)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(2)

    _configure_logging(options.logging_level)
    try:
        result = engine.generate_schedule(items, options, today, strict=args.strict)
    except UnschedulableTaskError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    if not result.feasibility.is_feasible:
        print(result.feasibility.message, file=sys.stderr)
        print(f"Earliest realistic deadline: {result.feasibility.minimum_deadline}", file=sys.stderr)
        sys.exit(1)

    if args.dry_run:
        _print_summary(result)
        return

    state = PlanState(
        items=tuple(result.items),
        master_deadline=options.master_deadline,
        weekly_hours_budget=options.weekly_hours_budget,
        buffer_multiplier=options.buffer_multiplier,
        max_concurrent_items_per_week=options.max_concurrent_items_per_week,
    )
    warnings = analyze_schedule_warnings(state, today)

    outdir_path = ensure_directory(args.outdir)
    timeline_path = outdir_path / "task_timeline.csv"
    weeks_path = outdir_path / "week_allocations.csv"
    write_csv(timeline_frame(result), timeline_path)
    write_csv(weeks_frame(result), weeks_path)
    warnings_path = _write_warnings_markdown(warnings, outdir_path)
    print(f"Wrote {timeline_path}")
    print(f"Wrote {weeks_path}")
    print(f"Wrote {warnings_path}")
    if result.errors:
        print("Unplaced tasks:")
        for message in result.errors:
            print(f"- {message}")


if __name__ == "__main__":
    main()
