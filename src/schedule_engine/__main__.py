from __future__ import annotations

import argparse
import logging
import sys
import webbrowser
from pathlib import Path

import yaml

from .analytics import at_risk_tasks, schedule_health, schedule_summary, upcoming_tasks
from .clock import FixedClock, SystemClock
from .critical_path import CriticalPathIndex, StatusFilters
from .dependencies import check_new_dependency, edges_for_task
from .layout import build_gantt_layout
from .render_gantt import render_gantt
from .schedule_models import GRANULARITIES, ScheduleSnapshot
from .settings import SettingsError, load_settings
from .snapshot import SnapshotError, load_snapshot
from .timeline import window_for_range


def _parse_date(value: str):
    import datetime as dt

    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Schedule Gantt layout and dependency checks",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("snapshot", help="Path to schedule snapshot YAML")
    parser.add_argument("--out", default="output/schedule.svg", help="Output SVG path")
    parser.add_argument("--granularity", choices=GRANULARITIES, default="week", help="Timeline unit")
    parser.add_argument("--pivot", type=_parse_date, help="Date the window is centred on (default: today)")
    parser.add_argument("--today", type=_parse_date, help="Override today's date (marker and default pivot)")
    parser.add_argument("--window-start", type=_parse_date, help="Explicit window start (YYYY-MM-DD)")
    parser.add_argument("--window-end", type=_parse_date, help="Explicit window end (YYYY-MM-DD)")
    parser.add_argument("--width", type=float, default=1200, help="Chart width in pixels including labels")
    parser.add_argument("--critical-only", action="store_true", help="Show only critical path tasks")
    parser.add_argument("--hide-critical", action="store_true", help="Hide critical path tasks")
    parser.add_argument("--hide-in-progress", action="store_true", help="Hide in-progress tasks")
    parser.add_argument("--hide-completed", action="store_true", help="Hide completed tasks")
    parser.add_argument("--hide-not-started", action="store_true", help="Hide not-started tasks")
    parser.add_argument("--search", help="Only tasks whose name or description contains this text")
    parser.add_argument("--collapse", action="append", default=[], metavar="TASK_ID", help="Collapse a subtree")
    parser.add_argument(
        "--check-dependency",
        nargs=2,
        metavar=("PREDECESSOR_ID", "TASK_ID"),
        help="Validate a proposed dependency instead of rendering",
    )
    parser.add_argument("--summary", action="store_true", help="Print schedule analytics to stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--view",
        dest="view",
        action="store_true",
        default=False,
        help="Best-effort open the output file after rendering",
    )
    parser.add_argument(
        "--no-view",
        dest="view",
        action="store_false",
        help="Do not open the output file after rendering",
    )
    return parser


def _filters_from_args(args: argparse.Namespace) -> StatusFilters:
    return StatusFilters(
        critical=not args.hide_critical,
        in_progress=not args.hide_in_progress,
        completed=not args.hide_completed,
        not_started=not args.hide_not_started,
        critical_only=args.critical_only,
        search=args.search,
    )


def _check_dependency(snapshot: ScheduleSnapshot, predecessor_id: str, task_id: str) -> int:
    edges = edges_for_task(snapshot.dependencies, task_id)
    # Predecessor links are followed transitively; the check needs every edge.
    check = check_new_dependency(snapshot.dependencies, predecessor_id, task_id)
    if not check.allowed:
        print(f"Error: {check.reason}", file=sys.stderr)
        return 3
    print(f"OK: {task_id} may depend on {predecessor_id} ({len(edges)} existing predecessors)")
    return 0


def _print_summary(snapshot: ScheduleSnapshot, today) -> None:
    critical = CriticalPathIndex(snapshot.critical_path)
    summary = schedule_summary(snapshot.tasks, critical)
    health = schedule_health(summary)
    print(f"Tasks: {summary.total_tasks}")
    print(f"In progress: {summary.in_progress_tasks}")
    print(f"Completed: {summary.completed_tasks}")
    print(f"Critical path: {summary.critical_path_tasks}")
    print(f"Progress: {summary.completion_percentage}%")
    print(f"Health: {health.label}")
    for task in upcoming_tasks(snapshot.tasks, today):
        print(f"Upcoming: {task.name} ({task.planned_start_date.isoformat()})")
    for task in at_risk_tasks(snapshot.tasks, critical, today):
        print(f"At risk: {task.name} (due {task.end_date.isoformat()})")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    snapshot_path = Path(args.snapshot)

    try:
        snapshot = load_snapshot(str(snapshot_path))
        settings = load_settings(snapshot_path)
    except (yaml.YAMLError, SnapshotError, SettingsError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: snapshot file not found: {snapshot_path}", file=sys.stderr)
        return 1

    if args.check_dependency:
        predecessor_id, task_id = args.check_dependency
        return _check_dependency(snapshot, predecessor_id, task_id)

    clock = FixedClock(args.today) if args.today else SystemClock()
    if args.summary:
        _print_summary(snapshot, clock.today())

    window = None
    if args.window_start or args.window_end:
        if not (args.window_start and args.window_end):
            print("Error: --window-start and --window-end must be given together", file=sys.stderr)
            return 2
        window = window_for_range(args.window_start, args.window_end, args.granularity)

    layout = build_gantt_layout(
        snapshot,
        granularity=args.granularity,
        pivot_date=args.pivot,
        viewport_width_px=args.width,
        filters=_filters_from_args(args),
        collapsed=set(args.collapse),
        window=window,
        clock=clock,
        settings=settings,
    )

    try:
        render_gantt(layout, out_path=args.out, title=snapshot.name or "")
    except OSError as exc:
        print(f"Error: cannot write {args.out}: {exc}", file=sys.stderr)
        return 1

    if args.view:
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except webbrowser.Error:
            pass

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
