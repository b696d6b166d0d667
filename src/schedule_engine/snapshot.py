from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass
from typing import Any

import yaml

from .dependencies import find_cycle
from .schedule_models import (
    DEPENDENCY_TYPES,
    TASK_STATUSES,
    CriticalPathEntry,
    DependencyEdge,
    ScheduleError,
    ScheduleSnapshot,
    Task,
)

logger = logging.getLogger(__name__)

_TASK_KEYS = {
    "id",
    "name",
    "wbs_code",
    "status",
    "planned_start_date",
    "planned_end_date",
    "duration_days",
    "parent_task_id",
    "description",
    "actual_completion_percentage",
}
_EDGE_KEYS = {"id", "predecessor_task_id", "successor_task_id", "dependency_type", "lag_days"}
_CRITICAL_KEYS = {"task_id", "total_float"}


class SnapshotError(ScheduleError):
    """Raised when a snapshot document is structurally invalid."""


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[0].status."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_snapshot(path: str) -> ScheduleSnapshot:
    """Load tasks, dependencies and critical path from a YAML file."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_snapshot(raw)


def parse_snapshot(data: Any) -> ScheduleSnapshot:
    """Build a snapshot from already-decoded YAML/JSON data."""

    path = _Path()
    if not isinstance(data, dict):
        raise SnapshotError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"name", "tasks", "dependencies", "critical_path", "settings"}, path)

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise SnapshotError(f"{path.child('name')}: expected string")

    tasks = tuple(
        _parse_task(item, path.child(f"tasks[{idx}]"))
        for idx, item in enumerate(_require_list(data, "tasks", path))
    )
    _assert_unique_ids(tasks, path.child("tasks"))

    edges = tuple(
        _parse_edge(item, path.child(f"dependencies[{idx}]"))
        for idx, item in enumerate(_optional_list(data, "dependencies", path))
    )
    critical = tuple(
        _parse_critical(item, path.child(f"critical_path[{idx}]"))
        for idx, item in enumerate(_optional_list(data, "critical_path", path))
    )

    _warn_on_data_quality(tasks, edges)
    return ScheduleSnapshot(tasks=tasks, dependencies=edges, critical_path=critical, name=name)


def _parse_task(data: Any, path: _Path) -> Task:
    if not isinstance(data, dict):
        raise SnapshotError(f"{path}: expected mapping for task")
    _assert_allowed_keys(data, _TASK_KEYS, path)

    status = data.get("status", "not_started")
    if status not in TASK_STATUSES:
        raise SnapshotError(f"{path.child('status')}: expected one of {list(TASK_STATUSES)}")

    end_date = None
    if data.get("planned_end_date") is not None:
        end_date = _parse_date(data["planned_end_date"], path.child("planned_end_date"))

    duration = data.get("duration_days")
    if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int)):
        raise SnapshotError(f"{path.child('duration_days')}: expected integer")

    completion = data.get("actual_completion_percentage")
    if completion is not None:
        if isinstance(completion, bool) or not isinstance(completion, (int, float)):
            raise SnapshotError(f"{path.child('actual_completion_percentage')}: expected number")
        if not 0 <= completion <= 100:
            raise SnapshotError(f"{path.child('actual_completion_percentage')}: expected 0..100")

    return Task(
        id=_require_id(data, "id", path),
        name=_require_str(data, "name", path),
        planned_start_date=_parse_date(_require_value(data, "planned_start_date", path), path.child("planned_start_date")),
        planned_end_date=end_date,
        status=status,
        wbs_code=_optional_str(data, "wbs_code", path),
        parent_task_id=_optional_id(data, "parent_task_id", path),
        duration_hint_days=duration,
        description=_optional_str(data, "description", path),
        actual_completion_percentage=completion,
    )


def _parse_edge(data: Any, path: _Path) -> DependencyEdge:
    if not isinstance(data, dict):
        raise SnapshotError(f"{path}: expected mapping for dependency")
    _assert_allowed_keys(data, _EDGE_KEYS, path)

    dependency_type = data.get("dependency_type", "FS")
    if dependency_type not in DEPENDENCY_TYPES:
        raise SnapshotError(f"{path.child('dependency_type')}: expected one of {list(DEPENDENCY_TYPES)}")

    lag = data.get("lag_days", 0)
    if isinstance(lag, bool) or not isinstance(lag, int):
        raise SnapshotError(f"{path.child('lag_days')}: expected integer")

    return DependencyEdge(
        predecessor_task_id=_require_id(data, "predecessor_task_id", path),
        successor_task_id=_require_id(data, "successor_task_id", path),
        dependency_type=dependency_type,
        lag_days=lag,
        id=_optional_id(data, "id", path),
    )


def _parse_critical(data: Any, path: _Path) -> CriticalPathEntry:
    if not isinstance(data, dict):
        raise SnapshotError(f"{path}: expected mapping for critical path entry")
    _assert_allowed_keys(data, _CRITICAL_KEYS, path)

    total_float = data.get("total_float", 0)
    if total_float is None:
        total_float = 0
    if isinstance(total_float, bool) or not isinstance(total_float, (int, float)):
        raise SnapshotError(f"{path.child('total_float')}: expected number")

    return CriticalPathEntry(task_id=_require_id(data, "task_id", path), total_float=float(total_float))


def _warn_on_data_quality(tasks: tuple[Task, ...], edges: tuple[DependencyEdge, ...]) -> None:
    known = {task.id for task in tasks}
    for task in tasks:
        if task.parent_task_id and task.parent_task_id not in known:
            logger.warning("Task %s references unknown parent %s", task.id, task.parent_task_id)
        if task.has_inverted_dates:
            logger.warning("Task %s ends before it starts (%s > %s)", task.id, task.planned_start_date, task.end_date)
    cycle = find_cycle(edges)
    if cycle:
        logger.warning("Snapshot dependencies already contain a cycle: %s", cycle)


def _assert_unique_ids(tasks: tuple[Task, ...], path: _Path) -> None:
    seen: set[str] = set()
    for task in tasks:
        if task.id in seen:
            raise SnapshotError(f"{path}: duplicate task id '{task.id}'")
        seen.add(task.id)


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise SnapshotError(f"{path}: unexpected fields {extras}")


def _require_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = _require_value(data, key, path)
    if not isinstance(value, list):
        raise SnapshotError(f"{path.child(key)}: expected list")
    return value


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotError(f"{path.child(key)}: expected list")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise SnapshotError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise SnapshotError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SnapshotError(f"{path.child(key)}: expected string")
    return value


def _require_id(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    return _coerce_id(value, path.child(key))


def _optional_id(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    return _coerce_id(value, path.child(key))


def _coerce_id(value: Any, path: _Path) -> str:
    # Stores hand out integer or string ids; both are treated as opaque strings.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise SnapshotError(f"{path}: expected string or integer id")
    text = str(value)
    if not text.strip():
        raise SnapshotError(f"{path}: expected non-empty id")
    return text


def _parse_date(value: Any, path: _Path) -> _dt.date:
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise SnapshotError(f"{path}: expected YYYY-MM-DD string")
    try:
        parsed = _dt.date.fromisoformat(value[:10])
    except ValueError as exc:
        raise SnapshotError(f"{path}: expected YYYY-MM-DD string") from exc
    return parsed
