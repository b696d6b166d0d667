import datetime as dt

from schedule_engine.hierarchy import children_index, descendant_ids, flatten, parent_candidates
from schedule_engine.schedule_models import Task


def _task(task_id, parent=None, name=None):
    return Task(
        id=task_id,
        name=name or task_id,
        planned_start_date=dt.date(2024, 1, 1),
        planned_end_date=dt.date(2024, 1, 5),
        parent_task_id=parent,
    )


def _shape(rows):
    return [(row.task.id, row.level) for row in rows]


def test_parent_chain_is_flattened_regardless_of_input_order():
    tasks = [_task("leaf", parent="mid"), _task("mid", parent="root"), _task("root")]

    rows = flatten(tasks)

    assert _shape(rows) == [("root", 0), ("mid", 1), ("leaf", 2)]


def test_roots_and_siblings_keep_input_order():
    tasks = [
        _task("r1"),
        _task("r2"),
        _task("c2", parent="r1"),
        _task("c1", parent="r1"),
        _task("g1", parent="c2"),
    ]

    rows = flatten(tasks)

    assert _shape(rows) == [("r1", 0), ("c2", 1), ("g1", 2), ("c1", 1), ("r2", 0)]


def test_every_parent_precedes_descendants_and_levels_increase_by_one():
    tasks = [
        _task("d", parent="b"),
        _task("a"),
        _task("c", parent="a"),
        _task("b", parent="a"),
        _task("e", parent="d"),
        _task("f"),
    ]

    rows = flatten(tasks)
    position = {row.task.id: idx for idx, row in enumerate(rows)}
    level = {row.task.id: row.level for row in rows}

    assert sorted(position) == sorted(task.id for task in tasks)
    for task in tasks:
        if task.parent_task_id:
            assert position[task.parent_task_id] < position[task.id]
            assert level[task.id] == level[task.parent_task_id] + 1
        else:
            assert level[task.id] == 0


def test_orphan_is_treated_as_root():
    tasks = [_task("a"), _task("orphan", parent="filtered-out"), _task("b", parent="orphan")]

    rows = flatten(tasks)

    assert _shape(rows) == [("a", 0), ("orphan", 0), ("b", 1)]


def test_has_children_flag():
    rows = flatten([_task("p"), _task("c", parent="p")])

    assert [row.has_children for row in rows] == [True, False]


def test_collapsed_subtree_hides_descendants():
    tasks = [_task("p"), _task("c", parent="p"), _task("g", parent="c"), _task("q")]

    rows = flatten(tasks, collapsed={"p"})

    assert _shape(rows) == [("p", 0), ("q", 0)]
    assert rows[0].has_children is True


def test_parent_cycle_still_emits_each_task_once():
    tasks = [_task("x", parent="y"), _task("y", parent="x"), _task("z")]

    rows = flatten(tasks)

    assert sorted(row.task.id for row in rows) == ["x", "y", "z"]
    assert rows[0].task.id == "z"


def test_flatten_is_idempotent():
    tasks = [_task("b", parent="a"), _task("a"), _task("c")]

    assert flatten(tasks) == flatten(tasks)


def test_empty_input_returns_empty_list():
    assert flatten([]) == []


def test_children_index_and_descendants():
    tasks = [_task("a"), _task("b", parent="a"), _task("c", parent="b"), _task("d", parent="missing")]

    assert children_index(tasks) == {"a": ["b"], "b": ["c"], "c": [], "d": []}
    assert descendant_ids(tasks, "a") == {"b", "c"}


def test_parent_candidates_exclude_self_and_descendants():
    tasks = [_task("a"), _task("b", parent="a"), _task("c", parent="b"), _task("d")]

    candidates = [task.id for task in parent_candidates(tasks, "b")]

    assert candidates == ["a", "d"]
    assert [task.id for task in parent_candidates(tasks, None)] == ["a", "b", "c", "d"]
