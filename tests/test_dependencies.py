import datetime as dt

import pytest

from schedule_engine.dependencies import (
    CIRCULAR_DEPENDENCY,
    MISSING_PREDECESSOR,
    SELF_DEPENDENCY,
    DependencyError,
    available_predecessors,
    check_new_dependency,
    describe_dependency,
    edges_for_task,
    find_cycle,
    predecessors_index,
    require_acyclic,
    would_create_cycle,
)
from schedule_engine.schedule_models import DependencyEdge, Task


def _edge(pred, succ, dependency_type="FS", lag=0):
    return DependencyEdge(predecessor_task_id=pred, successor_task_id=succ, dependency_type=dependency_type, lag_days=lag)


def test_reverse_edge_is_a_cycle():
    edges = [_edge("1", "2")]

    assert would_create_cycle(edges, "2", "1") is True


def test_empty_graph_accepts_any_non_self_edge():
    assert would_create_cycle([], "1", "2") is False


@pytest.mark.parametrize("edges", [[], [_edge("a", "b")], [_edge("x", "x")]])
def test_self_dependency_is_always_a_cycle(edges):
    assert would_create_cycle(edges, "x", "x") is True


def test_transitive_cycle_is_detected():
    edges = [_edge("A", "B"), _edge("B", "C")]

    assert would_create_cycle(edges, "C", "A") is True
    assert would_create_cycle(edges, "A", "C") is False


def test_parallel_branches_are_not_cycles():
    edges = [_edge("A", "B"), _edge("A", "C"), _edge("B", "D"), _edge("C", "D")]

    assert would_create_cycle(edges, "B", "C") is False
    assert would_create_cycle(edges, "D", "A") is True


def test_already_cyclic_input_terminates():
    edges = [_edge("X", "Y"), _edge("Y", "X")]

    assert would_create_cycle(edges, "Y", "Z") is False
    assert would_create_cycle(edges, "X", "Y") is True


def test_long_chain_does_not_hit_recursion_limit():
    edges = [_edge(str(i), str(i + 1)) for i in range(5000)]

    assert would_create_cycle(edges, "5000", "0") is True
    assert would_create_cycle(edges, "0", "5000") is False


def test_check_new_dependency_reasons():
    edges = [_edge("1", "2")]

    assert check_new_dependency(edges, "", "1").reason == MISSING_PREDECESSOR
    assert check_new_dependency(edges, "1", "1").reason == SELF_DEPENDENCY
    assert check_new_dependency(edges, "2", "1").reason == CIRCULAR_DEPENDENCY
    ok = check_new_dependency(edges, "3", "1")
    assert ok.allowed and ok.reason is None
    assert bool(check_new_dependency(edges, "2", "1")) is False


def test_require_acyclic_raises():
    with pytest.raises(DependencyError):
        require_acyclic([_edge("1", "2")], "2", "1")

    require_acyclic([_edge("1", "2")], "1", "3")


def test_find_cycle_reports_path():
    cycle = find_cycle([_edge("A", "B"), _edge("B", "C"), _edge("C", "A"), _edge("C", "D")])

    assert cycle is not None
    assert cycle.path == ["A", "B", "C", "A"]


def test_find_cycle_on_dag_is_none():
    assert find_cycle([_edge("A", "B"), _edge("A", "C"), _edge("B", "C")]) is None
    assert find_cycle([]) is None


def test_indexes_and_edges_for_task():
    edges = [_edge("A", "C"), _edge("B", "C"), _edge("C", "D")]

    assert predecessors_index(edges) == {"C": ["A", "B"], "D": ["C"]}
    assert edges_for_task(edges, "C") == edges[:2]


def test_available_predecessors_excludes_target():
    tasks = [Task(id=i, name=i, planned_start_date=dt.date(2024, 1, 1)) for i in ("a", "b", "c")]

    assert [task.id for task in available_predecessors(tasks, "b")] == ["a", "c"]


def test_describe_dependency():
    assert describe_dependency(_edge("a", "b")) == "Finish-to-Start (FS)"
    assert describe_dependency(_edge("a", "b", "SS", 2)) == "Start-to-Start (SS) Lag: +2 days"
    assert describe_dependency(_edge("a", "b", "FF", -1)) == "Finish-to-Finish (FF) Lag: -1 days"
