import itertools
import threading
from datetime import date

import pytest

from taskdeps.errors import (
    CrossProjectDependencyError,
    CyclicDependencyError,
    DependencyError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    UnknownTaskError,
)
from taskdeps.manager import DependencyManager, type_name
from taskdeps.models import DependencyType, ProjectConfig, Task
from taskdeps.store import InMemoryEdgeStore, JsonEdgeStore


def _tasks(*ids, project="house"):
    return {tid: Task(tid, f"Task {tid}", project=project) for tid in ids}


@pytest.fixture
def manager():
    return DependencyManager(InMemoryEdgeStore(), _tasks("A", "B", "C", "D"))


def test_cycle_rejected_and_unconnected_link_allowed(manager):
    manager.add_dependency("A", "B")
    manager.add_dependency("B", "C")
    with pytest.raises(CyclicDependencyError) as exc:
        manager.add_dependency("C", "A")
    assert exc.value.path == ["A", "B", "C"]
    assert "cycle" in exc.value.message

    e = manager.add_dependency("C", "D")
    assert e.pair == ("C", "D")


def test_self_dependency_rejected(manager):
    with pytest.raises(CyclicDependencyError) as exc:
        manager.add_dependency("A", "A")
    assert exc.value.message == "Task A cannot depend on itself."


def test_unknown_task(manager):
    with pytest.raises(UnknownTaskError) as exc:
        manager.add_dependency("A", "Z")
    assert exc.value.task_id == "Z"
    assert manager.store.all() == []


def test_duplicate_with_different_type_and_lag(manager):
    manager.add_dependency("A", "B", DependencyType.FINISH_TO_START, 0)
    with pytest.raises(DuplicateEdgeError):
        manager.add_dependency("A", "B", DependencyType.START_TO_START, 3)


def test_errors_are_distinct_kinds():
    kinds = [UnknownTaskError, DuplicateEdgeError, CyclicDependencyError, EdgeNotFoundError]
    assert all(issubclass(k, DependencyError) for k in kinds)
    for a, b in itertools.permutations(kinds, 2):
        assert not issubclass(a, b)
    assert type_name(CyclicDependencyError("A", "B", ["B", "A"])) == "cyclic_dependency"
    assert type_name(UnknownTaskError("Z")) == "unknown_task"


def test_cross_project_link_needs_opt_in():
    tasks = {**_tasks("A"), **_tasks("X", project="garden")}
    strict = DependencyManager(InMemoryEdgeStore(), tasks)
    with pytest.raises(CrossProjectDependencyError):
        strict.add_dependency("A", "X")

    config = ProjectConfig(start_date=date(2026, 3, 2), allow_cross_project=True)
    relaxed = DependencyManager(InMemoryEdgeStore(), tasks, config)
    relaxed.add_dependency("A", "X")
    with pytest.raises(CyclicDependencyError):
        relaxed.add_dependency("X", "A")


def test_cycle_through_other_project_caught_after_opt_out():
    tasks = {**_tasks("A", "B"), **_tasks("X", "Y", project="garden")}
    edges = InMemoryEdgeStore()
    config = ProjectConfig(start_date=date(2026, 3, 2), allow_cross_project=True)
    relaxed = DependencyManager(edges, tasks, config)
    relaxed.add_dependency("B", "X")
    relaxed.add_dependency("X", "Y")
    relaxed.add_dependency("Y", "A")

    # Cross-project links switched off again; the stored chain still counts.
    strict = DependencyManager(edges, tasks, ProjectConfig(start_date=date(2026, 3, 2)))
    with pytest.raises(CyclicDependencyError) as exc:
        strict.add_dependency("A", "B")
    assert exc.value.path == ["B", "X", "Y", "A"]
    assert edges.find("A", "B") is None


def test_ensure_dependency_returns_existing(manager):
    first = manager.add_dependency("A", "B", lag_days=2)
    again = manager.ensure_dependency("A", "B", DependencyType.START_TO_START, 5)
    assert again.id == first.id
    assert again.lag_days == 2
    assert len(manager.store.all()) == 1


def test_update_and_remove(manager):
    e = manager.add_dependency("A", "B")
    manager.update_dependency(e.id, type=DependencyType.START_TO_START, lag_days=-2)
    assert manager.dependencies_for("B").predecessors[0].lag_days == -2

    manager.remove_dependency(e.id)
    assert manager.dependencies_for("B").predecessors == []
    with pytest.raises(EdgeNotFoundError):
        manager.remove_dependency(e.id)


def test_remove_task_cascades(manager):
    manager.add_dependency("A", "B")
    manager.add_dependency("B", "C")
    manager.add_dependency("C", "D")
    assert manager.remove_task("B") == 2
    assert [e.pair for e in manager.project_dependencies("house")] == [("C", "D")]


def test_available_links(manager):
    manager.add_dependency("A", "B")
    manager.add_dependency("C", "A")
    assert [t.id for t in manager.available_links("A")] == ["D"]
    assert [t.id for t in manager.available_links("D")] == ["A", "B", "C"]


def test_constraints_from_dated_predecessors():
    tasks = {
        "A": Task("A", "Design", planned_start="2026-03-02", planned_finish="2026-03-06"),
        "B": Task("B", "Review", planned_start="2026-03-03", planned_finish="2026-03-04"),
        "C": Task("C", "Build", planned_start="2026-03-06", planned_finish="2026-03-20"),
        "D": Task("D", "Undated"),
    }
    manager = DependencyManager(InMemoryEdgeStore(), tasks)
    fs = manager.add_dependency("A", "C", DependencyType.FINISH_TO_START, 2)
    manager.add_dependency("B", "C", DependencyType.FINISH_TO_FINISH, 0)
    manager.add_dependency("D", "C")

    found = {c.edge_id: c for c in manager.constraints_for("C")}
    assert len(found) == 2
    assert found[fs.id].earliest == date(2026, 3, 8)
    assert manager.earliest_bounds_for("C") == (date(2026, 3, 8), date(2026, 3, 4))

    # C is planned to start on the 6th, before A's finish + 2 days.
    violated = manager.violated_constraints("default")
    assert [c.edge_id for c in violated] == [fs.id]


def test_concurrent_opposite_inserts_never_both_succeed():
    for _ in range(50):
        manager = DependencyManager(InMemoryEdgeStore(), _tasks("A", "B"))
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt(pred, succ):
            barrier.wait()
            try:
                manager.add_dependency(pred, succ)
                outcomes.append("ok")
            except (CyclicDependencyError, DuplicateEdgeError) as e:
                outcomes.append(type_name(e))

        threads = [
            threading.Thread(target=attempt, args=("A", "B")),
            threading.Thread(target=attempt, args=("B", "A")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["cyclic_dependency", "ok"]
        assert len(manager.store.all()) == 1


def test_project_day_counts_from_start_date():
    config = ProjectConfig(start_date=date(2026, 3, 2))
    manager = DependencyManager(InMemoryEdgeStore(), _tasks("A"), config)
    assert manager.project_day(date(2026, 3, 2)) == 0
    assert manager.project_day(date(2026, 3, 8)) == 6
    assert manager.project_day(date(2026, 2, 27)) == -3

    assert DependencyManager(InMemoryEdgeStore(), _tasks("A")).project_day(date(2026, 3, 8)) is None


def test_concurrent_opposite_inserts_on_shared_file(tmp_path):
    path = tmp_path / "taskdeps.json"
    tasks = _tasks("A", "B")
    for _ in range(20):
        path.unlink(missing_ok=True)
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt(pred, succ):
            # Each thread opens its own store on the same file.
            manager = DependencyManager(JsonEdgeStore(path), tasks)
            barrier.wait()
            try:
                manager.add_dependency(pred, succ)
                outcomes.append("ok")
            except (CyclicDependencyError, DuplicateEdgeError) as e:
                outcomes.append(type_name(e))

        threads = [
            threading.Thread(target=attempt, args=("A", "B")),
            threading.Thread(target=attempt, args=("B", "A")),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["cyclic_dependency", "ok"]
        assert len(JsonEdgeStore(path).all()) == 1
