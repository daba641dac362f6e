"""Edge stores: in-memory and JSON-file backed.

Every mutation runs inside ``_edit()``, which holds the store's lock across
read, check and write. ``insert_if_acyclic_and_unique`` relies on that to
make the cycle check and the insert a single atomic step.
"""

from __future__ import annotations

import dataclasses
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from taskdeps.errors import CyclicDependencyError, DuplicateEdgeError, EdgeNotFoundError
from taskdeps.graph import find_cycle_path
from taskdeps.models import DependencyEdge, DependencyType, TaskDependencies
from taskdeps.persistence import DEFAULT_DB_FILE, Store


class EdgeStore(ABC):
    """Holder of DependencyEdge records keyed by edge id."""

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock or threading.RLock()

    @abstractmethod
    def _read(self) -> dict[str, DependencyEdge]:
        """Return the current edges. Called with the lock held."""

    @abstractmethod
    def _write(self, edges: dict[str, DependencyEdge]) -> None:
        """Replace the stored edges. Called with the lock held."""

    @contextmanager
    def _edit(self) -> Iterator[dict[str, DependencyEdge]]:
        with self._lock:
            edges = self._read()
            yield edges
            self._write(edges)

    def _snapshot(self) -> list[DependencyEdge]:
        with self._lock:
            return list(self._read().values())

    # -- reads ---------------------------------------------------------------

    def all(self) -> list[DependencyEdge]:
        return self._snapshot()

    def get(self, edge_id: str) -> DependencyEdge:
        with self._lock:
            edges = self._read()
            if edge_id not in edges:
                raise EdgeNotFoundError(edge_id)
            return edges[edge_id]

    def find(self, predecessor_id: str, successor_id: str) -> DependencyEdge | None:
        """Return the edge for the ordered pair, if any."""
        return _find_pair(self._snapshot(), predecessor_id, successor_id)

    def list_by_task(self, task_id: str) -> TaskDependencies:
        """Edges where *task_id* is the successor (predecessors) and the predecessor (successors)."""
        result = TaskDependencies()
        for edge in self._snapshot():
            if edge.successor_id == task_id:
                result.predecessors.append(edge)
            if edge.predecessor_id == task_id:
                result.successors.append(edge)
        return result

    def list_by_project(self, task_ids: Iterable[str]) -> list[DependencyEdge]:
        """Every edge with at least one endpoint in *task_ids*."""
        scope = set(task_ids)
        return _in_scope(self._snapshot(), scope)

    # -- writes --------------------------------------------------------------

    def insert(self, edge: DependencyEdge) -> DependencyEdge:
        """Store *edge*. Raises DuplicateEdgeError if the ordered pair exists."""
        with self._edit() as edges:
            _reject_duplicate(edges.values(), edge)
            edges[edge.id] = edge
        return edge

    def insert_if_acyclic_and_unique(self, edge: DependencyEdge) -> DependencyEdge:
        """Check uniqueness and acyclicity, then store *edge*, all under one lock.

        The cycle check walks every stored edge, whatever project it belongs to.
        """
        with self._edit() as edges:
            _reject_duplicate(edges.values(), edge)
            path = find_cycle_path(edge.predecessor_id, edge.successor_id, edges.values())
            if path is not None:
                raise CyclicDependencyError(edge.predecessor_id, edge.successor_id, path)
            edges[edge.id] = edge
        return edge

    def update(
        self,
        edge_id: str,
        type: DependencyType | None = None,
        lag_days: int | None = None,
    ) -> DependencyEdge:
        """Change the type and/or lag of an edge. Endpoints never change.

        Both values are validated before either is applied.
        """
        with self._edit() as edges:
            if edge_id not in edges:
                raise EdgeNotFoundError(edge_id)
            edge = edges[edge_id]
            new_type = edge.type if type is None else DependencyType(type)
            new_lag = edge.lag_days if lag_days is None else int(lag_days)
            edge = edges[edge_id] = dataclasses.replace(edge, type=new_type, lag_days=new_lag)
        return dataclasses.replace(edge)

    def delete_by_id(self, edge_id: str) -> None:
        """Remove an edge. Deleting an unknown (or already deleted) id raises EdgeNotFoundError."""
        with self._edit() as edges:
            if edge_id not in edges:
                raise EdgeNotFoundError(edge_id)
            del edges[edge_id]

    def delete_by_task(self, task_id: str) -> int:
        """Remove every edge touching *task_id*; returns how many were removed."""
        with self._edit() as edges:
            doomed = [
                eid for eid, e in edges.items()
                if task_id in (e.predecessor_id, e.successor_id)
            ]
            for eid in doomed:
                del edges[eid]
        return len(doomed)


class InMemoryEdgeStore(EdgeStore):
    """Edges kept in a dict; suitable for tests and embedding."""

    def __init__(self, edges: Iterable[DependencyEdge] = ()) -> None:
        super().__init__()
        self._edges: dict[str, DependencyEdge] = {e.id: dataclasses.replace(e) for e in edges}

    def _read(self) -> dict[str, DependencyEdge]:
        # Copies, so a failed edit never touches stored edges and callers
        # cannot mutate them in place.
        return {eid: dataclasses.replace(e) for eid, e in self._edges.items()}

    def _write(self, edges: dict[str, DependencyEdge]) -> None:
        self._edges = {eid: dataclasses.replace(e) for eid, e in edges.items()}


_file_locks: dict[Path, threading.RLock] = {}
_file_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = path.resolve()
    with _file_locks_guard:
        if key not in _file_locks:
            _file_locks[key] = threading.RLock()
        return _file_locks[key]


class JsonEdgeStore(EdgeStore):
    """Edges kept in the ``dependencies`` section of the project database file.

    Stores opened on the same path share one lock, so writers in this
    process are serialized per file.
    """

    def __init__(self, store: Store | str | Path = DEFAULT_DB_FILE) -> None:
        self.store = store if isinstance(store, Store) else Store(store)
        super().__init__(lock=_lock_for(self.store.db_path))

    def _read(self) -> dict[str, DependencyEdge]:
        return self.store.load().edges

    def _write(self, edges: dict[str, DependencyEdge]) -> None:
        data = self.store.load()
        data.edges = edges
        self.store.save(data)


def _find_pair(edges: Iterable[DependencyEdge], predecessor_id: str, successor_id: str) -> DependencyEdge | None:
    for e in edges:
        if e.predecessor_id == predecessor_id and e.successor_id == successor_id:
            return e
    return None


def _reject_duplicate(edges: Iterable[DependencyEdge], edge: DependencyEdge) -> None:
    existing = _find_pair(edges, edge.predecessor_id, edge.successor_id)
    if existing is not None:
        raise DuplicateEdgeError(edge.predecessor_id, edge.successor_id, existing.id)


def _in_scope(edges: Iterable[DependencyEdge], scope: set[str]) -> list[DependencyEdge]:
    return [e for e in edges if e.predecessor_id in scope or e.successor_id in scope]
