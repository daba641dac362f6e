"""Dependency operations validated against the task registry."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date

import structlog

from taskdeps.errors import (
    CrossProjectDependencyError,
    CyclicDependencyError,
    DependencyError,
    DuplicateEdgeError,
    UnknownTaskError,
)
from taskdeps.models import DependencyEdge, DependencyType, ProjectConfig, Task, TaskDependencies
from taskdeps.propagator import Constraint, constraint_for, date_to_day, earliest_bounds
from taskdeps.store import EdgeStore

log = structlog.get_logger()


class DependencyManager:
    """Adds, edits and queries dependencies between known tasks.

    *tasks* maps task id to Task and is the only source of truth for which
    ids exist and which project each belongs to.
    """

    def __init__(
        self,
        store: EdgeStore,
        tasks: Mapping[str, Task],
        config: ProjectConfig | None = None,
    ) -> None:
        self.store = store
        self.tasks = tasks
        self.allow_cross_project = config.allow_cross_project if config else False
        self.config = config

    def _require_task(self, task_id: str) -> Task:
        if task_id not in self.tasks:
            raise UnknownTaskError(task_id)
        return self.tasks[task_id]

    def _project_task_ids(self, project: str) -> set[str]:
        return {tid for tid, t in self.tasks.items() if t.project == project}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_dependency(
        self,
        predecessor_id: str,
        successor_id: str,
        type: DependencyType = DependencyType.FINISH_TO_START,
        lag_days: int = 0,
    ) -> DependencyEdge:
        """Create ``predecessor -> successor`` unless it is unknown, duplicate or cyclic."""
        try:
            pred = self._require_task(predecessor_id)
            succ = self._require_task(successor_id)
            if predecessor_id == successor_id:
                raise CyclicDependencyError(predecessor_id, successor_id, [predecessor_id])
            if pred.project != succ.project and not self.allow_cross_project:
                raise CrossProjectDependencyError(
                    predecessor_id, pred.project, successor_id, succ.project
                )

            edge = DependencyEdge(
                predecessor_id=predecessor_id,
                successor_id=successor_id,
                type=DependencyType(type),
                lag_days=lag_days,
            )
            self.store.insert_if_acyclic_and_unique(edge)
        except DependencyError as e:
            log.info(
                "dependency_rejected",
                reason=type_name(e),
                predecessor=predecessor_id,
                successor=successor_id,
                path=e.details.get("path"),
            )
            raise

        log.info(
            "dependency_added",
            edge_id=edge.id,
            predecessor=predecessor_id,
            successor=successor_id,
            type=edge.type.value,
            lag_days=edge.lag_days,
        )
        return edge

    def ensure_dependency(
        self,
        predecessor_id: str,
        successor_id: str,
        type: DependencyType = DependencyType.FINISH_TO_START,
        lag_days: int = 0,
    ) -> DependencyEdge:
        """Like add_dependency, but an existing edge for the pair is returned as-is.

        Use this when retrying a write whose outcome is unknown.
        """
        existing = self.store.find(predecessor_id, successor_id)
        if existing is not None:
            return existing
        try:
            return self.add_dependency(predecessor_id, successor_id, type, lag_days)
        except DuplicateEdgeError:
            return self.store.find(predecessor_id, successor_id)

    def update_dependency(
        self,
        edge_id: str,
        type: DependencyType | None = None,
        lag_days: int | None = None,
    ) -> DependencyEdge:
        edge = self.store.update(edge_id, type=type, lag_days=lag_days)
        log.info("dependency_updated", edge_id=edge_id, type=edge.type.value, lag_days=edge.lag_days)
        return edge

    def remove_dependency(self, edge_id: str) -> None:
        try:
            self.store.delete_by_id(edge_id)
        except DependencyError:
            log.info("dependency_remove_missing", edge_id=edge_id)
            raise
        log.info("dependency_removed", edge_id=edge_id)

    def remove_task(self, task_id: str) -> int:
        """Drop every dependency touching a task that is being deleted."""
        removed = self.store.delete_by_task(task_id)
        if removed:
            log.info("task_dependencies_removed", task_id=task_id, count=removed)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def dependencies_for(self, task_id: str) -> TaskDependencies:
        return self.store.list_by_task(task_id)

    def project_dependencies(self, project: str) -> list[DependencyEdge]:
        return self.store.list_by_project(self._project_task_ids(project))

    def available_links(self, task_id: str) -> list[Task]:
        """Tasks that are not yet linked to *task_id* in either direction."""
        task = self._require_task(task_id)
        deps = self.store.list_by_task(task_id)
        linked = {e.predecessor_id for e in deps.predecessors}
        linked |= {e.successor_id for e in deps.successors}
        return [
            t for tid, t in self.tasks.items()
            if tid != task_id
            and tid not in linked
            and (self.allow_cross_project or t.project == task.project)
        ]

    def constraints_for(self, task_id: str) -> list[Constraint]:
        """Constraints on *task_id* from predecessors that have planned dates."""
        self._require_task(task_id)
        constraints: list[Constraint] = []
        for edge in self.store.list_by_task(task_id).predecessors:
            pred = self.tasks.get(edge.predecessor_id)
            if pred is None or not pred.has_dates:
                continue
            constraints.append(
                constraint_for(
                    edge,
                    date.fromisoformat(pred.planned_start),
                    date.fromisoformat(pred.planned_finish),
                )
            )
        return constraints

    def earliest_bounds_for(self, task_id: str) -> tuple[date | None, date | None]:
        return earliest_bounds(self.constraints_for(task_id))

    def project_day(self, d: date) -> int | None:
        """Day number of *d* counted from the project start (day 0), if configured."""
        if self.config is None:
            return None
        return date_to_day(self.config.start_date, d)

    def violated_constraints(self, project: str) -> list[Constraint]:
        """Constraints in *project* that the successors' planned dates break."""
        violated: list[Constraint] = []
        for tid in sorted(self._project_task_ids(project)):
            task = self.tasks[tid]
            if not task.has_dates:
                continue
            start = date.fromisoformat(task.planned_start)
            finish = date.fromisoformat(task.planned_finish)
            violated.extend(c for c in self.constraints_for(tid) if not c.is_satisfied(start, finish))
        return violated


def type_name(error: DependencyError) -> str:
    """Short reason code for an error, e.g. ``cyclic_dependency``."""
    name = type(error).__name__.removesuffix("Error")
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name).lstrip("_")
