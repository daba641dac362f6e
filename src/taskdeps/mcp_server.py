"""MCP server for taskdeps: exposes dependency tools to AI assistants."""

from __future__ import annotations

import json
from datetime import date

from mcp.server.fastmcp import FastMCP

from taskdeps.errors import DependencyError
from taskdeps.manager import DependencyManager
from taskdeps.models import DependencyEdge, DependencyType, Task
from taskdeps.persistence import Store
from taskdeps.store import JsonEdgeStore

mcp = FastMCP(
    "taskdeps",
    instructions="""\
taskdeps manages dependencies between project tasks. Each dependency links a \
predecessor task to a successor task with a type and a lag in whole days.

Dependency types:
- **FS** Finish-to-Start: the successor starts after the predecessor finishes (most common).
- **SS** Start-to-Start: the successor starts when the predecessor starts.
- **FF** Finish-to-Finish: the successor finishes when the predecessor finishes.
- **SF** Start-to-Finish: the successor finishes when the predecessor starts.

Lag is added to the reference date. A negative lag is a lead: the successor may \
overlap the predecessor by that many days.

Rules enforced on every add_dependency call:
- Both tasks must exist (task IDs look like "T-5").
- A task cannot depend on itself, and no dependency may close a cycle. The error \
message shows the existing chain that would become circular.
- Only one dependency per ordered (predecessor, successor) pair. To change its type \
or lag use update_dependency; to change its endpoints remove it and add a new one.
- Unless the project allows it, both tasks must belong to the same project.

Use get_constraints to see the earliest start/finish a task's predecessors impose.\
""",
)


def _get_store() -> Store:
    return Store()


def _manager(store: Store) -> DependencyManager:
    data = store.load()
    return DependencyManager(JsonEdgeStore(store), data.tasks, data.config)


def _edge_to_dict(e: DependencyEdge) -> dict:
    return {
        "id": e.id,
        "predecessor_id": e.predecessor_id,
        "successor_id": e.successor_id,
        "type": e.type.value,
        "lag_days": e.lag_days,
        "created_at": e.created_at,
    }


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def add_task(
    name: str,
    project: str = "default",
    planned_start: str | None = None,
    planned_finish: str | None = None,
    notes: str | None = None,
) -> str:
    """Add a task that dependencies can reference.

    Args:
        name: Task name/title
        project: Project the task belongs to
        planned_start: Planned start date (YYYY-MM-DD)
        planned_finish: Planned finish date (YYYY-MM-DD)
        notes: Markdown notes for the task
    """
    for value in (planned_start, planned_finish):
        if value is not None:
            try:
                date.fromisoformat(value)
            except ValueError:
                return f"Error: '{value}' is not a YYYY-MM-DD date."

    store = _get_store()
    data = store.load()
    tid = store.generate_id(data.tasks)
    data.tasks[tid] = Task(
        id=tid,
        name=name,
        project=project,
        planned_start=planned_start,
        planned_finish=planned_finish,
        notes=notes,
    )
    store.save(data)
    return f"Added '{name}' as {tid}"


@mcp.tool()
def add_dependency(
    predecessor_id: str,
    successor_id: str,
    dependency_type: str = "FS",
    lag_days: int = 0,
) -> str:
    """Make a task depend on another.

    Args:
        predecessor_id: Task that comes first (e.g. "T-1")
        successor_id: Task that depends on it (e.g. "T-2")
        dependency_type: "FS", "SS", "FF" or "SF"
        lag_days: Offset in days; negative for a lead
    """
    try:
        dep_type = DependencyType(dependency_type.upper())
    except ValueError:
        valid = ", ".join(t.value for t in DependencyType)
        return f"Error: invalid dependency type '{dependency_type}'. Valid: {valid}"

    try:
        edge = _manager(_get_store()).add_dependency(predecessor_id, successor_id, dep_type, lag_days)
    except DependencyError as e:
        return f"Error: {e.message}"
    return json.dumps(_edge_to_dict(edge), indent=2)


@mcp.tool()
def update_dependency(
    dependency_id: str,
    dependency_type: str | None = None,
    lag_days: int | None = None,
) -> str:
    """Change the type and/or lag of a dependency. Endpoints cannot be changed.

    Args:
        dependency_id: Dependency id returned by add_dependency
        dependency_type: New type ("FS", "SS", "FF" or "SF")
        lag_days: New lag in days
    """
    dep_type = None
    if dependency_type is not None:
        try:
            dep_type = DependencyType(dependency_type.upper())
        except ValueError:
            valid = ", ".join(t.value for t in DependencyType)
            return f"Error: invalid dependency type '{dependency_type}'. Valid: {valid}"

    try:
        edge = _manager(_get_store()).update_dependency(dependency_id, type=dep_type, lag_days=lag_days)
    except DependencyError as e:
        return f"Error: {e.message}"
    return json.dumps(_edge_to_dict(edge), indent=2)


@mcp.tool()
def remove_dependency(dependency_id: str) -> str:
    """Delete a dependency.

    Args:
        dependency_id: Dependency id returned by add_dependency
    """
    try:
        _manager(_get_store()).remove_dependency(dependency_id)
    except DependencyError as e:
        return f"Error: {e.message}"
    return f"Removed dependency {dependency_id}."


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def get_task_dependencies(task_id: str) -> str:
    """Get the predecessors and successors of a task.

    Args:
        task_id: Task ID (e.g. "T-5")
    """
    manager = _manager(_get_store())
    if task_id not in manager.tasks:
        return f"Error: task {task_id} not found."

    result = manager.dependencies_for(task_id)
    return json.dumps(
        {
            "task_id": task_id,
            "predecessors": [_edge_to_dict(e) for e in result.predecessors],
            "successors": [_edge_to_dict(e) for e in result.successors],
            "can_link": [t.id for t in manager.available_links(task_id)],
        },
        indent=2,
    )


@mcp.tool()
def get_project_dependencies(project: str = "default") -> str:
    """Get every dependency touching a project's tasks.

    Args:
        project: Project name
    """
    manager = _manager(_get_store())
    edges = manager.project_dependencies(project)
    if not edges:
        return f"No dependencies in project '{project}'."
    violated = {c.edge_id for c in manager.violated_constraints(project)}
    result = []
    for e in edges:
        d = _edge_to_dict(e)
        d["violated"] = e.id in violated
        result.append(d)
    return json.dumps(result, indent=2)


@mcp.tool()
def get_constraints(task_id: str) -> str:
    """Get the earliest start/finish that a task's dated predecessors impose.

    "day" counts from the project start date (day 0), or is null before init.

    Args:
        task_id: Task ID (e.g. "T-5")
    """
    manager = _manager(_get_store())
    try:
        found = manager.constraints_for(task_id)
    except DependencyError as e:
        return f"Error: {e.message}"

    earliest_start, earliest_finish = manager.earliest_bounds_for(task_id)
    return json.dumps(
        {
            "task_id": task_id,
            "constraints": [
                {
                    "dependency_id": c.edge_id,
                    "field": c.bound.value,
                    "earliest": str(c.earliest),
                    "day": manager.project_day(c.earliest),
                    "rule": c.describe(),
                }
                for c in found
            ],
            "earliest_start": str(earliest_start) if earliest_start else None,
            "earliest_finish": str(earliest_finish) if earliest_finish else None,
        },
        indent=2,
    )


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
