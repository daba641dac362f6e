"""Typer CLI for taskdeps."""

from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from taskdeps.errors import DependencyError
from taskdeps.graph import topological_order
from taskdeps.manager import DependencyManager
from taskdeps.models import DependencyEdge, DependencyType, ProjectConfig, Task
from taskdeps.persistence import ProjectData, Store
from taskdeps.propagator import Bound
from taskdeps.store import JsonEdgeStore

app = typer.Typer(
    name="taskdeps",
    help="Typed task dependencies (FS/SS/FF/SF) with lag and cycle checks.",
    no_args_is_help=True,
)
console = Console()


def _get_store() -> Store:
    return Store()


def _manager(store: Store, data: ProjectData) -> DependencyManager:
    return DependencyManager(JsonEdgeStore(store), data.tasks, data.config)


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and name."""
    try:
        data = Store().load()
    except (OSError, ValueError):
        return []

    q = incomplete.lower()
    return [
        f"{task.name} ({tid})"
        for tid, task in data.tasks.items()
        if q in tid.lower() or q in task.name.lower()
    ]


def _parse_task_id(task_id_arg: str) -> str:
    """Extract the ID if the autocompleted 'Name (ID)' format was used."""
    if "(" in task_id_arg and task_id_arg.endswith(")"):
        return task_id_arg.split("(")[-1].strip(")")
    return task_id_arg.strip()


def _resolve_edge_id(prefix: str, edges: list[DependencyEdge]) -> str:
    """Accept a unique prefix of a dependency id, as shown in tables."""
    matches = [e.id for e in edges if e.id.startswith(prefix.strip())]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        console.print(f"[red]Dependency id '{prefix}' is ambiguous ({len(matches)} matches).[/red]")
        raise typer.Exit(1)
    # Let the store report it as not found.
    return prefix


def _short(edge_id: str) -> str:
    return edge_id[:8]


def _fail(e: DependencyError) -> None:
    console.print(f"[red]{e.message}[/red]")
    raise typer.Exit(1)


def _task_label(tasks: dict[str, Task], task_id: str) -> str:
    t = tasks.get(task_id)
    return f"{task_id}  {t.name}" if t else f"{task_id}  [dim](unknown)[/dim]"


def _lag_str(lag_days: int) -> str:
    if lag_days == 0:
        return "0"
    return f"+{lag_days}d" if lag_days > 0 else f"{lag_days}d (lead)"


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log dependency events")] = False,
) -> None:
    logging.basicConfig(format="%(message)s", level=logging.INFO if verbose else logging.WARNING)


# ---------------------------------------------------------------------------
# Project and tasks
# ---------------------------------------------------------------------------


@app.command()
def init(
    start: Annotated[
        str,
        typer.Option(help="Project start date (YYYY-MM-DD)", prompt="Project start date (YYYY-MM-DD)"),
    ],
    allow_cross_project: Annotated[
        bool,
        typer.Option("--allow-cross-project/--no-cross-project", help="Allow links between tasks of different projects"),
    ] = False,
) -> None:
    """Initialize (or reinitialize) project configuration."""
    store = _get_store()
    data = store.load()
    data.config = ProjectConfig(
        start_date=date.fromisoformat(start),
        allow_cross_project=allow_cross_project,
    )
    store.save(data)
    console.print(f"[green]Project initialized. Start: {start}[/green]")


@app.command("add-task")
def add_task(
    name: str,
    project: Annotated[str, typer.Option("--project", "-p", help="Project the task belongs to")] = "default",
    start: Annotated[Optional[str], typer.Option(help="Planned start date (YYYY-MM-DD)")] = None,
    finish: Annotated[Optional[str], typer.Option(help="Planned finish date (YYYY-MM-DD)")] = None,
    notes: Annotated[Optional[str], typer.Option(help="Markdown notes for the task")] = None,
) -> None:
    """Add a task that dependencies can point at."""
    store = _get_store()
    data = store.load()
    for value in (start, finish):
        if value is not None:
            try:
                date.fromisoformat(value)
            except ValueError:
                console.print(f"[red]Invalid date '{value}'. Use YYYY-MM-DD.[/red]")
                raise typer.Exit(1)

    tid = store.generate_id(data.tasks)
    data.tasks[tid] = Task(
        id=tid,
        name=name,
        project=project,
        planned_start=start,
        planned_finish=finish,
        notes=notes,
    )
    store.save(data)
    console.print(f"[green]Added '{name}' as {tid}[/green]")


@app.command("tasks")
def list_tasks(
    project: Annotated[Optional[str], typer.Option("--project", "-p", help="Filter by project")] = None,
) -> None:
    """List tasks with their planned dates and link counts."""
    data = _get_store().load()
    tasks = list(data.tasks.values())
    if project:
        tasks = [t for t in tasks if t.project == project]
    if not tasks:
        console.print("No tasks found.")
        return

    table = Table(title="Tasks")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Project")
    table.add_column("Start")
    table.add_column("Finish")
    table.add_column("Preds", justify="right")
    table.add_column("Succs", justify="right")

    for t in tasks:
        preds = sum(1 for e in data.edges.values() if e.successor_id == t.id)
        succs = sum(1 for e in data.edges.values() if e.predecessor_id == t.id)
        table.add_row(
            t.id,
            t.name,
            t.project,
            t.planned_start or "-",
            t.planned_finish or "-",
            str(preds),
            str(succs),
        )
    console.print(table)


@app.command("delete-task")
def delete_task(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Delete a task and every dependency touching it."""
    task_id = _parse_task_id(task_id)
    store = _get_store()
    data = store.load()
    if task_id not in data.tasks:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)

    removed = _manager(store, data).remove_task(task_id)
    data = store.load()
    del data.tasks[task_id]
    store.save(data)
    console.print(f"[green]Deleted {task_id} ({removed} dependencies removed).[/green]")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


@app.command()
def link(
    predecessor: Annotated[str, typer.Argument(autocompletion=_complete_task_id, help="Task that comes first")],
    successor: Annotated[str, typer.Argument(autocompletion=_complete_task_id, help="Task that depends on it")],
    dep_type: Annotated[
        DependencyType,
        typer.Option("--type", "-t", case_sensitive=False, help="FS, SS, FF or SF"),
    ] = DependencyType.FINISH_TO_START,
    lag: Annotated[int, typer.Option("--lag", "-l", help="Lag in days (negative for lead)")] = 0,
) -> None:
    """Make SUCCESSOR depend on PREDECESSOR."""
    predecessor = _parse_task_id(predecessor)
    successor = _parse_task_id(successor)
    store = _get_store()
    data = store.load()
    try:
        edge = _manager(store, data).add_dependency(predecessor, successor, dep_type, lag)
    except DependencyError as e:
        _fail(e)
    console.print(
        f"[green]Linked {predecessor} -> {successor} ({edge.type.value}, lag {_lag_str(edge.lag_days)}) "
        f"as {_short(edge.id)}[/green]"
    )


@app.command()
def unlink(dep_id: Annotated[str, typer.Argument(help="Dependency id (or unique prefix)")]) -> None:
    """Delete a dependency by id."""
    store = _get_store()
    data = store.load()
    edge_id = _resolve_edge_id(dep_id, list(data.edges.values()))
    try:
        _manager(store, data).remove_dependency(edge_id)
    except DependencyError as e:
        _fail(e)
    console.print(f"[green]Removed dependency {_short(edge_id)}.[/green]")


@app.command("edit-link")
def edit_link(
    dep_id: Annotated[str, typer.Argument(help="Dependency id (or unique prefix)")],
    dep_type: Annotated[
        Optional[DependencyType],
        typer.Option("--type", "-t", case_sensitive=False, help="New type: FS, SS, FF or SF"),
    ] = None,
    lag: Annotated[Optional[int], typer.Option("--lag", "-l", help="New lag in days")] = None,
) -> None:
    """Change the type or lag of a dependency. Endpoints cannot be changed."""
    if dep_type is None and lag is None:
        console.print("[yellow]Nothing to change (use --type and/or --lag).[/yellow]")
        return
    store = _get_store()
    data = store.load()
    edge_id = _resolve_edge_id(dep_id, list(data.edges.values()))
    try:
        edge = _manager(store, data).update_dependency(edge_id, type=dep_type, lag_days=lag)
    except DependencyError as e:
        _fail(e)
    console.print(
        f"[green]Updated {_short(edge.id)}: {edge.predecessor_id} -> {edge.successor_id} "
        f"({edge.type.value}, lag {_lag_str(edge.lag_days)})[/green]"
    )


@app.command()
def deps(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    available: Annotated[bool, typer.Option("--available", "-a", help="Also list tasks that can still be linked")] = False,
) -> None:
    """Show the predecessors and successors of a task."""
    task_id = _parse_task_id(task_id)
    store = _get_store()
    data = store.load()
    if task_id not in data.tasks:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)

    manager = _manager(store, data)
    result = manager.dependencies_for(task_id)
    console.print(f"\n[bold]{task_id}[/bold]  {data.tasks[task_id].name}")

    for title, edges, other in (
        ("Predecessors", result.predecessors, lambda e: e.predecessor_id),
        ("Successors", result.successors, lambda e: e.successor_id),
    ):
        if not edges:
            console.print(f"  {title}: none")
            continue
        table = Table(title=title)
        table.add_column("Dep")
        table.add_column("Task")
        table.add_column("Type")
        table.add_column("Lag")
        for e in sorted(edges, key=other):
            table.add_row(_short(e.id), _task_label(data.tasks, other(e)), e.type.value, _lag_str(e.lag_days))
        console.print(table)

    if available:
        candidates = manager.available_links(task_id)
        console.print("\n  [dim]── Can be linked ──[/dim]")
        if not candidates:
            console.print("  none")
        for t in candidates:
            console.print(f"  {t.id}  {t.name}")
    console.print()


@app.command()
def graph(
    project: Annotated[str, typer.Option("--project", "-p", help="Project to show")] = "default",
) -> None:
    """List every dependency in a project, in dependency order."""
    store = _get_store()
    data = store.load()
    manager = _manager(store, data)
    edges = manager.project_dependencies(project)
    if not edges:
        console.print(f"No dependencies in project '{project}'.")
        return

    rank = {tid: i for i, tid in enumerate(topological_order(edges))}
    violated = {c.edge_id for c in manager.violated_constraints(project)}

    table = Table(title=f"Dependencies: {project}")
    table.add_column("Dep")
    table.add_column("Predecessor")
    table.add_column("Successor")
    table.add_column("Type")
    table.add_column("Lag")
    table.add_column("Flags")

    for e in sorted(edges, key=lambda e: (rank[e.predecessor_id], rank[e.successor_id])):
        flags = "VIOLATED" if e.id in violated else ""
        table.add_row(
            _short(e.id),
            _task_label(data.tasks, e.predecessor_id),
            _task_label(data.tasks, e.successor_id),
            e.type.value,
            _lag_str(e.lag_days),
            flags,
            style="bold red" if flags else None,
        )
    console.print(table)


@app.command()
def constraints(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Show the earliest start/finish each predecessor imposes on a task."""
    task_id = _parse_task_id(task_id)
    store = _get_store()
    data = store.load()
    if task_id not in data.tasks:
        console.print(f"[red]Task {task_id} not found.[/red]")
        raise typer.Exit(1)

    task = data.tasks[task_id]
    manager = _manager(store, data)
    found = manager.constraints_for(task_id)
    if not found:
        console.print(f"{task_id} has no dated predecessors.")
        return

    table = Table(title=f"Constraints on {task_id}  {task.name}")
    table.add_column("Dep")
    table.add_column("Field")
    table.add_column("Earliest")
    table.add_column("Day")
    table.add_column("Status")
    start = date.fromisoformat(task.planned_start) if task.planned_start else None
    finish = date.fromisoformat(task.planned_finish) if task.planned_finish else None
    for c in found:
        status = "-"
        if start is not None and finish is not None:
            status = "ok" if c.is_satisfied(start, finish) else "[bold red]violated[/bold red]"
        day = manager.project_day(c.earliest)
        table.add_row(
            _short(c.edge_id),
            c.bound.value,
            str(c.earliest),
            "-" if day is None else str(day),
            status,
        )
    console.print(table)

    earliest_start, earliest_finish = manager.earliest_bounds_for(task_id)
    if earliest_start is not None:
        console.print(f"  Earliest {Bound.START.value}:  {earliest_start}")
    if earliest_finish is not None:
        console.print(f"  Earliest {Bound.FINISH.value}: {earliest_finish}")


@app.command("types")
def list_types() -> None:
    """Describe the dependency types."""
    table = Table(title="Dependency types")
    table.add_column("Code")
    table.add_column("Name")
    table.add_column("Meaning")
    for t in DependencyType:
        table.add_row(t.value, t.label, t.description)
    console.print(table)


if __name__ == "__main__":
    app()
