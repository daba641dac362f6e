"""Exceptions raised by dependency operations.

All of these are expected, user-facing conditions. Surfaces (CLI, MCP) catch
``DependencyError`` and show ``message``.
"""


class DependencyError(Exception):
    """Base exception for all dependency graph errors."""

    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnknownTaskError(DependencyError):
    """Raised when an endpoint id does not match a known task."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found.", details={"task_id": task_id})
        self.task_id = task_id


class DuplicateEdgeError(DependencyError):
    """Raised when the ordered predecessor/successor pair already has an edge."""

    def __init__(self, predecessor_id: str, successor_id: str, existing_id: str) -> None:
        super().__init__(
            f"{successor_id} already depends on {predecessor_id} "
            f"(dependency {existing_id}); edit it instead.",
            details={
                "predecessor_id": predecessor_id,
                "successor_id": successor_id,
                "existing_id": existing_id,
            },
        )
        self.existing_id = existing_id


class CyclicDependencyError(DependencyError):
    """Raised when an edge would close a cycle.

    ``path`` is the existing chain from the successor back to the
    predecessor, or just ``[task_id]`` for a self-dependency.
    """

    def __init__(self, predecessor_id: str, successor_id: str, path: list[str]) -> None:
        if predecessor_id == successor_id:
            message = f"Task {predecessor_id} cannot depend on itself."
        else:
            chain = " -> ".join(path)
            message = (
                f"{successor_id} cannot depend on {predecessor_id}: "
                f"it would create a cycle ({chain} -> {successor_id})."
            )
        super().__init__(
            message,
            details={
                "predecessor_id": predecessor_id,
                "successor_id": successor_id,
                "path": path,
            },
        )
        self.path = path


class EdgeNotFoundError(DependencyError):
    """Raised when a dependency id does not exist."""

    def __init__(self, edge_id: str) -> None:
        super().__init__(f"Dependency {edge_id} not found.", details={"edge_id": edge_id})
        self.edge_id = edge_id


class CrossProjectDependencyError(DependencyError):
    """Raised when endpoints belong to different projects and that is not allowed."""

    def __init__(self, predecessor_id: str, predecessor_project: str, successor_id: str, successor_project: str) -> None:
        super().__init__(
            f"{predecessor_id} ({predecessor_project}) and {successor_id} "
            f"({successor_project}) are in different projects.",
            details={
                "predecessor_id": predecessor_id,
                "successor_id": successor_id,
                "projects": [predecessor_project, successor_project],
            },
        )
