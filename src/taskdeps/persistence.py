"""JSON file persistence for project config, tasks and dependencies."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from taskdeps.models import DependencyEdge, ProjectConfig, Task

DEFAULT_DB_FILE = "taskdeps.json"


@dataclass
class ProjectData:
    config: ProjectConfig | None = None
    tasks: dict[str, Task] = field(default_factory=dict)
    edges: dict[str, DependencyEdge] = field(default_factory=dict)


class Store:
    """Reads and writes the project database (JSON file)."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_FILE):
        self.db_path = Path(db_path)

    def load(self) -> ProjectData:
        if not self.db_path.exists():
            return ProjectData()

        raw = json.loads(self.db_path.read_text())

        config = None
        if "config" in raw:
            config = ProjectConfig.from_dict(raw["config"])

        tasks = {tid: Task.from_dict(tid, tdata) for tid, tdata in raw.get("tasks", {}).items()}
        edges = {
            eid: DependencyEdge.from_dict(eid, edata)
            for eid, edata in raw.get("dependencies", {}).items()
        }
        return ProjectData(config=config, tasks=tasks, edges=edges)

    def save(self, data: ProjectData) -> None:
        """Persist config, tasks and dependencies to disk."""
        raw: dict = {}
        if data.config is not None:
            raw["config"] = data.config.to_dict()
        raw["tasks"] = {tid: t.to_dict() for tid, t in data.tasks.items()}
        raw["dependencies"] = {eid: e.to_dict() for eid, e in data.edges.items()}
        self.db_path.write_text(json.dumps(raw, indent=4))

    def generate_id(self, tasks: dict[str, Task]) -> str:
        """Generate the next T-N id."""
        existing = [int(k.split("-")[1]) for k in tasks if k.startswith("T-") and k[2:].isdigit()]
        next_num = max(existing, default=0) + 1
        return f"T-{next_num}"
