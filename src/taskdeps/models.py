"""Task, dependency edge and project config definitions."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime


class DependencyType(enum.StrEnum):
    FINISH_TO_START = "FS"
    START_TO_START = "SS"
    FINISH_TO_FINISH = "FF"
    START_TO_FINISH = "SF"

    @property
    def label(self) -> str:
        return _TYPE_INFO[self][0]

    @property
    def description(self) -> str:
        return _TYPE_INFO[self][1]


_TYPE_INFO = {
    DependencyType.FINISH_TO_START: (
        "Finish-to-Start (FS)",
        "The successor starts after the predecessor finishes",
    ),
    DependencyType.START_TO_START: (
        "Start-to-Start (SS)",
        "The successor starts when the predecessor starts",
    ),
    DependencyType.FINISH_TO_FINISH: (
        "Finish-to-Finish (FF)",
        "The successor finishes when the predecessor finishes",
    ),
    DependencyType.START_TO_FINISH: (
        "Start-to-Finish (SF)",
        "The successor finishes when the predecessor starts",
    ),
}


@dataclass
class ProjectConfig:
    """Project-level settings stored alongside tasks and dependencies."""

    start_date: date
    allow_cross_project: bool = False

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "allow_cross_project": self.allow_cross_project,
        }

    @classmethod
    def from_dict(cls, d: dict) -> ProjectConfig:
        return cls(
            start_date=date.fromisoformat(d["start_date"]),
            allow_cross_project=d.get("allow_cross_project", False),
        )


@dataclass
class Task:
    """A task that dependency edges can point at."""

    id: str
    name: str
    project: str = "default"
    planned_start: str | None = None  # ISO date
    planned_finish: str | None = None  # ISO date
    notes: str | None = None

    @property
    def has_dates(self) -> bool:
        return self.planned_start is not None and self.planned_finish is not None

    def to_dict(self) -> dict:
        d = {
            "name": self.name,
            "project": self.project,
            "planned_start": self.planned_start,
            "planned_finish": self.planned_finish,
        }
        if self.notes is not None:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, task_id: str, d: dict) -> Task:
        return cls(
            id=task_id,
            name=d["name"],
            project=d.get("project", "default"),
            planned_start=d.get("planned_start"),
            planned_finish=d.get("planned_finish"),
            notes=d.get("notes"),
        )


def _new_edge_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass
class DependencyEdge:
    """A typed predecessor -> successor link between two tasks.

    Only ``type`` and ``lag_days`` may change after creation. A negative lag
    is a lead: the successor may overlap the reference event by that many
    days.
    """

    predecessor_id: str
    successor_id: str
    type: DependencyType = DependencyType.FINISH_TO_START
    lag_days: int = 0
    id: str = field(default_factory=_new_edge_id)
    created_at: str = field(default_factory=_now)

    def __post_init__(self) -> None:
        if self.predecessor_id == self.successor_id:
            raise ValueError(f"Task {self.predecessor_id} cannot depend on itself")
        self.type = DependencyType(self.type)
        self.lag_days = int(self.lag_days)

    @property
    def pair(self) -> tuple[str, str]:
        return self.predecessor_id, self.successor_id

    def to_dict(self) -> dict:
        return {
            "predecessor_id": self.predecessor_id,
            "successor_id": self.successor_id,
            "type": self.type.value,
            "lag_days": self.lag_days,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, edge_id: str, d: dict) -> DependencyEdge:
        return cls(
            id=edge_id,
            predecessor_id=d["predecessor_id"],
            successor_id=d["successor_id"],
            type=DependencyType(d.get("type", "FS")),
            lag_days=d.get("lag_days", 0),
            created_at=d.get("created_at") or _now(),
        )


@dataclass
class TaskDependencies:
    """Edges touching a single task, split by direction."""

    predecessors: list[DependencyEdge] = field(default_factory=list)
    successors: list[DependencyEdge] = field(default_factory=list)
