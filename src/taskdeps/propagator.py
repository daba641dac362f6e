"""Per-edge scheduling constraints derived from dependency type and lag.

Each edge yields one inequality on its successor. Resolving all of them into
a consistent schedule is left to the consumer (a Gantt layout engine).
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TypeVar

from taskdeps.models import DependencyEdge, DependencyType

Day = TypeVar("Day", int, date)


class Bound(enum.StrEnum):
    START = "start"
    FINISH = "finish"


# type -> (predecessor event used as reference, successor field constrained)
_RULES: dict[DependencyType, tuple[Bound, Bound]] = {
    DependencyType.FINISH_TO_START: (Bound.FINISH, Bound.START),
    DependencyType.START_TO_START: (Bound.START, Bound.START),
    DependencyType.FINISH_TO_FINISH: (Bound.FINISH, Bound.FINISH),
    DependencyType.START_TO_FINISH: (Bound.START, Bound.FINISH),
}


def shift(day: Day, lag_days: int) -> Day:
    """Offset a day number or a date by a whole number of days."""
    if isinstance(day, date):
        return day + timedelta(days=lag_days)
    return day + lag_days


def date_to_day(start_date: date, d: date) -> int:
    """Project day number of *d*, where start_date is day 0."""
    return (d - start_date).days


@dataclass(frozen=True)
class Constraint:
    """``successor.<bound> >= earliest`` imposed by one edge."""

    edge_id: str
    successor_id: str
    bound: Bound
    earliest: int | date

    def is_satisfied(self, succ_start: Day, succ_finish: Day) -> bool:
        value = succ_start if self.bound == Bound.START else succ_finish
        return value >= self.earliest

    def describe(self) -> str:
        return f"{self.successor_id}.{self.bound.value} >= {self.earliest}"


def constraint_for(edge: DependencyEdge, pred_start: Day, pred_finish: Day) -> Constraint:
    """Derive the successor constraint for *edge* from its predecessor's dates.

    A negative ``lag_days`` moves the bound earlier (a lead), allowing overlap.
    """
    reference, bound = _RULES[edge.type]
    anchor = pred_start if reference == Bound.START else pred_finish
    return Constraint(
        edge_id=edge.id,
        successor_id=edge.successor_id,
        bound=bound,
        earliest=shift(anchor, edge.lag_days),
    )


def earliest_bounds(constraints: Iterable[Constraint]) -> tuple[Day | None, Day | None]:
    """Tightest (earliest_start, earliest_finish) over constraints on one successor.

    A field nobody constrains comes back as ``None``.
    """
    start = None
    finish = None
    for c in constraints:
        if c.bound == Bound.START:
            start = c.earliest if start is None else max(start, c.earliest)
        else:
            finish = c.earliest if finish is None else max(finish, c.earliest)
    return start, finish
