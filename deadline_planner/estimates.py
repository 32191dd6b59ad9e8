"""
Hour estimates for work items that have no tasks yet.

The feasibility check needs a number for every item, including ones whose
milestones have not been generated. Any object with an ``estimate(item)``
method can be injected; ``BaseHoursEstimator`` is the default table.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

from .models import WorkItem

DEFAULT_BASE_HOURS: Dict[str, float] = {
    "math": 19.0,
    "physics": 18.0,
    "history": 15.0,
    "english": 12.0,
}

DEFAULT_PREFIX_HOURS: Tuple[Tuple[str, float], ...] = (("econ", 7.0),)

DEFAULT_FALLBACK_HOURS = 15.0


class BaseHoursEstimator:
    """Looks up raw (unbuffered) hours by item id, then by id prefix."""

    def __init__(
        self,
        base_hours: Optional[Mapping[str, float]] = None,
        prefix_hours: Optional[Sequence[Tuple[str, float]]] = None,
        fallback_hours: float = DEFAULT_FALLBACK_HOURS,
    ) -> None:
        self.base_hours = dict(DEFAULT_BASE_HOURS if base_hours is None else base_hours)
        self.prefix_hours = tuple(DEFAULT_PREFIX_HOURS if prefix_hours is None else prefix_hours)
        self.fallback_hours = float(fallback_hours)

    def estimate(self, item: WorkItem) -> float:
        for prefix, hours in self.prefix_hours:
            if item.id.startswith(prefix):
                return float(hours)
        return float(self.base_hours.get(item.id, self.fallback_hours))


class FlatEstimator:
    def __init__(self, hours: float) -> None:
        self.hours = float(hours)

    def estimate(self, item: WorkItem) -> float:
        return self.hours


DEFAULT_ESTIMATOR = BaseHoursEstimator()
