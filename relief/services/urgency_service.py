"""Urgency scoring and the default effective-priority ranking."""

from __future__ import annotations

from datetime import datetime
from typing import Union

from relief.domain.models import Need, PriorityLevel


PRIORITY_WEIGHTS: dict[PriorityLevel, int] = {
    PriorityLevel.CRITICAL: 100,
    PriorityLevel.HIGH: 75,
    PriorityLevel.MEDIUM: 50,
    PriorityLevel.LOW: 25,
}
DEFAULT_PRIORITY_WEIGHT = 50


def priority_weight(priority: Union[PriorityLevel, str, None]) -> int:
    if isinstance(priority, PriorityLevel):
        return PRIORITY_WEIGHTS[priority]
    if isinstance(priority, str):
        try:
            return PRIORITY_WEIGHTS[PriorityLevel.parse(priority)]
        except ValueError:
            return DEFAULT_PRIORITY_WEIGHT
    return DEFAULT_PRIORITY_WEIGHT


def weighted_score(
    priority: Union[PriorityLevel, str, None],
    wait_minutes: float,
    distance_km: float,
) -> float:
    """Higher means more urgent; attached to routes for reporting only."""
    return priority_weight(priority) * 0.6 + wait_minutes * 0.3 - distance_km * 0.1


class PriorityRanker:
    """Orders needs by effective priority, escalating long-waiting needs.

    A need climbs one tier for every full ``escalation_minutes`` it has waited,
    never above Critical. An interval of zero disables escalation. Ties on the
    effective tier are broken FIFO by creation time, then by identifier, so the
    key is a strict total order.
    """

    def __init__(self, escalation_minutes: int = 0) -> None:
        if escalation_minutes < 0:
            raise ValueError("escalation_minutes must be >= 0")
        self._escalation_minutes = escalation_minutes

    def effective_level(self, need: Need, now: datetime) -> PriorityLevel:
        if self._escalation_minutes == 0:
            return need.priority
        waited_minutes = max(0.0, (now - need.created_at).total_seconds() / 60.0)
        steps = int(waited_minutes // self._escalation_minutes)
        return PriorityLevel.from_rank(need.priority.rank - steps)

    def rank_key(self, need: Need, now: datetime) -> tuple[int, datetime, str]:
        return (self.effective_level(need, now).rank, need.created_at, need.need_id)
