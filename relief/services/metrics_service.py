"""Throughput statistics aggregated across matching passes."""

from __future__ import annotations

from collections import deque
from typing import Optional

from relief.domain.models import MetricsSnapshot, RunSummary, utc_now
from relief.utils.config import Settings, get_settings


class RunMetrics:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._manual_minutes_per_allocation = self._settings.metrics_manual_minutes_per_allocation
        self._history: deque[RunSummary] = deque(maxlen=self._settings.metrics_history_limit)
        self.total_runs = 0
        self.total_allocations = 0
        self.total_elapsed_ms = 0.0
        self.multi_source_matches = 0

    @property
    def estimated_manual_minutes(self) -> float:
        return self.total_allocations * self._manual_minutes_per_allocation

    @property
    def time_saved_minutes(self) -> float:
        return self.estimated_manual_minutes - self.total_elapsed_ms / 60000.0

    def record_run(self, allocations: int, elapsed_ms: float, multi_source_count: int) -> None:
        self.total_runs += 1
        self.total_allocations += allocations
        self.total_elapsed_ms += elapsed_ms
        self.multi_source_matches += multi_source_count
        self._history.append(
            RunSummary(
                timestamp=utc_now(),
                allocations=allocations,
                elapsed_ms=elapsed_ms,
                multi_source_count=multi_source_count,
            )
        )

    def history(self) -> list[RunSummary]:
        return list(self._history)

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            total_runs=self.total_runs,
            total_allocations=self.total_allocations,
            total_elapsed_ms=self.total_elapsed_ms,
            multi_source_matches=self.multi_source_matches,
            estimated_manual_minutes=self.estimated_manual_minutes,
            time_saved_minutes=self.time_saved_minutes,
            history=self.history(),
        )
