"""Operational alerts derived from tracked demand and depletion forecasts."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from relief.domain.constraints import TrendConfig, validate_trend_config
from relief.domain.models import (
    Category,
    HeatmapPoint,
    Insight,
    Need,
    PriorityLevel,
    Supply,
    category_label,
)
from relief.services.consumption_service import ConsumptionTracker
from relief.services.forecast_service import DepletionForecaster
from relief.utils.config import Settings, get_settings
from relief.utils.logger import get_logger


logger = get_logger(__name__)

DEMAND_TREND = "demand_trend"
DEPLETION_WARNING = "depletion_warning"
SUPPLY_SHORTAGE = "supply_shortage"

HEATMAP_INTENSITY: dict[PriorityLevel, float] = {
    PriorityLevel.CRITICAL: 1.0,
    PriorityLevel.HIGH: 0.8,
    PriorityLevel.MEDIUM: 0.5,
    PriorityLevel.LOW: 0.3,
}
UNSERVED_INTENSITY_BOOST = 1.5


class InsightGenerator:
    """Scans tracker state and forecasts; never mutates either."""

    def __init__(
        self,
        tracker: ConsumptionTracker,
        forecaster: DepletionForecaster,
        settings: Optional[Settings] = None,
        label_lookup: Callable[[Category], str] = category_label,
        config: Optional[TrendConfig] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = config or TrendConfig.from_settings(self._settings)
        validate_trend_config(self._config)
        self._tracker = tracker
        self._forecaster = forecaster
        self._label_lookup = label_lookup

    def demand_trend_insights(self) -> list[Insight]:
        insights: list[Insight] = []
        window = self._config.window
        for category in self._tracker.demand_categories():
            history = self._tracker.demand_history(category)
            if len(history) < self._config.min_observations:
                continue
            recent = sum(record.quantity for record in history[-window:])
            earlier = sum(record.quantity for record in history[:window])
            if earlier <= 0 or recent <= earlier * (1.0 + self._config.increase_threshold):
                continue
            increase = (recent / earlier - 1.0) * 100.0
            insights.append(
                Insight(
                    kind=DEMAND_TREND,
                    message=(
                        f"{self._label_lookup(category)} demand increased by "
                        f"{increase:.0f}% over the earliest observations"
                    ),
                    category=category,
                    value=round(increase, 2),
                )
            )
        return insights

    def depletion_insights(self, supplies: Iterable[Supply]) -> list[Insight]:
        insights: list[Insight] = []
        for supply in supplies:
            if supply.is_deleted or supply.allocatable_quantity <= 0:
                continue
            prediction = self._forecaster.predict(
                supply.supply_id,
                supply.category,
                supply.allocatable_quantity,
            )
            if not prediction.is_critical or prediction.minutes_to_depletion <= 0:
                continue
            insights.append(
                Insight(
                    kind=DEPLETION_WARNING,
                    message=(
                        f"{supply.name} may be depleted within "
                        f"{prediction.minutes_to_depletion} minutes"
                    ),
                    category=supply.category,
                    supply_id=supply.supply_id,
                    value=float(prediction.minutes_to_depletion),
                )
            )
        return insights

    def shortage_insights(self, needs: Iterable[Need]) -> list[Insight]:
        """One alert per category holding an open need that received nothing."""
        starved: list[Category] = []
        for need in needs:
            if need.is_deleted or need.is_fulfilled or need.quantity_fulfilled > 0:
                continue
            if need.category not in starved:
                starved.append(need.category)
        return [
            Insight(
                kind=SUPPLY_SHORTAGE,
                message=f"Supply shortage: no {self._label_lookup(category)} stock reached open needs",
                category=category,
            )
            for category in starved
        ]

    def generate(self, supplies: Iterable[Supply]) -> list[Insight]:
        insights = self.demand_trend_insights() + self.depletion_insights(supplies)
        logger.info(
            "Insights generated | demand_trend=%s | depletion_warning=%s",
            sum(1 for item in insights if item.kind == DEMAND_TREND),
            sum(1 for item in insights if item.kind == DEPLETION_WARNING),
        )
        return insights


def build_heatmap(needs: Iterable[Need]) -> list[HeatmapPoint]:
    """Unmet demand as weighted points; untouched needs glow hotter."""
    points: list[HeatmapPoint] = []
    for need in needs:
        if need.is_deleted or need.is_fulfilled:
            continue
        intensity = HEATMAP_INTENSITY.get(need.priority, 0.3)
        if need.quantity_fulfilled == 0:
            intensity *= UNSERVED_INTENSITY_BOOST
        points.append(
            HeatmapPoint(
                latitude=need.location.latitude,
                longitude=need.location.longitude,
                intensity=min(1.0, intensity),
            )
        )
    return points
