"""Bounded demand and consumption time series used for forecasting."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Callable, Optional

from relief.domain.models import (
    Category,
    DemandLocation,
    QuantityObservation,
    utc_now,
)
from relief.utils.config import Settings, get_settings
from relief.utils.logger import get_logger


logger = get_logger(__name__)

Clock = Callable[[], datetime]


class ConsumptionTracker:
    """Append-only per-category demand and per-supply consumption histories.

    Histories are FIFO-bounded deques: once a series reaches its cap the
    oldest observation is evicted. Single-writer; callers serialize access.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock or utc_now
        self._demand_limit = self._settings.tracker_demand_history_limit
        self._consumption_limit = self._settings.tracker_consumption_history_limit
        if self._demand_limit <= 0 or self._consumption_limit <= 0:
            raise ValueError("tracker history limits must be > 0")
        self._demand: dict[Category, deque[QuantityObservation]] = {}
        self._demand_locations: dict[Category, deque[DemandLocation]] = {}
        self._consumption: dict[str, deque[QuantityObservation]] = {}

    def record_demand(self, category: Category, quantity: int, latitude: float, longitude: float) -> None:
        category = Category.parse(category)
        history = self._demand.setdefault(category, deque(maxlen=self._demand_limit))
        history.append(QuantityObservation(timestamp=self._clock(), quantity=quantity, category=category))
        locations = self._demand_locations.setdefault(
            category, deque(maxlen=self._demand_limit)
        )
        locations.append(DemandLocation(latitude=latitude, longitude=longitude, quantity=quantity))

    def record_consumption(self, supply_id: str, category: Category, quantity: int) -> None:
        history = self._consumption.setdefault(supply_id, deque(maxlen=self._consumption_limit))
        history.append(
            QuantityObservation(
                timestamp=self._clock(),
                quantity=quantity,
                category=Category.parse(category),
            )
        )

    def reset_consumption(self, supply_id: str) -> None:
        """Forget pre-restock consumption so velocity is not judged against it."""
        history = self._consumption.get(supply_id)
        if history is not None:
            history.clear()
            logger.debug("Consumption history reset | supply_id=%s", supply_id)

    def reset(self) -> None:
        self._demand.clear()
        self._demand_locations.clear()
        self._consumption.clear()
        logger.info("Consumption tracker cleared")

    def demand_categories(self) -> list[Category]:
        return list(self._demand)

    def demand_history(self, category: Category) -> list[QuantityObservation]:
        return list(self._demand.get(Category.parse(category), ()))

    def demand_locations(self, category: Category) -> list[DemandLocation]:
        return list(self._demand_locations.get(Category.parse(category), ()))

    def consumption_history(self, supply_id: str) -> list[QuantityObservation]:
        return list(self._consumption.get(supply_id, ()))
