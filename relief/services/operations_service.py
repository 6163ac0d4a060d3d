"""Operator workflow orchestration: intake, restock, matching and reporting."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

from relief.domain.models import (
    Category,
    HeatmapPoint,
    Insight,
    Location,
    MatchRoute,
    MetricsSnapshot,
    Need,
    PriorityLevel,
    Shipment,
    ShipmentStatus,
    Supply,
    category_label,
)
from relief.repository.data_repository import DataRepository
from relief.repository.seed_data import guided_scenario
from relief.services.consumption_service import ConsumptionTracker
from relief.services.forecast_service import DepletionForecaster
from relief.services.geo_service import estimate_travel_minutes, haversine_km
from relief.services.insight_service import InsightGenerator, build_heatmap
from relief.services.matching_service import AllocationEngine
from relief.services.metrics_service import RunMetrics
from relief.utils.config import Settings, get_settings
from relief.utils.logger import get_logger


logger = get_logger(__name__)


class OperationsValidationError(Exception):
    """Raised when operator workflow inputs are invalid."""


class NeedNotFoundError(OperationsValidationError):
    """Raised when a need id does not exist in persisted state."""


class SupplyNotFoundError(OperationsValidationError):
    """Raised when a supply id does not exist in persisted state."""


class ShipmentNotFoundError(OperationsValidationError):
    """Raised when a shipment id does not exist in persisted state."""


def need_status(need: Need) -> str:
    if need.is_fulfilled:
        return "Fulfilled"
    if need.quantity_fulfilled > 0:
        return "PartiallyFulfilled"
    return "Pending"


@dataclass(frozen=True)
class MatchingReport:
    routes: list[MatchRoute]
    insights: list[Insight]
    metrics: MetricsSnapshot
    allocation_count: int
    multi_source_count: int
    no_supply_count: int
    elapsed_ms: float


@dataclass(frozen=True)
class DispatchReceipt:
    shipment: Shipment
    previous_status: ShipmentStatus
    distance_km: float
    travel_time_minutes: float


class OperationsService:
    """Coordinates load -> match -> save -> insight around one engine.

    All state that outlives a request (tracker, metrics, latest routes) is
    owned by this instance rather than by module globals, and every mutation
    of the working set runs under the engine lock.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        tracker: Optional[ConsumptionTracker] = None,
        metrics: Optional[RunMetrics] = None,
        engine: Optional[AllocationEngine] = None,
        forecaster: Optional[DepletionForecaster] = None,
        insight_generator: Optional[InsightGenerator] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._tracker = tracker or ConsumptionTracker(settings=self._settings)
        self._metrics = metrics or RunMetrics(settings=self._settings)
        self._engine = engine or AllocationEngine(
            tracker=self._tracker,
            metrics=self._metrics,
            settings=self._settings,
        )
        self._forecaster = forecaster or DepletionForecaster(
            tracker=self._tracker,
            settings=self._settings,
        )
        self._insight_generator = insight_generator or InsightGenerator(
            tracker=self._tracker,
            forecaster=self._forecaster,
            settings=self._settings,
        )
        self._latest_routes: list[MatchRoute] = []

    @property
    def tracker(self) -> ConsumptionTracker:
        return self._tracker

    def list_needs(self) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for need in self._repository.load_needs():
            rows.append(
                {
                    "need": need,
                    "category_display": category_label(need.category),
                    "status": need_status(need),
                }
            )
        return rows

    def list_supplies(self) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for supply in self._repository.load_supplies():
            prediction = self._forecaster.predict(
                supply.supply_id,
                supply.category,
                supply.allocatable_quantity,
            )
            if supply.allocatable_quantity == 0:
                status = "Depleted"
            elif supply.is_below_minimum_stock:
                status = "Low Stock"
            else:
                status = "Available"
            rows.append(
                {
                    "supply": supply,
                    "category_display": category_label(supply.category),
                    "status": status,
                    "prediction": prediction,
                }
            )
        return rows

    def create_need(
        self,
        *,
        title: str,
        category: Category | str,
        quantity: int,
        location: Location,
        priority: PriorityLevel | str = PriorityLevel.MEDIUM,
    ) -> Need:
        try:
            need = Need(
                title=title,
                category=category,
                quantity_required=quantity,
                location=location,
                priority=priority,
            )
        except ValueError as exc:
            raise OperationsValidationError(str(exc)) from exc

        with self._engine.lock:
            self._repository.save_needs([need])
            self._tracker.record_demand(
                need.category,
                need.quantity_required,
                location.latitude,
                location.longitude,
            )
        logger.info(
            "Need registered | need_id=%s | category=%s | quantity=%s | priority=%s",
            need.need_id,
            need.category.value,
            need.quantity_required,
            need.priority.value,
        )
        return need

    def get_need(self, need_id: str) -> Need:
        need = self._repository.get_need(need_id)
        if need is None or need.is_deleted:
            raise NeedNotFoundError(f"need {need_id} not found")
        return need

    def delete_need(self, need_id: str) -> None:
        with self._engine.lock:
            self.get_need(need_id)
            self._repository.delete_need(need_id)
        logger.info("Need withdrawn | need_id=%s", need_id)

    def delete_supply(self, supply_id: str) -> None:
        with self._engine.lock:
            supply = self._repository.get_supply(supply_id)
            if supply is None or supply.is_deleted:
                raise SupplyNotFoundError(f"supply {supply_id} not found")
            self._repository.delete_supply(supply_id)
            self._tracker.reset_consumption(supply_id)
        logger.info("Supply retired | supply_id=%s", supply_id)

    def resupply(self, supply_id: str, quantity: Optional[int] = None) -> Supply:
        amount = quantity if quantity is not None else self._settings.resupply_default_quantity
        if amount <= 0:
            raise OperationsValidationError("resupply quantity must be > 0")

        with self._engine.lock:
            supply = self._repository.get_supply(supply_id)
            if supply is None or supply.is_deleted:
                raise SupplyNotFoundError(f"supply {supply_id} not found")
            supply.resupply(amount)
            self._repository.save_supplies([supply])
            self._tracker.reset_consumption(supply.supply_id)

        logger.info(
            "Supply restocked | supply_id=%s | added=%s | allocatable=%s",
            supply.supply_id,
            amount,
            supply.allocatable_quantity,
        )
        return supply

    def run_matching(self) -> MatchingReport:
        with self._engine.lock:
            needs = self._repository.load_needs()
            supplies = self._repository.load_supplies()
            result = self._engine.run_pass(needs, supplies)
            self._repository.save_working_set(needs, supplies)
            self._latest_routes = list(result.routes)
            insights = self._insight_generator.generate(supplies)

        return MatchingReport(
            routes=list(result.routes),
            insights=insights,
            metrics=self._metrics.snapshot(),
            allocation_count=result.allocation_count,
            multi_source_count=result.multi_source_count,
            no_supply_count=result.no_supply_count,
            elapsed_ms=result.elapsed_ms,
        )

    def load_scenario(self) -> MatchingReport:
        """Replace the working set with the guided scenario and match it."""
        needs, supplies = guided_scenario()
        with self._engine.lock:
            self._repository.replace_working_set(needs, supplies)
            self._tracker.reset()
            self._latest_routes = []
            logger.info(
                "Guided scenario loaded | needs=%s | supplies=%s",
                len(needs),
                len(supplies),
            )
            report = self.run_matching()
            shortages = self._insight_generator.shortage_insights(self._repository.load_needs())
        return replace(report, insights=report.insights + shortages)

    def list_shipments(self) -> list[Shipment]:
        return self._repository.load_shipments()

    def dispatch_shipment(self, shipment_id: str) -> DispatchReceipt:
        """Advance a shipment to InTransit and estimate its route."""
        with self._engine.lock:
            shipment = self._repository.get_shipment(shipment_id)
            if shipment is None or shipment.is_deleted:
                raise ShipmentNotFoundError(f"shipment {shipment_id} not found")
            previous = shipment.status
            shipment.dispatch()
            self._repository.save_shipments([shipment])

        distance = haversine_km(
            shipment.origin.latitude,
            shipment.origin.longitude,
            shipment.destination.latitude,
            shipment.destination.longitude,
        )
        travel_minutes = estimate_travel_minutes(distance, self._settings.matching_travel_speed_kmh)
        logger.info(
            "Shipment dispatched | shipment_id=%s | from=%s | to=%s | distance_km=%.2f",
            shipment.shipment_id,
            previous.value,
            shipment.status.value,
            distance,
        )
        return DispatchReceipt(
            shipment=shipment,
            previous_status=previous,
            distance_km=round(distance, 2),
            travel_time_minutes=round(travel_minutes, 1),
        )

    def latest_routes(self) -> list[MatchRoute]:
        return list(self._latest_routes)

    def insights(self) -> list[Insight]:
        return self._insight_generator.generate(self._repository.load_supplies())

    def heatmap(self) -> list[HeatmapPoint]:
        return build_heatmap(self._repository.load_needs())

    def efficiency(self) -> MetricsSnapshot:
        return self._metrics.snapshot()
