"""Greedy multi-source matching of relief supplies to outstanding needs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Iterable, Optional

from relief.domain.models import (
    Category,
    FulfillmentStatus,
    MatchingResult,
    MatchRoute,
    Need,
    ReservationEvent,
    Supply,
    utc_now,
)
from relief.services.consumption_service import ConsumptionTracker
from relief.services.geo_service import estimate_travel_minutes, haversine_km
from relief.services.metrics_service import RunMetrics
from relief.services.urgency_service import PriorityRanker, weighted_score
from relief.utils.config import Settings, get_settings
from relief.utils.logger import Timer, get_logger


logger = get_logger(__name__)

RankKey = Callable[[Need, datetime], Any]


class AllocationStateError(Exception):
    """Raised when the working set violates quantity invariants."""


@dataclass(frozen=True)
class Candidate:
    supply: Supply
    distance_km: float


@dataclass(frozen=True)
class DemandEvent:
    category: Category
    quantity: int
    latitude: float
    longitude: float


@dataclass
class PassLedger:
    """Everything a pass intends to change, applied only once the pass succeeds."""

    routes: list[MatchRoute] = field(default_factory=list)
    demand_events: list[DemandEvent] = field(default_factory=list)
    reservations: list[ReservationEvent] = field(default_factory=list)
    multi_source_count: int = 0
    no_supply_count: int = 0


def validate_working_set(needs: list[Need], supplies: list[Supply]) -> None:
    """Fail loudly on corrupt entity state instead of allocating against it."""
    need_ids: set[str] = set()
    for need in needs:
        if need.need_id in need_ids:
            raise AllocationStateError(f"duplicate need_id {need.need_id}")
        need_ids.add(need.need_id)
        if need.quantity_required <= 0:
            raise AllocationStateError(f"need {need.need_id} has non-positive quantity_required")
        if not 0 <= need.quantity_fulfilled <= need.quantity_required:
            raise AllocationStateError(
                f"need {need.need_id} has quantity_fulfilled outside [0, quantity_required]"
            )

    supply_ids: set[str] = set()
    for supply in supplies:
        if supply.supply_id in supply_ids:
            raise AllocationStateError(f"duplicate supply_id {supply.supply_id}")
        supply_ids.add(supply.supply_id)
        if supply.quantity_available < 0:
            raise AllocationStateError(f"supply {supply.supply_id} has negative quantity_available")
        if not 0 <= supply.quantity_reserved <= supply.quantity_available:
            raise AllocationStateError(
                f"supply {supply.supply_id} has quantity_reserved outside [0, quantity_available]"
            )


def rank_candidates(
    need: Need,
    supplies: list[Supply],
    allocatable: dict[str, int],
) -> list[Candidate]:
    """Same-category, live, non-empty supplies nearest first; ties keep input order."""
    candidates = [
        Candidate(
            supply=supply,
            distance_km=haversine_km(
                supply.location.latitude,
                supply.location.longitude,
                need.location.latitude,
                need.location.longitude,
            ),
        )
        for supply in supplies
        if not supply.is_deleted
        and supply.category == need.category
        and allocatable[supply.supply_id] > 0
    ]
    candidates.sort(key=lambda candidate: candidate.distance_km)
    return candidates


def build_no_supply_route(need: Need, remaining_quantity: int) -> MatchRoute:
    return MatchRoute(
        supply_id=None,
        supply_name=None,
        supply_latitude=None,
        supply_longitude=None,
        need_id=need.need_id,
        need_title=need.title,
        need_latitude=need.location.latitude,
        need_longitude=need.location.longitude,
        quantity=0,
        distance_km=0.0,
        travel_time_minutes=0.0,
        priority=need.priority,
        weighted_score=0.0,
        is_multi_source=False,
        remaining_quantity=remaining_quantity,
        fulfillment_status=FulfillmentStatus.NO_SUPPLY,
        category=need.category,
    )


class AllocationEngine:
    """Runs single-writer matching passes over an in-memory working set.

    A pass plans against private copies of remaining demand and allocatable
    stock, then commits the reservation ledger to the entities and the
    consumption tracker in one step. The engine lock is held for the whole
    pass; callers mutating the same entities outside a pass must take it too.
    """

    def __init__(
        self,
        tracker: ConsumptionTracker,
        metrics: RunMetrics,
        settings: Optional[Settings] = None,
        rank_key: Optional[RankKey] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._tracker = tracker
        self._metrics = metrics
        self._rank_key = rank_key or PriorityRanker(
            self._settings.priority_escalation_minutes
        ).rank_key
        self._clock = clock or utc_now
        self._travel_speed_kmh = self._settings.matching_travel_speed_kmh
        self._lock = RLock()

    @property
    def lock(self) -> RLock:
        return self._lock

    def _plan(self, needs: list[Need], supplies: list[Supply], now: datetime) -> PassLedger:
        ledger = PassLedger()
        allocatable = {supply.supply_id: supply.allocatable_quantity for supply in supplies}

        prioritized = sorted(
            (need for need in needs if not need.is_deleted and not need.is_fulfilled),
            key=lambda need: self._rank_key(need, now),
        )

        for need in prioritized:
            remaining = need.remaining_quantity
            if remaining <= 0:
                continue

            ledger.demand_events.append(
                DemandEvent(
                    category=need.category,
                    quantity=remaining,
                    latitude=need.location.latitude,
                    longitude=need.location.longitude,
                )
            )

            candidates = rank_candidates(need, supplies, allocatable)
            if not candidates:
                ledger.no_supply_count += 1
                ledger.routes.append(build_no_supply_route(need, remaining))
                logger.warning(
                    "No eligible supply | need_id=%s | category=%s | outstanding=%s",
                    need.need_id,
                    need.category.value,
                    remaining,
                )
                continue

            wait_minutes = (now - need.created_at).total_seconds() / 60.0
            source_count = 0
            for candidate in candidates:
                if remaining <= 0:
                    break
                supply = candidate.supply
                quantity = min(allocatable[supply.supply_id], remaining)
                if quantity <= 0:
                    continue

                allocatable[supply.supply_id] -= quantity
                remaining -= quantity
                source_count += 1
                ledger.reservations.append(
                    ReservationEvent(
                        need_id=need.need_id,
                        supply_id=supply.supply_id,
                        quantity=quantity,
                    )
                )

                status = FulfillmentStatus.PARTIAL if remaining > 0 else FulfillmentStatus.FULL
                ledger.routes.append(
                    MatchRoute(
                        supply_id=supply.supply_id,
                        supply_name=supply.name,
                        supply_latitude=supply.location.latitude,
                        supply_longitude=supply.location.longitude,
                        need_id=need.need_id,
                        need_title=need.title,
                        need_latitude=need.location.latitude,
                        need_longitude=need.location.longitude,
                        quantity=quantity,
                        distance_km=candidate.distance_km,
                        travel_time_minutes=estimate_travel_minutes(
                            candidate.distance_km,
                            self._travel_speed_kmh,
                        ),
                        priority=need.priority,
                        weighted_score=weighted_score(
                            need.priority,
                            wait_minutes,
                            candidate.distance_km,
                        ),
                        is_multi_source=source_count > 1,
                        remaining_quantity=remaining,
                        fulfillment_status=status,
                        category=need.category,
                    )
                )
                logger.debug(
                    "Allocation planned | need_id=%s | supply_id=%s | quantity=%s | "
                    "distance_km=%.3f | status=%s",
                    need.need_id,
                    supply.supply_id,
                    quantity,
                    candidate.distance_km,
                    status.value,
                )

            if source_count > 1:
                ledger.multi_source_count += 1

        return ledger

    def _commit(self, ledger: PassLedger, needs: list[Need], supplies: list[Supply]) -> None:
        need_by_id = {need.need_id: need for need in needs}
        supply_by_id = {supply.supply_id: supply for supply in supplies}

        for event in ledger.demand_events:
            self._tracker.record_demand(
                event.category,
                event.quantity,
                event.latitude,
                event.longitude,
            )
        for reservation in ledger.reservations:
            supply = supply_by_id[reservation.supply_id]
            supply.reserve(reservation.quantity)
            need_by_id[reservation.need_id].add_fulfilled_quantity(reservation.quantity)
            self._tracker.record_consumption(
                supply.supply_id,
                supply.category,
                reservation.quantity,
            )

    def run_pass(self, needs: Iterable[Need], supplies: Iterable[Supply]) -> MatchingResult:
        """Match needs to supplies and leave reservations applied to the entities."""
        with self._lock:
            need_list = list(needs)
            supply_list = list(supplies)
            validate_working_set(need_list, supply_list)

            logger.info(
                "Matching pass started | needs=%s | supplies=%s",
                len(need_list),
                len(supply_list),
            )
            with Timer() as timer:
                ledger = self._plan(need_list, supply_list, self._clock())
                self._commit(ledger, need_list, supply_list)

            allocation_count = len(ledger.reservations)
            self._metrics.record_run(
                allocations=allocation_count,
                elapsed_ms=timer.elapsed_ms,
                multi_source_count=ledger.multi_source_count,
            )
            logger.info(
                (
                    "Matching pass completed | routes=%s | allocations=%s | "
                    "multi_source=%s | no_supply=%s | elapsed_ms=%.3f"
                ),
                len(ledger.routes),
                allocation_count,
                ledger.multi_source_count,
                ledger.no_supply_count,
                timer.elapsed_ms,
            )
            return MatchingResult(
                routes=ledger.routes,
                reservations=tuple(ledger.reservations),
                allocation_count=allocation_count,
                elapsed_ms=timer.elapsed_ms,
                multi_source_count=ledger.multi_source_count,
                no_supply_count=ledger.no_supply_count,
            )
