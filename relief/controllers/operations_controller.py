"""HTTP controller layer for needs, supplies, matching and insights."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator

from relief.controllers.dependencies import get_operations_service
from relief.domain.models import (
    Category,
    Location,
    Need,
    PriorityLevel,
    Shipment,
    category_label,
)
from relief.repository.seed_data import DEFAULT_ZONE, ZONE_COORDINATES, zone_location
from relief.services.matching_service import AllocationStateError
from relief.services.operations_service import (
    MatchingReport,
    NeedNotFoundError,
    OperationsService,
    OperationsValidationError,
    ShipmentNotFoundError,
    SupplyNotFoundError,
    need_status,
)
from relief.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api")


class CreateNeedRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    title: str = Field(min_length=1)
    category: Category
    quantity: int = Field(gt=0)
    priority: PriorityLevel = PriorityLevel.MEDIUM
    location: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    address: Optional[str] = None

    @model_validator(mode="after")
    def validate_location(self) -> "CreateNeedRequest":
        has_latitude = self.latitude is not None
        has_longitude = self.longitude is not None
        if has_latitude != has_longitude:
            raise ValueError("latitude and longitude must be provided together")
        if self.location is not None and self.location not in ZONE_COORDINATES:
            raise ValueError(f"unknown location '{self.location}'")
        return self

    def resolve_location(self) -> Location:
        if self.latitude is not None and self.longitude is not None:
            return Location(
                latitude=self.latitude,
                longitude=self.longitude,
                address=self.address or "",
            )
        return zone_location(self.location or DEFAULT_ZONE)


class CreateNeedResponse(BaseModel):
    need_id: str
    title: str


class NeedResponse(BaseModel):
    need_id: str
    title: str
    category: str
    category_display: str
    quantity_required: int = Field(gt=0)
    quantity_fulfilled: int = Field(ge=0)
    remaining_quantity: int = Field(ge=0)
    fulfillment_percentage: float = Field(ge=0.0, le=100.0)
    is_fulfilled: bool
    status: str
    priority: str
    address: str
    latitude: float
    longitude: float
    created_at: datetime


class DepletionPredictionResponse(BaseModel):
    minutes_to_depletion: int = Field(ge=0)
    consumption_velocity: float = Field(ge=0.0)
    is_critical: bool
    velocity_source: str
    is_estimate: bool


class SupplyResponse(BaseModel):
    supply_id: str
    name: str
    category: str
    category_display: str
    quantity_available: int = Field(ge=0)
    quantity_reserved: int = Field(ge=0)
    allocatable_quantity: int = Field(ge=0)
    is_below_minimum_stock: bool
    is_expired: bool
    status: str
    address: str
    latitude: float
    longitude: float
    prediction: DepletionPredictionResponse


class ResupplyRequest(BaseModel):
    quantity: Optional[int] = Field(default=None, gt=0)


class ResupplyResponse(BaseModel):
    success: bool = True
    supply_id: str
    name: str
    new_stock: int = Field(ge=0)
    status: str = "Available"


class MatchRouteResponse(BaseModel):
    supply_id: Optional[str]
    supply_name: Optional[str]
    supply_latitude: Optional[float]
    supply_longitude: Optional[float]
    need_id: str
    need_title: str
    need_latitude: float
    need_longitude: float
    quantity: int = Field(ge=0)
    distance_km: float = Field(ge=0.0)
    travel_time_minutes: float = Field(ge=0.0)
    priority: str
    weighted_score: float
    is_multi_source: bool
    remaining_quantity: int = Field(ge=0)
    fulfillment_status: str
    category: str


class InsightResponse(BaseModel):
    kind: str
    message: str
    category: Optional[str] = None
    supply_id: Optional[str] = None
    value: Optional[float] = None


class RunSummaryResponse(BaseModel):
    timestamp: datetime
    allocations: int = Field(ge=0)
    elapsed_ms: float = Field(ge=0.0)
    multi_source_count: int = Field(ge=0)


class EfficiencyResponse(BaseModel):
    total_runs: int = Field(ge=0)
    total_allocations: int = Field(ge=0)
    total_elapsed_ms: float = Field(ge=0.0)
    multi_source_matches: int = Field(ge=0)
    estimated_manual_minutes: float
    time_saved_minutes: float
    history: list[RunSummaryResponse]


class MatchResponse(BaseModel):
    success: bool = True
    total_routes: int = Field(ge=0)
    allocation_count: int = Field(ge=0)
    multi_source_count: int = Field(ge=0)
    no_supply_count: int = Field(ge=0)
    elapsed_ms: float = Field(ge=0.0)
    routes: list[MatchRouteResponse]
    insights: list[InsightResponse]
    efficiency: EfficiencyResponse


class ShipmentResponse(BaseModel):
    shipment_id: str
    tracking_number: str
    status: str
    priority: str
    item_description: str
    quantity: int = Field(gt=0)
    origin_address: str
    origin_latitude: float
    origin_longitude: float
    destination_address: str
    destination_latitude: float
    destination_longitude: float
    created_at: datetime


class DispatchResponse(BaseModel):
    success: bool = True
    shipment_id: str
    tracking_number: str
    previous_status: str
    status: str
    distance_km: float = Field(ge=0.0)
    travel_time_minutes: float = Field(ge=0.0)


class HeatmapPointResponse(BaseModel):
    latitude: float
    longitude: float
    intensity: float = Field(ge=0.0, le=1.0)


def _efficiency_response(service: OperationsService) -> EfficiencyResponse:
    snapshot = service.efficiency()
    return EfficiencyResponse(
        total_runs=snapshot.total_runs,
        total_allocations=snapshot.total_allocations,
        total_elapsed_ms=snapshot.total_elapsed_ms,
        multi_source_matches=snapshot.multi_source_matches,
        estimated_manual_minutes=snapshot.estimated_manual_minutes,
        time_saved_minutes=snapshot.time_saved_minutes,
        history=[
            RunSummaryResponse(
                timestamp=item.timestamp,
                allocations=item.allocations,
                elapsed_ms=item.elapsed_ms,
                multi_source_count=item.multi_source_count,
            )
            for item in snapshot.history
        ],
    )


def _match_response(report: MatchingReport, service: OperationsService) -> MatchResponse:
    return MatchResponse(
        total_routes=len(report.routes),
        allocation_count=report.allocation_count,
        multi_source_count=report.multi_source_count,
        no_supply_count=report.no_supply_count,
        elapsed_ms=report.elapsed_ms,
        routes=[MatchRouteResponse(**route.to_dict()) for route in report.routes],
        insights=[InsightResponse(**insight.to_dict()) for insight in report.insights],
        efficiency=_efficiency_response(service),
    )


def _shipment_response(shipment: Shipment) -> ShipmentResponse:
    return ShipmentResponse(
        shipment_id=shipment.shipment_id,
        tracking_number=shipment.tracking_number,
        status=shipment.status.value,
        priority=shipment.priority.value,
        item_description=shipment.item_description,
        quantity=shipment.quantity,
        origin_address=shipment.origin.address,
        origin_latitude=shipment.origin.latitude,
        origin_longitude=shipment.origin.longitude,
        destination_address=shipment.destination.address,
        destination_latitude=shipment.destination.latitude,
        destination_longitude=shipment.destination.longitude,
        created_at=shipment.created_at,
    )


def _need_response(need: Need, status_label: str) -> NeedResponse:
    return NeedResponse(
        need_id=need.need_id,
        title=need.title,
        category=need.category.value,
        category_display=category_label(need.category),
        quantity_required=need.quantity_required,
        quantity_fulfilled=need.quantity_fulfilled,
        remaining_quantity=need.remaining_quantity,
        fulfillment_percentage=need.fulfillment_percentage,
        is_fulfilled=need.is_fulfilled,
        status=status_label,
        priority=need.priority.value,
        address=need.location.address,
        latitude=need.location.latitude,
        longitude=need.location.longitude,
        created_at=need.created_at,
    )


@router.get("/needs", response_model=list[NeedResponse], tags=["needs"])
async def list_needs(
    service: OperationsService = Depends(get_operations_service),
) -> list[NeedResponse]:
    return [_need_response(row["need"], row["status"]) for row in service.list_needs()]


@router.get("/needs/{need_id}", response_model=NeedResponse, tags=["needs"])
async def get_need(
    need_id: str,
    service: OperationsService = Depends(get_operations_service),
) -> NeedResponse:
    try:
        need = service.get_need(need_id)
        return _need_response(need, need_status(need))
    except NeedNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.delete("/needs/{need_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["needs"])
async def delete_need(
    need_id: str,
    service: OperationsService = Depends(get_operations_service),
) -> None:
    try:
        service.delete_need(need_id)
    except NeedNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.post(
    "/needs",
    response_model=CreateNeedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["needs"],
)
async def create_need(
    payload: CreateNeedRequest,
    service: OperationsService = Depends(get_operations_service),
) -> CreateNeedResponse:
    try:
        need = service.create_need(
            title=payload.title,
            category=payload.category,
            quantity=payload.quantity,
            location=payload.resolve_location(),
            priority=payload.priority,
        )
        return CreateNeedResponse(need_id=need.need_id, title=need.title)
    except OperationsValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.get("/supplies", response_model=list[SupplyResponse], tags=["supplies"])
async def list_supplies(
    service: OperationsService = Depends(get_operations_service),
) -> list[SupplyResponse]:
    rows: list[SupplyResponse] = []
    for row in service.list_supplies():
        supply = row["supply"]
        rows.append(
            SupplyResponse(
                supply_id=supply.supply_id,
                name=supply.name,
                category=supply.category.value,
                category_display=row["category_display"],
                quantity_available=supply.quantity_available,
                quantity_reserved=supply.quantity_reserved,
                allocatable_quantity=supply.allocatable_quantity,
                is_below_minimum_stock=supply.is_below_minimum_stock,
                is_expired=supply.is_expired(),
                status=row["status"],
                address=supply.location.address,
                latitude=supply.location.latitude,
                longitude=supply.location.longitude,
                prediction=DepletionPredictionResponse(**row["prediction"].to_dict()),
            )
        )
    return rows


@router.post(
    "/supplies/{supply_id}/resupply",
    response_model=ResupplyResponse,
    tags=["supplies"],
)
async def resupply(
    supply_id: str,
    payload: Optional[ResupplyRequest] = None,
    service: OperationsService = Depends(get_operations_service),
) -> ResupplyResponse:
    try:
        supply = service.resupply(
            supply_id,
            quantity=payload.quantity if payload is not None else None,
        )
        return ResupplyResponse(
            supply_id=supply.supply_id,
            name=supply.name,
            new_stock=supply.allocatable_quantity,
        )
    except SupplyNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except OperationsValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.delete("/supplies/{supply_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["supplies"])
async def delete_supply(
    supply_id: str,
    service: OperationsService = Depends(get_operations_service),
) -> None:
    try:
        service.delete_supply(supply_id)
    except SupplyNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get("/shipments", response_model=list[ShipmentResponse], tags=["shipments"])
async def list_shipments(
    service: OperationsService = Depends(get_operations_service),
) -> list[ShipmentResponse]:
    return [_shipment_response(shipment) for shipment in service.list_shipments()]


@router.post("/dispatch/{shipment_id}", response_model=DispatchResponse, tags=["shipments"])
async def dispatch_shipment(
    shipment_id: str,
    service: OperationsService = Depends(get_operations_service),
) -> DispatchResponse:
    """Advance a shipment to InTransit and report the estimated route."""
    try:
        receipt = service.dispatch_shipment(shipment_id)
    except ShipmentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return DispatchResponse(
        shipment_id=receipt.shipment.shipment_id,
        tracking_number=receipt.shipment.tracking_number,
        previous_status=receipt.previous_status.value,
        status=receipt.shipment.status.value,
        distance_km=receipt.distance_km,
        travel_time_minutes=receipt.travel_time_minutes,
    )


@router.post("/match", response_model=MatchResponse, tags=["matching"])
async def run_matching(
    service: OperationsService = Depends(get_operations_service),
) -> MatchResponse:
    """Run one greedy multi-source matching pass over the stored working set."""
    try:
        return _match_response(service.run_matching(), service)
    except AllocationStateError as exc:
        logger.error("Matching pass aborted on corrupt state | detail=%s", exc)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected matching failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run matching",
        ) from exc


@router.get("/match-routes", response_model=list[MatchRouteResponse], tags=["matching"])
async def latest_routes(
    service: OperationsService = Depends(get_operations_service),
) -> list[MatchRouteResponse]:
    return [MatchRouteResponse(**route.to_dict()) for route in service.latest_routes()]


@router.post("/simulate", response_model=MatchResponse, tags=["matching"])
async def simulate(
    service: OperationsService = Depends(get_operations_service),
) -> MatchResponse:
    """Load the guided scenario in place of the working set and match it."""
    try:
        return _match_response(service.load_scenario(), service)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected scenario failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run scenario",
        ) from exc


@router.get("/efficiency", response_model=EfficiencyResponse, tags=["reporting"])
async def efficiency(
    service: OperationsService = Depends(get_operations_service),
) -> EfficiencyResponse:
    return _efficiency_response(service)


@router.get("/ai/insights", response_model=list[InsightResponse], tags=["reporting"])
async def insights(
    service: OperationsService = Depends(get_operations_service),
) -> list[InsightResponse]:
    return [InsightResponse(**insight.to_dict()) for insight in service.insights()]


@router.get("/ai/heatmap", response_model=list[HeatmapPointResponse], tags=["reporting"])
async def heatmap(
    service: OperationsService = Depends(get_operations_service),
) -> list[HeatmapPointResponse]:
    return [
        HeatmapPointResponse(
            latitude=point.latitude,
            longitude=point.longitude,
            intensity=point.intensity,
        )
        for point in service.heatmap()
    ]
