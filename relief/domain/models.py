"""Domain models for relief supply matching, tracking and forecasting."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_entity_id() -> str:
    return str(uuid.uuid4())


class PriorityLevel(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        """Numeric tier, 1 is served first."""
        return _PRIORITY_RANKS[self]

    @classmethod
    def from_rank(cls, rank: int) -> "PriorityLevel":
        bounded = max(1, min(4, rank))
        for level, level_rank in _PRIORITY_RANKS.items():
            if level_rank == bounded:
                return level
        raise ValueError(f"unknown priority rank {rank}")

    @classmethod
    def parse(cls, value: str, default: "PriorityLevel | None" = None) -> "PriorityLevel":
        for level in cls:
            if level.value.lower() == value.strip().lower():
                return level
        if default is not None:
            return default
        raise ValueError(f"unknown priority level '{value}'")


_PRIORITY_RANKS = {
    PriorityLevel.CRITICAL: 1,
    PriorityLevel.HIGH: 2,
    PriorityLevel.MEDIUM: 3,
    PriorityLevel.LOW: 4,
}


class Category(str, Enum):
    MEDICAL = "Medical"
    WATER = "Water"
    FOOD = "Food"
    SHELTER = "Shelter"
    EQUIPMENT = "Equipment"
    HYGIENE = "Hygiene"
    CLOTHING = "Clothing"
    FUEL = "Fuel"

    @classmethod
    def parse(cls, value: "str | Category") -> "Category":
        if isinstance(value, Category):
            return value
        for category in cls:
            if category.value.lower() == value.strip().lower():
                return category
        raise ValueError(f"unknown category '{value}'")


CATEGORY_LABELS: dict[Category, str] = {
    Category.MEDICAL: "Medical Supplies",
    Category.WATER: "Water & Beverages",
    Category.FOOD: "Food",
    Category.SHELTER: "Shelter",
    Category.EQUIPMENT: "Equipment",
    Category.HYGIENE: "Hygiene",
    Category.CLOTHING: "Clothing",
    Category.FUEL: "Fuel",
}


def category_label(category: Category) -> str:
    """Default display-name lookup used in operator-facing text."""
    return CATEGORY_LABELS.get(category, category.value)


class FulfillmentStatus(str, Enum):
    FULL = "Full"
    PARTIAL = "Partial"
    NO_SUPPLY = "NoSupply"


class VelocitySource(str, Enum):
    """Provenance of a consumption velocity used in a depletion forecast."""

    MEASURED = "measured"
    CATEGORY_AVERAGE = "category_average"
    PLACEHOLDER = "placeholder"
    NONE = "none"


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: str = ""

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError("latitude must be between -90 and 90")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError("longitude must be between -180 and 180")


@dataclass
class Need:
    title: str
    category: Category
    quantity_required: int
    location: Location
    priority: PriorityLevel = PriorityLevel.MEDIUM
    quantity_fulfilled: int = 0
    need_id: str = field(default_factory=new_entity_id)
    created_at: datetime = field(default_factory=utc_now)
    is_deleted: bool = False

    def __post_init__(self) -> None:
        self.category = Category.parse(self.category)
        if not isinstance(self.priority, PriorityLevel):
            self.priority = PriorityLevel.parse(self.priority)
        if not self.title.strip():
            raise ValueError("need title must be non-empty")
        if self.quantity_required <= 0:
            raise ValueError("quantity_required must be > 0")
        if not 0 <= self.quantity_fulfilled <= self.quantity_required:
            raise ValueError("quantity_fulfilled must be between 0 and quantity_required")

    @property
    def remaining_quantity(self) -> int:
        return self.quantity_required - self.quantity_fulfilled

    @property
    def is_fulfilled(self) -> bool:
        return self.quantity_fulfilled >= self.quantity_required

    @property
    def fulfillment_percentage(self) -> float:
        return round(self.quantity_fulfilled / self.quantity_required * 100.0, 2)

    def add_fulfilled_quantity(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValueError("fulfilled increment must be > 0")
        if self.quantity_fulfilled + quantity > self.quantity_required:
            raise ValueError(
                f"need {self.need_id} cannot be fulfilled beyond {self.quantity_required}"
            )
        self.quantity_fulfilled += quantity


@dataclass
class Supply:
    name: str
    category: Category
    quantity_available: int
    location: Location
    quantity_reserved: int = 0
    minimum_stock_level: int = 0
    expires_at: Optional[datetime] = None
    supply_id: str = field(default_factory=new_entity_id)
    is_deleted: bool = False

    def __post_init__(self) -> None:
        self.category = Category.parse(self.category)
        if not self.name.strip():
            raise ValueError("supply name must be non-empty")
        if self.quantity_available < 0:
            raise ValueError("quantity_available must be >= 0")
        if not 0 <= self.quantity_reserved <= self.quantity_available:
            raise ValueError("quantity_reserved must be between 0 and quantity_available")
        if self.minimum_stock_level < 0:
            raise ValueError("minimum_stock_level must be >= 0")

    @property
    def allocatable_quantity(self) -> int:
        return self.quantity_available - self.quantity_reserved

    @property
    def is_below_minimum_stock(self) -> bool:
        return self.allocatable_quantity < self.minimum_stock_level

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utc_now()) >= self.expires_at

    def reserve(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValueError("reserve quantity must be > 0")
        if quantity > self.allocatable_quantity:
            raise ValueError(
                f"supply {self.supply_id} has only {self.allocatable_quantity} allocatable"
            )
        self.quantity_reserved += quantity

    def resupply(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValueError("resupply quantity must be > 0")
        self.quantity_available += quantity


class ShipmentStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    IN_TRANSIT = "InTransit"


_SHIPMENT_PROGRESSION = {
    ShipmentStatus.PENDING: ShipmentStatus.APPROVED,
    ShipmentStatus.APPROVED: ShipmentStatus.IN_TRANSIT,
}


def new_tracking_number(created_at: Optional[datetime] = None) -> str:
    stamp = (created_at or utc_now()).strftime("%Y%m%d")
    return f"SHP-{stamp}-{uuid.uuid4().hex[:6].upper()}"


@dataclass
class Shipment:
    """A consignment moving stock from an origin depot to a destination."""

    item_description: str
    quantity: int
    origin: Location
    destination: Location
    priority: PriorityLevel = PriorityLevel.MEDIUM
    status: ShipmentStatus = ShipmentStatus.PENDING
    shipment_id: str = field(default_factory=new_entity_id)
    tracking_number: str = ""
    created_at: datetime = field(default_factory=utc_now)
    is_deleted: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.priority, PriorityLevel):
            self.priority = PriorityLevel.parse(self.priority)
        self.status = ShipmentStatus(self.status)
        if not self.item_description.strip():
            raise ValueError("shipment item_description must be non-empty")
        if self.quantity <= 0:
            raise ValueError("shipment quantity must be > 0")
        if not self.tracking_number:
            self.tracking_number = new_tracking_number(self.created_at)

    def dispatch(self) -> ShipmentStatus:
        """Walk Pending -> Approved -> InTransit; already in transit stays put."""
        while self.status in _SHIPMENT_PROGRESSION:
            self.status = _SHIPMENT_PROGRESSION[self.status]
        return self.status


@dataclass(frozen=True)
class MatchRoute:
    """One allocation step, or the single no-supply outcome for a need."""

    supply_id: Optional[str]
    supply_name: Optional[str]
    supply_latitude: Optional[float]
    supply_longitude: Optional[float]
    need_id: str
    need_title: str
    need_latitude: float
    need_longitude: float
    quantity: int
    distance_km: float
    travel_time_minutes: float
    priority: PriorityLevel
    weighted_score: float
    is_multi_source: bool
    remaining_quantity: int
    fulfillment_status: FulfillmentStatus
    category: Category

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["priority"] = self.priority.value
        payload["fulfillment_status"] = self.fulfillment_status.value
        payload["category"] = self.category.value
        return payload


@dataclass(frozen=True)
class ReservationEvent:
    need_id: str
    supply_id: str
    quantity: int


@dataclass(frozen=True)
class MatchingResult:
    routes: list[MatchRoute]
    reservations: tuple[ReservationEvent, ...]
    allocation_count: int
    elapsed_ms: float
    multi_source_count: int
    no_supply_count: int


@dataclass(frozen=True)
class QuantityObservation:
    timestamp: datetime
    quantity: int
    category: Category


@dataclass(frozen=True)
class DemandLocation:
    latitude: float
    longitude: float
    quantity: int


@dataclass(frozen=True)
class DepletionPrediction:
    minutes_to_depletion: int
    consumption_velocity: float
    is_critical: bool
    velocity_source: VelocitySource

    @property
    def is_estimate(self) -> bool:
        return self.velocity_source is not VelocitySource.MEASURED

    def to_dict(self) -> dict[str, Any]:
        return {
            "minutes_to_depletion": self.minutes_to_depletion,
            "consumption_velocity": self.consumption_velocity,
            "is_critical": self.is_critical,
            "velocity_source": self.velocity_source.value,
            "is_estimate": self.is_estimate,
        }


@dataclass(frozen=True)
class Insight:
    kind: str
    message: str
    category: Optional[Category] = None
    supply_id: Optional[str] = None
    value: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "category": self.category.value if self.category is not None else None,
            "supply_id": self.supply_id,
            "value": self.value,
        }


@dataclass(frozen=True)
class HeatmapPoint:
    latitude: float
    longitude: float
    intensity: float


@dataclass(frozen=True)
class RunSummary:
    timestamp: datetime
    allocations: int
    elapsed_ms: float
    multi_source_count: int


@dataclass(frozen=True)
class MetricsSnapshot:
    total_runs: int
    total_allocations: int
    total_elapsed_ms: float
    multi_source_matches: int
    estimated_manual_minutes: float
    time_saved_minutes: float
    history: list[RunSummary]
