"""Demo working set and guided chaos scenario for the Istanbul deployment."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from relief.domain.models import (
    Category,
    Location,
    Need,
    PriorityLevel,
    Shipment,
    Supply,
    utc_now,
)


ZONE_COORDINATES: dict[str, tuple[float, float, str]] = {
    "Zone A": (41.0082, 28.9784, "Taksim Square, Beyoglu"),
    "Zone B": (41.0136, 28.9550, "Kadikoy Pier, Kadikoy"),
    "Zone C": (41.0370, 29.0340, "Besiktas Square, Besiktas"),
    "Zone D": (41.0766, 29.0267, "Uskudar Square, Uskudar"),
    "Zone E": (41.0500, 28.9900, "Bakirkoy Coast, Bakirkoy"),
    "Central Warehouse": (41.0195, 28.8947, "Ikitelli OSB, Basaksehir"),
    "Warehouse A": (41.0041, 28.9260, "Tuzla Industrial Zone, Tuzla"),
    "Warehouse B": (41.0550, 28.9450, "Esenyurt Industrial Area, Esenyurt"),
    "Warehouse C": (40.9910, 29.0270, "Pendik Depot, Pendik"),
    "Warehouse D": (41.0870, 29.0530, "Umraniye Logistics, Umraniye"),
    "Warehouse E": (41.0450, 28.8990, "Zeytinburnu Depot, Zeytinburnu"),
}
DEFAULT_ZONE = "Zone A"


def zone_location(name: str) -> Location:
    """Resolve a named zone or warehouse; unknown names raise KeyError."""
    latitude, longitude, address = ZONE_COORDINATES[name]
    return Location(latitude=latitude, longitude=longitude, address=address)


def demo_needs(now: Optional[datetime] = None) -> list[Need]:
    created = now or utc_now()
    rows = [
        ("Emergency humanitarian aid", Category.MEDICAL, 200, "Zone A", PriorityLevel.CRITICAL, 0),
        ("Medical intervention kits", Category.MEDICAL, 50, "Zone B", PriorityLevel.CRITICAL, 0),
        ("Drinking water supply", Category.WATER, 300, "Zone C", PriorityLevel.MEDIUM, 150),
        ("Shelter support", Category.SHELTER, 150, "Zone D", PriorityLevel.HIGH, 0),
        ("Hygiene packs", Category.HYGIENE, 100, "Zone E", PriorityLevel.HIGH, 0),
        ("Food aid", Category.FOOD, 200, "Zone A", PriorityLevel.MEDIUM, 0),
    ]
    return [
        Need(
            title=title,
            category=category,
            quantity_required=quantity,
            location=zone_location(zone),
            priority=priority,
            quantity_fulfilled=fulfilled,
            created_at=created - timedelta(seconds=len(rows) - index),
        )
        for index, (title, category, quantity, zone, priority, fulfilled) in enumerate(rows)
    ]


def demo_supplies() -> list[Supply]:
    rows = [
        ("Medical depot Alpha", Category.MEDICAL, 200, "Warehouse A"),
        ("Medical depot Beta", Category.MEDICAL, 50, "Warehouse B"),
        ("Water distribution centre", Category.WATER, 1000, "Warehouse C"),
        ("Shelter materials depot", Category.SHELTER, 300, "Warehouse D"),
        ("Food distribution centre", Category.FOOD, 600, "Warehouse E"),
        ("Hygiene products depot", Category.HYGIENE, 250, "Central Warehouse"),
    ]
    return [
        Supply(
            name=name,
            category=category,
            quantity_available=quantity,
            location=zone_location(warehouse),
        )
        for name, category, quantity, warehouse in rows
    ]


def demo_shipments() -> list[Shipment]:
    return [
        Shipment(
            item_description="Medical supply shipment",
            quantity=100,
            origin=zone_location("Central Warehouse"),
            destination=zone_location("Zone A"),
            priority=PriorityLevel.HIGH,
        )
    ]


def guided_scenario(now: Optional[datetime] = None) -> tuple[list[Need], list[Supply]]:
    """Medical demand fits its stock, Water outruns it, Clothing and Fuel have none."""
    created = now or utc_now()
    need_rows = [
        ("Emergency aid #1", Category.MEDICAL, 100, 40.97, 28.87, "Fatih Centre, Fatih", PriorityLevel.CRITICAL),
        ("Medical kits #2", Category.MEDICAL, 80, 40.99, 28.92, "Besiktas Coast, Besiktas", PriorityLevel.CRITICAL),
        ("First aid support #3", Category.MEDICAL, 70, 41.01, 28.97, "Kadikoy Moda, Kadikoy", PriorityLevel.HIGH),
        ("Water supply request #4", Category.WATER, 200, 41.03, 29.02, "Uskudar Bazaar, Uskudar", PriorityLevel.HIGH),
        ("Drinking water #5", Category.WATER, 180, 41.05, 29.07, "Bakirkoy Centre, Bakirkoy", PriorityLevel.MEDIUM),
        ("Clean water support #6", Category.WATER, 160, 41.07, 28.89, "Sisli Square, Sisli", PriorityLevel.MEDIUM),
        ("Emergency water #7", Category.WATER, 150, 41.09, 28.94, "Maltepe Coast, Maltepe", PriorityLevel.MEDIUM),
        ("Clothing aid #8", Category.CLOTHING, 100, 41.02, 29.05, "Atasehir Centre, Atasehir", PriorityLevel.HIGH),
        ("Blanket request #9", Category.CLOTHING, 150, 41.04, 28.86, "Pendik Centre, Pendik", PriorityLevel.MEDIUM),
        ("Fuel support #10", Category.FUEL, 200, 41.06, 29.00, "Kartal Coast, Kartal", PriorityLevel.CRITICAL),
    ]
    needs = [
        Need(
            title=title,
            category=category,
            quantity_required=quantity,
            location=Location(latitude=latitude, longitude=longitude, address=address),
            priority=priority,
            created_at=created - timedelta(seconds=len(need_rows) - index),
        )
        for index, (title, category, quantity, latitude, longitude, address, priority) in enumerate(
            need_rows
        )
    ]
    supplies = [
        Supply(
            name="Medical supplies depot",
            category=Category.MEDICAL,
            quantity_available=250,
            location=Location(41.00, 28.90, "Ikitelli Logistics Base, Basaksehir"),
        ),
        Supply(
            name="Water distribution centre",
            category=Category.WATER,
            quantity_available=300,
            location=Location(41.04, 29.00, "Tuzla Logistics Centre, Tuzla"),
        ),
        Supply(
            name="Shelter depot",
            category=Category.SHELTER,
            quantity_available=500,
            location=Location(41.08, 29.04, "Hadimkoy Depot, Arnavutkoy"),
        ),
    ]
    return needs, supplies
