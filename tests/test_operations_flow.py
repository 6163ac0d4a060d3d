from __future__ import annotations

from collections import Counter
from dataclasses import replace
import sqlite3

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from relief.controllers.operations_controller import router as operations_router
from relief.domain.models import (
    Category,
    FulfillmentStatus,
    PriorityLevel,
    ShipmentStatus,
    VelocitySource,
)
from relief.repository import data_repository
from relief.repository.data_repository import DataRepository
from relief.repository.seed_data import zone_location
from relief.services.operations_service import (
    OperationsService,
    OperationsValidationError,
    ShipmentNotFoundError,
    SupplyNotFoundError,
)
from relief.services.geo_service import estimate_travel_minutes, haversine_km
from relief.services.insight_service import SUPPLY_SHORTAGE
from relief.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        forecast_random_seed=42,
    )


def _build_service(tmp_path, filename: str = "relief.db") -> tuple[OperationsService, DataRepository]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_demo_data_if_empty()
    return OperationsService(repository=repository, settings=settings), repository


def _build_test_app(tmp_path) -> tuple[FastAPI, OperationsService, DataRepository]:
    service, repository = _build_service(tmp_path, "operations_flow.db")
    app = FastAPI()
    app.include_router(operations_router)
    app.state.repository = repository
    app.state.operations_service = service
    return app, service, repository


def test_seeding_is_idempotent(tmp_path):
    _, repository = _build_service(tmp_path)
    repository.seed_demo_data_if_empty()

    assert repository.count_needs() == 6
    assert repository.count_supplies() == 6


def test_demo_working_set_is_fully_served_and_persisted(tmp_path):
    service, repository = _build_service(tmp_path)

    report = service.run_matching()

    assert len(report.routes) == 6
    assert all(route.fulfillment_status is FulfillmentStatus.FULL for route in report.routes)
    assert report.routes[0].priority is PriorityLevel.CRITICAL
    assert report.allocation_count == 6
    assert report.metrics.total_runs == 1

    needs = repository.load_needs()
    assert all(need.is_fulfilled for need in needs)
    medical = [supply for supply in repository.load_supplies() if supply.category is Category.MEDICAL]
    assert sum(supply.allocatable_quantity for supply in medical) == 0
    assert service.latest_routes() == report.routes


def test_second_pass_over_fulfilled_set_is_a_no_op(tmp_path):
    service, repository = _build_service(tmp_path)
    service.run_matching()
    supplies_before = repository.load_supplies()

    report = service.run_matching()

    assert report.routes == []
    assert repository.load_supplies() == supplies_before
    assert service.efficiency().total_runs == 2


def test_guided_scenario_outcome(tmp_path):
    service, repository = _build_service(tmp_path)

    report = service.load_scenario()

    statuses = Counter(route.fulfillment_status for route in report.routes)
    assert len(report.routes) == 10
    assert statuses[FulfillmentStatus.FULL] == 4
    assert statuses[FulfillmentStatus.PARTIAL] == 1
    assert statuses[FulfillmentStatus.NO_SUPPLY] == 5
    assert repository.count_needs() == 10
    assert repository.count_supplies() == 3


def test_create_need_records_demand(tmp_path):
    service, repository = _build_service(tmp_path)

    need = service.create_need(
        title="Generator fuel",
        category="fuel",
        quantity=40,
        location=zone_location("Zone C"),
        priority="Critical",
    )

    assert repository.get_need(need.need_id) == need
    assert [record.quantity for record in service.tracker.demand_history(Category.FUEL)] == [40]


def test_create_need_rejects_invalid_input(tmp_path):
    service, _ = _build_service(tmp_path)

    with pytest.raises(OperationsValidationError):
        service.create_need(
            title="Unknown",
            category="Spaceships",
            quantity=1,
            location=zone_location("Zone A"),
        )


def test_resupply_restores_stock_and_resets_velocity(tmp_path):
    service, repository = _build_service(tmp_path)
    service.run_matching()
    alpha = next(supply for supply in repository.load_supplies() if supply.name == "Medical depot Alpha")
    assert alpha.allocatable_quantity == 0
    assert service.tracker.consumption_history(alpha.supply_id)

    restocked = service.resupply(alpha.supply_id)

    assert restocked.allocatable_quantity == 500
    assert repository.get_supply(alpha.supply_id).allocatable_quantity == 500
    assert service.tracker.consumption_history(alpha.supply_id) == []


def test_resupply_unknown_supply_raises(tmp_path):
    service, _ = _build_service(tmp_path)

    with pytest.raises(SupplyNotFoundError):
        service.resupply("missing-supply")


def test_failed_save_leaves_working_set_untouched(tmp_path, monkeypatch):
    service, repository = _build_service(tmp_path)

    def failing_supply_params(_supply):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(data_repository, "_supply_params", failing_supply_params)

    with pytest.raises(RuntimeError, match="Saving working set failed"):
        service.run_matching()

    needs = repository.load_needs()
    assert {need.category: need.quantity_fulfilled for need in needs}[Category.WATER] == 150
    assert sum(need.quantity_fulfilled for need in needs) == 150
    assert all(supply.quantity_reserved == 0 for supply in repository.load_supplies())


def test_guided_scenario_reports_starved_categories(tmp_path):
    service, _ = _build_service(tmp_path)

    report = service.load_scenario()

    shortages = [insight for insight in report.insights if insight.kind == SUPPLY_SHORTAGE]
    assert [insight.category for insight in shortages] == [
        Category.WATER,
        Category.CLOTHING,
        Category.FUEL,
    ]


def test_demo_run_has_no_shortage_alerts(tmp_path):
    service, _ = _build_service(tmp_path)

    report = service.run_matching()

    assert all(insight.kind != SUPPLY_SHORTAGE for insight in report.insights)


def test_delete_supply_removes_it_from_matching(tmp_path):
    service, repository = _build_service(tmp_path)
    beta = next(supply for supply in repository.load_supplies() if supply.name == "Medical depot Beta")

    service.delete_supply(beta.supply_id)

    assert beta.supply_id not in {row["supply"].supply_id for row in service.list_supplies()}
    report = service.run_matching()
    statuses = Counter(route.fulfillment_status for route in report.routes)
    assert statuses[FulfillmentStatus.NO_SUPPLY] == 1
    with pytest.raises(SupplyNotFoundError):
        service.delete_supply(beta.supply_id)


def test_dispatch_moves_shipment_to_in_transit(tmp_path):
    service, repository = _build_service(tmp_path)
    shipment = service.list_shipments()[0]
    assert shipment.status is ShipmentStatus.PENDING

    receipt = service.dispatch_shipment(shipment.shipment_id)

    expected_km = haversine_km(41.0195, 28.8947, 41.0082, 28.9784)
    assert receipt.previous_status is ShipmentStatus.PENDING
    assert receipt.shipment.status is ShipmentStatus.IN_TRANSIT
    assert receipt.distance_km == pytest.approx(expected_km, abs=0.01)
    assert receipt.travel_time_minutes == pytest.approx(estimate_travel_minutes(expected_km), abs=0.1)
    assert repository.get_shipment(shipment.shipment_id).status is ShipmentStatus.IN_TRANSIT

    again = service.dispatch_shipment(shipment.shipment_id)
    assert again.previous_status is ShipmentStatus.IN_TRANSIT
    assert again.shipment.status is ShipmentStatus.IN_TRANSIT


def test_dispatch_unknown_shipment_raises(tmp_path):
    service, _ = _build_service(tmp_path)

    with pytest.raises(ShipmentNotFoundError):
        service.dispatch_shipment("missing-shipment")


def test_api_end_to_end_flow(tmp_path):
    app, _, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    needs = client.get("/api/needs")
    assert needs.status_code == 200
    assert len(needs.json()) == 6

    supplies = client.get("/api/supplies")
    assert supplies.status_code == 200
    sources = {row["prediction"]["velocity_source"] for row in supplies.json()}
    assert sources <= {source.value for source in VelocitySource}

    match = client.post("/api/match")
    assert match.status_code == 200
    body = match.json()
    assert body["success"] is True
    assert body["total_routes"] == 6
    assert body["efficiency"]["total_runs"] == 1

    routes = client.get("/api/match-routes")
    assert routes.status_code == 200
    assert len(routes.json()) == 6

    created = client.post(
        "/api/needs",
        json={
            "title": "Fuel for generators",
            "category": "Fuel",
            "quantity": 40,
            "priority": "Critical",
            "location": "Zone C",
        },
    )
    assert created.status_code == 201
    need_id = created.json()["need_id"]

    rematch = client.post("/api/match").json()
    assert rematch["no_supply_count"] == 1
    assert rematch["routes"][0]["need_id"] == need_id
    assert rematch["routes"][0]["fulfillment_status"] == "NoSupply"

    heatmap = client.get("/api/ai/heatmap")
    assert heatmap.status_code == 200
    assert heatmap.json()[0]["intensity"] == pytest.approx(1.0)

    efficiency = client.get("/api/efficiency")
    assert efficiency.json()["total_runs"] == 2
    assert client.get("/api/ai/insights").status_code == 200


def test_api_resupply_and_errors(tmp_path):
    app, _, repository = _build_test_app(tmp_path)
    client = TestClient(app)
    supply_id = repository.load_supplies()[0].supply_id

    restocked = client.post(f"/api/supplies/{supply_id}/resupply", json={"quantity": 100})
    assert restocked.status_code == 200
    assert restocked.json()["new_stock"] == 300

    missing = client.post("/api/supplies/missing/resupply")
    assert missing.status_code == 404

    invalid = client.post(
        "/api/needs",
        json={"title": "Bad", "category": "Spaceships", "quantity": 5},
    )
    assert invalid.status_code == 422

    unknown_zone = client.post(
        "/api/needs",
        json={"title": "Lost", "category": "Food", "quantity": 5, "location": "Zone Z"},
    )
    assert unknown_zone.status_code == 422


def test_api_need_lookup_and_withdrawal(tmp_path):
    app, _, repository = _build_test_app(tmp_path)
    client = TestClient(app)
    water = next(need for need in repository.load_needs() if need.category is Category.WATER)

    fetched = client.get(f"/api/needs/{water.need_id}")
    assert fetched.status_code == 200
    assert fetched.json()["status"] == "PartiallyFulfilled"
    assert fetched.json()["category_display"] == "Water & Beverages"
    assert fetched.json()["remaining_quantity"] == 150

    assert client.delete(f"/api/needs/{water.need_id}").status_code == 204
    assert client.get(f"/api/needs/{water.need_id}").status_code == 404
    assert client.delete(f"/api/needs/{water.need_id}").status_code == 404
    assert len(client.get("/api/needs").json()) == 5

    routes = client.post("/api/match").json()["routes"]
    assert water.need_id not in {route["need_id"] for route in routes}


def test_api_simulate_runs_guided_scenario(tmp_path):
    app, _, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/api/simulate")

    assert response.status_code == 200
    statuses = Counter(route["fulfillment_status"] for route in response.json()["routes"])
    assert statuses == {"Full": 4, "Partial": 1, "NoSupply": 5}


def test_api_shipments_and_dispatch(tmp_path):
    app, _, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    shipments = client.get("/api/shipments")
    assert shipments.status_code == 200
    body = shipments.json()
    assert len(body) == 1
    assert body[0]["status"] == "Pending"
    assert body[0]["priority"] == "High"
    assert body[0]["tracking_number"].startswith("SHP-")
    assert body[0]["origin_latitude"] == pytest.approx(41.0195)

    dispatched = client.post(f"/api/dispatch/{body[0]['shipment_id']}")
    assert dispatched.status_code == 200
    assert dispatched.json()["previous_status"] == "Pending"
    assert dispatched.json()["status"] == "InTransit"
    assert dispatched.json()["distance_km"] > 0
    assert dispatched.json()["travel_time_minutes"] > 0

    assert client.get("/api/shipments").json()[0]["status"] == "InTransit"
    assert client.post("/api/dispatch/missing").status_code == 404


def test_api_supply_retirement_and_estimate_flag(tmp_path):
    app, _, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    rows = client.get("/api/supplies").json()
    for row in rows:
        prediction = row["prediction"]
        assert prediction["is_estimate"] == (prediction["velocity_source"] != "measured")

    supply_id = repository.load_supplies()[0].supply_id
    assert client.delete(f"/api/supplies/{supply_id}").status_code == 204
    assert client.delete(f"/api/supplies/{supply_id}").status_code == 404
    assert len(client.get("/api/supplies").json()) == 5


def test_missing_service_returns_503():
    app = FastAPI()
    app.include_router(operations_router)
    client = TestClient(app)

    assert client.get("/api/needs").status_code == 503
