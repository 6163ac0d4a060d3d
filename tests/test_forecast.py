from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from relief.domain.models import Category, VelocitySource
from relief.services.consumption_service import ConsumptionTracker
from relief.services.forecast_service import DepletionForecaster
from relief.utils.config import get_settings


BASE_TIME = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self) -> None:
        self.current = BASE_TIME

    def __call__(self) -> datetime:
        return self.current

    def advance(self, minutes: float) -> None:
        self.current += timedelta(minutes=minutes)


def _build_forecaster(**overrides):
    settings = replace(get_settings(), forecast_random_seed=42, **overrides)
    clock = FakeClock()
    tracker = ConsumptionTracker(settings=settings, clock=clock)
    return DepletionForecaster(tracker=tracker, settings=settings), tracker, clock


# --- ConsumptionTracker ---

def test_tracker_demand_history_is_fifo_bounded():
    _, tracker, _ = _build_forecaster()
    for quantity in range(1, 121):
        tracker.record_demand(Category.WATER, quantity, 41.0, 29.0)

    history = tracker.demand_history(Category.WATER)
    assert len(history) == 100
    assert history[0].quantity == 21
    assert history[-1].quantity == 120
    assert len(tracker.demand_locations(Category.WATER)) == 100


def test_tracker_consumption_history_is_fifo_bounded():
    _, tracker, _ = _build_forecaster()
    for quantity in range(1, 61):
        tracker.record_consumption("supply-1", Category.WATER, quantity)

    history = tracker.consumption_history("supply-1")
    assert len(history) == 50
    assert history[0].quantity == 11


def test_tracker_observations_carry_their_category():
    _, tracker, clock = _build_forecaster()
    tracker.record_consumption("supply-1", "food", 12)
    clock.advance(5)
    tracker.record_demand("Water", 30, 41.0, 29.0)

    consumed = tracker.consumption_history("supply-1")[0]
    assert consumed.category is Category.FOOD
    assert consumed.quantity == 12
    assert consumed.timestamp == BASE_TIME
    assert tracker.demand_history(Category.WATER)[0].category is Category.WATER


def test_tracker_reset_consumption_only_touches_one_supply():
    _, tracker, _ = _build_forecaster()
    tracker.record_consumption("supply-1", Category.WATER, 10)
    tracker.record_consumption("supply-2", Category.WATER, 10)
    tracker.record_demand("water", 10, 41.0, 29.0)

    tracker.reset_consumption("supply-1")
    tracker.reset_consumption("never-seen")

    assert tracker.consumption_history("supply-1") == []
    assert len(tracker.consumption_history("supply-2")) == 1
    assert tracker.demand_categories() == [Category.WATER]


def test_tracker_reset_clears_everything():
    _, tracker, _ = _build_forecaster()
    tracker.record_consumption("supply-1", Category.FOOD, 10)
    tracker.record_demand(Category.FOOD, 10, 41.0, 29.0)

    tracker.reset()

    assert tracker.demand_categories() == []
    assert tracker.demand_history(Category.FOOD) == []
    assert tracker.consumption_history("supply-1") == []


def test_tracker_rejects_non_positive_limits():
    settings = replace(get_settings(), tracker_consumption_history_limit=0)
    with pytest.raises(ValueError):
        ConsumptionTracker(settings=settings)


# --- DepletionForecaster ---

def test_empty_stock_is_critical_immediately():
    forecaster, _, _ = _build_forecaster()

    prediction = forecaster.predict("supply-1", Category.WATER, 0)

    assert prediction.minutes_to_depletion == 0
    assert prediction.consumption_velocity == 0.0
    assert prediction.is_critical is True
    assert prediction.velocity_source is VelocitySource.NONE


def test_measured_velocity_from_consumption_span():
    forecaster, tracker, clock = _build_forecaster()
    tracker.record_consumption("supply-1", Category.WATER, 30)
    clock.advance(10)
    tracker.record_consumption("supply-1", Category.WATER, 30)

    prediction = forecaster.predict("supply-1", Category.WATER, 120)

    assert prediction.consumption_velocity == pytest.approx(6.0)
    assert prediction.minutes_to_depletion == 20
    assert prediction.is_critical is True
    assert prediction.velocity_source is VelocitySource.MEASURED
    assert prediction.is_estimate is False


def test_measured_velocity_only_uses_recent_window():
    forecaster, tracker, clock = _build_forecaster(forecast_velocity_window=2)
    tracker.record_consumption("supply-1", Category.WATER, 1000)
    clock.advance(1)
    tracker.record_consumption("supply-1", Category.WATER, 10)
    clock.advance(10)
    tracker.record_consumption("supply-1", Category.WATER, 10)

    prediction = forecaster.predict("supply-1", Category.WATER, 100)

    assert prediction.consumption_velocity == pytest.approx(2.0)
    assert prediction.minutes_to_depletion == 50


def test_single_consumption_record_falls_back_to_category_average():
    forecaster, tracker, _ = _build_forecaster()
    tracker.record_consumption("supply-1", Category.WATER, 30)
    tracker.record_demand(Category.WATER, 60, 41.0, 29.0)
    tracker.record_demand(Category.WATER, 120, 41.0, 29.0)

    prediction = forecaster.predict("supply-1", Category.WATER, 300)

    assert prediction.consumption_velocity == pytest.approx(3.0)
    assert prediction.minutes_to_depletion == 100
    assert prediction.is_critical is False
    assert prediction.velocity_source is VelocitySource.CATEGORY_AVERAGE
    assert prediction.is_estimate is True


def test_simultaneous_consumption_records_are_not_a_measurement():
    forecaster, tracker, _ = _build_forecaster(forecast_cold_start_placeholder=False)
    tracker.record_consumption("supply-1", Category.WATER, 30)
    tracker.record_consumption("supply-1", Category.WATER, 30)

    prediction = forecaster.predict("supply-1", Category.WATER, 300)

    assert prediction.velocity_source is VelocitySource.NONE


def test_cold_start_placeholder_is_bounded_and_flagged():
    forecaster, _, _ = _build_forecaster()

    prediction = forecaster.predict("supply-1", Category.SHELTER, 400)

    assert prediction.velocity_source is VelocitySource.PLACEHOLDER
    assert prediction.is_estimate is True
    assert 5 <= prediction.consumption_velocity < 20
    assert prediction.minutes_to_depletion == int(400 / prediction.consumption_velocity)


def test_cold_start_placeholder_is_reproducible_with_seed():
    first, _, _ = _build_forecaster()
    second, _, _ = _build_forecaster()

    assert (
        first.predict("supply-1", Category.FOOD, 500)
        == second.predict("supply-1", Category.FOOD, 500)
    )


def test_disabled_placeholder_reports_never_sentinel():
    forecaster, _, _ = _build_forecaster(forecast_cold_start_placeholder=False)

    prediction = forecaster.predict("supply-1", Category.FUEL, 400)

    assert prediction.minutes_to_depletion == 999
    assert prediction.consumption_velocity == 0.0
    assert forecaster.config.never_minutes == 999
    assert prediction.is_critical is False
    assert prediction.velocity_source is VelocitySource.NONE


def test_restock_discards_pre_restock_velocity():
    forecaster, tracker, clock = _build_forecaster(forecast_cold_start_placeholder=False)
    tracker.record_consumption("supply-1", Category.MEDICAL, 100)
    clock.advance(5)
    tracker.record_consumption("supply-1", Category.MEDICAL, 100)
    assert forecaster.predict("supply-1", Category.MEDICAL, 50).velocity_source is VelocitySource.MEASURED

    tracker.reset_consumption("supply-1")
    prediction = forecaster.predict("supply-1", Category.MEDICAL, 500)

    assert prediction.velocity_source is VelocitySource.NONE
    assert prediction.minutes_to_depletion == 999


def test_reported_velocity_is_rounded():
    forecaster, tracker, _ = _build_forecaster()
    tracker.record_demand(Category.HYGIENE, 100, 41.0, 29.0)

    prediction = forecaster.predict("supply-1", Category.HYGIENE, 1001)

    assert prediction.consumption_velocity == 3.33
    assert prediction.minutes_to_depletion == 300
