"""Tests for forecast and insight threshold validation logic.

Covers every validation branch in validate_forecast_config() and
validate_trend_config().
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from relief.domain.constraints import (
    ForecastConfig,
    TrendConfig,
    validate_forecast_config,
    validate_trend_config,
)
from relief.utils.config import get_settings


def valid_forecast_config(**overrides) -> ForecastConfig:
    """Return a valid baseline ForecastConfig, optionally overriding fields."""
    defaults = {
        "velocity_window": 10,
        "fulfillment_window_minutes": 30.0,
        "critical_threshold_minutes": 30,
        "never_minutes": 999,
        "cold_start_placeholder": True,
        "placeholder_min_velocity": 5,
        "placeholder_max_velocity": 20,
        "random_seed": 42,
    }
    defaults.update(overrides)
    return ForecastConfig(**defaults)


def valid_trend_config(**overrides) -> TrendConfig:
    defaults = {
        "min_observations": 3,
        "window": 5,
        "increase_threshold": 0.3,
    }
    defaults.update(overrides)
    return TrendConfig(**defaults)


# --- Baseline pass ---

def test_valid_configs_pass() -> None:
    """Fully valid configs must not raise."""
    validate_forecast_config(valid_forecast_config())
    validate_trend_config(valid_trend_config())


def test_default_settings_produce_valid_configs() -> None:
    settings = get_settings()
    validate_forecast_config(ForecastConfig.from_settings(settings))
    validate_trend_config(TrendConfig.from_settings(settings))


def test_from_settings_maps_overrides() -> None:
    settings = replace(get_settings(), forecast_velocity_window=4, forecast_random_seed=7)
    config = ForecastConfig.from_settings(settings)
    assert config.velocity_window == 4
    assert config.random_seed == 7


# --- velocity_window ---

def test_velocity_window_below_two_raises() -> None:
    with pytest.raises(ValueError):
        validate_forecast_config(valid_forecast_config(velocity_window=1))


# --- fulfillment_window_minutes ---

def test_fulfillment_window_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_forecast_config(valid_forecast_config(fulfillment_window_minutes=0.0))


# --- critical_threshold_minutes / never_minutes ---

def test_negative_critical_threshold_raises() -> None:
    with pytest.raises(ValueError):
        validate_forecast_config(valid_forecast_config(critical_threshold_minutes=-1))


def test_never_sentinel_not_above_threshold_raises() -> None:
    with pytest.raises(ValueError):
        validate_forecast_config(valid_forecast_config(never_minutes=30))


# --- placeholder bounds ---

def test_placeholder_min_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_forecast_config(valid_forecast_config(placeholder_min_velocity=0))


def test_placeholder_max_not_above_min_raises() -> None:
    with pytest.raises(ValueError):
        validate_forecast_config(valid_forecast_config(placeholder_max_velocity=5))


# --- random_seed ---

def test_negative_seed_raises() -> None:
    with pytest.raises(ValueError):
        validate_forecast_config(valid_forecast_config(random_seed=-1))


def test_missing_seed_is_allowed() -> None:
    validate_forecast_config(valid_forecast_config(random_seed=None))


# --- trend thresholds ---

def test_trend_min_observations_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_trend_config(valid_trend_config(min_observations=0))


def test_trend_window_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_trend_config(valid_trend_config(window=0))


def test_trend_negative_threshold_raises() -> None:
    with pytest.raises(ValueError):
        validate_trend_config(valid_trend_config(increase_threshold=-0.1))
