"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


def _env_str(key: str, default: str) -> str:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(key: str) -> Optional[int]:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Settings:
    app_name: str = "Relief Allocation Engine"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = Path("data/relief.db")
    seed_demo_data: bool = True

    # Matching
    matching_travel_speed_kmh: float = 40.0
    priority_escalation_minutes: int = 240

    # Tracker retention
    tracker_demand_history_limit: int = 100
    tracker_consumption_history_limit: int = 50

    # Depletion forecasting
    forecast_velocity_window: int = 10
    forecast_fulfillment_window_minutes: float = 30.0
    forecast_critical_threshold_minutes: int = 30
    forecast_never_minutes: int = 999
    forecast_cold_start_placeholder: bool = True
    forecast_placeholder_min_velocity: int = 5
    forecast_placeholder_max_velocity: int = 20
    forecast_random_seed: Optional[int] = None

    # Insights
    insight_trend_min_observations: int = 3
    insight_trend_window: int = 5
    insight_trend_increase_threshold: float = 0.3

    # Run metrics
    metrics_history_limit: int = 20
    metrics_manual_minutes_per_allocation: float = 3.0

    resupply_default_quantity: int = 500


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants via dataclasses.replace."""
    return Settings(
        app_name=_env_str("APP_NAME", Settings.app_name),
        app_version=_env_str("APP_VERSION", Settings.app_version),
        log_level=_env_str("LOG_LEVEL", Settings.log_level),
        database_path=Path(_env_str("DATABASE_PATH", str(Settings.database_path))),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", Settings.seed_demo_data),
        matching_travel_speed_kmh=_env_float(
            "MATCHING_TRAVEL_SPEED_KMH", Settings.matching_travel_speed_kmh
        ),
        priority_escalation_minutes=_env_int(
            "PRIORITY_ESCALATION_MINUTES", Settings.priority_escalation_minutes
        ),
        tracker_demand_history_limit=_env_int(
            "TRACKER_DEMAND_HISTORY_LIMIT", Settings.tracker_demand_history_limit
        ),
        tracker_consumption_history_limit=_env_int(
            "TRACKER_CONSUMPTION_HISTORY_LIMIT", Settings.tracker_consumption_history_limit
        ),
        forecast_velocity_window=_env_int(
            "FORECAST_VELOCITY_WINDOW", Settings.forecast_velocity_window
        ),
        forecast_fulfillment_window_minutes=_env_float(
            "FORECAST_FULFILLMENT_WINDOW_MINUTES", Settings.forecast_fulfillment_window_minutes
        ),
        forecast_critical_threshold_minutes=_env_int(
            "FORECAST_CRITICAL_THRESHOLD_MINUTES", Settings.forecast_critical_threshold_minutes
        ),
        forecast_never_minutes=_env_int("FORECAST_NEVER_MINUTES", Settings.forecast_never_minutes),
        forecast_cold_start_placeholder=_env_bool(
            "FORECAST_COLD_START_PLACEHOLDER", Settings.forecast_cold_start_placeholder
        ),
        forecast_placeholder_min_velocity=_env_int(
            "FORECAST_PLACEHOLDER_MIN_VELOCITY", Settings.forecast_placeholder_min_velocity
        ),
        forecast_placeholder_max_velocity=_env_int(
            "FORECAST_PLACEHOLDER_MAX_VELOCITY", Settings.forecast_placeholder_max_velocity
        ),
        forecast_random_seed=_env_optional_int("FORECAST_RANDOM_SEED"),
        insight_trend_min_observations=_env_int(
            "INSIGHT_TREND_MIN_OBSERVATIONS", Settings.insight_trend_min_observations
        ),
        insight_trend_window=_env_int("INSIGHT_TREND_WINDOW", Settings.insight_trend_window),
        insight_trend_increase_threshold=_env_float(
            "INSIGHT_TREND_INCREASE_THRESHOLD", Settings.insight_trend_increase_threshold
        ),
        metrics_history_limit=_env_int("METRICS_HISTORY_LIMIT", Settings.metrics_history_limit),
        metrics_manual_minutes_per_allocation=_env_float(
            "METRICS_MANUAL_MINUTES_PER_ALLOCATION",
            Settings.metrics_manual_minutes_per_allocation,
        ),
        resupply_default_quantity=_env_int(
            "RESUPPLY_DEFAULT_QUANTITY", Settings.resupply_default_quantity
        ),
    )
