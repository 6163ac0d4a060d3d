"""Domain-level validation rules for forecasting and insight thresholds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from relief.utils.config import Settings


@dataclass(frozen=True)
class ForecastConfig:
    velocity_window: int
    fulfillment_window_minutes: float
    critical_threshold_minutes: int
    never_minutes: int
    cold_start_placeholder: bool
    placeholder_min_velocity: int
    placeholder_max_velocity: int
    random_seed: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ForecastConfig":
        return cls(
            velocity_window=settings.forecast_velocity_window,
            fulfillment_window_minutes=settings.forecast_fulfillment_window_minutes,
            critical_threshold_minutes=settings.forecast_critical_threshold_minutes,
            never_minutes=settings.forecast_never_minutes,
            cold_start_placeholder=settings.forecast_cold_start_placeholder,
            placeholder_min_velocity=settings.forecast_placeholder_min_velocity,
            placeholder_max_velocity=settings.forecast_placeholder_max_velocity,
            random_seed=settings.forecast_random_seed,
        )


@dataclass(frozen=True)
class TrendConfig:
    min_observations: int
    window: int
    increase_threshold: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrendConfig":
        return cls(
            min_observations=settings.insight_trend_min_observations,
            window=settings.insight_trend_window,
            increase_threshold=settings.insight_trend_increase_threshold,
        )


def validate_forecast_config(config: ForecastConfig) -> None:
    if config.velocity_window < 2:
        raise ValueError("velocity_window must be >= 2")
    if config.fulfillment_window_minutes <= 0:
        raise ValueError("fulfillment_window_minutes must be > 0")
    if config.critical_threshold_minutes < 0:
        raise ValueError("critical_threshold_minutes must be >= 0")
    if config.never_minutes <= config.critical_threshold_minutes:
        raise ValueError("never_minutes must exceed critical_threshold_minutes")
    if config.placeholder_min_velocity <= 0:
        raise ValueError("placeholder_min_velocity must be > 0")
    if config.placeholder_max_velocity <= config.placeholder_min_velocity:
        raise ValueError("placeholder_max_velocity must be > placeholder_min_velocity")
    if config.random_seed is not None and config.random_seed < 0:
        raise ValueError("random_seed must be >= 0")


def validate_trend_config(config: TrendConfig) -> None:
    if config.min_observations < 1:
        raise ValueError("min_observations must be >= 1")
    if config.window < 1:
        raise ValueError("window must be >= 1")
    if config.increase_threshold < 0.0:
        raise ValueError("increase_threshold must be >= 0")
