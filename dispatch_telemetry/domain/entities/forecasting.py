"""
Domain Entities - Forecasting

Configuration, strategy identifiers and results of the per-metric
forecasting engine.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Tuple

from dispatch_telemetry.domain.entities.errors import ArgumentInvalidError


class ForecastingMethod(str, Enum):
    """Closed set of forecasting strategies."""

    SSA = "ssa"
    EXPONENTIAL_SMOOTHING = "exponential_smoothing"
    MOVING_AVERAGE = "moving_average"
    ENSEMBLE = "ensemble"

    @property
    def label(self) -> str:
        """Display name used in operation labels and messages."""
        return _METHOD_LABELS[self]


_METHOD_LABELS = {
    ForecastingMethod.SSA: "SSA",
    ForecastingMethod.EXPONENTIAL_SMOOTHING: "ExponentialSmoothing",
    ForecastingMethod.MOVING_AVERAGE: "MovingAverage",
    ForecastingMethod.ENSEMBLE: "Ensemble",
}


@dataclass(frozen=True)
class ForecastingConfiguration:
    """Engine-wide forecasting options, fixed at construction."""

    default_horizon: int = 12
    default_method: ForecastingMethod = ForecastingMethod.SSA
    minimum_data_points: int = 10
    training_window: timedelta = timedelta(days=7)
    auto_train_on_forecast: bool = True
    seed: int = 42
    confidence_level: float = 0.95

    def __post_init__(self) -> None:
        if self.default_horizon <= 0:
            raise ArgumentInvalidError(
                "Default forecast horizon must be positive", "default_horizon"
            )
        if self.minimum_data_points <= 0:
            raise ArgumentInvalidError(
                "Minimum data points must be positive", "minimum_data_points"
            )
        if self.training_window <= timedelta(0):
            raise ArgumentInvalidError(
                "Training window must be a positive duration", "training_window"
            )
        if not 0.0 < self.confidence_level < 1.0:
            raise ArgumentInvalidError(
                "Confidence level must be between 0 (exclusive) and 1 (exclusive)",
                "confidence_level",
            )


@dataclass(frozen=True)
class ForecastResult:
    """Point forecast with its confidence band, one entry per step."""

    forecasted_values: Tuple[float, ...]
    lower_bound: Tuple[float, ...]
    upper_bound: Tuple[float, ...]

    @property
    def horizon(self) -> int:
        return len(self.forecasted_values)


@dataclass(frozen=True)
class ForecastModelRecord:
    """A trained model handle stored for one metric."""

    metric_name: str
    model: Any
    method: ForecastingMethod
    trained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
