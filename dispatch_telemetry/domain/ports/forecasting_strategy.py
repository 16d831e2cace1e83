"""Domain port for pluggable forecasting strategies."""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from dispatch_telemetry.domain.entities.forecasting import (
    ForecastingMethod,
    ForecastResult,
)


@runtime_checkable
class IForecastingStrategy(Protocol):
    """Fits a model over a value series and forecasts from it."""

    method: ForecastingMethod

    def fit(self, values: Sequence[float], horizon: int, seed: int) -> Any:
        """Fit a model; the returned handle must be picklable."""
        ...

    def forecast(
        self, model: Any, horizon: int, confidence_level: float
    ) -> ForecastResult:
        """Forecast ``horizon`` steps ahead of the fitted series."""
        ...
