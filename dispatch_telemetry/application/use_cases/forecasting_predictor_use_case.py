"""
Application Use Case - Forecast Prediction

Produces forecasts from the stored model of a metric, training one on first
use when the configuration allows it.
"""

import asyncio
import threading
from typing import Optional

import structlog

from dispatch_telemetry.application.use_cases.forecasting_trainer_use_case import (
    ForecastingTrainer,
)
from dispatch_telemetry.domain.entities.errors import (
    ForecastError,
    OperationCancelledError,
)
from dispatch_telemetry.domain.entities.forecasting import (
    ForecastingConfiguration,
    ForecastModelRecord,
    ForecastResult,
)
from dispatch_telemetry.domain.services.argument_validator import (
    ensure_metric_name,
    ensure_positive,
)
from dispatch_telemetry.infrastructure.repositories.forecast_model_repository import (
    ForecastModelRepository,
)
from dispatch_telemetry.infrastructure.services.forecasting_method_registry import (
    ForecastingMethodRegistry,
)

logger = structlog.get_logger(__name__)


def _enclose(result: ForecastResult) -> ForecastResult:
    """Widen the band where needed so that lower <= forecast <= upper at every step."""
    lower = tuple(
        min(bound, value)
        for bound, value in zip(result.lower_bound, result.forecasted_values)
    )
    upper = tuple(
        max(bound, value)
        for bound, value in zip(result.upper_bound, result.forecasted_values)
    )
    return ForecastResult(result.forecasted_values, lower, upper)


class ForecastingPredictor:
    """Serves forecasts for metrics with a trained model."""

    def __init__(
        self,
        trainer: ForecastingTrainer,
        model_repository: ForecastModelRepository,
        method_registry: ForecastingMethodRegistry,
        configuration: Optional[ForecastingConfiguration] = None,
    ):
        self.trainer = trainer
        self.model_repository = model_repository
        self.method_registry = method_registry
        self.configuration = configuration or ForecastingConfiguration()

    def _resolve_horizon(self, horizon: Optional[int]) -> int:
        if horizon is None:
            return self.configuration.default_horizon
        return ensure_positive(horizon, "horizon")

    def _forecast(
        self, record: ForecastModelRecord, horizon: int
    ) -> ForecastResult:
        strategy = self.method_registry.get_strategy(record.method)
        try:
            result = strategy.forecast(
                record.model, horizon, self.configuration.confidence_level
            )
        except Exception as e:
            logger.error(
                "forecast.prediction_failed",
                metric_name=record.metric_name,
                method=record.method.value,
                error=str(e),
                exc_info=e,
            )
            raise ForecastError(record.metric_name, record.method, e) from e

        if result.horizon != horizon:
            raise ForecastError(
                record.metric_name,
                record.method,
                ValueError(f"expected {horizon} values, got {result.horizon}"),
            )
        return _enclose(result)

    def predict(
        self, metric_name: str, horizon: Optional[int] = None
    ) -> Optional[ForecastResult]:
        """
        Forecast ``horizon`` steps of ``metric_name``.

        Returns:
            The forecast, or None when no model exists and auto-training is off

        Raises:
            ArgumentInvalidError: On a blank name or non-positive horizon
            InsufficientDataError: If auto-training finds too little history
            ForecastError: If the model fails to forecast
        """
        ensure_metric_name(metric_name)
        steps = self._resolve_horizon(horizon)

        record = self.model_repository.get(metric_name)
        if record is None:
            if not self.configuration.auto_train_on_forecast:
                logger.debug("forecast.no_model", metric_name=metric_name)
                return None
            record = self.trainer.train_model(metric_name)

        return self._forecast(record, steps)

    async def predict_async(
        self,
        metric_name: str,
        horizon: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[ForecastResult]:
        ensure_metric_name(metric_name)
        steps = self._resolve_horizon(horizon)
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError("Forecast", {"metric_name": metric_name})

        record = self.model_repository.get(metric_name)
        if record is None:
            if not self.configuration.auto_train_on_forecast:
                return None
            record = await self.trainer.train_model_async(
                metric_name, cancel_event=cancel_event
            )

        return await asyncio.to_thread(self._forecast, record, steps)
