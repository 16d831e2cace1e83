"""
Application Use Case - Forecasting Model Training

Fits a forecasting model for one metric over its recent history and stores
it in the forecast model repository.
"""

import asyncio
import threading
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from dispatch_telemetry.domain.entities.errors import (
    InsufficientDataError,
    ModelTrainingError,
    OperationCancelledError,
)
from dispatch_telemetry.domain.entities.forecasting import (
    ForecastingConfiguration,
    ForecastingMethod,
    ForecastModelRecord,
)
from dispatch_telemetry.domain.repositories.metric_repository import IMetricRepository
from dispatch_telemetry.domain.services.argument_validator import ensure_metric_name
from dispatch_telemetry.infrastructure.repositories.forecast_model_repository import (
    ForecastModelRepository,
)
from dispatch_telemetry.infrastructure.services.forecasting_method_registry import (
    ForecastingMethodRegistry,
)

logger = structlog.get_logger(__name__)


def _check_cancelled(cancel_event: Optional[threading.Event], metric_name: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(
            "Forecast model training", {"metric_name": metric_name}
        )


class ForecastingTrainer:
    """Trains and registers per-metric forecasting models."""

    def __init__(
        self,
        metric_repository: IMetricRepository,
        model_repository: ForecastModelRepository,
        method_registry: ForecastingMethodRegistry,
        configuration: Optional[ForecastingConfiguration] = None,
    ):
        self.metric_repository = metric_repository
        self.model_repository = model_repository
        self.method_registry = method_registry
        self.configuration = configuration or ForecastingConfiguration()

    def _resolve_method(
        self, metric_name: str, method: Optional[ForecastingMethod]
    ) -> ForecastingMethod:
        if method is not None:
            return ForecastingMethod(method)
        return self.method_registry.get_method(metric_name)

    def _training_values(self, metric_name: str) -> List[float]:
        history = self.metric_repository.get_history(
            metric_name, self.configuration.training_window
        )
        return [sample.value for sample in history]

    def has_sufficient_data(self, metric_name: str) -> bool:
        ensure_metric_name(metric_name)
        return (
            len(self._training_values(metric_name))
            >= self.configuration.minimum_data_points
        )

    def _fit(
        self,
        metric_name: str,
        method: ForecastingMethod,
        values: List[float],
        cancel_event: Optional[threading.Event] = None,
    ) -> ForecastModelRecord:
        minimum = self.configuration.minimum_data_points
        if len(values) < minimum:
            raise InsufficientDataError(
                metric_name, f"Train{method.label}Model", minimum, len(values)
            )

        strategy = self.method_registry.get_strategy(method)
        logger.info(
            "forecast.training",
            metric_name=metric_name,
            method=method.value,
            data_points=len(values),
        )
        try:
            model = strategy.fit(
                values, self.configuration.default_horizon, self.configuration.seed
            )
        except Exception as e:
            logger.error(
                "forecast.training_failed",
                metric_name=metric_name,
                method=method.value,
                error=str(e),
                exc_info=e,
            )
            raise ModelTrainingError(method, metric_name, e) from e

        _check_cancelled(cancel_event, metric_name)
        return ForecastModelRecord(
            metric_name=metric_name,
            model=model,
            method=method,
            trained_at=datetime.now(timezone.utc),
        )

    def _register(
        self,
        record: ForecastModelRecord,
        explicit_method: Optional[ForecastingMethod],
    ) -> ForecastModelRecord:
        self.model_repository.store(record)
        if explicit_method is not None:
            self.method_registry.set_method(record.metric_name, record.method)
        logger.info(
            "forecast.trained", metric_name=record.metric_name, method=record.method.value
        )
        return record

    def train_model(
        self, metric_name: str, method: Optional[ForecastingMethod] = None
    ) -> ForecastModelRecord:
        """
        Train a model for ``metric_name``.

        The method is taken from the argument, then from the registry, then
        from the configuration default. Only an explicit method is recorded
        in the registry.

        Raises:
            ArgumentInvalidError: If the metric name is blank
            InsufficientDataError: If the training window holds too few samples
            ModelTrainingError: If the strategy fails to fit
        """
        ensure_metric_name(metric_name)
        resolved = self._resolve_method(metric_name, method)
        record = self._fit(metric_name, resolved, self._training_values(metric_name))
        return self._register(record, method)

    async def train_model_async(
        self,
        metric_name: str,
        method: Optional[ForecastingMethod] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ForecastModelRecord:
        """Asynchronous ``train_model``; nothing is stored once cancellation is observed."""
        ensure_metric_name(metric_name)
        resolved = self._resolve_method(metric_name, method)
        _check_cancelled(cancel_event, metric_name)

        values = self._training_values(metric_name)
        record = await asyncio.to_thread(
            self._fit, metric_name, resolved, values, cancel_event
        )

        _check_cancelled(cancel_event, metric_name)
        return self._register(record, method)
