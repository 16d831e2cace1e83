"""
Application Use Case - Forecasting Service

Single entry point for forecasting: argument validation in front of the
trainer, the predictor and the method registry.
"""

import threading
from typing import List, Optional

from dispatch_telemetry.application.use_cases.forecasting_predictor_use_case import (
    ForecastingPredictor,
)
from dispatch_telemetry.application.use_cases.forecasting_trainer_use_case import (
    ForecastingTrainer,
)
from dispatch_telemetry.domain.entities.forecasting import (
    ForecastingMethod,
    ForecastModelRecord,
    ForecastResult,
)
from dispatch_telemetry.domain.services.argument_validator import (
    ensure_metric_name,
    ensure_positive,
)
from dispatch_telemetry.infrastructure.services.forecasting_method_registry import (
    ForecastingMethodRegistry,
)


class ForecastingService:
    """Facade over forecasting training, prediction and method selection."""

    def __init__(
        self,
        trainer: ForecastingTrainer,
        predictor: ForecastingPredictor,
        method_registry: ForecastingMethodRegistry,
    ):
        self.trainer = trainer
        self.predictor = predictor
        self.method_registry = method_registry

    @staticmethod
    def _validate(metric_name: str, horizon: Optional[int] = None) -> None:
        ensure_metric_name(metric_name)
        if horizon is not None:
            ensure_positive(horizon, "horizon")

    def train_forecast_model(
        self, metric_name: str, method: Optional[ForecastingMethod] = None
    ) -> ForecastModelRecord:
        self._validate(metric_name)
        return self.trainer.train_model(metric_name, method)

    async def train_forecast_model_async(
        self,
        metric_name: str,
        method: Optional[ForecastingMethod] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ForecastModelRecord:
        self._validate(metric_name)
        return await self.trainer.train_model_async(metric_name, method, cancel_event)

    def forecast(
        self, metric_name: str, horizon: Optional[int] = None
    ) -> Optional[ForecastResult]:
        self._validate(metric_name, horizon)
        return self.predictor.predict(metric_name, horizon)

    async def forecast_async(
        self,
        metric_name: str,
        horizon: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[ForecastResult]:
        self._validate(metric_name, horizon)
        return await self.predictor.predict_async(metric_name, horizon, cancel_event)

    def get_forecasting_method(self, metric_name: str) -> ForecastingMethod:
        self._validate(metric_name)
        return self.method_registry.get_method(metric_name)

    def set_forecasting_method(
        self, metric_name: str, method: ForecastingMethod
    ) -> None:
        self._validate(metric_name)
        self.method_registry.set_method(metric_name, method)

    def get_available_methods(self) -> List[ForecastingMethod]:
        return self.method_registry.get_available_methods()
