"""
Forecasting Method Registry - Infrastructure Layer

Maps each forecasting method to its strategy and remembers the method
chosen for individual metrics. Metrics without an override use the
configured default method.
"""

import threading
from typing import Dict, List, Mapping, Optional

from dispatch_telemetry.domain.entities.errors import ArgumentInvalidError
from dispatch_telemetry.domain.entities.forecasting import ForecastingMethod
from dispatch_telemetry.domain.ports.forecasting_strategy import IForecastingStrategy
from dispatch_telemetry.domain.services.argument_validator import ensure_metric_name
from dispatch_telemetry.infrastructure.services.forecasting_strategies import (
    create_default_strategies,
)
from dispatch_telemetry.shared import get_logger

logger = get_logger(__name__)


class ForecastingMethodRegistry:
    """Thread-safe per-metric method overrides plus the method-to-strategy table."""

    def __init__(
        self,
        default_method: ForecastingMethod = ForecastingMethod.SSA,
        strategies: Optional[Mapping[ForecastingMethod, IForecastingStrategy]] = None,
    ):
        self.default_method = ForecastingMethod(default_method)
        self._strategies: Dict[ForecastingMethod, IForecastingStrategy] = dict(
            strategies if strategies is not None else create_default_strategies()
        )
        self._overrides: Dict[str, ForecastingMethod] = {}
        self._lock = threading.Lock()

    def get_method(self, metric_name: str) -> ForecastingMethod:
        ensure_metric_name(metric_name)
        with self._lock:
            return self._overrides.get(metric_name, self.default_method)

    def set_method(self, metric_name: str, method: ForecastingMethod) -> None:
        ensure_metric_name(metric_name)
        try:
            method = ForecastingMethod(method)
        except ValueError as e:
            raise ArgumentInvalidError(
                f"Unknown forecasting method: {method}", "method"
            ) from e
        with self._lock:
            self._overrides[metric_name] = method
        logger.debug(
            "forecast_registry.method_set", metric_name=metric_name, method=method.value
        )

    def remove_method(self, metric_name: str) -> bool:
        ensure_metric_name(metric_name)
        with self._lock:
            return self._overrides.pop(metric_name, None) is not None

    def get_available_methods(self) -> List[ForecastingMethod]:
        return [method for method in ForecastingMethod if method in self._strategies]

    def get_strategy(self, method: ForecastingMethod) -> IForecastingStrategy:
        strategy = self._strategies.get(ForecastingMethod(method))
        if strategy is None:
            raise ArgumentInvalidError(
                f"No strategy registered for {ForecastingMethod(method).label}",
                "method",
            )
        return strategy
