"""Infrastructure services package."""

from .forecasting_method_registry import ForecastingMethodRegistry
from .forecasting_strategies import create_default_strategies
from .regression_model_manager import RegressionModelManager

__all__ = [
    "ForecastingMethodRegistry",
    "RegressionModelManager",
    "create_default_strategies",
]
