"""Domain ports package."""

from .forecasting_strategy import IForecastingStrategy

__all__ = ["IForecastingStrategy"]
