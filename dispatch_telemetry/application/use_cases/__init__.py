"""
Use Cases Package - Application Layer

This package contains the use cases of the telemetry core: statistics,
anomaly detection, forecasting and multi-phase model training.
"""

from .anomaly_detection_use_case import AnomalyDetector
from .forecasting_predictor_use_case import ForecastingPredictor
from .forecasting_trainer_use_case import ForecastingTrainer
from .forecasting_use_case import ForecastingService
from .model_training_use_case import ModelTrainingUseCase
from .statistics_use_case import StatisticsEngine

__all__ = [
    "AnomalyDetector",
    "ForecastingPredictor",
    "ForecastingTrainer",
    "ForecastingService",
    "ModelTrainingUseCase",
    "StatisticsEngine",
]
