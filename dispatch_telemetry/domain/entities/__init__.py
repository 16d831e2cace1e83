"""
Domain Entities Package

This package contains the core domain entities and the error taxonomy.
"""

from .errors import (
    AnomalyDetectionError,
    ArgumentInvalidError,
    DisposedStateError,
    DomainError,
    ForecastError,
    InsufficientDataError,
    ModelPersistenceError,
    ModelTrainingError,
    OperationCancelledError,
    StatisticsError,
)
from .forecasting import (
    ForecastingConfiguration,
    ForecastingMethod,
    ForecastModelRecord,
    ForecastResult,
)
from .metric import (
    AnomalyRecord,
    MetricSample,
    MovingAverageData,
    StatisticsSnapshot,
    TrendDirection,
)
from .training import (
    MetricData,
    ModelMetrics,
    OptimizationResult,
    OptimizationStrategyData,
    PerformanceData,
    RequestExecutionMetrics,
    SystemLoadMetrics,
    TrainingPhase,
    TrainingProgress,
    TrainingSessionResult,
    TrainingSnapshot,
)

__all__ = [
    "AnomalyDetectionError",
    "AnomalyRecord",
    "ArgumentInvalidError",
    "DisposedStateError",
    "DomainError",
    "ForecastError",
    "ForecastModelRecord",
    "ForecastResult",
    "ForecastingConfiguration",
    "ForecastingMethod",
    "InsufficientDataError",
    "MetricData",
    "MetricSample",
    "ModelMetrics",
    "ModelPersistenceError",
    "ModelTrainingError",
    "MovingAverageData",
    "OperationCancelledError",
    "OptimizationResult",
    "OptimizationStrategyData",
    "PerformanceData",
    "RequestExecutionMetrics",
    "StatisticsError",
    "StatisticsSnapshot",
    "SystemLoadMetrics",
    "TrainingPhase",
    "TrainingProgress",
    "TrainingSessionResult",
    "TrainingSnapshot",
    "TrendDirection",
]
