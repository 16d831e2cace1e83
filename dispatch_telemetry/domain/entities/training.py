"""
Domain Entities - Training

This module defines the entities exchanged with the training orchestrator:
the upstream telemetry records bundled in a snapshot, the per-phase progress
reports, and the feature rows fed to the optimization models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Optional, Sequence

from dispatch_telemetry.domain.entities.metric import StatisticsSnapshot


class TrainingPhase(str, Enum):
    """Phases of a training session, in execution order."""

    VALIDATION = "validation"
    PERFORMANCE_MODELS = "performance_models"
    OPTIMIZATION_CLASSIFIERS = "optimization_classifiers"
    ANOMALY_DETECTION = "anomaly_detection"
    FORECASTING = "forecasting"
    STATISTICS = "statistics"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ModelMetrics:
    """Evaluation metrics attached to a progress report."""

    accuracy: Optional[float] = None
    auc: Optional[float] = None
    f1_score: Optional[float] = None
    r_squared: Optional[float] = None
    mae: Optional[float] = None
    rmse: Optional[float] = None


@dataclass(frozen=True)
class TrainingProgress:
    """Progress report emitted once per phase of a training session."""

    phase: TrainingPhase
    progress_percentage: float
    status_message: str
    samples_processed: int
    total_samples: int
    elapsed_time: timedelta
    current_metrics: Optional[ModelMetrics] = None


@dataclass
class RequestExecutionMetrics:
    """Aggregated execution statistics for one request type."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time: timedelta = timedelta(0)
    p95_execution_time: timedelta = timedelta(0)
    concurrent_executions: int = 0
    memory_usage: int = 0
    database_calls: int = 0
    external_api_calls: int = 0
    last_execution_timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def success_rate(self) -> float:
        if self.total_executions <= 0:
            return 0.0
        return self.successful_executions / self.total_executions

    @property
    def error_rate(self) -> float:
        if self.total_executions <= 0:
            return 0.0
        return self.failed_executions / self.total_executions


@dataclass
class SystemLoadMetrics:
    """Host load observed at one point in time."""

    timestamp: datetime
    cpu_utilization: float = 0.0
    memory_utilization: float = 0.0
    throughput_per_second: float = 0.0


@dataclass
class OptimizationResult:
    """Outcome of one past optimization attempt."""

    strategy_id: str
    success: bool
    execution_time: timedelta
    performance_improvement: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class TrainingSnapshot:
    """History bundle handed to the orchestrator for one session."""

    execution_history: Optional[Sequence[RequestExecutionMetrics]] = None
    optimization_history: Optional[Sequence[OptimizationResult]] = None
    system_load_history: Optional[Sequence[SystemLoadMetrics]] = None

    @property
    def total_samples(self) -> int:
        return (
            len(self.execution_history or ())
            + len(self.optimization_history or ())
            + len(self.system_load_history or ())
        )


@dataclass
class TrainingSessionResult:
    """Artifacts summary returned by a completed training session."""

    session_id: int
    regression_metrics: ModelMetrics
    classification_metrics: ModelMetrics
    statistics: Dict[str, StatisticsSnapshot] = field(default_factory=dict)
    data_quality_score: float = 0.0
    elapsed_time: timedelta = timedelta(0)


@dataclass(frozen=True)
class PerformanceData:
    """Feature row of the optimization-gain regression model."""

    execution_time: float
    concurrency_level: float
    memory_usage: float
    database_calls: float
    external_api_calls: float
    optimization_gain: float = 0.0


@dataclass(frozen=True)
class OptimizationStrategyData:
    """Feature row of the should-optimize classifier."""

    execution_time: float
    repeat_rate: float
    concurrency_level: float
    memory_pressure: float
    error_rate: float
    should_optimize: bool = False


@dataclass(frozen=True)
class MetricData:
    """A bare (timestamp, value) observation used by the anomaly and forecast models."""

    timestamp: datetime
    value: float
