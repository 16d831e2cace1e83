"""
Application DTOs - Telemetry

This module contains Data Transfer Objects (DTOs) for the telemetry batches
pushed by the dispatch core. DTOs validate raw mappings at the boundary and
convert them into domain entities.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List

from pydantic import BaseModel, Field, field_validator

from dispatch_telemetry.domain.entities.metric import (
    MovingAverageData,
    TrendDirection,
    ensure_utc,
)
from dispatch_telemetry.domain.entities.training import (
    OptimizationResult,
    RequestExecutionMetrics,
    SystemLoadMetrics,
    TrainingSnapshot,
)
from dispatch_telemetry.domain.repositories.metric_repository import IMetricRepository


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionSampleDTO(BaseModel):
    """DTO for the aggregated execution statistics of one request type."""

    total_executions: int = Field(default=0, ge=0)
    successful_executions: int = Field(default=0, ge=0)
    failed_executions: int = Field(default=0, ge=0)
    average_execution_time: timedelta = timedelta(0)
    p95_execution_time: timedelta = timedelta(0)
    concurrent_executions: int = Field(default=0, ge=0)
    memory_usage: int = Field(default=0, ge=0)
    database_calls: int = Field(default=0, ge=0)
    external_api_calls: int = Field(default=0, ge=0)
    last_execution_timestamp: datetime = Field(default_factory=_utcnow)

    def to_entity(self) -> RequestExecutionMetrics:
        return RequestExecutionMetrics(
            total_executions=self.total_executions,
            successful_executions=self.successful_executions,
            failed_executions=self.failed_executions,
            average_execution_time=self.average_execution_time,
            p95_execution_time=self.p95_execution_time,
            concurrent_executions=self.concurrent_executions,
            memory_usage=self.memory_usage,
            database_calls=self.database_calls,
            external_api_calls=self.external_api_calls,
            last_execution_timestamp=ensure_utc(self.last_execution_timestamp),
        )


class SystemLoadSampleDTO(BaseModel):
    """DTO for one observation of host load."""

    timestamp: datetime
    cpu_utilization: float = Field(default=0.0, ge=0.0)
    memory_utilization: float = Field(default=0.0, ge=0.0)
    throughput_per_second: float = Field(default=0.0, ge=0.0)

    def to_entity(self) -> SystemLoadMetrics:
        return SystemLoadMetrics(
            timestamp=ensure_utc(self.timestamp),
            cpu_utilization=self.cpu_utilization,
            memory_utilization=self.memory_utilization,
            throughput_per_second=self.throughput_per_second,
        )


class OptimizationAttemptDTO(BaseModel):
    """DTO for the outcome of one optimization attempt."""

    strategy_id: str = Field(..., min_length=1)
    success: bool
    execution_time: timedelta
    performance_improvement: float = 0.0
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_entity(self) -> OptimizationResult:
        return OptimizationResult(
            strategy_id=self.strategy_id,
            success=self.success,
            execution_time=self.execution_time,
            performance_improvement=self.performance_improvement,
            timestamp=ensure_utc(self.timestamp),
        )


class TrainingSnapshotDTO(BaseModel):
    """DTO for the history bundle of one training session."""

    execution_history: List[ExecutionSampleDTO] = Field(default_factory=list)
    optimization_history: List[OptimizationAttemptDTO] = Field(default_factory=list)
    system_load_history: List[SystemLoadSampleDTO] = Field(default_factory=list)

    def to_entity(self) -> TrainingSnapshot:
        return TrainingSnapshot(
            execution_history=[item.to_entity() for item in self.execution_history],
            optimization_history=[
                item.to_entity() for item in self.optimization_history
            ],
            system_load_history=[item.to_entity() for item in self.system_load_history],
        )


class MetricBatchDTO(BaseModel):
    """DTO for a batch of metric values observed at the same instant."""

    timestamp: datetime = Field(default_factory=_utcnow)
    metrics: Dict[str, float]
    moving_averages: Dict[str, MovingAverageData] = Field(default_factory=dict)
    trends: Dict[str, TrendDirection] = Field(default_factory=dict)

    @field_validator("metrics")
    @classmethod
    def validate_metric_names(cls, value: Dict[str, float]) -> Dict[str, float]:
        if any(not name or not name.strip() for name in value):
            raise ValueError("Metric names cannot be empty or whitespace")
        return value

    def store_into(self, repository: IMetricRepository) -> int:
        """Write the batch to ``repository`` and return the number of samples stored."""
        return repository.store_batch(
            self.metrics,
            ensure_utc(self.timestamp),
            self.moving_averages,
            self.trends,
        )
