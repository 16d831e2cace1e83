from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from dispatch_telemetry.application.dtos.telemetry_dto import (
    ExecutionSampleDTO,
    MetricBatchDTO,
    OptimizationAttemptDTO,
    SystemLoadSampleDTO,
    TrainingSnapshotDTO,
)
from dispatch_telemetry.domain.entities.metric import MovingAverageData, TrendDirection


def test_execution_sample_converts_naive_timestamp_to_utc() -> None:
    dto = ExecutionSampleDTO(
        total_executions=10,
        successful_executions=9,
        failed_executions=1,
        average_execution_time=timedelta(milliseconds=40),
        last_execution_timestamp=datetime(2024, 5, 1, 12, 0),
    )

    entity = dto.to_entity()

    assert entity.last_execution_timestamp.tzinfo == timezone.utc
    assert entity.success_rate == pytest.approx(0.9)
    assert entity.error_rate == pytest.approx(0.1)


def test_negative_counts_are_rejected() -> None:
    with pytest.raises(ValidationError):
        ExecutionSampleDTO(total_executions=-1)
    with pytest.raises(ValidationError):
        SystemLoadSampleDTO(timestamp=datetime.now(timezone.utc), cpu_utilization=-0.5)


def test_optimization_attempt_requires_strategy_id() -> None:
    with pytest.raises(ValidationError):
        OptimizationAttemptDTO(strategy_id="", success=True, execution_time=timedelta(1))


def test_snapshot_dto_builds_training_snapshot() -> None:
    payload = {
        "execution_history": [{"total_executions": 5, "successful_executions": 5}],
        "optimization_history": [
            {"strategy_id": "cache", "success": True, "execution_time": 0.25}
        ],
        "system_load_history": [
            {"timestamp": "2024-05-01T12:00:00+02:00", "cpu_utilization": 0.4}
        ],
    }

    snapshot = TrainingSnapshotDTO.model_validate(payload).to_entity()

    assert snapshot.total_samples == 3
    assert snapshot.optimization_history[0].execution_time == timedelta(seconds=0.25)
    assert snapshot.system_load_history[0].timestamp == datetime(
        2024, 5, 1, 10, 0, tzinfo=timezone.utc
    )


@pytest.mark.parametrize("name", ["", "   "])
def test_metric_batch_rejects_blank_names(name: str) -> None:
    with pytest.raises(ValidationError):
        MetricBatchDTO(metrics={name: 1.0})


def test_metric_batch_is_stored_with_extras(metric_repository) -> None:
    timestamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    batch = MetricBatchDTO(
        timestamp=timestamp,
        metrics={"cpu": 0.5, "memory": 0.7},
        moving_averages={"cpu": MovingAverageData(ma5=0.45, ma15=0.4)},
        trends={"memory": TrendDirection.INCREASING},
    )

    assert batch.store_into(metric_repository) == 2

    cpu = metric_repository.get_recent_metrics("cpu", 1)[0]
    memory = metric_repository.get_recent_metrics("memory", 1)[0]
    assert (cpu.ma5, cpu.ma15, cpu.trend) == (0.45, 0.4, TrendDirection.STABLE)
    assert (memory.ma5, memory.trend) == (0.7, TrendDirection.INCREASING)
    assert cpu.timestamp == timestamp
