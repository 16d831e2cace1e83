from __future__ import annotations

import math
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dispatch_telemetry.domain.entities.training import (  # noqa: E402
    OptimizationResult,
    RequestExecutionMetrics,
    SystemLoadMetrics,
    TrainingSnapshot,
)
from dispatch_telemetry.infrastructure.repositories.in_memory_metric_repository import (  # noqa: E402
    InMemoryMetricRepository,
)
from dispatch_telemetry.infrastructure.services.regression_model_manager import (  # noqa: E402
    RegressionModelManager,
)


@pytest.fixture()
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture()
def metric_repository() -> InMemoryMetricRepository:
    return InMemoryMetricRepository(max_history_size=1000)


@pytest.fixture()
def fill_metric(
    metric_repository: InMemoryMetricRepository, now: datetime
) -> Callable[[str, Sequence[float]], None]:
    """Store ``values`` one minute apart, the last one a minute before ``now``."""

    def _fill(metric_name: str, values: Sequence[float]) -> None:
        count = len(values)
        for index, value in enumerate(values):
            timestamp = now - timedelta(minutes=count - index)
            metric_repository.store_metric(metric_name, value, timestamp)

    return _fill


@pytest.fixture()
def seasonal_series() -> List[float]:
    return [100 + 10 * math.sin(2 * math.pi * i / 12) + 0.5 * i for i in range(60)]


@pytest.fixture()
def model_manager(tmp_path: Path) -> RegressionModelManager:
    return RegressionModelManager(storage_path=str(tmp_path / "models"))


def build_snapshot(
    executions: int = 10, optimizations: int = 5, loads: int = 10
) -> TrainingSnapshot:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    execution_history = [
        RequestExecutionMetrics(
            total_executions=100 + i,
            successful_executions=95 + (i % 5),
            failed_executions=5 - (i % 5),
            average_execution_time=timedelta(milliseconds=40 + 3 * i),
            p95_execution_time=timedelta(milliseconds=90 + 7 * i),
            concurrent_executions=2 + i % 4,
            memory_usage=1024 * (10 + i),
            database_calls=i % 6,
            external_api_calls=i % 3,
            last_execution_timestamp=start + timedelta(minutes=i),
        )
        for i in range(executions)
    ]
    optimization_history = [
        OptimizationResult(
            strategy_id=f"strategy-{i % 3}",
            success=i % 2 == 0,
            execution_time=timedelta(milliseconds=30 + 5 * i),
            performance_improvement=0.1 * (i % 4),
            timestamp=start + timedelta(minutes=i),
        )
        for i in range(optimizations)
    ]
    system_load_history = [
        SystemLoadMetrics(
            timestamp=start + timedelta(minutes=i),
            cpu_utilization=0.4 + 0.02 * (i % 7),
            memory_utilization=0.5 + 0.01 * (i % 5),
            throughput_per_second=100 + 5 * math.sin(i / 2),
        )
        for i in range(loads)
    ]
    return TrainingSnapshot(
        execution_history=execution_history,
        optimization_history=optimization_history,
        system_load_history=system_load_history,
    )


@pytest.fixture()
def training_snapshot() -> TrainingSnapshot:
    return build_snapshot()
