from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from dispatch_telemetry.domain.entities.errors import ArgumentInvalidError
from dispatch_telemetry.domain.entities.metric import MovingAverageData, TrendDirection
from dispatch_telemetry.infrastructure.repositories.in_memory_metric_repository import (
    InMemoryMetricRepository,
)


@pytest.mark.parametrize("size", [0, -5, 1_000_001])
def test_rejects_invalid_history_cap(size: int) -> None:
    with pytest.raises(ArgumentInvalidError):
        InMemoryMetricRepository(max_history_size=size)


def test_history_is_chronological_regardless_of_insert_order(
    metric_repository: InMemoryMetricRepository, now: datetime
) -> None:
    for offset in (3, 1, 2):
        metric_repository.store_metric("cpu", offset, now - timedelta(minutes=offset))

    history = metric_repository.get_history("cpu")

    assert [sample.value for sample in history] == [3.0, 2.0, 1.0]


def test_history_evicts_oldest_beyond_cap(now: datetime) -> None:
    repository = InMemoryMetricRepository(max_history_size=5)
    for index in range(8):
        repository.store_metric("cpu", index, now + timedelta(seconds=index))

    history = repository.get_history("cpu")

    assert len(history) == 5
    assert [sample.value for sample in history] == [3.0, 4.0, 5.0, 6.0, 7.0]
    assert repository.count("cpu") == 5


def test_history_period_filters_old_samples(
    metric_repository: InMemoryMetricRepository, now: datetime
) -> None:
    metric_repository.store_metric("cpu", 1, now - timedelta(hours=3))
    metric_repository.store_metric("cpu", 2, now - timedelta(minutes=10))

    recent = metric_repository.get_history("cpu", timedelta(hours=1))

    assert [sample.value for sample in recent] == [2.0]


def test_unknown_metric_returns_empty(metric_repository: InMemoryMetricRepository) -> None:
    assert metric_repository.get_history("missing") == []
    assert metric_repository.get_recent_metrics("missing", 5) == []
    assert metric_repository.count("missing") == 0


@pytest.mark.parametrize("name", ["", "  ", None])
def test_blank_metric_names_are_rejected(
    metric_repository: InMemoryMetricRepository, now: datetime, name
) -> None:
    with pytest.raises(ArgumentInvalidError):
        metric_repository.store_metric(name, 1.0, now)
    with pytest.raises(ArgumentInvalidError):
        metric_repository.get_history(name)
    with pytest.raises(ArgumentInvalidError):
        metric_repository.get_recent_metrics(name, 3)


def test_recent_metrics_returns_latest_in_order(
    metric_repository: InMemoryMetricRepository, fill_metric
) -> None:
    fill_metric("cpu", [1, 2, 3, 4, 5])

    recent = metric_repository.get_recent_metrics("cpu", 3)

    assert [sample.value for sample in recent] == [3.0, 4.0, 5.0]
    assert metric_repository.get_recent_metrics("cpu", 0) == []
    assert metric_repository.get_recent_metrics("cpu", -2) == []


def test_store_batch_applies_moving_averages_and_trends(
    metric_repository: InMemoryMetricRepository, now: datetime
) -> None:
    stored = metric_repository.store_batch(
        {"cpu": 0.5, "memory": 0.7},
        now,
        moving_averages={"cpu": MovingAverageData(ma5=0.4, ma15=0.3)},
        trends={"memory": TrendDirection.INCREASING},
    )

    cpu = metric_repository.get_history("cpu")[0]
    memory = metric_repository.get_history("memory")[0]

    assert stored == 2
    assert (cpu.ma5, cpu.ma15) == (0.4, 0.3)
    assert memory.ma5 == 0.7
    assert memory.trend == TrendDirection.INCREASING
    assert cpu.timestamp == memory.timestamp


def test_store_batch_validates_before_storing(
    metric_repository: InMemoryMetricRepository, now: datetime
) -> None:
    with pytest.raises(ArgumentInvalidError):
        metric_repository.store_batch({"cpu": 1.0, " ": 2.0}, now)

    assert metric_repository.get_history("cpu") == []
    assert metric_repository.get_metric_names() == []


def test_cleanup_old_data_reports_removed_count(
    metric_repository: InMemoryMetricRepository, now: datetime
) -> None:
    metric_repository.store_metric("cpu", 1, now - timedelta(days=2))
    metric_repository.store_metric("cpu", 2, now - timedelta(days=1, hours=1))
    metric_repository.store_metric("cpu", 3, now)
    metric_repository.store_metric("memory", 4, now - timedelta(days=3))

    removed = metric_repository.cleanup_old_data(timedelta(days=1))

    assert removed == 3
    assert [sample.value for sample in metric_repository.get_history("cpu")] == [3.0]
    assert metric_repository.get_history("memory") == []


def test_clear_removes_every_metric(
    metric_repository: InMemoryMetricRepository, now: datetime
) -> None:
    metric_repository.store_batch({"cpu": 1.0, "memory": 2.0}, now)

    metric_repository.clear()

    assert metric_repository.get_metric_names() == []


def test_naive_timestamps_are_stored_as_utc(
    metric_repository: InMemoryMetricRepository,
) -> None:
    sample = metric_repository.store_metric("cpu", 1.0, datetime(2024, 1, 1, 12, 0))
    assert sample.timestamp.tzinfo == timezone.utc


def test_concurrent_writers_keep_every_sample(now: datetime) -> None:
    repository = InMemoryMetricRepository(max_history_size=10_000)
    workers = 8
    per_worker = 250

    def write(worker: int) -> None:
        for index in range(per_worker):
            repository.store_metric(
                "shared", index, now + timedelta(microseconds=worker * per_worker + index)
            )
            repository.store_batch({f"own-{worker}": index, "batched": index}, now)

    threads = [threading.Thread(target=write, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert repository.count("shared") == workers * per_worker
    assert repository.count("batched") == workers * per_worker
    assert all(repository.count(f"own-{i}") == per_worker for i in range(workers))
