"""
In-Memory Metric Repository - Infrastructure Layer

This module implements the IMetricRepository interface with bounded
per-metric ring buffers. Each metric owns its own lock, so writers to
different metrics never contend; the name-to-history map is locked only
while a history is created.
"""

import threading
from collections import deque
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, List, Mapping, Optional

from dispatch_telemetry.domain.entities.errors import ArgumentInvalidError
from dispatch_telemetry.domain.entities.metric import (
    MetricSample,
    MovingAverageData,
    TrendDirection,
)
from dispatch_telemetry.domain.repositories.metric_repository import IMetricRepository
from dispatch_telemetry.domain.services.argument_validator import ensure_metric_name
from dispatch_telemetry.shared import get_logger

logger = get_logger(__name__)

MIN_HISTORY_SIZE = 1
MAX_HISTORY_SIZE = 1_000_000


class _MetricHistory:
    """Bounded FIFO of samples for one metric."""

    __slots__ = ("lock", "samples")

    def __init__(self, capacity: int):
        self.lock = threading.Lock()
        self.samples: Deque[MetricSample] = deque(maxlen=capacity)

    def snapshot(self) -> List[MetricSample]:
        with self.lock:
            return list(self.samples)


def _sort_chronologically(samples: List[MetricSample]) -> List[MetricSample]:
    return sorted(samples, key=lambda sample: sample.timestamp)


class InMemoryMetricRepository(IMetricRepository):
    """Thread-safe, bounded per-metric time-series store."""

    def __init__(self, max_history_size: int = 10_000):
        """
        Initialize the metric store.

        Args:
            max_history_size: Maximum samples kept per metric; the oldest
                sample is evicted once the cap is exceeded

        Raises:
            ArgumentInvalidError: If the cap is outside [1, 1_000_000]
        """
        if (
            isinstance(max_history_size, bool)
            or not isinstance(max_history_size, int)
            or not MIN_HISTORY_SIZE <= max_history_size <= MAX_HISTORY_SIZE
        ):
            raise ArgumentInvalidError(
                f"max_history_size must be between {MIN_HISTORY_SIZE} "
                f"and {MAX_HISTORY_SIZE}",
                "max_history_size",
            )

        self.max_history_size = max_history_size
        self._histories: Dict[str, _MetricHistory] = {}
        self._registry_lock = threading.Lock()

        logger.info(
            "metric_store.initialized", max_history_size=self.max_history_size
        )

    def _get_or_create(self, metric_name: str) -> _MetricHistory:
        history = self._histories.get(metric_name)
        if history is not None:
            return history
        with self._registry_lock:
            history = self._histories.get(metric_name)
            if history is None:
                history = _MetricHistory(self.max_history_size)
                self._histories[metric_name] = history
            return history

    def store_metric(
        self,
        metric_name: str,
        value: float,
        timestamp: datetime,
        ma5: Optional[float] = None,
        ma15: Optional[float] = None,
        trend: TrendDirection = TrendDirection.STABLE,
    ) -> MetricSample:
        ensure_metric_name(metric_name)
        sample = MetricSample.create(metric_name, value, timestamp, ma5, ma15, trend)

        history = self._get_or_create(metric_name)
        with history.lock:
            history.samples.append(sample)

        logger.debug(
            "metric_store.stored",
            metric_name=metric_name,
            value=sample.value,
            timestamp=sample.timestamp.isoformat(),
        )
        return sample

    def store_batch(
        self,
        metrics: Mapping[str, float],
        timestamp: datetime,
        moving_averages: Optional[Mapping[str, MovingAverageData]] = None,
        trends: Optional[Mapping[str, TrendDirection]] = None,
    ) -> int:
        if metrics is None:
            raise ArgumentInvalidError("Metrics batch cannot be None", "metrics")
        for metric_name in metrics:
            ensure_metric_name(metric_name)

        moving_averages = moving_averages or {}
        trends = trends or {}

        samples = []
        for metric_name, value in metrics.items():
            averages = moving_averages.get(metric_name) or MovingAverageData()
            samples.append(
                MetricSample.create(
                    metric_name,
                    value,
                    timestamp,
                    averages.ma5,
                    averages.ma15,
                    trends.get(metric_name, TrendDirection.STABLE),
                )
            )

        # Locks are taken in name order so concurrent batches cannot deadlock.
        histories = {name: self._get_or_create(name) for name in sorted(metrics)}
        with ExitStack() as stack:
            for history in histories.values():
                stack.enter_context(history.lock)
            for sample in samples:
                histories[sample.metric_name].samples.append(sample)

        logger.debug("metric_store.batch_stored", count=len(samples))
        return len(samples)

    def get_history(
        self, metric_name: str, period: Optional[timedelta] = None
    ) -> List[MetricSample]:
        ensure_metric_name(metric_name)
        history = self._histories.get(metric_name)
        if history is None:
            return []

        samples = history.snapshot()
        if period is not None:
            cutoff = datetime.now(timezone.utc) - period
            samples = [sample for sample in samples if sample.timestamp >= cutoff]

        return _sort_chronologically(samples)

    def get_recent_metrics(self, metric_name: str, count: int) -> List[MetricSample]:
        ensure_metric_name(metric_name)
        if count <= 0:
            return []
        history = self._histories.get(metric_name)
        if history is None:
            return []
        return _sort_chronologically(history.snapshot())[-count:]

    def cleanup_old_data(self, retention: timedelta) -> int:
        cutoff = datetime.now(timezone.utc) - retention
        removed = 0

        for history in list(self._histories.values()):
            with history.lock:
                kept = [s for s in history.samples if s.timestamp >= cutoff]
                removed += len(history.samples) - len(kept)
                history.samples.clear()
                history.samples.extend(kept)

        if removed:
            logger.info("metric_store.cleanup", removed=removed)
        return removed

    def clear(self) -> None:
        with self._registry_lock:
            self._histories.clear()
        logger.info("metric_store.cleared")

    def get_metric_names(self) -> List[str]:
        """Names of every metric with stored history."""
        return sorted(self._histories)

    def count(self, metric_name: str) -> int:
        """Number of samples currently held for ``metric_name``."""
        ensure_metric_name(metric_name)
        history = self._histories.get(metric_name)
        if history is None:
            return 0
        with history.lock:
            return len(history.samples)
