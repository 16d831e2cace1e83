"""
Metric Repository Interface

This module defines the interface of the bounded per-metric time-series
store. Statistics, anomaly detection and forecasting read history through
this contract and never touch the storage implementation directly.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List, Mapping, Optional

from dispatch_telemetry.domain.entities.metric import (
    MetricSample,
    MovingAverageData,
    TrendDirection,
)


class IMetricRepository(ABC):
    """Interface for metric history store implementations."""

    @abstractmethod
    def store_metric(
        self,
        metric_name: str,
        value: float,
        timestamp: datetime,
        ma5: Optional[float] = None,
        ma15: Optional[float] = None,
        trend: TrendDirection = TrendDirection.STABLE,
    ) -> MetricSample:
        """
        Append one sample to a metric's history.

        Raises:
            ArgumentInvalidError: If ``metric_name`` is blank
        """
        pass

    @abstractmethod
    def store_batch(
        self,
        metrics: Mapping[str, float],
        timestamp: datetime,
        moving_averages: Optional[Mapping[str, MovingAverageData]] = None,
        trends: Optional[Mapping[str, TrendDirection]] = None,
    ) -> int:
        """
        Append one sample per entry of ``metrics`` as a single unit.

        Returns:
            Number of samples stored
        """
        pass

    @abstractmethod
    def get_history(
        self, metric_name: str, period: Optional[timedelta] = None
    ) -> List[MetricSample]:
        """
        Return a metric's samples in ascending timestamp order.

        Args:
            metric_name: Name of the metric
            period: Optional trailing window measured back from now

        Returns:
            The samples, or an empty list for an unknown metric
        """
        pass

    @abstractmethod
    def get_recent_metrics(self, metric_name: str, count: int) -> List[MetricSample]:
        """Return up to ``count`` most recent samples in chronological order."""
        pass

    @abstractmethod
    def cleanup_old_data(self, retention: timedelta) -> int:
        """
        Drop samples older than ``now - retention`` across all metrics.

        Returns:
            Number of samples removed
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every metric and sample."""
        pass
