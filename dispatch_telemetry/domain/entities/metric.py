"""Domain entities for per-metric time-series history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class TrendDirection(str, Enum):
    """Direction a metric was moving when a sample was recorded."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


def ensure_utc(timestamp: datetime) -> datetime:
    """Return ``timestamp`` as an aware UTC datetime (naive values are UTC)."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class MetricSample:
    """One immutable observation of a named metric."""

    metric_name: str
    timestamp: datetime
    value: float
    ma5: float
    ma15: float
    trend: TrendDirection = TrendDirection.STABLE
    hour_of_day: int = 0
    day_of_week: int = 0

    @classmethod
    def create(
        cls,
        metric_name: str,
        value: float,
        timestamp: datetime,
        ma5: Optional[float] = None,
        ma15: Optional[float] = None,
        trend: TrendDirection = TrendDirection.STABLE,
    ) -> "MetricSample":
        """Build a sample, defaulting moving averages to the raw value."""
        moment = ensure_utc(timestamp)
        value = float(value)
        return cls(
            metric_name=metric_name,
            timestamp=moment,
            value=value,
            ma5=value if ma5 is None else float(ma5),
            ma15=value if ma15 is None else float(ma15),
            trend=trend,
            hour_of_day=moment.hour,
            day_of_week=moment.weekday(),
        )


@dataclass(frozen=True, slots=True)
class MovingAverageData:
    """Precomputed short and medium moving averages for a metric."""

    ma5: Optional[float] = None
    ma15: Optional[float] = None


@dataclass(frozen=True, slots=True)
class StatisticsSnapshot:
    """Descriptive statistics over a metric's history."""

    metric_name: str
    count: int
    mean: float
    min: float
    max: float
    median: float
    p95: float
    p99: float
    std_dev: float


@dataclass(frozen=True, slots=True)
class AnomalyRecord:
    """A point flagged by the anomaly detector."""

    metric_name: str
    timestamp: datetime
    value: float
    score: float
    magnitude: float
    is_anomaly: bool = True
