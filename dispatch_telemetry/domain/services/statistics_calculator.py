"""
Descriptive statistics over a sequence of metric values.

Percentiles use the nearest-rank rule on the ascending sequence:
``sorted[ceil(p * n) - 1]``, clamped to the valid index range. The standard
deviation is the population standard deviation.
"""

import math
from typing import Sequence

import numpy as np

from dispatch_telemetry.domain.entities.metric import StatisticsSnapshot


def nearest_rank_percentile(sorted_values: np.ndarray, percentile: float) -> float:
    """Nearest-rank percentile of an already ascending array (``0 < percentile <= 1``)."""
    size = len(sorted_values)
    index = int(math.ceil(percentile * size)) - 1
    return float(sorted_values[max(0, min(index, size - 1))])


def summarize(metric_name: str, values: Sequence[float]) -> StatisticsSnapshot:
    """Build a ``StatisticsSnapshot``; ``values`` must not be empty."""
    data = np.sort(np.asarray(values, dtype=np.float64))
    if data.size == 0:
        raise ValueError("Cannot summarize an empty series")

    return StatisticsSnapshot(
        metric_name=metric_name,
        count=int(data.size),
        mean=float(np.mean(data)),
        min=float(data[0]),
        max=float(data[-1]),
        median=float(np.median(data)),
        p95=nearest_rank_percentile(data, 0.95),
        p99=nearest_rank_percentile(data, 0.99),
        std_dev=float(np.std(data)),
    )
