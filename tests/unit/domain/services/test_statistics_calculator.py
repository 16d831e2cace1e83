from __future__ import annotations

import math

import numpy as np
import pytest

from dispatch_telemetry.domain.entities.errors import ArgumentInvalidError
from dispatch_telemetry.domain.services.argument_validator import (
    ensure_metric_name,
    ensure_positive,
)
from dispatch_telemetry.domain.services.statistics_calculator import (
    nearest_rank_percentile,
    summarize,
)


def test_summarize_one_to_hundred() -> None:
    snapshot = summarize("latency", list(range(100, 0, -1)))

    assert snapshot.count == 100
    assert snapshot.mean == pytest.approx(50.5)
    assert snapshot.median == pytest.approx(50.5)
    assert snapshot.min == 1.0
    assert snapshot.max == 100.0
    assert snapshot.p95 == 95.0
    assert snapshot.p99 == 99.0
    assert snapshot.std_dev == pytest.approx(math.sqrt((100**2 - 1) / 12))


def test_summarize_single_value() -> None:
    snapshot = summarize("latency", [7.0])

    assert snapshot.count == 1
    assert snapshot.p95 == snapshot.p99 == snapshot.median == 7.0
    assert snapshot.std_dev == 0.0


def test_summarize_rejects_empty_series() -> None:
    with pytest.raises(ValueError):
        summarize("latency", [])


@pytest.mark.parametrize(
    "percentile,expected",
    [(0.01, 10.0), (0.5, 30.0), (0.95, 50.0), (1.0, 50.0)],
)
def test_nearest_rank_percentile(percentile: float, expected: float) -> None:
    values = np.array([10.0, 20.0, 30.0, 40.0, 50.0])
    assert nearest_rank_percentile(values, percentile) == expected


@pytest.mark.parametrize("name", [None, "", "   ", 42])
def test_ensure_metric_name_rejects_blank(name) -> None:
    with pytest.raises(ArgumentInvalidError) as exc_info:
        ensure_metric_name(name)
    assert exc_info.value.argument == "metric_name"


@pytest.mark.parametrize("value", [0, -1, True, 1.5])
def test_ensure_positive_rejects_invalid(value) -> None:
    with pytest.raises(ArgumentInvalidError):
        ensure_positive(value, "horizon")


def test_ensure_positive_returns_value() -> None:
    assert ensure_positive(3, "horizon") == 3
