from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import numpy as np
import pytest

from dispatch_telemetry.domain.entities.errors import (
    ArgumentInvalidError,
    DisposedStateError,
)
from dispatch_telemetry.domain.entities.training import (
    MetricData,
    OptimizationStrategyData,
    PerformanceData,
)
from dispatch_telemetry.infrastructure.services.regression_model_manager import (
    REGRESSION_FEATURES,
    RegressionModelManager,
)

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _performance_samples(count: int = 40) -> List[PerformanceData]:
    rng = np.random.default_rng(7)
    samples = []
    for _ in range(count):
        execution_time = float(rng.uniform(10, 500))
        concurrency = float(rng.integers(1, 16))
        samples.append(
            PerformanceData(
                execution_time=execution_time,
                concurrency_level=concurrency,
                memory_usage=float(rng.uniform(1e3, 1e6)),
                database_calls=float(rng.integers(0, 10)),
                external_api_calls=float(rng.integers(0, 4)),
                optimization_gain=execution_time / 500 + concurrency / 100,
            )
        )
    return samples


def _strategy_samples(count: int = 30) -> List[OptimizationStrategyData]:
    return [
        OptimizationStrategyData(
            execution_time=float(50 + 10 * i),
            repeat_rate=(i % 5) / 5,
            concurrency_level=float(i % 8),
            memory_pressure=0.5,
            error_rate=0.01 * (i % 3),
            should_optimize=i >= count // 2,
        )
        for i in range(count)
    ]


def _series(count: int) -> List[MetricData]:
    return [
        MetricData(START + timedelta(minutes=i), 100 + 10 * np.sin(i / 3))
        for i in range(count)
    ]


QUERY = PerformanceData(
    execution_time=250.0,
    concurrency_level=8.0,
    memory_usage=5e5,
    database_calls=3.0,
    external_api_calls=1.0,
)


def test_untrained_manager_returns_defaults(model_manager: RegressionModelManager) -> None:
    assert model_manager.predict_optimization_gain(QUERY) == 0.5
    assert model_manager.get_feature_importance() is None
    assert model_manager.predict_optimization_strategy(_strategy_samples(1)[0]) == (
        False,
        0.5,
    )
    assert model_manager.detect_anomaly(MetricData(START, 1.0)) is False
    assert model_manager.forecast_metric(5) is None
    assert model_manager.has_persisted_models() is False


def test_train_regression_model_returns_metrics(model_manager: RegressionModelManager) -> None:
    metrics = model_manager.train_regression_model(_performance_samples())

    assert metrics.mae is not None and metrics.mae >= 0
    assert metrics.rmse is not None and metrics.rmse >= metrics.mae
    assert metrics.r_squared is not None
    assert model_manager.has_persisted_models() is True


def test_train_regression_model_requires_samples(model_manager: RegressionModelManager) -> None:
    with pytest.raises(ArgumentInvalidError):
        model_manager.train_regression_model([])


def test_prediction_survives_reload(tmp_path: Path) -> None:
    storage = str(tmp_path / "models")
    first = RegressionModelManager(storage_path=storage)
    first.train_regression_model(_performance_samples())
    expected = first.predict_optimization_gain(QUERY)

    second = RegressionModelManager(storage_path=storage)

    assert second.predict_optimization_gain(QUERY) == pytest.approx(expected, abs=1e-9)
    assert expected != 0.5


def test_feature_importance_is_normalized(model_manager: RegressionModelManager) -> None:
    model_manager.train_regression_model(_performance_samples())

    importance = model_manager.get_feature_importance()

    assert importance is not None
    assert set(importance) == set(REGRESSION_FEATURES)
    assert all(value >= 0 for value in importance.values())
    assert sum(importance.values()) == pytest.approx(1.0, abs=1e-6)
    assert importance["execution_time"] == max(importance.values())


def test_feature_importance_falls_back_to_uniform_for_constant_target(
    model_manager: RegressionModelManager,
) -> None:
    samples = [
        PerformanceData(float(i), 1.0, 1.0, 1.0, 1.0, optimization_gain=0.3)
        for i in range(12)
    ]
    model_manager.train_regression_model(samples)

    importance = model_manager.get_feature_importance()

    assert importance is not None
    assert sum(importance.values()) == pytest.approx(1.0)
    assert all(value >= 0 for value in importance.values())


def test_clear_persisted_models(model_manager: RegressionModelManager, tmp_path: Path) -> None:
    model_manager.train_regression_model(_performance_samples())

    model_manager.clear_persisted_models()

    assert model_manager.has_persisted_models() is False
    assert model_manager.predict_optimization_gain(QUERY) == 0.5
    fresh = RegressionModelManager(storage_path=str(tmp_path / "models"))
    assert fresh.get_feature_importance() is None


def test_classification_model(model_manager: RegressionModelManager) -> None:
    samples = _strategy_samples()

    metrics = model_manager.train_classification_model(samples)
    should_optimize, confidence = model_manager.predict_optimization_strategy(samples[-1])

    assert metrics.accuracy is not None and 0.0 <= metrics.accuracy <= 1.0
    assert metrics.f1_score is not None
    assert should_optimize is True
    assert 0.5 <= confidence <= 1.0


def test_classification_with_single_outcome(model_manager: RegressionModelManager) -> None:
    samples = [
        OptimizationStrategyData(10.0 * i, 0.1, 2.0, 0.3, 0.0, should_optimize=True)
        for i in range(6)
    ]

    metrics = model_manager.train_classification_model(samples)

    assert metrics.auc is None
    assert model_manager.predict_optimization_strategy(samples[0]) == (True, 1.0)


def test_anomaly_detection_model(model_manager: RegressionModelManager) -> None:
    rng = np.random.default_rng(3)
    history = [
        MetricData(START + timedelta(minutes=i), float(value))
        for i, value in enumerate(rng.normal(50.0, 1.0, 200))
    ]

    model_manager.train_anomaly_detection_model(history)

    assert model_manager.detect_anomaly(MetricData(START, 500.0)) is True
    assert model_manager.detect_anomaly(MetricData(START, 50.0)) is False


def test_forecasting_model_and_periodic_retraining(
    model_manager: RegressionModelManager,
) -> None:
    model_manager.train_forecasting_model(_series(60), horizon=5)

    forecast = model_manager.forecast_metric()
    assert forecast is not None and forecast.horizon == 5
    assert model_manager.forecast_metric(8).horizon == 8

    retrained = [
        model_manager.update_forecasting_model(point) for point in _series(150)[60:]
    ]

    assert retrained.count(True) == 1
    assert retrained[49] is True
    assert len(model_manager.get_forecast_buffer()) == 150


def test_retraining_waits_for_fifty_new_points_once_buffer_is_full(
    model_manager: RegressionModelManager,
) -> None:
    series = _series(1200)
    model_manager.train_forecasting_model(series[:1000], horizon=3)

    retrained = [model_manager.update_forecasting_model(point) for point in series[1000:]]

    assert [index for index, flag in enumerate(retrained) if flag] == [49, 99, 149, 199]
    assert len(model_manager.get_forecast_buffer()) == 1000


def test_small_buffer_retrains_once_it_reaches_minimum(
    model_manager: RegressionModelManager,
) -> None:
    series = _series(100)
    model_manager.train_forecasting_model(series[:40], horizon=3)

    retrained = [model_manager.update_forecasting_model(point) for point in series[40:]]

    assert [index for index, flag in enumerate(retrained) if flag] == [59]


def test_forecast_buffer_is_capped(model_manager: RegressionModelManager) -> None:
    model_manager.train_forecasting_model(_series(1200), horizon=3)
    assert len(model_manager.get_forecast_buffer()) == 1000


def test_update_without_model_is_ignored(model_manager: RegressionModelManager) -> None:
    assert model_manager.update_forecasting_model(MetricData(START, 1.0)) is False
    assert model_manager.get_forecast_buffer() == []


def test_forecasting_state_survives_reload(tmp_path: Path) -> None:
    storage = str(tmp_path / "models")
    first = RegressionModelManager(storage_path=storage)
    first.train_forecasting_model(_series(40), horizon=4)
    expected = first.forecast_metric()

    second = RegressionModelManager(storage_path=storage)

    assert second.forecast_metric() == expected
    assert len(second.get_forecast_buffer()) == 40


def test_dispose_is_idempotent_and_blocks_operations(
    model_manager: RegressionModelManager,
) -> None:
    results = []
    threads = [
        threading.Thread(target=lambda: results.append(model_manager.dispose()))
        for _ in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    with pytest.raises(DisposedStateError):
        model_manager.predict_optimization_gain(QUERY)
    with pytest.raises(DisposedStateError):
        model_manager.train_regression_model(_performance_samples())
