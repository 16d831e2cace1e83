from __future__ import annotations

from datetime import timedelta

import pytest

from dispatch_telemetry.domain.entities.errors import DisposedStateError
from dispatch_telemetry.domain.entities.training import PerformanceData
from dispatch_telemetry.main.config import (
    AppSettings,
    ForecastingSettings,
    PersistenceSettings,
)
from dispatch_telemetry.main.container import (
    get_container,
    init_container,
    telemetry_lifespan,
)


@pytest.fixture()
def settings(tmp_path) -> AppSettings:
    return AppSettings(persistence=PersistenceSettings(storage_path=str(tmp_path)))


def test_init_and_get_container(settings: AppSettings) -> None:
    container = init_container(settings)

    assert get_container() is container
    assert container.forecasting_service() is container.forecasting_service()
    assert container.forecasting_trainer().metric_repository is container.metric_repository()
    assert container.forecast_model_repository().artifacts_repository is None


def test_container_wires_forecasting_end_to_end(settings: AppSettings, now) -> None:
    container = init_container(settings)
    repository = container.metric_repository()

    for index in range(30):
        repository.store_metric("cpu", 50.0 + index % 5, now - timedelta(minutes=30 - index))

    result = container.forecasting_service().forecast("cpu", 4)

    assert result is not None
    assert result.horizon == 4
    assert container.statistics_engine().get_statistics("cpu").count == 30


def test_persisted_forecast_models_survive_restart(tmp_path, now) -> None:
    settings = AppSettings(
        persistence=PersistenceSettings(storage_path=str(tmp_path)),
        forecasting=ForecastingSettings(persist_models=True),
    )

    container = init_container(settings)
    for index in range(20):
        container.metric_repository().store_metric(
            "cpu", float(index), now - timedelta(minutes=20 - index)
        )
    container.forecasting_trainer().train_model("cpu")

    restarted = init_container(settings)

    assert restarted.forecast_model_repository().has("cpu")
    assert (tmp_path / "forecasting").is_dir()


@pytest.mark.asyncio
async def test_lifespan_disposes_training_resources(settings: AppSettings) -> None:
    container = init_container(settings)

    async with telemetry_lifespan() as yielded:
        assert yielded is container

    assert container.model_training_use_case().is_disposed is True
    with pytest.raises(DisposedStateError):
        container.regression_model_manager().predict_optimization_gain(
            PerformanceData(1.0, 1.0, 1.0, 1.0, 1.0)
        )


def test_get_container_without_init_raises(monkeypatch) -> None:
    monkeypatch.setattr("dispatch_telemetry.main.container._app_container", None)
    with pytest.raises(RuntimeError):
        get_container()
