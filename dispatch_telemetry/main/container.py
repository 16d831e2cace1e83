"""
Dependency container injection module - Main Layer

This module implements the dependency injection container
to simplify the management and lifecycle of dependencies
in the telemetry core.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from dependency_injector import containers, providers

from dispatch_telemetry.application.use_cases.anomaly_detection_use_case import (
    AnomalyDetector,
)
from dispatch_telemetry.application.use_cases.forecasting_predictor_use_case import (
    ForecastingPredictor,
)
from dispatch_telemetry.application.use_cases.forecasting_trainer_use_case import (
    ForecastingTrainer,
)
from dispatch_telemetry.application.use_cases.forecasting_use_case import (
    ForecastingService,
)
from dispatch_telemetry.application.use_cases.model_training_use_case import (
    ModelTrainingUseCase,
)
from dispatch_telemetry.application.use_cases.statistics_use_case import (
    StatisticsEngine,
)
from dispatch_telemetry.domain.entities.forecasting import ForecastingConfiguration
from dispatch_telemetry.infrastructure.repositories.filesystem_model_artifacts_repository import (
    FileSystemModelArtifactsRepository,
)
from dispatch_telemetry.infrastructure.repositories.forecast_model_repository import (
    ForecastModelRepository,
)
from dispatch_telemetry.infrastructure.repositories.in_memory_metric_repository import (
    InMemoryMetricRepository,
)
from dispatch_telemetry.infrastructure.services.forecasting_method_registry import (
    ForecastingMethodRegistry,
)
from dispatch_telemetry.infrastructure.services.regression_model_manager import (
    RegressionModelManager,
)
from dispatch_telemetry.shared import get_logger, update_logging_from_settings

from .config import AppSettings

logger = get_logger(__name__)


def _subdirectory(storage_path: str, name: str) -> str:
    return str(Path(storage_path) / name)


def _optional(enabled: bool, repository):
    return repository if enabled else None


class AppContainer(containers.DeclarativeContainer):
    """Composition Root using dependency-injector."""

    # Settings
    config = providers.Configuration()

    # Infrastructure
    metric_repository = providers.Singleton(
        InMemoryMetricRepository,
        max_history_size=config.metrics.max_history_size,
    )

    forecasting_configuration = providers.Singleton(
        ForecastingConfiguration,
        default_horizon=config.forecasting.default_horizon,
        default_method=config.forecasting.default_method,
        minimum_data_points=config.forecasting.minimum_data_points,
        training_window=config.forecasting.training_window,
        auto_train_on_forecast=config.forecasting.auto_train_on_forecast,
        seed=config.forecasting.seed,
        confidence_level=config.forecasting.confidence_level,
    )

    forecast_artifacts_repository = providers.Singleton(
        FileSystemModelArtifactsRepository,
        storage_path=providers.Callable(
            _subdirectory, config.persistence.storage_path, "forecasting"
        ),
    )

    forecast_model_repository = providers.Singleton(
        ForecastModelRepository,
        artifacts_repository=providers.Callable(
            _optional, config.forecasting.persist_models, forecast_artifacts_repository
        ),
    )

    method_registry = providers.Singleton(
        ForecastingMethodRegistry,
        default_method=config.forecasting.default_method,
    )

    regression_artifacts_repository = providers.Singleton(
        FileSystemModelArtifactsRepository,
        storage_path=providers.Callable(
            _subdirectory, config.persistence.storage_path, "optimization"
        ),
    )

    regression_model_manager = providers.Singleton(
        RegressionModelManager,
        storage_path=providers.Callable(
            _subdirectory, config.persistence.storage_path, "optimization"
        ),
        random_state=config.persistence.random_state,
        artifacts_repository=regression_artifacts_repository,
    )

    # Application (use cases)
    statistics_engine = providers.Singleton(
        StatisticsEngine,
        metric_repository=metric_repository,
    )

    anomaly_detector = providers.Singleton(
        AnomalyDetector,
        metric_repository=metric_repository,
        threshold_multiplier=config.anomaly.threshold_multiplier,
        minimum_window=config.anomaly.minimum_window,
    )

    forecasting_trainer = providers.Singleton(
        ForecastingTrainer,
        metric_repository=metric_repository,
        model_repository=forecast_model_repository,
        method_registry=method_registry,
        configuration=forecasting_configuration,
    )

    forecasting_predictor = providers.Singleton(
        ForecastingPredictor,
        trainer=forecasting_trainer,
        model_repository=forecast_model_repository,
        method_registry=method_registry,
        configuration=forecasting_configuration,
    )

    forecasting_service = providers.Singleton(
        ForecastingService,
        trainer=forecasting_trainer,
        predictor=forecasting_predictor,
        method_registry=method_registry,
    )

    model_training_use_case = providers.Singleton(
        ModelTrainingUseCase,
        model_manager=regression_model_manager,
        forecast_horizon=config.training.forecast_horizon,
        min_execution_samples=config.training.min_execution_samples,
        min_optimization_samples=config.training.min_optimization_samples,
        min_system_load_samples=config.training.min_system_load_samples,
    )


# -------------------------
# Global Container Instance
# -------------------------
_app_container: AppContainer | None = None


def init_container(settings: AppSettings) -> AppContainer:
    """Initialize global container with application settings."""

    global _app_container

    update_logging_from_settings(settings)

    container = AppContainer()
    container.config.from_pydantic(settings)
    _app_container = container
    return container


def get_container() -> AppContainer:
    """Get the initialized global container."""

    if _app_container is None:
        raise RuntimeError("Container has not been initialized yet")

    return _app_container


@asynccontextmanager
async def telemetry_lifespan():
    """
    Centralized lifecycle management for the telemetry core.

    Yields the initialized container and, on exit, disposes the training
    use case and the model manager so no session can start afterwards.
    """
    container = get_container()

    training_use_case = container.model_training_use_case()
    model_manager = container.regression_model_manager()

    try:
        logger.info("container.resources.initialized")
        yield container
    finally:
        training_use_case.dispose()
        model_manager.dispose()
        logger.info("container.resources.shutdown")
