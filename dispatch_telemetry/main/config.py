"""
Application Settings - Main Layer

Use Pydantic Settings for configuration management.
This module handles configuration settings provided using
environment variables, .env files and default values.
"""

from datetime import timedelta
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dispatch_telemetry.domain.entities.forecasting import ForecastingMethod
from dispatch_telemetry.shared import EnumEnvironment, EnumLogLevel


class MetricStoreSettings(BaseSettings):
    """Metric history configuration settings."""

    max_history_size: int = Field(
        default=10_000,
        ge=1,
        le=1_000_000,
        description="Maximum samples retained per metric",
    )

    model_config = SettingsConfigDict(
        env_prefix="METRICS_", case_sensitive=False, extra="ignore"
    )


class AnomalySettings(BaseSettings):
    """Anomaly detection configuration settings."""

    threshold_multiplier: float = Field(
        default=3.0, gt=0, description="Standard deviations that mark an anomaly"
    )
    minimum_window: int = Field(
        default=12, ge=2, description="Samples required before detection runs"
    )

    model_config = SettingsConfigDict(
        env_prefix="ANOMALY_", case_sensitive=False, extra="ignore"
    )


class ForecastingSettings(BaseSettings):
    """Forecasting engine configuration settings."""

    default_horizon: int = Field(default=12, gt=0, description="Default forecast steps")
    default_method: ForecastingMethod = Field(
        default=ForecastingMethod.SSA, description="Method used when none is chosen"
    )
    minimum_data_points: int = Field(
        default=10, gt=0, description="Samples required to train a model"
    )
    training_window: timedelta = Field(
        default=timedelta(days=7),
        description="History considered for training (ISO-8601 duration, e.g. P7D)",
    )
    auto_train_on_forecast: bool = Field(
        default=True, description="Train a missing model on first forecast"
    )
    seed: int = Field(default=42, description="Seed handed to the strategies")
    confidence_level: float = Field(
        default=0.95, gt=0, lt=1, description="Confidence of the forecast band"
    )
    persist_models: bool = Field(
        default=False, description="Mirror trained forecasting models to disk"
    )

    model_config = SettingsConfigDict(
        env_prefix="FORECAST_", case_sensitive=False, extra="ignore"
    )


class TrainingSettings(BaseSettings):
    """Training session configuration settings."""

    forecast_horizon: int = Field(
        default=12, gt=0, description="Horizon of the throughput forecasting model"
    )
    min_execution_samples: int = Field(default=10, ge=1)
    min_optimization_samples: int = Field(default=5, ge=1)
    min_system_load_samples: int = Field(default=10, ge=3)

    model_config = SettingsConfigDict(
        env_prefix="TRAINING_", case_sensitive=False, extra="ignore"
    )


class PersistenceSettings(BaseSettings):
    """Model artifact storage settings."""

    storage_path: str = Field(
        default="./models", description="Directory holding persisted models"
    )
    random_state: int = Field(default=42, description="Seed of the ML estimators")

    model_config = SettingsConfigDict(
        env_prefix="PERSISTENCE_", case_sensitive=False, extra="ignore"
    )


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: EnumLogLevel = Field(default=EnumLogLevel.INFO, description="Logging level")
    file_path: Optional[str] = Field(
        default=None, description="Log file path (if None, logs to console)"
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_", case_sensitive=False, extra="ignore"
    )


class AppSettings(BaseSettings):
    """Main application settings, aggregating all sub-settings."""

    environment: EnumEnvironment = Field(
        default=EnumEnvironment.DEVELOPMENT, description="Application environment"
    )

    metrics: MetricStoreSettings = Field(default_factory=MetricStoreSettings)
    anomaly: AnomalySettings = Field(default_factory=AnomalySettings)
    forecasting: ForecastingSettings = Field(default_factory=ForecastingSettings)
    training: TrainingSettings = Field(default_factory=TrainingSettings)
    persistence: PersistenceSettings = Field(default_factory=PersistenceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )


def get_settings() -> AppSettings:
    """
    Get application settings instance Factory.

    Used to be mocked in tests, allowing different settings based on environment.
    """
    return AppSettings()
