"""
Repositories Package - Infrastructure Layer

This package contains concrete implementations of the repository
interfaces defined in the domain layer. These implementations
handle the details of data persistence.
"""

from .filesystem_model_artifacts_repository import FileSystemModelArtifactsRepository
from .forecast_model_repository import ForecastModelRepository
from .in_memory_metric_repository import InMemoryMetricRepository

__all__ = [
    "FileSystemModelArtifactsRepository",
    "ForecastModelRepository",
    "InMemoryMetricRepository",
]
