"""
Repositories Package

This package contains interfaces defining repository contracts
for data access operations. Specific implementations are provided
by the infrastructure layer.
"""

from .metric_repository import IMetricRepository
from .model_artifacts_repository import IModelArtifactsRepository, ModelArtifact

__all__ = ["IMetricRepository", "IModelArtifactsRepository", "ModelArtifact"]
