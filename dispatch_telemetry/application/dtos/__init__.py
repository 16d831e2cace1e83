"""
DTOs Package - Application Layer

This package contains Data Transfer Objects (DTOs) used to validate the
telemetry batches handed to the core before they become domain entities.
"""

from .telemetry_dto import (
    ExecutionSampleDTO,
    MetricBatchDTO,
    OptimizationAttemptDTO,
    SystemLoadSampleDTO,
    TrainingSnapshotDTO,
)

__all__ = [
    "ExecutionSampleDTO",
    "MetricBatchDTO",
    "OptimizationAttemptDTO",
    "SystemLoadSampleDTO",
    "TrainingSnapshotDTO",
]
