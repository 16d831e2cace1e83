"""
Forecast Model Repository - Infrastructure Layer

Thread-safe store of the trained forecasting model per metric. When an
artifacts repository is supplied, every store and remove is mirrored to it
and previously persisted models are loaded lazily on first access.
"""

import io
import threading
from typing import Dict, Iterable, List, Mapping, Optional

import joblib

from dispatch_telemetry.domain.entities.errors import ModelPersistenceError
from dispatch_telemetry.domain.entities.forecasting import ForecastModelRecord
from dispatch_telemetry.domain.repositories.model_artifacts_repository import (
    IModelArtifactsRepository,
)
from dispatch_telemetry.domain.services.argument_validator import ensure_metric_name
from dispatch_telemetry.shared import get_logger

logger = get_logger(__name__)


def _serialize(record: ForecastModelRecord) -> bytes:
    buffer = io.BytesIO()
    joblib.dump(record, buffer)
    return buffer.getvalue()


def _deserialize(content: bytes) -> ForecastModelRecord:
    return joblib.load(io.BytesIO(content))


class ForecastModelRepository:
    """Per-metric registry of trained forecasting models."""

    def __init__(self, artifacts_repository: Optional[IModelArtifactsRepository] = None):
        self.artifacts_repository = artifacts_repository
        self._models: Dict[str, ForecastModelRecord] = {}
        self._lock = threading.RLock()
        self._loaded = artifacts_repository is None

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            restored = 0
            for metric_name in self.artifacts_repository.list_artifacts():
                artifact = self.artifacts_repository.get_artifact(metric_name)
                if artifact is None:
                    continue
                try:
                    record = _deserialize(artifact.content)
                except Exception as e:
                    logger.error(
                        "forecast_models.load_failed",
                        metric_name=metric_name,
                        error=str(e),
                        exc_info=e,
                    )
                    raise ModelPersistenceError(
                        f"Failed to load forecasting model for {metric_name}: {e}",
                        {"metric_name": metric_name},
                    ) from e
                self._models.setdefault(metric_name, record)
                restored += 1
            self._loaded = True
            if restored:
                logger.info("forecast_models.restored", count=restored)

    def _persist(self, metric_name: str, record: ForecastModelRecord) -> None:
        if self.artifacts_repository is None:
            return
        self.artifacts_repository.save_artifact(
            metric_name,
            _serialize(record),
            {
                "method": record.method.value,
                "trained_at": record.trained_at.isoformat(),
            },
        )

    def _unpersist(self, metric_name: str) -> None:
        if self.artifacts_repository is not None:
            self.artifacts_repository.delete_artifact(metric_name)

    def store(self, record: ForecastModelRecord) -> None:
        ensure_metric_name(record.metric_name)
        self._ensure_loaded()
        with self._lock:
            self._persist(record.metric_name, record)
            self._models[record.metric_name] = record
        logger.debug(
            "forecast_models.stored",
            metric_name=record.metric_name,
            method=record.method.value,
        )

    def get(self, metric_name: str) -> Optional[ForecastModelRecord]:
        ensure_metric_name(metric_name)
        self._ensure_loaded()
        with self._lock:
            return self._models.get(metric_name)

    def has(self, metric_name: str) -> bool:
        return self.get(metric_name) is not None

    def remove(self, metric_name: str) -> bool:
        ensure_metric_name(metric_name)
        self._ensure_loaded()
        with self._lock:
            removed = metric_name in self._models
            if removed:
                self._unpersist(metric_name)
                del self._models[metric_name]
        return removed

    def store_many(self, records: Mapping[str, ForecastModelRecord]) -> None:
        for metric_name in records:
            ensure_metric_name(metric_name)
        self._ensure_loaded()
        with self._lock:
            for metric_name, record in records.items():
                self._persist(metric_name, record)
                self._models[metric_name] = record

    def remove_many(self, metric_names: Iterable[str]) -> int:
        names = list(metric_names)
        for metric_name in names:
            ensure_metric_name(metric_name)
        self._ensure_loaded()
        removed = 0
        with self._lock:
            for metric_name in names:
                if metric_name in self._models:
                    self._unpersist(metric_name)
                    del self._models[metric_name]
                    removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._models.clear()
            if self.artifacts_repository is not None:
                self.artifacts_repository.clear()
            self._loaded = True
        logger.info("forecast_models.cleared")

    def count(self) -> int:
        self._ensure_loaded()
        with self._lock:
            return len(self._models)

    def get_metric_names(self) -> List[str]:
        self._ensure_loaded()
        with self._lock:
            return sorted(self._models)
