"""
Application Use Case - Anomaly Detection

Flags samples that deviate from the recent baseline of a metric. The
baseline is the mean and population standard deviation of the examined
window; a sample is anomalous when its distance from the mean exceeds
``threshold_multiplier`` standard deviations.
"""

import asyncio
import threading
from typing import List, Optional, Sequence

import numpy as np
import structlog

from dispatch_telemetry.domain.entities.errors import (
    AnomalyDetectionError,
    ArgumentInvalidError,
    DomainError,
    OperationCancelledError,
)
from dispatch_telemetry.domain.entities.metric import AnomalyRecord, MetricSample
from dispatch_telemetry.domain.repositories.metric_repository import IMetricRepository
from dispatch_telemetry.domain.services.argument_validator import ensure_metric_name

logger = structlog.get_logger(__name__)

DEFAULT_LOOKBACK_POINTS = 100
CANCELLATION_CHECK_INTERVAL = 64


def _check_cancelled(cancel_event: Optional[threading.Event], metric_name: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(
            "Anomaly detection", {"metric_name": metric_name}
        )


class AnomalyDetector:
    """Z-score anomaly detector over the most recent samples of a metric."""

    def __init__(
        self,
        metric_repository: IMetricRepository,
        threshold_multiplier: float = 3.0,
        minimum_window: int = 12,
    ):
        if threshold_multiplier <= 0:
            raise ArgumentInvalidError(
                "Threshold multiplier must be positive", "threshold_multiplier"
            )
        if minimum_window < 2:
            raise ArgumentInvalidError(
                "Minimum window must be at least 2", "minimum_window"
            )
        self.metric_repository = metric_repository
        self.threshold_multiplier = threshold_multiplier
        self.minimum_window = minimum_window

    def _validate(self, metric_name: str, lookback_points: int) -> None:
        ensure_metric_name(metric_name)
        if isinstance(lookback_points, bool) or lookback_points <= 0:
            raise ArgumentInvalidError(
                "lookback_points must be greater than 0", "lookback_points"
            )

    def _scan(
        self,
        metric_name: str,
        samples: Sequence[MetricSample],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[AnomalyRecord]:
        if len(samples) < self.minimum_window:
            return []

        values = np.array([sample.value for sample in samples], dtype=np.float64)
        mean = float(np.mean(values))
        std = float(np.std(values))
        if std == 0 or not np.isfinite(std):
            return []

        threshold = self.threshold_multiplier * std
        anomalies = []
        for index, sample in enumerate(samples):
            if index % CANCELLATION_CHECK_INTERVAL == 0:
                _check_cancelled(cancel_event, metric_name)
            deviation = abs(sample.value - mean)
            if deviation > threshold:
                anomalies.append(
                    AnomalyRecord(
                        metric_name=metric_name,
                        timestamp=sample.timestamp,
                        value=sample.value,
                        score=deviation / std,
                        magnitude=deviation,
                    )
                )
        return anomalies

    def _detect(
        self,
        metric_name: str,
        lookback_points: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[AnomalyRecord]:
        try:
            samples = self.metric_repository.get_recent_metrics(
                metric_name, lookback_points
            )
            anomalies = self._scan(metric_name, samples, cancel_event)
        except DomainError:
            raise
        except Exception as e:
            logger.error(
                "anomaly.detection_failed",
                metric_name=metric_name,
                error=str(e),
                exc_info=e,
            )
            raise AnomalyDetectionError(metric_name, e) from e

        if anomalies:
            logger.info(
                "anomaly.detected",
                metric_name=metric_name,
                count=len(anomalies),
                examined=lookback_points,
            )
        return anomalies

    def detect_anomalies(
        self, metric_name: str, lookback_points: int = DEFAULT_LOOKBACK_POINTS
    ) -> List[AnomalyRecord]:
        """
        Return the anomalous samples among the last ``lookback_points``.

        Raises:
            ArgumentInvalidError: On a blank name or non-positive lookback
            AnomalyDetectionError: If the scan fails unexpectedly
        """
        self._validate(metric_name, lookback_points)
        return self._detect(metric_name, lookback_points)

    async def detect_anomalies_async(
        self,
        metric_name: str,
        lookback_points: int = DEFAULT_LOOKBACK_POINTS,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[AnomalyRecord]:
        """
        Asynchronous ``detect_anomalies`` that honours ``cancel_event``.

        Raises:
            OperationCancelledError: If cancellation is requested before or
                during the scan
        """
        self._validate(metric_name, lookback_points)
        _check_cancelled(cancel_event, metric_name)
        return await asyncio.to_thread(
            self._detect, metric_name, lookback_points, cancel_event
        )
