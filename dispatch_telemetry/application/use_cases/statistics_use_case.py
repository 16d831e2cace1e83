"""
Application Use Case - Metric Statistics

Descriptive statistics over the stored history of a metric.
"""

from datetime import timedelta
from typing import Optional

import structlog

from dispatch_telemetry.domain.entities.errors import DomainError, StatisticsError
from dispatch_telemetry.domain.entities.metric import StatisticsSnapshot
from dispatch_telemetry.domain.repositories.metric_repository import IMetricRepository
from dispatch_telemetry.domain.services.argument_validator import ensure_metric_name
from dispatch_telemetry.domain.services.statistics_calculator import summarize

logger = structlog.get_logger(__name__)


class StatisticsEngine:
    """Computes count, mean, spread and percentiles for one metric."""

    def __init__(self, metric_repository: IMetricRepository):
        self.metric_repository = metric_repository

    def get_statistics(
        self, metric_name: str, period: Optional[timedelta] = None
    ) -> Optional[StatisticsSnapshot]:
        """
        Summarize the history of ``metric_name``.

        Args:
            metric_name: Metric to summarize
            period: Optional trailing window; the whole history when omitted

        Returns:
            The snapshot, or None when the metric has no samples in range

        Raises:
            ArgumentInvalidError: If the metric name is blank
            StatisticsError: If the calculation fails unexpectedly
        """
        ensure_metric_name(metric_name)

        try:
            history = self.metric_repository.get_history(metric_name, period)
            if not history:
                return None
            return summarize(metric_name, [sample.value for sample in history])
        except DomainError:
            raise
        except Exception as e:
            logger.error(
                "statistics.failed", metric_name=metric_name, error=str(e), exc_info=e
            )
            raise StatisticsError(metric_name, e) from e
