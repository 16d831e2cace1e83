"""
Application Use Cases - Model Training

This module contains the use case that runs a complete training session over
a snapshot of upstream telemetry. A session walks a fixed sequence of phases:

  validation -> performance models -> optimization classifiers ->
  anomaly detection -> forecasting -> statistics -> completed

and reports progress to an optional callback after each phase. Blocking
model fitting runs in worker threads so the event loop stays responsive.
"""

import asyncio
import itertools
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import structlog

from dispatch_telemetry.domain.entities.errors import (
    ArgumentInvalidError,
    DisposedStateError,
    OperationCancelledError,
)
from dispatch_telemetry.domain.entities.metric import StatisticsSnapshot
from dispatch_telemetry.domain.entities.training import (
    MetricData,
    ModelMetrics,
    OptimizationResult,
    OptimizationStrategyData,
    PerformanceData,
    RequestExecutionMetrics,
    SystemLoadMetrics,
    TrainingPhase,
    TrainingProgress,
    TrainingSessionResult,
    TrainingSnapshot,
)
from dispatch_telemetry.domain.services.statistics_calculator import summarize
from dispatch_telemetry.infrastructure.services.regression_model_manager import (
    RegressionModelManager,
)

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[TrainingProgress], None]

PHASE_PERCENTAGES: Dict[TrainingPhase, float] = {
    TrainingPhase.VALIDATION: 5.0,
    TrainingPhase.PERFORMANCE_MODELS: 25.0,
    TrainingPhase.OPTIMIZATION_CLASSIFIERS: 45.0,
    TrainingPhase.ANOMALY_DETECTION: 65.0,
    TrainingPhase.FORECASTING: 80.0,
    TrainingPhase.STATISTICS: 95.0,
    TrainingPhase.COMPLETED: 100.0,
}


def _milliseconds(value: timedelta) -> float:
    return value.total_seconds() * 1000.0


def estimate_optimization_gain(metrics: RequestExecutionMetrics) -> float:
    """Relative headroom between p95 and mean latency, weighted by success rate."""
    p95 = _milliseconds(metrics.p95_execution_time)
    if p95 <= 0:
        return 0.0
    headroom = (p95 - _milliseconds(metrics.average_execution_time)) / p95
    return float(np.clip(headroom * metrics.success_rate, 0.0, 1.0))


@dataclass
class _Session:
    """Mutable state of one running training session."""

    session_id: int
    snapshot: TrainingSnapshot
    callback: Optional[ProgressCallback]
    cancel_event: Optional[threading.Event]
    started_at: float = field(default_factory=time.perf_counter)
    samples_processed: int = 0
    regression_metrics: ModelMetrics = field(default_factory=ModelMetrics)
    classification_metrics: ModelMetrics = field(default_factory=ModelMetrics)
    statistics: Dict[str, StatisticsSnapshot] = field(default_factory=dict)

    @property
    def elapsed(self) -> timedelta:
        return timedelta(seconds=time.perf_counter() - self.started_at)


class ModelTrainingUseCase:
    """Use case for running multi-phase training sessions."""

    def __init__(
        self,
        model_manager: RegressionModelManager,
        forecast_horizon: int = 12,
        min_execution_samples: int = 10,
        min_optimization_samples: int = 5,
        min_system_load_samples: int = 10,
    ):
        """
        Initialize the model training use case.

        Args:
            model_manager: Trains and persists the optimization models
            forecast_horizon: Horizon of the throughput forecasting model
            min_execution_samples: Minimum execution history per session
            min_optimization_samples: Minimum optimization history per session
            min_system_load_samples: Minimum system-load history per session
        """
        if forecast_horizon <= 0:
            raise ArgumentInvalidError(
                "Forecast horizon must be greater than 0", "forecast_horizon"
            )
        self.model_manager = model_manager
        self.forecast_horizon = forecast_horizon
        self.min_execution_samples = min_execution_samples
        self.min_optimization_samples = min_optimization_samples
        self.min_system_load_samples = min_system_load_samples

        self._lock = threading.Lock()
        self._session_ids = itertools.count(1)
        self._completed_sessions = 0
        self._disposed = False

    @property
    def completed_sessions(self) -> int:
        with self._lock:
            return self._completed_sessions

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    async def train(
        self,
        snapshot: TrainingSnapshot,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TrainingSessionResult:
        """
        Run a complete training session.

        Args:
            snapshot: Execution, optimization and system-load history
            progress_callback: Receives one report per phase; exceptions it
                raises are logged and ignored
            cancel_event: Checked at the start of every phase

        Returns:
            Metrics and statistics produced by the session

        Raises:
            DisposedStateError: If the use case has been disposed
            ArgumentInvalidError: If the snapshot fails validation
            OperationCancelledError: If cancellation is requested mid-session
        """
        if self._disposed:
            raise DisposedStateError("ModelTrainingUseCase")

        self._validate(snapshot)

        with self._lock:
            session_id = next(self._session_ids)
        session = _Session(session_id, snapshot, progress_callback, cancel_event)

        logger.info(
            "training.session_started",
            session_id=session_id,
            total_samples=snapshot.total_samples,
        )

        phases = [
            (TrainingPhase.VALIDATION, self._run_validation),
            (TrainingPhase.PERFORMANCE_MODELS, self._run_performance_models),
            (TrainingPhase.OPTIMIZATION_CLASSIFIERS, self._run_classifiers),
            (TrainingPhase.ANOMALY_DETECTION, self._run_anomaly_detection),
            (TrainingPhase.FORECASTING, self._run_forecasting),
            (TrainingPhase.STATISTICS, self._run_statistics),
        ]
        for phase, handler in phases:
            self._check_cancelled(session, phase)
            message, current_metrics = await handler(session)
            self._report(session, phase, message, current_metrics)

        self._check_cancelled(session, TrainingPhase.COMPLETED)
        self._report(
            session,
            TrainingPhase.COMPLETED,
            "Training session completed successfully",
        )

        with self._lock:
            self._completed_sessions += 1

        result = TrainingSessionResult(
            session_id=session_id,
            regression_metrics=session.regression_metrics,
            classification_metrics=session.classification_metrics,
            statistics=session.statistics,
            data_quality_score=self._data_quality_score(snapshot),
            elapsed_time=session.elapsed,
        )
        logger.info(
            "training.session_completed",
            session_id=session_id,
            elapsed_seconds=result.elapsed_time.total_seconds(),
            data_quality_score=result.data_quality_score,
        )
        return result

    def dispose(self) -> bool:
        """Tear down the use case; only the first call returns True."""
        with self._lock:
            if self._disposed:
                return False
            self._disposed = True
            completed = self._completed_sessions
        logger.info("training.disposed", completed_sessions=completed)
        return True

    # ------------------------------------------------------------------
    # Validation and reporting
    # ------------------------------------------------------------------

    def _validate(self, snapshot: TrainingSnapshot) -> None:
        if snapshot is None:
            raise ArgumentInvalidError("Training snapshot cannot be None", "snapshot")

        requirements = [
            ("execution_history", snapshot.execution_history, self.min_execution_samples),
            (
                "optimization_history",
                snapshot.optimization_history,
                self.min_optimization_samples,
            ),
            (
                "system_load_history",
                snapshot.system_load_history,
                self.min_system_load_samples,
            ),
        ]
        for argument, history, minimum in requirements:
            if history is None:
                raise ArgumentInvalidError(f"{argument} cannot be None", argument)
            if len(history) < minimum:
                raise ArgumentInvalidError(
                    f"{argument} requires at least {minimum} samples, "
                    f"got {len(history)}",
                    argument,
                    {"minimum_required": minimum, "actual_count": len(history)},
                )

    def _check_cancelled(self, session: _Session, phase: TrainingPhase) -> None:
        if session.cancel_event is not None and session.cancel_event.is_set():
            logger.info(
                "training.session_cancelled",
                session_id=session.session_id,
                phase=phase.value,
            )
            raise OperationCancelledError(
                "Training session",
                {"session_id": session.session_id, "phase": phase.value},
            )

    def _report(
        self,
        session: _Session,
        phase: TrainingPhase,
        message: str,
        current_metrics: Optional[ModelMetrics] = None,
    ) -> None:
        progress = TrainingProgress(
            phase=phase,
            progress_percentage=PHASE_PERCENTAGES[phase],
            status_message=message,
            samples_processed=session.samples_processed,
            total_samples=session.snapshot.total_samples,
            elapsed_time=session.elapsed,
            current_metrics=current_metrics,
        )
        logger.debug(
            "training.progress",
            session_id=session.session_id,
            phase=phase.value,
            progress=progress.progress_percentage,
        )
        if session.callback is None:
            return
        try:
            session.callback(progress)
        except Exception as e:
            logger.warning(
                "training.progress_callback_failed",
                session_id=session.session_id,
                phase=phase.value,
                error=str(e),
                error_type=type(e).__name__,
            )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _run_validation(self, session: _Session):
        return "Training data validated", None

    async def _run_performance_models(self, session: _Session):
        history: Sequence[RequestExecutionMetrics] = session.snapshot.execution_history
        samples = [
            PerformanceData(
                execution_time=_milliseconds(item.average_execution_time),
                concurrency_level=float(item.concurrent_executions),
                memory_usage=float(item.memory_usage),
                database_calls=float(item.database_calls),
                external_api_calls=float(item.external_api_calls),
                optimization_gain=estimate_optimization_gain(item),
            )
            for item in history
        ]
        session.regression_metrics = await asyncio.to_thread(
            self.model_manager.train_regression_model, samples
        )
        session.samples_processed += len(history)
        return (
            f"Trained performance model on {len(samples)} samples",
            session.regression_metrics,
        )

    async def _run_classifiers(self, session: _Session):
        history: Sequence[OptimizationResult] = session.snapshot.optimization_history
        snapshot = session.snapshot

        strategy_counts: Dict[str, int] = {}
        for item in history:
            strategy_counts[item.strategy_id] = strategy_counts.get(item.strategy_id, 0) + 1

        concurrency = float(
            np.mean([item.concurrent_executions for item in snapshot.execution_history])
        )
        error_rate = float(np.mean([item.error_rate for item in snapshot.execution_history]))
        memory_pressure = float(
            np.mean([item.memory_utilization for item in snapshot.system_load_history])
        )

        samples = [
            OptimizationStrategyData(
                execution_time=_milliseconds(item.execution_time),
                repeat_rate=strategy_counts[item.strategy_id] / len(history),
                concurrency_level=concurrency,
                memory_pressure=memory_pressure,
                error_rate=error_rate,
                should_optimize=item.success and item.performance_improvement > 0,
            )
            for item in history
        ]
        session.classification_metrics = await asyncio.to_thread(
            self.model_manager.train_classification_model, samples
        )
        session.samples_processed += len(history)
        return (
            f"Trained optimization classifier on {len(samples)} samples",
            session.classification_metrics,
        )

    async def _run_anomaly_detection(self, session: _Session):
        history: Sequence[SystemLoadMetrics] = session.snapshot.system_load_history
        series = [MetricData(item.timestamp, item.cpu_utilization) for item in history]
        await asyncio.to_thread(self.model_manager.train_anomaly_detection_model, series)
        session.samples_processed += len(history)
        return f"Trained anomaly detection model on {len(series)} samples", None

    async def _run_forecasting(self, session: _Session):
        history = sorted(session.snapshot.system_load_history, key=lambda item: item.timestamp)
        series = [MetricData(item.timestamp, item.throughput_per_second) for item in history]
        await asyncio.to_thread(
            self.model_manager.train_forecasting_model, series, self.forecast_horizon
        )
        return (
            f"Trained throughput forecasting model (horizon {self.forecast_horizon})",
            None,
        )

    async def _run_statistics(self, session: _Session):
        snapshot = session.snapshot
        signals: Dict[str, List[float]] = {
            "execution_time_ms": [
                _milliseconds(item.average_execution_time)
                for item in snapshot.execution_history
            ],
            "performance_improvement": [
                item.performance_improvement for item in snapshot.optimization_history
            ],
            "cpu_utilization": [
                item.cpu_utilization for item in snapshot.system_load_history
            ],
            "memory_utilization": [
                item.memory_utilization for item in snapshot.system_load_history
            ],
            "throughput_per_second": [
                item.throughput_per_second for item in snapshot.system_load_history
            ],
        }
        session.statistics = {
            name: summarize(name, values) for name, values in signals.items() if values
        }
        return f"Calculated statistics for {len(session.statistics)} signals", None

    @staticmethod
    def _data_quality_score(snapshot: TrainingSnapshot) -> float:
        """Share of records whose numeric fields are finite and non-negative."""

        def valid(values: Sequence[float]) -> bool:
            return all(np.isfinite(value) and value >= 0 for value in values)

        checks = [
            valid(
                [
                    _milliseconds(item.average_execution_time),
                    float(item.total_executions),
                    float(item.memory_usage),
                ]
            )
            for item in snapshot.execution_history
        ]
        checks += [
            valid([_milliseconds(item.execution_time)])
            for item in snapshot.optimization_history
        ]
        checks += [
            valid(
                [
                    item.cpu_utilization,
                    item.memory_utilization,
                    item.throughput_per_second,
                ]
            )
            for item in snapshot.system_load_history
        ]
        if not checks:
            return 0.0
        return sum(checks) / len(checks)
