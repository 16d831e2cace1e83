"""
Regression Model Manager - Infrastructure Layer

Owns the scikit-learn models behind optimization decisions:

  * Regression: predicted optimization gain from execution features
  * Classification: whether a request profile should be optimized
  * Anomaly detection: isolation forest over a metric's values
  * Forecasting: SSA model over a sliding buffer of observations

Every trained model is serialized with joblib and written through the
artifacts repository, which replaces files atomically. A manager created on
an existing storage directory loads the persisted models lazily on first use.
"""

import io
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

import joblib
import numpy as np
import structlog
from sklearn.dummy import DummyClassifier
from sklearn.ensemble import (
    GradientBoostingClassifier,
    GradientBoostingRegressor,
    IsolationForest,
)
from sklearn.metrics import (
    accuracy_score,
    f1_score,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score,
)
from sklearn.model_selection import train_test_split
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import MinMaxScaler

from dispatch_telemetry.domain.entities.errors import (
    ArgumentInvalidError,
    DisposedStateError,
    ModelPersistenceError,
    ModelTrainingError,
)
from dispatch_telemetry.domain.entities.forecasting import ForecastResult
from dispatch_telemetry.domain.entities.training import (
    MetricData,
    ModelMetrics,
    OptimizationStrategyData,
    PerformanceData,
)
from dispatch_telemetry.domain.repositories.model_artifacts_repository import (
    IModelArtifactsRepository,
)
from dispatch_telemetry.infrastructure.repositories.filesystem_model_artifacts_repository import (
    FileSystemModelArtifactsRepository,
)
from dispatch_telemetry.infrastructure.services.forecasting_strategies import (
    SSAStrategy,
)

logger = structlog.get_logger(__name__)

REGRESSION_FEATURES = (
    "execution_time",
    "concurrency_level",
    "memory_usage",
    "database_calls",
    "external_api_calls",
)
CLASSIFICATION_FEATURES = (
    "execution_time",
    "repeat_rate",
    "concurrency_level",
    "memory_pressure",
    "error_rate",
)

REGRESSION_KEY = "regression"
CLASSIFICATION_KEY = "classification"
ANOMALY_KEY = "anomaly_detection"
FORECASTING_KEY = "forecasting"
MODEL_KEYS = (REGRESSION_KEY, CLASSIFICATION_KEY, ANOMALY_KEY, FORECASTING_KEY)

DEFAULT_PREDICTION = 0.5
FORECAST_BUFFER_SIZE = 1000
RETRAIN_INTERVAL = 50
RETRAIN_MINIMUM = 100
HOLDOUT_MINIMUM = 20
CONFIDENCE_LEVEL = 0.95


def _feature_matrix(rows: Sequence[Any], names: Sequence[str]) -> np.ndarray:
    return np.array(
        [[float(getattr(row, name)) for name in names] for row in rows],
        dtype=np.float64,
    )


def _split(features: np.ndarray, target: np.ndarray, random_state: int):
    """Hold out 20% for evaluation once there is enough data, else evaluate in-sample."""
    if len(target) < HOLDOUT_MINIMUM:
        return features, features, target, target
    return train_test_split(features, target, test_size=0.2, random_state=random_state)


def _correlation_importance(features: np.ndarray, target: np.ndarray) -> np.ndarray:
    scores = np.zeros(features.shape[1])
    if np.std(target) == 0:
        return scores
    for index in range(features.shape[1]):
        column = features[:, index]
        if np.std(column) == 0:
            continue
        coefficient = np.corrcoef(column, target)[0, 1]
        if np.isfinite(coefficient):
            scores[index] = abs(coefficient)
    return scores


class RegressionModelManager:
    """Trains, persists and serves the optimization models."""

    def __init__(
        self,
        storage_path: str,
        random_state: int = 42,
        artifacts_repository: Optional[IModelArtifactsRepository] = None,
    ):
        """
        Initialize the manager.

        Args:
            storage_path: Directory where model artifacts are persisted
            random_state: Seed handed to every estimator
            artifacts_repository: Storage backend; defaults to a filesystem
                repository rooted at ``storage_path``
        """
        self.storage_path = storage_path
        self.random_state = random_state
        self.artifacts_repository = artifacts_repository or FileSystemModelArtifactsRepository(
            storage_path
        )

        self._lock = threading.RLock()
        self._models: Dict[str, Dict[str, Any]] = {}
        self._loaded = False
        self._disposed = False

        self._forecast_buffer: Deque[MetricData] = deque(maxlen=FORECAST_BUFFER_SIZE)
        self._observations_since_fit = 0
        self._forecast_horizon = 12
        self._forecast_strategy = SSAStrategy()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _ensure_active(self) -> None:
        if self._disposed:
            raise DisposedStateError("RegressionModelManager")

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            for key in MODEL_KEYS:
                artifact = self.artifacts_repository.get_artifact(key)
                if artifact is None:
                    continue
                try:
                    self._models[key] = joblib.load(io.BytesIO(artifact.content))
                except Exception as e:
                    logger.error("models.load_failed", model=key, error=str(e), exc_info=e)
                    raise ModelPersistenceError(
                        f"Failed to load {key} model: {e}", {"model": key}
                    ) from e
                logger.info("models.loaded", model=key, location=artifact.location)

            forecasting = self._models.get(FORECASTING_KEY)
            if forecasting is not None:
                self._forecast_buffer.extend(forecasting["buffer"])
                self._forecast_horizon = forecasting["horizon"]
            self._loaded = True

    def _save(self, key: str, payload: Dict[str, Any]) -> None:
        buffer = io.BytesIO()
        joblib.dump(payload, buffer)
        self.artifacts_repository.save_artifact(
            key, buffer.getvalue(), {"model": key, "random_state": self.random_state}
        )
        self._models[key] = payload

    def _get(self, key: str) -> Optional[Dict[str, Any]]:
        self._ensure_active()
        self._ensure_loaded()
        with self._lock:
            return self._models.get(key)

    def has_persisted_models(self) -> bool:
        self._ensure_active()
        persisted = set(self.artifacts_repository.list_artifacts())
        return any(key in persisted for key in MODEL_KEYS)

    def clear_persisted_models(self) -> None:
        self._ensure_active()
        with self._lock:
            for key in MODEL_KEYS:
                self.artifacts_repository.delete_artifact(key)
            self._models.clear()
            self._forecast_buffer.clear()
            self._observations_since_fit = 0
            self._loaded = True
        logger.info("models.cleared", storage_path=str(self.storage_path))

    # ------------------------------------------------------------------
    # Regression
    # ------------------------------------------------------------------

    def train_regression_model(self, samples: Sequence[PerformanceData]) -> ModelMetrics:
        """
        Train the optimization-gain regressor and persist it.

        Raises:
            ArgumentInvalidError: If fewer than two samples are given
            ModelTrainingError: If fitting fails
        """
        self._ensure_active()
        if samples is None or len(samples) < 2:
            raise ArgumentInvalidError(
                "At least two performance samples are required", "samples"
            )

        features = _feature_matrix(samples, REGRESSION_FEATURES)
        target = np.array([float(s.optimization_gain) for s in samples])

        logger.info("models.regression.training", samples=len(samples))
        try:
            x_train, x_test, y_train, y_test = _split(features, target, self.random_state)
            model = Pipeline(
                [
                    ("scaler", MinMaxScaler()),
                    (
                        "regressor",
                        GradientBoostingRegressor(
                            n_estimators=100, random_state=self.random_state
                        ),
                    ),
                ]
            )
            model.fit(x_train, y_train)
            predictions = model.predict(x_test)
        except ValueError as e:
            logger.error("models.regression.failed", error=str(e), exc_info=e)
            raise ModelTrainingError("Regression", "optimization_gain", e) from e

        metrics = ModelMetrics(
            r_squared=float(r2_score(y_test, predictions)) if len(y_test) > 1 else None,
            mae=float(mean_absolute_error(y_test, predictions)),
            rmse=float(np.sqrt(mean_squared_error(y_test, predictions))),
        )

        self._ensure_loaded()
        with self._lock:
            self._save(
                REGRESSION_KEY,
                {"model": model, "features": features, "target": target},
            )

        logger.info(
            "models.regression.trained",
            r_squared=metrics.r_squared,
            mae=metrics.mae,
            rmse=metrics.rmse,
        )
        return metrics

    def predict_optimization_gain(self, features: PerformanceData) -> float:
        payload = self._get(REGRESSION_KEY)
        if payload is None:
            logger.warning("models.regression.not_trained", default=DEFAULT_PREDICTION)
            return DEFAULT_PREDICTION

        prediction = payload["model"].predict(_feature_matrix([features], REGRESSION_FEATURES))
        return float(prediction[0])

    def get_feature_importance(self) -> Optional[Dict[str, float]]:
        """
        Relative importance of each regression feature.

        Uses the tree ensemble's importances, falling back to absolute
        Pearson correlation with the target and then to a uniform split.
        Returns None when no regression model exists.
        """
        payload = self._get(REGRESSION_KEY)
        if payload is None:
            logger.warning("models.regression.not_trained")
            return None

        regressor = payload["model"].named_steps["regressor"]
        scores = np.asarray(regressor.feature_importances_, dtype=np.float64)
        source = "tree"

        if not np.all(np.isfinite(scores)) or scores.sum() <= 0:
            scores = _correlation_importance(payload["features"], payload["target"])
            source = "correlation"
        if scores.sum() <= 0:
            scores = np.ones(len(REGRESSION_FEATURES))
            source = "uniform"

        scores = scores / scores.sum()
        logger.debug("models.regression.feature_importance", source=source)
        return {name: float(score) for name, score in zip(REGRESSION_FEATURES, scores)}

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def train_classification_model(
        self, samples: Sequence[OptimizationStrategyData]
    ) -> ModelMetrics:
        """Train the should-optimize classifier and persist it."""
        self._ensure_active()
        if not samples:
            raise ArgumentInvalidError(
                "At least one optimization sample is required", "samples"
            )

        features = _feature_matrix(samples, CLASSIFICATION_FEATURES)
        labels = np.array([bool(s.should_optimize) for s in samples], dtype=int)

        logger.info("models.classification.training", samples=len(samples))
        try:
            x_train, x_test, y_train, y_test = _split(features, labels, self.random_state)
            if len(np.unique(y_train)) < 2:
                # A single observed outcome can only be predicted as itself.
                classifier = DummyClassifier(strategy="most_frequent")
            else:
                classifier = GradientBoostingClassifier(
                    n_estimators=100, random_state=self.random_state
                )
            model = Pipeline([("scaler", MinMaxScaler()), ("classifier", classifier)])
            model.fit(x_train, y_train)
            predicted = model.predict(x_test)
            probabilities = model.predict_proba(x_test)
        except ValueError as e:
            logger.error("models.classification.failed", error=str(e), exc_info=e)
            raise ModelTrainingError("Classification", "should_optimize", e) from e

        auc = None
        if len(np.unique(y_test)) == 2 and probabilities.shape[1] == 2:
            auc = float(roc_auc_score(y_test, probabilities[:, 1]))

        metrics = ModelMetrics(
            accuracy=float(accuracy_score(y_test, predicted)),
            auc=auc,
            f1_score=float(f1_score(y_test, predicted, zero_division=0)),
        )

        self._ensure_loaded()
        with self._lock:
            self._save(CLASSIFICATION_KEY, {"model": model})

        logger.info(
            "models.classification.trained",
            accuracy=metrics.accuracy,
            auc=metrics.auc,
            f1_score=metrics.f1_score,
        )
        return metrics

    def predict_optimization_strategy(
        self, features: OptimizationStrategyData
    ) -> Tuple[bool, float]:
        """Return ``(should_optimize, confidence)``; ``(False, 0.5)`` when untrained."""
        payload = self._get(CLASSIFICATION_KEY)
        if payload is None:
            logger.warning("models.classification.not_trained")
            return False, DEFAULT_PREDICTION

        model = payload["model"]
        row = _feature_matrix([features], CLASSIFICATION_FEATURES)
        probabilities = model.predict_proba(row)[0]
        classes = list(model.classes_)
        predicted = classes[int(np.argmax(probabilities))]
        return bool(predicted), float(np.max(probabilities))

    # ------------------------------------------------------------------
    # Anomaly detection
    # ------------------------------------------------------------------

    def train_anomaly_detection_model(self, history: Sequence[MetricData]) -> None:
        self._ensure_active()
        if not history:
            raise ArgumentInvalidError("Anomaly history cannot be empty", "history")

        values = np.array([[float(point.value)] for point in history])
        try:
            model = IsolationForest(random_state=self.random_state).fit(values)
        except ValueError as e:
            logger.error("models.anomaly.failed", error=str(e), exc_info=e)
            raise ModelTrainingError("AnomalyDetection", "value", e) from e

        self._ensure_loaded()
        with self._lock:
            self._save(ANOMALY_KEY, {"model": model})
        logger.info("models.anomaly.trained", samples=len(history))

    def detect_anomaly(self, point: MetricData) -> bool:
        payload = self._get(ANOMALY_KEY)
        if payload is None:
            logger.warning("models.anomaly.not_trained")
            return False

        is_anomaly = bool(payload["model"].predict([[float(point.value)]])[0] == -1)
        if is_anomaly:
            logger.warning(
                "models.anomaly.detected",
                timestamp=point.timestamp.isoformat(),
                value=point.value,
            )
        return is_anomaly

    # ------------------------------------------------------------------
    # Forecasting
    # ------------------------------------------------------------------

    def _fit_forecast(self) -> None:
        values = [point.value for point in self._forecast_buffer]
        model = self._forecast_strategy.fit(values, self._forecast_horizon, self.random_state)
        self._save(
            FORECASTING_KEY,
            {
                "model": model,
                "horizon": self._forecast_horizon,
                "buffer": list(self._forecast_buffer),
            },
        )
        self._observations_since_fit = 0

    def train_forecasting_model(self, series: Sequence[MetricData], horizon: int) -> None:
        """Fit the SSA forecaster on (the most recent 1000 points of) ``series``."""
        self._ensure_active()
        if horizon <= 0:
            raise ArgumentInvalidError("Forecast horizon must be greater than 0", "horizon")

        self._ensure_loaded()
        with self._lock:
            self._forecast_buffer.clear()
            self._forecast_buffer.extend(series)
            self._forecast_horizon = horizon
            try:
                self._fit_forecast()
            except ValueError as e:
                logger.error("models.forecasting.failed", error=str(e), exc_info=e)
                raise ModelTrainingError("SSA", "forecast", e) from e

        logger.info(
            "models.forecasting.trained",
            buffer_size=len(self._forecast_buffer),
            horizon=horizon,
        )

    def forecast_metric(self, horizon: Optional[int] = None) -> Optional[ForecastResult]:
        payload = self._get(FORECASTING_KEY)
        if payload is None:
            logger.warning("models.forecasting.not_trained")
            return None

        steps = horizon if horizon is not None else payload["horizon"]
        if steps <= 0:
            raise ArgumentInvalidError("Forecast horizon must be greater than 0", "horizon")
        return self._forecast_strategy.forecast(payload["model"], steps, CONFIDENCE_LEVEL)

    def update_forecasting_model(self, observation: MetricData) -> bool:
        """
        Append an observation to the sliding forecast buffer.

        The model is refit once 50 observations have arrived since the last
        fit and the buffer holds at least 100. Returns True when a refit happened.
        """
        if self._get(FORECASTING_KEY) is None:
            logger.warning("models.forecasting.update_skipped", reason="not_trained")
            return False

        with self._lock:
            self._forecast_buffer.append(observation)
            self._observations_since_fit += 1
            size = len(self._forecast_buffer)
            if self._observations_since_fit < RETRAIN_INTERVAL or size < RETRAIN_MINIMUM:
                return False
            try:
                self._fit_forecast()
            except ValueError as e:
                logger.error("models.forecasting.failed", error=str(e), exc_info=e)
                raise ModelTrainingError("SSA", "forecast", e) from e

        logger.info("models.forecasting.retrained", buffer_size=size)
        return True

    def get_forecast_buffer(self) -> List[MetricData]:
        self._ensure_active()
        self._ensure_loaded()
        with self._lock:
            return list(self._forecast_buffer)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def dispose(self) -> bool:
        """Release in-memory models; returns True only for the first call."""
        with self._lock:
            if self._disposed:
                return False
            self._disposed = True
            self._models.clear()
            self._forecast_buffer.clear()
        logger.info("models.disposed")
        return True
