"""
Forecasting Strategies - Infrastructure Layer

Concrete implementations of the forecasting strategy port:

  * Moving average: flat forecast of the trailing-window mean
  * Exponential smoothing: Holt's linear trend fitted with statsmodels
  * SSA: singular spectrum analysis with a linear recurrent forecast
  * Ensemble: average of the three base strategies

Fitted models are plain dataclasses holding numpy arrays, so they can be
persisted with joblib. All strategies are deterministic; the seed is accepted
to satisfy the port.
"""

import warnings
from dataclasses import dataclass
from statistics import NormalDist
from typing import Any, Dict, Sequence, Tuple

import numpy as np
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.holtwinters import Holt

from dispatch_telemetry.domain.entities.forecasting import (
    ForecastingMethod,
    ForecastResult,
)
from dispatch_telemetry.domain.ports.forecasting_strategy import IForecastingStrategy

MOVING_AVERAGE_WINDOW = 12
MAX_FIT_POINTS = 2000
SSA_MAX_WINDOW = 48
SSA_ENERGY_THRESHOLD = 0.9
HOLT_ESTIMATION_MINIMUM = 10


def _as_series(values: Sequence[float], minimum: int, method: ForecastingMethod) -> np.ndarray:
    series = np.asarray(values, dtype=np.float64)[-MAX_FIT_POINTS:]
    if series.size < minimum:
        raise ValueError(
            f"{method.label} needs at least {minimum} values, got {series.size}"
        )
    if not np.all(np.isfinite(series)):
        raise ValueError("Series contains non-finite values")
    return series


def _rms(residuals: np.ndarray) -> float:
    if residuals.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(residuals))))


def z_value(confidence_level: float) -> float:
    """Two-sided standard normal quantile for ``confidence_level``."""
    return NormalDist().inv_cdf(0.5 + confidence_level / 2.0)


def build_forecast(
    points: Sequence[float], sigma: float, confidence_level: float
) -> ForecastResult:
    """Attach a band of ``z * sigma * sqrt(step)`` around each point."""
    values = np.asarray(points, dtype=np.float64)
    if not np.all(np.isfinite(values)):
        raise ValueError("Forecast produced non-finite values")

    steps = np.sqrt(np.arange(1, values.size + 1, dtype=np.float64))
    spread = z_value(confidence_level) * max(sigma, 0.0) * steps

    return ForecastResult(
        forecasted_values=tuple(float(v) for v in values),
        lower_bound=tuple(float(v) for v in values - spread),
        upper_bound=tuple(float(v) for v in values + spread),
    )


@dataclass
class MovingAverageModel:
    level: float
    sigma: float
    window: int


@dataclass
class HoltModel:
    level: float
    trend: float
    alpha: float
    beta: float
    sigma: float


@dataclass
class SSAModel:
    coefficients: np.ndarray
    tail: np.ndarray
    sigma: float
    window_length: int
    rank: int


@dataclass
class EnsembleModel:
    members: Tuple[Tuple[ForecastingMethod, Any], ...]


class MovingAverageStrategy:
    method = ForecastingMethod.MOVING_AVERAGE

    def __init__(self, window: int = MOVING_AVERAGE_WINDOW):
        self.window = window

    def fit(self, values: Sequence[float], horizon: int, seed: int) -> MovingAverageModel:
        series = _as_series(values, 1, self.method)
        window = min(series.size, self.window)

        if series.size > window:
            trailing_means = np.lib.stride_tricks.sliding_window_view(
                series, window
            )[:-1].mean(axis=1)
            residuals = series[window:] - trailing_means
        else:
            residuals = series - series.mean()

        return MovingAverageModel(
            level=float(series[-window:].mean()),
            sigma=_rms(residuals),
            window=window,
        )

    def forecast(
        self, model: MovingAverageModel, horizon: int, confidence_level: float
    ) -> ForecastResult:
        return build_forecast([model.level] * horizon, model.sigma, confidence_level)


class ExponentialSmoothingStrategy:
    method = ForecastingMethod.EXPONENTIAL_SMOOTHING

    def fit(self, values: Sequence[float], horizon: int, seed: int) -> HoltModel:
        series = _as_series(values, 2, self.method)
        # Initial level and trend are estimated only from longer series.
        initialization = (
            "estimated" if series.size >= HOLT_ESTIMATION_MINIMUM else "simple"
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            results = Holt(series, initialization_method=initialization).fit()

        return HoltModel(
            level=float(np.asarray(results.level)[-1]),
            trend=float(np.asarray(results.trend)[-1]),
            alpha=float(results.params["smoothing_level"]),
            beta=float(results.params["smoothing_trend"]),
            sigma=_rms(np.asarray(results.resid, dtype=np.float64)),
        )

    def forecast(self, model: HoltModel, horizon: int, confidence_level: float) -> ForecastResult:
        points = [model.level + step * model.trend for step in range(1, horizon + 1)]
        return build_forecast(points, model.sigma, confidence_level)


class SSAStrategy:
    method = ForecastingMethod.SSA

    def __init__(
        self,
        max_window: int = SSA_MAX_WINDOW,
        energy_threshold: float = SSA_ENERGY_THRESHOLD,
    ):
        self.max_window = max_window
        self.energy_threshold = energy_threshold

    @staticmethod
    def _hankelize(matrix: np.ndarray) -> np.ndarray:
        """Average the anti-diagonals of a trajectory matrix back into a series."""
        rows, columns = matrix.shape
        flipped = np.fliplr(matrix)
        return np.array(
            [
                flipped.diagonal(columns - 1 - index).mean()
                for index in range(rows + columns - 1)
            ]
        )

    def fit(self, values: Sequence[float], horizon: int, seed: int) -> SSAModel:
        series = _as_series(values, 3, self.method)
        size = series.size
        window_length = max(2, min(size // 2, self.max_window))
        columns = size - window_length + 1

        trajectory = np.column_stack(
            [series[offset:offset + window_length] for offset in range(columns)]
        )
        u, singular_values, vt = np.linalg.svd(trajectory, full_matrices=False)

        energy = np.square(singular_values)
        total = energy.sum()
        if total <= 0:
            rank = 1
        else:
            cumulative = np.cumsum(energy) / total
            rank = int(np.searchsorted(cumulative, self.energy_threshold) + 1)
        rank = max(1, min(rank, window_length - 1))

        # The recurrence exists only while the verticality coefficient stays below 1.
        coefficients = np.zeros(window_length - 1)
        while rank > 0:
            last_row = u[-1, :rank]
            verticality = float(np.dot(last_row, last_row))
            if verticality < 1.0 - 1e-9:
                coefficients = (u[:-1, :rank] @ last_row) / (1.0 - verticality)
                break
            rank -= 1

        if rank == 0:
            reconstructed = np.full(size, series.mean())
            coefficients = np.zeros(window_length - 1)
            coefficients[-1] = 1.0
        else:
            approximation = (u[:, :rank] * singular_values[:rank]) @ vt[:rank, :]
            reconstructed = self._hankelize(approximation)

        return SSAModel(
            coefficients=coefficients,
            tail=reconstructed[-(window_length - 1):].copy(),
            sigma=_rms(series - reconstructed),
            window_length=window_length,
            rank=rank,
        )

    def forecast(self, model: SSAModel, horizon: int, confidence_level: float) -> ForecastResult:
        history = list(model.tail)
        lag = model.window_length - 1
        points = []
        for _ in range(horizon):
            next_value = float(np.dot(model.coefficients, history[-lag:]))
            points.append(next_value)
            history.append(next_value)
        return build_forecast(points, model.sigma, confidence_level)


class EnsembleStrategy:
    method = ForecastingMethod.ENSEMBLE

    def __init__(self, members: Sequence[IForecastingStrategy]):
        self.members = {member.method: member for member in members}

    def fit(self, values: Sequence[float], horizon: int, seed: int) -> EnsembleModel:
        return EnsembleModel(
            members=tuple(
                (method, strategy.fit(values, horizon, seed))
                for method, strategy in self.members.items()
            )
        )

    def forecast(
        self, model: EnsembleModel, horizon: int, confidence_level: float
    ) -> ForecastResult:
        results = [
            self.members[method].forecast(fitted, horizon, confidence_level)
            for method, fitted in model.members
        ]
        forecasts = np.array([result.forecasted_values for result in results])
        lowers = np.array([result.lower_bound for result in results])
        uppers = np.array([result.upper_bound for result in results])

        return ForecastResult(
            forecasted_values=tuple(float(v) for v in forecasts.mean(axis=0)),
            lower_bound=tuple(float(v) for v in lowers.min(axis=0)),
            upper_bound=tuple(float(v) for v in uppers.max(axis=0)),
        )


def create_default_strategies() -> Dict[ForecastingMethod, IForecastingStrategy]:
    """One strategy instance per forecasting method."""
    base = [SSAStrategy(), ExponentialSmoothingStrategy(), MovingAverageStrategy()]
    strategies: Dict[ForecastingMethod, IForecastingStrategy] = {
        strategy.method: strategy for strategy in base
    }
    strategies[ForecastingMethod.ENSEMBLE] = EnsembleStrategy(base)
    return strategies
