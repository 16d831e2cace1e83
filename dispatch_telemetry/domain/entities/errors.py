"""
Domain Errors

This module defines the typed error taxonomy raised by the telemetry core.
Every error carries a human-readable ``message`` and a ``details`` mapping
with the structured fields callers can inspect.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for domain errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ArgumentInvalidError(DomainError, ValueError):
    """Raised synchronously when an argument violates its contract."""

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.argument = argument
        super().__init__(message, {"argument": argument, **(details or {})})


class InsufficientDataError(DomainError):
    """Raised when an operation has fewer samples than it requires."""

    def __init__(
        self,
        metric_name: str,
        operation: str,
        minimum_required: int,
        actual_count: int,
    ):
        self.metric_name = metric_name
        self.operation = operation
        self.minimum_required = minimum_required
        self.actual_count = actual_count
        message = (
            f"Insufficient data for {operation} on '{metric_name}': "
            f"{actual_count} data points available, {minimum_required} required"
        )
        super().__init__(
            message,
            {
                "metric_name": metric_name,
                "operation": operation,
                "minimum_required": minimum_required,
                "actual_count": actual_count,
            },
        )


class ModelTrainingError(DomainError):
    """Raised when a strategy or algorithm fails while fitting a model."""

    def __init__(self, method: Any, metric_name: str, cause: BaseException):
        self.method = method
        self.metric_name = metric_name
        self.cause = cause
        label = getattr(method, "label", method)
        super().__init__(
            f"Failed to train {label} model for {metric_name}: {cause}",
            {"method": str(label), "metric_name": metric_name},
        )


class ForecastError(DomainError):
    """Raised when a trained model fails to produce a forecast."""

    def __init__(self, metric_name: str, method: Any, cause: BaseException):
        self.metric_name = metric_name
        self.method = method
        self.cause = cause
        label = getattr(method, "label", method)
        super().__init__(
            f"Failed to forecast {metric_name} with {label} model: {cause}",
            {"method": str(label), "metric_name": metric_name},
        )


class AnomalyDetectionError(DomainError):
    """Wraps unexpected failures raised while scanning for anomalies."""

    def __init__(self, metric_name: str, cause: BaseException):
        self.metric_name = metric_name
        self.cause = cause
        super().__init__(
            f"Anomaly detection failed for {metric_name}: {cause}",
            {"metric_name": metric_name},
        )


class StatisticsError(DomainError):
    """Wraps unexpected failures raised while computing statistics."""

    def __init__(self, metric_name: str, cause: BaseException):
        self.metric_name = metric_name
        self.cause = cause
        super().__init__(
            f"Statistics calculation failed for {metric_name}: {cause}",
            {"metric_name": metric_name},
        )


class OperationCancelledError(DomainError):
    """Raised when a cooperative cancellation request is observed."""

    def __init__(self, operation: str, details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__(
            f"{operation} was cancelled", {"operation": operation, **(details or {})}
        )


class DisposedStateError(DomainError):
    """Raised when an operation is attempted on a disposed component."""

    def __init__(self, component: str):
        self.component = component
        super().__init__(
            f"{component} has been disposed", {"component": component}
        )


class ModelPersistenceError(DomainError):
    """Raised when a model artifact cannot be written or read."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
