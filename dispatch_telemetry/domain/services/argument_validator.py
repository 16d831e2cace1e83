"""Domain service helpers for validating call arguments."""

from typing import Any

from dispatch_telemetry.domain.entities.errors import ArgumentInvalidError


def ensure_metric_name(metric_name: Any) -> str:
    """Return ``metric_name`` unchanged if it is a non-blank string.

    Raises:
        ArgumentInvalidError: If the name is None, not a string, or blank.
    """
    if not isinstance(metric_name, str) or not metric_name.strip():
        raise ArgumentInvalidError(
            "Metric name cannot be null, empty, or whitespace", "metric_name"
        )
    return metric_name


def ensure_positive(value: Any, argument: str) -> int:
    """Return ``value`` if it is an integer greater than zero.

    Raises:
        ArgumentInvalidError: If the value is not a positive integer.
    """
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ArgumentInvalidError(f"{argument} must be greater than 0", argument)
    return value
