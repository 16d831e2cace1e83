"""
Infrastructure Layer Package

This package contains implementations of interfaces defined in the
domain layer: in-memory and filesystem storage, forecasting strategies
and the scikit-learn model manager.
"""

from dispatch_telemetry.infrastructure import repositories, services

__all__ = ["repositories", "services"]
