"""
Dispatch Telemetry Core

Adaptive performance-telemetry core of a request-dispatch framework: bounded
per-metric history, statistics, anomaly detection, forecasting and the
training of optimization-gain models.
"""

__version__ = "1.0.0"
