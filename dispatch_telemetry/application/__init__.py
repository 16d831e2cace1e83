"""
Application Layer Package

This package contains the use cases of the telemetry core and the DTOs
that validate upstream telemetry batches.
"""

# Re-export submodules
from dispatch_telemetry.application import dtos, use_cases

__all__ = ["dtos", "use_cases"]
