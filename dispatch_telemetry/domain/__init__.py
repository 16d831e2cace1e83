"""
Domain Layer Package

This package contains the entities, ports and pure services of the
telemetry core. Nothing in this layer depends on infrastructure concerns.
"""

# Re-export submodules
from dispatch_telemetry.domain import entities, ports, repositories, services

__all__ = ["entities", "repositories", "services", "ports"]
