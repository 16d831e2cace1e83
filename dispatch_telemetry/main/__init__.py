"""
Main module - Main/Composition Root Layer

This module wires the telemetry core together.

Its primary responsibilities include:
- Loading settings from the environment
- Configuring dependencies and services (Composition Root)
- Managing the lifetime of the model manager and training use case
"""

from .config import AppSettings, get_settings
from .container import AppContainer, get_container, init_container, telemetry_lifespan

__all__ = [
    "AppSettings",
    "get_settings",
    "AppContainer",
    "init_container",
    "get_container",
    "telemetry_lifespan",
]
