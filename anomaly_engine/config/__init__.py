"""
Configuration management for the detection engine.

Configuration is loaded from config/detection.yaml and validated with
Pydantic models, so invalid values are reported before any detector runs.

Environment variables can override run settings:
    - LOG_LEVEL: Application log level
    - ANOMALY_TIME_BUDGET_SECONDS: Run time budget
    - ANOMALY_MAX_WORKERS: Column worker pool size

Example:
    >>> from anomaly_engine.config import load_config
    >>> config = load_config()
    >>> config.parameters.moving_average_window
    10

Modules:
    loader: Configuration file loading utilities
    models: Pydantic models for configuration validation
"""

from anomaly_engine.config.loader import ConfigLoader, load_config
from anomaly_engine.config.models import (
    BaselineStrategy,
    EngineConfig,
    EngineSettings,
    LogFormat,
    LoggingConfig,
    LogLevel,
    TextDriftSettings,
)

__all__: list[str] = [
    # Loader
    "load_config",
    "ConfigLoader",
    # Enums
    "BaselineStrategy",
    "LogFormat",
    "LogLevel",
    # Settings
    "TextDriftSettings",
    "EngineSettings",
    "LoggingConfig",
    # Root config
    "EngineConfig",
]
