"""
Pydantic models for engine configuration.

This module defines the configuration validated when loading the YAML
configuration file. Detection parameters live in
anomaly_engine.models.parameters; this module adds the explicit text-drift
baseline settings, run settings and logging settings around them.

Configuration file:
    - config/detection.yaml

Example:
    >>> from anomaly_engine.config.models import EngineConfig
    >>> config = EngineConfig()
    >>> config.parameters.z_score_threshold
    3.0
"""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from anomaly_engine.models.parameters import AnomalyDetectionParameters


# =============================================================================
# ENUMS
# =============================================================================


class BaselineStrategy(str, Enum):
    """How the text drift baseline is formed."""

    TRAILING = "trailing"  # Preceding N non-empty buckets
    REFERENCE = "reference"  # Fixed first N buckets


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# DETECTION CONFIGURATION
# =============================================================================


class TextDriftSettings(BaseModel):
    """Baseline and delta settings for text drift detection."""

    model_config = {"frozen": True, "extra": "forbid"}

    baseline_strategy: BaselineStrategy = Field(
        default=BaselineStrategy.TRAILING,
        description="Trailing window or fixed reference window",
    )
    baseline_buckets: int = Field(
        default=3,
        ge=1,
        description="Number of buckets in the baseline window",
    )
    proportion_delta: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="Category/sentiment proportion change that counts as a shift",
    )
    min_term_count: int = Field(
        default=2,
        ge=1,
        description="Occurrences a term needs on either side to be eligible for keyword drift",
    )
    top_keywords: int = Field(
        default=5,
        ge=1,
        description="Driving keywords recorded per keyword drift anomaly",
    )


class EngineSettings(BaseModel):
    """Run-level settings: worker pool and time budget."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_workers: int = Field(
        default_factory=lambda: os.cpu_count() or 1,
        ge=1,
        description="Column worker pool size",
    )
    time_budget_seconds: Optional[float] = Field(
        default=30.0,
        gt=0.0,
        description="Run budget; None disables the deadline",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(
        default=LogFormat.JSON,
        description="Log output format",
    )
    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Default log level",
    )


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class EngineConfig(BaseModel):
    """Complete engine configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    parameters: AnomalyDetectionParameters = Field(
        default_factory=AnomalyDetectionParameters,
        description="Detection parameters",
    )
    text_drift: TextDriftSettings = Field(
        default_factory=TextDriftSettings,
        description="Text drift baseline settings",
    )
    engine: EngineSettings = Field(
        default_factory=EngineSettings,
        description="Worker pool and time budget",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
