"""
Configuration loader for YAML-based engine configuration.

Loads config/detection.yaml and validates it with Pydantic so that
configuration errors surface before any detector starts.

Expected sections (all optional, defaults apply):
    parameters: zScoreThreshold, movingAverageWindow, percentileThresholds,
                textSimilarityThreshold, minimumAnomalyDuration
    text_drift: baseline_strategy, baseline_buckets, proportion_delta, ...
    engine:     max_workers, time_budget_seconds
    logging:    format, level

Environment variables override:
    - LOG_LEVEL: Application log level
    - ANOMALY_TIME_BUDGET_SECONDS: Run time budget
    - ANOMALY_MAX_WORKERS: Column worker pool size

Example:
    >>> from anomaly_engine.config.loader import load_config
    >>> config = load_config("config")
    >>> config.parameters.z_score_threshold
    3.0
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from anomaly_engine.config.models import (
    EngineConfig,
    EngineSettings,
    LoggingConfig,
    TextDriftSettings,
)
from anomaly_engine.errors import ConfigLoadError, InvalidParameterError
from anomaly_engine.models.parameters import validate_parameters

CONFIG_FILENAME = "detection.yaml"


class ConfigLoader:
    """
    Loads and validates engine configuration from a YAML file.

    Expects the following directory structure:
        config/
        └── detection.yaml    - Parameters, text drift, engine and logging settings

    Example:
        >>> loader = ConfigLoader("config")
        >>> config = loader.load()
        >>> config.text_drift.baseline_strategy
        <BaselineStrategy.TRAILING: 'trailing'>
    """

    def __init__(self, config_dir: Path | str = "config"):
        """
        Initialize config loader.

        Args:
            config_dir: Path to configuration directory (default: 'config').

        Raises:
            ConfigLoadError: If config directory does not exist.
        """
        self.config_dir = Path(config_dir)
        if not self.config_dir.exists():
            raise ConfigLoadError(
                f"Configuration directory not found: {self.config_dir}",
                file_path=self.config_dir,
            )
        if not self.config_dir.is_dir():
            raise ConfigLoadError(
                f"Configuration path is not a directory: {self.config_dir}",
                file_path=self.config_dir,
            )

    def _load_yaml(self, filename: str) -> Dict[str, Any]:
        """
        Load a YAML file from the config directory.

        Args:
            filename: Name of YAML file (e.g., 'detection.yaml').

        Returns:
            Dict containing parsed YAML content.

        Raises:
            ConfigLoadError: If file not found, empty, or invalid YAML.
        """
        file_path = self.config_dir / filename
        if not file_path.exists():
            raise ConfigLoadError(
                f"Configuration file not found: {file_path}",
                file_path=file_path,
            )

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e
        except OSError as e:
            raise ConfigLoadError(
                f"Error reading {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e

        if data is None:
            raise ConfigLoadError(
                f"Configuration file is empty: {file_path}",
                file_path=file_path,
            )
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Configuration root must be a mapping: {file_path}",
                file_path=file_path,
            )
        return data

    def _apply_env_overrides(
        self,
        engine_data: Dict[str, Any],
        logging_data: Dict[str, Any],
    ) -> None:
        """Override file values with environment variables, when set."""
        time_budget = os.getenv("ANOMALY_TIME_BUDGET_SECONDS")
        if time_budget:
            engine_data["time_budget_seconds"] = time_budget

        max_workers = os.getenv("ANOMALY_MAX_WORKERS")
        if max_workers:
            engine_data["max_workers"] = max_workers

        log_level = os.getenv("LOG_LEVEL")
        if log_level:
            logging_data["level"] = log_level.upper()

    def load(self) -> EngineConfig:
        """
        Load and validate the configuration file.

        Returns:
            EngineConfig: Validated engine configuration.

        Raises:
            ConfigLoadError: If the file is missing or invalid.
            InvalidParameterError: If detection parameters are out of range.
        """
        data = self._load_yaml(CONFIG_FILENAME)

        try:
            engine_data = dict(data.get("engine") or {})
            logging_data = dict(data.get("logging") or {})
            self._apply_env_overrides(engine_data, logging_data)

            return EngineConfig(
                parameters=validate_parameters(data.get("parameters") or {}),
                text_drift=TextDriftSettings(**(data.get("text_drift") or {})),
                engine=EngineSettings(**engine_data),
                logging=LoggingConfig(**logging_data),
            )

        except (ConfigLoadError, InvalidParameterError):
            raise
        except ValidationError as e:
            raise ConfigLoadError(
                f"Configuration validation failed: {e}",
                file_path=self.config_dir / CONFIG_FILENAME,
                cause=e,
            ) from e
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigLoadError(
                f"Malformed configuration section: {e}",
                file_path=self.config_dir / CONFIG_FILENAME,
                cause=e,
            ) from e


def load_config(config_dir: Path | str = "config") -> EngineConfig:
    """
    Convenience function to load engine configuration.

    Args:
        config_dir: Path to configuration directory (default: 'config').

    Returns:
        EngineConfig: Validated engine configuration.

    Raises:
        ConfigLoadError: If configuration loading fails.
        InvalidParameterError: If detection parameters are out of range.
    """
    loader = ConfigLoader(config_dir)
    return loader.load()
