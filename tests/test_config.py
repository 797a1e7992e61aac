import os
from pathlib import Path

import pytest
import structlog

from anomaly_engine.cancellation import CancellationToken
from anomaly_engine.config import (
    BaselineStrategy,
    ConfigLoader,
    LogFormat,
    LoggingConfig,
    LogLevel,
    load_config,
)
from anomaly_engine.errors import (
    ConfigLoadError,
    DetectionTimeoutError,
    InvalidParameterError,
)
from anomaly_engine.logging_config import setup_logging

REPO_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

ENV_VARS = ("LOG_LEVEL", "ANOMALY_TIME_BUDGET_SECONDS", "ANOMALY_MAX_WORKERS")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, content):
    (tmp_path / "detection.yaml").write_text(content, encoding="utf-8")
    return tmp_path


def test_load_repository_defaults():
    config = load_config(REPO_CONFIG_DIR)

    assert config.parameters.z_score_threshold == 3.0
    assert config.parameters.moving_average_window == 10
    assert config.parameters.percentile_thresholds == (5.0, 95.0)
    assert config.parameters.text_similarity_threshold == 0.8
    assert config.parameters.minimum_anomaly_duration == 1
    assert config.text_drift.baseline_strategy == BaselineStrategy.TRAILING
    assert config.text_drift.baseline_buckets == 3
    assert config.engine.time_budget_seconds == 30.0
    assert config.engine.max_workers == (os.cpu_count() or 1)
    assert config.logging.format == LogFormat.JSON


def test_load_custom_values(tmp_path):
    write_config(
        tmp_path,
        """
parameters:
  zScoreThreshold: 2.5
  minimumAnomalyDuration: 3
text_drift:
  baseline_strategy: reference
  baseline_buckets: 2
engine:
  max_workers: 4
  time_budget_seconds: 12.5
logging:
  format: text
  level: DEBUG
""",
    )

    config = ConfigLoader(tmp_path).load()

    assert config.parameters.z_score_threshold == 2.5
    assert config.parameters.minimum_anomaly_duration == 3
    assert config.parameters.moving_average_window == 10
    assert config.text_drift.baseline_strategy == BaselineStrategy.REFERENCE
    assert config.text_drift.baseline_buckets == 2
    assert config.engine.max_workers == 4
    assert config.engine.time_budget_seconds == 12.5
    assert config.logging.format == LogFormat.TEXT
    assert config.logging.level == LogLevel.DEBUG


def test_sections_are_optional(tmp_path):
    write_config(tmp_path, "parameters: {}\n")

    config = load_config(tmp_path)

    assert config.parameters.z_score_threshold == 3.0
    assert config.text_drift.proportion_delta == 0.2


def test_environment_overrides(tmp_path, monkeypatch):
    write_config(tmp_path, "engine:\n  max_workers: 2\n  time_budget_seconds: 30\n")
    monkeypatch.setenv("ANOMALY_TIME_BUDGET_SECONDS", "5")
    monkeypatch.setenv("ANOMALY_MAX_WORKERS", "3")
    monkeypatch.setenv("LOG_LEVEL", "warning")

    config = load_config(tmp_path)

    assert config.engine.time_budget_seconds == 5.0
    assert config.engine.max_workers == 3
    assert config.logging.level == LogLevel.WARNING


def test_invalid_parameter_in_file(tmp_path):
    write_config(tmp_path, "parameters:\n  zScoreThreshold: -1\n")

    with pytest.raises(InvalidParameterError):
        load_config(tmp_path)


@pytest.mark.parametrize(
    "content",
    [
        "",
        "- just\n- a list\n",
        "parameters: [unclosed\n",
        "text_drift:\n  unknown_setting: 1\n",
        "engine:\n  max_workers: 0\n",
        "engine: fast\n",
    ],
)
def test_malformed_files_raise_config_error(tmp_path, content):
    write_config(tmp_path, content)

    with pytest.raises(ConfigLoadError) as excinfo:
        load_config(tmp_path)

    assert excinfo.value.file_path is not None


def test_missing_directory(tmp_path):
    with pytest.raises(ConfigLoadError):
        ConfigLoader(tmp_path / "absent")


def test_missing_file(tmp_path):
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path)


def test_setup_logging_text_renderer():
    try:
        setup_logging(LoggingConfig(format=LogFormat.TEXT, level=LogLevel.DEBUG))

        assert structlog.is_configured()
        structlog.get_logger("tests").info("logging_configured", check=True)
    finally:
        structlog.reset_defaults()


def test_token_without_deadline():
    token = CancellationToken()

    assert token.remaining_seconds is None
    assert not token.is_cancelled
    token.raise_if_cancelled("headcount")


def test_token_keeps_first_reason():
    token = CancellationToken()
    token.cancel("caller_abort")
    token.cancel("timeout")

    assert token.is_cancelled
    assert token.reason == "caller_abort"
    with pytest.raises(DetectionTimeoutError, match="headcount"):
        token.raise_if_cancelled("headcount")


def test_token_cancels_itself_past_deadline():
    token = CancellationToken(time_budget_seconds=0.0)

    assert token.is_cancelled
    assert token.reason == "timeout"
