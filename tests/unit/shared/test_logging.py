from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from dispatch_telemetry.shared.logging import (
    configure_logging,
    get_logger,
    update_logging_from_settings,
)


def test_configure_logging_sets_root_handlers(tmp_path) -> None:
    log_file = tmp_path / "telemetry.log"
    configure_logging(level="DEBUG", file_path=str(log_file), environment="development")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(isinstance(handler, logging.FileHandler) for handler in root.handlers)

    get_logger(__name__).info("metric_store.stored", metric_name="cpu")
    for handler in root.handlers:
        handler.flush()

    assert "metric_store.stored" in log_file.read_text(encoding="utf-8")


def test_production_environment_renders_json(tmp_path) -> None:
    log_file = tmp_path / "telemetry.json"
    configure_logging(level="INFO", file_path=str(log_file), environment="production")

    get_logger("tests.json").warning("models.regression.not_trained", default=0.5)
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = [
        json.loads(line)
        for line in log_file.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    event = next(line for line in lines if line["event"] == "models.regression.not_trained")
    assert event["level"] == "warning"
    assert event["default"] == 0.5


@dataclass
class _LoggingSettings:
    level: str = "WARNING"
    file_path: str | None = None


@dataclass
class _Settings:
    logging: _LoggingSettings
    environment: str = "production"


def test_update_logging_from_settings_applies_configuration() -> None:
    settings = _Settings(logging=_LoggingSettings(level="ERROR"))

    update_logging_from_settings(settings)

    assert logging.getLogger().level == logging.ERROR


def test_update_logging_from_settings_tolerates_incomplete_settings(caplog) -> None:
    with caplog.at_level(logging.ERROR):
        update_logging_from_settings(object())

    assert any(
        "Failed to update logging from settings" in record.getMessage()
        for record in caplog.records
    )
