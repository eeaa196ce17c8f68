"""Environment-driven configuration and log setup."""
import logging

import pytest

from mitr.config import get_config
from mitr.utils.logging import setup_logging


def test_placeholder_project_rejected(monkeypatch):
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
    with pytest.raises(ValueError, match="GOOGLE_CLOUD_PROJECT"):
        get_config()


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "mitr-test")
    monkeypatch.setenv("MITR_MAX_RETRIES", "3")
    monkeypatch.setenv("MITR_STREAM", "true")
    monkeypatch.setenv("MITR_ANALYZE_WEARABLES", "yes")
    monkeypatch.setenv("MITR_API_PORT", "9001")

    config = get_config()

    assert config.google_cloud_project == "mitr-test"
    assert config.max_retries == 3
    assert config.stream is True
    assert config.analyze_wearables is True
    assert config.api_port == 9001
    assert config.model_name == "gemini-2.5-flash"
    assert config.llm_timeout == 12


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "logs" / "mitr.log"
    root = logging.getLogger()
    previous = list(root.handlers)
    try:
        assert setup_logging(str(log_file), "debug") == str(log_file)
        logging.getLogger("orchestrator").info("pipeline ready")
        for handler in root.handlers:
            handler.flush()
        assert "INFO orchestrator - pipeline ready" in log_file.read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous


def test_setup_logging_replaces_handlers_and_shows_alerts(tmp_path, capsys):
    log_file = tmp_path / "mitr.log"
    root = logging.getLogger()
    previous = list(root.handlers)
    try:
        setup_logging(str(log_file))
        setup_logging(str(log_file))
        assert len(root.handlers) == 2

        logging.getLogger("orchestrator").info("routine stage line")
        logging.getLogger("orchestrator").critical("Immediate alert required")

        err = capsys.readouterr().err
        assert "🚨 Immediate alert required" in err
        assert "routine stage line" not in err
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous
