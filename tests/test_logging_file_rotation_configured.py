from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from helpdesk.core.logging.setup import configure_logging


def _rotating(logger: logging.Logger) -> list[RotatingFileHandler]:
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


def test_logging_file_rotation_handler_configured(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("HELPDESK_LOG_TO_FILE", "on")
    monkeypatch.setenv("HELPDESK_LOG_DIR", str(tmp_path / "custom-logs"))

    logger = logging.getLogger("helpdesk")
    logger.handlers = []

    configure_logging(tmp_path / "state")
    configure_logging(tmp_path / "state")

    assert len(_rotating(logger)) == 1
    assert (tmp_path / "custom-logs").exists()
    for handler in _rotating(logger):
        handler.close()
    logger.handlers = []


def test_logging_creates_state_log_dir_when_missing(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("HELPDESK_LOG_TO_FILE", "on")
    monkeypatch.delenv("HELPDESK_LOG_DIR", raising=False)

    logger = logging.getLogger("helpdesk")
    logger.handlers = []

    state_dir = tmp_path / "missing-state"
    configure_logging(state_dir)

    assert (state_dir / "logs").exists()
    for handler in _rotating(logger):
        handler.close()
    logger.handlers = []
