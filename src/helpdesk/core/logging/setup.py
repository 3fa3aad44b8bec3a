from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .json_formatter import JSONFormatter

ROOT_LOGGER = "helpdesk"
LOG_FILE_NAME = "helpdesk-agent.log"

# marks handlers this module installed so repeated calls stay idempotent
_OWNED = "_helpdesk_owned"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _owned(logger: logging.Logger) -> list[logging.Handler]:
    return [handler for handler in logger.handlers if getattr(handler, _OWNED, False)]


def _install(logger: logging.Logger, handler: logging.Handler) -> None:
    handler.setFormatter(JSONFormatter())
    setattr(handler, _OWNED, True)
    logger.addHandler(handler)


def _log_dir(state_dir: Path) -> Path:
    configured = os.getenv("HELPDESK_LOG_DIR")
    return Path(configured).expanduser() if configured else state_dir / "logs"


def configure_logging(state_dir: Path) -> logging.Logger:
    """JSON lines on stdout for every ``helpdesk.*`` logger, plus an optional rotating file.

    Calling it again only adds the file handler, and only if
    ``HELPDESK_LOG_TO_FILE`` was switched on since.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    level_name = os.getenv("HELPDESK_LOG_LEVEL", "INFO").strip().upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.propagate = False

    owned = _owned(logger)
    if not any(isinstance(handler, logging.StreamHandler) and not isinstance(handler, RotatingFileHandler) for handler in owned):
        _install(logger, logging.StreamHandler(stream=sys.stdout))

    if os.getenv("HELPDESK_LOG_TO_FILE", "off").strip().casefold() != "on":
        return logger

    log_dir = _log_dir(state_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME
    if any(isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == log_path for handler in owned):
        return logger

    _install(
        logger,
        RotatingFileHandler(
            filename=log_path,
            maxBytes=_env_int("HELPDESK_LOG_MAX_BYTES", 5_000_000),
            backupCount=_env_int("HELPDESK_LOG_BACKUP_COUNT", 5),
            encoding="utf-8",
        ),
    )
    return logger
