from __future__ import annotations

import logging

from helpdesk.core.logging.setup import configure_logging


def test_configure_logging_is_idempotent(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("HELPDESK_LOG_TO_FILE", "off")

    logger = logging.getLogger("helpdesk")
    logger.handlers = []

    configure_logging(tmp_path)
    first_count = len(logger.handlers)

    configure_logging(tmp_path)
    assert len(logger.handlers) == first_count
    assert logger.propagate is False
