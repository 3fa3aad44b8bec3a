from __future__ import annotations

import io
import json
import logging

from helpdesk.core.logging.context import log_context
from helpdesk.core.logging.json_formatter import JSONFormatter


def _logger(stream: io.StringIO) -> logging.Logger:
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())

    logger = logging.getLogger("helpdesk.test.json")
    logger.handlers = []
    logger.setLevel(logging.INFO)
    logger.propagate = False
    logger.addHandler(handler)
    return logger


def test_logging_json_line_with_context() -> None:
    stream = io.StringIO()
    logger = _logger(stream)

    with log_context(correlation_id="c1", tenant_id="t1", ticket_id="tk1"):
        logger.info("agent_run_started", extra={"extra_fields": {"max_iterations": 10}})

    payload = json.loads(stream.getvalue().strip())
    assert payload["msg"] == "agent_run_started"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "helpdesk.test.json"
    assert payload["correlation_id"] == "c1"
    assert payload["tenant_id"] == "t1"
    assert payload["ticket_id"] == "tk1"
    assert payload["max_iterations"] == 10
    assert "ts_iso_utc" in payload


def test_context_is_dropped_after_block() -> None:
    stream = io.StringIO()
    logger = _logger(stream)

    with log_context(correlation_id="c1"):
        pass
    logger.info("after")

    payload = json.loads(stream.getvalue().strip())
    assert "correlation_id" not in payload
