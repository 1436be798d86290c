"""
Tests for portfolio_advisor/utils/logging.py.

What we test
------------
  - The JSON formatter emits one object with level, logger and message.
  - Fields passed through ``extra=`` are lifted to the top level.
  - configure_logging() installs a file handler and quietens httpx.
"""

from __future__ import annotations

import json
import logging

from portfolio_advisor.config import LoggingConfig
from portfolio_advisor.utils.logging import _JsonFormatter, configure_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "portfolio_advisor.test", logging.INFO, __file__, 1, "Analyzed %s", ("Acme",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_payload():
    payload = json.loads(_JsonFormatter().format(_record()))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "portfolio_advisor.test"
    assert payload["msg"] == "Analyzed Acme"
    assert payload["ts"].endswith("Z")


def test_json_formatter_lifts_extra():
    payload = json.loads(_JsonFormatter().format(_record(record_id="row-3")))
    assert payload["record_id"] == "row-3"
    assert "args" not in payload


def test_configure_logging_file_handler(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    configure_logging(LoggingConfig(level="DEBUG", log_file=str(log_file), json_format=True))
    try:
        logging.getLogger("portfolio_advisor.test").info("hello", extra={"record_id": "c1"})
        for handler in logging.getLogger().handlers:
            handler.flush()
        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(line)["record_id"] == "c1"
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in list(logging.getLogger().handlers):
            handler.close()
            logging.getLogger().removeHandler(handler)
