from __future__ import annotations

import io
import json
import logging

from lotsweep.core.config import LoggingConfig
from lotsweep.core.logs import configure_logging


def test_json_logs_carry_extras() -> None:
    buf = io.StringIO()
    configure_logging(LoggingConfig(level="INFO", json_output=True), stream=buf)

    logging.getLogger("lotsweep.backtest.sweep").info("sweep_progress", extra={"done": 3, "total": 10})
    logging.getLogger("lotsweep.backtest.sweep").debug("hidden")

    lines = buf.getvalue().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["event"] == "sweep_progress"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "lotsweep.backtest.sweep"
    assert payload["done"] == 3
    assert payload["total"] == 10


def test_plain_logs_and_reconfigure() -> None:
    first = io.StringIO()
    configure_logging(LoggingConfig(level="DEBUG"), stream=first)
    buf = io.StringIO()
    log = configure_logging(LoggingConfig(level="DEBUG"), stream=buf)
    assert len(log.handlers) == 1

    logging.getLogger("lotsweep.x").warning("combination_skipped", extra={"asset": "ETH"})
    out = buf.getvalue()
    assert "WARNING lotsweep.x combination_skipped" in out
    assert "asset=ETH" in out
    assert first.getvalue() == ""
