"""lotsweep.core.logs

Application logging setup.

Modules log snake_case event names with structured ``extra`` fields:

    logger.warning("combination_skipped", extra={"asset": "BTC", "received": 10})

This module turns those into either plain lines or JSON lines. Trading
diagnostics (BUY/SELL/BAL/OR) do not go here; they go to the per-combination
event log.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, TextIO

from lotsweep.core.config import LoggingConfig

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED}


class PlainFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(_extras(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, sort_keys=True)


def configure_logging(cfg: LoggingConfig, *, stream: TextIO | None = None) -> logging.Logger:
    """Install one stream handler on the ``lotsweep`` logger.

    Calling it again replaces the handler rather than stacking a second one.
    """

    root = logging.getLogger("lotsweep")
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if cfg.json_output else PlainFormatter())
    root.addHandler(handler)
    root.setLevel(cfg.level.upper())
    root.propagate = False
    return root
