"""lotsweep.core.exceptions

Errors are part of the interface.

The sweep treats exactly one of these as recoverable: ``DataValidityError``
skips a combination. Everything else aborts the run.
"""

from __future__ import annotations


class LotsweepError(Exception):
    """Base exception for lotsweep."""


class ConfigError(LotsweepError):
    """Configuration is missing, invalid, or inconsistent."""


class MarketDataError(LotsweepError):
    """Price data could not be located or read."""


class ResultSinkError(LotsweepError):
    """A result or event log line could not be written."""


class DataValidityError(LotsweepError):
    """Price data exists but there is not enough of it to simulate."""

    def __init__(self, asset: str, received: int, expected: int, *, detail: str | None = None) -> None:
        self.asset = asset
        self.received = int(received)
        self.expected = int(expected)
        self.detail = detail
        msg = f"[{asset}] Invalid Data: Expected [{self.expected}] Received [{self.received}]"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)
