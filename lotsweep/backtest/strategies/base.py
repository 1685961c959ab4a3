"""lotsweep.backtest.strategies.base

Buy rule contract.

A buy rule is a pure predicate over one price row. It holds no state and
may be shared freely between worker threads.

Indicators are read as given; a NaN indicator compares false, so rows with
missing indicators never produce a buy.
"""

from __future__ import annotations

from lotsweep.backtest.io import PriceRow
from lotsweep.core.numbers import format_number


def macd_crossed_up(row: PriceRow) -> bool:
    return row.macd > row.signal and row.close > row.ema


def sar_below_price(row: PriceRow) -> bool:
    return row.sar < row.close and row.close > row.ema


class BuyRule:
    name: str = "rule"

    def is_buy(self, row: PriceRow) -> bool:
        raise NotImplementedError

    def snapshot_fields(self, row: PriceRow) -> list[tuple[str, float]]:
        raise NotImplementedError

    def snapshot(self, row: PriceRow) -> str:
        """Indicator values the rule looked at, for the event log."""

        body = ",".join(f"{k}: {format_number(v)}" for k, v in self.snapshot_fields(row))
        return f"Strat: [{body}]"
