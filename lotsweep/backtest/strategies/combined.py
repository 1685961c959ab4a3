"""lotsweep.backtest.strategies.combined

MACD-PSAR: both the MACD rule and the PSAR rule must agree.
"""

from __future__ import annotations

from dataclasses import dataclass

from lotsweep.backtest.io import PriceRow
from lotsweep.backtest.strategies.base import BuyRule, macd_crossed_up, sar_below_price


@dataclass(frozen=True, slots=True)
class MACDPSARRule(BuyRule):
    name: str = "MACD-PSAR"

    def is_buy(self, row: PriceRow) -> bool:
        return macd_crossed_up(row) and sar_below_price(row)

    def snapshot_fields(self, row: PriceRow) -> list[tuple[str, float]]:
        return [("EMA", row.ema), ("MACD", row.macd), ("SIG", row.signal), ("PSAR", row.sar)]
