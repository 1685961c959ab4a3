"""lotsweep.backtest.strategies.psar

Parabolic SAR: buy while the SAR dot sits below price and price is above EMA.
"""

from __future__ import annotations

from dataclasses import dataclass

from lotsweep.backtest.io import PriceRow
from lotsweep.backtest.strategies.base import BuyRule, sar_below_price


@dataclass(frozen=True, slots=True)
class PSARRule(BuyRule):
    name: str = "PSAR"

    def is_buy(self, row: PriceRow) -> bool:
        return sar_below_price(row)

    def snapshot_fields(self, row: PriceRow) -> list[tuple[str, float]]:
        return [("EMA", row.ema), ("PSAR", row.sar)]
