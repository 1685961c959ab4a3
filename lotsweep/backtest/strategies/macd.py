"""lotsweep.backtest.strategies.macd

MACD family:
- MACD: MACD above SIGNAL and price above EMA
- alt-MACD: as MACD, but only while MACD is still negative (early crossover)
- MACD-CHAI: as MACD, confirmed by positive Chaikin oscillator
"""

from __future__ import annotations

from dataclasses import dataclass

from lotsweep.backtest.io import PriceRow
from lotsweep.backtest.strategies.base import BuyRule, macd_crossed_up


@dataclass(frozen=True, slots=True)
class MACDRule(BuyRule):
    name: str = "MACD"

    def is_buy(self, row: PriceRow) -> bool:
        return macd_crossed_up(row)

    def snapshot_fields(self, row: PriceRow) -> list[tuple[str, float]]:
        return [("EMA", row.ema), ("MACD", row.macd), ("SIG", row.signal)]


@dataclass(frozen=True, slots=True)
class AltMACDRule(BuyRule):
    name: str = "alt-MACD"

    def is_buy(self, row: PriceRow) -> bool:
        return macd_crossed_up(row) and row.macd < 0.0

    def snapshot_fields(self, row: PriceRow) -> list[tuple[str, float]]:
        return [("EMA", row.ema), ("MACD", row.macd), ("SIG", row.signal)]


@dataclass(frozen=True, slots=True)
class MACDChaiRule(BuyRule):
    name: str = "MACD-CHAI"

    def is_buy(self, row: PriceRow) -> bool:
        return macd_crossed_up(row) and row.chai > 0.0

    def snapshot_fields(self, row: PriceRow) -> list[tuple[str, float]]:
        return [("EMA", row.ema), ("MACD", row.macd), ("SIG", row.signal), ("CHAI", row.chai)]
