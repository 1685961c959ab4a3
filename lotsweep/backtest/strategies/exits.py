"""lotsweep.backtest.strategies.exits

Sell conditions, selected by integer id (fixed per sweep, not swept).

Every condition requires the position's current return to clear
``min_return``; ids 2-6 add a market-state filter on top.

| id | condition |
|----|-----------|
| 1  | CR > MR |
| 2  | (EMA > P and CR > MR) or CR > 2*MR |
| 3  | EMA < P and CR > MR |
| 4  | EMA > P and MACD < SIGNAL and CR > MR |
| 5  | EMA > P and CR > MR |
| 6  | dP < 0 and CR > MR |

``current_return`` is ``None`` before the first buy; no condition fires then.
"""

from __future__ import annotations

from collections.abc import Callable

from lotsweep.backtest.io import PriceRow

SellCondition = Callable[[PriceRow, float, float], bool]


def _cond1(row: PriceRow, cr: float, mr: float) -> bool:
    return cr > mr


def _cond2(row: PriceRow, cr: float, mr: float) -> bool:
    return (row.ema > row.close and cr > mr) or cr > 2 * mr


def _cond3(row: PriceRow, cr: float, mr: float) -> bool:
    return row.ema < row.close and cr > mr


def _cond4(row: PriceRow, cr: float, mr: float) -> bool:
    return row.ema > row.close and row.macd < row.signal and cr > mr


def _cond5(row: PriceRow, cr: float, mr: float) -> bool:
    return row.ema > row.close and cr > mr


def _cond6(row: PriceRow, cr: float, mr: float) -> bool:
    return row.dp < 0.0 and cr > mr


SELL_CONDITIONS: dict[int, SellCondition] = {
    1: _cond1,
    2: _cond2,
    3: _cond3,
    4: _cond4,
    5: _cond5,
    6: _cond6,
}


def is_valid_sell_condition(condition: int) -> bool:
    return condition in SELL_CONDITIONS


def is_sell(condition: int, row: PriceRow, *, current_return: float | None, min_return: float) -> bool:
    if current_return is None:
        return False
    fn = SELL_CONDITIONS.get(condition)
    if fn is None:
        return False
    return fn(row, current_return, min_return)
