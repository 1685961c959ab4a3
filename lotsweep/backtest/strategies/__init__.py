"""lotsweep.backtest.strategies

Strategy signal evaluation.

Buy rules are keyed by strategy variant name; sell rules by condition id.
Both are pure and stateless.
"""

from __future__ import annotations

from lotsweep.backtest.io import PriceRow
from lotsweep.backtest.strategies.base import BuyRule
from lotsweep.backtest.strategies.combined import MACDPSARRule
from lotsweep.backtest.strategies.exits import SELL_CONDITIONS, is_sell, is_valid_sell_condition
from lotsweep.backtest.strategies.macd import AltMACDRule, MACDChaiRule, MACDRule
from lotsweep.backtest.strategies.psar import PSARRule
from lotsweep.core.exceptions import ConfigError

BUY_RULES: dict[str, BuyRule] = {
    rule.name: rule
    for rule in (MACDChaiRule(), MACDRule(), PSARRule(), MACDPSARRule(), AltMACDRule())
}

STRATEGIES: tuple[str, ...] = tuple(BUY_RULES)


def is_valid_strategy(name: str) -> bool:
    return name in BUY_RULES


def get_buy_rule(name: str) -> BuyRule:
    rule = BUY_RULES.get(name)
    if rule is None:
        raise ConfigError(f"Invalid strategy: {name}")
    return rule


def is_buy(strategy: str, row: PriceRow) -> bool:
    rule = BUY_RULES.get(strategy)
    return rule.is_buy(row) if rule is not None else False


def strategy_snapshot(strategy: str, row: PriceRow) -> str:
    rule = BUY_RULES.get(strategy)
    return rule.snapshot(row) if rule is not None else "Strat: []"


__all__ = [
    "BUY_RULES",
    "SELL_CONDITIONS",
    "STRATEGIES",
    "AltMACDRule",
    "BuyRule",
    "MACDChaiRule",
    "MACDPSARRule",
    "MACDRule",
    "PSARRule",
    "get_buy_rule",
    "is_buy",
    "is_sell",
    "is_valid_sell_condition",
    "is_valid_strategy",
    "strategy_snapshot",
]
