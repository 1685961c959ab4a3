"""lotsweep.backtest.simulator

Per-combination simulation: one walk over one price series.

Money lives in three places:
- capital: cash ready to buy the asset
- reserves: cash held back, released when the position draws down
- lots: discrete purchases, each sold whole or not at all

Each step makes at most one decision, in priority order:

    SELL (then maybe BALANCE)  >  BUY  >  OPEN RESERVE  >  nothing

Buy is only considered with capital on hand; sell only with capital spent
and asset held. The walk is sequential and single-threaded; a sweep runs many
of these side by side, never one across threads.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from lotsweep.backtest.io import PriceRow, PriceSeries
from lotsweep.backtest.strategies import BuyRule, get_buy_rule, is_sell
from lotsweep.core.exceptions import ConfigError, DataValidityError
from lotsweep.core.numbers import round_to

logger = logging.getLogger(__name__)

# Capital below this is treated as spent when deciding to open reserves.
EMPTY_CAPITAL = 1.0
# Reserves stop being released once they fall to this share of the initial investment.
MIN_RESERVE_SHARE = 0.125


class Action(StrEnum):
    BUY = "BUY"
    SELL = "SELL"
    BALANCE = "BAL"
    OPEN_RESERVE = "OR"


@dataclass(slots=True)
class Lot:
    price: float
    amount: float
    entry_index: int


@dataclass(frozen=True, slots=True)
class ParameterCombination:
    asset: str
    strategy: str
    sell_condition: int
    ema_period: int
    reinvest_percentage: float
    min_return: float
    percent_drop: float
    balance_tripwire: float


@dataclass(frozen=True, slots=True)
class SimConfig:
    initial_investment: float = 1000.0
    tax_rate: float = 0.0
    fee_rate: float = 0.001

    @property
    def min_reserves(self) -> float:
        return self.initial_investment * MIN_RESERVE_SHARE


@dataclass(frozen=True, slots=True)
class SimEvent:
    """State right after an action, for the diagnostic log."""

    action: Action
    row: PriceRow
    capital: float
    holdings: float
    reserves: float
    revenue: float
    tax: float
    fees: float
    lots: tuple[Lot, ...]
    snapshot: str
    amount: float | None = None


EventSink = Callable[[SimEvent], None]


@dataclass(slots=True)
class SimulationState:
    capital: float
    reserves: float
    holdings: float = 0.0
    last_buy_price: float = 0.0
    revenue: float = 0.0
    tax: float = 0.0
    fees: float = 0.0
    transactions: int = 0
    cursor: int = 0
    buys: list[int] = field(default_factory=list)
    sells: list[int] = field(default_factory=list)
    balances: list[int] = field(default_factory=list)
    reserve_opens: list[int] = field(default_factory=list)
    lots: list[Lot] = field(default_factory=list)

    @classmethod
    def initial(cls, investment: float) -> SimulationState:
        return cls(capital=investment / 2, reserves=investment / 2)

    def current_return(self, price: float) -> float | None:
        """Return since the last buy; ``None`` before any buy."""

        if self.last_buy_price <= 0.0:
            return None
        return (price - self.last_buy_price) / self.last_buy_price


@dataclass(frozen=True, slots=True)
class Result:
    asset: str
    start_date: int
    end_date: int
    strategy: str
    ema_period: int
    reinvest_percentage: float
    min_return: float
    percent_drop: float
    balance_tripwire: float
    buy_hold_benchmark: float
    final_value: float
    revenue: float
    tax: float
    fees: float
    transaction_count: int
    buys: tuple[int, ...]
    sells: tuple[int, ...]
    balances: tuple[int, ...]
    reserve_opens: tuple[int, ...]
    source: str


def buy_and_hold(
    *,
    first_price: float,
    last_price: float,
    investment: float,
    fee_rate: float,
    tax_rate: float,
) -> float:
    """Net profit from buying at the open and selling at the close, in cents."""

    fee_buy = investment * fee_rate
    amount = (investment - fee_buy) / first_price
    sold = amount * last_price
    fee_sell = sold * fee_rate
    gain = sold - investment
    if gain > 0:
        return round_to(gain - gain * tax_rate - fee_sell, 2)
    return round_to(gain - fee_sell, 2)


def resolve_ema_column(series: PriceSeries, ema_period: int) -> str:
    """Period-specific ``EMA_<n>`` when the file has it, else the generic ``EMA``."""

    col = f"EMA_{ema_period}"
    if series.has(col):
        return col
    logger.debug("ema_column_fallback", extra={"wanted": col, "source": series.source})
    return "EMA"


class Simulation:
    """One combination, one series, one walk."""

    def __init__(
        self,
        *,
        series: PriceSeries,
        combo: ParameterCombination,
        cfg: SimConfig | None = None,
        on_event: EventSink | None = None,
    ) -> None:
        self.cfg = cfg or SimConfig()
        self.series = series
        self.combo = combo
        self.rule: BuyRule = get_buy_rule(combo.strategy)
        if combo.balance_tripwire <= 0:
            raise ConfigError(f"balance_tripwire must be > 0, got {combo.balance_tripwire}")
        if len(series) == 0:
            raise DataValidityError(combo.asset, 0, 0, detail="empty series")

        self.ema_column = resolve_ema_column(series, combo.ema_period)
        self.state = SimulationState.initial(self.cfg.initial_investment)
        self._on_event = on_event

    @property
    def done(self) -> bool:
        return self.state.cursor >= len(self.series)

    def run(self) -> Result:
        while not self.done:
            self.step()
        return self.result()

    def step(self) -> list[Action]:
        """Decide and act on the row under the cursor, then advance it."""

        s = self.state
        row = self.series.row(s.cursor, ema_column=self.ema_column)
        buy, sell, open_reserve = self._signals(row)

        taken: list[Action] = []
        if sell:
            self._sell(row)
            taken.append(Action.SELL)
            if s.reserves > 0.0 and s.capital / s.reserves > self.combo.balance_tripwire:
                self._balance(row)
                taken.append(Action.BALANCE)
        elif buy:
            self._buy(row)
            taken.append(Action.BUY)
        elif open_reserve:
            self._open_reserve(row)
            taken.append(Action.OPEN_RESERVE)

        s.cursor += 1
        return taken

    def _signals(self, row: PriceRow) -> tuple[bool, bool, bool]:
        s = self.state
        cr = s.current_return(row.close)

        buy = False
        sell = False
        if s.capital > 0.0:
            buy = self.rule.is_buy(row)
        elif s.holdings > 0.0:
            sell = is_sell(self.combo.sell_condition, row, current_return=cr, min_return=self.combo.min_return)

        open_reserve = (
            s.capital < EMPTY_CAPITAL
            and cr is not None
            and cr < -self.combo.percent_drop
            and s.reserves > self.cfg.min_reserves
        )
        return buy, sell, open_reserve

    # ---------------- actions ----------------

    def _buy(self, row: PriceRow) -> None:
        s = self.state
        price = row.close
        fee = s.capital * self.cfg.fee_rate
        amount = (s.capital - fee) / price

        s.fees += fee
        s.capital = 0.0
        s.holdings += amount
        s.lots.insert(0, Lot(price=price, amount=amount, entry_index=row.index))
        s.last_buy_price = price
        s.transactions += 1
        s.buys.append(row.index)
        self._emit(Action.BUY, row)

    def _sell(self, row: PriceRow) -> None:
        """Liquidate qualifying lots, cheapest entry first.

        At a fixed price a cheaper lot always has the higher return, so the
        first lot that misses ``min_return`` ends the pass.
        """

        s = self.state
        price = row.close
        s.lots.sort(key=lambda lot: lot.price)

        sold = 0.0
        while s.lots:
            lot = s.lots[0]
            if (price - lot.price) / lot.price <= self.combo.min_return:
                break

            proceeds = lot.amount * price
            fee = proceeds * self.cfg.fee_rate
            gain = proceeds - lot.amount * lot.price
            tax = gain * self.cfg.tax_rate if gain > 0.0 else 0.0
            reward = gain - fee - tax
            reinvested = reward * self.combo.reinvest_percentage

            s.capital += proceeds - gain + reinvested
            s.revenue += reward - reinvested
            s.tax += tax
            s.fees += fee
            s.holdings -= lot.amount
            sold += lot.amount
            s.lots.pop(0)

        if not s.lots:
            # Float dust from repeated subtraction.
            s.holdings = 0.0

        s.transactions += 1
        s.sells.append(row.index)
        self._emit(Action.SELL, row, amount=sold)

    def _balance(self, row: PriceRow) -> None:
        s = self.state
        half = (s.capital + s.reserves) / 2
        s.capital = half
        s.reserves = half
        s.balances.append(row.index)
        self._emit(Action.BALANCE, row)

    def _open_reserve(self, row: PriceRow) -> None:
        # Overwrites capital: the signal only fires with capital already spent.
        s = self.state
        s.capital = s.reserves / 2
        s.reserves = s.reserves / 2
        s.reserve_opens.append(row.index)
        self._emit(Action.OPEN_RESERVE, row)

    def _emit(self, action: Action, row: PriceRow, *, amount: float | None = None) -> None:
        if self._on_event is None:
            return
        s = self.state
        self._on_event(
            SimEvent(
                action=action,
                row=row,
                capital=s.capital,
                holdings=s.holdings,
                reserves=s.reserves,
                revenue=s.revenue,
                tax=s.tax,
                fees=s.fees,
                lots=tuple(Lot(lot.price, lot.amount, lot.entry_index) for lot in s.lots),
                snapshot=self.rule.snapshot(row),
                amount=amount,
            )
        )

    # ---------------- result ----------------

    def result(self) -> Result:
        s = self.state
        c = self.combo
        first = self.series.row(0)
        last = self.series.row(len(self.series) - 1)
        return Result(
            asset=c.asset,
            start_date=first.timestamp,
            end_date=last.timestamp,
            strategy=c.strategy,
            ema_period=c.ema_period,
            reinvest_percentage=c.reinvest_percentage,
            min_return=c.min_return,
            percent_drop=c.percent_drop,
            balance_tripwire=c.balance_tripwire,
            buy_hold_benchmark=buy_and_hold(
                first_price=first.close,
                last_price=last.close,
                investment=self.cfg.initial_investment,
                fee_rate=self.cfg.fee_rate,
                tax_rate=self.cfg.tax_rate,
            ),
            final_value=round_to(s.capital + s.reserves + s.holdings * last.close, 2),
            revenue=round_to(s.revenue, 2),
            tax=round_to(s.tax, 2),
            fees=round_to(s.fees, 2),
            transaction_count=s.transactions,
            buys=tuple(s.buys),
            sells=tuple(s.sells),
            balances=tuple(s.balances),
            reserve_opens=tuple(s.reserve_opens),
            source=self.series.source,
        )


def simulate(
    *,
    series: PriceSeries,
    combo: ParameterCombination,
    cfg: SimConfig | None = None,
    on_event: EventSink | None = None,
) -> Result:
    return Simulation(series=series, combo=combo, cfg=cfg, on_event=on_event).run()
