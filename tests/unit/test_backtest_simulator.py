from __future__ import annotations

import pytest

from lotsweep.backtest.simulator import (
    Action,
    Lot,
    ParameterCombination,
    SimConfig,
    SimEvent,
    Simulation,
    buy_and_hold,
    resolve_ema_column,
    simulate,
)
from lotsweep.backtest.strategies import STRATEGIES
from lotsweep.core.exceptions import ConfigError, DataValidityError
from tests.unit._series import make_series, random_series


def _combo(**kw) -> ParameterCombination:
    base = dict(
        asset="BTC",
        strategy="MACD",
        sell_condition=1,
        ema_period=50,
        reinvest_percentage=0.5,
        min_return=0.05,
        percent_drop=0.1,
        balance_tripwire=2.0,
    )
    base.update(kw)
    return ParameterCombination(**base)


def _held(sim: Simulation, *, lots: list[Lot], last_buy_price: float, reserves: float) -> None:
    """Put a simulation mid-trade: capital spent, ``lots`` held."""

    s = sim.state
    s.capital = 0.0
    s.reserves = reserves
    s.lots = lots
    s.holdings = sum(lot.amount for lot in lots)
    s.last_buy_price = last_buy_price


def test_buy_then_sell_accounting() -> None:
    series = make_series([100.0, 110.0], ema=[90.0, 90.0], macd=[1.0, 1.0], signal=[0.0, 0.0])
    events: list[SimEvent] = []
    sim = Simulation(
        series=series,
        combo=_combo(),
        cfg=SimConfig(initial_investment=1000.0, tax_rate=0.2, fee_rate=0.01),
        on_event=events.append,
    )

    assert sim.step() == [Action.BUY]
    s = sim.state
    assert s.capital == 0.0
    assert s.holdings == pytest.approx(4.95)
    assert s.fees == pytest.approx(5.0)
    assert s.reserves == 500.0

    assert sim.step() == [Action.SELL]
    assert s.capital == pytest.approx(512.0775)
    assert s.revenue == pytest.approx(17.0775)
    assert s.tax == pytest.approx(9.9)
    assert s.fees == pytest.approx(10.445)
    assert s.holdings == 0.0
    assert s.lots == []

    res = sim.result()
    assert res.final_value == pytest.approx(1012.08)
    assert res.buy_hold_benchmark == pytest.approx(60.31)
    assert res.transaction_count == 2
    assert res.buys == (0,)
    assert res.sells == (1,)
    assert res.balances == ()
    assert res.reserve_opens == ()
    assert res.start_date == 1609459200
    assert res.end_date == 1609459200 + 3600

    assert [e.action for e in events] == [Action.BUY, Action.SELL]
    assert len(events[0].lots) == 1
    assert events[1].lots == ()
    assert events[1].amount == pytest.approx(4.95)


def test_buy_and_hold_benchmark() -> None:
    kw = dict(investment=1000.0, fee_rate=0.01, tax_rate=0.2)
    assert buy_and_hold(first_price=100.0, last_price=110.0, **kw) == pytest.approx(60.31)
    # Losses are not taxed.
    assert buy_and_hold(first_price=100.0, last_price=90.0, **kw) == pytest.approx(-117.91)


def test_no_signals_means_no_trades() -> None:
    series = make_series([100.0, 90.0, 80.0, 70.0], ema=[200.0] * 4, macd=[1.0] * 4, signal=[0.0] * 4)
    res = simulate(series=series, combo=_combo(), cfg=SimConfig(initial_investment=1000.0))
    assert res.transaction_count == 0
    assert res.final_value == 1000.0
    assert res.revenue == 0.0
    assert res.reserve_opens == ()


def test_sell_takes_cheapest_qualifying_lots() -> None:
    series = make_series([130.0], ema=[200.0])
    sim = Simulation(series=series, combo=_combo(min_return=0.05), cfg=SimConfig(fee_rate=0.0))
    _held(
        sim,
        lots=[Lot(100.0, 1.0, 0), Lot(150.0, 1.0, 1), Lot(120.0, 1.0, 2)],
        last_buy_price=120.0,
        reserves=500.0,
    )

    assert sim.step() == [Action.SELL]
    assert [lot.price for lot in sim.state.lots] == [150.0]
    assert sim.state.holdings == pytest.approx(1.0)
    assert sim.state.capital > 0.0


def test_sell_with_no_qualifying_lot_still_counts() -> None:
    series = make_series([106.0], ema=[200.0])
    sim = Simulation(series=series, combo=_combo(min_return=0.05), cfg=SimConfig(fee_rate=0.0))
    _held(sim, lots=[Lot(110.0, 1.0, 0)], last_buy_price=100.0, reserves=500.0)

    assert sim.step() == [Action.SELL]
    assert sim.state.lots == [Lot(110.0, 1.0, 0)]
    assert sim.state.capital == 0.0
    assert sim.state.transactions == 1


def test_balance_after_sell() -> None:
    series = make_series([200.0], ema=[300.0])
    sim = Simulation(
        series=series,
        combo=_combo(reinvest_percentage=1.0, balance_tripwire=2.0),
        cfg=SimConfig(tax_rate=0.0, fee_rate=0.0),
    )
    _held(sim, lots=[Lot(100.0, 10.0, 0)], last_buy_price=100.0, reserves=100.0)

    assert sim.step() == [Action.SELL, Action.BALANCE]
    assert sim.state.capital == pytest.approx(1050.0)
    assert sim.state.reserves == pytest.approx(1050.0)
    assert sim.state.balances == [0]


def test_no_balance_when_reserves_empty() -> None:
    series = make_series([200.0], ema=[300.0])
    sim = Simulation(series=series, combo=_combo(), cfg=SimConfig(fee_rate=0.0))
    _held(sim, lots=[Lot(100.0, 10.0, 0)], last_buy_price=100.0, reserves=0.0)

    assert sim.step() == [Action.SELL]
    assert sim.state.reserves == 0.0
    assert sim.state.balances == []


def test_open_reserve_on_drawdown() -> None:
    series = make_series([80.0], ema=[100.0])
    sim = Simulation(series=series, combo=_combo(percent_drop=0.1), cfg=SimConfig(initial_investment=1000.0))
    _held(sim, lots=[Lot(100.0, 1.0, 0)], last_buy_price=100.0, reserves=400.0)

    assert sim.step() == [Action.OPEN_RESERVE]
    assert sim.state.capital == pytest.approx(200.0)
    assert sim.state.reserves == pytest.approx(200.0)
    assert sim.state.reserve_opens == [0]


def test_open_reserve_stops_at_minimum() -> None:
    series = make_series([80.0], ema=[100.0])
    sim = Simulation(series=series, combo=_combo(percent_drop=0.1), cfg=SimConfig(initial_investment=1000.0))
    _held(sim, lots=[Lot(100.0, 1.0, 0)], last_buy_price=100.0, reserves=125.0)

    assert sim.step() == []
    assert sim.state.reserves == 125.0


def test_empty_series_is_invalid_data() -> None:
    with pytest.raises(DataValidityError) as exc:
        Simulation(series=make_series([]), combo=_combo())
    assert exc.value.asset == "BTC"


def test_bad_combination_is_config_error() -> None:
    series = make_series([100.0])
    with pytest.raises(ConfigError):
        Simulation(series=series, combo=_combo(strategy="RSI"))
    with pytest.raises(ConfigError):
        Simulation(series=series, combo=_combo(balance_tripwire=0.0))


def test_ema_column_prefers_period_specific() -> None:
    series = make_series([100.0], ema=[1.0], extra={"EMA_50": [2.0]})
    assert resolve_ema_column(series, 50) == "EMA_50"
    assert resolve_ema_column(series, 200) == "EMA"

    sim = Simulation(series=series, combo=_combo(ema_period=50))
    assert sim.series.row(0, ema_column=sim.ema_column).ema == 2.0


@pytest.mark.parametrize("strategy", STRATEGIES)
@pytest.mark.parametrize("condition", range(1, 7))
def test_random_walk_invariants(strategy: str, condition: int) -> None:
    series = random_series(400, seed=condition)
    sim = Simulation(
        series=series,
        combo=_combo(strategy=strategy, sell_condition=condition, min_return=0.01, percent_drop=0.05),
        cfg=SimConfig(initial_investment=1000.0, tax_rate=0.3, fee_rate=0.001),
    )
    while not sim.done:
        sim.step()
        s = sim.state
        assert s.capital >= 0.0
        assert s.reserves >= 0.0
        assert s.holdings == pytest.approx(sum(lot.amount for lot in s.lots), abs=1e-9)
        assert s.transactions == len(s.buys) + len(s.sells)

    res = sim.result()
    for indices in (res.buys, res.sells, res.balances, res.reserve_opens):
        assert list(indices) == sorted(indices)
        assert all(0 <= i < len(series) for i in indices)
    assert res.fees >= 0.0
    assert res.tax >= 0.0
