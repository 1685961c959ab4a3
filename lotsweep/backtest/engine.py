"""lotsweep.backtest.engine

One combination, end to end:
- validate the strategy name
- load the asset's series (serialized, may raise DataValidityError)
- simulate, streaming events into the combination's own log
- append the result line (serialized)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from lotsweep.backtest.io import MarketDataProvider
from lotsweep.backtest.results import EventLog, ResultSink, event_log_path
from lotsweep.backtest.simulator import ParameterCombination, Result, SimConfig, simulate
from lotsweep.backtest.strategies import get_buy_rule


@dataclass(frozen=True, slots=True)
class RunContext:
    provider: MarketDataProvider
    sink: ResultSink
    sim: SimConfig
    log_dir: Path
    start_date: str
    end_date: str


def run_combination(combo: ParameterCombination, ctx: RunContext) -> Result:
    get_buy_rule(combo.strategy)

    series = ctx.provider.load(combo.asset)
    path = event_log_path(ctx.log_dir, start_date=ctx.start_date, end_date=ctx.end_date, combo=combo)
    with EventLog(path) as events:
        result = simulate(series=series, combo=combo, cfg=ctx.sim, on_event=events)

    ctx.sink.append(result)
    return result
