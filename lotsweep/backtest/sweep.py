"""lotsweep.backtest.sweep

Parameter sweep harness.

The grid is the cartesian product

    assets x strategies x ema_values x reinvest_percentages
           x min_returns x percent_drops x balance_tripwires

with one fixed sell condition. Each point is an independent simulation.

Execution contract:
- bounded thread pool, at most ``max_workers`` combinations running, a small
  window of submitted-but-not-started work behind them
- DataValidityError: the combination is skipped and counted as done
- anything else: pending work is cancelled and the error propagates
- results already appended stay on disk
"""

from __future__ import annotations

import itertools
import logging
import math
import os
import threading
import time
from collections.abc import Iterator
from concurrent.futures import FIRST_COMPLETED, FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path

from lotsweep.backtest.engine import RunContext, run_combination
from lotsweep.backtest.io import MarketDataProvider
from lotsweep.backtest.results import ResultSink
from lotsweep.backtest.simulator import ParameterCombination, SimConfig
from lotsweep.core.cache import TTLCache
from lotsweep.core.config import Config
from lotsweep.core.exceptions import DataValidityError
from lotsweep.core.metrics import MetricsRegistry
from lotsweep.core.time import run_stamp as make_run_stamp

logger = logging.getLogger(__name__)

# Submitted-but-unfinished futures per worker.
_WINDOW_PER_WORKER = 4


@dataclass(frozen=True, slots=True)
class SweepResult:
    total: int
    completed: int
    skipped: int
    written: int
    files: list[Path]
    elapsed_s: float
    run_stamp: str


def domain_sizes(cfg: Config) -> dict[str, int]:
    p = cfg.parameters
    return {
        "assets": len(cfg.simulation.assets),
        "strategies": len(p.strategies),
        "ema_values": len(p.ema_values),
        "reinvest_percentages": len(p.reinvest_percentages),
        "min_returns": len(p.min_returns),
        "percent_drops": len(p.percent_drops),
        "balance_tripwires": len(p.balance_tripwires),
    }


def count_combinations(cfg: Config) -> int:
    return math.prod(domain_sizes(cfg).values())


def iter_combinations(cfg: Config) -> Iterator[ParameterCombination]:
    p = cfg.parameters
    for asset, strat, ema, reinvest, min_ret, drop, trip in itertools.product(
        cfg.simulation.assets,
        p.strategies,
        p.ema_values,
        p.reinvest_percentages,
        p.min_returns,
        p.percent_drops,
        p.balance_tripwires,
    ):
        yield ParameterCombination(
            asset=asset,
            strategy=strat,
            sell_condition=p.sell_condition,
            ema_period=ema,
            reinvest_percentage=reinvest,
            min_return=min_ret,
            percent_drop=drop,
            balance_tripwire=trip,
        )


def resolve_workers(total: int, max_workers: int | None) -> int:
    cpu = os.cpu_count() or 1
    if max_workers is None:
        return max(1, min(cpu, total))
    return max(1, min(max_workers, total))


class SweepOrchestrator:
    """Runs every combination of a frozen ``Config`` exactly once."""

    def __init__(
        self,
        config: Config,
        *,
        run_stamp: str | None = None,
        provider: MarketDataProvider | None = None,
        sink: ResultSink | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.config = config
        self.run_stamp = run_stamp or make_run_stamp()
        sim = config.simulation
        self.provider = provider or MarketDataProvider(
            data_dir=config.files.data_dir,
            start=sim.start,
            end=sim.end,
            cache=TTLCache(default_ttl_s=config.sweep.cache_ttl_s),
        )
        self.sink = sink or ResultSink(output_dir=config.files.output_dir, run_stamp=self.run_stamp)
        self.metrics = metrics or MetricsRegistry()
        self.ctx = RunContext(
            provider=self.provider,
            sink=self.sink,
            sim=SimConfig(initial_investment=sim.invest_amt, tax_rate=sim.tax_rate, fee_rate=sim.fees),
            log_dir=config.files.log_dir,
            start_date=sim.start_date,
            end_date=sim.end_date,
        )
        self._completed = self.metrics.counter("sweep.completed")
        self._skipped = self.metrics.counter("sweep.skipped")
        self._done = self.metrics.counter("sweep.done")
        self._timer = self.metrics.timer("sweep.combination")
        self._total = 0
        self._abort = threading.Event()

    def run(self) -> SweepResult:
        total = count_combinations(self.config)
        self._total = total
        self._abort.clear()
        workers = resolve_workers(total, self.config.sweep.max_workers)
        self.metrics.gauge("sweep.total").set(total)

        logger.info(
            "sweep_started",
            extra={"total": total, "workers": workers, "run_stamp": self.run_stamp, **domain_sizes(self.config)},
        )
        start = time.monotonic()

        window = workers * _WINDOW_PER_WORKER
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lotsweep")
        pending: set[Future[bool]] = set()
        try:
            for combo in iter_combinations(self.config):
                if len(pending) >= window:
                    finished, pending = wait(pending, return_when=FIRST_COMPLETED)
                    self._collect(finished)
                pending.add(pool.submit(self._run_one, combo))
            while pending:
                finished, pending = wait(pending, return_when=FIRST_EXCEPTION)
                self._collect(finished)
        except BaseException as e:
            pool.shutdown(wait=True, cancel_futures=True)
            logger.error(
                "sweep_failed",
                extra={"error": repr(e), "done": self._done.value, "total": total},
            )
            raise
        pool.shutdown(wait=True)

        elapsed = time.monotonic() - start
        res = SweepResult(
            total=total,
            completed=self._completed.value,
            skipped=self._skipped.value,
            written=self.sink.written,
            files=self.sink.files,
            elapsed_s=elapsed,
            run_stamp=self.run_stamp,
        )
        logger.info(
            "sweep_finished",
            extra={
                "total": res.total,
                "completed": res.completed,
                "skipped": res.skipped,
                "elapsed_s": round(elapsed, 3),
                "mean_combination_s": round(self._timer.summary()["mean_s"], 4),
                "series_parsed": self.provider.cache.stats().misses,
                "output_dir": str(self.config.files.output_dir),
            },
        )
        return res

    @staticmethod
    def _collect(finished: set[Future[bool]]) -> None:
        for fut in finished:
            fut.result()

    def _run_one(self, combo: ParameterCombination) -> bool:
        # Work already picked up by a worker when another task failed is dropped here.
        if self._abort.is_set():
            return False
        try:
            with self._timer.time():
                run_combination(combo, self.ctx)
        except DataValidityError as e:
            self._skipped.inc()
            logger.warning(
                "combination_skipped",
                extra={"asset": e.asset, "received": e.received, "expected": e.expected, "strategy": combo.strategy},
            )
            self._tick()
            return False
        except Exception:
            self._abort.set()
            raise

        self._completed.inc()
        self._tick()
        return True

    def _tick(self) -> None:
        done = self._done.inc()
        every = self.config.sweep.progress_every
        if done % every == 0 or done == self._total:
            logger.info("sweep_progress", extra={"done": done, "total": self._total})
