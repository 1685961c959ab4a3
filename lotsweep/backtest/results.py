"""lotsweep.backtest.results

Results out.

Two append-only outputs:
- one result file per asset per run: ``{output_dir}/{asset}/{run_stamp}.csv``,
  one line per combination, shared by every worker on that asset
- one event log per combination, private to it

Result line fields, in order:

    start_date, end_date, strategy, ema_period, reinvest_percentage,
    min_return, percent_drop, balance_tripwire, buy_hold_benchmark,
    final_value, revenue, tax, fees, transaction_count,
    [buys], [sells], [balances], [reserve_opens], source

There is no header row; runs with the same stamp append to the same file.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType
from typing import TextIO

from lotsweep.backtest.simulator import Action, ParameterCombination, Result, SimEvent
from lotsweep.core.exceptions import ResultSinkError
from lotsweep.core.numbers import format_number, round_to

RESULT_FIELDS: tuple[str, ...] = (
    "start_date",
    "end_date",
    "strategy",
    "ema_period",
    "reinvest_percentage",
    "min_return",
    "percent_drop",
    "balance_tripwire",
    "buy_hold_benchmark",
    "final_value",
    "revenue",
    "tax",
    "fees",
    "transaction_count",
    "buys",
    "sells",
    "balances",
    "reserve_opens",
    "source",
)


def _g(v: float) -> str:
    return format_number(v)


def _c(v: float) -> str:
    return format_number(round_to(v, 2))


def format_indices(indices: Iterable[int]) -> str:
    return "[" + "".join(f"{i} " for i in indices) + "]"


def format_result_line(r: Result) -> str:
    parts = [
        str(r.start_date),
        str(r.end_date),
        r.strategy,
        str(r.ema_period),
        _g(r.reinvest_percentage),
        _g(r.min_return),
        _g(r.percent_drop),
        _g(r.balance_tripwire),
        _g(r.buy_hold_benchmark),
        _g(r.final_value),
        _g(r.revenue),
        _g(r.tax),
        _g(r.fees),
        str(r.transaction_count),
        format_indices(r.buys),
        format_indices(r.sells),
        format_indices(r.balances),
        format_indices(r.reserve_opens),
        r.source,
    ]
    return ",".join(parts) + "\n"


def format_event_line(ev: SimEvent) -> str:
    head = ev.action.value
    if ev.action is Action.SELL and ev.amount is not None:
        head += f",Amount {_g(ev.amount)}"
    lots = "".join(f"(Amount:{_g(lot.amount)} Price:{_g(lot.price)} Index:{lot.entry_index})," for lot in ev.lots)
    fields = [
        head,
        f"Timestamp {ev.row.timestamp}",
        f"Index {ev.row.index}",
        f"Price {_c(ev.row.close)}",
        f"Capital {_c(ev.capital)}",
        f"Asset {_g(ev.holdings)}",
        f"Reserves {_c(ev.reserves)}",
        f"Revenue {_c(ev.revenue)}",
        f"Tax {_c(ev.tax)}",
        f"Fees {_c(ev.fees)}",
        f"PurchaseHist [{lots}]",
        ev.snapshot,
    ]
    return ",".join(fields) + "\n"


def event_log_path(log_dir: Path, *, start_date: str, end_date: str, combo: ParameterCombination) -> Path:
    """``{log_dir}/{start}-{end}/{asset}/{strategy}/EMA-{n}/MPBR-{mr}_{pd}_{bt}_{rp}.log``"""

    name = (
        f"MPBR-{_g(combo.min_return)}_{_g(combo.percent_drop)}_"
        f"{_g(combo.balance_tripwire)}_{_g(combo.reinvest_percentage)}.log"
    )
    return Path(log_dir) / f"{start_date}-{end_date}" / combo.asset / combo.strategy / f"EMA-{combo.ema_period}" / name


class ResultSink:
    """Shared per-asset result files. One lock guards every append."""

    def __init__(self, *, output_dir: Path, run_stamp: str) -> None:
        self.output_dir = Path(output_dir)
        self.run_stamp = run_stamp
        self._lock = threading.Lock()
        self._written = 0
        self._files: set[Path] = set()

    def path_for(self, asset: str) -> Path:
        return self.output_dir / asset / f"{self.run_stamp}.csv"

    def append(self, result: Result) -> Path:
        line = format_result_line(result)
        path = self.path_for(result.asset)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as e:
                raise ResultSinkError(f"Failed to append result to {path}: {e}") from e
            self._written += 1
            self._files.add(path)
        return path

    @property
    def written(self) -> int:
        with self._lock:
            return self._written

    @property
    def files(self) -> list[Path]:
        with self._lock:
            return sorted(self._files)


class EventLog:
    """Diagnostic log for one combination.

    Callable, so it plugs straight into a simulation as its event sink. The
    file is opened on the first event; a combination that never trades
    leaves no log behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._fh: TextIO | None = None

    def __call__(self, event: SimEvent) -> None:
        self.write(format_event_line(event))

    def write(self, line: str) -> None:
        try:
            if self._fh is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._fh = self.path.open("a", encoding="utf-8")
            self._fh.write(line)
        except OSError as e:
            raise ResultSinkError(f"Failed to write event log {self.path}: {e}") from e

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> EventLog:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
