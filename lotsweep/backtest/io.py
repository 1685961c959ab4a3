"""lotsweep.backtest.io

Price data in.

CSV schema (header row required):
- required: Date (unix seconds), Close
- optional: EMA, MACD, SIGNAL, SAR, CHAI, dP, EMA_<period>, anything numeric

Indicators are computed upstream. This module only reads them.

Each asset lives in ``{data_dir}/{asset}/``; the most recently modified file
in that directory is the series for the asset.
"""

from __future__ import annotations

import csv
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import numpy as np

from lotsweep.core.cache import TTLCache
from lotsweep.core.exceptions import DataValidityError, MarketDataError
from lotsweep.core.time import hours_between

logger = logging.getLogger(__name__)

DATE_COLUMN = "Date"
CLOSE_COLUMN = "Close"

# Deviation, in days, between actual and range-implied row counts before a
# series is considered truncated or corrupt.
VOLUME_TOLERANCE_DAYS = 600.0


@dataclass(frozen=True, slots=True)
class PriceRow:
    index: int
    timestamp: int
    close: float
    ema: float = math.nan
    macd: float = math.nan
    signal: float = math.nan
    sar: float = math.nan
    chai: float = math.nan
    dp: float = math.nan


@dataclass(frozen=True, slots=True)
class PriceSeries:
    timestamp: np.ndarray  # int64, ascending
    close: np.ndarray  # float64
    indicators: dict[str, np.ndarray] = field(default_factory=dict)
    source: str = ""

    def __len__(self) -> int:
        return int(self.close.shape[0])

    def has(self, column: str) -> bool:
        return column in self.indicators

    def _ind(self, column: str, i: int) -> float:
        arr = self.indicators.get(column)
        if arr is None:
            return math.nan
        return float(arr[i])

    def row(self, i: int, *, ema_column: str = "EMA") -> PriceRow:
        return PriceRow(
            index=i,
            timestamp=int(self.timestamp[i]),
            close=float(self.close[i]),
            ema=self._ind(ema_column, i),
            macd=self._ind("MACD", i),
            signal=self._ind("SIGNAL", i),
            sar=self._ind("SAR", i),
            chai=self._ind("CHAI", i),
            dp=self._ind("dP", i),
        )


def _to_float(v: str | None) -> float:
    if v is None or v == "":
        return math.nan
    return float(v)


def load_prices_csv(path: str | Path) -> PriceSeries:
    """Parse one price file and sort it ascending by Date."""

    p = Path(path)
    rows: list[dict[str, str]] = []
    with p.open("r", encoding="utf-8", newline="") as f:
        r = csv.DictReader(f)
        for row in r:
            rows.append({k.strip(): (v.strip() if isinstance(v, str) else "") for k, v in row.items() if k is not None})

    if not rows:
        return PriceSeries(timestamp=np.zeros(0, dtype=np.int64), close=np.zeros(0, dtype=np.float64), source=str(p))

    for required in (DATE_COLUMN, CLOSE_COLUMN):
        if required not in rows[0]:
            raise MarketDataError(f"CSV missing required column: {required} ({p})")

    try:
        ts = np.array([int(float(row[DATE_COLUMN])) for row in rows], dtype=np.int64)
        close = np.array([_to_float(row.get(CLOSE_COLUMN)) for row in rows], dtype=np.float64)
    except ValueError as e:
        raise MarketDataError(f"Non-numeric Date/Close in {p}: {e}") from e

    order = np.argsort(ts, kind="stable")

    indicators: dict[str, np.ndarray] = {}
    for name in rows[0]:
        if name in (DATE_COLUMN, CLOSE_COLUMN):
            continue
        try:
            col = np.array([_to_float(row.get(name)) for row in rows], dtype=np.float64)
        except ValueError:
            # Labels and other text columns are not indicators.
            continue
        indicators[name] = col[order]

    return PriceSeries(timestamp=ts[order], close=close[order], indicators=indicators, source=str(p))


def newest_file(directory: Path) -> Path:
    """Most recently modified regular file in ``directory``.

    Ties on mtime go to the first name in sorted order.
    """

    if not directory.is_dir():
        raise MarketDataError(f"Data directory not found: {directory}")
    files = sorted(f for f in directory.iterdir() if f.is_file() and not f.name.startswith("."))
    if not files:
        raise MarketDataError(f"No data files in {directory}")
    return max(files, key=lambda f: f.stat().st_mtime)


def expected_row_count(start: datetime, end: datetime) -> int:
    return hours_between(start, end)


def check_volume(asset: str, received: int, expected: int) -> None:
    """Coarse truncation check, not a calendar computation.

    Raises:
        DataValidityError: if ``|received - expected| / 24`` exceeds the tolerance.
    """

    if abs(received - expected) / 24.0 > VOLUME_TOLERANCE_DAYS:
        raise DataValidityError(asset, received, expected)


class MarketDataProvider:
    """Serves one validated price series per asset.

    Every directory listing and file read goes through a single lock shared by
    all sweep workers. Parsed series are cached by path and mtime.
    """

    def __init__(
        self,
        *,
        data_dir: Path,
        start: datetime,
        end: datetime,
        cache: TTLCache | None = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.start = start
        self.end = end
        self._cache = cache if cache is not None else TTLCache(default_ttl_s=3600.0)
        self._lock = threading.Lock()

    @property
    def expected_rows(self) -> int:
        return expected_row_count(self.start, self.end)

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def load(self, asset: str) -> PriceSeries:
        with self._lock:
            try:
                path = newest_file(self.data_dir / asset)
                key = (str(path), path.stat().st_mtime_ns)
                series = self._cache.get_or_load(key, lambda: load_prices_csv(path))
            except OSError as e:
                raise MarketDataError(f"Failed to read data for {asset}: {e}") from e

        check_volume(asset, len(series), self.expected_rows)
        logger.debug("series_loaded", extra={"asset": asset, "rows": len(series), "source": series.source})
        return series
