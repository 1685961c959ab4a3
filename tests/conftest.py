from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from lotsweep.core.config import Config  # noqa: E402


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def make_config(temp_dir: Path) -> Callable[..., Config]:
    """Build a Config whose files live under a temp directory.

    Keyword overrides are merged one level deep, per section.
    """

    def _make(**sections: dict[str, Any]) -> Config:
        raw: dict[str, Any] = {
            "files": {
                "data_dir": temp_dir / "data",
                "output_dir": temp_dir / "results",
                "log_dir": temp_dir / "logs",
            },
            "simulation": {
                "assets": ["BTC"],
                "invest_amt": 1000.0,
                "tax_rate": 0.2,
                "fees": 0.001,
                "start_date": "01Jan2021",
                "end_date": "02Jan2021",
            },
            "parameters": {
                "strategies": ["MACD"],
                "ema_values": [50],
                "reinvest_percentages": [0.5],
                "min_returns": [0.02],
                "percent_drops": [0.1],
                "balance_tripwires": [2.0],
                "sell_condition": 1,
            },
            "sweep": {"max_workers": 2, "progress_every": 10},
        }
        for name, values in sections.items():
            raw[name] = {**raw.get(name, {}), **values}
        return Config.from_mapping(raw)

    return _make


@pytest.fixture(autouse=True)
def _reset_lotsweep_logger() -> Any:
    # configure_logging() detaches the package logger from root; undo it so caplog keeps working.
    yield
    log = logging.getLogger("lotsweep")
    for h in list(log.handlers):
        log.removeHandler(h)
    log.propagate = True
    log.setLevel(logging.NOTSET)
