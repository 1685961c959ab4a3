"""lotsweep: parameter-sweep backtester for lot-based trading strategies.

One combination of strategy parameters is one independent simulation.
A sweep is the cartesian product of all of them, run to completion.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.5.0"
