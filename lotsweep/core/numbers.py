"""lotsweep.core.numbers

Number formatting for result and event lines.

Result files are compared across runs and across machines, so floats are
written as their shortest round-trip digits with no trailing ``.0``. Like a
``%g`` rendering, values with a decimal exponent below -4 or at least 6 switch
to exponent form: ``1.234567e+06``, ``1e-05``.
"""

from __future__ import annotations

import math

import numpy as np


def round_to(value: float, precision: int = 2) -> float:
    """Round half away from zero, e.g. ``round_to(0.125) == 0.13``."""

    ratio = 10.0**precision
    scaled = value * ratio
    return math.copysign(math.floor(abs(scaled) + 0.5), scaled) / ratio


def format_number(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    v = float(value)
    sci = np.format_float_scientific(v, trim="-", exp_digits=2)
    exponent = int(sci.rsplit("e", 1)[1])
    if v != 0.0 and (exponent < -4 or exponent >= 6):
        return sci
    return np.format_float_positional(v, trim="-")
