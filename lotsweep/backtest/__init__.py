"""lotsweep.backtest

Backtest engine.

- io: price series in, volume validation
- strategies: buy rules per variant, sell rules per condition id
- simulator: the per-combination capital/reserves/lots state machine
- results: result lines and per-combination event logs out
- sweep: the cartesian grid on a bounded worker pool
"""
