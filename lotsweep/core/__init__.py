"""lotsweep.core

Shared plumbing: config, errors, time, metrics, caching, logging setup.
"""
