"""Inversion of an observed WDLF into a star formation history."""

from __future__ import annotations

from wdlf.inversion.inverter import (
    InversionResult,
    RateEstimate,
    SolvedRate,
    TimeBinEstimate,
    Unconstrained,
    WdlfInverter,
    invert_wdlf,
    solve_sequential,
)
from wdlf.inversion.kernel import ResponseKernel, compute_response_kernel, lookback_time_edges
from wdlf.inversion.observed import ObservedWdlf

__all__ = [
    "InversionResult",
    "ObservedWdlf",
    "RateEstimate",
    "ResponseKernel",
    "SolvedRate",
    "TimeBinEstimate",
    "Unconstrained",
    "WdlfInverter",
    "compute_response_kernel",
    "invert_wdlf",
    "lookback_time_edges",
    "solve_sequential",
]
