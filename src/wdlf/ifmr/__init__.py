"""Initial-final mass relations."""

from __future__ import annotations

from wdlf.ifmr.base import InitialFinalMassRelation, bisect_fixed_point
from wdlf.ifmr.linear import IfmrSegment, LinearIfmr, PiecewiseLinearIfmr
from wdlf.ifmr.registry import IFMR_REGISTRY, available_ifmrs, get_ifmr
from wdlf.ifmr.tabulated import TabulatedIfmr

__all__ = [
    "IFMR_REGISTRY",
    "IfmrSegment",
    "InitialFinalMassRelation",
    "LinearIfmr",
    "PiecewiseLinearIfmr",
    "TabulatedIfmr",
    "available_ifmrs",
    "bisect_fixed_point",
    "get_ifmr",
]
