"""Published initial-final mass relations, keyed by tag."""

from __future__ import annotations

import math
from collections.abc import Callable

from wdlf.errors import ConfigurationError
from wdlf.ifmr.base import InitialFinalMassRelation
from wdlf.ifmr.linear import IfmrSegment, LinearIfmr, PiecewiseLinearIfmr
from wdlf.ifmr.tabulated import TabulatedIfmr

# Renedo et al. (2010), Z = 0.01.
RENEDO2010_INITIAL = (1.0, 1.5, 1.75, 2.0, 2.25, 2.5, 3.0, 3.5, 4.0, 5.0)
RENEDO2010_FINAL = (
    0.52490,
    0.57015,
    0.59316,
    0.60959,
    0.63229,
    0.65988,
    0.70511,
    0.76703,
    0.83731,
    0.87790,
)


def kalirai2008() -> InitialFinalMassRelation:
    return LinearIfmr(0.109, 0.428, name="kalirai2008")


def kalirai2009() -> InitialFinalMassRelation:
    return LinearIfmr(0.101, 0.463, name="kalirai2009")


def ferrario2005() -> InitialFinalMassRelation:
    return LinearIfmr(0.10038, 0.43443, name="ferrario2005")


def cummings2018() -> InitialFinalMassRelation:
    return PiecewiseLinearIfmr(
        [
            IfmrSegment(2.85, 0.08, 0.489),
            IfmrSegment(3.6, 0.187, 0.184),
            IfmrSegment(7.2, 0.107, 0.471),
        ],
        lower_initial_mass=0.83,
        name="cummings2018",
    )


def catalan2008() -> InitialFinalMassRelation:
    return PiecewiseLinearIfmr(
        [
            IfmrSegment(2.7, 0.096, 0.429),
            IfmrSegment(math.inf, 0.137, 0.318),
        ],
        final_mass_cap=1.2,
        name="catalan2008",
    )


def renedo2010() -> InitialFinalMassRelation:
    return TabulatedIfmr(RENEDO2010_INITIAL, RENEDO2010_FINAL, name="renedo2010")


IFMR_REGISTRY: dict[str, Callable[[], InitialFinalMassRelation]] = {
    "catalan2008": catalan2008,
    "cummings2018": cummings2018,
    "ferrario2005": ferrario2005,
    "kalirai2008": kalirai2008,
    "kalirai2009": kalirai2009,
    "renedo2010": renedo2010,
}


def available_ifmrs() -> list[str]:
    return sorted(IFMR_REGISTRY)


def get_ifmr(name: str) -> InitialFinalMassRelation:
    """Construct the IFMR registered under ``name``.

    Raises:
        ConfigurationError: If the tag is unknown.
    """
    try:
        return IFMR_REGISTRY[name]()
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown IFMR '{name}'. Available: {', '.join(available_ifmrs())}"
        ) from exc


__all__ = [
    "IFMR_REGISTRY",
    "RENEDO2010_FINAL",
    "RENEDO2010_INITIAL",
    "available_ifmrs",
    "get_ifmr",
]
