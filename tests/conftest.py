"""Shared model fixtures for synthesis and inversion tests."""

from __future__ import annotations

import pytest

from wdlf.cooling import WdCoolingModelSet, mestel_cooling_set
from wdlf.ifmr import get_ifmr
from wdlf.imf import PowerLawImf
from wdlf.lifetime import Hurley2000Lifetime
from wdlf.sfr import ConstantSfr
from wdlf.synthesis import StellarPopulation


@pytest.fixture(scope="session")
def mestel_set() -> WdCoolingModelSet:
    return mestel_cooling_set()


@pytest.fixture
def population(mestel_set: WdCoolingModelSet) -> StellarPopulation:
    """Salpeter-like population with a constant SFR over the last 10 Gyr."""
    return StellarPopulation(
        imf=PowerLawImf(-2.35, 0.6, 7.0),
        sfr=ConstantSfr(1.0e-12, t_min=0.0, t_max=1.0e10),
        ifmr=get_ifmr("kalirai2008"),
        lifetime=Hurley2000Lifetime(),
        cooling=mestel_set,
    )
