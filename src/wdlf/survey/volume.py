"""Survey volume and selection-function geometry.

This module provides:
- UniformDensity / ExponentialDisk: population density profiles along a line of sight
- ProperMotionSelection: discovery fraction from proper-motion and v_tan limits
- SkyCell: one survey footprint element (solid angle, Galactic latitude)
- SurveyVolume: cumulative generalised volume vs distance, 1/V_max helpers
- cone_survey_volume: exponential-disk volume inside a cone about the Galactic pole

Each distance step contributes omega * (d_max^3 - d_min^3) / 3, scaled by the
density profile and the discovery fraction at the step centre. Footprint cells
are independent, so the sky-grid integral runs in a thread pool and the
per-cell differential volumes are merged by summation.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np

from wdlf.errors import ModelDomainError
from wdlf.interpolation import scalar_or_array

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

# Tangential velocity [km/s] of 1 arcsec/yr at 1 pc.
KM_S_PER_ARCSEC_YR_PC = 4.74047


class DensityProfile(Protocol):
    def density(self, distance: NDArray[np.float64], latitude: float) -> NDArray[np.float64]: ...


class UniformDensity:
    def density(self, distance: NDArray[np.float64], latitude: float) -> NDArray[np.float64]:
        del latitude
        return np.ones_like(distance)

    def describe(self) -> str:
        return "uniform"


@dataclass(frozen=True, slots=True)
class ExponentialDisk:
    """exp(-|z| / H), with z the height above the plane along the line of sight."""

    scale_height: float

    def __post_init__(self) -> None:
        if not self.scale_height > 0.0:
            raise ModelDomainError(f"Scale height must be positive, got {self.scale_height}")

    def density(self, distance: NDArray[np.float64], latitude: float) -> NDArray[np.float64]:
        return np.exp(-np.abs(distance * math.sin(latitude)) / self.scale_height)

    def describe(self) -> str:
        return f"exponential disk, scale height {self.scale_height} pc"


@dataclass(frozen=True, slots=True)
class ProperMotionSelection:
    """Kinematic selection from proper-motion limits.

    Attributes:
        mu_min: Lower proper-motion limit [arcsec/yr].
        mu_max: Upper proper-motion limit [arcsec/yr].
        vtan_distribution: Frozen ``scipy.stats`` distribution of the
            population's tangential velocity [km/s] (anything with ``cdf``).
        vtan_min: Additional lower v_tan cut [km/s].
        vtan_max: Additional upper v_tan cut [km/s].
    """

    mu_min: float
    mu_max: float
    vtan_distribution: Any
    vtan_min: float = 0.0
    vtan_max: float = math.inf

    def __post_init__(self) -> None:
        if not 0.0 <= self.mu_min < self.mu_max:
            raise ModelDomainError(
                f"Proper-motion limits must satisfy 0 <= mu_min < mu_max, got {self.mu_min}, {self.mu_max}"
            )

    def discovery_fraction(self, distance: ArrayLike) -> Any:
        """Fraction of the population passing the cuts at ``distance`` [pc]."""
        d = np.asarray(distance, dtype=np.float64)
        v_lo = np.maximum(KM_S_PER_ARCSEC_YR_PC * self.mu_min * d, self.vtan_min)
        v_hi = np.minimum(KM_S_PER_ARCSEC_YR_PC * self.mu_max * d, self.vtan_max)
        frac = np.where(
            v_hi > v_lo,
            self.vtan_distribution.cdf(v_hi) - self.vtan_distribution.cdf(v_lo),
            0.0,
        )
        return scalar_or_array(frac, distance)


@dataclass(frozen=True, slots=True)
class SkyCell:
    solid_angle: float
    galactic_latitude: float = 0.0


def differential_volume(
    cell: SkyCell,
    distance_edges: NDArray[np.float64],
    density: DensityProfile | None = None,
    selection: ProperMotionSelection | None = None,
) -> NDArray[np.float64]:
    """Generalised volume [pc^3] in each distance step along one cell."""
    d_min = distance_edges[:-1]
    d_max = distance_edges[1:]
    d_mid = 0.5 * (d_min + d_max)
    volume = cell.solid_angle * (d_max**3 - d_min**3) / 3.0
    if density is not None:
        volume = volume * density.density(d_mid, cell.galactic_latitude)
    if selection is not None:
        volume = volume * np.asarray(selection.discovery_fraction(d_mid))
    return volume


class SurveyVolume:
    """Cumulative generalised survey volume as a function of distance.

    Args:
        distance_edges: Distance step edges [pc], starting at zero.
        differential: Generalised volume in each step [pc^3].
    """

    def __init__(self, distance_edges: ArrayLike, differential: ArrayLike) -> None:
        edges = np.asarray(distance_edges, dtype=np.float64)
        diff = np.asarray(differential, dtype=np.float64)
        if edges.ndim != 1 or edges.size != diff.size + 1:
            raise ModelDomainError("Need one more distance edge than differential volume")
        if np.any(np.diff(edges) <= 0.0):
            raise ModelDomainError("Distance edges must be strictly increasing")
        if np.any(diff < 0.0):
            raise ModelDomainError("Differential volumes must be non-negative")
        self.distance_edges = edges
        self.differential = diff
        self.cumulative = np.concatenate([[0.0], np.cumsum(diff)])

    @classmethod
    def build(
        cls,
        cells: Sequence[SkyCell],
        max_distance: float,
        n_steps: int = 1000,
        density: DensityProfile | None = None,
        selection: ProperMotionSelection | None = None,
        max_workers: int = 1,
    ) -> SurveyVolume:
        """Integrate the generalised volume over a footprint of sky cells."""
        if not cells:
            raise ModelDomainError("Survey footprint has no sky cells")
        if not max_distance > 0.0 or n_steps < 1:
            raise ModelDomainError(
                f"Need max_distance > 0 and n_steps >= 1, got {max_distance}, {n_steps}"
            )
        edges = np.linspace(0.0, max_distance, n_steps + 1)
        total = np.zeros(n_steps)
        with ThreadPoolExecutor(max_workers=max(1, int(max_workers))) as pool:
            for part in pool.map(
                lambda cell: differential_volume(cell, edges, density, selection), cells
            ):
                total += part
        logger.debug("Survey volume over %d cells out to %.4g pc: %.4g pc^3", len(cells), max_distance, total.sum())
        return cls(edges, total)

    @property
    def max_distance(self) -> float:
        return float(self.distance_edges[-1])

    @property
    def total_volume(self) -> float:
        return float(self.cumulative[-1])

    def volume(self, distance: ArrayLike) -> Any:
        """Generalised volume inside ``distance``; constant beyond the survey edge."""
        d = np.clip(np.asarray(distance, dtype=np.float64), 0.0, self.max_distance)
        return scalar_or_array(np.interp(d, self.distance_edges, self.cumulative), distance)

    @staticmethod
    def limiting_distance(absolute_magnitude: ArrayLike, apparent_limit: float) -> Any:
        """Distance [pc] at which a star of the given absolute magnitude reaches the limit."""
        m = np.asarray(absolute_magnitude, dtype=np.float64)
        return scalar_or_array(10.0 ** ((apparent_limit - m + 5.0) / 5.0), absolute_magnitude)

    def detection_probability(self, absolute_magnitude: ArrayLike, apparent_limit: float) -> Any:
        """V(d_max) / V_total for magnitude-limited selection."""
        total = self.total_volume
        if not total > 0.0:
            raise ModelDomainError("Survey volume is zero")
        d_max = np.asarray(self.limiting_distance(absolute_magnitude, apparent_limit))
        prob = np.asarray(self.volume(d_max)) / total
        return scalar_or_array(prob, absolute_magnitude)


def cone_survey_volume(
    scale_height: float,
    opening_angle: float,
    n_radial: int = 1000,
    radial_extent: float = 30.0,
    polar_step: float = math.radians(0.25),
) -> SurveyVolume:
    """Exponential-disk volume inside a cone of half-angle ``opening_angle`` about the pole.

    The radial integral runs to ``radial_extent`` scale heights, far enough
    for the exponential to have flattened out. The azimuthal integral is
    analytic.
    """
    if not scale_height > 0.0:
        raise ModelDomainError(f"Scale height must be positive, got {scale_height}")
    if not 0.0 < opening_angle <= math.pi:
        raise ModelDomainError(f"Opening angle must lie in (0, pi], got {opening_angle}")
    dr = radial_extent * scale_height / n_radial
    edges = np.arange(n_radial + 1) * dr
    r = 0.5 * (edges[:-1] + edges[1:])
    n_polar = max(1, int(opening_angle / polar_step))
    phi = (np.arange(n_polar) + 0.5) * (opening_angle / n_polar)
    dphi = opening_angle / n_polar
    z = r[:, None] * np.cos(phi[None, :])
    shell = (r[:, None] ** 2) * np.sin(phi[None, :]) * dr * dphi * 2.0 * math.pi
    differential = np.sum(shell * np.exp(-np.abs(z) / scale_height), axis=1)
    return SurveyVolume(edges, differential)


__all__ = [
    "DensityProfile",
    "ExponentialDisk",
    "KM_S_PER_ARCSEC_YR_PC",
    "ProperMotionSelection",
    "SkyCell",
    "SurveyVolume",
    "UniformDensity",
    "cone_survey_volume",
    "differential_volume",
]
