"""Magnitude binning of synthetic stars into a model luminosity function.

The binner keeps number-weighted running sums per bin, so accumulation is
order independent and per-worker binners merge by addition. Means follow from
the sums and dispersions from mean-of-square minus square-of-mean. Bins that
receive no stars report zero density rather than being dropped. Their
uncertainty is EMPTY_BIN_UNCERTAINTY_FACTOR times the larger of the biggest
populated-bin uncertainty and the uncertainty of a single star, so it stays
far above every populated bin whatever the weight scale of the run.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from wdlf.errors import ModelDomainError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from wdlf.synthesis.star import Star, StarBatch

EMPTY_BIN_UNCERTAINTY_FACTOR = 1.0e9
_OVERLAP_TOLERANCE = 1e-9


@dataclass(frozen=True, eq=False)
class MagnitudeBins:
    """Sorted, non-overlapping magnitude bins.

    Uniform and edge-built bins are contiguous; bins built from arbitrary
    centres and widths (e.g. an observed luminosity function) may have gaps.
    """

    centres: NDArray[np.float64]
    widths: NDArray[np.float64]

    def __post_init__(self) -> None:
        c = np.asarray(self.centres, dtype=np.float64)
        w = np.asarray(self.widths, dtype=np.float64)
        if c.ndim != 1 or c.size == 0 or c.shape != w.shape:
            raise ModelDomainError("Magnitude bins need matching, non-empty centres and widths")
        if np.any(w <= 0.0):
            raise ModelDomainError("Magnitude bin widths must be positive")
        if np.any(np.diff(c) <= 0.0):
            raise ModelDomainError("Magnitude bin centres must be strictly increasing")
        upper = c + 0.5 * w
        lower = c - 0.5 * w
        if np.any(upper[:-1] - lower[1:] > _OVERLAP_TOLERANCE * np.maximum(w[:-1], w[1:])):
            raise ModelDomainError("Magnitude bins overlap")
        object.__setattr__(self, "centres", c)
        object.__setattr__(self, "widths", w)

    @classmethod
    def uniform(cls, m_min: float, m_max: float, width: float) -> MagnitudeBins:
        """Contiguous bins of equal width covering [m_min, m_max]."""
        if not width > 0.0 or not m_max > m_min:
            raise ModelDomainError(
                f"Need m_min < m_max and width > 0, got [{m_min}, {m_max}], {width}"
            )
        n_bins = int(round((m_max - m_min) / width))
        return cls.from_edges(m_min + width * np.arange(max(n_bins, 1) + 1))

    @classmethod
    def from_edges(cls, edges: ArrayLike) -> MagnitudeBins:
        e = np.asarray(edges, dtype=np.float64)
        if e.ndim != 1 or e.size < 2:
            raise ModelDomainError("Need at least two magnitude bin edges")
        return cls(0.5 * (e[:-1] + e[1:]), np.diff(e))

    def __len__(self) -> int:
        return int(self.centres.size)

    @property
    def lower(self) -> NDArray[np.float64]:
        return self.centres - 0.5 * self.widths

    @property
    def upper(self) -> NDArray[np.float64]:
        return self.centres + 0.5 * self.widths

    @property
    def contiguous(self) -> bool:
        return bool(np.allclose(self.upper[:-1], self.lower[1:]))

    def locate(self, magnitude: ArrayLike) -> NDArray[np.intp]:
        """Bin index of each magnitude, or -1 outside every bin (NaN included)."""
        m = np.atleast_1d(np.asarray(magnitude, dtype=np.float64))
        lower = self.lower
        upper = self.upper
        idx = np.searchsorted(lower, m, side="right") - 1
        safe = np.clip(idx, 0, len(self) - 1)
        inside = (idx >= 0) & (m < upper[safe])
        return np.where(inside, idx, -1)


@dataclass(frozen=True, slots=True)
class WdlfBin:
    centre: float
    width: float
    density: float
    density_std: float
    mean_mass: float
    mean_mass_std: float
    mean_age: float
    mean_age_std: float


COLUMNS = (
    "centres",
    "widths",
    "density",
    "density_std",
    "mean_mass",
    "mean_mass_std",
    "mean_age",
    "mean_age_std",
)


@dataclass(frozen=True, eq=False)
class ModelWdlf:
    """Binned luminosity function with mean-mass and mean-age side channels.

    Attributes:
        centres, widths: Magnitude bins.
        density, density_std: Number (per magnitude when ``per_magnitude``).
        mean_mass, mean_mass_std: Number-weighted WD mass per bin [M_sun].
        mean_age, mean_age_std: Number-weighted total age per bin [yr].
        counts: Raw number of synthetic stars per bin.
        per_magnitude: Whether densities are divided by bin width.
        metadata: Flat description of the inputs that produced it.
    """

    centres: NDArray[np.float64]
    widths: NDArray[np.float64]
    density: NDArray[np.float64]
    density_std: NDArray[np.float64]
    mean_mass: NDArray[np.float64]
    mean_mass_std: NDArray[np.float64]
    mean_age: NDArray[np.float64]
    mean_age_std: NDArray[np.float64]
    counts: NDArray[np.int64]
    per_magnitude: bool = True
    metadata: dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return int(self.centres.size)

    def __iter__(self) -> Iterator[WdlfBin]:
        for row in self.rows():
            yield WdlfBin(*row)

    @property
    def populated(self) -> NDArray[np.bool_]:
        return self.counts > 0

    def rows(self) -> list[tuple[float, ...]]:
        """One (centre, width, density, density_std, mass, mass_std, age, age_std) row per bin."""
        columns = [getattr(self, name) for name in COLUMNS]
        return [tuple(float(col[i]) for col in columns) for i in range(len(self))]

    def total_number(self) -> float:
        if self.per_magnitude:
            return float(np.sum(self.density * self.widths))
        return float(np.sum(self.density))

    def mass_luminosity_relation(self) -> list[tuple[float, float, float]]:
        sel = self.populated
        return list(
            zip(
                self.centres[sel].tolist(),
                self.mean_mass[sel].tolist(),
                self.mean_mass_std[sel].tolist(),
            )
        )

    def age_luminosity_relation(self) -> list[tuple[float, float, float]]:
        sel = self.populated
        return list(
            zip(
                self.centres[sel].tolist(),
                self.mean_age[sel].tolist(),
                self.mean_age_std[sel].tolist(),
            )
        )

    def with_metadata(self, **metadata: str) -> ModelWdlf:
        return ModelWdlf(
            **{name: getattr(self, name) for name in COLUMNS},
            counts=self.counts,
            per_magnitude=self.per_magnitude,
            metadata={**self.metadata, **metadata},
        )


def _weighted_moments(
    weighted_sum: NDArray[np.float64],
    weighted_sum_sq: NDArray[np.float64],
    total: NDArray[np.float64],
    populated: NDArray[np.bool_],
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    safe = np.where(populated & (total != 0.0), total, 1.0)
    mean = np.where(populated, weighted_sum / safe, 0.0)
    mean_sq = np.where(populated, weighted_sum_sq / safe, 0.0)
    std = np.sqrt(np.maximum(mean_sq - mean**2, 0.0))
    return mean, std


class WdlfBinner:
    """Accumulates stars into magnitude bins.

    Args:
        bins: Magnitude bins.
        per_magnitude: Divide densities and their uncertainties by bin width.
    """

    def __init__(self, bins: MagnitudeBins, per_magnitude: bool = True) -> None:
        self.bins = bins
        self.per_magnitude = per_magnitude
        n = len(bins)
        self._number = np.zeros(n)
        self._sigma2 = np.zeros(n)
        self._mass = np.zeros(n)
        self._mass_sq = np.zeros(n)
        self._age = np.zeros(n)
        self._age_sq = np.zeros(n)
        self._counts = np.zeros(n, dtype=np.int64)
        # Weight of a single star after every scale() call.
        self._unit_number = 1.0

    @property
    def n_binned(self) -> int:
        return int(self._counts.sum())

    def _accumulate(
        self,
        idx: NDArray[np.intp],
        number: NDArray[np.float64],
        sigma2: NDArray[np.float64],
        mass: NDArray[np.float64],
        age: NDArray[np.float64],
    ) -> None:
        n = len(self.bins)
        self._number += np.bincount(idx, weights=number, minlength=n)
        self._sigma2 += np.bincount(idx, weights=sigma2, minlength=n)
        self._mass += np.bincount(idx, weights=number * mass, minlength=n)
        self._mass_sq += np.bincount(idx, weights=number * mass**2, minlength=n)
        self._age += np.bincount(idx, weights=number * age, minlength=n)
        self._age_sq += np.bincount(idx, weights=number * age**2, minlength=n)
        self._counts += np.bincount(idx, minlength=n)

    def add(self, star: Star) -> bool:
        """Add one star; returns False if it is not a white dwarf or falls outside every bin."""
        if not star.is_white_dwarf or star.magnitude is None or star.wd_mass is None:
            return False
        idx = self.bins.locate(star.magnitude)
        if idx[0] < 0:
            return False
        self._accumulate(
            idx,
            np.array([star.number]),
            np.array([star.sigma2_number]),
            np.array([star.wd_mass]),
            np.array([star.total_age]),
        )
        return True

    def add_batch(self, batch: StarBatch) -> int:
        """Add every white dwarf of a batch; returns how many landed in a bin."""
        wd = batch.white_dwarfs
        idx = self.bins.locate(batch.magnitude[wd])
        keep = idx >= 0
        if not np.any(keep):
            return 0
        self._accumulate(
            idx[keep],
            batch.number[wd][keep],
            batch.sigma2_number[wd][keep],
            batch.wd_mass[wd][keep],
            batch.formation_time[wd][keep],
        )
        return int(keep.sum())

    def merge(self, other: WdlfBinner) -> None:
        """Add another binner's sums into this one."""
        if not (
            np.array_equal(self.bins.centres, other.bins.centres)
            and np.array_equal(self.bins.widths, other.bins.widths)
        ):
            raise ValueError("Cannot merge binners with different magnitude bins")
        self._number += other._number
        self._sigma2 += other._sigma2
        self._mass += other._mass
        self._mass_sq += other._mass_sq
        self._age += other._age
        self._age_sq += other._age_sq
        self._counts += other._counts
        self._unit_number = max(self._unit_number, other._unit_number)

    def scale(self, weight: float) -> None:
        """Reweight every accumulated star by ``weight`` (zero weight uncertainty)."""
        self._number *= weight
        self._sigma2 *= weight**2
        self._mass *= weight
        self._mass_sq *= weight
        self._age *= weight
        self._age_sq *= weight
        self._unit_number *= weight

    def finalize(self, metadata: dict[str, str] | None = None) -> ModelWdlf:
        populated = self._counts > 0
        divisor = self.bins.widths if self.per_magnitude else np.ones(len(self.bins))
        density = np.where(populated, self._number / divisor, 0.0)
        populated_std = np.sqrt(self._sigma2) / divisor
        reference = abs(self._unit_number) / float(divisor.min())
        if np.any(populated):
            reference = max(reference, float(populated_std[populated].max()))
        if not reference > 0.0:
            reference = 1.0
        density_std = np.where(populated, populated_std, EMPTY_BIN_UNCERTAINTY_FACTOR * reference)
        mean_mass, mean_mass_std = _weighted_moments(self._mass, self._mass_sq, self._number, populated)
        mean_age, mean_age_std = _weighted_moments(self._age, self._age_sq, self._number, populated)
        return ModelWdlf(
            centres=self.bins.centres.copy(),
            widths=self.bins.widths.copy(),
            density=density,
            density_std=density_std,
            mean_mass=mean_mass,
            mean_mass_std=mean_mass_std,
            mean_age=mean_age,
            mean_age_std=mean_age_std,
            counts=self._counts.copy(),
            per_magnitude=self.per_magnitude,
            metadata=dict(metadata or {}),
        )


__all__ = [
    "COLUMNS",
    "EMPTY_BIN_UNCERTAINTY_FACTOR",
    "MagnitudeBins",
    "ModelWdlf",
    "WdlfBin",
    "WdlfBinner",
]
