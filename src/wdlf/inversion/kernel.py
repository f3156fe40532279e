"""Monte Carlo response of the observed magnitude bins to each lookback-time bin.

For every lookback-time bin the population is synthesised at unit star
formation rate inside that bin only, and binned into the observed magnitude
bins. Column k of the kernel is then the model density per unit SFR in bin k,
and the model for any piecewise-constant history is the kernel times the
vector of bin rates. Stars formed in a bin but still on the main sequence
are part of the unit-rate normalisation, which carries the correction for
stars too low in mass to have produced a white dwarf yet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from wdlf.errors import ConfigurationError
from wdlf.sfr.parametric import ConstantSfr
from wdlf.synthesis.binner import MagnitudeBins
from wdlf.synthesis.population import StellarPopulation
from wdlf.synthesis.solver import DEFAULT_CHUNK_SIZE, WdlfSolver

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ResponseKernel:
    """Model density per unit SFR for every (magnitude bin, time bin) pair.

    Attributes:
        time_edges: Lookback-time bin edges [yr], ``n_time + 1`` values.
        bins: Magnitude bins (rows).
        matrix: ``(n_mag, n_time)`` density per unit rate.
        variance: Monte Carlo variance of each matrix entry.
        counts: Synthetic stars behind each entry.
        wd_fraction: Fraction of each time bin's trials that became white dwarfs.
        trials_per_bin: Trials simulated per time bin.
    """

    time_edges: NDArray[np.float64]
    bins: MagnitudeBins
    matrix: NDArray[np.float64]
    variance: NDArray[np.float64]
    counts: NDArray[np.int64]
    wd_fraction: NDArray[np.float64]
    trials_per_bin: int

    @property
    def n_time_bins(self) -> int:
        return int(self.time_edges.size - 1)

    @property
    def constrained(self) -> NDArray[np.bool_]:
        """Time bins that put at least one star into an observed bin."""
        return self.counts.sum(axis=0) > 0

    @property
    def populated_rows(self) -> NDArray[np.bool_]:
        """Magnitude bins that received at least one star from any time bin."""
        return self.counts.sum(axis=1) > 0

    def predict(self, rates: ArrayLike) -> NDArray[np.float64]:
        return self.matrix @ np.asarray(rates, dtype=np.float64)


def lookback_time_edges(n_bins: int, t_max: float, t_min: float = 0.0) -> NDArray[np.float64]:
    if n_bins < 1 or not t_max > t_min:
        raise ConfigurationError(
            f"Need n_bins >= 1 and t_max > t_min, got {n_bins}, [{t_min}, {t_max}]"
        )
    return np.linspace(t_min, t_max, n_bins + 1)


def compute_response_kernel(
    population: StellarPopulation,
    time_edges: ArrayLike,
    bins: MagnitudeBins,
    trials_per_bin: int,
    *,
    seed: int | None = None,
    n_workers: int = 1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    per_magnitude: bool = True,
) -> ResponseKernel:
    """Simulate each lookback-time bin at unit rate through the full model chain."""
    edges = np.asarray(time_edges, dtype=np.float64)
    if edges.ndim != 1 or edges.size < 2 or np.any(np.diff(edges) <= 0.0):
        raise ConfigurationError("Lookback-time edges must be strictly increasing with at least two values")
    if trials_per_bin < 1:
        raise ConfigurationError(f"trials_per_bin must be positive, got {trials_per_bin}")

    n_time = edges.size - 1
    matrix = np.zeros((len(bins), n_time))
    variance = np.zeros((len(bins), n_time))
    counts = np.zeros((len(bins), n_time), dtype=np.int64)
    wd_fraction = np.zeros(n_time)
    child_seeds = np.random.SeedSequence(seed).spawn(n_time)

    for k in range(n_time):
        unit = ConstantSfr(1.0, t_min=edges[k], t_max=edges[k + 1])
        solver = WdlfSolver(
            population.with_sfr(unit),
            bins,
            per_magnitude=per_magnitude,
            chunk_size=chunk_size,
            n_workers=n_workers,
        )
        result = solver.synthesize(max_trials=trials_per_bin, seed=child_seeds[k])
        wdlf = result.wdlf
        counts[:, k] = wdlf.counts
        matrix[:, k] = wdlf.density
        variance[:, k] = np.where(wdlf.populated, wdlf.density_std**2, 0.0)
        wd_fraction[k] = result.n_white_dwarfs / result.n_trials
        logger.debug(
            "Kernel column %d [%.4g, %.4g] yr: %d stars binned, WD fraction %.4g",
            k,
            edges[k],
            edges[k + 1],
            result.n_binned,
            wd_fraction[k],
        )

    return ResponseKernel(
        time_edges=edges,
        bins=bins,
        matrix=matrix,
        variance=variance,
        counts=counts,
        wd_fraction=wd_fraction,
        trials_per_bin=int(trials_per_bin),
    )


__all__ = ["ResponseKernel", "compute_response_kernel", "lookback_time_edges"]
