"""Recover a piecewise star formation history from an observed WDLF.

The model density in magnitude bin j is sum_k K[j, k] r_k, with K the
Monte Carlo response kernel and r_k the rate in lookback-time bin k. Faint
bins are reached only by the oldest populations, so the solve walks the time
bins from the oldest to the youngest: each bin's rate is the weighted
least-squares fit to the residual left once every other bin's current
contribution is removed, clamped at zero. The first sweep is exactly the
bin-by-bin residual solve against the starting guess; later sweeps refine
the estimates until the relative change in chi-square settles.

A time bin whose kernel column is empty has no white dwarfs in the observed
magnitude range at all and is reported as ``Unconstrained``, never as a
zero rate.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import numpy as np

from wdlf.errors import ConfigurationError
from wdlf.inversion.kernel import ResponseKernel, compute_response_kernel, lookback_time_edges
from wdlf.inversion.observed import ObservedWdlf
from wdlf.sfr.tabulated import TabulatedSfr
from wdlf.synthesis.population import StellarPopulation
from wdlf.synthesis.solver import DEFAULT_CHUNK_SIZE

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from wdlf.cooling.model_set import WdCoolingModelSet
    from wdlf.ifmr.base import InitialFinalMassRelation
    from wdlf.imf.base import InitialMassFunction
    from wdlf.lifetime.base import PreWdLifetime

logger = logging.getLogger(__name__)

DEFAULT_N_TIME_BINS = 50
DEFAULT_T_MAX = 14.5e9
DEFAULT_TRIALS_PER_BIN = 40_000
DEFAULT_INITIAL_RATE = 1.5e-12
DEFAULT_MIN_ITERATIONS = 5
DEFAULT_MAX_ITERATIONS = 200
DEFAULT_CHI2_THRESHOLD = 0.01


@dataclass(frozen=True, slots=True)
class SolvedRate:
    rate: float
    rate_std: float

    @property
    def constrained(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Unconstrained:
    """The data cannot tell how many stars formed in this bin."""

    reason: str

    @property
    def constrained(self) -> bool:
        return False


RateEstimate = Union[SolvedRate, Unconstrained]


@dataclass(frozen=True, slots=True)
class TimeBinEstimate:
    t_min: float
    t_max: float
    estimate: RateEstimate
    wd_fraction: float

    @property
    def centre(self) -> float:
        return 0.5 * (self.t_min + self.t_max)

    @property
    def width(self) -> float:
        return self.t_max - self.t_min

    @property
    def constrained(self) -> bool:
        return self.estimate.constrained


@dataclass(frozen=True, eq=False)
class InversionResult:
    """Recovered history plus fit diagnostics."""

    time_bins: tuple[TimeBinEstimate, ...]
    observed: ObservedWdlf
    fitted_density: NDArray[np.float64]
    chi2: float
    chi2_history: tuple[float, ...]
    n_iterations: int
    converged: bool
    kernel: ResponseKernel

    def unconstrained_bins(self) -> list[TimeBinEstimate]:
        return [b for b in self.time_bins if not b.constrained]

    def constrained_bins(self) -> list[TimeBinEstimate]:
        return [b for b in self.time_bins if b.constrained]

    def to_sfr(self) -> TabulatedSfr:
        """Tabulated history of the constrained bins only.

        Unconstrained bins become gaps; use ``time_bins`` to tell them apart
        from bins solved to zero.
        """
        solved = [b for b in self.time_bins if isinstance(b.estimate, SolvedRate)]
        if not solved:
            raise ConfigurationError("No lookback-time bin is constrained by the observations")
        return TabulatedSfr(
            [b.centre for b in solved],
            [b.width for b in solved],
            [b.estimate.rate for b in solved],  # type: ignore[union-attr]
            [b.estimate.rate_std for b in solved],  # type: ignore[union-attr]
        )

    def to_rows(self) -> list[tuple[float, float, float | None, float | None, str]]:
        """(centre, width, rate, rate_std, status) rows; rate is None when unconstrained."""
        rows: list[tuple[float, float, float | None, float | None, str]] = []
        for b in self.time_bins:
            if isinstance(b.estimate, SolvedRate):
                rows.append((b.centre, b.width, b.estimate.rate, b.estimate.rate_std, "solved"))
            else:
                rows.append((b.centre, b.width, None, None, "unconstrained"))
        return rows


@dataclass(frozen=True, eq=False)
class _SolveOutcome:
    rates: NDArray[np.float64]
    rate_std: NDArray[np.float64]
    solved: NDArray[np.bool_]
    fitted: NDArray[np.float64]
    chi2: float
    history: tuple[float, ...]
    converged: bool


def _weights(
    observed_var: NDArray[np.float64],
    kernel_var: NDArray[np.float64],
    rates: NDArray[np.float64],
    usable: NDArray[np.bool_],
) -> NDArray[np.float64]:
    total_var = observed_var + kernel_var @ (rates**2)
    ok = usable & (total_var > 0.0)
    return np.where(ok, 1.0 / np.where(ok, total_var, 1.0), 0.0)


def solve_sequential(
    matrix: NDArray[np.float64],
    kernel_variance: NDArray[np.float64],
    density: NDArray[np.float64],
    density_std: NDArray[np.float64],
    active: NDArray[np.bool_],
    *,
    initial_rate: float = 0.0,
    min_iterations: int = DEFAULT_MIN_ITERATIONS,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    chi2_threshold: float = DEFAULT_CHI2_THRESHOLD,
) -> _SolveOutcome:
    """Non-negative sweep solve of density = matrix @ rates.

    Columns are visited from the last (oldest) to the first (youngest);
    inactive columns keep a zero rate and are not solved. Active columns
    start at ``initial_rate``.
    """
    n_time = matrix.shape[1]
    rates = np.where(active, float(initial_rate), 0.0)
    fitted = matrix @ rates
    usable = matrix.sum(axis=1) > 0.0
    observed_var = density_std**2
    solved = np.zeros(n_time, dtype=bool)
    denominators = np.zeros(n_time)
    history: list[float] = []
    converged = False

    for iteration in range(1, max_iterations + 1):
        w = _weights(observed_var, kernel_variance, rates, usable)
        for k in range(n_time - 1, -1, -1):
            if not active[k]:
                continue
            column = matrix[:, k]
            residual = density - fitted + column * rates[k]
            den = float(np.sum(w * column**2))
            denominators[k] = den
            if den <= 0.0:
                fitted -= column * rates[k]
                rates[k] = 0.0
                solved[k] = False
                continue
            new_rate = max(float(np.sum(w * column * residual)) / den, 0.0)
            fitted += column * (new_rate - rates[k])
            rates[k] = new_rate
            solved[k] = True
        chi2 = float(np.sum(w * (density - fitted) ** 2))
        logger.debug("Inversion sweep %d: chi2 = %.6g", iteration, chi2)
        if history and iteration >= min_iterations:
            previous = history[-1]
            change = abs(previous - chi2)
            if chi2 == 0.0 or (previous > 0.0 and change / previous < chi2_threshold):
                history.append(chi2)
                converged = True
                break
        history.append(chi2)

    has_weight = denominators > 0.0
    rate_std = np.where(has_weight, 1.0 / np.sqrt(np.where(has_weight, denominators, 1.0)), math.inf)
    return _SolveOutcome(
        rates=rates,
        rate_std=rate_std,
        solved=solved,
        fitted=fitted,
        chi2=history[-1] if history else 0.0,
        history=tuple(history),
        converged=converged,
    )


class WdlfInverter:
    """Inverts observed luminosity functions for one population model.

    The population's own SFR is ignored; each lookback-time bin is simulated
    at unit rate instead.

    Args:
        population: IMF, IFMR, lifetime and cooling models with per-star
            distributions.
        time_edges: Lookback-time bin edges [yr]. Defaults to
            ``n_time_bins`` equal bins over [0, t_max].
        n_time_bins: Number of default bins.
        t_max: Oldest lookback time of the default bins [yr].
        trials_per_bin: Monte Carlo trials per lookback-time bin.
        initial_rate: Starting rate of every constrained bin before the
            first sweep.
        min_iterations: Sweeps always run before testing convergence.
        max_iterations: Sweep limit.
        chi2_threshold: Relative chi-square change that counts as converged.
        n_workers: Threads for the Monte Carlo kernel.
        chunk_size: Trials per Monte Carlo chunk.
    """

    def __init__(
        self,
        population: StellarPopulation,
        time_edges: ArrayLike | None = None,
        *,
        n_time_bins: int = DEFAULT_N_TIME_BINS,
        t_max: float = DEFAULT_T_MAX,
        trials_per_bin: int = DEFAULT_TRIALS_PER_BIN,
        initial_rate: float = DEFAULT_INITIAL_RATE,
        min_iterations: int = DEFAULT_MIN_ITERATIONS,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        chi2_threshold: float = DEFAULT_CHI2_THRESHOLD,
        n_workers: int = 1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if min_iterations < 1 or max_iterations < min_iterations:
            raise ConfigurationError(
                f"Need 1 <= min_iterations <= max_iterations, got {min_iterations}, {max_iterations}"
            )
        if not chi2_threshold > 0.0:
            raise ConfigurationError(f"chi2_threshold must be positive, got {chi2_threshold}")
        self.population = population
        self.time_edges = (
            lookback_time_edges(n_time_bins, t_max)
            if time_edges is None
            else np.asarray(time_edges, dtype=np.float64)
        )
        self.trials_per_bin = int(trials_per_bin)
        self.initial_rate = float(initial_rate)
        self.min_iterations = int(min_iterations)
        self.max_iterations = int(max_iterations)
        self.chi2_threshold = float(chi2_threshold)
        self.n_workers = int(n_workers)
        self.chunk_size = int(chunk_size)

    def response_kernel(self, observed: ObservedWdlf, *, seed: int | None = None) -> ResponseKernel:
        return compute_response_kernel(
            self.population,
            self.time_edges,
            observed.bins,
            self.trials_per_bin,
            seed=seed,
            n_workers=self.n_workers,
            chunk_size=self.chunk_size,
        )

    def invert(
        self,
        observed: ObservedWdlf,
        *,
        seed: int | None = None,
        kernel: ResponseKernel | None = None,
    ) -> InversionResult:
        """Recover the star formation rate in every lookback-time bin.

        Args:
            observed: Observed luminosity function.
            seed: Seed for the Monte Carlo kernel.
            kernel: Precomputed kernel for these observed bins (skips the
                Monte Carlo step).
        """
        if kernel is None:
            kernel = self.response_kernel(observed, seed=seed)
        elif kernel.matrix.shape[0] != len(observed):
            raise ConfigurationError("Kernel rows do not match the observed magnitude bins")

        for j in np.flatnonzero(~kernel.populated_rows):
            logger.warning(
                "No simulated stars in observed bin at M = %.3f; it does not constrain the fit",
                observed.centres[j],
            )

        active = kernel.constrained
        outcome = solve_sequential(
            kernel.matrix,
            kernel.variance,
            observed.density,
            observed.density_std,
            active,
            initial_rate=self.initial_rate,
            min_iterations=self.min_iterations,
            max_iterations=self.max_iterations,
            chi2_threshold=self.chi2_threshold,
        )

        time_bins = []
        edges = kernel.time_edges
        for k in range(kernel.n_time_bins):
            estimate: RateEstimate
            if not active[k]:
                estimate = Unconstrained("no white dwarfs from this bin reach the observed magnitude range")
            elif not outcome.solved[k]:
                estimate = Unconstrained("observed bins reached by this bin carry no weight")
            else:
                estimate = SolvedRate(float(outcome.rates[k]), float(outcome.rate_std[k]))
            time_bins.append(
                TimeBinEstimate(
                    t_min=float(edges[k]),
                    t_max=float(edges[k + 1]),
                    estimate=estimate,
                    wd_fraction=float(kernel.wd_fraction[k]),
                )
            )

        n_unconstrained = sum(1 for b in time_bins if not b.constrained)
        if not outcome.converged:
            logger.warning(
                "Inversion did not converge in %d sweeps (chi2 = %.6g)",
                len(outcome.history),
                outcome.chi2,
            )
        logger.info(
            "Inversion finished: chi2 = %.6g after %d sweeps, %d of %d time bins unconstrained",
            outcome.chi2,
            len(outcome.history),
            n_unconstrained,
            kernel.n_time_bins,
        )
        return InversionResult(
            time_bins=tuple(time_bins),
            observed=observed,
            fitted_density=outcome.fitted,
            chi2=outcome.chi2,
            chi2_history=outcome.history,
            n_iterations=len(outcome.history),
            converged=outcome.converged,
            kernel=kernel,
        )


def invert_wdlf(
    observed: ObservedWdlf,
    imf: InitialMassFunction,
    ifmr: InitialFinalMassRelation,
    lifetime: PreWdLifetime,
    cooling: WdCoolingModelSet,
    *,
    time_edges: ArrayLike | None = None,
    seed: int | None = None,
    trials_per_bin: int = DEFAULT_TRIALS_PER_BIN,
    **population_options,
) -> InversionResult:
    """One-call inversion from individual model components.

    ``population_options`` are forwarded to ``StellarPopulation``.
    """
    edges = lookback_time_edges(DEFAULT_N_TIME_BINS, DEFAULT_T_MAX) if time_edges is None else time_edges
    placeholder = TabulatedSfr.from_edges(np.asarray(edges, dtype=np.float64), np.ones(len(edges) - 1))
    population = StellarPopulation(
        imf=imf,
        sfr=placeholder,
        ifmr=ifmr,
        lifetime=lifetime,
        cooling=cooling,
        **population_options,
    )
    inverter = WdlfInverter(population, edges, trials_per_bin=trials_per_bin)
    return inverter.invert(observed, seed=seed)


__all__ = [
    "DEFAULT_CHI2_THRESHOLD",
    "DEFAULT_INITIAL_RATE",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_MIN_ITERATIONS",
    "DEFAULT_N_TIME_BINS",
    "DEFAULT_T_MAX",
    "DEFAULT_TRIALS_PER_BIN",
    "InversionResult",
    "RateEstimate",
    "SolvedRate",
    "TimeBinEstimate",
    "Unconstrained",
    "WdlfInverter",
    "invert_wdlf",
    "solve_sequential",
]
