"""Forward Monte Carlo synthesis of the white dwarf luminosity function.

Trials run in fixed-size chunks. Every chunk owns a child of one root
``SeedSequence`` and a private binner, so chunks are independent and can be
farmed out to a thread pool; partial binners merge by addition in chunk
order. Stopping is decided in chunk order too, which makes a run depend only
on (seed, chunk size) and not on the number of workers.

At the end every binned star is reweighted by N_real / N_trials, with N_real
the SFR integral, so densities are in units of the SFR integral.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from wdlf.cooling.model_set import WdCoolingModelSet
from wdlf.errors import ConfigurationError
from wdlf.ifmr.base import InitialFinalMassRelation
from wdlf.imf.base import InitialMassFunction
from wdlf.lifetime.base import PreWdLifetime
from wdlf.sfr.base import StarFormationHistory
from wdlf.synthesis.binner import MagnitudeBins, ModelWdlf, WdlfBinner
from wdlf.synthesis.population import StellarPopulation
from wdlf.synthesis.sampler import StarSampler
from wdlf.synthesis.selection import SurveySelection
from wdlf.synthesis.star import StarFate

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 20_000
# Trial cap applied when only a target sample size is given.
MAX_TRIALS_PER_TARGET_STAR = 1000


@dataclass(frozen=True, slots=True)
class SynthesisProgress:
    trials: int
    max_trials: int
    binned: int
    target_sample_size: int | None


ProgressCallback = Callable[[SynthesisProgress], None]


@dataclass(frozen=True, eq=False)
class SynthesisResult:
    """Completed synthesis with trial accounting.

    Attributes:
        wdlf: The model luminosity function.
        n_trials: Monte Carlo trials run.
        n_binned: White dwarfs that landed in a magnitude bin.
        fate_counts: Trials per outcome, keyed by ``StarFate`` value.
        n_extrapolated: Binned stars whose cooling-model query was extrapolated.
        normalisation: Weight applied to each star (N_real / N_trials).
        cancelled: True if the run stopped early on request.
    """

    wdlf: ModelWdlf
    n_trials: int
    n_binned: int
    fate_counts: dict[str, int]
    n_extrapolated: int
    normalisation: float
    cancelled: bool = False

    @property
    def n_white_dwarfs(self) -> int:
        return self.fate_counts.get(StarFate.WHITE_DWARF.value, 0)

    @property
    def n_discarded(self) -> int:
        return self.n_trials - self.n_white_dwarfs


@dataclass(eq=False)
class _ChunkResult:
    binner: WdlfBinner
    n_trials: int
    n_binned: int
    fates: Counter[StarFate]
    n_extrapolated: int


class WdlfSolver:
    """Runs the sampler until a sample size or trial budget is reached.

    Args:
        population: Models and per-star distributions.
        bins: Magnitude bins of the output.
        selection: Optional survey selection.
        per_magnitude: Report densities per magnitude rather than per bin.
        chunk_size: Trials per independent chunk.
        n_workers: Threads used to run chunks.
    """

    def __init__(
        self,
        population: StellarPopulation,
        bins: MagnitudeBins,
        *,
        selection: SurveySelection | None = None,
        per_magnitude: bool = True,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        n_workers: int = 1,
    ) -> None:
        if chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        if n_workers < 1:
            raise ConfigurationError(f"n_workers must be positive, got {n_workers}")
        self.population = population
        self.bins = bins
        self.selection = selection
        self.per_magnitude = per_magnitude
        self.chunk_size = int(chunk_size)
        self.n_workers = int(n_workers)

    def _run_chunk(self, size: int, seed: np.random.SeedSequence) -> _ChunkResult:
        sampler = StarSampler(self.population, np.random.default_rng(seed), self.selection)
        batch = sampler.draw_batch(size)
        binner = WdlfBinner(self.bins, self.per_magnitude)
        n_binned = binner.add_batch(batch)
        wd = batch.white_dwarfs
        in_bins = self.bins.locate(batch.magnitude[wd]) >= 0
        n_extrapolated = int(np.count_nonzero(batch.extrapolated[wd] & in_bins))
        return _ChunkResult(binner, size, n_binned, batch.fate_counts(), n_extrapolated)

    def synthesize(
        self,
        target_sample_size: int | None = None,
        *,
        max_trials: int | None = None,
        seed: int | np.random.SeedSequence | None = None,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> SynthesisResult:
        """Sample until ``target_sample_size`` binned stars or ``max_trials`` trials.

        Args:
            target_sample_size: Binned white dwarfs to collect.
            max_trials: Trial budget. Defaults to 1000 trials per target star
                when only a target is given.
            seed: Root seed or seed sequence; equal seeds give identical results.
            progress: Called after each wave of chunks.
            cancel: Checked between waves; when set, the run stops early and
                the partial result is returned with ``cancelled=True``.

        Raises:
            ConfigurationError: If neither a target nor a trial budget is set.
        """
        if target_sample_size is None and max_trials is None:
            raise ConfigurationError("Set a target sample size, a trial budget, or both")
        if target_sample_size is not None and target_sample_size < 1:
            raise ConfigurationError(f"target_sample_size must be positive, got {target_sample_size}")
        if max_trials is None:
            assert target_sample_size is not None
            max_trials = target_sample_size * MAX_TRIALS_PER_TARGET_STAR
        if max_trials < 1:
            raise ConfigurationError(f"max_trials must be positive, got {max_trials}")

        logger.info(
            "Synthesising WDLF: target=%s, max_trials=%d, workers=%d, seed=%s",
            target_sample_size,
            max_trials,
            self.n_workers,
            seed,
        )
        root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
        total = WdlfBinner(self.bins, self.per_magnitude)
        fates: Counter[StarFate] = Counter()
        trials = 0
        binned = 0
        n_extrapolated = 0
        cancelled = False
        done = False

        with ThreadPoolExecutor(max_workers=self.n_workers) as pool:
            while not done:
                sizes = []
                planned = trials
                for _ in range(self.n_workers):
                    size = min(self.chunk_size, max_trials - planned)
                    if size <= 0:
                        break
                    sizes.append(size)
                    planned += size
                if not sizes:
                    break
                seeds = root.spawn(len(sizes))
                for chunk in pool.map(self._run_chunk, sizes, seeds):
                    total.merge(chunk.binner)
                    trials += chunk.n_trials
                    binned += chunk.n_binned
                    fates.update(chunk.fates)
                    n_extrapolated += chunk.n_extrapolated
                    if trials >= max_trials or (
                        target_sample_size is not None and binned >= target_sample_size
                    ):
                        done = True
                        break
                logger.debug("Synthesis progress: %d/%d trials, %d binned", trials, max_trials, binned)
                if progress is not None:
                    progress(SynthesisProgress(trials, max_trials, binned, target_sample_size))
                if cancel is not None and cancel.is_set() and not done:
                    logger.info("Synthesis cancelled after %d trials", trials)
                    cancelled = True
                    done = True

        n_real, _ = self.population.sfr.integrate()
        normalisation = n_real / trials
        total.scale(normalisation)
        fate_counts = {fate.value: int(fates.get(fate, 0)) for fate in StarFate}
        if n_extrapolated:
            logger.warning(
                "%d of %d binned stars used extrapolated cooling models", n_extrapolated, binned
            )
        logger.info(
            "Synthesis finished: %d trials, %d white dwarfs, %d binned",
            trials,
            fate_counts[StarFate.WHITE_DWARF.value],
            binned,
        )
        metadata = {
            **self.population.describe(),
            "n_trials": str(trials),
            "n_binned": str(binned),
            "seed": str(root.entropy),
        }
        return SynthesisResult(
            wdlf=total.finalize(metadata),
            n_trials=trials,
            n_binned=binned,
            fate_counts=fate_counts,
            n_extrapolated=n_extrapolated,
            normalisation=normalisation,
            cancelled=cancelled,
        )


def synthesize_wdlf(
    imf: InitialMassFunction,
    sfr: StarFormationHistory,
    ifmr: InitialFinalMassRelation,
    lifetime: PreWdLifetime,
    cooling: WdCoolingModelSet,
    bins: MagnitudeBins,
    target_sample_size: int | None = None,
    *,
    max_trials: int | None = None,
    seed: int | None = None,
    selection: SurveySelection | None = None,
    n_workers: int = 1,
    **population_options,
) -> SynthesisResult:
    """One-call forward synthesis from individual model components.

    ``population_options`` are forwarded to ``StellarPopulation`` (filter,
    H fraction, metallicity and helium distributions, magnitude error).
    """
    population = StellarPopulation(
        imf=imf, sfr=sfr, ifmr=ifmr, lifetime=lifetime, cooling=cooling, **population_options
    )
    solver = WdlfSolver(population, bins, selection=selection, n_workers=n_workers)
    return solver.synthesize(target_sample_size, max_trials=max_trials, seed=seed)


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "MAX_TRIALS_PER_TARGET_STAR",
    "ProgressCallback",
    "SynthesisProgress",
    "SynthesisResult",
    "WdlfSolver",
    "synthesize_wdlf",
]
