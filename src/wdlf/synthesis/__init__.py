"""Monte Carlo synthesis: sampler, binner and forward solver."""

from __future__ import annotations

from wdlf.synthesis.binner import (
    COLUMNS,
    EMPTY_BIN_UNCERTAINTY_FACTOR,
    MagnitudeBins,
    ModelWdlf,
    WdlfBin,
    WdlfBinner,
)
from wdlf.synthesis.population import StellarPopulation
from wdlf.synthesis.sampler import StarSampler
from wdlf.synthesis.selection import SurveySelection, SurveyType
from wdlf.synthesis.solver import (
    SynthesisProgress,
    SynthesisResult,
    WdlfSolver,
    synthesize_wdlf,
)
from wdlf.synthesis.star import Star, StarBatch, StarFate

__all__ = [
    "COLUMNS",
    "EMPTY_BIN_UNCERTAINTY_FACTOR",
    "MagnitudeBins",
    "ModelWdlf",
    "Star",
    "StarBatch",
    "StarFate",
    "StarSampler",
    "StellarPopulation",
    "SurveySelection",
    "SurveyType",
    "SynthesisProgress",
    "SynthesisResult",
    "WdlfBin",
    "WdlfBinner",
    "WdlfSolver",
    "synthesize_wdlf",
]
