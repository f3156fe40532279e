"""Survey selection-function geometry."""

from __future__ import annotations

from wdlf.survey.volume import (
    KM_S_PER_ARCSEC_YR_PC,
    DensityProfile,
    ExponentialDisk,
    ProperMotionSelection,
    SkyCell,
    SurveyVolume,
    UniformDensity,
    cone_survey_volume,
    differential_volume,
)

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
