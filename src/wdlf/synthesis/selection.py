"""Survey selection applied to synthetic white dwarfs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from wdlf.errors import ConfigurationError
from wdlf.survey.volume import SurveyVolume

if TYPE_CHECKING:
    from numpy.typing import NDArray


class SurveyType(str, Enum):
    VOLUME_LIMITED = "volume_limited"
    MAGNITUDE_LIMITED = "magnitude_limited"


@dataclass(frozen=True, eq=False)
class SurveySelection:
    """Selection function for synthetic stars.

    Volume-limited surveys keep every star at unit weight. Magnitude-limited
    surveys keep a star with probability V(d_max) / V_total, where d_max is
    the distance at which it reaches ``apparent_limit``, and give survivors
    weight V_total / V(d_max) (the 1/V_max estimator).
    """

    survey_type: SurveyType = SurveyType.VOLUME_LIMITED
    volume: SurveyVolume | None = None
    apparent_limit: float | None = None

    def __post_init__(self) -> None:
        if self.survey_type is SurveyType.MAGNITUDE_LIMITED and (
            self.volume is None or self.apparent_limit is None
        ):
            raise ConfigurationError(
                "Magnitude-limited selection needs a survey volume and an apparent magnitude limit"
            )

    def apply(
        self,
        magnitude: NDArray[np.float64],
        candidates: NDArray[np.bool_],
        u: NDArray[np.float64],
    ) -> tuple[NDArray[np.bool_], NDArray[np.float64]]:
        """Return (selected mask, weight) for the candidate stars.

        Args:
            magnitude: Absolute magnitudes (NaN for non-candidates).
            candidates: Stars eligible for selection.
            u: Uniform deviates, one per star.
        """
        weight = np.ones(magnitude.shape)
        if self.survey_type is SurveyType.VOLUME_LIMITED:
            return candidates.copy(), weight
        assert self.volume is not None and self.apparent_limit is not None
        prob = np.zeros(magnitude.shape)
        prob[candidates] = np.asarray(
            self.volume.detection_probability(magnitude[candidates], self.apparent_limit)
        )
        selected = candidates & (u < prob)
        weight[selected] = 1.0 / prob[selected]
        return selected, weight


__all__ = ["SurveySelection", "SurveyType"]
