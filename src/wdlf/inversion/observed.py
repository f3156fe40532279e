"""Observed white dwarf luminosity function."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from wdlf.errors import ModelDomainError, ObservedWdlfError
from wdlf.synthesis.binner import MagnitudeBins, ModelWdlf

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True, eq=False)
class ObservedWdlf:
    """Binned number density per magnitude with uncertainties.

    Raises:
        ObservedWdlfError: If the centres are not strictly increasing, bins
            overlap, or any density or uncertainty is negative or non-finite.
    """

    centres: NDArray[np.float64]
    widths: NDArray[np.float64]
    density: NDArray[np.float64]
    density_std: NDArray[np.float64]

    def __post_init__(self) -> None:
        arrays = [
            np.asarray(getattr(self, name), dtype=np.float64)
            for name in ("centres", "widths", "density", "density_std")
        ]
        c, w, d, s = arrays
        if c.ndim != 1 or c.size == 0:
            raise ObservedWdlfError("Observed WDLF needs at least one bin")
        if not (c.shape == w.shape == d.shape == s.shape):
            raise ObservedWdlfError("Observed WDLF columns differ in length")
        if not all(np.all(np.isfinite(a)) for a in arrays):
            raise ObservedWdlfError("Observed WDLF values must be finite")
        if np.any(d < 0.0) or np.any(s < 0.0):
            raise ObservedWdlfError("Observed densities and uncertainties must be non-negative")
        try:
            MagnitudeBins(c, w)
        except ModelDomainError as exc:
            raise ObservedWdlfError(str(exc)) from exc
        for name, value in zip(("centres", "widths", "density", "density_std"), arrays):
            object.__setattr__(self, name, value)

    @classmethod
    def from_rows(cls, rows: Sequence[tuple[float, float, float, float]]) -> ObservedWdlf:
        """Build from (centre, width, density, density_std) rows."""
        if not rows:
            raise ObservedWdlfError("Observed WDLF needs at least one bin")
        arr = np.asarray(rows, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[1] != 4:
            raise ObservedWdlfError(f"Expected rows of 4 values, got shape {arr.shape}")
        return cls(arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3])

    @classmethod
    def from_model(cls, wdlf: ModelWdlf) -> ObservedWdlf:
        """Treat a synthetic luminosity function as an observation."""
        return cls(wdlf.centres, wdlf.widths, wdlf.density, wdlf.density_std)

    def __len__(self) -> int:
        return int(self.centres.size)

    @property
    def bins(self) -> MagnitudeBins:
        return MagnitudeBins(self.centres, self.widths)


__all__ = ["ObservedWdlf"]
