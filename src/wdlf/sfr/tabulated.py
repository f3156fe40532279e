"""Binned star formation history.

The tabulated form is both an input to forward synthesis and the output of
the inversion. Bins are sorted and non-overlapping; gaps between bins are
allowed and have zero rate.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from wdlf.errors import ModelDomainError
from wdlf.sfr.base import StarFormationHistory

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

_OVERLAP_TOLERANCE = 1e-9


class TabulatedSfr(StarFormationHistory):
    """Piecewise-constant star formation history.

    Args:
        centres: Bin centres [yr], strictly increasing.
        widths: Bin widths [yr], positive.
        rates: Rate in each bin, non-negative.
        errors: Per-bin rate uncertainty (defaults to zero).

    Raises:
        ModelDomainError: If the bins overlap, are unsorted, or carry
            negative rates or errors.
    """

    name = "tabulated"

    def __init__(
        self,
        centres: ArrayLike,
        widths: ArrayLike,
        rates: ArrayLike,
        errors: ArrayLike | None = None,
    ) -> None:
        c = np.asarray(centres, dtype=np.float64)
        w = np.asarray(widths, dtype=np.float64)
        r = np.asarray(rates, dtype=np.float64)
        e = np.zeros_like(r) if errors is None else np.asarray(errors, dtype=np.float64)
        if c.ndim != 1 or c.size == 0:
            raise ModelDomainError("Tabulated SFR needs at least one bin")
        if not (c.shape == w.shape == r.shape == e.shape):
            raise ModelDomainError(
                f"Tabulated SFR arrays differ in length: {c.size}, {w.size}, {r.size}, {e.size}"
            )
        if not (np.all(np.isfinite(c)) and np.all(np.isfinite(w)) and np.all(np.isfinite(r))):
            raise ModelDomainError("Tabulated SFR values must be finite")
        if np.any(w <= 0.0):
            raise ModelDomainError("Tabulated SFR bin widths must be positive")
        if np.any(np.diff(c) <= 0.0):
            raise ModelDomainError("Tabulated SFR bin centres must be strictly increasing")
        lower = c - 0.5 * w
        upper = c + 0.5 * w
        if np.any(upper[:-1] - lower[1:] > _OVERLAP_TOLERANCE * np.maximum(w[:-1], w[1:])):
            raise ModelDomainError("Tabulated SFR bins overlap")
        if np.any(r < 0.0) or np.any(e < 0.0):
            raise ModelDomainError("Tabulated SFR rates and errors must be non-negative")

        super().__init__(max(float(lower[0]), 0.0), float(upper[-1]))
        self.centres = c
        self.widths = w
        self.rates = r
        self.errors = e
        self._lower = np.maximum(lower, 0.0)
        self._upper = upper
        areas = r * (self._upper - self._lower)
        self._cum = np.concatenate([[0.0], np.cumsum(areas)])

    @classmethod
    def from_edges(
        cls,
        edges: ArrayLike,
        rates: ArrayLike,
        errors: ArrayLike | None = None,
    ) -> TabulatedSfr:
        """Build contiguous bins from ``len(rates) + 1`` edges."""
        ed = np.asarray(edges, dtype=np.float64)
        if ed.ndim != 1 or ed.size < 2:
            raise ModelDomainError("Need at least two bin edges")
        return cls(0.5 * (ed[:-1] + ed[1:]), np.diff(ed), rates, errors)

    @classmethod
    def initial_guess(
        cls,
        n_bins: int,
        t_min: float,
        t_max: float,
        rate: float,
    ) -> TabulatedSfr:
        """Equal-width bins over [t_min, t_max] at a constant rate."""
        if n_bins < 1:
            raise ModelDomainError(f"n_bins must be positive, got {n_bins}")
        edges = np.linspace(t_min, t_max, n_bins + 1)
        return cls.from_edges(edges, np.full(n_bins, float(rate)))

    @property
    def n_bins(self) -> int:
        return int(self.centres.size)

    @property
    def lower_edges(self) -> NDArray[np.float64]:
        return self._lower.copy()

    @property
    def upper_edges(self) -> NDArray[np.float64]:
        return self._upper.copy()

    def with_bin(self, index: int, rate: float, error: float = 0.0) -> TabulatedSfr:
        """Return a copy with bin ``index`` set to (rate, error)."""
        rates = self.rates.copy()
        errors = self.errors.copy()
        rates[index] = rate
        errors[index] = error
        return TabulatedSfr(self.centres, self.widths, rates, errors)

    def _locate(self, t: NDArray[np.float64]) -> tuple[NDArray[np.intp], NDArray[np.bool_]]:
        idx = np.clip(np.searchsorted(self._lower, t, side="right") - 1, 0, self.n_bins - 1)
        inside = (t >= self._lower[idx]) & (t <= self._upper[idx])
        return idx, inside

    def _rate(self, t: NDArray[np.float64]) -> NDArray[np.float64]:
        idx, inside = self._locate(t)
        return np.where(inside, self.rates[idx], 0.0)

    def rate_error(self, t: ArrayLike) -> NDArray[np.float64]:
        ta = np.asarray(t, dtype=np.float64)
        idx, inside = self._locate(ta)
        return np.where(inside, self.errors[idx], 0.0)

    def _inverse_cumulative(self, u: NDArray[np.float64]) -> NDArray[np.float64]:
        target = np.asarray(u) * self._cum[-1]
        idx = np.clip(np.searchsorted(self._cum, target, side="right") - 1, 0, self.n_bins - 1)
        area = self._cum[idx + 1] - self._cum[idx]
        safe_area = np.where(area > 0.0, area, 1.0)
        frac = np.where(area > 0.0, (target - self._cum[idx]) / safe_area, 0.0)
        return self._lower[idx] + frac * (self._upper[idx] - self._lower[idx])

    def integrate(self) -> tuple[float, float]:
        spans = self._upper - self._lower
        total = float(np.sum(self.rates * spans))
        sigma = float(np.sqrt(np.sum((self.errors * spans) ** 2)))
        return total, sigma

    def max_rate(self) -> float:
        return float(self.rates.max())

    def to_table(self, n_steps: int = 100) -> list[tuple[float, float, float]]:
        del n_steps
        return [
            (float(t), float(r), float(e))
            for t, r, e in zip(self.centres, self.rates, self.errors)
        ]

    def rows(self) -> list[tuple[float, float, float, float]]:
        """(centre, width, rate, error) rows, one per bin."""
        return [
            (float(c), float(w), float(r), float(e))
            for c, w, r, e in zip(self.centres, self.widths, self.rates, self.errors)
        ]

    def describe(self) -> str:
        return f"tabulated, {self.n_bins} bins over [{self.t_min:.4g}, {self.t_max:.4g}] yr"


def tabulated_from_rows(rows: Sequence[tuple[float, float, float, float]]) -> TabulatedSfr:
    """Build a TabulatedSfr from (centre, width, rate, error) rows."""
    if not rows:
        raise ModelDomainError("Tabulated SFR needs at least one bin")
    arr = np.asarray(rows, dtype=np.float64)
    return TabulatedSfr(arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3])


__all__ = ["TabulatedSfr", "tabulated_from_rows"]
