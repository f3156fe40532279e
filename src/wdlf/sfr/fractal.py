"""Random fractal star formation histories for testing the inversion."""

from __future__ import annotations

import math

import numpy as np

from wdlf.errors import ModelDomainError
from wdlf.sfr.tabulated import TabulatedSfr


def fractal_sfr(
    magnitude: int,
    hurst: float,
    std: float,
    mean_rate: float,
    t_min: float,
    t_max: float,
    rng: np.random.Generator,
    *,
    clamp: bool = True,
) -> TabulatedSfr:
    """Generate a random history by recursive midpoint displacement.

    Args:
        magnitude: The history has ``2**magnitude + 1`` equal-width bins.
        hurst: Hurst exponent in (0, 1); larger values give smoother histories.
        std: Displacement standard deviation at the first level, in rate units.
        mean_rate: Rate at both ends before displacement.
        t_min: Youngest lookback time [yr].
        t_max: Oldest lookback time [yr].
        rng: Random generator.
        clamp: Clamp negative rates to zero if True, otherwise shift the whole
            history up by its minimum.

    Returns:
        TabulatedSfr with zero per-bin errors.
    """
    if magnitude < 1:
        raise ModelDomainError(f"magnitude must be >= 1, got {magnitude}")
    if not 0.0 < hurst < 1.0:
        raise ModelDomainError(f"hurst must lie in (0, 1), got {hurst}")

    n_points = 2**magnitude + 1
    values = np.empty(n_points)
    values[0] = values[-1] = mean_rate
    step = n_points - 1
    level = 1
    while step > 1:
        half = step // 2
        scale = std * math.sqrt((1.0 - 2.0 ** (2.0 * hurst - 2.0)) / 2.0 ** (2.0 * level * hurst - 2.0))
        for start in range(0, n_points - 1, step):
            mid = start + half
            values[mid] = 0.5 * (values[start] + values[start + step]) + rng.normal(0.0, scale)
        step = half
        level += 1

    if clamp:
        values = np.maximum(values, 0.0)
    elif values.min() < 0.0:
        values = values - values.min()

    edges = np.linspace(t_min, t_max, n_points + 1)
    return TabulatedSfr.from_edges(edges, values)


__all__ = ["fractal_sfr"]
