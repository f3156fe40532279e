"""Synthetic white dwarf luminosity function toolkit.

The package chains stellar-population models (initial mass function, star
formation history, pre-white-dwarf lifetime, initial-final mass relation and
white dwarf cooling tracks) into a Monte Carlo engine that synthesises a white
dwarf luminosity function, and inverts an observed one back into a star
formation history.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
