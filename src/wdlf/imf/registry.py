"""Registry mapping IMF tags to constructors."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from wdlf.errors import ConfigurationError
from wdlf.imf.base import InitialMassFunction
from wdlf.imf.chabrier import Chabrier03Imf
from wdlf.imf.power_law import BrokenPowerLawImf, PowerLawImf

SALPETER_EXPONENT = -2.35
KROUPA_EXPONENT = -2.3


def _salpeter(**kwargs: Any) -> InitialMassFunction:
    return PowerLawImf(kwargs.pop("exponent", SALPETER_EXPONENT), **kwargs)


def _kroupa(**kwargs: Any) -> InitialMassFunction:
    return PowerLawImf(kwargs.pop("exponent", KROUPA_EXPONENT), **kwargs)


def _kroupa2001(**kwargs: Any) -> InitialMassFunction:
    return BrokenPowerLawImf(breaks=(0.08, 0.5), exponents=(-0.3, -1.3, -2.3), **kwargs)


def _power_law(**kwargs: Any) -> InitialMassFunction:
    return PowerLawImf(**kwargs)


IMF_REGISTRY: dict[str, Callable[..., InitialMassFunction]] = {
    "chabrier03": Chabrier03Imf,
    "kroupa": _kroupa,
    "kroupa2001": _kroupa2001,
    "power_law": _power_law,
    "salpeter": _salpeter,
}


def available_imfs() -> list[str]:
    return sorted(IMF_REGISTRY)


def get_imf(name: str, **kwargs: Any) -> InitialMassFunction:
    """Construct the IMF registered under ``name``.

    Keyword arguments are forwarded to the constructor (mass limits, and the
    exponent for the power-law variants).

    Raises:
        ConfigurationError: If the tag is unknown or the arguments do not fit.
    """
    try:
        factory = IMF_REGISTRY[name]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown IMF '{name}'. Available: {', '.join(available_imfs())}"
        ) from exc
    try:
        return factory(**kwargs)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid arguments for IMF '{name}': {exc}") from exc


__all__ = ["IMF_REGISTRY", "available_imfs", "get_imf"]
