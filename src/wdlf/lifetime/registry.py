"""Registry mapping lifetime-model tags to constructors."""

from __future__ import annotations

from collections.abc import Callable

from wdlf.errors import ConfigurationError
from wdlf.lifetime.base import PreWdLifetime
from wdlf.lifetime.grids import hurley2000_grid
from wdlf.lifetime.hurley2000 import Hurley2000Lifetime

LIFETIME_REGISTRY: dict[str, Callable[[], PreWdLifetime]] = {
    "hurley2000": Hurley2000Lifetime,
    "hurley2000_grid": hurley2000_grid,
}


def available_lifetime_models() -> list[str]:
    return sorted(LIFETIME_REGISTRY)


def get_lifetime_model(name: str) -> PreWdLifetime:
    """Construct the lifetime model registered under ``name``.

    Published track grids are loaded from files with
    ``wdlf.io.read_lifetime_table``.
    """
    try:
        return LIFETIME_REGISTRY[name]()
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown lifetime model '{name}'. Available: {', '.join(available_lifetime_models())}"
        ) from exc


__all__ = ["LIFETIME_REGISTRY", "available_lifetime_models", "get_lifetime_model"]
