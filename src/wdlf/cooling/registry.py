"""Registry mapping cooling-model set tags to constructors."""

from __future__ import annotations

from collections.abc import Callable

from wdlf.cooling.model_set import WdCoolingModelSet
from wdlf.cooling.synthetic import mestel_cooling_set
from wdlf.errors import ConfigurationError

COOLING_REGISTRY: dict[str, Callable[[], WdCoolingModelSet]] = {
    "mestel": mestel_cooling_set,
}


def available_cooling_models() -> list[str]:
    return sorted(COOLING_REGISTRY)


def get_cooling_model_set(name: str) -> WdCoolingModelSet:
    """Construct the cooling-model set registered under ``name``.

    Tabulated sets are loaded from files with ``wdlf.io.read_cooling_tracks``.
    """
    try:
        return COOLING_REGISTRY[name]()
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown cooling model set '{name}'. Available: {', '.join(available_cooling_models())}"
        ) from exc


__all__ = ["COOLING_REGISTRY", "available_cooling_models", "get_cooling_model_set"]
