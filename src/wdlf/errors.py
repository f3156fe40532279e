"""Error taxonomy for wdlf.

Configuration and domain errors fail fast with the exception classes below.
Expected Monte Carlo outcomes (discarded stars, extrapolated model queries,
unconstrained inversion bins) are never raised; they are counted or returned
as result variants by the code that produces them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    MODEL_DOMAIN = "MODEL_DOMAIN"
    UNAVAILABLE_MODEL = "UNAVAILABLE_MODEL"
    INVALID_DATA = "INVALID_DATA"
    INVALID_CONFIG = "INVALID_CONFIG"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ErrorType
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


def make_error(error_type: ErrorType, message: str, **context: Any) -> ErrorEnvelope:
    return ErrorEnvelope(type=error_type, message=message, context=dict(context))


class ModelDomainError(ValueError):
    """Raised when a model is queried outside its valid domain."""


class UnavailableCoolingModelError(ValueError):
    """Raised when a (filter, atmosphere) combination has no loaded cooling grid."""

    def __init__(self, filter_name: str, atmosphere: str, available: list[str]) -> None:
        self.filter_name = filter_name
        self.atmosphere = atmosphere
        self.available = available
        super().__init__(
            f"No cooling grid for filter '{filter_name}' with {atmosphere} atmosphere. "
            f"Available: {', '.join(available) or 'none'}"
        )


class EmptyModelGridError(ValueError):
    """Raised when a model grid or table is built with no tracks."""


class ObservedWdlfError(ValueError):
    """Raised when an observed luminosity function is malformed.

    Attributes:
        line_number: 1-based line in the source text, when parsed from text.
    """

    def __init__(self, message: str, *, line_number: int | None = None) -> None:
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class TableParseError(ValueError):
    """Raised when a model table file cannot be parsed."""


class ConfigurationError(ValueError):
    """Raised when a run configuration is inconsistent."""


def error_type_for(exc: BaseException) -> ErrorType:
    """Map an exception instance to its ErrorType."""
    if isinstance(exc, ModelDomainError):
        return ErrorType.MODEL_DOMAIN
    if isinstance(exc, (UnavailableCoolingModelError, EmptyModelGridError)):
        return ErrorType.UNAVAILABLE_MODEL
    if isinstance(exc, (ObservedWdlfError, TableParseError)):
        return ErrorType.INVALID_DATA
    if isinstance(exc, ConfigurationError):
        return ErrorType.INVALID_CONFIG
    return ErrorType.INTERNAL_ERROR


__all__ = [
    "ConfigurationError",
    "EmptyModelGridError",
    "ErrorEnvelope",
    "ErrorType",
    "ModelDomainError",
    "ObservedWdlfError",
    "TableParseError",
    "UnavailableCoolingModelError",
    "error_type_for",
    "make_error",
]
