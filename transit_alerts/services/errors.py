"""Exception hierarchy shared by the transit services."""

from __future__ import annotations

from typing import Any


class TransitEngineError(Exception):
    """Base class for every error raised by the transit engine."""


class ValidationError(TransitEngineError, ValueError):
    """Raised when caller-supplied input is malformed or out of range."""

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class CalculationError(TransitEngineError):
    """Raised when a scoring or analysis step cannot produce a result."""

    def __init__(self, message: str, body: str | None = None) -> None:
        super().__init__(message)
        self.body = body


class LifecycleError(TransitEngineError):
    """Raised when the orchestrator is used after it has been shut down."""


def require_finite(value: Any, field: str) -> float:
    """Coerce ``value`` to ``float`` or raise :class:`ValidationError`."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", field=field, value=value)
    as_float = float(value)
    if as_float != as_float or as_float in (float("inf"), float("-inf")):
        raise ValidationError(f"{field} must be finite", field=field, value=value)
    return as_float


__all__ = [
    "CalculationError",
    "LifecycleError",
    "TransitEngineError",
    "ValidationError",
    "require_finite",
]
