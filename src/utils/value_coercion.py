"""Value coercion utilities with tolerant and strict variants."""

from __future__ import annotations

import math

_TRUE_TEXT = frozenset({"true"})
_FALSE_TEXT = frozenset({"false"})


class CoercionError(ValueError):
    """Raised when strict coercion fails."""

    def __init__(self, value: object, target_type: str, reason: str | None = None) -> None:
        self.value = value
        self.target_type = target_type
        message = f"Cannot coerce {type(value).__name__} to {target_type}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


def coerce_int(value: object) -> int | None:
    """Coerce an integer or integer text to int.

    Floats and booleans are not integers here, so ``"1.0"`` and ``True`` both
    return ``None``.

    Returns
    -------
    int | None
        Coerced integer or None if conversion fails.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            try:
                return int(stripped)
            except ValueError:
                return None
    return None


def coerce_float(value: object) -> float | None:
    """Coerce a number or finite numeric text to float.

    Returns
    -------
    float | None
        Coerced float or None if conversion fails.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            try:
                result = float(stripped)
            except ValueError:
                return None
            return result if math.isfinite(result) else None
    return None


def coerce_bool(value: object) -> bool | None:
    """Coerce a bool or the literal text ``true``/``false`` to bool.

    Returns
    -------
    bool | None
        Coerced bool or None if conversion fails.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in _TRUE_TEXT:
            return True
        if lower in _FALSE_TEXT:
            return False
    return None


def coerce_int_strict(value: object) -> int:
    """Coerce value to int, raising on failure.

    Returns
    -------
    int
        Coerced integer.

    Raises
    ------
    CoercionError
        Raised when the value cannot be coerced.
    """
    result = coerce_int(value)
    if result is None:
        raise CoercionError(value, "int")
    return result


def coerce_float_strict(value: object) -> float:
    """Coerce value to float, raising on failure.

    Returns
    -------
    float
        Coerced float.

    Raises
    ------
    CoercionError
        Raised when the value cannot be coerced.
    """
    result = coerce_float(value)
    if result is None:
        raise CoercionError(value, "float")
    return result


def coerce_bool_strict(value: object) -> bool:
    """Coerce value to bool, raising on failure.

    Returns
    -------
    bool
        Coerced bool.

    Raises
    ------
    CoercionError
        Raised when the value cannot be coerced.
    """
    result = coerce_bool(value)
    if result is None:
        raise CoercionError(value, "bool")
    return result


__all__ = [
    "CoercionError",
    "coerce_bool",
    "coerce_bool_strict",
    "coerce_float",
    "coerce_float_strict",
    "coerce_int",
    "coerce_int_strict",
]
