"""Environment variable resolution for configuration overrides."""

from __future__ import annotations

import logging
import os

_LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "n", "off"})


def env_value(name: str) -> str | None:
    """Return stripped env var value, or None if empty/not set.

    Parameters
    ----------
    name
        Environment variable name.

    Returns
    -------
    str | None
        Stripped value or None.
    """
    raw = os.environ.get(name)
    if raw is None:
        return None
    stripped = raw.strip()
    return stripped if stripped else None


def env_bool(name: str) -> bool | None:
    """Parse environment variable as boolean.

    Parameters
    ----------
    name
        Environment variable name.

    Returns
    -------
    bool | None
        Parsed boolean, or None when unset.

    Raises
    ------
    ValueError
        Raised when the variable is set to an unrecognized value.
    """
    raw = env_value(name)
    if raw is None:
        return None
    value = raw.lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"Invalid boolean for {name}: {raw!r}."
    raise ValueError(msg)


def env_int(name: str) -> int | None:
    """Parse environment variable as integer.

    Parameters
    ----------
    name
        Environment variable name.

    Returns
    -------
    int | None
        Parsed integer, or None when unset.

    Raises
    ------
    ValueError
        Raised when the variable is not an integer.
    """
    raw = env_value(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        _LOGGER.warning("Invalid integer for %s: %r", name, raw)
        msg = f"Invalid integer for {name}: {raw!r}."
        raise ValueError(msg) from exc


__all__ = ["env_bool", "env_int", "env_value"]
