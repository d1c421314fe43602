"""Configuration loading for arrowduck.

Configuration is read from ``arrowduck.toml`` or the ``[tool.arrowduck]`` table
of ``pyproject.toml`` (searched from the working directory upward), or from an
explicit path. ``ARROWDUCK_*`` environment variables override file values.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import msgspec

from core.config_specs import RootConfigSpec
from core_types import JsonValue, PathLike, ensure_path
from duck_store import PoolOptions, SinkOptions
from schema_unify import UnifyOptions
from serde_msgspec import convert, to_builtins, validation_error_payload
from utils.env_utils import env_bool, env_int, env_value

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "arrowduck.toml"
TOOL_KEY = "arrowduck"

_ENV_DATABASE = "ARROWDUCK_DATABASE"
_ENV_RELATION = "ARROWDUCK_RELATION"
_ENV_ROWS_PER_BATCH = "ARROWDUCK_ROWS_PER_BATCH"
_ENV_COERCE_TYPES = "ARROWDUCK_COERCE_TYPES"
_ENV_INFER_TIME_UNITS = "ARROWDUCK_INFER_TIME_UNITS"
_ENV_MAX_OPEN = "ARROWDUCK_MAX_OPEN"
_ENV_MAX_IDLE = "ARROWDUCK_MAX_IDLE"


def load_config(path: PathLike | None = None) -> RootConfigSpec:
    """Load the effective configuration.

    Parameters
    ----------
    path
        Explicit config file. ``pyproject.toml`` files are read from their
        ``[tool.arrowduck]`` table.

    Returns
    -------
    RootConfigSpec
        Validated configuration with environment overrides applied.

    Raises
    ------
    FileNotFoundError
        Raised when an explicit path does not exist.
    ValueError
        Raised when the configuration fails validation.
    """
    if path is not None:
        resolved = ensure_path(path)
        if not resolved.exists():
            msg = f"Config file not found: {str(resolved)!r}."
            raise FileNotFoundError(msg)
        raw, location = _resolve_explicit_payload(resolved)
        config = decode_config(raw, location=location)
    else:
        config = _load_default_config()
    return apply_env_overrides(config)


def decode_config(raw: Mapping[str, JsonValue], *, location: str) -> RootConfigSpec:
    """Validate a raw configuration mapping.

    Returns
    -------
    RootConfigSpec
        Validated configuration.

    Raises
    ------
    ValueError
        Raised when the mapping does not match the configuration model.
    """
    try:
        config = convert(raw, target_type=RootConfigSpec, strict=True)
    except msgspec.ValidationError as exc:
        details = validation_error_payload(exc)
        msg = f"Config validation failed for {location}: {details}"
        raise ValueError(msg) from exc
    if config.pool.max_idle > config.pool.max_open:
        logger.warning(
            "pool.max_idle (%d) exceeds pool.max_open (%d) in %s",
            config.pool.max_idle,
            config.pool.max_open,
            location,
        )
    return config


def apply_env_overrides(config: RootConfigSpec) -> RootConfigSpec:
    """Return ``config`` with ``ARROWDUCK_*`` environment overrides applied.

    Returns
    -------
    RootConfigSpec
        Configuration with overrides applied.

    Raises
    ------
    ValueError
        Raised when an override value is malformed or out of range.
    """
    payload = cast("dict[str, Any]", to_builtins(config))
    overrides: list[str] = []

    def _set(section: str | None, key: str, value: JsonValue, env_name: str) -> None:
        target = payload if section is None else payload.setdefault(section, {})
        target[key] = value
        overrides.append(env_name)

    database = env_value(_ENV_DATABASE)
    if database is not None:
        _set(None, "database", database, _ENV_DATABASE)
    relation = env_value(_ENV_RELATION)
    if relation is not None:
        _set(None, "relation", relation, _ENV_RELATION)
    rows_per_batch = env_int(_ENV_ROWS_PER_BATCH)
    if rows_per_batch is not None:
        _set("decode", "rows_per_batch", rows_per_batch, _ENV_ROWS_PER_BATCH)
    coerce_types = env_bool(_ENV_COERCE_TYPES)
    if coerce_types is not None:
        _set("unify", "coerce_types", coerce_types, _ENV_COERCE_TYPES)
    infer_time_units = env_bool(_ENV_INFER_TIME_UNITS)
    if infer_time_units is not None:
        _set("unify", "infer_time_units", infer_time_units, _ENV_INFER_TIME_UNITS)
    max_open = env_int(_ENV_MAX_OPEN)
    if max_open is not None:
        _set("pool", "max_open", max_open, _ENV_MAX_OPEN)
    max_idle = env_int(_ENV_MAX_IDLE)
    if max_idle is not None:
        _set("pool", "max_idle", max_idle, _ENV_MAX_IDLE)
    if not overrides:
        return config
    logger.debug("Applied environment overrides: %s", ", ".join(overrides))
    return decode_config(payload, location="environment")


def unify_options(config: RootConfigSpec) -> UnifyOptions:
    """Build unifier options from configuration.

    Returns
    -------
    UnifyOptions
        Unifier switches.
    """
    return UnifyOptions(
        coerce_types=config.unify.coerce_types,
        infer_time_units=config.unify.infer_time_units,
    )


def pool_options(config: RootConfigSpec) -> PoolOptions:
    """Build connection pool options from configuration.

    Returns
    -------
    PoolOptions
        Pool limits and bootstrap settings.
    """
    return PoolOptions(
        max_open=config.pool.max_open,
        max_idle=config.pool.max_idle,
        extensions=config.pool.extensions,
        threads=config.pool.threads,
    )


def sink_options(config: RootConfigSpec) -> SinkOptions:
    """Build ingestion sink options from configuration.

    Returns
    -------
    SinkOptions
        Destination schema and append policy.
    """
    return SinkOptions(
        schema_name=config.sink.schema_name,
        append_mode=config.sink.append_mode,
    )


def _load_default_config() -> RootConfigSpec:
    config_path = _find_in_parents(CONFIG_FILENAME)
    if config_path is not None:
        return decode_config(_read_toml(config_path), location=str(config_path))
    pyproject_path = _find_in_parents("pyproject.toml")
    if pyproject_path is not None:
        nested = _extract_tool_config(_read_toml(pyproject_path))
        if nested is not None:
            return decode_config(nested, location=f"{pyproject_path}:tool.{TOOL_KEY}")
    return RootConfigSpec()


def _find_in_parents(filename: str) -> Path | None:
    path = Path.cwd()
    while True:
        candidate = path / filename
        if candidate.is_file():
            return candidate
        if path.parent == path:
            return None
        path = path.parent


def _read_toml(path: Path) -> dict[str, JsonValue]:
    try:
        payload = msgspec.toml.decode(path.read_bytes(), type=object, strict=True)
    except msgspec.DecodeError as exc:
        msg = f"Config file {path} is not valid TOML: {exc}"
        raise ValueError(msg) from exc
    if not isinstance(payload, dict):
        msg = f"Expected TOML mapping in {path}, got {type(payload).__name__}."
        raise TypeError(msg)
    return cast("dict[str, JsonValue]", payload)


def _resolve_explicit_payload(path: Path) -> tuple[Mapping[str, JsonValue], str]:
    raw = _read_toml(path)
    if path.name == "pyproject.toml":
        nested = _extract_tool_config(raw)
        if nested is None:
            msg = f"Config validation failed for {path}: missing [tool.{TOOL_KEY}] section."
            raise ValueError(msg)
        return nested, f"{path}:tool.{TOOL_KEY}"
    return raw, str(path)


def _extract_tool_config(raw: Mapping[str, JsonValue]) -> dict[str, JsonValue] | None:
    tool_section = raw.get("tool")
    if not isinstance(tool_section, dict):
        return None
    nested = tool_section.get(TOOL_KEY)
    if not isinstance(nested, dict):
        return None
    return cast("dict[str, JsonValue]", nested)


__all__ = [
    "CONFIG_FILENAME",
    "apply_env_overrides",
    "decode_config",
    "load_config",
    "pool_options",
    "sink_options",
    "unify_options",
]
