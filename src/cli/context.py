"""Run context for CLI command injection."""

from __future__ import annotations

from dataclasses import dataclass

from core.config_specs import RootConfigSpec


@dataclass(frozen=True)
class RunContext:
    """Injected run context for CLI commands.

    Parameters
    ----------
    log_level
        Logging level applied to the invocation.
    config
        Effective configuration (file values plus environment overrides).
    config_location
        Explicit config path, when one was given.
    """

    log_level: str
    config: RootConfigSpec
    config_location: str | None = None


__all__ = ["RunContext"]
