"""Exit code taxonomy for the arrowduck CLI."""

from __future__ import annotations

from enum import IntEnum

from core.errors import ArrowDuckError, ErrorKind


class ExitCode(IntEnum):
    """Standard exit codes for CLI commands.

    Exit codes follow Unix conventions with domain-specific extensions:
    - 0: Success
    - 1-9: General errors (parse, validation, config)
    - 10-19: Schema and decoding errors
    - 20-29: Store errors
    """

    SUCCESS = 0
    GENERAL_ERROR = 1
    PARSE_ERROR = 2
    VALIDATION_ERROR = 3
    CONFIG_ERROR = 4

    SCHEMA_CONFLICT = 10
    CODEC_ERROR = 11
    DECODE_ERROR = 12
    SCHEMA_MISMATCH = 13

    STORE_UNAVAILABLE = 20
    CANCELLED = 21

    @classmethod
    def from_exception(cls, exc: BaseException) -> ExitCode:
        """Map an exception to an appropriate exit code.

        Parameters
        ----------
        exc
            Exception to classify.

        Returns
        -------
        ExitCode
            Exit code appropriate for the exception type.
        """
        if isinstance(exc, ArrowDuckError):
            return _KIND_CODES[exc.kind]
        if exc.__class__.__module__.startswith("cyclopts"):
            if exc.__class__.__name__ == "ValidationError":
                return cls.VALIDATION_ERROR
            return cls.PARSE_ERROR
        if isinstance(exc, (FileNotFoundError, FileExistsError, PermissionError)):
            return cls.CONFIG_ERROR
        if isinstance(exc, (ValueError, TypeError)):
            return cls.VALIDATION_ERROR
        return cls.GENERAL_ERROR


_KIND_CODES: dict[ErrorKind, ExitCode] = {
    ErrorKind.SCHEMA_CONFLICT: ExitCode.SCHEMA_CONFLICT,
    ErrorKind.CODEC: ExitCode.CODEC_ERROR,
    ErrorKind.DECODE: ExitCode.DECODE_ERROR,
    ErrorKind.SCHEMA_MISMATCH: ExitCode.SCHEMA_MISMATCH,
    ErrorKind.STORE_UNAVAILABLE: ExitCode.STORE_UNAVAILABLE,
    ErrorKind.CANCELLED: ExitCode.CANCELLED,
}


__all__ = ["ExitCode"]
