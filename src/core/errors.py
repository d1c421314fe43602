"""Error taxonomy for schema inference, decoding, and store ingestion."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum


class ErrorKind(StrEnum):
    """Categorize pipeline errors by stage."""

    SCHEMA_CONFLICT = "schema_conflict"
    CODEC = "codec"
    DECODE = "decode"
    SCHEMA_MISMATCH = "schema_mismatch"
    STORE_UNAVAILABLE = "store_unavailable"
    CANCELLED = "cancelled"


class ArrowDuckError(Exception):
    """Base exception for pipeline failures."""

    kind: ErrorKind = ErrorKind.STORE_UNAVAILABLE

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SchemaConflict(ArrowDuckError, ValueError):
    """Raised when a field type cannot be reconciled during unification."""

    kind = ErrorKind.SCHEMA_CONFLICT

    def __init__(self, path: str, existing: str, incoming: str) -> None:
        self.path = path
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Field {path!r} has conflicting types: {existing} vs {incoming}."
        )


class CodecError(ArrowDuckError, ValueError):
    """Raised when a persisted schema payload cannot be restored."""

    kind = ErrorKind.CODEC


class DecodeError(ArrowDuckError, ValueError):
    """Raised when a record does not conform to the active schema."""

    kind = ErrorKind.DECODE

    def __init__(self, ordinal: int, reason: str) -> None:
        self.ordinal = ordinal
        self.reason = reason
        super().__init__(f"Record {ordinal} does not match the schema: {reason}")


class SchemaMismatch(ArrowDuckError, ValueError):
    """Raised when batch columns disagree with the stored relation."""

    kind = ErrorKind.SCHEMA_MISMATCH

    def __init__(
        self,
        relation: str,
        *,
        unexpected: Sequence[str] = (),
        missing: Sequence[str] = (),
        detail: str | None = None,
    ) -> None:
        self.relation = relation
        self.unexpected = tuple(unexpected)
        self.missing = tuple(missing)
        parts: list[str] = []
        if self.unexpected:
            parts.append(f"columns not in relation: {', '.join(self.unexpected)}")
        if self.missing:
            parts.append(f"columns missing from batch: {', '.join(self.missing)}")
        if detail:
            parts.append(detail)
        summary = "; ".join(parts) or "column mismatch"
        super().__init__(f"Batch does not match relation {relation!r}: {summary}")


class StoreUnavailable(ArrowDuckError, RuntimeError):
    """Raised when the store cannot be opened, bootstrapped, or leased."""

    kind = ErrorKind.STORE_UNAVAILABLE


class IngestCancelled(StoreUnavailable):
    """Raised when an ingest call is interrupted by its deadline."""

    kind = ErrorKind.CANCELLED


__all__ = [
    "ArrowDuckError",
    "CodecError",
    "DecodeError",
    "ErrorKind",
    "IngestCancelled",
    "SchemaConflict",
    "SchemaMismatch",
    "StoreUnavailable",
]
