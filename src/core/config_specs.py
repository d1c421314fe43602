"""Typed configuration models for arrowduck."""

from __future__ import annotations

import msgspec

from core_types import (
    AppendMode,
    DecodeErrorPolicy,
    IdentifierStr,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
)
from serde_msgspec import StructBaseStrict

DEFAULT_RELATION = "records"
DEFAULT_DATABASE = "arrowduck.db"
DEFAULT_SAMPLE_SIZE = 1000
DEFAULT_ROWS_PER_BATCH = 1024


class UnifyConfigSpec(StructBaseStrict, frozen=True):
    """Schema inference switches."""

    coerce_types: bool = False
    infer_time_units: bool = False


class DecodeConfigSpec(StructBaseStrict, frozen=True):
    """Batch decoding configuration values."""

    rows_per_batch: PositiveInt = DEFAULT_ROWS_PER_BATCH
    on_error: DecodeErrorPolicy = "raise"


class PoolConfigSpec(StructBaseStrict, frozen=True):
    """DuckDB connection pool configuration values."""

    max_open: PositiveInt = 10
    max_idle: NonNegativeInt = 10
    extensions: tuple[str, ...] = ("json", "parquet")
    threads: PositiveInt | None = None


class SinkConfigSpec(StructBaseStrict, frozen=True):
    """Ingestion sink configuration values."""

    schema_name: IdentifierStr = "main"
    append_mode: AppendMode = "subset"
    workers: PositiveInt = 1
    timeout_s: PositiveFloat | None = None


class RootConfigSpec(StructBaseStrict, frozen=True):
    """Root configuration payload (``arrowduck.toml`` or ``[tool.arrowduck]``)."""

    database: str = DEFAULT_DATABASE
    relation: IdentifierStr = DEFAULT_RELATION
    sample_size: PositiveInt = DEFAULT_SAMPLE_SIZE
    unify: UnifyConfigSpec = msgspec.field(default_factory=UnifyConfigSpec)
    decode: DecodeConfigSpec = msgspec.field(default_factory=DecodeConfigSpec)
    pool: PoolConfigSpec = msgspec.field(default_factory=PoolConfigSpec)
    sink: SinkConfigSpec = msgspec.field(default_factory=SinkConfigSpec)


__all__ = [
    "DEFAULT_DATABASE",
    "DEFAULT_RELATION",
    "DEFAULT_ROWS_PER_BATCH",
    "DEFAULT_SAMPLE_SIZE",
    "DecodeConfigSpec",
    "PoolConfigSpec",
    "RootConfigSpec",
    "SinkConfigSpec",
    "UnifyConfigSpec",
]
