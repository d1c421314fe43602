"""DuckDB connection pooling and idempotent Arrow ingestion."""

from duck_store.catalog import relation_columns, relation_exists, relation_row_count
from duck_store.pool import ConnectionPool, PoolOptions
from duck_store.sink import IngestAction, IngestionSink, IngestResult, SinkOptions

__all__ = [
    "ConnectionPool",
    "IngestAction",
    "IngestResult",
    "IngestionSink",
    "PoolOptions",
    "SinkOptions",
    "relation_columns",
    "relation_exists",
    "relation_row_count",
]
