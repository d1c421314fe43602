"""Concurrent first-write checks against a DuckDB database file."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pyarrow as pa
import pytest

from duck_store import (
    ConnectionPool,
    IngestAction,
    IngestionSink,
    IngestResult,
    PoolOptions,
    relation_row_count,
)
from ingest_pipeline import infer_schema, ingest_stream, iter_records
from schema_unify import FieldDescriptor, FieldKind, UnifiedSchema, to_arrow_schema

type Renderer = Callable[[Sequence[Mapping[str, object]]], list[bytes]]

WRITERS = 8
ROWS_PER_WRITER = 50
STREAM_RECORDS = 1_000
STREAM_ROWS_PER_BATCH = 100
STREAM_WORKERS = 4

EVENT_SCHEMA = UnifiedSchema(
    fields=(
        FieldDescriptor(name="writer", kind=FieldKind.INTEGER, nullable=False),
        FieldDescriptor(name="seq", kind=FieldKind.INTEGER, nullable=False),
    )
)


def _writer_batch(writer: int) -> pa.RecordBatch:
    return pa.RecordBatch.from_pylist(
        [{"writer": writer, "seq": seq} for seq in range(ROWS_PER_WRITER)],
        schema=to_arrow_schema(EVENT_SCHEMA),
    )


@pytest.mark.integration
def test_concurrent_first_writers_create_once(file_pool: ConnectionPool) -> None:
    """Ensure simultaneous first writers create once and append the rest."""
    sink = IngestionSink(file_pool, "events")
    start = threading.Barrier(WRITERS)

    def _ingest(writer: int) -> IngestResult:
        batch = _writer_batch(writer)
        start.wait(timeout=10)
        return sink.ingest(EVENT_SCHEMA, batch)

    with ThreadPoolExecutor(max_workers=WRITERS) as executor:
        results = list(executor.map(_ingest, range(WRITERS)))

    creates = [result for result in results if result.action is IngestAction.CREATE]
    assert len(creates) == 1
    assert sum(result.rows for result in results) == WRITERS * ROWS_PER_WRITER
    with file_pool.connection() as conn:
        assert relation_row_count(conn, "events") == WRITERS * ROWS_PER_WRITER
        distinct = conn.execute("SELECT count(DISTINCT writer) FROM events").fetchone()
    assert distinct == (WRITERS,)


@pytest.mark.integration
def test_parallel_stream_ingest_keeps_every_record(
    file_pool: ConnectionPool,
    ndjson: Renderer,
) -> None:
    """Ensure concurrent batch writes neither lose nor duplicate records."""
    records = [{"id": index, "label": f"r{index}"} for index in range(STREAM_RECORDS)]
    lines = ndjson(records)
    schema = infer_schema(iter_records(lines))
    sink = IngestionSink(file_pool, "stream")
    summary = ingest_stream(
        lines,
        schema,
        sink,
        rows_per_batch=STREAM_ROWS_PER_BATCH,
        workers=STREAM_WORKERS,
    )
    assert summary.records == STREAM_RECORDS
    assert summary.created == 1
    assert summary.appended == STREAM_RECORDS // STREAM_ROWS_PER_BATCH - 1
    with file_pool.connection() as conn:
        row = conn.execute("SELECT count(*), count(DISTINCT id) FROM stream").fetchone()
    assert row == (STREAM_RECORDS, STREAM_RECORDS)


@pytest.mark.integration
def test_reopened_database_appends_to_existing_relation(tmp_path: Path) -> None:
    """Ensure a relation created by one pool is appended to by the next."""
    database = tmp_path / "store.duckdb"
    options = PoolOptions(extensions=())
    with ConnectionPool(database, options=options) as pool:
        first = IngestionSink(pool, "events").ingest(EVENT_SCHEMA, _writer_batch(0))
    with ConnectionPool(database, options=options) as pool:
        second = IngestionSink(pool, "events").ingest(EVENT_SCHEMA, _writer_batch(1))
        with pool.connection() as conn:
            count = relation_row_count(conn, "events")
    assert first.action is IngestAction.CREATE
    assert second.action is IngestAction.APPEND
    assert count == 2 * ROWS_PER_WRITER
