"""Tests for idempotent create-or-append ingestion."""

from __future__ import annotations

import time
from collections.abc import Mapping

import pyarrow as pa
import pytest

from core.errors import IngestCancelled, SchemaMismatch
from duck_store import sink as sink_module
from duck_store import (
    ConnectionPool,
    IngestAction,
    IngestionSink,
    SinkOptions,
    relation_columns,
    relation_exists,
    relation_row_count,
)
from duck_store.catalog import create_table_as_sql, insert_by_name_sql, view_exists
from schema_unify import FieldDescriptor, FieldKind, UnifiedSchema, to_arrow_schema

BATCH_ROWS = 3
SLOW_STATEMENT_TIMEOUT = 0.3
CANCEL_GRACE_S = 30.0
SLOW_RETRY_DELAY_S = 30.0
RETRY_TIMEOUT_S = 2.0
SLOW_CREATE_SQL = (
    "CREATE TABLE slow AS "
    "SELECT sum(a.range * b.range) AS total FROM range(100000000) a, range(100000000) b"
)

EVENT_SCHEMA = UnifiedSchema(
    fields=(
        FieldDescriptor(name="id", kind=FieldKind.INTEGER, nullable=False),
        FieldDescriptor(name="name", kind=FieldKind.STRING),
    )
)
ID_ONLY_SCHEMA = UnifiedSchema(fields=EVENT_SCHEMA.fields[:1])


def _batch(schema: UnifiedSchema, rows: list[dict[str, object]]) -> pa.RecordBatch:
    return pa.RecordBatch.from_pylist(rows, schema=to_arrow_schema(schema))


def _event_batch() -> pa.RecordBatch:
    return _batch(
        EVENT_SCHEMA,
        [{"id": index, "name": f"n{index}"} for index in range(BATCH_ROWS)],
    )


def _row_count(pool: ConnectionPool, relation: str) -> int:
    with pool.connection() as conn:
        return relation_row_count(conn, relation)


def test_first_ingest_creates_then_appends(memory_pool: ConnectionPool) -> None:
    """Ensure the same batch ingested twice creates once and doubles the rows."""
    sink = IngestionSink(memory_pool, "events")
    first = sink.ingest(EVENT_SCHEMA, _event_batch())
    second = sink.ingest(EVENT_SCHEMA, _event_batch())
    assert first.action is IngestAction.CREATE
    assert second.action is IngestAction.APPEND
    assert first.rows == second.rows == BATCH_ROWS
    assert _row_count(memory_pool, "events") == 2 * BATCH_ROWS


def test_created_relation_matches_batch_columns(memory_pool: ConnectionPool) -> None:
    """Ensure the created relation takes its columns from the batch."""
    IngestionSink(memory_pool, "events").ingest(EVENT_SCHEMA, _event_batch())
    with memory_pool.connection() as conn:
        assert relation_exists(conn, "events")
        assert relation_columns(conn, "events") == ("id", "name")


def test_registered_views_do_not_leak(memory_pool: ConnectionPool) -> None:
    """Ensure the temporary Arrow view is gone after ingest."""
    IngestionSink(memory_pool, "events").ingest(EVENT_SCHEMA, _event_batch())
    with memory_pool.connection() as conn:
        rows = conn.execute(
            "SELECT view_name FROM duckdb_views() WHERE view_name LIKE '__arrowduck_batch_%'"
        ).fetchall()
    assert rows == []


def test_table_and_batch_sequence_inputs(memory_pool: ConnectionPool) -> None:
    """Ensure tables and batch sequences are accepted."""
    sink = IngestionSink(memory_pool, "events")
    sink.ingest(EVENT_SCHEMA, pa.Table.from_batches([_event_batch()]))
    sink.ingest(EVENT_SCHEMA, [_event_batch(), _event_batch()])
    assert _row_count(memory_pool, "events") == 3 * BATCH_ROWS


def test_subset_append_fills_missing_columns(memory_pool: ConnectionPool) -> None:
    """Ensure a batch without some stored columns appends with NULLs."""
    sink = IngestionSink(memory_pool, "events")
    sink.ingest(EVENT_SCHEMA, _event_batch())
    result = sink.ingest(ID_ONLY_SCHEMA, _batch(ID_ONLY_SCHEMA, [{"id": 99}]))
    assert result.action is IngestAction.APPEND
    with memory_pool.connection() as conn:
        row = conn.execute("SELECT name FROM events WHERE id = 99").fetchone()
    assert row == (None,)


def test_strict_append_requires_every_column(memory_pool: ConnectionPool) -> None:
    """Ensure strict mode rejects batches missing stored columns."""
    sink = IngestionSink(memory_pool, "events", options=SinkOptions(append_mode="strict"))
    sink.ingest(EVENT_SCHEMA, _event_batch())
    with pytest.raises(SchemaMismatch) as excinfo:
        sink.ingest(ID_ONLY_SCHEMA, _batch(ID_ONLY_SCHEMA, [{"id": 99}]))
    assert excinfo.value.missing == ("name",)
    assert _row_count(memory_pool, "events") == BATCH_ROWS


def test_unknown_columns_are_rejected(memory_pool: ConnectionPool) -> None:
    """Ensure columns the relation lacks raise SchemaMismatch."""
    sink = IngestionSink(memory_pool, "events")
    sink.ingest(ID_ONLY_SCHEMA, _batch(ID_ONLY_SCHEMA, [{"id": 1}]))
    with pytest.raises(SchemaMismatch) as excinfo:
        sink.ingest(EVENT_SCHEMA, _event_batch())
    assert excinfo.value.unexpected == ("name",)
    assert _row_count(memory_pool, "events") == 1


def test_incompatible_column_types_are_rejected(memory_pool: ConnectionPool) -> None:
    """Ensure values the stored column type cannot hold raise SchemaMismatch."""
    sink = IngestionSink(memory_pool, "events")
    sink.ingest(ID_ONLY_SCHEMA, _batch(ID_ONLY_SCHEMA, [{"id": 1}]))
    text_ids = UnifiedSchema(fields=(FieldDescriptor(name="id", kind=FieldKind.STRING),))
    with pytest.raises(SchemaMismatch):
        sink.ingest(text_ids, _batch(text_ids, [{"id": "not-a-number"}]))


def test_batch_must_match_ingest_schema(memory_pool: ConnectionPool) -> None:
    """Ensure a batch whose columns differ from the given schema is refused."""
    sink = IngestionSink(memory_pool, "events")
    with pytest.raises(SchemaMismatch):
        sink.ingest(EVENT_SCHEMA, _batch(ID_ONLY_SCHEMA, [{"id": 1}]))


def test_expired_deadline_cancels_without_writing(memory_pool: ConnectionPool) -> None:
    """Ensure an already expired deadline cancels the ingest."""
    sink = IngestionSink(memory_pool, "events")
    with pytest.raises(IngestCancelled):
        sink.ingest(EVENT_SCHEMA, _event_batch(), timeout=0)
    with memory_pool.connection() as conn:
        assert relation_exists(conn, "events") is False


def test_ingest_hook_receives_event(memory_pool: ConnectionPool) -> None:
    """Ensure the ingest hook sees one event per call."""
    events: list[Mapping[str, object]] = []
    sink = IngestionSink(memory_pool, "events", ingest_hook=events.append)
    sink.ingest(EVENT_SCHEMA, _event_batch())
    sink.ingest(EVENT_SCHEMA, _event_batch())
    assert [event["action"] for event in events] == ["create", "append"]
    assert all(event["rows"] == BATCH_ROWS for event in events)
    assert all(event["race_lost"] is False for event in events)


def test_relation_name_is_required(memory_pool: ConnectionPool) -> None:
    """Ensure an empty relation name is rejected."""
    with pytest.raises(ValueError, match="relation"):
        IngestionSink(memory_pool, "")


def test_append_matches_columns_by_name(memory_pool: ConnectionPool) -> None:
    """Ensure a batch with reordered columns appends each value to its own column."""
    sink = IngestionSink(memory_pool, "events")
    sink.ingest(EVENT_SCHEMA, _event_batch())
    reordered = UnifiedSchema(fields=tuple(reversed(EVENT_SCHEMA.fields)))
    result = sink.ingest(reordered, _batch(reordered, [{"name": "seven", "id": 7}]))
    assert result.action is IngestAction.APPEND
    with memory_pool.connection() as conn:
        assert relation_columns(conn, "events") == ("id", "name")
        row = conn.execute("SELECT id, name FROM events WHERE id = 7").fetchone()
    assert row == (7, "seven")


def test_statement_deadline_interrupts_running_statement(
    memory_pool: ConnectionPool,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure a statement still running at the deadline is interrupted and discarded."""
    monkeypatch.setattr(
        sink_module,
        "create_table_as_sql",
        lambda relation, view, *, schema_name: SLOW_CREATE_SQL,
    )
    sink = IngestionSink(memory_pool, "events")
    started = time.monotonic()
    with pytest.raises(IngestCancelled, match="cancelled after"):
        sink.ingest(EVENT_SCHEMA, _event_batch(), timeout=SLOW_STATEMENT_TIMEOUT)
    assert time.monotonic() - started < CANCEL_GRACE_S
    assert memory_pool.leased_count == 0
    assert memory_pool.idle_count == 0
    with memory_pool.connection() as conn:
        assert relation_exists(conn, "events") is False
        assert relation_exists(conn, "slow") is False
    monkeypatch.undo()
    assert sink.ingest(EVENT_SCHEMA, _event_batch()).action is IngestAction.CREATE


def test_view_with_relation_name_is_a_schema_mismatch(memory_pool: ConnectionPool) -> None:
    """Ensure an existing view is not mistaken for a lost create race."""
    with memory_pool.connection() as conn:
        conn.execute("CREATE VIEW events AS SELECT 1 AS id")
        assert view_exists(conn, "events")
    sink = IngestionSink(memory_pool, "events")
    with pytest.raises(SchemaMismatch, match="view"):
        sink.ingest(EVENT_SCHEMA, _event_batch())


def test_race_retry_respects_the_deadline(
    memory_pool: ConnectionPool,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Ensure waiting for a concurrent create stops at the ingest deadline."""
    IngestionSink(memory_pool, "events").ingest(EVENT_SCHEMA, _event_batch())
    monkeypatch.setattr(sink_module, "relation_exists", lambda conn, relation, **_: False)
    options = SinkOptions(race_retry_attempts=3, race_retry_delay_s=SLOW_RETRY_DELAY_S)
    sink = IngestionSink(memory_pool, "events", options=options)
    started = time.monotonic()
    with pytest.raises(IngestCancelled, match="concurrent create"):
        sink.ingest(EVENT_SCHEMA, _event_batch(), timeout=RETRY_TIMEOUT_S)
    assert time.monotonic() - started < SLOW_RETRY_DELAY_S
    assert _row_count(memory_pool, "events") == BATCH_ROWS


def test_batch_duckdb_cannot_register_is_a_schema_mismatch(memory_pool: ConnectionPool) -> None:
    """Ensure Arrow types DuckDB refuses surface as SchemaMismatch."""
    arrow_schema = pa.schema([pa.field("meta", pa.struct([]))])
    batch = pa.RecordBatch.from_arrays([pa.nulls(1, type=pa.struct([]))], schema=arrow_schema)
    sink = IngestionSink(memory_pool, "events")
    with pytest.raises(SchemaMismatch, match="rejected"):
        sink.ingest(arrow_schema, batch)
    assert memory_pool.leased_count == 0


def test_statements_render_from_sqlglot_expressions() -> None:
    """Ensure CTAS and insert statements quote names and match columns by name."""
    create = create_table_as_sql("Events", "__view", schema_name="main")
    insert = insert_by_name_sql("Events", "__view", schema_name="main")
    assert create.startswith('CREATE TABLE "main"."Events" AS SELECT * FROM "__view"')
    assert insert.startswith('INSERT INTO "main"."Events" BY NAME SELECT * FROM "__view"')
