"""Idempotent create-or-append ingestion of Arrow batches into DuckDB."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from enum import StrEnum
from uuid import uuid4

import duckdb
import pyarrow as pa

from core.errors import IngestCancelled, SchemaMismatch, StoreUnavailable
from core_types import AppendMode
from duck_store.catalog import (
    DEFAULT_SCHEMA,
    create_table_as_sql,
    insert_by_name_sql,
    relation_columns,
    relation_exists,
    view_exists,
)
from duck_store.pool import ConnectionPool
from schema_unify.arrow_types import to_arrow_schema
from schema_unify.descriptors import UnifiedSchema

logger = logging.getLogger(__name__)

type BatchLike = pa.RecordBatch | pa.Table | Sequence[pa.RecordBatch]
type IngestHook = Callable[[Mapping[str, object]], None]

_VIEW_PREFIX = "__arrowduck_batch_"
_APPEND_ERRORS = (
    duckdb.BinderException,
    duckdb.ConversionException,
    duckdb.TypeMismatchException,
)
_REJECTED_BATCH_ERRORS = (
    duckdb.InvalidInputException,
    duckdb.NotImplementedException,
)


class IngestAction(StrEnum):
    """Write path taken by an ingest call."""

    CREATE = "create"
    APPEND = "append"


@dataclass(frozen=True)
class SinkOptions:
    """Destination and append policy for an ingestion sink.

    ``append_mode="subset"`` lets a batch omit stored columns (they are filled
    with NULL); ``"strict"`` requires identical column sets. Both reject batch
    columns the relation does not have.
    """

    schema_name: str = DEFAULT_SCHEMA
    append_mode: AppendMode = "subset"
    race_retry_attempts: int = 20
    race_retry_delay_s: float = 0.05


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one ingest call."""

    relation: str
    action: IngestAction
    rows: int
    race_lost: bool = False


@dataclass(frozen=True)
class IngestEvent:
    """Ingest event payload for diagnostics."""

    relation: str
    action: str
    rows: int
    race_lost: bool
    elapsed_s: float


def _as_table(schema: pa.Schema, batch: BatchLike) -> pa.Table:
    if isinstance(batch, pa.Table):
        table = batch
    elif isinstance(batch, pa.RecordBatch):
        table = pa.Table.from_batches([batch])
    else:
        table = pa.Table.from_batches(list(batch), schema=schema)
    if table.schema.names != schema.names:
        raise SchemaMismatch(
            "<batch>",
            unexpected=[name for name in table.schema.names if name not in schema.names],
            missing=[name for name in schema.names if name not in table.schema.names],
            detail="batch columns differ from the ingest schema",
        )
    return table


def _is_duplicate_create(exc: duckdb.Error) -> bool:
    message = str(exc).lower()
    return "already exists" in message or "conflict" in message


@contextmanager
def _registered_view(
    conn: duckdb.DuckDBPyConnection,
    table: pa.Table,
    *,
    relation: str,
) -> Iterator[str]:
    name = f"{_VIEW_PREFIX}{uuid4().hex}"
    try:
        conn.register(name, table)
    except _REJECTED_BATCH_ERRORS as exc:
        raise SchemaMismatch(relation, detail=f"DuckDB rejected the batch: {exc}") from exc
    try:
        yield name
    finally:
        conn.unregister(name)


@contextmanager
def _statement_deadline(
    conn: duckdb.DuckDBPyConnection,
    remaining: float | None,
    *,
    relation: str,
) -> Iterator[None]:
    if remaining is None:
        yield
        return
    if remaining <= 0:
        msg = f"Ingest into {relation!r} cancelled before it started."
        raise IngestCancelled(msg)
    timer = threading.Timer(remaining, conn.interrupt)
    timer.daemon = True
    timer.start()
    try:
        yield
    except duckdb.InterruptException as exc:
        msg = f"Ingest into {relation!r} cancelled after {remaining:.3f}s."
        raise IngestCancelled(msg) from exc
    finally:
        timer.cancel()


class IngestionSink:
    """Write Arrow batches into one DuckDB relation.

    Each call leases a pooled connection, registers the batch as a temporary
    Arrow view (no row-wise copy), and then creates the relation from the
    view or appends the view to it by column name. Concurrent first writers
    that lose the create race fall back to appending.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        relation: str,
        *,
        options: SinkOptions | None = None,
        ingest_hook: IngestHook | None = None,
    ) -> None:
        if not relation:
            msg = "Destination relation name must not be empty."
            raise ValueError(msg)
        self.pool = pool
        self.relation = relation
        self.options = options or SinkOptions()
        self._ingest_hook = ingest_hook

    def ingest(
        self,
        schema: UnifiedSchema | pa.Schema,
        batch: BatchLike,
        *,
        timeout: float | None = None,
    ) -> IngestResult:
        """Create the relation from ``batch`` or append ``batch`` to it.

        Parameters
        ----------
        schema
            Unified or Arrow schema the batch was decoded against.
        batch
            Record batch, table, or sequence of record batches.
        timeout
            Seconds allowed for leasing a connection and running the
            statements; ``None`` means no deadline.

        Returns
        -------
        IngestResult
            Action taken and number of rows written.

        Raises
        ------
        SchemaMismatch
            Raised when the batch columns disagree with the schema or the
            stored relation.
        IngestCancelled
            Raised when the deadline expires; nothing from the batch is kept.
        StoreUnavailable
            Raised when no connection can be leased or the store fails.
        """
        arrow_schema = schema if isinstance(schema, pa.Schema) else to_arrow_schema(schema)
        table = _as_table(arrow_schema, batch)
        started = time.monotonic()
        deadline = None if timeout is None else started + timeout
        with self.pool.connection(timeout=timeout) as conn:
            remaining = None if deadline is None else deadline - time.monotonic()
            try:
                with (
                    _registered_view(conn, table, relation=self.relation) as view,
                    _statement_deadline(conn, remaining, relation=self.relation),
                ):
                    result = self._write(conn, view, table, deadline=deadline)
            except _REJECTED_BATCH_ERRORS as exc:
                raise SchemaMismatch(
                    self.relation, detail=f"DuckDB rejected the batch: {exc}"
                ) from exc
            except duckdb.Error as exc:
                msg = f"DuckDB store failed while ingesting into {self.relation!r}: {exc}"
                raise StoreUnavailable(msg) from exc
        elapsed = time.monotonic() - started
        logger.debug(
            "%s %s with %d rows in %.3fs",
            result.action,
            self.relation,
            result.rows,
            elapsed,
        )
        self._emit(result, elapsed)
        return result

    def _write(
        self,
        conn: duckdb.DuckDBPyConnection,
        view: str,
        table: pa.Table,
        *,
        deadline: float | None,
    ) -> IngestResult:
        schema_name = self.options.schema_name
        if relation_exists(conn, self.relation, schema_name=schema_name):
            return self._append(conn, view, table)
        self._reject_view_name(conn)
        try:
            conn.execute(create_table_as_sql(self.relation, view, schema_name=schema_name))
        except (duckdb.CatalogException, duckdb.TransactionException) as exc:
            if not _is_duplicate_create(exc):
                raise
            self._reject_view_name(conn)
            logger.warning(
                "Relation %s was created concurrently; appending instead: %s",
                self.relation,
                exc,
            )
            return self._append_after_race(conn, view, table, deadline=deadline)
        return IngestResult(
            relation=self.relation,
            action=IngestAction.CREATE,
            rows=table.num_rows,
        )

    def _reject_view_name(self, conn: duckdb.DuckDBPyConnection) -> None:
        if view_exists(conn, self.relation, schema_name=self.options.schema_name):
            raise SchemaMismatch(
                self.relation,
                detail="a view with this name exists; ingestion needs a base table",
            )

    def _append_after_race(
        self,
        conn: duckdb.DuckDBPyConnection,
        view: str,
        table: pa.Table,
        *,
        deadline: float | None,
    ) -> IngestResult:
        schema_name = self.options.schema_name
        for attempt in range(1, self.options.race_retry_attempts + 1):
            if relation_exists(conn, self.relation, schema_name=schema_name):
                result = self._append(conn, view, table)
                return replace(result, race_lost=True)
            delay = self.options.race_retry_delay_s * attempt
            if deadline is not None and time.monotonic() + delay >= deadline:
                msg = (
                    f"Ingest into {self.relation!r} cancelled while waiting for a "
                    "concurrent create to become visible."
                )
                raise IngestCancelled(msg)
            time.sleep(delay)
        msg = f"Relation {self.relation!r} did not become visible after a concurrent create."
        raise StoreUnavailable(msg)

    def _append(
        self,
        conn: duckdb.DuckDBPyConnection,
        view: str,
        table: pa.Table,
    ) -> IngestResult:
        schema_name = self.options.schema_name
        stored = relation_columns(conn, self.relation, schema_name=schema_name)
        stored_keys = {name.lower() for name in stored}
        incoming_keys = {name.lower() for name in table.column_names}
        unexpected = [name for name in table.column_names if name.lower() not in stored_keys]
        missing: list[str] = []
        if self.options.append_mode == "strict":
            missing = [name for name in stored if name.lower() not in incoming_keys]
        if unexpected or missing:
            raise SchemaMismatch(self.relation, unexpected=unexpected, missing=missing)
        try:
            conn.execute(insert_by_name_sql(self.relation, view, schema_name=schema_name))
        except _APPEND_ERRORS as exc:
            raise SchemaMismatch(self.relation, detail=str(exc)) from exc
        return IngestResult(
            relation=self.relation,
            action=IngestAction.APPEND,
            rows=table.num_rows,
        )

    def _emit(self, result: IngestResult, elapsed: float) -> None:
        if self._ingest_hook is None:
            return
        event = IngestEvent(
            relation=result.relation,
            action=str(result.action),
            rows=result.rows,
            race_lost=result.race_lost,
            elapsed_s=elapsed,
        )
        self._ingest_hook(asdict(event))


__all__ = [
    "IngestAction",
    "IngestEvent",
    "IngestResult",
    "IngestionSink",
    "SinkOptions",
]
