"""End-to-end drivers: sample inference, schema files, and stream ingestion."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from itertools import islice

import msgspec
import pyarrow as pa

from batch_decode import BatchDecoder
from batch_decode.reader import Line
from core.errors import DecodeError
from core_types import DecodeErrorPolicy, PathLike, Record, ensure_path
from duck_store import IngestAction, IngestionSink, IngestResult
from schema_unify import TypeUnifier, UnifiedSchema, UnifyOptions, export_schema, import_schema
from serde_msgspec import loads_json_value

logger = logging.getLogger(__name__)


@dataclass
class IngestSummary:
    """Counters describing one ingestion run."""

    records: int = 0
    batches: int = 0
    skipped_batches: int = 0
    created: int = 0
    appended: int = 0
    elapsed_seconds: float = 0.0
    skipped_ordinals: list[int] = field(default_factory=list)

    def record(self, result: IngestResult) -> None:
        """Fold one ingest result into the counters."""
        self.records += result.rows
        self.batches += 1
        if result.action == IngestAction.CREATE:
            self.created += 1
        else:
            self.appended += 1

    def to_dict(self) -> dict[str, object]:
        """Return the summary as a JSON-ready mapping.

        Returns
        -------
        dict[str, object]
            Summary payload.
        """
        return {
            "records": self.records,
            "batches": self.batches,
            "skipped_batches": self.skipped_batches,
            "skipped_ordinals": list(self.skipped_ordinals),
            "created": self.created,
            "appended": self.appended,
            "elapsed_seconds": round(self.elapsed_seconds, 6),
        }


def iter_records(lines: Iterable[Line]) -> Iterator[Record]:
    """Yield JSON objects from newline-delimited input, skipping blank lines.

    Yields
    ------
    Record
        One decoded JSON object per non-blank line.

    Raises
    ------
    DecodeError
        Raised when a line is not valid JSON or not a JSON object.
    """
    ordinal = 0
    for line in lines:
        if not line.strip():
            continue
        try:
            value = loads_json_value(line)
        except msgspec.DecodeError as exc:
            raise DecodeError(ordinal, f"invalid JSON: {exc}") from exc
        if not isinstance(value, Mapping):
            raise DecodeError(ordinal, f"expected a JSON object, got {type(value).__name__}")
        yield value
        ordinal += 1


def infer_schema(
    records: Iterable[Record],
    options: UnifyOptions | None = None,
    *,
    limit: int | None = None,
) -> UnifiedSchema:
    """Infer a unified schema from sample records.

    Parameters
    ----------
    records
        Sample records.
    options
        Unifier switches.
    limit
        Maximum number of records to read; ``None`` reads them all.

    Returns
    -------
    UnifiedSchema
        Finalized schema covering every sampled record.

    Raises
    ------
    ValueError
        Raised when ``limit`` is not positive.
    """
    if limit is not None and limit < 1:
        msg = f"limit must be at least 1, got {limit}."
        raise ValueError(msg)
    unifier = TypeUnifier(options)
    sample = records if limit is None else islice(records, limit)
    unifier.unify_many(sample)
    schema = unifier.schema()
    logger.info(
        "Inferred schema with %d top-level fields from %d records",
        len(schema),
        unifier.records_seen,
    )
    return schema


def write_schema_file(schema: UnifiedSchema, path: PathLike) -> int:
    """Persist ``schema`` to ``path``.

    Returns
    -------
    int
        Number of bytes written.
    """
    target = ensure_path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as handle:
        payload = export_schema(schema, handle)
    logger.debug("Wrote schema file %s (%d bytes)", target, len(payload))
    return len(payload)


def read_schema_file(path: PathLike) -> UnifiedSchema:
    """Restore a schema persisted with ``write_schema_file``.

    Returns
    -------
    UnifiedSchema
        Restored schema.
    """
    with ensure_path(path).open("rb") as handle:
        return import_schema(handle)


def ingest_stream(
    stream: Iterable[Line],
    schema: UnifiedSchema,
    sink: IngestionSink,
    *,
    rows_per_batch: int,
    coerce_types: bool | None = None,
    on_decode_error: DecodeErrorPolicy = "raise",
    workers: int = 1,
    timeout: float | None = None,
) -> IngestSummary:
    """Decode ``stream`` in batches and ingest each batch through ``sink``.

    Decoding is sequential. With ``workers > 1`` up to ``workers`` batches are
    written concurrently, each on its own pooled connection.

    Parameters
    ----------
    stream
        Newline-delimited JSON lines.
    schema
        Schema every record must conform to.
    sink
        Destination sink.
    rows_per_batch
        Maximum records per batch.
    coerce_types
        Accept stringified scalars for typed fields; ``None`` follows the
        schema.
    on_decode_error
        ``"raise"`` stops at the first bad batch; ``"skip"`` logs and drops it.
    workers
        Number of concurrent ingest calls.
    timeout
        Per-batch ingest deadline in seconds.

    Returns
    -------
    IngestSummary
        Counters for the run.

    Raises
    ------
    ValueError
        Raised when ``workers`` is not positive.
    """
    if workers < 1:
        msg = f"workers must be at least 1, got {workers}."
        raise ValueError(msg)
    started = time.monotonic()
    summary = IngestSummary()
    decoder = BatchDecoder(schema, stream, rows_per_batch, coerce_types=coerce_types)
    arrow_schema = decoder.arrow_schema
    batches = _decoded_batches(decoder, summary, on_decode_error=on_decode_error)
    if workers == 1:
        for batch in batches:
            summary.record(sink.ingest(arrow_schema, batch, timeout=timeout))
    else:
        _ingest_concurrently(
            batches,
            arrow_schema,
            sink,
            summary,
            workers=workers,
            timeout=timeout,
        )
    summary.elapsed_seconds = time.monotonic() - started
    logger.info(
        "Ingested %d records in %d batches into %s (%d skipped) in %.3fs",
        summary.records,
        summary.batches,
        sink.relation,
        summary.skipped_batches,
        summary.elapsed_seconds,
    )
    return summary


def _decoded_batches(
    decoder: BatchDecoder,
    summary: IngestSummary,
    *,
    on_decode_error: DecodeErrorPolicy,
) -> Iterator[pa.RecordBatch]:
    while decoder.has_next():
        try:
            batch = decoder.read_next()
        except DecodeError as exc:
            if on_decode_error == "raise":
                raise
            summary.skipped_batches += 1
            summary.skipped_ordinals.append(exc.ordinal)
            logger.warning("Skipping batch: %s", exc)
            continue
        yield batch


def _ingest_concurrently(
    batches: Iterator[pa.RecordBatch],
    arrow_schema: pa.Schema,
    sink: IngestionSink,
    summary: IngestSummary,
    *,
    workers: int,
    timeout: float | None,
) -> None:
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="arrowduck-ingest") as pool:
        pending: set[Future[IngestResult]] = set()
        try:
            for batch in batches:
                if len(pending) >= workers:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        summary.record(future.result())
                pending.add(pool.submit(sink.ingest, arrow_schema, batch, timeout=timeout))
        finally:
            done, _ = wait(pending)
        for future in done:
            summary.record(future.result())


__all__ = [
    "IngestSummary",
    "infer_schema",
    "ingest_stream",
    "iter_records",
    "read_schema_file",
    "write_schema_file",
]
