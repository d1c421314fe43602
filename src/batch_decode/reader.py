"""Streaming NDJSON decoder producing Arrow record batches."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Self

import msgspec
import pyarrow as pa

from batch_decode.columns import RecordColumnizer, ValueMismatch
from core.errors import DecodeError
from schema_unify.descriptors import UnifiedSchema
from serde_msgspec import loads_json_value

logger = logging.getLogger(__name__)

type Line = bytes | str


class BatchDecoder:
    """Pull Arrow record batches from a newline-delimited JSON stream.

    The decoder only moves forward through ``stream``; a new stream needs a
    new decoder. Blank lines are skipped. Each batch holds at most
    ``rows_per_batch`` records and is either fully decoded or rejected with
    ``DecodeError``. A rejected batch's lines are still consumed, so callers
    may skip it and keep reading.

    Parameters
    ----------
    schema
        Finalized unified schema the records must conform to.
    stream
        Binary file object (or any iterable of lines) holding one JSON object
        per line.
    rows_per_batch
        Maximum number of records per batch.
    coerce_types
        Accept stringified numbers, booleans and timestamps for typed fields.
        ``None`` follows the schema's own ``coerce_types`` flag.
    """

    def __init__(
        self,
        schema: UnifiedSchema,
        stream: Iterable[Line],
        rows_per_batch: int,
        *,
        coerce_types: bool | None = None,
    ) -> None:
        if rows_per_batch < 1:
            msg = f"rows_per_batch must be at least 1, got {rows_per_batch}."
            raise ValueError(msg)
        self.rows_per_batch = rows_per_batch
        if coerce_types is None:
            coerce_types = schema.coerce_types
        self._columnizer = RecordColumnizer(schema, coerce_types=coerce_types)
        self._lines: Iterator[Line] = iter(stream)
        self._pending: Line | None = None
        self._exhausted = False
        self._next_ordinal = 0
        self._count = 0
        self._batches = 0

    @property
    def arrow_schema(self) -> pa.Schema:
        """Return the Arrow schema every batch conforms to."""
        return self._columnizer.arrow_schema

    @property
    def count(self) -> int:
        """Return the number of records decoded into yielded batches."""
        return self._count

    @property
    def batches(self) -> int:
        """Return the number of batches yielded so far."""
        return self._batches

    def has_next(self) -> bool:
        """Return whether another batch can be read.

        Returns
        -------
        bool
            ``True`` while at least one non-blank line remains.
        """
        if self._pending is not None:
            return True
        if self._exhausted:
            return False
        for line in self._lines:
            if line.strip():
                self._pending = line
                return True
        self._exhausted = True
        return False

    def read_next(self) -> pa.RecordBatch:
        """Decode and return the next batch.

        Returns
        -------
        pyarrow.RecordBatch
            Batch of at most ``rows_per_batch`` records.

        Raises
        ------
        StopIteration
            Raised when the stream holds no further records.
        DecodeError
            Raised when any record in the batch does not fit the schema.
        """
        if not self.has_next():
            raise StopIteration
        lines: list[tuple[int, Line]] = []
        while len(lines) < self.rows_per_batch and self.has_next():
            line = self._pending
            self._pending = None
            lines.append((self._next_ordinal, line))  # type: ignore[arg-type]
            self._next_ordinal += 1
        rows = [self._decode_line(ordinal, line) for ordinal, line in lines]
        batch = self._columnize(rows, first_ordinal=lines[0][0])
        self._count += batch.num_rows
        self._batches += 1
        logger.debug(
            "Decoded batch %d with %d rows (%d total)",
            self._batches,
            batch.num_rows,
            self._count,
        )
        return batch

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> pa.RecordBatch:
        return self.read_next()

    def _decode_line(self, ordinal: int, line: Line) -> tuple[object, ...]:
        try:
            record = loads_json_value(line)
        except msgspec.DecodeError as exc:
            raise DecodeError(ordinal, f"invalid JSON: {exc}") from exc
        try:
            return self._columnizer.convert(record)
        except ValueMismatch as exc:
            raise DecodeError(ordinal, str(exc)) from exc

    def _columnize(
        self,
        rows: list[tuple[object, ...]],
        *,
        first_ordinal: int,
    ) -> pa.RecordBatch:
        try:
            return self._columnizer.to_batch(rows)
        except (pa.ArrowException, OverflowError, TypeError, ValueError) as exc:
            ordinal = self._locate_failure(rows, first_ordinal=first_ordinal)
            raise DecodeError(ordinal, f"cannot build Arrow columns: {exc}") from exc

    def _locate_failure(self, rows: list[tuple[object, ...]], *, first_ordinal: int) -> int:
        for offset, row in enumerate(rows):
            try:
                self._columnizer.to_batch([row])
            except (pa.ArrowException, OverflowError, TypeError, ValueError):
                return first_ordinal + offset
        return first_ordinal


__all__ = ["BatchDecoder"]
