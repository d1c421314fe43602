"""Shared fixtures for arrowduck tests."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator, Mapping, Sequence
from pathlib import Path

import pytest

from duck_store import ConnectionPool, PoolOptions

# Built-in extensions are skipped so tests never reach the extension repository.
NO_EXTENSIONS = PoolOptions(extensions=())


@pytest.fixture
def memory_pool() -> Iterator[ConnectionPool]:
    """Yield a pool over a private in-memory database.

    Yields
    ------
    ConnectionPool
        Pool closed on teardown.
    """
    pool = ConnectionPool(":memory:", options=NO_EXTENSIONS)
    try:
        yield pool
    finally:
        pool.close()


@pytest.fixture
def file_pool(tmp_path: Path) -> Iterator[ConnectionPool]:
    """Yield a pool over a DuckDB file in ``tmp_path``.

    Yields
    ------
    ConnectionPool
        Pool closed on teardown.
    """
    pool = ConnectionPool(tmp_path / "store.duckdb", options=NO_EXTENSIONS)
    try:
        yield pool
    finally:
        pool.close()


def _ndjson_lines(records: Sequence[Mapping[str, object]]) -> list[bytes]:
    return [json.dumps(record).encode("utf-8") + b"\n" for record in records]


@pytest.fixture
def ndjson() -> Callable[[Sequence[Mapping[str, object]]], list[bytes]]:
    """Return a helper that renders records as newline-delimited JSON lines.

    Returns
    -------
    Callable[[Sequence[Mapping[str, object]]], list[bytes]]
        Renderer producing one encoded line per record.
    """
    return _ndjson_lines
