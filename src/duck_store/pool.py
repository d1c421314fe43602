"""Bounded DuckDB connection pool with one-time extension bootstrap."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Self

import duckdb

from core.errors import StoreUnavailable
from duck_store.catalog import quote_literal

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPEN = 10
DEFAULT_MAX_IDLE = 10
DEFAULT_EXTENSIONS: tuple[str, ...] = ("json", "parquet")


@dataclass(frozen=True)
class PoolOptions:
    """Connection pool limits and bootstrap settings."""

    max_open: int = DEFAULT_MAX_OPEN
    max_idle: int = DEFAULT_MAX_IDLE
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    threads: int | None = None
    read_only: bool = False

    def __post_init__(self) -> None:
        if self.max_open < 1:
            msg = f"max_open must be at least 1, got {self.max_open}."
            raise ValueError(msg)
        if self.max_idle < 0:
            msg = f"max_idle must not be negative, got {self.max_idle}."
            raise ValueError(msg)


class ConnectionPool:
    """Own one DuckDB database and lease per-thread connections to it.

    The database is opened and bootstrapped once, at construction. At most
    ``max_open`` connections are leased at a time; further callers block until
    one is returned. Returned connections are kept for reuse up to
    ``max_idle`` and closed beyond that.
    """

    def __init__(
        self,
        database: str | Path = ":memory:",
        *,
        options: PoolOptions | None = None,
    ) -> None:
        self.options = options or PoolOptions()
        self.database = str(database)
        config: dict[str, str | int] = {}
        if self.options.threads is not None:
            config["threads"] = self.options.threads
        try:
            self._root = duckdb.connect(
                self.database,
                read_only=self.options.read_only,
                config=config,
            )
        except duckdb.Error as exc:
            msg = f"Unable to open DuckDB database {self.database!r}: {exc}"
            raise StoreUnavailable(msg) from exc
        try:
            self._bootstrap()
        except duckdb.Error as exc:
            self._root.close()
            msg = f"DuckDB bootstrap failed for {self.database!r}: {exc}"
            raise StoreUnavailable(msg) from exc
        self._bootstrap_count = 1
        self._slots = threading.BoundedSemaphore(self.options.max_open)
        self._lock = threading.Lock()
        self._idle: list[duckdb.DuckDBPyConnection] = []
        self._leased = 0
        self._closed = False

    @property
    def bootstrap_count(self) -> int:
        """Return how many times the bootstrap routine has run."""
        return self._bootstrap_count

    @property
    def idle_count(self) -> int:
        """Return the number of connections waiting for reuse."""
        with self._lock:
            return len(self._idle)

    @property
    def leased_count(self) -> int:
        """Return the number of connections currently leased."""
        with self._lock:
            return self._leased

    @property
    def closed(self) -> bool:
        """Return whether the pool has been closed."""
        return self._closed

    def _bootstrap(self) -> None:
        rows = self._root.execute(
            "SELECT extension_name, installed, loaded FROM duckdb_extensions()"
        ).fetchall()
        status = {str(name): (bool(installed), bool(loaded)) for name, installed, loaded in rows}
        for extension in self.options.extensions:
            installed, loaded = status.get(extension, (False, False))
            if not installed:
                self._root.execute(f"INSTALL {quote_literal(extension)}")
            if not loaded:
                self._root.execute(f"LOAD {quote_literal(extension)}")
        logger.debug(
            "Bootstrapped DuckDB database %s with extensions %s",
            self.database,
            ", ".join(self.options.extensions) or "<none>",
        )

    @contextmanager
    def connection(self, *, timeout: float | None = None) -> Iterator[duckdb.DuckDBPyConnection]:
        """Lease a connection for the duration of the ``with`` block.

        A connection that leaves the block with an exception is closed rather
        than reused.

        Parameters
        ----------
        timeout
            Seconds to wait for a free slot; ``None`` waits indefinitely.

        Yields
        ------
        duckdb.DuckDBPyConnection
            Connection to the pooled database.

        Raises
        ------
        StoreUnavailable
            Raised when the pool is closed, no slot frees up in time, or a
            connection cannot be opened.
        """
        self._ensure_open()
        if timeout is None:
            acquired = self._slots.acquire()
        else:
            acquired = self._slots.acquire(timeout=timeout)
        if not acquired:
            msg = f"No DuckDB connection became available within {timeout:.3f}s."
            raise StoreUnavailable(msg)
        try:
            conn = self._checkout()
        except BaseException:
            self._slots.release()
            raise
        try:
            yield conn
        except BaseException:
            self._discard(conn)
            raise
        else:
            self._checkin(conn)
        finally:
            self._slots.release()

    def _ensure_open(self) -> None:
        if self._closed:
            msg = f"Connection pool for {self.database!r} is closed."
            raise StoreUnavailable(msg)

    def _checkout(self) -> duckdb.DuckDBPyConnection:
        with self._lock:
            self._ensure_open()
            self._leased += 1
            if self._idle:
                return self._idle.pop()
            try:
                return self._root.cursor()
            except duckdb.Error as exc:
                self._leased -= 1
                msg = f"Unable to open a DuckDB connection: {exc}"
                raise StoreUnavailable(msg) from exc

    def _checkin(self, conn: duckdb.DuckDBPyConnection) -> None:
        with self._lock:
            self._leased -= 1
            if not self._closed and len(self._idle) < self.options.max_idle:
                self._idle.append(conn)
                return
        conn.close()

    def _discard(self, conn: duckdb.DuckDBPyConnection) -> None:
        with self._lock:
            self._leased -= 1
        conn.close()

    def close(self) -> None:
        """Close idle connections and the database; leased ones close on return."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            idle, self._idle = self._idle, []
        for conn in idle:
            conn.close()
        self._root.close()
        logger.debug("Closed DuckDB connection pool for %s", self.database)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["DEFAULT_EXTENSIONS", "ConnectionPool", "PoolOptions"]
