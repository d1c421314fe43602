"""Catalog lookups and statement rendering for DuckDB relations."""

from __future__ import annotations

import duckdb
from sqlglot import exp

DIALECT = "duckdb"
DEFAULT_SCHEMA = "main"


def quote_literal(value: str) -> str:
    """Return ``value`` as a DuckDB string literal.

    Returns
    -------
    str
        Quoted string literal.
    """
    return exp.Literal.string(value).sql(dialect=DIALECT)


def qualified_name(relation: str, *, schema_name: str = DEFAULT_SCHEMA) -> str:
    """Return the quoted ``schema.relation`` reference.

    Returns
    -------
    str
        Qualified, quoted table reference.
    """
    return _table(relation, schema_name=schema_name).sql(dialect=DIALECT)


def _table(relation: str, *, schema_name: str) -> exp.Table:
    return exp.table_(relation, db=schema_name, quoted=True)


def _select_all(view: str) -> exp.Select:
    return exp.select(exp.Star()).from_(exp.table_(view, quoted=True))


def create_table_as_sql(relation: str, view: str, *, schema_name: str = DEFAULT_SCHEMA) -> str:
    """Render ``CREATE TABLE ... AS SELECT * FROM view``.

    The statement deliberately omits ``IF NOT EXISTS`` so a concurrent
    creator fails instead of silently dropping this batch.

    Returns
    -------
    str
        DuckDB CTAS statement.
    """
    statement = exp.Create(
        this=_table(relation, schema_name=schema_name),
        kind="TABLE",
        expression=_select_all(view),
    )
    return statement.sql(dialect=DIALECT)


def insert_by_name_sql(relation: str, view: str, *, schema_name: str = DEFAULT_SCHEMA) -> str:
    """Render ``INSERT INTO ... BY NAME SELECT * FROM view``.

    Returns
    -------
    str
        DuckDB insert statement matching columns by name.
    """
    statement = exp.Insert(
        this=_table(relation, schema_name=schema_name),
        expression=_select_all(view),
        by_name=True,
    )
    return statement.sql(dialect=DIALECT)


def relation_exists(
    conn: duckdb.DuckDBPyConnection,
    relation: str,
    *,
    schema_name: str = DEFAULT_SCHEMA,
) -> bool:
    """Return whether a base table named ``relation`` exists.

    The lookup reads ``duckdb_tables()``; store failures propagate instead of
    being read as an absent relation.

    Returns
    -------
    bool
        ``True`` when the table is visible to ``conn``.
    """
    row = conn.execute(
        "SELECT count(*) FROM duckdb_tables() "
        "WHERE database_name = current_database() "
        "AND lower(schema_name) = lower(?) AND lower(table_name) = lower(?)",
        [schema_name, relation],
    ).fetchone()
    return bool(row and row[0])


def view_exists(
    conn: duckdb.DuckDBPyConnection,
    relation: str,
    *,
    schema_name: str = DEFAULT_SCHEMA,
) -> bool:
    """Return whether a non-internal view named ``relation`` exists.

    Returns
    -------
    bool
        ``True`` when ``duckdb_views()`` lists a matching user view.
    """
    row = conn.execute(
        "SELECT count(*) FROM duckdb_views() "
        "WHERE NOT internal AND database_name = current_database() "
        "AND lower(schema_name) = lower(?) AND lower(view_name) = lower(?)",
        [schema_name, relation],
    ).fetchone()
    return bool(row and row[0])


def relation_columns(
    conn: duckdb.DuckDBPyConnection,
    relation: str,
    *,
    schema_name: str = DEFAULT_SCHEMA,
) -> tuple[str, ...]:
    """Return the stored column names of ``relation`` in table order.

    Returns
    -------
    tuple[str, ...]
        Column names, empty when the relation does not exist.
    """
    rows = conn.execute(
        "SELECT column_name FROM duckdb_columns() "
        "WHERE database_name = current_database() "
        "AND lower(schema_name) = lower(?) AND lower(table_name) = lower(?) "
        "ORDER BY column_index",
        [schema_name, relation],
    ).fetchall()
    return tuple(str(row[0]) for row in rows)


def relation_row_count(
    conn: duckdb.DuckDBPyConnection,
    relation: str,
    *,
    schema_name: str = DEFAULT_SCHEMA,
) -> int:
    """Return the number of rows stored in ``relation``.

    Returns
    -------
    int
        Row count.
    """
    target = qualified_name(relation, schema_name=schema_name)
    row = conn.execute(f"SELECT count(*) FROM {target}").fetchone()
    return int(row[0]) if row else 0


__all__ = [
    "DEFAULT_SCHEMA",
    "create_table_as_sql",
    "insert_by_name_sql",
    "qualified_name",
    "quote_literal",
    "relation_columns",
    "relation_exists",
    "relation_row_count",
    "view_exists",
]
