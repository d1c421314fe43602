"""Stream ingestion command."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from cyclopts import Parameter, validators

from cli.context import RunContext
from cli.groups import execution_group, store_group
from cli.path_utils import open_input
from config import load_config, pool_options, sink_options
from duck_store import ConnectionPool, IngestionSink
from ingest_pipeline import ingest_stream, read_schema_file
from serde_msgspec import dumps_json


@dataclass(frozen=True)
class IngestOptions:
    """CLI options for the ingest command; unset values fall back to config."""

    database: Annotated[
        str | None,
        Parameter(
            name="--database",
            help="DuckDB database path (default: database from config).",
            group=store_group,
        ),
    ] = None
    relation: Annotated[
        str | None,
        Parameter(
            name="--relation",
            help="Destination relation (default: relation from config).",
            group=store_group,
        ),
    ] = None
    rows_per_batch: Annotated[
        int | None,
        Parameter(
            name="--rows-per-batch",
            help="Records per decoded batch.",
            validator=validators.Number(gt=0),
            group=execution_group,
        ),
    ] = None
    workers: Annotated[
        int | None,
        Parameter(
            name="--workers",
            help="Batches written concurrently.",
            validator=validators.Number(gt=0),
            group=execution_group,
        ),
    ] = None
    skip_bad_batches: Annotated[
        bool,
        Parameter(
            name="--skip-bad-batches",
            help="Log and drop batches with non-conforming records instead of stopping.",
            group=execution_group,
        ),
    ] = False
    timeout: Annotated[
        float | None,
        Parameter(
            name="--timeout",
            help="Per-batch ingest deadline in seconds.",
            validator=validators.Number(gt=0),
            group=execution_group,
        ),
    ] = None
    coerce_types: Annotated[
        bool | None,
        Parameter(
            name="--coerce-types",
            help="Accept stringified scalars for typed fields (default: as inferred).",
            group=execution_group,
        ),
    ] = None


_DEFAULT_INGEST_OPTIONS = IngestOptions()


def ingest_command(
    data: Annotated[Path, Parameter(help="Newline-delimited JSON input, or - for stdin.")],
    *,
    schema: Annotated[
        Path,
        Parameter(name=["--schema", "-s"], help="Schema file written by `arrowduck infer`."),
    ],
    options: Annotated[IngestOptions, Parameter(name="*")] = _DEFAULT_INGEST_OPTIONS,
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> int:
    """Decode records against a persisted schema and ingest them into DuckDB.

    Returns
    -------
    int
        Exit status code.
    """
    config = run_context.config if run_context is not None else load_config()
    unified = read_schema_file(schema)
    database = options.database or config.database
    relation = options.relation or config.relation
    on_error = "skip" if options.skip_bad_batches else config.decode.on_error
    coerce_types = options.coerce_types
    if coerce_types is None and config.unify.coerce_types:
        coerce_types = True
    with ConnectionPool(database, options=pool_options(config)) as pool:
        sink = IngestionSink(pool, relation, options=sink_options(config))
        with open_input(data) as stream:
            summary = ingest_stream(
                stream,
                unified,
                sink,
                rows_per_batch=options.rows_per_batch or config.decode.rows_per_batch,
                coerce_types=coerce_types,
                on_decode_error=on_error,
                workers=options.workers or config.sink.workers,
                timeout=options.timeout if options.timeout is not None else config.sink.timeout_s,
            )
    payload = {"database": database, "relation": relation, **summary.to_dict()}
    sys.stdout.write(dumps_json(payload, pretty=True).decode("utf-8") + "\n")
    return 0


__all__ = ["IngestOptions", "ingest_command"]
