"""Schema inference command."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated

from cyclopts import Parameter, validators

from cli.context import RunContext
from cli.groups import inference_group
from cli.path_utils import open_input
from config import load_config, unify_options
from ingest_pipeline import infer_schema, iter_records, write_schema_file
from schema_unify import UnifyOptions, schema_fingerprint, to_arrow_schema
from serde_msgspec import dumps_json

logger = logging.getLogger(__name__)


def infer_command(
    sample: Annotated[Path, Parameter(help="Newline-delimited JSON sample, or - for stdin.")],
    *,
    out: Annotated[
        Path,
        Parameter(name=["--out", "-o"], help="Schema file to write."),
    ],
    limit: Annotated[
        int | None,
        Parameter(
            help="Maximum sample records to read (default: sample_size from config).",
            validator=validators.Number(gt=0),
            group=inference_group,
        ),
    ] = None,
    coerce_types: Annotated[
        bool | None,
        Parameter(
            name="--coerce-types",
            help="Resolve scalar conflicts by parsing stringified values.",
            group=inference_group,
        ),
    ] = None,
    infer_time_units: Annotated[
        bool | None,
        Parameter(
            name="--infer-time-units",
            help="Detect timestamps in strings and epoch integers.",
            group=inference_group,
        ),
    ] = None,
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> int:
    """Infer a unified schema from sample records and persist it.

    Returns
    -------
    int
        Exit status code.
    """
    config = run_context.config if run_context is not None else load_config()
    defaults = unify_options(config)
    options = UnifyOptions(
        coerce_types=defaults.coerce_types if coerce_types is None else coerce_types,
        infer_time_units=(
            defaults.infer_time_units if infer_time_units is None else infer_time_units
        ),
    )
    with open_input(sample) as stream:
        schema = infer_schema(
            iter_records(stream),
            options,
            limit=limit if limit is not None else config.sample_size,
        )
    size = write_schema_file(schema, out)
    fingerprint = schema_fingerprint(schema)
    logger.info("Wrote schema %s with fingerprint %s", out, fingerprint)
    logger.debug("Arrow schema:\n%s", to_arrow_schema(schema).to_string())
    payload = {
        "schema": str(out),
        "fields": list(schema.names),
        "bytes": size,
        "fingerprint": fingerprint,
    }
    sys.stdout.write(dumps_json(payload, pretty=True).decode("utf-8") + "\n")
    return 0


__all__ = ["infer_command"]
