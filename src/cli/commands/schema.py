"""Schema file inspection commands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import Parameter

from ingest_pipeline import read_schema_file
from schema_unify import schema_fingerprint, schema_to_dict, to_arrow_schema
from serde_msgspec import dumps_json


def show_schema(
    path: Annotated[Path, Parameter(help="Schema file to display.")],
    *,
    output_format: Annotated[
        Literal["text", "json", "arrow"],
        Parameter(name="--format", help="Output format for the schema."),
    ] = "json",
) -> int:
    """Show a persisted schema.

    Returns
    -------
    int
        Exit status code.
    """
    schema = read_schema_file(path)
    if output_format == "json":
        payload = {"fingerprint": schema_fingerprint(schema), **schema_to_dict(schema)}
        text = dumps_json(payload, pretty=True).decode("utf-8")
    elif output_format == "arrow":
        text = to_arrow_schema(schema).to_string()
    else:
        text = schema.to_string()
    sys.stdout.write(text + "\n")
    return 0


__all__ = ["show_schema"]
