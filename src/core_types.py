"""Shared type aliases and small typing helpers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Annotated, Literal

from msgspec import Meta

type PathLike = str | Path
type AppendMode = Literal["subset", "strict"]
type DecodeErrorPolicy = Literal["raise", "skip"]

IDENTIFIER_PATTERN = "^[A-Za-z_][A-Za-z0-9_]{0,127}$"

type JsonPrimitive = str | int | float | bool | None
type JsonValue = JsonPrimitive | Mapping[str, JsonValue] | Sequence[JsonValue]
type JsonDict = dict[str, JsonValue]

type Record = Mapping[str, object]

PositiveInt = Annotated[int, Meta(gt=0)]
NonNegativeInt = Annotated[int, Meta(ge=0)]
PositiveFloat = Annotated[float, Meta(gt=0)]

IdentifierStr = Annotated[
    str,
    Meta(
        pattern=IDENTIFIER_PATTERN,
        title="Identifier",
        description="Unquoted SQL identifier for a relation or schema.",
    ),
]


def ensure_path(p: PathLike) -> Path:
    """Return a normalized ``Path`` for the provided value.

    Parameters
    ----------
    p:
        String or ``Path`` input to normalize.

    Returns:
    -------
    pathlib.Path
        Normalized path instance.
    """
    return p if isinstance(p, Path) else Path(p)


__all__ = [
    "IDENTIFIER_PATTERN",
    "AppendMode",
    "DecodeErrorPolicy",
    "IdentifierStr",
    "JsonDict",
    "JsonPrimitive",
    "JsonValue",
    "NonNegativeInt",
    "PathLike",
    "PositiveFloat",
    "PositiveInt",
    "Record",
    "ensure_path",
]
