"""Schema serialization helpers."""

from __future__ import annotations

import hashlib
from typing import BinaryIO

import msgspec

from core.errors import CodecError
from core_types import JsonDict
from schema_unify.descriptors import FieldDescriptor, UnifiedSchema
from serde_msgspec import (
    StructBaseCompat,
    StructBaseStrict,
    dumps_msgpack,
    loads_msgpack,
    to_builtins,
    validation_error_payload,
)

SCHEMA_FORMAT_VERSION = 1
SUPPORTED_FORMAT_VERSIONS: frozenset[int] = frozenset({SCHEMA_FORMAT_VERSION})


class _FormatHeader(StructBaseCompat, frozen=True):
    format_version: int


class SchemaEnvelope(StructBaseStrict, frozen=True):
    """Persisted schema payload."""

    format_version: int
    fields: tuple[FieldDescriptor, ...] = ()
    coerce_types: bool = False


def export_schema(schema: UnifiedSchema, sink: BinaryIO | None = None) -> bytes:
    """Serialize a unified schema to MessagePack bytes.

    Parameters
    ----------
    schema
        Schema to serialize.
    sink
        Optional binary writer that receives the payload.

    Returns
    -------
    bytes
        Versioned MessagePack payload.
    """
    payload = dumps_msgpack(
        SchemaEnvelope(
            format_version=SCHEMA_FORMAT_VERSION,
            fields=schema.fields,
            coerce_types=schema.coerce_types,
        )
    )
    if sink is not None:
        sink.write(payload)
    return payload


def import_schema(source: bytes | bytearray | memoryview | BinaryIO) -> UnifiedSchema:
    """Restore a unified schema from an exported payload.

    Parameters
    ----------
    source
        Payload bytes, or a binary reader positioned at the payload.

    Returns
    -------
    UnifiedSchema
        Restored schema.

    Raises
    ------
    CodecError
        Raised when the payload is malformed, truncated, or uses an unknown
        format version.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        payload = bytes(source)
    else:
        payload = source.read()
    if not payload:
        msg = "Schema payload is empty."
        raise CodecError(msg)
    try:
        header = loads_msgpack(payload, target_type=_FormatHeader)
    except msgspec.ValidationError as exc:
        msg = f"Schema payload has no usable format version: {validation_error_payload(exc)}"
        raise CodecError(msg) from exc
    except msgspec.DecodeError as exc:
        msg = f"Schema payload is malformed: {exc}"
        raise CodecError(msg) from exc
    if header.format_version not in SUPPORTED_FORMAT_VERSIONS:
        msg = f"Unsupported schema format version: {header.format_version}."
        raise CodecError(msg)
    try:
        envelope = loads_msgpack(payload, target_type=SchemaEnvelope)
    except msgspec.ValidationError as exc:
        msg = f"Schema payload failed validation: {validation_error_payload(exc)}"
        raise CodecError(msg) from exc
    except msgspec.DecodeError as exc:
        msg = f"Schema payload is malformed: {exc}"
        raise CodecError(msg) from exc
    return UnifiedSchema(fields=envelope.fields, coerce_types=envelope.coerce_types)


def schema_to_dict(schema: UnifiedSchema) -> JsonDict:
    """Serialize a unified schema to a plain dictionary.

    Returns
    -------
    dict[str, object]
        JSON-serializable schema representation.
    """
    return {
        "format_version": SCHEMA_FORMAT_VERSION,
        "fields": [to_builtins(field) for field in schema.fields],
        "coerce_types": schema.coerce_types,
    }


def schema_fingerprint(schema: UnifiedSchema) -> str:
    """Compute a stable schema fingerprint hash.

    Returns
    -------
    str
        SHA-256 fingerprint of the exported payload.
    """
    return hashlib.sha256(export_schema(schema)).hexdigest()


__all__ = [
    "SCHEMA_FORMAT_VERSION",
    "SchemaEnvelope",
    "export_schema",
    "import_schema",
    "schema_fingerprint",
    "schema_to_dict",
]
