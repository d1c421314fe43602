"""Arrow type mapping for unified schemas."""

from __future__ import annotations

import pyarrow as pa

from schema_unify.descriptors import FieldDescriptor, FieldKind, TimeUnit, UnifiedSchema

_SCALAR_TYPES: dict[FieldKind, pa.DataType] = {
    FieldKind.NULL: pa.null(),
    FieldKind.BOOLEAN: pa.bool_(),
    FieldKind.INTEGER: pa.int64(),
    FieldKind.FLOAT: pa.float64(),
    FieldKind.STRING: pa.string(),
}


def arrow_type(descriptor: FieldDescriptor) -> pa.DataType:
    """Return the Arrow data type for a field descriptor.

    Returns
    -------
    pyarrow.DataType
        Arrow type; timestamps are UTC, lists and records nest recursively.

    Raises
    ------
    ValueError
        Raised when a list descriptor has no element descriptor.
    """
    kind = descriptor.kind
    if kind in _SCALAR_TYPES:
        return _SCALAR_TYPES[kind]
    if kind == FieldKind.TIMESTAMP:
        unit = descriptor.unit or TimeUnit.MICRO
        return pa.timestamp(str(unit), tz="UTC")
    if kind == FieldKind.LIST:
        if descriptor.element is None:
            msg = f"List field {descriptor.name!r} has no element descriptor."
            raise ValueError(msg)
        return pa.list_(arrow_field(descriptor.element))
    return pa.struct([arrow_field(child) for child in descriptor.children])


def arrow_field(descriptor: FieldDescriptor) -> pa.Field:
    """Return the Arrow field for a field descriptor.

    Returns
    -------
    pyarrow.Field
        Arrow field carrying the descriptor's name and nullability.
    """
    return pa.field(descriptor.name, arrow_type(descriptor), nullable=descriptor.nullable)


def to_arrow_schema(schema: UnifiedSchema) -> pa.Schema:
    """Return the Arrow schema batches decoded against ``schema`` use.

    Returns
    -------
    pyarrow.Schema
        Arrow schema with one field per top-level descriptor.
    """
    return pa.schema([arrow_field(field) for field in schema.fields])


__all__ = ["arrow_field", "arrow_type", "to_arrow_schema"]
