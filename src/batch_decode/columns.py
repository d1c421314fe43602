"""Record-to-column conversion against a fixed unified schema."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import date

import pyarrow as pa

from schema_unify.arrow_types import to_arrow_schema
from schema_unify.descriptors import FieldDescriptor, FieldKind, TimeUnit, UnifiedSchema
from schema_unify.temporal import datetime_to_epoch, parse_iso_timestamp
from utils.value_coercion import (
    CoercionError,
    coerce_bool_strict,
    coerce_float_strict,
    coerce_int_strict,
)

type Converter = Callable[[object], object]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ValueMismatch(ValueError):
    """Raised when a value does not fit its field descriptor."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


def _type_name(value: object) -> str:
    return type(value).__name__


def _checked_int(value: int, path: str) -> int:
    if not INT64_MIN <= value <= INT64_MAX:
        raise ValueMismatch(path, "integer is outside the int64 range")
    return value


def _boolean(path: str, *, coerce_types: bool) -> Converter:
    def convert(value: object) -> object:
        if isinstance(value, bool):
            return value
        if coerce_types and isinstance(value, str):
            try:
                return coerce_bool_strict(value)
            except CoercionError as exc:
                raise ValueMismatch(path, str(exc)) from exc
        raise ValueMismatch(path, f"expected boolean, got {_type_name(value)}")

    return convert


def _integer(path: str, *, coerce_types: bool) -> Converter:
    def convert(value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return _checked_int(value, path)
        if coerce_types and isinstance(value, str):
            try:
                return _checked_int(coerce_int_strict(value), path)
            except CoercionError as exc:
                raise ValueMismatch(path, str(exc)) from exc
        raise ValueMismatch(path, f"expected integer, got {_type_name(value)}")

    return convert


def _float(path: str, *, coerce_types: bool) -> Converter:
    def convert(value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return float(value)
            except OverflowError as exc:
                raise ValueMismatch(path, "integer is outside the float64 range") from exc
        if coerce_types and isinstance(value, str):
            try:
                return coerce_float_strict(value)
            except CoercionError as exc:
                raise ValueMismatch(path, str(exc)) from exc
        raise ValueMismatch(path, f"expected float, got {_type_name(value)}")

    return convert


def _string(path: str) -> Converter:
    def convert(value: object) -> object:
        if isinstance(value, str):
            return value
        raise ValueMismatch(path, f"expected string, got {_type_name(value)}")

    return convert


def _timestamp(path: str, unit: TimeUnit) -> Converter:
    def convert(value: object) -> object:
        if isinstance(value, str):
            parsed = parse_iso_timestamp(value)
            if parsed is None:
                raise ValueMismatch(path, f"{value!r} is not an ISO-8601 timestamp")
            return parsed.to_epoch(unit)
        if isinstance(value, date):
            return datetime_to_epoch(value, unit)
        if isinstance(value, int) and not isinstance(value, bool):
            return _checked_int(value, path)
        raise ValueMismatch(path, f"expected timestamp, got {_type_name(value)}")

    return convert


def _null(path: str) -> Converter:
    def convert(value: object) -> object:
        if isinstance(value, Mapping) and not value:
            return None
        raise ValueMismatch(path, f"field held only nulls during sampling, got {_type_name(value)}")

    return convert


def _list(path: str, element: Converter) -> Converter:
    def convert(value: object) -> object:
        if not isinstance(value, (list, tuple)):
            raise ValueMismatch(path, f"expected list, got {_type_name(value)}")
        return [element(item) for item in value]

    return convert


def _record(path: str, children: Sequence[tuple[str, Converter]]) -> Converter:
    known = frozenset(name for name, _ in children)

    def convert(value: object) -> object:
        if not isinstance(value, Mapping):
            raise ValueMismatch(path, f"expected record, got {_type_name(value)}")
        unknown = sorted(str(key) for key in value if key not in known)
        if unknown:
            raise ValueMismatch(path, f"unknown fields: {', '.join(unknown)}")
        return {name: child(value.get(name)) for name, child in children}

    return convert


def build_converter(
    descriptor: FieldDescriptor,
    *,
    path: str,
    coerce_types: bool = False,
) -> Converter:
    """Return a converter that validates one value against ``descriptor``.

    Converted values are Python objects ``pyarrow.array`` accepts for the
    descriptor's Arrow type; timestamps become integer epochs in the field
    unit.

    Returns
    -------
    Converter
        Callable raising ``ValueMismatch`` for values that do not fit.
    """
    inner: Converter
    kind = descriptor.kind
    if kind == FieldKind.BOOLEAN:
        inner = _boolean(path, coerce_types=coerce_types)
    elif kind == FieldKind.INTEGER:
        inner = _integer(path, coerce_types=coerce_types)
    elif kind == FieldKind.FLOAT:
        inner = _float(path, coerce_types=coerce_types)
    elif kind == FieldKind.STRING:
        inner = _string(path)
    elif kind == FieldKind.TIMESTAMP:
        inner = _timestamp(path, descriptor.unit or TimeUnit.MICRO)
    elif kind == FieldKind.LIST:
        if descriptor.element is None:
            msg = f"List field {path!r} has no element descriptor."
            raise ValueError(msg)
        element = build_converter(
            descriptor.element,
            path=f"{path}[]",
            coerce_types=coerce_types,
        )
        inner = _list(path, element)
    elif kind == FieldKind.RECORD:
        children = [
            (
                child.name,
                build_converter(child, path=f"{path}.{child.name}", coerce_types=coerce_types),
            )
            for child in descriptor.children
        ]
        inner = _record(path, children)
    else:
        inner = _null(path)
    nullable = descriptor.nullable

    def convert(value: object) -> object:
        if value is None:
            if not nullable:
                raise ValueMismatch(path, "null for a non-nullable field")
            return None
        return inner(value)

    return convert


class RecordColumnizer:
    """Validate records and assemble them into Arrow record batches."""

    def __init__(self, schema: UnifiedSchema, *, coerce_types: bool = False) -> None:
        self.arrow_schema = to_arrow_schema(schema)
        self._names = schema.names
        self._known = frozenset(self._names)
        self._converters = tuple(
            build_converter(field, path=field.name, coerce_types=coerce_types)
            for field in schema.fields
        )

    def convert(self, record: object) -> tuple[object, ...]:
        """Validate one decoded record and return its column values.

        Returns
        -------
        tuple[object, ...]
            One converted value per schema field, in schema order.

        Raises
        ------
        ValueMismatch
            Raised when the record does not fit the schema.
        """
        if not isinstance(record, Mapping):
            raise ValueMismatch("<record>", f"expected a JSON object, got {_type_name(record)}")
        unknown = sorted(str(key) for key in record if key not in self._known)
        if unknown:
            raise ValueMismatch("<record>", f"unknown fields: {', '.join(unknown)}")
        return tuple(
            convert(record.get(name))
            for name, convert in zip(self._names, self._converters, strict=True)
        )

    def to_batch(self, rows: Sequence[tuple[object, ...]]) -> pa.RecordBatch:
        """Columnarize converted rows into one record batch.

        Returns
        -------
        pyarrow.RecordBatch
            Batch typed by ``arrow_schema``.
        """
        arrays = [
            pa.array([row[index] for row in rows], type=field.type)
            for index, field in enumerate(self.arrow_schema)
        ]
        return pa.RecordBatch.from_arrays(arrays, schema=self.arrow_schema)


__all__ = [
    "Converter",
    "RecordColumnizer",
    "ValueMismatch",
    "build_converter",
]
