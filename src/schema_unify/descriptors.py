"""Field descriptor and unified schema contracts."""

from __future__ import annotations

from collections.abc import Iterator
from enum import StrEnum

from serde_msgspec import StructBaseStrict

LIST_ELEMENT_NAME = "item"


class FieldKind(StrEnum):
    """Closed set of inferred field kinds."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    TIMESTAMP = "timestamp"
    LIST = "list"
    RECORD = "record"


class TimeUnit(StrEnum):
    """Timestamp resolution, ordered from coarsest to finest."""

    SECOND = "s"
    MILLI = "ms"
    MICRO = "us"
    NANO = "ns"


class FieldDescriptor(StructBaseStrict, frozen=True):
    """Inferred shape of one named field.

    ``unit`` is set for timestamps, ``element`` for lists, and ``children``
    for nested records.
    """

    name: str
    kind: FieldKind
    nullable: bool = True
    unit: TimeUnit | None = None
    element: FieldDescriptor | None = None
    children: tuple[FieldDescriptor, ...] = ()

    def child(self, name: str) -> FieldDescriptor | None:
        """Return the nested field with ``name`` when present.

        Returns
        -------
        FieldDescriptor | None
            Nested descriptor or ``None``.
        """
        for child in self.children:
            if child.name == name:
                return child
        return None

    def type_label(self) -> str:
        """Return a compact, human-readable type label.

        Returns
        -------
        str
            Label such as ``timestamp[ms]`` or ``list<integer>``.
        """
        if self.kind == FieldKind.TIMESTAMP and self.unit is not None:
            return f"timestamp[{self.unit}]"
        if self.kind == FieldKind.LIST and self.element is not None:
            return f"list<{self.element.type_label()}>"
        if self.kind == FieldKind.RECORD:
            inner = ", ".join(f"{child.name}: {child.type_label()}" for child in self.children)
            return f"record<{inner}>"
        return str(self.kind)


class UnifiedSchema(StructBaseStrict, frozen=True):
    """Ordered, immutable set of top-level field descriptors.

    ``coerce_types`` records that the schema was inferred with type coercion,
    so stringified scalars in the sample are valid values for typed fields.
    """

    fields: tuple[FieldDescriptor, ...] = ()
    coerce_types: bool = False

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def names(self) -> tuple[str, ...]:
        """Return top-level field names in insertion order."""
        return tuple(field.name for field in self.fields)

    def field(self, name: str) -> FieldDescriptor:
        """Return the top-level field named ``name``.

        Returns
        -------
        FieldDescriptor
            Matching descriptor.

        Raises
        ------
        KeyError
            Raised when the field is not part of the schema.
        """
        for field in self.fields:
            if field.name == name:
                return field
        msg = f"Unknown field {name!r}."
        raise KeyError(msg)

    def to_string(self) -> str:
        """Render one ``name: type`` line per top-level field.

        Returns
        -------
        str
            Multi-line schema rendering.
        """
        lines = []
        for field in self.fields:
            suffix = "" if field.nullable else " not null"
            lines.append(f"{field.name}: {field.type_label()}{suffix}")
        return "\n".join(lines)


__all__ = [
    "LIST_ELEMENT_NAME",
    "FieldDescriptor",
    "FieldKind",
    "TimeUnit",
    "UnifiedSchema",
]
