"""Incremental schema unification over heterogeneous records."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from core.errors import SchemaConflict
from schema_unify.descriptors import (
    LIST_ELEMENT_NAME,
    FieldDescriptor,
    FieldKind,
    TimeUnit,
    UnifiedSchema,
)
from schema_unify.promotion import finer_unit, promote
from schema_unify.temporal import parse_iso_timestamp, value_time_unit
from utils.value_coercion import coerce_bool, coerce_float, coerce_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnifyOptions:
    """Unification switches.

    ``coerce_types`` lets stringified numbers, booleans and timestamps meet
    their typed counterparts instead of conflicting. ``infer_time_units``
    turns integer and string fields whose every value looks like a timestamp
    into timestamp fields.
    """

    coerce_types: bool = False
    infer_time_units: bool = False


@dataclass
class _TemporalTracker:
    temporal: bool = True
    unit: TimeUnit | None = None

    def observe(self, value: object) -> None:
        unit = value_time_unit(value)
        if unit is None:
            self.temporal = False
            return
        self.unit = finer_unit(self.unit, unit)

    @property
    def is_temporal(self) -> bool:
        return self.temporal and self.unit is not None


@dataclass
class _FieldState:
    name: str
    kind: FieldKind = FieldKind.NULL
    present: int = 0
    saw_null: bool = False
    lexical: FieldKind | None = None
    temporal: _TemporalTracker = field(default_factory=_TemporalTracker)
    element: _FieldState | None = None
    record: _RecordState | None = None


@dataclass
class _RecordState:
    fields: dict[str, _FieldState] = field(default_factory=dict)
    seen: int = 0


def classify_value(value: object) -> FieldKind:
    """Return the literal kind of a record value.

    Returns
    -------
    FieldKind
        Kind of ``value`` before any coercion.

    Raises
    ------
    TypeError
        Raised when the value has no field kind.
    """
    if value is None:
        return FieldKind.NULL
    if isinstance(value, bool):
        return FieldKind.BOOLEAN
    if isinstance(value, int):
        return FieldKind.INTEGER
    if isinstance(value, (float, Decimal)):
        return FieldKind.FLOAT
    if isinstance(value, str):
        return FieldKind.STRING
    if isinstance(value, (datetime, date)):
        return FieldKind.TIMESTAMP
    if isinstance(value, Mapping):
        return FieldKind.RECORD
    if isinstance(value, (list, tuple)):
        return FieldKind.LIST
    msg = f"Unsupported record value type: {type(value).__name__}."
    raise TypeError(msg)


def lexical_kind(text: str) -> FieldKind:
    """Return the most specific kind a string spells out.

    Returns
    -------
    FieldKind
        ``integer``, ``float``, ``boolean``, ``timestamp`` or ``string``.
    """
    if coerce_int(text) is not None:
        return FieldKind.INTEGER
    if coerce_float(text) is not None:
        return FieldKind.FLOAT
    if coerce_bool(text) is not None:
        return FieldKind.BOOLEAN
    if parse_iso_timestamp(text) is not None:
        return FieldKind.TIMESTAMP
    return FieldKind.STRING


def _combine_lexical(current: FieldKind | None, incoming: FieldKind) -> FieldKind:
    if current is None:
        return incoming
    return promote(current, incoming) or FieldKind.STRING


class TypeUnifier:
    """Merge sample records into one running schema.

    Fields keep first-seen order. A field widens in place when the promotion
    table allows it and raises ``SchemaConflict`` otherwise. A record that
    raises leaves the running schema untouched.
    """

    def __init__(self, options: UnifyOptions | None = None) -> None:
        self.options = options or UnifyOptions()
        self._root = _RecordState()

    @property
    def records_seen(self) -> int:
        """Return the number of records merged so far."""
        return self._root.seen

    def unify(self, record: Mapping[str, object]) -> None:
        """Merge one record into the running schema.

        Raises
        ------
        SchemaConflict
            Raised when a field type cannot be reconciled.
        TypeError
            Raised when the record is not a mapping or holds unsupported values.
        """
        if not isinstance(record, Mapping):
            msg = f"Records must be mappings, got {type(record).__name__}."
            raise TypeError(msg)
        snapshot = copy.deepcopy(self._root)
        try:
            self._merge_record(self._root, record, prefix="")
        except (SchemaConflict, TypeError):
            self._root = snapshot
            raise

    def unify_many(self, records: Iterable[Mapping[str, object]]) -> int:
        """Merge every record from ``records``.

        Returns
        -------
        int
            Number of records merged by this call.
        """
        count = 0
        for record in records:
            self.unify(record)
            count += 1
        logger.debug("Unified %d records (%d total)", count, self.records_seen)
        return count

    def schema(self) -> UnifiedSchema:
        """Return an immutable snapshot of the unified schema.

        Returns
        -------
        UnifiedSchema
            Finalized schema for the records seen so far.
        """
        return UnifiedSchema(
            fields=self._finalize_record(self._root),
            coerce_types=self.options.coerce_types,
        )

    def _merge_record(
        self,
        state: _RecordState,
        record: Mapping[str, object],
        *,
        prefix: str,
    ) -> None:
        state.seen += 1
        for key, value in record.items():
            if not isinstance(key, str):
                where = prefix or "<root>"
                msg = f"Record keys must be strings, got {type(key).__name__} at {where}."
                raise TypeError(msg)
            field_state = state.fields.get(key)
            if field_state is None:
                field_state = _FieldState(name=key)
                state.fields[key] = field_state
            field_state.present += 1
            path = f"{prefix}.{key}" if prefix else key
            self._observe(field_state, value, path=path)

    def _observe(self, state: _FieldState, value: object, *, path: str) -> None:
        kind = classify_value(value)
        if kind == FieldKind.NULL:
            state.saw_null = True
            return
        if kind not in {FieldKind.LIST, FieldKind.RECORD}:
            state.temporal.observe(value)
        if kind == FieldKind.STRING and self.options.coerce_types:
            state.lexical = _combine_lexical(state.lexical, lexical_kind(str(value)))
        state.kind = self._resolve(state, kind, path=path)
        if kind == FieldKind.RECORD:
            if state.record is None:
                state.record = _RecordState()
            self._merge_record(state.record, value, prefix=path)  # type: ignore[arg-type]
        elif kind == FieldKind.LIST:
            if state.element is None:
                state.element = _FieldState(name=LIST_ELEMENT_NAME)
            for item in value:  # type: ignore[attr-defined]
                self._observe(state.element, item, path=f"{path}[]")

    def _resolve(self, state: _FieldState, incoming: FieldKind, *, path: str) -> FieldKind:
        existing = state.kind
        result = promote(existing, incoming)
        if result is None and self.options.coerce_types:
            result = self._coerced_kind(state, existing, incoming)
        if result is None:
            raise SchemaConflict(path, str(existing), str(incoming))
        return result

    @staticmethod
    def _coerced_kind(
        state: _FieldState,
        existing: FieldKind,
        incoming: FieldKind,
    ) -> FieldKind | None:
        if existing == FieldKind.STRING:
            other = incoming
        elif incoming == FieldKind.STRING:
            other = existing
        else:
            return None
        lexical = state.lexical
        if lexical is None or lexical == FieldKind.STRING:
            return None
        return promote(lexical, other)

    def _finalize_record(self, state: _RecordState) -> tuple[FieldDescriptor, ...]:
        return tuple(
            self._finalize_field(field_state, nullable=field_state.present < state.seen)
            for field_state in state.fields.values()
        )

    def _finalize_field(self, state: _FieldState, *, nullable: bool) -> FieldDescriptor:
        kind = state.kind
        unit: TimeUnit | None = None
        if kind == FieldKind.TIMESTAMP:
            unit = state.temporal.unit or TimeUnit.MICRO
        elif (
            self.options.infer_time_units
            and kind in {FieldKind.INTEGER, FieldKind.STRING}
            and state.temporal.is_temporal
        ):
            kind = FieldKind.TIMESTAMP
            unit = state.temporal.unit
        element: FieldDescriptor | None = None
        children: tuple[FieldDescriptor, ...] = ()
        if kind == FieldKind.LIST:
            if state.element is None:
                element = FieldDescriptor(name=LIST_ELEMENT_NAME, kind=FieldKind.NULL)
            else:
                element = self._finalize_field(state.element, nullable=False)
        elif kind == FieldKind.RECORD:
            if state.record is not None:
                children = self._finalize_record(state.record)
            if not children:
                # Only empty objects were seen; Arrow and DuckDB have no zero-field struct.
                kind = FieldKind.NULL
        return FieldDescriptor(
            name=state.name,
            kind=kind,
            nullable=nullable or state.saw_null or kind == FieldKind.NULL,
            unit=unit,
            element=element,
            children=children,
        )


__all__ = ["TypeUnifier", "UnifyOptions", "classify_value", "lexical_kind"]
