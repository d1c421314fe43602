"""Explicit type promotion table for schema unification.

Every unordered pair of kinds maps either to a promoted kind or to ``None``
(conflict). The table is total: pairs that are not listed in
``_WIDENINGS`` are resolved by the identity and ``null`` rules below and are
otherwise conflicts.
"""

from __future__ import annotations

from collections.abc import Mapping
from itertools import combinations_with_replacement

from schema_unify.descriptors import FieldKind, TimeUnit

_WIDENINGS: Mapping[frozenset[FieldKind], FieldKind] = {
    frozenset({FieldKind.INTEGER, FieldKind.FLOAT}): FieldKind.FLOAT,
}

_UNIT_ORDER: tuple[TimeUnit, ...] = (
    TimeUnit.SECOND,
    TimeUnit.MILLI,
    TimeUnit.MICRO,
    TimeUnit.NANO,
)


def _build_table() -> dict[tuple[FieldKind, FieldKind], FieldKind | None]:
    table: dict[tuple[FieldKind, FieldKind], FieldKind | None] = {}
    for left, right in combinations_with_replacement(tuple(FieldKind), 2):
        result: FieldKind | None
        if left == right:
            result = left
        elif left == FieldKind.NULL:
            result = right
        elif right == FieldKind.NULL:
            result = left
        else:
            result = _WIDENINGS.get(frozenset({left, right}))
        table[left, right] = result
        table[right, left] = result
    return table


PROMOTIONS: Mapping[tuple[FieldKind, FieldKind], FieldKind | None] = _build_table()


def promote(existing: FieldKind, incoming: FieldKind) -> FieldKind | None:
    """Return the common kind for two kinds, or ``None`` on conflict.

    Returns
    -------
    FieldKind | None
        Promoted kind, or ``None`` when the pair cannot be reconciled.
    """
    return PROMOTIONS[existing, incoming]


def finer_unit(left: TimeUnit | None, right: TimeUnit | None) -> TimeUnit | None:
    """Return the finer of two timestamp units.

    Returns
    -------
    TimeUnit | None
        Finest unit among the non-null inputs.
    """
    if left is None:
        return right
    if right is None:
        return left
    return max(left, right, key=_UNIT_ORDER.index)


__all__ = ["PROMOTIONS", "finer_unit", "promote"]
