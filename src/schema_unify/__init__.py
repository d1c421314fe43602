"""Schema inference, Arrow mapping, and schema persistence."""

from schema_unify.arrow_types import arrow_field, arrow_type, to_arrow_schema
from schema_unify.descriptors import FieldDescriptor, FieldKind, TimeUnit, UnifiedSchema
from schema_unify.promotion import PROMOTIONS, promote
from schema_unify.serialization import (
    export_schema,
    import_schema,
    schema_fingerprint,
    schema_to_dict,
)
from schema_unify.unifier import TypeUnifier, UnifyOptions

__all__ = [
    "PROMOTIONS",
    "FieldDescriptor",
    "FieldKind",
    "TimeUnit",
    "TypeUnifier",
    "UnifiedSchema",
    "UnifyOptions",
    "arrow_field",
    "arrow_type",
    "export_schema",
    "import_schema",
    "promote",
    "schema_fingerprint",
    "schema_to_dict",
    "to_arrow_schema",
]
