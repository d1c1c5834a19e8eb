"""Dialog schema and property tree."""

from adaptive_core.exceptions import SchemaError
from adaptive_core.schema.dialog_schema import DEFAULT_EXPECTED_ONLY, DialogSchema, SchemaDocument
from adaptive_core.schema.property_schema import PropertyDocument, PropertySchema

__all__ = [
    "DialogSchema",
    "SchemaDocument",
    "PropertyDocument",
    "PropertySchema",
    "SchemaError",
    "DEFAULT_EXPECTED_ONLY",
]
