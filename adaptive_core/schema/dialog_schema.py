"""
Dialog Schema

Describes the properties a dialog collects, the entities that can fill
them and the operations users may apply to them.

Usage:
    schema = DialogSchema({
        "properties": {
            "size": {"type": "string", "enum": ["small", "medium", "large"]},
            "toppings": {"type": "array", "items": {"type": "string"}},
        },
        "$operations": ["add", "remove", "clear"],
    })
    schema.path_to_schema("toppings").is_array  # True
"""

from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from adaptive_core.exceptions import SchemaError
from adaptive_core.schema.property_schema import PropertyDocument, PropertySchema, build_property


logger = structlog.get_logger(__name__)


DEFAULT_EXPECTED_ONLY = ["utterance"]


class SchemaDocument(BaseModel):
    """Validated top-level dialog schema document."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = "object"
    properties: Dict[str, PropertyDocument]
    required: Optional[List[str]] = None
    operations: List[str] = Field(default_factory=list, alias="$operations")
    expected_only: Optional[List[str]] = Field(default=None, alias="$expectedOnly")
    requires_value: List[str] = Field(default_factory=list, alias="$requiresValue")
    default_operation: Dict[str, Dict[str, str]] = Field(default_factory=dict, alias="$defaultOperation")


class DialogSchema:
    """Immutable, validated dialog schema with a property tree."""

    def __init__(self, schema: Dict[str, Any]):
        try:
            self.document = SchemaDocument.model_validate(schema)
        except ValidationError as e:
            raise SchemaError(
                "Invalid dialog schema",
                {"errors": [
                    {"loc": list(error["loc"]), "msg": error["msg"]}
                    for error in e.errors()
                ]},
            ) from e

        self.schema = schema
        root_document = PropertyDocument(type="object")
        children = [build_property(name, doc) for name, doc in self.document.properties.items()]
        self.property = PropertySchema("", root_document, children)

        self._index: Dict[str, PropertySchema] = {
            node.path: node for node in self.property.walk() if node.path
        }

        logger.debug(
            "schema_loaded",
            properties=len(children),
            operations=len(self.document.operations),
        )

    @property
    def operations(self) -> List[str]:
        return list(self.document.operations)

    @property
    def expected_only(self) -> List[str]:
        """Entities only accepted when their property is expected."""
        if self.document.expected_only is None:
            return list(DEFAULT_EXPECTED_ONLY)
        return list(self.document.expected_only)

    @property
    def requires_value(self) -> List[str]:
        return list(self.document.requires_value)

    @property
    def default_operations(self) -> Dict[str, Dict[str, str]]:
        return {prop: dict(table) for prop, table in self.document.default_operation.items()}

    def required(self) -> List[str]:
        """Required top-level properties; all of them when unspecified."""
        if self.document.required is not None:
            return list(self.document.required)
        return [child.name for child in self.property.children]

    def property_names(self) -> List[str]:
        return [child.name for child in self.property.children]

    def path_to_schema(self, path: str) -> Optional[PropertySchema]:
        return self._index.get(path)


__all__ = ["DialogSchema", "SchemaDocument", "DEFAULT_EXPECTED_ONLY"]
