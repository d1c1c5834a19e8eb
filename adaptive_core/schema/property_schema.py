"""Property schema tree for dialog schemas."""

import weakref
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PropertyDocument(BaseModel):
    """Validated JSON-schema fragment describing one property."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    items: Optional["PropertyDocument"] = None
    properties: Optional[Dict[str, "PropertyDocument"]] = None
    enum: Optional[List[Any]] = None
    entities: Optional[List[str]] = Field(default=None, alias="$entities")
    expected_only: Optional[List[str]] = Field(default=None, alias="$expectedOnly")

    @model_validator(mode="after")
    def _array_needs_items(self) -> "PropertyDocument":
        if self.type == "array" and self.items is None:
            raise ValueError("array properties require 'items'")
        return self


PropertyDocument.model_rebuild()


class PropertySchema:
    """
    A node in the property tree of a dialog schema.

    Array properties describe their element type through ``items``; the
    node reports the element type together with ``is_array``.
    """

    def __init__(
        self,
        path: str,
        document: PropertyDocument,
        children: Optional[List["PropertySchema"]] = None,
    ):
        self.path = path
        self.document = document
        self.children: List[PropertySchema] = children or []
        self._parent: Optional[weakref.ref] = None
        for child in self.children:
            child._parent = weakref.ref(self)

        element = document.items if document.type == "array" else None
        self.is_array = element is not None
        element = element or document
        self.type = element.type
        self.is_enum = element.enum is not None

        entities = document.entities if document.entities is not None else element.entities
        self.entities: List[str] = list(entities) if entities is not None else self._default_entities()

        expected_only = document.expected_only
        if expected_only is None:
            expected_only = element.expected_only
        self.expected_only: Optional[List[str]] = list(expected_only) if expected_only is not None else None

    @property
    def name(self) -> str:
        return self.path.rsplit(".", 1)[-1]

    @property
    def parent(self) -> Optional["PropertySchema"]:
        return self._parent() if self._parent is not None else None

    def _default_entities(self) -> List[str]:
        if self.is_enum:
            return [f"{self.name}Entity"]
        if self.type in ("number", "integer"):
            return ["number"]
        if self.type == "boolean":
            return ["boolean"]
        if self.type == "string":
            return ["utterance"]
        return []

    def walk(self) -> Iterator["PropertySchema"]:
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def __repr__(self) -> str:
        return f"PropertySchema(path={self.path!r}, type={self.type!r}, array={self.is_array})"


def build_property(path: str, document: PropertyDocument) -> PropertySchema:
    """Build a property node and its nested object properties."""
    element = document.items if document.type == "array" and document.items else document
    children = [
        build_property(f"{path}.{name}" if path else name, child)
        for name, child in (element.properties or {}).items()
    ]
    return PropertySchema(path, document, children)


__all__ = ["PropertyDocument", "PropertySchema", "build_property"]
