"""
Entity Normalization

Flattens a recognizer's nested entity structure into per-name lists of
EntityInfo records.

Recognizer entity payloads look like:

    {
        "add": [{"size": ["large"], "$instance": {"size": [...]}}],
        "$instance": {"add": [{"startIndex": 0, "endIndex": 9, ...}]},
    }

Keys are classified as operations (from the schema's operation list),
properties (``<name>Property`` for a schema property) or leaf entities.
Operations and properties wrap the entities beneath them; the wrapping
operation and property are recorded on every leaf they contain.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from adaptive_core.entities.info import EntityInfo


logger = structlog.get_logger(__name__)


PROPERTY_SUFFIX = "Property"

INSTANCE_KEY = "$instance"


def strip_property(name: str) -> str:
    """Remove the property suffix from an entity name."""
    if name.endswith(PROPERTY_SUFFIX) and len(name) > len(PROPERTY_SUFFIX):
        return name[: -len(PROPERTY_SUFFIX)]
    return name


# =============================================================================
# Decoded Entity Tree
# =============================================================================


@dataclass
class InstanceData:
    """Span metadata for one entity occurrence."""

    start: int
    end: int
    text: str = ""
    type: Optional[str] = None
    role: Optional[str] = None
    score: Optional[float] = None

    @classmethod
    def parse(cls, raw: Any) -> Optional["InstanceData"]:
        if not isinstance(raw, dict):
            return None
        start, end = raw.get("startIndex"), raw.get("endIndex")
        if not isinstance(start, int) or not isinstance(end, int):
            return None
        score = raw.get("score")
        return cls(
            start=start,
            end=end,
            text=str(raw.get("text", "")),
            type=raw.get("type"),
            role=raw.get("role"),
            score=float(score) if isinstance(score, (int, float)) else None,
        )


@dataclass
class EntityOccurrence:
    """One value of a named entity with its metadata and decoded children."""

    name: str
    index: int
    raw: Any
    instance: Optional[InstanceData] = None
    children: Optional["EntityTree"] = None

    @property
    def has_children(self) -> bool:
        return self.children is not None and bool(self.children.entries)


@dataclass
class EntityTree:
    """Decoded recognizer entity object."""

    entries: Dict[str, List[EntityOccurrence]] = field(default_factory=dict)

    @classmethod
    def decode(cls, raw: Mapping[str, Any]) -> "EntityTree":
        instances = raw.get(INSTANCE_KEY)
        if not isinstance(instances, dict):
            instances = {}

        entries: Dict[str, List[EntityOccurrence]] = {}
        for name, values in raw.items():
            if name.startswith("$"):
                continue
            if not isinstance(values, list):
                values = [values]

            metadata = instances.get(name)
            if not isinstance(metadata, list):
                metadata = []

            occurrences = []
            for index, value in enumerate(values):
                occurrences.append(EntityOccurrence(
                    name=name,
                    index=index,
                    raw=value,
                    instance=InstanceData.parse(metadata[index]) if index < len(metadata) else None,
                    children=cls.decode(value) if isinstance(value, dict) else None,
                ))
            entries[name] = occurrences

        return cls(entries)


# =============================================================================
# Normalizer
# =============================================================================


class EntityNormalizer:
    """
    Normalizes recognizer entities against a schema's operations and
    properties.

    Usage:
        normalizer = EntityNormalizer(["add", "remove"], ["size", "toppings"])
        entities = normalizer.normalize(recognized.entities, recognized.text, turn=3)
    """

    def __init__(self, operations: Sequence[str], properties: Sequence[str]):
        self.operations = set(operations)
        self.properties = set(properties)

    def property_name(self, name: str) -> Optional[str]:
        """Schema property named by a property entity, if any."""
        if not name.endswith(PROPERTY_SUFFIX):
            return None
        stripped = strip_property(name)
        return stripped if stripped in self.properties else None

    def normalize(
        self,
        entities: Mapping[str, Any],
        text: str,
        turn: int,
    ) -> Dict[str, List[EntityInfo]]:
        """
        Flatten recognized entities.

        Args:
            entities: Recognizer entity payload
            text: Recognized utterance, used for coverage
            turn: Event counter recorded as the recognition time

        Returns:
            Entity name to the non-covered occurrences of that name
        """
        result: Dict[str, List[EntityInfo]] = {}
        tree = EntityTree.decode(entities or {})
        self._expand_tree(tree, None, None, None, text or "", turn, result)

        for infos in result.values():
            remove_covered(infos)

        logger.debug(
            "entities_normalized",
            names=len(result),
            occurrences=sum(len(infos) for infos in result.values()),
        )
        return result

    def _expand_tree(
        self,
        tree: EntityTree,
        operation: Optional[str],
        property: Optional[str],
        root: Optional[str],
        text: str,
        turn: int,
        result: Dict[str, List[EntityInfo]],
    ) -> None:
        for name, occurrences in tree.entries.items():
            is_operation = name in self.operations
            property_name = self.property_name(name)

            for occurrence in occurrences:
                root_key = root if root is not None else f"{name}:{occurrence.index}"

                if is_operation:
                    if occurrence.has_children:
                        self._expand_tree(occurrence.children, name, property, root_key, text, turn, result)
                    else:
                        self._expand_entity(occurrence, None, name, property, root_key, text, turn, result)
                elif property_name is not None:
                    if occurrence.has_children:
                        self._expand_tree(occurrence.children, operation, property_name, root_key, text, turn, result)
                    else:
                        self._expand_entity(occurrence, None, operation, property_name, root_key, text, turn, result)
                else:
                    self._expand_entity(occurrence, occurrence.raw, operation, property, root_key, text, turn, result)

    @staticmethod
    def _expand_entity(
        occurrence: EntityOccurrence,
        value: Any,
        operation: Optional[str],
        property: Optional[str],
        root: str,
        text: str,
        turn: int,
        result: Dict[str, List[EntityInfo]],
    ) -> None:
        instance = occurrence.instance
        if instance is None:
            logger.debug("entity_skipped", name=occurrence.name, reason="no instance data")
            return

        result.setdefault(occurrence.name, []).append(EntityInfo(
            name=occurrence.name,
            value=value,
            start=instance.start,
            end=instance.end,
            text=instance.text,
            score=instance.score if instance.score is not None else 0.0,
            type=instance.type,
            role=instance.role,
            priority=0 if instance.role else 1,
            coverage=(instance.end - instance.start) / len(text) if text else 0.0,
            when_recognized=turn,
            operation=operation,
            property=property,
            root_entity=root,
        ))


def remove_covered(infos: List[EntityInfo]) -> None:
    """Drop, in place, every occurrence covered by a longer one in the list."""
    ordered = sorted(infos, key=lambda e: (e.start, -e.end))
    kept: List[EntityInfo] = []
    for info in ordered:
        if not any(k.covers(info) for k in kept):
            kept.append(info)
    infos[:] = kept


__all__ = [
    "EntityNormalizer",
    "EntityTree",
    "EntityOccurrence",
    "InstanceData",
    "PROPERTY_SUFFIX",
    "remove_covered",
    "strip_property",
]
