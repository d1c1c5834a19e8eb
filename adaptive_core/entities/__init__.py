"""Entity normalization, assignment and queueing."""

from adaptive_core.entities.assignments import (
    EntityAssignment,
    EntityAssignmentComparer,
    EntityAssignments,
)
from adaptive_core.entities.info import UTTERANCE_ENTITY, EntityInfo
from adaptive_core.entities.normalizer import (
    PROPERTY_SUFFIX,
    EntityNormalizer,
    EntityOccurrence,
    EntityTree,
    InstanceData,
    remove_covered,
    strip_property,
)
from adaptive_core.entities.resolver import (
    AssignmentResult,
    EntityResolver,
    split_utterance,
    utterance_entity,
)

__all__ = [
    "EntityInfo",
    "UTTERANCE_ENTITY",
    "EntityAssignment",
    "EntityAssignmentComparer",
    "EntityAssignments",
    "EntityNormalizer",
    "EntityOccurrence",
    "EntityTree",
    "InstanceData",
    "PROPERTY_SUFFIX",
    "remove_covered",
    "strip_property",
    "AssignmentResult",
    "EntityResolver",
    "split_utterance",
    "utterance_entity",
]
