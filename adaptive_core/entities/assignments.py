"""
Entity Assignments

Pending entity-to-property assignments and the queue that orders them.

Each assignment is raised as one of three events:
- AssignEntity:   a single value is ready for a property
- ChooseEntity:   several values were recognized for one property
- ChooseProperty: one entity could fill several properties
"""

import builtins
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import structlog

from adaptive_core.entities.info import EntityInfo
from adaptive_core.events import AdaptiveEvents
from adaptive_core.memory.paths import DialogPath

if TYPE_CHECKING:
    from adaptive_core.memory.state import DialogStateManager


logger = structlog.get_logger(__name__)


@dataclass(eq=False)
class EntityAssignment:
    """
    A proposed assignment of an entity to a property.

    The owning assignment of an alternative chain keeps the other choices in
    ``alternative_assignments``; alternatives never hold their own chain.
    """

    value: EntityInfo
    event: Optional[str] = None
    property: Optional[str] = None
    operation: Optional[str] = None
    is_expected: bool = False
    raised_count: int = 0
    expected_properties: Optional[List[str]] = None
    alternative_assignments: List["EntityAssignment"] = field(default_factory=list)

    @builtins.property
    def alternatives(self) -> List["EntityAssignment"]:
        """This assignment followed by its alternatives."""
        return [self, *self.alternative_assignments]

    @builtins.property
    def has_alternatives(self) -> bool:
        return bool(self.alternative_assignments)

    def add_alternatives(self, alternatives: Iterable["EntityAssignment"]) -> None:
        """Attach alternatives, flattening any chain they carried."""
        for alternative in alternatives:
            for member in alternative.alternatives:
                if member is self or any(member is a for a in self.alternative_assignments):
                    continue
                member.alternative_assignments = []
                self.alternative_assignments.append(member)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event": self.event,
            "property": self.property,
            "operation": self.operation,
            "is_expected": self.is_expected,
            "raised_count": self.raised_count,
            "expected_properties": list(self.expected_properties) if self.expected_properties is not None else None,
            "value": self.value.to_dict(),
            "alternatives": [a.to_dict() for a in self.alternative_assignments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityAssignment":
        """Create from dictionary."""
        assignment = cls(
            value=EntityInfo.from_dict(data["value"]),
            event=data.get("event"),
            property=data.get("property"),
            operation=data.get("operation"),
            is_expected=data.get("is_expected", False),
            raised_count=data.get("raised_count", 0),
            expected_properties=data.get("expected_properties"),
        )
        assignment.alternative_assignments = [
            cls.from_dict(alternative) for alternative in data.get("alternatives", [])
        ]
        return assignment

    def __str__(self) -> str:
        expected = "+" if self.is_expected else ""
        return f"{expected}{self.event}: {self.property} = {self.operation}({self.value})"


class EntityAssignmentComparer:
    """
    Orders pending assignments.

    Sort keys, in order: event kind (AssignEntity, ChooseProperty,
    ChooseEntity), unexpected before expected, older recognition first,
    then position of the operation in the schema's operation list.
    """

    EVENT_ORDER = [
        AdaptiveEvents.ASSIGN_ENTITY,
        AdaptiveEvents.CHOOSE_PROPERTY,
        AdaptiveEvents.CHOOSE_ENTITY,
    ]

    def __init__(self, operation_preference: Sequence[str] = ()):
        self.operation_preference = list(operation_preference)

    @staticmethod
    def _index(values: Sequence[Any], value: Any) -> int:
        try:
            return values.index(value)
        except ValueError:
            return -1

    def key(self, assignment: EntityAssignment) -> Tuple[int, int, int, int]:
        return (
            self._index(self.EVENT_ORDER, assignment.event),
            1 if assignment.is_expected else 0,
            assignment.value.when_recognized,
            self._index(self.operation_preference, assignment.operation),
        )

    def compare(self, x: EntityAssignment, y: EntityAssignment) -> int:
        kx, ky = self.key(x), self.key(y)
        return (kx > ky) - (kx < ky)

    def sort(self, assignments: Iterable[EntityAssignment]) -> List[EntityAssignment]:
        return sorted(assignments, key=self.key)


class EntityAssignments:
    """FIFO queue of pending assignments persisted in dialog memory."""

    def __init__(self, assignments: Optional[Iterable[EntityAssignment]] = None):
        self.assignments: List[EntityAssignment] = list(assignments or [])

    @classmethod
    def read(cls, state: "DialogStateManager") -> "EntityAssignments":
        """Load the queue from memory. Unexpected stored values read as empty."""
        stored = state.get_value(DialogPath.ENTITY_ASSIGNMENTS)
        if not isinstance(stored, list):
            return cls()

        assignments = []
        for item in stored:
            if isinstance(item, EntityAssignment):
                assignments.append(item)
                continue
            if not isinstance(item, dict):
                logger.warning("assignment_skipped", reason="not a mapping")
                continue
            try:
                assignments.append(EntityAssignment.from_dict(item))
            except (KeyError, TypeError) as e:
                logger.warning("assignment_skipped", reason=str(e))
        return cls(assignments)

    def write(self, state: "DialogStateManager") -> None:
        state.set_value(DialogPath.ENTITY_ASSIGNMENTS, [a.to_dict() for a in self.assignments])

    @property
    def next_assignment(self) -> Optional[EntityAssignment]:
        return self.assignments[0] if self.assignments else None

    def dequeue(self) -> Optional[EntityAssignment]:
        if not self.assignments:
            return None
        return self.assignments.pop(0)

    def __len__(self) -> int:
        return len(self.assignments)

    def __iter__(self) -> Iterator[EntityAssignment]:
        return iter(self.assignments)


__all__ = ["EntityAssignment", "EntityAssignmentComparer", "EntityAssignments"]
