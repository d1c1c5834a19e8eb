"""Normalized entity records."""

import builtins
from dataclasses import dataclass
from typing import Any, Dict, Optional


UTTERANCE_ENTITY = "utterance"


@dataclass(eq=False)
class EntityInfo:
    """
    One recognized entity occurrence over a half-open span of the utterance.

    Instances compare by identity; two occurrences with equal fields are
    still distinct candidates.
    """

    name: str
    value: Any = None
    start: int = 0
    end: int = 0
    text: str = ""
    score: float = 0.0
    type: Optional[str] = None
    role: Optional[str] = None
    priority: float = 1
    coverage: float = 0.0
    when_recognized: int = 0
    operation: Optional[str] = None
    property: Optional[str] = None
    root_entity: Optional[str] = None

    @builtins.property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "EntityInfo") -> bool:
        """True if the spans intersect. Identical spans always overlap."""
        if self.alternative(other):
            return True
        return self.start < other.end and other.start < self.end

    def alternative(self, other: "EntityInfo") -> bool:
        """True if both entities cover exactly the same span."""
        return self.start == other.start and self.end == other.end

    def covers(self, other: "EntityInfo") -> bool:
        """True if this span contains the other and is strictly longer."""
        return (
            self.start <= other.start
            and self.end >= other.end
            and self.length > other.length
        )

    def shares_root(self, other: "EntityInfo") -> bool:
        """True if both came from the same top-level recognized entity."""
        return self.root_entity is not None and self.root_entity == other.root_entity

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "value": self.value,
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "score": self.score,
            "type": self.type,
            "role": self.role,
            "priority": self.priority,
            "coverage": self.coverage,
            "when_recognized": self.when_recognized,
            "operation": self.operation,
            "property": self.property,
            "root_entity": self.root_entity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityInfo":
        """Create from dictionary."""
        return cls(
            name=data["name"],
            value=data.get("value"),
            start=data.get("start", 0),
            end=data.get("end", 0),
            text=data.get("text", ""),
            score=data.get("score", 0.0),
            type=data.get("type"),
            role=data.get("role"),
            priority=data.get("priority", 1),
            coverage=data.get("coverage", 0.0),
            when_recognized=data.get("when_recognized", 0),
            operation=data.get("operation"),
            property=data.get("property"),
            root_entity=data.get("root_entity"),
        )

    def __str__(self) -> str:
        return f"{self.operation}({self.property} = {self.name}:{self.value}) [{self.start}, {self.end})"


__all__ = ["EntityInfo", "UTTERANCE_ENTITY"]
