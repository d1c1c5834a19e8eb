"""Recognizer interface and results."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

if TYPE_CHECKING:
    from adaptive_core.dialogs.context import Activity, DialogContext


NONE_INTENT = "None"


@dataclass
class IntentScore:
    """Score for one intent."""

    score: float = 0.0
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RecognizerResult:
    """Intents and entities recognized from one activity."""

    text: str = ""
    altered_text: Optional[str] = None
    intents: Dict[str, IntentScore] = field(default_factory=dict)
    entities: Dict[str, Any] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)

    def get_top_scoring_intent(self) -> Tuple[str, float]:
        """Return (intent, score) of the best intent, ("None", 0.0) if empty."""
        if not self.intents:
            return NONE_INTENT, 0.0
        name, score = max(self.intents.items(), key=lambda item: item[1].score)
        return name, score.score

    @property
    def intent(self) -> str:
        return self.get_top_scoring_intent()[0]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "text": self.text,
            "altered_text": self.altered_text,
            "intents": {name: {"score": s.score, **s.properties} for name, s in self.intents.items()},
            "entities": self.entities,
            "properties": self.properties,
        }


class Recognizer(ABC):
    """Base class for recognizers."""

    def __init__(self, recognizer_id: Optional[str] = None):
        self.id = recognizer_id

    @abstractmethod
    async def recognize(
        self,
        dc: "DialogContext",
        activity: "Activity",
    ) -> RecognizerResult:
        """Recognize intents and entities in an activity."""
        raise NotImplementedError


__all__ = ["IntentScore", "RecognizerResult", "Recognizer", "NONE_INTENT"]
