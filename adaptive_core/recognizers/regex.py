"""Pattern-based recognizer using regex."""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import structlog

from adaptive_core.recognizers.base import NONE_INTENT, IntentScore, Recognizer, RecognizerResult

if TYPE_CHECKING:
    from adaptive_core.dialogs.context import Activity, DialogContext


logger = structlog.get_logger(__name__)


@dataclass
class IntentPattern:
    """Regex that signals an intent. Named groups become entities."""

    intent: str
    pattern: str
    regex: re.Pattern = field(init=False)

    def __post_init__(self):
        self.regex = re.compile(self.pattern, re.IGNORECASE)


@dataclass
class EntityPattern:
    """Regex that extracts an entity, with an optional value transformer."""

    name: str
    pattern: str
    transformer: Optional[Callable[[re.Match], Any]] = None
    regex: re.Pattern = field(init=False)

    def __post_init__(self):
        self.regex = re.compile(self.pattern, re.IGNORECASE)


class RegexRecognizer(Recognizer):
    """
    Pattern-based recognizer using regex.

    Every match produces recognizer-style ``$instance`` metadata so the
    output can be normalized like any other recognizer's.

    Usage:
        recognizer = RegexRecognizer()
        recognizer.add_intent("BookFlight", r"\\bbook\\b.*\\bflight\\b")
        recognizer.add_entity("city", r"\\b(paris|london|new york)\\b")

        result = await recognizer.recognize(dc, activity)
    """

    def __init__(
        self,
        intents: Optional[List[IntentPattern]] = None,
        entities: Optional[List[EntityPattern]] = None,
        recognizer_id: Optional[str] = None,
    ):
        super().__init__(recognizer_id)
        self.intents: List[IntentPattern] = list(intents or [])
        self.entities: List[EntityPattern] = list(entities or [])

    def add_intent(self, intent: str, pattern: str) -> None:
        self.intents.append(IntentPattern(intent, pattern))

    def add_entity(
        self,
        name: str,
        pattern: str,
        transformer: Optional[Callable[[re.Match], Any]] = None,
    ) -> None:
        self.entities.append(EntityPattern(name, pattern, transformer))

    async def recognize(
        self,
        dc: "DialogContext",
        activity: "Activity",
    ) -> RecognizerResult:
        text = activity.text or ""
        result = RecognizerResult(text=text)
        values: Dict[str, List[Any]] = {}
        instances: Dict[str, List[Dict[str, Any]]] = {}

        for pattern in self.intents:
            match = pattern.regex.search(text)
            if match is None:
                continue
            result.intents[pattern.intent] = IntentScore(score=1.0)
            for name, value in match.groupdict().items():
                if value is None:
                    continue
                start, end = match.span(name)
                self._add(values, instances, name, value, start, end, value)

        for pattern in self.entities:
            for match in pattern.regex.finditer(text):
                value = pattern.transformer(match) if pattern.transformer else match.group()
                self._add(values, instances, pattern.name, value, match.start(), match.end(), match.group())

        if not result.intents:
            result.intents[NONE_INTENT] = IntentScore(score=1.0)

        if values:
            result.entities = dict(values)
            result.entities["$instance"] = instances

        logger.debug(
            "regex_recognized",
            recognizer=self.id,
            intent=result.intent,
            entities=len(values),
        )
        return result

    @staticmethod
    def _add(
        values: Dict[str, List[Any]],
        instances: Dict[str, List[Dict[str, Any]]],
        name: str,
        value: Any,
        start: int,
        end: int,
        text: str,
    ) -> None:
        values.setdefault(name, []).append(value)
        instances.setdefault(name, []).append({
            "startIndex": start,
            "endIndex": end,
            "text": text,
            "type": name,
            "score": 1.0,
        })


__all__ = ["RegexRecognizer", "IntentPattern", "EntityPattern"]
