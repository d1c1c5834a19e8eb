"""Recognizers producing intents and entities for adaptive dialogs."""

from adaptive_core.recognizers.base import NONE_INTENT, IntentScore, Recognizer, RecognizerResult
from adaptive_core.recognizers.regex import EntityPattern, IntentPattern, RegexRecognizer

__all__ = [
    "IntentScore",
    "RecognizerResult",
    "Recognizer",
    "NONE_INTENT",
    "RegexRecognizer",
    "IntentPattern",
    "EntityPattern",
]
