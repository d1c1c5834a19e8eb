"""Well-known memory paths."""


class TurnPath:
    """Paths in the turn scope. Cleared at the end of every turn."""

    ACTIVITY = "turn.activity"
    ACTIVITY_PROCESSED = "turn.activityProcessed"
    DIALOG_EVENT = "turn.dialogEvent"
    INTERRUPTED = "turn.interrupted"
    RECOGNIZED = "turn.recognized"
    RECOGNIZED_ENTITIES = "turn.recognizedEntities"
    UNRECOGNIZED_TEXT = "turn.unrecognizedText"
    TOP_INTENT = "turn.topIntent"
    TOP_SCORE = "turn.topScore"
    SCHEMA = "turn.schema"


class DialogPath:
    """Paths in the dialog scope of the enclosing adaptive dialog."""

    EVENT_COUNTER = "dialog.eventCounter"
    LAST_INTENT = "dialog.lastIntent"
    LAST_EVENT = "dialog.lastEvent"
    LAST_TRIGGER_EVENT = "dialog.lastTriggerEvent"
    EXPECTED_PROPERTIES = "dialog.expectedProperties"
    REQUIRED_PROPERTIES = "dialog.requiredProperties"
    DEFAULT_OPERATION = "dialog.defaultOperation"
    RETRIES = "dialog.retries"
    RESULT = "dialog.result"
    ENTITY_ASSIGNMENTS = "dialog._adaptive.assignments"
    CONDITION_TRACKER = "dialog._tracker.conditions"
    TRACKER = "dialog._tracker"


class ThisPath:
    """Paths in the state of the active dialog instance."""

    OPTIONS = "this.options"
    TURN_COUNT = "this.turnCount"


__all__ = ["TurnPath", "DialogPath", "ThisPath"]
