"""Event names raised by dialogs and adaptive dialogs."""


class DialogEvents:
    """Events every dialog can receive."""

    BEGIN_DIALOG = "beginDialog"
    REPROMPT_DIALOG = "repromptDialog"
    CANCEL_DIALOG = "cancelDialog"
    ACTIVITY_RECEIVED = "activityReceived"
    VERSION_CHANGED = "versionChanged"
    ERROR = "error"


class AdaptiveEvents(DialogEvents):
    """Events specific to adaptive dialogs."""

    RECOGNIZE_UTTERANCE = "recognizeUtterance"
    RECOGNIZED_INTENT = "recognizedIntent"
    UNKNOWN_INTENT = "unknownIntent"
    END_OF_ACTIONS = "endOfActions"
    SEQUENCE_STARTED = "actionsStarted"
    SEQUENCE_ENDED = "actionsEnded"
    ASSIGN_ENTITY = "assignEntity"
    CHOOSE_PROPERTY = "chooseProperty"
    CHOOSE_ENTITY = "chooseEntity"


__all__ = ["DialogEvents", "AdaptiveEvents"]
