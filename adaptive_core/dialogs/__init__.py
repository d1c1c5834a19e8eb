"""Dialog runtime: contexts, actions, triggers, selectors and the adaptive dialog."""

from adaptive_core.dialogs.actions import (
    ActionScope,
    Ask,
    BeginDialog,
    CancelAllDialogs,
    DeleteProperty,
    EditActions,
    EmitEvent,
    EndDialog,
    InputDialog,
    SendActivity,
    SetProperty,
    TextInput,
)
from adaptive_core.dialogs.adaptive import AdaptiveDialog
from adaptive_core.dialogs.base import (
    Dialog,
    DialogContainer,
    DialogEvent,
    DialogInstance,
    DialogReason,
    DialogSet,
    DialogTurnResult,
    DialogTurnStatus,
)
from adaptive_core.dialogs.context import Activity, ActivityTypes, DialogContext, TurnContext
from adaptive_core.dialogs.dispatch import EventDispatcher
from adaptive_core.dialogs.manager import DialogManager, TurnOutcome
from adaptive_core.dialogs.selectors import (
    ConditionalSelector,
    FirstSelector,
    MostSpecificSelector,
    RandomSelector,
    TriggerSelector,
)
from adaptive_core.dialogs.sequence import (
    ActionChangeList,
    ActionChangeType,
    ActionContext,
    ActionState,
    AdaptiveDialogState,
)
from adaptive_core.dialogs.triggers import (
    OnActivityReceived,
    OnAssignEntity,
    OnBeginDialog,
    OnChooseEntity,
    OnChooseProperty,
    OnCondition,
    OnDialogEvent,
    OnEndOfActions,
    OnIntent,
    OnRepromptDialog,
    OnUnknownIntent,
)

__all__ = [
    # Runtime
    "Activity",
    "ActivityTypes",
    "TurnContext",
    "DialogContext",
    "Dialog",
    "DialogContainer",
    "DialogEvent",
    "DialogInstance",
    "DialogReason",
    "DialogSet",
    "DialogTurnResult",
    "DialogTurnStatus",
    "DialogManager",
    "TurnOutcome",
    # Adaptive
    "AdaptiveDialog",
    "AdaptiveDialogState",
    "EventDispatcher",
    "ActionChangeList",
    "ActionChangeType",
    "ActionContext",
    "ActionState",
    # Actions
    "ActionScope",
    "Ask",
    "BeginDialog",
    "CancelAllDialogs",
    "DeleteProperty",
    "EditActions",
    "EmitEvent",
    "EndDialog",
    "InputDialog",
    "SendActivity",
    "SetProperty",
    "TextInput",
    # Triggers
    "OnCondition",
    "OnDialogEvent",
    "OnBeginDialog",
    "OnActivityReceived",
    "OnUnknownIntent",
    "OnEndOfActions",
    "OnRepromptDialog",
    "OnIntent",
    "OnAssignEntity",
    "OnChooseEntity",
    "OnChooseProperty",
    # Selectors
    "TriggerSelector",
    "FirstSelector",
    "RandomSelector",
    "MostSpecificSelector",
    "ConditionalSelector",
]
