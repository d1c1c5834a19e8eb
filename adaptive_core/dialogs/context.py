"""
Dialog Context

Activities, the per-turn context, and the DialogContext that runs a dialog
stack.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import structlog

from adaptive_core.dialogs.base import (
    Dialog,
    DialogEvent,
    DialogInstance,
    DialogReason,
    DialogSet,
    DialogTurnResult,
    DialogTurnStatus,
)
from adaptive_core.events import DialogEvents
from adaptive_core.exceptions import DialogNotFoundError
from adaptive_core.memory.paths import TurnPath
from adaptive_core.memory.state import DialogStateManager


logger = structlog.get_logger(__name__)


# =============================================================================
# Activities
# =============================================================================


class ActivityTypes:
    """Activity types."""

    MESSAGE = "message"
    EVENT = "event"
    CONVERSATION_UPDATE = "conversationUpdate"
    END_OF_CONVERSATION = "endOfConversation"


@dataclass
class Activity:
    """An inbound or outbound conversational activity."""

    type: str = ActivityTypes.MESSAGE
    text: Optional[str] = None
    value: Any = None
    name: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def message(cls, text: str) -> "Activity":
        return cls(type=ActivityTypes.MESSAGE, text=text)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "type": self.type,
            "text": self.text,
            "value": self.value,
            "name": self.name,
        }


class TurnContext:
    """
    State for one inbound activity.

    ``turn_state`` holds per-turn runtime objects and the turn memory scope;
    ``responses`` collects outbound activities.
    """

    def __init__(
        self,
        activity: Activity,
        conversation_state: Optional[Dict[str, Any]] = None,
        user_state: Optional[Dict[str, Any]] = None,
    ):
        self.activity = activity
        self.turn_state: Dict[str, Any] = {}
        self.conversation_state = conversation_state if conversation_state is not None else {}
        self.user_state = user_state if user_state is not None else {}
        self.responses: List[Activity] = []

    async def send_activity(self, activity: Union[str, Activity]) -> Activity:
        if isinstance(activity, str):
            activity = Activity.message(activity)
        self.responses.append(activity)
        logger.debug("activity_sent", activity_type=activity.type, text=activity.text)
        return activity


# =============================================================================
# Dialog Context
# =============================================================================


class DialogContext:
    """
    Runs a stack of dialog instances.

    The active dialog is the first entry of ``stack``. A context created
    for a container's child keeps a link to the container's context in
    ``parent``.
    """

    def __init__(
        self,
        dialogs: DialogSet,
        context: TurnContext,
        stack: List[DialogInstance],
        parent: Optional["DialogContext"] = None,
    ):
        self.dialogs = dialogs
        self.context = context
        self.stack = stack
        self.parent = parent
        self._state: Optional[DialogStateManager] = None

    @property
    def active_dialog(self) -> Optional[DialogInstance]:
        return self.stack[0] if self.stack else None

    @property
    def state(self) -> DialogStateManager:
        if self._state is None:
            self._state = DialogStateManager(self)
        return self._state

    @property
    def child(self) -> Optional["DialogContext"]:
        """Context of the active container's running child, if any."""
        instance = self.active_dialog
        if instance is None:
            return None
        dialog = self.find_dialog(instance.id)
        if dialog is not None and dialog.is_container:
            return dialog.create_child_context(self)
        return None

    def find_dialog(self, dialog_id: str) -> Optional[Dialog]:
        dialog = self.dialogs.find(dialog_id)
        if dialog is None and self.parent is not None:
            dialog = self.parent.find_dialog(dialog_id)
        return dialog

    def _require_dialog(self, dialog_id: str) -> Dialog:
        dialog = self.find_dialog(dialog_id)
        if dialog is None:
            raise DialogNotFoundError(dialog_id)
        return dialog

    # -------------------------------------------------------------------------
    # Stack Operations
    # -------------------------------------------------------------------------

    async def begin_dialog(self, dialog_id: str, options: Any = None) -> DialogTurnResult:
        """Push a dialog onto the stack and start it."""
        dialog = self._require_dialog(dialog_id)
        self.stack.insert(0, DialogInstance(id=dialog.id))
        logger.debug("dialog_begin", dialog_id=dialog.id, depth=len(self.stack))
        return await dialog.begin_dialog(self, options)

    async def continue_dialog(self) -> DialogTurnResult:
        """
        Continue the active dialog.

        The first call in a turn raises ActivityReceived from the leaf-most
        context so every dialog on the path can react to the activity.
        """
        instance = self.active_dialog
        if instance is None:
            return DialogTurnResult(status=DialogTurnStatus.EMPTY)

        if not self.state.get_bool_value(TurnPath.ACTIVITY_PROCESSED):
            self.state.set_value(TurnPath.ACTIVITY_PROCESSED, True)
            await self.emit_event(
                DialogEvents.ACTIVITY_RECEIVED,
                self.context.activity,
                bubble=True,
                from_leaf=True,
            )

        instance = self.active_dialog
        if instance is None:
            return DialogTurnResult(status=DialogTurnStatus.EMPTY)

        dialog = self._require_dialog(instance.id)
        logger.debug("dialog_continue", dialog_id=dialog.id)
        return await dialog.continue_dialog(self)

    async def end_dialog(self, result: Any = None) -> DialogTurnResult:
        """End the active dialog and resume the one beneath it."""
        await self._end_active_dialog(DialogReason.END_CALLED)

        instance = self.active_dialog
        if instance is not None:
            dialog = self._require_dialog(instance.id)
            return await dialog.resume_dialog(self, DialogReason.END_CALLED, result)

        return DialogTurnResult(status=DialogTurnStatus.COMPLETE, result=result)

    async def cancel_all_dialogs(self, cancel_parents: bool = False) -> DialogTurnResult:
        """
        Cancel every dialog on the stack.

        Args:
            cancel_parents: Also cancel the stacks of all parent contexts
        """
        cancelled = bool(self.stack)
        while self.stack:
            await self._end_active_dialog(DialogReason.CANCEL_CALLED)

        if cancel_parents and self.parent is not None:
            await self.parent.cancel_all_dialogs(cancel_parents=True)
            cancelled = True

        if cancelled:
            logger.info("dialogs_cancelled", cancel_parents=cancel_parents)
            return DialogTurnResult(status=DialogTurnStatus.CANCELLED)
        return DialogTurnResult(status=DialogTurnStatus.EMPTY)

    async def reprompt_dialog(self) -> None:
        instance = self.active_dialog
        if instance is not None:
            dialog = self._require_dialog(instance.id)
            await dialog.reprompt_dialog(self.context, instance)

    async def _end_active_dialog(self, reason: DialogReason) -> None:
        instance = self.active_dialog
        if instance is None:
            return

        dialog = self.find_dialog(instance.id)
        if dialog is not None:
            await dialog.end_dialog(self.context, instance, reason)

        if self.stack and self.stack[0] is instance:
            self.stack.pop(0)
        logger.debug("dialog_end", dialog_id=instance.id, reason=reason.value)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def emit_event(
        self,
        name: str,
        value: Any = None,
        bubble: bool = True,
        from_leaf: bool = False,
    ) -> bool:
        """
        Raise an event on the active dialog.

        Args:
            name: Event name
            value: Event payload
            bubble: Whether unhandled events travel to parent contexts
            from_leaf: Start from the deepest running child context

        Returns:
            True if a dialog handled the event
        """
        dc = self
        if from_leaf:
            child = dc.child
            while child is not None:
                dc = child
                child = dc.child

        instance = dc.active_dialog
        if instance is None:
            return False

        dialog = dc.find_dialog(instance.id)
        if dialog is None:
            return False

        return await dialog.on_dialog_event(dc, DialogEvent(name=name, value=value, bubble=bubble))


__all__ = [
    "Activity",
    "ActivityTypes",
    "TurnContext",
    "DialogContext",
]
