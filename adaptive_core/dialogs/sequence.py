"""
Action Sequencer

Pending actions of an adaptive dialog and the change lists that edit them.

Triggers and actions never edit the pending action list directly. They
queue ActionChangeLists on the ActionContext; the owning dialog applies
the queue at well-defined points, repeating until no changes remain.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

from adaptive_core.dialogs.base import DialogInstance, DialogSet
from adaptive_core.dialogs.context import DialogContext
from adaptive_core.events import AdaptiveEvents


logger = structlog.get_logger(__name__)


# =============================================================================
# Action State
# =============================================================================


@dataclass
class ActionState:
    """One pending action: the dialog to run and its private stack."""

    dialog_id: str
    options: Any = None
    dialog_stack: List[DialogInstance] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "dialog_id": self.dialog_id,
            "options": self.options,
            "dialog_stack": [{"id": i.id, "state": i.state} for i in self.dialog_stack],
        }


@dataclass
class AdaptiveDialogState:
    """
    Persisted state of an adaptive dialog instance.

    The instance keeps this object for its whole life; sequencer edits
    mutate ``actions`` in place.
    """

    options: Any = None
    actions: List[ActionState] = field(default_factory=list)
    result: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "options": self.options,
            "actions": [a.to_dict() for a in self.actions],
            "result": self.result,
        }


# =============================================================================
# Change Lists
# =============================================================================


class ActionChangeType(str, Enum):
    """How a change list edits the pending actions."""

    INSERT_ACTIONS = "insertActions"
    INSERT_ACTIONS_BEFORE_TAGS = "insertActionsBeforeTags"
    APPEND_ACTIONS = "appendActions"
    END_SEQUENCE = "endSequence"
    REPLACE_SEQUENCE = "replaceSequence"


@dataclass
class ActionChangeList:
    """A queued edit of the pending action list."""

    change_type: ActionChangeType = ActionChangeType.INSERT_ACTIONS
    actions: List[ActionState] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    turn: Optional[Dict[str, Any]] = None


# =============================================================================
# Action Context
# =============================================================================


class ActionContext(DialogContext):
    """
    Dialog context of an adaptive dialog with access to its pending actions.

    Queued changes live in turn state under a key owned by the dialog, so a
    nested adaptive dialog never sees its parent's queue.
    """

    def __init__(
        self,
        dialogs: DialogSet,
        dc: DialogContext,
        actions: List[ActionState],
        change_key: str,
        action_dialogs: DialogSet,
    ):
        super().__init__(dialogs, dc.context, dc.stack, parent=dc.parent)
        self.actions = actions
        self.change_key = change_key
        self._action_dialogs = action_dialogs

    @property
    def changes(self) -> List[ActionChangeList]:
        return self.context.turn_state.get(self.change_key) or []

    def queue_changes(self, changes: ActionChangeList) -> None:
        self.context.turn_state.setdefault(self.change_key, []).append(changes)
        logger.debug(
            "changes_queued",
            change_type=changes.change_type.value,
            actions=len(changes.actions),
        )

    # -------------------------------------------------------------------------
    # Queue Helpers
    # -------------------------------------------------------------------------

    def insert_actions(self, actions: List[ActionState]) -> None:
        self.queue_changes(ActionChangeList(ActionChangeType.INSERT_ACTIONS, list(actions)))

    def insert_actions_before_tags(self, tags: List[str], actions: List[ActionState]) -> None:
        self.queue_changes(ActionChangeList(ActionChangeType.INSERT_ACTIONS_BEFORE_TAGS, list(actions), list(tags)))

    def append_actions(self, actions: List[ActionState]) -> None:
        self.queue_changes(ActionChangeList(ActionChangeType.APPEND_ACTIONS, list(actions)))

    def end_sequence(self) -> None:
        self.queue_changes(ActionChangeList(ActionChangeType.END_SEQUENCE))

    def replace_sequence(self, actions: List[ActionState]) -> None:
        self.queue_changes(ActionChangeList(ActionChangeType.REPLACE_SEQUENCE, list(actions)))

    # -------------------------------------------------------------------------
    # Apply
    # -------------------------------------------------------------------------

    async def apply_changes(self) -> bool:
        """
        Apply queued changes until none remain.

        Changes queued while applying (for example by triggers reacting to
        SequenceStarted) are applied in a following round.

        Returns:
            True if any change was applied
        """
        changes = self.context.turn_state.get(self.change_key)
        if not changes:
            return False

        self.context.turn_state[self.change_key] = []

        for change in changes:
            if change.turn:
                for key, value in change.turn.items():
                    self.state.set_value(f"turn.{key}", value)
            await self._apply_change(change)

        await self.apply_changes()
        return True

    async def _apply_change(self, change: ActionChangeList) -> None:
        was_empty = not self.actions

        if change.change_type == ActionChangeType.INSERT_ACTIONS:
            self.actions[0:0] = change.actions
            if was_empty and self.actions:
                await self._emit_sequence_event(AdaptiveEvents.SEQUENCE_STARTED)

        elif change.change_type == ActionChangeType.INSERT_ACTIONS_BEFORE_TAGS:
            position = self._tagged_position(change.tags)
            if position is None:
                self.actions.extend(change.actions)
            else:
                self.actions[position:position] = change.actions
            if was_empty and self.actions:
                await self._emit_sequence_event(AdaptiveEvents.SEQUENCE_STARTED)

        elif change.change_type == ActionChangeType.APPEND_ACTIONS:
            self.actions.extend(change.actions)
            if was_empty and self.actions:
                await self._emit_sequence_event(AdaptiveEvents.SEQUENCE_STARTED)

        elif change.change_type == ActionChangeType.END_SEQUENCE:
            if self.actions:
                self.actions.clear()
                await self._emit_sequence_event(AdaptiveEvents.SEQUENCE_ENDED)

        elif change.change_type == ActionChangeType.REPLACE_SEQUENCE:
            self.actions.clear()
            self.actions.extend(change.actions)
            if self.actions:
                await self._emit_sequence_event(AdaptiveEvents.SEQUENCE_STARTED)

        logger.debug(
            "changes_applied",
            change_type=change.change_type.value,
            actions=len(change.actions),
            pending=len(self.actions),
        )

    def _tagged_position(self, tags: List[str]) -> Optional[int]:
        for index, action in enumerate(self.actions):
            dialog = self._action_dialogs.find(action.dialog_id)
            if dialog is not None and any(tag in dialog.tags for tag in tags):
                return index
        return None

    async def _emit_sequence_event(self, name: str) -> None:
        await self.emit_event(name, bubble=False)


__all__ = [
    "ActionState",
    "AdaptiveDialogState",
    "ActionChangeType",
    "ActionChangeList",
    "ActionContext",
]
