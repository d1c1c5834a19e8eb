"""
Dialog Base

Core dialog types: turn results, dialog events, dialog instances, and the
Dialog / DialogContainer base classes with two-phase event handling.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

import structlog

if TYPE_CHECKING:
    from adaptive_core.dialogs.context import DialogContext, TurnContext


logger = structlog.get_logger(__name__)


# =============================================================================
# Enums and Results
# =============================================================================


class DialogTurnStatus(str, Enum):
    """Status of a dialog turn."""

    EMPTY = "empty"
    WAITING = "waiting"
    COMPLETE = "complete"
    COMPLETE_AND_WAIT = "completeAndWait"
    CANCELLED = "cancelled"


class DialogReason(str, Enum):
    """Why a dialog is being resumed or ended."""

    BEGIN_CALLED = "beginCalled"
    CONTINUE_CALLED = "continueCalled"
    END_CALLED = "endCalled"
    REPLACE_CALLED = "replaceCalled"
    CANCEL_CALLED = "cancelCalled"
    NEXT_CALLED = "nextCalled"


@dataclass
class DialogTurnResult:
    """Result of running a dialog for one step."""

    status: DialogTurnStatus
    result: Any = None
    parent_ended: bool = False


def end_of_turn() -> DialogTurnResult:
    """Result that ends the turn waiting for user input."""
    return DialogTurnResult(status=DialogTurnStatus.WAITING)


@dataclass
class DialogEvent:
    """Event raised through the dialog stack."""

    name: str
    value: Any = None
    bubble: bool = False


@dataclass
class DialogInstance:
    """A dialog on a stack together with its private state."""

    id: str
    state: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Dialogs
# =============================================================================


class Dialog(ABC):
    """
    Base class for dialogs.

    Events reaching a dialog go through two phases: the pre-bubble hook,
    then (if unhandled and bubbling) the parent context, then the
    post-bubble hook.
    """

    is_container = False

    def __init__(self, dialog_id: Optional[str] = None, tags: Optional[List[str]] = None):
        self._id = dialog_id
        self.tags: List[str] = list(tags or [])

    @property
    def id(self) -> str:
        if self._id is None:
            self._id = self.on_compute_id()
        return self._id

    @id.setter
    def id(self, value: str) -> None:
        self._id = value

    def on_compute_id(self) -> str:
        return type(self).__name__

    def get_dependencies(self) -> List["Dialog"]:
        """Dialogs this dialog begins and which must be registered with it."""
        return []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def begin_dialog(self, dc: "DialogContext", options: Any = None) -> DialogTurnResult:
        """Start the dialog."""
        raise NotImplementedError

    async def continue_dialog(self, dc: "DialogContext") -> DialogTurnResult:
        return await dc.end_dialog(None)

    async def resume_dialog(
        self,
        dc: "DialogContext",
        reason: DialogReason,
        result: Any = None,
    ) -> DialogTurnResult:
        return await dc.end_dialog(result)

    async def reprompt_dialog(self, context: "TurnContext", instance: DialogInstance) -> None:
        pass

    async def end_dialog(
        self,
        context: "TurnContext",
        instance: DialogInstance,
        reason: DialogReason,
    ) -> None:
        pass

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def on_dialog_event(self, dc: "DialogContext", event: DialogEvent) -> bool:
        """
        Handle an event raised on this dialog.

        Returns:
            True if the event was handled
        """
        handled = await self.on_pre_bubble_event(dc, event)

        if not handled and event.bubble and dc.parent is not None:
            handled = await dc.parent.emit_event(event.name, event.value, bubble=True, from_leaf=False)

        if not handled:
            handled = await self.on_post_bubble_event(dc, event)

        return handled

    async def on_pre_bubble_event(self, dc: "DialogContext", event: DialogEvent) -> bool:
        return False

    async def on_post_bubble_event(self, dc: "DialogContext", event: DialogEvent) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


class DialogSet:
    """Dialogs addressable by id."""

    def __init__(self, dialogs: Optional[List[Dialog]] = None):
        self._dialogs: Dict[str, Dialog] = {}
        for dialog in dialogs or []:
            self.add(dialog)

    def add(self, dialog: Dialog) -> "DialogSet":
        """Register a dialog, renaming it if another dialog owns its id."""
        existing = self._dialogs.get(dialog.id)
        if existing is dialog:
            return self

        if existing is not None:
            suffix = 2
            while f"{dialog.id}{suffix}" in self._dialogs:
                suffix += 1
            dialog.id = f"{dialog.id}{suffix}"

        self._dialogs[dialog.id] = dialog
        for dependency in dialog.get_dependencies():
            self.add(dependency)
        return self

    def find(self, dialog_id: str) -> Optional[Dialog]:
        return self._dialogs.get(dialog_id)

    def __contains__(self, dialog_id: str) -> bool:
        return dialog_id in self._dialogs

    def __iter__(self) -> Iterator[Dialog]:
        return iter(self._dialogs.values())

    def __len__(self) -> int:
        return len(self._dialogs)


class DialogContainer(Dialog):
    """A dialog that runs child dialogs in its own child context."""

    is_container = True

    def __init__(self, dialog_id: Optional[str] = None, tags: Optional[List[str]] = None):
        super().__init__(dialog_id, tags)
        self.dialogs = DialogSet()

    @abstractmethod
    def create_child_context(self, dc: "DialogContext") -> Optional["DialogContext"]:
        """Create the context the active child runs in, if any."""
        raise NotImplementedError

    def find_dialog(self, dialog_id: str) -> Optional[Dialog]:
        return self.dialogs.find(dialog_id)


__all__ = [
    "DialogTurnStatus",
    "DialogReason",
    "DialogTurnResult",
    "DialogEvent",
    "DialogInstance",
    "Dialog",
    "DialogSet",
    "DialogContainer",
    "end_of_turn",
]
