"""
Dialog Manager

Host-side entry point: loads a conversation's dialog stack from storage,
runs one turn against the root dialog and writes the state back.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from adaptive_core.dialogs.base import Dialog, DialogSet, DialogTurnStatus
from adaptive_core.dialogs.context import Activity, DialogContext, TurnContext
from adaptive_core.generators.registry import GENERATOR_REGISTRY_KEY, GeneratorRegistry
from adaptive_core.memory.storage import MemoryStorage


logger = structlog.get_logger(__name__)


@dataclass
class TurnOutcome:
    """Result of one conversation turn."""

    status: DialogTurnStatus
    result: Any = None
    responses: List[Activity] = field(default_factory=list)

    @property
    def texts(self) -> List[str]:
        return [activity.text for activity in self.responses if activity.text is not None]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "result": self.result,
            "responses": [activity.to_dict() for activity in self.responses],
        }


class DialogManager:
    """
    Runs turns of a root dialog for many conversations.

    Turns of one conversation are serialized; different conversations run
    concurrently and share only the generator registry.

    Usage:
        manager = DialogManager(root_dialog)
        outcome = await manager.on_turn("conv-1", Activity.message("hi"))
    """

    def __init__(
        self,
        root_dialog: Dialog,
        storage: Optional[MemoryStorage] = None,
        generators: Optional[GeneratorRegistry] = None,
    ):
        self.root_dialog = root_dialog
        self.dialogs = DialogSet([root_dialog])
        self.storage = storage or MemoryStorage()
        self.generators = generators or GeneratorRegistry()
        self._locks: Dict[str, asyncio.Lock] = {}

    def add_dialog(self, dialog: Dialog) -> None:
        """Register another dialog the root may begin by id."""
        self.dialogs.add(dialog)

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def on_turn(
        self,
        conversation_id: str,
        activity: Activity,
        user_id: Optional[str] = None,
    ) -> TurnOutcome:
        """
        Process one inbound activity.

        Args:
            conversation_id: Conversation the activity belongs to
            activity: Inbound activity
            user_id: Key of the user memory scope, defaults to the conversation

        Returns:
            Turn status, dialog result and the activities sent this turn
        """
        conversation_key = f"conversations/{conversation_id}"
        user_key = f"users/{user_id or conversation_id}"
        log = logger.bind(conversation_id=conversation_id, activity_type=activity.type)

        async with self._lock_for(conversation_id):
            snapshot = await self.storage.read(conversation_key)
            user_state = await self.storage.read(user_key)

            stack = snapshot.get("dialog_stack", [])
            context = TurnContext(activity, snapshot.get("conversation", {}), user_state)
            context.turn_state[GENERATOR_REGISTRY_KEY] = self.generators

            dc = DialogContext(self.dialogs, context, stack)
            result = await dc.continue_dialog()
            if result.status == DialogTurnStatus.EMPTY:
                log.debug("root_dialog_begin", dialog_id=self.root_dialog.id)
                result = await dc.begin_dialog(self.root_dialog.id)

            await self.storage.write(conversation_key, {
                "dialog_stack": stack,
                "conversation": context.conversation_state,
            })
            await self.storage.write(user_key, context.user_state)

        log.info(
            "turn_completed",
            status=result.status.value,
            responses=len(context.responses),
            stack_depth=len(stack),
        )
        return TurnOutcome(status=result.status, result=result.result, responses=list(context.responses))

    async def reset(self, conversation_id: str) -> bool:
        """Forget a conversation's dialog stack and memory."""
        async with self._lock_for(conversation_id):
            removed = await self.storage.delete(f"conversations/{conversation_id}")
        log = logger.bind(conversation_id=conversation_id)
        log.info("conversation_reset", removed=removed)
        return removed


__all__ = ["DialogManager", "TurnOutcome"]
