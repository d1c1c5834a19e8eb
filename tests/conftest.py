"""Shared pytest fixtures for testing."""

from typing import Any, Dict, List, Optional, Union

import pytest

from adaptive_core.config import Settings
from adaptive_core.dialogs import (
    Activity,
    AdaptiveDialog,
    DialogContext,
    DialogInstance,
    DialogSet,
    DialogTurnResult,
    DialogTurnStatus,
    TurnContext,
)
from adaptive_core.entities import EntityInfo


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Engine settings with defaults, independent of the environment."""
    return Settings(_env_file=None)


# =============================================================================
# Context Fixtures
# =============================================================================


@pytest.fixture
def make_context():
    """Factory for turn contexts carrying a message activity."""
    def _make(text: str = "hello", conversation_state: Optional[Dict[str, Any]] = None) -> TurnContext:
        return TurnContext(Activity.message(text), conversation_state)
    return _make


@pytest.fixture
def root_dialog(settings) -> AdaptiveDialog:
    """Adaptive dialog without triggers, used as a memory container."""
    return AdaptiveDialog("root", settings=settings)


@pytest.fixture
def container_dc(make_context, root_dialog) -> DialogContext:
    """Dialog context whose active dialog is an adaptive container."""
    return DialogContext(
        DialogSet([root_dialog]),
        make_context("hello"),
        [DialogInstance(id=root_dialog.id)],
    )


@pytest.fixture
def entity():
    """Factory for normalized entity records."""
    def _make(name: str, value: Any = None, start: int = 0, end: int = 0, **kwargs) -> EntityInfo:
        return EntityInfo(name=name, value=value, start=start, end=end, **kwargs)
    return _make


# =============================================================================
# Conversation Fixtures
# =============================================================================


class Conversation:
    """Drives turns of a root dialog, keeping its stack and conversation memory."""

    def __init__(self, root):
        self.root = root
        self.dialogs = DialogSet([root])
        self.stack: List[DialogInstance] = []
        self.conversation_state: Dict[str, Any] = {}
        self.context: Optional[TurnContext] = None
        self.dc: Optional[DialogContext] = None

    async def send(self, activity: Union[str, Activity]) -> DialogTurnResult:
        if isinstance(activity, str):
            activity = Activity.message(activity)

        self.context = TurnContext(activity, self.conversation_state)
        self.dc = DialogContext(self.dialogs, self.context, self.stack)

        result = await self.dc.continue_dialog()
        if result.status == DialogTurnStatus.EMPTY:
            result = await self.dc.begin_dialog(self.root.id)
        return result

    @property
    def replies(self) -> List[str]:
        return [activity.text for activity in self.context.responses]

    def turn_value(self, path: str) -> Any:
        return self.dc.state.get_value(f"turn.{path}")


@pytest.fixture
def conversation():
    """Factory for conversation drivers."""
    return Conversation
