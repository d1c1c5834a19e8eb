"""Memory scopes, well-known paths and conversation storage."""

from adaptive_core.memory.paths import DialogPath, ThisPath, TurnPath
from adaptive_core.memory.state import SCOPES, TURN_SCOPE_KEY, DialogStateManager, parse_path
from adaptive_core.memory.storage import MemoryStorage

__all__ = [
    "DialogPath",
    "ThisPath",
    "TurnPath",
    "DialogStateManager",
    "MemoryStorage",
    "SCOPES",
    "TURN_SCOPE_KEY",
    "parse_path",
]
