"""Conversation state storage."""

import asyncio
import copy
from typing import Any, Dict, List

import structlog


logger = structlog.get_logger(__name__)


class MemoryStorage:
    """
    In-memory conversation state store.

    Values are deep-copied on read and write so a turn's partially mutated
    state never reaches the store until it is written back.
    """

    def __init__(self):
        self._items: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def read(self, key: str) -> Dict[str, Any]:
        """
        Read the stored state for a key.

        Args:
            key: Conversation key

        Returns:
            A private copy of the stored state, empty when nothing is stored
        """
        async with self._lock:
            item = self._items.get(key)
            return copy.deepcopy(item) if item is not None else {}

    async def write(self, key: str, state: Dict[str, Any]) -> None:
        """Store a copy of state under a key."""
        async with self._lock:
            self._items[key] = copy.deepcopy(state)

        logger.debug("state_written", key=key, size=len(state))

    async def delete(self, key: str) -> bool:
        """Delete the state stored under a key."""
        async with self._lock:
            removed = self._items.pop(key, None) is not None

        if removed:
            logger.debug("state_deleted", key=key)
        return removed

    def keys(self) -> List[str]:
        return list(self._items.keys())


__all__ = ["MemoryStorage"]
