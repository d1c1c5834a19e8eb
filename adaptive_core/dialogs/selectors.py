"""Trigger selectors: choose which matching trigger handles an event."""

import random
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import structlog

from adaptive_core.dialogs.context import DialogContext
from adaptive_core.dialogs.triggers import Condition, OnCondition


logger = structlog.get_logger(__name__)


class TriggerSelector(ABC):
    """
    Base class for trigger selectors.

    ``select`` evaluates the installed triggers against memory. When
    ``candidates`` is given they are assumed to match already and are only
    ordered.
    """

    def __init__(self):
        self.triggers: List[OnCondition] = []

    def initialize(self, triggers: Sequence[OnCondition]) -> None:
        self.triggers = list(triggers)

    def _matching(self, dc: DialogContext, candidates: Optional[Sequence[OnCondition]]) -> List[OnCondition]:
        if candidates is not None:
            return list(candidates)
        state = dc.state
        return [trigger for trigger in self.triggers if trigger.matches(state)]

    @abstractmethod
    async def select(
        self,
        dc: DialogContext,
        candidates: Optional[Sequence[OnCondition]] = None,
    ) -> List[OnCondition]:
        """Return the selected triggers, best first."""
        raise NotImplementedError


class FirstSelector(TriggerSelector):
    """Selects the matching trigger with the lowest priority value."""

    async def select(
        self,
        dc: DialogContext,
        candidates: Optional[Sequence[OnCondition]] = None,
    ) -> List[OnCondition]:
        selected: Optional[OnCondition] = None
        lowest = 0
        state = dc.state
        for trigger in self._matching(dc, candidates):
            priority = trigger.current_priority(state)
            if priority < 0:
                continue
            if selected is None or priority < lowest:
                selected = trigger
                lowest = priority
        return [selected] if selected is not None else []


class RandomSelector(TriggerSelector):
    """Selects a random matching trigger."""

    def __init__(self, seed: Optional[int] = None):
        super().__init__()
        self._random = random.Random(seed)

    async def select(
        self,
        dc: DialogContext,
        candidates: Optional[Sequence[OnCondition]] = None,
    ) -> List[OnCondition]:
        matches = self._matching(dc, candidates)
        if not matches:
            return []
        return [self._random.choice(matches)]


class MostSpecificSelector(TriggerSelector):
    """
    Keeps the most specific matches and lets an inner selector choose.

    A match is dropped when its constraint names are a strict subset of
    another match's. Without an inner selector all remaining matches are
    returned in declaration order.
    """

    def __init__(self, selector: Optional[TriggerSelector] = None):
        super().__init__()
        self.selector = selector

    def initialize(self, triggers: Sequence[OnCondition]) -> None:
        super().initialize(triggers)
        if self.selector is not None:
            self.selector.initialize(triggers)

    async def select(
        self,
        dc: DialogContext,
        candidates: Optional[Sequence[OnCondition]] = None,
    ) -> List[OnCondition]:
        matches = self._matching(dc, candidates)
        keys = {id(trigger): trigger.constraint_keys() for trigger in matches}
        specific = [
            trigger for trigger in matches
            if not any(keys[id(trigger)] < keys[id(other)] for other in matches if other is not trigger)
        ]

        if len(specific) < len(matches):
            logger.debug("triggers_narrowed", matched=len(matches), specific=len(specific))

        if self.selector is None:
            return specific
        return await self.selector.select(dc, specific)


class ConditionalSelector(TriggerSelector):
    """Delegates to one of two selectors depending on a condition."""

    def __init__(self, condition: Condition, if_true: TriggerSelector, if_false: TriggerSelector):
        super().__init__()
        self.condition = condition
        self.if_true = if_true
        self.if_false = if_false

    def initialize(self, triggers: Sequence[OnCondition]) -> None:
        super().initialize(triggers)
        self.if_true.initialize(triggers)
        self.if_false.initialize(triggers)

    async def select(
        self,
        dc: DialogContext,
        candidates: Optional[Sequence[OnCondition]] = None,
    ) -> List[OnCondition]:
        selector = self.if_true if self.condition(dc.state) else self.if_false
        return await selector.select(dc, candidates)


__all__ = [
    "TriggerSelector",
    "FirstSelector",
    "RandomSelector",
    "MostSpecificSelector",
    "ConditionalSelector",
]
