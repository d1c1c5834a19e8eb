"""
Triggers

Rules that react to dialog events by queueing actions. A trigger's
condition is a set of named constraints; selectors compare constraint
names to find the most specific match.

Usage:
    OnIntent("BookFlight", actions=[SendActivity("Where to?")])
    OnAssignEntity(property="destination", actions=[
        SetProperty("dialog.destination", lambda s: s.get_value("turn.recognized.entities.city[0]")),
    ])
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Union

import structlog

from adaptive_core.dialogs.actions import ActionScope
from adaptive_core.dialogs.base import Dialog
from adaptive_core.dialogs.sequence import ActionChangeList, ActionContext, ActionState
from adaptive_core.events import AdaptiveEvents
from adaptive_core.memory.paths import DialogPath, TurnPath
from adaptive_core.memory.state import DialogStateManager


logger = structlog.get_logger(__name__)


Condition = Callable[[DialogStateManager], bool]


@dataclass(frozen=True)
class Constraint:
    """A named predicate over memory."""

    key: str
    predicate: Condition

    def evaluate(self, state: DialogStateManager) -> bool:
        try:
            return bool(self.predicate(state))
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.debug("constraint_failed", constraint=self.key, error=str(e))
            return False


def _dialog_event(state: DialogStateManager) -> Any:
    return state.get_value(TurnPath.DIALOG_EVENT)


def _event_name(state: DialogStateManager) -> Optional[str]:
    return getattr(_dialog_event(state), "name", None)


def _event_value(state: DialogStateManager) -> Any:
    return getattr(_dialog_event(state), "value", None)


# =============================================================================
# Base Trigger
# =============================================================================


class OnCondition:
    """
    Trigger that fires when its condition holds.

    Priorities are "lower runs first"; an unset priority is assigned when
    the owning dialog installs its triggers.
    """

    def __init__(
        self,
        actions: Optional[List[Dialog]] = None,
        condition: Optional[Condition] = None,
        priority: Union[int, Callable[[DialogStateManager], int], None] = None,
        run_once: bool = False,
        references: Optional[Sequence[str]] = None,
        tags: Optional[List[str]] = None,
    ):
        self.actions: List[Dialog] = list(actions or [])
        self.condition = condition
        self.priority = priority
        self.run_once = run_once
        self.references: List[str] = list(references or [])
        self.tags: List[str] = list(tags or [])
        self.id = ""
        self._action_scope: Optional[ActionScope] = None
        self._extra_constraints: List[Constraint] = []

    @property
    def action_scope(self) -> ActionScope:
        if self._action_scope is None:
            self._action_scope = ActionScope(self.actions, tags=self.tags)
        return self._action_scope

    def get_dependencies(self) -> List[Dialog]:
        return [self.action_scope]

    # -------------------------------------------------------------------------
    # Conditions
    # -------------------------------------------------------------------------

    def add_constraint(self, key: str, predicate: Condition) -> None:
        """Add a named constraint, for example from the owning dialog."""
        self._extra_constraints.append(Constraint(key, predicate))

    def constraints(self) -> List[Constraint]:
        result = []
        if self.condition is not None:
            result.append(Constraint(f"condition:{id(self.condition)}", self.condition))
        result.extend(self._extra_constraints)
        return result

    def constraint_keys(self) -> frozenset:
        return frozenset(c.key for c in self.constraints())

    def matches(self, state: DialogStateManager) -> bool:
        """True if every constraint holds and a run-once trigger may run."""
        for constraint in self.constraints():
            if not constraint.evaluate(state):
                return False
        if self.run_once and not self._may_run_again(state):
            return False
        return True

    def current_priority(self, state: DialogStateManager) -> int:
        priority = self.priority
        if callable(priority):
            priority = priority(state)
        return int(priority) if priority is not None else 0

    def _tracker_path(self) -> str:
        return f"{DialogPath.CONDITION_TRACKER}.{self.id}"

    def _may_run_again(self, state: DialogStateManager) -> bool:
        last_run = state.get_value(f"{self._tracker_path()}.lastRun", 0)
        if not last_run:
            return True

        for path in state.get_value(f"{self._tracker_path()}.paths", []):
            if state.tracked_version(path) > last_run:
                return True
        return False

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self, ac: ActionContext) -> List[ActionChangeList]:
        """Produce the change lists this trigger queues when selected."""
        if self.run_once:
            counter = ac.state.get_value(DialogPath.EVENT_COUNTER, 0)
            ac.state.set_value(f"{self._tracker_path()}.lastRun", counter)

        logger.debug("trigger_executed", trigger=self.id, trigger_type=type(self).__name__)
        return [self.on_create_change_list(ac)]

    def on_create_change_list(self, ac: ActionContext, options: Any = None) -> ActionChangeList:
        return ActionChangeList(actions=[ActionState(dialog_id=self.action_scope.id, options=options)])

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, priority={self.priority!r})"


# =============================================================================
# Event Triggers
# =============================================================================


class OnDialogEvent(OnCondition):
    """Fires for a named dialog event."""

    def __init__(self, event: str, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(actions, **kwargs)
        self.event = event

    def constraints(self) -> List[Constraint]:
        return [Constraint(f"event={self.event}", lambda s: _event_name(s) == self.event)] + super().constraints()


class OnBeginDialog(OnDialogEvent):
    def __init__(self, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(AdaptiveEvents.BEGIN_DIALOG, actions, **kwargs)


class OnActivityReceived(OnDialogEvent):
    def __init__(self, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(AdaptiveEvents.ACTIVITY_RECEIVED, actions, **kwargs)


class OnUnknownIntent(OnDialogEvent):
    def __init__(self, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(AdaptiveEvents.UNKNOWN_INTENT, actions, **kwargs)


class OnEndOfActions(OnDialogEvent):
    def __init__(self, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(AdaptiveEvents.END_OF_ACTIONS, actions, **kwargs)


class OnRepromptDialog(OnDialogEvent):
    def __init__(self, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(AdaptiveEvents.REPROMPT_DIALOG, actions, **kwargs)


class OnIntent(OnDialogEvent):
    """Fires when the top intent matches, optionally requiring entities."""

    def __init__(
        self,
        intent: str,
        actions: Optional[List[Dialog]] = None,
        entities: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(AdaptiveEvents.RECOGNIZED_INTENT, actions, **kwargs)
        self.intent = intent
        self.entities: List[str] = list(entities or [])

    def constraints(self) -> List[Constraint]:
        result = super().constraints()
        result.append(Constraint(
            f"intent={self.intent}",
            lambda s: s.get_value(TurnPath.TOP_INTENT) == self.intent,
        ))
        for entity in self.entities:
            result.append(Constraint(
                f"entity={entity}",
                lambda s, e=entity: s.get_value(f"{TurnPath.RECOGNIZED}.entities.{e}") is not None,
            ))
        return result


class _OnAssignmentEvent(OnDialogEvent):
    """Shared constraints for AssignEntity and ChooseEntity triggers."""

    def __init__(
        self,
        event: str,
        actions: Optional[List[Dialog]] = None,
        property: Optional[str] = None,
        entity: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(event, actions, **kwargs)
        self.property = property
        self.entity = entity
        self.operation = operation

    def constraints(self) -> List[Constraint]:
        result = super().constraints()
        if self.property is not None:
            result.append(Constraint(
                f"property={self.property}",
                lambda s: getattr(_event_value(s), "property", None) == self.property,
            ))
        if self.entity is not None:
            result.append(Constraint(
                f"entity={self.entity}",
                lambda s: getattr(getattr(_event_value(s), "value", None), "name", None) == self.entity,
            ))
        if self.operation is not None:
            result.append(Constraint(
                f"operation={self.operation}",
                lambda s: getattr(_event_value(s), "operation", None) == self.operation,
            ))
        return result


class OnAssignEntity(_OnAssignmentEvent):
    """Fires when an entity is ready to be assigned to a property."""

    def __init__(self, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(AdaptiveEvents.ASSIGN_ENTITY, actions, **kwargs)


class OnChooseEntity(_OnAssignmentEvent):
    """Fires when several values were recognized for one property."""

    def __init__(self, actions: Optional[List[Dialog]] = None, **kwargs):
        super().__init__(AdaptiveEvents.CHOOSE_ENTITY, actions, **kwargs)


class OnChooseProperty(OnDialogEvent):
    """Fires when an entity could fill more than one property."""

    def __init__(
        self,
        actions: Optional[List[Dialog]] = None,
        properties: Optional[List[str]] = None,
        entities: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(AdaptiveEvents.CHOOSE_PROPERTY, actions, **kwargs)
        self.properties: List[str] = list(properties or [])
        self.entities: List[str] = list(entities or [])

    @staticmethod
    def _choices(state: DialogStateManager) -> List[Any]:
        value = _event_value(state)
        return value if isinstance(value, list) else []

    def constraints(self) -> List[Constraint]:
        result = super().constraints()
        for prop in self.properties:
            result.append(Constraint(
                f"property={prop}",
                lambda s, p=prop: any(getattr(c, "property", None) == p for c in self._choices(s)),
            ))
        for entity in self.entities:
            result.append(Constraint(
                f"entity={entity}",
                lambda s, e=entity: any(
                    getattr(getattr(c, "value", None), "name", None) == e for c in self._choices(s)
                ),
            ))
        return result


__all__ = [
    "Condition",
    "Constraint",
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
]
