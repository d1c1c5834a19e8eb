"""
Event Dispatch

Two-phase event state machine of an adaptive dialog. Every event first
goes through trigger selection; when no trigger handles it, the default
behavior for the (event, phase) pair runs.

Pre-bubble defaults:
    beginDialog        -> raise activityReceived once per turn
    activityReceived   -> recognize the utterance, raise recognizedIntent,
                          mark the turn interrupted when handled
    recognizeUtterance -> run recognition into turn.recognized
    repromptDialog     -> reprompt the running action

Post-bubble defaults:
    beginDialog        -> raise activityReceived once per turn
    activityReceived   -> raise unknownIntent when no actions are pending
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterator

import structlog

from adaptive_core.dialogs.base import DialogEvent
from adaptive_core.dialogs.context import Activity, ActivityTypes
from adaptive_core.dialogs.sequence import ActionContext
from adaptive_core.events import AdaptiveEvents
from adaptive_core.exceptions import DialogStateError
from adaptive_core.memory.paths import DialogPath, TurnPath
from adaptive_core.recognizers.base import RecognizerResult

if TYPE_CHECKING:
    from adaptive_core.dialogs.adaptive import AdaptiveDialog


logger = structlog.get_logger(__name__)


Handler = Callable[[ActionContext, DialogEvent], Awaitable[bool]]


def current_activity(ac: ActionContext) -> Activity:
    """The activity being processed this turn."""
    activity = ac.state.get_value(TurnPath.ACTIVITY)
    if isinstance(activity, Activity):
        return activity
    return ac.context.activity


class EventDispatcher:
    """Processes dialog events for one adaptive dialog."""

    def __init__(self, dialog: "AdaptiveDialog", max_depth: int = 100):
        self._dialog = dialog
        self.max_depth = max_depth
        self._depth_key = f"{dialog.change_key}.depth"

        self._pre_bubble: Dict[str, Handler] = {
            AdaptiveEvents.BEGIN_DIALOG: self._begin_dialog_pre,
            AdaptiveEvents.ACTIVITY_RECEIVED: self._activity_received_pre,
            AdaptiveEvents.RECOGNIZE_UTTERANCE: self._recognize_utterance_pre,
            AdaptiveEvents.REPROMPT_DIALOG: self._reprompt_dialog_pre,
        }
        self._post_bubble: Dict[str, Handler] = {
            AdaptiveEvents.BEGIN_DIALOG: self._begin_dialog_post,
            AdaptiveEvents.ACTIVITY_RECEIVED: self._activity_received_post,
        }

    @contextmanager
    def guard(self, ac: ActionContext, label: str) -> Iterator[int]:
        """Bound re-entrant dispatch within one turn."""
        turn_state = ac.context.turn_state
        depth = turn_state.get(self._depth_key, 0) + 1
        if depth > self.max_depth:
            raise DialogStateError(
                "Maximum event depth exceeded",
                {"dialog_id": self._dialog.id, "at": label, "depth": depth},
            )
        turn_state[self._depth_key] = depth
        try:
            yield depth
        finally:
            turn_state[self._depth_key] = depth - 1

    async def process_event(self, ac: ActionContext, event: DialogEvent, pre_bubble: bool) -> bool:
        """
        Process one event in one phase.

        Returns:
            True if a trigger or a default behavior handled the event
        """
        with self.guard(ac, event.name):
            state = ac.state
            state.set_value(TurnPath.DIALOG_EVENT, event)

            if pre_bubble:
                await self._promote(ac, event)

            counter = state.get_value(DialogPath.EVENT_COUNTER, 0)
            if not isinstance(counter, int):
                counter = 0
            state.set_value(DialogPath.EVENT_COUNTER, counter + 1)

            handled = await self._queue_first_match(ac, event)
            if not handled:
                handlers = self._pre_bubble if pre_bubble else self._post_bubble
                handler = handlers.get(event.name)
                if handler is not None:
                    handled = await handler(ac, event)

            logger.debug(
                "event_processed",
                dialog_id=self._dialog.id,
                event_name=event.name,
                pre_bubble=pre_bubble,
                handled=handled,
            )
            return handled

    async def _promote(self, ac: ActionContext, event: DialogEvent) -> None:
        state = ac.state

        if event.name == AdaptiveEvents.RECOGNIZED_INTENT:
            recognized = event.value
            if isinstance(recognized, RecognizerResult):
                state.set_value(TurnPath.RECOGNIZED, recognized)
            else:
                recognized = state.get_value(TurnPath.RECOGNIZED)
            if isinstance(recognized, RecognizerResult):
                intent, score = recognized.get_top_scoring_intent()
                state.set_value(TurnPath.TOP_INTENT, intent)
                state.set_value(TurnPath.TOP_SCORE, score)
                state.set_value(DialogPath.LAST_INTENT, intent)
                await self._dialog.process_entities(ac, recognized)

        elif event.name == AdaptiveEvents.ACTIVITY_RECEIVED:
            state.set_value(TurnPath.ACTIVITY, event.value)

    async def _queue_first_match(self, ac: ActionContext, event: DialogEvent) -> bool:
        selection = await self._dialog.selector.select(ac)
        if not selection:
            return False

        trigger = selection[0]
        changes = await trigger.execute(ac)
        if not changes:
            return False

        ac.queue_changes(changes[0])
        logger.info(
            "trigger_selected",
            dialog_id=self._dialog.id,
            event_name=event.name,
            trigger=trigger.id,
            trigger_type=type(trigger).__name__,
        )
        return True

    # -------------------------------------------------------------------------
    # Pre-bubble Defaults
    # -------------------------------------------------------------------------

    async def _begin_dialog_pre(self, ac: ActionContext, event: DialogEvent) -> bool:
        if ac.state.get_bool_value(TurnPath.ACTIVITY_PROCESSED):
            return False
        received = DialogEvent(AdaptiveEvents.ACTIVITY_RECEIVED, ac.context.activity, bubble=False)
        return await self.process_event(ac, received, pre_bubble=True)

    async def _activity_received_pre(self, ac: ActionContext, event: DialogEvent) -> bool:
        handled = False
        activity = current_activity(ac)
        if activity.type == ActivityTypes.MESSAGE:
            recognize = DialogEvent(AdaptiveEvents.RECOGNIZE_UTTERANCE, activity, bubble=False)
            await self.process_event(ac, recognize, pre_bubble=True)

            recognized = ac.state.get_value(TurnPath.RECOGNIZED)
            intent = DialogEvent(AdaptiveEvents.RECOGNIZED_INTENT, recognized, bubble=False)
            handled = await self.process_event(ac, intent, pre_bubble=True)

        if handled:
            ac.state.set_value(TurnPath.INTERRUPTED, True)
            logger.debug("turn_interrupted", dialog_id=self._dialog.id, event_name=event.name)
        return handled

    async def _recognize_utterance_pre(self, ac: ActionContext, event: DialogEvent) -> bool:
        activity = event.value if isinstance(event.value, Activity) else current_activity(ac)
        if activity.type != ActivityTypes.MESSAGE:
            return False

        recognized = await self._dialog.on_recognize(ac, activity)
        ac.state.set_value(TurnPath.RECOGNIZED, recognized)
        intent, score = recognized.get_top_scoring_intent()
        logger.info(
            "utterance_recognized",
            dialog_id=self._dialog.id,
            intent=intent,
            score=score,
        )
        return True

    async def _reprompt_dialog_pre(self, ac: ActionContext, event: DialogEvent) -> bool:
        await self._dialog.reprompt_dialog(ac.context, ac.active_dialog)
        return True

    # -------------------------------------------------------------------------
    # Post-bubble Defaults
    # -------------------------------------------------------------------------

    async def _begin_dialog_post(self, ac: ActionContext, event: DialogEvent) -> bool:
        if ac.state.get_bool_value(TurnPath.ACTIVITY_PROCESSED):
            return False
        received = DialogEvent(AdaptiveEvents.ACTIVITY_RECEIVED, ac.context.activity, bubble=False)
        return await self.process_event(ac, received, pre_bubble=False)

    async def _activity_received_post(self, ac: ActionContext, event: DialogEvent) -> bool:
        handled = False
        if current_activity(ac).type == ActivityTypes.MESSAGE and not ac.actions:
            unknown = DialogEvent(AdaptiveEvents.UNKNOWN_INTENT, bubble=False)
            handled = await self.process_event(ac, unknown, pre_bubble=False)

        if handled:
            ac.state.set_value(TurnPath.INTERRUPTED, True)
        return handled


__all__ = ["EventDispatcher", "current_activity"]
