"""
Adaptive Dialog

A dialog driven by triggers. Each event raised on the dialog is matched
against its triggers; the selected trigger queues actions, which run one
at a time until one waits for input. When no actions remain, pending
entity assignments are surfaced one per cycle as AssignEntity,
ChooseEntity or ChooseProperty events.

Usage:
    dialog = AdaptiveDialog(
        "book",
        recognizer=RegexRecognizer(...),
        schema={"properties": {"destination": {"type": "string"}}},
        triggers=[
            OnIntent("BookFlight", actions=[Ask("Where to?", expected_properties=["destination"])]),
            OnAssignEntity(property="destination", actions=[SetProperty(...)]),
        ],
    )
"""

import threading
import uuid
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import structlog

from adaptive_core.config import Settings, get_settings
from adaptive_core.dialogs.actions import InputDialog, SendActivity
from adaptive_core.dialogs.base import (
    Dialog,
    DialogContainer,
    DialogEvent,
    DialogInstance,
    DialogReason,
    DialogTurnResult,
    DialogTurnStatus,
    end_of_turn,
)
from adaptive_core.dialogs.context import Activity, ActivityTypes, DialogContext, TurnContext
from adaptive_core.dialogs.dispatch import EventDispatcher, current_activity
from adaptive_core.dialogs.selectors import FirstSelector, MostSpecificSelector, TriggerSelector
from adaptive_core.dialogs.sequence import ActionContext, AdaptiveDialogState
from adaptive_core.dialogs.triggers import OnCondition
from adaptive_core.entities.assignments import EntityAssignments
from adaptive_core.entities.info import UTTERANCE_ENTITY
from adaptive_core.entities.normalizer import EntityNormalizer
from adaptive_core.entities.resolver import EntityResolver, split_utterance, utterance_entity
from adaptive_core.events import AdaptiveEvents
from adaptive_core.exceptions import DialogStateError
from adaptive_core.generators.registry import GENERATOR_KEY, GENERATOR_REGISTRY_KEY, LanguageGenerator
from adaptive_core.memory.paths import DialogPath, ThisPath, TurnPath
from adaptive_core.recognizers.base import IntentScore, Recognizer, RecognizerResult
from adaptive_core.schema.dialog_schema import DialogSchema


logger = structlog.get_logger(__name__)


# Default trigger priority bands
PRIORITY_BAND_OUTPUT = 1000
PRIORITY_BAND_INPUT = 2000


class AdaptiveDialog(DialogContainer):
    """
    Trigger-driven dialog with an action sequencer and entity assignment.

    Event handling is delegated to an EventDispatcher; the dialog itself
    owns the action loop and the assignment queue.
    """

    ADAPTIVE_KEY = "_sequence"

    def __init__(
        self,
        dialog_id: Optional[str] = None,
        triggers: Optional[List[OnCondition]] = None,
        recognizer: Optional[Recognizer] = None,
        selector: Optional[TriggerSelector] = None,
        schema: Union[DialogSchema, Dict[str, Any], None] = None,
        generator: Union[LanguageGenerator, str, None] = None,
        auto_end_dialog: Optional[bool] = None,
        default_result_property: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(dialog_id)
        self.settings = settings or get_settings()

        self.triggers: List[OnCondition] = list(triggers or [])
        self.recognizer = recognizer
        self.selector = selector
        self.generator = generator
        self.auto_end_dialog = (
            auto_end_dialog if auto_end_dialog is not None else self.settings.auto_end_dialog
        )
        self.default_result_property = default_result_property or self.settings.default_result_property

        if isinstance(schema, dict):
            schema = DialogSchema(schema)
        self.schema: Optional[DialogSchema] = schema
        self._normalizer: Optional[EntityNormalizer] = None
        self._resolver: Optional[EntityResolver] = None
        if schema is not None:
            self._normalizer = EntityNormalizer(schema.operations, schema.property_names())
            self._resolver = EntityResolver(schema, self.settings.default_operation)

        suffix = uuid.uuid4().hex
        self.change_key = f"adaptive.changes.{suffix}"
        self._parent_generator_key = f"adaptive.parentGenerator.{suffix}"

        self._dispatcher = EventDispatcher(self, self.settings.max_event_depth)
        self._installed = False
        self._needs_tracker = False
        self._install_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Installation
    # -------------------------------------------------------------------------

    def get_dependencies(self) -> List[Dialog]:
        self._ensure_dependencies_installed()
        return []

    def _ensure_dependencies_installed(self) -> None:
        with self._install_lock:
            if self._installed:
                return

            for index, trigger in enumerate(self.triggers):
                trigger.id = str(index)
                if trigger.priority is None:
                    trigger.priority = self._default_priority(trigger, index)
                if trigger.run_once:
                    self._needs_tracker = True
                for dependency in trigger.get_dependencies():
                    self.dialogs.add(dependency)

            if self.selector is None:
                self.selector = MostSpecificSelector(FirstSelector())
            self.selector.initialize(self.triggers)

            self._installed = True
            logger.info(
                "adaptive_dialog_installed",
                dialog_id=self.id,
                triggers=len(self.triggers),
                dialogs=len(self.dialogs),
            )

    def _default_priority(self, trigger: OnCondition, index: int) -> int:
        actions = list(_walk_actions(trigger.actions))
        if any(isinstance(action, InputDialog) for action in actions):
            return PRIORITY_BAND_INPUT + index
        if any(isinstance(action, SendActivity) for action in actions):
            return PRIORITY_BAND_OUTPUT + index
        return index

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        self._ensure_dependencies_installed()
        state = dc.state

        if not isinstance(state.get_value(DialogPath.EVENT_COUNTER), int):
            state.set_value(DialogPath.EVENT_COUNTER, 0)

        if self.schema is not None:
            state.set_value(TurnPath.SCHEMA, self.schema.schema)
            if state.get_value(DialogPath.REQUIRED_PROPERTIES) is None:
                state.set_value(DialogPath.REQUIRED_PROPERTIES, self.schema.required())

        if self._needs_tracker and not state.contains_key(DialogPath.CONDITION_TRACKER):
            for trigger in self.triggers:
                if trigger.run_once:
                    tracker = f"{DialogPath.CONDITION_TRACKER}.{trigger.id}"
                    state.set_value(f"{tracker}.paths", state.track(trigger.references))
                    state.set_value(f"{tracker}.lastRun", 0)

        self._install_generator(dc.context)

        dc.active_dialog.state[self.ADAPTIVE_KEY] = AdaptiveDialogState(options=options)
        state.set_value(ThisPath.OPTIONS, options)

        logger.info("adaptive_dialog_begin", dialog_id=self.id)
        await self.on_dialog_event(dc, DialogEvent(AdaptiveEvents.BEGIN_DIALOG, options, bubble=False))
        state.set_value(TurnPath.ACTIVITY_PROCESSED, True)

        return await self.continue_actions(dc)

    async def continue_dialog(self, dc: DialogContext) -> DialogTurnResult:
        self._ensure_dependencies_installed()
        self._install_generator(dc.context)
        return await self.continue_actions(dc)

    async def resume_dialog(
        self,
        dc: DialogContext,
        reason: DialogReason,
        result: Any = None,
    ) -> DialogTurnResult:
        # A dialog pushed on top of this one ended; actions run on their own stacks
        self._install_generator(dc.context)
        await self.reprompt_dialog(dc.context, dc.active_dialog)
        return end_of_turn()

    async def end_dialog(
        self,
        context: TurnContext,
        instance: DialogInstance,
        reason: DialogReason,
    ) -> None:
        self._restore_generator(context)
        logger.info("adaptive_dialog_end", dialog_id=self.id, reason=reason.value)

    async def reprompt_dialog(self, context: TurnContext, instance: DialogInstance) -> None:
        state = instance.state.get(self.ADAPTIVE_KEY)
        if isinstance(state, AdaptiveDialogState) and state.actions:
            action_dc = DialogContext(self.dialogs, context, state.actions[0].dialog_stack)
            await action_dc.reprompt_dialog()

    # -------------------------------------------------------------------------
    # Contexts
    # -------------------------------------------------------------------------

    def _adaptive_state(self, instance: DialogInstance) -> AdaptiveDialogState:
        state = instance.state.get(self.ADAPTIVE_KEY)
        if not isinstance(state, AdaptiveDialogState):
            state = AdaptiveDialogState()
            instance.state[self.ADAPTIVE_KEY] = state
        return state

    def create_child_context(self, dc: DialogContext) -> Optional[DialogContext]:
        instance = dc.active_dialog
        if instance is None:
            return None
        state = self._adaptive_state(instance)
        if not state.actions:
            return None
        return DialogContext(self.dialogs, dc.context, state.actions[0].dialog_stack, parent=dc)

    def _to_action_context(self, dc: DialogContext) -> ActionContext:
        state = self._adaptive_state(dc.active_dialog)
        return ActionContext(dc.dialogs, dc, state.actions, self.change_key, self.dialogs)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def on_pre_bubble_event(self, dc: DialogContext, event: DialogEvent) -> bool:
        return await self._dispatcher.process_event(self._to_action_context(dc), event, pre_bubble=True)

    async def on_post_bubble_event(self, dc: DialogContext, event: DialogEvent) -> bool:
        return await self._dispatcher.process_event(self._to_action_context(dc), event, pre_bubble=False)

    # -------------------------------------------------------------------------
    # Action Loop
    # -------------------------------------------------------------------------

    @staticmethod
    def _instance_fingerprint(dc: DialogContext) -> Tuple[int, str, int]:
        instance = dc.active_dialog
        if instance is None:
            return 0, "", 0
        return len(dc.stack), instance.id, id(instance)

    async def continue_actions(self, dc: DialogContext) -> DialogTurnResult:
        """
        Run pending actions until one waits for input or none remain.

        Every iteration after the first marks the turn as interrupted, so a
        paused action resumed behind newly inserted ones re-prompts instead
        of consuming the utterance again.
        """
        ac = self._to_action_context(dc)
        with self._dispatcher.guard(ac, "continueActions"):
            await ac.apply_changes()
            fingerprint = self._instance_fingerprint(ac)

            interrupted = False
            action_dc = self.create_child_context(ac)
            while action_dc is not None:
                if interrupted and not ac.state.contains_key(TurnPath.INTERRUPTED):
                    ac.state.set_value(TurnPath.INTERRUPTED, True)

                result = await action_dc.continue_dialog()
                if result.status == DialogTurnStatus.EMPTY and self._instance_fingerprint(ac) == fingerprint:
                    action = ac.actions[0]
                    result = await action_dc.begin_dialog(action.dialog_id, action.options)

                if result.status == DialogTurnStatus.WAITING or self._instance_fingerprint(ac) != fingerprint:
                    return result

                self._end_current_action(ac)

                if result.status == DialogTurnStatus.COMPLETE_AND_WAIT:
                    result.status = DialogTurnStatus.WAITING
                    return result

                root = _root_with_changes(ac)
                if root is not None:
                    logger.debug("parent_changes_pending", dialog_id=self.id)
                    return await root.continue_dialog()

                await ac.apply_changes()
                action_dc = self.create_child_context(ac)
                interrupted = True

            return await self._on_end_of_actions(ac)

    def _end_current_action(self, ac: ActionContext) -> None:
        if ac.actions:
            finished = ac.actions.pop(0)
            logger.debug("action_ended", dialog_id=self.id, action=finished.dialog_id, pending=len(ac.actions))

    async def _on_end_of_actions(self, ac: ActionContext) -> DialogTurnResult:
        if ac.active_dialog is None:
            return DialogTurnResult(status=DialogTurnStatus.CANCELLED)

        handled = await self._process_queues(ac)
        if handled:
            return await self.continue_actions(ac)

        if self.auto_end_dialog:
            self._restore_generator(ac.context)
            _, result = ac.state.try_get_value(self.default_result_property)
            logger.info("adaptive_dialog_complete", dialog_id=self.id, has_result=result is not None)
            return await ac.end_dialog(result)

        return end_of_turn()

    async def _process_queues(self, ac: ActionContext) -> bool:
        """Surface the head of the assignment queue, or EndOfActions when empty."""
        state = ac.state
        assignments = EntityAssignments.read(state)
        assignment = assignments.next_assignment

        if assignment is None:
            event = DialogEvent(AdaptiveEvents.END_OF_ACTIONS, bubble=False)
            return await self.on_dialog_event(ac, event)

        alternatives = assignment.alternatives
        value = alternatives if len(alternatives) > 1 else assignment
        event = DialogEvent(assignment.event, value, bubble=False)

        if assignment.raised_count == 0:
            state.remove_value(DialogPath.RETRIES)
        assignment.raised_count += 1

        if assignment.event == AdaptiveEvents.ASSIGN_ENTITY:
            entity = assignment.value
            entity_value = entity.value if isinstance(entity.value, list) else [entity.value]
            state.set_value(f"{TurnPath.RECOGNIZED}.entities.{entity.name}", entity_value)
            assignments.dequeue()

        assignments.write(state)
        state.set_value(DialogPath.LAST_EVENT, event.name)

        logger.info(
            "assignment_raised",
            dialog_id=self.id,
            event_name=event.name,
            property=assignment.property,
            entity=assignment.value.name,
            raised_count=assignment.raised_count,
        )

        handled = await self._dispatcher.process_event(ac, event, pre_bubble=True)
        if not handled:
            if assignment.event != AdaptiveEvents.ASSIGN_ENTITY:
                assignments = EntityAssignments.read(state)
                assignments.dequeue()
                assignments.write(state)
            handled = await self._process_queues(ac)

        return handled

    # -------------------------------------------------------------------------
    # Recognition
    # -------------------------------------------------------------------------

    async def on_recognize(self, ac: ActionContext, activity: Activity) -> RecognizerResult:
        """
        Recognize an activity.

        A card submission (no text, a value carrying an ``intent`` key) maps
        directly to a result; otherwise the recognizer runs and only its top
        intent is kept.
        """
        value = activity.value
        if not activity.text and isinstance(value, dict) and "intent" in value:
            recognized = RecognizerResult(text="")
            for name, item in value.items():
                if name.lower() == "intent":
                    recognized.intents[str(item)] = IntentScore(score=1.0)
                else:
                    recognized.entities.setdefault(name, []).append(item)
            return recognized

        if self.recognizer is not None:
            recognized = await self.recognizer.recognize(ac, activity)
            intent, score = recognized.get_top_scoring_intent()
            recognized.intents = {intent: IntentScore(score=score)}
            return recognized

        return RecognizerResult(text=activity.text or "", intents={"None": IntentScore(score=0.0)})

    async def process_entities(self, ac: ActionContext, recognized: RecognizerResult) -> None:
        """Normalize recognized entities and merge them into the assignment queue."""
        if self.schema is None:
            return

        state = ac.state
        last_event = state.get_value(DialogPath.LAST_EVENT)
        state.remove_value(DialogPath.LAST_EVENT)

        activity = current_activity(ac)
        utterance = activity.text if activity.type == ActivityTypes.MESSAGE and activity.text else ""
        turn = state.get_value(DialogPath.EVENT_COUNTER, 0)

        entities = self._normalizer.normalize(recognized.entities, recognized.text or utterance, turn)
        if utterance:
            entities[UTTERANCE_ENTITY] = [utterance_entity(utterance, turn)]

        expected = state.get_value(DialogPath.EXPECTED_PROPERTIES)
        if not isinstance(expected, list):
            expected = []
        ask_default = state.get_value(DialogPath.DEFAULT_OPERATION)
        if not isinstance(ask_default, dict):
            ask_default = None

        result = self._resolver.assign_entities(
            entities,
            EntityAssignments.read(state),
            expected,
            last_event=last_event,
            ask_default=ask_default,
        )

        if result.expected_properties:
            state.set_value(DialogPath.EXPECTED_PROPERTIES, result.expected_properties)
        state.set_value(TurnPath.RECOGNIZED_ENTITIES, result.recognized)
        state.set_value(TurnPath.UNRECOGNIZED_TEXT, split_utterance(utterance, result.recognized))
        result.assignments.write(state)

        logger.info(
            "entities_processed",
            dialog_id=self.id,
            entities=sorted(entities),
            recognized=len(result.recognized),
            queued=len(result.assignments),
        )

    # -------------------------------------------------------------------------
    # Language Generation
    # -------------------------------------------------------------------------

    def _install_generator(self, context: TurnContext) -> None:
        if self.generator is None:
            return

        generator = self.generator
        if isinstance(generator, str):
            registry = context.turn_state.get(GENERATOR_REGISTRY_KEY)
            if registry is None:
                raise DialogStateError(
                    "No generator registry available for resource",
                    {"dialog_id": self.id, "resource_id": generator},
                )
            generator = registry.get(generator)

        if self._parent_generator_key not in context.turn_state:
            context.turn_state[self._parent_generator_key] = context.turn_state.get(GENERATOR_KEY)
        context.turn_state[GENERATOR_KEY] = generator

    def _restore_generator(self, context: TurnContext) -> None:
        if self._parent_generator_key not in context.turn_state:
            return
        previous = context.turn_state.pop(self._parent_generator_key)
        if previous is None:
            context.turn_state.pop(GENERATOR_KEY, None)
        else:
            context.turn_state[GENERATOR_KEY] = previous


def _walk_actions(actions: List[Dialog]) -> Iterator[Dialog]:
    """Actions and their nested actions, not descending into containers."""
    for action in actions:
        yield action
        if not action.is_container:
            yield from _walk_actions(action.get_dependencies())


def _root_with_changes(ac: ActionContext) -> Optional[DialogContext]:
    """Outermost context if any ancestor action context has queued changes."""
    has_changes = False
    root: DialogContext = ac
    parent = ac.parent
    while parent is not None:
        if isinstance(parent, ActionContext) and parent.changes:
            has_changes = True
        root = parent
        parent = root.parent
    return root if has_changes else None


__all__ = ["AdaptiveDialog", "PRIORITY_BAND_INPUT", "PRIORITY_BAND_OUTPUT"]
