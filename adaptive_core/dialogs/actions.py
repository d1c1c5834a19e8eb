"""
Built-in Actions

Dialogs that run as steps of an adaptive dialog's action sequence.
Values given as callables are evaluated against memory when the action
runs; anything else is used as-is.
"""

from typing import Any, Callable, List, Optional, Union

import structlog

from adaptive_core.dialogs.base import (
    Dialog,
    DialogEvent,
    DialogReason,
    DialogTurnResult,
    DialogTurnStatus,
    end_of_turn,
)
from adaptive_core.dialogs.context import ActivityTypes, DialogContext, TurnContext
from adaptive_core.dialogs.sequence import ActionChangeList, ActionChangeType, ActionContext, ActionState
from adaptive_core.events import AdaptiveEvents, DialogEvents
from adaptive_core.exceptions import DialogStateError
from adaptive_core.generators.registry import GENERATOR_KEY
from adaptive_core.memory.paths import DialogPath, ThisPath, TurnPath
from adaptive_core.memory.state import DialogStateManager


logger = structlog.get_logger(__name__)


ValueExpression = Union[Any, Callable[[DialogStateManager], Any]]


def evaluate(value: ValueExpression, state: DialogStateManager) -> Any:
    """Evaluate a value expression against memory."""
    return value(state) if callable(value) else value


# =============================================================================
# Action Scope
# =============================================================================


class ActionScope(Dialog):
    """Runs a list of actions one after another on the same stack."""

    OFFSET = "this.offset"

    def __init__(
        self,
        actions: Optional[List[Dialog]] = None,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.actions: List[Dialog] = list(actions or [])

    def get_dependencies(self) -> List[Dialog]:
        return list(self.actions)

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        if not self.actions:
            return await dc.end_dialog(None)
        return await self._begin_action(dc, 0)

    async def continue_dialog(self, dc: DialogContext) -> DialogTurnResult:
        return await self._next_action(dc)

    async def resume_dialog(
        self,
        dc: DialogContext,
        reason: DialogReason,
        result: Any = None,
    ) -> DialogTurnResult:
        return await self._next_action(dc, result)

    async def _next_action(self, dc: DialogContext, result: Any = None) -> DialogTurnResult:
        offset = dc.state.get_value(self.OFFSET, 0) + 1
        if offset < len(self.actions):
            return await self._begin_action(dc, offset)
        return await dc.end_dialog(result)

    async def _begin_action(self, dc: DialogContext, offset: int) -> DialogTurnResult:
        dc.state.set_value(self.OFFSET, offset)
        action = self.actions[offset]
        logger.debug("action_begin", scope=self.id, action=action.id, offset=offset)
        return await dc.begin_dialog(action.id)


# =============================================================================
# Output
# =============================================================================


class SendActivity(Dialog):
    """
    Sends a message.

    A string is treated as a template and rendered by the active language
    generator when one is installed.
    """

    def __init__(
        self,
        activity: ValueExpression,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.activity = activity

    async def render(self, dc: DialogContext) -> str:
        template = evaluate(self.activity, dc.state)
        generator = dc.context.turn_state.get(GENERATOR_KEY)
        if generator is not None and isinstance(template, str):
            return await generator.generate(dc, template)
        return str(template)

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        text = await self.render(dc)
        await dc.context.send_activity(text)
        return await dc.end_dialog(None)


class Ask(SendActivity):
    """
    Sends a question and ends the turn once the action sequence step is done.

    Records the properties the question expects, the ask-specific default
    operations (entity name to operation) and a retry counter that grows
    while the same question is repeated for the same event.
    """

    def __init__(
        self,
        activity: ValueExpression,
        expected_properties: Optional[ValueExpression] = None,
        default_operation: Optional[ValueExpression] = None,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(activity, dialog_id, tags)
        self.expected_properties = expected_properties
        self.default_operation = default_operation

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        state = dc.state
        expected = list(evaluate(self.expected_properties, state) or [])

        event = state.get_value(TurnPath.DIALOG_EVENT)
        event_name = getattr(event, "name", None)
        last_expected = state.get_value(DialogPath.EXPECTED_PROPERTIES)
        last_trigger = state.get_value(DialogPath.LAST_TRIGGER_EVENT)

        retries = state.get_value(DialogPath.RETRIES, 0)
        if (
            expected
            and isinstance(last_expected, list)
            and set(expected) == set(last_expected)
            and last_trigger is not None
            and last_trigger == event_name
        ):
            retries += 1
        else:
            retries = 0

        state.set_value(DialogPath.RETRIES, retries)
        state.set_value(DialogPath.LAST_TRIGGER_EVENT, event_name)
        state.set_value(DialogPath.EXPECTED_PROPERTIES, expected)

        default_operation = evaluate(self.default_operation, state)
        if default_operation:
            state.set_value(DialogPath.DEFAULT_OPERATION, dict(default_operation))
        else:
            state.remove_value(DialogPath.DEFAULT_OPERATION)

        result = await super().begin_dialog(dc, options)
        if result.status == DialogTurnStatus.COMPLETE:
            result.status = DialogTurnStatus.COMPLETE_AND_WAIT
        return result


# =============================================================================
# Memory
# =============================================================================


class SetProperty(Dialog):
    """Writes a value to memory."""

    def __init__(
        self,
        property: str,
        value: ValueExpression,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.property = property
        self.value = value

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        dc.state.set_value(self.property, evaluate(self.value, dc.state))
        return await dc.end_dialog(None)


class DeleteProperty(Dialog):
    """Removes a value from memory."""

    def __init__(self, property: str, dialog_id: Optional[str] = None, tags: Optional[List[str]] = None):
        super().__init__(dialog_id, tags)
        self.property = property

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        dc.state.remove_value(self.property)
        return await dc.end_dialog(None)


# =============================================================================
# Flow Control
# =============================================================================


class EditActions(Dialog):
    """Queues an edit of the enclosing adaptive dialog's pending actions."""

    def __init__(
        self,
        change_type: ActionChangeType,
        actions: Optional[List[Dialog]] = None,
        target_tags: Optional[List[str]] = None,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.change_type = change_type
        self.actions: List[Dialog] = list(actions or [])
        self.target_tags: List[str] = list(target_tags or [])

    def get_dependencies(self) -> List[Dialog]:
        return list(self.actions)

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        if not isinstance(dc.parent, ActionContext):
            raise DialogStateError("EditActions can only run inside an adaptive dialog")

        dc.parent.queue_changes(ActionChangeList(
            change_type=self.change_type,
            actions=[ActionState(dialog_id=action.id, options=options) for action in self.actions],
            tags=list(self.target_tags),
        ))
        return await dc.end_dialog(None)


class EmitEvent(Dialog):
    """Raises a custom event on the enclosing dialog."""

    def __init__(
        self,
        event_name: str,
        value: ValueExpression = None,
        bubble: bool = False,
        handled_property: Optional[str] = None,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.event_name = event_name
        self.value = value
        self.bubble = bubble
        self.handled_property = handled_property

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        target = dc.parent if dc.parent is not None else dc
        handled = await target.emit_event(
            self.event_name,
            evaluate(self.value, dc.state),
            bubble=self.bubble,
            from_leaf=False,
        )
        if self.handled_property:
            dc.state.set_value(self.handled_property, handled)
        logger.debug("event_emitted", event_name=self.event_name, handled=handled)
        return await dc.end_dialog(handled)


class BeginDialog(Dialog):
    """Begins another dialog and optionally stores its result."""

    def __init__(
        self,
        dialog: Union[str, Dialog],
        options: ValueExpression = None,
        result_property: Optional[str] = None,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.dialog = dialog
        self.options = options
        self.result_property = result_property

    def get_dependencies(self) -> List[Dialog]:
        return [self.dialog] if isinstance(self.dialog, Dialog) else []

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        target = self.dialog.id if isinstance(self.dialog, Dialog) else self.dialog
        return await dc.begin_dialog(target, evaluate(self.options, dc.state))

    async def resume_dialog(
        self,
        dc: DialogContext,
        reason: DialogReason,
        result: Any = None,
    ) -> DialogTurnResult:
        if self.result_property:
            dc.state.set_value(self.result_property, result)
        return await dc.end_dialog(result)


class EndDialog(Dialog):
    """Ends the enclosing adaptive dialog with a result."""

    def __init__(
        self,
        value: ValueExpression = None,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.value = value

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        result = evaluate(self.value, dc.state)
        if dc.parent is not None:
            turn_result = await dc.parent.end_dialog(result)
            turn_result.parent_ended = True
            return turn_result
        return await dc.end_dialog(result)


class CancelAllDialogs(Dialog):
    """Cancels every dialog up to the root of the conversation."""

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        return await dc.cancel_all_dialogs(cancel_parents=True)


# =============================================================================
# Input
# =============================================================================


class InputDialog(Dialog):
    """
    Base class for actions that prompt and wait for user input.

    On continue, a turn marked as interrupted re-prompts instead of
    consuming the utterance.
    """

    def __init__(
        self,
        property: Optional[str] = None,
        prompt: ValueExpression = None,
        allow_interruptions: Union[bool, Callable[[DialogStateManager], bool]] = True,
        always_prompt: bool = False,
        max_turn_count: Optional[int] = None,
        default_value: ValueExpression = None,
        dialog_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ):
        super().__init__(dialog_id, tags)
        self.property = property
        self.prompt = prompt
        self.allow_interruptions = allow_interruptions
        self.always_prompt = always_prompt
        self.max_turn_count = max_turn_count
        self.default_value = default_value

    def recognize_input(self, dc: DialogContext) -> Any:
        """Return the recognized value, or None if the input is not valid."""
        raise NotImplementedError

    async def begin_dialog(self, dc: DialogContext, options: Any = None) -> DialogTurnResult:
        dc.state.set_value(ThisPath.TURN_COUNT, 0)

        if self.property and not self.always_prompt:
            existing = dc.state.get_value(self.property)
            if existing is not None:
                return await dc.end_dialog(existing)

        await self._prompt(dc)
        return end_of_turn()

    async def continue_dialog(self, dc: DialogContext) -> DialogTurnResult:
        if dc.context.activity.type != ActivityTypes.MESSAGE:
            return end_of_turn()

        if dc.state.get_bool_value(TurnPath.INTERRUPTED):
            logger.debug("input_interrupted", dialog_id=self.id)
            await self._prompt(dc)
            return end_of_turn()

        turn_count = dc.state.get_value(ThisPath.TURN_COUNT, 0) + 1
        dc.state.set_value(ThisPath.TURN_COUNT, turn_count)

        value = self.recognize_input(dc)
        if value is not None:
            if self.property:
                dc.state.set_value(self.property, value)
            return await dc.end_dialog(value)

        if self.max_turn_count is not None and turn_count >= self.max_turn_count:
            value = evaluate(self.default_value, dc.state)
            if self.property and value is not None:
                dc.state.set_value(self.property, value)
            return await dc.end_dialog(value)

        await self._prompt(dc)
        return end_of_turn()

    async def reprompt_dialog(self, context: TurnContext, instance) -> None:
        if isinstance(self.prompt, str):
            await context.send_activity(self.prompt)

    async def on_pre_bubble_event(self, dc: DialogContext, event: DialogEvent) -> bool:
        if event.name != DialogEvents.ACTIVITY_RECEIVED or dc.context.activity.type != ActivityTypes.MESSAGE:
            return False

        allow = self.allow_interruptions
        if callable(allow):
            if dc.parent is not None:
                await dc.parent.emit_event(
                    AdaptiveEvents.RECOGNIZE_UTTERANCE,
                    dc.context.activity,
                    bubble=False,
                )
            allow = bool(allow(dc.state))
        return not allow

    async def _prompt(self, dc: DialogContext) -> None:
        if self.prompt is None:
            return
        text = evaluate(self.prompt, dc.state)
        generator = dc.context.turn_state.get(GENERATOR_KEY)
        if generator is not None and isinstance(text, str):
            text = await generator.generate(dc, text)
        await dc.context.send_activity(str(text))


class TextInput(InputDialog):
    """Collects a non-empty line of text."""

    def recognize_input(self, dc: DialogContext) -> Any:
        text = (dc.context.activity.text or "").strip()
        return text or None


__all__ = [
    "ActionScope",
    "Ask",
    "BeginDialog",
    "CancelAllDialogs",
    "DeleteProperty",
    "EditActions",
    "EmitEvent",
    "EndDialog",
    "InputDialog",
    "SendActivity",
    "SetProperty",
    "TextInput",
    "evaluate",
]
