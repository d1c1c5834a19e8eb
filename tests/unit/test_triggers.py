"""Unit tests for triggers."""

import pytest

from adaptive_core.dialogs import (
    ActionContext,
    DialogEvent,
    OnAssignEntity,
    OnBeginDialog,
    OnChooseEntity,
    OnChooseProperty,
    OnCondition,
    OnIntent,
    SendActivity,
)
from adaptive_core.entities import EntityAssignment
from adaptive_core.events import AdaptiveEvents
from adaptive_core.memory import DialogPath


def raise_event(dc, name, value=None):
    dc.state.set_value("turn.dialogEvent", DialogEvent(name, value))


class TestOnCondition:
    """Tests for OnCondition."""

    def test_no_condition_matches(self, container_dc):
        """Test a trigger without constraints always matches."""
        assert OnCondition().matches(container_dc.state) is True

    def test_failing_expression_does_not_match(self, container_dc):
        """Test a condition that raises is treated as false."""
        trigger = OnCondition(condition=lambda s: s.get_value("dialog.missing")["key"])
        assert trigger.matches(container_dc.state) is False

    def test_current_priority_defaults_to_zero(self, container_dc):
        """Test an unset priority."""
        assert OnCondition().current_priority(container_dc.state) == 0

    def test_action_scope_wraps_actions(self):
        """Test the trigger's actions run in one scope carrying its tags."""
        send = SendActivity("hi")
        trigger = OnCondition(actions=[send], tags=["greeting"])

        assert trigger.action_scope.actions == [send]
        assert trigger.action_scope.tags == ["greeting"]
        assert trigger.get_dependencies() == [trigger.action_scope]

    @pytest.mark.asyncio
    async def test_execute_queues_action_scope(self, container_dc):
        """Test executing produces one insert of the action scope."""
        root = container_dc.find_dialog("root")
        ac = root._to_action_context(container_dc)
        trigger = OnCondition(actions=[SendActivity("hi")])

        [changes] = await trigger.execute(ac)

        assert [a.dialog_id for a in changes.actions] == [trigger.action_scope.id]
        assert isinstance(ac, ActionContext)


class TestRunOnce:
    """Tests for run-once triggers."""

    @pytest.mark.asyncio
    async def test_runs_again_after_reference_changes(self, container_dc):
        """Test a run-once trigger re-arms when a referenced path changes."""
        state = container_dc.state
        root = container_dc.find_dialog("root")
        ac = root._to_action_context(container_dc)

        trigger = OnCondition(condition=lambda s: True, run_once=True, references=["dialog.name"])
        trigger.id = "0"
        state.set_value(f"{DialogPath.CONDITION_TRACKER}.0.paths", state.track(["dialog.name"]))

        assert trigger.matches(state) is True

        state.set_value(DialogPath.EVENT_COUNTER, 3)
        await trigger.execute(ac)
        assert trigger.matches(state) is False

        state.set_value(DialogPath.EVENT_COUNTER, 5)
        state.set_value("dialog.name", "Bob")
        assert trigger.matches(state) is True


class TestEventTriggers:
    """Tests for event-specific triggers."""

    def test_on_begin_dialog(self, container_dc):
        """Test matching by event name."""
        trigger = OnBeginDialog()

        raise_event(container_dc, AdaptiveEvents.BEGIN_DIALOG)
        assert trigger.matches(container_dc.state) is True

        raise_event(container_dc, AdaptiveEvents.ACTIVITY_RECEIVED)
        assert trigger.matches(container_dc.state) is False

    def test_on_intent_constraint_keys(self):
        """Test intent triggers name their constraints."""
        trigger = OnIntent("Book", entities=["city"])

        assert trigger.constraint_keys() == frozenset({
            "event=recognizedIntent",
            "intent=Book",
            "entity=city",
        })

    def test_on_intent_matches_top_intent(self, container_dc):
        """Test intent triggers compare the top intent."""
        raise_event(container_dc, AdaptiveEvents.RECOGNIZED_INTENT)
        container_dc.state.set_value("turn.topIntent", "Book")

        assert OnIntent("Book").matches(container_dc.state) is True
        assert OnIntent("Cancel").matches(container_dc.state) is False
        assert OnIntent("Book", entities=["city"]).matches(container_dc.state) is False

    def test_on_assign_entity_filters(self, container_dc, entity):
        """Test property, entity and operation filters on the event value."""
        assignment = EntityAssignment(
            entity("city", "Paris"),
            AdaptiveEvents.ASSIGN_ENTITY,
            property="destination",
            operation="set",
        )
        raise_event(container_dc, AdaptiveEvents.ASSIGN_ENTITY, assignment)
        state = container_dc.state

        assert OnAssignEntity(property="destination").matches(state) is True
        assert OnAssignEntity(property="destination", entity="city", operation="set").matches(state) is True
        assert OnAssignEntity(property="origin").matches(state) is False
        assert OnAssignEntity(entity="airport").matches(state) is False
        assert OnChooseEntity(property="destination").matches(state) is False

    def test_on_choose_property(self, container_dc, entity):
        """Test choose-property triggers look through every alternative."""
        paris = entity("city", "Paris")
        choices = [
            EntityAssignment(paris, AdaptiveEvents.CHOOSE_PROPERTY, "origin"),
            EntityAssignment(paris, AdaptiveEvents.CHOOSE_PROPERTY, "destination"),
        ]
        raise_event(container_dc, AdaptiveEvents.CHOOSE_PROPERTY, choices)
        state = container_dc.state

        assert OnChooseProperty(properties=["origin", "destination"]).matches(state) is True
        assert OnChooseProperty(entities=["city"]).matches(state) is True
        assert OnChooseProperty(properties=["date"]).matches(state) is False
