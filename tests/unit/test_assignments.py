"""Unit tests for entity assignments and their queue."""

from adaptive_core.entities import EntityAssignment, EntityAssignmentComparer, EntityAssignments
from adaptive_core.events import AdaptiveEvents
from adaptive_core.memory import DialogPath


class TestEntityAssignment:
    """Tests for EntityAssignment."""

    def test_alternatives_include_owner(self, entity):
        """Test the owner leads its alternatives."""
        owner = EntityAssignment(entity("city", "Paris"), property="origin")
        other = EntityAssignment(entity("city", "Paris"), property="destination")
        owner.add_alternatives([other])

        assert owner.alternatives == [owner, other]
        assert owner.has_alternatives is True
        assert other.has_alternatives is False

    def test_add_alternatives_flattens(self, entity):
        """Test chains carried by alternatives are flattened onto the owner."""
        a = EntityAssignment(entity("x"), property="a")
        b = EntityAssignment(entity("x"), property="b")
        c = EntityAssignment(entity("x"), property="c")
        b.add_alternatives([c])

        a.add_alternatives([b])

        assert a.alternative_assignments == [b, c]
        assert b.alternative_assignments == []
        assert c.alternative_assignments == []

    def test_add_alternatives_skips_owner(self, entity):
        """Test an owner is never its own alternative."""
        a = EntityAssignment(entity("x"), property="a")
        b = EntityAssignment(entity("x"), property="b")
        b.add_alternatives([a])

        a.add_alternatives([b])

        assert a.alternative_assignments == [b]

    def test_dict_keeps_alternatives(self, entity):
        """Test alternatives survive a dictionary conversion."""
        owner = EntityAssignment(
            entity("city", "Paris", 5, 10),
            event=AdaptiveEvents.CHOOSE_PROPERTY,
            property="origin",
            raised_count=2,
        )
        owner.add_alternatives([EntityAssignment(entity("city", "Paris", 5, 10), property="destination")])

        restored = EntityAssignment.from_dict(owner.to_dict())

        assert restored.event == AdaptiveEvents.CHOOSE_PROPERTY
        assert restored.raised_count == 2
        assert [a.property for a in restored.alternatives] == ["origin", "destination"]
        assert restored.value.value == "Paris"


class TestEntityAssignmentComparer:
    """Tests for queue ordering."""

    def test_event_order(self, entity):
        """Test AssignEntity, then ChooseProperty, then ChooseEntity."""
        comparer = EntityAssignmentComparer()
        choose_entity = EntityAssignment(entity("x"), AdaptiveEvents.CHOOSE_ENTITY)
        choose_property = EntityAssignment(entity("x"), AdaptiveEvents.CHOOSE_PROPERTY)
        assign = EntityAssignment(entity("x"), AdaptiveEvents.ASSIGN_ENTITY)

        assert comparer.sort([choose_entity, choose_property, assign]) == [assign, choose_property, choose_entity]

    def test_unexpected_first(self, entity):
        """Test unexpected assignments come before expected ones."""
        comparer = EntityAssignmentComparer()
        expected = EntityAssignment(entity("x"), AdaptiveEvents.ASSIGN_ENTITY, is_expected=True)
        unexpected = EntityAssignment(entity("x"), AdaptiveEvents.ASSIGN_ENTITY)

        assert comparer.sort([expected, unexpected]) == [unexpected, expected]

    def test_older_first(self, entity):
        """Test older recognitions come first."""
        comparer = EntityAssignmentComparer()
        newer = EntityAssignment(entity("x", when_recognized=5), AdaptiveEvents.ASSIGN_ENTITY)
        older = EntityAssignment(entity("x", when_recognized=2), AdaptiveEvents.ASSIGN_ENTITY)

        assert comparer.compare(older, newer) == -1
        assert comparer.sort([newer, older]) == [older, newer]

    def test_operation_preference(self, entity):
        """Test the schema's operation order breaks remaining ties."""
        comparer = EntityAssignmentComparer(["add", "remove"])
        remove = EntityAssignment(entity("x"), AdaptiveEvents.ASSIGN_ENTITY, operation="remove")
        add = EntityAssignment(entity("x"), AdaptiveEvents.ASSIGN_ENTITY, operation="add")

        assert comparer.sort([remove, add]) == [add, remove]
        assert comparer.compare(add, add) == 0


class TestEntityAssignments:
    """Tests for the persisted assignment queue."""

    def test_write_and_read(self, container_dc, entity):
        """Test the queue is stored as dictionaries in dialog memory."""
        state = container_dc.state
        queue = EntityAssignments([
            EntityAssignment(entity("city", "Paris", 0, 5), AdaptiveEvents.ASSIGN_ENTITY, "destination"),
        ])
        queue.write(state)

        stored = state.get_value(DialogPath.ENTITY_ASSIGNMENTS)
        assert isinstance(stored[0], dict)

        loaded = EntityAssignments.read(state)
        assert len(loaded) == 1
        assert loaded.next_assignment.property == "destination"

    def test_read_invalid_value(self, container_dc):
        """Test an unexpected stored value reads as an empty queue."""
        container_dc.state.set_value(DialogPath.ENTITY_ASSIGNMENTS, "garbage")
        assert len(EntityAssignments.read(container_dc.state)) == 0

    def test_read_skips_bad_entries(self, container_dc, entity):
        """Test malformed entries are skipped."""
        good = EntityAssignment(entity("city", "Paris"), AdaptiveEvents.ASSIGN_ENTITY, "destination").to_dict()
        container_dc.state.set_value(DialogPath.ENTITY_ASSIGNMENTS, [good, 42, {"event": "assignEntity"}])

        loaded = EntityAssignments.read(container_dc.state)
        assert [a.property for a in loaded] == ["destination"]

    def test_dequeue(self, entity):
        """Test FIFO removal."""
        first = EntityAssignment(entity("a"))
        second = EntityAssignment(entity("b"))
        queue = EntityAssignments([first, second])

        assert queue.dequeue() is first
        assert queue.next_assignment is second
        assert queue.dequeue() is second
        assert queue.dequeue() is None
        assert queue.next_assignment is None

    def test_sort_is_stable(self, entity):
        """Test equal assignments keep their order across repeated sorts."""
        comparer = EntityAssignmentComparer(["add"])
        first = EntityAssignment(entity("a", when_recognized=1), AdaptiveEvents.ASSIGN_ENTITY, operation="add")
        second = EntityAssignment(entity("b", when_recognized=1), AdaptiveEvents.ASSIGN_ENTITY, operation="add")
        prompt = EntityAssignment(entity("c", when_recognized=0), AdaptiveEvents.CHOOSE_ENTITY)
        third = EntityAssignment(entity("d", when_recognized=1), AdaptiveEvents.ASSIGN_ENTITY, operation="add")

        once = comparer.sort([first, prompt, second, third])
        twice = comparer.sort(once)

        assert once == [first, second, third, prompt]
        assert twice == once
