"""Unit tests for candidate generation, disambiguation and merging."""

import pytest

from adaptive_core.entities import (
    EntityAssignment,
    EntityAssignments,
    EntityResolver,
    split_utterance,
    utterance_entity,
)
from adaptive_core.events import AdaptiveEvents
from adaptive_core.schema import DialogSchema


@pytest.fixture
def flight_resolver() -> EntityResolver:
    return EntityResolver(DialogSchema({
        "properties": {"destination": {"type": "string", "$entities": ["city"]}},
        "$defaultOperation": {"destination": {"": "set"}},
    }))


@pytest.fixture
def route_resolver() -> EntityResolver:
    return EntityResolver(DialogSchema({
        "properties": {
            "origin": {"type": "string", "$entities": ["city"]},
            "destination": {"type": "string", "$entities": ["city"]},
        },
    }))


@pytest.fixture
def size_resolver() -> EntityResolver:
    return EntityResolver(DialogSchema({
        "properties": {"size": {"type": "string", "enum": ["small", "medium", "large"]}},
    }))


class TestUtterance:
    """Tests for utterance helpers."""

    def test_utterance_entity(self):
        """Test the synthetic utterance entity spans the whole text."""
        info = utterance_entity("hello there", 3)

        assert info.name == "utterance"
        assert info.value == "hello there"
        assert (info.start, info.end) == (0, 11)
        assert info.when_recognized == 3

    def test_split_utterance(self, entity):
        """Test the text around recognized entities."""
        utterance = "book a flight to Paris please"
        recognized = [entity("city", "Paris", 17, 22)]

        assert split_utterance(utterance, recognized) == ["book a flight to", "please"]

    def test_split_utterance_drops_empty_pieces(self, entity):
        """Test adjacent and overlapping entities leave no empty pieces."""
        recognized = [entity("a", None, 0, 3), entity("b", None, 2, 5), entity("c", None, 6, 9)]
        assert split_utterance("abcde fgh", recognized) == []


class TestDefaultOperation:
    """Tests for default operation lookup."""

    def test_lookup_order(self, flight_resolver, entity):
        """Test the ask table wins over the schema table."""
        assignment = EntityAssignment(value=entity("city", "Paris"), property="destination")
        schema_table = flight_resolver.schema.default_operations

        assert flight_resolver.default_operation(assignment, None, schema_table) == "set"
        assert flight_resolver.default_operation(assignment, {"city": "add"}, schema_table) == "add"
        assert flight_resolver.default_operation(assignment, {"": "clear"}, schema_table) == "clear"

    def test_fallback(self, entity):
        """Test the configured fallback when no table has an entry."""
        resolver = EntityResolver(DialogSchema({"properties": {"a": {"type": "string"}}}), "set")
        assignment = EntityAssignment(value=entity("utterance", "x"), property="a")

        assert resolver.default_operation(assignment) == "set"


class TestCandidates:
    """Tests for candidate generation."""

    def test_mapped_entity(self, flight_resolver, entity):
        """Test an entity listed by a property becomes a candidate for it."""
        city = entity("city", "Paris", 17, 22)
        [candidate] = flight_resolver.candidates({"city": [city]}, expected=[])

        assert candidate.value is city
        assert candidate.property == "destination"
        assert candidate.operation == "set"
        assert candidate.is_expected is False

    def test_utterance_only_when_expected(self, entity):
        """Test the utterance entity binds only to expected properties."""
        resolver = EntityResolver(DialogSchema({"properties": {"name": {"type": "string"}}}))
        entities = {"utterance": [utterance_entity("Bob", 1)]}

        assert resolver.candidates(entities, expected=[]) == []

        [candidate] = resolver.candidates(entities, expected=["name"])
        assert candidate.property == "name"
        assert candidate.is_expected is True

    def test_valueless_property_entity_requires_expectation(self, flight_resolver, entity):
        """Test a bare property mention is a candidate only for an expected property."""
        mention = entity("destinationProperty", None, 0, 11, property="destination")

        assert flight_resolver.candidates({"destinationProperty": [mention]}, expected=[]) == []
        [candidate] = flight_resolver.candidates({"destinationProperty": [mention]}, expected=["destination"])
        assert candidate.property == "destination"

    def test_requires_value_operation(self, entity):
        """Test an operation that needs a value rejects a valueless property mention."""
        resolver = EntityResolver(DialogSchema({
            "properties": {"toppings": {"type": "array", "items": {"type": "string"}}},
            "$operations": ["add", "clear"],
            "$requiresValue": ["add"],
        }))
        add = entity("toppingsProperty", None, 0, 12, property="toppings", operation="add")
        clear = entity("toppingsProperty", None, 0, 14, property="toppings", operation="clear")

        [candidate] = resolver.candidates({"toppingsProperty": [add, clear]}, expected=[])
        assert candidate.value is clear

    def test_bare_operation(self, flight_resolver, entity):
        """Test an operation with neither property nor value is kept."""
        clear = entity("clear", None, 0, 5, operation="clear")
        [candidate] = flight_resolver.candidates({"clear": [clear]}, expected=["destination"])

        assert candidate.property is None
        assert candidate.operation == "clear"
        assert candidate.expected_properties == ["destination"]


class TestRemoveOverlapping:
    """Tests for per-property overlap removal."""

    def test_preference_order_wins(self, entity):
        """Test the property's preferred entity survives an overlap."""
        resolver = EntityResolver(DialogSchema({
            "properties": {"destination": {"type": "string", "$entities": ["airport", "city"]}},
        }))
        airport = entity("airport", "CDG", 10, 15, root_entity="airport:0")
        city = entity("city", "Paris", 10, 15, root_entity="city:0")
        other = entity("city", "London", 20, 26, root_entity="city:1")

        candidates = resolver.candidates({"airport": [airport], "city": [city, other]}, expected=[])
        kept = resolver.remove_overlapping_per_property(candidates)

        assert [c.value for c in kept] == [airport, other]

    def test_shared_root_survives(self, entity):
        """Test overlapping entities from one recognized root are both kept."""
        resolver = EntityResolver(DialogSchema({
            "properties": {"destination": {"type": "string", "$entities": ["airport", "city"]}},
        }))
        airport = entity("airport", "CDG", 10, 15, root_entity="place:0")
        city = entity("city", "Paris", 10, 15, root_entity="place:0")

        candidates = resolver.candidates({"airport": [airport], "city": [city]}, expected=[])
        assert len(resolver.remove_overlapping_per_property(candidates)) == 2


class TestAssignEntities:
    """Tests for assign_entities."""

    def test_single_assignment(self, flight_resolver, entity):
        """Test one entity for one property becomes an AssignEntity."""
        city = entity("city", "Paris", 17, 22, when_recognized=1)

        result = flight_resolver.assign_entities({"city": [city]}, EntityAssignments(), expected=[])

        [assignment] = result.assignments
        assert assignment.event == AdaptiveEvents.ASSIGN_ENTITY
        assert assignment.property == "destination"
        assert assignment.operation == "set"
        assert assignment.value.value == "Paris"
        assert result.recognized == [city]
        assert result.expected_properties is None

    def test_multiple_values_choose_entity(self, size_resolver, entity):
        """Test an entity with several values asks which one was meant."""
        big = entity("sizeEntity", ["medium", "large"], 2, 5, when_recognized=1)

        result = size_resolver.assign_entities({"sizeEntity": [big]}, EntityAssignments(), expected=[])

        [assignment] = result.assignments
        assert assignment.event == AdaptiveEvents.CHOOSE_ENTITY
        assert assignment.property == "size"

    def test_single_element_list_unwrapped(self, size_resolver, entity):
        """Test a one-value list is assigned as the value itself."""
        medium = entity("sizeEntity", ["medium"], 0, 6)

        result = size_resolver.assign_entities({"sizeEntity": [medium]}, EntityAssignments(), expected=[])

        [assignment] = result.assignments
        assert assignment.event == AdaptiveEvents.ASSIGN_ENTITY
        assert assignment.value.value == "medium"

    def test_choose_entity_answer(self, size_resolver, entity):
        """Test answering a ChooseEntity question narrows and dequeues it."""
        pending = EntityAssignment(
            value=entity("sizeEntity", ["medium", "large"], 2, 5, when_recognized=1),
            event=AdaptiveEvents.CHOOSE_ENTITY,
            property="size",
        )
        existing = EntityAssignments([pending])
        answer = entity("sizeEntity", ["medium", "small"], 0, 12, when_recognized=2)

        result = size_resolver.assign_entities(
            {"sizeEntity": [answer]},
            existing,
            expected=["size"],
            last_event=AdaptiveEvents.CHOOSE_ENTITY,
        )

        [assignment] = result.assignments
        assert assignment.event == AdaptiveEvents.ASSIGN_ENTITY
        assert assignment.property == "size"
        assert assignment.value.value == "medium"
        assert assignment.is_expected is True

    def test_choose_property(self, route_resolver, entity):
        """Test one entity fitting two properties asks which property was meant."""
        paris = entity("city", "Paris", 5, 10, when_recognized=1)

        result = route_resolver.assign_entities({"city": [paris]}, EntityAssignments(), expected=[])

        [assignment] = result.assignments
        assert assignment.event == AdaptiveEvents.CHOOSE_PROPERTY
        assert [a.property for a in assignment.alternatives] == ["origin", "destination"]
        assert all(not a.alternative_assignments for a in assignment.alternative_assignments)

    def test_choose_property_answer(self, route_resolver, entity):
        """Test naming a property resolves a pending ChooseProperty question."""
        paris = entity("city", "Paris", 5, 10, when_recognized=1)
        first = route_resolver.assign_entities({"city": [paris]}, EntityAssignments(), expected=[])
        existing = EntityAssignments([EntityAssignment.from_dict(a.to_dict()) for a in first.assignments])

        mention = entity("destinationProperty", None, 0, 11, property="destination", when_recognized=2)
        result = route_resolver.assign_entities(
            {"destinationProperty": [mention]},
            existing,
            expected=[],
            last_event=AdaptiveEvents.CHOOSE_PROPERTY,
        )

        [assignment] = result.assignments
        assert assignment.event == AdaptiveEvents.ASSIGN_ENTITY
        assert assignment.property == "destination"
        assert assignment.value.value == "Paris"
        assert result.expected_properties == ["destination"]

    def test_new_york_wins_over_york(self, entity):
        """Test the wider of two overlapping entities is assigned."""
        resolver = EntityResolver(DialogSchema({
            "properties": {"destination": {"type": "string", "$entities": ["city", "town"]}},
        }))
        new_york = entity("city", "New York", 7, 15, root_entity="city:0")
        york = entity("town", "York", 11, 15, root_entity="town:0")

        result = resolver.assign_entities({"city": [new_york], "town": [york]}, EntityAssignments(), expected=[])

        [assignment] = result.assignments
        assert assignment.value is new_york
        assert assignment.event == AdaptiveEvents.ASSIGN_ENTITY


class TestMergeAssignments:
    """Tests for merging into the existing queue."""

    def test_later_recognition_replaces(self, flight_resolver, entity):
        """Test a newer value for a single-valued property replaces the queued one."""
        old = EntityAssignment(entity("city", "Paris", 0, 5, when_recognized=1), AdaptiveEvents.ASSIGN_ENTITY, "destination")
        new = EntityAssignment(entity("city", "Rome", 0, 4, when_recognized=2), AdaptiveEvents.ASSIGN_ENTITY, "destination")
        existing = EntityAssignments([old])

        flight_resolver.merge_assignments(EntityAssignments([new]), existing)

        assert list(existing) == [new]

    def test_older_recognition_dropped(self, flight_resolver, entity):
        """Test an older value does not replace a newer queued one."""
        queued = EntityAssignment(entity("city", "Paris", 0, 5, when_recognized=3), AdaptiveEvents.ASSIGN_ENTITY, "destination")
        stale = EntityAssignment(entity("city", "Rome", 0, 4, when_recognized=2), AdaptiveEvents.ASSIGN_ENTITY, "destination")
        existing = EntityAssignments([queued])

        flight_resolver.merge_assignments(EntityAssignments([stale]), existing)

        assert list(existing) == [queued]

    def test_array_property_accumulates(self, entity):
        """Test array properties keep every value."""
        resolver = EntityResolver(DialogSchema({
            "properties": {"toppings": {"type": "array", "items": {"type": "string"}}},
        }))
        ham = EntityAssignment(entity("topping", "ham", 0, 3, when_recognized=1), AdaptiveEvents.ASSIGN_ENTITY, "toppings")
        cheese = EntityAssignment(entity("topping", "cheese", 0, 6, when_recognized=2), AdaptiveEvents.ASSIGN_ENTITY, "toppings")
        existing = EntityAssignments([ham])

        resolver.merge_assignments(EntityAssignments([cheese]), existing)

        assert list(existing) == [ham, cheese]

    def test_queue_sorted_by_event(self, flight_resolver, entity):
        """Test assignments are ordered AssignEntity first."""
        choose = EntityAssignment(entity("city", ["a", "b"], 0, 1), AdaptiveEvents.CHOOSE_ENTITY, "origin")
        assign = EntityAssignment(entity("city", "Paris", 5, 10), AdaptiveEvents.ASSIGN_ENTITY, "destination")
        existing = EntityAssignments([choose])

        flight_resolver.merge_assignments(EntityAssignments([assign]), existing)

        assert list(existing) == [assign, choose]
