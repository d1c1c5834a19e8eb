"""
Entity Resolver

Turns normalized entities into queued property assignments:

1. Generate candidate assignments from recognized entities and the schema
2. Keep one candidate per overlapping span for each property
3. Pick the best candidate among overlapping alternatives and resolve
   pending ChooseEntity / ChooseProperty questions
4. Merge the new assignments into the existing queue
"""

import sys
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

import structlog

from adaptive_core.entities.assignments import (
    EntityAssignment,
    EntityAssignmentComparer,
    EntityAssignments,
)
from adaptive_core.entities.info import UTTERANCE_ENTITY, EntityInfo
from adaptive_core.entities.normalizer import strip_property
from adaptive_core.events import AdaptiveEvents
from adaptive_core.schema.dialog_schema import DialogSchema


logger = structlog.get_logger(__name__)


OperationTable = Mapping[str, str]


@dataclass
class AssignmentResult:
    """Outcome of assigning one turn's entities."""

    recognized: List[EntityInfo]
    assignments: EntityAssignments
    expected_properties: Optional[List[str]] = None


def utterance_entity(utterance: str, turn: int) -> EntityInfo:
    """Synthetic entity spanning the whole utterance."""
    return EntityInfo(
        name=UTTERANCE_ENTITY,
        value=utterance,
        start=0,
        end=len(utterance),
        text=utterance,
        score=0.0,
        type="string",
        priority=sys.maxsize,
        coverage=1.0,
        when_recognized=turn,
    )


def split_utterance(utterance: str, recognized: Sequence[EntityInfo]) -> List[str]:
    """Return the stripped, non-empty stretches of text no entity consumed."""
    unrecognized = []
    current = 0
    for entity in sorted(recognized, key=lambda e: (e.start, -e.end)):
        if entity.start > current:
            unrecognized.append(utterance[current:entity.start].strip())
        current = max(current, entity.end)

    if current < len(utterance):
        unrecognized.append(utterance[current:].strip())

    return [text for text in unrecognized if text]


class EntityResolver:
    """
    Assigns normalized entities to schema properties.

    Usage:
        resolver = EntityResolver(schema)
        result = resolver.assign_entities(entities, queue, expected=["size"])
    """

    def __init__(self, schema: DialogSchema, default_operation: Optional[str] = None):
        self.schema = schema
        self.fallback_operation = default_operation
        self.comparer = EntityAssignmentComparer(schema.operations)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def default_operation(
        self,
        assignment: EntityAssignment,
        ask_default: Optional[OperationTable] = None,
        dialog_default: Optional[Mapping[str, OperationTable]] = None,
    ) -> Optional[str]:
        """
        Operation for an assignment recognized without one.

        Lookup order: the ask table (entity name, then the "" wildcard), the
        schema table for the assignment's property (entity name, then ""),
        then the configured fallback.
        """
        name = assignment.value.name
        operation = None

        if ask_default:
            operation = ask_default.get(name, ask_default.get(""))

        if operation is None and dialog_default and assignment.property is not None:
            table = dialog_default.get(assignment.property)
            if table:
                operation = table.get(name, table.get(""))

        if operation is None:
            operation = self.fallback_operation

        return operation

    # -------------------------------------------------------------------------
    # Candidates
    # -------------------------------------------------------------------------

    def candidates(
        self,
        entities: Mapping[str, List[EntityInfo]],
        expected: Sequence[str],
        last_event: Optional[str] = None,
        next_assignment: Optional[EntityAssignment] = None,
        ask_default: Optional[OperationTable] = None,
    ) -> List[EntityAssignment]:
        """Generate every plausible assignment for the recognized entities."""
        expected = list(expected or [])
        requires_value = self.schema.requires_value
        dialog_default = self.schema.default_operations
        global_expected_only = self.schema.expected_only
        assignments: List[EntityAssignment] = []

        # Entities already naming their property
        for infos in entities.values():
            for info in infos:
                if info.property is None:
                    continue
                if info.value is not None:
                    keep = True
                elif info.operation is not None:
                    keep = info.operation not in requires_value
                else:
                    keep = info.property in expected
                if keep:
                    assignments.append(EntityAssignment(
                        value=info,
                        property=info.property,
                        operation=info.operation,
                        is_expected=info.property in expected,
                    ))

        # Entities mapped to properties through the schema
        for prop in self.schema.property.children:
            is_expected = prop.path in expected
            expected_only = prop.expected_only if prop.expected_only is not None else global_expected_only
            for entity_name in prop.entities:
                name = strip_property(entity_name)
                matches = entities.get(name)
                if not matches or (not is_expected and name in expected_only):
                    continue
                for info in matches:
                    if info.property is None:
                        assignments.append(EntityAssignment(
                            value=info,
                            property=prop.path,
                            operation=info.operation,
                            is_expected=is_expected,
                        ))

        # Fill in missing operations
        for assignment in assignments:
            if assignment.operation is not None:
                continue
            if (
                next_assignment is not None
                and next_assignment.event == AdaptiveEvents.CHOOSE_ENTITY
                and assignment.property == next_assignment.property
            ):
                assignment.operation = AdaptiveEvents.CHOOSE_ENTITY
                assignment.is_expected = True
            else:
                assignment.operation = self.default_operation(assignment, ask_default, dialog_default)

        # Answers to a pending ChooseProperty question
        if last_event == AdaptiveEvents.CHOOSE_PROPERTY and next_assignment is not None:
            for infos in entities.values():
                for info in infos:
                    if info.value is not None or info.property is None:
                        continue
                    matches = [a for a in next_assignment.alternatives if a.property == info.property]
                    if len(matches) == 1:
                        assignments.append(EntityAssignment(
                            value=info,
                            operation=AdaptiveEvents.CHOOSE_PROPERTY,
                            is_expected=True,
                        ))

        # Operations on nothing in particular
        for infos in entities.values():
            for info in infos:
                if info.operation is not None and info.property is None and info.value is None:
                    assignments.append(EntityAssignment(
                        value=info,
                        operation=info.operation,
                        is_expected=False,
                    ))

        for assignment in assignments:
            if assignment.property is None:
                assignment.expected_properties = list(expected)

        return assignments

    def remove_overlapping_per_property(
        self,
        candidates: Sequence[EntityAssignment],
    ) -> List[EntityAssignment]:
        """
        Keep one candidate per overlapping span for each property.

        Within a property, candidates are taken in the order of the
        property's entity preference list; a chosen candidate removes every
        other candidate overlapping it unless both came from the same root.
        """
        result: List[EntityAssignment] = []
        groups: Dict[str, List[EntityAssignment]] = {}
        for candidate in candidates:
            if candidate.property is not None:
                groups.setdefault(candidate.property, []).append(candidate)

        for prop, choices in groups.items():
            schema = self.schema.path_to_schema(prop)
            preference = [strip_property(name) for name in schema.entities] if schema is not None else []
            for choice in choices:
                if choice.value.name not in preference:
                    preference.append(choice.value.name)

            for name in preference:
                while True:
                    candidate = next((c for c in choices if c.value.name == name), None)
                    if candidate is None:
                        break
                    choices = [
                        c for c in choices
                        if c is not candidate
                        and (c.value.shares_root(candidate.value) or not c.value.overlaps(candidate.value))
                    ]
                    result.append(candidate)

        result.extend(c for c in candidates if c.property is None)
        return result

    # -------------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------------

    def assign_entities(
        self,
        entities: Mapping[str, List[EntityInfo]],
        existing: EntityAssignments,
        expected: Sequence[str],
        last_event: Optional[str] = None,
        ask_default: Optional[OperationTable] = None,
    ) -> AssignmentResult:
        """
        Assign one turn's entities and merge them into the existing queue.

        Pending ChooseEntity or ChooseProperty questions answered by this
        turn are dequeued from ``existing``.
        """
        dialog_default = self.schema.default_operations
        next_assignment = existing.next_assignment

        raw = self.candidates(entities, expected, last_event, next_assignment, ask_default)
        candidates = sorted(
            self.remove_overlapping_per_property(raw),
            key=lambda c: (
                not c.is_expected,
                c.operation != self.default_operation(c, ask_default, dialog_default),
            ),
        )

        used: Dict[int, EntityInfo] = {}
        for candidate in candidates:
            used[id(candidate.value)] = candidate.value

        new_assignments = EntityAssignments()
        expected_choices: Optional[List[str]] = None
        choices: List[EntityAssignment] = []

        while candidates:
            candidate = candidates[0]

            alternatives = [
                alt for alt in candidates
                if candidate.value.overlaps(alt.value)
                and (not candidate.value.shares_root(alt.value) or candidate.value is alt.value)
            ]
            candidates = [c for c in candidates if not any(c is alt for alt in alternatives)]
            for alt in alternatives:
                used[id(alt.value)] = alt.value

            if candidate.is_expected and candidate.value.name != UTTERANCE_ENTITY:
                alternatives = [a for a in alternatives if a.is_expected or a.value.operation is not None]

            # Prefer recognized entities over the raw utterance, then wider spans
            candidate = min(
                alternatives,
                key=lambda a: (a.value.name == UTTERANCE_ENTITY, -a.value.length),
            )
            alternatives = [a for a in alternatives if not candidate.value.covers(a.value)]

            mapped = False
            if candidate.operation == AdaptiveEvents.CHOOSE_ENTITY:
                entity_choices = existing.dequeue()
                if entity_choices is not None:
                    candidate.operation = entity_choices.operation
                    values = candidate.value.value
                    if isinstance(values, list) and len(values) > 1:
                        offered = entity_choices.value.value
                        if not isinstance(offered, list):
                            offered = [offered]
                        candidate.value.value = [v for v in values if v in offered]

            elif candidate.operation == AdaptiveEvents.CHOOSE_PROPERTY and next_assignment is not None:
                choices = list(next_assignment.alternatives)
                choice = next((a for a in choices if a.property == candidate.value.property), None)
                if choice is not None:
                    expected_choices = []
                    choice.is_expected = True
                    choice.alternative_assignments = []
                    if choice.property is not None:
                        expected_choices.append(choice.property)
                    elif choice.expected_properties:
                        expected_choices.extend(choice.expected_properties)
                    self._add_assignment(choice, new_assignments)
                    choices = [c for c in choices if not c.value.overlaps(choice.value)]
                    mapped = True

            candidate.add_alternatives(a for a in alternatives if a is not candidate)
            if not mapped:
                self._add_assignment(candidate, new_assignments)

        if expected_choices is not None:
            # Re-queue the choices the answer did not settle
            while choices:
                choice = choices[0]
                overlapping = [alt for alt in choices if choice.value.overlaps(alt.value)]
                choice.alternative_assignments = []
                choice.add_alternatives(a for a in overlapping if a is not choice)
                self._add_assignment(choice, new_assignments)
                choices = [c for c in choices if not c.value.overlaps(choice.value)]
            existing.dequeue()

        self.merge_assignments(new_assignments, existing)

        recognized = sorted(used.values(), key=lambda e: (e.start, -e.end))
        logger.debug(
            "entities_assigned",
            candidates=len(raw),
            committed=len(new_assignments),
            queued=len(existing),
        )
        return AssignmentResult(
            recognized=recognized,
            assignments=existing,
            expected_properties=expected_choices,
        )

    @staticmethod
    def _add_assignment(assignment: EntityAssignment, assignments: EntityAssignments) -> None:
        if assignment.property is None and assignment.operation is None:
            return

        if assignment.has_alternatives:
            assignment.event = AdaptiveEvents.CHOOSE_PROPERTY
        elif isinstance(assignment.value.value, list) and len(assignment.value.value) > 1:
            assignment.event = AdaptiveEvents.CHOOSE_ENTITY
        else:
            assignment.event = AdaptiveEvents.ASSIGN_ENTITY
            if isinstance(assignment.value.value, list) and len(assignment.value.value) == 1:
                assignment.value.value = assignment.value.value[0]

        assignments.assignments.append(assignment)

    # -------------------------------------------------------------------------
    # Merge
    # -------------------------------------------------------------------------

    def _replaces(self, new: EntityAssignment, old: EntityAssignment) -> int:
        """
        1 if ``new`` replaces ``old``, -1 if ``old`` wins, 0 if unrelated.

        Only single-valued properties with values on both sides compete; the
        later recognition wins and, on a tie, the earlier span.
        """
        for alternative in new.alternatives:
            for old_alternative in old.alternatives:
                if (
                    alternative.property is None
                    or alternative.property != old_alternative.property
                    or alternative.value.value is None
                    or old_alternative.value.value is None
                ):
                    continue

                prop = self.schema.path_to_schema(alternative.property)
                if prop is None or prop.is_array:
                    continue

                if alternative.value.when_recognized != old_alternative.value.when_recognized:
                    return 1 if alternative.value.when_recognized > old_alternative.value.when_recognized else -1
                if alternative.value.start != old_alternative.value.start:
                    return 1 if alternative.value.start < old_alternative.value.start else -1
        return 0

    def merge_assignments(
        self,
        new_assignments: EntityAssignments,
        existing: EntityAssignments,
        comparer: Optional[EntityAssignmentComparer] = None,
    ) -> None:
        """Merge new assignments into the existing queue and reorder it."""
        queue = list(existing.assignments)
        for assignment in new_assignments:
            verdicts = [(old, self._replaces(assignment, old)) for old in queue]
            if any(verdict < 0 for _, verdict in verdicts):
                logger.debug("assignment_superseded", property=assignment.property)
                continue
            queue = [old for old, verdict in verdicts if verdict <= 0]
            queue.append(assignment)

        existing.assignments = (comparer or self.comparer).sort(queue)


__all__ = [
    "AssignmentResult",
    "EntityResolver",
    "split_utterance",
    "utterance_entity",
]
