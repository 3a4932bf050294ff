"""Filter specification and compiler for the filtered-records query.

`FilterSpec` is the validated, immutable request body of
``POST /records/filtered``; `compile_filters` turns it into a single
predicate over a joined session (see `records.JoinedSession`). Each flag is
an independent toggle: a flag that is off, or on with an empty selection,
adds no condition.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Annotated, Callable, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator

from .validation import IdRef, UtcDatetime, operator_free, require_valid

if TYPE_CHECKING:
    from .records import JoinedSession

logger = logging.getLogger("studyhabits.filters")

Predicate = Callable[["JoinedSession"], bool]

MAX_TYPE_LENGTH = 50
MAX_SELECTED_TYPES = 50


class FilterSpec(BaseModel):
    """Validated filter body.

    Selected classes and assignments are ids or populated ``{_id}``
    objects. Selections are validated even when their flag is off.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filter_class: StrictBool = Field(alias="filterClass")
    filter_assignment: StrictBool = Field(alias="filterAssignment")
    filter_distraction_type: StrictBool = Field(alias="filterDistractionType")
    filter_dates: StrictBool = Field(alias="filterDates")
    start_date: Optional[UtcDatetime] = Field(default=None, alias="startDate")
    end_date: Optional[UtcDatetime] = Field(default=None, alias="endDate")
    selected_classes: FrozenSet[IdRef] = Field(default=frozenset(), alias="selectedClasses")
    selected_assignments: FrozenSet[IdRef] = Field(default=frozenset(), alias="selectedAssignments")
    selected_distraction_types: Annotated[
        FrozenSet[operator_free(MAX_TYPE_LENGTH)], Field(max_length=MAX_SELECTED_TYPES)
    ] = Field(default=frozenset(), alias="selectedDistractionTypes")

    @model_validator(mode="after")
    def _ordered_dates(self):
        if self.start_date is not None and self.end_date is not None and self.start_date > self.end_date:
            raise ValueError("startDate must be before endDate")
        return self

    @classmethod
    def from_body(cls, body) -> "FilterSpec":
        """Validate a raw request body; raises `ValidationError` (400)."""
        return require_valid(cls, body)


def class_predicate(class_ids: FrozenSet[str]) -> Predicate:
    def predicate(row: "JoinedSession") -> bool:
        return any(work.class_id in class_ids for work in row.works)
    return predicate


def assignment_predicate(assignment_ids: FrozenSet[str]) -> Predicate:
    def predicate(row: "JoinedSession") -> bool:
        return any(work.assignment_id in assignment_ids for work in row.works)
    return predicate


def distraction_type_predicate(types: FrozenSet[str]) -> Predicate:
    def predicate(row: "JoinedSession") -> bool:
        return any(d.type in types for d in row.distractions)
    return predicate


def date_range_predicate(start: datetime, end: datetime) -> Predicate:
    def predicate(row: "JoinedSession") -> bool:
        return start <= row.started_at <= end
    return predicate


def all_of(predicates: List[Predicate]) -> Predicate:
    """Conjunction of `predicates`; the empty conjunction matches everything."""
    predicates = list(predicates)

    def predicate(row: "JoinedSession") -> bool:
        return all(p(row) for p in predicates)
    return predicate


def compile_filters(spec: FilterSpec) -> Predicate:
    """Translate `spec` into one predicate over a joined session.

    When both the class and the assignment filters are active the result
    requires each independently: some work row in a selected class and some
    (possibly different) work row on a selected assignment.
    """
    predicates: List[Predicate] = []
    active = []
    if spec.filter_class and spec.selected_classes:
        predicates.append(class_predicate(spec.selected_classes))
        active.append("class")
    if spec.filter_assignment and spec.selected_assignments:
        predicates.append(assignment_predicate(spec.selected_assignments))
        active.append("assignment")
    if spec.filter_distraction_type and spec.selected_distraction_types:
        predicates.append(distraction_type_predicate(spec.selected_distraction_types))
        active.append("distraction_type")
    if spec.filter_dates and spec.start_date is not None and spec.end_date is not None:
        predicates.append(date_range_predicate(spec.start_date, spec.end_date))
        active.append("dates")
    logger.debug("compiled filters: %s", ", ".join(active) or "none")
    return all_of(predicates)
