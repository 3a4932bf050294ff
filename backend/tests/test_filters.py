from datetime import datetime, timezone

import pytest

from studyhabits import models
from studyhabits.errors import ValidationError
from studyhabits.filters import FilterSpec, compile_filters
from studyhabits.models import new_id
from studyhabits.records import JoinedSession, JoinedWork

CLASS_A, CLASS_B = new_id(), new_id()
ASSIGN_A, ASSIGN_B = new_id(), new_id()


def _work(assignment_id, class_id, time=10):
    return JoinedWork(
        id=new_id(), time=time, assignment_id=assignment_id, assignment_title='hw',
        class_id=class_id, class_code='CS', professor='P',
    )


def _session(day, works=(), types=()):
    row = JoinedSession(id=new_id(), title=f'day {day}', started_at=datetime(2024, 3, day, 12, tzinfo=timezone.utc))
    row.works = list(works)
    row.distractions = [models.Distraction(type=t, time_taken=5, session_id=row.id) for t in types]
    return row


def _body(**overrides):
    body = {
        'filterClass': False,
        'filterAssignment': False,
        'filterDistractionType': False,
        'filterDates': False,
    }
    body.update(overrides)
    return body


ROWS = [
    _session(1, works=[_work(ASSIGN_A, CLASS_A)], types=['phone']),
    _session(2, works=[_work(ASSIGN_B, CLASS_B)], types=['music']),
    _session(3, works=[_work(ASSIGN_A, CLASS_A), _work(ASSIGN_B, CLASS_B)]),
    _session(4),
]


def _matching(body):
    predicate = compile_filters(FilterSpec.from_body(body))
    return [r.title for r in ROWS if predicate(r)]


def test_no_active_filter_matches_everything():
    assert _matching(_body()) == ['day 1', 'day 2', 'day 3', 'day 4']


def test_flag_on_with_empty_selection_adds_nothing():
    body = _body(filterClass=True, selectedClasses=[], filterDistractionType=True, selectedDistractionTypes=[])
    assert len(_matching(body)) == 4


def test_flag_off_ignores_selection():
    assert len(_matching(_body(selectedClasses=[CLASS_A]))) == 4


def test_class_filter():
    assert _matching(_body(filterClass=True, selectedClasses=[CLASS_A])) == ['day 1', 'day 3']


def test_class_filter_accepts_populated_objects():
    body = _body(filterClass=True, selectedClasses=[{'_id': CLASS_B, 'classId': 'CS2'}])
    assert _matching(body) == ['day 2', 'day 3']


def test_class_and_assignment_filters_are_independent():
    body = _body(
        filterClass=True, selectedClasses=[CLASS_A],
        filterAssignment=True, selectedAssignments=[ASSIGN_B],
    )
    assert _matching(body) == ['day 3']


def test_distraction_type_filter():
    body = _body(filterDistractionType=True, selectedDistractionTypes=['phone', 'music'])
    assert _matching(body) == ['day 1', 'day 2']


def test_date_filter_is_inclusive():
    body = _body(filterDates=True, startDate="2024-03-02T14:00:00+02:00", endDate="2024-03-03T12:00:00Z")
    assert _matching(body) == ['day 2', 'day 3']


def test_date_filter_needs_both_dates():
    assert len(_matching(_body(filterDates=True, startDate="2024-03-02T00:00:00Z"))) == 4


def test_filters_combine_with_and():
    body = _body(
        filterClass=True, selectedClasses=[CLASS_A],
        filterDistractionType=True, selectedDistractionTypes=['phone'],
    )
    assert _matching(body) == ['day 1']


def test_start_after_end_rejected():
    with pytest.raises(ValidationError) as exc:
        FilterSpec.from_body(_body(filterDates=True, startDate="2024-03-05T00:00:00Z", endDate="2024-03-01T00:00:00Z"))
    assert exc.value.errors == ['startDate must be before endDate']


def test_flags_must_be_booleans():
    with pytest.raises(ValidationError):
        FilterSpec.from_body(_body(filterClass='yes'))
    with pytest.raises(ValidationError):
        FilterSpec.from_body({'filterClass': True})


def test_selections_validated_even_when_flag_off():
    with pytest.raises(ValidationError):
        FilterSpec.from_body(_body(selectedDistractionTypes=['$where']))
    with pytest.raises(ValidationError):
        FilterSpec.from_body(_body(selectedAssignments=['nope']))
