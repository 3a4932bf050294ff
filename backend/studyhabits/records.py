"""Filtered-records aggregation engine.

The engine answers "where did my study time go?" for one user:

1. `join_sessions` loads every session the user owns and left-joins its
   distractions, its assignment work (each with the assignment and that
   assignment's class) and its study rows. One query per table; sessions
   without children still appear with empty lists.
2. A `Pipeline` keeps the joined sessions matching the compiled filter
   predicate, projects each into a summary with totals and fractions, and
   sorts by session datetime.
3. `summarize_overall` sums the four totals across the surviving sessions
   and derives the fractions from those grand totals. They are fractions
   of the grand total, not averages of the per-session fractions.

Filters decide which sessions appear; a session that passes keeps its full
child lists.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from sqlmodel import Session

from . import models, repositories
from .filters import FilterSpec, Predicate, compile_filters
from .schemas import isoformat

logger = logging.getLogger("studyhabits.records")


@dataclass
class JoinedWork:
    """An assignment-work row joined to its assignment and class."""
    id: str
    time: int
    assignment_id: str
    assignment_title: str
    class_id: Optional[str]
    class_code: Optional[str]
    professor: Optional[str]


@dataclass
class JoinedSession:
    id: str
    title: str
    started_at: datetime
    distractions: List[models.Distraction] = field(default_factory=list)
    works: List[JoinedWork] = field(default_factory=list)
    studies: List[models.Study] = field(default_factory=list)


def _group_by_session(rows) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for row in rows:
        grouped.setdefault(row.session_id, []).append(row)
    return grouped


def join_sessions(session: Session, user_id: str) -> List[JoinedSession]:
    """Load the user's sessions left-joined with all of their child rows."""
    study_sessions = repositories.StudySessionRepository(session).list_for_user(user_id, newest_first=False)
    if not study_sessions:
        return []
    session_ids = [s.id for s in study_sessions]

    distractions = _group_by_session(repositories.DistractionRepository(session).list_for_sessions(session_ids))
    studies = _group_by_session(repositories.StudyRepository(session).list_for_sessions(session_ids))
    work_rows = repositories.AssignmentWorkRepository(session).list_for_sessions(session_ids)

    assignments = {a.id: a for a in repositories.AssignmentRepository(session).list_ids(
        {w.assignment_id for w in work_rows}
    )}
    courses = {c.id: c for c in repositories.CourseRepository(session).list_ids(
        {a.course_id for a in assignments.values()}
    )}

    works: Dict[str, List[JoinedWork]] = {}
    for w in work_rows:
        assignment = assignments.get(w.assignment_id)
        if assignment is None:
            # inner join: work whose assignment is gone is dropped
            continue
        course = courses.get(assignment.course_id)
        works.setdefault(w.session_id, []).append(JoinedWork(
            id=w.id,
            time=w.time,
            assignment_id=assignment.id,
            assignment_title=assignment.title,
            class_id=course.id if course else None,
            class_code=course.class_code if course else None,
            professor=course.professor if course else None,
        ))

    return [
        JoinedSession(
            id=s.id,
            title=s.title,
            started_at=models.as_utc(s.started_at),
            distractions=distractions.get(s.id, []),
            works=works.get(s.id, []),
            studies=studies.get(s.id, []),
        )
        for s in study_sessions
    ]


class Pipeline:
    """A tiny in-memory query pipeline: match, project, sort.

    Stages run in the order they were added when `run` is called.
    """

    def __init__(self, source: Callable[[], Iterable]):
        self._source = source
        self._stages: List[Callable[[list], list]] = []

    def match(self, predicate: Predicate) -> "Pipeline":
        self._stages.append(lambda rows: [r for r in rows if predicate(r)])
        return self

    def project(self, fn: Callable) -> "Pipeline":
        self._stages.append(lambda rows: [fn(r) for r in rows])
        return self

    def sort(self, key: Callable) -> "Pipeline":
        self._stages.append(lambda rows: sorted(rows, key=key))
        return self

    def run(self) -> list:
        rows = list(self._source())
        for stage in self._stages:
            rows = stage(rows)
        return rows


def fraction(part: float, total: float) -> float:
    """`part / total`, or 0 when `total` is 0."""
    return part / total if total > 0 else 0.0


def _metrics(distraction_time: int, assignment_time: int, study_time: int) -> dict:
    total = distraction_time + assignment_time + study_time
    return {
        "totalDistractionTime": distraction_time,
        "totalAssignmentTime": assignment_time,
        "totalStudyTime": study_time,
        "totalSessionTime": total,
        "distractionFraction": fraction(distraction_time, total),
        "assignmentFraction": fraction(assignment_time, total),
        "studyFraction": fraction(study_time, total),
    }


def summarize_session(row: JoinedSession) -> dict:
    """Project a joined session into its wire summary with derived metrics."""
    summary = {
        "_id": row.id,
        "title": row.title,
        "datetime": isoformat(row.started_at),
        "distractions": [
            {"_id": d.id, "type": d.type, "timeTaken": d.time_taken} for d in row.distractions
        ],
        "assignmentworks": [
            {
                "_id": w.id,
                "time": w.time,
                "assignment": {
                    "_id": w.assignment_id,
                    "title": w.assignment_title,
                    "class": {"_id": w.class_id, "classId": w.class_code, "professor": w.professor},
                },
            }
            for w in row.works
        ],
        "studies": [
            {"_id": s.id, "what": s.what, "understanding": s.understanding, "time": s.time}
            for s in row.studies
        ],
    }
    summary.update(_metrics(
        sum(d.time_taken for d in row.distractions),
        sum(w.time for w in row.works),
        sum(s.time for s in row.studies),
    ))
    return summary


def summarize_overall(summaries: List[dict]) -> dict:
    """Sum per-session totals and take fractions of the grand totals."""
    overall = _metrics(
        sum(s["totalDistractionTime"] for s in summaries),
        sum(s["totalAssignmentTime"] for s in summaries),
        sum(s["totalStudyTime"] for s in summaries),
    )
    overall["sessionCount"] = len(summaries)
    return overall


class RecordService:
    """Run the filtered-records query for one user."""

    def __init__(self, session: Session):
        self.session = session

    def filtered_records(self, user_id: str, spec: FilterSpec) -> dict:
        """Return ``{sessions, overall}`` for the sessions matching `spec`.

        Only sessions owned by `user_id` are ever considered, whatever the
        filter contains. Sessions are ordered by datetime, then id.
        """
        predicate = compile_filters(spec)
        rows = (
            Pipeline(lambda: join_sessions(self.session, user_id))
            .match(predicate)
            .sort(key=lambda r: (r.started_at, r.id))
            .project(summarize_session)
            .run()
        )
        overall = summarize_overall(rows)
        logger.debug("filtered records for user %s: %d session(s)", user_id, len(rows))
        return {"sessions": rows, "overall": overall}
