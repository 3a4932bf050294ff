"""Explicit cascading deletes.

Deleting a parent removes every dependent row first, leaf tables before
their parents, so no row is ever left pointing at a missing parent. The
functions only stage deletes on the given session; callers run them inside
`database.transaction` so a failure part-way leaves nothing deleted.
"""

import logging
from typing import Sequence

from sqlmodel import Session

from . import repositories

logger = logging.getLogger("studyhabits.cascade")


def delete_sessions(session: Session, session_ids: Sequence[str]) -> None:
    """Delete study sessions with their study, distraction and work rows."""
    session_ids = list(session_ids)
    if not session_ids:
        return
    repositories.StudyRepository(session).delete_for_sessions(session_ids)
    repositories.DistractionRepository(session).delete_for_sessions(session_ids)
    repositories.AssignmentWorkRepository(session).delete_for_sessions(session_ids)
    repositories.StudySessionRepository(session).delete_ids(session_ids)
    logger.info("cascade deleted %d session(s)", len(session_ids))


def delete_assignments(session: Session, assignment_ids: Sequence[str]) -> None:
    """Delete assignments and the work logged against them."""
    assignment_ids = list(assignment_ids)
    if not assignment_ids:
        return
    repositories.AssignmentWorkRepository(session).delete_for_assignments(assignment_ids)
    repositories.AssignmentRepository(session).delete_ids(assignment_ids)
    logger.info("cascade deleted %d assignment(s)", len(assignment_ids))


def delete_classes(session: Session, class_ids: Sequence[str]) -> None:
    """Delete classes with their assignments (and those assignments' work)."""
    class_ids = list(class_ids)
    if not class_ids:
        return
    assignment_ids = repositories.AssignmentRepository(session).ids_for_courses(class_ids)
    delete_assignments(session, assignment_ids)
    repositories.CourseRepository(session).delete_ids(class_ids)
    logger.info("cascade deleted %d class(es)", len(class_ids))


def delete_semesters(session: Session, semester_ids: Sequence[str]) -> None:
    """Delete semesters with everything below them."""
    semester_ids = list(semester_ids)
    if not semester_ids:
        return
    class_ids = repositories.CourseRepository(session).ids_for_semesters(semester_ids)
    delete_classes(session, class_ids)
    repositories.SemesterRepository(session).delete_ids(semester_ids)
    logger.info("cascade deleted %d semester(s)", len(semester_ids))


def delete_user(session: Session, user_id: str) -> None:
    """Delete a user account and every row it owns."""
    delete_sessions(session, repositories.StudySessionRepository(session).ids_for_user(user_id))
    delete_semesters(session, repositories.SemesterRepository(session).ids_for_user(user_id))
    repositories.UserRepository(session).delete_ids([user_id])
    logger.info("cascade deleted user %s", user_id)
