"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table. Repositories
return SQLModel objects and never commit: writes are flushed so the
calling service can group several of them into one transaction (see
`database.transaction`).
"""

from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete
from sqlmodel import Session, select

from . import models


class _Repository:
    model = None

    def __init__(self, session: Session):
        self.session = session

    def get(self, entity_id: str):
        """Fetch a row by primary key or return `None`."""
        return self.session.get(self.model, entity_id)

    def add(self, entity):
        """Stage a new or modified row and flush it."""
        self.session.add(entity)
        self.session.flush()
        return entity

    def delete(self, entity) -> None:
        self.session.delete(entity)
        self.session.flush()

    def delete_ids(self, ids: Iterable[str]) -> int:
        """Bulk delete rows by primary key; returns the number of ids given."""
        ids = list(ids)
        if not ids:
            return 0
        self.session.exec(delete(self.model).where(self.model.id.in_(ids)))
        return len(ids)

    def list_ids(self, ids: Iterable[str]) -> List:
        ids = list(ids)
        if not ids:
            return []
        return list(self.session.exec(select(self.model).where(self.model.id.in_(ids))).all())


class UserRepository(_Repository):
    """CRUD operations for `User` objects."""
    model = models.User

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()


class SemesterRepository(_Repository):
    model = models.Semester

    def list_for_user(self, user_id: str) -> List[models.Semester]:
        """Return the user's semesters, newest year first."""
        stmt = (
            select(models.Semester)
            .where(models.Semester.user_id == user_id)
            .order_by(models.Semester.year.desc(), models.Semester.season)
        )
        return list(self.session.exec(stmt).all())

    def find(self, user_id: str, season: str, year: int) -> Optional[models.Semester]:
        stmt = select(models.Semester).where(
            models.Semester.user_id == user_id,
            models.Semester.season == season,
            models.Semester.year == year,
        )
        return self.session.exec(stmt).first()

    def ids_for_user(self, user_id: str) -> List[str]:
        stmt = select(models.Semester.id).where(models.Semester.user_id == user_id)
        return list(self.session.exec(stmt).all())


class CourseRepository(_Repository):
    """Queries for classes (the `Course` table)."""
    model = models.Course

    def list_for_semesters(self, semester_ids: Sequence[str]) -> List[models.Course]:
        if not semester_ids:
            return []
        stmt = (
            select(models.Course)
            .where(models.Course.semester_id.in_(list(semester_ids)))
            .order_by(models.Course.class_code)
        )
        return list(self.session.exec(stmt).all())

    def ids_for_semesters(self, semester_ids: Sequence[str]) -> List[str]:
        if not semester_ids:
            return []
        stmt = select(models.Course.id).where(models.Course.semester_id.in_(list(semester_ids)))
        return list(self.session.exec(stmt).all())

    def find_code(self, semester_id: str, class_code: str) -> Optional[models.Course]:
        """Return the class with `class_code` in the semester, if any."""
        stmt = select(models.Course).where(
            models.Course.semester_id == semester_id,
            models.Course.class_code == class_code,
        )
        return self.session.exec(stmt).first()


class AssignmentRepository(_Repository):
    model = models.Assignment

    def list_for_courses(self, course_ids: Sequence[str]) -> List[models.Assignment]:
        if not course_ids:
            return []
        stmt = (
            select(models.Assignment)
            .where(models.Assignment.course_id.in_(list(course_ids)))
            .order_by(models.Assignment.title)
        )
        return list(self.session.exec(stmt).all())

    def ids_for_courses(self, course_ids: Sequence[str]) -> List[str]:
        if not course_ids:
            return []
        stmt = select(models.Assignment.id).where(models.Assignment.course_id.in_(list(course_ids)))
        return list(self.session.exec(stmt).all())


class StudySessionRepository(_Repository):
    model = models.StudySession

    def list_for_user(self, user_id: str, newest_first: bool = True) -> List[models.StudySession]:
        order = models.StudySession.started_at.desc() if newest_first else models.StudySession.started_at
        stmt = select(models.StudySession).where(models.StudySession.user_id == user_id).order_by(order)
        return list(self.session.exec(stmt).all())

    def ids_for_user(self, user_id: str) -> List[str]:
        stmt = select(models.StudySession.id).where(models.StudySession.user_id == user_id)
        return list(self.session.exec(stmt).all())

    def get_for_user(self, session_id: str, user_id: str) -> Optional[models.StudySession]:
        """Return the session only when it belongs to `user_id`."""
        stmt = select(models.StudySession).where(
            models.StudySession.id == session_id,
            models.StudySession.user_id == user_id,
        )
        return self.session.exec(stmt).first()


class _SessionChildRepository(_Repository):
    """Shared queries for tables hanging off a study session."""

    def list_for_sessions(self, session_ids: Sequence[str]) -> List:
        if not session_ids:
            return []
        stmt = select(self.model).where(self.model.session_id.in_(list(session_ids)))
        return list(self.session.exec(stmt).all())

    def list_for_session(self, session_id: str) -> List:
        return self.list_for_sessions([session_id])

    def delete_for_sessions(self, session_ids: Sequence[str]) -> None:
        if not session_ids:
            return
        self.session.exec(delete(self.model).where(self.model.session_id.in_(list(session_ids))))


class StudyRepository(_SessionChildRepository):
    model = models.Study


class DistractionRepository(_SessionChildRepository):
    model = models.Distraction

    def distinct_types(self, session_ids: Sequence[str]) -> List[str]:
        """Return the sorted distinct distraction types across the sessions."""
        if not session_ids:
            return []
        stmt = (
            select(models.Distraction.type)
            .where(models.Distraction.session_id.in_(list(session_ids)))
            .distinct()
            .order_by(models.Distraction.type)
        )
        return list(self.session.exec(stmt).all())


class AssignmentWorkRepository(_SessionChildRepository):
    model = models.AssignmentWork

    def find(self, assignment_id: str, session_id: str) -> Optional[models.AssignmentWork]:
        stmt = select(models.AssignmentWork).where(
            models.AssignmentWork.assignment_id == assignment_id,
            models.AssignmentWork.session_id == session_id,
        )
        return self.session.exec(stmt).first()

    def delete_for_assignments(self, assignment_ids: Sequence[str]) -> None:
        if not assignment_ids:
            return
        self.session.exec(
            delete(models.AssignmentWork).where(models.AssignmentWork.assignment_id.in_(list(assignment_ids)))
        )
