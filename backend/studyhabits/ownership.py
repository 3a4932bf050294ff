"""Per-user access resolution.

Every entity's ownership chain ends at exactly one user:

    Course -> Semester -> User
    Assignment -> Course -> Semester -> User
    Study / Distraction / AssignmentWork -> StudySession -> User

`OwnershipResolver` answers two kinds of questions. The set resolvers
return every id of one type a user may access; an empty set at any hop
short-circuits to an empty result, never to "match all". The lookup
helpers fetch one entity for a handler and raise `NotFoundError` or
`ForbiddenError` so the HTTP layer can tell 404 from 403 without ever
reporting a missing parent as a server error.
"""

import logging
from typing import Set

from sqlmodel import Session

from . import models, repositories
from .errors import ForbiddenError, NotFoundError

logger = logging.getLogger("studyhabits.ownership")


class OwnershipResolver:
    def __init__(self, session: Session):
        self.session = session
        self.semesters = repositories.SemesterRepository(session)
        self.courses = repositories.CourseRepository(session)
        self.assignments = repositories.AssignmentRepository(session)
        self.sessions = repositories.StudySessionRepository(session)

    # -- id sets -------------------------------------------------------------

    def owned_semester_ids(self, user_id: str) -> Set[str]:
        return set(self.semesters.ids_for_user(user_id))

    def owned_class_ids(self, user_id: str) -> Set[str]:
        semester_ids = self.owned_semester_ids(user_id)
        if not semester_ids:
            return set()
        return set(self.courses.ids_for_semesters(list(semester_ids)))

    def owned_assignment_ids(self, user_id: str) -> Set[str]:
        class_ids = self.owned_class_ids(user_id)
        if not class_ids:
            return set()
        return set(self.assignments.ids_for_courses(list(class_ids)))

    def owned_session_ids(self, user_id: str) -> Set[str]:
        return set(self.sessions.ids_for_user(user_id))

    # -- chain walking -------------------------------------------------------

    def owner_of(self, entity):
        """Return the id of the user at the end of `entity`'s chain, or None.

        A broken chain (a parent row that no longer exists) yields None.
        """
        if isinstance(entity, models.User):
            return entity.id
        if isinstance(entity, (models.Semester, models.StudySession)):
            return entity.user_id
        if isinstance(entity, models.Course):
            parent = self.semesters.get(entity.semester_id)
        elif isinstance(entity, models.Assignment):
            parent = self.courses.get(entity.course_id)
        elif isinstance(entity, (models.Study, models.Distraction, models.AssignmentWork)):
            parent = self.sessions.get(entity.session_id)
        else:
            raise TypeError(f"no ownership chain for {type(entity).__name__}")
        return self.owner_of(parent) if parent is not None else None

    def verify_ownership(self, entity, user_id: str) -> bool:
        """True when the ownership chain of `entity` terminates at `user_id`."""
        return entity is not None and self.owner_of(entity) == user_id

    # -- parents referenced by list/create calls (404 when not owned) --------

    def get_owned_semester(self, semester_id: str, user_id: str) -> models.Semester:
        semester = self.semesters.get(semester_id)
        if semester is None or semester.user_id != user_id:
            raise NotFoundError("Semester not found")
        return semester

    def get_owned_class(self, class_id: str, user_id: str) -> models.Course:
        course = self.courses.get(class_id)
        if not self.verify_ownership(course, user_id):
            raise NotFoundError("Class not found")
        return course

    def get_owned_session(self, session_id: str, user_id: str) -> models.StudySession:
        study_session = self.sessions.get_for_user(session_id, user_id)
        if study_session is None:
            raise NotFoundError("Study session not found")
        return study_session

    # -- entities addressed by id in update/delete calls ---------------------

    def get_for_update(self, model, entity_id: str, user_id: str, label: str):
        """Fetch `entity_id` for mutation.

        Missing rows raise `NotFoundError`; rows whose chain ends at a
        different user raise `ForbiddenError`.
        """
        entity = self.session.get(model, entity_id)
        if entity is None:
            raise NotFoundError(f"{label} not found")
        if not self.verify_ownership(entity, user_id):
            logger.info("ownership denied for %s %s", model.__name__, entity_id)
            raise ForbiddenError(f"You don't have permission to modify this {label.lower()}")
        return entity
