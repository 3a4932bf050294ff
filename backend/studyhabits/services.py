"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate the ownership
resolver, repositories and cascades. Request bodies arrive as validated
pydantic models (see `schemas.py`); every mutating method resolves
ownership first and then writes inside one `transaction`, so ownership
failures never leave partial writes. Methods return wire-ready dictionaries.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import cascade, models, repositories, schemas
from .config import settings
from .database import transaction
from .errors import ConflictError, NotFoundError, ValidationError
from .ownership import OwnershipResolver

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("studyhabits.services")


class _Service:
    def __init__(self, session: Session):
        self.session = session
        self.owner = OwnershipResolver(session)


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, data: schemas.RegisterIn) -> str:
        """Create a new user with a hashed password and return a token.

        Raises `ConflictError` when the username is already taken.
        """
        if self.user_repo.get_by_username(data.username):
            raise ConflictError("User already exists")
        user = models.User(
            username=data.username,
            password_hash=PWD_CTX.hash(data.password),
            start_year=data.startYear,
            school=data.school,
        )
        with transaction(self.session):
            self.user_repo.add(user)
        logger.info("registered user %s", user.id)
        return self.issue_token(user)

    def authenticate(self, data: schemas.LoginIn) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(data.username)
        if not user:
            return None
        if not PWD_CTX.verify(data.password, user.password_hash):
            return None
        return self.issue_token(user)

    @staticmethod
    def issue_token(user: models.User) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class UserService(_Service):
    """Profile reads and updates plus account deletion."""

    def profile(self, user_id: str) -> dict:
        user = repositories.UserRepository(self.session).get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return schemas.user_out(user)

    def update_profile(self, user_id: str, data: schemas.ProfileUpdateIn) -> dict:
        if data.startYear is None and data.school is None:
            raise ValidationError(["No valid fields provided to update"])
        user = repositories.UserRepository(self.session).get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if data.startYear is not None:
            user.start_year = data.startYear
        if data.school is not None:
            user.school = " ".join(data.school.split())
        with transaction(self.session):
            repositories.UserRepository(self.session).add(user)
        return schemas.user_out(user)

    def delete_account(self, user_id: str) -> None:
        with transaction(self.session):
            cascade.delete_user(self.session, user_id)


class SemesterService(_Service):
    def list_mine(self, user_id: str) -> List[dict]:
        return [schemas.semester_out(s) for s in self.owner.semesters.list_for_user(user_id)]

    def create(self, user_id: str, data: schemas.SemesterCreate) -> dict:
        if self.owner.semesters.find(user_id, data.season, data.year):
            raise ConflictError("Semester already exists")
        semester = models.Semester(season=data.season, year=data.year, user_id=user_id)
        with transaction(self.session):
            self.owner.semesters.add(semester)
        logger.info("created semester %s for user %s", semester.id, user_id)
        return schemas.semester_out(semester)

    def update(self, user_id: str, semester_id: str, data: schemas.SemesterUpdate) -> dict:
        semester = self.owner.get_owned_semester(semester_id, user_id)
        season = data.season or semester.season
        year = data.year if data.year is not None else semester.year
        existing = self.owner.semesters.find(user_id, season, year)
        if existing is not None and existing.id != semester.id:
            raise ConflictError("Semester already exists")
        semester.season, semester.year = season, year
        with transaction(self.session):
            self.owner.semesters.add(semester)
        return schemas.semester_out(semester)

    def delete(self, user_id: str, semester_id: str) -> None:
        self.owner.get_owned_semester(semester_id, user_id)
        with transaction(self.session):
            cascade.delete_semesters(self.session, [semester_id])


class ClassService(_Service):
    def list_for_semester(self, user_id: str, semester_id: str) -> List[dict]:
        self.owner.get_owned_semester(semester_id, user_id)
        return [schemas.class_out(c) for c in self.owner.courses.list_for_semesters([semester_id])]

    def list_mine(self, user_id: str) -> List[dict]:
        semester_ids = self.owner.owned_semester_ids(user_id)
        return [schemas.class_out(c) for c in self.owner.courses.list_for_semesters(list(semester_ids))]

    def create(self, user_id: str, data: schemas.ClassCreate) -> dict:
        semester = self.owner.get_owned_semester(data.semesterId, user_id)
        if self.owner.courses.find_code(semester.id, data.classId):
            raise ConflictError(f"Class {data.classId} already exists in this semester")
        course = models.Course(
            class_code=data.classId,
            professor=data.professor,
            grade=data.grade or "",
            semester_id=semester.id,
        )
        with transaction(self.session):
            self.owner.courses.add(course)
        logger.info("created class %s in semester %s", course.id, semester.id)
        return schemas.class_out(course)

    def update(self, user_id: str, class_id: str, data: schemas.ClassUpdate) -> dict:
        course = self.owner.get_for_update(models.Course, class_id, user_id, "Class")
        code = data.classId
        if code and code != course.class_code:
            if self.owner.courses.find_code(course.semester_id, code):
                raise ConflictError(f"Class {code} already exists in this semester")
            course.class_code = code
        if data.professor:
            course.professor = data.professor
        if data.grade:
            course.grade = data.grade
        with transaction(self.session):
            self.owner.courses.add(course)
        return schemas.class_out(course)

    def delete(self, user_id: str, class_id: str) -> None:
        self.owner.get_for_update(models.Course, class_id, user_id, "Class")
        with transaction(self.session):
            cascade.delete_classes(self.session, [class_id])


class AssignmentService(_Service):
    def list_for_class(self, user_id: str, class_id: str) -> List[dict]:
        self.owner.get_owned_class(class_id, user_id)
        return [schemas.assignment_out(a) for a in self.owner.assignments.list_for_courses([class_id])]

    def list_mine(self, user_id: str) -> List[dict]:
        """All of the user's assignments, each populated with its class."""
        semester_ids = self.owner.owned_semester_ids(user_id)
        courses = {c.id: c for c in self.owner.courses.list_for_semesters(list(semester_ids))}
        assignments = self.owner.assignments.list_for_courses(list(courses))
        return [schemas.assignment_out(a, courses[a.course_id]) for a in assignments]

    def create(self, user_id: str, data: schemas.AssignmentCreate) -> dict:
        course = self.owner.get_owned_class(data.classId, user_id)
        assignment = models.Assignment(title=data.title, course_id=course.id)
        with transaction(self.session):
            self.owner.assignments.add(assignment)
        logger.info("created assignment %s in class %s", assignment.id, course.id)
        return schemas.assignment_out(assignment)

    def update(self, user_id: str, assignment_id: str, data: schemas.AssignmentUpdate) -> dict:
        assignment = self.owner.get_for_update(models.Assignment, assignment_id, user_id, "Assignment")
        if data.title:
            assignment.title = data.title
        with transaction(self.session):
            self.owner.assignments.add(assignment)
        return schemas.assignment_out(assignment)

    def delete(self, user_id: str, assignment_id: str) -> None:
        self.owner.get_for_update(models.Assignment, assignment_id, user_id, "Assignment")
        with transaction(self.session):
            cascade.delete_assignments(self.session, [assignment_id])


class StudySessionService(_Service):
    def list_mine(self, user_id: str) -> List[dict]:
        return [schemas.session_out(s) for s in self.owner.sessions.list_for_user(user_id)]

    def create(self, user_id: str, data: schemas.SessionCreate) -> dict:
        study_session = models.StudySession(
            title=data.title,
            started_at=data.started_at or models.utcnow(),
            user_id=user_id,
        )
        with transaction(self.session):
            self.owner.sessions.add(study_session)
        logger.info("created session %s for user %s", study_session.id, user_id)
        return schemas.session_out(study_session)

    def update(self, user_id: str, session_id: str, data: schemas.SessionUpdate) -> dict:
        study_session = self.owner.get_owned_session(session_id, user_id)
        if data.title:
            study_session.title = data.title
        if data.started_at is not None:
            study_session.started_at = data.started_at
        with transaction(self.session):
            self.owner.sessions.add(study_session)
        return schemas.session_out(study_session)

    def delete(self, user_id: str, session_id: str) -> None:
        self.owner.get_owned_session(session_id, user_id)
        with transaction(self.session):
            cascade.delete_sessions(self.session, [session_id])


class StudyService(_Service):
    def __init__(self, session: Session):
        super().__init__(session)
        self.repo = repositories.StudyRepository(session)

    def list_for_session(self, user_id: str, session_id: str) -> List[dict]:
        self.owner.get_owned_session(session_id, user_id)
        return [schemas.study_out(s) for s in self.repo.list_for_session(session_id)]

    def create(self, user_id: str, data: schemas.StudyCreate) -> dict:
        with transaction(self.session):
            study_session = self.owner.get_owned_session(data.session, user_id)
            study = self.repo.add(models.Study(
                what=data.what,
                understanding=data.understanding,
                time=data.time,
                session_id=study_session.id,
            ))
        return schemas.study_out(study)

    def update(self, user_id: str, study_id: str, data: schemas.StudyUpdate) -> dict:
        study = self.owner.get_for_update(models.Study, study_id, user_id, "Study entry")
        if data.what is not None:
            study.what = data.what
        if data.understanding is not None:
            study.understanding = data.understanding
        if data.time is not None:
            study.time = data.time
        with transaction(self.session):
            self.repo.add(study)
        return schemas.study_out(study)

    def delete(self, user_id: str, study_id: str) -> None:
        study = self.owner.get_for_update(models.Study, study_id, user_id, "Study entry")
        with transaction(self.session):
            self.repo.delete(study)


class DistractionService(_Service):
    def __init__(self, session: Session):
        super().__init__(session)
        self.repo = repositories.DistractionRepository(session)

    def list_for_session(self, user_id: str, session_id: str) -> List[dict]:
        self.owner.get_owned_session(session_id, user_id)
        return [schemas.distraction_out(d) for d in self.repo.list_for_session(session_id)]

    def types_mine(self, user_id: str) -> List[str]:
        """Distinct distraction types across all of the user's sessions."""
        return self.repo.distinct_types(list(self.owner.owned_session_ids(user_id)))

    def create(self, user_id: str, data: schemas.DistractionCreate) -> dict:
        with transaction(self.session):
            study_session = self.owner.get_owned_session(data.session, user_id)
            distraction = self.repo.add(models.Distraction(
                type=data.type,
                time_taken=data.timeTaken,
                session_id=study_session.id,
            ))
        return schemas.distraction_out(distraction)

    def update(self, user_id: str, distraction_id: str, data: schemas.DistractionUpdate) -> dict:
        distraction = self.owner.get_for_update(models.Distraction, distraction_id, user_id, "Distraction entry")
        if data.type:
            distraction.type = data.type
        if data.timeTaken is not None:
            distraction.time_taken = data.timeTaken
        with transaction(self.session):
            self.repo.add(distraction)
        return schemas.distraction_out(distraction)

    def delete(self, user_id: str, distraction_id: str) -> None:
        distraction = self.owner.get_for_update(models.Distraction, distraction_id, user_id, "Distraction entry")
        with transaction(self.session):
            self.repo.delete(distraction)


class WorkService(_Service):
    """Assignment work: minutes spent on one assignment within one session."""

    def __init__(self, session: Session):
        super().__init__(session)
        self.repo = repositories.AssignmentWorkRepository(session)

    def _populated(self, work: models.AssignmentWork) -> dict:
        return schemas.work_out(work, self.owner.assignments.get(work.assignment_id))

    def list_for_session(self, user_id: str, session_id: str) -> List[dict]:
        self.owner.get_owned_session(session_id, user_id)
        return [self._populated(w) for w in self.repo.list_for_session(session_id)]

    def create(self, user_id: str, data: schemas.WorkCreate) -> dict:
        with transaction(self.session):
            study_session = self.owner.get_owned_session(data.sessionId, user_id)
            assignment = self.owner.get_for_update(models.Assignment, data.assignmentId, user_id, "Assignment")
            if self.repo.find(assignment.id, study_session.id):
                raise ConflictError(
                    "Work entry for this assignment already exists in this session. Use update instead."
                )
            work = self.repo.add(models.AssignmentWork(
                time=data.time,
                assignment_id=assignment.id,
                session_id=study_session.id,
            ))
        return self._populated(work)

    def update(self, user_id: str, work_id: str, data: schemas.WorkUpdate) -> dict:
        work = self.owner.get_for_update(models.AssignmentWork, work_id, user_id, "Work entry")
        work.time = data.time
        with transaction(self.session):
            self.repo.add(work)
        return self._populated(work)

    def delete(self, user_id: str, work_id: str) -> None:
        work = self.owner.get_for_update(models.AssignmentWork, work_id, user_id, "Work entry")
        with transaction(self.session):
            self.repo.delete(work)
