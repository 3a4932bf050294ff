"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Every non-root table points at its owner through a foreign key; the chain
always ends at a `User`:

- Course -> Semester -> User
- Assignment -> Course -> Semester -> User
- Study / Distraction / AssignmentWork -> StudySession -> User

Identifiers are opaque 32-character hex tokens generated on insert.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

SEASONS = ("Spring", "Summer", "Fall", "Winter")
MAX_MINUTES = 1440


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalise `value` to aware UTC; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    start_year: Optional[int] = None
    school: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Semester(SQLModel, table=True):
    """One term of a user's studies, e.g. Fall 2025."""
    __table_args__ = (UniqueConstraint("user_id", "season", "year"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    season: str
    year: int
    user_id: str = Field(foreign_key="user.id", index=True)


class Course(SQLModel, table=True):
    """A class taken during a semester.

    `class_code` is the course code such as ``CS180`` and is unique within
    its semester.
    """
    __table_args__ = (UniqueConstraint("semester_id", "class_code"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    class_code: str
    professor: Optional[str] = None
    grade: Optional[str] = None
    semester_id: str = Field(foreign_key="semester.id", index=True)


class Assignment(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    course_id: str = Field(foreign_key="course.id", index=True)


class StudySession(SQLModel, table=True):
    """A logged study block; anchor for study, distraction and work rows."""
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    started_at: datetime = Field(default_factory=utcnow, index=True)
    user_id: str = Field(foreign_key="user.id", index=True)


class Study(SQLModel, table=True):
    """Time spent studying a topic, with a 0-10 understanding rating."""
    id: str = Field(default_factory=new_id, primary_key=True)
    what: str
    understanding: int
    time: int
    session_id: str = Field(foreign_key="studysession.id", index=True)


class Distraction(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    type: str = Field(index=True)
    time_taken: int
    session_id: str = Field(foreign_key="studysession.id", index=True)


class AssignmentWork(SQLModel, table=True):
    """Minutes spent on one assignment during one session."""
    __table_args__ = (UniqueConstraint("assignment_id", "session_id"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    time: int
    assignment_id: str = Field(foreign_key="assignment.id", index=True)
    session_id: str = Field(foreign_key="studysession.id", index=True)
