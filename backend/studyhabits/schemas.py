"""Request and response schemas used by the API.

Every request body is a pydantic model built from the sanitising field
types in `validation.py`; FastAPI validates a body against its model before
the handler runs, so nothing malformed reaches a service. Response shapes
that clients depend on are pydantic models too; entity payloads are built
by the small `*_out` serialisers at the bottom of the module.
"""

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field

from . import models
from .validation import Id, NotBool, UtcDatetime, blank_means_absent, operator_free, optional_text, text

Season = Literal["Spring", "Summer", "Fall", "Winter"]
Minutes = Annotated[int, Field(ge=0, le=models.MAX_MINUTES), NotBool]
Understanding = Annotated[int, Field(ge=0, le=10), NotBool]
Year = Annotated[int, Field(ge=1900, le=2100), NotBool]


def _start_year_window(value: int) -> int:
    latest = date.today().year + 5
    if value < 1900:
        raise ValueError("cannot be before 1900")
    if value > latest:
        raise ValueError(f"cannot be more than 5 years in the future ({latest})")
    return value


def _script_free(value):
    if isinstance(value, str):
        lowered = value.lower()
        if "<script" in lowered or "javascript:" in lowered:
            raise ValueError("contains invalid characters")
    return value


StartYear = Annotated[int, AfterValidator(_start_year_window), NotBool]
# checked on the raw input, before tags are stripped
School = Annotated[text(100), BeforeValidator(_script_free)]


# -- auth / profile ---------------------------------------------------------

class RegisterIn(BaseModel):
    """Payload for user registration."""
    username: text(50, min_length=3)
    password: str = Field(min_length=6, max_length=128)
    startYear: Optional[StartYear] = None
    school: Optional[School] = None


class LoginIn(BaseModel):
    username: text(50)
    password: str = Field(min_length=1, max_length=128)


class ProfileUpdateIn(BaseModel):
    startYear: Optional[StartYear] = None
    school: Optional[School] = None


# -- semesters / classes / assignments --------------------------------------

class SemesterCreate(BaseModel):
    season: Season
    year: Year


class SemesterUpdate(BaseModel):
    season: Optional[Season] = None
    year: Optional[Year] = None


class ClassCreate(BaseModel):
    """A class (course) within one of the caller's semesters."""
    classId: text(50)
    professor: text(50)
    grade: optional_text(50) = None
    semesterId: Id


class ClassUpdate(BaseModel):
    classId: optional_text(50) = None
    professor: optional_text(50) = None
    grade: optional_text(50) = None


class AssignmentCreate(BaseModel):
    classId: Id
    title: text(200)


class AssignmentUpdate(BaseModel):
    title: optional_text(200) = None


# -- sessions and their children --------------------------------------------

class SessionCreate(BaseModel):
    """A study session; `datetime` defaults to now when omitted."""
    title: text(200)
    started_at: Optional[UtcDatetime] = Field(default=None, alias="datetime")


class SessionUpdate(BaseModel):
    title: optional_text(200) = None
    started_at: Optional[UtcDatetime] = Field(default=None, alias="datetime")


class StudyCreate(BaseModel):
    session: Id
    what: text(200)
    understanding: Understanding
    time: Minutes


class StudyUpdate(BaseModel):
    what: Optional[text(200)] = None
    understanding: Optional[Understanding] = None
    time: Optional[Minutes] = None


class DistractionCreate(BaseModel):
    session: Id
    type: operator_free(50)
    timeTaken: Minutes


class DistractionUpdate(BaseModel):
    type: blank_means_absent(operator_free(50)) = None
    timeTaken: Optional[Minutes] = None


class WorkCreate(BaseModel):
    """Minutes spent on one assignment during one session."""
    time: Minutes
    assignmentId: Id
    sessionId: Id


class WorkUpdate(BaseModel):
    time: Minutes


# -- response models --------------------------------------------------------

class TokenOut(BaseModel):
    """Authentication response containing a signed bearer token."""
    token: str


class MessageOut(BaseModel):
    message: str


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ClassRef(_WireModel):
    id: Optional[str] = Field(default=None, alias="_id")
    classId: Optional[str] = None
    professor: Optional[str] = None


class AssignmentRef(_WireModel):
    id: str = Field(alias="_id")
    title: str
    class_: ClassRef = Field(alias="class")


class DistractionItem(_WireModel):
    id: str = Field(alias="_id")
    type: str
    timeTaken: int


class WorkItem(_WireModel):
    id: str = Field(alias="_id")
    time: int
    assignment: AssignmentRef


class StudyItem(_WireModel):
    id: str = Field(alias="_id")
    what: str
    understanding: int
    time: int


class SessionSummary(_WireModel):
    """One session of the filtered-records result with its derived metrics."""
    id: str = Field(alias="_id")
    title: str
    datetime: str
    distractions: List[DistractionItem]
    assignmentworks: List[WorkItem]
    studies: List[StudyItem]
    totalDistractionTime: int
    totalAssignmentTime: int
    totalStudyTime: int
    totalSessionTime: int
    distractionFraction: float
    assignmentFraction: float
    studyFraction: float


class OverallSummary(BaseModel):
    """Grand totals across all matching sessions; fractions of those totals."""
    sessionCount: int
    totalDistractionTime: int
    totalAssignmentTime: int
    totalStudyTime: int
    totalSessionTime: int
    distractionFraction: float
    assignmentFraction: float
    studyFraction: float


class FilteredRecordsOut(BaseModel):
    sessions: List[SessionSummary]
    overall: OverallSummary


# -- entity serialisers -----------------------------------------------------

def isoformat(value: datetime) -> str:
    """Serialise a stored datetime as ISO 8601 in UTC."""
    return models.as_utc(value).isoformat()


def user_out(user: models.User) -> dict:
    return {
        "_id": user.id,
        "username": user.username,
        "startYear": user.start_year,
        "school": user.school,
        "createdAt": isoformat(user.created_at),
    }


def semester_out(semester: models.Semester) -> dict:
    return {"_id": semester.id, "season": semester.season, "year": semester.year, "user": semester.user_id}


def class_out(course: models.Course) -> dict:
    return {
        "_id": course.id,
        "classId": course.class_code,
        "professor": course.professor,
        "grade": course.grade,
        "semester": course.semester_id,
    }


def assignment_out(assignment: models.Assignment, course: Optional[models.Course] = None) -> dict:
    """Serialise an assignment; `course` populates the ``class`` field."""
    return {
        "_id": assignment.id,
        "title": assignment.title,
        "class": class_out(course) if course is not None else assignment.course_id,
    }


def session_out(session: models.StudySession) -> dict:
    return {
        "_id": session.id,
        "title": session.title,
        "datetime": isoformat(session.started_at),
        "user": session.user_id,
    }


def study_out(study: models.Study) -> dict:
    return {
        "_id": study.id,
        "what": study.what,
        "understanding": study.understanding,
        "time": study.time,
        "session": study.session_id,
    }


def distraction_out(distraction: models.Distraction) -> dict:
    return {
        "_id": distraction.id,
        "type": distraction.type,
        "timeTaken": distraction.time_taken,
        "session": distraction.session_id,
    }


def work_out(work: models.AssignmentWork, assignment: Optional[models.Assignment] = None) -> dict:
    """Serialise assignment work; `assignment` populates the ``assignment`` field."""
    return {
        "_id": work.id,
        "time": work.time,
        "assignment": assignment_out(assignment) if assignment is not None else work.assignment_id,
        "session": work.session_id,
    }
