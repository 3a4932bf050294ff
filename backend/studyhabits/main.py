"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the study-habits backend.
Controllers are intentionally thin: they check path ids, delegate to
services, and return JSON responses. Services raise the exceptions in
`errors.py`; one handler renders them as ``{message, errors?}``.

Endpoints implemented:
- POST /auth/register, POST /auth/login
- GET|PUT|DELETE /users/me
- /semesters, /classes, /assignments, /sessions (CRUD)
- /study, /distractions, /work (per-session CRUD)
- POST /records/filtered
- GET /health
"""

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import json
import logging
import time
import uuid

from .config import settings
from .database import create_db_and_tables, get_session
from . import models, schemas, services
from .auth import get_current_user
from .errors import AuthenticationError, StorageError, StudyHabitsError
from .filters import FilterSpec
from .records import RecordService
from .schemas import FilteredRecordsOut, MessageOut, TokenOut
from .validation import describe_errors, require_id

app = FastAPI(title="Study Habits API")
logger = logging.getLogger("studyhabits.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(StudyHabitsError)
async def app_error_handler(request: Request, exc: StudyHabitsError):
    body = exc.to_dict()
    if isinstance(exc, StorageError) and exc.detail and settings.expose_error_detail:
        body["error"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("unhandled storage error on %s", request.url.path)
    return await app_error_handler(request, StorageError(detail=str(exc)))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": describe_errors(exc.errors())})


# ---------------------------------------------------------------------------
# auth / profile
# ---------------------------------------------------------------------------

@app.post('/auth/register', status_code=201, response_model=TokenOut)
def register(payload: schemas.RegisterIn, db: Session = Depends(get_session)):
    """Register a new user and return a bearer token.

    A username that already exists is rejected with 400.
    """
    return {'token': services.AuthService(db).register(payload)}


@app.post('/auth/login', response_model=TokenOut)
def login(payload: schemas.LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token."""
    token = services.AuthService(db).authenticate(payload)
    if not token:
        raise AuthenticationError("Invalid credentials")
    return {'token': token}


@app.get('/users/me')
def get_profile(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.UserService(db).profile(user.id)


@app.put('/users/me')
def update_profile(payload: schemas.ProfileUpdateIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update `startYear` and/or `school` of the authenticated user."""
    return services.UserService(db).update_profile(user.id, payload)


@app.delete('/users/me', response_model=MessageOut)
def delete_account(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete the account together with every semester and session it owns."""
    services.UserService(db).delete_account(user.id)
    return {'message': 'Account deleted'}


# ---------------------------------------------------------------------------
# semesters
# ---------------------------------------------------------------------------

@app.get('/semesters')
def list_semesters(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List the user's semesters, newest year first."""
    return services.SemesterService(db).list_mine(user.id)


@app.post('/semesters', status_code=201)
def create_semester(payload: schemas.SemesterCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.SemesterService(db).create(user.id, payload)


@app.put('/semesters/{semester_id}')
def update_semester(semester_id: str, payload: schemas.SemesterUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(semester_id, 'id')
    return services.SemesterService(db).update(user.id, semester_id, payload)


@app.delete('/semesters/{semester_id}', response_model=MessageOut)
def delete_semester(semester_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete a semester and cascade to its classes, assignments and work."""
    require_id(semester_id, 'id')
    services.SemesterService(db).delete(user.id, semester_id)
    return {'message': 'Semester deleted successfully'}


# ---------------------------------------------------------------------------
# classes
# ---------------------------------------------------------------------------

@app.get('/classes/mine')
def list_my_classes(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """All classes across the user's semesters."""
    return services.ClassService(db).list_mine(user.id)


@app.get('/classes/{semester_id}')
def list_classes(semester_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(semester_id, 'semesterId')
    return services.ClassService(db).list_for_semester(user.id, semester_id)


@app.post('/classes', status_code=201)
def create_class(payload: schemas.ClassCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ClassService(db).create(user.id, payload)


@app.put('/classes/{class_id}')
def update_class(class_id: str, payload: schemas.ClassUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(class_id, 'id')
    return services.ClassService(db).update(user.id, class_id, payload)


@app.delete('/classes/{class_id}', response_model=MessageOut)
def delete_class(class_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(class_id, 'id')
    services.ClassService(db).delete(user.id, class_id)
    return {'message': 'Class deleted'}


# ---------------------------------------------------------------------------
# assignments
# ---------------------------------------------------------------------------

@app.get('/assignments/mine')
def list_my_assignments(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """All of the user's assignments, each populated with its class."""
    return services.AssignmentService(db).list_mine(user.id)


@app.get('/assignments/{class_id}')
def list_assignments(class_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(class_id, 'classId')
    return services.AssignmentService(db).list_for_class(user.id, class_id)


@app.post('/assignments', status_code=201)
def create_assignment(payload: schemas.AssignmentCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.AssignmentService(db).create(user.id, payload)


@app.put('/assignments/{assignment_id}')
def update_assignment(assignment_id: str, payload: schemas.AssignmentUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(assignment_id, 'id')
    return services.AssignmentService(db).update(user.id, assignment_id, payload)


@app.delete('/assignments/{assignment_id}', response_model=MessageOut)
def delete_assignment(assignment_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(assignment_id, 'id')
    services.AssignmentService(db).delete(user.id, assignment_id)
    return {'message': 'Assignment deleted successfully'}


# ---------------------------------------------------------------------------
# study sessions
# ---------------------------------------------------------------------------

@app.get('/sessions/mine')
def list_sessions(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List the user's study sessions, most recent first."""
    return services.StudySessionService(db).list_mine(user.id)


@app.post('/sessions', status_code=201)
def create_session(payload: schemas.SessionCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Create a session; `datetime` defaults to now when omitted."""
    return services.StudySessionService(db).create(user.id, payload)


@app.put('/sessions/{session_id}')
def update_session(session_id: str, payload: schemas.SessionUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(session_id, 'id')
    return services.StudySessionService(db).update(user.id, session_id, payload)


@app.delete('/sessions/{session_id}', response_model=MessageOut)
def delete_session(session_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete a session with its study, distraction and work entries."""
    require_id(session_id, 'id')
    services.StudySessionService(db).delete(user.id, session_id)
    return {'message': 'Study session deleted successfully'}


# ---------------------------------------------------------------------------
# per-session entries: study, distractions, assignment work
# ---------------------------------------------------------------------------

@app.post('/study/create', status_code=201)
def create_study(payload: schemas.StudyCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.StudyService(db).create(user.id, payload)


@app.get('/study/{session_id}')
def list_study(session_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(session_id, 'sessionId')
    return services.StudyService(db).list_for_session(user.id, session_id)


@app.put('/study/{study_id}')
def update_study(study_id: str, payload: schemas.StudyUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(study_id, 'id')
    return services.StudyService(db).update(user.id, study_id, payload)


@app.delete('/study/{study_id}', response_model=MessageOut)
def delete_study(study_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(study_id, 'id')
    services.StudyService(db).delete(user.id, study_id)
    return {'message': 'Study entry deleted'}


@app.post('/distractions/create', status_code=201)
def create_distraction(payload: schemas.DistractionCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.DistractionService(db).create(user.id, payload)


@app.get('/distractions/types/mine')
def list_distraction_types(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Distinct distraction types the user has logged, sorted."""
    return services.DistractionService(db).types_mine(user.id)


@app.get('/distractions/{session_id}')
def list_distractions(session_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(session_id, 'sessionId')
    return services.DistractionService(db).list_for_session(user.id, session_id)


@app.put('/distractions/{distraction_id}')
def update_distraction(distraction_id: str, payload: schemas.DistractionUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(distraction_id, 'id')
    return services.DistractionService(db).update(user.id, distraction_id, payload)


@app.delete('/distractions/{distraction_id}', response_model=MessageOut)
def delete_distraction(distraction_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(distraction_id, 'id')
    services.DistractionService(db).delete(user.id, distraction_id)
    return {'message': 'Distraction deleted'}


@app.post('/work/create', status_code=201)
def create_work(payload: schemas.WorkCreate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Log minutes spent on an assignment during a session.

    One entry per (assignment, session); a second one is rejected with 400.
    """
    return services.WorkService(db).create(user.id, payload)


@app.get('/work/{session_id}')
def list_work(session_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(session_id, 'sessionId')
    return services.WorkService(db).list_for_session(user.id, session_id)


@app.put('/work/{work_id}')
def update_work(work_id: str, payload: schemas.WorkUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(work_id, 'id')
    return services.WorkService(db).update(user.id, work_id, payload)


@app.delete('/work/{work_id}', response_model=MessageOut)
def delete_work(work_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    require_id(work_id, 'id')
    services.WorkService(db).delete(user.id, work_id)
    return {'message': 'Work deleted successfully'}


# ---------------------------------------------------------------------------
# records
# ---------------------------------------------------------------------------

@app.post('/records/filtered', response_model=FilteredRecordsOut)
def filtered_records(spec: FilterSpec, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return the user's sessions matching the filters with time statistics.

    The body carries four boolean toggles (`filterClass`,
    `filterAssignment`, `filterDistractionType`, `filterDates`) and the
    selections they apply to. The response lists every matching session
    with its totals and fractions, plus an `overall` summary computed from
    the grand totals.
    """
    return RecordService(db).filtered_records(user.id, spec)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
