"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides the
session dependency and the transaction helper used by the services.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session

from .config import settings
from .errors import ConflictError, StorageError

logger = logging.getLogger("studyhabits.db")

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args)


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    Intended for local development and tests; production deployments
    should manage the schema with a migration tool instead.
    """
    from . import models  # noqa: F401  registers the tables on the metadata
    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session


@contextmanager
def transaction(session: Session):
    """Run a block of writes as one unit of work.

    Everything added or deleted inside the block is committed once at the
    end. Any exception rolls the whole block back; unique constraint
    violations surface as `ConflictError` and other SQLAlchemy failures as
    `StorageError`.
    """
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.warning("integrity violation, rolled back: %s", exc.orig)
        raise ConflictError("Record already exists") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("storage failure, rolled back")
        raise StorageError(detail=str(exc)) from exc
    except Exception:
        session.rollback()
        raise
