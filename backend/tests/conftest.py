import os
import tempfile
from pathlib import Path

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="studyhabits-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("ALLOW_DEV_CORS", "false")

from sqlmodel import SQLModel, Session  # noqa: E402

from studyhabits.database import engine  # noqa: E402
from studyhabits import models  # noqa: E402,F401


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure a fresh set of tables for every test."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def db():
    with Session(engine) as session:
        yield session


def register(client, username, password="pass123"):
    """Register `username` and return auth headers for it."""
    r = client.post('/auth/register', json={'username': username, 'password': password})
    assert r.status_code == 201, r.text
    return {'Authorization': f"Bearer {r.json()['token']}"}
