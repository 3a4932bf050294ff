import pytest
from sqlmodel import select

from studyhabits import models
from studyhabits.database import transaction
from studyhabits.errors import ConflictError, StorageError


def test_unique_violation_becomes_conflict_and_rolls_back(db):
    user = models.User(username='u', password_hash='x')
    with transaction(db):
        db.add(user)
        db.add(models.Semester(season='Fall', year=2024, user_id=user.id))

    with pytest.raises(ConflictError):
        with transaction(db):
            db.add(models.Semester(season='Spring', year=2025, user_id=user.id))
            db.add(models.Semester(season='Fall', year=2024, user_id=user.id))
            db.flush()
    # nothing from the failed block was kept
    assert len(db.exec(select(models.Semester)).all()) == 1


def test_error_bodies():
    err = ConflictError('Semester already exists')
    assert err.status_code == 400
    assert err.to_dict() == {'message': 'Semester already exists'}
    storage = StorageError(detail='disk full')
    assert storage.status_code == 500
    assert storage.to_dict() == {'message': 'Server error'}
