from fastapi.testclient import TestClient
import jwt

from studyhabits.main import app
from studyhabits.config import settings
from studyhabits.services import AuthService
from studyhabits import models

from conftest import register

client = TestClient(app)


def test_register_login_and_profile():
    r = client.post('/auth/register', json={'username': 'alice', 'password': 'pass123', 'school': 'Purdue'})
    assert r.status_code == 201
    assert 'token' in r.json()
    r2 = client.post('/auth/login', json={'username': 'alice', 'password': 'pass123'})
    assert r2.status_code == 200
    token = r2.json()['token']
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload['username'] == 'alice'
    assert 'exp' in payload
    me = client.get('/users/me', headers={'Authorization': f'Bearer {token}'})
    assert me.status_code == 200
    body = me.json()
    assert body['username'] == 'alice'
    assert body['school'] == 'Purdue'
    assert 'password_hash' not in body and 'password' not in body
    assert r.headers.get('X-Request-ID')


def test_duplicate_username_rejected():
    register(client, 'bob')
    r = client.post('/auth/register', json={'username': 'bob', 'password': 'other123'})
    assert r.status_code == 400
    assert r.json()['message'] == 'User already exists'


def test_register_validation_lists_errors():
    r = client.post('/auth/register', json={'username': 'ab', 'password': '123'})
    assert r.status_code == 400
    body = r.json()
    assert body['message'] == 'Validation failed'
    assert len(body['errors']) == 2


def test_register_rejects_non_object_body():
    r = client.post('/auth/register', json=['alice', 'pass123'])
    assert r.status_code == 400


def test_wrong_password_is_unauthorized():
    register(client, 'carol')
    r = client.post('/auth/login', json={'username': 'carol', 'password': 'wrong-pass'})
    assert r.status_code == 401
    assert r.json() == {'message': 'Invalid credentials'}
    r = client.post('/auth/login', json={'username': 'nobody', 'password': 'wrong-pass'})
    assert r.status_code == 401


def test_protected_routes_need_a_valid_token():
    r = client.get('/semesters')
    assert r.status_code == 401
    assert r.json() == {'message': 'Not authenticated'}
    r = client.get('/semesters', headers={'Authorization': 'Bearer not-a-token'})
    assert r.status_code == 401
    assert r.json() == {'message': 'Invalid token'}


def test_expired_token_rejected():
    user = models.User(username='dave', password_hash='x')
    payload = {'user_id': user.id, 'username': 'dave', 'exp': 1}
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    r = client.get('/users/me', headers={'Authorization': f'Bearer {token}'})
    assert r.status_code == 401
    assert r.json()['message'] == 'Token expired'


def test_issued_token_carries_user_id():
    user = models.User(username='erin', password_hash='x')
    token = AuthService.issue_token(user)
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    assert payload['user_id'] == user.id


def test_update_profile_and_delete_account():
    headers = register(client, 'frank')
    r = client.put('/users/me', json={'startYear': 2023, 'school': '  State   University '}, headers=headers)
    assert r.status_code == 200
    assert r.json()['startYear'] == 2023
    assert r.json()['school'] == 'State University'

    r = client.put('/users/me', json={}, headers=headers)
    assert r.status_code == 400
    assert r.json()['errors'] == ['No valid fields provided to update']

    r = client.put('/users/me', json={'startYear': 1800}, headers=headers)
    assert r.status_code == 400

    sem = client.post('/semesters', json={'season': 'Fall', 'year': 2024}, headers=headers)
    assert sem.status_code == 201
    r = client.delete('/users/me', headers=headers)
    assert r.status_code == 200
    assert client.get('/users/me', headers=headers).status_code == 401
    r = client.post('/auth/login', json={'username': 'frank', 'password': 'pass123'})
    assert r.status_code == 401


def test_health():
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
