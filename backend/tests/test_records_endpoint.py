import random

from fastapi.testclient import TestClient

from studyhabits.main import app

from conftest import register

client = TestClient(app)

FLAGS_OFF = {
    'filterClass': False,
    'filterAssignment': False,
    'filterDistractionType': False,
    'filterDates': False,
}


def _seed(headers, label, sessions=3):
    """Create a semester, class, assignment and a few sessions with entries."""
    sem = client.post('/semesters', json={'season': 'Spring', 'year': 2024}, headers=headers).json()
    cls = client.post('/classes', json={'classId': f'{label}101', 'professor': 'Prof', 'semesterId': sem['_id']}, headers=headers).json()
    asg = client.post('/assignments', json={'classId': cls['_id'], 'title': f'{label} hw'}, headers=headers).json()
    session_ids = []
    for day in range(1, sessions + 1):
        s = client.post('/sessions', json={'title': f'{label} {day}', 'datetime': f'2024-02-0{day}T10:00:00Z'}, headers=headers).json()
        session_ids.append(s['_id'])
        client.post('/distractions/create', json={'session': s['_id'], 'type': f'{label}-type', 'timeTaken': 5}, headers=headers)
        client.post('/study/create', json={'session': s['_id'], 'what': 'notes', 'understanding': 5, 'time': 15}, headers=headers)
        client.post('/work/create', json={'time': 20, 'assignmentId': asg['_id'], 'sessionId': s['_id']}, headers=headers)
    return {'class': cls['_id'], 'assignment': asg['_id'], 'type': f'{label}-type', 'sessions': session_ids}


def test_filtered_records_shape():
    headers = register(client, 'owner')
    seed = _seed(headers, 'A')
    r = client.post('/records/filtered', json=FLAGS_OFF, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert [s['_id'] for s in body['sessions']] == seed['sessions']
    first = body['sessions'][0]
    assert first['totalSessionTime'] == 40
    assert first['assignmentworks'][0]['assignment']['_id'] == seed['assignment']
    assert first['assignmentworks'][0]['assignment']['class']['_id'] == seed['class']
    assert body['overall']['sessionCount'] == 3
    assert body['overall']['totalSessionTime'] == 120


def test_filters_never_reach_other_users():
    mine = register(client, 'mine')
    theirs = register(client, 'theirs')
    my_seed = _seed(mine, 'M')
    their_seed = _seed(theirs, 'T')
    rng = random.Random(1234)
    pool_classes = [my_seed['class'], their_seed['class']]
    pool_assignments = [my_seed['assignment'], their_seed['assignment']]
    pool_types = [my_seed['type'], their_seed['type']]
    for _ in range(25):
        body = {
            'filterClass': rng.random() < 0.5,
            'filterAssignment': rng.random() < 0.5,
            'filterDistractionType': rng.random() < 0.5,
            'filterDates': rng.random() < 0.5,
            'selectedClasses': rng.sample(pool_classes, rng.randint(0, 2)),
            'selectedAssignments': rng.sample(pool_assignments, rng.randint(0, 2)),
            'selectedDistractionTypes': rng.sample(pool_types, rng.randint(0, 2)),
            'startDate': '2024-01-01T00:00:00Z',
            'endDate': '2024-12-31T23:59:59Z',
        }
        r = client.post('/records/filtered', json=body, headers=mine)
        assert r.status_code == 200
        returned = {s['_id'] for s in r.json()['sessions']}
        assert returned <= set(my_seed['sessions'])


def test_selecting_another_users_class_matches_nothing():
    mine = register(client, 'mine')
    theirs = register(client, 'theirs')
    _seed(mine, 'M')
    their_seed = _seed(theirs, 'T')
    body = dict(FLAGS_OFF, filterClass=True, selectedClasses=[their_seed['class']])
    r = client.post('/records/filtered', json=body, headers=mine)
    assert r.status_code == 200
    assert r.json()['sessions'] == []
    assert r.json()['overall']['sessionCount'] == 0


def test_date_filter_over_http():
    headers = register(client, 'dates')
    seed = _seed(headers, 'D')
    body = dict(FLAGS_OFF, filterDates=True, startDate='2024-02-02T00:00:00Z', endDate='2024-02-03T10:00:00Z')
    r = client.post('/records/filtered', json=body, headers=headers)
    assert [s['_id'] for s in r.json()['sessions']] == seed['sessions'][1:]


def test_bad_filter_bodies_rejected():
    headers = register(client, 'picky')
    body = dict(FLAGS_OFF, filterDates=True, startDate='2024-05-01T00:00:00Z', endDate='2024-01-01T00:00:00Z')
    r = client.post('/records/filtered', json=body, headers=headers)
    assert r.status_code == 400
    assert 'startDate must be before endDate' in r.json()['errors']

    body = dict(FLAGS_OFF, filterDistractionType=True, selectedDistractionTypes=['$where'])
    assert client.post('/records/filtered', json=body, headers=headers).status_code == 400

    body = dict(FLAGS_OFF, filterClass=True, selectedClasses=[{'$gt': ''}])
    assert client.post('/records/filtered', json=body, headers=headers).status_code == 400

    r = client.post('/records/filtered', json={'filterClass': True}, headers=headers)
    assert r.status_code == 400
