from conftest import register, unique_email


def test_register_login_refresh_and_logout(client):
    email = unique_email("teacher")
    r = client.post('/auth/register', json={
        'name': 'Ada Teacher', 'email': email.upper(), 'password': 'pass123', 'institution': 'Northside',
    })
    assert r.status_code == 201, r.text
    body = r.json()
    assert body['user']['email'] == email
    assert body['user']['role'] == 'teacher'
    assert 'password_hash' not in body['user']

    r2 = client.post('/auth/login', json={'email': email, 'password': 'pass123'})
    assert r2.status_code == 200
    tokens = r2.json()
    headers = {'Authorization': f"Bearer {tokens['access_token']}"}
    me = client.get('/auth/me', headers=headers)
    assert me.json()['user']['last_login'] is not None

    r3 = client.post('/auth/refresh', json={'refresh_token': tokens['refresh_token']})
    assert r3.status_code == 200
    # rotated: the old refresh token is no longer accepted
    r4 = client.post('/auth/refresh', json={'refresh_token': tokens['refresh_token']})
    assert r4.status_code == 401

    assert client.post('/auth/logout', headers=headers).status_code == 200
    r5 = client.post('/auth/refresh', json={'refresh_token': r3.json()['refresh_token']})
    assert r5.status_code == 401


def test_register_validation(client):
    base = {'name': 'Bob', 'email': unique_email(), 'password': 'abc123', 'institution': 'X'}
    assert client.post('/auth/register', json={**base, 'password': 'abcdef'}).status_code == 400
    assert client.post('/auth/register', json={**base, 'password': 'a1'}).status_code == 400
    assert client.post('/auth/register', json={**base, 'institution': None}).status_code == 400
    assert client.post('/auth/register', json={**base, 'role': 'admin'}).status_code == 400
    assert client.post('/auth/register', json={**base, 'email': 'not-an-email'}).status_code == 400
    assert client.post('/auth/register', json={**base, 'role': 'wizard'}).status_code == 422
    assert client.post('/auth/register', json=base).status_code == 201
    dup = client.post('/auth/register', json=base)
    assert dup.status_code == 409
    assert dup.json() == {'detail': 'An account with this email already exists'}


def test_login_failures(client):
    user, _ = register(client, 'teacher')
    bad = client.post('/auth/login', json={'email': user['email'], 'password': 'wrong999'})
    assert bad.status_code == 401
    wrong_role = client.post('/auth/login', json={'email': user['email'], 'password': 'secret123', 'role': 'admin'})
    assert wrong_role.status_code == 401
    unknown = client.post('/auth/login', json={'email': unique_email(), 'password': 'secret123'})
    assert unknown.status_code == 401


def test_protected_routes_need_valid_token(client):
    assert client.get('/auth/me').status_code == 401
    r = client.get('/auth/me', headers={'Authorization': 'Bearer invalid.token.here'})
    assert r.status_code == 401


def test_change_password(client):
    user, headers = register(client, 'teacher')
    r = client.put('/auth/password', json={'current_password': 'nope', 'new_password': 'better1'}, headers=headers)
    assert r.status_code == 400
    r = client.put('/auth/password', json={'current_password': 'secret123', 'new_password': 'better1'},
                   headers=headers)
    assert r.status_code == 200
    assert client.post('/auth/login', json={'email': user['email'], 'password': 'better1'}).status_code == 200


def test_profile_and_onboarding(client, teacher, category):
    _, headers = teacher
    r = client.put('/users/profile', json={'name': 'Renamed Teacher', 'avatar': 'avatar-7'}, headers=headers)
    assert r.status_code == 200
    assert r.json()['user']['name'] == 'Renamed Teacher'
    r = client.put('/users/onboarding', json={'categories': [category['id']]}, headers=headers)
    assert r.json()['user']['onboarding_completed'] is True
    assert r.json()['user']['categories'] == [category['id']]
    assert client.put('/users/onboarding', json={'categories': [999999]}, headers=headers).status_code == 400


def test_teacher_dashboard_stats(client, teacher, make_quiz):
    _, headers = teacher
    make_quiz()
    make_quiz(is_published=False)
    stats = client.get('/users/stats', headers=headers).json()['stats']
    assert stats['total_quizzes'] == 2
    assert stats['published_quizzes'] == 1
    assert stats['draft_quizzes'] == 1


def test_admin_manages_teachers(client, admin):
    _, admin_headers = admin
    target, target_headers = register(client, 'teacher', name='Searchable Person')

    assert client.get('/users/teachers', headers=target_headers).status_code == 403

    listing = client.get('/users/teachers', params={'search': 'searchable'}, headers=admin_headers).json()
    assert any(t['id'] == target['id'] for t in listing['teachers'])
    assert listing['pagination']['current'] == 1

    r = client.put(f"/users/teachers/{target['id']}", json={'is_active': False}, headers=admin_headers)
    assert r.json()['teacher']['is_active'] is False
    login = client.post('/auth/login', json={'email': target['email'], 'password': 'secret123'})
    assert login.status_code == 403
    assert client.get('/auth/me', headers=target_headers).status_code == 403

    assert client.delete(f"/users/teachers/{target['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/users/teachers/{target['id']}", headers=admin_headers).status_code == 404


def test_deleting_teacher_moves_quizzes_to_admin(client, admin, teacher, make_quiz):
    admin_user, admin_headers = admin
    owner, _ = teacher
    quiz = make_quiz()
    draft = make_quiz(is_published=False)

    assert client.delete(f"/users/teachers/{owner['id']}", headers=admin_headers).status_code == 200
    moved = client.get(f"/quizzes/{draft['id']}", headers=admin_headers)
    assert moved.status_code == 200
    assert moved.json()['quiz']['created_by'] == admin_user['id']
    mine = [q['id'] for q in client.get('/quizzes', params={'teacher': admin_user['id']}).json()['quizzes']]
    assert {quiz['id'], draft['id']} <= set(mine)
    assert client.get('/quizzes', params={'teacher': owner['id']}).json()['count'] == 0


def test_teacher_with_own_results_cannot_be_deleted(client, admin, make_quiz):
    _, admin_headers = admin
    quiz = make_quiz()
    taker, taker_headers = register(client, 'teacher')
    answers = [{'question_id': quiz['questions'][0]['id'], 'selected_option': 0}]
    r = client.post('/results/submit', json={'quiz_id': quiz['id'], 'answers': answers, 'time_taken': 30,
                                             'participant_type': 'user'}, headers=taker_headers)
    assert r.status_code == 201, r.text
    r = client.delete(f"/users/teachers/{taker['id']}", headers=admin_headers)
    assert r.status_code == 409
    assert client.get(f"/users/teachers/{taker['id']}", headers=admin_headers).status_code == 200


def test_login_is_rate_limited(client, monkeypatch):
    from quizcraft.config import settings
    monkeypatch.setattr(settings, 'LOGIN_RATE_LIMIT_PER_MIN', 2)
    payload = {'email': unique_email(), 'password': 'whatever1'}
    assert client.post('/auth/login', json=payload).status_code == 401
    assert client.post('/auth/login', json=payload).status_code == 401
    r = client.post('/auth/login', json=payload)
    assert r.status_code == 429
    assert 'Retry-After' in r.headers
