from conftest import question, register


def _submit(client, quiz, answers, headers=None, **extra):
    payload = {'quiz_id': quiz['id'], 'answers': answers, 'time_taken': 90}
    payload.update(extra)
    return client.post('/results/submit', json=payload, headers=headers or {})


def _four_question_quiz(make_quiz):
    return make_quiz(questions=[
        question('First question?', correct=0),
        question('Second question?', correct=1),
        question('Third question?', correct=2),
        question('Fourth question?', correct=3),
    ])


def test_student_submission_scores_and_persists(client, make_quiz, student):
    quiz = _four_question_quiz(make_quiz)
    ids = [q['id'] for q in quiz['questions']]
    answers = [
        {'question_id': ids[3], 'selected_option': 3},
        {'question_id': ids[0], 'selected_option': 0},
        {'question_id': ids[1], 'selected_option': -1},
        {'question_id': 999999, 'selected_option': 0},
    ]
    r = _submit(client, quiz, answers, student_id=student['id'])
    assert r.status_code == 201, r.text
    summary = r.json()['result']
    assert summary['score'] == 2
    assert summary['total_points'] == 4
    assert summary['percentage'] == 50
    assert summary['total_questions'] == 4
    assert summary['grade'] == 'D'
    assert summary['formatted_time'] == '1m 30s'

    stored = client.get(f"/results/{summary['id']}").json()['result']
    assert stored['student_id'] == student['id']
    assert stored['participant_type'] == 'student'
    assert stored['unanswered'] == 2
    assert stored['was_timeout'] is False
    assert [a['question_id'] for a in stored['answers']] == ids
    assert [a['selected_option'] for a in stored['answers']] == [0, -1, -1, 3]
    assert stored['summary']['grade'] == 'D'

    profile = client.get(f"/students/email/{student['email']}").json()['student']
    assert profile['average_score'] == 50
    assert profile['total_quizzes'] == 1


def test_quiz_aggregates_update_incrementally(client, teacher, make_quiz, student):
    _, headers = teacher
    quiz = make_quiz(questions=[question('Only question?', correct=2)])
    qid = quiz['questions'][0]['id']
    for option in (2, 2, 0):
        assert _submit(client, quiz, [{'question_id': qid, 'selected_option': option}],
                       student_id=student['id']).status_code == 201
    detail = client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']
    assert detail['attempt_count'] == 3
    assert detail['average_score'] == 67

    stats = client.get(f"/results/quiz/{quiz['id']}/stats", headers=headers).json()['stats']
    assert stats == {
        'attempt_count': 3, 'average_score': 67, 'highest_score': 100, 'lowest_score': 0,
        'average_time': 90, 'pass_rate': 67, 'pass_percentage': 60,
    }
    r = client.post(f"/quizzes/{quiz['id']}/recompute-stats", headers=headers)
    assert r.json() == {'attempt_count': 3, 'average_score': 67}


def test_submission_failures_store_nothing(client, teacher, make_quiz, student):
    _, headers = teacher
    empty = make_quiz(questions=[])
    r = _submit(client, empty, [], student_id=student['id'])
    assert r.status_code == 409
    assert r.json() == {'detail': 'Quiz has no questions'}

    quiz = make_quiz()
    qid = quiz['questions'][0]['id']
    answers = [{'question_id': qid, 'selected_option': 0}]
    assert _submit(client, {'id': 999999}, answers, student_id=student['id']).status_code == 404
    assert _submit(client, quiz, answers).status_code == 400
    assert _submit(client, quiz, answers, student_id=999999).status_code == 404
    assert _submit(client, quiz, answers, participant_type='user').status_code == 401
    assert _submit(client, quiz, [{'question_id': qid, 'selected_option': 4}],
                   student_id=student['id']).status_code == 422
    assert _submit(client, quiz, answers, student_id=student['id'], time_taken=-5).status_code == 422

    assert client.get(f"/results/quiz/{quiz['id']}", headers=headers).json()['count'] == 0
    assert client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']['attempt_count'] == 0


def test_authenticated_user_submission(client, make_quiz):
    quiz = make_quiz()
    qid = quiz['questions'][0]['id']
    user, headers = register(client, 'student')
    r = _submit(client, quiz, [{'question_id': qid, 'selected_option': 0}], headers=headers,
                participant_type='user')
    assert r.status_code == 201
    mine = client.get('/results/user/me', headers=headers).json()['results']
    assert [m['id'] for m in mine] == [r.json()['result']['id']]
    assert mine[0]['user_id'] == user['id']


def test_timeout_flag(client, make_quiz, student):
    quiz = make_quiz(time_limit=1)
    qid = quiz['questions'][0]['id']
    r = _submit(client, quiz, [{'question_id': qid, 'selected_option': 0}], student_id=student['id'],
                time_taken=75)
    stored = client.get(f"/results/{r.json()['result']['id']}").json()['result']
    assert stored['time_limit'] == 60
    assert stored['was_timeout'] is True
    # elapsed time never changes the score
    assert stored['percentage'] == 100


def test_leaderboard_orders_by_percentage_then_time(client, make_quiz, student):
    quiz = make_quiz(questions=[question('Only question?', correct=1)])
    qid = quiz['questions'][0]['id']
    _submit(client, quiz, [{'question_id': qid, 'selected_option': 1}], student_id=student['id'], time_taken=50)
    _submit(client, quiz, [{'question_id': qid, 'selected_option': 0}], student_id=student['id'], time_taken=5)
    _submit(client, quiz, [{'question_id': qid, 'selected_option': 1}], student_id=student['id'], time_taken=20)
    board = client.get(f"/results/quiz/{quiz['id']}/leaderboard", params={'limit': 2}).json()['leaderboard']
    assert [(row['rank'], row['percentage'], row['time_taken']) for row in board] == [(1, 100, 20), (2, 100, 50)]


def test_results_are_owner_only(client, make_quiz):
    quiz = make_quiz()
    _, other = register(client, 'teacher')
    assert client.get(f"/results/quiz/{quiz['id']}", headers=other).status_code == 403
    assert client.get(f"/results/quiz/{quiz['id']}/stats", headers=other).status_code == 403


def test_student_history_and_teacher_stats(client, teacher, make_quiz, student):
    _, headers = teacher
    quiz = make_quiz()
    qid = quiz['questions'][0]['id']
    _submit(client, quiz, [{'question_id': qid, 'selected_option': 0}], student_id=student['id'])
    _submit(client, quiz, [{'question_id': qid, 'selected_option': 1}], student_id=student['id'])
    history = client.get(f"/results/student/{student['id']}").json()
    assert history['count'] == 2
    assert client.get('/results/student/999999').status_code == 404

    body = client.get('/results/teacher/stats', headers=headers).json()
    assert body['stats']['total_attempts'] == 2
    assert body['stats']['average_score'] == 50
    assert body['stats']['total_students'] == 1


def test_results_survive_quiz_deletion(client, teacher, make_quiz, student):
    _, headers = teacher
    quiz = make_quiz()
    qid = quiz['questions'][0]['id']
    r = _submit(client, quiz, [{'question_id': qid, 'selected_option': 0}], student_id=student['id'])
    client.delete(f"/quizzes/{quiz['id']}", headers=headers)
    assert client.get(f"/results/{r.json()['result']['id']}").status_code == 200


def test_submit_is_rate_limited(client, make_quiz, student, monkeypatch):
    from quizcraft.config import settings
    quiz = make_quiz()
    qid = quiz['questions'][0]['id']
    monkeypatch.setattr(settings, 'SUBMIT_RATE_LIMIT_PER_MIN', 1)
    answers = [{'question_id': qid, 'selected_option': 0}]
    assert _submit(client, quiz, answers, student_id=student['id']).status_code == 201
    assert _submit(client, quiz, answers, student_id=student['id']).status_code == 429


def test_health(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json()['status'] == 'ok'
    assert 'X-Request-ID' in r.headers
