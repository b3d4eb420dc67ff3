import io
import json

from docx import Document

from conftest import question, register


def make_docx_bytes(q_and_answers):
    doc = Document()
    for q, answers in q_and_answers:
        doc.add_paragraph(q)
        for a in answers:
            doc.add_paragraph(a)
        doc.add_paragraph('')
    bio = io.BytesIO()
    doc.save(bio)
    return bio.getvalue()


def test_create_quiz_with_category_name_and_access_code(client, teacher, category):
    _, headers = teacher
    r = client.post('/quizzes', json={
        'title': 'Fractions',
        'category': category['name'].lower(),
        'is_published': True,
        'questions': [question(points=2), question('Which is largest?', correct=3, points=3)],
    }, headers=headers)
    assert r.status_code == 201, r.text
    quiz = r.json()['quiz']
    assert quiz['category_id'] == category['id']
    assert quiz['question_count'] == 2
    assert quiz['total_points'] == 5
    assert 'cover_image' not in quiz
    assert len(quiz['access_code']) == 6
    assert quiz['join_link'].endswith(f"join-quiz.html?code={quiz['access_code']}")
    assert [q['order'] for q in quiz['questions']] == [0, 1]

    joined = client.get(f"/quizzes/join/{quiz['access_code'].lower()}")
    assert joined.status_code == 200
    assert joined.json()['quiz']['id'] == quiz['id']


def test_draft_quiz_has_no_access_code(make_quiz, client):
    quiz = make_quiz(is_published=False)
    assert quiz['access_code'] is None
    assert client.get(f"/quizzes/{quiz['id']}").status_code == 403


def test_quiz_validation_rejects_bad_questions(client, teacher, category):
    _, headers = teacher
    base = {'title': 'Validated quiz', 'category': str(category['id'])}
    two_correct = question()
    two_correct['options'][1]['is_correct'] = True
    three_options = question()
    three_options['options'] = three_options['options'][:3]
    for bad in (two_correct, three_options, question(text='Hi?'), question(points=0)):
        r = client.post('/quizzes', json={**base, 'questions': [bad]}, headers=headers)
        assert r.status_code == 400, bad
    assert client.post('/quizzes', json={**base, 'title': 'No'}, headers=headers).status_code == 400
    assert client.post('/quizzes', json={**base, 'time_limit': 500}, headers=headers).status_code == 400
    assert client.post('/quizzes', json={**base, 'difficulty': 'extreme'}, headers=headers).status_code == 400
    assert client.post('/quizzes', json={**base, 'category': 'no such category'}, headers=headers).status_code == 400


def test_students_cannot_author_quizzes(client, category):
    _, headers = register(client, 'student')
    r = client.post('/quizzes', json={'title': 'Sneaky', 'category': str(category['id'])}, headers=headers)
    assert r.status_code == 403


def test_list_quizzes_filters(client, teacher, make_quiz):
    user, _ = teacher
    published = make_quiz(difficulty='hard')
    draft = make_quiz(is_published=False)
    public_ids = [q['id'] for q in client.get('/quizzes').json()['quizzes']]
    assert published['id'] in public_ids
    assert draft['id'] not in public_ids
    mine = [q['id'] for q in client.get('/quizzes', params={'teacher': user['id']}).json()['quizzes']]
    assert {published['id'], draft['id']} <= set(mine)
    hard = client.get('/quizzes', params={'difficulty': 'hard', 'teacher': user['id']}).json()['quizzes']
    assert [q['id'] for q in hard] == [published['id']]


def test_take_view_hides_answers(client, make_quiz):
    quiz = make_quiz(questions=[question(correct=2), question('Second question?', correct=1)])
    r = client.get(f"/quizzes/{quiz['id']}/take", params={'code': quiz['access_code']})
    assert r.status_code == 200
    body = r.json()['quiz']
    assert 'access_code' not in body
    for q in body['questions']:
        assert 'explanation' not in q
        assert all(set(o) == {'index', 'text'} for o in q['options'])
    public = client.get(f"/quizzes/{quiz['id']}").json()['quiz']
    assert all('is_correct' not in o for q in public['questions'] for o in q['options'])


def test_take_requires_code_unless_public(client, teacher, make_quiz):
    _, headers = teacher
    private = make_quiz()
    take = f"/quizzes/{private['id']}/take"
    assert client.get(take).status_code == 403
    assert client.get(take, params={'code': 'WRONG2'}).status_code == 403
    assert client.get(take, params={'code': private['access_code'].lower()}).status_code == 200
    # the owner previews without a code
    assert client.get(take, headers=headers).status_code == 200

    public = make_quiz(is_public=True)
    assert client.get(f"/quizzes/{public['id']}/take").status_code == 200

    draft = make_quiz(is_public=True, is_published=False)
    assert client.get(f"/quizzes/{draft['id']}/take").status_code == 403


def test_take_empty_quiz_is_conflict(client, make_quiz):
    quiz = make_quiz(questions=[])
    r = client.get(f"/quizzes/{quiz['id']}/take", params={'code': quiz['access_code']})
    assert r.status_code == 409


def test_question_changes_recompute_totals(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz()
    qid = quiz['questions'][0]['id']
    r = client.post(f"/quizzes/{quiz['id']}/questions", json=question('Added question?', points=4), headers=headers)
    assert r.status_code == 201
    new_id = r.json()['question']['id']
    detail = client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']
    assert (detail['question_count'], detail['total_points']) == (2, 5)

    r = client.put(f"/quizzes/{quiz['id']}/questions/{qid}", json=question('Updated text?', correct=3, points=10),
                   headers=headers)
    assert r.status_code == 200
    assert r.json()['question']['options'][3]['is_correct'] is True
    detail = client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']
    assert detail['total_points'] == 14

    r = client.put(f"/quizzes/{quiz['id']}/questions/order", json={'question_ids': [new_id, qid]}, headers=headers)
    assert [q['id'] for q in r.json()['questions']] == [new_id, qid]
    bad = client.put(f"/quizzes/{quiz['id']}/questions/order", json={'question_ids': [qid]}, headers=headers)
    assert bad.status_code == 400

    assert client.delete(f"/quizzes/{quiz['id']}/questions/{qid}", headers=headers).status_code == 200
    detail = client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']
    assert (detail['question_count'], detail['total_points']) == (1, 4)
    assert client.delete(f"/quizzes/{quiz['id']}/questions/{qid}", headers=headers).status_code == 404


def test_only_owner_or_admin_can_modify(client, admin, make_quiz):
    quiz = make_quiz()
    _, other_headers = register(client, 'teacher')
    assert client.put(f"/quizzes/{quiz['id']}", json={'title': 'Hijacked'}, headers=other_headers).status_code == 403
    assert client.delete(f"/quizzes/{quiz['id']}", headers=other_headers).status_code == 403
    _, admin_headers = admin
    r = client.put(f"/quizzes/{quiz['id']}", json={'title': 'Renamed by admin'}, headers=admin_headers)
    assert r.json()['quiz']['title'] == 'Renamed by admin'


def test_generate_code_replaces_old_code(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz()
    old = quiz['access_code']
    r = client.post(f"/quizzes/{quiz['id']}/generate-code", headers=headers)
    new = r.json()['access_code']
    assert len(new) == 6
    assert new != old
    assert client.get(f"/quizzes/join/{new}").status_code == 200
    assert client.get(f"/quizzes/join/{old}").status_code == 404


def test_delete_quiz(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz()
    assert client.delete(f"/quizzes/{quiz['id']}", headers=headers).status_code == 200
    assert client.get(f"/quizzes/{quiz['id']}").status_code == 404


def test_import_questions_reports_item_errors(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz(questions=[])
    items = [
        question('Imported one?'),
        question('Imported two?', correct=3, points=2),
        {'question_text': 'Too few options?', 'options': ['a', 'b']},
    ]
    files = {'file': ('questions.json', json.dumps(items).encode(), 'application/json')}
    r = client.post(f"/quizzes/{quiz['id']}/questions/import", files=files, headers=headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body['created'] == 2
    assert [e['index'] for e in body['errors']] == [2]
    detail = client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']
    assert (detail['question_count'], detail['total_points']) == (2, 3)


def test_import_docx_dry_run_and_real(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz(questions=[])
    docx_bytes = make_docx_bytes([
        ("What is 2+2?", ["4", "3", "5", "22"]),
        ("Capital of France?", ["London", "*Paris", "Rome", "Berlin"]),
    ])
    files = {'file': ('questions.docx', docx_bytes)}
    dry = client.post(f"/quizzes/{quiz['id']}/questions/import", params={'dry_run': 'true'},
                      files=files, headers=headers).json()
    assert dry['created'] == 2 and dry['dry_run'] is True
    assert client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']['question_count'] == 0

    r = client.post(f"/quizzes/{quiz['id']}/questions/import", files=files, headers=headers)
    assert r.json()['created'] == 2
    questions = client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']['questions']
    assert questions[1]['options'][1]['is_correct'] is True


def test_import_unsupported_file(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz(questions=[])
    files = {'file': ('questions.xlsx', b'junk')}
    r = client.post(f"/quizzes/{quiz['id']}/questions/import", files=files, headers=headers)
    assert r.status_code == 400
    assert r.json() == {'detail': 'Unsupported file type'}


def test_can_access_rules():
    from quizcraft.models import Quiz
    from quizcraft.services import QuizService

    quiz = Quiz(title='Access', category_id=1, created_by_id=7, is_published=True, is_public=False,
                access_code='ABC234')
    assert QuizService.can_access(quiz, user_id=7)
    assert not QuizService.can_access(quiz, user_id=8)
    assert QuizService.can_access(quiz, code='abc234')
    assert not QuizService.can_access(quiz, code='XYZ789')
    quiz.is_public = True
    assert QuizService.can_access(quiz)
    quiz.is_published = False
    assert not QuizService.can_access(quiz)


def test_import_corrupt_docx_and_pdf_are_rejected(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz(questions=[])
    url = f"/quizzes/{quiz['id']}/questions/import"
    r = client.post(url, files={'file': ('questions.docx', b'not a zip file')}, headers=headers)
    assert r.status_code == 400
    assert r.json() == {'detail': 'could not read DOCX file'}
    r = client.post(url, files={'file': ('questions.pdf', b'%PDF-1.4 garbage without objects')}, headers=headers)
    assert r.status_code == 400
    assert r.json() == {'detail': 'could not read PDF file'}
    assert client.get(f"/quizzes/{quiz['id']}", headers=headers).json()['quiz']['question_count'] == 0


def test_import_item_with_scalar_options_is_reported(client, teacher, make_quiz):
    _, headers = teacher
    quiz = make_quiz(questions=[])
    items = [question('Valid imported question?'), {'question_text': 'Options are a number?', 'options': 5}]
    files = {'file': ('questions.json', json.dumps(items).encode(), 'application/json')}
    r = client.post(f"/quizzes/{quiz['id']}/questions/import", files=files, headers=headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body['created'] == 1
    assert [e['index'] for e in body['errors']] == [1]
    assert body['errors'][0]['error'] == 'Exactly 4 options are required'
