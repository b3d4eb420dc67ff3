"""Quiz authoring and quiz-taking endpoints.

Static paths (`/join/{code}`, `/questions/order`) are declared before
their parameterised siblings so they are matched first.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlmodel import Session

from .. import models, services
from ..auth import get_optional_user, require_role
from ..config import settings
from ..database import get_session
from ..errors import Forbidden, InvalidQuizState
from ..schemas import QuestionIn, QuestionOrderIn, QuizCreateIn, QuizUpdateIn
from ..serializers import question_out, quiz_detail, quiz_summary

router = APIRouter(tags=["Quizzes"])

authors = require_role('teacher', 'admin')


@router.get('')
def list_quizzes(category: Optional[str] = None, difficulty: Optional[str] = None,
                 teacher: Optional[int] = None, db: Session = Depends(get_session)):
    """Published quizzes, or all quizzes of `teacher` including drafts."""
    quizzes = services.QuizService(db).list(category=category, difficulty=difficulty, teacher_id=teacher)
    return {'count': len(quizzes), 'quizzes': [quiz_summary(q) for q in quizzes]}


@router.get('/join/{code}')
def join_by_code(code: str, db: Session = Depends(get_session)):
    quiz = services.QuizService(db).get_by_code(code)
    return {'quiz': quiz_summary(quiz)}


@router.post('', status_code=201)
def create_quiz(payload: QuizCreateIn, db: Session = Depends(get_session), user: models.User = Depends(authors)):
    svc = services.QuizService(db)
    quiz = svc.create(user, payload.model_dump())
    return {'quiz': quiz_detail(quiz, svc.questions_for(quiz.id), reveal=True)}


@router.get('/{quiz_id}')
def get_quiz(quiz_id: int, db: Session = Depends(get_session),
             user: Optional[models.User] = Depends(get_optional_user)):
    """Quiz with its questions. Only the owner or an admin sees answers."""
    svc = services.QuizService(db)
    quiz = svc.get(quiz_id)
    reveal = svc.can_manage(user, quiz)
    if not reveal and not quiz.is_published:
        raise Forbidden('This quiz is not published')
    return {'quiz': quiz_detail(quiz, svc.questions_for(quiz.id), reveal=reveal)}


@router.get('/{quiz_id}/take')
def take_quiz(quiz_id: int, code: Optional[str] = None, db: Session = Depends(get_session),
              user: Optional[models.User] = Depends(get_optional_user)):
    """Student view: ordered questions without correctness flags.

    Published public quizzes are open to everyone; other published
    quizzes need their access code as `code`.
    """
    svc = services.QuizService(db)
    quiz = svc.get(quiz_id)
    if not svc.can_manage(user, quiz):
        if not quiz.is_published:
            raise Forbidden('This quiz is not published')
        if not svc.can_access(quiz, user_id=user.id if user else None, code=code):
            raise Forbidden('A valid access code is required for this quiz')
    questions = svc.questions_for(quiz.id)
    if not questions:
        raise InvalidQuizState('Quiz has no questions')
    return {'quiz': quiz_detail(quiz, questions, reveal=False)}


@router.put('/{quiz_id}')
def update_quiz(quiz_id: int, payload: QuizUpdateIn, db: Session = Depends(get_session),
                user: models.User = Depends(authors)):
    svc = services.QuizService(db)
    quiz = svc.update(user, quiz_id, payload.model_dump(exclude_unset=True))
    return {'quiz': quiz_detail(quiz, svc.questions_for(quiz.id), reveal=True)}


@router.delete('/{quiz_id}')
def delete_quiz(quiz_id: int, db: Session = Depends(get_session), user: models.User = Depends(authors)):
    services.QuizService(db).delete(user, quiz_id)
    return {'message': 'Quiz deleted successfully'}


@router.post('/{quiz_id}/generate-code')
def generate_code(quiz_id: int, db: Session = Depends(get_session), user: models.User = Depends(authors)):
    """Replace the access code; the old code stops working."""
    quiz = services.QuizService(db).generate_code(user, quiz_id)
    return {'access_code': quiz.access_code, 'join_link': quiz.join_link}


@router.post('/{quiz_id}/recompute-stats')
def recompute_stats(quiz_id: int, db: Session = Depends(get_session), user: models.User = Depends(authors)):
    quiz = services.QuizService(db).recompute_stats(user, quiz_id)
    return {'attempt_count': quiz.attempt_count, 'average_score': quiz.average_score}


@router.post('/{quiz_id}/questions', status_code=201)
def add_question(quiz_id: int, payload: QuestionIn, db: Session = Depends(get_session),
                 user: models.User = Depends(authors)):
    question = services.QuizService(db).add_question(user, quiz_id, payload.model_dump())
    return {'question': question_out(question)}


@router.put('/{quiz_id}/questions/order')
def reorder_questions(quiz_id: int, payload: QuestionOrderIn, db: Session = Depends(get_session),
                      user: models.User = Depends(authors)):
    questions = services.QuizService(db).reorder_questions(user, quiz_id, payload.question_ids)
    return {'questions': [question_out(q) for q in questions]}


@router.post('/{quiz_id}/questions/import')
def import_questions(quiz_id: int, dry_run: bool = False, file: UploadFile = File(...),
                     db: Session = Depends(get_session), user: models.User = Depends(authors)):
    """Upload a JSON, CSV, TXT, PDF or DOCX file of questions.

    Returns a summary with the created count and per-item errors.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail='no file')
    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail='file too large')
    return services.QuizService(db).import_questions(user, quiz_id, content, file.filename, dry_run=dry_run)


@router.put('/{quiz_id}/questions/{question_id}')
def update_question(quiz_id: int, question_id: int, payload: QuestionIn, db: Session = Depends(get_session),
                    user: models.User = Depends(authors)):
    question = services.QuizService(db).update_question(user, quiz_id, question_id, payload.model_dump())
    return {'question': question_out(question)}


@router.delete('/{quiz_id}/questions/{question_id}')
def delete_question(quiz_id: int, question_id: int, db: Session = Depends(get_session),
                    user: models.User = Depends(authors)):
    services.QuizService(db).delete_question(user, quiz_id, question_id)
    return {'message': 'Question deleted successfully'}
