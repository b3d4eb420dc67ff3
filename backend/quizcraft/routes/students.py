"""Guest student endpoints. Profile and joining are public."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session

from .. import models, services
from ..auth import require_role
from ..database import get_session
from ..schemas import JoinQuizIn, StudentIn, VerifyCodeIn
from ..serializers import quiz_summary, student_out

router = APIRouter(tags=["Students"])


@router.post('/create')
def create_student(payload: StudentIn, db: Session = Depends(get_session)):
    """Create a student profile, or update the one with the same email."""
    student, created = services.StudentService(db).create_or_update(
        payload.name, payload.email, payload.avatar, payload.class_name)
    return JSONResponse(status_code=201 if created else 200, content={'student': student_out(student)})


@router.post('/verify-code')
def verify_code(payload: VerifyCodeIn, db: Session = Depends(get_session)):
    quiz = services.QuizService(db).get_by_code(payload.code)
    return {'quiz': quiz_summary(quiz)}


@router.post('/join-quiz')
def join_quiz(payload: JoinQuizIn, db: Session = Depends(get_session)):
    quiz, student = services.StudentService(db).join_quiz(payload.quiz_id, payload.student_email)
    return {'message': 'Successfully joined quiz', 'quiz': quiz_summary(quiz), 'student': student_out(student)}


@router.get('/email/{email}')
def get_by_email(email: str, db: Session = Depends(get_session)):
    return {'student': student_out(services.StudentService(db).get_by_email(email))}


@router.get('/quiz/{quiz_id}')
def students_for_quiz(quiz_id: int, db: Session = Depends(get_session),
                      user: models.User = Depends(require_role('teacher', 'admin'))):
    """Students who attempted the quiz, each with their best percentage."""
    rows = services.StudentService(db).for_quiz(user, quiz_id)
    students = [
        {**student_out(r['student']), 'score': r['score'], 'last_attempt': r['last_attempt'].isoformat()}
        for r in rows
    ]
    return {'count': len(students), 'students': students}


@router.get('/teacher')
def students_for_teacher(db: Session = Depends(get_session),
                         user: models.User = Depends(require_role('teacher', 'admin'))):
    students = services.StudentService(db).for_teacher(user)
    return {'count': len(students), 'students': [student_out(s) for s in students]}
