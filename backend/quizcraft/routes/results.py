"""Quiz submission and result analytics endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from .. import models, services
from ..aggregates import format_duration, letter_grade
from ..auth import get_current_user, get_optional_user, require_role
from ..config import settings
from ..database import get_session
from ..schemas import QuizSubmission
from ..serializers import result_out
from ..utils.rate_limit import enforce_rate_limit, submit_limiter

router = APIRouter(tags=["Results"])


@router.post('/submit', status_code=201)
def submit(submission: QuizSubmission, request: Request, db: Session = Depends(get_session),
           user: Optional[models.User] = Depends(get_optional_user)):
    """Score a quiz attempt and store the result.

    Guest students send `student_id`; authenticated users send
    `participant_type='user'` with a bearer token. Nothing is stored when
    the quiz, its questions or the participant are missing.
    """
    enforce_rate_limit(submit_limiter, request, settings.SUBMIT_RATE_LIMIT_PER_MIN)
    answers = [{'question_id': a.question_id, 'selected_option': a.selected_option} for a in submission.answers]
    result, report = services.SubmissionService(db).submit(
        submission.quiz_id, answers, submission.time_taken,
        participant_type=submission.participant_type, student_id=submission.student_id, user=user,
    )
    return {
        'message': 'Quiz submitted successfully',
        'result': {
            'id': result.id,
            'score': report.score,
            'total_points': report.total_points,
            'percentage': report.percentage,
            'correct_answers': report.correct_answers,
            'incorrect_answers': report.incorrect_answers,
            'unanswered': report.unanswered,
            'total_questions': report.total_questions,
            'time_taken': report.elapsed_seconds,
            'grade': letter_grade(report.percentage),
            'formatted_time': format_duration(report.elapsed_seconds),
        },
    }


@router.get('/quiz/{quiz_id}')
def results_for_quiz(quiz_id: int, db: Session = Depends(get_session),
                     user: models.User = Depends(require_role('teacher', 'admin'))):
    results = services.ResultService(db).for_quiz(user, quiz_id)
    return {'count': len(results), 'results': [result_out(r) for r in results]}


@router.get('/quiz/{quiz_id}/stats')
def quiz_stats(quiz_id: int, db: Session = Depends(get_session),
               user: models.User = Depends(require_role('teacher', 'admin'))):
    """Exact statistics recomputed from every stored attempt."""
    return {'stats': services.ResultService(db).quiz_stats(user, quiz_id)}


@router.get('/quiz/{quiz_id}/leaderboard')
def leaderboard(quiz_id: int, limit: int = 10, db: Session = Depends(get_session)):
    results = services.ResultService(db).leaderboard(quiz_id, limit)
    return {
        'leaderboard': [
            {'rank': i, **result_out(r)} for i, r in enumerate(results, start=1)
        ]
    }


@router.get('/student/{student_id}')
def results_for_student(student_id: int, db: Session = Depends(get_session)):
    results = services.ResultService(db).for_student(student_id)
    return {'count': len(results), 'results': [result_out(r) for r in results]}


@router.get('/user/me')
def my_results(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    results = services.ResultService(db).for_user(user)
    return {'count': len(results), 'results': [result_out(r) for r in results]}


@router.get('/teacher/stats')
def teacher_stats(db: Session = Depends(get_session),
                  user: models.User = Depends(require_role('teacher', 'admin'))):
    stats, results = services.ResultService(db).teacher_stats(user)
    return {'stats': stats, 'recent_results': [result_out(r) for r in results[:10]]}


@router.get('/{result_id}')
def get_result(result_id: int, db: Session = Depends(get_session)):
    """A single result with its per-question breakdown and grade summary."""
    return {'result': result_out(services.ResultService(db).get(result_id), with_answers=True)}
