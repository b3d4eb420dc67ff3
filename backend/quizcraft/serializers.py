"""Convert ORM objects into the JSON dictionaries returned by the API.

Controllers share these helpers so that a quiz or result looks the same
on every endpoint. Nothing here touches the database beyond already
loaded relationships.
"""

from typing import Optional

from . import models
from .aggregates import format_duration, letter_grade


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def user_public(user: models.User) -> dict:
    """Profile fields safe to expose; never the hash or refresh token."""
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'institution': user.institution,
        'organization': user.organization,
        'avatar': user.avatar,
        'categories': list(user.categories or []),
        'onboarding_completed': user.onboarding_completed,
        'is_active': user.is_active,
        'last_login': _iso(user.last_login),
        'created_at': _iso(user.created_at),
    }


def category_out(category: models.Category) -> dict:
    return {
        'id': category.id,
        'name': category.name,
        'description': category.description,
        'icon': category.icon,
        'color': category.color,
        'is_active': category.is_active,
        'quiz_count': category.quiz_count,
    }


def quiz_summary(quiz: models.Quiz) -> dict:
    return {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'category_id': quiz.category_id,
        'created_by': quiz.created_by_id,
        'difficulty': quiz.difficulty,
        'time_limit': quiz.time_limit,
        'pass_percentage': quiz.pass_percentage,
        'is_published': quiz.is_published,
        'is_public': quiz.is_public,
        'tags': list(quiz.tags or []),
        'question_count': quiz.question_count,
        'total_points': quiz.total_points,
        'attempt_count': quiz.attempt_count,
        'average_score': quiz.average_score,
        'created_at': _iso(quiz.created_at),
    }


def question_out(question: models.Question, reveal: bool = True) -> dict:
    """Serialize a question; `reveal=False` hides correctness and explanation."""
    options = []
    for o in question.options:
        item = {'index': o.position, 'text': o.text}
        if reveal:
            item['is_correct'] = o.is_correct
        options.append(item)
    out = {
        'id': question.id,
        'question_text': question.question_text,
        'points': question.points,
        'order': question.position,
        'image_url': question.image_url,
        'time_limit_override': question.time_limit_override,
        'options': options,
    }
    if reveal:
        out['explanation'] = question.explanation
    return out


def quiz_detail(quiz: models.Quiz, questions, reveal: bool) -> dict:
    """Quiz summary plus its ordered questions.

    The access code and join link are only included when `reveal` is
    set (owner or admin).
    """
    out = quiz_summary(quiz)
    out['questions'] = [question_out(q, reveal) for q in questions]
    if reveal:
        out['access_code'] = quiz.access_code
        out['join_link'] = quiz.join_link
    return out


def student_out(student: models.Student) -> dict:
    return {
        'id': student.id,
        'name': student.name,
        'email': student.email,
        'avatar': student.avatar,
        'class_name': student.class_name,
        'total_quizzes': student.total_quizzes,
        'average_score': student.average_score,
        'last_active': _iso(student.last_active),
    }


def result_out(result: models.Result, with_answers: bool = False) -> dict:
    out = {
        'id': result.id,
        'quiz_id': result.quiz_id,
        'participant_type': result.participant_type,
        'user_id': result.user_id,
        'student_id': result.student_id,
        'score': result.score,
        'total_points': result.total_points,
        'total_questions': result.total_questions,
        'correct_answers': result.correct_answers,
        'incorrect_answers': result.incorrect_answers,
        'unanswered': result.unanswered,
        'percentage': result.percentage,
        'time_taken': result.time_taken,
        'time_limit': result.time_limit,
        'was_timeout': result.was_timeout,
        'started_at': _iso(result.started_at),
        'completed_at': _iso(result.completed_at),
    }
    if with_answers:
        out['answers'] = [
            {
                'question_id': a.question_id,
                'selected_option': a.selected_option,
                'is_correct': a.is_correct,
                'points_earned': a.points_earned,
            }
            for a in result.answers
        ]
        out['summary'] = {
            'grade': letter_grade(result.percentage),
            'formatted_time': format_duration(result.time_taken),
        }
    return out
