"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.

Results keep `quiz_id` and `question_id` as plain indexed columns rather
than foreign keys: a result is an immutable history record and stays
readable after its quiz or questions are deleted.
"""

from typing import List, Optional
from datetime import datetime, timezone

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field, Relationship

ROLES = ('admin', 'teacher', 'student')
DIFFICULTIES = ('easy', 'medium', 'hard')
PARTICIPANT_TYPES = ('student', 'user')


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered account (admin, teacher or student).

    Fields:
    - `email`: unique, stored lowercased
    - `password_hash`: hashed password string (never store plaintext)
    - `refresh_token`: the only refresh token currently accepted
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str = Field(default='teacher', index=True)
    institution: Optional[str] = None
    organization: Optional[str] = None
    avatar: str = ''
    categories: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    onboarding_completed: bool = False
    is_active: bool = True
    refresh_token: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)


class Category(SQLModel, table=True):
    """Groups quizzes by subject. `quiz_count` counts published quizzes."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: str = ''
    icon: str = 'folder'
    color: str = '#6366f1'
    created_by_id: Optional[int] = Field(default=None, foreign_key='user.id')
    is_active: bool = Field(default=True, index=True)
    quiz_count: int = 0
    created_at: datetime = Field(default_factory=_now)


class Quiz(SQLModel, table=True):
    """Quiz metadata plus denormalized statistics.

    `question_count`/`total_points` are recomputed whenever questions
    change; `attempt_count`/`average_score` are updated on each result.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ''
    category_id: int = Field(foreign_key='category.id', index=True)
    created_by_id: int = Field(foreign_key='user.id', index=True)
    time_limit: int = 15
    difficulty: str = Field(default='medium', index=True)
    pass_percentage: int = 60
    is_published: bool = Field(default=False, index=True)
    is_public: bool = False
    access_code: Optional[str] = Field(default=None, index=True)
    join_link: Optional[str] = None
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    question_count: int = 0
    total_points: int = 0
    attempt_count: int = 0
    average_score: int = 0
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    questions: List['Question'] = Relationship(
        back_populates='quiz',
        sa_relationship_kwargs={'order_by': 'Question.position', 'cascade': 'all, delete-orphan'},
    )


class Question(SQLModel, table=True):
    """A four-option multiple-choice question belonging to a quiz."""
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key='quiz.id', index=True)
    question_text: str
    points: int = 1
    position: int = 0
    explanation: str = ''
    image_url: str = ''
    time_limit_override: Optional[int] = None
    created_at: datetime = Field(default_factory=_now)
    quiz: Optional[Quiz] = Relationship(back_populates='questions')
    options: List['QuestionOption'] = Relationship(
        back_populates='question',
        sa_relationship_kwargs={'order_by': 'QuestionOption.position', 'cascade': 'all, delete-orphan'},
    )


class QuestionOption(SQLModel, table=True):
    """One of the four options of a `Question`.

    `position` (0-3) is the index students submit.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    question_id: int = Field(foreign_key='question.id', index=True)
    position: int
    text: str
    is_correct: bool = False
    question: Optional[Question] = Relationship(back_populates='options')


class Student(SQLModel, table=True):
    """A guest participant identified by email, without a password."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True)
    avatar: str = 'avatar-1'
    class_name: str = ''
    total_quizzes: int = 0
    average_score: int = 0
    last_active: datetime = Field(default_factory=_now)
    created_at: datetime = Field(default_factory=_now)


class QuizParticipation(SQLModel, table=True):
    """Records that a student joined a quiz; links students to teachers."""
    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='student.id', index=True)
    quiz_id: int = Field(index=True)
    teacher_id: Optional[int] = Field(default=None, index=True)
    taken_at: datetime = Field(default_factory=_now)


class Result(SQLModel, table=True):
    """An immutable record of one completed attempt.

    Exactly one of `user_id` / `student_id` is set, matching
    `participant_type`.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(index=True)
    user_id: Optional[int] = Field(default=None, foreign_key='user.id', index=True)
    student_id: Optional[int] = Field(default=None, foreign_key='student.id', index=True)
    participant_type: str
    score: int
    total_points: int
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    unanswered: int = 0
    percentage: int = Field(index=True)
    time_taken: int = 0
    time_limit: Optional[int] = None
    was_timeout: bool = False
    started_at: datetime
    completed_at: datetime = Field(default_factory=_now, index=True)
    answers: List['ResultAnswer'] = Relationship(
        back_populates='result',
        sa_relationship_kwargs={'order_by': 'ResultAnswer.position'},
    )


class ResultAnswer(SQLModel, table=True):
    """A single question outcome inside a `Result`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    result_id: int = Field(foreign_key='result.id', index=True)
    question_id: int
    position: int = 0
    selected_option: int = -1
    is_correct: bool = False
    points_earned: int = 0
    result: Optional[Result] = Relationship(back_populates='answers')
