"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and catch structurally malformed
requests (FastAPI answers those with 422). Domain rules such as "exactly
one correct option" are enforced by the services so that file imports go
through the same checks.
"""

from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class RegisterIn(BaseModel):
    """Payload for account registration."""
    name: str
    email: str
    password: str
    role: Literal['admin', 'teacher', 'student'] = 'teacher'
    institution: Optional[str] = None
    organization: Optional[str] = None


class LoginIn(BaseModel):
    email: str
    password: str
    role: Optional[str] = None


class RefreshIn(BaseModel):
    refresh_token: str


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class ProfileUpdateIn(BaseModel):
    name: Optional[str] = None
    institution: Optional[str] = None
    organization: Optional[str] = None
    avatar: Optional[str] = None


class OnboardingIn(BaseModel):
    categories: List[int] = Field(default_factory=list)


class TeacherUpdateIn(BaseModel):
    name: Optional[str] = None
    institution: Optional[str] = None
    is_active: Optional[bool] = None


class CategoryIn(BaseModel):
    name: str
    description: str = ''
    icon: Optional[str] = None
    color: Optional[str] = None


class CategoryUpdateIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


class OptionIn(BaseModel):
    """One answer option of a question."""
    text: str
    is_correct: bool = False


class QuestionIn(BaseModel):
    """Question payload used by quiz creation and question endpoints."""
    question_text: str
    options: List[OptionIn]
    points: int = 1
    explanation: str = ''
    image_url: str = ''
    time_limit_override: Optional[int] = None


class QuizCreateIn(BaseModel):
    title: str
    description: str = ''
    category: str
    difficulty: str = 'medium'
    time_limit: int = 15
    pass_percentage: int = 60
    is_published: bool = False
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)
    questions: List[QuestionIn] = Field(default_factory=list)


class QuizUpdateIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    time_limit: Optional[int] = None
    pass_percentage: Optional[int] = None
    is_published: Optional[bool] = None
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None


class QuestionOrderIn(BaseModel):
    question_ids: List[int]


class StudentIn(BaseModel):
    name: str
    email: str
    avatar: str
    class_name: str = ''


class VerifyCodeIn(BaseModel):
    code: str


class JoinQuizIn(BaseModel):
    quiz_id: int
    student_email: str


class SubmittedAnswer(BaseModel):
    """Single submitted answer; -1 marks an explicitly skipped question."""
    question_id: int
    selected_option: int = Field(default=-1, ge=-1, le=3)


class QuizSubmission(BaseModel):
    """Request model for quiz submission."""
    quiz_id: int
    answers: List[SubmittedAnswer]
    time_taken: int = Field(default=0, ge=0)
    participant_type: Literal['student', 'user'] = 'student'
    student_id: Optional[int] = None
