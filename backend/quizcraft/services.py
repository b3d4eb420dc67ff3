"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the scoring engine and auxiliary logic. Services are intentionally thin:
they perform validation, execute domain logic and persist aggregates via
repositories. They raise `quizcraft.errors` exceptions; controllers never
translate errors themselves.
"""

from datetime import datetime, timedelta, timezone
import logging
import re
from typing import List, Optional
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .aggregates import recompute_from_all, update_aggregates
from .auth import REFRESH, create_token_pair, decode_token
from .config import settings
from .errors import AuthError, Conflict, Forbidden, InvalidInput, InvalidQuizState, NotFound
from .scoring import QuestionKey, ScoreReport, score
from .utils.access_codes import join_link, unique_access_code
from .utils.parsers import parse_file_to_questions

logger = logging.getLogger("quizcraft.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
EMAIL_RE = re.compile(r'^\S+@\S+\.\S+$')
COLOR_RE = re.compile(r'^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$')
OPTIONS_PER_QUESTION = 4

DEFAULT_CATEGORIES = [
    {'name': 'General Knowledge', 'description': 'Test your general knowledge', 'icon': 'brain', 'color': '#8b5cf6'},
    {'name': 'Mathematics', 'description': 'Mathematical problems and puzzles', 'icon': 'calculator', 'color': '#3b82f6'},
    {'name': 'Science', 'description': 'Physics, Chemistry, Biology', 'icon': 'flask-conical', 'color': '#10b981'},
    {'name': 'History', 'description': 'World history and events', 'icon': 'landmark', 'color': '#f59e0b'},
    {'name': 'Geography', 'description': 'Countries, capitals, and maps', 'icon': 'globe', 'color': '#06b6d4'},
    {'name': 'Programming', 'description': 'Coding and software development', 'icon': 'code', 'color': '#6366f1'},
    {'name': 'English', 'description': 'Grammar, vocabulary, literature', 'icon': 'book-open', 'color': '#ec4899'},
    {'name': 'Aptitude', 'description': 'Logical reasoning and aptitude', 'icon': 'lightbulb', 'color': '#f97316'},
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: Optional[str], field: str, min_len: int = 1, max_len: int = 1000) -> str:
    text = (value or '').strip()
    if len(text) < min_len:
        raise InvalidInput(f'{field} must be at least {min_len} characters')
    if len(text) > max_len:
        raise InvalidInput(f'{field} cannot exceed {max_len} characters')
    return text


def _require_int(value, field: str, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f'{field} must be an integer')
    if not low <= value <= high:
        raise InvalidInput(f'{field} must be between {low} and {high}')
    return value


def _normalize_email(email: Optional[str]) -> str:
    email = (email or '').strip().lower()
    if not EMAIL_RE.match(email):
        raise InvalidInput('Please provide a valid email')
    return email


class AuthService:
    """Registration, login and token lifecycle."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, name: str, email: str, password: str, role: str = 'teacher',
                 institution: Optional[str] = None, organization: Optional[str] = None):
        """Create an account with a hashed password and issue a token pair.

        Teachers must name an institution and admins an organization.
        Returns `(user, tokens)`.
        """
        name = _require_text(name, 'name', 2, 100)
        email = _normalize_email(email)
        if not password or len(password) < 6:
            raise InvalidInput('Password must be at least 6 characters')
        if not re.search(r'\d', password):
            raise InvalidInput('Password must contain at least one number')
        if role not in models.ROLES:
            raise InvalidInput('Invalid role')
        if role == 'teacher' and not (institution or '').strip():
            raise InvalidInput('Institution name is required for teachers')
        if role == 'admin' and not (organization or '').strip():
            raise InvalidInput('Organization name is required for administrators')
        if self.user_repo.get_by_email(email):
            raise Conflict('An account with this email already exists')
        user = models.User(
            name=name,
            email=email,
            password_hash=PWD_CTX.hash(password),
            role=role,
            institution=institution.strip() if role == 'teacher' else None,
            organization=organization.strip() if role == 'admin' else None,
        )
        user = self.user_repo.create(user)
        tokens = create_token_pair(user)
        user.refresh_token = tokens['refresh_token']
        self.user_repo.save(user)
        logger.info("user registered id=%s role=%s", user.id, user.role)
        return user, tokens

    def authenticate(self, email: str, password: str, role: Optional[str] = None):
        """Verify credentials and return `(user, tokens)`.

        Raises `AuthError` for unknown email, wrong password or a role
        mismatch and `Forbidden` for deactivated accounts.
        """
        # One lookup by email then verify the supplied password hash.
        user = self.user_repo.get_by_email(email or '')
        if not user or not PWD_CTX.verify(password or '', user.password_hash):
            logger.warning("login failed email=%s", (email or '').strip().lower())
            raise AuthError('Invalid email or password')
        if not user.is_active:
            raise Forbidden('Your account has been deactivated. Please contact support.')
        if role and user.role != role:
            raise AuthError(f'This account is registered as {user.role}, not {role}')
        tokens = create_token_pair(user)
        user.refresh_token = tokens['refresh_token']
        user.last_login = _now()
        self.user_repo.save(user)
        return user, tokens

    def refresh(self, refresh_token: str) -> dict:
        """Rotate the token pair; the presented refresh token stops working."""
        if not refresh_token:
            raise InvalidInput('Refresh token is required')
        payload = decode_token(refresh_token, REFRESH)
        user = self.user_repo.get_by_refresh_token(refresh_token)
        if not user or user.id != payload.get('user_id'):
            raise AuthError('Invalid refresh token')
        if not user.is_active:
            raise Forbidden('Your account has been deactivated')
        tokens = create_token_pair(user)
        user.refresh_token = tokens['refresh_token']
        self.user_repo.save(user)
        return tokens

    def logout(self, user: models.User) -> None:
        user.refresh_token = None
        self.user_repo.save(user)

    def change_password(self, user: models.User, current_password: str, new_password: str) -> dict:
        if not PWD_CTX.verify(current_password or '', user.password_hash):
            raise InvalidInput('Current password is incorrect')
        if not new_password or len(new_password) < 6 or not re.search(r'\d', new_password):
            raise InvalidInput('Password must be at least 6 characters and contain a number')
        user.password_hash = PWD_CTX.hash(new_password)
        tokens = create_token_pair(user)
        user.refresh_token = tokens['refresh_token']
        self.user_repo.save(user)
        return tokens


class UserService:
    """Profile management, dashboard stats and admin teacher management."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def update_profile(self, user: models.User, name: Optional[str] = None, institution: Optional[str] = None,
                       organization: Optional[str] = None, avatar: Optional[str] = None) -> models.User:
        if name is not None:
            user.name = _require_text(name, 'name', 2, 100)
        if institution is not None and user.role == 'teacher':
            user.institution = _require_text(institution, 'institution', 0, 200)
        if organization is not None and user.role == 'admin':
            user.organization = _require_text(organization, 'organization', 0, 200)
        if avatar is not None:
            user.avatar = avatar.strip()
        return self.user_repo.save(user)

    def complete_onboarding(self, user: models.User, category_ids: List[int]) -> models.User:
        cat_repo = repositories.CategoryRepository(self.session)
        missing = [cid for cid in category_ids if not cat_repo.get(cid)]
        if missing:
            raise InvalidInput(f'unknown categories: {missing}')
        user.categories = list(dict.fromkeys(category_ids))
        user.onboarding_completed = True
        return self.user_repo.save(user)

    def dashboard_stats(self, user: models.User) -> dict:
        """Role-specific counters for the dashboard."""
        quiz_repo = repositories.QuizRepository(self.session)
        result_repo = repositories.ResultRepository(self.session)
        if user.role == 'teacher':
            total = quiz_repo.count(teacher_id=user.id)
            published = quiz_repo.count(teacher_id=user.id, published=True)
            return {
                'total_quizzes': total,
                'published_quizzes': published,
                'draft_quizzes': total - published,
                'total_attempts': result_repo.count(quiz_repo.ids_by_teacher(user.id)),
            }
        if user.role == 'admin':
            return {
                'total_teachers': self.user_repo.count_by_role('teacher'),
                'total_quizzes': quiz_repo.count(),
                'total_attempts': result_repo.count(),
                'total_categories': repositories.CategoryRepository(self.session).count(),
            }
        return {}

    def list_teachers(self, page: int = 1, limit: int = 20, search: Optional[str] = None,
                      status: Optional[str] = None):
        page = max(1, page)
        limit = min(max(1, limit), 100)
        teachers, total = self.user_repo.search_teachers(page, limit, search, status)
        return teachers, {'current': page, 'pages': -(-total // limit), 'total': total}

    def get_teacher(self, teacher_id: int) -> models.User:
        user = self.user_repo.get(teacher_id)
        if not user or user.role != 'teacher':
            raise NotFound('Teacher not found')
        return user

    def update_teacher(self, teacher_id: int, name: Optional[str] = None, institution: Optional[str] = None,
                       is_active: Optional[bool] = None) -> models.User:
        teacher = self.get_teacher(teacher_id)
        if name:
            teacher.name = _require_text(name, 'name', 2, 100)
        if institution:
            teacher.institution = _require_text(institution, 'institution', 1, 200)
        if is_active is not None:
            teacher.is_active = is_active
            if not is_active:
                teacher.refresh_token = None
        return self.user_repo.save(teacher)

    def delete_teacher(self, admin: models.User, teacher_id: int) -> None:
        """Delete a teacher account.

        Their quizzes, categories and student roster move to `admin` in the
        same transaction, so no row keeps pointing at the deleted user. A
        teacher who has taken quizzes themselves owns results and cannot be
        deleted; deactivate the account instead.
        """
        teacher = self.get_teacher(teacher_id)
        if repositories.ResultRepository(self.session).list_for_user(teacher.id):
            raise Conflict("Cannot delete teacher. This account has quiz results; deactivate it instead")
        moved = repositories.QuizRepository(self.session).reassign_owner(teacher.id, admin.id)
        repositories.CategoryRepository(self.session).reassign_creator(teacher.id, admin.id)
        repositories.StudentRepository(self.session).reassign_teacher(teacher.id, admin.id)
        self.user_repo.delete(teacher)
        logger.info("teacher deleted id=%s quizzes_moved=%s new_owner=%s", teacher_id, moved, admin.id)


class CategoryService:
    """Category CRUD; mutations are admin-only at the route level."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CategoryRepository(session)

    def list(self, active_only: bool = False) -> List[models.Category]:
        return self.repo.list(active_only)

    def get(self, category_id: int) -> models.Category:
        category = self.repo.get(category_id)
        if not category:
            raise NotFound('Category not found')
        return category

    def resolve(self, ref) -> models.Category:
        """Find a category by numeric id or case-insensitive name."""
        ref = str(ref or '').strip()
        if not ref:
            raise InvalidInput('Category is required')
        category = self.repo.get(int(ref)) if ref.isdigit() else None
        category = category or self.repo.get_by_name(ref)
        if not category:
            raise InvalidInput('Invalid category')
        return category

    def create(self, user: models.User, name: str, description: str = '', icon: Optional[str] = None,
               color: Optional[str] = None) -> models.Category:
        name = _require_text(name, 'Category name', 2, 100)
        if self.repo.get_by_name(name):
            raise Conflict('A category with this name already exists')
        color = color or '#6366f1'
        if not COLOR_RE.match(color):
            raise InvalidInput('Invalid color format')
        category = models.Category(
            name=name,
            description=_require_text(description, 'description', 0, 500),
            icon=icon or 'folder',
            color=color,
            created_by_id=user.id,
        )
        return self.repo.save(category)

    def update(self, category_id: int, name: Optional[str] = None, description: Optional[str] = None,
               icon: Optional[str] = None, color: Optional[str] = None,
               is_active: Optional[bool] = None) -> models.Category:
        category = self.get(category_id)
        if name and name.strip() != category.name:
            name = _require_text(name, 'Category name', 2, 100)
            if self.repo.get_by_name(name, exclude_id=category.id):
                raise Conflict('A category with this name already exists')
            category.name = name
        if description is not None:
            category.description = _require_text(description, 'description', 0, 500)
        if icon:
            category.icon = icon
        if color:
            if not COLOR_RE.match(color):
                raise InvalidInput('Invalid color format')
            category.color = color
        if is_active is not None:
            category.is_active = is_active
        return self.repo.save(category)

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        in_use = repositories.QuizRepository(self.session).count(category_id=category.id)
        if in_use:
            raise Conflict(f'Cannot delete category. {in_use} quiz(es) are using this category.')
        self.repo.delete(category)

    def seed_defaults(self, user: Optional[models.User]) -> dict:
        """Create the default categories that do not exist yet."""
        created = skipped = 0
        for cat in DEFAULT_CATEGORIES:
            if self.repo.get_by_name(cat['name']):
                skipped += 1
                continue
            self.repo.save(models.Category(created_by_id=user.id if user else None, **cat))
            created += 1
        return {'created': created, 'skipped': skipped}


class QuizService:
    """Quiz authoring: quizzes, questions, access codes and stats."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.QuizRepository(session)
        self.q_repo = repositories.QuestionRepository(session)
        self.cat_repo = repositories.CategoryRepository(session)

    # -- lookups -------------------------------------------------------

    def get(self, quiz_id: int) -> models.Quiz:
        quiz = self.repo.get(quiz_id)
        if not quiz:
            raise NotFound('Quiz not found')
        return quiz

    def get_owned(self, user: models.User, quiz_id: int) -> models.Quiz:
        """Return the quiz if `user` created it or is an admin."""
        quiz = self.get(quiz_id)
        if not self.can_manage(user, quiz):
            raise Forbidden('Not authorized to manage this quiz')
        return quiz

    @staticmethod
    def can_manage(user: Optional[models.User], quiz: models.Quiz) -> bool:
        return user is not None and (quiz.created_by_id == user.id or user.role == 'admin')

    @staticmethod
    def can_access(quiz: models.Quiz, user_id: Optional[int] = None, code: Optional[str] = None) -> bool:
        """Creators always; everyone for published public quizzes; else the access code."""
        if user_id is not None and quiz.created_by_id == user_id:
            return True
        if quiz.is_public and quiz.is_published:
            return True
        return bool(quiz.access_code and code and code.strip().upper() == quiz.access_code)

    def get_by_code(self, code: str) -> models.Quiz:
        if not (code or '').strip():
            raise InvalidInput('Quiz code is required')
        quiz = self.repo.get_published_by_code(code)
        if not quiz:
            raise NotFound('Invalid code or quiz not found')
        return quiz

    def list(self, category: Optional[str] = None, difficulty: Optional[str] = None,
             teacher_id: Optional[int] = None) -> List[models.Quiz]:
        """Published quizzes, or every quiz of one teacher (drafts included)."""
        category_id = CategoryService(self.session).resolve(category).id if category else None
        return self.repo.list(category_id=category_id, difficulty=difficulty, teacher_id=teacher_id,
                              published_only=teacher_id is None)

    def questions_for(self, quiz_id: int) -> List[models.Question]:
        return self.q_repo.list_for_quiz(quiz_id)

    # -- quiz lifecycle ------------------------------------------------

    def _apply_fields(self, quiz: models.Quiz, data: dict) -> None:
        if data.get('title') is not None:
            quiz.title = _require_text(data['title'], 'Title', 3, 200)
        if data.get('description') is not None:
            quiz.description = _require_text(data['description'], 'Description', 0, 1000)
        if data.get('category') is not None:
            quiz.category_id = CategoryService(self.session).resolve(data['category']).id
        if data.get('difficulty') is not None:
            if data['difficulty'] not in models.DIFFICULTIES:
                raise InvalidInput(f"{data['difficulty']} is not a valid difficulty level")
            quiz.difficulty = data['difficulty']
        if data.get('time_limit') is not None:
            quiz.time_limit = _require_int(data['time_limit'], 'Time limit', 1, 180)
        if data.get('pass_percentage') is not None:
            quiz.pass_percentage = _require_int(data['pass_percentage'], 'Pass percentage', 0, 100)
        if data.get('is_public') is not None:
            quiz.is_public = bool(data['is_public'])
        if data.get('tags') is not None:
            quiz.tags = [t.strip().lower() for t in data['tags'] if t and t.strip()]

    def _assign_code(self, quiz: models.Quiz) -> str:
        code = unique_access_code(self.repo.code_in_use)
        quiz.access_code = code
        quiz.join_link = join_link(settings.BASE_URL, code)
        return code

    def create(self, user: models.User, data: dict) -> models.Quiz:
        """Create a quiz and its inline questions.

        All questions are validated before anything is written, so an
        invalid question rejects the whole request. Publishing generates
        an access code and join link.
        """
        quiz = models.Quiz(title='', category_id=0, created_by_id=user.id)
        self._apply_fields(quiz, {**data, 'title': data.get('title') or '', 'category': data.get('category') or ''})
        questions = [self.validate_question(q) for q in data.get('questions') or []]
        quiz.is_published = bool(data.get('is_published'))
        if quiz.is_published:
            self._assign_code(quiz)
        quiz = self.repo.save(quiz)
        for idx, q in enumerate(questions):
            self._create_question(quiz.id, q, idx, commit=False)
        self.session.commit()
        self.refresh_question_stats(quiz)
        self.cat_repo.refresh_quiz_count(quiz.category_id)
        logger.info("quiz created id=%s owner=%s questions=%s", quiz.id, user.id, len(questions))
        return quiz

    def update(self, user: models.User, quiz_id: int, data: dict) -> models.Quiz:
        quiz = self.get_owned(user, quiz_id)
        old_category = quiz.category_id
        self._apply_fields(quiz, data)
        if data.get('is_published') is not None:
            quiz.is_published = bool(data['is_published'])
            if quiz.is_published and not quiz.access_code:
                self._assign_code(quiz)
        quiz.updated_at = _now()
        quiz = self.repo.save(quiz)
        self.cat_repo.refresh_quiz_count(quiz.category_id)
        if old_category != quiz.category_id:
            self.cat_repo.refresh_quiz_count(old_category)
        return quiz

    def delete(self, user: models.User, quiz_id: int) -> None:
        """Delete a quiz and its questions. Results stay as history."""
        quiz = self.get_owned(user, quiz_id)
        category_id = quiz.category_id
        self.repo.delete(quiz)
        self.cat_repo.refresh_quiz_count(category_id)
        logger.info("quiz deleted id=%s by=%s", quiz_id, user.id)

    def generate_code(self, user: models.User, quiz_id: int) -> models.Quiz:
        quiz = self.get_owned(user, quiz_id)
        self._assign_code(quiz)
        return self.repo.save(quiz)

    def refresh_question_stats(self, quiz: models.Quiz) -> models.Quiz:
        """Recompute `question_count` and `total_points` from the questions."""
        questions = self.q_repo.list_for_quiz(quiz.id)
        quiz.question_count = len(questions)
        quiz.total_points = sum(q.points or 1 for q in questions)
        quiz.updated_at = _now()
        return self.repo.save(quiz)

    def recompute_stats(self, user: models.User, quiz_id: int) -> models.Quiz:
        """Replace the incrementally maintained attempt stats with exact values."""
        quiz = self.get_owned(user, quiz_id)
        rows = repositories.ResultRepository(self.session).percentages_for_quiz(quiz.id)
        stats = recompute_from_all([p for p, _ in rows], quiz.pass_percentage)
        quiz.attempt_count = stats.attempt_count
        quiz.average_score = stats.average
        return self.repo.save(quiz)

    # -- questions -----------------------------------------------------

    def validate_question(self, data: dict) -> dict:
        """Validate a question payload and return a cleaned copy.

        Raises `InvalidInput` unless the question has text, exactly four
        non-empty options and exactly one correct option.
        """
        if not isinstance(data, dict):
            raise InvalidInput('question item must be an object')
        text = _require_text(data.get('question_text'), 'Question', 5, 1000)
        options = data.get('options')
        if not isinstance(options, list) or len(options) != OPTIONS_PER_QUESTION:
            raise InvalidInput('Exactly 4 options are required')
        cleaned = []
        for o in options:
            if not isinstance(o, dict):
                raise InvalidInput('each option must be an object')
            cleaned.append({
                'text': _require_text(o.get('text'), 'Option text', 1, 500),
                'is_correct': bool(o.get('is_correct')),
            })
        if sum(1 for o in cleaned if o['is_correct']) != 1:
            raise InvalidInput('Exactly one option must be marked as correct')
        points = data.get('points')
        points = 1 if points is None else _require_int(points, 'Points', 1, 100)
        override = data.get('time_limit_override')
        if override is not None:
            override = _require_int(override, 'Time limit override', 5, 300)
        return {
            'question_text': text,
            'options': cleaned,
            'points': points,
            'explanation': _require_text(data.get('explanation'), 'Explanation', 0, 1000),
            'image_url': (data.get('image_url') or '').strip(),
            'time_limit_override': override,
        }

    @staticmethod
    def _build_options(cleaned: dict) -> List[models.QuestionOption]:
        return [
            models.QuestionOption(position=i, text=o['text'], is_correct=o['is_correct'])
            for i, o in enumerate(cleaned['options'])
        ]

    def _create_question(self, quiz_id: int, cleaned: dict, position: int, commit: bool = True) -> models.Question:
        question = models.Question(
            quiz_id=quiz_id,
            question_text=cleaned['question_text'],
            points=cleaned['points'],
            position=position,
            explanation=cleaned['explanation'],
            image_url=cleaned['image_url'],
            time_limit_override=cleaned['time_limit_override'],
        )
        if commit:
            return self.q_repo.create(question, self._build_options(cleaned))
        self.session.add(question)
        self.session.flush()
        for o in self._build_options(cleaned):
            o.question_id = question.id
            self.session.add(o)
        return question

    def _owned_question(self, quiz: models.Quiz, question_id: int) -> models.Question:
        question = self.q_repo.get(question_id)
        if not question or question.quiz_id != quiz.id:
            raise NotFound('Question not found')
        return question

    def add_question(self, user: models.User, quiz_id: int, data: dict) -> models.Question:
        quiz = self.get_owned(user, quiz_id)
        cleaned = self.validate_question(data)
        question = self._create_question(quiz.id, cleaned, self.q_repo.next_position(quiz.id))
        self.refresh_question_stats(quiz)
        return question

    def update_question(self, user: models.User, quiz_id: int, question_id: int, data: dict) -> models.Question:
        quiz = self.get_owned(user, quiz_id)
        question = self._owned_question(quiz, question_id)
        cleaned = self.validate_question(data)
        question.question_text = cleaned['question_text']
        question.points = cleaned['points']
        question.explanation = cleaned['explanation']
        question.image_url = cleaned['image_url']
        question.time_limit_override = cleaned['time_limit_override']
        question = self.q_repo.replace_options(question, self._build_options(cleaned))
        self.refresh_question_stats(quiz)
        return question

    def delete_question(self, user: models.User, quiz_id: int, question_id: int) -> None:
        quiz = self.get_owned(user, quiz_id)
        question = self._owned_question(quiz, question_id)
        self.q_repo.delete(question)
        self.q_repo.set_positions(self.q_repo.list_for_quiz(quiz.id))
        self.refresh_question_stats(quiz)

    def reorder_questions(self, user: models.User, quiz_id: int, question_ids: List[int]) -> List[models.Question]:
        """Reorder questions; `question_ids` must list every question exactly once."""
        quiz = self.get_owned(user, quiz_id)
        questions = {q.id: q for q in self.q_repo.list_for_quiz(quiz.id)}
        if sorted(question_ids) != sorted(questions):
            raise InvalidInput('question_ids must contain each question of the quiz exactly once')
        self.q_repo.set_positions([questions[qid] for qid in question_ids])
        return self.q_repo.list_for_quiz(quiz.id)

    def import_questions(self, user: models.User, quiz_id: int, file_bytes: bytes, filename: str,
                         dry_run: bool = False) -> dict:
        """Parse an uploaded file and append its valid questions to a quiz.

        Returns a dictionary with the number of created questions and the
        validation `errors` encountered per item; invalid items are
        skipped, valid ones are still created.
        """
        quiz = self.get_owned(user, quiz_id)
        try:
            parsed = parse_file_to_questions(file_bytes, filename)
        except ValueError as e:
            raise InvalidInput(str(e))
        created = 0
        errors = []
        position = self.q_repo.next_position(quiz.id)
        for idx, p in enumerate(parsed):
            try:
                cleaned = self.validate_question(p)
            except InvalidInput as e:
                errors.append({'index': idx, 'error': str(e), 'item': p})
                continue
            if not dry_run:
                self._create_question(quiz.id, cleaned, position, commit=False)
                position += 1
            created += 1
        if not dry_run:
            self.session.commit()
            self.refresh_question_stats(quiz)
        logger.info("questions imported quiz=%s file=%s created=%s errors=%s", quiz.id, filename, created, len(errors))
        return {'created': created, 'errors': errors, 'dry_run': dry_run}


class StudentService:
    """Guest student profiles and quiz joining."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.StudentRepository(session)

    def create_or_update(self, name: str, email: str, avatar: str, class_name: str = ''):
        """Upsert a student by email. Returns `(student, created)`."""
        name = _require_text(name, 'Name', 2, 100)
        email = _normalize_email(email)
        if not (avatar or '').strip():
            raise InvalidInput('Name, email, and avatar are required')
        class_name = _require_text(class_name, 'Class name', 0, 100)
        student = self.repo.get_by_email(email)
        created = student is None
        if created:
            student = models.Student(name=name, email=email, avatar=avatar.strip(), class_name=class_name)
        else:
            student.name = name
            student.avatar = avatar.strip()
            student.class_name = class_name
        return self.repo.save(student), created

    def get(self, student_id: int) -> models.Student:
        student = self.repo.get(student_id)
        if not student:
            raise NotFound('Student not found')
        return student

    def get_by_email(self, email: str) -> models.Student:
        student = self.repo.get_by_email(email or '')
        if not student:
            raise NotFound('Student not found')
        return student

    def record_participation(self, student: models.Student, quiz: models.Quiz) -> models.Student:
        """Add the quiz to the student's history once and link its teacher."""
        if not self.repo.get_participation(student.id, quiz.id):
            self.repo.add_participation(models.QuizParticipation(
                student_id=student.id, quiz_id=quiz.id, teacher_id=quiz.created_by_id))
            student.total_quizzes += 1
        student.last_active = _now()
        return self.repo.save(student)

    def join_quiz(self, quiz_id: int, student_email: str):
        if not quiz_id or not (student_email or '').strip():
            raise InvalidInput('Quiz ID and student email are required')
        quiz = QuizService(self.session).get(quiz_id)
        student = self.repo.get_by_email(student_email)
        if not student:
            raise NotFound('Student profile not found. Please create profile first.')
        return quiz, self.record_participation(student, quiz)

    def for_quiz(self, user: models.User, quiz_id: int) -> List[dict]:
        """Unique students who attempted a quiz, each with their best percentage."""
        quiz = QuizService(self.session).get_owned(user, quiz_id)
        best = {}
        for r in repositories.ResultRepository(self.session).list_for_quiz(quiz.id):
            if r.student_id is None:
                continue
            if r.student_id not in best or r.percentage > best[r.student_id].percentage:
                best[r.student_id] = r
        out = []
        for student_id, r in best.items():
            student = self.repo.get(student_id)
            if student:
                out.append({'student': student, 'score': r.percentage, 'last_attempt': r.completed_at})
        return out

    def for_teacher(self, user: models.User) -> List[models.Student]:
        return self.repo.list_by_teacher(user.id)

    def refresh_average(self, student: models.Student) -> models.Student:
        percentages = repositories.ResultRepository(self.session).percentages_for_student(student.id)
        if percentages:
            student.average_score = recompute_from_all(percentages).average
        return self.repo.save(student)


class SubmissionService:
    """Score submitted quizzes and persist results."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.result_repo = repositories.ResultRepository(session)

    def _participant(self, participant_type: str, student_id: Optional[int], user: Optional[models.User]):
        if participant_type not in models.PARTICIPANT_TYPES:
            raise InvalidInput('Invalid participant type')
        if participant_type == 'student':
            if not student_id:
                raise InvalidInput('Student ID is required for student submissions')
            return StudentService(self.session).get(student_id)
        if user is None:
            raise AuthError('User not authenticated')
        return user

    def submit(self, quiz_id: int, answers: List[dict], time_taken: int = 0,
               participant_type: str = 'student', student_id: Optional[int] = None,
               user: Optional[models.User] = None):
        """Score a submission and store it as a new `Result`.

        `answers` is a list of `{question_id, selected_option}` dicts;
        -1 marks a skipped question and a repeated question keeps its
        last answer. Every check (quiz, questions, participant, answer
        shape) runs before anything is written. Afterwards the quiz's
        running average is updated incrementally and a student's average
        is recomputed from their results. Returns `(result, report)`.
        """
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise NotFound('Quiz not found')
        questions = repositories.QuestionRepository(self.session).list_for_quiz(quiz.id)
        if not questions:
            raise InvalidQuizState('Quiz has no questions')
        participant = self._participant(participant_type, student_id, user)
        try:
            pairs = [(a['question_id'], a.get('selected_option')) for a in answers]
        except (TypeError, KeyError):
            raise InvalidInput('Answers must be a list of {question_id, selected_option} objects')
        report: ScoreReport = score([QuestionKey.from_question(q) for q in questions], pairs, time_taken)

        completed_at = _now()
        time_limit = quiz.time_limit * 60 if quiz.time_limit else None
        result = models.Result(
            quiz_id=quiz.id,
            user_id=participant.id if participant_type == 'user' else None,
            student_id=participant.id if participant_type == 'student' else None,
            participant_type=participant_type,
            score=report.score,
            total_points=report.total_points,
            total_questions=report.total_questions,
            correct_answers=report.correct_answers,
            incorrect_answers=report.incorrect_answers,
            unanswered=report.unanswered,
            percentage=report.percentage,
            time_taken=report.elapsed_seconds,
            time_limit=time_limit,
            was_timeout=time_limit is not None and report.elapsed_seconds >= time_limit,
            started_at=completed_at - timedelta(seconds=report.elapsed_seconds),
            completed_at=completed_at,
        )
        items = [
            models.ResultAnswer(
                question_id=o.question_id,
                position=i,
                selected_option=o.selected_option,
                is_correct=o.is_correct,
                points_earned=o.points_earned,
            )
            for i, o in enumerate(report.breakdown)
        ]
        result = self.result_repo.create(result, items)

        if participant_type == 'student':
            students = StudentService(self.session)
            students.record_participation(participant, quiz)
            students.refresh_average(participant)

        # last writer wins under concurrent submissions; see recompute_stats
        quiz.attempt_count, quiz.average_score = update_aggregates(
            quiz.attempt_count, quiz.average_score, report.percentage)
        self.quiz_repo.save(quiz)
        logger.info(
            "quiz submitted quiz=%s result=%s participant=%s:%s score=%s/%s pct=%s",
            quiz.id, result.id, participant_type, participant.id, report.score, report.total_points, report.percentage,
        )
        return result, report


class ResultService:
    """Result lookups and analytics."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ResultRepository(session)

    def get(self, result_id: int) -> models.Result:
        result = self.repo.get(result_id)
        if not result:
            raise NotFound('Result not found')
        return result

    def for_quiz(self, user: models.User, quiz_id: int) -> List[models.Result]:
        quiz = QuizService(self.session).get(quiz_id)
        if quiz.created_by_id != user.id and user.role != 'admin':
            raise Forbidden('Not authorized to view results for this quiz')
        return self.repo.list_for_quiz(quiz.id)

    def quiz_stats(self, user: models.User, quiz_id: int) -> dict:
        """Exact statistics over every attempt, using the quiz's pass mark."""
        quiz = QuizService(self.session).get(quiz_id)
        if quiz.created_by_id != user.id and user.role != 'admin':
            raise Forbidden('Not authorized to view results for this quiz')
        rows = self.repo.percentages_for_quiz(quiz.id)
        stats = recompute_from_all([p for p, _ in rows], quiz.pass_percentage, [t for _, t in rows])
        return {
            'attempt_count': stats.attempt_count,
            'average_score': stats.average,
            'highest_score': stats.highest,
            'lowest_score': stats.lowest,
            'average_time': stats.average_time,
            'pass_rate': stats.pass_rate,
            'pass_percentage': quiz.pass_percentage,
        }

    def leaderboard(self, quiz_id: int, limit: int = 10) -> List[models.Result]:
        QuizService(self.session).get(quiz_id)
        return self.repo.leaderboard(quiz_id, min(max(1, limit), 100))

    def for_student(self, student_id: int) -> List[models.Result]:
        StudentService(self.session).get(student_id)
        return self.repo.list_for_student(student_id)

    def for_user(self, user: models.User) -> List[models.Result]:
        return self.repo.list_for_user(user.id)

    def teacher_stats(self, user: models.User):
        """Totals over every result of the teacher's quizzes.

        Returns `(stats, results)`.
        """
        quiz_ids = repositories.QuizRepository(self.session).ids_by_teacher(user.id)
        results = self.repo.list_for_quizzes(quiz_ids)
        summary = recompute_from_all([r.percentage for r in results])
        stats = {
            'total_attempts': len(results),
            'average_score': summary.average,
            'total_students': len({r.student_id for r in results if r.student_id is not None}),
            'total_quizzes': len(quiz_ids),
        }
        return stats, results
