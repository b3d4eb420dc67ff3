"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
categories, quizzes, questions, students, results). Repositories return
SQLModel objects and perform commits/refreshes where appropriate.
"""

from typing import Iterable, List, Optional, Tuple
from sqlmodel import Session, select
from sqlalchemy import func, or_, update
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by (lowercased) email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email.strip().lower())
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_refresh_token(self, token: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.refresh_token == token)
        return self.session.exec(stmt).first()

    def first_admin(self) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.role == 'admin').order_by(models.User.id)
        return self.session.exec(stmt).first()

    def first(self) -> Optional[models.User]:
        return self.session.exec(select(models.User).order_by(models.User.id)).first()

    def count_by_role(self, role: str) -> int:
        stmt = select(func.count()).select_from(models.User).where(models.User.role == role)
        return self.session.exec(stmt).one()

    def search_teachers(self, page: int = 1, limit: int = 20, search: Optional[str] = None,
                        status: Optional[str] = None) -> Tuple[List[models.User], int]:
        """Return one page of teachers (newest first) and the total match count.

        `search` matches name, email or institution case-insensitively;
        `status` is `active` or `inactive`.
        """
        conditions = [models.User.role == 'teacher']
        if search:
            like = f"%{search.lower()}%"
            conditions.append(or_(
                func.lower(models.User.name).like(like),
                func.lower(models.User.email).like(like),
                func.lower(func.coalesce(models.User.institution, '')).like(like),
            ))
        if status == 'active':
            conditions.append(models.User.is_active == True)  # noqa: E712
        elif status == 'inactive':
            conditions.append(models.User.is_active == False)  # noqa: E712
        total = self.session.exec(select(func.count()).select_from(models.User).where(*conditions)).one()
        stmt = (
            select(models.User).where(*conditions)
            .order_by(models.User.created_at.desc(), models.User.id.desc())
            .offset((page - 1) * limit).limit(limit)
        )
        return self.session.exec(stmt).all(), total

    def delete(self, user: models.User) -> None:
        self.session.delete(user)
        self.session.commit()


class CategoryRepository:
    """CRUD operations for `Category` records."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, category: models.Category) -> models.Category:
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def get(self, category_id: int) -> Optional[models.Category]:
        return self.session.get(models.Category, category_id)

    def get_by_name(self, name: str, exclude_id: Optional[int] = None) -> Optional[models.Category]:
        """Case-insensitive lookup by name, optionally ignoring one id."""
        stmt = select(models.Category).where(func.lower(models.Category.name) == name.strip().lower())
        if exclude_id is not None:
            stmt = stmt.where(models.Category.id != exclude_id)
        return self.session.exec(stmt).first()

    def list(self, active_only: bool = False) -> List[models.Category]:
        stmt = select(models.Category)
        if active_only:
            stmt = stmt.where(models.Category.is_active == True)  # noqa: E712
        return self.session.exec(stmt.order_by(models.Category.name)).all()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Category)).one()

    def delete(self, category: models.Category) -> None:
        self.session.delete(category)
        self.session.commit()

    def reassign_creator(self, old_user_id: int, new_user_id: int) -> None:
        """Point categories created by `old_user_id` at `new_user_id`; the caller commits."""
        self.session.execute(update(models.Category).where(models.Category.created_by_id == old_user_id)
                             .values(created_by_id=new_user_id))

    def refresh_quiz_count(self, category_id: int) -> None:
        """Recount the published quizzes of a category."""
        category = self.get(category_id)
        if not category:
            return
        stmt = select(func.count()).select_from(models.Quiz).where(
            models.Quiz.category_id == category_id,
            models.Quiz.is_published == True,  # noqa: E712
        )
        category.quiz_count = self.session.exec(stmt).one()
        self.session.add(category)
        self.session.commit()


class QuizRepository:
    """CRUD operations for `Quiz` records."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, quiz: models.Quiz) -> models.Quiz:
        self.session.add(quiz)
        self.session.commit()
        self.session.refresh(quiz)
        return quiz

    def get(self, quiz_id: int) -> Optional[models.Quiz]:
        return self.session.get(models.Quiz, quiz_id)

    def get_published_by_code(self, code: str) -> Optional[models.Quiz]:
        stmt = select(models.Quiz).where(
            models.Quiz.access_code == code.strip().upper(),
            models.Quiz.is_published == True,  # noqa: E712
        )
        return self.session.exec(stmt).first()

    def code_in_use(self, code: str) -> bool:
        stmt = select(models.Quiz.id).where(models.Quiz.access_code == code)
        return self.session.exec(stmt).first() is not None

    def list(self, category_id: Optional[int] = None, difficulty: Optional[str] = None,
             teacher_id: Optional[int] = None, published_only: bool = True) -> List[models.Quiz]:
        """List quizzes newest first with optional filters."""
        stmt = select(models.Quiz)
        if category_id is not None:
            stmt = stmt.where(models.Quiz.category_id == category_id)
        if difficulty:
            stmt = stmt.where(models.Quiz.difficulty == difficulty)
        if teacher_id is not None:
            stmt = stmt.where(models.Quiz.created_by_id == teacher_id)
        if published_only:
            stmt = stmt.where(models.Quiz.is_published == True)  # noqa: E712
        return self.session.exec(stmt.order_by(models.Quiz.created_at.desc(), models.Quiz.id.desc())).all()

    def ids_by_teacher(self, teacher_id: int) -> List[int]:
        stmt = select(models.Quiz.id).where(models.Quiz.created_by_id == teacher_id)
        return list(self.session.exec(stmt).all())

    def count(self, teacher_id: Optional[int] = None, published: Optional[bool] = None,
              category_id: Optional[int] = None) -> int:
        stmt = select(func.count()).select_from(models.Quiz)
        if teacher_id is not None:
            stmt = stmt.where(models.Quiz.created_by_id == teacher_id)
        if published is not None:
            stmt = stmt.where(models.Quiz.is_published == published)
        if category_id is not None:
            stmt = stmt.where(models.Quiz.category_id == category_id)
        return self.session.exec(stmt).one()

    def reassign_owner(self, old_user_id: int, new_user_id: int) -> int:
        """Move every quiz of `old_user_id` to `new_user_id`; the caller commits."""
        result = self.session.execute(update(models.Quiz).where(models.Quiz.created_by_id == old_user_id)
                                      .values(created_by_id=new_user_id))
        return result.rowcount

    def delete(self, quiz: models.Quiz) -> None:
        """Delete a quiz; questions and options go with it."""
        self.session.delete(quiz)
        self.session.commit()


class QuestionRepository:
    """CRUD operations for `Question` and related `QuestionOption` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, question: models.Question, options: List[models.QuestionOption]) -> models.Question:
        """Create a question and attach provided options.

        The function flushes the question first to obtain an id, then
        assigns that id to options before committing them.
        """
        self.session.add(question)
        self.session.flush()
        for o in options:
            o.question_id = question.id
            self.session.add(o)
        self.session.commit()
        self.session.refresh(question)
        return question

    def replace_options(self, question: models.Question, options: List[models.QuestionOption]) -> models.Question:
        """Swap all options of a question; the old rows are deleted as orphans."""
        question.options.clear()
        self.session.flush()
        question.options.extend(options)
        self.session.add(question)
        self.session.commit()
        self.session.refresh(question)
        return question

    def get(self, question_id: int) -> Optional[models.Question]:
        """Fetch a question by id."""
        return self.session.get(models.Question, question_id)

    def list_for_quiz(self, quiz_id: int) -> List[models.Question]:
        """Return a quiz's questions in quiz order."""
        stmt = select(models.Question).where(models.Question.quiz_id == quiz_id).order_by(
            models.Question.position, models.Question.id)
        return self.session.exec(stmt).all()

    def next_position(self, quiz_id: int) -> int:
        stmt = select(func.max(models.Question.position)).where(models.Question.quiz_id == quiz_id)
        current = self.session.exec(stmt).one()
        return 0 if current is None else current + 1

    def set_positions(self, ordered: Iterable[models.Question]) -> None:
        for idx, q in enumerate(ordered):
            q.position = idx
            self.session.add(q)
        self.session.commit()

    def delete(self, question: models.Question) -> None:
        self.session.delete(question)
        self.session.commit()


class StudentRepository:
    """CRUD operations for guest `Student` profiles and participations."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, student: models.Student) -> models.Student:
        self.session.add(student)
        self.session.commit()
        self.session.refresh(student)
        return student

    def get(self, student_id: int) -> Optional[models.Student]:
        return self.session.get(models.Student, student_id)

    def get_by_email(self, email: str) -> Optional[models.Student]:
        stmt = select(models.Student).where(models.Student.email == email.strip().lower())
        return self.session.exec(stmt).first()

    def get_participation(self, student_id: int, quiz_id: int) -> Optional[models.QuizParticipation]:
        stmt = select(models.QuizParticipation).where(
            models.QuizParticipation.student_id == student_id,
            models.QuizParticipation.quiz_id == quiz_id,
        )
        return self.session.exec(stmt).first()

    def add_participation(self, participation: models.QuizParticipation) -> models.QuizParticipation:
        self.session.add(participation)
        self.session.commit()
        self.session.refresh(participation)
        return participation

    def reassign_teacher(self, old_teacher_id: int, new_teacher_id: int) -> None:
        self.session.execute(update(models.QuizParticipation)
                             .where(models.QuizParticipation.teacher_id == old_teacher_id)
                             .values(teacher_id=new_teacher_id))

    def list_by_teacher(self, teacher_id: int) -> List[models.Student]:
        """Students who joined any quiz of `teacher_id`, most recently active first."""
        sub = select(models.QuizParticipation.student_id).where(models.QuizParticipation.teacher_id == teacher_id)
        stmt = select(models.Student).where(models.Student.id.in_(sub)).order_by(
            models.Student.last_active.desc(), models.Student.id.desc())
        return self.session.exec(stmt).all()


class ResultRepository:
    """Persist immutable results and query result history."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, result: models.Result, answers: List[models.ResultAnswer]) -> models.Result:
        """Store a `Result` and its `ResultAnswer`s in one commit."""
        self.session.add(result)
        self.session.flush()
        for a in answers:
            a.result_id = result.id
            self.session.add(a)
        self.session.commit()
        self.session.refresh(result)
        return result

    def get(self, result_id: int) -> Optional[models.Result]:
        return self.session.get(models.Result, result_id)

    def list_for_quiz(self, quiz_id: int) -> List[models.Result]:
        stmt = select(models.Result).where(models.Result.quiz_id == quiz_id).order_by(
            models.Result.completed_at.desc(), models.Result.id.desc())
        return self.session.exec(stmt).all()

    def list_for_quizzes(self, quiz_ids: List[int]) -> List[models.Result]:
        if not quiz_ids:
            return []
        stmt = select(models.Result).where(models.Result.quiz_id.in_(quiz_ids)).order_by(
            models.Result.completed_at.desc(), models.Result.id.desc())
        return self.session.exec(stmt).all()

    def list_for_student(self, student_id: int) -> List[models.Result]:
        stmt = select(models.Result).where(
            models.Result.student_id == student_id,
            models.Result.participant_type == 'student',
        ).order_by(models.Result.completed_at.desc(), models.Result.id.desc())
        return self.session.exec(stmt).all()

    def list_for_user(self, user_id: int) -> List[models.Result]:
        stmt = select(models.Result).where(
            models.Result.user_id == user_id,
            models.Result.participant_type == 'user',
        ).order_by(models.Result.completed_at.desc(), models.Result.id.desc())
        return self.session.exec(stmt).all()

    def leaderboard(self, quiz_id: int, limit: int = 10) -> List[models.Result]:
        """Best attempts first: percentage descending, then fastest."""
        stmt = select(models.Result).where(models.Result.quiz_id == quiz_id).order_by(
            models.Result.percentage.desc(), models.Result.time_taken.asc(), models.Result.id.asc()
        ).limit(limit)
        return self.session.exec(stmt).all()

    def percentages_for_quiz(self, quiz_id: int) -> List[Tuple[int, int]]:
        """Return `(percentage, time_taken)` for every attempt on a quiz."""
        stmt = select(models.Result.percentage, models.Result.time_taken).where(models.Result.quiz_id == quiz_id)
        return list(self.session.exec(stmt).all())

    def percentages_for_student(self, student_id: int) -> List[int]:
        stmt = select(models.Result.percentage).where(models.Result.student_id == student_id)
        return list(self.session.exec(stmt).all())

    def count(self, quiz_ids: Optional[List[int]] = None) -> int:
        stmt = select(func.count()).select_from(models.Result)
        if quiz_ids is not None:
            if not quiz_ids:
                return 0
            stmt = stmt.where(models.Result.quiz_id.in_(quiz_ids))
        return self.session.exec(stmt).one()
