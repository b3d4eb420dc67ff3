"""Profile, dashboard and admin teacher-management endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models, services
from ..auth import get_current_user, require_role
from ..database import get_session
from ..schemas import OnboardingIn, ProfileUpdateIn, TeacherUpdateIn
from ..serializers import user_public

router = APIRouter(tags=["Users"])


@router.get('/profile')
def get_profile(user: models.User = Depends(get_current_user)):
    return {'user': user_public(user)}


@router.put('/profile')
def update_profile(payload: ProfileUpdateIn, db: Session = Depends(get_session),
                   user: models.User = Depends(get_current_user)):
    user = services.UserService(db).update_profile(
        user, name=payload.name, institution=payload.institution,
        organization=payload.organization, avatar=payload.avatar,
    )
    return {'user': user_public(user)}


@router.put('/onboarding')
def complete_onboarding(payload: OnboardingIn, db: Session = Depends(get_session),
                        user: models.User = Depends(get_current_user)):
    """Store the user's preferred categories and mark onboarding done."""
    user = services.UserService(db).complete_onboarding(user, payload.categories)
    return {'user': user_public(user)}


@router.get('/stats')
def dashboard_stats(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return {'stats': services.UserService(db).dashboard_stats(user)}


@router.get('/teachers')
def list_teachers(page: int = 1, limit: int = 20, search: Optional[str] = None, status: Optional[str] = None,
                  db: Session = Depends(get_session), admin: models.User = Depends(require_role('admin'))):
    """Paginated teacher list for administrators."""
    teachers, pagination = services.UserService(db).list_teachers(page, limit, search, status)
    return {'teachers': [user_public(t) for t in teachers], 'pagination': pagination}


@router.get('/teachers/{teacher_id}')
def get_teacher(teacher_id: int, db: Session = Depends(get_session),
                admin: models.User = Depends(require_role('admin'))):
    return {'teacher': user_public(services.UserService(db).get_teacher(teacher_id))}


@router.put('/teachers/{teacher_id}')
def update_teacher(teacher_id: int, payload: TeacherUpdateIn, db: Session = Depends(get_session),
                   admin: models.User = Depends(require_role('admin'))):
    """Rename, move or (de)activate a teacher account."""
    teacher = services.UserService(db).update_teacher(
        teacher_id, name=payload.name, institution=payload.institution, is_active=payload.is_active)
    return {'teacher': user_public(teacher)}


@router.delete('/teachers/{teacher_id}')
def delete_teacher(teacher_id: int, db: Session = Depends(get_session),
                   admin: models.User = Depends(require_role('admin'))):
    services.UserService(db).delete_teacher(admin, teacher_id)
    return {'message': 'Teacher deleted successfully'}
