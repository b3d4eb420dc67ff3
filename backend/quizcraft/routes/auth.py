"""Registration, login and token endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from .. import models, services
from ..auth import get_current_user
from ..config import settings
from ..database import get_session
from ..schemas import ChangePasswordIn, LoginIn, RefreshIn, RegisterIn
from ..serializers import user_public
from ..utils.rate_limit import enforce_rate_limit, login_limiter

router = APIRouter(tags=["Auth"])


@router.post('/register', status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Create an account and return its profile with a token pair."""
    user, tokens = services.AuthService(db).register(
        payload.name, payload.email, payload.password, payload.role,
        institution=payload.institution, organization=payload.organization,
    )
    return {'user': user_public(user), **tokens}


@router.post('/login')
def login(payload: LoginIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate with email and password.

    When `role` is given the account must have that role.
    """
    enforce_rate_limit(login_limiter, request, settings.LOGIN_RATE_LIMIT_PER_MIN)
    user, tokens = services.AuthService(db).authenticate(payload.email, payload.password, payload.role)
    return {'user': user_public(user), **tokens}


@router.post('/refresh')
def refresh(payload: RefreshIn, db: Session = Depends(get_session)):
    return services.AuthService(db).refresh(payload.refresh_token)


@router.post('/logout')
def logout(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.AuthService(db).logout(user)
    return {'message': 'Logged out successfully'}


@router.get('/me')
def me(user: models.User = Depends(get_current_user)):
    return {'user': user_public(user)}


@router.put('/password')
def change_password(payload: ChangePasswordIn, db: Session = Depends(get_session),
                    user: models.User = Depends(get_current_user)):
    """Change the password and issue a fresh token pair."""
    tokens = services.AuthService(db).change_password(user, payload.current_password, payload.new_password)
    return {'message': 'Password updated successfully', **tokens}
