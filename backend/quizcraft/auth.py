"""Authentication helpers and FastAPI security dependencies.

This module issues and verifies the JWT access/refresh token pair and
provides the dependencies used by the routes:

- `get_current_user`: requires a valid bearer access token
- `get_optional_user`: returns the user when a valid token is present
- `require_role(*roles)`: dependency factory for role-restricted routes

Token problems raise `AuthError`/`Forbidden`, which the application's
exception handler turns into 401/403 responses.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session

from .config import settings
from .database import get_session
from .errors import AuthError, Forbidden
from . import models, repositories

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS = 'access'
REFRESH = 'refresh'


def _secret(kind: str) -> str:
    return settings.JWT_REFRESH_SECRET if kind == REFRESH else settings.JWT_SECRET


def create_token(user: models.User, kind: str = ACCESS) -> str:
    """Sign a token of `kind` for `user`."""
    if kind == REFRESH:
        lifetime = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)
    else:
        lifetime = timedelta(minutes=settings.JWT_ACCESS_EXPIRE_MINUTES)
    now = datetime.now(timezone.utc)
    payload = {
        'user_id': user.id,
        'email': user.email,
        'role': user.role,
        'type': kind,
        'iat': int(now.timestamp()),
        'exp': int((now + lifetime).timestamp()),
        # unique per token so two pairs issued in the same second differ
        'jti': uuid.uuid4().hex,
    }
    return jwt.encode(payload, _secret(kind), algorithm=settings.JWT_ALGORITHM)


def create_token_pair(user: models.User) -> dict:
    return {'access_token': create_token(user, ACCESS), 'refresh_token': create_token(user, REFRESH)}


def decode_token(token: str, kind: str = ACCESS) -> dict:
    """Decode and verify a JWT token of the expected `kind`.

    Returns the decoded payload on success or raises `AuthError`.
    """
    try:
        payload = jwt.decode(token, _secret(kind), algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError('token expired')
    except jwt.InvalidTokenError:
        raise AuthError('invalid token')
    if payload.get('type') != kind:
        raise AuthError('invalid token type')
    return payload


def _user_from_credentials(credentials: Optional[HTTPAuthorizationCredentials], db: Session) -> models.User:
    if credentials is None:
        raise AuthError('Access denied. Please log in.')
    payload = decode_token(credentials.credentials, ACCESS)
    user_id = payload.get('user_id')
    if not user_id:
        raise AuthError('invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise AuthError('user not found')
    if not user.is_active:
        raise Forbidden('Your account has been deactivated.')
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user."""
    return _user_from_credentials(credentials, db)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> Optional[models.User]:
    """Like `get_current_user` but returns `None` instead of failing."""
    if credentials is None:
        return None
    try:
        return _user_from_credentials(credentials, db)
    except (AuthError, Forbidden):
        return None


def require_role(*roles: str):
    """Build a dependency that admits only users whose role is in `roles`."""
    def _checker(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in roles:
            raise Forbidden(f"Access denied. Required role: {' or '.join(roles)}")
        return user
    return _checker
