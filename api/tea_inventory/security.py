# tea_inventory/security.py
from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, status
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .constants import UserRole
from .db import get_db
from .errors import api_error
from .logging_config import get_logger
from .models import User
from .sessions import RequestSession, get_session

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, password_hash: str) -> bool:
    return pwd_context.verify(plain, password_hash)


def authenticate(db: Session, login: str, password: str) -> Optional[User]:
    """Match ``login`` against username or email among active users."""
    user = db.execute(
        select(User).where(
            or_(User.username == login, User.email == login),
            User.is_active.is_(True),
        )
    ).scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def _unauthorized(message: str = "Authentication required", code: str = "UNAUTHORIZED", headers=None):
    return api_error(status.HTTP_401_UNAUTHORIZED, code, message, headers=headers)


def _forbidden(message: str = "Insufficient permissions", details=None):
    return api_error(status.HTTP_403_FORBIDDEN, "FORBIDDEN", message, details)


# ---------------------------------------------------------------------------
# Session-backed auth dependencies
# ---------------------------------------------------------------------------

def _resolve_user(db: Session, user_id: int) -> Optional[User]:
    return db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    ).scalar_one_or_none()


def get_optional_user(
    session: RequestSession = Depends(get_session),
    db: Session = Depends(get_db),
) -> Optional[User]:
    if session.user_id is None:
        return None
    return _resolve_user(db, session.user_id)


def get_current_user(
    session: RequestSession = Depends(get_session),
    db: Session = Depends(get_db),
) -> User:
    if session.user_id is None:
        raise _unauthorized()

    user = _resolve_user(db, session.user_id)
    if user is None:
        logger.info("Session %s... points at a missing or inactive user; destroying", session.id[:8])
        session.destroy()
        # expired cookie travels with the 401
        raise _unauthorized("Invalid session", headers=session.expired_cookie_headers())

    return user


# ---------------------------------------------------------------------------
# Role-based guards
# ---------------------------------------------------------------------------

def require_role(*allowed_roles: UserRole) -> Callable[..., User]:
    allowed = {UserRole(r).value for r in allowed_roles}

    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise _forbidden(
                details={"requiredRoles": sorted(allowed), "userRole": user.role},
            )
        return user

    return _dep


def has_role(user: User, *roles: UserRole) -> bool:
    return user.role in {UserRole(r).value for r in roles}


require_admin = require_role(UserRole.admin)
require_product_editor = require_role(UserRole.fulfillment, UserRole.admin)
require_material_editor = require_role(UserRole.production, UserRole.admin)
