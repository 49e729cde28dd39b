# api/tea_inventory/routers/users.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..audit_logger import log_audit_event, snapshot
from ..constants import AuditAction, UserRole
from ..db import get_db
from ..errors import bad_request, conflict, not_found, translate_integrity_error
from ..logging_config import get_logger
from ..models import User
from ..schemas import UserCreate, UserOut, UserUpdate
from ..security import hash_password, require_admin
from ..sessions import SessionStore

logger = get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


# ---------------------------------------------------------------------------
# Safety helpers
# ---------------------------------------------------------------------------

PROTECTED_ADMIN_USERNAME = "admin"


def _active_admin_count(db: Session) -> int:
    return db.execute(
        select(func.count(User.id)).where(
            User.role == UserRole.admin.value,
            User.is_active.is_(True),
        )
    ).scalar_one()


def _stops_being_active_admin(u: User, new_role: Optional[UserRole], new_active: Optional[bool]) -> bool:
    """True if the change leaves this currently active admin inactive or non-admin."""
    if u.role != UserRole.admin.value or not u.is_active:
        return False
    role = new_role.value if new_role is not None else u.role
    active = new_active if new_active is not None else u.is_active
    return role != UserRole.admin.value or not active


def _guard_admin_safety(db: Session, u: User, new_role: Optional[UserRole], new_active: Optional[bool]) -> None:
    # the built-in 'admin' account can never be disabled or demoted
    if u.username == PROTECTED_ADMIN_USERNAME:
        if new_active is False:
            raise bad_request("PROTECTED_USER", "The 'admin' user cannot be made inactive")
        if new_role is not None and new_role != UserRole.admin:
            raise bad_request("PROTECTED_USER", "The 'admin' user role cannot be changed")

    # never end up with 0 active admins
    if _stops_being_active_admin(u, new_role, new_active) and _active_admin_count(db) <= 1:
        raise bad_request("LAST_ADMIN", "Cannot disable or demote the last active admin user")


def _get_or_404(db: Session, user_id: int) -> User:
    u = db.get(User, user_id)
    if u is None:
        raise not_found("USER_NOT_FOUND", "User not found")
    return u


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@router.get("", response_model=List[UserOut])
def list_users(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
    role: Optional[UserRole] = None,
    active: Optional[bool] = Query(None),
) -> List[UserOut]:
    stmt = select(User)
    if role is not None:
        stmt = stmt.where(User.role == role.value)
    if active is not None:
        stmt = stmt.where(User.is_active.is_(active))
    return db.execute(stmt.order_by(User.username.asc())).scalars().all()


@router.post("", response_model=UserOut, status_code=201)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> UserOut:
    username = payload.username.strip()
    email = payload.email.strip().lower()

    existing = db.execute(
        select(User.id).where(or_(User.username == username, User.email == email))
    ).first()
    if existing:
        raise conflict("USER_EXISTS", "User with this username or email already exists")

    u = User(
        username=username,
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        is_active=True,
        created_by=admin.username,
    )
    db.add(u)
    try:
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.create,
            entity_type="user",
            entity_id=u.id,
            actor=admin,
            after_json=snapshot(u),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        translate_integrity_error(e, "USER_EXISTS")

    db.refresh(u)
    logger.info("User %s (%s) created by %s", u.username, u.role, admin.username)
    return u


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> UserOut:
    u = _get_or_404(db, user_id)
    _guard_admin_safety(db, u, payload.role, payload.is_active)

    if payload.email is not None:
        email = payload.email.strip().lower()
        taken = db.execute(
            select(User.id).where(User.email == email, User.id != u.id)
        ).first()
        if taken:
            raise conflict("EMAIL_EXISTS", "Email already in use")

    before_json = snapshot(u)

    if payload.email is not None:
        u.email = payload.email.strip().lower()
    if payload.role is not None:
        u.role = payload.role.value
    if payload.is_active is not None:
        u.is_active = bool(payload.is_active)
    if payload.password is not None:
        u.password_hash = hash_password(payload.password)

    after_json = snapshot(u)
    if payload.password is not None:
        after_json["password_changed"] = True

    try:
        db.flush()
        log_audit_event(
            db,
            action=AuditAction.update,
            entity_type="user",
            entity_id=u.id,
            actor=admin,
            before_json=before_json,
            after_json=after_json,
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        translate_integrity_error(e, "EMAIL_EXISTS")

    if not u.is_active:
        dropped = SessionStore(db).destroy_for_user(u.id)
        if dropped:
            logger.info("Dropped %d session(s) of deactivated user %s", dropped, u.username)

    db.refresh(u)
    return u


@router.delete("/{user_id}", response_model=UserOut)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> UserOut:
    """Users are never removed; this switches the account off."""
    u = _get_or_404(db, user_id)
    if u.id == admin.id:
        raise bad_request("CANNOT_DELETE_SELF", "Cannot delete your own account")
    _guard_admin_safety(db, u, None, False)

    if u.is_active:
        before_json = snapshot(u)
        u.is_active = False
        log_audit_event(
            db,
            action=AuditAction.update,
            entity_type="user",
            entity_id=u.id,
            actor=admin,
            before_json=before_json,
            after_json=snapshot(u),
            reason="Deactivated",
        )
        db.commit()
        SessionStore(db).destroy_for_user(u.id)
        logger.info("User %s deactivated by %s", u.username, admin.username)

    db.refresh(u)
    return u
