# api/tea_inventory/routers/auth.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import api_error
from ..logging_config import get_logger
from ..models import User
from ..schemas import LoginRequest, MessageOut, SessionUserOut, UserPublic
from ..security import authenticate, get_current_user
from ..sessions import RequestSession, get_session

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.post("/login", response_model=SessionUserOut)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    session: RequestSession = Depends(get_session),
) -> SessionUserOut:
    user = authenticate(db, payload.username.strip(), payload.password)
    if user is None:
        logger.warning("Login failed for %r from %s", payload.username, _client_ip(request))
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            "INVALID_CREDENTIALS",
            "Invalid username or password",
        )

    # fresh id on every login
    session.set_user(user.id)
    session.regenerate()

    logger.info("User %s (%s) logged in from %s", user.username, user.role, _client_ip(request))
    return SessionUserOut(user=UserPublic.model_validate(user))


@router.post("/logout", response_model=MessageOut)
def logout(session: RequestSession = Depends(get_session)) -> MessageOut:
    user_id = session.user_id
    session.destroy()
    if user_id is not None:
        logger.info("User id=%s logged out", user_id)
    return MessageOut(message="Logged out successfully")


@router.get("/session", response_model=SessionUserOut)
def current_session(user: User = Depends(get_current_user)) -> SessionUserOut:
    return SessionUserOut(user=UserPublic.model_validate(user))


@router.get("/me", response_model=UserPublic)
def me(user: User = Depends(get_current_user)) -> UserPublic:
    return UserPublic.model_validate(user)


@router.post("/refresh", response_model=MessageOut)
def refresh(session: RequestSession = Depends(get_session)) -> MessageOut:
    if session.is_new or not session.is_authenticated:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "NO_SESSION", "Not authenticated")
    session.touch()
    return MessageOut(message="Session refreshed")
