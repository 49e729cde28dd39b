# tea_inventory/sessions.py
"""
Server-held sessions.

The browser only ever holds the session id (optionally signed as an HS256
token with python-jose); user id, data and expiry live in the ``sessions``
table. Each request gets its own ``RequestSession`` through the
``get_session`` dependency. Its public view is read-only; state changes go
through ``set_user`` / ``clear_user`` / ``set`` followed by ``save``, or
through ``regenerate``, ``touch`` and ``destroy``, which persist at once and
write the cookie onto the outgoing response.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from fastapi import Depends, Request, Response
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .logging_config import get_logger
from .models import SessionRecord, as_utc, utcnow

logger = get_logger(__name__)

COOKIE_ALGORITHM = "HS256"
SAME_SITE_VALUES = ("lax", "strict", "none")


class SessionError(Exception):
    """Raised when a session operation cannot be completed."""


# ---------------------------------------------------------------------------
# Cookie policy
# ---------------------------------------------------------------------------


class CookiePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_age: Optional[int] = 24 * 60 * 60  # seconds
    signed: bool = True
    expires: Optional[datetime] = None
    http_only: bool = True
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    same_site: Union[bool, str] = "lax"

    @field_validator("same_site")
    @classmethod
    def _check_same_site(cls, v):
        if isinstance(v, bool):
            return v
        v = v.strip().lower()
        if v not in SAME_SITE_VALUES:
            raise ValueError(f"same_site must be a boolean or one of {', '.join(SAME_SITE_VALUES)}")
        return v

    @property
    def same_site_attribute(self) -> Optional[str]:
        """Value for the Set-Cookie SameSite attribute (True is strict, False omits it)."""
        if self.same_site is True:
            return "strict"
        if self.same_site is False:
            return None
        return self.same_site

    def expiry_from(self, now: datetime) -> Optional[datetime]:
        if self.expires is not None:
            return as_utc(self.expires)
        if self.max_age is not None:
            return now + timedelta(seconds=self.max_age)
        return None


# ---------------------------------------------------------------------------
# Cookie value encoding
# ---------------------------------------------------------------------------


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def encode_session_cookie(sid: str, *, signed: bool, secret: str) -> str:
    if not signed:
        return sid
    return jwt.encode({"sid": sid}, secret, algorithm=COOKIE_ALGORITHM)


def decode_session_cookie(value: Optional[str], *, signed: bool, secret: str) -> Optional[str]:
    """Return the session id carried by a cookie value, or None if it does not verify."""
    if not value:
        return None
    if not signed:
        return value
    try:
        payload = jwt.decode(value, secret, algorithms=[COOKIE_ALGORITHM])
    except JWTError:
        logger.warning("Rejected session cookie with bad signature")
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None


# ---------------------------------------------------------------------------
# Backing store
# ---------------------------------------------------------------------------


class SessionStore:
    """Session rows in the application database."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, sid: str) -> Optional[SessionRecord]:
        record = self.db.get(SessionRecord, sid)
        if record is None:
            return None
        expires_at = as_utc(record.expires_at)
        if expires_at is not None and expires_at <= utcnow():
            logger.info("Session %s... expired; purging", sid[:8])
            self.db.delete(record)
            self.db.commit()
            return None
        return record

    def set(
        self,
        sid: str,
        *,
        user_id: Optional[int],
        data: Dict[str, Any],
        expires_at: Optional[datetime],
    ) -> None:
        record = self.db.get(SessionRecord, sid)
        if record is None:
            record = SessionRecord(id=sid)
            self.db.add(record)
        record.user_id = user_id
        record.data = dict(data)
        record.expires_at = expires_at
        self.db.commit()

    def touch(self, sid: str, expires_at: Optional[datetime]) -> None:
        record = self.db.get(SessionRecord, sid)
        if record is None:
            raise SessionError("Session not found")
        record.expires_at = expires_at
        self.db.commit()

    def destroy(self, sid: str) -> None:
        self.db.execute(delete(SessionRecord).where(SessionRecord.id == sid))
        self.db.commit()

    def destroy_for_user(self, user_id: int) -> int:
        res = self.db.execute(delete(SessionRecord).where(SessionRecord.user_id == user_id))
        self.db.commit()
        return res.rowcount or 0

    def purge_expired(self) -> int:
        res = self.db.execute(
            delete(SessionRecord).where(
                SessionRecord.expires_at.is_not(None),
                SessionRecord.expires_at <= utcnow(),
            )
        )
        self.db.commit()
        return res.rowcount or 0

    def count(self) -> int:
        return self.db.execute(select(func.count(SessionRecord.id))).scalar_one()


# ---------------------------------------------------------------------------
# Request-scoped session
# ---------------------------------------------------------------------------


class RequestSession:
    def __init__(
        self,
        *,
        store: SessionStore,
        response: Response,
        policy: CookiePolicy,
        cookie_name: str,
        secret: str,
        record: Optional[SessionRecord] = None,
    ):
        self._store = store
        self._response = response
        self._policy = policy
        self._cookie_name = cookie_name
        self._secret = secret
        self._destroyed = False

        if record is None:
            self._id = new_session_id()
            self._is_new = True
            self._user_id: Optional[int] = None
            self._data: Dict[str, Any] = {}
            self._expires_at = policy.expiry_from(utcnow())
        else:
            self._id = record.id
            self._is_new = False
            self._load(record)

    # --- read-only view ------------------------------------------------------

    @property
    def id(self) -> str:
        return self._id

    @property
    def user_id(self) -> Optional[int]:
        return self._user_id

    @property
    def data(self) -> Mapping[str, Any]:
        return MappingProxyType(self._data)

    @property
    def cookie(self) -> CookiePolicy:
        return self._policy

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    @property
    def is_new(self) -> bool:
        return self._is_new

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    # --- local mutation (persisted by save) ----------------------------------

    def set_user(self, user_id: int) -> None:
        self._ensure_alive()
        self._user_id = user_id

    def clear_user(self) -> None:
        self._ensure_alive()
        self._user_id = None

    def set(self, key: str, value: Any) -> None:
        self._ensure_alive()
        self._data[key] = value

    # --- lifecycle -----------------------------------------------------------

    def save(self) -> None:
        """Persist the current state and (re)issue the cookie."""
        self._ensure_alive()
        self._expires_at = self._policy.expiry_from(utcnow())
        self._store.set(
            self._id,
            user_id=self._user_id,
            data=self._data,
            expires_at=self._expires_at,
        )
        self._is_new = False
        self._write_cookie()

    def regenerate(self) -> None:
        """Rotate the session id, keeping the data, and persist under the new id."""
        self._ensure_alive()
        old_id = self._id
        if not self._is_new:
            self._store.destroy(old_id)
        self._id = new_session_id()
        self._is_new = True
        self.save()
        logger.debug("Session %s... regenerated as %s...", old_id[:8], self._id[:8])

    def reload(self) -> None:
        """Re-read state from the store, dropping unsaved local changes."""
        self._ensure_alive()
        record = self._store.get(self._id)
        if record is None:
            raise SessionError("Session not found in store")
        self._store.db.refresh(record)
        self._is_new = False
        self._load(record)

    def touch(self) -> None:
        """Push the expiry forward without changing data."""
        self._ensure_alive()
        self._expires_at = self._policy.expiry_from(utcnow())
        if not self._is_new:
            self._store.touch(self._id, self._expires_at)
            self._write_cookie()

    def destroy(self) -> None:
        if self._destroyed:
            return
        if not self._is_new:
            self._store.destroy(self._id)
        self._destroyed = True
        self._user_id = None
        self._data = {}
        self._expire_cookie(self._response)

    def expired_cookie_headers(self) -> Dict[str, str]:
        """Set-Cookie header that clears the cookie, for responses built outside the dependency."""
        scratch = Response()
        self._expire_cookie(scratch)
        return {"set-cookie": scratch.headers["set-cookie"]}

    # --- internals -----------------------------------------------------------

    def _load(self, record: SessionRecord) -> None:
        self._user_id = record.user_id
        self._data = dict(record.data or {})
        self._expires_at = as_utc(record.expires_at)

    def _expire_cookie(self, response: Response) -> None:
        response.delete_cookie(
            self._cookie_name,
            path=self._policy.path,
            domain=self._policy.domain,
            secure=self._policy.secure,
            httponly=self._policy.http_only,
            samesite=self._policy.same_site_attribute,
        )

    def _ensure_alive(self) -> None:
        if self._destroyed:
            raise SessionError("Session has been destroyed")

    def _write_cookie(self) -> None:
        max_age = None
        if self._expires_at is not None:
            max_age = max(0, int((self._expires_at - utcnow()).total_seconds()))
        self._response.set_cookie(
            self._cookie_name,
            encode_session_cookie(self._id, signed=self._policy.signed, secret=self._secret),
            max_age=max_age,
            expires=self._expires_at,
            path=self._policy.path,
            domain=self._policy.domain,
            secure=self._policy.secure,
            httponly=self._policy.http_only,
            samesite=self._policy.same_site_attribute,
        )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<RequestSession id={self._id[:8]}... user_id={self._user_id} new={self._is_new}>"


# ---------------------------------------------------------------------------
# Loading per request
# ---------------------------------------------------------------------------


class SessionManager:
    def __init__(
        self,
        *,
        policy: CookiePolicy,
        cookie_name: str,
        secret: str,
        rolling: bool = False,
    ):
        self.policy = policy
        self.cookie_name = cookie_name
        self.secret = secret
        self.rolling = rolling

    @classmethod
    def from_settings(cls, s=settings) -> "SessionManager":
        return cls(
            policy=s.cookie_policy,
            cookie_name=s.session_cookie_name,
            secret=s.session_secret,
            rolling=s.session_rolling,
        )

    def load(self, cookie_value: Optional[str], response: Response, db: Session) -> RequestSession:
        store = SessionStore(db)
        sid = decode_session_cookie(cookie_value, signed=self.policy.signed, secret=self.secret)
        record = store.get(sid) if sid else None

        session = RequestSession(
            store=store,
            response=response,
            policy=self.policy,
            cookie_name=self.cookie_name,
            secret=self.secret,
            record=record,
        )
        if record is not None and self.rolling:
            session.touch()
        return session


session_manager = SessionManager.from_settings()


def get_session(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> RequestSession:
    manager: SessionManager = getattr(request.app.state, "session_manager", session_manager)
    return manager.load(request.cookies.get(manager.cookie_name), response, db)
