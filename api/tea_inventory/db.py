# tea_inventory/db.py
"""
Database engine and session management.

One SQLAlchemy ``Session`` per request through the ``get_db`` dependency.
"""
from __future__ import annotations

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .logging_config import get_logger
from .models import Base

logger = get_logger(__name__)


def make_engine(url: str, echo: bool = False, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=echo, **kwargs)


engine = make_engine(settings.database_url, echo=settings.database_echo)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create all tables. Safe to call on every startup."""
    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info("Database schema ready (%s)", target.url.render_as_string(hide_password=True))
