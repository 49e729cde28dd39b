# tea_inventory/audit_logger.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from .constants import AuditAction
from .logging_config import get_logger
from .models import AuditEntry, User

logger = get_logger(__name__)


def _jsonable(v: Any) -> Any:
    if isinstance(v, Enum):
        return v.value
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


def snapshot(obj: Any, exclude: Iterable[str] = ("password_hash",)) -> Dict[str, Any]:
    """Column values of an ORM row as a JSON-ready dict (relationships left out)."""
    skip = set(exclude)
    mapper = inspect(obj).mapper
    return {
        attr.key: _jsonable(getattr(obj, attr.key))
        for attr in mapper.column_attrs
        if attr.key not in skip
    }


def log_audit_event(
    db: Session,
    *,
    action: AuditAction,
    entity_type: str,
    entity_id: Any,
    actor: Optional[User],
    before_json: Optional[Dict[str, Any]] = None,
    after_json: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> AuditEntry:
    """
    Adds an append-only row to audit_entries.
    Caller owns the transaction: the entry commits (or rolls back) together
    with the change it describes.
    """
    entry = AuditEntry(
        action=AuditAction(action).value,
        entity_type=entity_type,
        entity_id=str(entity_id),
        user_id=actor.id if actor is not None else None,
        before_json=before_json,
        after_json=after_json,
        reason=reason,
    )
    db.add(entry)

    logger.info(
        "Audit: %s %s#%s by %s",
        entry.action,
        entity_type,
        entity_id,
        actor.username if actor is not None else "system",
    )
    return entry
