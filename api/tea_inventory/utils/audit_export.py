# api/tea_inventory/utils/audit_export.py
from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, joinedload

from ..errors import bad_request
from ..models import AuditEntry, User, as_utc


def parse_iso_date_or_datetime(value: Optional[str]) -> Tuple[Optional[datetime], bool]:
    """
    Return (dt, is_date_only), dt in UTC.

    - If value is None/empty: (None, False)
    - If value is YYYY-MM-DD: returns that date at 00:00:00 and is_date_only=True
    - Else tries datetime.fromisoformat and is_date_only=False
    Naive values are read as UTC.
    """
    if value is None:
        return None, False

    v = value.strip()
    if not v:
        return None, False

    if len(v) == 10 and v[4] == "-" and v[7] == "-":
        try:
            d = datetime.strptime(v, "%Y-%m-%d")
            return as_utc(d), True
        except ValueError:
            raise bad_request("INVALID_DATE", f"Invalid date: {value}")

    try:
        if v.endswith("Z"):
            v = v[:-1] + "+00:00"
        dt = datetime.fromisoformat(v)
        return as_utc(dt), False
    except ValueError:
        raise bad_request("INVALID_DATE", f"Invalid ISO datetime: {value}")


def apply_date_range(stmt: Select, column, date_from: Optional[str], date_to: Optional[str]) -> Select:
    """Inclusive range; a date-only upper bound covers the whole day."""
    dt_from, _from_date_only = parse_iso_date_or_datetime(date_from)
    dt_to, to_date_only = parse_iso_date_or_datetime(date_to)

    if dt_from is not None:
        stmt = stmt.where(column >= dt_from)

    if dt_to is not None:
        if to_date_only:
            stmt = stmt.where(column < dt_to + timedelta(days=1))
        else:
            stmt = stmt.where(column <= dt_to)

    return stmt


def build_audit_query(
    *,
    date_from: Optional[str],
    date_to: Optional[str],
    action: Optional[str],
    entity_type: Optional[str],
    actor: Optional[str],
) -> Select:
    stmt = select(AuditEntry).options(joinedload(AuditEntry.user))
    stmt = apply_date_range(stmt, AuditEntry.created_at, date_from, date_to)

    if action:
        stmt = stmt.where(AuditEntry.action == action)

    if entity_type:
        stmt = stmt.where(AuditEntry.entity_type == entity_type)

    if actor:
        stmt = stmt.join(User, AuditEntry.user_id == User.id).where(User.username == actor)

    return stmt.order_by(AuditEntry.created_at.desc(), AuditEntry.id.desc())


def event_row(entry: AuditEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "created_at": entry.created_at,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "user_id": entry.user_id,
        "actor_username": entry.user.username if entry.user else None,
        "actor_role": entry.user.role if entry.user else None,
        "reason": entry.reason,
        "before_json": entry.before_json,
        "after_json": entry.after_json,
    }


def jsonify_cell(v) -> str:
    if v is None:
        return ""
    if isinstance(v, (dict, list)):
        return json.dumps(v, ensure_ascii=False, separators=(",", ":"), default=str)
    if isinstance(v, datetime):
        return v.isoformat()
    return str(v)


def fetch_export_rows(db: Session, stmt: Select, limit: int) -> List[Dict[str, Any]]:
    entries = db.execute(stmt.limit(limit)).unique().scalars().all()
    return [event_row(e) for e in entries]
