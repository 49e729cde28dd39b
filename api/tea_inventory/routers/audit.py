# api/tea_inventory/routers/audit.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..constants import AuditAction
from ..db import get_db
from ..models import User, utcnow
from ..schemas import AuditEventOut
from ..security import require_admin
from ..utils.audit_export import build_audit_query, event_row, fetch_export_rows, jsonify_cell
from ..utils.audit_pdf import build_audit_pdf
from ..utils.csv_export import csv_response

router = APIRouter(prefix="/api/audit", tags=["audit"])

SYSTEM_NAME = "Tea Inventory System"
CSV_COLUMNS = (
    "created_at",
    "action",
    "entity_type",
    "entity_id",
    "actor_username",
    "actor_role",
    "reason",
    "before_json",
    "after_json",
)


class AuditFilters:
    """Query filters shared by the feed and both exports."""

    def __init__(
        self,
        date_from: Optional[str] = Query(None, alias="dateFrom", description="ISO datetime or YYYY-MM-DD (inclusive)"),
        date_to: Optional[str] = Query(None, alias="dateTo", description="ISO datetime or YYYY-MM-DD (inclusive)"),
        action: Optional[AuditAction] = Query(None),
        entity_type: Optional[str] = Query(None, alias="entityType"),
        actor: Optional[str] = Query(None, description="Actor username"),
    ):
        self.date_from = date_from
        self.date_to = date_to
        self.action = action
        self.entity_type = entity_type
        self.actor = actor

    def query(self):
        return build_audit_query(
            date_from=self.date_from,
            date_to=self.date_to,
            action=self.action.value if self.action else None,
            entity_type=self.entity_type,
            actor=self.actor,
        )

    def describe(self) -> List[str]:
        lines = []
        if self.date_from:
            lines.append(f"Date from: {self.date_from}")
        if self.date_to:
            lines.append(f"Date to: {self.date_to}")
        if self.action:
            lines.append(f"Action: {self.action.value}")
        if self.entity_type:
            lines.append(f"Entity type: {self.entity_type}")
        if self.actor:
            lines.append(f"Actor: {self.actor}")
        return lines or ["Filters: (none)"]


@router.get("/events", response_model=List[AuditEventOut])
def get_audit_events(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
    filters: AuditFilters = Depends(),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    entries = db.execute(filters.query().offset(offset).limit(limit)).unique().scalars().all()
    return [AuditEventOut(**event_row(e)) for e in entries]


@router.get("/events.csv")
def export_audit_events_csv(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
    filters: AuditFilters = Depends(),
    limit: int = Query(5000, ge=1, le=20000),
):
    rows = fetch_export_rows(db, filters.query(), limit)
    cells = [[jsonify_cell(r.get(c)) for c in CSV_COLUMNS] for r in rows]
    return csv_response("audit_events.csv", CSV_COLUMNS, cells)


@router.get("/events.pdf")
def export_audit_events_pdf(
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
    filters: AuditFilters = Depends(),
    include_json: bool = Query(False, alias="includeJson", description="Include full before/after JSON appendix"),
    limit: int = Query(2000, ge=1, le=5000),
):
    rows = fetch_export_rows(db, filters.query(), limit)

    pdf_bytes = build_audit_pdf(
        system_name=SYSTEM_NAME,
        exported_by=user.username,
        exported_by_role=user.role,
        exported_at_utc=utcnow().isoformat(timespec="seconds"),
        filters_lines=filters.describe(),
        rows=rows,
        include_json=include_json,
    )

    headers = {"Content-Disposition": "attachment; filename=audit_events.pdf"}
    return Response(content=pdf_bytes, media_type="application/pdf", headers=headers)
