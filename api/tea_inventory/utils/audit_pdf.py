# api/tea_inventory/utils/audit_pdf.py
from __future__ import annotations

import io
import json
from datetime import datetime
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas as pdfcanvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

MAX_DIFFS = 50

TEA_GREEN = colors.HexColor("#cfe3c8")
LEAF_TINT = colors.HexColor("#f5f9f3")


class NumberedCanvas(pdfcanvas.Canvas):
    """
    "Page X of Y" footer.

    Page states are buffered in showPage() and only emitted in save(), once
    the total page count is known.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int):
        w, _h = self._pagesize
        self.saveState()
        self.setFont("Helvetica-Oblique", 7.5)
        self.setFillGray(0.45)
        self.drawRightString(w - 10 * mm, 7 * mm, f"Page {self.getPageNumber()} of {total}")
        self.restoreState()


def _try_parse_json(v):
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return None
        try:
            return json.loads(s)
        except ValueError:
            return v
    return v


def _walk(x, y, path: str) -> Iterator[Tuple[str, str, Any, Any]]:
    if x == y:
        return
    label = path or "root"
    if x is None:
        yield label, "add", None, y
    elif y is None:
        yield label, "remove", x, None
    elif isinstance(x, dict) and isinstance(y, dict):
        for k in sorted(set(x) | set(y)):
            p = f"{path}.{k}" if path else str(k)
            if k not in x:
                yield p, "add", None, y[k]
            elif k not in y:
                yield p, "remove", x[k], None
            else:
                yield from _walk(x[k], y[k], p)
    elif isinstance(x, list) and isinstance(y, list):
        for i in range(max(len(x), len(y))):
            p = f"{path}[{i}]"
            if i >= len(x):
                yield p, "add", None, y[i]
            elif i >= len(y):
                yield p, "remove", x[i], None
            else:
                yield from _walk(x[i], y[i], p)
    else:
        yield label, "change", x, y


def _fmt(v) -> str:
    if v is None:
        return "null"
    if isinstance(v, (dict, list)):
        s = json.dumps(v, ensure_ascii=False, separators=(",", ":"), default=str)
    else:
        s = str(v)
    return s if len(s) <= 60 else s[:57] + "..."


def diff_summary(before, after, max_parts: int = 2) -> str:
    """Short human summary of what changed between two snapshots."""
    diffs = []
    for d in _walk(_try_parse_json(before), _try_parse_json(after), ""):
        diffs.append(d)
        if len(diffs) >= MAX_DIFFS:
            break

    if not diffs:
        return "-"

    parts = []
    for path, kind, old, new in diffs[:max_parts]:
        if kind == "add":
            parts.append(f"{path}: +{_fmt(new)}")
        elif kind == "remove":
            parts.append(f"{path}: removed {_fmt(old)}")
        else:
            parts.append(f"{path}: {_fmt(old)} -> {_fmt(new)}")

    if len(diffs) > max_parts:
        parts.append(f"+{len(diffs) - max_parts} more")

    return "; ".join(parts)


def _escape(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _when(dt) -> str:
    if isinstance(dt, datetime):
        return dt.strftime("%d/%m/%Y %H:%M:%S")
    return str(dt) if dt is not None else "-"


def build_audit_pdf(
    *,
    system_name: str,
    exported_by: str,
    exported_by_role: str,
    exported_at_utc: str,
    filters_lines: List[str],
    rows: List[Mapping[str, Any]],
    include_json: bool,
) -> bytes:
    buf = io.BytesIO()

    pagesize = landscape(A4)
    margin = 10 * mm
    doc = SimpleDocTemplate(
        buf,
        pagesize=pagesize,
        leftMargin=margin,
        rightMargin=margin,
        topMargin=margin,
        bottomMargin=12 * mm,
        title="Audit Trail Export",
    )

    styles = getSampleStyleSheet()
    cell = ParagraphStyle(name="Cell", parent=styles["Normal"], fontName="Helvetica", fontSize=7.5, leading=9)
    head = ParagraphStyle(name="HeadCell", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=8, leading=10)
    mono = ParagraphStyle(name="Mono", parent=styles["Normal"], fontName="Courier", fontSize=6.7, leading=8)

    def P(txt: Optional[str], style: ParagraphStyle) -> Paragraph:
        return Paragraph(_escape(txt or "") or "-", style)

    story = [
        Paragraph(f"{_escape(system_name)}: Audit Trail Export", styles["Title"]),
        Spacer(1, 6),
    ]
    for line in [
        f"Exported by: {exported_by} ({exported_by_role})",
        f"Exported at (UTC): {exported_at_utc}",
        *filters_lines,
        f"Rows: {len(rows)}",
    ]:
        story.append(Paragraph(_escape(line), styles["Normal"]))
    story.append(Spacer(1, 10))

    usable_w = pagesize[0] - 2 * margin
    fractions = (0.04, 0.13, 0.08, 0.14, 0.17, 0.16, 0.28)
    columns = ("#", "Date/Time", "Action", "Actor", "Entity", "Reason", "Changes")

    data = [[P(c, head) for c in columns]]
    for i, r in enumerate(rows, start=1):
        actor = r.get("actor_username") or "system"
        role = r.get("actor_role")
        data.append(
            [
                P(str(i), cell),
                P(_when(r.get("created_at")), cell),
                P(r.get("action"), cell),
                P(f"{actor} ({role})" if role else actor, cell),
                P(f"{r.get('entity_type')}#{r.get('entity_id')}", cell),
                P(r.get("reason"), cell),
                P(diff_summary(r.get("before_json"), r.get("after_json")), cell),
            ]
        )

    table = Table(data, colWidths=[usable_w * f for f in fractions], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), TEA_GREEN),
                ("LINEBELOW", (0, 0), (-1, 0), 0.8, colors.black),
                ("INNERGRID", (0, 1), (-1, -1), 0.2, colors.lightgrey),
                ("BOX", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LEFTPADDING", (0, 0), (-1, -1), 2.5),
                ("RIGHTPADDING", (0, 0), (-1, -1), 2.5),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, LEAF_TINT]),
                ("ALIGN", (0, 1), (0, -1), "CENTER"),
            ]
        )
    )
    story.append(table)

    if include_json:
        story.append(Spacer(1, 12))
        story.append(Paragraph("Appendix: Before/After Snapshots", styles["Heading2"]))
        story.append(Spacer(1, 6))

        for i, r in enumerate(rows, start=1):
            heading = (
                f"#{i} | {_when(r.get('created_at'))} | {r.get('action') or ''} | "
                f"{r.get('entity_type')}#{r.get('entity_id')}"
            )
            story.append(Paragraph(_escape(heading), styles["Heading4"]))
            for label, key in (("Before", "before_json"), ("After", "after_json")):
                v = r.get(key)
                text = "" if v is None else json.dumps(v, ensure_ascii=False, indent=2, default=str)
                story.append(Paragraph(f"<b>{label}:</b>", styles["Normal"]))
                story.append(Paragraph(_escape(text) or "-", mono))
                story.append(Spacer(1, 4))
            story.append(Spacer(1, 6))

    doc.build(story, canvasmaker=NumberedCanvas)
    return buf.getvalue()
