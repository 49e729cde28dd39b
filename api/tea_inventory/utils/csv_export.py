# api/tea_inventory/utils/csv_export.py
from __future__ import annotations

import csv
import io
from typing import Iterable, Iterator, Sequence

from fastapi.responses import StreamingResponse

from ..models import utcnow


def dated_filename(prefix: str, ext: str = "csv") -> str:
    return f"{prefix}-{utcnow().date().isoformat()}.{ext}"


def iter_csv(header: Sequence[str], rows: Iterable[Sequence], quote_all: bool = False) -> Iterator[str]:
    buf = io.StringIO()
    w = csv.writer(buf, quoting=csv.QUOTE_ALL if quote_all else csv.QUOTE_MINIMAL)

    w.writerow(header)
    yield buf.getvalue()
    buf.seek(0)
    buf.truncate(0)

    for row in rows:
        w.writerow(row)
        yield buf.getvalue()
        buf.seek(0)
        buf.truncate(0)


def csv_response(
    filename: str,
    header: Sequence[str],
    rows: Iterable[Sequence],
    quote_all: bool = False,
) -> StreamingResponse:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(
        iter_csv(header, rows, quote_all=quote_all),
        media_type="text/csv; charset=utf-8",
        headers=headers,
    )
