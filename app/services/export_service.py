"""
Export Service — flat request rows and their CSV rendering.

Rows are filtered on the creation timestamp, both bounds inclusive, and
ordered newest first. csv.writer quotes any field holding the delimiter,
a quote character or a newline, so free-text descriptions stay
spreadsheet-safe.
"""

import csv
import io
import logging
from datetime import datetime, timezone

from app.core.exceptions import ValidationError
from app.models.request import AnalyticsRequest
from app.models.auth import as_utc
from app.services.request_lifecycle import parse_datetime

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "ID",
    "Name",
    "Email",
    "Department",
    "Request Type",
    "Description",
    "Status",
    "Assigned To",
    "Due Date",
    "Created At",
    "Assigned At",
    "Completed At",
    "Completed",
]

NOT_ASSIGNED = "Not Assigned"


def _iso(value: datetime | None) -> str:
    value = as_utc(value)
    return value.isoformat().replace("+00:00", "Z") if value else ""


def _row(req: AnalyticsRequest) -> list[str]:
    return [
        req.id,
        req.name,
        req.email,
        req.department,
        req.request_type,
        req.description,
        req.status,
        req.assigned_to.name if req.assigned_to else NOT_ASSIGNED,
        _iso(req.due_date),
        _iso(req.created_at),
        _iso(req.assigned_at),
        _iso(req.completed_at),
        "Yes" if req.completed else "No",
    ]


def export_rows(start=None, end=None) -> list[list[str]]:
    """
    Requests created within [start, end], flattened to EXPORT_COLUMNS order.

    Either bound may be omitted.

    Raises:
        ValidationError: unparseable bound, or start after end.
    """
    start_dt = parse_datetime(start, "startDate") if start else None
    end_dt = parse_datetime(end, "endDate") if end else None
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("startDate must not be after endDate",
                              details={"startDate": str(start), "endDate": str(end)})

    q = AnalyticsRequest.query
    if start_dt:
        q = q.filter(AnalyticsRequest.created_at >= start_dt)
    if end_dt:
        q = q.filter(AnalyticsRequest.created_at <= end_dt)
    requests = q.order_by(AnalyticsRequest.created_at.desc()).all()

    logger.info("Export built rows=%d start=%s end=%s", len(requests), start_dt, end_dt)
    return [_row(r) for r in requests]


def rows_to_csv(rows: list[list[str]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    writer.writerows(rows)
    return output.getvalue()


def export_requests_csv(start=None, end=None) -> str:
    return rows_to_csv(export_rows(start, end))


def export_filename(today: datetime | None = None) -> str:
    today = today or datetime.now(timezone.utc)
    return f"requests-export-{today.strftime('%Y-%m-%d')}.csv"
