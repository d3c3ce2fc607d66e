"""
Request Lifecycle Service

Owns the AnalyticsRequest state machine:

    pending ──assign──▶ assigned ──complete──▶ completed
       └────────────complete──────────────────────▲

Operations:
  create    public; status=pending, no analyst
  assign    sets analyst + assigned_at, status=assigned
  edit      due-date change + EditHistory row, one transaction
  complete  sets completed/completed_at, status=completed
  delete    history rows then the request, one transaction

assign/complete are accepted from any status (REQUEST_TRANSITIONS "from").
With REQUEST_STRICT_TRANSITIONS on, they refuse completed requests
(TransitionError).

Every mutation commits before its notification is handed to
fire_and_forget; a notification failure never reaches the caller.

Usage:
    from app.services.request_lifecycle import assign_request

    result = assign_request(request_id, analyst_id, notes="rush")
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone

from flask import current_app

from app.core.exceptions import NotFoundError, TransitionError, ValidationError
from app.models import db
from app.models.request import (
    REQUEST_STATUSES,
    REQUEST_TRANSITIONS,
    AnalyticsRequest,
    EditHistory,
)
from app.services.admin_service import get_analyst, list_active_admins, validate_email_address
from app.services.notification import fire_and_forget, get_dispatcher

logger = logging.getLogger(__name__)

_CREATE_FIELDS = ("name", "email", "department", "request_type", "description", "due_date")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value, field: str = "dueDate") -> datetime:
    """
    Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Accepts "2025-06-01", "2025-06-01T10:00:00Z", "2025-06-01T10:00:00+02:00",
    and date/datetime objects. Naive values are taken as UTC.

    Raises:
        ValidationError: empty or unparseable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = (value or "").strip() if isinstance(value, str) else ""
        if not text:
            raise ValidationError(f"{field} is required", details={field: "required"})
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"{field} must be a valid ISO-8601 date", details={field: value})
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require_text(data: dict, field: str, label: str) -> str:
    value = data.get(field)
    value = value.strip() if isinstance(value, str) else ""
    if not value:
        raise ValidationError(f"{label} is required", details={field: "required"})
    return value


def _get_request_or_404(request_id: str) -> AnalyticsRequest:
    req = db.session.get(AnalyticsRequest, request_id) if request_id else None
    if not req:
        raise NotFoundError(resource="Request", resource_id=request_id)
    return req


def _check_transition(req: AnalyticsRequest, action: str) -> None:
    rule = REQUEST_TRANSITIONS[action]
    strict = current_app.config.get("REQUEST_STRICT_TRANSITIONS", False)
    allowed = rule["strict_from"] if strict else rule["from"]
    if req.status not in allowed:
        raise TransitionError(req.id, action, req.status)


# ═══════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════
def get_request(request_id: str) -> AnalyticsRequest:
    return _get_request_or_404(request_id)


def requests_query(status: str | None = None):
    """Query for all requests, newest first, optionally filtered by status."""
    q = AnalyticsRequest.query
    if status:
        if status not in REQUEST_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(REQUEST_STATUSES)}", details={"status": status},
            )
        q = q.filter(AnalyticsRequest.status == status)
    return q.order_by(AnalyticsRequest.created_at.desc())


def list_requests(status: str | None = None) -> list[AnalyticsRequest]:
    return requests_query(status).all()


def list_edit_history(request_id: str) -> list[EditHistory]:
    req = _get_request_or_404(request_id)
    return req.edit_history.all()


# ═══════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════
def create_request(data: dict) -> AnalyticsRequest:
    """
    Public submission.

    Args:
        data: {name, email, department, requestType | request_type,
               description, dueDate | due_date}

    The due date is only checked for parseability; "must be in the future"
    is a form-level rule, not enforced here.
    """
    data = dict(data or {})
    data.setdefault("request_type", data.get("requestType"))
    data.setdefault("due_date", data.get("dueDate"))

    name = _require_text(data, "name", "Name")
    email = validate_email_address(data.get("email"))
    department = _require_text(data, "department", "Department")
    request_type = _require_text(data, "request_type", "Request type")
    description = _require_text(data, "description", "Description")
    due_date = parse_datetime(data.get("due_date"))

    req = AnalyticsRequest(
        name=name,
        email=email,
        department=department,
        request_type=request_type,
        description=description,
        due_date=due_date,
        status="pending",
        assigned_to_id=None,
        completed=False,
        created_at=_utcnow(),
    )
    db.session.add(req)
    db.session.commit()
    logger.info("Request created id=%s type=%s", req.id, request_type,
                extra={"event_type": "request_created"})

    snapshot = req.to_dict()
    admins = [a.to_dict() for a in list_active_admins()]
    dispatcher = get_dispatcher()
    fire_and_forget(dispatcher.send_admin_notification, snapshot, admins)
    fire_and_forget(dispatcher.send_confirmation, snapshot)
    return req


def assign_request(request_id: str, analyst_id: str, notes: str | None = None) -> AnalyticsRequest:
    """
    Point a request at an analyst.

    Raises:
        NotFoundError: request or analyst missing.
        TransitionError: strict mode and the request is completed.
    """
    req = _get_request_or_404(request_id)
    analyst = get_analyst(analyst_id)
    _check_transition(req, "assign")

    previous = req.status
    req.assigned_to_id = analyst.id
    req.status = REQUEST_TRANSITIONS["assign"]["to"]
    req.assigned_at = _utcnow()
    db.session.commit()
    logger.info("Request assigned id=%s analyst_id=%s previous_status=%s", req.id, analyst.id, previous,
                extra={"event_type": "request_assigned"})

    if analyst.email:
        fire_and_forget(get_dispatcher().send_assignment, req.to_dict(), analyst.to_dict(), notes)
    return req


def edit_due_date(request_id: str, new_due_date, reason: str | None, editor_email: str) -> AnalyticsRequest:
    """
    Change the due date and append an EditHistory row, atomically.

    Allowed in every status. On any store failure both the update and the
    history row are rolled back.

    Raises:
        NotFoundError: request missing.
        ValidationError: empty reason or unparseable date.
    """
    req = _get_request_or_404(request_id)
    new_date = parse_datetime(new_due_date)
    reason = reason.strip() if isinstance(reason, str) else ""
    if not reason:
        raise ValidationError("Reason for change is required", details={"reason": "required"})

    old_date = req.due_date
    try:
        req.due_date = new_date
        req.edited_at = _utcnow()
        db.session.add(_build_history_entry(req.id, editor_email, old_date, new_date, reason))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Due date edit rolled back id=%s", request_id)
        raise

    logger.info("Request due date edited id=%s editor=%s", req.id, editor_email,
                extra={"event_type": "request_edited", "admin_email": editor_email})

    fire_and_forget(get_dispatcher().send_due_date_change, req.to_dict(), old_date, new_date, reason)
    return req


def _build_history_entry(request_id, editor_email, old_date, new_date, reason) -> EditHistory:
    return EditHistory(
        request_id=request_id,
        edited_by=editor_email,
        old_date=old_date,
        new_date=new_date,
        reason=reason,
        created_at=_utcnow(),
    )


def complete_request(request_id: str) -> AnalyticsRequest:
    """
    Mark a request completed (from any status unless strict mode).

    Raises:
        NotFoundError: request missing.
        TransitionError: strict mode and already completed.
    """
    req = _get_request_or_404(request_id)
    _check_transition(req, "complete")

    previous = req.status
    req.completed = True
    req.status = REQUEST_TRANSITIONS["complete"]["to"]
    req.completed_at = _utcnow()
    db.session.commit()
    logger.info("Request completed id=%s previous_status=%s", req.id, previous,
                extra={"event_type": "request_completed"})

    fire_and_forget(get_dispatcher().send_completion, req.to_dict())
    return req


def delete_request(request_id: str) -> None:
    """
    Delete a request and its edit history in one transaction.

    History rows go first (children before parent); either both deletes
    are committed or neither is.
    """
    req = _get_request_or_404(request_id)
    try:
        removed = EditHistory.query.filter(
            EditHistory.request_id == req.id
        ).delete(synchronize_session=False)
        db.session.delete(req)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Request delete rolled back id=%s", request_id)
        raise
    logger.info("Request deleted id=%s history_rows=%d", request_id, removed,
                extra={"event_type": "request_deleted"})
