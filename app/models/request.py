"""
Request domain models.

Models:
    - Analyst:           assignable worker (read-only to the lifecycle).
    - AnalyticsRequest:  the ticket; status pending → assigned → completed.
    - EditHistory:       immutable due-date change record owned by a request.

Status invariants kept by app.services.request_lifecycle:
    pending   ⇔ assigned_to_id is NULL
    assigned  ⇒ assigned_to_id and assigned_at set
    completed ⇒ completed is True and completed_at set
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import validates

from app.models import db
from app.models.auth import as_utc

REQUEST_STATUSES = ("pending", "assigned", "completed")

# action → {"from": permissive source states, "strict_from": strict source states, "to": target}
REQUEST_TRANSITIONS = {
    "assign": {
        "from": {"pending", "assigned", "completed"},
        "strict_from": {"pending", "assigned"},
        "to": "assigned",
    },
    "complete": {
        "from": {"pending", "assigned", "completed"},
        "strict_from": {"pending", "assigned"},
        "to": "completed",
    },
}


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat().replace("+00:00", "Z") if value else None


class Analyst(db.Model):
    __tablename__ = "analysts"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200))
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=_utcnow)

    requests = db.relationship("AnalyticsRequest", back_populates="assigned_to", lazy="dynamic")

    @validates("email")
    def _lowercase_email(self, key, value):
        return value.strip().lower() if value else value

    def to_dict(self):
        return {"id": self.id, "name": self.name, "email": self.email}


class AnalyticsRequest(db.Model):
    __tablename__ = "requests"
    __table_args__ = (
        db.Index("ix_requests_status", "status"),
        db.Index("ix_requests_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False)
    department = db.Column(db.String(200), nullable=False)
    request_type = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")

    assigned_to_id = db.Column(
        db.String(36), db.ForeignKey("analysts.id", ondelete="SET NULL"), nullable=True,
    )
    assigned_at = db.Column(db.DateTime)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime)
    edited_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    assigned_to = db.relationship("Analyst", back_populates="requests")
    # History rows are removed explicitly before the request (same transaction)
    edit_history = db.relationship(
        "EditHistory", back_populates="request", lazy="dynamic",
        passive_deletes=True, order_by="EditHistory.created_at",
    )

    @validates("email")
    def _lowercase_email(self, key, value):
        return value.strip().lower() if value else value

    def to_dict(self, include_history=False):
        d = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "department": self.department,
            "requestType": self.request_type,
            "description": self.description,
            "dueDate": _iso(self.due_date),
            "status": self.status,
            "assignedToId": self.assigned_to_id,
            "assignedTo": self.assigned_to.to_dict() if self.assigned_to else None,
            "assignedAt": _iso(self.assigned_at),
            "completed": bool(self.completed),
            "completedAt": _iso(self.completed_at),
            "editedAt": _iso(self.edited_at),
            "createdAt": _iso(self.created_at),
        }
        if include_history:
            d["editHistory"] = [h.to_dict() for h in self.edit_history.all()]
        return d

    def __repr__(self):
        return f"<AnalyticsRequest {self.id} status={self.status}>"


class EditHistory(db.Model):
    """Append-only; deleted only together with its request."""

    __tablename__ = "edit_history"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    request_id = db.Column(
        db.String(36), db.ForeignKey("requests.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    edited_by = db.Column(db.String(200), nullable=False)
    old_date = db.Column(db.DateTime, nullable=False)
    new_date = db.Column(db.DateTime, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    request = db.relationship("AnalyticsRequest", back_populates="edit_history")

    def to_dict(self):
        return {
            "id": self.id,
            "requestId": self.request_id,
            "editedBy": self.edited_by,
            "oldDate": _iso(self.old_date),
            "newDate": _iso(self.new_date),
            "reason": self.reason,
            "createdAt": _iso(self.created_at),
        }
