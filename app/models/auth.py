"""
Auth Models — admins and one-time-password challenges.

Admins are provisioned out-of-band (CLI / seed) and deactivated by
clearing ``active``; they are never hard-deleted.

OTP challenges are never updated in place: they are created by issuance
and destroyed by verification (success, expiry, or deactivated admin).
The UNIQUE constraint on ``email`` makes the store itself refuse a second
live challenge for the same address.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import validates

from app.models import db


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# ═══════════════════════════════════════════════════════════════
# 1. ADMINS
# ═══════════════════════════════════════════════════════════════
class Admin(db.Model):
    __tablename__ = "admins"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    @validates("email")
    def _lowercase_email(self, key, value):
        return value.strip().lower() if value else value

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
        }

    def __repr__(self):
        return f"<Admin {self.email} active={self.active}>"


# ═══════════════════════════════════════════════════════════════
# 2. OTP CHALLENGES
# ═══════════════════════════════════════════════════════════════
class OTPChallenge(db.Model):
    __tablename__ = "otp_challenges"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(200), nullable=False)
    # String-typed so the fixed width survives storage
    code = db.Column(db.String(6), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("email", name="uq_otp_challenge_email"),
        db.Index("ix_otp_challenges_email_code", "email", "code"),
    )

    @validates("email")
    def _lowercase_email(self, key, value):
        return value.strip().lower() if value else value

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or _utcnow()
        return now > as_utc(self.expires_at)

    def __repr__(self):
        return f"<OTPChallenge {self.email} expires_at={self.expires_at}>"
