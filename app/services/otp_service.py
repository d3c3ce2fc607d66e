"""
OTP Service — passwordless admin login.

Issuance (request_otp):
  1. validate + lowercase the email
  2. the email must belong to an active admin       → NotAuthorizedError
  3. delete every challenge for the email, insert a new one (one commit)
  4. email the code                                 → NotificationDeliveryError

Verification (verify_otp):
  1. exact (email, code) match                      → InvalidCredentialsError
  2. expired: delete the challenge                  → ExpiredError
  3. consume the challenge with a conditional DELETE; losing a concurrent
     race to the same challenge                     → InvalidCredentialsError
  4. the admin must still be active (challenge already consumed)
                                                    → NotAuthorizedError
  5. sign a session token

Rules:
  - db.session.commit() for challenges happens only in this file.
  - codes and tokens never appear in log output.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ExpiredError,
    InvalidCredentialsError,
    NotAuthorizedError,
    ValidationError,
)
from app.models import db
from app.models.auth import Admin, OTPChallenge
from app.services.admin_service import (
    find_active_admin_by_email,
    normalize_email,
    validate_email_address,
)
from app.services.jwt_service import generate_session_token, get_session_expires
from app.services.notification import get_dispatcher

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_SPAN = 900000          # codes 100000..999999
OTP_WIDTH = 6
DEFAULT_OTP_TTL = 300      # 5 minutes
_ISSUE_ATTEMPTS = 3


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_in: int
    admin: Admin

    def to_dict(self) -> dict:
        return {
            "access_token": self.token,
            "token_type": "Bearer",
            "expires_in": self.expires_in,
            "admin": self.admin.to_dict(),
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp() -> str:
    """6-digit code from the OS CSPRNG, zero-padded to keep the width."""
    return f"{OTP_MIN + secrets.randbelow(OTP_SPAN):0{OTP_WIDTH}d}"


def _otp_ttl() -> int:
    return current_app.config.get("OTP_TTL_SECONDS", DEFAULT_OTP_TTL)


# ═══════════════════════════════════════════════════════════════
# Issuance
# ═══════════════════════════════════════════════════════════════
def _replace_challenge(email: str) -> tuple[str, datetime]:
    """
    Delete-then-insert the challenge for ``email`` in one transaction.

    The UNIQUE(email) constraint rejects the insert of a concurrent loser;
    it retries, deleting the winner's row, so the last writer wins and
    two live challenges never coexist.

    Returns the (code, expires_at) pair that was stored.
    """
    for attempt in range(1, _ISSUE_ATTEMPTS + 1):
        now = _utcnow()
        code = generate_otp()
        expires_at = now + timedelta(seconds=_otp_ttl())
        challenge = OTPChallenge(email=email, code=code, created_at=now, expires_at=expires_at)
        try:
            db.session.execute(delete(OTPChallenge).where(OTPChallenge.email == email))
            db.session.add(challenge)
            db.session.commit()
            return code, expires_at
        except IntegrityError:
            db.session.rollback()
            logger.warning("OTP issuance raced for email=%s (attempt %d)", email, attempt)
    raise RuntimeError(f"Could not store OTP challenge for {email}")


def request_otp(email: str | None) -> None:
    """
    Issue a fresh challenge for an active admin and email the code.

    Raises:
        ValidationError: malformed email.
        NotAuthorizedError: not an active admin; no challenge is created.
        NotificationDeliveryError: the code email could not be sent.
    """
    email = validate_email_address(email)

    admin = find_active_admin_by_email(email)
    if not admin:
        logger.info("OTP refused email=%s", email, extra={"event_type": "otp_refused"})
        raise NotAuthorizedError(detail="not_active_admin")

    code, expires_at = _replace_challenge(email)
    logger.info("OTP issued email=%s expires_at=%s", email, expires_at.isoformat(),
                extra={"event_type": "otp_issued"})

    get_dispatcher().send_otp(email, code)


# ═══════════════════════════════════════════════════════════════
# Verification
# ═══════════════════════════════════════════════════════════════
def _consume_challenge(challenge_id: str) -> bool:
    """
    Conditional delete: True only for the caller whose DELETE removed the row.

    Two verifiers holding the same challenge can both reach this point;
    the store serialises the deletes and only one sees rowcount == 1.
    """
    result = db.session.execute(
        delete(OTPChallenge)
        .where(OTPChallenge.id == challenge_id)
        .execution_options(synchronize_session=False)
    )
    consumed = result.rowcount == 1
    db.session.commit()
    return consumed


def verify_otp(email: str | None, code: str | None) -> IssuedSession:
    """
    Redeem a challenge and open a session.

    Raises:
        ValidationError: email or code missing.
        InvalidCredentialsError: no matching challenge (wrong code, none
            outstanding, or consumed by a concurrent verify).
        ExpiredError: matching challenge past its expiry; it is deleted.
        NotAuthorizedError: admin deactivated since issuance; challenge
            is consumed anyway.
    """
    email = normalize_email(email)
    code = str(code).strip() if code is not None else ""
    if not email or not code:
        raise ValidationError("Email and OTP are required")

    challenge = OTPChallenge.query.filter(
        OTPChallenge.email == email,
        OTPChallenge.code == code,
    ).first()
    if challenge is None:
        logger.info("OTP rejected email=%s reason=no_match", email, extra={"event_type": "otp_rejected"})
        raise InvalidCredentialsError(detail="no_challenge")

    if challenge.is_expired(_utcnow()):
        _consume_challenge(challenge.id)
        logger.info("OTP rejected email=%s reason=expired", email, extra={"event_type": "otp_rejected"})
        raise ExpiredError(detail="expired")

    if not _consume_challenge(challenge.id):
        logger.warning("OTP rejected email=%s reason=already_consumed", email,
                       extra={"event_type": "otp_rejected"})
        raise InvalidCredentialsError(detail="already_consumed")

    admin = find_active_admin_by_email(email)
    if not admin:
        logger.warning("OTP rejected email=%s reason=admin_inactive", email,
                       extra={"event_type": "otp_rejected"})
        raise NotAuthorizedError(detail="inactive_at_verify")

    token = generate_session_token(admin.id, admin.email, admin.name)
    logger.info("Session issued admin_id=%s", admin.id,
                extra={"event_type": "session_issued", "admin_email": admin.email})
    return IssuedSession(token=token, expires_in=get_session_expires(), admin=admin)
