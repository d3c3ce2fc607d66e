"""
JWT Service — admin session token issuance and verification.

Session token: 24 hours absolute (configurable via SESSION_TTL_SECONDS)
Algorithm:     HS256

Token payload:
{
    "sub": <admin_id>,
    "email": <admin email>,
    "name": <admin display name>,
    "type": "session",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

There is no server-side session table and no revocation list: a token is
valid while its signature checks out, it has not expired, and it carries
a non-empty identity. A leaked token stays usable until ``exp``.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from app.core.exceptions import SessionInvalidError


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_SESSION_EXPIRES = 86400    # 24 hours
ALGORITHM = "HS256"
TOKEN_TYPE = "session"


@dataclass(frozen=True)
class SessionClaims:
    admin_id: str
    email: str
    name: str
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.admin_id,
            "email": self.email,
            "name": self.name,
            "expires_at": self.expires_at.isoformat(),
        }


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def get_session_expires() -> int:
    return current_app.config.get("SESSION_TTL_SECONDS", DEFAULT_SESSION_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_session_token(admin_id: str, email: str, name: str, now: datetime | None = None) -> str:
    """Sign a session token bound to the admin identity."""
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(admin_id),
        "email": email,
        "name": name,
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(seconds=get_session_expires()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_session_token(token: str | None) -> SessionClaims:
    """
    Verify a session token and return its identity claims.

    Raises SessionInvalidError (detail: missing_token, expired,
    bad_signature, wrong_type, missing_claims).
    """
    if not token:
        raise SessionInvalidError(detail="missing_token")

    try:
        payload = jwt.decode(
            token,
            _get_secret(),
            algorithms=[ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise SessionInvalidError(detail="expired")
    except jwt.InvalidTokenError:
        raise SessionInvalidError(detail="bad_signature")

    if payload.get("type") != TOKEN_TYPE:
        raise SessionInvalidError(detail="wrong_type")

    admin_id = (payload.get("sub") or "").strip()
    email = (payload.get("email") or "").strip()
    if not admin_id or not email:
        raise SessionInvalidError(detail="missing_claims")

    return SessionClaims(
        admin_id=admin_id,
        email=email,
        name=payload.get("name") or "",
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )
