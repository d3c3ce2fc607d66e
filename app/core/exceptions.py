"""
Portal-wide exception hierarchy.

Services raise these; blueprints register one handler per type and map
them to a stable machine-readable ``code`` (see ``app.utils.errors.E``)
so clients branch on the code, never on message text.

Auth errors deliberately collapse several causes into one public shape.
The cause is kept in ``detail`` for logs and MUST NOT be put in an HTTP
response: "unknown email" and "inactive admin" both surface as
NotAuthorizedError, "wrong code" and "no outstanding challenge" both
surface as InvalidCredentialsError.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Request", resource_id=request_id)
    raise ValidationError("Reason for change is required", details={"reason": "empty"})
    raise NotAuthorizedError(detail="inactive")
"""

from app.utils.errors import E


class NotFoundError(Exception):
    """Raised when a requested Request / Analyst / Admin does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Request", "Analyst").
        resource_id: The key that was looked up. Included in logs.
    """

    code = E.NOT_FOUND

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input is malformed (bad email syntax, empty reason, unparseable date).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    code = E.VALIDATION_INVALID

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return str(self)


class TransitionError(Exception):
    """Raised when a lifecycle action is not allowed from the current status.

    Only reachable when REQUEST_STRICT_TRANSITIONS is enabled.
    """

    code = E.CONFLICT_STATE

    def __init__(self, request_id: str, action: str, current: str) -> None:
        self.request_id = request_id
        self.action = action
        self.current_status = current
        super().__init__(f"Cannot '{action}' request {request_id} (status={current})")

    @property
    def public_message(self) -> str:
        return f"Cannot {self.action} a request with status '{self.current_status}'"


# ── Authentication / authorization ───────────────────────────────────────────


class AuthError(Exception):
    """Base for auth failures: fixed public message + internal-only detail."""

    code = E.UNAUTHENTICATED
    public_message = "Unauthorized"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(f"{self.public_message} ({detail})" if detail else self.public_message)


class NotAuthorizedError(AuthError):
    """Email is not an active admin (at OTP request or at verification)."""

    code = E.NOT_AUTHORIZED
    public_message = "Email not authorized"


class InvalidCredentialsError(AuthError):
    """Wrong code, no outstanding challenge, or challenge already consumed."""

    code = E.INVALID_CREDENTIALS
    public_message = "Invalid OTP"


class ExpiredError(AuthError):
    """Code matched a challenge whose validity window has passed."""

    code = E.OTP_EXPIRED
    public_message = "OTP has expired. Please request a new code"


class SessionInvalidError(AuthError):
    """Session token missing, forged, expired, or lacking identity claims."""

    code = E.UNAUTHENTICATED
    public_message = "Unauthorized"


# ── Side channels ────────────────────────────────────────────────────────────


class NotificationDeliveryError(Exception):
    """An email could not be delivered.

    Caught and logged at the call site for every lifecycle notification;
    only OTP delivery reports it to the caller.
    """

    code = E.NOTIFICATION_DELIVERY
    public_message = "Failed to send email"

    def __init__(self, template_name: str, recipient: str, reason: str | None = None) -> None:
        self.template_name = template_name
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Delivery of '{template_name}' to {recipient} failed: {reason}")
