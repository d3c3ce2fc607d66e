"""
Analytics Request Portal
Notification Dispatcher.

Email side effects of the OTP flow and the request lifecycle. Every send
takes plain dict snapshots (``AnalyticsRequest.to_dict()``), never ORM
instances, so it can run after the request's session is gone.

Lifecycle notifications go through ``fire_and_forget``: the primary state
change is already committed, the send runs in a detached daemon thread,
and any exception is caught and logged at that thread boundary. Only
``send_otp`` is called synchronously, by the OTP issuance service.

Usage:
    from app.services.notification import fire_and_forget, get_dispatcher

    fire_and_forget(get_dispatcher().send_confirmation, request.to_dict())
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable

from flask import current_app

from app.core.exceptions import NotificationDeliveryError
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)

EXTENSION_KEY = "notifications"


def _fmt_date(value: str | datetime | None) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    return value[:10]


def _request_context(request: dict) -> dict[str, Any]:
    return {
        "id": request.get("id"),
        "name": request.get("name"),
        "email": request.get("email"),
        "department": request.get("department"),
        "request_type": request.get("requestType"),
        "description": request.get("description"),
        "due_date": _fmt_date(request.get("dueDate")),
    }


class NotificationDispatcher:
    """Sends the portal's emails through EmailService."""

    def send_otp(self, email: str, code: str) -> None:
        ttl = current_app.config.get("OTP_TTL_SECONDS", 300)
        EmailService.send_from_template(
            to_email=email,
            template_name="otp_code",
            context={"code": code, "ttl_minutes": ttl // 60},
        )

    def send_admin_notification(self, request: dict, admins: list[dict]) -> None:
        """One email per admin; a failed recipient doesn't stop the rest."""
        context = _request_context(request)
        context["app_url"] = current_app.config.get("APP_URL", "")
        failed = []
        for admin in admins:
            try:
                EmailService.send_from_template(
                    to_email=admin["email"],
                    to_name=admin.get("name"),
                    template_name="new_request",
                    context=context,
                )
            except NotificationDeliveryError as exc:
                failed.append(exc.recipient)
        if failed:
            raise NotificationDeliveryError("new_request", ", ".join(failed), "partial delivery")

    def send_confirmation(self, request: dict) -> None:
        EmailService.send_from_template(
            to_email=request["email"],
            to_name=request.get("name"),
            template_name="request_confirmation",
            context=_request_context(request),
        )

    def send_assignment(self, request: dict, analyst: dict, notes: str | None = None) -> None:
        context = _request_context(request)
        context.update({"analyst_name": analyst.get("name"), "notes": notes or "None"})
        EmailService.send_from_template(
            to_email=analyst["email"],
            to_name=analyst.get("name"),
            template_name="request_assigned",
            context=context,
        )

    def send_completion(self, request: dict) -> None:
        EmailService.send_from_template(
            to_email=request["email"],
            to_name=request.get("name"),
            template_name="request_completed",
            context=_request_context(request),
        )

    def send_due_date_change(self, request: dict, old_date, new_date, reason: str) -> None:
        context = _request_context(request)
        context.update({
            "old_date": _fmt_date(old_date),
            "new_date": _fmt_date(new_date),
            "reason": reason,
        })
        EmailService.send_from_template(
            to_email=request["email"],
            to_name=request.get("name"),
            template_name="due_date_changed",
            context=context,
        )


def init_notifications(app, dispatcher: NotificationDispatcher | None = None) -> None:
    """Install the process-lifetime dispatcher on the app."""
    app.extensions[EXTENSION_KEY] = dispatcher or NotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    return current_app.extensions[EXTENSION_KEY]


# ═══════════════════════════════════════════════════════════════════════════
#  Detached execution
# ═══════════════════════════════════════════════════════════════════════════


def _run_isolated(label: str, fn: Callable, args: tuple, kwargs: dict) -> None:
    try:
        fn(*args, **kwargs)
    except NotificationDeliveryError as exc:
        logger.warning("Notification '%s' not delivered: %s", label, exc,
                       extra={"event_type": "notification_failed"})
    except Exception:
        logger.exception("Notification '%s' crashed", label,
                         extra={"event_type": "notification_failed"})


def fire_and_forget(fn: Callable, *args, **kwargs) -> threading.Thread | None:
    """
    Run a notification without letting it affect the caller.

    Spawns a daemon thread inside an app context when NOTIFICATIONS_ASYNC
    is on (returns the thread), otherwise runs inline (returns None).
    Exceptions never propagate in either mode.
    """
    label = getattr(fn, "__name__", repr(fn))
    app = current_app._get_current_object()

    if not app.config.get("NOTIFICATIONS_ASYNC", True):
        _run_isolated(label, fn, args, kwargs)
        return None

    def _target():
        with app.app_context():
            _run_isolated(label, fn, args, kwargs)

    t = threading.Thread(target=_target, name=f"notify-{label}", daemon=True)
    t.start()
    return t
