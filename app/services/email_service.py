"""
Analytics Request Portal
Email Service.

Provides email sending with template support.
When SMTP is not configured, emails are logged but not sent (dev/test mode).

Uses:
    - Flask-Mail compatible config (MAIL_SERVER, MAIL_PORT, etc.)
    - Falls back to logging-only mode when SMTP is not configured
    - Raises NotificationDeliveryError when SMTP delivery fails

Configuration (env vars):
    MAIL_SERVER     SMTP host (default: None → log-only mode)
    MAIL_PORT       SMTP port (default: 587)
    MAIL_USE_TLS    Use TLS (default: true)
    MAIL_USERNAME   SMTP username
    MAIL_PASSWORD   SMTP password
    MAIL_DEFAULT_SENDER  Default from address
"""

from __future__ import annotations

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from flask import current_app

from app.core.exceptions import NotificationDeliveryError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_LAYOUT = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <div style="background: #014d6d; color: white; padding: 24px; text-align: center; border-radius: 8px 8px 0 0;">
        <h2 style="margin: 0;">{heading}</h2>
    </div>
    <div style="background: #f5f7fa; padding: 24px; border-radius: 0 0 8px 8px;">
        {body}
        <p style="color: #666; font-size: 12px; text-align: center; margin-top: 24px;">
            Analytics Request Portal — Automated notification
        </p>
    </div>
</div>
"""

_REQUEST_SUMMARY = """
<div style="background: white; border-left: 4px solid #014d6d; padding: 12px 16px; margin: 16px 0;">
    <div><strong>Requester:</strong> {name} ({email})</div>
    <div><strong>Department:</strong> {department}</div>
    <div><strong>Request Type:</strong> {request_type}</div>
    <div><strong>Due Date:</strong> {due_date}</div>
    <div><strong>Description:</strong><br>{description}</div>
</div>
"""

_TEMPLATES: dict[str, dict[str, str]] = {
    "otp_code": {
        "subject": "Your OTP Code - Analytics Request Portal",
        "heading": "Admin Login Verification",
        "body": """
            <p>Use the following one-time password to complete your login:</p>
            <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px; text-align: center;">{code}</p>
            <p>This code expires in {ttl_minutes} minutes. Do not share it with anyone.
            If you didn't request this code, ignore this email.</p>
        """,
    },
    "new_request": {
        "subject": "New Analytics Request - {request_type}",
        "heading": "New Analytics Request",
        "body": """
            <p>A new analytics request has been submitted and requires assignment.</p>
            """ + _REQUEST_SUMMARY + """
            <p><a href="{app_url}/admin/dashboard">View in Dashboard</a></p>
        """,
    },
    "request_confirmation": {
        "subject": "Request Received - {request_type}",
        "heading": "We received your request",
        "body": """
            <p>Dear {name},</p>
            <p>Your analytics request has been received and will be assigned to an analyst shortly.</p>
            """ + _REQUEST_SUMMARY + """
            <p>Reference: {id}</p>
        """,
    },
    "request_assigned": {
        "subject": "New Assignment - {request_type}",
        "heading": "You have a new assignment",
        "body": """
            <p>Dear {analyst_name},</p>
            <p>The following analytics request has been assigned to you.</p>
            """ + _REQUEST_SUMMARY + """
            <p><strong>Notes:</strong> {notes}</p>
        """,
    },
    "request_completed": {
        "subject": "Request Completed - {request_type}",
        "heading": "Your request is complete",
        "body": """
            <p>Dear {name},</p>
            <p>Your analytics request has been marked as completed.</p>
            """ + _REQUEST_SUMMARY + """
        """,
    },
    "due_date_changed": {
        "subject": "Due Date Updated - {request_type}",
        "heading": "Your request's due date changed",
        "body": """
            <p>Dear {name},</p>
            <p>The due date of your analytics request changed from
            <strong>{old_date}</strong> to <strong>{new_date}</strong>.</p>
            <p><strong>Reason:</strong> {reason}</p>
            """ + _REQUEST_SUMMARY + """
        """,
    },
}


class EmailService:
    """
    Email sending service with template support.

    In development/test mode (no MAIL_SERVER configured), emails are
    logged but not actually sent via SMTP.
    """

    @staticmethod
    def is_configured() -> bool:
        """Check if SMTP is configured."""
        return bool(current_app.config.get("MAIL_SERVER"))

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        """Get an email template by name."""
        return _TEMPLATES.get(template_name)

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        template_name: str | None = None,
    ) -> None:
        """
        Send an email.

        Raises:
            NotificationDeliveryError: SMTP delivery failed.
        """
        if not cls.is_configured():
            # Dev/test mode: log only
            logger.info(
                "Email (dev mode): to=%s subject='%s' template=%s",
                to_email, subject, template_name,
            )
            return

        try:
            cls._send_smtp(to_email=to_email, to_name=to_name,
                           subject=subject, html_body=html_body)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email failed: to=%s template=%s error=%s", to_email, template_name, exc)
            raise NotificationDeliveryError(template_name or subject, to_email, str(exc)[:500]) from exc
        logger.info("Email sent: to=%s subject='%s'", to_email, subject)

    @classmethod
    def send_from_template(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        template_name: str,
        context: dict[str, Any],
    ) -> None:
        """
        Send an email using a named template.

        Template variables are HTML-escaped and interpolated from the context dict.
        """
        template = cls.get_template(template_name)
        if not template:
            raise NotificationDeliveryError(template_name, to_email, "unknown template")

        safe = _SafeDict({k: html.escape(str(v)) if v is not None else "" for k, v in context.items()})
        subject = template["subject"].format_map(_SafeDict({k: str(v) for k, v in context.items()}))
        body = template["body"].format_map(safe)
        html_body = _LAYOUT.format(heading=template["heading"], body=body)

        cls.send(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            html_body=html_body,
            template_name=template_name,
        )

    @staticmethod
    def _send_smtp(*, to_email: str, to_name: str | None,
                   subject: str, html_body: str) -> None:
        """Actually send via SMTP."""
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER", f"noreply@{server}")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"
