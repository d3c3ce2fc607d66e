"""
Admin Service — credential store lookups and out-of-band provisioning.

Every lookup normalises the email (strip + lowercase) before comparing;
the models lowercase on assignment, so stored values are already normal.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.auth import Admin
from app.models.request import Analyst

logger = logging.getLogger(__name__)


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_email_address(email: str | None, field: str = "email") -> str:
    """Check syntax and return the normalised (lowercase) address.

    Raises:
        ValidationError: empty or syntactically invalid email.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError(f"{field} is required", details={field: "required"})
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError("Invalid email address", details={field: str(e)})
    return email


# ═══════════════════════════════════════════════════════════════
# Lookups
# ═══════════════════════════════════════════════════════════════
def find_active_admin_by_email(email: str | None) -> Admin | None:
    email = normalize_email(email)
    if not email:
        return None
    return Admin.query.filter(Admin.email == email, Admin.active.is_(True)).first()


def list_active_admins() -> list[Admin]:
    return Admin.query.filter(Admin.active.is_(True)).order_by(Admin.name.asc()).all()


def list_active_analysts() -> list[Analyst]:
    return Analyst.query.filter(Analyst.active.is_(True)).order_by(Analyst.name.asc()).all()


def get_analyst(analyst_id: str) -> Analyst:
    analyst = db.session.get(Analyst, analyst_id) if analyst_id else None
    if not analyst:
        raise NotFoundError(resource="Analyst", resource_id=analyst_id)
    return analyst


# ═══════════════════════════════════════════════════════════════
# Provisioning (CLI / seed only)
# ═══════════════════════════════════════════════════════════════
def provision_admin(email: str, name: str) -> Admin:
    """Create an admin, or reactivate and rename an existing one."""
    email = validate_email_address(email)
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})

    admin = Admin.query.filter_by(email=email).first()
    if admin is None:
        admin = Admin(email=email, name=name, active=True)
        db.session.add(admin)
        logger.info("Admin provisioned email=%s", email)
    else:
        admin.name = name
        admin.active = True
        logger.info("Admin reactivated email=%s", email)
    db.session.commit()
    return admin


def deactivate_admin(email: str) -> Admin:
    """Clear the active flag. Outstanding sessions stay valid until expiry."""
    email = normalize_email(email)
    admin = Admin.query.filter_by(email=email).first()
    if not admin:
        raise NotFoundError(resource="Admin", resource_id=email)
    admin.active = False
    db.session.commit()
    logger.info("Admin deactivated email=%s", email)
    return admin


def provision_analyst(name: str, email: str | None = None, analyst_id: str | None = None) -> Analyst:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if email:
        email = validate_email_address(email)

    analyst = db.session.get(Analyst, analyst_id) if analyst_id else None
    if analyst is None:
        analyst = Analyst(name=name, email=email or None, active=True)
        if analyst_id:
            analyst.id = analyst_id
        db.session.add(analyst)
    else:
        analyst.name = name
        analyst.email = email or None
        analyst.active = True
    db.session.commit()
    logger.info("Analyst provisioned id=%s", analyst.id)
    return analyst
