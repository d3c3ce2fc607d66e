"""
Credential store tests — lookups, provisioning and the CLI commands.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.auth import Admin
from app.models.request import Analyst
from app.services import admin_service


class TestLookups:
    def test_find_active_admin_normalizes(self, admin):
        assert admin_service.find_active_admin_by_email("  ADMIN@example.com ").id == admin.id

    def test_inactive_admin_not_found(self, admin):
        admin_service.deactivate_admin(admin.email)
        assert admin_service.find_active_admin_by_email(admin.email) is None

    def test_empty_email(self):
        assert admin_service.find_active_admin_by_email(None) is None

    def test_get_analyst(self, analyst):
        assert admin_service.get_analyst(analyst.id).name == "Alan Analyst"
        with pytest.raises(NotFoundError):
            admin_service.get_analyst("missing")


class TestProvisioning:
    def test_email_unique_regardless_of_case(self, admin):
        db.session.add(Admin(email="ADMIN@EXAMPLE.COM", name="Dup"))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_provision_reactivates(self, admin):
        admin_service.deactivate_admin(admin.email)
        again = admin_service.provision_admin("admin@example.com", "Ada Renamed")
        assert again.id == admin.id
        assert again.active is True
        assert again.name == "Ada Renamed"

    def test_provision_requires_name(self):
        with pytest.raises(ValidationError):
            admin_service.provision_admin("x@example.com", " ")

    def test_deactivate_unknown(self):
        with pytest.raises(NotFoundError):
            admin_service.deactivate_admin("ghost@example.com")

    def test_provision_analyst_upsert(self):
        a = admin_service.provision_analyst("First", analyst_id="A123")
        b = admin_service.provision_analyst("Second", email="second@example.com", analyst_id="A123")
        assert a.id == b.id == "A123"
        assert Analyst.query.count() == 1
        assert b.email == "second@example.com"


class TestCli:
    def test_seed_admin(self, app):
        result = app.test_cli_runner().invoke(args=["seed-admin", "--email", "ops@example.com", "--name", "Ops"])
        assert result.exit_code == 0, result.output
        assert "ops@example.com" in result.output
        assert admin_service.find_active_admin_by_email("ops@example.com") is not None

    def test_seed_admin_invalid_email(self, app):
        result = app.test_cli_runner().invoke(args=["seed-admin", "--email", "bad", "--name", "Ops"])
        assert result.exit_code != 0

    def test_deactivate_admin(self, app, admin):
        result = app.test_cli_runner().invoke(args=["deactivate-admin", "--email", admin.email])
        assert result.exit_code == 0, result.output
        assert admin_service.find_active_admin_by_email(admin.email) is None

    def test_seed_analyst(self, app):
        result = app.test_cli_runner().invoke(args=["seed-analyst", "--name", "Nia", "--id", "N1"])
        assert result.exit_code == 0, result.output
        assert db.session.get(Analyst, "N1").name == "Nia"
