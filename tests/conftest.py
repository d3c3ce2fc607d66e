"""
Shared pytest fixtures for the Analytics Request Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - notifications: RecordingDispatcher swapped into app.extensions
    - admin / analyst: Pre-created directory entities
    - auth_headers: Bearer header for ``admin``
"""

import pytest

from app import create_app
from app.models import db as _db
from app.services.admin_service import provision_admin, provision_analyst
from app.services.jwt_service import generate_session_token
from app.services.notification import EXTENSION_KEY, NotificationDispatcher


class RecordingDispatcher(NotificationDispatcher):
    """Records every send instead of emailing.

    ``fail`` maps a method name to the exception it should raise after
    recording the call.
    """

    def __init__(self):
        self.calls = []
        self.fail = {}

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail[name]

    def send_otp(self, email, code):
        self._record("send_otp", email, code)

    def send_admin_notification(self, request, admins):
        self._record("send_admin_notification", request, admins)

    def send_confirmation(self, request):
        self._record("send_confirmation", request)

    def send_assignment(self, request, analyst, notes=None):
        self._record("send_assignment", request, analyst, notes)

    def send_completion(self, request):
        self._record("send_completion", request)

    def send_due_date_change(self, request, old_date, new_date, reason):
        self._record("send_due_date_change", request, old_date, new_date, reason)

    def names(self):
        return [name for name, _ in self.calls]

    def last(self, name):
        for call_name, args in reversed(self.calls):
            if call_name == name:
                return args
        return None

    def last_code(self, email=None):
        for call_name, args in reversed(self.calls):
            if call_name == "send_otp" and (email is None or args[0] == email):
                return args[1]
        return None


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def notifications(app, monkeypatch):
    """Swap the process dispatcher for a recorder for one test."""
    recorder = RecordingDispatcher()
    monkeypatch.setitem(app.extensions, EXTENSION_KEY, recorder)
    return recorder


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def admin():
    return provision_admin("admin@example.com", "Ada Admin")


@pytest.fixture()
def analyst():
    return provision_analyst("Alan Analyst", email="alan@example.com")


@pytest.fixture()
def silent_analyst():
    """Analyst without an email address."""
    return provision_analyst("Quiet Analyst")


@pytest.fixture()
def auth_headers(admin):
    token = generate_session_token(admin.id, admin.email, admin.name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def request_payload():
    return {
        "name": "Rita Requester",
        "email": "Rita@Example.com",
        "department": "Finance",
        "requestType": "Dashboard",
        "description": "Quarterly revenue by region",
        "dueDate": "2030-06-01",
    }
