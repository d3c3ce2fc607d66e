"""
Request API tests.

Test blocks:
  1. Public submission
  2. Admin list / detail / history
  3. Assign / edit / complete / delete
  4. CSV export
  5. Directory (analysts, admins)
"""

import csv
import io

import pytest

from app.models import db
from app.models.request import AnalyticsRequest, EditHistory


@pytest.fixture()
def created(client, request_payload, notifications):
    res = client.post("/api/v1/requests", json=request_payload)
    assert res.status_code == 201
    notifications.calls.clear()
    return res.get_json()["request"]


# ═════════════════════════════════════════════════════════════════════════════
# 1. PUBLIC SUBMISSION
# ═════════════════════════════════════════════════════════════════════════════


class TestSubmitApi:
    def test_submit_without_session(self, client, request_payload, notifications):
        res = client.post("/api/v1/requests", json=request_payload)
        assert res.status_code == 201
        body = res.get_json()
        assert body["success"] is True
        req = body["request"]
        assert req["status"] == "pending"
        assert req["assignedTo"] is None
        assert req["requestType"] == "Dashboard"
        assert req["dueDate"] == "2030-06-01T00:00:00Z"
        assert req["createdAt"].endswith("Z")

    def test_missing_field_400(self, client, request_payload, notifications):
        del request_payload["description"]
        res = client.post("/api/v1/requests", json=request_payload)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_bad_due_date_400(self, client, request_payload, notifications):
        request_payload["dueDate"] = "next friday"
        res = client.post("/api/v1/requests", json=request_payload)
        assert res.status_code == 400
        assert res.get_json()["details"] == {"dueDate": "next friday"}


# ═════════════════════════════════════════════════════════════════════════════
# 2. READS
# ═════════════════════════════════════════════════════════════════════════════


class TestReadApi:
    def test_list_newest_first(self, client, auth_headers, request_payload, notifications):
        first = client.post("/api/v1/requests", json=request_payload).get_json()["request"]
        second = client.post("/api/v1/requests", json=request_payload).get_json()["request"]

        res = client.get("/api/v1/requests", headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 2
        assert [r["id"] for r in body["requests"]] == [second["id"], first["id"]]

    def test_list_by_status(self, client, auth_headers, created, analyst):
        client.post(f"/api/v1/requests/{created['id']}/assign",
                    json={"analystId": analyst.id}, headers=auth_headers)
        assigned = client.get("/api/v1/requests?status=assigned", headers=auth_headers).get_json()
        pending = client.get("/api/v1/requests?status=pending", headers=auth_headers).get_json()
        assert [r["id"] for r in assigned["requests"]] == [created["id"]]
        assert pending["requests"] == []

    def test_list_paginated(self, client, auth_headers, request_payload, notifications):
        ids = [client.post("/api/v1/requests", json=request_payload).get_json()["request"]["id"]
               for _ in range(3)]

        res = client.get("/api/v1/requests?limit=2&offset=1", headers=auth_headers)
        body = res.get_json()
        assert body["total"] == 3
        assert [r["id"] for r in body["requests"]] == [ids[1], ids[0]]

    def test_list_bad_status_400(self, client, auth_headers):
        res = client.get("/api/v1/requests?status=archived", headers=auth_headers)
        assert res.status_code == 400

    def test_detail_includes_history(self, client, auth_headers, created):
        client.patch(f"/api/v1/requests/{created['id']}/edit",
                     json={"dueDate": "2030-07-01", "reason": "data late"}, headers=auth_headers)
        res = client.get(f"/api/v1/requests/{created['id']}", headers=auth_headers)
        assert res.status_code == 200
        history = res.get_json()["request"]["editHistory"]
        assert len(history) == 1
        assert history[0]["editedBy"] == "admin@example.com"
        assert history[0]["oldDate"] == "2030-06-01T00:00:00Z"
        assert history[0]["newDate"] == "2030-07-01T00:00:00Z"

    def test_history_endpoint(self, client, auth_headers, created):
        for reason in ("one", "two"):
            client.patch(f"/api/v1/requests/{created['id']}/edit",
                         json={"dueDate": "2030-07-01", "reason": reason}, headers=auth_headers)
        res = client.get(f"/api/v1/requests/{created['id']}/history", headers=auth_headers)
        assert [h["reason"] for h in res.get_json()["history"]] == ["one", "two"]

    def test_unknown_request_404(self, client, auth_headers):
        res = client.get("/api/v1/requests/does-not-exist", headers=auth_headers)
        assert res.status_code == 404
        assert res.get_json() == {"error": "Request not found", "code": "ERR_NOT_FOUND"}


# ═════════════════════════════════════════════════════════════════════════════
# 3. MUTATIONS
# ═════════════════════════════════════════════════════════════════════════════


class TestMutationApi:
    def test_assign(self, client, auth_headers, created, analyst, notifications):
        res = client.post(f"/api/v1/requests/{created['id']}/assign",
                          json={"analystId": analyst.id, "notes": "priority"}, headers=auth_headers)
        assert res.status_code == 200
        req = res.get_json()["request"]
        assert req["status"] == "assigned"
        assert req["assignedTo"] == {"id": analyst.id, "name": "Alan Analyst", "email": "alan@example.com"}
        assert req["assignedAt"]
        assert notifications.last("send_assignment")[2] == "priority"

    def test_assign_unknown_analyst_404(self, client, auth_headers, created):
        res = client.post(f"/api/v1/requests/{created['id']}/assign",
                          json={"analystId": "ghost"}, headers=auth_headers)
        assert res.status_code == 404
        assert res.get_json()["error"] == "Analyst not found"

    def test_edit(self, client, auth_headers, created, notifications):
        res = client.patch(f"/api/v1/requests/{created['id']}/edit",
                           json={"dueDate": "2030-07-15T00:00:00Z", "reason": "X"}, headers=auth_headers)
        assert res.status_code == 200
        req = res.get_json()["request"]
        assert req["dueDate"] == "2030-07-15T00:00:00Z"
        assert req["editedAt"]
        assert [h["reason"] for h in req["editHistory"]] == ["X"]
        assert "send_due_date_change" in notifications.names()

    def test_edit_without_reason_400(self, client, auth_headers, created):
        res = client.patch(f"/api/v1/requests/{created['id']}/edit",
                           json={"dueDate": "2030-07-15"}, headers=auth_headers)
        assert res.status_code == 400
        assert EditHistory.query.count() == 0

    def test_complete(self, client, auth_headers, created, notifications):
        res = client.post(f"/api/v1/requests/{created['id']}/complete", headers=auth_headers)
        assert res.status_code == 200
        req = res.get_json()["request"]
        assert req["status"] == "completed"
        assert req["completed"] is True
        assert req["completedAt"]
        assert notifications.names() == ["send_completion"]

    def test_complete_twice_strict_409(self, app, client, auth_headers, created, monkeypatch):
        monkeypatch.setitem(app.config, "REQUEST_STRICT_TRANSITIONS", True)
        client.post(f"/api/v1/requests/{created['id']}/complete", headers=auth_headers)
        res = client.post(f"/api/v1/requests/{created['id']}/complete", headers=auth_headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_delete(self, client, auth_headers, created):
        client.patch(f"/api/v1/requests/{created['id']}/edit",
                     json={"dueDate": "2030-07-15", "reason": "X"}, headers=auth_headers)
        res = client.delete(f"/api/v1/requests/{created['id']}", headers=auth_headers)
        assert res.status_code == 200
        assert db.session.get(AnalyticsRequest, created["id"]) is None
        assert EditHistory.query.filter_by(request_id=created["id"]).count() == 0

        again = client.delete(f"/api/v1/requests/{created['id']}", headers=auth_headers)
        assert again.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# 4. EXPORT
# ═════════════════════════════════════════════════════════════════════════════


class TestExportApi:
    def test_csv_attachment(self, client, auth_headers, created):
        res = client.get("/api/v1/requests/export", headers=auth_headers)
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        disposition = res.headers["Content-Disposition"]
        assert disposition.startswith('attachment; filename="requests-export-')
        assert disposition.endswith('.csv"')

        rows = list(csv.reader(io.StringIO(res.get_data(as_text=True))))
        assert rows[0][0] == "ID"
        assert rows[1][0] == created["id"]

    def test_window_excludes_everything(self, client, auth_headers, created):
        res = client.get("/api/v1/requests/export?startDate=2000-01-01&endDate=2000-01-02",
                         headers=auth_headers)
        rows = list(csv.reader(io.StringIO(res.get_data(as_text=True))))
        assert len(rows) == 1

    def test_inverted_window_400(self, client, auth_headers):
        res = client.get("/api/v1/requests/export?startDate=2025-02-01&endDate=2025-01-01",
                         headers=auth_headers)
        assert res.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# 5. DIRECTORY
# ═════════════════════════════════════════════════════════════════════════════


class TestDirectoryApi:
    def test_analysts(self, client, auth_headers, analyst, silent_analyst):
        res = client.get("/api/v1/analysts", headers=auth_headers)
        assert res.status_code == 200
        names = [a["name"] for a in res.get_json()["analysts"]]
        assert names == ["Alan Analyst", "Quiet Analyst"]

    def test_admins_lists_active_only(self, client, auth_headers):
        from app.services.admin_service import deactivate_admin, provision_admin
        provision_admin("gone@example.com", "Gone Admin")
        deactivate_admin("gone@example.com")

        res = client.get("/api/v1/admins", headers=auth_headers)
        assert [a["email"] for a in res.get_json()["admins"]] == ["admin@example.com"]

    def test_health_is_public(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_live_checks_database(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"

    def test_unknown_api_route_json_404(self, client):
        res = client.get("/api/v1/nothing-here")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"
