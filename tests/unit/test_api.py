"""Unit tests for the import HTTP endpoints.

The database connection and committer are replaced, so these run without
PostgreSQL.  Committer behaviour itself is covered by the integration tests.
"""

from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

import tailor_import.api as api
from tailor_import.auth import create_token
from tailor_import.commit import CommitResult
from tailor_import.config import Settings

SECRET = "test-secret"

CSV = (
    b"Client Information (Name (Reference)),Client Information (Phone Number),Waist,Chest\n"
    b"Ada,0801 234 5678,9/24,100\n"
    b",,30,98\n"
)


def _auth(role: str = "admin", user_id: str = "user-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(user_id, role, SECRET)}"}


@pytest.fixture
def client():
    app = api.create_app(Settings(db_dsn="", jwt_secret=SECRET, preview_limit=10))
    app.dependency_overrides[api.get_connection] = lambda: object()
    return TestClient(app)


@pytest.fixture
def fake_commit(monkeypatch):
    calls: list[dict] = []

    def _commit(conn, rows, column_mapping, **kwargs):
        calls.append({"rows": rows, "column_mapping": column_mapping, **kwargs})
        return CommitResult(
            import_id="run-1",
            success_count=len(rows) - 1,
            failed_count=1,
            errors=[{"rowNumber": 2, "errors": ["Either client name or phone number is required"]}],
        )

    monkeypatch.setattr(api, "commit_import", _commit)
    return calls


# ---------------------------------------------------------------------------
# POST /import/preview
# ---------------------------------------------------------------------------

class TestPreviewEndpoint:
    def _body(self, data: bytes = CSV, **extra):
        return {"fileData": base64.b64encode(data).decode(), "fileName": "m.csv", **extra}

    def test_preview_ok(self, client):
        resp = client.post("/import/preview", json=self._body(), headers=_auth())
        assert resp.status_code == 200
        body = resp.json()
        assert body["statistics"] == {"totalRows": 2, "validRows": 1, "invalidRows": 1}
        assert body["columnMapping"]["Waist"] == "trouser_waist"
        assert body["preview"]["rows"][0]["data"]["client_phone"] == "08012345678"
        assert body["preview"]["rows"][1]["isValid"] is False
        assert body["importId"].startswith("import-")
        assert body["headers"][0] == "Client Information (Name (Reference))"

    def test_manager_allowed(self, client):
        resp = client.post("/import/preview", json=self._body(), headers=_auth("manager"))
        assert resp.status_code == 200

    def test_default_unit(self, client):
        resp = client.post(
            "/import/preview", json=self._body(defaultUnit="in"), headers=_auth()
        )
        assert resp.json()["preview"]["rows"][0]["data"]["units"] == "in"

    def test_empty_file_400(self, client):
        resp = client.post(
            "/import/preview", json=self._body(b"Name,Chest\n"), headers=_auth()
        )
        assert resp.status_code == 400

    def test_missing_file_data_400(self, client):
        resp = client.post("/import/preview", json={"fileName": "m.csv"}, headers=_auth())
        assert resp.status_code == 400

    def test_staff_forbidden(self, client):
        resp = client.post("/import/preview", json=self._body(), headers=_auth("staff"))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Insufficient permissions"

    def test_no_token_forbidden(self, client):
        resp = client.post("/import/preview", json=self._body())
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Authentication required"

    def test_bad_token_forbidden(self, client):
        resp = client.post(
            "/import/preview", json=self._body(),
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Invalid or expired token"


# ---------------------------------------------------------------------------
# POST /import/commit
# ---------------------------------------------------------------------------

class TestCommitEndpoint:
    def _body(self, **extra):
        return {
            "importId": "import-1",
            "rows": [{"Name": "Ada"}, {"Chest": "100"}, {"Name": "Bob"}],
            "columnMapping": {"Name": "client_name", "Chest": "chest"},
            "fileName": "m.csv",
            **extra,
        }

    def test_partial_success_is_200(self, client, fake_commit):
        resp = client.post("/import/commit", json=self._body(), headers=_auth(user_id="u-9"))
        assert resp.status_code == 200
        assert resp.json() == {
            "importId": "run-1",
            "successCount": 2,
            "failedCount": 1,
            "errors": [{"rowNumber": 2, "errors": ["Either client name or phone number is required"]}],
        }

    def test_principal_threaded_as_imported_by(self, client, fake_commit):
        client.post("/import/commit", json=self._body(), headers=_auth(user_id="u-9"))
        [call] = fake_commit
        assert call["imported_by"] == "u-9"
        assert call["file_name"] == "m.csv"
        assert call["default_unit"] == "cm"
        assert call["import_id"] == "import-1"

    def test_default_unit_forwarded(self, client, fake_commit):
        client.post("/import/commit", json=self._body(defaultUnit="in"), headers=_auth())
        assert fake_commit[0]["default_unit"] == "in"

    def test_missing_rows_400(self, client, fake_commit):
        body = self._body()
        del body["rows"]
        resp = client.post("/import/commit", json=body, headers=_auth())
        assert resp.status_code == 400
        assert fake_commit == []

    def test_rows_not_array_400(self, client, fake_commit):
        resp = client.post("/import/commit", json=self._body(rows={"a": 1}), headers=_auth())
        assert resp.status_code == 400

    def test_staff_forbidden(self, client, fake_commit):
        resp = client.post("/import/commit", json=self._body(), headers=_auth("staff"))
        assert resp.status_code == 403
        assert fake_commit == []

    def test_unexpected_failure_500(self, client, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(api, "commit_import", _boom)
        resp = client.post("/import/commit", json=self._body(), headers=_auth())
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Internal server error"}
