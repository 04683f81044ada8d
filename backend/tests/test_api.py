"""HTTP-level tests through the FastAPI app."""
from __future__ import annotations

from aderm.db.schemas import OTPPurpose, UserRole
from conftest import issued_code, make_user

API = "/api/v1"


def _login(client, ctx, email: str) -> dict:
    assert client.post(f"{API}/send-otp", json={"email": email}).status_code == 200
    code = issued_code(ctx, OTPPurpose.login, email)
    resp = client.post(f"{API}/verify-login-otp", json={"email": email, "otp": code})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def _request_payload(**overrides) -> dict:
    payload = {
        "title": "Q3 Financials",
        "description": "Trial balance",
        "due_date": "2026-04-30",
        "assigned_to_email": "jane@corp.com",
        "department": "Finance",
    }
    payload.update(overrides)
    return payload


def test_root_and_health(client):
    assert client.get("/").status_code == 200

    resp = client.get(f"{API}/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["providers"] == {"storage": "dev", "email": "dev", "archive": "dev"}
    assert resp.headers["X-Correlation-ID"]


def test_correlation_id_is_echoed(client):
    resp = client.get(f"{API}/health", headers={"X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"


def test_missing_bearer_is_401(client):
    resp = client.get(f"{API}/requests")

    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_signup_flow_claims_pending_request(client, api_ctx):
    auditor = make_user(api_ctx, "alice.auditor@ecobank.com", UserRole.auditor)
    auditor_headers = _login(client, api_ctx, auditor.email)

    created = client.post(f"{API}/requests", json=_request_payload(), headers=auditor_headers)
    assert created.status_code == 200
    request_id = created.json()["request"]["id"]
    assert created.json()["request"]["pending_assignment"] is True

    assert client.post(f"{API}/check-user-exists", json={"email": "jane@corp.com"}).json() == {"exists": False}
    assert client.post(f"{API}/send-signup-otp", json={"email": "jane@corp.com"}).status_code == 200
    code = issued_code(api_ctx, OTPPurpose.signup, "jane@corp.com")
    signup = client.post(
        f"{API}/verify-otp-signup",
        json={"email": "jane@corp.com", "otp": code, "name": "Jane", "role": "auditee"},
    )
    assert signup.status_code == 200
    jane_headers = {"Authorization": f"Bearer {signup.json()['session_token']}"}

    mine = client.get(f"{API}/requests", headers=jane_headers).json()["requests"]
    assert [(r["id"], r["pending_assignment"]) for r in mine] == [(request_id, False)]

    upload = client.post(
        f"{API}/upload",
        data={"request_id": request_id, "comments": "first pass"},
        files={"file": ("ledger.pdf", b"%PDF-1.4", "application/pdf")},
        headers=jane_headers,
    )
    assert upload.status_code == 200
    assert upload.json()["document"]["file_url"]

    docs = client.get(f"{API}/requests/{request_id}/documents", headers=auditor_headers)
    assert [d["filename"] for d in docs.json()["documents"]] == ["ledger.pdf"]

    approved = client.put(f"{API}/requests/{request_id}/status", json={"status": "approved"}, headers=auditor_headers)
    assert approved.json()["request"]["status"] == "approved"

    actions = {e["action"] for e in client.get(f"{API}/audit-logs", headers=auditor_headers).json()["logs"]}
    assert {"request_created", "user_created", "auto_assigned_request", "document_uploaded", "status_updated", "document_archived"} <= actions
    welcome = [m for m in api_ctx.email.sent_messages if m["subject"].startswith("Welcome to ADERM")]
    assert welcome[0]["to"] == ["jane@corp.com"]


def test_hr_confidential_gate(client, api_ctx):
    auditor = make_user(api_ctx, "alice.auditor@ecobank.com", UserRole.auditor)
    manager = make_user(api_ctx, "mike.manager@ecobank.com", UserRole.manager)
    auditor_headers = _login(client, api_ctx, auditor.email)
    manager_headers = _login(client, api_ctx, manager.email)

    created = client.post(
        f"{API}/requests", json=_request_payload(department="Human Resources"), headers=manager_headers
    )
    request_id = created.json()["request"]["id"]

    listed = client.get(f"{API}/requests", headers=auditor_headers).json()["requests"]
    assert listed[0]["hr_confidential"] is True

    denied = client.put(f"{API}/requests/{request_id}/status", json={"status": "approved"}, headers=auditor_headers)
    assert denied.status_code == 403
    assert denied.json()["code"] == "permission_denied"
    assert denied.json()["confidential"] is True

    docs = client.get(f"{API}/requests/{request_id}/documents", headers=auditor_headers)
    assert docs.status_code == 403
    assert docs.json()["confidential"] is True

    ok = client.put(f"{API}/requests/{request_id}/status", json={"status": "approved"}, headers=manager_headers)
    assert ok.status_code == 200


def test_error_shapes(client, api_ctx):
    auditee = make_user(api_ctx, "bob@corp.com", UserRole.auditee)
    auditor = make_user(api_ctx, "alice.auditor@ecobank.com", UserRole.auditor)
    auditee_headers = _login(client, api_ctx, auditee.email)
    auditor_headers = _login(client, api_ctx, auditor.email)

    forbidden = client.post(f"{API}/requests", json=_request_payload(), headers=auditee_headers)
    assert forbidden.status_code == 403
    assert set(forbidden.json()) == {"error", "code"}

    missing = client.post(f"{API}/requests", json={"title": "Only a title"}, headers=auditor_headers)
    assert missing.status_code == 400
    assert missing.json()["code"] == "validation_error"
    assert "department" in missing.json()["fields"]

    not_found = client.put(f"{API}/requests/req_missing/status", json={"status": "approved"}, headers=auditor_headers)
    assert not_found.status_code == 404

    wrong_code = client.post(f"{API}/verify-login-otp", json={"email": auditee.email, "otp": "999999"})
    assert wrong_code.status_code == 400

    unknown = client.post(f"{API}/send-otp", json={"email": "ghost@corp.com"})
    assert unknown.status_code == 404

    duplicate = client.post(f"{API}/send-signup-otp", json={"email": auditee.email})
    assert duplicate.status_code == 409


def test_logout_invalidates_session(client, api_ctx):
    user = make_user(api_ctx, "bob@corp.com", UserRole.auditee)
    client.post(f"{API}/send-otp", json={"email": user.email})
    code = issued_code(api_ctx, OTPPurpose.login, user.email)
    session = client.post(f"{API}/verify-login-otp", json={"email": user.email, "otp": code}).json()["session_token"]
    headers = {"Authorization": f"Bearer {session}"}

    assert client.get(f"{API}/profile", headers=headers).json()["user"]["email"] == user.email
    assert client.post(f"{API}/logout", headers=headers).status_code == 200
    assert client.get(f"{API}/profile", headers=headers).status_code == 401


def _otp_login(client, ctx, email: str) -> dict:
    client.post(f"{API}/send-otp", json={"email": email})
    code = issued_code(ctx, OTPPurpose.login, email)
    return client.post(f"{API}/verify-login-otp", json={"email": email, "otp": code}).json()


def test_logout_revokes_access_token(client, api_ctx):
    user = make_user(api_ctx, "bob@corp.com", UserRole.auditee)
    tokens = _otp_login(client, api_ctx, user.email)
    session_headers = {"Authorization": f"Bearer {tokens['session_token']}"}
    jwt_headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert client.get(f"{API}/profile", headers=jwt_headers).status_code == 200
    assert client.post(f"{API}/logout", headers=session_headers).status_code == 200

    resp = client.get(f"{API}/profile", headers=jwt_headers)
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_logout_with_access_token_ends_session(client, api_ctx):
    user = make_user(api_ctx, "bob@corp.com", UserRole.auditee)
    tokens = _otp_login(client, api_ctx, user.email)
    jwt_headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert client.post(f"{API}/logout", headers=jwt_headers).status_code == 200

    assert client.get(f"{API}/profile", headers=jwt_headers).status_code == 401
    session_headers = {"Authorization": f"Bearer {tokens['session_token']}"}
    assert client.get(f"{API}/profile", headers=session_headers).status_code == 401


def test_reports_and_emails(client, api_ctx):
    manager = make_user(api_ctx, "mike.manager@ecobank.com", UserRole.manager)
    headers = _login(client, api_ctx, manager.email)

    sent = client.post(
        f"{API}/send-report",
        json={"to": "cfo@corp.com", "subject": "Q3", "message": "hi", "reportContent": "Finance: 0 open"},
        headers=headers,
    )
    assert sent.status_code == 200
    assert sent.json()["success"] is True

    emails = client.get(f"{API}/emails", headers=headers).json()["emails"]
    assert any(e["id"] == sent.json()["email_id"] for e in emails)
    assert client.get(f"{API}/reports/departments", headers=headers).json() == {"departments": []}


def test_oversized_upload_rejected_before_storage(client, api_ctx):
    auditor = make_user(api_ctx, "alice.auditor@ecobank.com", UserRole.auditor)
    headers = _login(client, api_ctx, auditor.email)
    request_id = client.post(f"{API}/requests", json=_request_payload(), headers=headers).json()["request"]["id"]
    api_ctx.requests.max_upload_size = 8

    resp = client.post(
        f"{API}/upload",
        data={"request_id": request_id},
        files={"file": ("big.bin", b"x" * 64, "application/octet-stream")},
        headers=headers,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"
    assert api_ctx.repos.documents.list_for_request(request_id) == []


def test_department_report_filters(client, api_ctx):
    manager = make_user(api_ctx, "mike.manager@ecobank.com", UserRole.manager)
    headers = _login(client, api_ctx, manager.email)
    client.post(f"{API}/requests", json=_request_payload(department="Finance"), headers=headers)
    client.post(f"{API}/requests", json=_request_payload(department="Treasury"), headers=headers)

    filtered = client.get(f"{API}/reports/departments", params={"department": "treasury"}, headers=headers)
    assert [d["department"] for d in filtered.json()["departments"]] == ["Treasury"]

    future = client.get(f"{API}/reports/departments", params={"from": "2999-01-01"}, headers=headers)
    assert future.json() == {"departments": []}

    inverted = client.get(f"{API}/reports/departments", params={"from": "2026-03-05", "to": "2026-03-01"}, headers=headers)
    assert inverted.status_code == 400
