"""Tests for email rendering, the email transport and notification records."""
from __future__ import annotations

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from aderm.db.schemas import AuditRequest, EmailStatus, OTPPurpose, RequestStatus, UserProfile, UserRole
from aderm.services import email_renderer
from aderm.services.email_service import RESEND_API_URL, EmailService
from aderm.utils.exceptions import EmailDeliveryError

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
CREATOR = UserProfile(id="aud", email="alice@ecobank.com", name="Alice <Audit>", role=UserRole.auditor, created_at=NOW)


def _request(status: RequestStatus = RequestStatus.submitted, **overrides) -> AuditRequest:
    fields = dict(
        id="req_1",
        title="Q3 Financials",
        description="Trial balance",
        due_date=date(2026, 4, 30),
        status=status,
        created_by=CREATOR.id,
        assigned_to="bob",
        assigned_to_email="bob@corp.com",
        department="Finance",
        cc_emails=["boss@corp.com", "BOB@corp.com"],
        pending_assignment=False,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return AuditRequest(**fields)


class TestRenderer:
    def test_new_request_goes_to_assignee(self):
        message = email_renderer.render_new_request(_request(), CREATOR, app_url="https://aderm.example")

        assert message.subject == "New Audit Request: Q3 Financials"
        assert message.to == ["bob@corp.com"]
        assert message.cc == ["boss@corp.com"]
        assert "Alice &lt;Audit&gt;" in message.html
        assert "https://aderm.example" in message.html

    @pytest.mark.parametrize(
        "status, recipient, email_type",
        [
            (RequestStatus.submitted, "alice@ecobank.com", "status_submitted"),
            (RequestStatus.approved, "bob@corp.com", "status_approved"),
            (RequestStatus.rejected, "bob@corp.com", "status_rejected"),
            (RequestStatus.in_progress, "bob@corp.com", "status_update"),
        ],
    )
    def test_status_change_routing(self, status, recipient, email_type):
        message = email_renderer.render_status_change(_request(status), "pending", CREATOR, "alice@ecobank.com")

        assert message.to == [recipient]
        assert message.email_type == email_type
        assert message.subject == "Request Status Updated: Q3 Financials"

    def test_submitted_without_known_auditor_falls_back_to_assignee(self):
        message = email_renderer.render_status_change(_request(), "in_progress", CREATOR, None)
        assert message.to == ["bob@corp.com"]

    def test_otp_record_body_hides_code(self):
        message = email_renderer.render_otp("bob@corp.com", "482913", OTPPurpose.signup)

        assert message.subject == "ADERM - Email Verification Code"
        assert message.email_type == "signup_otp"
        assert "482913" in message.html
        assert "482913" not in message.record_body

    def test_report_escapes_content(self):
        message = email_renderer.render_report("cfo@corp.com", "Q3", "See below", "<b>42</b>", CREATOR, NOW)

        assert message.to == ["cfo@corp.com"]
        assert "ADERM Departmental Analysis Report" in message.html
        assert "&lt;b&gt;42&lt;/b&gt;" in message.html


class TestEmailService:
    @pytest.mark.asyncio
    async def test_dev_provider_keeps_messages(self):
        service = EmailService("dev")
        await service.send_email(["a@corp.com"], "Hi", "<p>hi</p>", cc=["b@corp.com"])

        assert service.sent_messages == [
            {"to": ["a@corp.com"], "cc": ["b@corp.com"], "subject": "Hi", "html": "<p>hi</p>"}
        ]

    @pytest.mark.asyncio
    async def test_rejects_invalid_recipients(self):
        service = EmailService("dev")
        with pytest.raises(EmailDeliveryError):
            await service.send_email([], "Hi", "<p>hi</p>")
        with pytest.raises(EmailDeliveryError):
            await service.send_email(["not-an-email"], "Hi", "<p>hi</p>")

    @pytest.mark.asyncio
    async def test_resend_posts_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "re_123"})

        service = EmailService("resend", api_key="key", sender="ADERM <no-reply@ecobank.com>", transport=httpx.MockTransport(handler))
        result = await service.send_email(["a@corp.com"], "Hi", "<p>hi</p>")

        assert result["id"] == "re_123"
        assert seen["url"] == RESEND_API_URL
        assert seen["auth"] == "Bearer key"
        assert seen["body"] == {
            "from": "ADERM <no-reply@ecobank.com>",
            "to": ["a@corp.com"],
            "subject": "Hi",
            "html": "<p>hi</p>",
        }

    @pytest.mark.asyncio
    async def test_resend_error_status_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(422, text="bad sender"))
        service = EmailService("resend", api_key="key", sender="no-reply@ecobank.com", transport=transport)

        with pytest.raises(EmailDeliveryError) as exc_info:
            await service.send_email(["a@corp.com"], "Hi", "<p>hi</p>")
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_resend_requires_config(self):
        with pytest.raises(EmailDeliveryError):
            await EmailService("resend").send_email(["a@corp.com"], "Hi", "<p>hi</p>")


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_successful_send_is_recorded(self, ctx, auditor):
        record = await ctx.notifications.notify_new_request(_request(created_by=auditor.id), auditor)

        assert record.status == EmailStatus.sent
        assert record.email_type == "new_request"
        assert ctx.repos.emails.get(record.id) is not None

    @pytest.mark.asyncio
    async def test_failed_send_is_recorded_and_audited(self, ctx, auditor):
        ctx.email.provider = "resend"

        record = await ctx.notifications.notify_new_request(_request(created_by=auditor.id), auditor)

        assert record.status == EmailStatus.failed
        assert "Resend email config missing" in record.error
        failures = [e for e in ctx.repos.audit_logs.list_all() if e.action == "email_failed"]
        assert failures[0].details["email_type"] == "new_request"
        assert failures[0].request_id == "req_1"

    @pytest.mark.asyncio
    async def test_strict_dispatch_reraises(self, ctx):
        ctx.email.provider = "resend"
        with pytest.raises(EmailDeliveryError):
            await ctx.notifications.send_otp("bob@corp.com", "123456", OTPPurpose.login)

    @pytest.mark.asyncio
    async def test_status_change_uses_creator_email(self, ctx, auditor):
        await ctx.notifications.notify_status_change(_request(created_by=auditor.id), "in_progress", auditor)
        assert ctx.email.sent_messages[-1]["to"] == [auditor.email]
