"""Tests for departmental summaries, emailed reports and the email log."""
from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

import pytest

from aderm.db.schemas import EmailStatus
from aderm.utils.exceptions import EmailDeliveryError, InternalError, PermissionDeniedError, ValidationError
from conftest import request_body


class TestSendReport:
    @pytest.mark.asyncio
    async def test_sends_and_audits(self, ctx, auditor):
        record = await ctx.reports.send_report(auditor, "CFO@corp.com", "Q3 summary", "Numbers below", "Finance: 3 open")

        assert record.status == EmailStatus.sent
        assert record.email_type == "departmental_report"
        sent = ctx.email.sent_messages[-1]
        assert sent["to"] == ["cfo@corp.com"]
        assert "Finance: 3 open" in sent["html"]
        entry = [e for e in ctx.repos.audit_logs.list_all() if e.action == "report_emailed"][0]
        assert entry.details["email_id"] == record.id

    @pytest.mark.asyncio
    async def test_auditee_cannot_send(self, ctx, auditee):
        with pytest.raises(PermissionDeniedError):
            await ctx.reports.send_report(auditee, "cfo@corp.com", "s", "", "c")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("to, subject, content", [("", "s", "c"), ("cfo@corp.com", "", "c"), ("cfo@corp.com", "s", " ")])
    async def test_required_fields(self, ctx, manager, to, subject, content):
        with pytest.raises(ValidationError):
            await ctx.reports.send_report(manager, to, subject, "", content)

    @pytest.mark.asyncio
    async def test_delivery_failure_is_internal_error(self, ctx, manager):
        ctx.email.send_email = AsyncMock(side_effect=EmailDeliveryError("relay down"))

        with pytest.raises(InternalError):
            await ctx.reports.send_report(manager, "cfo@corp.com", "s", "", "c")

        assert [r.status for r in ctx.repos.emails.list_all()] == [EmailStatus.failed]
        assert not [e for e in ctx.repos.audit_logs.list_all() if e.action == "report_emailed"]


class TestDepartmentSummary:
    def test_counts_per_department(self, ctx, clock, auditor, manager, auditee):
        ctx.requests.create_request(auditor, request_body(department="Finance", due_date=date(2026, 3, 1)))
        approved = ctx.requests.create_request(
            auditor, request_body(department="Finance", assigned_to_email=auditee.email, due_date=date(2026, 3, 1))
        )
        ctx.requests.update_status(auditor, approved.id, "approved")
        ctx.requests.create_request(manager, request_body(department="Human Resources"))

        summaries = ctx.reports.department_summary(auditor)

        assert [s.department for s in summaries] == ["Finance", "Human Resources"]
        finance, hr = summaries
        assert finance.total == 2
        assert finance.by_status["approved"] == 1
        assert finance.by_status["submitted"] == 1
        assert finance.overdue == 1
        assert finance.pending_assignment == 1
        assert finance.hr_confidential is False
        assert hr.hr_confidential is True
        assert ctx.reports.department_summary(manager)[1].hr_confidential is False

    def test_auditees_denied(self, ctx, auditee):
        with pytest.raises(PermissionDeniedError):
            ctx.reports.department_summary(auditee)

    def test_department_filter_is_case_insensitive(self, ctx, auditor, manager):
        ctx.requests.create_request(auditor, request_body(department="Finance"))
        ctx.requests.create_request(manager, request_body(department="Human Resources"))

        summaries = ctx.reports.department_summary(auditor, department=" finance ")

        assert [(s.department, s.total) for s in summaries] == [("Finance", 1)]

    def test_date_range_is_inclusive_on_created_at(self, ctx, clock, auditor):
        ctx.requests.create_request(auditor, request_body(title="March 2"))
        clock.advance(days=1)
        ctx.requests.create_request(auditor, request_body(title="March 3"))
        clock.advance(days=1)
        ctx.requests.create_request(auditor, request_body(title="March 4"))

        only_third = ctx.reports.department_summary(auditor, date_from=date(2026, 3, 3), date_to=date(2026, 3, 3))
        from_third = ctx.reports.department_summary(auditor, date_from=date(2026, 3, 3))
        until_third = ctx.reports.department_summary(auditor, date_to=date(2026, 3, 3))

        assert only_third[0].total == 1
        assert from_third[0].total == 2
        assert until_third[0].total == 2
        assert ctx.reports.department_summary(auditor, date_from=date(2026, 4, 1)) == []

    def test_inverted_range_rejected(self, ctx, auditor):
        with pytest.raises(ValidationError):
            ctx.reports.department_summary(auditor, date_from=date(2026, 3, 5), date_to=date(2026, 3, 1))


class TestListEmails:
    @pytest.mark.asyncio
    async def test_limit_and_visibility(self, ctx, auditor, auditee):
        for n in range(3):
            await ctx.reports.send_report(auditor, "cfo@corp.com", f"Report {n}", "", "c")

        assert len(ctx.reports.list_emails(auditor, limit=2)) == 2
        assert len(ctx.reports.list_emails(auditor)) == 3
        with pytest.raises(PermissionDeniedError):
            ctx.reports.list_emails(auditee)
