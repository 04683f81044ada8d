from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime
from typing import Callable, List, Optional

from aderm.core.logger import logger
from aderm.db.repositories import Repositories
from aderm.db.schemas import DepartmentSummary, EmailRecord, RequestStatus, UserProfile, UserRole
from aderm.services import access_policy, email_renderer
from aderm.services.access_policy import enforce
from aderm.services.audit_service import AuditService
from aderm.services.notification_service import NotificationService
from aderm.utils.exceptions import EmailDeliveryError, InternalError, PermissionDeniedError, ValidationError
from aderm.utils.helpers import normalize_email, utcnow
from aderm.utils.validators import is_valid_email

RECENT_EMAILS_LIMIT = 50


class ReportService:
    """Departmental analysis: summaries, emailed reports and the email log."""

    def __init__(
        self,
        repos: Repositories,
        notifications: NotificationService,
        audit: AuditService,
        hr_department: str = access_policy.DEFAULT_HR_DEPARTMENT,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repos = repos
        self.notifications = notifications
        self.audit = audit
        self.hr_department = hr_department
        self.clock = clock or utcnow

    async def send_report(
        self,
        sender: UserProfile,
        to: Optional[str],
        subject: Optional[str],
        message: Optional[str],
        report_content: Optional[str],
    ) -> EmailRecord:
        enforce(access_policy.can_send_report(sender))
        to = normalize_email(to)
        subject = (subject or "").strip()
        if not to or not subject or not (report_content or "").strip():
            raise ValidationError("Missing required fields: to, subject, reportContent")
        if not is_valid_email(to):
            raise ValidationError(f"Invalid recipient email: {to}")

        rendered = email_renderer.render_report(to, subject, message or "", report_content, sender, now=self.clock())
        try:
            record = await self.notifications.dispatch(rendered, sent_by=sender.id, strict=True)
        except EmailDeliveryError as exc:
            raise InternalError("Failed to send report email", reason=exc.reason)

        self.audit.append(
            "report_emailed",
            sender.id,
            {"to": to, "subject": subject, "email_id": record.id},
        )
        logger.info("Report emailed by %s to %s", sender.id, to)
        return record

    def department_summary(
        self,
        viewer: UserProfile,
        department: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[DepartmentSummary]:
        """
        Counts per department. Optionally narrowed to one department
        (case-insensitive) and to requests created between ``date_from`` and
        ``date_to``, both inclusive.
        """
        if not access_policy.is_reviewer(viewer):
            raise PermissionDeniedError("Only auditors and managers can view departmental reports")
        if date_from and date_to and date_from > date_to:
            raise ValidationError("from must not be after to")

        wanted = (department or "").strip().lower()
        requests = [
            r for r in self.repos.requests.list_all()
            if (not wanted or r.department.lower() == wanted)
            and (date_from is None or r.created_at.date() >= date_from)
            and (date_to is None or r.created_at.date() <= date_to)
        ]

        today = self.clock().date()
        summaries: "OrderedDict[str, DepartmentSummary]" = OrderedDict()
        for request in sorted(requests, key=lambda r: r.department.lower()):
            summary = summaries.get(request.department)
            if summary is None:
                summary = DepartmentSummary(
                    department=request.department,
                    by_status={s.value: 0 for s in RequestStatus},
                    hr_confidential=viewer.role == UserRole.auditor
                    and access_policy.is_hr_department(request.department, self.hr_department),
                )
                summaries[request.department] = summary
            summary.total += 1
            summary.by_status[request.status.value] += 1
            if request.due_date < today and request.status != RequestStatus.approved:
                summary.overdue += 1
            if request.pending_assignment:
                summary.pending_assignment += 1
        return list(summaries.values())

    def list_emails(self, viewer: UserProfile, limit: int = RECENT_EMAILS_LIMIT) -> List[EmailRecord]:
        """Most recent first."""
        if not access_policy.is_reviewer(viewer):
            raise PermissionDeniedError("Only auditors and managers can view sent emails")
        records = self.repos.emails.list_all()
        records.sort(key=lambda r: (r.sent_at, r.id), reverse=True)
        return records[:limit]
