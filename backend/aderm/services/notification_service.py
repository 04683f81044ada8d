from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from aderm.core.logger import logger
from aderm.db.repositories import EmailRepository, UserRepository
from aderm.db.schemas import AuditRequest, EmailRecord, EmailStatus, OTPPurpose, UserProfile
from aderm.services import email_renderer
from aderm.services.audit_service import AuditService
from aderm.services.email_renderer import RenderedEmail
from aderm.services.email_service import EmailService
from aderm.utils.exceptions import EmailDeliveryError
from aderm.utils.helpers import generate_id, utcnow

SYSTEM_SENDER = "system"


class NotificationService:
    """Renders templates, sends them and records every attempt."""

    def __init__(
        self,
        email_service: EmailService,
        emails: EmailRepository,
        users: UserRepository,
        audit: AuditService,
        app_url: str = "",
        otp_ttl_minutes: int = 10,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.email_service = email_service
        self.emails = emails
        self.users = users
        self.audit = audit
        self.app_url = app_url
        self.otp_ttl_minutes = otp_ttl_minutes
        self.clock = clock or utcnow

    def _record(self, message: RenderedEmail, sent_by: str, status: EmailStatus, error: Optional[str]) -> EmailRecord:
        record = EmailRecord(
            id=generate_id("email"),
            to=", ".join(message.to),
            cc=list(message.cc),
            subject=message.subject,
            body=message.html if message.record_body is None else message.record_body,
            sent_by=sent_by,
            sent_at=self.clock(),
            status=status,
            email_type=message.email_type,
            error=error,
        )
        try:
            self.emails.save(record)
        except Exception as e:
            logger.error(f"Failed to record {message.email_type} email to {record.to}: {str(e)}")
        return record

    async def dispatch(
        self,
        message: RenderedEmail,
        sent_by: str = SYSTEM_SENDER,
        request_id: Optional[str] = None,
        strict: bool = False,
    ) -> EmailRecord:
        """
        Send one rendered email.

        Best-effort sends (the default) never raise: a failure is recorded
        as a failed EmailRecord plus an ``email_failed`` audit entry. With
        ``strict=True`` the EmailDeliveryError is re-raised after recording.
        """
        try:
            await self.email_service.send_email(message.to, message.subject, message.html, cc=message.cc)
        except EmailDeliveryError as exc:
            logger.warning("Email %s to %s failed: %s", message.email_type, message.to, exc.reason)
            record = self._record(message, sent_by, EmailStatus.failed, exc.reason)
            self.audit.append(
                "email_failed",
                sent_by,
                {
                    "email_type": message.email_type,
                    "to": record.to,
                    "subject": message.subject,
                    "error": exc.reason,
                },
                request_id=request_id,
            )
            if strict:
                raise
            return record
        return self._record(message, sent_by, EmailStatus.sent, None)

    async def notify_new_request(self, request: AuditRequest, creator: UserProfile) -> EmailRecord:
        message = email_renderer.render_new_request(request, creator, app_url=self.app_url)
        return await self.dispatch(message, sent_by=creator.id, request_id=request.id)

    async def notify_status_change(
        self,
        request: AuditRequest,
        old_status: str,
        updater: UserProfile,
    ) -> EmailRecord:
        creator = self.users.get(request.created_by)
        message = email_renderer.render_status_change(
            request,
            old_status,
            updater,
            auditor_email=creator.email if creator else None,
        )
        return await self.dispatch(message, sent_by=updater.id, request_id=request.id)

    async def send_welcome(self, user: UserProfile) -> EmailRecord:
        return await self.dispatch(email_renderer.render_welcome(user), sent_by=user.id)

    async def send_otp(self, email: str, code: str, purpose: OTPPurpose) -> EmailRecord:
        message = email_renderer.render_otp(email, code, purpose, ttl_minutes=self.otp_ttl_minutes)
        return await self.dispatch(message, strict=True)
