"""
Application context.

Everything that talks to the outside world (key-value store, blob storage,
email relay, archival flow) is built once from ``Settings`` when the app
starts, kept on ``app.state.context`` and handed to route handlers through
``Depends(get_context)``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from aderm.core.config import Settings
from aderm.core.logger import logger
from aderm.db.kv_store import KeyValueStore, build_kv_store
from aderm.db.repositories import Repositories
from aderm.services.archival_service import ArchivalService
from aderm.services.audit_service import AuditService
from aderm.services.email_service import EmailService
from aderm.services.notification_service import NotificationService
from aderm.services.otp_auth_service import OTPAuthService
from aderm.services.outbox import Outbox
from aderm.services.report_service import ReportService
from aderm.services.request_service import RequestService
from aderm.services.storage_service import BlobStorage, build_storage


@dataclass
class AppContext:
    settings: Settings
    kv: KeyValueStore
    repos: Repositories
    storage: BlobStorage
    email: EmailService
    archival: ArchivalService
    outbox: Outbox
    audit: AuditService
    notifications: NotificationService
    auth: OTPAuthService
    requests: RequestService
    reports: ReportService

    @classmethod
    def build(
        cls,
        settings: Settings,
        kv: Optional[KeyValueStore] = None,
        storage: Optional[BlobStorage] = None,
        email: Optional[EmailService] = None,
        archival: Optional[ArchivalService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "AppContext":
        kv = kv or build_kv_store(settings)
        repos = Repositories(kv)
        storage = storage or build_storage(settings)
        email = email or EmailService(
            provider=settings.EMAIL_PROVIDER,
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        )
        archival = archival or ArchivalService(
            storage,
            provider=settings.ARCHIVE_PROVIDER,
            flow_url=settings.ARCHIVE_FLOW_URL,
            shared_secret=settings.ARCHIVE_SHARED_SECRET,
            timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        )
        outbox = Outbox()
        audit = AuditService(repos.audit_logs, clock=clock)
        notifications = NotificationService(
            email,
            repos.emails,
            repos.users,
            audit,
            app_url=settings.APP_URL,
            otp_ttl_minutes=settings.OTP_TTL_MINUTES,
            clock=clock,
        )
        auth = OTPAuthService(
            repos,
            notifications,
            audit,
            outbox,
            allowed_domains=settings.allowed_email_domains_list,
            otp_ttl_minutes=settings.OTP_TTL_MINUTES,
            session_ttl_minutes=settings.SESSION_TTL_MINUTES,
            jwt_secret_key=settings.JWT_SECRET_KEY,
            jwt_algorithm=settings.JWT_ALGORITHM,
            clock=clock,
        )
        requests = RequestService(
            repos,
            storage,
            notifications,
            archival,
            audit,
            outbox,
            hr_department=settings.HR_DEPARTMENT,
            signed_url_expires_seconds=settings.SIGNED_URL_EXPIRES_SECONDS,
            max_upload_size=settings.MAX_UPLOAD_SIZE,
            clock=clock,
        )
        reports = ReportService(repos, notifications, audit, hr_department=settings.HR_DEPARTMENT, clock=clock)
        logger.info(
            "Context ready (kv=%s storage=%s email=%s archive=%s)",
            settings.KV_BACKEND,
            settings.STORAGE_PROVIDER,
            settings.EMAIL_PROVIDER,
            settings.ARCHIVE_PROVIDER,
        )
        return cls(
            settings=settings,
            kv=kv,
            repos=repos,
            storage=storage,
            email=email,
            archival=archival,
            outbox=outbox,
            audit=audit,
            notifications=notifications,
            auth=auth,
            requests=requests,
            reports=reports,
        )

    async def shutdown(self) -> None:
        await self.outbox.drain()
        self.kv.close()
