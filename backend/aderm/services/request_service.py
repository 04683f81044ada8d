# aderm/services/request_service.py

from datetime import datetime
from typing import Callable, List, Optional

from botocore.exceptions import ClientError

from aderm.core.logger import logger
from aderm.db.repositories import Repositories
from aderm.db.schemas import (
    AuditRequest,
    CreateRequestBody,
    Document,
    RequestStatus,
    RequestView,
    UserProfile,
    UserRole,
)
from aderm.services import access_policy
from aderm.services.access_policy import enforce
from aderm.services.archival_service import ArchivalService
from aderm.services.audit_service import AuditService
from aderm.services.notification_service import NotificationService
from aderm.services.outbox import Outbox
from aderm.services.storage_service import BlobStorage
from aderm.utils.exceptions import InternalError, NotFoundError, ValidationError
from aderm.utils.helpers import epoch_millis, generate_id, normalize_email, safe_filename, utcnow

REQUIRED_FIELDS = ("title", "description", "due_date", "assigned_to_email", "department")


class RequestService:
    """
    Request lifecycle: create, list, change status, upload and list documents.

    Every mutation is persisted before anything else happens. Notification
    emails and archival pushes are queued on the outbox and never fail the
    mutation that triggered them.
    """

    def __init__(
        self,
        repos: Repositories,
        storage: BlobStorage,
        notifications: NotificationService,
        archival: ArchivalService,
        audit: AuditService,
        outbox: Outbox,
        hr_department: str = access_policy.DEFAULT_HR_DEPARTMENT,
        signed_url_expires_seconds: int = 3600,
        max_upload_size: int = 50 * 1024 * 1024,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repos = repos
        self.storage = storage
        self.notifications = notifications
        self.archival = archival
        self.audit = audit
        self.outbox = outbox
        self.hr_department = hr_department
        self.signed_url_expires_seconds = signed_url_expires_seconds
        self.max_upload_size = max_upload_size
        self.clock = clock or utcnow

    def is_hr(self, request: AuditRequest) -> bool:
        return access_policy.is_hr_department(request.department, self.hr_department)

    def _get_or_404(self, request_id: str) -> AuditRequest:
        request = self.repos.requests.get(request_id)
        if request is None:
            raise NotFoundError("Request not found")
        return request

    def to_view(self, request: AuditRequest, viewer: UserProfile) -> RequestView:
        """Adds the read-time flags; nothing here is persisted."""
        today = self.clock().date()
        return RequestView(
            **request.model_dump(),
            hr_confidential=viewer.role == UserRole.auditor and self.is_hr(request),
            is_overdue=request.due_date < today and request.status != RequestStatus.approved,
        )

    def _with_url(self, document: Document) -> Document:
        try:
            url = self.storage.generate_download_url(document.file_path, expires_in=self.signed_url_expires_seconds)
        except ClientError:
            url = None
        return document.model_copy(update={"file_url": url})

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(self, creator: UserProfile, body: CreateRequestBody) -> RequestView:
        enforce(access_policy.can_create_request(creator))

        missing = [name for name in REQUIRED_FIELDS if not getattr(body, name)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

        assigned_to_email = normalize_email(body.assigned_to_email)
        assignee = self.repos.users.get_by_email(assigned_to_email)
        now = self.clock()
        cc_emails: List[str] = []
        for cc in body.cc_emails:
            value = normalize_email(cc)
            if value and value not in cc_emails:
                cc_emails.append(value)

        request = AuditRequest(
            id=generate_id("req"),
            title=body.title,
            description=body.description,
            due_date=body.due_date,
            status=RequestStatus.submitted,
            created_by=creator.id,
            assigned_to=assignee.id if assignee else None,
            assigned_to_email=assigned_to_email,
            department=body.department,
            cc_emails=cc_emails,
            pending_assignment=assignee is None,
            created_at=now,
            updated_at=now,
        )
        self.repos.requests.save(request)
        self.audit.append(
            "request_created",
            creator.id,
            {
                "title": request.title,
                "assigned_to_email": assigned_to_email,
                "department": request.department,
                "pending_assignment": request.pending_assignment,
            },
            request_id=request.id,
        )
        self.outbox.enqueue(
            f"new_request_email:{request.id}",
            lambda: self.notifications.notify_new_request(request, creator),
        )
        logger.info(f"Request {request.id} created by {creator.id} (pending={request.pending_assignment})")
        return self.to_view(request, creator)

    def list_requests(self, viewer: UserProfile) -> List[RequestView]:
        """
        Auditors and managers see every request; auditees see requests
        assigned to them or still pending on their email. Newest first.
        """
        requests = self.repos.requests.list_all()
        if viewer.role == UserRole.auditee:
            requests = [r for r in requests if access_policy.is_assignee(viewer, r)]
        requests.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return [self.to_view(r, viewer) for r in requests]

    def update_status(self, actor: UserProfile, request_id: str, new_status: str) -> RequestView:
        request = self._get_or_404(request_id)
        enforce(access_policy.can_update_status(actor, request, self.hr_department))
        try:
            status = RequestStatus((new_status or "").strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in RequestStatus)
            raise ValidationError(f"Invalid status '{new_status}'. Allowed: {allowed}")

        old_status = request.status
        updated = request.model_copy(update={"status": status, "updated_at": self.clock()})
        self.repos.requests.save(updated)

        hr_confidential = self.is_hr(updated)
        self.audit.append(
            "status_updated",
            actor.id,
            {
                "old_status": old_status.value,
                "new_status": status.value,
                "hr_confidential": hr_confidential,
                "department": updated.department,
            },
            request_id=updated.id,
        )
        self.outbox.enqueue(
            f"status_email:{updated.id}",
            lambda: self.notifications.notify_status_change(updated, old_status.value, actor),
        )
        if status == RequestStatus.approved and self.archival.enabled:
            for document in self.repos.documents.list_for_request(updated.id):
                self.outbox.enqueue(
                    f"archive:{document.id}",
                    self._archive_job(updated, document, actor),
                )
        logger.info(f"Request {updated.id} status {old_status.value} -> {status.value} by {actor.id}")
        return self.to_view(updated, actor)

    def _archive_job(self, request: AuditRequest, document: Document, actor: UserProfile):
        async def run() -> bool:
            try:
                await self.archival.archive_document(request, document)
            except Exception as exc:
                logger.error(f"Archival of document {document.id} failed: {str(exc)}")
                self.audit.append(
                    "document_archive_failed",
                    actor.id,
                    {"filename": document.filename, "error": str(exc)},
                    request_id=request.id,
                    document_id=document.id,
                )
                return False
            self.audit.append(
                "document_archived",
                actor.id,
                {"filename": document.filename, "department": request.department},
                request_id=request.id,
                document_id=document.id,
            )
            return True

        return run

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upload_document(
        self,
        actor: UserProfile,
        request_id: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
        comments: str = "",
    ) -> Document:
        if not (request_id or "").strip() or not (filename or "").strip():
            raise ValidationError("Missing file or request ID")
        request = self._get_or_404(request_id)
        enforce(access_policy.can_upload_document(actor, request))
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > self.max_upload_size:
            raise ValidationError(f"File exceeds the {self.max_upload_size // (1024 * 1024)} MB limit")

        if request.pending_assignment and normalize_email(request.assigned_to_email) == normalize_email(actor.email):
            request = request.model_copy(
                update={"assigned_to": actor.id, "pending_assignment": False, "updated_at": self.clock()}
            )
            self.repos.requests.save(request)
            self.audit.append(
                "auto_assigned_on_upload",
                actor.id,
                {"email": actor.email, "request_title": request.title},
                request_id=request.id,
            )

        is_replacement = bool(self.repos.documents.list_for_request(request.id))
        file_path = f"{request.id}/{epoch_millis()}_{safe_filename(filename)}"
        content_type = content_type or "application/octet-stream"
        try:
            self.storage.upload(file_path, content, content_type)
        except ClientError as exc:
            raise InternalError("Failed to upload file", reason=str(exc))

        document = Document(
            id=generate_id("doc"),
            request_id=request.id,
            filename=filename,
            file_path=file_path,
            content_type=content_type,
            file_size=len(content),
            uploaded_by=actor.id,
            uploaded_at=self.clock(),
            comments=comments or "",
            is_replacement=is_replacement,
        )
        self.repos.documents.save(document)

        self.repos.requests.save(
            request.model_copy(update={"status": RequestStatus.in_progress, "updated_at": self.clock()})
        )
        self.audit.append(
            "document_uploaded",
            actor.id,
            {
                "filename": filename,
                "comments": comments or "",
                "file_size": len(content),
                "is_replacement": is_replacement,
            },
            request_id=request.id,
            document_id=document.id,
        )
        logger.info(f"Document {document.id} uploaded to request {request.id} by {actor.id}")
        return self._with_url(document)

    def list_documents(self, viewer: UserProfile, request_id: str) -> List[Document]:
        """Signed links are minted fresh on every call."""
        request = self._get_or_404(request_id)
        enforce(access_policy.can_view_documents(viewer, request, self.hr_department))
        return [self._with_url(d) for d in self.repos.documents.list_for_request(request.id)]
