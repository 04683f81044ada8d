# aderm/services/audit_service.py

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from aderm.core.logger import logger
from aderm.db.repositories import AuditLogRepository
from aderm.db.schemas import AuditLogEntry, UserProfile
from aderm.services.access_policy import can_view_audit_log, enforce
from aderm.utils.helpers import utcnow


class AuditService:
    """
    Append-only audit trail over the key-value store.

    A failed write is logged and never fails the operation being audited.
    """

    def __init__(self, repository: AuditLogRepository, clock: Optional[Callable[[], datetime]] = None):
        self.repository = repository
        self.clock = clock or utcnow

    def append(
        self,
        action: str,
        user_id: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> Optional[AuditLogEntry]:
        entry = AuditLogEntry(
            action=action,
            user_id=user_id,
            timestamp=self.clock(),
            details=details or {},
            request_id=request_id,
            document_id=document_id,
        )
        try:
            self.repository.append(entry)
        except Exception as e:
            logger.error(f"Failed to write audit entry {action} for user {user_id}: {str(e)}")
            return None
        return entry

    def list(self, viewer: UserProfile) -> List[AuditLogEntry]:
        """
        All entries, newest first. Auditors and managers only.
        """
        enforce(can_view_audit_log(viewer))
        entries = self.repository.list_all()
        entries.reverse()
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries
