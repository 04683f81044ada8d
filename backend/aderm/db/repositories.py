# aderm/db/repositories.py

"""
Typed repositories over the key-value store.

Key scheme (shared with data written by earlier versions of the service):

    user:{id}                 UserProfile
    request:{id}              AuditRequest
    document:{id}             Document
    login_otp:{email}         OTPRecord (login)
    signup_otp:{email}        OTPRecord (signup)
    session:{token}           SessionToken
    audit_log:{ms}:{uid}:{r}  AuditLogEntry
    email:{id}                EmailRecord
"""

from __future__ import annotations

import secrets
from typing import List, Optional

from aderm.db.kv_store import KeyValueStore
from aderm.db.schemas import (
    AuditLogEntry,
    AuditRequest,
    Document,
    EmailRecord,
    OTPPurpose,
    OTPRecord,
    SessionToken,
    UserProfile,
)
from aderm.utils.helpers import epoch_millis, normalize_email

USER_PREFIX = "user:"
REQUEST_PREFIX = "request:"
DOCUMENT_PREFIX = "document:"
SESSION_PREFIX = "session:"
AUDIT_LOG_PREFIX = "audit_log:"
EMAIL_PREFIX = "email:"


class UserRepository:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def get(self, user_id: str) -> Optional[UserProfile]:
        raw = self.kv.get(f"{USER_PREFIX}{user_id}")
        return UserProfile.model_validate(raw) if raw else None

    def get_by_email(self, email: str) -> Optional[UserProfile]:
        target = normalize_email(email)
        for raw in self.kv.get_by_prefix(USER_PREFIX):
            if normalize_email(raw.get("email", "")) == target:
                return UserProfile.model_validate(raw)
        return None

    def list_all(self) -> List[UserProfile]:
        return [UserProfile.model_validate(raw) for raw in self.kv.get_by_prefix(USER_PREFIX)]

    def save(self, user: UserProfile) -> UserProfile:
        self.kv.set(f"{USER_PREFIX}{user.id}", user.model_dump(mode="json"))
        return user


class RequestRepository:
    _stored_fields = set(AuditRequest.model_fields)

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def get(self, request_id: str) -> Optional[AuditRequest]:
        raw = self.kv.get(f"{REQUEST_PREFIX}{request_id}")
        if not raw:
            return None
        return AuditRequest.model_validate({k: v for k, v in raw.items() if k in self._stored_fields})

    def list_all(self) -> List[AuditRequest]:
        return [
            AuditRequest.model_validate({k: v for k, v in raw.items() if k in self._stored_fields})
            for raw in self.kv.get_by_prefix(REQUEST_PREFIX)
        ]

    def list_pending_for_email(self, email: str) -> List[AuditRequest]:
        target = normalize_email(email)
        return [
            r for r in self.list_all()
            if r.pending_assignment and normalize_email(r.assigned_to_email) == target
        ]

    def save(self, request: AuditRequest) -> AuditRequest:
        """Full-record overwrite; derived read-time flags are dropped."""
        payload = request.model_dump(mode="json", include=self._stored_fields)
        self.kv.set(f"{REQUEST_PREFIX}{request.id}", payload)
        return request


class DocumentRepository:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def get(self, document_id: str) -> Optional[Document]:
        raw = self.kv.get(f"{DOCUMENT_PREFIX}{document_id}")
        return Document.model_validate(raw) if raw else None

    def list_for_request(self, request_id: str) -> List[Document]:
        docs = [
            Document.model_validate(raw)
            for raw in self.kv.get_by_prefix(DOCUMENT_PREFIX)
            if raw.get("request_id") == request_id
        ]
        docs.sort(key=lambda d: (d.uploaded_at, d.id))
        return docs

    def save(self, document: Document) -> Document:
        # Signed links expire; they are minted on read, never persisted
        self.kv.set(f"{DOCUMENT_PREFIX}{document.id}", document.model_dump(mode="json", exclude={"file_url"}))
        return document


class OTPRepository:
    """Login and signup codes live under separate prefixes for the same email."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    @staticmethod
    def key(purpose: OTPPurpose, email: str) -> str:
        return f"{purpose.value}_otp:{normalize_email(email)}"

    def get(self, purpose: OTPPurpose, email: str) -> Optional[OTPRecord]:
        raw = self.kv.get(self.key(purpose, email))
        if not raw:
            return None
        raw.setdefault("purpose", purpose.value)
        raw.setdefault("email", normalize_email(email))
        return OTPRecord.model_validate(raw)

    def save(self, record: OTPRecord) -> OTPRecord:
        self.kv.set(self.key(record.purpose, record.email), record.model_dump(mode="json"))
        return record

    def delete(self, purpose: OTPPurpose, email: str) -> None:
        self.kv.delete(self.key(purpose, email))


class SessionRepository:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def get(self, token: str) -> Optional[SessionToken]:
        raw = self.kv.get(f"{SESSION_PREFIX}{token}")
        return SessionToken.model_validate(raw) if raw else None

    def save(self, token: str, session: SessionToken) -> SessionToken:
        self.kv.set(f"{SESSION_PREFIX}{token}", session.model_dump(mode="json"))
        return session

    def delete(self, token: str) -> None:
        self.kv.delete(f"{SESSION_PREFIX}{token}")


class AuditLogRepository:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def append(self, entry: AuditLogEntry) -> str:
        # Random suffix keeps two entries from the same user in the same millisecond apart
        key = f"{AUDIT_LOG_PREFIX}{epoch_millis()}:{entry.user_id}:{secrets.token_hex(3)}"
        self.kv.set(key, entry.model_dump(mode="json"))
        return key

    def list_all(self) -> List[AuditLogEntry]:
        return [AuditLogEntry.model_validate(raw) for raw in self.kv.get_by_prefix(AUDIT_LOG_PREFIX)]


class EmailRepository:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def get(self, email_id: str) -> Optional[EmailRecord]:
        raw = self.kv.get(f"{EMAIL_PREFIX}{email_id}")
        return EmailRecord.model_validate(raw) if raw else None

    def save(self, record: EmailRecord) -> EmailRecord:
        self.kv.set(f"{EMAIL_PREFIX}{record.id}", record.model_dump(mode="json"))
        return record

    def list_all(self) -> List[EmailRecord]:
        return [EmailRecord.model_validate(raw) for raw in self.kv.get_by_prefix(EMAIL_PREFIX)]


class Repositories:
    """All repositories sharing one store."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self.users = UserRepository(kv)
        self.requests = RequestRepository(kv)
        self.documents = DocumentRepository(kv)
        self.otps = OTPRepository(kv)
        self.sessions = SessionRepository(kv)
        self.audit_logs = AuditLogRepository(kv)
        self.emails = EmailRepository(kv)
