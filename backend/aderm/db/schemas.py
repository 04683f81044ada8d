"""
Pydantic validation schemas
"""
from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

# ============================================================================
# Enums
# ============================================================================

class UserRole(str, enum.Enum):
    """User roles"""
    auditor = "auditor"
    auditee = "auditee"
    manager = "manager"


class RequestStatus(str, enum.Enum):
    """Request status enum"""
    submitted = "submitted"
    in_progress = "in_progress"
    rejected = "rejected"
    approved = "approved"


class OTPPurpose(str, enum.Enum):
    login = "login"
    signup = "signup"


class EmailStatus(str, enum.Enum):
    sent = "sent"
    failed = "failed"


# ============================================================================
# Stored records
# ============================================================================

class UserProfile(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    created_at: datetime
    email_verified: bool = False


class AuditRequest(BaseModel):
    """A document request. ``assigned_to`` is None exactly while pending."""
    id: str
    title: str
    description: str
    due_date: date
    status: RequestStatus = RequestStatus.submitted
    created_by: str
    assigned_to: Optional[str] = None
    assigned_to_email: str
    department: str
    cc_emails: List[str] = Field(default_factory=list)
    pending_assignment: bool
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def check_assignment(self) -> "AuditRequest":
        if (self.assigned_to is None) != self.pending_assignment:
            raise ValueError("assigned_to must be null exactly when pending_assignment is true")
        return self


class RequestView(AuditRequest):
    """Read-time projection; the two flags are never persisted."""
    hr_confidential: bool = False
    is_overdue: bool = False


class Document(BaseModel):
    id: str
    request_id: str
    filename: str
    file_path: str
    file_url: Optional[str] = None
    content_type: Optional[str] = None
    file_size: int = 0
    uploaded_by: str
    uploaded_at: datetime
    comments: str = ""
    is_replacement: bool = False


class OTPRecord(BaseModel):
    code: str
    email: str
    purpose: OTPPurpose
    user_id: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    verified: bool = False


class SessionToken(BaseModel):
    user_id: str
    email: str
    created_at: datetime
    expires_at: datetime
    login_method: str = "otp"


class AuditLogEntry(BaseModel):
    action: str
    user_id: str
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = None
    document_id: Optional[str] = None


class EmailRecord(BaseModel):
    id: str
    to: str
    cc: List[str] = Field(default_factory=list)
    subject: str
    body: str
    sent_by: str
    sent_at: datetime
    status: EmailStatus
    email_type: str
    error: Optional[str] = None


# ============================================================================
# API bodies
# ============================================================================

class EmailOnlyRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class VerifyLoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    otp: str = Field(..., min_length=4, max_length=8)


class VerifySignupRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    otp: str = Field(..., min_length=4, max_length=8)
    name: str = Field(..., min_length=1, max_length=255)
    role: Optional[str] = None


class CreateRequestBody(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    assigned_to_email: Optional[EmailStr] = None
    department: Optional[str] = None
    cc_emails: List[EmailStr] = Field(default_factory=list)

    @field_validator("title", "description", "department")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if isinstance(v, str) else v


class StatusUpdateBody(BaseModel):
    status: str


class SendReportBody(BaseModel):
    to: Optional[EmailStr] = None
    subject: Optional[str] = None
    message: Optional[str] = ""
    reportContent: Optional[str] = None


# ============================================================================
# API responses
# ============================================================================

class OTPSentResponse(BaseModel):
    success: bool = True
    message: str
    expires_in_seconds: int


class AuthResponse(BaseModel):
    success: bool = True
    user: UserProfile
    session_token: str
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class DepartmentSummary(BaseModel):
    department: str
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    overdue: int = 0
    pending_assignment: int = 0
    hr_confidential: bool = False
