"""
Capability checks.

Every role or confidentiality gate lives here so the API layer and the
services make the same call. Each check returns an ``AccessDecision``;
``enforce`` turns a denial into ``PermissionDeniedError``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from aderm.db.schemas import AuditRequest, UserProfile, UserRole
from aderm.utils.exceptions import PermissionDeniedError
from aderm.utils.helpers import normalize_email

DEFAULT_HR_DEPARTMENT = "Human Resources"

REVIEWER_ROLES = frozenset({UserRole.auditor, UserRole.manager})


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""
    confidential: bool = False

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(True)


def _deny(reason: str, confidential: bool = False) -> AccessDecision:
    return AccessDecision(False, reason, confidential)


def is_hr_department(department: Optional[str], hr_department: str = DEFAULT_HR_DEPARTMENT) -> bool:
    # The web client labels the department "Human Resources (HR)"
    value = (department or "").strip().lower()
    target = (hr_department or DEFAULT_HR_DEPARTMENT).strip().lower()
    return value == target or value.startswith(f"{target} (")


def is_reviewer(user: UserProfile) -> bool:
    return user.role in REVIEWER_ROLES


def is_assignee(user: UserProfile, request: AuditRequest) -> bool:
    if request.assigned_to is not None:
        return request.assigned_to == user.id
    return normalize_email(request.assigned_to_email) == normalize_email(user.email)


def can_create_request(actor: UserProfile) -> AccessDecision:
    if is_reviewer(actor):
        return ALLOW
    return _deny("Only auditors and managers can create requests")


def can_update_status(
    actor: UserProfile,
    request: AuditRequest,
    hr_department: str = DEFAULT_HR_DEPARTMENT,
) -> AccessDecision:
    if not is_reviewer(actor):
        return _deny("Only auditors and managers can update request status")
    if actor.role == UserRole.auditor and is_hr_department(request.department, hr_department):
        return _deny(
            "Human Resources requests are confidential. Only managers can update their status.",
            confidential=True,
        )
    return ALLOW


def can_upload_document(actor: UserProfile, request: AuditRequest) -> AccessDecision:
    if is_assignee(actor, request) or actor.role == UserRole.auditor:
        return ALLOW
    return _deny("You are not assigned to this request")


def can_view_documents(
    viewer: UserProfile,
    request: AuditRequest,
    hr_department: str = DEFAULT_HR_DEPARTMENT,
) -> AccessDecision:
    if viewer.role == UserRole.auditor and is_hr_department(request.department, hr_department):
        return _deny(
            "Documents for Human Resources requests are confidential. Please contact your manager.",
            confidential=True,
        )
    if is_reviewer(viewer) or is_assignee(viewer, request):
        return ALLOW
    return _deny("You do not have access to this request's documents")


def can_view_request(viewer: UserProfile, request: AuditRequest) -> AccessDecision:
    if is_reviewer(viewer) or is_assignee(viewer, request):
        return ALLOW
    return _deny("You do not have access to this request")


def can_view_audit_log(viewer: UserProfile) -> AccessDecision:
    if is_reviewer(viewer):
        return ALLOW
    return _deny("Only auditors and managers can view audit logs")


def can_send_report(viewer: UserProfile) -> AccessDecision:
    if is_reviewer(viewer):
        return ALLOW
    return _deny("Only auditors and managers can send reports")


def enforce(decision: AccessDecision) -> None:
    if not decision.allowed:
        raise PermissionDeniedError(decision.reason, confidential=decision.confidential)
