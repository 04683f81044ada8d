"""
Custom exception classes
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException


class AdermError(HTTPException):
    """Base class; rendered as {"error": message, "code": code, **extra}"""
    status_code_default = 500
    code = "error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(status_code=self.status_code_default, detail=message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra}


class ValidationError(AdermError):
    """Missing/malformed fields or an email outside the accepted domains"""
    status_code_default = 400
    code = "validation_error"


class UnauthorizedError(AdermError):
    """Missing, invalid or expired credential"""
    status_code_default = 401
    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized", **extra: Any):
        super().__init__(message, **extra)


class PermissionDeniedError(AdermError):
    """Role or confidentiality gate refused the action"""
    status_code_default = 403
    code = "permission_denied"

    def __init__(self, message: str, confidential: bool = False):
        if confidential:
            super().__init__(message, confidential=True)
        else:
            super().__init__(message)
        self.confidential = confidential


class NotFoundError(AdermError):
    status_code_default = 404
    code = "not_found"


class ConflictError(AdermError):
    """Duplicate signup or a profile created concurrently"""
    status_code_default = 409
    code = "conflict"


class ExpiredError(AdermError):
    """OTP absent, already used or past its TTL"""
    status_code_default = 400
    code = "expired"


class InvalidCodeError(AdermError):
    status_code_default = 400
    code = "invalid_code"

    def __init__(self, message: str = "Invalid OTP. Please check and try again."):
        super().__init__(message)


class InternalError(AdermError):
    """KV, storage or email relay failure on a primary operation"""
    status_code_default = 500
    code = "internal_error"


class EmailDeliveryError(Exception):
    """Raised by the email transport when the relay refuses or is unreachable"""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class ArchiveError(Exception):
    """Raised by the archival relay client"""
