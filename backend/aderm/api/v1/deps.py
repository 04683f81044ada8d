# aderm/api/v1/deps.py

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from aderm.core.context import AppContext
from aderm.db.schemas import UserProfile
from aderm.utils.exceptions import UnauthorizedError

security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer token")
    return credentials.credentials


# ============================================================================
# Auth Dependency
# ============================================================================

def get_current_user(
    token: str = Depends(get_bearer_token),
    ctx: AppContext = Depends(get_context),
) -> UserProfile:
    """
    Resolve the caller from either an OTP session token (``otp_session_``
    prefix, looked up in the store) or a signed JWT access token.
    """
    return ctx.auth.authenticate(token)
