# aderm/core/security.py

import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

OTP_SESSION_PREFIX = "otp_session_"


def generate_otp_code() -> str:
    """Random 6-digit code, never starting with 0."""
    return str(secrets.randbelow(900000) + 100000)


def codes_match(expected: str, submitted: str) -> bool:
    return hmac.compare_digest((expected or "").encode(), (submitted or "").strip().encode())


def generate_session_token() -> str:
    return f"{OTP_SESSION_PREFIX}{secrets.token_hex(24)}"


def is_session_token(token: str) -> bool:
    return (token or "").startswith(OTP_SESSION_PREFIX)


def create_access_token(
    data: Dict[str, Any],
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
    expires_at: Optional[datetime] = None,
) -> str:
    to_encode = dict(data)
    if expires_at is None:
        expires_at = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode["exp"] = expires_at
    to_encode.setdefault("iat", datetime.now(timezone.utc))
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """Raises jwt.PyJWTError (including ExpiredSignatureError) on a bad token."""
    return jwt.decode(token, secret_key, algorithms=[algorithm])
