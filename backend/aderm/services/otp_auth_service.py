from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

import jwt

from aderm.core import security
from aderm.core.logger import logger
from aderm.db.repositories import Repositories
from aderm.db.schemas import (
    AuthResponse,
    OTPPurpose,
    OTPRecord,
    OTPSentResponse,
    SessionToken,
    UserProfile,
    UserRole,
)
from aderm.services.audit_service import AuditService
from aderm.services.notification_service import NotificationService
from aderm.services.outbox import Outbox
from aderm.utils.exceptions import (
    ConflictError,
    EmailDeliveryError,
    ExpiredError,
    InternalError,
    InvalidCodeError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from aderm.utils.helpers import mask_email, normalize_email, utcnow
from aderm.utils.validators import email_in_domains

EXPIRED_MESSAGE = "Invalid or expired OTP. Please request a new one."


class OTPAuthService:
    """
    Passwordless login and signup with emailed one-time codes.

    Login and signup codes live in separate namespaces, so requesting one
    never invalidates the other. A verified code is deleted immediately,
    which makes every code single-use.
    """

    def __init__(
        self,
        repos: Repositories,
        notifications: NotificationService,
        audit: AuditService,
        outbox: Outbox,
        allowed_domains: Iterable[str] = ("ecobank.com",),
        otp_ttl_minutes: int = 10,
        session_ttl_minutes: int = 60,
        jwt_secret_key: str = "change-me",
        jwt_algorithm: str = "HS256",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repos = repos
        self.notifications = notifications
        self.audit = audit
        self.outbox = outbox
        self.allowed_domains = [d.strip().lower() for d in allowed_domains if d and d.strip()]
        self.otp_ttl = timedelta(minutes=otp_ttl_minutes)
        self.session_ttl = timedelta(minutes=session_ttl_minutes)
        self.jwt_secret_key = jwt_secret_key
        self.jwt_algorithm = jwt_algorithm
        self.clock = clock or utcnow

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_email(self, email: str) -> str:
        value = normalize_email(email)
        if not value:
            raise ValidationError("Email is required")
        if not email_in_domains(value, self.allowed_domains):
            allowed = ", ".join(f"@{d}" for d in self.allowed_domains)
            raise ValidationError(f"Only {allowed} email addresses are allowed")
        return value

    def _issue_code(self, purpose: OTPPurpose, email: str, user_id: Optional[str] = None) -> OTPRecord:
        now = self.clock()
        record = OTPRecord(
            code=security.generate_otp_code(),
            email=email,
            purpose=purpose,
            user_id=user_id,
            created_at=now,
            expires_at=now + self.otp_ttl,
        )
        self.repos.otps.save(record)
        return record

    async def _deliver_code(self, record: OTPRecord) -> OTPSentResponse:
        try:
            await self.notifications.send_otp(record.email, record.code, record.purpose)
        except EmailDeliveryError as exc:
            self.repos.otps.delete(record.purpose, record.email)
            raise InternalError("Failed to send OTP email. Please try again.", reason=exc.reason)
        logger.info("%s OTP sent to %s", record.purpose.value, mask_email(record.email))
        return OTPSentResponse(
            message="OTP sent to your email",
            expires_in_seconds=int(self.otp_ttl.total_seconds()),
        )

    def _redeem(self, purpose: OTPPurpose, email: str, code: str) -> OTPRecord:
        """Shared expiry and mismatch checks. Deletes the record on success."""
        record = self.repos.otps.get(purpose, email)
        if record is None or record.verified:
            raise ExpiredError(EXPIRED_MESSAGE)
        # A code presented at exactly expires_at is still accepted
        if self.clock() > record.expires_at:
            self.repos.otps.delete(purpose, email)
            raise ExpiredError(EXPIRED_MESSAGE)
        if not security.codes_match(record.code, code):
            raise InvalidCodeError()
        self.repos.otps.delete(purpose, email)
        return record

    def _open_session(self, user: UserProfile) -> AuthResponse:
        now = self.clock()
        expires_at = now + self.session_ttl
        token = security.generate_session_token()
        self.repos.sessions.save(
            token,
            SessionToken(user_id=user.id, email=user.email, created_at=now, expires_at=expires_at),
        )
        access_token = security.create_access_token(
            {"sub": user.id, "sid": token, "email": user.email, "role": user.role.value},
            self.jwt_secret_key,
            algorithm=self.jwt_algorithm,
            expires_at=expires_at,
        )
        return AuthResponse(user=user, session_token=token, access_token=access_token, expires_at=expires_at)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def request_login_code(self, email: str) -> OTPSentResponse:
        email = self._check_email(email)
        user = self.repos.users.get_by_email(email)
        if user is None:
            raise NotFoundError("No account found for this email. Please sign up first.")
        record = self._issue_code(OTPPurpose.login, email, user_id=user.id)
        return await self._deliver_code(record)

    def verify_login_code(self, email: str, code: str) -> AuthResponse:
        email = normalize_email(email)
        if not email or not (code or "").strip():
            raise ValidationError("Email and OTP are required")
        self._redeem(OTPPurpose.login, email, code)
        user = self.repos.users.get_by_email(email)
        if user is None:
            raise NotFoundError("User profile not found")
        result = self._open_session(user)
        self.audit.append("user_login", user.id, {"email": user.email, "login_method": "otp"})
        logger.info("User %s logged in", user.id)
        return result

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    async def request_signup_code(self, email: str) -> OTPSentResponse:
        email = self._check_email(email)
        if self.repos.users.get_by_email(email) is not None:
            raise ConflictError("An account with this email already exists. Please log in.")
        record = self._issue_code(OTPPurpose.signup, email)
        return await self._deliver_code(record)

    def verify_signup_code(self, email: str, code: str, name: str, role: Optional[str] = None) -> AuthResponse:
        email = self._check_email(email)
        name = (name or "").strip()
        if not name or not (code or "").strip():
            raise ValidationError("Email, OTP and name are required")
        try:
            user_role = UserRole((role or UserRole.auditee.value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")

        self._redeem(OTPPurpose.signup, email, code)
        if self.repos.users.get_by_email(email) is not None:
            raise ConflictError("An account with this email already exists")

        now = self.clock()
        user = UserProfile(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            role=user_role,
            created_at=now,
            email_verified=True,
        )
        self.repos.users.save(user)
        self._claim_pending_requests(user)
        self.audit.append("user_created", user.id, {"email": email, "name": name, "role": user_role.value})

        self.outbox.enqueue(f"welcome_email:{user.id}", lambda: self.notifications.send_welcome(user))
        logger.info("User %s created with role %s", user.id, user_role.value)
        return self._open_session(user)

    def _claim_pending_requests(self, user: UserProfile) -> int:
        claimed = 0
        for request in self.repos.requests.list_pending_for_email(user.email):
            updated = request.model_copy(
                update={"assigned_to": user.id, "pending_assignment": False, "updated_at": self.clock()}
            )
            self.repos.requests.save(updated)
            self.audit.append(
                "auto_assigned_request",
                user.id,
                {"email": user.email, "request_title": request.title},
                request_id=request.id,
            )
            claimed += 1
        if claimed:
            logger.info("Assigned %d pending request(s) to new user %s", claimed, user.id)
        return claimed

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def check_user_exists(self, email: str) -> bool:
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")
        return self.repos.users.get_by_email(email) is not None

    def _decode(self, token: str) -> dict:
        try:
            return security.decode_access_token(token, self.jwt_secret_key, self.jwt_algorithm)
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("Token expired")
        except jwt.PyJWTError:
            raise UnauthorizedError("Invalid token")

    def _session_token_for(self, token: str) -> str:
        """The session record a bearer credential is bound to."""
        if security.is_session_token(token):
            return token
        sid = self._decode(token).get("sid")
        if not sid:
            raise UnauthorizedError("Invalid token")
        return sid

    def logout(self, token: str) -> None:
        """Ends the session, which revokes both the session token and its JWT."""
        self.repos.sessions.delete(self._session_token_for(token))

    def resolve_session(self, token: str) -> UserProfile:
        session = self.repos.sessions.get(token)
        if session is None:
            raise UnauthorizedError("Invalid session")
        if self.clock() > session.expires_at:
            self.repos.sessions.delete(token)
            raise UnauthorizedError("Session expired")
        user = self.repos.users.get(session.user_id)
        if user is None:
            raise UnauthorizedError("User not found")
        return user

    def resolve_access_token(self, token: str) -> UserProfile:
        payload = self._decode(token)
        sid = payload.get("sid")
        if not sid:
            raise UnauthorizedError("Invalid token")
        user = self.resolve_session(sid)
        if user.id != payload.get("sub"):
            raise UnauthorizedError("Invalid token")
        return user

    def authenticate(self, token: str) -> UserProfile:
        token = (token or "").strip()
        if not token:
            raise UnauthorizedError("Missing bearer token")
        if security.is_session_token(token):
            return self.resolve_session(token)
        return self.resolve_access_token(token)
