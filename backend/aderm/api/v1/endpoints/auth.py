"""
OTP authentication endpoints

Login and signup are passwordless: the caller asks for a 6-digit code,
then redeems it for a session token plus a JWT access token.
"""
from fastapi import APIRouter, BackgroundTasks, Depends

from aderm.api.v1.deps import get_bearer_token, get_context, get_current_user
from aderm.core.context import AppContext
from aderm.db.schemas import (
    AuthResponse,
    EmailOnlyRequest,
    OTPSentResponse,
    UserProfile,
    VerifyLoginRequest,
    VerifySignupRequest,
)

router = APIRouter(tags=["Authentication"])


@router.post("/send-otp", response_model=OTPSentResponse)
async def send_login_otp(body: EmailOnlyRequest, ctx: AppContext = Depends(get_context)):
    """Email a login code to an existing account."""
    return await ctx.auth.request_login_code(body.email)


@router.post("/send-signup-otp", response_model=OTPSentResponse)
async def send_signup_otp(body: EmailOnlyRequest, ctx: AppContext = Depends(get_context)):
    """Email a signup code to an address that has no account yet."""
    return await ctx.auth.request_signup_code(body.email)


@router.post("/verify-login-otp", response_model=AuthResponse)
def verify_login_otp(body: VerifyLoginRequest, ctx: AppContext = Depends(get_context)):
    return ctx.auth.verify_login_code(body.email, body.otp)


@router.post("/verify-otp-signup", response_model=AuthResponse)
def verify_signup_otp(
    body: VerifySignupRequest,
    background_tasks: BackgroundTasks,
    ctx: AppContext = Depends(get_context),
):
    """Create the account, claim pending requests and log the user in."""
    result = ctx.auth.verify_signup_code(body.email, body.otp, body.name, body.role)
    background_tasks.add_task(ctx.outbox.drain)
    return result


@router.post("/check-user-exists")
def check_user_exists(body: EmailOnlyRequest, ctx: AppContext = Depends(get_context)):
    return {"exists": ctx.auth.check_user_exists(body.email)}


@router.post("/logout")
def logout(
    token: str = Depends(get_bearer_token),
    current_user: UserProfile = Depends(get_current_user),
    ctx: AppContext = Depends(get_context),
):
    ctx.auth.logout(token)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/profile")
def get_profile(current_user: UserProfile = Depends(get_current_user)):
    """Get current user profile"""
    return {"user": current_user}
