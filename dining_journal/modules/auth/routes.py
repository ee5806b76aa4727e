from fastapi import APIRouter, Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from dining_journal.database.supabase_client import get_supabase
from dining_journal.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse,
    PasswordResetRequest, MessageResponse, CallbackResponse, EmailOtpType
)
from dining_journal.modules.auth.service import AuthService
from dining_journal.core.dependencies import get_auth_service, get_current_user_id, get_user_membership
from dining_journal.core.exceptions import AuthenticationRequiredError, RecordValidationError
from dining_journal.config.family_roles import get_role_permissions
from supabase import Client
from typing import Dict, Optional

router = APIRouter(prefix="/auth", tags=["auth"])

# Security scheme for JWT Bearer token
security = HTTPBearer(auto_error=False)


def get_current_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    if credentials is None:
        raise AuthenticationRequiredError()
    return credentials.credentials


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user; Supabase sends the confirmation email"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token"""
    return service.login(login_data)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """Logout and invalidate token"""
    service.logout(token)
    return {"message": "Logged out successfully"}


@router.post("/password-reset", response_model=MessageResponse)
async def password_reset(
    request: PasswordResetRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Send a password reset email. Always answers the same way."""
    service.send_password_reset(request.email)
    return {"message": "If the address is registered, a reset link is on its way"}


@router.get("/callback", response_model=CallbackResponse)
async def auth_callback(
    token_hash: Optional[str] = None,
    type: EmailOtpType = "email",
    code: Optional[str] = None,
    code_verifier: Optional[str] = None,
    invite: Optional[str] = None,
    next: str = "/dashboard",
    service: AuthService = Depends(get_auth_service)
):
    """
    Email confirmation callback.

    Confirmation emails carry token_hash; PKCE clients send code together
    with the code_verifier they generated.
    """
    if token_hash:
        return service.confirm_email(token_hash, otp_type=type, invite_code=invite, next_path=next)
    if code and code_verifier:
        return service.exchange_code(code, code_verifier, invite_code=invite, next_path=next)
    raise RecordValidationError("Confirmation link needs token_hash, or code with code_verifier")


@router.get("/me")
async def get_current_user(
    current_user: Dict = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase),
):
    """Current user, their family membership and what their role allows."""
    membership = get_user_membership(current_user["id"], supabase)
    permissions = sorted(get_role_permissions(membership["role"])) if membership else []
    return {**current_user, "membership": membership, "permissions": permissions}
