import hashlib
import logging
import time
import httpx
from urllib.parse import quote
from supabase import Client
from dining_journal.modules.auth.schemas import (
    LoginRequest, RegisterRequest, TokenResponse, RegisterResponse, CallbackResponse
)
from dining_journal.config.settings import settings
from dining_journal.core.exceptions import AuthenticationRequiredError, translate_store_error
from fastapi import HTTPException
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def _cache_key(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _callback_url(self, invite_code: Optional[str] = None) -> str:
        url = f"{settings.frontend_base_url.rstrip('/')}/auth/callback?type=email"
        if invite_code:
            url += f"&invite={quote(invite_code.strip().upper())}"
        return url

    def register(self, register_data: RegisterRequest) -> RegisterResponse:
        """Register a new user using Supabase Auth; the user confirms by email"""
        try:
            user_metadata = {}
            if register_data.full_name:
                user_metadata["full_name"] = register_data.full_name

            auth_response = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {
                    "data": user_metadata,
                    "email_redirect_to": self._callback_url(register_data.invite_code)
                }
            })

            if not auth_response.user:
                raise HTTPException(status_code=400, detail="Failed to register user")

            logger.info(f"Registered user {auth_response.user.id}")
            return RegisterResponse(
                user_id=auth_response.user.id,
                email=auth_response.user.email or register_data.email,
                message="Check your email to confirm your account"
            )
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise HTTPException(status_code=400, detail="User already exists")
            logger.error(f"Registration failed: {error_message}")
            raise HTTPException(status_code=500, detail="Registration failed")

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate user using Supabase Auth"""
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })

            if not auth_response.user or not auth_response.session:
                raise HTTPException(status_code=401, detail="Invalid email or password")

            return TokenResponse(
                access_token=auth_response.session.access_token,
                token_type="bearer",
                user_id=auth_response.user.id,
                email=auth_response.user.email or login_data.email
            )
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise HTTPException(status_code=401, detail="Invalid email or password")
            logger.error(f"Login failed: {error_message}")
            raise translate_store_error(e)

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = _cache_key(token)
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise AuthenticationRequiredError("Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "created_at": user.created_at,
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            if isinstance(e, httpx.HTTPError):
                raise translate_store_error(e)
            logger.debug(f"Token rejected: {e}")
            raise AuthenticationRequiredError("Invalid or expired token")

    def logout(self, token: str) -> bool:
        """Logout user using Supabase Auth"""
        _AUTH_USER_CACHE.pop(_cache_key(token), None)
        try:
            # Supabase tokens are stateless JWTs; they expire on their own
            self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Sign out failed: {e}")
            return False

    def send_password_reset(self, email: str) -> None:
        """Ask Supabase to email a reset link. Unknown addresses are not revealed to the caller."""
        try:
            self.supabase.auth.reset_password_for_email(
                email,
                {"redirect_to": f"{settings.frontend_base_url.rstrip('/')}/auth/reset-password"}
            )
        except Exception as e:
            logger.warning(f"Password reset request failed for {email}: {e}")

    def _callback_response(self, auth_response, invite_code: Optional[str], next_path: str) -> CallbackResponse:
        if not auth_response or not auth_response.session or not auth_response.user:
            raise AuthenticationRequiredError("Confirmation link is invalid or has expired")

        redirect_to = next_path if next_path.startswith("/") and not next_path.startswith("//") else "/dashboard"
        if invite_code:
            redirect_to = f"/dashboard/family/join?code={quote(invite_code.strip().upper())}"

        return CallbackResponse(
            access_token=auth_response.session.access_token,
            user_id=auth_response.user.id,
            redirect_to=redirect_to
        )

    def confirm_email(self, token_hash: str, otp_type: str = "email", invite_code: Optional[str] = None, next_path: str = "/dashboard") -> CallbackResponse:
        """
        Verify the token hash from a confirmation email and open a session.

        The Supabase confirmation template must link to
        {{ .RedirectTo }}&token_hash={{ .TokenHash }}; sign-ups from this API
        carry no PKCE verifier, so the code flow cannot confirm them.
        """
        try:
            auth_response = self.supabase.auth.verify_otp({"token_hash": token_hash, "type": otp_type})
        except Exception as e:
            if isinstance(e, httpx.HTTPError):
                raise translate_store_error(e)
            logger.warning(f"Email confirmation failed: {e}")
            raise AuthenticationRequiredError("Confirmation link is invalid or has expired")
        return self._callback_response(auth_response, invite_code, next_path)

    def exchange_code(self, code: str, code_verifier: str, invite_code: Optional[str] = None, next_path: str = "/dashboard") -> CallbackResponse:
        """Exchange a PKCE auth code for a session; the caller holds the verifier that started the flow"""
        try:
            auth_response = self.supabase.auth.exchange_code_for_session({
                "auth_code": code,
                "code_verifier": code_verifier
            })
        except Exception as e:
            if isinstance(e, httpx.HTTPError):
                raise translate_store_error(e)
            logger.warning(f"Code exchange failed: {e}")
            raise AuthenticationRequiredError("Confirmation link is invalid or has expired")
        return self._callback_response(auth_response, invite_code, next_path)
