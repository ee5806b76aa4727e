from pydantic import BaseModel, EmailStr, model_validator
from typing import Literal, Optional
from dining_journal.config.settings import settings

# Supabase email link types accepted by verify_otp
EmailOtpType = Literal["signup", "invite", "magiclink", "recovery", "email_change", "email"]


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    confirm_password: str
    full_name: Optional[str] = None
    invite_code: Optional[str] = None  # carried through the confirmation email

    @model_validator(mode="after")
    def check_passwords(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if len(self.password) < settings.password_min_length:
            raise ValueError(f"Password must be at least {settings.password_min_length} characters")
        return self


class RegisterResponse(BaseModel):
    user_id: str
    email: str
    message: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class CallbackResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    redirect_to: str
