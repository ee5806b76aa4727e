from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def display_name(profile: Optional[dict]) -> str:
    """Full name, else the local part of the email."""
    if not profile:
        return "Unknown"
    if profile.get("full_name"):
        return profile["full_name"]
    email = profile.get("email") or ""
    return email.split("@")[0] or "Unknown"
