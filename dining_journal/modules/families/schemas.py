from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime


class FamilyCreate(BaseModel):
    name: str = Field(..., max_length=100)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Family name is required")
        return v


class FamilyUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)


class FamilyResponse(BaseModel):
    id: str
    name: str
    invite_code: str
    created_by: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FamilyJoin(BaseModel):
    invite_code: str


class FamilyMemberResponse(BaseModel):
    id: str
    family_id: str
    user_id: str
    role: str
    nickname: Optional[str] = None
    joined_at: Optional[datetime] = None
    display_name: Optional[str] = None
    email: Optional[str] = None

    class Config:
        from_attributes = True


class MembershipResponse(BaseModel):
    family: FamilyResponse
    role: str
    members: List[FamilyMemberResponse] = []


class MemberRoleUpdate(BaseModel):
    role: Literal["admin", "member"]


class OwnershipTransfer(BaseModel):
    new_owner_id: str
