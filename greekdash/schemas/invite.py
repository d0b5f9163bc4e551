"""
Schémas Pydantic pour les invitations.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from greekdash.models.chapter import MembershipRole
from greekdash.schemas.user import validate_password_strength


class InviteCreate(BaseModel):
    """Invitation d'une adresse email avec un rôle."""
    email: EmailStr
    role: MembershipRole = Field(default=MembershipRole.MEMBER)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: MembershipRole) -> MembershipRole:
        if v not in (MembershipRole.MEMBER, MembershipRole.ADMIN):
            raise ValueError("Invites can only grant MEMBER or ADMIN")
        return v


class InviteResponse(BaseModel):
    id: int
    email: str
    role: str
    expires_at: datetime
    accepted: bool
    accepted_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InviteListResponse(BaseModel):
    items: List[InviteResponse]
    total: int


class InviteChapterInfo(BaseModel):
    name: str
    slug: str


class InviteValidation(BaseModel):
    valid: bool
    email: str
    role: str
    chapter: InviteChapterInfo
    expires_at: datetime


class InviteAccept(BaseModel):
    """Acceptation d'une invitation."""
    token: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=3, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class InviteAcceptResponse(BaseModel):
    message: str
    chapter_slug: str
    role: str
