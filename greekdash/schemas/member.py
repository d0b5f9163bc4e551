"""
Schémas Pydantic pour les membres d'un chapitre et leurs profils.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
import re

from greekdash.models.chapter import MembershipRole
from greekdash.schemas.user import validate_e164


class ProfileResponse(BaseModel):
    phone: Optional[str] = None
    major: Optional[str] = None
    grad_year: Optional[str] = None
    bio: Optional[str] = None
    phone_verified: bool = False
    sms_enabled: bool = True

    class Config:
        from_attributes = True


class MemberResponse(BaseModel):
    """Un membre du chapitre avec son profil."""
    id: int
    user_id: int
    role: MembershipRole
    created_at: datetime
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    profile: Optional[ProfileResponse] = None

    class Config:
        from_attributes = True


class MemberListResponse(BaseModel):
    items: List[MemberResponse]
    total: int


class ProfileUpdate(BaseModel):
    """Mise à jour du profil dans le contexte d'un chapitre."""
    name: str = Field(..., min_length=3, max_length=200)
    phone: Optional[str] = None
    major: Optional[str] = Field(None, max_length=200)
    grad_year: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=300)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_e164(v)

    @field_validator("grad_year")
    @classmethod
    def validate_grad_year(cls, v: Optional[str]) -> Optional[str]:
        if v and not re.match(r"^\d{4}$", v):
            raise ValueError("Graduation year must be a 4-digit year")
        return v or None


class RoleUpdate(BaseModel):
    """Changement de rôle d'un membre (OWNER et PENDING_MEMBER exclus)."""
    role: MembershipRole

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: MembershipRole) -> MembershipRole:
        if v not in (MembershipRole.MEMBER, MembershipRole.ADMIN):
            raise ValueError("Role must be MEMBER or ADMIN")
        return v
