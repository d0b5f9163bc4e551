"""
Schémas Pydantic pour les chapitres, les demandes d'adhésion et les pages publiques.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
import re

from greekdash.schemas.user import validate_password_strength


HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


class SlugAvailability(BaseModel):
    available: bool


class SubscriptionSummary(BaseModel):
    plan: str
    status: str

    class Config:
        from_attributes = True


class ChapterResponse(BaseModel):
    """Détails d'un chapitre pour ses membres."""
    id: int
    name: str
    slug: str
    primary_color: Optional[str] = None
    public_info: Optional[str] = None
    join_code: Optional[str] = None
    subscription: Optional[SubscriptionSummary] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ChapterSettingsUpdate(BaseModel):
    """Paramètres modifiables par un administrateur."""
    name: str = Field(..., min_length=1, max_length=200)
    primary_color: Optional[str] = None
    public_info: Optional[str] = Field(None, max_length=5000)

    @field_validator("primary_color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        if v and not HEX_COLOR_PATTERN.match(v):
            raise ValueError("Invalid color format. Please use hex format (e.g. #123ABC)")
        return v or None


class JoinCodeResponse(BaseModel):
    join_code: str


class JoinChapterRequest(BaseModel):
    """Demande d'adhésion via le code du chapitre."""
    full_name: str = Field(..., min_length=3, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    join_code: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class JoinChapterResponse(BaseModel):
    message: str
    membership_id: int
    role: str


# ============== Pages publiques ==============

class ContactMessageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    message: str = Field(..., min_length=10, max_length=5000)


class ContactMessageResponse(BaseModel):
    id: int
    name: str
    email: str
    message: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class GalleryImageCreate(BaseModel):
    image_url: str = Field(..., min_length=1, max_length=500)
    caption: Optional[str] = Field(None, max_length=300)


class GalleryImageResponse(BaseModel):
    id: int
    image_url: str
    caption: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PublicEventSummary(BaseModel):
    id: int
    title: str
    location: str
    start_date: datetime
    end_date: datetime

    class Config:
        from_attributes = True


class ChapterPublicResponse(BaseModel):
    """Informations visibles sans authentification."""
    name: str
    slug: str
    public_info: Optional[str] = None
    primary_color: Optional[str] = None
    events: List[PublicEventSummary] = []
    gallery: List[GalleryImageResponse] = []
