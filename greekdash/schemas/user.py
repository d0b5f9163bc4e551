"""
Schémas Pydantic pour les utilisateurs et l'authentification.
Validation des données d'entrée et sérialisation des réponses.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
import re


SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


def validate_password_strength(v: str) -> str:
    """Valide la complexité d'un mot de passe."""
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", v):
        raise ValueError("Password must contain at least one number")
    return v


def validate_e164(v: Optional[str]) -> Optional[str]:
    """Valide un numéro au format E.164 (espaces et tirets ignorés)."""
    if v is None or v == "":
        return None
    cleaned = re.sub(r"[\s\-()]", "", v)
    if not E164_PATTERN.match(cleaned):
        raise ValueError("Phone number must be in E.164 format (e.g. +12125551234)")
    return cleaned


class RegisterRequest(BaseModel):
    """Inscription : création d'un compte et de son chapitre."""
    full_name: str = Field(..., min_length=3, max_length=200, description="Nom complet")
    email: EmailStr = Field(..., description="Adresse email")
    chapter_slug: str = Field(..., min_length=3, max_length=30, description="URL du chapitre")
    password: str = Field(..., min_length=8, max_length=100, description="Mot de passe")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("chapter_slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        """Le slug ne contient que des minuscules, chiffres et tirets."""
        v = v.lower()
        if not SLUG_PATTERN.match(v):
            raise ValueError(
                "Chapter URL must only contain lowercase letters, numbers, and hyphens"
            )
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class RegisterResponse(BaseModel):
    message: str
    user_id: int
    chapter_slug: str


class UserLogin(BaseModel):
    """Schéma pour la connexion."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str


class Token(BaseModel):
    """Schéma pour les tokens JWT."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Durée de validité en secondes")


class MembershipSummary(BaseModel):
    """Adhésion telle qu'embarquée dans le token et renvoyée par /me."""
    id: int
    role: str
    chapter_id: int
    chapter_slug: str
    chapter_name: Optional[str] = None


class UserResponse(BaseModel):
    """Schéma de réponse pour un utilisateur."""
    id: int
    email: EmailStr
    name: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class MeResponse(UserResponse):
    memberships: List[MembershipSummary] = []


class PasswordChange(BaseModel):
    """Schéma pour le changement de mot de passe."""
    current_password: str = Field(..., description="Mot de passe actuel")
    new_password: str = Field(..., min_length=8, description="Nouveau mot de passe")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return validate_password_strength(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Schéma pour confirmer la réinitialisation."""
    token: str = Field(..., min_length=1, description="Token de réinitialisation")
    password: str = Field(..., min_length=8, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class PhoneSettingsUpdate(BaseModel):
    """Numéro de téléphone et préférence SMS de l'utilisateur."""
    phone: str = Field(..., min_length=3, max_length=20)
    sms_enabled: bool = True

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        cleaned = validate_e164(v)
        if cleaned is None:
            raise ValueError("Phone number is required")
        return cleaned


class PhoneSettingsResponse(BaseModel):
    phone: str
    sms_enabled: bool
    profiles_updated: int


class MessageResponse(BaseModel):
    message: str
