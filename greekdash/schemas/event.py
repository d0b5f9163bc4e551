"""
Schémas Pydantic pour les événements et les RSVP.
"""

from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from greekdash.models.event import EventStatus, RSVPStatus


def to_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Convertit une date avec fuseau en UTC naïf (format stocké)."""
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


class EventCreate(BaseModel):
    """Schéma pour la création d'un événement."""
    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=5000)
    location: str = Field(..., min_length=3, max_length=200)
    start_date: datetime
    end_date: datetime
    capacity: Optional[int] = Field(None, ge=0, description="0 ou vide = illimité")
    is_public: bool = True

    @field_validator("start_date")
    @classmethod
    def validate_start_date(cls, v: datetime) -> datetime:
        v = to_naive_utc(v)
        if v <= datetime.utcnow():
            raise ValueError("Start date must be in the future")
        return v

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v: datetime, info) -> datetime:
        v = to_naive_utc(v)
        if v <= datetime.utcnow():
            raise ValueError("End date must be in the future")
        if "start_date" in info.data and v <= info.data["start_date"]:
            raise ValueError("End date must be after start date")
        return v

    @field_validator("capacity")
    @classmethod
    def zero_means_unlimited(cls, v: Optional[int]) -> Optional[int]:
        return v or None


class EventUpdate(BaseModel):
    """Mise à jour partielle d'un événement."""
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=5000)
    location: Optional[str] = Field(None, min_length=3, max_length=200)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    capacity: Optional[int] = Field(None, ge=0)
    is_public: Optional[bool] = None
    status: Optional[EventStatus] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class RSVPCounts(BaseModel):
    going: int = 0
    not_going: int = 0
    maybe: int = 0


class EventResponse(BaseModel):
    id: int
    chapter_id: int
    title: str
    description: str
    location: str
    start_date: datetime
    end_date: datetime
    capacity: Optional[int] = None
    is_public: bool
    status: EventStatus
    created_by_id: Optional[int] = None
    created_at: datetime
    rsvp_counts: RSVPCounts = RSVPCounts()
    user_rsvp: Optional[RSVPStatus] = None

    class Config:
        from_attributes = True


class EventListResponse(BaseModel):
    items: List[EventResponse]
    total: int
    page: int
    page_size: int
    pages: int


class RSVPRequest(BaseModel):
    status: RSVPStatus


class RSVPResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: RSVPStatus
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RSVPListResponse(BaseModel):
    items: List[RSVPResponse]
    total: int
    page: int
    page_size: int
    pages: int
