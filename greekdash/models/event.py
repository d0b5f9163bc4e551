"""
Modèle Event - Événements d'un chapitre et réponses (RSVP) des membres.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, Index, CheckConstraint, UniqueConstraint, Enum,
)
from sqlalchemy.orm import relationship

from greekdash.database import Base


class EventStatus(str, enum.Enum):
    """Statuts d'un événement."""
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class RSVPStatus(str, enum.Enum):
    """Réponses possibles à un événement."""
    GOING = "GOING"
    NOT_GOING = "NOT_GOING"
    MAYBE = "MAYBE"


class Event(Base):
    """
    Modèle représentant un événement.

    Attributes:
        title: Titre (3 à 100 caractères)
        description: Description (10 à 5000 caractères)
        location: Lieu
        start_date: Début
        end_date: Fin (après le début)
        capacity: Nombre maximum de participants (None = illimité)
        is_public: Visible sur la page publique du chapitre
        status: Statut de l'événement
    """

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    location = Column(String(200), nullable=False)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    capacity = Column(Integer, nullable=True)
    is_public = Column(Boolean, default=True, nullable=False)
    status = Column(
        Enum('UPCOMING', 'ONGOING', 'COMPLETED', 'CANCELED', name='eventstatus'),
        default='UPCOMING',
        nullable=False,
    )

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    chapter = relationship("Chapter", back_populates="events")
    rsvps = relationship(
        "EventRSVP",
        back_populates="event",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_event_chapter_start", "chapter_id", "start_date"),
        CheckConstraint("end_date > start_date", name="valid_event_dates"),
        CheckConstraint("capacity IS NULL OR capacity > 0", name="positive_capacity"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title='{self.title}', status={self.status})>"

    @property
    def rsvp_counts(self) -> dict:
        """Compte les réponses par statut."""
        counts = {"going": 0, "not_going": 0, "maybe": 0}
        for rsvp in self.rsvps:
            counts[rsvp.status.lower()] += 1
        return counts

    @property
    def going_count(self) -> int:
        return len([r for r in self.rsvps if r.status == RSVPStatus.GOING.value])

    @property
    def is_full(self) -> bool:
        return self.capacity is not None and self.going_count >= self.capacity


class EventRSVP(Base):
    """Réponse d'un utilisateur à un événement (une seule par utilisateur)."""

    __tablename__ = "event_rsvps"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    status = Column(
        Enum('GOING', 'NOT_GOING', 'MAYBE', name='rsvpstatus'),
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    event = relationship("Event", back_populates="rsvps")
    user = relationship("User", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="unique_rsvp"),
        Index("idx_rsvp_event_status", "event_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<EventRSVP(event_id={self.event_id}, user_id={self.user_id}, status={self.status})>"

    @property
    def user_name(self):
        return self.user.name if self.user else None

    @property
    def user_email(self):
        return self.user.email if self.user else None
