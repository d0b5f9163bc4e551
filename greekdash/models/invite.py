"""
Modèle Invite - Invitations nominatives à rejoindre un chapitre.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime,
    ForeignKey, Index, Enum,
)
from sqlalchemy.orm import relationship

from greekdash.database import Base


class Invite(Base):
    """
    Invitation envoyée par email, identifiée par un token.

    Attributes:
        email: Adresse invitée
        token: Token unique transmis dans le lien d'invitation
        role: Rôle attribué à l'acceptation (MEMBER ou ADMIN)
        expires_at: Date d'expiration
        accepted: Invitation utilisée
        accepted_by_id: Utilisateur ayant accepté
        created_by_id: Administrateur ayant invité
    """

    __tablename__ = "invites"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    email = Column(String(255), nullable=False)
    token = Column(String(128), unique=True, nullable=False, index=True)
    role = Column(
        Enum('MEMBER', 'ADMIN', name='inviterole'),
        default='MEMBER',
        nullable=False,
    )

    expires_at = Column(DateTime, nullable=False)
    accepted = Column(Boolean, default=False, nullable=False)
    accepted_at = Column(DateTime, nullable=True)
    accepted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    chapter = relationship("Chapter", back_populates="invites", lazy="joined")
    created_by = relationship("User", foreign_keys=[created_by_id])

    __table_args__ = (
        Index("idx_invite_chapter_email", "chapter_id", "email"),
    )

    def __repr__(self) -> str:
        return f"<Invite(id={self.id}, email='{self.email}', accepted={self.accepted})>"

    @property
    def is_expired(self) -> bool:
        return self.expires_at < datetime.utcnow()

    @property
    def is_active(self) -> bool:
        """Invitation encore utilisable."""
        return not self.accepted and not self.is_expired
