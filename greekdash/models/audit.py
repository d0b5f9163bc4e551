"""
Journaux - Piste d'audit des actions et historique des messages envoyés.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Text,
    ForeignKey, Index, Enum, JSON,
)
from sqlalchemy.orm import relationship

from greekdash.database import Base


class AuditAction(str, enum.Enum):
    """Actions enregistrées dans la piste d'audit."""
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"
    MEMBER_JOIN_REQUESTED = "MEMBER_JOIN_REQUESTED"
    MEMBER_APPROVED = "MEMBER_APPROVED"
    MEMBER_DENIED = "MEMBER_DENIED"
    MEMBER_INVITED = "MEMBER_INVITED"
    MEMBER_INVITATION_ACCEPTED = "MEMBER_INVITATION_ACCEPTED"
    INVITE_RESENT = "INVITE_RESENT"
    INVITE_REVOKED = "INVITE_REVOKED"
    MEMBER_ROLE_CHANGED = "MEMBER_ROLE_CHANGED"
    MEMBER_REMOVED = "MEMBER_REMOVED"
    CHAPTER_SETTINGS_UPDATED = "CHAPTER_SETTINGS_UPDATED"
    CHAPTER_JOIN_CODE_REGENERATED = "CHAPTER_JOIN_CODE_REGENERATED"
    CHAPTER_SUBSCRIPTION_CHANGED = "CHAPTER_SUBSCRIPTION_CHANGED"
    CHAPTER_BROADCAST = "CHAPTER_BROADCAST"
    EVENT_CREATED = "EVENT_CREATED"
    EVENT_UPDATED = "EVENT_UPDATED"
    EVENT_DELETED = "EVENT_DELETED"
    EXPENSE_STATUS_CHANGED = "EXPENSE_STATUS_CHANGED"
    DUES_CREATED = "DUES_CREATED"
    DUES_PAID = "DUES_PAID"


class AuditTargetType(str, enum.Enum):
    """Types d'objets visés par une action."""
    USER = "USER"
    CHAPTER = "CHAPTER"
    MEMBERSHIP = "MEMBERSHIP"
    INVITE = "INVITE"
    EVENT = "EVENT"
    EXPENSE = "EXPENSE"
    DUES_PAYMENT = "DUES_PAYMENT"
    SUBSCRIPTION = "SUBSCRIPTION"


class MessageType(str, enum.Enum):
    """Canaux d'envoi."""
    EMAIL = "EMAIL"
    SMS = "SMS"


class MessageStatus(str, enum.Enum):
    SENT = "SENT"
    FAILED = "FAILED"


class AuditLog(Base):
    """
    Entrée de la piste d'audit (append-only).

    Attributes:
        user_id: Auteur de l'action
        chapter_id: Chapitre concerné
        action: Action effectuée
        target_type: Type de l'objet visé
        target_id: Identifiant de l'objet visé
        meta: Données libres (colonne JSON "metadata")
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    action = Column(String(100), nullable=False)
    target_type = Column(String(50), nullable=False)
    target_id = Column(String(100), nullable=True)
    meta = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", lazy="joined")

    __table_args__ = (
        Index("idx_audit_chapter_created", "chapter_id", "created_at"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action='{self.action}', chapter_id={self.chapter_id})>"

    @property
    def user_name(self):
        return self.user.name if self.user else None

    @property
    def user_email(self):
        return self.user.email if self.user else None


class MessageLog(Base):
    """Trace d'une tentative d'envoi d'email ou de SMS."""

    __tablename__ = "message_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    message_id = Column(String(255), unique=True, nullable=False)
    type = Column(Enum('EMAIL', 'SMS', name='messagetype'), nullable=False)
    recipient = Column(String(255), nullable=False)
    subject = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)
    status = Column(Enum('SENT', 'FAILED', name='messagestatus'), nullable=False)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_message_chapter_created", "chapter_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<MessageLog(id={self.id}, type={self.type}, status={self.status})>"
