"""
Modèle Chapter - Chapitres (tenants) et adhésions de leurs membres.
Chaque chapitre possède un slug unique, un code d'adhésion et un abonnement.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text,
    ForeignKey, Index, UniqueConstraint, Enum,
)
from sqlalchemy.orm import relationship

from greekdash.database import Base


class MembershipRole(str, enum.Enum):
    """Rôles d'un utilisateur dans un chapitre."""
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"
    OWNER = "OWNER"                     # Créateur du chapitre
    PENDING_MEMBER = "PENDING_MEMBER"   # Demande d'adhésion en attente


# Rôles ayant les droits d'administration
ADMIN_ROLES = (MembershipRole.ADMIN.value, MembershipRole.OWNER.value)

# Rôles des membres confirmés
ACTIVE_ROLES = (
    MembershipRole.MEMBER.value,
    MembershipRole.ADMIN.value,
    MembershipRole.OWNER.value,
)


class Chapter(Base):
    """
    Modèle représentant un chapitre de fraternité ou de sororité.

    Attributes:
        id: Identifiant unique
        name: Nom du chapitre
        slug: Identifiant URL unique (minuscules, chiffres, tirets)
        join_code: Code secret permettant de demander une adhésion
        stripe_customer_id: Client Stripe associé
        primary_color: Couleur principale (#RRGGBB)
        public_info: Présentation publique du chapitre
    """

    __tablename__ = "chapters"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(200), nullable=False)
    slug = Column(String(30), unique=True, nullable=False, index=True)
    join_code = Column(String(64), unique=True, nullable=False)

    stripe_customer_id = Column(String(255), unique=True, nullable=True)

    primary_color = Column(String(7), nullable=True)
    public_info = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    memberships = relationship(
        "Membership",
        back_populates="chapter",
        cascade="all, delete-orphan",
    )
    subscription = relationship(
        "Subscription",
        back_populates="chapter",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    invites = relationship("Invite", back_populates="chapter", cascade="all, delete-orphan")
    events = relationship("Event", back_populates="chapter", cascade="all, delete-orphan")
    contact_messages = relationship(
        "ContactMessage",
        back_populates="chapter",
        cascade="all, delete-orphan",
    )
    gallery_images = relationship(
        "GalleryImage",
        back_populates="chapter",
        cascade="all, delete-orphan",
        order_by="GalleryImage.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Chapter(id={self.id}, slug='{self.slug}')>"

    @property
    def plan(self) -> str:
        """Plan d'abonnement courant (FREE par défaut)."""
        if self.subscription is None:
            return "FREE"
        return self.subscription.plan


class Membership(Base):
    """
    Association entre utilisateurs et chapitres.

    Attributes:
        user_id: ID de l'utilisateur
        chapter_id: ID du chapitre
        role: Rôle dans ce chapitre
    """

    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    role = Column(
        Enum('MEMBER', 'ADMIN', 'OWNER', 'PENDING_MEMBER', name='membershiprole'),
        default='MEMBER',
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relations
    user = relationship("User", back_populates="memberships", lazy="joined")
    chapter = relationship("Chapter", back_populates="memberships", lazy="joined")
    profile = relationship(
        "Profile",
        back_populates="membership",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "chapter_id", name="unique_membership"),
        Index("idx_membership_chapter_role", "chapter_id", "role"),
    )

    def __repr__(self) -> str:
        return f"<Membership(user_id={self.user_id}, chapter_id={self.chapter_id}, role='{self.role}')>"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_pending(self) -> bool:
        return self.role == MembershipRole.PENDING_MEMBER.value

    @property
    def user_name(self):
        return self.user.name if self.user else None

    @property
    def user_email(self):
        return self.user.email if self.user else None


class Profile(Base):
    """
    Profil d'un membre dans un chapitre (téléphone, études, préférences SMS).
    """

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    membership_id = Column(
        Integer,
        ForeignKey("memberships.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    phone = Column(String(20), nullable=True)  # Format E.164
    major = Column(String(200), nullable=True)
    grad_year = Column(String(4), nullable=True)
    bio = Column(String(300), nullable=True)

    phone_verified = Column(Boolean, default=False, nullable=False)
    sms_enabled = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    membership = relationship("Membership", back_populates="profile")

    def __repr__(self) -> str:
        return f"<Profile(membership_id={self.membership_id})>"

    @property
    def can_receive_sms(self) -> bool:
        return bool(self.phone) and self.sms_enabled


class ContactMessage(Base):
    """Message envoyé via le formulaire de contact public d'un chapitre."""

    __tablename__ = "contact_messages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    chapter = relationship("Chapter", back_populates="contact_messages")

    __table_args__ = (
        Index("idx_contact_chapter_created", "chapter_id", "created_at"),
    )


class GalleryImage(Base):
    """Image de la galerie publique d'un chapitre."""

    __tablename__ = "gallery_images"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(Integer, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)

    image_url = Column(String(500), nullable=False)
    caption = Column(String(300), nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    chapter = relationship("Chapter", back_populates="gallery_images")
