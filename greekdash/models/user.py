"""
Modèle User - Comptes utilisateurs de la plateforme GreekDash.
Un utilisateur peut appartenir à plusieurs chapitres via ses adhésions.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from sqlalchemy.orm import relationship

from greekdash.database import Base


class User(Base):
    """
    Modèle représentant un utilisateur.

    Attributes:
        id: Identifiant unique
        email: Adresse email (unique, stockée en minuscules)
        name: Nom complet
        hashed_password: Mot de passe hashé (bcrypt)
        is_active: Compte actif ou non
        reset_token: Token de réinitialisation du mot de passe
        reset_token_expires: Expiration du token de réinitialisation
        last_login: Date de dernière connexion
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Authentification
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)

    name = Column(String(200), nullable=True)
    image = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # Réinitialisation du mot de passe
    reset_token = Column(String(255), nullable=True, unique=True)
    reset_token_expires = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relations
    memberships = relationship(
        "Membership",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_user_email_active", "email", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"

    @property
    def first_name(self) -> str:
        """Premier mot du nom, utilisé pour nommer le chapitre par défaut."""
        if not self.name:
            return ""
        return self.name.split(" ")[0]

    def membership_for(self, chapter_id: int):
        """Retourne l'adhésion de l'utilisateur au chapitre, ou None."""
        for membership in self.memberships:
            if membership.chapter_id == chapter_id:
                return membership
        return None
