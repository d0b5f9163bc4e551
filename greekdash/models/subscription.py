"""
Modèle Subscription - Abonnement d'un chapitre, reflet de l'état Stripe.
"""

import enum
from datetime import datetime
from typing import Dict

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from greekdash.database import Base


class SubscriptionPlan(str, enum.Enum):
    """Plans proposés."""
    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"


class SubscriptionStatus(str, enum.Enum):
    """Statuts d'abonnement (miroir des statuts Stripe)."""
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    TRIALING = "TRIALING"
    INCOMPLETE = "INCOMPLETE"


# Fonctionnalités incluses dans chaque plan
PLAN_FEATURES: Dict[str, Dict[str, bool]] = {
    "FREE": {
        "basic_finance": True,
        "budgeting": False,
        "expense_tracking": False,
        "dues_collection": False,
        "data_export": False,
        "advanced_reporting": False,
        "audit_trail": False,
    },
    "BASIC": {
        "basic_finance": True,
        "budgeting": True,
        "expense_tracking": True,
        "dues_collection": True,
        "data_export": True,
        "advanced_reporting": False,
        "audit_trail": False,
    },
    "PRO": {
        "basic_finance": True,
        "budgeting": True,
        "expense_tracking": True,
        "dues_collection": True,
        "data_export": True,
        "advanced_reporting": True,
        "audit_trail": True,
    },
}


def plan_features(plan: str) -> Dict[str, bool]:
    """Retourne la carte des fonctionnalités d'un plan (FREE si inconnu)."""
    return dict(PLAN_FEATURES.get(plan, PLAN_FEATURES["FREE"]))


class Subscription(Base):
    """
    Abonnement d'un chapitre (un seul par chapitre).

    Attributes:
        chapter_id: ID du chapitre
        plan: Plan souscrit
        status: Statut de l'abonnement
        stripe_subscription_id: Identifiant de l'abonnement Stripe
    """

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    chapter_id = Column(
        Integer,
        ForeignKey("chapters.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    plan = Column(
        Enum('FREE', 'BASIC', 'PRO', name='subscriptionplan'),
        default='FREE',
        nullable=False,
    )
    status = Column(
        Enum('ACTIVE', 'PAST_DUE', 'CANCELED', 'TRIALING', 'INCOMPLETE', name='subscriptionstatus'),
        default='ACTIVE',
        nullable=False,
    )
    stripe_subscription_id = Column(String(255), unique=True, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    chapter = relationship("Chapter", back_populates="subscription")

    def __repr__(self) -> str:
        return f"<Subscription(chapter_id={self.chapter_id}, plan={self.plan}, status={self.status})>"

    @property
    def features(self) -> Dict[str, bool]:
        return plan_features(self.plan)
