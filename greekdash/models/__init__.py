"""
Module des modèles SQLAlchemy pour GreekDash.
Définit toutes les entités de la base de données.
"""

from .user import User
from .chapter import (
    Chapter,
    Membership,
    MembershipRole,
    Profile,
    ContactMessage,
    GalleryImage,
    ADMIN_ROLES,
    ACTIVE_ROLES,
)
from .subscription import (
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    PLAN_FEATURES,
    plan_features,
)
from .invite import Invite
from .event import Event, EventRSVP, EventStatus, RSVPStatus
from .finance import (
    Budget,
    BudgetStatus,
    Expense,
    ExpenseStatus,
    DuesPayment,
    Transaction,
    TransactionType,
)
from .audit import (
    AuditLog,
    AuditAction,
    AuditTargetType,
    MessageLog,
    MessageType,
    MessageStatus,
)

__all__ = [
    # User
    "User",
    # Chapter
    "Chapter",
    "Membership",
    "MembershipRole",
    "Profile",
    "ContactMessage",
    "GalleryImage",
    "ADMIN_ROLES",
    "ACTIVE_ROLES",
    # Subscription
    "Subscription",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "PLAN_FEATURES",
    "plan_features",
    # Invite
    "Invite",
    # Event
    "Event",
    "EventRSVP",
    "EventStatus",
    "RSVPStatus",
    # Finance
    "Budget",
    "BudgetStatus",
    "Expense",
    "ExpenseStatus",
    "DuesPayment",
    "Transaction",
    "TransactionType",
    # Journaux
    "AuditLog",
    "AuditAction",
    "AuditTargetType",
    "MessageLog",
    "MessageType",
    "MessageStatus",
]
