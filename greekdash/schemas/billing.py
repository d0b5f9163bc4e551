"""
Schémas Pydantic pour la facturation Stripe.
"""

from typing import Dict, Optional
from pydantic import BaseModel, Field

from greekdash.models.subscription import SubscriptionPlan


class BillingStats(BaseModel):
    member_count: int
    pending_member_count: int
    event_count: int


class BillingOverview(BaseModel):
    """Vue d'ensemble de l'abonnement d'un chapitre."""
    plan: SubscriptionPlan
    status: str
    stripe_subscription_id: Optional[str] = None
    has_customer: bool
    features: Dict[str, bool]
    stats: BillingStats


class PlanChangeRequest(BaseModel):
    plan: SubscriptionPlan


class PlanChangeResponse(BaseModel):
    plan: SubscriptionPlan
    status: Optional[str] = None
    checkout_url: Optional[str] = None


class SubscriptionCheckoutRequest(BaseModel):
    plan_id: str = Field(..., pattern="^(basic|pro)$", description="basic ou pro")


class BillingUrlResponse(BaseModel):
    url: str


class WebhookAck(BaseModel):
    received: bool = True
