"""
Routes de facturation d'un chapitre - Abonnement, Checkout et portail Stripe.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.core.logging import logger
from greekdash.models.chapter import Membership, MembershipRole, ACTIVE_ROLES
from greekdash.models.event import Event
from greekdash.models.subscription import SubscriptionPlan, SubscriptionStatus, plan_features
from greekdash.models.audit import AuditAction, AuditTargetType
from greekdash.schemas.billing import (
    BillingOverview,
    BillingStats,
    PlanChangeRequest,
    PlanChangeResponse,
    SubscriptionCheckoutRequest,
    BillingUrlResponse,
)
from greekdash.api.deps import ChapterContext, chapter_admin, chapter_owner
from greekdash.services.audit_service import log_audit_entry
from greekdash.services.billing_service import billing_service


router = APIRouter()


@router.get(
    "/",
    response_model=BillingOverview,
    summary="Abonnement du chapitre",
)
async def get_billing_overview(
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Plan, statut, fonctionnalités incluses et statistiques d'usage du chapitre.
    """
    chapter = ctx.chapter
    subscription = chapter.subscription

    member_count = db.query(func.count(Membership.id)).filter(
        Membership.chapter_id == chapter.id,
        Membership.role.in_(ACTIVE_ROLES),
    ).scalar()
    pending_count = db.query(func.count(Membership.id)).filter(
        Membership.chapter_id == chapter.id,
        Membership.role == MembershipRole.PENDING_MEMBER.value,
    ).scalar()
    event_count = db.query(func.count(Event.id)).filter(
        Event.chapter_id == chapter.id,
    ).scalar()

    return BillingOverview(
        plan=chapter.plan,
        status=subscription.status if subscription else SubscriptionStatus.ACTIVE.value,
        stripe_subscription_id=subscription.stripe_subscription_id if subscription else None,
        has_customer=bool(chapter.stripe_customer_id),
        features=plan_features(chapter.plan),
        stats=BillingStats(
            member_count=member_count or 0,
            pending_member_count=pending_count or 0,
            event_count=event_count or 0,
        ),
    )


@router.post(
    "/",
    response_model=PlanChangeResponse,
    summary="Changer de plan",
)
async def change_plan(
    data: PlanChangeRequest,
    ctx: ChapterContext = Depends(chapter_owner),
    db: Session = Depends(get_db),
) -> Any:
    """
    Change le plan du chapitre. Réservé au propriétaire.

    - **FREE**: appliqué immédiatement
    - **BASIC** / **PRO**: renvoie l'URL Checkout Stripe à suivre
    """
    chapter = ctx.chapter

    if data.plan == SubscriptionPlan.FREE:
        previous_plan = chapter.plan
        subscription = billing_service.change_plan_to_free(db, chapter)

        logger.info(f"Chapitre {chapter.slug} repassé au plan FREE ({previous_plan})")

        log_audit_entry(
            db,
            chapter_id=chapter.id,
            user_id=ctx.user.id,
            action=AuditAction.CHAPTER_SUBSCRIPTION_CHANGED,
            target_type=AuditTargetType.SUBSCRIPTION,
            target_id=subscription.id,
            metadata={"from": previous_plan, "to": SubscriptionPlan.FREE.value},
        )

        return PlanChangeResponse(plan=SubscriptionPlan.FREE, status=subscription.status)

    checkout_url = billing_service.create_subscription_checkout(
        db, chapter, data.plan.value.lower(), ctx.user.email
    )
    return PlanChangeResponse(plan=data.plan, checkout_url=checkout_url)


@router.post(
    "/checkout",
    response_model=BillingUrlResponse,
    summary="Session Checkout d'abonnement",
)
async def create_checkout(
    data: SubscriptionCheckoutRequest,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    url = billing_service.create_subscription_checkout(
        db, ctx.chapter, data.plan_id, ctx.user.email
    )
    return BillingUrlResponse(url=url)


@router.post(
    "/portal",
    response_model=BillingUrlResponse,
    summary="Portail de facturation Stripe",
)
async def create_portal(
    ctx: ChapterContext = Depends(chapter_admin),
) -> Any:
    url = billing_service.create_portal_session(ctx.chapter)
    return BillingUrlResponse(url=url)
