"""
Service de facturation Stripe.
Clients, sessions Checkout (abonnement et cotisations), portail de facturation
et traitement des webhooks.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.orm import Session

from greekdash.config import settings
from greekdash.core.exceptions import (
    BillingConfigurationError,
    BusinessRuleError,
    InvalidWebhookSignature,
)
from greekdash.core.logging import logger, log_billing_event
from greekdash.models.chapter import Chapter
from greekdash.models.finance import DuesPayment, Transaction, TransactionType
from greekdash.models.subscription import (
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from greekdash.services.finance_service import mark_dues_paid


# Statuts Stripe -> statuts locaux
STRIPE_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE.value,
    "past_due": SubscriptionStatus.PAST_DUE.value,
    "canceled": SubscriptionStatus.CANCELED.value,
    "trialing": SubscriptionStatus.TRIALING.value,
    "incomplete": SubscriptionStatus.INCOMPLETE.value,
}


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Lecture d'un champ d'objet Stripe ou de dict."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError):
        return default
    return default if value is None else value


def map_subscription_status(stripe_status: Optional[str]) -> str:
    """Convertit un statut Stripe ; un statut inconnu devient ACTIVE."""
    status = STRIPE_STATUS_MAP.get((stripe_status or "").lower())
    if status is None:
        logger.warning(f"Statut d'abonnement inconnu: {stripe_status}, ACTIVE par défaut")
        return SubscriptionStatus.ACTIVE.value
    return status


def plan_from_price_id(price_id: Optional[str]) -> str:
    """Déduit le plan à partir de l'identifiant de prix Stripe."""
    if not price_id:
        return SubscriptionPlan.FREE.value
    if price_id == settings.STRIPE_PRO_PRICE_ID or "pro" in price_id.lower():
        return SubscriptionPlan.PRO.value
    if price_id == settings.STRIPE_BASIC_PRICE_ID or "basic" in price_id.lower():
        return SubscriptionPlan.BASIC.value
    return SubscriptionPlan.FREE.value


def upsert_subscription(
    db: Session,
    chapter: Chapter,
    plan: str,
    status: str,
    stripe_subscription_id: Optional[str] = None,
) -> Subscription:
    """Crée ou met à jour l'abonnement d'un chapitre (sans commit)."""
    subscription = db.query(Subscription).filter(
        Subscription.chapter_id == chapter.id,
    ).first()

    if subscription is None:
        subscription = Subscription(chapter_id=chapter.id)
        db.add(subscription)

    subscription.plan = plan
    subscription.status = status
    if stripe_subscription_id:
        subscription.stripe_subscription_id = stripe_subscription_id

    return subscription


class BillingService:
    """Intégration Stripe d'un chapitre."""

    def _configure(self) -> None:
        if not settings.STRIPE_SECRET_KEY:
            raise BillingConfigurationError("Stripe is not configured")
        stripe.api_key = settings.STRIPE_SECRET_KEY

    def price_for_plan(self, plan_id: str) -> str:
        """
        Retourne le prix Stripe d'un plan payant.

        Raises:
            BusinessRuleError: Plan inconnu
            BillingConfigurationError: Prix non configuré
        """
        plan_id = plan_id.lower()
        if plan_id == "basic":
            price_id = settings.STRIPE_BASIC_PRICE_ID
        elif plan_id == "pro":
            price_id = settings.STRIPE_PRO_PRICE_ID
        else:
            raise BusinessRuleError("Invalid plan selected")

        if not price_id:
            raise BillingConfigurationError(
                f"Stripe price for the {plan_id.upper()} plan is not configured"
            )
        return price_id

    def ensure_customer(self, db: Session, chapter: Chapter, email: str) -> str:
        """Crée le client Stripe du chapitre s'il n'existe pas encore."""
        if chapter.stripe_customer_id:
            return chapter.stripe_customer_id

        self._configure()
        customer = stripe.Customer.create(
            email=email,
            name=chapter.name,
            metadata={"chapter_id": str(chapter.id), "chapter_slug": chapter.slug},
        )
        chapter.stripe_customer_id = customer["id"]
        db.commit()

        log_billing_event("customer_created", chapter.id, reference=customer["id"])
        return chapter.stripe_customer_id

    def create_subscription_checkout(
        self,
        db: Session,
        chapter: Chapter,
        plan_id: str,
        email: str,
    ) -> str:
        """
        Crée une session Checkout en mode abonnement.

        Args:
            db: Session de base de données
            chapter: Chapitre à abonner
            plan_id: basic ou pro
            email: Email de l'administrateur (création du client)

        Returns:
            URL de la session Checkout
        """
        price_id = self.price_for_plan(plan_id)
        self._configure()
        customer_id = self.ensure_customer(db, chapter, email)

        billing_url = f"{settings.FRONTEND_URL}/{chapter.slug}/admin/billing"
        metadata = {"chapter_id": str(chapter.id), "chapter_slug": chapter.slug}

        session = stripe.checkout.Session.create(
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{billing_url}?checkout=success",
            cancel_url=f"{billing_url}?checkout=canceled",
            subscription_data={"metadata": metadata},
            metadata=metadata,
        )

        log_billing_event(
            "checkout",
            chapter.id,
            reference=session["id"],
            details={"plan": plan_id, "mode": "subscription"},
        )
        return session["url"]

    def create_portal_session(self, chapter: Chapter) -> str:
        """Crée une session du portail de facturation Stripe."""
        if not chapter.stripe_customer_id:
            raise BusinessRuleError("No billing account found for this chapter")

        self._configure()
        session = stripe.billing_portal.Session.create(
            customer=chapter.stripe_customer_id,
            return_url=f"{settings.FRONTEND_URL}/{chapter.slug}/admin/billing",
        )

        log_billing_event("portal", chapter.id, reference=session["id"])
        return session["url"]

    def create_dues_checkout(self, chapter: Chapter, dues: DuesPayment) -> Dict[str, str]:
        """
        Crée une session Checkout en mode paiement pour une cotisation.

        Returns:
            {"url": ..., "session_id": ...}
        """
        if dues.is_paid:
            raise BusinessRuleError("Dues payment is already paid")
        if not chapter.stripe_customer_id:
            raise BusinessRuleError("Chapter is not set up for payments")

        self._configure()
        metadata = {
            "dues_payment_id": str(dues.id),
            "chapter_id": str(chapter.id),
            "user_id": str(dues.user_id),
        }
        finance_url = f"{settings.FRONTEND_URL}/{chapter.slug}/finance/dues"

        session = stripe.checkout.Session.create(
            customer=chapter.stripe_customer_id,
            mode="payment",
            line_items=[
                {
                    "price_data": {
                        "currency": "usd",
                        "unit_amount": int(round(Decimal(dues.amount) * 100)),
                        "product_data": {
                            "name": dues.description or f"{chapter.name} - Member Dues",
                        },
                    },
                    "quantity": 1,
                }
            ],
            metadata=metadata,
            payment_intent_data={"metadata": metadata},
            success_url=f"{finance_url}?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=finance_url,
        )

        log_billing_event(
            "checkout",
            chapter.id,
            reference=session["id"],
            amount=float(dues.amount),
            details={"dues_payment_id": dues.id, "mode": "payment"},
        )
        return {"url": session["url"], "session_id": session["id"]}

    def change_plan_to_free(self, db: Session, chapter: Chapter) -> Subscription:
        """
        Repasse un chapitre au plan FREE et trace le changement
        dans le grand livre (transaction OTHER de montant nul).
        """
        previous_plan = chapter.plan
        subscription = upsert_subscription(
            db,
            chapter,
            SubscriptionPlan.FREE.value,
            SubscriptionStatus.ACTIVE.value,
        )
        db.add(Transaction(
            chapter_id=chapter.id,
            amount=Decimal("0"),
            type=TransactionType.OTHER.value,
            description=f"Plan changed from {previous_plan} to FREE",
            meta={"kind": "PLAN_CHANGE", "from": previous_plan, "to": "FREE"},
        ))
        db.commit()
        db.refresh(subscription)

        log_billing_event(
            "plan_change",
            chapter.id,
            details={"from": previous_plan, "to": "FREE"},
        )
        return subscription

    # ============== Webhooks ==============

    def construct_event(self, payload: bytes, sig_header: Optional[str]) -> Any:
        """
        Vérifie la signature et construit l'événement Stripe.

        Raises:
            BillingConfigurationError: Secret de webhook absent
            InvalidWebhookSignature: En-tête absent ou signature invalide
        """
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise BillingConfigurationError("Stripe webhook secret is not configured")
        if not sig_header:
            raise InvalidWebhookSignature("Missing Stripe-Signature header")

        try:
            return stripe.Webhook.construct_event(
                payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
            )
        except ValueError as e:
            logger.warning(f"Payload de webhook invalide: {e}")
            raise InvalidWebhookSignature("Invalid webhook payload")
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Signature de webhook invalide: {e}")
            raise InvalidWebhookSignature()

    def handle_event(self, db: Session, event: Any) -> None:
        """Applique un événement Stripe vérifié à l'état local."""
        event_type = _field(event, "type")
        obj = _field(_field(event, "data"), "object")

        log_billing_event("webhook", None, reference=_field(event, "id"), details={"type": event_type})

        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            self._handle_subscription_change(db, obj)
        elif event_type == "customer.subscription.deleted":
            self._handle_subscription_deleted(db, obj)
        elif event_type == "checkout.session.completed":
            self._handle_checkout_completed(db, obj)
        elif event_type == "payment_intent.succeeded":
            self._handle_payment_intent_succeeded(db, obj)
        else:
            logger.info(f"Événement Stripe ignoré: {event_type}")

    def _chapter_for_customer(self, db: Session, customer_id: Optional[str]) -> Optional[Chapter]:
        if not customer_id:
            return None
        chapter = db.query(Chapter).filter(Chapter.stripe_customer_id == customer_id).first()
        if chapter is None:
            logger.warning(f"Aucun chapitre pour le client Stripe {customer_id}")
        return chapter

    def _handle_subscription_change(self, db: Session, subscription: Any) -> None:
        chapter = self._chapter_for_customer(db, _field(subscription, "customer"))
        if chapter is None:
            return

        items = _field(_field(subscription, "items"), "data", [])
        price_id = _field(_field(items[0], "price"), "id") if items else None
        plan = plan_from_price_id(price_id)
        status = map_subscription_status(_field(subscription, "status"))

        upsert_subscription(db, chapter, plan, status, _field(subscription, "id"))
        db.commit()

        log_billing_event(
            "subscription_changed",
            chapter.id,
            reference=_field(subscription, "id"),
            details={"plan": plan, "status": status},
        )

    def _handle_subscription_deleted(self, db: Session, subscription: Any) -> None:
        chapter = self._chapter_for_customer(db, _field(subscription, "customer"))
        if chapter is None:
            return

        upsert_subscription(
            db,
            chapter,
            SubscriptionPlan.FREE.value,
            SubscriptionStatus.CANCELED.value,
            _field(subscription, "id"),
        )
        db.commit()

        log_billing_event("subscription_deleted", chapter.id, reference=_field(subscription, "id"))

    def _find_dues(self, db: Session, metadata: Any) -> Optional[DuesPayment]:
        dues_payment_id = _field(metadata, "dues_payment_id")
        if not dues_payment_id:
            return None

        chapter_id = _field(metadata, "chapter_id")
        try:
            query = db.query(DuesPayment).filter(DuesPayment.id == int(dues_payment_id))
            if chapter_id:
                query = query.filter(DuesPayment.chapter_id == int(chapter_id))
        except (TypeError, ValueError):
            logger.warning(
                f"Métadonnées de cotisation invalides ignorées: "
                f"dues_payment_id={dues_payment_id!r}, chapter_id={chapter_id!r}"
            )
            return None

        dues = query.first()
        if dues is None:
            logger.warning(f"Cotisation {dues_payment_id} introuvable pour le webhook")
        return dues

    def _handle_checkout_completed(self, db: Session, session: Any) -> None:
        if _field(session, "payment_status") != "paid":
            return

        dues = self._find_dues(db, _field(session, "metadata"))
        if dues is None:
            return

        payment_intent = _field(session, "payment_intent")
        if not isinstance(payment_intent, str):
            payment_intent = _field(payment_intent, "id")

        mark_dues_paid(db, dues, stripe_payment_id=payment_intent, source="checkout")
        db.commit()

        log_billing_event(
            "dues_paid",
            dues.chapter_id,
            reference=payment_intent,
            amount=float(dues.amount),
        )

    def _handle_payment_intent_succeeded(self, db: Session, payment_intent: Any) -> None:
        dues = self._find_dues(db, _field(payment_intent, "metadata"))
        if dues is None:
            return

        amount_received = _field(payment_intent, "amount_received")
        amount = Decimal(amount_received) / 100 if amount_received is not None else None

        mark_dues_paid(
            db,
            dues,
            stripe_payment_id=_field(payment_intent, "id"),
            amount=amount,
            source="payment_intent",
        )
        db.commit()

        log_billing_event(
            "dues_paid",
            dues.chapter_id,
            reference=_field(payment_intent, "id"),
            amount=float(amount) if amount is not None else float(dues.amount),
        )


# Instance globale du service
billing_service = BillingService()


__all__ = [
    "BillingService",
    "billing_service",
    "map_subscription_status",
    "plan_from_price_id",
    "upsert_subscription",
    "STRIPE_STATUS_MAP",
]
