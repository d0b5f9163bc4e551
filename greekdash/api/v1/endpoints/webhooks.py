"""
Webhooks entrants - Événements Stripe signés.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.schemas.billing import WebhookAck
from greekdash.services.billing_service import billing_service


router = APIRouter()


@router.post(
    "/stripe",
    response_model=WebhookAck,
    summary="Webhook Stripe",
)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> Any:
    """
    Vérifie la signature (en-tête Stripe-Signature) sur le corps brut,
    puis applique l'événement. Les événements non gérés sont acquittés.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    event = billing_service.construct_event(payload, sig_header)
    billing_service.handle_event(db, event)

    return WebhookAck(received=True)
