"""
Routes des utilisateurs - Adhésions et préférences de l'utilisateur connecté.
"""

from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.core.logging import logger
from greekdash.models.user import User
from greekdash.models.chapter import Profile
from greekdash.schemas.user import (
    MembershipSummary,
    PhoneSettingsUpdate,
    PhoneSettingsResponse,
)
from greekdash.api.deps import get_current_active_user
from greekdash.api.v1.endpoints.auth import serialize_memberships


router = APIRouter()


@router.get(
    "/me/memberships",
    response_model=List[MembershipSummary],
    summary="Mes adhésions",
)
async def get_my_memberships(
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Liste les chapitres de l'utilisateur avec son rôle dans chacun.
    """
    return serialize_memberships(current_user)


@router.put(
    "/me/phone",
    response_model=PhoneSettingsResponse,
    summary="Mettre à jour mon numéro de téléphone",
)
async def update_my_phone(
    data: PhoneSettingsUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Any:
    """
    Applique le numéro et la préférence SMS à tous les profils de l'utilisateur.
    Les profils manquants sont créés. Un changement de numéro annule la vérification.
    """
    updated = 0
    for membership in current_user.memberships:
        profile = membership.profile
        if profile is None:
            profile = Profile(membership_id=membership.id)
            db.add(profile)
            membership.profile = profile

        if profile.phone != data.phone:
            profile.phone_verified = False
        profile.phone = data.phone
        profile.sms_enabled = data.sms_enabled
        updated += 1

    db.commit()

    logger.info(f"Téléphone mis à jour pour {current_user.email} ({updated} profils)")

    return PhoneSettingsResponse(
        phone=data.phone,
        sms_enabled=data.sms_enabled,
        profiles_updated=updated,
    )
