"""
Routes des membres d'un chapitre - Liste, profils, approbations et rôles.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.config import settings
from greekdash.core.exceptions import NotFoundError
from greekdash.core.logging import logger
from greekdash.models.chapter import Membership, MembershipRole, Profile, ACTIVE_ROLES
from greekdash.models.audit import AuditAction, AuditTargetType
from greekdash.schemas.member import (
    MemberResponse,
    MemberListResponse,
    ProfileUpdate,
    RoleUpdate,
)
from greekdash.api.deps import (
    ChapterContext,
    chapter_member,
    chapter_member_or_pending,
    chapter_admin,
)
from greekdash.services.audit_service import log_audit_entry
from greekdash.services.email_service import email_service


router = APIRouter()


def _get_chapter_membership(db: Session, ctx: ChapterContext, membership_id: int) -> Membership:
    """Charge une adhésion du chapitre courant ou lève une 404."""
    membership = db.query(Membership).filter(
        Membership.id == membership_id,
        Membership.chapter_id == ctx.chapter.id,
    ).first()

    if not membership:
        raise NotFoundError("Member", membership_id)
    return membership


@router.get(
    "/",
    response_model=MemberListResponse,
    summary="Liste des membres",
)
async def list_members(
    ctx: ChapterContext = Depends(chapter_member),
    db: Session = Depends(get_db),
) -> Any:
    """
    Membres confirmés du chapitre avec leur profil.
    """
    members = db.query(Membership).filter(
        Membership.chapter_id == ctx.chapter.id,
        Membership.role.in_(ACTIVE_ROLES),
    ).order_by(Membership.created_at.asc()).all()

    return MemberListResponse(
        items=[MemberResponse.model_validate(m) for m in members],
        total=len(members),
    )


@router.get(
    "/pending",
    response_model=MemberListResponse,
    summary="Demandes d'adhésion en attente",
)
async def list_pending_members(
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    pending = db.query(Membership).filter(
        Membership.chapter_id == ctx.chapter.id,
        Membership.role == MembershipRole.PENDING_MEMBER.value,
    ).order_by(Membership.created_at.asc()).all()

    return MemberListResponse(
        items=[MemberResponse.model_validate(m) for m in pending],
        total=len(pending),
    )


@router.get(
    "/me",
    response_model=MemberResponse,
    summary="Mon adhésion",
)
async def get_my_membership(
    ctx: ChapterContext = Depends(chapter_member_or_pending),
) -> Any:
    """
    Adhésion et profil de l'utilisateur courant.
    Accessible aux demandes en attente pour qu'elles puissent suivre leur statut.
    """
    return ctx.membership


@router.put(
    "/me/profile",
    response_model=MemberResponse,
    summary="Mettre à jour mon profil",
)
async def update_my_profile(
    data: ProfileUpdate,
    ctx: ChapterContext = Depends(chapter_member),
    db: Session = Depends(get_db),
) -> Any:
    """
    Met à jour le nom de l'utilisateur et son profil dans ce chapitre.
    Le profil est créé s'il n'existe pas.
    """
    membership = ctx.membership
    profile = membership.profile
    if profile is None:
        profile = Profile(membership_id=membership.id)
        db.add(profile)
        membership.profile = profile

    if profile.phone != data.phone:
        profile.phone_verified = False

    profile.phone = data.phone
    profile.major = data.major
    profile.grad_year = data.grad_year
    profile.bio = data.bio
    ctx.user.name = data.name

    db.commit()
    db.refresh(membership)

    logger.info(f"Profil mis à jour: {ctx.user.email} ({ctx.chapter.slug})")
    return membership


@router.post(
    "/{membership_id}/approve",
    response_model=MemberResponse,
    summary="Approuver une demande d'adhésion",
)
async def approve_member(
    membership_id: int,
    background_tasks: BackgroundTasks,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Passe une demande PENDING_MEMBER au rôle MEMBER et prévient le membre par email.
    """
    membership = _get_chapter_membership(db, ctx, membership_id)

    if not membership.is_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Membership is not pending approval",
        )

    membership.role = MembershipRole.MEMBER.value
    db.commit()
    db.refresh(membership)

    logger.info(f"Adhésion {membership.id} approuvée par {ctx.user.email}")

    background_tasks.add_task(
        email_service.send_member_approval_email,
        membership.user.email,
        membership.user.name or membership.user.email,
        ctx.chapter.name,
        f"{settings.FRONTEND_URL}/{ctx.chapter.slug}/dashboard",
        ctx.chapter.primary_color,
    )

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.MEMBER_APPROVED,
        target_type=AuditTargetType.MEMBERSHIP,
        target_id=membership.id,
        metadata={"member_email": membership.user.email},
    )

    return membership


@router.post(
    "/{membership_id}/deny",
    status_code=status.HTTP_200_OK,
    summary="Refuser une demande d'adhésion",
)
async def deny_member(
    membership_id: int,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Supprime une demande d'adhésion en attente.
    """
    membership = _get_chapter_membership(db, ctx, membership_id)

    if not membership.is_pending:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Membership is not pending approval",
        )

    member_email = membership.user.email
    db.delete(membership)
    db.commit()

    logger.info(f"Demande d'adhésion {membership_id} refusée par {ctx.user.email}")

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.MEMBER_DENIED,
        target_type=AuditTargetType.MEMBERSHIP,
        target_id=membership_id,
        metadata={"member_email": member_email},
    )

    return {"message": "Membership request denied"}


@router.put(
    "/{membership_id}/role",
    response_model=MemberResponse,
    summary="Changer le rôle d'un membre",
)
async def update_member_role(
    membership_id: int,
    data: RoleUpdate,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Change le rôle d'un membre (MEMBER ou ADMIN). Le propriétaire ne peut pas être modifié.
    """
    membership = _get_chapter_membership(db, ctx, membership_id)

    if membership.role == MembershipRole.OWNER.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot change the role of the chapter owner",
        )

    previous_role = membership.role
    membership.role = data.role.value
    db.commit()
    db.refresh(membership)

    logger.info(
        f"Rôle de l'adhésion {membership.id}: {previous_role} -> {membership.role}"
    )

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.MEMBER_ROLE_CHANGED,
        target_type=AuditTargetType.MEMBERSHIP,
        target_id=membership.id,
        metadata={"from": previous_role, "to": membership.role},
    )

    return membership


@router.delete(
    "/{membership_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Retirer un membre",
)
async def remove_member(
    membership_id: int,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> None:
    """
    Retire un membre du chapitre. Impossible pour le propriétaire ou soi-même.
    """
    membership = _get_chapter_membership(db, ctx, membership_id)

    if membership.role == MembershipRole.OWNER.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot remove the chapter owner",
        )
    if membership.id == ctx.membership.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You cannot remove yourself",
        )

    member_email = membership.user.email
    db.delete(membership)
    db.commit()

    logger.info(f"Membre {member_email} retiré de {ctx.chapter.slug}")

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.MEMBER_REMOVED,
        target_type=AuditTargetType.MEMBERSHIP,
        target_id=membership_id,
        metadata={"member_email": member_email},
    )
