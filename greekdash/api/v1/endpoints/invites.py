"""
Routes des invitations.
Gestion par les administrateurs d'un chapitre et validation/acceptation publiques.
"""

from datetime import datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks, Query
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.config import settings
from greekdash.core.exceptions import NotFoundError
from greekdash.core.logging import logger
from greekdash.core.security import generate_secure_token, get_password_hash, verify_password
from greekdash.models.user import User
from greekdash.models.chapter import Chapter, Membership
from greekdash.models.invite import Invite
from greekdash.models.audit import AuditAction, AuditTargetType
from greekdash.schemas.invite import (
    InviteCreate,
    InviteResponse,
    InviteListResponse,
    InviteValidation,
    InviteChapterInfo,
    InviteAccept,
    InviteAcceptResponse,
)
from greekdash.api.deps import ChapterContext, chapter_admin
from greekdash.services.audit_service import log_audit_entry
from greekdash.services.email_service import email_service


# Routes d'administration : /chapters/{slug}/invites
router = APIRouter()

# Routes publiques : /invites
public_router = APIRouter()


def _invite_url(token: str, chapter: Chapter) -> str:
    return f"{settings.FRONTEND_URL}/invite?token={token}&chapter={chapter.slug}"


def _queue_invite_email(
    background_tasks: BackgroundTasks,
    invite: Invite,
    chapter: Chapter,
    inviter: User,
) -> None:
    background_tasks.add_task(
        email_service.send_chapter_invite_email,
        invite.email,
        chapter.name,
        inviter.name or inviter.email,
        invite.role,
        _invite_url(invite.token, chapter),
        chapter.primary_color,
    )


def _get_chapter_invite(db: Session, ctx: ChapterContext, invite_id: int) -> Invite:
    invite = db.query(Invite).filter(
        Invite.id == invite_id,
        Invite.chapter_id == ctx.chapter.id,
    ).first()
    if not invite:
        raise NotFoundError("Invite", invite_id)
    return invite


# ============== Administration ==============

@router.post(
    "/",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Inviter une personne",
)
async def create_invite(
    data: InviteCreate,
    background_tasks: BackgroundTasks,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée une invitation valable 7 jours et l'envoie par email.

    - **email**: Adresse de la personne invitée
    - **role**: MEMBER ou ADMIN
    """
    chapter = ctx.chapter

    existing_member = db.query(Membership).join(User).filter(
        Membership.chapter_id == chapter.id,
        User.email == data.email,
    ).first()
    if existing_member:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This email already has a membership in the chapter",
        )

    pending_invite = db.query(Invite).filter(
        Invite.chapter_id == chapter.id,
        Invite.email == data.email,
        Invite.accepted == False,
        Invite.expires_at > datetime.utcnow(),
    ).first()
    if pending_invite:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An active invite already exists for this email",
        )

    invite = Invite(
        chapter_id=chapter.id,
        email=data.email,
        token=generate_secure_token(),
        role=data.role.value,
        expires_at=datetime.utcnow() + timedelta(days=settings.INVITE_EXPIRE_DAYS),
        created_by_id=ctx.user.id,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)

    logger.info(f"Invitation {invite.id} créée pour {invite.email} ({chapter.slug})")

    _queue_invite_email(background_tasks, invite, chapter, ctx.user)

    log_audit_entry(
        db,
        chapter_id=chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.MEMBER_INVITED,
        target_type=AuditTargetType.INVITE,
        target_id=invite.id,
        metadata={"email": invite.email, "role": invite.role},
    )

    return invite


@router.get(
    "/",
    response_model=InviteListResponse,
    summary="Invitations du chapitre",
)
async def list_invites(
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    invites = db.query(Invite).filter(
        Invite.chapter_id == ctx.chapter.id,
    ).order_by(Invite.created_at.desc(), Invite.id.desc()).all()

    return InviteListResponse(
        items=[InviteResponse.model_validate(i) for i in invites],
        total=len(invites),
    )


@router.post(
    "/{invite_id}/resend",
    response_model=InviteResponse,
    summary="Renvoyer une invitation",
)
async def resend_invite(
    invite_id: int,
    background_tasks: BackgroundTasks,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Génère un nouveau token, repousse l'expiration et renvoie l'email.
    """
    invite = _get_chapter_invite(db, ctx, invite_id)

    if invite.accepted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite has already been accepted",
        )

    invite.token = generate_secure_token()
    invite.expires_at = datetime.utcnow() + timedelta(days=settings.INVITE_EXPIRE_DAYS)
    db.commit()
    db.refresh(invite)

    logger.info(f"Invitation {invite.id} renvoyée à {invite.email}")

    _queue_invite_email(background_tasks, invite, ctx.chapter, ctx.user)

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.INVITE_RESENT,
        target_type=AuditTargetType.INVITE,
        target_id=invite.id,
        metadata={"email": invite.email},
    )

    return invite


@router.delete(
    "/{invite_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Révoquer une invitation",
)
async def revoke_invite(
    invite_id: int,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> None:
    invite = _get_chapter_invite(db, ctx, invite_id)

    if invite.accepted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite has already been accepted",
        )

    email = invite.email
    db.delete(invite)
    db.commit()

    logger.info(f"Invitation {invite_id} révoquée ({email})")

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.INVITE_REVOKED,
        target_type=AuditTargetType.INVITE,
        target_id=invite_id,
        metadata={"email": email},
    )


# ============== Routes publiques ==============

def _load_valid_invite(db: Session, token: str, chapter_slug: str = None) -> Invite:
    """
    Charge une invitation utilisable.

    Raises:
        HTTPException: 404 si le token est inconnu, 400 si expirée,
            déjà utilisée ou rattachée à un autre chapitre
    """
    invite = db.query(Invite).filter(Invite.token == token).first()

    if not invite:
        raise NotFoundError("Invite")
    if invite.accepted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite has already been used",
        )
    if invite.is_expired:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite has expired",
        )
    if chapter_slug and invite.chapter.slug != chapter_slug.lower():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invite does not belong to this chapter",
        )
    return invite


@public_router.get(
    "/validate",
    response_model=InviteValidation,
    summary="Valider une invitation",
)
async def validate_invite(
    token: str = Query(..., min_length=1),
    chapter_slug: str = Query(None),
    db: Session = Depends(get_db),
) -> Any:
    invite = _load_valid_invite(db, token, chapter_slug)

    return InviteValidation(
        valid=True,
        email=invite.email,
        role=invite.role,
        chapter=InviteChapterInfo(name=invite.chapter.name, slug=invite.chapter.slug),
        expires_at=invite.expires_at,
    )


@public_router.post(
    "/accept",
    response_model=InviteAcceptResponse,
    summary="Accepter une invitation",
)
async def accept_invite(
    data: InviteAccept,
    db: Session = Depends(get_db),
) -> Any:
    """
    Accepte une invitation : crée le compte si besoin, puis l'adhésion
    avec le rôle de l'invitation, en une seule transaction.
    """
    invite = _load_valid_invite(db, data.token)
    chapter = invite.chapter

    if data.email.lower() != invite.email.lower():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email does not match the invitation",
        )

    user = db.query(User).filter(User.email == invite.email.lower()).first()

    if user:
        if user.membership_for(chapter.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You are already a member of this chapter",
            )
        if user.hashed_password and not verify_password(data.password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid password for existing account",
            )
    else:
        user = User(
            email=invite.email.lower(),
            name=data.full_name,
            hashed_password=get_password_hash(data.password),
            is_active=True,
        )
        db.add(user)
        db.flush()

    membership = Membership(
        user_id=user.id,
        chapter_id=chapter.id,
        role=invite.role,
    )
    db.add(membership)

    invite.accepted = True
    invite.accepted_at = datetime.utcnow()
    invite.accepted_by_id = user.id
    db.commit()

    logger.info(f"Invitation {invite.id} acceptée par {user.email} ({chapter.slug})")

    log_audit_entry(
        db,
        chapter_id=chapter.id,
        user_id=user.id,
        action=AuditAction.MEMBER_INVITATION_ACCEPTED,
        target_type=AuditTargetType.INVITE,
        target_id=invite.id,
        metadata={"email": user.email, "role": invite.role},
    )

    return InviteAcceptResponse(
        message="Invitation accepted",
        chapter_slug=chapter.slug,
        role=invite.role,
    )
