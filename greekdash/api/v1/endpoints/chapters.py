"""
Routes des chapitres - Pages publiques, paramètres, code et demandes d'adhésion.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.core.exceptions import NotFoundError
from greekdash.core.logging import logger
from greekdash.core.security import get_password_hash, verify_password, generate_join_code
from greekdash.models.user import User
from greekdash.models.chapter import Chapter, Membership, MembershipRole, ContactMessage, GalleryImage
from greekdash.models.event import Event, EventStatus
from greekdash.models.audit import AuditAction, AuditTargetType
from greekdash.schemas.user import SLUG_PATTERN
from greekdash.schemas.chapter import (
    SlugAvailability,
    ChapterResponse,
    ChapterSettingsUpdate,
    ChapterPublicResponse,
    JoinCodeResponse,
    JoinChapterRequest,
    JoinChapterResponse,
    ContactMessageCreate,
    ContactMessageResponse,
    GalleryImageCreate,
    GalleryImageResponse,
    PublicEventSummary,
)
from greekdash.api.deps import ChapterContext, chapter_member, chapter_admin, get_chapter_or_404
from greekdash.services.audit_service import log_audit_entry


router = APIRouter()

# Nombre d'événements publics affichés sur la page du chapitre
PUBLIC_EVENTS_LIMIT = 10


@router.get(
    "/check-slug",
    response_model=SlugAvailability,
    summary="Vérifier la disponibilité d'une URL de chapitre",
)
async def check_slug(
    slug: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> Any:
    """
    Indique si un slug est libre. Un slug absent ou mal formé renvoie 400.
    """
    normalized = (slug or "").strip().lower()
    if not normalized:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"available": False, "detail": "Slug is required"},
        )
    if not (3 <= len(normalized) <= 30) or not SLUG_PATTERN.match(normalized):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "available": False,
                "detail": "Chapter URL must be 3-30 lowercase letters, numbers, or hyphens",
            },
        )

    taken = db.query(Chapter.id).filter(Chapter.slug == normalized).first() is not None
    return SlugAvailability(available=not taken)


@router.get(
    "/{slug}/public",
    response_model=ChapterPublicResponse,
    summary="Page publique d'un chapitre",
)
async def get_public_chapter(
    slug: str,
    db: Session = Depends(get_db),
) -> Any:
    """
    Informations publiques du chapitre, sans authentification :
    présentation, prochains événements publics et galerie.
    """
    chapter = get_chapter_or_404(db, slug)

    events = db.query(Event).filter(
        Event.chapter_id == chapter.id,
        Event.is_public == True,
        Event.start_date >= datetime.utcnow(),
        Event.status != EventStatus.CANCELED.value,
    ).order_by(Event.start_date.asc()).limit(PUBLIC_EVENTS_LIMIT).all()

    return ChapterPublicResponse(
        name=chapter.name,
        slug=chapter.slug,
        public_info=chapter.public_info,
        primary_color=chapter.primary_color,
        events=[PublicEventSummary.model_validate(e) for e in events],
        gallery=[GalleryImageResponse.model_validate(i) for i in chapter.gallery_images],
    )


@router.get(
    "/{slug}",
    response_model=ChapterResponse,
    summary="Détails d'un chapitre",
)
async def get_chapter(
    ctx: ChapterContext = Depends(chapter_member),
) -> Any:
    """
    Détails du chapitre. Le code d'adhésion n'est visible que des administrateurs.
    """
    response = ChapterResponse.model_validate(ctx.chapter)
    if not ctx.is_admin:
        response.join_code = None
    return response


@router.put(
    "/{slug}/settings",
    response_model=ChapterResponse,
    summary="Modifier les paramètres du chapitre",
)
async def update_chapter_settings(
    data: ChapterSettingsUpdate,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Met à jour le nom, la couleur principale et la présentation publique.
    Réservé aux administrateurs.
    """
    chapter = ctx.chapter
    changes = data.model_dump()

    chapter.name = data.name
    chapter.primary_color = data.primary_color
    chapter.public_info = data.public_info
    db.commit()
    db.refresh(chapter)

    logger.info(f"Paramètres du chapitre {chapter.slug} mis à jour par {ctx.user.email}")

    log_audit_entry(
        db,
        chapter_id=chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.CHAPTER_SETTINGS_UPDATED,
        target_type=AuditTargetType.CHAPTER,
        target_id=chapter.id,
        metadata=changes,
    )

    return chapter


@router.post(
    "/{slug}/join-code/regenerate",
    response_model=JoinCodeResponse,
    summary="Régénérer le code d'adhésion",
)
async def regenerate_join_code(
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Émet un nouveau code d'adhésion ; l'ancien n'est plus accepté.
    """
    chapter = ctx.chapter
    chapter.join_code = generate_join_code()
    db.commit()

    logger.info(f"Code d'adhésion régénéré pour {chapter.slug}")

    log_audit_entry(
        db,
        chapter_id=chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.CHAPTER_JOIN_CODE_REGENERATED,
        target_type=AuditTargetType.CHAPTER,
        target_id=chapter.id,
    )

    return JoinCodeResponse(join_code=chapter.join_code)


@router.post(
    "/{slug}/join",
    response_model=JoinChapterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Demander à rejoindre un chapitre",
)
async def join_chapter(
    slug: str,
    data: JoinChapterRequest,
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée une demande d'adhésion (PENDING_MEMBER) à l'aide du code du chapitre.

    - Le compte est créé s'il n'existe pas
    - Un compte existant doit fournir son mot de passe
    - Un administrateur doit ensuite approuver la demande
    """
    chapter = get_chapter_or_404(db, slug)

    if data.join_code.strip().upper() != chapter.join_code.upper():
        logger.warning(f"Code d'adhésion invalide pour {chapter.slug}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid join code",
        )

    user = db.query(User).filter(User.email == data.email).first()

    if user:
        if user.membership_for(chapter.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You already have a membership in this chapter",
            )
        if not user.hashed_password or not verify_password(data.password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid password for existing account",
            )
    else:
        user = User(
            email=data.email,
            name=data.full_name,
            hashed_password=get_password_hash(data.password),
            is_active=True,
        )
        db.add(user)
        db.flush()

    membership = Membership(
        user_id=user.id,
        chapter_id=chapter.id,
        role=MembershipRole.PENDING_MEMBER.value,
    )
    db.add(membership)
    db.commit()
    db.refresh(membership)

    logger.info(f"Demande d'adhésion de {user.email} au chapitre {chapter.slug}")

    log_audit_entry(
        db,
        chapter_id=chapter.id,
        user_id=user.id,
        action=AuditAction.MEMBER_JOIN_REQUESTED,
        target_type=AuditTargetType.MEMBERSHIP,
        target_id=membership.id,
        metadata={"email": user.email},
    )

    return JoinChapterResponse(
        message="Join request submitted. An admin must approve your membership.",
        membership_id=membership.id,
        role=membership.role,
    )


# ============== Contact ==============

@router.post(
    "/{slug}/contact",
    response_model=ContactMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Formulaire de contact public",
)
async def send_contact_message(
    slug: str,
    data: ContactMessageCreate,
    db: Session = Depends(get_db),
) -> Any:
    chapter = get_chapter_or_404(db, slug)

    message = ContactMessage(
        chapter_id=chapter.id,
        name=data.name,
        email=data.email,
        message=data.message,
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    logger.info(f"Message de contact reçu pour {chapter.slug} de {data.email}")
    return message


@router.get(
    "/{slug}/contact-messages",
    response_model=List[ContactMessageResponse],
    summary="Messages de contact reçus",
)
async def list_contact_messages(
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    return db.query(ContactMessage).filter(
        ContactMessage.chapter_id == ctx.chapter.id,
    ).order_by(ContactMessage.created_at.desc()).all()


# ============== Galerie ==============

@router.get(
    "/{slug}/gallery",
    response_model=List[GalleryImageResponse],
    summary="Galerie publique",
)
async def list_gallery(
    slug: str,
    db: Session = Depends(get_db),
) -> Any:
    chapter = get_chapter_or_404(db, slug)
    return chapter.gallery_images


@router.post(
    "/{slug}/gallery",
    response_model=GalleryImageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ajouter une image à la galerie",
)
async def add_gallery_image(
    data: GalleryImageCreate,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    image = GalleryImage(
        chapter_id=ctx.chapter.id,
        image_url=data.image_url,
        caption=data.caption,
        created_by_id=ctx.user.id,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    return image


@router.delete(
    "/{slug}/gallery/{image_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Supprimer une image de la galerie",
)
async def delete_gallery_image(
    image_id: int,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> None:
    image = db.query(GalleryImage).filter(
        GalleryImage.id == image_id,
        GalleryImage.chapter_id == ctx.chapter.id,
    ).first()

    if not image:
        raise NotFoundError("Image", image_id)

    db.delete(image)
    db.commit()
