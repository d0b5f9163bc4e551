"""
Routes des événements d'un chapitre et des réponses (RSVP).
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.core.exceptions import NotFoundError
from greekdash.core.logging import logger
from greekdash.models.event import Event, EventRSVP, EventStatus, RSVPStatus
from greekdash.models.audit import AuditAction, AuditTargetType
from greekdash.schemas.event import (
    EventCreate,
    EventUpdate,
    EventResponse,
    EventListResponse,
    RSVPRequest,
    RSVPResponse,
    RSVPListResponse,
)
from greekdash.api.deps import ChapterContext, chapter_member, chapter_admin
from greekdash.services.audit_service import log_audit_entry


router = APIRouter()

# Statuts d'événement qui n'acceptent plus de réponses
CLOSED_STATUSES = (EventStatus.CANCELED.value, EventStatus.COMPLETED.value)


def _event_response(event: Event, user_id: int) -> EventResponse:
    """Sérialise un événement avec les compteurs et la réponse de l'utilisateur."""
    response = EventResponse.model_validate(event)
    for rsvp in event.rsvps:
        if rsvp.user_id == user_id:
            response.user_rsvp = rsvp.status
            break
    return response


def _get_chapter_event(db: Session, ctx: ChapterContext, event_id: int) -> Event:
    event = db.query(Event).filter(
        Event.id == event_id,
        Event.chapter_id == ctx.chapter.id,
    ).first()
    if not event:
        raise NotFoundError("Event", event_id)
    return event


@router.get(
    "/",
    response_model=EventListResponse,
    summary="Liste des événements",
)
async def list_events(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    upcoming: bool = Query(False, description="Uniquement les événements à venir"),
    ctx: ChapterContext = Depends(chapter_member),
    db: Session = Depends(get_db),
) -> Any:
    """
    Liste les événements du chapitre avec leurs compteurs de réponses.
    """
    query = db.query(Event).filter(Event.chapter_id == ctx.chapter.id)

    if status_filter:
        query = query.filter(Event.status == status_filter.value)
    if upcoming:
        query = query.filter(Event.start_date >= datetime.utcnow())

    total = query.count()
    events = query.order_by(
        Event.start_date.asc()
    ).offset((page - 1) * page_size).limit(page_size).all()

    return EventListResponse(
        items=[_event_response(e, ctx.user.id) for e in events],
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )


@router.post(
    "/",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Créer un événement",
)
async def create_event(
    data: EventCreate,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée un événement (statut UPCOMING). Réservé aux administrateurs.

    - **start_date** et **end_date** dans le futur, fin après début
    - **capacity**: 0 ou vide pour un nombre illimité de participants
    """
    event = Event(
        chapter_id=ctx.chapter.id,
        title=data.title,
        description=data.description,
        location=data.location,
        start_date=data.start_date,
        end_date=data.end_date,
        capacity=data.capacity,
        is_public=data.is_public,
        status=EventStatus.UPCOMING.value,
        created_by_id=ctx.user.id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)

    logger.info(f"Événement '{event.title}' créé dans {ctx.chapter.slug} par {ctx.user.email}")

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.EVENT_CREATED,
        target_type=AuditTargetType.EVENT,
        target_id=event.id,
        metadata={"title": event.title, "start_date": event.start_date.isoformat()},
    )

    return _event_response(event, ctx.user.id)


@router.get(
    "/{event_id}",
    response_model=EventResponse,
    summary="Détails d'un événement",
)
async def get_event(
    event_id: int,
    ctx: ChapterContext = Depends(chapter_member),
    db: Session = Depends(get_db),
) -> Any:
    event = _get_chapter_event(db, ctx, event_id)
    return _event_response(event, ctx.user.id)


@router.put(
    "/{event_id}",
    response_model=EventResponse,
    summary="Modifier un événement",
)
async def update_event(
    event_id: int,
    data: EventUpdate,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Mise à jour partielle. L'ordre des dates est vérifié sur les valeurs fusionnées.
    """
    event = _get_chapter_event(db, ctx, event_id)
    update_data = data.model_dump(exclude_unset=True)

    start_date = update_data.get("start_date") or event.start_date
    end_date = update_data.get("end_date") or event.end_date
    if end_date <= start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be after start date",
        )

    if "capacity" in update_data:
        update_data["capacity"] = update_data["capacity"] or None
    if update_data.get("status") is not None:
        update_data["status"] = update_data["status"].value

    for field, value in update_data.items():
        if value is None and field != "capacity":
            continue
        setattr(event, field, value)

    db.commit()
    db.refresh(event)

    logger.info(f"Événement {event.id} mis à jour par {ctx.user.email}")

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.EVENT_UPDATED,
        target_type=AuditTargetType.EVENT,
        target_id=event.id,
        metadata={"fields": sorted(update_data.keys())},
    )

    return _event_response(event, ctx.user.id)


@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Supprimer un événement",
)
async def delete_event(
    event_id: int,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> None:
    """
    Supprime un événement et ses réponses.
    """
    event = _get_chapter_event(db, ctx, event_id)
    title = event.title

    db.delete(event)
    db.commit()

    logger.info(f"Événement {event_id} supprimé par {ctx.user.email}")

    log_audit_entry(
        db,
        chapter_id=ctx.chapter.id,
        user_id=ctx.user.id,
        action=AuditAction.EVENT_DELETED,
        target_type=AuditTargetType.EVENT,
        target_id=event_id,
        metadata={"title": title},
    )


# ============== RSVP ==============

@router.post(
    "/{event_id}/rsvp",
    response_model=RSVPResponse,
    summary="Répondre à un événement",
)
async def rsvp_event(
    event_id: int,
    data: RSVPRequest,
    ctx: ChapterContext = Depends(chapter_member),
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée ou met à jour la réponse de l'utilisateur.
    GOING est refusé si la capacité est atteinte, sauf pour un participant déjà inscrit.
    """
    event = _get_chapter_event(db, ctx, event_id)

    if event.status in CLOSED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event is no longer accepting RSVPs",
        )

    rsvp = db.query(EventRSVP).filter(
        EventRSVP.event_id == event.id,
        EventRSVP.user_id == ctx.user.id,
    ).first()

    already_going = rsvp is not None and rsvp.status == RSVPStatus.GOING.value
    if data.status == RSVPStatus.GOING and event.is_full and not already_going:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event has reached capacity",
        )

    if rsvp is None:
        rsvp = EventRSVP(event_id=event.id, user_id=ctx.user.id, status=data.status.value)
        db.add(rsvp)
    else:
        rsvp.status = data.status.value

    db.commit()
    db.refresh(rsvp)

    logger.info(f"RSVP {rsvp.status} de {ctx.user.email} pour l'événement {event.id}")
    return rsvp


@router.get(
    "/{event_id}/rsvps",
    response_model=RSVPListResponse,
    summary="Réponses à un événement",
)
async def list_rsvps(
    event_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    status_filter: Optional[RSVPStatus] = Query(None, alias="status"),
    ctx: ChapterContext = Depends(chapter_member),
    db: Session = Depends(get_db),
) -> Any:
    event = _get_chapter_event(db, ctx, event_id)

    query = db.query(EventRSVP).filter(EventRSVP.event_id == event.id)
    if status_filter:
        query = query.filter(EventRSVP.status == status_filter.value)

    total = query.count()
    rsvps = query.order_by(
        EventRSVP.created_at.asc()
    ).offset((page - 1) * page_size).limit(page_size).all()

    return RSVPListResponse(
        items=[RSVPResponse.model_validate(r) for r in rsvps],
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )
