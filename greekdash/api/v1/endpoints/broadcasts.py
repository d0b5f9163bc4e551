"""
Routes de diffusion - Messages email/SMS aux membres et historique des envois.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.models.audit import MessageLog, MessageType
from greekdash.schemas.broadcast import (
    BroadcastRequest,
    BroadcastResult,
    MessageLogResponse,
    MessageLogListResponse,
)
from greekdash.api.deps import ChapterContext, chapter_admin
from greekdash.services.broadcast_service import send_broadcast


router = APIRouter()


@router.post(
    "/",
    response_model=BroadcastResult,
    summary="Diffuser un message",
)
async def broadcast_message(
    data: BroadcastRequest,
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Envoie un message aux membres du chapitre par email et/ou SMS.

    - **recipient_filter**: all, admins ou members
    - Les échecs individuels sont renvoyés dans **errors** sans interrompre l'envoi
    """
    result = await send_broadcast(
        db,
        ctx.chapter,
        ctx.user,
        subject=data.subject,
        message=data.message,
        recipient_filter=data.recipient_filter,
        send_email=data.send_email,
        send_sms=data.send_sms,
    )
    return BroadcastResult(**result)


@router.get(
    "/messages",
    response_model=MessageLogListResponse,
    summary="Historique des messages",
)
async def list_messages(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    type_filter: Optional[MessageType] = Query(None, alias="type"),
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    query = db.query(MessageLog).filter(MessageLog.chapter_id == ctx.chapter.id)

    if type_filter:
        query = query.filter(MessageLog.type == type_filter.value)

    total = query.count()
    messages = query.order_by(
        MessageLog.created_at.desc(), MessageLog.id.desc()
    ).offset((page - 1) * page_size).limit(page_size).all()

    return MessageLogListResponse(
        items=[MessageLogResponse.model_validate(m) for m in messages],
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )
