"""
Route de consultation de la piste d'audit d'un chapitre.
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.models.audit import AuditLog
from greekdash.schemas.audit import AuditLogResponse, AuditLogListResponse
from greekdash.schemas.event import to_naive_utc
from greekdash.api.deps import ChapterContext, chapter_admin


router = APIRouter()


@router.get(
    "/",
    response_model=AuditLogListResponse,
    summary="Piste d'audit",
)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    ctx: ChapterContext = Depends(chapter_admin),
    db: Session = Depends(get_db),
) -> Any:
    """
    Actions du chapitre, les plus récentes d'abord, avec l'auteur de chaque action.

    - **action**, **target_type**: valeurs exactes (ex. MEMBER_APPROVED, EVENT)
    - **from_date**, **to_date**: bornes incluses
    """
    query = db.query(AuditLog).filter(AuditLog.chapter_id == ctx.chapter.id)

    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action.upper())
    if target_type:
        query = query.filter(AuditLog.target_type == target_type.upper())
    if from_date:
        query = query.filter(AuditLog.created_at >= to_naive_utc(from_date))
    if to_date:
        query = query.filter(AuditLog.created_at <= to_naive_utc(to_date))

    total = query.count()
    logs = query.order_by(
        AuditLog.created_at.desc(), AuditLog.id.desc()
    ).offset((page - 1) * page_size).limit(page_size).all()

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size,
    )
