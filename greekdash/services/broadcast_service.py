"""
Service de diffusion email/SMS aux membres d'un chapitre.
Chaque tentative d'envoi est tracée dans MessageLog.
"""

import asyncio
import uuid
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from greekdash.config import settings
from greekdash.core.exceptions import BusinessRuleError
from greekdash.core.logging import logger
from greekdash.models.audit import AuditAction, AuditTargetType, MessageLog, MessageStatus, MessageType
from greekdash.models.chapter import Chapter, Membership, MembershipRole, ACTIVE_ROLES, ADMIN_ROLES
from greekdash.models.user import User
from greekdash.services.audit_service import log_audit_entry
from greekdash.services.email_service import email_service
from greekdash.services.sms_service import sms_service, MAX_SMS_LENGTH


# Filtre de destinataires -> rôles ciblés
RECIPIENT_FILTERS = {
    "all": ACTIVE_ROLES,
    "admins": ADMIN_ROLES,
    "members": (MembershipRole.MEMBER.value,),
}


def get_recipients(db: Session, chapter_id: int, recipient_filter: str) -> List[Membership]:
    """Adhésions ciblées par le filtre (les demandes en attente sont exclues)."""
    roles = RECIPIENT_FILTERS.get(recipient_filter, ACTIVE_ROLES)
    return db.query(Membership).filter(
        Membership.chapter_id == chapter_id,
        Membership.role.in_(roles),
    ).all()


def format_sms(chapter_name: str, subject: str, message: str) -> str:
    """Texte SMS : "[chapitre] sujet: message", tronqué à 1600 caractères."""
    return f"[{chapter_name}] {subject}: {message}"[:MAX_SMS_LENGTH]


def _record(
    db: Session,
    chapter_id: int,
    channel: str,
    recipient: str,
    subject: str,
    content: str,
    result: Dict[str, Any],
) -> None:
    db.add(MessageLog(
        chapter_id=chapter_id,
        message_id=result.get("message_id") or f"failed-{uuid.uuid4().hex}",
        type=channel,
        recipient=recipient,
        subject=subject,
        content=content,
        status=MessageStatus.SENT.value if result.get("success") else MessageStatus.FAILED.value,
        error=None if result.get("success") else result.get("error"),
    ))


def _batches(items: List[Any], size: int) -> List[List[Any]]:
    size = max(size, 1)
    return [items[i:i + size] for i in range(0, len(items), size)]


async def send_broadcast(
    db: Session,
    chapter: Chapter,
    sender: User,
    subject: str,
    message: str,
    recipient_filter: str = "all",
    send_email: bool = True,
    send_sms: bool = False,
) -> Dict[str, Any]:
    """
    Diffuse un message aux membres du chapitre.

    Les emails partent par lots de BROADCAST_BATCH_SIZE envoyés en parallèle.
    Les SMS ne visent que les profils avec un numéro et les SMS activés.

    Args:
        db: Session de base de données
        chapter: Chapitre émetteur
        sender: Administrateur à l'origine de la diffusion
        subject: Sujet
        message: Contenu
        recipient_filter: all, admins ou members
        send_email: Envoyer par email
        send_sms: Envoyer par SMS

    Returns:
        {"emails_sent": int, "sms_sent": int, "errors": [str]}

    Raises:
        BusinessRuleError: Aucun destinataire
    """
    recipients = get_recipients(db, chapter.id, recipient_filter)
    if not recipients:
        raise BusinessRuleError("No recipients match the selected filter")

    logger.info(
        f"Diffusion '{subject}' du chapitre {chapter.slug} "
        f"vers {len(recipients)} destinataires ({recipient_filter})"
    )

    batch_size = settings.BROADCAST_BATCH_SIZE
    emails_sent = 0
    sms_sent = 0
    errors: List[str] = []

    if send_email:
        rendered = email_service.render_chapter_broadcast(
            chapter.name, subject, message, chapter.primary_color
        )
        email_recipients = [m.user.email for m in recipients if m.user and m.user.email]

        for batch in _batches(email_recipients, batch_size):
            results = await asyncio.gather(*[
                email_service.send_email_async(
                    address, rendered["subject"], rendered["html"], rendered["text"]
                )
                for address in batch
            ])
            for address, result in zip(batch, results):
                _record(db, chapter.id, MessageType.EMAIL.value, address, subject, message, result)
                if result.get("success"):
                    emails_sent += 1
                else:
                    errors.append(f"Email to {address}: {result.get('error')}")

    if send_sms:
        sms_text = format_sms(chapter.name, subject, message)
        phones = [
            m.profile.phone for m in recipients
            if m.profile is not None and m.profile.can_receive_sms
        ]

        for batch in _batches(phones, batch_size):
            results = await asyncio.gather(*[
                asyncio.to_thread(sms_service.send_sms, phone, sms_text)
                for phone in batch
            ])
            for phone, result in zip(batch, results):
                _record(db, chapter.id, MessageType.SMS.value, phone, subject, sms_text, result)
                if result.get("success"):
                    sms_sent += 1
                else:
                    errors.append(f"SMS to {phone}: {result.get('error')}")

    db.commit()

    log_audit_entry(
        db,
        chapter_id=chapter.id,
        user_id=sender.id,
        action=AuditAction.CHAPTER_BROADCAST,
        target_type=AuditTargetType.CHAPTER,
        target_id=chapter.id,
        metadata={
            "subject": subject,
            "recipient_filter": recipient_filter,
            "recipients": len(recipients),
            "emails_sent": emails_sent,
            "sms_sent": sms_sent,
            "errors": len(errors),
        },
    )

    logger.info(
        f"Diffusion terminée: {emails_sent} emails, {sms_sent} SMS, {len(errors)} erreurs"
    )
    return {"emails_sent": emails_sent, "sms_sent": sms_sent, "errors": errors}


__all__ = [
    "send_broadcast",
    "get_recipients",
    "format_sms",
    "RECIPIENT_FILTERS",
]
