"""
Service de la piste d'audit.
Enregistre les actions sensibles effectuées dans un chapitre.
"""

from typing import Any, Dict, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from greekdash.core.logging import logger
from greekdash.models.audit import AuditLog, AuditAction, AuditTargetType


def log_audit_entry(
    db: Session,
    chapter_id: int,
    user_id: Optional[int],
    action: Union[AuditAction, str],
    target_type: Union[AuditTargetType, str],
    target_id: Optional[Any] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """
    Ajoute une entrée à la piste d'audit et la valide.

    Un échec d'écriture est journalisé mais n'interrompt jamais l'action
    de l'utilisateur.

    Args:
        db: Session de base de données
        chapter_id: Chapitre concerné
        user_id: Auteur de l'action
        action: Action effectuée
        target_type: Type de l'objet visé
        target_id: Identifiant de l'objet visé
        metadata: Données complémentaires

    Returns:
        L'entrée créée, ou None en cas d'échec
    """
    entry = AuditLog(
        chapter_id=chapter_id,
        user_id=user_id,
        action=action.value if isinstance(action, AuditAction) else action,
        target_type=(
            target_type.value if isinstance(target_type, AuditTargetType) else target_type
        ),
        target_id=str(target_id) if target_id is not None else None,
        meta=metadata or {},
    )

    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Échec de l'écriture d'audit {entry.action} pour le chapitre {chapter_id}: {e}"
        )
        return None

    logger.debug(f"Audit: {entry.action} sur {entry.target_type} {entry.target_id}")
    return entry


__all__ = ["log_audit_entry"]
