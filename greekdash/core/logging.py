"""
Configuration du système de logging pour GreekDash.
Utilise Loguru pour un logging structuré et détaillé.
"""

import sys
from pathlib import Path
from typing import Optional, Dict, Any
from loguru import logger


def setup_logging(
    log_level: str = "INFO",
    log_file: str = "logs/greekdash.log",
    rotation: str = "10 MB",
    retention: str = "30 days",
) -> None:
    """
    Configure le système de logging de l'application.

    Args:
        log_level: Niveau de log (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Chemin du fichier de log
        rotation: Taille maximale avant rotation
        retention: Durée de rétention des logs
    """
    # Supprimer le handler par défaut
    logger.remove()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    # Format pour fichier (sans couleurs)
    file_format = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
        "{level: <8} | "
        "{name}:{function}:{line} | "
        "{message}"
    )

    logger.add(
        sys.stdout,
        format=log_format,
        level=log_level,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Fichier principal avec rotation
    logger.add(
        log_file,
        format=file_format,
        level=log_level,
        rotation=rotation,
        retention=retention,
        compression="zip",
        backtrace=True,
        diagnose=True,
        enqueue=True,
    )

    # Fichier séparé pour les erreurs
    logger.add(
        str(log_path.parent / "errors.log"),
        format=file_format,
        level="ERROR",
        rotation=rotation,
        retention=retention,
        compression="zip",
        backtrace=True,
        diagnose=True,
        enqueue=True,
    )

    logger.info("Système de logging initialisé")
    logger.debug(f"Niveau de log: {log_level}")


def log_request(
    method: str,
    url: str,
    status_code: int,
    duration_ms: float,
    user_id: Optional[str] = None,
) -> None:
    """
    Log une requête HTTP avec ses détails.

    Args:
        method: Méthode HTTP (GET, POST, etc.)
        url: Chemin de la requête
        status_code: Code de statut HTTP
        duration_ms: Durée de la requête en millisecondes
        user_id: ID de l'utilisateur (optionnel)
    """
    logger.bind(
        method=method,
        url=url,
        status_code=status_code,
        duration_ms=duration_ms,
        user_id=user_id,
    ).info(
        f"{method} {url} - {status_code} ({duration_ms:.2f}ms)"
    )


def log_database_query(
    query: str,
    duration_ms: float,
    params: Optional[Dict] = None,
) -> None:
    """Log une requête SQL avec sa durée."""
    logger.bind(
        query=query[:200],
        duration_ms=duration_ms,
        params=params,
    ).debug(
        f"SQL Query ({duration_ms:.2f}ms): {query[:100]}..."
    )


def log_billing_event(
    event_type: str,
    chapter_id: Optional[int],
    reference: Optional[str] = None,
    amount: Optional[float] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log un événement de facturation Stripe.

    Args:
        event_type: Type d'événement (checkout, portal, webhook, plan_change)
        chapter_id: ID du chapitre concerné
        reference: Référence Stripe (session, abonnement, paiement)
        amount: Montant en dollars, si applicable
        details: Détails supplémentaires
    """
    amount_part = f" - ${amount:.2f}" if amount is not None else ""
    logger.bind(
        event_type=event_type,
        chapter_id=chapter_id,
        reference=reference,
        amount=amount,
        details=details,
    ).info(
        f"Billing {event_type}: chapitre {chapter_id} - {reference}{amount_part}"
    )


def log_message_sent(
    message_type: str,
    recipient: str,
    success: bool,
    preview: str = "",
) -> None:
    """
    Log l'envoi d'un email ou d'un SMS.

    Args:
        message_type: Canal (EMAIL, SMS)
        recipient: Destinataire
        success: Succès de l'envoi
        preview: Aperçu du message ou de l'erreur
    """
    level = "info" if success else "warning"
    getattr(logger, level)(
        f"{message_type} to {recipient}: "
        f"{'Sent' if success else 'Failed'} - {preview[:50]}"
    )


__all__ = [
    "logger",
    "setup_logging",
    "log_request",
    "log_database_query",
    "log_billing_event",
    "log_message_sent",
]
