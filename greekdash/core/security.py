"""
Module de sécurité pour GreekDash.
Gestion de l'authentification JWT et du hashage des mots de passe.
"""

import secrets
from datetime import datetime, timedelta
from typing import Any, Optional, Dict, List, Union

import bcrypt
from jose import JWTError, jwt

from greekdash.config import settings
from greekdash.core.logging import logger


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Vérifie si un mot de passe en clair correspond au hash stocké.

    Args:
        plain_password: Mot de passe en clair
        hashed_password: Hash du mot de passe stocké

    Returns:
        True si le mot de passe est correct, False sinon
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError as e:
        logger.error(f"Hash de mot de passe invalide: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash un mot de passe pour le stockage."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def generate_secure_token(nbytes: int = 32) -> str:
    """Génère un token aléatoire utilisable dans une URL (invitations, reset)."""
    return secrets.token_urlsafe(nbytes)


def generate_join_code() -> str:
    """Code d'adhésion lisible de 8 caractères (hexadécimal majuscule)."""
    return secrets.token_hex(4).upper()


def create_access_token(
    subject: Union[str, int],
    memberships: Optional[List[Dict[str, Any]]] = None,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Crée un token JWT d'accès.

    Les adhésions de l'utilisateur sont embarquées dans le claim
    ``memberships`` sous la forme {id, role, chapter_id, chapter_slug}.

    Args:
        subject: Identifiant de l'utilisateur
        memberships: Adhésions de l'utilisateur aux chapitres
        expires_delta: Durée de validité du token
        extra_claims: Claims supplémentaires à inclure

    Returns:
        Token JWT encodé
    """
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode = {
        "sub": str(subject),
        "memberships": memberships or [],
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": "access",
    }

    if extra_claims:
        to_encode.update(extra_claims)

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )

    logger.debug(
        f"Token d'accès créé pour l'utilisateur {subject} "
        f"({len(to_encode['memberships'])} adhésions)"
    )
    return encoded_jwt


def create_refresh_token(
    subject: Union[str, int],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Crée un token JWT de rafraîchissement.

    Args:
        subject: Identifiant de l'utilisateur
        expires_delta: Durée de validité du token

    Returns:
        Token JWT de rafraîchissement encodé
    """
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            days=settings.REFRESH_TOKEN_EXPIRE_DAYS
        )

    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": "refresh",
    }

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
    """
    Vérifie et décode un token JWT.

    Args:
        token: Token JWT à vérifier
        token_type: Type de token attendu (access ou refresh)

    Returns:
        Payload du token si valide, None sinon
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"Erreur de vérification du token JWT: {e}")
        return None

    if payload.get("type") != token_type:
        logger.warning(f"Type de token invalide: attendu {token_type}, reçu {payload.get('type')}")
        return None

    return payload


def decode_token_unsafe(token: str) -> Optional[Dict[str, Any]]:
    """
    Décode un token sans vérifier l'expiration (logging uniquement).

    Args:
        token: Token JWT à décoder

    Returns:
        Payload du token ou None en cas d'erreur
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": False}
        )
    except JWTError:
        return None


__all__ = [
    "verify_password",
    "get_password_hash",
    "generate_secure_token",
    "generate_join_code",
    "create_access_token",
    "create_refresh_token",
    "verify_token",
    "decode_token_unsafe",
]
