"""
Dépendances FastAPI pour l'injection de dépendances.
Gère l'authentification, les autorisations par chapitre et l'accès à la base de données.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.core.security import verify_token
from greekdash.core.exceptions import NotFoundError
from greekdash.core.logging import logger
from greekdash.models.user import User
from greekdash.models.chapter import Chapter, Membership, MembershipRole
from greekdash.services.finance_service import check_finance_access


# Schéma de sécurité Bearer Token
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Récupère l'utilisateur courant à partir du token JWT.

    Args:
        credentials: Token Bearer JWT
        db: Session de base de données

    Returns:
        Instance User de l'utilisateur authentifié

    Raises:
        HTTPException: Si le token est invalide ou l'utilisateur non trouvé
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials:
        logger.warning("Tentative d'accès sans token")
        raise credentials_exception

    payload = verify_token(credentials.credentials, token_type="access")

    if payload is None:
        logger.warning("Token invalide ou expiré")
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        logger.warning("Token sans identifiant utilisateur")
        raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id)).first()

    if user is None:
        logger.warning(f"Utilisateur {user_id} non trouvé")
        raise credentials_exception

    logger.debug(f"Utilisateur authentifié: {user.email}")
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Vérifie que l'utilisateur courant est actif.

    Raises:
        HTTPException: Si l'utilisateur est désactivé
    """
    if not current_user.is_active:
        logger.warning(f"Tentative d'accès par utilisateur désactivé: {current_user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )
    return current_user


class ChapterContext:
    """Utilisateur, adhésion et chapitre résolus pour une requête."""

    def __init__(self, user: User, membership: Membership, chapter: Chapter):
        self.user = user
        self.membership = membership
        self.chapter = chapter

    @property
    def role(self) -> str:
        return self.membership.role

    @property
    def is_admin(self) -> bool:
        return self.membership.is_admin

    @property
    def is_owner(self) -> bool:
        return self.membership.role == MembershipRole.OWNER.value


def get_chapter_or_404(db: Session, slug: str) -> Chapter:
    """Charge un chapitre par son slug ou lève une 404."""
    chapter = db.query(Chapter).filter(Chapter.slug == slug.lower()).first()
    if not chapter:
        raise NotFoundError("Chapter", slug)
    return chapter


class ChapterPermission:
    """
    Vérification des permissions pour un chapitre spécifique.
    Vérifie que l'utilisateur est membre du chapitre et a le rôle requis.
    """

    def __init__(
        self,
        admin_only: bool = False,
        owner_only: bool = False,
        allow_pending: bool = False,
    ):
        """
        Args:
            admin_only: Réservé aux rôles ADMIN et OWNER
            owner_only: Réservé au propriétaire du chapitre
            allow_pending: Autoriser les demandes d'adhésion en attente
        """
        self.admin_only = admin_only
        self.owner_only = owner_only
        self.allow_pending = allow_pending

    async def __call__(
        self,
        slug: str,
        current_user: User = Depends(get_current_active_user),
        db: Session = Depends(get_db),
    ) -> ChapterContext:
        """
        Vérifie les permissions de l'utilisateur pour le chapitre.

        Args:
            slug: Slug du chapitre
            current_user: Utilisateur courant
            db: Session de base de données

        Returns:
            Contexte du chapitre si autorisé

        Raises:
            HTTPException: 404 si le chapitre n'existe pas, 403 si non autorisé
        """
        chapter = get_chapter_or_404(db, slug)

        membership = db.query(Membership).filter(
            Membership.chapter_id == chapter.id,
            Membership.user_id == current_user.id,
        ).first()

        if not membership or (membership.is_pending and not self.allow_pending):
            logger.warning(
                f"Accès refusé au chapitre {chapter.slug} pour {current_user.email}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You are not a member of this chapter",
            )

        if self.owner_only and membership.role != MembershipRole.OWNER.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the chapter owner can perform this action",
            )

        if self.admin_only and not membership.is_admin:
            logger.warning(
                f"Accès admin refusé pour {current_user.email} "
                f"(rôle {membership.role}) sur {chapter.slug}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin access required",
            )

        return ChapterContext(current_user, membership, chapter)


# Instances de permissions prédéfinies
chapter_member = ChapterPermission()
chapter_member_or_pending = ChapterPermission(allow_pending=True)
chapter_admin = ChapterPermission(admin_only=True)
chapter_owner = ChapterPermission(owner_only=True)


class FinanceAccess:
    """
    Contrôle d'accès aux fonctionnalités financières.
    Combine le rôle dans le chapitre et le plan d'abonnement.
    """

    def __init__(self, level: str = "MEMBER"):
        self.level = level

    async def __call__(
        self,
        ctx: ChapterContext = Depends(chapter_member),
    ) -> ChapterContext:
        check_finance_access(ctx.membership, ctx.chapter, self.level)
        return ctx


finance_member = FinanceAccess("MEMBER")
finance_admin = FinanceAccess("ADMIN")


__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "get_chapter_or_404",
    "ChapterContext",
    "ChapterPermission",
    "chapter_member",
    "chapter_member_or_pending",
    "chapter_admin",
    "chapter_owner",
    "FinanceAccess",
    "finance_member",
    "finance_admin",
    "security",
]
