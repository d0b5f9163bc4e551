"""
Routes d'authentification - Inscription, connexion, tokens, mot de passe.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from greekdash.database import get_db
from greekdash.core.security import (
    create_access_token,
    create_refresh_token,
    verify_password,
    get_password_hash,
    verify_token,
    generate_secure_token,
    generate_join_code,
)
from greekdash.core.logging import logger
from greekdash.config import settings
from greekdash.models.user import User
from greekdash.models.chapter import Chapter, Membership, MembershipRole
from greekdash.models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus
from greekdash.models.audit import AuditAction, AuditTargetType
from greekdash.schemas.user import (
    RegisterRequest,
    RegisterResponse,
    UserLogin,
    RefreshRequest,
    Token,
    MeResponse,
    PasswordChange,
    ForgotPasswordRequest,
    PasswordResetConfirm,
    MessageResponse,
)
from greekdash.api.deps import get_current_active_user
from greekdash.services.audit_service import log_audit_entry
from greekdash.services.email_service import email_service


router = APIRouter()


def serialize_memberships(user: User) -> List[Dict[str, Any]]:
    """Adhésions embarquées dans le token d'accès et renvoyées par /me."""
    return [
        {
            "id": m.id,
            "role": m.role,
            "chapter_id": m.chapter_id,
            "chapter_slug": m.chapter.slug,
            "chapter_name": m.chapter.name,
        }
        for m in user.memberships
    ]


def build_tokens(user: User) -> Token:
    """Génère la paire de tokens d'un utilisateur."""
    claims = [
        {k: v for k, v in m.items() if k != "chapter_name"}
        for m in serialize_memberships(user)
    ]
    return Token(
        access_token=create_access_token(subject=user.id, memberships=claims),
        refresh_token=create_refresh_token(subject=user.id),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def _first_chapter_id(user: User):
    return user.memberships[0].chapter_id if user.memberships else None


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Inscription et création d'un chapitre",
)
async def register(
    data: RegisterRequest,
    db: Session = Depends(get_db),
) -> Any:
    """
    Crée un compte et son chapitre en une seule transaction.

    - **full_name**: Nom complet (3 caractères minimum)
    - **email**: Adresse email unique
    - **chapter_slug**: URL du chapitre (minuscules, chiffres, tirets)
    - **password**: Mot de passe (8 caractères, majuscule, minuscule, chiffre)
    """
    logger.info(f"Tentative d'inscription: {data.email} ({data.chapter_slug})")

    if db.query(User).filter(User.email == data.email).first():
        logger.warning(f"Email déjà utilisé: {data.email}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    if db.query(Chapter).filter(Chapter.slug == data.chapter_slug).first():
        logger.warning(f"Slug déjà utilisé: {data.chapter_slug}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Chapter URL is already taken",
        )

    try:
        user = User(
            email=data.email,
            name=data.full_name,
            hashed_password=get_password_hash(data.password),
            is_active=True,
        )
        db.add(user)
        db.flush()

        chapter = Chapter(
            name=f"{user.first_name}'s Chapter",
            slug=data.chapter_slug,
            join_code=generate_join_code(),
        )
        db.add(chapter)
        db.flush()

        db.add(Membership(
            user_id=user.id,
            chapter_id=chapter.id,
            role=MembershipRole.OWNER.value,
        ))
        db.add(Subscription(
            chapter_id=chapter.id,
            plan=SubscriptionPlan.FREE.value,
            status=SubscriptionStatus.ACTIVE.value,
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Conflit lors de l'inscription: {data.email} ({data.chapter_slug})")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or chapter URL is already taken",
        )

    logger.info(f"Nouvel utilisateur {user.email} (ID: {user.id}) propriétaire de {chapter.slug}")

    return RegisterResponse(
        message="Registration successful",
        user_id=user.id,
        chapter_slug=chapter.slug,
    )


@router.post(
    "/login",
    response_model=Token,
    summary="Connexion utilisateur",
)
async def login(
    credentials: UserLogin,
    db: Session = Depends(get_db),
) -> Any:
    """
    Authentifie un utilisateur et retourne les tokens JWT.
    Le token d'accès embarque les adhésions de l'utilisateur.
    """
    email = credentials.email.lower()
    logger.info(f"Tentative de connexion: {email}")

    user = db.query(User).filter(User.email == email).first()

    if not user or not user.hashed_password:
        logger.warning(f"Utilisateur non trouvé: {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Mot de passe incorrect pour: {user.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        logger.warning(f"Compte désactivé: {user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    user.last_login = datetime.utcnow()
    db.commit()

    logger.info(f"Connexion réussie: {user.email}")
    return build_tokens(user)


@router.post(
    "/refresh",
    response_model=Token,
    summary="Rafraîchir le token d'accès",
)
async def refresh_token(
    data: RefreshRequest,
    db: Session = Depends(get_db),
) -> Any:
    """
    Génère une nouvelle paire de tokens à partir du refresh token.
    """
    payload = verify_token(data.refresh_token, token_type="refresh")

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    user = db.query(User).filter(User.id == int(payload.get("sub"))).first()

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or disabled",
        )

    logger.info(f"Token rafraîchi pour: {user.email}")
    return build_tokens(user)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Profil de l'utilisateur connecté",
)
async def get_me(
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Retourne l'utilisateur connecté et ses adhésions.
    """
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        is_active=current_user.is_active,
        created_at=current_user.created_at,
        last_login=current_user.last_login,
        memberships=serialize_memberships(current_user),
    )


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Changer le mot de passe",
)
async def change_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
) -> Any:
    """
    Change le mot de passe de l'utilisateur connecté.
    """
    if not current_user.hashed_password or not verify_password(
        password_data.current_password, current_user.hashed_password
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    current_user.hashed_password = get_password_hash(password_data.new_password)
    db.commit()

    logger.info(f"Mot de passe changé pour: {current_user.email}")

    return {"message": "Password updated successfully"}


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Demander la réinitialisation du mot de passe",
)
async def forgot_password(
    reset_data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> Any:
    """
    Envoie un lien de réinitialisation du mot de passe.
    La réponse est identique que le compte existe ou non.
    """
    user = db.query(User).filter(User.email == reset_data.email.lower()).first()

    if user:
        token = generate_secure_token()
        user.reset_token = token
        user.reset_token_expires = datetime.utcnow() + timedelta(
            hours=settings.PASSWORD_RESET_EXPIRE_HOURS
        )
        db.commit()

        logger.info(f"Lien de réinitialisation généré pour: {user.email}")

        background_tasks.add_task(
            email_service.send_password_reset_email,
            user.email,
            user.name or user.email,
            f"{settings.FRONTEND_URL}/auth/reset-password?token={token}",
        )

        chapter_id = _first_chapter_id(user)
        if chapter_id is not None:
            log_audit_entry(
                db,
                chapter_id=chapter_id,
                user_id=user.id,
                action=AuditAction.PASSWORD_RESET_REQUESTED,
                target_type=AuditTargetType.USER,
                target_id=user.id,
                metadata={"email": user.email},
            )

    return {
        "message": "If an account exists with this email, "
                   "you will receive a password reset link"
    }


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Réinitialiser le mot de passe",
)
async def reset_password(
    reset_data: PasswordResetConfirm,
    db: Session = Depends(get_db),
) -> Any:
    """
    Réinitialise le mot de passe avec le token reçu par email.
    """
    user = db.query(User).filter(User.reset_token == reset_data.token).first()

    if not user or not user.reset_token_expires or user.reset_token_expires < datetime.utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token",
        )

    user.hashed_password = get_password_hash(reset_data.password)
    user.reset_token = None
    user.reset_token_expires = None
    db.commit()

    logger.info(f"Mot de passe réinitialisé pour: {user.email}")

    chapter_id = _first_chapter_id(user)
    if chapter_id is not None:
        log_audit_entry(
            db,
            chapter_id=chapter_id,
            user_id=user.id,
            action=AuditAction.PASSWORD_RESET_COMPLETED,
            target_type=AuditTargetType.USER,
            target_id=user.id,
        )

    return {"message": "Password has been reset successfully"}


@router.get(
    "/verify-reset-token",
    summary="Vérifier un token de réinitialisation",
)
async def verify_reset_token(
    token: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
) -> Any:
    user = db.query(User).filter(User.reset_token == token).first()
    valid = bool(
        user and user.reset_token_expires and user.reset_token_expires >= datetime.utcnow()
    )
    return {"valid": valid}


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Déconnexion",
)
async def logout(
    current_user: User = Depends(get_current_active_user),
) -> Any:
    """
    Déconnecte l'utilisateur.
    Avec JWT, la déconnexion est gérée côté client en supprimant le token.
    """
    logger.info(f"Déconnexion: {current_user.email}")
    return {"message": "Logged out successfully"}
