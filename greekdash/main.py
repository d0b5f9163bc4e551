"""
GreekDash - Point d'entrée principal de l'application.
Plateforme de gestion des chapitres de fraternités et sororités.
"""

import time
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from greekdash.config import settings
from greekdash.database import check_db_connection, init_db
from greekdash.core.exceptions import GreekDashError
from greekdash.core.logging import setup_logging, logger, log_request
from greekdash.core.security import decode_token_unsafe
from greekdash.api.v1.router import api_router


# Configuration du logging au démarrage
setup_logging(
    log_level="DEBUG" if settings.DEBUG else "INFO",
    log_file=settings.LOG_FILE,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gestionnaire de cycle de vie de l'application.
    Exécuté au démarrage et à l'arrêt.
    """
    logger.info("=" * 60)
    logger.info(f"Démarrage de {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environnement: {settings.ENVIRONMENT}")
    logger.info("=" * 60)

    if not check_db_connection():
        logger.error("Impossible de se connecter à la base de données!")
    elif settings.DEBUG:
        # En développement, les tables manquantes sont créées sans Alembic
        init_db()

    if not settings.STRIPE_SECRET_KEY:
        logger.warning("Stripe non configuré: la facturation est désactivée")

    logger.info("Application prête à recevoir des requêtes")

    yield

    logger.info("Arrêt de l'application...")
    logger.info("Application arrêtée proprement")


# Création de l'application FastAPI
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## GreekDash - Gestion des chapitres

    ### Fonctionnalités principales:

    * **Comptes** - Inscription avec création de chapitre, JWT, réinitialisation du mot de passe
    * **Chapitres** - Page publique, code d'adhésion, paramètres, galerie
    * **Membres** - Demandes d'adhésion, invitations, rôles, profils
    * **Événements** - Calendrier, capacité, réponses (RSVP)
    * **Finances** - Budgets, dépenses, cotisations, grand livre, export CSV
    * **Facturation** - Plans FREE / BASIC / PRO via Stripe
    * **Diffusion** - Messages email et SMS aux membres
    * **Audit** - Historique des actions sensibles

    ### Rôles:

    * **OWNER** - Propriétaire du chapitre, gère l'abonnement
    * **ADMIN** - Gère les membres, événements et finances
    * **MEMBER** - Membre confirmé
    * **PENDING_MEMBER** - Demande d'adhésion en attente

    ### Documentation API:

    * Swagger UI: `/docs`
    * ReDoc: `/redoc`
    * OpenAPI JSON: `/openapi.json`
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_tags=[
        {"name": "Authentification", "description": "Inscription, connexion, tokens JWT"},
        {"name": "Utilisateurs", "description": "Adhésions et téléphone"},
        {"name": "Chapitres", "description": "Pages publiques et paramètres"},
        {"name": "Membres", "description": "Approbations, rôles et profils"},
        {"name": "Invitations", "description": "Invitations par email"},
        {"name": "Événements", "description": "Calendrier et réponses"},
        {"name": "Finances", "description": "Budgets, dépenses, cotisations"},
        {"name": "Facturation", "description": "Abonnement Stripe"},
        {"name": "Diffusion", "description": "Emails et SMS aux membres"},
        {"name": "Audit", "description": "Piste d'audit"},
        {"name": "Webhooks", "description": "Événements Stripe"},
    ],
)


# Configuration CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Middleware de logging des requêtes
@app.middleware("http")
async def logging_middleware(request: Request, call_next: Callable) -> Response:
    """
    Middleware pour logger toutes les requêtes HTTP.
    """
    start_time = time.time()

    # ID utilisateur du token, pour les logs uniquement
    user_id = None
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        payload = decode_token_unsafe(auth_header[7:])
        if payload:
            user_id = payload.get("sub")

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        url=str(request.url.path),
        status_code=response.status_code,
        duration_ms=duration_ms,
        user_id=user_id,
    )

    response.headers["X-Process-Time"] = f"{duration_ms:.2f}ms"

    return response


# Gestionnaire des erreurs métier
@app.exception_handler(GreekDashError)
async def greekdash_exception_handler(
    request: Request,
    exc: GreekDashError,
) -> JSONResponse:
    """
    Convertit les exceptions métier des services en réponse JSON.
    """
    if exc.status_code >= 500:
        logger.error(f"Erreur {exc.code}: {exc.message}")
    else:
        logger.warning(f"Erreur {exc.code} sur {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


# Gestionnaire d'erreurs de validation
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Gestionnaire personnalisé pour les erreurs de validation Pydantic.
    """
    logger.warning(f"Erreur de validation: {exc.errors()}")

    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation failed",
            "errors": errors,
        },
    )


# Gestionnaire d'erreurs SQLAlchemy
@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(
    request: Request,
    exc: SQLAlchemyError,
) -> JSONResponse:
    """
    Gestionnaire pour les erreurs de base de données.
    """
    logger.error(f"Erreur SQLAlchemy: {exc}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error"},
    )


# Gestionnaire d'erreurs génériques
@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Gestionnaire pour toutes les autres exceptions.
    """
    logger.opt(exception=exc).error(f"Erreur non gérée: {exc}")

    if settings.DEBUG:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": str(exc),
                "type": type(exc).__name__,
            },
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Inclusion du routeur API v1
app.include_router(api_router, prefix="/api/v1")


# Route de santé
@app.get(
    "/health",
    tags=["Système"],
    summary="Vérification de l'état de l'application",
)
async def health_check():
    """
    Endpoint de health check pour les load balancers et monitoring.
    """
    db_status = "ok" if check_db_connection() else "error"

    return {
        "status": "ok" if db_status == "ok" else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": db_status,
    }


# Route racine
@app.get("/", tags=["Système"])
async def root():
    """
    Point d'entrée racine de l'API.
    """
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/health",
        "api": "/api/v1",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "greekdash.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
