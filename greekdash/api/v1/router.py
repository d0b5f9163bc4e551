"""
Routeur principal de l'API v1.
Regroupe toutes les routes des différents modules.
"""

from fastapi import APIRouter

from greekdash.api.v1.endpoints import (
    auth,
    users,
    chapters,
    members,
    invites,
    events,
    finance,
    billing,
    webhooks,
    broadcasts,
    audit_logs,
)

api_router = APIRouter()

# Routes d'authentification
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentification"],
)

# Routes utilisateurs
api_router.include_router(
    users.router,
    prefix="/users",
    tags=["Utilisateurs"],
)

# Routes chapitres
api_router.include_router(
    chapters.router,
    prefix="/chapters",
    tags=["Chapitres"],
)

# Routes membres
api_router.include_router(
    members.router,
    prefix="/chapters/{slug}/members",
    tags=["Membres"],
)

# Routes invitations (administration puis acceptation publique)
api_router.include_router(
    invites.router,
    prefix="/chapters/{slug}/invites",
    tags=["Invitations"],
)
api_router.include_router(
    invites.public_router,
    prefix="/invites",
    tags=["Invitations"],
)

# Routes événements
api_router.include_router(
    events.router,
    prefix="/chapters/{slug}/events",
    tags=["Événements"],
)

# Routes finances
api_router.include_router(
    finance.router,
    prefix="/chapters/{slug}/finance",
    tags=["Finances"],
)

# Routes facturation
api_router.include_router(
    billing.router,
    prefix="/chapters/{slug}/billing",
    tags=["Facturation"],
)

# Routes diffusion
api_router.include_router(
    broadcasts.router,
    prefix="/chapters/{slug}/broadcasts",
    tags=["Diffusion"],
)

# Routes piste d'audit
api_router.include_router(
    audit_logs.router,
    prefix="/chapters/{slug}/audit-logs",
    tags=["Audit"],
)

# Webhooks entrants
api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Webhooks"],
)
