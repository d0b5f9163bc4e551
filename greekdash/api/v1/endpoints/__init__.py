"""
Endpoints de l'API v1.
"""

from . import (
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

__all__ = [
    "auth",
    "users",
    "chapters",
    "members",
    "invites",
    "events",
    "finance",
    "billing",
    "webhooks",
    "broadcasts",
    "audit_logs",
]
