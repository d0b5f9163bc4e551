"""
Exceptions métier de GreekDash.

Les services lèvent ces exceptions, l'application les convertit en
réponses JSON via le gestionnaire enregistré dans main.py.

Usage:
    from greekdash.core.exceptions import BusinessRuleError

    if dues.is_paid:
        raise BusinessRuleError("Dues payment is already paid")
"""

from typing import Any, Dict, Optional


class GreekDashError(Exception):
    """Exception de base pour toutes les erreurs GreekDash."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "details": self.details,
        }


class BusinessRuleError(GreekDashError):
    """Règle métier violée (400)."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="BUSINESS_RULE", details=details)


class NotFoundError(GreekDashError):
    """Ressource introuvable (404)."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any = None):
        message = f"{resource_type} not found"
        super().__init__(
            message,
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class FinanceAccessError(GreekDashError):
    """Rôle ou plan insuffisant pour une fonctionnalité financière (403)."""

    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, code="FINANCE_ACCESS_DENIED")


# ============== Stripe ==============

class BillingConfigurationError(GreekDashError):
    """Configuration Stripe manquante côté serveur (500)."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, code="BILLING_NOT_CONFIGURED")


class InvalidWebhookSignature(GreekDashError):
    """Signature du webhook Stripe absente ou invalide (400)."""

    status_code = 400

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message, code="INVALID_SIGNATURE")


__all__ = [
    "GreekDashError",
    "BusinessRuleError",
    "NotFoundError",
    "FinanceAccessError",
    "BillingConfigurationError",
    "InvalidWebhookSignature",
]
