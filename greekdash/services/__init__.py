"""
Module des services métier de GreekDash.
"""

from .email_service import EmailService, email_service
from .sms_service import SMSService, sms_service
from .audit_service import log_audit_entry
from .billing_service import BillingService, billing_service
from .broadcast_service import send_broadcast

__all__ = [
    "EmailService",
    "email_service",
    "SMSService",
    "sms_service",
    "log_audit_entry",
    "BillingService",
    "billing_service",
    "send_broadcast",
]
