"""
Service d'envoi de SMS via Twilio.
"""

from typing import Any, Dict, Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from greekdash.config import settings
from greekdash.core.logging import logger, log_message_sent


# Limite Twilio pour un message concaténé
MAX_SMS_LENGTH = 1600


class SMSService:
    """
    Service SMS basé sur le client Twilio.
    Le client n'est créé que si les trois paramètres Twilio sont renseignés.
    """

    def __init__(self):
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        self.from_number = settings.TWILIO_PHONE_NUMBER
        self._client: Optional[Client] = None

    @property
    def is_configured(self) -> bool:
        return all([self.account_sid, self.auth_token, self.from_number])

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send_sms(self, to_number: str, body: str) -> Dict[str, Any]:
        """
        Envoie un SMS.

        Args:
            to_number: Numéro du destinataire (E.164)
            body: Texte du message (tronqué à 1600 caractères)

        Returns:
            {"success": True, "message_id": sid} ou {"success": False, "error": ...}
        """
        if not self.is_configured:
            logger.warning("Twilio non configuré - SMS non envoyé")
            return {"success": False, "error": "SMS service not configured"}

        logger.info(f"Envoi SMS à {to_number[:6]}***")

        try:
            message = self.client.messages.create(
                body=body[:MAX_SMS_LENGTH],
                from_=self.from_number,
                to=to_number,
            )
        except TwilioException as e:
            logger.error(f"Erreur envoi SMS: {e}")
            log_message_sent("SMS", to_number, False, preview=str(e))
            return {"success": False, "error": str(e)}

        log_message_sent("SMS", to_number, True, preview=body[:50])
        return {"success": True, "message_id": message.sid}


# Instance globale du service
sms_service = SMSService()


__all__ = ["SMSService", "sms_service", "MAX_SMS_LENGTH"]
