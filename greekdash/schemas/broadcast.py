"""
Schémas Pydantic pour les diffusions email/SMS et l'historique des messages.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from greekdash.models.audit import MessageType


class BroadcastRequest(BaseModel):
    """Message à diffuser aux membres du chapitre."""
    subject: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=5000)
    recipient_filter: str = Field(default="all", pattern="^(all|admins|members)$")
    send_email: bool = True
    send_sms: bool = False

    @model_validator(mode="after")
    def at_least_one_channel(self):
        if not self.send_email and not self.send_sms:
            raise ValueError("Select at least one channel (email or SMS)")
        return self


class BroadcastResult(BaseModel):
    emails_sent: int
    sms_sent: int
    errors: List[str] = []


class MessageLogResponse(BaseModel):
    id: int
    message_id: str
    type: MessageType
    recipient: str
    subject: Optional[str] = None
    content: str
    status: str
    error: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MessageLogListResponse(BaseModel):
    items: List[MessageLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
