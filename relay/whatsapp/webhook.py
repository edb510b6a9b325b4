"""
Parsing of WhatsApp Cloud API webhook notifications.

Only the first message of the first change of the first entry is relayed,
which is what the Cloud API delivers for one-to-one chats.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

WHATSAPP_OBJECT = "whatsapp_business_account"


class TextBody(BaseModel):
    body: Optional[str] = None


class WebhookMessage(BaseModel):
    from_: str = Field(..., alias="from")
    type: Optional[str] = None
    text: Optional[TextBody] = None


class ChangeValue(BaseModel):
    messages: List[WebhookMessage] = Field(default_factory=list)


class Change(BaseModel):
    value: Optional[ChangeValue] = None


class Entry(BaseModel):
    changes: List[Change] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    object: Optional[str] = None
    entry: Optional[List[Entry]] = None


class InboundMessage(BaseModel):
    user_id: str
    text: str


def is_test_ping(payload: Any) -> bool:
    """Meta's webhook test sends the object marker without any entry."""
    return (
        isinstance(payload, dict)
        and payload.get("object") == WHATSAPP_OBJECT
        and not payload.get("entry")
    )


def extract_message(payload: Any) -> Optional[InboundMessage]:
    """
    Return the inbound text message carried by a webhook payload, or None
    when the payload is not a WhatsApp message or the text is empty after
    trimming.
    """
    try:
        parsed = WebhookPayload.model_validate(payload)
    except ValidationError:
        return None
    if parsed.object != WHATSAPP_OBJECT or not parsed.entry:
        return None
    changes = parsed.entry[0].changes
    if not changes or changes[0].value is None or not changes[0].value.messages:
        return None

    message = changes[0].value.messages[0]
    if message.type not in (None, "text"):
        return None
    text = (message.text.body or "").strip() if message.text else ""
    if not text:
        return None
    return InboundMessage(user_id=message.from_, text=text)


__all__ = ["WHATSAPP_OBJECT", "InboundMessage", "WebhookPayload", "extract_message", "is_test_ping"]
