# models/whatsapp_schemas.py
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from enum import Enum

from services.translation_service import Message


class EventKind(str, Enum):
    TEXT = "text"
    BUTTON_REPLY = "button_reply"
    LIST_REPLY = "list_reply"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class InboundEvent(BaseModel):
    """One inbound WhatsApp message, flattened from the webhook payload"""
    kind: EventKind
    sender: str
    message_id: Optional[str] = None
    phone_number_id: Optional[str] = None
    text: Optional[str] = None
    selection_id: Optional[str] = None
    media_id: Optional[str] = None

    @property
    def is_selection(self) -> bool:
        return self.kind in (EventKind.BUTTON_REPLY, EventKind.LIST_REPLY)


def parse_webhook_payload(payload: Dict[str, Any]) -> Optional[InboundEvent]:
    """
    Extract the first message of a Cloud API webhook payload.
    Returns None for payloads without a message (delivery/read statuses).
    """
    try:
        value = payload['entry'][0]['changes'][0]['value']
    except (KeyError, IndexError, TypeError):
        return None

    messages = value.get('messages') or []
    if not messages:
        return None

    message = messages[0]
    sender = message.get('from')
    if not sender:
        return None

    base = {
        'sender': sender,
        'message_id': message.get('id'),
        'phone_number_id': (value.get('metadata') or {}).get('phone_number_id'),
    }
    message_type = message.get('type')

    if message_type == 'text':
        return InboundEvent(kind=EventKind.TEXT, text=(message.get('text') or {}).get('body', ''), **base)

    if message_type == 'interactive':
        interactive = message.get('interactive') or {}
        interactive_type = interactive.get('type')
        if interactive_type == 'button_reply':
            reply = interactive.get('button_reply') or {}
            return InboundEvent(kind=EventKind.BUTTON_REPLY, selection_id=reply.get('id'), text=reply.get('title'), **base)
        if interactive_type == 'list_reply':
            reply = interactive.get('list_reply') or {}
            return InboundEvent(kind=EventKind.LIST_REPLY, selection_id=reply.get('id'), text=reply.get('title'), **base)

    if message_type == 'image':
        return InboundEvent(kind=EventKind.IMAGE, media_id=(message.get('image') or {}).get('id'), **base)

    return InboundEvent(kind=EventKind.UNSUPPORTED, **base)


# Outbound interactive menus

class MenuButton(BaseModel):
    id: str
    title: Message


class ButtonMenu(BaseModel):
    header: Message
    body: Message
    buttons: List[MenuButton]


class MenuRow(BaseModel):
    id: str
    title: Message
    description: Optional[Message] = None


class MenuSection(BaseModel):
    title: Message
    rows: List[MenuRow]


class ListMenu(BaseModel):
    header: Message
    body: Message
    button_label: Message
    sections: List[MenuSection]
