# services/responder.py
from typing import Union

from models.whatsapp_schemas import InboundEvent, ButtonMenu, ListMenu
from services.translation_service import Message, translate, normalize_language


class Responder:
    """Replies to one inbound event in the sender's language"""

    def __init__(self, messenger, event: InboundEvent, lang: str = 'en'):
        self.messenger = messenger
        self.event = event
        self.lang = normalize_language(lang)

    async def text(self, message: Union[Message, str], translate_text: bool = True) -> None:
        """Send a message; plain strings are treated as translation keys unless translate_text is False"""
        body = translate(message, self.lang) if translate_text or not isinstance(message, str) else message
        await self.messenger.send_text(
            self.event.phone_number_id, self.event.sender, body, self.event.message_id
        )

    async def buttons(self, menu: ButtonMenu) -> None:
        await self.messenger.send_buttons(
            self.event.phone_number_id, self.event.sender, menu, self.lang, self.event.message_id
        )

    async def list(self, menu: ListMenu) -> None:
        await self.messenger.send_list(
            self.event.phone_number_id, self.event.sender, menu, self.lang, self.event.message_id
        )

    async def mark_read(self) -> None:
        if self.event.message_id:
            await self.messenger.mark_as_read(self.event.phone_number_id, self.event.message_id)

    def with_language(self, lang: str) -> "Responder":
        return Responder(self.messenger, self.event, lang)
