# services/whatsapp_service.py
import aiohttp
import base64
import os
from typing import Dict, Any, Optional

from models.whatsapp_schemas import ButtonMenu, ListMenu
from services.translation_service import translate

MAX_BUTTONS = 3
MAX_SECTIONS = 10
MAX_ROWS = 10
BUTTON_TITLE_LIMIT = 20
HEADER_LIMIT = 60
BODY_LIMIT = 1024
ROW_TITLE_LIMIT = 24
ROW_DESCRIPTION_LIMIT = 72
SECTION_TITLE_LIMIT = 24
LIST_BUTTON_LIMIT = 20


class WhatsAppAPIError(Exception):
    """Non-2xx answer from the Graph API"""

    def __init__(self, status: int, body: Any):
        self.status = status
        self.body = body
        super().__init__(f"Graph API returned {status}: {body}")


def truncate(text: str, limit: int) -> str:
    """Cut text to the provider limit, ending in an ellipsis"""
    if len(text) > limit:
        return text[:limit - 3] + '...'
    return text


def button_fallback_text(menu: ButtonMenu, lang: str) -> str:
    header = truncate(translate(menu.header, lang), HEADER_LIMIT)
    body = truncate(translate(menu.body, lang), BODY_LIMIT)
    text = f"{header}\n\n{body}\n\n"
    for index, button in enumerate(menu.buttons):
        text += f"{index + 1}. {translate(button.title, lang)}\n"
    return text


def list_fallback_text(menu: ListMenu, lang: str) -> str:
    header = truncate(translate(menu.header, lang), HEADER_LIMIT)
    body = truncate(translate(menu.body, lang), BODY_LIMIT)
    text = f"{header}\n\n{body}\n\n"
    for section in menu.sections:
        text += f"== {translate(section.title, lang)} ==\n"
        for index, row in enumerate(section.rows):
            text += f"{index + 1}. {translate(row.title, lang)}\n"
        text += "\n"
    return text


def build_button_payload(to: str, menu: ButtonMenu, lang: str) -> Dict[str, Any]:
    buttons = [
        {
            "type": "reply",
            "reply": {"id": button.id, "title": truncate(translate(button.title, lang), BUTTON_TITLE_LIMIT)}
        }
        for button in menu.buttons[:MAX_BUTTONS]
    ]
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
        "type": "interactive",
        "interactive": {
            "type": "button",
            "header": {"type": "text", "text": truncate(translate(menu.header, lang), HEADER_LIMIT)},
            "body": {"text": truncate(translate(menu.body, lang), BODY_LIMIT)},
            "action": {"buttons": buttons}
        }
    }


def build_list_payload(to: str, menu: ListMenu, lang: str) -> Dict[str, Any]:
    sections = []
    for section in menu.sections[:MAX_SECTIONS]:
        rows = []
        for row in section.rows[:MAX_ROWS]:
            item = {"id": row.id, "title": truncate(translate(row.title, lang), ROW_TITLE_LIMIT)}
            if row.description is not None:
                item["description"] = truncate(translate(row.description, lang), ROW_DESCRIPTION_LIMIT)
            rows.append(item)
        sections.append({
            "title": truncate(translate(section.title, lang), SECTION_TITLE_LIMIT),
            "rows": rows
        })

    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
        "type": "interactive",
        "interactive": {
            "type": "list",
            "header": {"type": "text", "text": truncate(translate(menu.header, lang), HEADER_LIMIT)},
            "body": {"text": truncate(translate(menu.body, lang), BODY_LIMIT)},
            "action": {
                "button": truncate(translate(menu.button_label, lang), LIST_BUTTON_LIMIT),
                "sections": sections
            }
        }
    }


class WhatsAppService:
    def __init__(self):
        self.token = os.getenv("GRAPH_API_TOKEN")
        if not self.token:
            raise ValueError("GRAPH_API_TOKEN must be set in environment variables")

        version = os.getenv("GRAPH_API_VERSION", "v22.0")
        self.base_url = f"{os.getenv('GRAPH_API_BASE_URL', 'https://graph.facebook.com').rstrip('/')}/{version}"
        print(f"✅ WhatsApp service initialized ({self.base_url})")

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}

    async def _post(self, phone_number_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{phone_number_id}/messages"
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=data, headers=self._headers) as response:
                if response.status >= 400:
                    raise WhatsAppAPIError(response.status, await response.text())
                return await response.json()

    async def send_text(
        self, phone_number_id: str, to: str, text: str, context_message_id: Optional[str] = None
    ) -> None:
        data = {
            "messaging_product": "whatsapp",
            "to": to,
            "text": {"body": text}
        }
        if context_message_id:
            data["context"] = {"message_id": context_message_id}
        await self._post(phone_number_id, data)

    async def send_buttons(
        self, phone_number_id: str, to: str, menu: ButtonMenu, lang: str = 'en',
        context_message_id: Optional[str] = None
    ) -> None:
        """Send up to three reply buttons; on rejection send the options as numbered text"""
        data = build_button_payload(to, menu, lang)
        if context_message_id:
            data["context"] = {"message_id": context_message_id}
        try:
            await self._post(phone_number_id, data)
        except Exception as e:
            print(f"❌ Error sending button message: {e}")
            await self.send_text(phone_number_id, to, button_fallback_text(menu, lang))

    async def send_list(
        self, phone_number_id: str, to: str, menu: ListMenu, lang: str = 'en',
        context_message_id: Optional[str] = None
    ) -> None:
        """Send a list picker; on rejection send the sections as numbered text"""
        data = build_list_payload(to, menu, lang)
        if context_message_id:
            data["context"] = {"message_id": context_message_id}
        try:
            await self._post(phone_number_id, data)
        except Exception as e:
            print(f"❌ Error sending list message: {e}")
            await self.send_text(phone_number_id, to, list_fallback_text(menu, lang))

    async def mark_as_read(self, phone_number_id: str, message_id: str) -> None:
        await self._post(phone_number_id, {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id
        })

    async def download_media(self, media_id: str) -> str:
        """Fetch a media object and return its bytes base64-encoded"""
        headers = {"Authorization": f"Bearer {self.token}"}
        async with aiohttp.ClientSession() as session:
            async with session.get(f"{self.base_url}/{media_id}", headers=headers) as response:
                if response.status >= 400:
                    raise WhatsAppAPIError(response.status, await response.text())
                media = await response.json()

            async with session.get(media["url"], headers=headers) as response:
                if response.status >= 400:
                    raise WhatsAppAPIError(response.status, await response.text())
                content = await response.read()

        print(f"✅ Downloaded media {media_id} ({len(content)} bytes)")
        return base64.b64encode(content).decode("ascii")


def init_whatsapp_service() -> WhatsAppService:
    return WhatsAppService()
