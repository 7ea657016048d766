# services/dispatch_service.py
"""
Routes each inbound WhatsApp event to a handler.

Priority for text: restart phrases, then any open dialogue, then keyword
commands, then the welcome menu (not onboarded) or an echo (onboarded).
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from models.schemas import ConversationMode, ConversationState, ReadingCategory, UserProfile
from models.whatsapp_schemas import EventKind, InboundEvent
from services import menu_definitions as menus
from services.analytics_service import format_trends_message, format_correlation_message
from services.conversation_service import accepts_selection
from services.responder import Responder
from services.summary_service import format_summary_message
from services.translation_service import Localized, normalize_language

L = Localized.of

RESTART_PHRASES = ('start onboarding', 'update profile')

TEXT_COMMANDS = {
    'summary': menus.SUMMARY,
    'log blood sugar': menus.LOG_BLOOD_SUGAR,
    'blood sugar': menus.LOG_BLOOD_SUGAR,
    'blood sugar trends': menus.BLOOD_SUGAR_TRENDS,
    'trends': menus.BLOOD_SUGAR_TRENDS,
    'meal impact': menus.MEAL_IMPACT,
    'language': menus.LANGUAGE,
    'change language': menus.LANGUAGE,
    'help': menus.HELP,
}

SELECTION_COMMANDS = {
    menus.START_ONBOARDING, menus.HELP, menus.SEND_FOOD, menus.LOG_BLOOD_SUGAR,
    menus.BLOOD_SUGAR_TRENDS, menus.MEAL_IMPACT, menus.SUMMARY, menus.LANGUAGE,
    menus.DAILY_SUMMARY, menus.WEEKLY_SUMMARY, menus.MONTHLY_SUMMARY,
    menus.LANG_EN, menus.LANG_HI,
    menus.READING_FASTING, menus.READING_POST_MEAL, menus.READING_RANDOM,
}

SUMMARY_PERIODS = {
    menus.DAILY_SUMMARY: 'daily',
    menus.WEEKLY_SUMMARY: 'weekly',
    menus.MONTHLY_SUMMARY: 'monthly',
}

READING_SELECTIONS = {
    menus.READING_FASTING: ReadingCategory.FASTING,
    menus.READING_POST_MEAL: ReadingCategory.POST_MEAL,
    menus.READING_RANDOM: ReadingCategory.RANDOM,
}

LANGUAGE_SELECTIONS = {menus.LANG_EN: 'en', menus.LANG_HI: 'hi'}

FOOD_INSTRUCTIONS = L(
    "To analyze your food, simply send a photo of your meal, and I'll provide calorie estimates and health "
    "recommendations. You can also add a description after sending the image for more accurate analysis.",
    "अपने भोजन का विश्लेषण करने के लिए, बस अपने भोजन की एक तस्वीर भेजें, और मैं कैलोरी अनुमान और स्वास्थ्य "
    "सिफारिशें प्रदान करूंगा। अधिक सटीक विश्लेषण के लिए आप छवि भेजने के बाद एक विवरण भी जोड़ सकते हैं।"
)
LANGUAGE_UPDATED = L(
    "Your language preference has been updated to English.",
    "आपकी भाषा प्राथमिकता हिंदी में अपडेट कर दी गई है।"
)
LANGUAGE_UPDATE_FAILED = L(
    "There was an error updating your language preference. Please try again later.",
    "आपकी भाषा प्राथमिकता अपडेट करने में एक त्रुटि हुई। कृपया बाद में पुनः प्रयास करें।"
)
MEAL_IMPACT_FAILED = L(
    "Sorry, there was an error comparing your meals with your blood sugar readings.",
    "क्षमा करें, आपके भोजन की तुलना रक्त शर्करा रीडिंग से करने में त्रुटि हुई।"
)


class RouteKind(str, Enum):
    COMMAND = "command"
    DIALOGUE = "dialogue"
    IMAGE = "image"
    WELCOME = "welcome"
    ECHO = "echo"
    IGNORE = "ignore"


class Route(BaseModel):
    kind: RouteKind
    target: Optional[str] = None


def classify(event: InboundEvent, state: Optional[ConversationState], onboarded: bool = False) -> Route:
    """Decide what an event means given the user's open dialogue"""
    if event.kind == EventKind.IMAGE:
        return Route(kind=RouteKind.IMAGE)

    if event.is_selection:
        selection_id = event.selection_id or ''
        if accepts_selection(state, selection_id):
            return Route(kind=RouteKind.DIALOGUE, target=selection_id)
        if selection_id in SELECTION_COMMANDS:
            return Route(kind=RouteKind.COMMAND, target=selection_id)
        return Route(kind=RouteKind.IGNORE, target=selection_id)

    if event.kind != EventKind.TEXT:
        return Route(kind=RouteKind.IGNORE)

    command = (event.text or '').strip().lower()
    if command in RESTART_PHRASES:
        return Route(kind=RouteKind.COMMAND, target=menus.START_ONBOARDING)
    if state and state.mode != ConversationMode.NONE:
        return Route(kind=RouteKind.DIALOGUE)
    if command in TEXT_COMMANDS:
        return Route(kind=RouteKind.COMMAND, target=TEXT_COMMANDS[command])
    if not onboarded:
        return Route(kind=RouteKind.WELCOME)
    return Route(kind=RouteKind.ECHO)


class DispatchService:
    def __init__(self, store, messenger, sessions, conversation, blood_sugar, summaries):
        self.store = store
        self.messenger = messenger
        self.sessions = sessions
        self.conversation = conversation
        self.blood_sugar = blood_sugar
        self.summaries = summaries

    async def _load_user(self, phone: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.store.get_user(phone)
        except Exception as e:
            print(f"⚠️ Could not load user {phone}, continuing with defaults: {e}")
            return None

    async def handle_event(self, event: InboundEvent) -> Route:
        """Handle one inbound event; events from the same sender run one at a time"""
        async with self.sessions.lock(event.sender):
            user = await self._load_user(event.sender)
            lang = normalize_language((user or {}).get('language') or 'en')
            onboarded = bool((user or {}).get('onboarded'))

            state = await self.sessions.get(event.sender)
            route = classify(event, state, onboarded)
            reply = Responder(self.messenger, event, lang)
            print(f"🔍 {event.sender}: {event.kind.value} -> {route.kind.value} {route.target or ''}".rstrip())

            if route.kind == RouteKind.IMAGE:
                await self._handle_image(reply, event)
            elif route.kind == RouteKind.DIALOGUE:
                await self._continue_dialogue(reply, event, state, user)
            elif route.kind == RouteKind.COMMAND:
                await self.run_command(route.target, reply, event.sender, user)
            elif route.kind == RouteKind.WELCOME:
                await reply.buttons(menus.WELCOME_MENU)
            elif route.kind == RouteKind.ECHO:
                text = event.text or ''
                await reply.text(L("Echo: " + text, "प्रतिध्वनि: " + text))
            else:
                print(f"⚠️ Ignoring {event.kind.value} event from {event.sender} ({route.target or 'no target'})")

            if event.kind == EventKind.TEXT or event.is_selection:
                try:
                    await reply.mark_read()
                except Exception as e:
                    print(f"⚠️ Could not mark message {event.message_id} as read: {e}")

            return route

    async def _handle_image(self, reply: Responder, event: InboundEvent) -> None:
        try:
            image_base64 = await self.messenger.download_media(event.media_id)
            await self.conversation.receive_meal_image(reply, event.sender, image_base64)
        except Exception as e:
            print(f"❌ Error processing image: {e}")
            await reply.text("Sorry, there was an error processing your image.")

    async def _continue_dialogue(
        self, reply: Responder, event: InboundEvent, state: ConversationState, user: Optional[Dict[str, Any]]
    ) -> None:
        phone = event.sender
        if state.mode == ConversationMode.ONBOARDING:
            await self.conversation.handle_onboarding(
                reply, phone, state,
                text=event.text,
                selection_id=event.selection_id if event.is_selection else None
            )
        elif state.mode == ConversationMode.AWAITING_READING_CATEGORY:
            await self.conversation.handle_reading_category(reply, phone, event.text)
        elif state.mode == ConversationMode.AWAITING_READING_VALUE:
            await self.conversation.handle_reading_value(reply, phone, state, event.text)
        elif state.mode == ConversationMode.AWAITING_MEAL_DETAILS:
            profile = UserProfile.from_row(user) if user else None
            await self.conversation.handle_meal_details(reply, phone, state, event.text, profile)

    async def run_command(
        self, command: str, reply: Responder, phone: str, user: Optional[Dict[str, Any]] = None
    ) -> None:
        if command == menus.START_ONBOARDING:
            await self.conversation.start_onboarding(reply, phone, user)
        elif command == menus.HELP:
            await reply.list(menus.HELP_MENU)
        elif command == menus.SEND_FOOD:
            await reply.text(FOOD_INSTRUCTIONS)
        elif command == menus.LOG_BLOOD_SUGAR:
            await self.conversation.start_reading_log(reply, phone)
        elif command in READING_SELECTIONS:
            await self.conversation.select_reading_category(reply, phone, READING_SELECTIONS[command])
        elif command == menus.BLOOD_SUGAR_TRENDS:
            await self._send_trends(reply, phone)
        elif command == menus.MEAL_IMPACT:
            await self._send_meal_impact(reply, phone)
        elif command == menus.SUMMARY:
            await reply.list(menus.SUMMARY_MENU)
        elif command in SUMMARY_PERIODS:
            await self._send_summary(reply, phone, SUMMARY_PERIODS[command])
        elif command == menus.LANGUAGE:
            await reply.buttons(menus.LANGUAGE_SETTINGS_MENU)
        elif command in LANGUAGE_SELECTIONS:
            await self._change_language(reply, phone, LANGUAGE_SELECTIONS[command])
        else:
            print(f"⚠️ Unknown command: {command}")

    async def _send_trends(self, reply: Responder, phone: str) -> None:
        try:
            trends = await self.blood_sugar.get_trends(phone)
            await reply.text(format_trends_message(trends, reply.lang), translate_text=False)
        except Exception as e:
            print(f"❌ Error fetching blood sugar trends: {e}")
            await reply.text("Sorry, there was an error fetching your blood sugar trends.")

    async def _send_meal_impact(self, reply: Responder, phone: str) -> None:
        try:
            correlated = await self.blood_sugar.correlate_meals(phone)
            await reply.text(format_correlation_message(correlated, lang=reply.lang), translate_text=False)
        except Exception as e:
            print(f"❌ Error correlating meals with blood sugar: {e}")
            await reply.text(MEAL_IMPACT_FAILED)

    async def _send_summary(self, reply: Responder, phone: str, period: str) -> None:
        try:
            summary = await self.summaries.get_summary(phone, period)
            await reply.text(format_summary_message(summary, period, reply.lang), translate_text=False)
        except Exception as e:
            print(f"❌ Error processing {period} summary: {e}")
            await reply.text("Sorry, there was an error processing your summary request. Please try again later.")

    async def _change_language(self, reply: Responder, phone: str, lang: str) -> None:
        try:
            await self.store.update_user_language(phone, lang)
        except Exception as e:
            print(f"❌ Error updating language preference: {e}")
            await reply.text(LANGUAGE_UPDATE_FAILED)
        else:
            await reply.with_language(lang).text(LANGUAGE_UPDATED)
        finally:
            await self.sessions.clear(phone)
