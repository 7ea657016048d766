# services/conversation_service.py
"""
Multi-turn dialogues: profile onboarding, blood sugar logging, and
meal details after a food photo.

Onboarding is driven by ONBOARDING_FLOW, one entry per OnboardingStep
holding the prompt, the answer parser, the button ids that answer it,
the profile field it fills and the step that follows.
"""
import re
from typing import Any, Callable, Dict, NamedTuple, Optional, Union

from models.schemas import (
    ConversationMode, ConversationState, OnboardingStep, ReadingCategory, UserProfile
)
from models.whatsapp_schemas import ButtonMenu
from services import menu_definitions as menus
from services.blood_sugar_service import interpret_reading, parse_leading_number
from services.responder import Responder
from services.translation_service import Localized, Message, translate
from utils.errors import InputValidationError, MissingTableError, ReadingValidationError, StoreError

L = Localized.of

LEADING_INTEGER = re.compile(r'^\s*[+-]?\d+')
TODAYS_SUMMARY = "Today's Summary:"

CONDITION_CHOICES = {
    'type1': "Type 1", '1': "Type 1", 'type 1': "Type 1",
    'type2': "Type 2", '2': "Type 2", 'type 2': "Type 2",
    'none': "None", '3': "None",
}
YES_ANSWERS = ('yes', 'y', 'हां', 'हाँ')
HINDI_ANSWERS = ('hi', 'hindi', 'हिंदी')

READING_CATEGORY_CHOICES = {
    '1': ReadingCategory.FASTING,
    '2': ReadingCategory.POST_MEAL,
    '3': ReadingCategory.RANDOM,
    'fasting': ReadingCategory.FASTING,
    'post_meal': ReadingCategory.POST_MEAL,
    'post-meal': ReadingCategory.POST_MEAL,
    'post meal': ReadingCategory.POST_MEAL,
    'random': ReadingCategory.RANDOM,
}

NAME_PROMPT = L(
    "Welcome to the health tracking service! Let's set up your profile. What's your name?",
    "स्वास्थ्य ट्रैकिंग सेवा में आपका स्वागत है! आइए आपका प्रोफ़ाइल सेट करें। आपका नाम क्या है?"
)
CALORIE_PROMPT = L(
    "Got it. Now, what's your daily calorie limit goal?",
    "समझ गया। अब, आपका दैनिक कैलोरी सीमा लक्ष्य क्या है?"
)
DIET_PROMPT = L(
    "Do you have any dietary preferences? (e.g., vegetarian, low-carb, etc.)",
    "क्या आपकी कोई आहार संबंधी प्राथमिकताएँ हैं? (जैसे, शाकाहारी, कम-कार्ब, आदि)"
)
ONBOARDING_COMPLETE = L(
    "Great! Your profile is now set up. You can update these details anytime by typing 'update profile'.",
    "बहुत अच्छा! आपका प्रोफ़ाइल अब सेट हो गया है। आप 'update profile' टाइप करके किसी भी समय इन विवरणों को अपडेट कर सकते हैं।"
)
ONBOARDING_SAVE_FAILED = L(
    "Sorry, there was an error saving your profile. Please choose your language again.",
    "क्षमा करें, आपका प्रोफ़ाइल सहेजने में त्रुटि हुई। कृपया अपनी भाषा फिर से चुनें।"
)
ONBOARDING_FAILED = L(
    "Sorry, there was an error processing your information. Please try again later.",
    "क्षमा करें, आपकी जानकारी प्रोसेस करने में एक त्रुटि हुई। कृपया बाद में पुनः प्रयास करें।"
)
TRY_AGAIN_HINT = L(
    "Type 'log blood sugar' to try again.",
    "पुनः प्रयास करने के लिए 'log blood sugar' टाइप करें।"
)
DATABASE_ERROR = L(
    "There was a problem connecting to the database. Please try again later.",
    "डेटाबेस से कनेक्ट करने में समस्या हुई। कृपया बाद में पुनः प्रयास करें।"
)
READING_LOG_ERROR = L(
    "Sorry, there was an error logging your blood sugar reading. There was a problem processing your request.",
    "क्षमा करें, आपकी रक्त शर्करा रीडिंग लॉग करने में त्रुटि हुई। आपके अनुरोध को प्रोसेस करने में समस्या हुई।"
)
ONBOARDING_START_FAILED = L(
    "Sorry, there was an error starting the onboarding process. Please try again later.",
    "क्षमा करें, ऑनबोर्डिंग प्रक्रिया शुरू करने में एक त्रुटि हुई। कृपया बाद में पुनः प्रयास करें।"
)


def parse_name(text: str) -> str:
    name = text.strip()
    if not name:
        raise InputValidationError(L("Please tell me your name.", "कृपया मुझे अपना नाम बताएं।"))
    return name


def parse_condition(text: str) -> str:
    answer = text.strip()
    if not answer:
        raise InputValidationError(L(
            "Please choose Type 1, Type 2 or None.",
            "कृपया टाइप 1, टाइप 2 या कोई नहीं चुनें।"
        ))
    return CONDITION_CHOICES.get(answer.lower(), answer)


def parse_calorie_limit(text: str) -> int:
    match = LEADING_INTEGER.match(text)
    if not match or int(match.group(0)) <= 0:
        raise InputValidationError(L(
            "Please enter a valid number for your daily calorie limit.",
            "कृपया अपनी दैनिक कैलोरी सीमा के लिए एक वैध संख्या दर्ज करें।"
        ))
    return int(match.group(0))


def parse_diet(text: str) -> str:
    return text.strip() or "None"


def parse_tracking(text: str) -> bool:
    return text.strip().lower() in YES_ANSWERS


def parse_language(text: str) -> str:
    return 'hi' if text.strip().lower() in HINDI_ANSWERS else 'en'


class OnboardingStepSpec(NamedTuple):
    prompt: Union[Message, ButtonMenu]
    field: str
    parse: Callable[[str], Any]
    selections: Dict[str, Any]
    next_step: Optional[OnboardingStep]


ONBOARDING_FLOW: Dict[OnboardingStep, OnboardingStepSpec] = {
    OnboardingStep.NAME: OnboardingStepSpec(
        prompt=NAME_PROMPT,
        field='name',
        parse=parse_name,
        selections={},
        next_step=OnboardingStep.CONDITION
    ),
    OnboardingStep.CONDITION: OnboardingStepSpec(
        prompt=menus.CONDITION_MENU,
        field='condition_type',
        parse=parse_condition,
        selections={
            menus.CONDITION_TYPE1: "Type 1",
            menus.CONDITION_TYPE2: "Type 2",
            menus.CONDITION_NONE: "None",
        },
        next_step=OnboardingStep.CALORIE_LIMIT
    ),
    OnboardingStep.CALORIE_LIMIT: OnboardingStepSpec(
        prompt=CALORIE_PROMPT,
        field='daily_calorie_limit',
        parse=parse_calorie_limit,
        selections={},
        next_step=OnboardingStep.DIET_PREF
    ),
    OnboardingStep.DIET_PREF: OnboardingStepSpec(
        prompt=DIET_PROMPT,
        field='dietary_preference',
        parse=parse_diet,
        selections={},
        next_step=OnboardingStep.TRACK_READINGS
    ),
    OnboardingStep.TRACK_READINGS: OnboardingStepSpec(
        prompt=menus.TRACK_READINGS_MENU,
        field='tracks_readings',
        parse=parse_tracking,
        selections={menus.TRACK_YES: True, menus.TRACK_NO: False},
        next_step=OnboardingStep.LANGUAGE
    ),
    OnboardingStep.LANGUAGE: OnboardingStepSpec(
        prompt=menus.ONBOARDING_LANGUAGE_MENU,
        field='language',
        parse=parse_language,
        selections={menus.LANG_EN: 'en', menus.LANG_HI: 'hi'},
        next_step=None
    ),
}


def accepts_selection(state: Optional[ConversationState], selection_id: str) -> bool:
    """True when a button/list id answers the step the user is on"""
    if not state or state.mode != ConversationMode.ONBOARDING or state.step is None:
        return False
    return selection_id in ONBOARDING_FLOW[state.step].selections


def parse_reading_category(text: str) -> ReadingCategory:
    choice = READING_CATEGORY_CHOICES.get((text or '').strip().lower())
    if choice is None:
        raise ReadingValidationError(
            "Invalid selection. Please enter 1, 2, or 3 to select a blood sugar reading type."
        )
    return choice


def reading_flag(value: float, category: ReadingCategory) -> str:
    if category == ReadingCategory.FASTING:
        normal = 70 <= value <= 100
    elif category == ReadingCategory.POST_MEAL:
        normal = 70 <= value < 140
    else:
        normal = 70 <= value <= 140
    return "✅" if normal else "⚠️"


def out_of_range_message(value: float) -> Localized:
    value_text = f"{value:g}"
    en = f"The blood sugar value {value_text} mg/dL seems outside the normal range."
    hi = f"रक्त शर्करा मान {value_text} mg/dL सामान्य सीमा से बाहर लगता है।"
    if value < 10:
        en += " Blood sugar values are rarely below 10 mg/dL. Please verify your reading or add a decimal point if needed."
        hi += " रक्त शर्करा मान शायद ही कभी 10 mg/dL से कम होते हैं। कृपया अपनी रीडिंग जांचें या ज़रूरत हो तो दशमलव बिंदु जोड़ें।"
    else:
        en += " Blood sugar values are rarely above 600 mg/dL. If this reading is correct, please seek medical attention immediately."
        hi += " रक्त शर्करा मान शायद ही कभी 600 mg/dL से अधिक होते हैं। यदि यह रीडिंग सही है, तो कृपया तुरंत चिकित्सा सहायता लें।"
    en += "\n\nDo you want to try again? Type 'log blood sugar' to restart."
    hi += "\n\nक्या आप फिर से प्रयास करना चाहते हैं? फिर से शुरू करने के लिए 'log blood sugar' टाइप करें।"
    return L(en, hi)


class ConversationService:
    def __init__(self, store, sessions, blood_sugar, meals, environment: str = 'development'):
        self.store = store
        self.sessions = sessions
        self.blood_sugar = blood_sugar
        self.meals = meals
        self.environment = environment

    # Onboarding

    async def _prompt(self, reply: Responder, step: OnboardingStep) -> None:
        prompt = ONBOARDING_FLOW[step].prompt
        if isinstance(prompt, ButtonMenu):
            await reply.buttons(prompt)
        else:
            await reply.text(prompt)

    async def start_onboarding(self, reply: Responder, phone: str, user: Optional[Dict[str, Any]] = None) -> None:
        """Begin (or restart) onboarding, seeded from any stored profile"""
        try:
            if user:
                profile = UserProfile.from_row(user)
            else:
                profile = UserProfile(phone_number=phone, language=reply.lang)

            await self.sessions.set(phone, ConversationState(
                mode=ConversationMode.ONBOARDING,
                step=OnboardingStep.NAME,
                profile=profile
            ))
            await self._prompt(reply, OnboardingStep.NAME)
        except Exception as e:
            print(f"❌ Error starting onboarding: {e}")
            await reply.with_language('en').text(ONBOARDING_START_FAILED)

    async def handle_onboarding(
        self,
        reply: Responder,
        phone: str,
        state: ConversationState,
        text: Optional[str] = None,
        selection_id: Optional[str] = None
    ) -> None:
        try:
            spec = ONBOARDING_FLOW[state.step]
            if selection_id is not None and selection_id in spec.selections:
                value = spec.selections[selection_id]
            else:
                value = spec.parse(text or '')
        except InputValidationError as e:
            await reply.text(e.reply)
            return

        try:
            profile = (state.profile or UserProfile(phone_number=phone)).model_copy(update={spec.field: value})

            if spec.next_step is None:
                await self._complete_onboarding(reply, phone, state, profile)
                return

            await self.sessions.set(phone, state.model_copy(update={'step': spec.next_step, 'profile': profile}))
            await self._prompt(reply, spec.next_step)
        except Exception as e:
            print(f"❌ Error handling onboarding step {state.step}: {e}")
            import traceback
            traceback.print_exc()
            await reply.text(ONBOARDING_FAILED)
            await self.sessions.clear(phone)

    async def _complete_onboarding(
        self, reply: Responder, phone: str, state: ConversationState, profile: UserProfile
    ) -> None:
        profile = profile.model_copy(update={'onboarded': True})
        try:
            await self.store.save_user_profile(profile.to_row())
        except Exception as e:
            print(f"❌ Error saving user data for {phone}: {e}")
            await reply.text(ONBOARDING_SAVE_FAILED)
            await self._prompt(reply, OnboardingStep.LANGUAGE)
            return

        await self.sessions.clear(phone)
        print(f"✅ Onboarding complete for {phone}")
        await reply.with_language(profile.language).text(ONBOARDING_COMPLETE)

    # Blood sugar logging

    async def start_reading_log(self, reply: Responder, phone: str) -> None:
        await self.sessions.set(phone, ConversationState(mode=ConversationMode.AWAITING_READING_CATEGORY))
        await reply.buttons(menus.READING_CATEGORY_MENU)

    async def select_reading_category(self, reply: Responder, phone: str, category: ReadingCategory) -> None:
        await self.sessions.set(phone, ConversationState(
            mode=ConversationMode.AWAITING_READING_VALUE,
            category=category
        ))
        await reply.text("Please enter your blood sugar value (in mg/dL):")

    async def handle_reading_category(self, reply: Responder, phone: str, text: Optional[str]) -> None:
        try:
            category = parse_reading_category(text)
        except ReadingValidationError as e:
            await reply.text(e.reply)
            return
        await self.select_reading_category(reply, phone, category)

    def _logged_message(self, value: float, category: ReadingCategory, lang: str, provisioned: bool = False) -> str:
        value_text = f"{value:g}"
        message = translate(L(
            f"Blood sugar reading ({value_text} mg/dL) logged successfully.",
            f"रक्त शर्करा रीडिंग ({value_text} mg/dL) सफलतापूर्वक लॉग की गई।"
        ), lang) + "\n\n"
        if provisioned:
            message += translate(L(
                "Blood sugar tracking feature has been set up successfully!",
                "रक्त शर्करा ट्रैकिंग सुविधा सफलतापूर्वक सेट हो गई है!"
            ), lang) + "\n\n"
        message += f"{reading_flag(value, category)} {translate(interpret_reading(value, category), lang)}"
        message += "\n\n" + translate("Type 'blood sugar trends' to see your overall patterns.", lang)
        return message

    async def handle_reading_value(
        self, reply: Responder, phone: str, state: ConversationState, text: Optional[str]
    ) -> None:
        raw = (text or '').strip()
        if not raw:
            await reply.text("You didn't enter any value. Please enter your blood sugar reading as a number in mg/dL.")
            return

        value = parse_leading_number(raw)
        if value is None:
            await reply.text(L(
                f'"{raw}" is not a valid number. Please enter only digits for your blood sugar value in mg/dL.',
                f'"{raw}" एक वैध संख्या नहीं है। कृपया अपने रक्त शर्करा मान के लिए mg/dL में केवल अंक दर्ज करें।'
            ))
            return

        if value < 10 or value > 600:
            await reply.text(out_of_range_message(value))
            await self.sessions.clear(phone)
            return

        category = state.category
        try:
            if category is None:
                raise ReadingValidationError(f"Invalid blood sugar type: {category}. Please restart the process.")
            try:
                await self.blood_sugar.log_reading(phone, value, category)
                await reply.text(self._logged_message(value, category, reply.lang), translate_text=False)
            except MissingTableError as e:
                print(f"⚠️ {e}")
                await reply.text("Setting up blood sugar tracking feature for the first time. This may take a moment...")
                if not await self.blood_sugar.provision_tables():
                    await reply.text(
                        "Sorry, there was an error setting up the blood sugar tracking feature. Please contact support for assistance."
                    )
                    return
                try:
                    await self.blood_sugar.log_reading(phone, value, category)
                except Exception as retry_error:
                    print(f"❌ Error logging blood sugar after creating table: {retry_error}")
                    await reply.text(L(
                        "The blood sugar tracking feature was set up, but there was still an error logging your reading. "
                        "Please try again by typing 'log blood sugar'.",
                        "रक्त शर्करा ट्रैकिंग सुविधा सेट हो गई, लेकिन आपकी रीडिंग लॉग करने में अभी भी त्रुटि हुई। "
                        "कृपया 'log blood sugar' टाइप करके पुनः प्रयास करें।"
                    ))
                    return
                await reply.text(self._logged_message(value, category, reply.lang, provisioned=True), translate_text=False)
        except ReadingValidationError as e:
            message = f"⚠️ {translate(e.reply, reply.lang)}\n\n{translate(TRY_AGAIN_HINT, reply.lang)}"
            await reply.text(message, translate_text=False)
        except Exception as e:
            print(f"❌ Error logging blood sugar: {e}")
            import traceback
            traceback.print_exc()

            if isinstance(e, StoreError):
                message = translate(DATABASE_ERROR, reply.lang)
                developer_note = f"\n\nDEVELOPER NOTE: Database error details: {e}"
            else:
                message = translate(READING_LOG_ERROR, reply.lang)
                developer_note = f"\n\nDEVELOPER NOTE: Error details: {e}"

            message += "\n\n" + translate(TRY_AGAIN_HINT, reply.lang)
            if self.environment != 'production':
                message += developer_note
            await reply.text(message, translate_text=False)
        finally:
            await self.sessions.clear(phone)

    # Meal photos

    async def receive_meal_image(self, reply: Responder, phone: str, image_base64: str) -> None:
        await self.sessions.set(phone, ConversationState(
            mode=ConversationMode.AWAITING_MEAL_DETAILS,
            image_base64=image_base64
        ))
        await reply.text(
            "Do you want to add details for the recipe? Please provide any additional information "
            "about ingredients, cooking method, or portion size."
        )

    async def handle_meal_details(
        self,
        reply: Responder,
        phone: str,
        state: ConversationState,
        text: Optional[str],
        profile: Optional[UserProfile] = None
    ) -> None:
        lang = reply.lang
        try:
            if not state.image_base64:
                await reply.text("Sorry, there was an error processing your image.")
                return

            details = (text or '').strip()
            result = await self.meals.analyze_and_store(phone, state.image_base64, details, profile, lang)
            analysis = result['analysis']

            verdict = f"✅ {translate('Good choice!', lang)}" if analysis.is_recommended else f"⚠️ {translate('Not recommended', lang)}"
            message = f"{translate('Calorie estimate:', lang)} {analysis.calories} kcal\n"
            message += f"{translate('Recommendation:', lang)} {verdict}\n"
            message += f"{translate('Reason:', lang)} {analysis.reason}\n\n"

            if not result['user_onboarded']:
                message += translate(
                    "I notice you haven't completed your profile setup yet. Setting up your profile will help me "
                    "provide more personalized recommendations.\n\nType 'start onboarding' to set up your profile.",
                    lang
                )
            else:
                if analysis.personalized_tips:
                    message += f"{translate('Personalized advice:', lang)} {analysis.personalized_tips}\n\n"
                rollup = result.get('rollup')
                if rollup:
                    message += f"{translate(TODAYS_SUMMARY, lang)}\n"
                    message += f"- {translate('Total Calories:', lang)} {rollup.total_calories}\n"
                    message += f"- {translate('Meals:', lang)} {rollup.meal_count}\n"
                    message += f"- {translate('Good Choices:', lang)} {rollup.favorable_count}\n"
                    message += f"- {translate('Caution Needed:', lang)} {rollup.unfavorable_count}\n"

            await reply.text(message.rstrip(), translate_text=False)
        except Exception as e:
            print(f"❌ Error processing food entry: {e}")
            import traceback
            traceback.print_exc()
            await reply.text("Sorry, there was an error processing your food entry. Please try again later.")
        finally:
            await self.sessions.clear(phone)
