import pytest

from conftest import FakeStore, PHONE, build_bot, button_event, image_event, run, text_event
from models.schemas import ConversationMode, ConversationState, OnboardingStep, ReadingCategory, UserProfile
from services import menu_definitions as menus
from services.conversation_service import (
    ONBOARDING_FLOW, accepts_selection, parse_calorie_limit, parse_condition, parse_reading_category,
    reading_flag
)
from utils.errors import InputValidationError, ReadingValidationError, StoreError


def send(bot, event):
    return run(bot.dispatcher.handle_event(event))


def state_of(bot):
    return run(bot.sessions.get(PHONE))


def onboarding_state(step, **profile):
    return ConversationState(
        mode=ConversationMode.ONBOARDING,
        step=step,
        profile=UserProfile(phone_number=PHONE, **profile)
    )


# Onboarding

def test_flow_covers_every_step_and_ends_once():
    assert set(ONBOARDING_FLOW) == set(OnboardingStep)
    assert [step for step, spec in ONBOARDING_FLOW.items() if spec.next_step is None] == [OnboardingStep.LANGUAGE]

    step, visited = OnboardingStep.NAME, []
    while step is not None:
        visited.append(step)
        step = ONBOARDING_FLOW[step].next_step
    assert visited == list(OnboardingStep)


def test_full_onboarding(bot):
    send(bot, text_event("start onboarding"))
    assert state_of(bot).step == OnboardingStep.NAME
    assert bot.messenger.texts[-1].startswith("Welcome to the health tracking service!")

    send(bot, text_event("Asha"))
    assert bot.messenger.menus[-1] == menus.CONDITION_MENU

    send(bot, button_event(menus.CONDITION_TYPE2, "Type 2"))
    assert state_of(bot).step == OnboardingStep.CALORIE_LIMIT

    send(bot, text_event("1800"))
    send(bot, text_event("low-carb"))
    assert bot.messenger.menus[-1] == menus.TRACK_READINGS_MENU

    send(bot, button_event(menus.TRACK_YES, "Yes"))
    assert bot.messenger.menus[-1] == menus.ONBOARDING_LANGUAGE_MENU

    send(bot, button_event(menus.LANG_EN, "English"))

    user = bot.store.users[PHONE]
    assert user['name'] == "Asha"
    assert user['diabetes_type'] == "Type 2"
    assert user['daily_limit'] == 1800
    assert user['preferences'] == {'dietary': 'low-carb'}
    assert user['track_blood_sugar'] is True
    assert user['language'] == 'en'
    assert user['onboarded'] is True
    assert state_of(bot) is None
    assert bot.messenger.texts[-1].startswith("Great! Your profile is now set up.")


def test_typed_answers_fill_button_steps(bot):
    run(bot.sessions.set(PHONE, onboarding_state(OnboardingStep.TRACK_READINGS, name="Ravi")))
    send(bot, text_event("no"))
    assert state_of(bot).profile.tracks_readings is False

    send(bot, text_event("hindi"))
    assert bot.store.users[PHONE]['language'] == 'hi'
    assert bot.messenger.texts[-1].startswith("बहुत अच्छा!")


def test_invalid_calorie_limit_keeps_step(bot):
    run(bot.sessions.set(PHONE, onboarding_state(OnboardingStep.CALORIE_LIMIT, name="Asha")))

    send(bot, text_event("lots"))
    assert state_of(bot).step == OnboardingStep.CALORIE_LIMIT
    assert bot.messenger.texts[-1] == "Please enter a valid number for your daily calorie limit."

    send(bot, text_event("0"))
    assert state_of(bot).step == OnboardingStep.CALORIE_LIMIT

    send(bot, text_event("1600 kcal"))
    state = state_of(bot)
    assert state.step == OnboardingStep.DIET_PREF
    assert state.profile.daily_calorie_limit == 1600


def test_failed_profile_save_keeps_language_step(bot):
    bot.store.fail_profile_save = True
    run(bot.sessions.set(PHONE, onboarding_state(OnboardingStep.LANGUAGE, name="Asha")))

    send(bot, button_event(menus.LANG_EN, "English"))

    assert "error saving your profile" in bot.messenger.texts[-1]
    assert bot.messenger.menus[-1] == menus.ONBOARDING_LANGUAGE_MENU
    assert state_of(bot).step == OnboardingStep.LANGUAGE
    assert PHONE not in bot.store.users


def test_restart_phrase_escapes_open_dialogue(bot):
    run(bot.sessions.set(PHONE, ConversationState(
        mode=ConversationMode.AWAITING_READING_VALUE, category=ReadingCategory.FASTING
    )))
    send(bot, text_event("Update Profile"))
    state = state_of(bot)
    assert state.mode == ConversationMode.ONBOARDING
    assert state.step == OnboardingStep.NAME


def test_restart_seeds_profile_from_stored_user(onboarded_bot):
    send(onboarded_bot, text_event("update profile"))
    profile = state_of(onboarded_bot).profile
    assert profile.name == "Asha"
    assert profile.daily_calorie_limit == 1800
    assert profile.onboarded is True


def test_parsers():
    assert parse_condition("2") == "Type 2"
    assert parse_condition("Gestational") == "Gestational"
    assert parse_calorie_limit(" 2000") == 2000
    with pytest.raises(InputValidationError):
        parse_calorie_limit("-5")
    assert parse_reading_category("Post-Meal") == ReadingCategory.POST_MEAL
    with pytest.raises(ReadingValidationError):
        parse_reading_category("4")


def test_accepts_selection_only_for_current_step():
    condition = onboarding_state(OnboardingStep.CONDITION)
    assert accepts_selection(condition, menus.CONDITION_TYPE1)
    assert not accepts_selection(condition, menus.LANG_EN)
    assert not accepts_selection(None, menus.CONDITION_TYPE1)
    assert not accepts_selection(ConversationState(mode=ConversationMode.AWAITING_READING_CATEGORY), menus.READING_FASTING)


def test_reading_flag():
    assert reading_flag(95, ReadingCategory.FASTING) == "✅"
    assert reading_flag(110, ReadingCategory.FASTING) == "⚠️"
    assert reading_flag(140, ReadingCategory.POST_MEAL) == "⚠️"
    assert reading_flag(140, ReadingCategory.RANDOM) == "✅"


# Blood sugar logging

def test_log_reading_flow(onboarded_bot):
    bot = onboarded_bot
    send(bot, text_event("log blood sugar"))
    assert state_of(bot).mode == ConversationMode.AWAITING_READING_CATEGORY
    assert bot.messenger.menus[-1] == menus.READING_CATEGORY_MENU

    send(bot, button_event(menus.READING_FASTING, "Fasting (before meal)"))
    state = state_of(bot)
    assert state.mode == ConversationMode.AWAITING_READING_VALUE
    assert state.category == ReadingCategory.FASTING

    send(bot, text_event("95"))

    assert len(bot.store.blood_sugar_logs) == 1
    assert bot.store.blood_sugar_logs[0]['value'] == 95.0
    assert bot.store.blood_sugar_logs[0]['type'] == 'fasting'
    reply = bot.messenger.texts[-1]
    assert reply.startswith("Blood sugar reading (95 mg/dL) logged successfully.")
    assert "✅ Your fasting blood sugar is within the normal range" in reply
    assert state_of(bot) is None


def test_category_can_be_typed_as_number(onboarded_bot):
    send(onboarded_bot, text_event("log blood sugar"))
    send(onboarded_bot, text_event("2"))
    assert state_of(onboarded_bot).category == ReadingCategory.POST_MEAL


def test_invalid_category_keeps_waiting(onboarded_bot):
    send(onboarded_bot, text_event("log blood sugar"))
    send(onboarded_bot, text_event("7"))
    assert state_of(onboarded_bot).mode == ConversationMode.AWAITING_READING_CATEGORY
    assert onboarded_bot.messenger.texts[-1].startswith("Invalid selection.")


def test_reading_reply_in_hindi():
    store = FakeStore(users=[{'phone_number': PHONE, 'language': 'hi', 'onboarded': True}])
    bot = build_bot(store=store)
    run(bot.sessions.set(PHONE, ConversationState(
        mode=ConversationMode.AWAITING_READING_VALUE, category=ReadingCategory.RANDOM
    )))
    send(bot, text_event("120"))
    assert bot.messenger.texts[-1].startswith("रक्त शर्करा रीडिंग (120 mg/dL)")


def awaiting_value(bot, category=ReadingCategory.RANDOM):
    run(bot.sessions.set(PHONE, ConversationState(mode=ConversationMode.AWAITING_READING_VALUE, category=category)))


def test_non_numeric_value_keeps_state(onboarded_bot):
    awaiting_value(onboarded_bot)
    send(onboarded_bot, text_event("abc"))
    assert '"abc" is not a valid number' in onboarded_bot.messenger.texts[-1]
    assert state_of(onboarded_bot).mode == ConversationMode.AWAITING_READING_VALUE
    assert onboarded_bot.store.blood_sugar_logs == []


def test_blank_value_keeps_state(onboarded_bot):
    awaiting_value(onboarded_bot)
    send(onboarded_bot, text_event("   "))
    assert onboarded_bot.messenger.texts[-1].startswith("You didn't enter any value.")
    assert state_of(onboarded_bot) is not None


@pytest.mark.parametrize("raw,hint", [("700", "rarely above 600"), ("5", "rarely below 10")])
def test_out_of_range_value_clears_state_without_writing(onboarded_bot, raw, hint):
    awaiting_value(onboarded_bot)
    send(onboarded_bot, text_event(raw))
    assert hint in onboarded_bot.messenger.texts[-1]
    assert state_of(onboarded_bot) is None
    assert onboarded_bot.store.blood_sugar_logs == []


def test_missing_table_is_provisioned_and_retried():
    bot = build_bot(store=FakeStore(table_missing=True))
    awaiting_value(bot, ReadingCategory.POST_MEAL)

    send(bot, text_event("150"))

    texts = bot.messenger.texts
    assert texts[-2].startswith("Setting up blood sugar tracking feature")
    assert "feature has been set up successfully!" in texts[-1]
    assert "slightly elevated" in texts[-1]
    assert len(bot.store.blood_sugar_logs) == 1
    assert state_of(bot) is None


def test_failed_provisioning_reports_setup_error():
    bot = build_bot(store=FakeStore(table_missing=True, provision_ok=False))
    awaiting_value(bot)

    send(bot, text_event("150"))

    assert "error setting up the blood sugar tracking feature" in bot.messenger.texts[-1]
    assert bot.store.blood_sugar_logs == []
    assert state_of(bot) is None


def test_store_error_hides_details_in_production():
    bot = build_bot(environment='production')
    bot.store.fail_insert = StoreError("permission denied", "42501")
    awaiting_value(bot)

    send(bot, text_event("100"))

    reply = bot.messenger.texts[-1]
    assert reply.startswith("There was a problem connecting to the database.")
    assert "Type 'log blood sugar' to try again." in reply
    assert "DEVELOPER NOTE" not in reply
    assert state_of(bot) is None


def test_store_error_shows_details_in_development():
    bot = build_bot(environment='development')
    bot.store.fail_insert = StoreError("permission denied", "42501")
    awaiting_value(bot)

    send(bot, text_event("100"))

    assert "DEVELOPER NOTE: Database error details:" in bot.messenger.texts[-1]
    assert "42501" in bot.messenger.texts[-1]


# Meal photos

def test_meal_photo_then_details(onboarded_bot):
    bot = onboarded_bot
    send(bot, image_event())
    assert state_of(bot).mode == ConversationMode.AWAITING_MEAL_DETAILS
    assert bot.messenger.texts[-1].startswith("Do you want to add details for the recipe?")

    send(bot, text_event("rice and dal"))

    image, details, profile, lang = bot.analyzer.calls[0]
    assert image == "aW1hZ2UtYnl0ZXM="
    assert details == "rice and dal"
    assert profile.condition_type == "Type 2"
    assert lang == 'en'

    reply = bot.messenger.texts[-1]
    assert "Calorie estimate: 450 kcal" in reply
    assert "✅ Good choice!" in reply
    assert "Personalized advice: Keep the rice portion small" in reply
    assert "Today's Summary:" in reply
    assert "- Meals: 1" in reply

    assert len(bot.store.food_entries) == 1
    assert bot.store.daily_summaries[0]['green_flags_count'] == 1
    assert state_of(bot) is None


def test_second_meal_updates_same_rollup(onboarded_bot):
    for details in ("idli", "salad"):
        send(onboarded_bot, image_event())
        send(onboarded_bot, text_event(details))

    assert len(onboarded_bot.store.daily_summaries) == 1
    rollup = onboarded_bot.store.daily_summaries[0]
    assert rollup['meal_count'] == 2
    assert rollup['total_calories'] == 900
    assert "- Meals: 2" in onboarded_bot.messenger.texts[-1]


def test_meal_without_profile_nudges_onboarding(bot):
    send(bot, image_event())
    send(bot, text_event("sandwich"))

    reply = bot.messenger.texts[-1]
    assert "Type 'start onboarding' to set up your profile." in reply
    assert "Today's Summary:" not in reply
    assert bot.store.users[PHONE]['onboarded'] is False
    assert state_of(bot) is None


def hindi_bot(environment='production'):
    store = FakeStore(users=[{'phone_number': PHONE, 'language': 'hi', 'onboarded': True}])
    return build_bot(store=store, environment=environment)


def test_out_of_range_reply_in_hindi():
    bot = hindi_bot()
    awaiting_value(bot)

    send(bot, text_event("700"))

    reply = bot.messenger.texts[-1]
    assert reply.startswith("रक्त शर्करा मान 700 mg/dL सामान्य सीमा से बाहर लगता है।")
    assert "600 mg/dL से अधिक" in reply
    assert "The blood sugar value" not in reply
    assert state_of(bot) is None


def test_store_error_reply_in_hindi():
    bot = hindi_bot(environment='development')
    bot.store.fail_insert = StoreError("permission denied", "42501")
    awaiting_value(bot)

    send(bot, text_event("100"))

    reply = bot.messenger.texts[-1]
    assert reply.startswith("डेटाबेस से कनेक्ट करने में समस्या हुई।")
    assert "पुनः प्रयास करने के लिए 'log blood sugar' टाइप करें।" in reply
    assert "DEVELOPER NOTE: Database error details:" in reply
