# services/menu_definitions.py
from models.whatsapp_schemas import ButtonMenu, ListMenu, MenuButton, MenuRow, MenuSection
from services.translation_service import Localized

L = Localized.of

# Selection ids shared by menus and the dispatcher
LANG_EN = "lang_en"
LANG_HI = "lang_hi"
CONDITION_TYPE1 = "type1"
CONDITION_TYPE2 = "type2"
CONDITION_NONE = "none"
TRACK_YES = "yes_blood_sugar"
TRACK_NO = "no_blood_sugar"
READING_FASTING = "fasting"
READING_POST_MEAL = "post_meal"
READING_RANDOM = "random"
START_ONBOARDING = "start_onboarding"
HELP = "help"
SEND_FOOD = "send_food"
LOG_BLOOD_SUGAR = "log_blood_sugar"
BLOOD_SUGAR_TRENDS = "blood_sugar_trends"
MEAL_IMPACT = "meal_impact"
SUMMARY = "summary"
LANGUAGE = "language"
DAILY_SUMMARY = "daily_summary"
WEEKLY_SUMMARY = "weekly_summary"
MONTHLY_SUMMARY = "monthly_summary"


CONDITION_MENU = ButtonMenu(
    header=L("Diabetes Type", "मधुमेह प्रकार"),
    body=L("What type of diabetes do you have?", "आपको किस प्रकार का मधुमेह है?"),
    buttons=[
        MenuButton(id=CONDITION_TYPE1, title=L("Type 1", "टाइप 1")),
        MenuButton(id=CONDITION_TYPE2, title=L("Type 2", "टाइप 2")),
        MenuButton(id=CONDITION_NONE, title=L("None", "कोई नहीं")),
    ]
)

TRACK_READINGS_MENU = ButtonMenu(
    header=L("Blood Sugar Tracking", "रक्त शर्करा ट्रैकिंग"),
    body=L("Do you want to track your blood sugar levels?", "क्या आप अपने रक्त शर्करा के स्तर को ट्रैक करना चाहते हैं?"),
    buttons=[
        MenuButton(id=TRACK_YES, title=L("Yes", "हां")),
        MenuButton(id=TRACK_NO, title=L("No", "नहीं")),
    ]
)

ONBOARDING_LANGUAGE_MENU = ButtonMenu(
    header=L("Language Preference", "भाषा प्राथमिकता"),
    body=L("What is your preferred language?", "आपकी पसंदीदा भाषा क्या है?"),
    buttons=[
        MenuButton(id=LANG_EN, title=L("English", "अंग्रेजी")),
        MenuButton(id=LANG_HI, title=L("Hindi", "हिंदी")),
    ]
)

LANGUAGE_SETTINGS_MENU = ButtonMenu(
    header=L("Language Settings", "भाषा सेटिंग्स"),
    body=L("Select your preferred language:", "अपनी पसंदीदा भाषा चुनें:"),
    buttons=ONBOARDING_LANGUAGE_MENU.buttons
)

READING_CATEGORY_MENU = ButtonMenu(
    header=L("Blood Sugar Log", "रक्त शर्करा लॉग"),
    body=L(
        "What type of blood sugar reading would you like to log?\n"
        "1. Fasting (before meal)\n"
        "2. Post-meal (1-2 hours after eating)\n"
        "3. Random (any other time)",
        "आप किस प्रकार की रक्त शर्करा रीडिंग लॉग करना चाहेंगे?\n"
        "1. उपवास (भोजन से पहले)\n"
        "2. भोजन के बाद (खाने के 1-2 घंटे बाद)\n"
        "3. रैंडम (किसी भी अन्य समय)"
    ),
    buttons=[
        MenuButton(id=READING_FASTING, title=L("Fasting (before meal)", "उपवास (भोजन से पहले)")),
        MenuButton(id=READING_POST_MEAL, title=L("Post-meal (1-2 hours after eating)", "भोजन के बाद (खाने के 1-2 घंटे बाद)")),
        MenuButton(id=READING_RANDOM, title=L("Random (any other time)", "रैंडम (किसी भी अन्य समय)")),
    ]
)

WELCOME_MENU = ButtonMenu(
    header=L("Welcome!", "स्वागत है!"),
    body=L(
        "Welcome to the health tracking service! To get started, set up your profile or send a food image to get calorie estimates.",
        "स्वास्थ्य ट्रैकिंग सेवा में आपका स्वागत है! शुरू करने के लिए, अपना प्रोफाइल सेट करें या कैलोरी अनुमान प्राप्त करने के लिए एक खाद्य छवि भेजें।"
    ),
    buttons=[
        MenuButton(id=START_ONBOARDING, title=L("Set Up Profile", "प्रोफ़ाइल सेट करें")),
        MenuButton(id=HELP, title=L("Show Help", "सहायता दिखाएँ")),
    ]
)

SUMMARY_MENU = ListMenu(
    header=L("Health Summary", "स्वास्थ्य सारांश"),
    body=L("What type of summary would you like to see?", "आप किस प्रकार का सारांश देखना चाहेंगे?"),
    button_label=L("Select Option", "विकल्प चुनें"),
    sections=[
        MenuSection(
            title=L("Summary Types", "सारांश प्रकार"),
            rows=[
                MenuRow(id=DAILY_SUMMARY, title=L("Daily Summary", "दैनिक सारांश")),
                MenuRow(id=WEEKLY_SUMMARY, title=L("Weekly Summary", "साप्ताहिक सारांश")),
                MenuRow(id=MONTHLY_SUMMARY, title=L("Monthly Summary", "मासिक सारांश")),
            ]
        )
    ]
)

HELP_MENU = ListMenu(
    header=L("Help Menu", "सहायता मेनू"),
    body=L(
        "Select an option to learn more or type the command directly",
        "अधिक जानने के लिए एक विकल्प चुनें या सीधे कमांड टाइप करें"
    ),
    button_label=L("View Options", "विकल्प देखें"),
    sections=[
        MenuSection(
            title=L("Available Commands", "उपलब्ध कमांड्स"),
            rows=[
                MenuRow(
                    id=SEND_FOOD,
                    title=L("Send Food Image", "खाद्य छवि भेजें"),
                    description=L("Get calorie estimates and recommendations", "कैलोरी अनुमान और सिफारिशें प्राप्त करें")
                ),
                MenuRow(
                    id=START_ONBOARDING,
                    title=L("Start Onboarding", "प्रोफाइल सेटअप"),
                    description=L("Set up or update your profile", "अपना प्रोफ़ाइल सेट अप या अपडेट करें")
                ),
                MenuRow(
                    id=LOG_BLOOD_SUGAR,
                    title=L("Log Blood Sugar", "रक्त शर्करा लॉग करें"),
                    description=L("Log a new blood sugar reading", "एक नया रक्त शर्करा रीडिंग लॉग करें")
                ),
                MenuRow(
                    id=BLOOD_SUGAR_TRENDS,
                    title=L("Blood Sugar Trends", "रक्त शर्करा रुझान"),
                    description=L("See your trends and analysis", "अपने रुझान और विश्लेषण देखें")
                ),
                MenuRow(
                    id=MEAL_IMPACT,
                    title=L("Meal Impact", "भोजन का प्रभाव"),
                    description=L("See post-meal readings next to your meals", "अपने भोजन के साथ भोजन के बाद की रीडिंग देखें")
                ),
                MenuRow(
                    id=SUMMARY,
                    title=L("Summary", "सारांश"),
                    description=L("View your health tracking summaries", "अपने स्वास्थ्य ट्रैकिंग सारांश देखें")
                ),
                MenuRow(
                    id=LANGUAGE,
                    title=L("Change Language", "भाषा बदलें"),
                    description=L("Change your language preference", "अपनी भाषा प्राथमिकता बदलें")
                ),
            ]
        )
    ]
)
