# services/translation_service.py
"""
Phrase lookup for multilingual replies.
Supports English (en) and Hindi (hi); anything else falls back to English.
"""
from typing import Dict, Union
from pydantic import BaseModel

SUPPORTED_LANGUAGES = ['en', 'hi']
DEFAULT_LANGUAGE = 'en'


class Localized(BaseModel):
    """Text carried with its own per-language variants"""
    by_language: Dict[str, str]

    @classmethod
    def of(cls, en: str, hi: str = None) -> "Localized":
        variants = {'en': en}
        if hi:
            variants['hi'] = hi
        return cls(by_language=variants)

    def resolve(self, lang: str) -> str:
        return self.by_language.get(lang) or self.by_language.get(DEFAULT_LANGUAGE) or ''


class Key(BaseModel):
    """Canonical English phrase looked up in the translation table"""
    token: str

    def resolve(self, lang: str) -> str:
        if lang == DEFAULT_LANGUAGE:
            return self.token
        return TRANSLATIONS.get(self.token, {}).get(lang, self.token)


Message = Union[Localized, Key]


# Common translations for frequently used phrases
TRANSLATIONS: Dict[str, Dict[str, str]] = {
    # Blood sugar
    "Please enter your blood sugar value (in mg/dL):": {
        'hi': "कृपया अपने रक्त शर्करा का मान दर्ज करें (mg/dL में):"
    },
    "Your fasting blood sugar is below the normal range (70-100 mg/dL). This could indicate hypoglycemia.": {
        'hi': "आपका उपवास रक्त शर्करा सामान्य सीमा (70-100 mg/dL) से कम है। यह हाइपोग्लाइसीमिया का संकेत हो सकता है।"
    },
    "Your fasting blood sugar is within the normal range (70-100 mg/dL).": {
        'hi': "आपका उपवास रक्त शर्करा सामान्य सीमा (70-100 mg/dL) के भीतर है।"
    },
    "Your fasting blood sugar is in the prediabetic range (100-125 mg/dL).": {
        'hi': "आपका उपवास रक्त शर्करा पूर्व-मधुमेह की सीमा (100-125 mg/dL) में है।"
    },
    "Your fasting blood sugar is above 125 mg/dL, which is in the diabetic range.": {
        'hi': "आपका उपवास रक्त शर्करा 125 mg/dL से अधिक है, जो मधुमेह की सीमा में है।"
    },
    "Your post-meal blood sugar is too low. Consider consulting your healthcare provider.": {
        'hi': "आपका भोजन के बाद का रक्त शर्करा बहुत कम है। अपने स्वास्थ्य देखभाल प्रदाता से परामर्श करने पर विचार करें।"
    },
    "Your post-meal blood sugar is within the normal range (less than 140 mg/dL).": {
        'hi': "आपका भोजन के बाद का रक्त शर्करा सामान्य सीमा (140 mg/dL से कम) के भीतर है।"
    },
    "Your post-meal blood sugar is slightly elevated.": {
        'hi': "आपका भोजन के बाद का रक्त शर्करा थोड़ा बढ़ा हुआ है।"
    },
    "Your post-meal blood sugar is above 180 mg/dL, which is higher than recommended.": {
        'hi': "आपका भोजन के बाद का रक्त शर्करा 180 mg/dL से अधिक है, जो अनुशंसित से अधिक है।"
    },
    "Your blood sugar is below 70 mg/dL, which may indicate hypoglycemia.": {
        'hi': "आपका रक्त शर्करा 70 mg/dL से कम है, जो हाइपोग्लाइसीमिया का संकेत हो सकता है।"
    },
    "Your blood sugar is within a generally acceptable range.": {
        'hi': "आपका रक्त शर्करा आमतौर पर स्वीकार्य सीमा के भीतर है।"
    },
    "Your blood sugar is elevated. Consider checking again later.": {
        'hi': "आपका रक्त शर्करा बढ़ा हुआ है। बाद में फिर से जांच करने पर विचार करें।"
    },
    "Type 'blood sugar trends' to see your overall patterns.": {
        'hi': "अपने समग्र पैटर्न देखने के लिए 'blood sugar trends' टाइप करें।"
    },
    "Invalid selection. Please enter 1, 2, or 3 to select a blood sugar reading type.": {
        'hi': "अमान्य चयन। रक्त शर्करा रीडिंग प्रकार चुनने के लिए कृपया 1, 2, या 3 दर्ज करें।"
    },
    "You didn't enter any value. Please enter your blood sugar reading as a number in mg/dL.": {
        'hi': "आपने कोई मान दर्ज नहीं किया। कृपया अपनी रक्त शर्करा रीडिंग को mg/dL में एक संख्या के रूप में दर्ज करें।"
    },
    "Setting up blood sugar tracking feature for the first time. This may take a moment...": {
        'hi': "पहली बार रक्त शर्करा ट्रैकिंग सुविधा सेट की जा रही है। इसमें कुछ समय लग सकता है..."
    },
    "Sorry, there was an error setting up the blood sugar tracking feature. Please contact support for assistance.": {
        'hi': "क्षमा करें, रक्त शर्करा ट्रैकिंग सुविधा सेट करने में त्रुटि हुई। कृपया सहायता के लिए संपर्क करें।"
    },

    # Food analysis
    "Do you want to add details for the recipe? Please provide any additional information about ingredients, cooking method, or portion size.": {
        'hi': "क्या आप रेसिपी के लिए विवरण जोड़ना चाहते हैं? कृपया सामग्री, पकाने की विधि, या हिस्से के आकार के बारे में कोई अतिरिक्त जानकारी प्रदान करें।"
    },
    "Sorry, there was an error processing your image.": {
        'hi': "क्षमा करें, आपकी छवि को संसाधित करने में त्रुटि हुई।"
    },
    "Sorry, there was an error processing your food entry. Please try again later.": {
        'hi': "क्षमा करें, आपकी खाद्य प्रविष्टि को संसाधित करने में त्रुटि हुई। कृपया बाद में पुनः प्रयास करें।"
    },
    "Calorie estimate:": {'hi': "कैलोरी अनुमान:"},
    "Recommendation:": {'hi': "अनुशंसा:"},
    "Good choice!": {'hi': "अच्छा विकल्प!"},
    "Not recommended": {'hi': "अनुशंसित नहीं"},
    "Reason:": {'hi': "कारण:"},
    "Personalized advice:": {'hi': "व्यक्तिगत सलाह:"},
    "Today's Summary:": {'hi': "आज का सारांश:"},
    "Total Calories:": {'hi': "कुल कैलोरी:"},
    "Meals:": {'hi': "भोजन:"},
    "Good Choices:": {'hi': "अच्छे विकल्प:"},
    "Caution Needed:": {'hi': "सावधानी आवश्यक:"},
    "I notice you haven't completed your profile setup yet. Setting up your profile will help me provide more personalized recommendations.\n\nType 'start onboarding' to set up your profile.": {
        'hi': "मैंने देखा कि आपने अभी तक अपना प्रोफ़ाइल सेटअप पूरा नहीं किया है। अपना प्रोफ़ाइल सेट करने से मुझे अधिक व्यक्तिगत सिफारिशें प्रदान करने में मदद मिलेगी।\n\nअपना प्रोफ़ाइल सेट करने के लिए 'start onboarding' टाइप करें।"
    },

    # Errors
    "Sorry, there was an error processing your summary request. Please try again later.": {
        'hi': "क्षमा करें, आपके सारांश अनुरोध को संसाधित करने में त्रुटि हुई। कृपया बाद में पुनः प्रयास करें।"
    },
    "Sorry, there was an error fetching your blood sugar trends.": {
        'hi': "क्षमा करें, आपके रक्त शर्करा के रुझान प्राप्त करने में त्रुटि हुई।"
    },
}


def normalize_language(lang: str) -> str:
    return lang if lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def translate(message: Union[Message, str], lang: str = DEFAULT_LANGUAGE) -> str:
    """Resolve a message to display text, falling back to English"""
    if isinstance(message, str):
        message = Key(token=message)
    return message.resolve(normalize_language(lang))
