from services.translation_service import Key, Localized, translate, normalize_language


def test_key_resolves_to_hindi_entry():
    text = translate("Please enter your blood sugar value (in mg/dL):", "hi")
    assert text == "कृपया अपने रक्त शर्करा का मान दर्ज करें (mg/dL में):"


def test_unknown_key_returns_token_itself():
    assert translate(Key(token="No such phrase"), "hi") == "No such phrase"


def test_english_key_is_returned_unchanged():
    assert translate("Calorie estimate:", "en") == "Calorie estimate:"


def test_unsupported_language_falls_back_to_english():
    assert normalize_language("fr") == "en"
    assert translate("Calorie estimate:", "fr") == "Calorie estimate:"
    assert translate(Localized.of("Hello", "नमस्ते"), "fr") == "Hello"


def test_localized_picks_language_variant():
    message = Localized.of("Yes", "हां")
    assert translate(message, "hi") == "हां"
    assert translate(message, "en") == "Yes"


def test_localized_without_variant_uses_english():
    assert translate(Localized.of("Only English"), "hi") == "Only English"


def test_localized_without_any_text_is_empty():
    assert translate(Localized(by_language={}), "hi") == ""
