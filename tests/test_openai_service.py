import json

import pytest

from models.schemas import UserProfile
from services.openai_service import build_prompt, parse_analysis, strip_code_fences


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```{"a": 1}```') == '{"a": 1}'
    assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


def test_parse_analysis_from_fenced_json():
    content = """```json
{"calories": "512.7", "is_recommended": true, "reason": "High fiber",
 "analysis": "Oats with nuts", "personalized_tips": "Skip the honey"}
```"""
    analysis = parse_analysis(content)
    assert analysis.calories == 512
    assert analysis.is_recommended is True
    assert analysis.personalized_tips == "Skip the honey"


def test_parse_analysis_coerces_bad_calories():
    assert parse_analysis('{"calories": "lots"}').calories == 0
    assert parse_analysis('{"calories": -20}').calories == 0


def test_parse_analysis_rejects_non_objects():
    with pytest.raises(json.JSONDecodeError):
        parse_analysis("This looks like a healthy meal")
    with pytest.raises(json.JSONDecodeError):
        parse_analysis("[1, 2]")


def test_prompt_includes_profile_only_after_onboarding():
    profile = UserProfile(
        phone_number="1", condition_type="Type 1", daily_calorie_limit=2000,
        dietary_preference="vegetarian", onboarded=True
    )
    prompt = build_prompt("paneer wrap", profile, 'en')
    assert '"paneer wrap"' in prompt
    assert "Has Type 1 diabetes" in prompt
    assert "daily calorie limit of 2000 kcal" in prompt

    pending = profile.model_copy(update={'onboarded': False})
    assert "Has Type 1 diabetes" not in build_prompt("paneer wrap", pending, 'en')


def test_hindi_prompt():
    prompt = build_prompt("", None, 'hi')
    assert prompt.startswith("इस भोजन की छवि का विश्लेषण करें")
    assert "हिंदी में" in prompt
