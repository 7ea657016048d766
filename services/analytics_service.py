# services/analytics_service.py
from typing import List, Optional, Iterable
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from models.schemas import (
    Reading, ReadingCategory, MealEvent, TrendsResult, TrendLabel,
    CorrelatedMeal, PostMealReading
)
from services.translation_service import Localized, translate
from utils.timezone_utils import get_user_now

IN_RANGE_LOW = 70
IN_RANGE_HIGH = 180
MIN_READINGS_FOR_TREND = 3
RISING_FACTOR = 1.1
FALLING_FACTOR = 0.9
POST_MEAL_WINDOW_MINUTES = 120


def round_half_up(value: float, places: int = 0) -> float:
    """Round like a calculator (0.5 goes up), not like round()"""
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def _mean(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    if not values:
        return None
    return sum(values) / len(values)


def detect_trend(readings: List[Reading]) -> TrendLabel:
    """
    Compare the mean of the later half of the readings with the earlier half.
    Fewer than three readings always count as stable.
    """
    if len(readings) < MIN_READINGS_FOR_TREND:
        return TrendLabel.STABLE

    ordered = sorted(readings, key=lambda r: r.captured_at)
    boundary = len(ordered) // 2
    first_half_avg = _mean(r.value for r in ordered[:boundary])
    second_half_avg = _mean(r.value for r in ordered[boundary:])

    if second_half_avg > first_half_avg * RISING_FACTOR:
        return TrendLabel.RISING
    if second_half_avg < first_half_avg * FALLING_FACTOR:
        return TrendLabel.FALLING
    return TrendLabel.STABLE


def calculate_trends(readings: List[Reading], days: int = 7) -> TrendsResult:
    """Descriptive statistics over a window of readings"""
    if not readings:
        return TrendsResult(days=days)

    values = [r.value for r in readings]
    fasting_avg = _mean(r.value for r in readings if r.category == ReadingCategory.FASTING)
    post_meal_avg = _mean(r.value for r in readings if r.category == ReadingCategory.POST_MEAL)
    in_range = sum(1 for v in values if IN_RANGE_LOW <= v <= IN_RANGE_HIGH)

    return TrendsResult(
        readings_count=len(values),
        average=round_half_up(_mean(values), 1),
        min=min(values),
        max=max(values),
        fasting_avg=round_half_up(fasting_avg, 1) if fasting_avg is not None else None,
        post_meal_avg=round_half_up(post_meal_avg, 1) if post_meal_avg is not None else None,
        in_range_percentage=round_half_up(in_range / len(values) * 100, 1),
        trend=detect_trend(readings),
        days=days
    )


def correlate_with_meals(
    readings: List[Reading],
    meals: List[MealEvent],
    days: int = 7,
    now: Optional[datetime] = None
) -> List[CorrelatedMeal]:
    """Attach post-meal readings taken within two hours after each meal"""
    now = now or get_user_now()
    window_start = now - timedelta(days=days)
    post_meal = [r for r in readings if r.category == ReadingCategory.POST_MEAL]

    correlated = []
    recent_meals = sorted(
        (m for m in meals if m.captured_at >= window_start),
        key=lambda m: m.captured_at,
        reverse=True
    )
    for meal in recent_meals:
        related = []
        for reading in sorted(post_meal, key=lambda r: r.captured_at):
            minutes_after = (reading.captured_at - meal.captured_at).total_seconds() / 60
            if 0 <= minutes_after <= POST_MEAL_WINDOW_MINUTES:
                related.append(PostMealReading(
                    value=reading.value,
                    captured_at=reading.captured_at,
                    minutes_after_meal=int(round_half_up(minutes_after))
                ))
        correlated.append(CorrelatedMeal(meal=meal, post_meal_readings=related))

    return correlated


def _format_number(value: float) -> str:
    return f"{value:g}"


def _t(en: str, hi: str, lang: str) -> str:
    return translate(Localized.of(en, hi), lang)


def format_trends_message(trends: TrendsResult, lang: str = 'en') -> str:
    if trends.readings_count == 0:
        return _t(
            "No blood sugar data available. Start logging your blood sugar readings to see trends.",
            "कोई रक्त शर्करा डेटा उपलब्ध नहीं है। रुझान देखने के लिए अपनी रक्त शर्करा रीडिंग लॉग करना शुरू करें।",
            lang
        )

    message = _t("📊 Blood Sugar Trends 📊", "📊 रक्त शर्करा रुझान 📊", lang) + "\n\n"
    message += _t(
        f"Readings: {trends.readings_count} in the last {trends.days} days",
        f"रीडिंग: पिछले {trends.days} दिनों में {trends.readings_count}",
        lang
    ) + "\n"
    message += _t("Average:", "औसत:", lang) + f" {_format_number(trends.average)} mg/dL\n"
    message += _t("Range:", "सीमा:", lang) + f" {_format_number(trends.min)} - {_format_number(trends.max)} mg/dL\n\n"

    if trends.fasting_avg is not None:
        message += _t("Fasting Average:", "उपवास औसत:", lang) + f" {_format_number(trends.fasting_avg)} mg/dL\n"
    if trends.post_meal_avg is not None:
        message += _t("Post-Meal Average:", "भोजन के बाद औसत:", lang) + f" {_format_number(trends.post_meal_avg)} mg/dL\n"

    message += _t("Time in Range:", "सीमा में समय:", lang) + f" {_format_number(trends.in_range_percentage)}%\n\n"

    message += _t("Analysis: ", "विश्लेषण: ", lang)
    if trends.trend == TrendLabel.RISING:
        message += _t(
            "⚠️ Your blood sugar levels show an upward trend. Consider reviewing your diet and medication.",
            "⚠️ आपके रक्त शर्करा स्तर में बढ़ता रुझान दिख रहा है। अपने आहार और दवा की समीक्षा करने पर विचार करें।",
            lang
        )
    elif trends.trend == TrendLabel.FALLING:
        message += _t(
            "Your blood sugar levels show a downward trend. If too low, consider consulting your healthcare provider.",
            "आपके रक्त शर्करा स्तर में घटता रुझान दिख रहा है। यदि बहुत कम हो, तो अपने स्वास्थ्य सेवा प्रदाता से परामर्श करें।",
            lang
        )
    elif trends.trend == TrendLabel.STABLE:
        message += _t("👍 Your blood sugar levels appear stable.", "👍 आपके रक्त शर्करा स्तर स्थिर दिखते हैं।", lang)
    else:
        message += _t("Not enough data to determine a trend.", "रुझान निर्धारित करने के लिए पर्याप्त डेटा नहीं है।", lang)

    return message


def format_correlation_message(correlated: List[CorrelatedMeal], days: int = 7, lang: str = 'en') -> str:
    if not correlated:
        return _t(
            f"No meals logged in the last {days} days. Send a food photo to start tracking.",
            f"पिछले {days} दिनों में कोई भोजन लॉग नहीं किया गया। ट्रैकिंग शुरू करने के लिए भोजन की फ़ोटो भेजें।",
            lang
        )

    message = _t(f"🍽️ Meal Impact (last {days} days) 🍽️", f"🍽️ भोजन का प्रभाव (पिछले {days} दिन) 🍽️", lang) + "\n"
    for item in correlated:
        meal = item.meal
        verdict = "✅" if meal.suitability_flag else "⚠️"
        details = meal.description or _t("Meal", "भोजन", lang)
        message += f"\n{verdict} {meal.captured_at:%b %d %H:%M} - {details} ({meal.estimated_calories} kcal)\n"
        if not item.post_meal_readings:
            message += "   " + _t("No post-meal reading within 2 hours", "2 घंटे के भीतर भोजन के बाद की कोई रीडिंग नहीं", lang) + "\n"
        for reading in item.post_meal_readings:
            message += "   " + _t(
                f"{_format_number(reading.value)} mg/dL after {reading.minutes_after_meal} min",
                f"{reading.minutes_after_meal} मिनट बाद {_format_number(reading.value)} mg/dL",
                lang
            ) + "\n"

    return message.rstrip()
