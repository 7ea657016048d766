# services/summary_service.py
from typing import List, Optional, Union
from datetime import timedelta

from models.schemas import DailyRollup, DailySummary, ReadingCategory, SummaryStats
from services.analytics_service import round_half_up
from services.blood_sugar_service import readings_from_rows
from services.translation_service import Localized, translate
from utils.timezone_utils import get_user_today, day_bounds

HIGH_CALORIE_THRESHOLD = 2500
LOW_CALORIE_THRESHOLD = 1500
LOW_MEAL_THRESHOLD = 2
HIGH_MEAL_THRESHOLD = 5
LOW_FAVORABLE_THRESHOLD = 50
HIGH_FAVORABLE_THRESHOLD = 80

WEEKLY_ROLLUP_LIMIT = 7
MONTHLY_LOOKBACK_DAYS = 30

L = Localized.of

PERIOD_NAMES = {
    'daily': L("daily", "दैनिक"),
    'weekly': L("weekly", "साप्ताहिक"),
    'monthly': L("monthly", "मासिक"),
}

HIGH_CALORIE_INSIGHT = L(
    "⚠️ Your daily calorie intake is above the recommended range. Consider reducing portion sizes.",
    "⚠️ आपका दैनिक कैलोरी सेवन अनुशंसित सीमा से ऊपर है। भोजन की मात्रा कम करने पर विचार करें।"
)
LOW_CALORIE_INSIGHT = L(
    "⚠️ Your daily calorie intake is below the recommended range. Make sure you're getting enough nutrients.",
    "⚠️ आपका दैनिक कैलोरी सेवन अनुशंसित सीमा से नीचे है। सुनिश्चित करें कि आपको पर्याप्त पोषक तत्व मिल रहे हैं।"
)
FEW_MEALS_INSIGHT = L(
    "⚠️ You're having fewer meals than recommended. Try to maintain regular meal times.",
    "⚠️ आप अनुशंसित से कम भोजन कर रहे हैं। नियमित भोजन का समय बनाए रखने का प्रयास करें।"
)
MANY_MEALS_INSIGHT = L(
    "⚠️ You're having more frequent meals than recommended. Consider spacing them out more.",
    "⚠️ आप अनुशंसित से अधिक बार भोजन कर रहे हैं। भोजन के बीच अधिक अंतर रखने पर विचार करें।"
)
FEW_FAVORABLE_INSIGHT = L(
    "⚠️ Less than half of your choices are marked as healthy. Try incorporating more balanced meals.",
    "⚠️ आपके आधे से कम विकल्प स्वस्थ चिह्नित हैं। अधिक संतुलित भोजन शामिल करने का प्रयास करें।"
)
MOSTLY_FAVORABLE_INSIGHT = L(
    "✅ Great job! You're making mostly healthy choices. Keep it up!",
    "✅ बहुत बढ़िया! आप ज़्यादातर स्वस्थ विकल्प चुन रहे हैं। इसे जारी रखें!"
)
SUMMARY_TIP = L(
    "💡 Tip: Remember to maintain a balanced diet and stay hydrated!",
    "💡 सुझाव: संतुलित आहार बनाए रखना और पर्याप्त पानी पीना याद रखें!"
)


def calculate_averages(rollups: List[DailyRollup]) -> SummaryStats:
    """Totals and per-day averages over summed rollups"""
    if not rollups:
        return SummaryStats()

    days = len(rollups)
    total_calories = sum(r.total_calories for r in rollups)
    total_meals = sum(r.meal_count for r in rollups)
    total_favorable = sum(r.favorable_count for r in rollups)
    total_unfavorable = sum(r.unfavorable_count for r in rollups)
    flagged = total_favorable + total_unfavorable

    return SummaryStats(
        total_calories=total_calories,
        total_meals=total_meals,
        total_favorable=total_favorable,
        total_unfavorable=total_unfavorable,
        avg_daily_calories=int(round_half_up(total_calories / days)),
        avg_daily_meals=round_half_up(total_meals / days, 1),
        favorable_percentage=int(round_half_up(total_favorable / flagged * 100)) if flagged else 0
    )


def generate_insights(stats: SummaryStats, lang: str = 'en') -> List[str]:
    insights = []

    if stats.avg_daily_calories > HIGH_CALORIE_THRESHOLD:
        insights.append(HIGH_CALORIE_INSIGHT)
    elif stats.avg_daily_calories < LOW_CALORIE_THRESHOLD:
        insights.append(LOW_CALORIE_INSIGHT)

    if stats.avg_daily_meals < LOW_MEAL_THRESHOLD:
        insights.append(FEW_MEALS_INSIGHT)
    elif stats.avg_daily_meals > HIGH_MEAL_THRESHOLD:
        insights.append(MANY_MEALS_INSIGHT)

    if stats.favorable_percentage < LOW_FAVORABLE_THRESHOLD:
        insights.append(FEW_FAVORABLE_INSIGHT)
    elif stats.favorable_percentage > HIGH_FAVORABLE_THRESHOLD:
        insights.append(MOSTLY_FAVORABLE_INSIGHT)

    return [translate(insight, lang) for insight in insights]


def _format_daily(summary: DailySummary, lang: str = 'en') -> str:
    def t(en, hi):
        return translate(L(en, hi), lang)

    rollup = summary.rollup
    message = t("Total Calories:", "कुल कैलोरी:") + f" {rollup.total_calories} kcal\n"
    message += t("Meals Today:", "आज का भोजन:") + f" {rollup.meal_count}\n"
    message += t("✅ Good Choices:", "✅ अच्छे विकल्प:") + f" {rollup.favorable_count}\n"
    message += t("⚠️ Caution Needed:", "⚠️ सावधानी आवश्यक:") + f" {rollup.unfavorable_count}\n"

    if summary.readings:
        values = [r.value for r in summary.readings]
        message += "\n" + t("📈 Blood Sugar Readings Today:", "📈 आज की रक्त शर्करा रीडिंग:") + "\n"
        message += t("Readings:", "रीडिंग:") + f" {len(values)}\n"
        message += t("Average:", "औसत:") + f" {int(round_half_up(sum(values) / len(values)))} mg/dL\n"
        message += t("Range:", "सीमा:") + f" {min(values):g} - {max(values):g} mg/dL\n"

        labels = (
            (ReadingCategory.FASTING, t("Fasting Average:", "उपवास औसत:")),
            (ReadingCategory.POST_MEAL, t("Post-Meal Average:", "भोजन के बाद औसत:")),
        )
        for category, label in labels:
            matching = [r.value for r in summary.readings if r.category == category]
            if matching:
                message += f"{label} {int(round_half_up(sum(matching) / len(matching)))} mg/dL\n"

    flagged = rollup.favorable_count + rollup.unfavorable_count
    favorable_percentage = round_half_up(rollup.favorable_count / flagged * 100) if flagged else 0
    if favorable_percentage < LOW_FAVORABLE_THRESHOLD:
        message += "\n" + t(
            "Today's Insight: Try to make more balanced choices in your next meal.",
            "आज की सलाह: अपने अगले भोजन में अधिक संतुलित विकल्प चुनने का प्रयास करें।"
        )
    else:
        message += "\n" + t(
            "Today's Insight: You're making good progress! Keep it up!",
            "आज की सलाह: आप अच्छी प्रगति कर रहे हैं! इसे जारी रखें!"
        )

    return message


def _format_period(rollups: List[DailyRollup], lang: str = 'en') -> str:
    def t(en, hi):
        return translate(L(en, hi), lang)

    stats = calculate_averages(rollups)
    insights = generate_insights(stats, lang)

    message = t("Total Calories:", "कुल कैलोरी:") + f" {stats.total_calories} kcal\n"
    message += t("Total Meals:", "कुल भोजन:") + f" {stats.total_meals}\n"
    message += t("✅ Good Choices:", "✅ अच्छे विकल्प:") + f" {stats.total_favorable}\n"
    message += t("⚠️ Caution Needed:", "⚠️ सावधानी आवश्यक:") + f" {stats.total_unfavorable}\n"
    message += "\n" + t("Average Daily Calories:", "औसत दैनिक कैलोरी:") + f" {stats.avg_daily_calories} kcal\n"
    message += t("Average Daily Meals:", "औसत दैनिक भोजन:") + f" {stats.avg_daily_meals:.1f}\n"
    message += t("Healthy Choice Rate:", "स्वस्थ विकल्प दर:") + f" {stats.favorable_percentage}%\n"

    if insights:
        message += "\n" + t("📝 Insights:", "📝 सलाह:") + "\n" + "\n".join(insights)

    return message


def format_summary_message(
    summary: Union[DailySummary, List[DailyRollup], None], period: str, lang: str = 'en'
) -> str:
    period_name = translate(PERIOD_NAMES.get(period, L(period)), lang)
    if not summary:
        return translate(L(
            f"No {period_name} summary available yet. Start tracking your meals to see your progress!",
            f"अभी तक कोई {period_name} सारांश उपलब्ध नहीं है। अपनी प्रगति देखने के लिए अपने भोजन को ट्रैक करना शुरू करें!"
        ), lang)

    message = translate(L(f"📊 Your {period_name} Summary:", f"📊 आपका {period_name} सारांश:"), lang) + "\n\n"
    if isinstance(summary, DailySummary):
        message += _format_daily(summary, lang)
    else:
        message += _format_period(summary, lang)

    message += "\n\n" + translate(SUMMARY_TIP, lang)
    return message


class SummaryService:
    def __init__(self, store):
        self.store = store

    async def get_daily_summary(self, phone: str) -> Optional[DailySummary]:
        """Today's rollup (server UTC date) merged with today's readings"""
        today = get_user_today()
        row = await self.store.get_daily_summary(phone, today.isoformat())
        if not row:
            return None

        start, end = day_bounds(today)
        readings = []
        try:
            rows = await self.store.get_blood_sugar_logs(phone, start, end)
            readings = readings_from_rows(rows)
        except Exception as e:
            print(f"⚠️ Error fetching today's blood sugar readings: {e}")

        return DailySummary(rollup=DailyRollup.from_row(row), readings=readings)

    async def get_weekly_summary(self, phone: str) -> List[DailyRollup]:
        rows = await self.store.get_daily_summaries(phone, limit=WEEKLY_ROLLUP_LIMIT)
        return [DailyRollup.from_row(r) for r in rows]

    async def get_monthly_summary(self, phone: str) -> List[DailyRollup]:
        since = get_user_today() - timedelta(days=MONTHLY_LOOKBACK_DAYS)
        rows = await self.store.get_daily_summaries(phone, since=since.isoformat())
        return [DailyRollup.from_row(r) for r in rows]

    async def get_summary(self, phone: str, period: str):
        if period == 'daily':
            return await self.get_daily_summary(phone)
        if period == 'weekly':
            return await self.get_weekly_summary(phone)
        if period == 'monthly':
            return await self.get_monthly_summary(phone)
        raise ValueError(f"Unknown summary period: {period}")

