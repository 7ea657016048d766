# services/meal_service.py
from typing import Dict, Optional, Any

from models.schemas import DailyRollup, MealAnalysis, MealEvent, UserProfile
from utils.timezone_utils import get_user_now

class MealService:
    """Runs the image analysis for a meal and records the result"""

    def __init__(self, store, analyzer):
        self.store = store
        self.analyzer = analyzer

    async def analyze_and_store(
        self,
        phone: str,
        image_base64: str,
        details: str,
        profile: Optional[UserProfile] = None,
        lang: str = 'en'
    ) -> Dict[str, Any]:
        analysis: MealAnalysis = await self.analyzer.analyze_food_image(image_base64, details, profile, lang)

        user = await self.store.ensure_user(phone)
        meal = MealEvent(
            owner_id=phone,
            captured_at=get_user_now(),
            estimated_calories=analysis.calories,
            description=details,
            suitability_flag=analysis.is_recommended,
            reason_text=analysis.reason,
            analysis_text=analysis.analysis,
            advice_text=analysis.personalized_tips
        )
        entry = await self.store.create_food_entry(meal.to_row())
        rollup = await self.record_in_rollup(phone, meal)

        print(f"✅ Stored food entry for {phone}: {meal.estimated_calories} kcal")
        return {
            'analysis': analysis,
            'entry': entry,
            'rollup': rollup,
            'user_onboarded': bool(user and user.get('onboarded'))
        }

    async def record_in_rollup(self, phone: str, meal: MealEvent) -> DailyRollup:
        """Add a meal to the (owner, date) rollup, creating it on the first meal of the day"""
        today = meal.captured_at.date()
        row = await self.store.get_daily_summary(phone, today.isoformat())

        if row:
            current = DailyRollup.from_row(row)
        else:
            current = DailyRollup(owner_id=phone, date=today)

        updated = current.record_meal(meal.estimated_calories, meal.suitability_flag)
        await self.store.save_daily_summary(updated.to_row(), current.id)
        return updated

