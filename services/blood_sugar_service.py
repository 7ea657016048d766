# services/blood_sugar_service.py
"""
Blood sugar logging, trend analysis, and correlation with meals.
"""
import re
from typing import Dict, List, Optional, Any
from datetime import timedelta

from models.schemas import (
    Reading, ReadingCategory, MealEvent, TrendsResult, CorrelatedMeal,
    MIN_READING_VALUE, MAX_READING_VALUE
)
from services.analytics_service import calculate_trends, correlate_with_meals
from services.translation_service import Key
from utils.errors import ReadingValidationError
from utils.timezone_utils import get_user_now, format_timestamp_for_postgres

LEADING_NUMBER = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')

HYPOGLYCEMIA_THRESHOLD = 70
FASTING_NORMAL_MAX = 100
FASTING_PREDIABETIC_MAX = 125
POST_MEAL_NORMAL_LIMIT = 140
POST_MEAL_ELEVATED_MAX = 180
RANDOM_ACCEPTABLE_MAX = 140


def parse_leading_number(text: str) -> Optional[float]:
    """Read the number a message starts with ("95 mg/dL" -> 95.0); None if it doesn't start with one"""
    match = LEADING_NUMBER.match(text or '')
    if not match:
        return None
    return float(match.group(0))


def readings_from_rows(rows: List[Dict[str, Any]]) -> List[Reading]:
    """Build readings from stored rows, skipping rows that no longer validate"""
    readings = []
    for row in rows:
        try:
            readings.append(Reading.from_row(row))
        except (KeyError, TypeError, ValueError) as e:
            print(f"⚠️ Skipping invalid blood sugar row {row.get('id')}: {e}")
    return readings


def validate_reading_value(value: float) -> float:
    if value < MIN_READING_VALUE:
        raise ReadingValidationError(
            f"Blood sugar value is too low (below {MIN_READING_VALUE} mg/dL). Please verify your reading."
        )
    if value > MAX_READING_VALUE:
        raise ReadingValidationError(
            f"Blood sugar value is too high (above {MAX_READING_VALUE} mg/dL). "
            "Please verify your reading or seek medical attention immediately."
        )
    return value


def interpret_reading(value: float, category: ReadingCategory) -> Key:
    """Pick the interpretation phrase for a reading"""
    if category == ReadingCategory.FASTING:
        if value < HYPOGLYCEMIA_THRESHOLD:
            return Key(token="Your fasting blood sugar is below the normal range (70-100 mg/dL). This could indicate hypoglycemia.")
        if value <= FASTING_NORMAL_MAX:
            return Key(token="Your fasting blood sugar is within the normal range (70-100 mg/dL).")
        if value <= FASTING_PREDIABETIC_MAX:
            return Key(token="Your fasting blood sugar is in the prediabetic range (100-125 mg/dL).")
        return Key(token="Your fasting blood sugar is above 125 mg/dL, which is in the diabetic range.")

    if category == ReadingCategory.POST_MEAL:
        if value < HYPOGLYCEMIA_THRESHOLD:
            return Key(token="Your post-meal blood sugar is too low. Consider consulting your healthcare provider.")
        if value < POST_MEAL_NORMAL_LIMIT:
            return Key(token="Your post-meal blood sugar is within the normal range (less than 140 mg/dL).")
        if value <= POST_MEAL_ELEVATED_MAX:
            return Key(token="Your post-meal blood sugar is slightly elevated.")
        return Key(token="Your post-meal blood sugar is above 180 mg/dL, which is higher than recommended.")

    if value < HYPOGLYCEMIA_THRESHOLD:
        return Key(token="Your blood sugar is below 70 mg/dL, which may indicate hypoglycemia.")
    if value <= RANDOM_ACCEPTABLE_MAX:
        return Key(token="Your blood sugar is within a generally acceptable range.")
    return Key(token="Your blood sugar is elevated. Consider checking again later.")


class BloodSugarService:
    def __init__(self, store):
        self.store = store

    async def log_reading(
        self,
        phone: str,
        value: float,
        category: ReadingCategory,
        notes: str = '',
        meal_id: Any = None
    ) -> Dict[str, Any]:
        """
        Validate and store one reading.

        Creates a bare user record when the sender is unknown. Raises
        MissingTableError when blood_sugar_logs is not provisioned. Once the
        insert succeeds, a failed re-fetch still counts as success.
        """
        if not phone:
            raise ReadingValidationError("Missing user phone number")
        try:
            category = ReadingCategory(category)
        except ValueError:
            raise ReadingValidationError(
                f"Invalid blood sugar reading type: {category}. "
                f"Valid types are: {', '.join(c.value for c in ReadingCategory)}"
            )
        value = validate_reading_value(float(value))

        await self.store.ensure_user(phone, track_blood_sugar=True)
        await self.store.check_blood_sugar_table()

        reading = Reading(
            owner_id=phone,
            value=value,
            category=category,
            captured_at=get_user_now(),
            note=notes,
            related_meal_id=meal_id
        )
        await self.store.create_blood_sugar_log(reading.to_row())
        print(f"✅ Logged {category.value} blood sugar {value:g} mg/dL for {phone}")

        basic = {
            'success': True,
            'user_phone': phone,
            'value': value,
            'type': category.value,
            'timestamp': format_timestamp_for_postgres(reading.captured_at)
        }
        try:
            stored = await self.store.get_latest_blood_sugar_log(phone, category.value)
        except Exception as e:
            print(f"⚠️ Error fetching inserted blood sugar record: {e}")
            return basic

        if not stored:
            print("⚠️ Blood sugar reading was saved but could not be retrieved")
            return basic
        return stored

    async def provision_tables(self) -> bool:
        """Create blood_sugar_logs and users.track_blood_sugar if they are missing"""
        table_ready = await self.store.create_blood_sugar_table()
        column_ready = await self.store.ensure_track_blood_sugar_column()
        return table_ready and column_ready

    async def get_readings(
        self, phone: str, days: int = 7, category: Optional[ReadingCategory] = None
    ) -> List[Reading]:
        end = get_user_now()
        start = end - timedelta(days=days)
        rows = await self.store.get_blood_sugar_logs(
            phone, start, end, category.value if category else None
        )
        return readings_from_rows(rows)

    async def get_trends(self, phone: str, days: int = 7) -> TrendsResult:
        readings = await self.get_readings(phone, days)
        return calculate_trends(readings, days)

    async def correlate_meals(self, phone: str, days: int = 7) -> List[CorrelatedMeal]:
        now = get_user_now()
        readings = await self.get_readings(phone, days, ReadingCategory.POST_MEAL)
        meal_rows = await self.store.get_food_entries(phone, since=now - timedelta(days=days))
        meals = [MealEvent.from_row(row) for row in meal_rows]
        return correlate_with_meals(readings, meals, days, now)
