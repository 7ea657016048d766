# models/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date as date_type
from enum import Enum

from utils.timezone_utils import parse_timestamp, format_timestamp_for_postgres, get_user_now

MIN_READING_VALUE = 10
MAX_READING_VALUE = 600


class ReadingCategory(str, Enum):
    FASTING = "fasting"
    POST_MEAL = "post_meal"
    RANDOM = "random"


class TrendLabel(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"
    NO_DATA = "no data"


class Reading(BaseModel):
    """A single blood sugar measurement in mg/dL"""
    id: Optional[Any] = None
    owner_id: str
    value: float = Field(ge=MIN_READING_VALUE, le=MAX_READING_VALUE)
    category: ReadingCategory
    captured_at: datetime
    note: Optional[str] = None
    related_meal_id: Optional[Any] = None

    model_config = {"frozen": True}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Reading":
        return cls(
            id=row.get('id'),
            owner_id=row['user_phone'],
            value=float(row['value']),
            category=ReadingCategory(row['type']),
            captured_at=parse_timestamp(row['timestamp']),
            note=row.get('notes'),
            related_meal_id=row.get('related_meal_id')
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            'user_phone': self.owner_id,
            'value': self.value,
            'type': self.category.value,
            'timestamp': format_timestamp_for_postgres(self.captured_at),
            'notes': self.note or '',
            'related_meal_id': self.related_meal_id
        }


class MealEvent(BaseModel):
    """A food entry produced by one image analysis"""
    id: Optional[Any] = None
    owner_id: str
    captured_at: datetime
    estimated_calories: int = 0
    description: Optional[str] = None
    suitability_flag: bool = False
    reason_text: Optional[str] = None
    analysis_text: Optional[str] = None
    advice_text: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MealEvent":
        return cls(
            id=row.get('id'),
            owner_id=row['user_phone'],
            captured_at=parse_timestamp(row['timestamp']),
            estimated_calories=int(row.get('calories') or 0),
            description=row.get('user_provided_details'),
            suitability_flag=bool(row.get('is_recommended')),
            reason_text=row.get('reason_for_recommendation'),
            analysis_text=row.get('ai_analysis'),
            advice_text=row.get('personalized_tips')
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            'user_phone': self.owner_id,
            'calories': self.estimated_calories,
            'timestamp': format_timestamp_for_postgres(self.captured_at),
            'user_provided_details': self.description,
            'ai_analysis': self.analysis_text,
            'is_recommended': self.suitability_flag,
            'reason_for_recommendation': self.reason_text,
            'personalized_tips': self.advice_text
        }


class DailyRollup(BaseModel):
    """Per-day meal counters for one user; favorable + unfavorable == meal_count"""
    id: Optional[Any] = None
    owner_id: str
    date: date_type
    total_calories: int = Field(default=0, ge=0)
    meal_count: int = Field(default=0, ge=0)
    favorable_count: int = Field(default=0, ge=0)
    unfavorable_count: int = Field(default=0, ge=0)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DailyRollup":
        return cls(
            id=row.get('id'),
            owner_id=row['user_phone'],
            date=row['date'],
            total_calories=int(row.get('total_calories') or 0),
            meal_count=int(row.get('meal_count') or 0),
            favorable_count=int(row.get('green_flags_count') or 0),
            unfavorable_count=int(row.get('red_flags_count') or 0)
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            'user_phone': self.owner_id,
            'date': self.date.isoformat(),
            'total_calories': self.total_calories,
            'meal_count': self.meal_count,
            'green_flags_count': self.favorable_count,
            'red_flags_count': self.unfavorable_count
        }

    def record_meal(self, calories: int, favorable: bool) -> "DailyRollup":
        """Return a copy with one more meal counted"""
        return self.model_copy(update={
            'total_calories': self.total_calories + max(int(calories), 0),
            'meal_count': self.meal_count + 1,
            'favorable_count': self.favorable_count + (1 if favorable else 0),
            'unfavorable_count': self.unfavorable_count + (0 if favorable else 1)
        })


class UserProfile(BaseModel):
    """Profile keyed by WhatsApp phone number"""
    phone_number: str
    name: Optional[str] = None
    condition_type: Optional[str] = None
    daily_calorie_limit: Optional[int] = None
    dietary_preference: Optional[str] = None
    tracks_readings: bool = False
    language: str = 'en'
    onboarded: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UserProfile":
        preferences = row.get('preferences') or {}
        return cls(
            phone_number=row['phone_number'],
            name=row.get('name'),
            condition_type=row.get('diabetes_type'),
            daily_calorie_limit=row.get('daily_limit'),
            dietary_preference=preferences.get('dietary') if isinstance(preferences, dict) else None,
            tracks_readings=bool(row.get('track_blood_sugar')),
            language=row.get('language') or 'en',
            onboarded=bool(row.get('onboarded'))
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            'phone_number': self.phone_number,
            'name': self.name,
            'diabetes_type': self.condition_type,
            'daily_limit': self.daily_calorie_limit,
            'preferences': {'dietary': self.dietary_preference},
            'track_blood_sugar': self.tracks_readings,
            'language': self.language,
            'onboarded': self.onboarded
        }


class ConversationMode(str, Enum):
    NONE = "none"
    ONBOARDING = "onboarding"
    AWAITING_READING_CATEGORY = "awaiting_reading_category"
    AWAITING_READING_VALUE = "awaiting_reading_value"
    AWAITING_MEAL_DETAILS = "awaiting_meal_details"


class OnboardingStep(str, Enum):
    NAME = "name"
    CONDITION = "condition"
    CALORIE_LIMIT = "calorie_limit"
    DIET_PREF = "diet_pref"
    TRACK_READINGS = "track_readings"
    LANGUAGE = "language"


class ConversationState(BaseModel):
    """In-flight dialogue for one user"""
    mode: ConversationMode = ConversationMode.NONE
    step: Optional[OnboardingStep] = None
    profile: Optional[UserProfile] = None
    category: Optional[ReadingCategory] = None
    image_base64: Optional[str] = None
    updated_at: datetime = Field(default_factory=get_user_now)


class MealAnalysis(BaseModel):
    """Structured result of the AI food analysis"""
    calories: int = 0
    is_recommended: bool = False
    reason: str = ""
    analysis: str = ""
    personalized_tips: str = ""


class TrendsResult(BaseModel):
    readings_count: int = 0
    average: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    fasting_avg: Optional[float] = None
    post_meal_avg: Optional[float] = None
    in_range_percentage: Optional[float] = None
    trend: TrendLabel = TrendLabel.NO_DATA
    days: int = 7


class PostMealReading(BaseModel):
    value: float
    captured_at: datetime
    minutes_after_meal: int


class CorrelatedMeal(BaseModel):
    meal: MealEvent
    post_meal_readings: List[PostMealReading] = []


class SummaryStats(BaseModel):
    total_calories: int = 0
    total_meals: int = 0
    total_favorable: int = 0
    total_unfavorable: int = 0
    avg_daily_calories: int = 0
    avg_daily_meals: float = 0.0
    favorable_percentage: int = 0


class DailySummary(BaseModel):
    rollup: DailyRollup
    readings: List[Reading] = []
