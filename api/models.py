from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"

    @property
    def display_name(self) -> str:
        return {
            MealType.BREAKFAST: "Kahvaltı",
            MealType.LUNCH: "Öğle Yemeği",
            MealType.DINNER: "Akşam Yemeği",
            MealType.SNACK: "Ara Öğün",
        }[self]


class User(BaseModel):
    phone_number: str
    created_at: datetime = Field(default_factory=utc_now)
    breakfast_reminder: bool = True
    lunch_reminder: bool = True
    dinner_reminder: bool = True
    water_reminder: bool = True
    water_reminder_interval: int = 120
    daily_water_goal: int = 2000
    daily_calorie_goal: int = 2000
    timezone: str = "Europe/Istanbul"
    breakfast_time: Optional[str] = None
    lunch_time: Optional[str] = None
    dinner_time: Optional[str] = None
    onboarding_step: Optional[str] = None
    pending_command: Optional[str] = None
    is_active: bool = True


class Meal(BaseModel):
    id: Optional[int] = None
    user_phone: str
    meal_type: MealType
    calories: float
    description: str
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class WaterLog(BaseModel):
    id: Optional[int] = None
    user_phone: str
    amount_ml: int
    created_at: datetime = Field(default_factory=utc_now)


class FavoriteMeal(BaseModel):
    id: Optional[int] = None
    user_phone: str
    name: str
    description: str
    calories: float
    created_at: datetime = Field(default_factory=utc_now)


class DailyStats(BaseModel):
    date: str
    total_calories: float = 0.0
    total_water_ml: int = 0
    meals_count: int = 0
    water_logs_count: int = 0


class InboundMessage(BaseModel):
    """One received WhatsApp message: text, an image, or both (caption)."""
    text: str = ""
    image_url: Optional[str] = None
    content_type: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return bool(self.image_url)


# AI gateway results

class MealAnalysis(BaseModel):
    calories: float
    description: str


class CommandSuggestion(BaseModel):
    name: str
    confidence: float


class ClockTime(BaseModel):
    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class MealIntent(BaseModel):
    description: str


class WaterIntent(BaseModel):
    amount_ml: int


class CommandIntent(BaseModel):
    name: str


class UnknownIntent(BaseModel):
    pass


Intent = Union[MealIntent, WaterIntent, CommandIntent, UnknownIntent]
