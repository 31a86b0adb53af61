import pytest
from unittest.mock import AsyncMock, MagicMock
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

from api.conversation_router import ConversationRouter
from api.models import DailyStats, FavoriteMeal, Meal, MealType, User
from api.services.storage import SETTINGS_FIELDS
from lib.config import Settings
from lib.error_handler import AIUnavailableError

PHONE = "+905551112233"


class FakeStorage:
    """In-memory stand-in for StorageService; dates are ignored, everything counts as today"""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.meals: List[Meal] = []
        self.water: List[dict] = []
        self.favorites: Dict[tuple, FavoriteMeal] = {}
        self.conversations: List[tuple] = []
        self.pending_writes: List[Optional[str]] = []

    def get_user(self, phone):
        user = self.users.get(phone)
        return user.model_copy() if user else None

    def get_or_create_user(self, phone, default_timezone="Europe/Istanbul"):
        if phone not in self.users:
            self.users[phone] = User(phone_number=phone, timezone=default_timezone)
        return self.get_user(phone)

    def set_pending_command(self, phone, command):
        self.pending_writes.append(command)
        self.users[phone].pending_command = command

    def update_settings(self, phone, fields):
        unknown = set(fields) - SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Not a settings field: {unknown}")
        for key, value in fields.items():
            setattr(self.users[phone], key, value)

    def insert_meal(self, phone, meal_type, calories, description, image_url=None):
        if calories <= 0:
            raise ValueError("A meal needs a positive calorie value")
        meal = Meal(
            id=len(self.meals) + 1, user_phone=phone, meal_type=meal_type,
            calories=calories, description=description, image_url=image_url
        )
        self.meals.append(meal)
        return meal.id

    def insert_water(self, phone, amount_ml):
        self.water.append({'user_phone': phone, 'amount_ml': amount_ml})
        return len(self.water)

    def get_daily_stats(self, phone, day, tz_name):
        meals = [m for m in self.meals if m.user_phone == phone]
        water = [w for w in self.water if w['user_phone'] == phone]
        return DailyStats(
            date=day.isoformat(),
            total_calories=sum(m.calories for m in meals),
            total_water_ml=sum(w['amount_ml'] for w in water),
            meals_count=len(meals),
            water_logs_count=len(water),
        )

    def get_range_stats(self, phone, last_day, days, tz_name):
        return [self.get_daily_stats(phone, last_day, tz_name)]

    def get_meal_types_for_date(self, phone, day, tz_name):
        return [m.meal_type for m in self.meals if m.user_phone == phone]

    def count_images_for_date(self, phone, day, tz_name):
        return sum(1 for m in self.meals if m.user_phone == phone and m.image_url)

    def get_recent_meals(self, phone, limit=5):
        return [m for m in reversed(self.meals) if m.user_phone == phone][:limit]

    def add_favorite(self, phone, name, description, calories):
        self.favorites[(phone, name)] = FavoriteMeal(
            user_phone=phone, name=name, description=description, calories=calories
        )

    def get_favorites(self, phone):
        return [f for (p, _), f in sorted(self.favorites.items()) if p == phone]

    def get_favorite(self, phone, name):
        return self.favorites.get((phone, name))

    def delete_favorite(self, phone, name):
        return self.favorites.pop((phone, name), None) is not None

    def log_conversation(self, phone, direction, message_type, content):
        self.conversations.append((phone, direction, message_type, content))


class FakeMessaging:
    def __init__(self):
        self.sent: List[tuple] = []
        self.succeed = True

    async def send(self, to_number, message):
        self.sent.append((to_number, message))
        return self.succeed


def make_ai():
    """AI gateway double; every call fails unless a test configures it"""
    ai = MagicMock()
    for name in (
        'detect_intent', 'analyze_meal_text', 'analyze_meal_image',
        'suggest_command', 'parse_natural_time', 'get_nutrition_advice',
    ):
        setattr(ai, name, AsyncMock(side_effect=AIUnavailableError("AI not configured in test")))
    return ai


@pytest.fixture
def settings():
    return Settings(
        default_timezone="Europe/Istanbul",
        daily_image_limit=20,
        suggestion_confidence_threshold=0.6,
    )


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def ai():
    return make_ai()


@pytest.fixture
def messaging():
    return FakeMessaging()


@pytest.fixture
def router(storage, ai, messaging, settings):
    return ConversationRouter(storage=storage, ai=ai, messaging=messaging, settings=settings)


@pytest.fixture
def phone():
    return PHONE
