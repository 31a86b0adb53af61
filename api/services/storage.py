import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo
from pydantic import TypeAdapter

from api.models import DailyStats, FavoriteMeal, Meal, MealType, User, utc_now
from lib.error_handler import StorageError

logger = logging.getLogger(__name__)

# PostgREST timestamps carry variable-length fractions and a UTC offset
_TIMESTAMP = TypeAdapter(datetime)

SETTINGS_FIELDS = {
    'breakfast_reminder', 'lunch_reminder', 'dinner_reminder', 'water_reminder',
    'water_reminder_interval', 'daily_water_goal', 'daily_calorie_goal', 'timezone',
    'breakfast_time', 'lunch_time', 'dinner_time', 'onboarding_step', 'is_active',
}


def day_bounds(day: date, tz_name: str) -> Tuple[str, str]:
    """UTC ISO bounds [start, end) of a calendar day in the user's timezone"""
    tz = ZoneInfo(tz_name)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc).isoformat(), end.astimezone(timezone.utc).isoformat()


class StorageService:
    def __init__(self, supabase_client):
        self.supabase = supabase_client
        self.users_table = 'users'
        self.meals_table = 'meals'
        self.water_table = 'water_logs'
        self.favorites_table = 'favorite_meals'
        self.conversations_table = 'conversations'
        logger.info("Storage service initialized")

    def _execute(self, query, action: str) -> List[Dict[str, Any]]:
        try:
            result = query.execute()
        except Exception as e:
            logger.error(f"Failed to {action}: {str(e)}")
            raise StorageError(f"Failed to {action}: {str(e)}")
        if hasattr(result, 'error') and result.error:
            logger.error(f"Supabase error while trying to {action}: {result.error}")
            raise StorageError(f"Supabase error: {result.error}")
        return result.data or []

    # Users

    def get_user(self, phone: str) -> Optional[User]:
        rows = self._execute(
            self.supabase.table(self.users_table).select('*').eq('phone_number', phone).limit(1),
            "load user"
        )
        return User(**rows[0]) if rows else None

    def get_or_create_user(self, phone: str, default_timezone: str = "Europe/Istanbul") -> User:
        user = self.get_user(phone)
        if user:
            return user

        user = User(phone_number=phone, timezone=default_timezone)
        record = user.model_dump(mode='json')
        # Two first messages may race; the later insert is a no-op
        self._execute(
            self.supabase.table(self.users_table).upsert(
                record, on_conflict='phone_number', ignore_duplicates=True
            ),
            "create user"
        )
        logger.info(f"New user created: {phone}")
        return user

    def set_pending_command(self, phone: str, command: Optional[str]) -> None:
        self._execute(
            self.supabase.table(self.users_table)
                .update({'pending_command': command})
                .eq('phone_number', phone),
            "update pending command"
        )
        logger.info(f"Pending command for {phone} set to {command!r}")

    def update_settings(self, phone: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Not a settings field: {', '.join(sorted(unknown))}")
        self._execute(
            self.supabase.table(self.users_table).update(fields).eq('phone_number', phone),
            "update settings"
        )
        logger.info(f"Settings updated for {phone}: {fields}")

    # Meals and water

    def insert_meal(
        self,
        phone: str,
        meal_type: MealType,
        calories: float,
        description: str,
        image_url: Optional[str] = None
    ) -> int:
        if calories <= 0:
            raise ValueError("A meal needs a positive calorie value")
        record = {
            'user_phone': phone,
            'meal_type': meal_type.value,
            'calories': calories,
            'description': description,
            'image_url': image_url,
            'created_at': utc_now().isoformat(),
        }
        rows = self._execute(self.supabase.table(self.meals_table).insert(record), "store meal")
        return rows[0]['id'] if rows else None

    def insert_water(self, phone: str, amount_ml: int) -> int:
        record = {
            'user_phone': phone,
            'amount_ml': amount_ml,
            'created_at': utc_now().isoformat(),
        }
        rows = self._execute(self.supabase.table(self.water_table).insert(record), "store water log")
        return rows[0]['id'] if rows else None

    def _meals_between(self, phone: str, start: str, end: str) -> List[Dict[str, Any]]:
        return self._execute(
            self.supabase.table(self.meals_table)
                .select('calories, meal_type, image_url, created_at')
                .eq('user_phone', phone)
                .gte('created_at', start)
                .lt('created_at', end),
            "load meals"
        )

    def _water_between(self, phone: str, start: str, end: str) -> List[Dict[str, Any]]:
        return self._execute(
            self.supabase.table(self.water_table)
                .select('amount_ml, created_at')
                .eq('user_phone', phone)
                .gte('created_at', start)
                .lt('created_at', end),
            "load water logs"
        )

    def get_daily_stats(self, phone: str, day: date, tz_name: str) -> DailyStats:
        start, end = day_bounds(day, tz_name)
        meals = self._meals_between(phone, start, end)
        water = self._water_between(phone, start, end)
        return DailyStats(
            date=day.isoformat(),
            total_calories=sum(float(m['calories']) for m in meals),
            total_water_ml=sum(int(w['amount_ml']) for w in water),
            meals_count=len(meals),
            water_logs_count=len(water),
        )

    def get_range_stats(self, phone: str, last_day: date, days: int, tz_name: str) -> List[DailyStats]:
        """Per-day stats for the `days` days ending on `last_day`, oldest first"""
        first_day = last_day - timedelta(days=days - 1)
        start, _ = day_bounds(first_day, tz_name)
        _, end = day_bounds(last_day, tz_name)
        tz = ZoneInfo(tz_name)

        stats = {
            (first_day + timedelta(days=i)): DailyStats(date=(first_day + timedelta(days=i)).isoformat())
            for i in range(days)
        }
        for meal in self._meals_between(phone, start, end):
            day_stats = stats.get(_TIMESTAMP.validate_python(meal['created_at']).astimezone(tz).date())
            if day_stats:
                day_stats.total_calories += float(meal['calories'])
                day_stats.meals_count += 1
        for log in self._water_between(phone, start, end):
            day_stats = stats.get(_TIMESTAMP.validate_python(log['created_at']).astimezone(tz).date())
            if day_stats:
                day_stats.total_water_ml += int(log['amount_ml'])
                day_stats.water_logs_count += 1
        return [stats[d] for d in sorted(stats)]

    def get_meal_types_for_date(self, phone: str, day: date, tz_name: str) -> List[MealType]:
        start, end = day_bounds(day, tz_name)
        return [MealType(m['meal_type']) for m in self._meals_between(phone, start, end)]

    def count_images_for_date(self, phone: str, day: date, tz_name: str) -> int:
        start, end = day_bounds(day, tz_name)
        return sum(1 for m in self._meals_between(phone, start, end) if m.get('image_url'))

    def get_recent_meals(self, phone: str, limit: int = 5) -> List[Meal]:
        rows = self._execute(
            self.supabase.table(self.meals_table)
                .select('*')
                .eq('user_phone', phone)
                .order('created_at', desc=True)
                .limit(limit),
            "load recent meals"
        )
        return [Meal(**row) for row in rows]

    # Favorites

    def add_favorite(self, phone: str, name: str, description: str, calories: float) -> None:
        record = {
            'user_phone': phone,
            'name': name,
            'description': description,
            'calories': calories,
            'created_at': utc_now().isoformat(),
        }
        self._execute(
            self.supabase.table(self.favorites_table).upsert(record, on_conflict='user_phone,name'),
            "store favorite meal"
        )

    def get_favorites(self, phone: str) -> List[FavoriteMeal]:
        rows = self._execute(
            self.supabase.table(self.favorites_table).select('*').eq('user_phone', phone).order('name'),
            "load favorite meals"
        )
        return [FavoriteMeal(**row) for row in rows]

    def get_favorite(self, phone: str, name: str) -> Optional[FavoriteMeal]:
        rows = self._execute(
            self.supabase.table(self.favorites_table)
                .select('*')
                .eq('user_phone', phone)
                .eq('name', name)
                .limit(1),
            "load favorite meal"
        )
        return FavoriteMeal(**rows[0]) if rows else None

    def delete_favorite(self, phone: str, name: str) -> bool:
        rows = self._execute(
            self.supabase.table(self.favorites_table).delete().eq('user_phone', phone).eq('name', name),
            "delete favorite meal"
        )
        return bool(rows)

    # Conversation log

    def log_conversation(self, phone: str, direction: str, message_type: str, content: str) -> None:
        """Best effort: a failed log line never fails the message being handled"""
        record = {
            'user_phone': phone,
            'direction': direction,
            'message_type': message_type,
            'content': content,
            'created_at': utc_now().isoformat(),
        }
        try:
            self._execute(self.supabase.table(self.conversations_table).insert(record), "log conversation")
        except StorageError as e:
            logger.warning(f"Conversation log skipped: {e.message}")
