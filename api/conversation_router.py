import logging
import re
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from api import replies
from api.commands import (
    CommandMatch, is_affirmative, is_command_like, is_negative, match_command,
    resolve_command_name,
)
from api.models import (
    CommandIntent, DailyStats, InboundMessage, MealIntent, MealType, User, WaterIntent,
)
from api.onboarding import OnboardingHandler
from api.services.ai import AIService
from api.services.messaging import MessagingService
from api.services.storage import StorageService
from lib.config import get_settings
from lib.error_handler import AIUnavailableError, ErrorHandler, StorageError
from lib.parsing import (
    format_clock, is_valid_water_amount, normalize_text, parse_clock, parse_water_amount,
)

logger = logging.getLogger(__name__)

DEFAULT_MEAL_TIMES = {
    MealType.BREAKFAST: "09:00",
    MealType.LUNCH: "13:00",
    MealType.DINNER: "19:00",
}
MEAL_TIME_TOLERANCE_MINUTES = 120

MEAL_TIME_FIELDS = {
    "kahvalti": ("breakfast_time", "Kahvaltı"),
    "breakfast": ("breakfast_time", "Kahvaltı"),
    "ogle": ("lunch_time", "Öğle yemeği"),
    "lunch": ("lunch_time", "Öğle yemeği"),
    "aksam": ("dinner_time", "Akşam yemeği"),
    "dinner": ("dinner_time", "Akşam yemeği"),
}
REMINDER_FIELDS = {
    "kahvalti": ("breakfast_reminder", "Kahvaltı"),
    "ogle": ("lunch_reminder", "Öğle yemeği"),
    "aksam": ("dinner_reminder", "Akşam yemeği"),
    "su": ("water_reminder", "Su"),
}
SWITCH_ON = {"ac", "acik", "on"}
SWITCH_OFF = {"kapat", "kapali", "off"}
FAVORITE_NAME = re.compile(r"^fav[a-z0-9_]+$")


def _minutes(clock: str) -> int:
    hour, minute = clock.split(":")
    return int(hour) * 60 + int(minute)


def is_within_tolerance(current: str, target: str, tolerance: int = MEAL_TIME_TOLERANCE_MINUTES) -> bool:
    """True if two HH:MM clocks are at most `tolerance` minutes apart, across midnight too"""
    diff = abs(_minutes(current) - _minutes(target))
    return min(diff, 1440 - diff) <= tolerance


def detect_meal_type(user: User, current_clock: str, todays_types: List[MealType]) -> MealType:
    """Breakfast, lunch and dinner are taken in order around their times; anything else is a snack"""
    breakfast = user.breakfast_time or DEFAULT_MEAL_TIMES[MealType.BREAKFAST]
    lunch = user.lunch_time or DEFAULT_MEAL_TIMES[MealType.LUNCH]
    dinner = user.dinner_time or DEFAULT_MEAL_TIMES[MealType.DINNER]

    has_breakfast = MealType.BREAKFAST in todays_types
    has_lunch = MealType.LUNCH in todays_types
    has_dinner = MealType.DINNER in todays_types

    if not has_breakfast and is_within_tolerance(current_clock, breakfast):
        return MealType.BREAKFAST
    if has_breakfast and not has_lunch and is_within_tolerance(current_clock, lunch):
        return MealType.LUNCH
    if has_breakfast and has_lunch and not has_dinner and is_within_tolerance(current_clock, dinner):
        return MealType.DINNER
    return MealType.SNACK


class ConversationRouter:
    def __init__(
        self,
        storage: StorageService,
        ai: AIService,
        messaging: MessagingService,
        settings=None
    ):
        self.storage = storage
        self.ai = ai
        self.messaging = messaging
        self.settings = settings or get_settings()
        self.onboarding = OnboardingHandler(storage, ai)
        self.error_handler = ErrorHandler()

    async def handle_inbound_message(self, phone: str, payload: InboundMessage) -> None:
        """Route one inbound message and send exactly one reply"""
        logger.info(f"Incoming message from {phone}: {payload.text!r} (image: {payload.is_image})")

        try:
            user = self.storage.get_or_create_user(phone, self.settings.default_timezone)
        except StorageError as e:
            await self._reply(phone, self.error_handler.handle_storage_error(e), log=False)
            return

        if not user.is_active:
            logger.warning(f"User {phone} is inactive, ignoring message")
            return

        self.storage.log_conversation(
            phone, 'incoming', 'image' if payload.is_image else 'text', payload.text or payload.image_url or ''
        )

        try:
            reply = await self._route(user, payload)
        except StorageError as e:
            reply = self.error_handler.handle_storage_error(e)
        except Exception as e:
            reply = self.error_handler.handle_unexpected_error(e)

        await self._reply(phone, reply)

    async def _reply(self, phone: str, message: str, log: bool = True) -> None:
        sent = await self.messaging.send(phone, message)
        if not sent:
            logger.error(f"Reply to {phone} could not be delivered")
        elif log:
            self.storage.log_conversation(phone, 'outgoing', 'text', message)

    async def _route(self, user: User, payload: InboundMessage) -> str:
        text = (payload.text or "").strip()

        if not text and not payload.is_image:
            return replies.HELP_MESSAGE

        if user.pending_command and not payload.is_image:
            if is_affirmative(text):
                return await self._confirm_pending(user)
            if is_negative(text):
                self.storage.set_pending_command(user.phone_number, None)
                logger.info(f"Pending command {user.pending_command!r} rejected by {user.phone_number}")
                return replies.COMMAND_CANCELLED

        if user.onboarding_step and not payload.is_image:
            return await self.onboarding.handle_step(user, text)

        if payload.is_image:
            return await self._log_image_meal(user, payload)

        amount = parse_water_amount(text)
        if amount is not None:
            logger.info(f"Direct water amount from {user.phone_number}: {amount} ml")
            return self._log_water(user, amount)

        match = match_command(text)
        if match:
            logger.info(f"Command {match.name} from {user.phone_number}")
            self._supersede_pending(user)
            return await self._run_command(user, match)

        return await self._route_free_text(user, text)

    async def _route_free_text(self, user: User, text: str) -> str:
        try:
            intent = await self.ai.detect_intent(text)
        except AIUnavailableError as e:
            self.error_handler.handle_ai_error(e)
            return replies.HELP_MESSAGE

        if isinstance(intent, MealIntent):
            return await self._log_text_meal(user, intent.description)

        if isinstance(intent, WaterIntent):
            return self._log_water(user, intent.amount_ml)

        if isinstance(intent, CommandIntent):
            name = resolve_command_name(intent.name)
            if name:
                self._supersede_pending(user)
                return await self._run_command(user, CommandMatch(name, []))
            logger.info(f"AI returned unknown command {intent.name!r}")

        return await self._suggest_command(user, text)

    async def _suggest_command(self, user: User, text: str) -> str:
        if not is_command_like(text):
            return replies.HELP_MESSAGE

        try:
            suggestion = await self.ai.suggest_command(text)
        except AIUnavailableError as e:
            self.error_handler.handle_ai_error(e)
            return replies.HELP_MESSAGE

        if suggestion is None or suggestion.confidence < self.settings.suggestion_confidence_threshold:
            return replies.HELP_MESSAGE

        self.storage.set_pending_command(user.phone_number, suggestion.name)
        return replies.format_confirmation_prompt(suggestion.name)

    async def _confirm_pending(self, user: User) -> str:
        command = user.pending_command
        self.storage.set_pending_command(user.phone_number, None)
        user.pending_command = None
        logger.info(f"Pending command {command!r} confirmed by {user.phone_number}")

        name = resolve_command_name(command)
        if name is None:
            logger.warning(f"Stored pending command {command!r} is not a known command")
            return replies.HELP_MESSAGE
        return await self._run_command(user, CommandMatch(name, []))

    def _supersede_pending(self, user: User) -> None:
        if user.pending_command:
            logger.info(f"Pending command {user.pending_command!r} superseded for {user.phone_number}")
            self.storage.set_pending_command(user.phone_number, None)
            user.pending_command = None

    # Time helpers

    def _user_tz(self, user: User) -> str:
        try:
            ZoneInfo(user.timezone)
            return user.timezone
        except (ZoneInfoNotFoundError, ValueError):
            return self.settings.default_timezone

    def _user_now(self, user: User) -> datetime:
        return datetime.now(ZoneInfo(self._user_tz(user)))

    # Logging meals and water

    def _stats_after_write(self, user: User) -> Optional[DailyStats]:
        """Today's totals for a saved-row summary; None if they cannot be read, the row is already stored"""
        try:
            return self.storage.get_daily_stats(
                user.phone_number, self._user_now(user).date(), self._user_tz(user)
            )
        except StorageError as e:
            logger.warning(f"Daily totals unavailable after write for {user.phone_number}: {e.message}")
            return None

    def _log_water(self, user: User, amount_ml: int) -> str:
        if not is_valid_water_amount(amount_ml):
            return replies.INVALID_WATER_AMOUNT

        self.storage.insert_water(user.phone_number, amount_ml)
        self._supersede_pending(user)
        stats = self._stats_after_write(user)
        return replies.format_water_saved(amount_ml, stats, user.daily_water_goal)

    def _meal_type_now(self, user: User) -> MealType:
        now = self._user_now(user)
        todays_types = self.storage.get_meal_types_for_date(user.phone_number, now.date(), self._user_tz(user))
        meal_type = detect_meal_type(user, format_clock(now.hour, now.minute), todays_types)
        logger.info(f"Detected meal type {meal_type.value} for {user.phone_number}")
        return meal_type

    async def _log_text_meal(self, user: User, description: str) -> str:
        try:
            analysis = await self.ai.analyze_meal_text(description)
        except AIUnavailableError as e:
            return self.error_handler.handle_meal_analysis_error(e)

        meal_type = self._meal_type_now(user)
        self.storage.insert_meal(user.phone_number, meal_type, analysis.calories, analysis.description)
        self._supersede_pending(user)
        stats = self._stats_after_write(user)
        return replies.format_meal_saved(meal_type, analysis, stats)

    async def _log_image_meal(self, user: User, payload: InboundMessage) -> str:
        tz_name = self._user_tz(user)
        today = self._user_now(user).date()
        limit = self.settings.daily_image_limit

        image_count = self.storage.count_images_for_date(user.phone_number, today, tz_name)
        if image_count >= limit:
            logger.warning(f"User {user.phone_number} reached daily image limit: {image_count}/{limit}")
            return replies.format_image_limit(limit)

        try:
            analysis = await self.ai.analyze_meal_image(payload.image_url, payload.content_type)
        except AIUnavailableError as e:
            return self.error_handler.handle_image_analysis_error(e)

        meal_type = self._meal_type_now(user)
        self.storage.insert_meal(
            user.phone_number, meal_type, analysis.calories, analysis.description, image_url=payload.image_url
        )
        self._supersede_pending(user)
        stats = self._stats_after_write(user)
        return replies.format_meal_saved(meal_type, analysis, stats, image_count + 1, limit)

    # Commands

    async def _run_command(self, user: User, match: CommandMatch) -> str:
        handlers = {
            "report": self._report,
            "history": self._history,
            "weekly": self._weekly,
            "advice": self._advice,
            "settings": self._settings,
            "help": self._help,
            "water_menu": self._water_menu,
            "meal": self._meal,
            "water_goal": self._water_goal,
            "water_interval": self._water_interval,
            "calorie_goal": self._calorie_goal,
            "meal_time": self._meal_time,
            "reminder": self._reminder,
            "timezone": self._timezone,
            "favorite": self._favorite,
            "quick_favorite": self._quick_favorite,
        }
        return await handlers[match.name](user, match.args)

    async def _report(self, user: User, args: List[str]) -> str:
        stats = self.storage.get_daily_stats(
            user.phone_number, self._user_now(user).date(), self._user_tz(user)
        )
        return replies.format_daily_report(stats, user.daily_calorie_goal, user.daily_water_goal)

    async def _history(self, user: User, args: List[str]) -> str:
        meals = self.storage.get_recent_meals(user.phone_number, 5)
        return replies.format_history(meals, self._user_tz(user))

    async def _weekly(self, user: User, args: List[str]) -> str:
        days = self.storage.get_range_stats(
            user.phone_number, self._user_now(user).date(), 7, self._user_tz(user)
        )
        return replies.format_weekly_summary(days, user.daily_calorie_goal, user.daily_water_goal)

    async def _advice(self, user: User, args: List[str]) -> str:
        stats = self.storage.get_daily_stats(
            user.phone_number, self._user_now(user).date(), self._user_tz(user)
        )
        try:
            return await self.ai.get_nutrition_advice(stats, user.daily_water_goal, user.daily_calorie_goal)
        except AIUnavailableError as e:
            return self.error_handler.handle_advice_error(e)

    async def _settings(self, user: User, args: List[str]) -> str:
        return replies.format_settings(user)

    async def _help(self, user: User, args: List[str]) -> str:
        return replies.HELP_MESSAGE

    async def _water_menu(self, user: User, args: List[str]) -> str:
        return replies.WATER_MENU

    async def _meal(self, user: User, args: List[str]) -> str:
        if not args:
            return replies.MEAL_USAGE
        return await self._log_text_meal(user, " ".join(args))

    def _update_number(self, user: User, args: List[str], field: str, low: int, high: int) -> Optional[int]:
        """Parse and store one bounded integer setting; returns None and stores nothing if invalid"""
        if not args or not args[0].isdigit():
            return None
        value = int(args[0])
        if not low <= value <= high:
            return None
        self.storage.update_settings(user.phone_number, {field: value})
        return value

    async def _water_goal(self, user: User, args: List[str]) -> str:
        goal = self._update_number(user, args, 'daily_water_goal', 500, 10000)
        if goal is None:
            return "❌ Kullanım: suhedefi [ml]\nLütfen 500-10000 ml arası bir değer gir (örn: suhedefi 2500)."
        return f"✅ Günlük su hedefiniz {goal} ml ({goal / 1000:g} litre) olarak güncellendi!"

    async def _water_interval(self, user: User, args: List[str]) -> str:
        interval = self._update_number(user, args, 'water_reminder_interval', 1, 480)
        if interval is None:
            return "❌ Kullanım: suaraligi [dakika]\nLütfen 1-480 dakika arası bir değer gir (örn: suaraligi 120)."
        return f"✅ Su hatırlatma aralığı {interval} dakika ({interval / 60:g} saat) olarak güncellendi!"

    async def _calorie_goal(self, user: User, args: List[str]) -> str:
        if not args:
            return (
                "🎯 *Günlük Kalori Hedefi*\n\n"
                f"Mevcut hedefiniz: {user.daily_calorie_goal} kcal\n\n"
                "Değiştirmek için: kalorihedefi 2500"
            )
        goal = self._update_number(user, args, 'daily_calorie_goal', 500, 5000)
        if goal is None:
            return "❌ Kalori hedefi 500-5000 kcal arasında olmalıdır."
        return f"✅ Günlük kalori hedefiniz {goal} kcal olarak güncellendi!"

    async def _meal_time(self, user: User, args: List[str]) -> str:
        if not args:
            return self.onboarding.start(user)

        if len(args) < 2:
            return "❌ Kullanım: saat [kahvalti|ogle|aksam] HH:MM\nÖrnek: saat kahvalti 09:00"

        target = MEAL_TIME_FIELDS.get(normalize_text(args[0]))
        if target is None:
            return "❌ Geçersiz öğün tipi. Kullan: kahvalti, ogle, aksam"

        clock = parse_clock(args[1])
        if clock is None:
            return "❌ Geçersiz saat formatı\nHH:MM olmalı (örn: 09:00, 13:30)"

        field, label = target
        value = format_clock(*clock)
        self.storage.update_settings(user.phone_number, {field: value})
        return f"✅ {label} saati {value} olarak güncellendi!"

    async def _reminder(self, user: User, args: List[str]) -> str:
        usage = "❌ Kullanım: hatirlatma [kahvalti|ogle|aksam|su] [ac|kapat]\nÖrnek: hatirlatma su kapat"
        if len(args) < 2:
            return usage

        target = REMINDER_FIELDS.get(normalize_text(args[0]))
        switch = normalize_text(args[1])
        if target is None or switch not in SWITCH_ON | SWITCH_OFF:
            return usage

        field, label = target
        enabled = switch in SWITCH_ON
        self.storage.update_settings(user.phone_number, {field: enabled})
        return f"✅ {label} hatırlatması {'açıldı' if enabled else 'kapatıldı'}."

    async def _timezone(self, user: User, args: List[str]) -> str:
        if not args:
            return (
                "❌ Kullanım: timezone [zaman dilimi]\n\n"
                "Örnekler:\ntimezone Europe/Istanbul\ntimezone America/New_York"
            )
        name = args[0]
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            return f"❌ Geçersiz zaman dilimi: {name}\n\nÖrnek: Europe/Istanbul"

        self.storage.update_settings(user.phone_number, {'timezone': name})
        return f"✅ Zaman diliminiz {name} olarak güncellendi!"

    async def _favorite(self, user: User, args: List[str]) -> str:
        if not args:
            return replies.format_favorites(self.storage.get_favorites(user.phone_number))

        subcommand = normalize_text(args[0])
        if subcommand in ("ekle", "add"):
            if len(args) < 3:
                return "❌ Kullanım: favori ekle [isim] [açıklama]\n\nÖrnek: favori ekle fav1 Tavuklu pilav"
            name = normalize_text(args[1])
            if not FAVORITE_NAME.match(name):
                return "❌ Favori ismi 'fav' ile başlamalı ve sadece harf, rakam ve _ içermeli (örn: fav1)."
            try:
                analysis = await self.ai.analyze_meal_text(" ".join(args[2:]))
            except AIUnavailableError as e:
                return self.error_handler.handle_meal_analysis_error(e)
            self.storage.add_favorite(user.phone_number, name, analysis.description, analysis.calories)
            return replies.format_favorite_saved(name, analysis)

        if subcommand in ("sil", "delete", "remove"):
            if len(args) < 2:
                return "❌ Kullanım: favori sil [isim]\n\nÖrnek: favori sil fav1"
            name = normalize_text(args[1])
            if not self.storage.delete_favorite(user.phone_number, name):
                return f"❌ '{name}' bulunamadı."
            return f"✅ '{name}' favorilerden silindi."

        return (
            "❌ Geçersiz komut.\n\n"
            "• favori - Liste göster\n"
            "• favori ekle [isim] [açıklama]\n"
            "• favori sil [isim]"
        )

    async def _quick_favorite(self, user: User, args: List[str]) -> str:
        name = args[0]
        favorite = self.storage.get_favorite(user.phone_number, name)
        if favorite is None:
            return f"❌ '{name}' bulunamadı\n\nEklemek için:\nfavori ekle {name} [açıklama]"

        meal_type = self._meal_type_now(user)
        self.storage.insert_meal(user.phone_number, meal_type, favorite.calories, favorite.description)
        return (
            f"✅ *{meal_type.display_name} kaydedildi!*\n\n"
            f"{favorite.description}\n"
            f"🔥 {favorite.calories:.0f} kcal"
        )
