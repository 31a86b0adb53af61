import logging

from api.models import User
from api.services.ai import AIService
from api.services.storage import StorageService
from lib.error_handler import AIUnavailableError
from lib.parsing import format_clock, has_digits, normalize_text, parse_natural_time

logger = logging.getLogger(__name__)

CANCEL_TOKENS = {"iptal", "vazgec", "cancel"}

# step -> (user field, next step, label)
STEPS = {
    "breakfast_time": ("breakfast_time", "lunch_time", "Kahvaltı"),
    "lunch_time": ("lunch_time", "dinner_time", "Öğle yemeği"),
    "dinner_time": ("dinner_time", None, "Akşam yemeği"),
}

SETUP_START = (
    "🍽️ *Öğün Saatlerini Ayarlayalım!*\n\n"
    "Bu saatlere göre öğünlerini otomatik sınıflandırıp hatırlatma gönderebilirim.\n\n"
    "*Kahvaltı saatin kaç?* (Örnek: 09:00 ya da \"sabah 9'da\")\n\n"
    "Vazgeçmek için: iptal"
)

INVALID_TIME = (
    "❌ *Geçersiz saat*\n\n"
    "Saat 0-23, dakika 0-59 arasında olmalı.\n"
    "Örnek: 09:00, 13:30, \"akşam 7 buçuk\""
)

NEXT_QUESTION = {
    "lunch_time": "Şimdi öğle yemeği saatin kaç? (Örnek: 13:00)",
    "dinner_time": "Son olarak akşam yemeği saatin kaç? (Örnek: 19:00)",
}


class OnboardingHandler:
    """Guided meal-time setup. The current question is kept in user.onboarding_step."""

    def __init__(self, storage: StorageService, ai: AIService):
        self.storage = storage
        self.ai = ai

    def start(self, user: User) -> str:
        self.storage.update_settings(user.phone_number, {'onboarding_step': 'breakfast_time'})
        logger.info(f"Meal time setup started for user: {user.phone_number}")
        return SETUP_START

    async def handle_step(self, user: User, text: str) -> str:
        step = STEPS.get(user.onboarding_step)
        if step is None:
            logger.warning(f"Unknown setup step {user.onboarding_step!r} for {user.phone_number}, resetting")
            self.storage.update_settings(user.phone_number, {'onboarding_step': None})
            return "⚠️ Kurulum sıfırlandı. Tekrar başlamak için: saat"

        if normalize_text(text) in CANCEL_TOKENS:
            self.storage.update_settings(user.phone_number, {'onboarding_step': None})
            return "👍 Öğün saati kurulumu iptal edildi."

        parsed = await self._read_time(text)
        if parsed is None:
            return INVALID_TIME

        field, next_step, label = step
        clock = format_clock(*parsed)
        self.storage.update_settings(user.phone_number, {field: clock, 'onboarding_step': next_step})
        logger.info(f"Stored {field}={clock} for {user.phone_number}, next step: {next_step}")

        if next_step:
            return f"✅ *{label} saati kaydedildi:* {clock}\n\n{NEXT_QUESTION[next_step]}"

        return (
            "🎉 *Öğün saatlerin kaydedildi!*\n\n"
            f"✅ Kahvaltı: {user.breakfast_time or '-'}\n"
            f"✅ Öğle: {user.lunch_time or '-'}\n"
            f"✅ Akşam: {clock}\n\n"
            "📸 Yemek fotoğrafı gönder, 💧 \"250 ml\" yaz, 📊 \"rapor\" ile özeti gör.\n"
            "İyi beslenmeler! 🥗"
        )

    async def _read_time(self, text: str):
        # Anything with a number is parsed locally; out of range is rejected, not sent to the AI
        if has_digits(text):
            return parse_natural_time(text)
        try:
            clock = await self.ai.parse_natural_time(text)
        except AIUnavailableError as e:
            logger.warning(f"Natural time parse via AI failed: {e.message}")
            return None
        return (clock.hour, clock.minute) if clock else None
