import asyncio
import base64
import logging
import re
from typing import Optional

import aiohttp

from api.commands import SUGGESTABLE_KEYWORDS
from api.models import (
    ClockTime, CommandIntent, CommandSuggestion, DailyStats, Intent,
    MealAnalysis, MealIntent, UnknownIntent, WaterIntent,
)
from lib.error_handler import AIUnavailableError
from lib.openai_client import OpenAIClient
from lib.parsing import clean_markdown, is_valid_clock, parse_calorie_value, parse_water_amount

logger = logging.getLogger(__name__)

MEAL_ANALYSIS_FORMAT = (
    "CEVAP FORMATI (KESİNLİKLE BU FORMATI KULLAN):\n"
    "Yemek: [yemek adı ve bileşenler]\n"
    "Kalori: [sadece sayı, kcal yazma]\n"
    "Porsiyon: [büyüklük tahmini]\n"
    "Besin Değeri: [protein/karbonhidrat/yağ dengesi]\n"
    "Sağlık Notu: [kısa değerlendirme]\n"
    "\n"
    "Markdown kullanma, sadece düz metin yaz. Kalori satırına SADECE SAYI yaz."
)

_SUGGESTION_PATTERN = re.compile(r"KOMUT\s*:\s*([^\s]+)\s+GUVEN\s*:\s*([0-9]*[.,]?[0-9]+)", re.IGNORECASE)
_TIME_ANSWER_PATTERN = re.compile(r"SAAT\s*:\s*(\d{1,2})\s*:\s*(\d{1,2})", re.IGNORECASE)


def parse_intent(answer: str) -> Intent:
    """Turn the model's one-line label into an intent. Raises on anything unexpected."""
    text = answer.strip().lstrip("-* ").strip()
    upper = text.upper()

    if upper.startswith("MEAL:"):
        description = text[len("MEAL:"):].strip()
        if not description:
            raise AIUnavailableError(f"Empty meal description in intent: {answer!r}")
        return MealIntent(description=description)

    if upper.startswith("WATER:"):
        raw = text[len("WATER:"):].strip()
        # A bare number is millilitres; anything with a unit reads like a typed amount
        if re.fullmatch(r"\d+", raw):
            return WaterIntent(amount_ml=int(raw))
        amount = parse_water_amount(raw)
        if amount is None:
            raise AIUnavailableError(f"Unreadable water amount in intent: {answer!r}")
        return WaterIntent(amount_ml=amount)

    if upper.startswith("COMMAND:"):
        name = text[len("COMMAND:"):].strip()
        if not name:
            raise AIUnavailableError(f"Empty command in intent: {answer!r}")
        return CommandIntent(name=name)

    if upper.startswith("UNKNOWN"):
        return UnknownIntent()

    raise AIUnavailableError(f"Could not parse intent: {answer!r}")


def parse_meal_analysis(answer: str) -> MealAnalysis:
    """Split the "Kalori:" line from the rest; the rest becomes the description."""
    calories = 0.0
    description_lines = []

    for line in answer.splitlines():
        stripped = line.strip().replace("**", "")
        if not stripped:
            continue
        if stripped.lower().startswith("kalori:"):
            calories = parse_calorie_value(stripped.split(":", 1)[1])
        else:
            description_lines.append(stripped)

    if calories <= 0:
        raise AIUnavailableError(f"No calorie value in analysis: {answer[:100]!r}")

    return MealAnalysis(
        calories=calories,
        description=clean_markdown("\n".join(description_lines))
    )


def parse_command_suggestion(answer: str) -> Optional[CommandSuggestion]:
    match = _SUGGESTION_PATTERN.search(answer)
    if not match:
        return None

    name = match.group(1).strip().lower()
    confidence = float(match.group(2).replace(",", "."))
    if name not in SUGGESTABLE_KEYWORDS:
        logger.info(f"Ignoring suggestion for unknown command: {name}")
        return None
    return CommandSuggestion(name=name, confidence=min(confidence, 1.0))


def parse_time_answer(answer: str) -> Optional[ClockTime]:
    match = _TIME_ANSWER_PATTERN.search(answer)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not is_valid_clock(hour, minute):
        return None
    return ClockTime(hour=hour, minute=minute)


class AIService:
    def __init__(self, openai_client: OpenAIClient, timeout: float = 30.0, media_auth: Optional[tuple] = None):
        self.client = openai_client
        self.timeout = timeout
        self.media_auth = media_auth

    async def _complete(self, prompt: str, max_tokens: int, image_data_url: Optional[str] = None) -> str:
        """Run the blocking SDK call off the event loop, bounded by the timeout"""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    lambda: self.client.complete(prompt, max_tokens=max_tokens, image_data_url=image_data_url)
                ),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise AIUnavailableError(f"AI request timed out after {self.timeout}s")

    async def detect_intent(self, text: str) -> Intent:
        """Classify a free-text message as a meal, a water amount, a command or unknown"""
        logger.info(f"Detecting intent for: {text}")
        prompt = (
            "Sen bir beslenme asistanısın. Kullanıcının mesajını sınıflandır ve SADECE etiketi döndür.\n"
            f"KULLANICI MESAJI: \"{text}\"\n"
            "\n"
            "İZİN VERİLEN FORMATLAR:\n"
            "MEAL:[yemek açıklaması]\n"
            "WATER:[sadece sayı, ml cinsinden]\n"
            "COMMAND:[komut adı]\n"
            "UNKNOWN\n"
            "\n"
            f"Komutlar: {', '.join(SUGGESTABLE_KEYWORDS)}\n"
            "Su için: 1 lt = 1000 ml, 1 bardak = 200 ml, sadece 'su içtim' = 200 ml.\n"
            "\n"
            "ÖRNEKLER:\n"
            "\"pizza yedim\" -> MEAL:pizza\n"
            "\"öğlen 150 gr tavuk ve salata yedim\" -> MEAL:150 gr tavuk ve salata\n"
            "\"su içtim\" -> WATER:200\n"
            "\"250 ml\" -> WATER:250\n"
            "\"1 litre su içtim\" -> WATER:1000\n"
            "\"bugün ne kadar yedim\" -> COMMAND:rapor\n"
            "\"merhaba\" -> UNKNOWN"
        )
        answer = await self._complete(prompt, max_tokens=100)
        intent = parse_intent(answer)
        logger.info(f"Detected intent: {intent!r}")
        return intent

    async def analyze_meal_text(self, description: str) -> MealAnalysis:
        logger.info(f"Analyzing text meal: {description}")
        prompt = (
            "Sen bir gıda analizi uzmanısın. Kullanıcının yazdığı yemeği analiz et.\n"
            f"KULLANICININ YAZDIĞI: \"{description}\"\n"
            "Porsiyon belirtilmediyse ortalama bir porsiyon varsay.\n"
            "\n"
            f"{MEAL_ANALYSIS_FORMAT}"
        )
        answer = await self._complete(prompt, max_tokens=300)
        return parse_meal_analysis(answer)

    async def analyze_meal_image(self, image_url: str, content_type: Optional[str] = None) -> MealAnalysis:
        logger.info(f"Analyzing meal image: {image_url}")
        image_bytes = await self._download_media(image_url)
        mime_type = content_type or "image/jpeg"
        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode()}"

        prompt = (
            "Sen bir gıda analizi uzmanısın. Bu yemek fotoğrafındaki yemekleri tanı, "
            "porsiyonu değerlendir ve toplam kaloriyi hesapla.\n"
            "\n"
            f"{MEAL_ANALYSIS_FORMAT}"
        )
        answer = await self._complete(prompt, max_tokens=500, image_data_url=data_url)
        return parse_meal_analysis(answer)

    async def suggest_command(self, text: str) -> Optional[CommandSuggestion]:
        """Ask which known command a mistyped word was meant to be"""
        prompt = (
            "Kullanıcı bir komut yazmaya çalıştı ama yanlış yazmış olabilir.\n"
            f"YAZILAN: \"{text}\"\n"
            f"BİLİNEN KOMUTLAR: {', '.join(SUGGESTABLE_KEYWORDS)}\n"
            "\n"
            "En yakın komutu ve 0 ile 1 arası güven değerini şu formatta döndür:\n"
            "KOMUT:[komut] GUVEN:[0-1]\n"
            "Hiçbiri uymuyorsa sadece NONE yaz."
        )
        answer = await self._complete(prompt, max_tokens=30)
        suggestion = parse_command_suggestion(answer)
        logger.info(f"Command suggestion for {text!r}: {suggestion!r}")
        return suggestion

    async def parse_natural_time(self, text: str) -> Optional[ClockTime]:
        prompt = (
            "Kullanıcının yazdığı saati 24 saat formatına çevir.\n"
            f"YAZILAN: \"{text}\"\n"
            "Cevap formatı: SAAT:HH:MM\n"
            "Saat anlaşılmıyorsa sadece GECERSIZ yaz.\n"
            "Örnek: \"sabah dokuzda\" -> SAAT:09:00, \"akşam yedi buçuk\" -> SAAT:19:30"
        )
        answer = await self._complete(prompt, max_tokens=20)
        return parse_time_answer(answer)

    async def get_nutrition_advice(self, stats: DailyStats, water_goal: int, calorie_goal: int) -> str:
        logger.info(
            f"Requesting nutrition advice for {stats.total_calories} kcal, "
            f"{stats.total_water_ml} ml water, {stats.meals_count} meals"
        )
        prompt = (
            "You are a wellness coach. Give brief encouraging feedback in Turkish about today's progress.\n"
            f"Data: {stats.total_calories:.0f} kcal (goal {calorie_goal}), {stats.meals_count} meals, "
            f"{stats.total_water_ml} ml water (goal {water_goal} ml).\n"
            "Write 3-4 short sentences. Use the actual numbers. No markdown. Start each sentence with an emoji."
        )
        answer = await self._complete(prompt, max_tokens=200)
        return clean_markdown(answer)

    async def _download_media(self, media_url: str) -> bytes:
        """Download inbound media; Twilio media URLs need account auth"""
        auth = aiohttp.BasicAuth(login=self.media_auth[0], password=self.media_auth[1]) if self.media_auth else None
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.get(media_url, auth=auth) as response:
                    if response.status != 200:
                        raise AIUnavailableError(f"Media download failed with status {response.status}")
                    return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AIUnavailableError(f"Media download failed: {str(e)}")
