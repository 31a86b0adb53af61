"""Outbound message texts.

WhatsApp renders *bold*; everything else is plain text with emoji.
"""
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from api.models import DailyStats, FavoriteMeal, Meal, MealAnalysis, MealType, User

HELP_MESSAGE = (
    "📱 *Beslenme Takip Botu*\n\n"
    "*🍽️ Nasıl Kullanılır?*\n"
    "• Yemek fotoğrafı gönder\n"
    "• \"Tavuk ve pilav yedim\" gibi yaz\n"
    "• ogun [açıklama] - Text ile kaydet\n"
    "• su - Hızlı su kaydı menüsü 💧\n"
    "• 250 ml - Direkt su takibi\n\n"
    "*📊 Ana Komutlar*\n"
    "rapor - Günlük özet\n"
    "gecmis - Son 5 öğün\n"
    "haftalik - Son 7 gün\n"
    "tavsiye - AI beslenme önerisi\n"
    "ayarlar - Tüm ayarlar\n\n"
    "*⭐ Favori Yemekler*\n"
    "favori - Liste\n"
    "favori ekle fav1 Tavuklu pilav\n"
    "favori sil fav1\n"
    "fav1 - Hızlı kayıt\n\n"
    "*🎯 Hedefler ve Ayarlar*\n"
    "kalorihedefi 2500\n"
    "suhedefi 3000\n"
    "suaraligi 120\n"
    "saat - Öğün saatlerini ayarla\n"
    "hatirlatma su kapat\n"
    "timezone Europe/Istanbul\n\n"
    "*💡 İpucu:* Komutlarda '/' kullanmana gerek yok!"
)

WATER_MENU = (
    "💧 *Su Kaydı*\n\n"
    "Ne kadar su içtin?\n"
    "1️⃣ 200 ml\n"
    "2️⃣ 250 ml\n"
    "3️⃣ 500 ml\n\n"
    "Sadece numarayı yaz ya da \"400 ml\" gibi miktarı gönder."
)

COMMAND_CANCELLED = "👍 Tamam, iptal edildi."
INVALID_WATER_AMOUNT = "❌ Geçersiz miktar.\nLütfen 1-5000 ml arası bir değer gir (örn: 250 ml)."
MEAL_USAGE = "❌ Kullanım: ogun [yemek açıklaması]\n\nÖrnek: ogun tavuk göğsü ve salata"
NO_MEALS_YET = "📜 Henüz kayıtlı öğün yok."


def progress_bar(current: float, goal: float) -> Tuple[str, int]:
    """10-cell bar and the percentage it shows (capped at 100)"""
    percentage = int(min(current / goal * 100, 100)) if goal > 0 else 0
    filled = percentage // 10
    return "█" * filled + "░" * (10 - filled), percentage


def motivational_message(calories: float, water_ml: int, water_goal: int) -> str:
    water_percentage = water_ml / water_goal * 100 if water_goal > 0 else 0
    if water_percentage >= 100 and 1500 <= calories <= 2500:
        return "🎉 Harika! Hem kalori hedefinde hem de su tüketiminde başarılı!"
    if water_percentage < 50:
        return "💧 Su tüketimine dikkat et! Daha fazla su içmeyi unutma."
    if calories < 1200:
        return "🍽️ Kalori alımın düşük. Yeterli beslenmeye dikkat et."
    if calories > 3000:
        return "⚠️ Kalori alımın yüksek. Porsiyonlara dikkat edebilirsin."
    return "👍 İyi gidiyorsun! Böyle devam et."


def format_daily_report(stats: DailyStats, calorie_goal: int, water_goal: int) -> str:
    calorie_bar, calorie_pct = progress_bar(stats.total_calories, calorie_goal)
    water_bar, water_pct = progress_bar(stats.total_water_ml, water_goal)
    return (
        "📊 *Günlük Rapor*\n\n"
        "🔥 Kalori\n"
        f"{calorie_bar}\n"
        f"{stats.total_calories:.0f}/{calorie_goal} kcal ({calorie_pct}%)\n\n"
        "💧 Su\n"
        f"{water_bar}\n"
        f"{stats.total_water_ml}/{water_goal} ml ({water_pct}%)\n\n"
        f"🍽️ Öğün Sayısı: {stats.meals_count}\n"
        f"📝 Su Kayıt: {stats.water_logs_count}\n\n"
        f"{motivational_message(stats.total_calories, stats.total_water_ml, water_goal)}"
    )


def format_history(meals: List[Meal], tz_name: str) -> str:
    if not meals:
        return NO_MEALS_YET
    tz = ZoneInfo(tz_name)
    lines = ["📜 *Son 5 Öğün*\n"]
    for i, meal in enumerate(meals, start=1):
        first_line = meal.description.splitlines()[0] if meal.description else ""
        lines.append(
            f"{i}. {meal.meal_type.display_name} • {meal.calories:.0f} kcal\n"
            f"{first_line}\n"
            f"{meal.created_at.astimezone(tz).strftime('%d.%m %H:%M')}\n"
        )
    return "\n".join(lines).rstrip()


def format_weekly_summary(days: List[DailyStats], calorie_goal: int, water_goal: int) -> str:
    lines = ["📅 *Son 7 Gün*\n"]
    for day in days:
        label = f"{day.date[8:10]}.{day.date[5:7]}"
        lines.append(f"{label}: 🔥 {day.total_calories:.0f} kcal • 💧 {day.total_water_ml} ml")

    logged_days = [d for d in days if d.meals_count or d.water_logs_count]
    if not logged_days:
        lines.append("\nBu hafta henüz kayıt yok.")
        return "\n".join(lines)

    avg_calories = sum(d.total_calories for d in logged_days) / len(logged_days)
    avg_water = sum(d.total_water_ml for d in logged_days) / len(logged_days)
    water_goal_days = sum(1 for d in days if d.total_water_ml >= water_goal)
    lines.append(
        f"\n📈 Ortalama: {avg_calories:.0f} kcal / {avg_water:.0f} ml"
        f"\n🎯 Kalori hedefi: {calorie_goal} kcal"
        f"\n💧 Su hedefine ulaşılan gün: {water_goal_days}/{len(days)}"
    )
    return "\n".join(lines)


def _status(enabled: bool) -> str:
    return "✅" if enabled else "❌"


def format_settings(user: User) -> str:
    not_set = "Ayarlanmamış"
    return (
        "⚙️ *Ayarlarınız*\n\n"
        "🕐 *Öğün Saatleri*\n"
        f"Kahvaltı: {user.breakfast_time or not_set} {_status(user.breakfast_reminder)}\n"
        f"Öğle: {user.lunch_time or not_set} {_status(user.lunch_reminder)}\n"
        f"Akşam: {user.dinner_time or not_set} {_status(user.dinner_reminder)}\n\n"
        "🎯 *Günlük Hedefler*\n"
        f"{user.daily_calorie_goal} kcal kalori\n"
        f"{user.daily_water_goal} ml su ({user.daily_water_goal / 1000:.1f}L)\n\n"
        "💧 *Su Hatırlatma*\n"
        f"{_status(user.water_reminder)} Her {user.water_reminder_interval} dakika\n\n"
        "🌍 *Zaman Dilimi*\n"
        f"{user.timezone}\n\n"
        "*Değiştirmek için:*\n"
        "kalorihedefi 2500\n"
        "suhedefi 3000\n"
        "suaraligi 120\n"
        "saat kahvalti 09:00\n"
        "hatirlatma ogle kapat\n"
        "timezone Europe/Istanbul"
    )


def format_meal_saved(
    meal_type: MealType,
    analysis: MealAnalysis,
    stats: Optional[DailyStats],
    image_count: Optional[int] = None,
    image_limit: Optional[int] = None
) -> str:
    message = (
        f"✅ *{meal_type.display_name} Kaydedildi!*\n\n"
        f"📝 {analysis.description}\n"
        f"🔥 {analysis.calories:.0f} kcal"
    )
    if stats is not None:
        message += f"\n\n📊 Bugün: {stats.total_calories:.0f} kcal ({stats.meals_count} öğün)"
    if image_count is not None and image_limit is not None:
        message += f"\n📸 Resim: {image_count}/{image_limit}"
    return message


def format_water_saved(amount_ml: int, stats: Optional[DailyStats], water_goal: int) -> str:
    message = f"💧 *{amount_ml} ml kaydedildi!*\n\n"
    if stats is not None:
        remaining = max(water_goal - stats.total_water_ml, 0)
        message += (
            f"Bugün: {stats.total_water_ml} ml / {water_goal} ml\n"
            f"Kalan: {remaining} ml\n\n"
        )
    return message + "💡 Hızlıca kaydet: 1, 2 veya 3 yaz"


def format_image_limit(limit: int) -> str:
    return (
        f"⚠️ *Günlük resim limiti* ({limit}/{limit})\n\n"
        "Yarın tekrar fotoğraf gönderebilirsin.\n"
        "Bugün için yazarak kaydet: ogun tavuk göğsü ve salata"
    )


def format_confirmation_prompt(keyword: str) -> str:
    return (
        f"🤔 *{keyword}* komutunu mu demek istedin?\n\n"
        "1️⃣ Evet\n"
        "0️⃣ Hayır"
    )


def format_favorites(favorites: List[FavoriteMeal]) -> str:
    if not favorites:
        return (
            "⭐ *Favori Yemekler*\n\n"
            "Henüz favori yok.\n\n"
            "*Ekle:*\nfavori ekle fav1 Tavuklu pilav\n\n"
            "*Kullan:*\nSadece 'fav1' yaz!"
        )
    lines = ["⭐ *Favori Yemekleriniz*\n"]
    for fav in favorites:
        first_line = fav.description.splitlines()[0] if fav.description else ""
        lines.append(f"• {fav.name} • {fav.calories:.0f} kcal\n   {first_line}")
    lines.append("\n💡 Kaydet: Sadece favori adını yaz")
    return "\n".join(lines)


def format_favorite_saved(favorite_name: str, analysis: MealAnalysis) -> str:
    return (
        "✅ *Favori eklendi!*\n\n"
        f"{favorite_name} • {analysis.calories:.0f} kcal\n"
        f"{analysis.description}\n\n"
        f"💡 Kaydet: Sadece '{favorite_name}' yaz"
    )
