from datetime import datetime, timezone

from api import replies
from api.models import DailyStats, FavoriteMeal, Meal, MealAnalysis, MealType, User


def test_progress_bar():
    assert replies.progress_bar(1000, 2000) == ("█████░░░░░", 50)
    assert replies.progress_bar(5000, 2000) == ("██████████", 100)
    assert replies.progress_bar(100, 0) == ("░░░░░░░░░░", 0)


def test_motivational_message():
    assert "Harika" in replies.motivational_message(2000, 2000, 2000)
    assert "Su tüketimine" in replies.motivational_message(2000, 500, 2000)
    assert "düşük" in replies.motivational_message(800, 1500, 2000)


def test_daily_report():
    stats = DailyStats(date="2024-05-01", total_calories=1500, total_water_ml=1000, meals_count=3, water_logs_count=4)
    report = replies.format_daily_report(stats, 2000, 2000)
    assert "1500/2000 kcal (75%)" in report
    assert "1000/2000 ml (50%)" in report
    assert "Öğün Sayısı: 3" in report


def test_history_uses_local_time():
    meal = Meal(
        user_phone="+1", meal_type=MealType.DINNER, calories=700,
        description="Yemek: Kebap\nPorsiyon: Orta",
        created_at=datetime(2024, 5, 1, 17, 0, tzinfo=timezone.utc)
    )
    history = replies.format_history([meal], "Europe/Istanbul")
    assert "1. Akşam Yemeği • 700 kcal" in history
    assert "01.05 20:00" in history
    assert "Porsiyon" not in history


def test_weekly_summary_without_logs():
    days = [DailyStats(date=f"2024-05-0{i}") for i in range(1, 8)]
    summary = replies.format_weekly_summary(days, 2000, 2000)
    assert "01.05" in summary
    assert "henüz kayıt yok" in summary


def test_weekly_summary_averages_logged_days():
    days = [DailyStats(date="2024-05-01"), DailyStats(date="2024-05-02", total_calories=1800, total_water_ml=2000, meals_count=3, water_logs_count=5)]
    summary = replies.format_weekly_summary(days, 2000, 2000)
    assert "1800 kcal / 2000 ml" in summary
    assert "1/2" in summary


def test_settings_overview():
    user = User(phone_number="+1", breakfast_time="08:00", water_reminder=False)
    text = replies.format_settings(user)
    assert "Kahvaltı: 08:00 ✅" in text
    assert "Öğle: Ayarlanmamış" in text
    assert "❌ Her 120 dakika" in text


def test_meal_saved_with_image_counter():
    analysis = MealAnalysis(calories=450, description="Yemek: Menemen")
    stats = DailyStats(date="2024-05-01", total_calories=900, meals_count=2)
    text = replies.format_meal_saved(MealType.BREAKFAST, analysis, stats, 3, 20)
    assert "Kahvaltı Kaydedildi" in text
    assert "📸 Resim: 3/20" in text
    assert "Resim" not in replies.format_meal_saved(MealType.BREAKFAST, analysis, stats)


def test_water_saved_shows_remaining():
    stats = DailyStats(date="2024-05-01", total_water_ml=2500)
    text = replies.format_water_saved(500, stats, 2000)
    assert "Kalan: 0 ml" in text


def test_saved_summaries_without_daily_totals():
    analysis = MealAnalysis(calories=450, description="Yemek: Menemen")
    meal_text = replies.format_meal_saved(MealType.BREAKFAST, analysis, None)
    assert "450 kcal" in meal_text
    assert "Bugün" not in meal_text

    water_text = replies.format_water_saved(250, None, 2000)
    assert "250 ml kaydedildi" in water_text
    assert "Kalan" not in water_text


def test_favorites_with_empty_description():
    text = replies.format_favorites([FavoriteMeal(user_phone="+1", name="fav1", description="", calories=300)])
    assert "fav1" in text
