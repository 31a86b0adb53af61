import pytest
from datetime import date
from unittest.mock import MagicMock

from api.models import MealType
from api.services.storage import StorageService, day_bounds
from lib.error_handler import StorageError


def result(data):
    response = MagicMock()
    response.data = data
    response.error = None
    return response


@pytest.fixture
def supabase():
    client = MagicMock()
    # Every builder call returns the same query object; execute() is configured per test
    query = MagicMock()
    for method in ('select', 'eq', 'gte', 'lt', 'limit', 'order', 'insert', 'upsert', 'update', 'delete'):
        getattr(query, method).return_value = query
    client.table.return_value = query
    client.query = query
    return client


@pytest.fixture
def storage(supabase):
    return StorageService(supabase)


def test_day_bounds_use_local_midnight():
    start, end = day_bounds(date(2024, 5, 1), "Europe/Istanbul")
    assert start == "2024-04-30T21:00:00+00:00"
    assert end == "2024-05-01T21:00:00+00:00"


def test_get_or_create_user_returns_existing(storage, supabase):
    supabase.query.execute.return_value = result([
        {'phone_number': '+905551112233', 'pending_command': 'tavsiye', 'daily_water_goal': 3000}
    ])

    user = storage.get_or_create_user('+905551112233')

    assert user.pending_command == 'tavsiye'
    assert user.daily_water_goal == 3000
    supabase.query.upsert.assert_not_called()


def test_get_or_create_user_creates_with_defaults(storage, supabase):
    supabase.query.execute.side_effect = [result([]), result([])]

    user = storage.get_or_create_user('+905551112233', 'Europe/Berlin')

    assert user.timezone == 'Europe/Berlin'
    assert user.pending_command is None
    record = supabase.query.upsert.call_args[0][0]
    assert record['phone_number'] == '+905551112233'
    assert supabase.query.upsert.call_args[1]['on_conflict'] == 'phone_number'


def test_failed_query_raises_storage_error(storage, supabase):
    supabase.query.execute.side_effect = Exception("connection reset")
    with pytest.raises(StorageError):
        storage.insert_water('+905551112233', 250)


def test_insert_meal_rejects_non_positive_calories(storage, supabase):
    with pytest.raises(ValueError):
        storage.insert_meal('+905551112233', MealType.SNACK, 0, "su")
    supabase.query.insert.assert_not_called()


def test_insert_meal(storage, supabase):
    supabase.query.execute.return_value = result([{'id': 7}])

    meal_id = storage.insert_meal('+905551112233', MealType.LUNCH, 550, "Pilav", image_url="https://x/y")

    assert meal_id == 7
    record = supabase.query.insert.call_args[0][0]
    assert record['meal_type'] == 'lunch'
    assert record['image_url'] == "https://x/y"


def test_update_settings_only_accepts_known_fields(storage):
    with pytest.raises(ValueError):
        storage.update_settings('+905551112233', {'pending_command': 'rapor'})


def test_daily_stats(storage, supabase):
    supabase.query.execute.side_effect = [
        result([
            {'calories': 400, 'meal_type': 'breakfast', 'image_url': None, 'created_at': '2024-05-01T06:00:00+00:00'},
            {'calories': 650.5, 'meal_type': 'lunch', 'image_url': 'https://x', 'created_at': '2024-05-01T10:00:00+00:00'},
        ]),
        result([
            {'amount_ml': 250, 'created_at': '2024-05-01T07:00:00+00:00'},
            {'amount_ml': 500, 'created_at': '2024-05-01T08:00:00+00:00'},
        ]),
    ]

    stats = storage.get_daily_stats('+905551112233', date(2024, 5, 1), "Europe/Istanbul")

    assert stats.total_calories == 1050.5
    assert stats.total_water_ml == 750
    assert (stats.meals_count, stats.water_logs_count) == (2, 2)


def test_range_stats_bucket_by_local_day(storage, supabase):
    supabase.query.execute.side_effect = [
        # 22:30 UTC on 30 April is already 1 May in Istanbul
        result([{'calories': 300, 'meal_type': 'snack', 'image_url': None, 'created_at': '2024-04-30T22:30:00+00:00'}]),
        result([]),
    ]

    days = storage.get_range_stats('+905551112233', date(2024, 5, 1), 7, "Europe/Istanbul")

    assert [d.date for d in days][0] == "2024-04-25"
    assert days[-1].date == "2024-05-01"
    assert days[-1].total_calories == 300
    assert sum(d.meals_count for d in days) == 1


def test_range_stats_read_short_fractional_seconds(storage, supabase):
    supabase.query.execute.side_effect = [
        result([{'calories': 450, 'meal_type': 'dinner', 'image_url': None, 'created_at': '2024-04-30T22:30:00.12345+00:00'}]),
        result([{'amount_ml': 250, 'created_at': '2024-05-01T08:00:00.5Z'}]),
    ]

    days = storage.get_range_stats('+905551112233', date(2024, 5, 1), 7, "Europe/Istanbul")

    assert days[-1].total_calories == 450
    assert days[-1].total_water_ml == 250


def test_count_images(storage, supabase):
    supabase.query.execute.return_value = result([
        {'calories': 300, 'meal_type': 'snack', 'image_url': 'https://x', 'created_at': '2024-05-01T10:00:00+00:00'},
        {'calories': 300, 'meal_type': 'snack', 'image_url': None, 'created_at': '2024-05-01T11:00:00+00:00'},
    ])
    assert storage.count_images_for_date('+905551112233', date(2024, 5, 1), "Europe/Istanbul") == 1


def test_conversation_log_failure_is_swallowed(storage, supabase):
    supabase.query.execute.side_effect = Exception("timeout")
    storage.log_conversation('+905551112233', 'incoming', 'text', 'rapor')
