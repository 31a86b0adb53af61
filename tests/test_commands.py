import pytest

from api.commands import (
    CommandMatch, is_affirmative, is_command_like, is_negative, match_command,
    resolve_command_name,
)


@pytest.mark.parametrize("message,name", [
    ("rapor", "report"),
    ("/Rapor", "report"),
    ("!özet", "report"),
    ("geçmiş", "history"),
    ("haftalık", "weekly"),
    ("tavsiye", "advice"),
    ("AYARLAR", "settings"),
    ("?", "help"),
    ("su", "water_menu"),
])
def test_no_arg_keywords(message, name):
    assert match_command(message) == CommandMatch(name, [])


def test_no_arg_keyword_must_be_whole_message():
    assert match_command("rapor lütfen") is None
    assert match_command("su içtim") is None


def test_arg_commands_keep_original_case():
    assert match_command("timezone America/New_York") == CommandMatch("timezone", ["America/New_York"])
    assert match_command("ogun Tavuk pilav") == CommandMatch("meal", ["Tavuk", "pilav"])
    assert match_command("saat") == CommandMatch("meal_time", [])


def test_quick_favorite():
    assert match_command("fav1") == CommandMatch("quick_favorite", ["fav1"])
    assert match_command("fav") == CommandMatch("favorite", [])


def test_no_fuzzy_matching():
    assert match_command("tvsiye") is None
    assert match_command("raporr") is None


def test_resolve_command_name():
    assert resolve_command_name("tavsiye") == "advice"
    assert resolve_command_name("rapor") == "report"
    assert resolve_command_name("suhedefi 2000") is None
    assert resolve_command_name("bilinmeyen") is None


@pytest.mark.parametrize("token", ["1", "evet", "Evet", "e", "yes", "y", "tamam", "ok"])
def test_affirmative(token):
    assert is_affirmative(token)
    assert not is_negative(token)


@pytest.mark.parametrize("token", ["0", "hayır", "hayir", "h", "no", "n", "iptal"])
def test_negative(token):
    assert is_negative(token)
    assert not is_affirmative(token)


def test_command_like():
    assert is_command_like("tvsiye")
    assert is_command_like("/raprr")
    assert not is_command_like("tavuk yedim")
    assert not is_command_like("a")
    assert not is_command_like("250ml")
