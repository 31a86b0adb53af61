import re
from typing import Dict, List, NamedTuple, Optional

from lib.parsing import normalize_text

# Commands that take no arguments: the whole message must be the keyword.
NO_ARG_COMMANDS: Dict[str, tuple] = {
    "report": ("rapor", "report", "ozet", "summary"),
    "history": ("gecmis", "history", "tarihce"),
    "weekly": ("haftalik", "hafta", "weekly"),
    "advice": ("tavsiye", "oneri", "advice", "tip", "tips"),
    "settings": ("ayarlar", "ayar", "settings", "setting"),
    "help": ("yardim", "help", "?", "komutlar", "commands"),
    "water_menu": ("su", "buton", "butonlar", "buttons", "water"),
}

# Commands matched on their first word; the remaining words are arguments.
ARG_COMMANDS: Dict[str, tuple] = {
    "meal": ("ogun", "yemek", "meal", "food"),
    "water_goal": ("suhedefi", "watergoal"),
    "water_interval": ("suaraligi", "waterinterval"),
    "calorie_goal": ("kalorihedefi", "caloriegoal"),
    "meal_time": ("saat", "time"),
    "reminder": ("hatirlatma", "reminder"),
    "timezone": ("timezone", "tz", "zamandilimi"),
    "favorite": ("favori", "favoriler", "favorite", "favorites", "fav"),
}

# Keyword shown to the user (and stored as the pending command) per command.
PRIMARY_KEYWORDS: Dict[str, str] = {
    "report": "rapor",
    "history": "gecmis",
    "weekly": "haftalik",
    "advice": "tavsiye",
    "settings": "ayarlar",
    "help": "yardim",
    "water_menu": "su",
}

SUGGESTABLE_KEYWORDS: List[str] = list(PRIMARY_KEYWORDS.values())

AFFIRMATIVE_TOKENS = {"1", "evet", "e", "yes", "y", "tamam", "ok", "olur"}
NEGATIVE_TOKENS = {"0", "hayir", "h", "no", "n", "iptal", "vazgec"}

_ALIASES_NO_ARG = {alias: name for name, aliases in NO_ARG_COMMANDS.items() for alias in aliases}
_ALIASES_ARG = {alias: name for name, aliases in ARG_COMMANDS.items() for alias in aliases}
_COMMAND_LIKE = re.compile(r"^[a-z]{2,20}$")


class CommandMatch(NamedTuple):
    name: str
    args: List[str]


def _strip_prefix(text: str) -> str:
    return text.strip().lstrip("/!").strip()


def match_command(text: str) -> Optional[CommandMatch]:
    """Exact keyword match. Never fuzzy: "tvsiye" does not match "tavsiye"."""
    original = _strip_prefix(text or "")
    words = normalize_text(original).split()
    if not words:
        return None

    if len(words) == 1 and words[0] in _ALIASES_NO_ARG:
        return CommandMatch(_ALIASES_NO_ARG[words[0]], [])

    if words[0] in _ALIASES_ARG:
        return CommandMatch(_ALIASES_ARG[words[0]], original.split()[1:])

    # fav1, fav_kahvalti ... saved favorites are logged by name
    if len(words) == 1 and words[0].startswith("fav") and len(words[0]) > 3:
        return CommandMatch("quick_favorite", [words[0]])

    return None


def resolve_command_name(keyword: str) -> Optional[str]:
    """Map a single keyword (as returned by the AI or stored as pending) to a command name."""
    match = match_command(keyword)
    if match is None or match.args:
        return None
    return match.name


def is_affirmative(text: str) -> bool:
    return normalize_text(text) in AFFIRMATIVE_TOKENS


def is_negative(text: str) -> bool:
    return normalize_text(text) in NEGATIVE_TOKENS


def is_command_like(text: str) -> bool:
    """A lone alphabetic word, e.g. a mistyped keyword."""
    return bool(_COMMAND_LIKE.match(normalize_text(_strip_prefix(text or ""))))
