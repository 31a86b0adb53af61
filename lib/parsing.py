"""Text helpers shared by the router, the AI service and the setup flow.

Everything here is pure: no I/O, no clients. Turkish input is normalised so
that "Geçmiş", "GECMIS" and "gecmis" compare equal.
"""
import re
import unicodedata
from typing import Optional, Tuple

WATER_PRESETS = {"1": 200, "2": 250, "3": 500}
ML_PER_LITRE = 1000
ML_PER_GLASS = 200
MIN_WATER_ML = 1
MAX_WATER_ML = 5000

_WATER_PATTERN = re.compile(
    r"^(\d+(?:[.,]\d+)?)\s*(ml|mililitre|lt|l|litre|liter|bardak)"
    r"(?:\s+(?:su|suyu|ictim|icdim))*$"
)
_TIME_PATTERN = re.compile(r"(\d+)(?:\s*[:.]\s*(\d+))?")
_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
_PM_MARKERS = ("ogleden sonra", "aksam")


def normalize_text(text: str) -> str:
    """Lowercase, trim and strip diacritics (Turkish dotted/dotless i included)."""
    if not text:
        return ""
    text = text.strip().replace("İ", "i").replace("I", "i").replace("ı", "i").lower()
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _to_number(raw: str) -> float:
    return float(raw.replace(",", "."))


def parse_water_amount(text: str) -> Optional[int]:
    """Return the millilitres a message logs directly, or None if it is not a
    plain water amount. The result is not range checked."""
    normalized = normalize_text(text)
    if normalized in WATER_PRESETS:
        return WATER_PRESETS[normalized]

    match = _WATER_PATTERN.match(normalized)
    if not match:
        return None

    value = _to_number(match.group(1))
    unit = match.group(2)
    if unit in ("lt", "l", "litre", "liter"):
        value *= ML_PER_LITRE
    elif unit == "bardak":
        value *= ML_PER_GLASS
    return int(round(value))


def is_valid_water_amount(amount_ml: int) -> bool:
    return MIN_WATER_ML <= amount_ml <= MAX_WATER_ML


def is_valid_clock(hour: int, minute: int) -> bool:
    return 0 <= hour <= 23 and 0 <= minute <= 59


def format_clock(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def parse_clock(text: str) -> Optional[Tuple[int, int]]:
    """Strict HH:MM parser used by the one-line settings commands."""
    match = _CLOCK_PATTERN.match((text or "").strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not is_valid_clock(hour, minute):
        return None
    return hour, minute


def has_digits(text: str) -> bool:
    return any(c.isdigit() for c in text or "")


def parse_natural_time(text: str) -> Optional[Tuple[int, int]]:
    """Parse "9", "09:30", "9.30", "sabah 9'da", "akşam 7 buçuk".

    Returns None when no time can be read or when the hour/minute is out of
    range. Values are never clamped.
    """
    normalized = normalize_text(text)
    match = _TIME_PATTERN.search(normalized)
    if not match:
        return None

    hour = int(match.group(1))
    if match.group(2) is not None:
        minute = int(match.group(2))
    elif "bucuk" in normalized:
        minute = 30
    else:
        minute = 0

    if 1 <= hour <= 11:
        if any(marker in normalized for marker in _PM_MARKERS):
            hour += 12
        elif "gece" in normalized and hour >= 6:
            hour += 12

    if not is_valid_clock(hour, minute):
        return None
    return hour, minute


def parse_calorie_value(raw: str) -> float:
    """Read a calorie figure written with either decimal or thousands separators.

    "1.250" and "1,250" are thousands, "650,5" and "650.5" are decimals.
    Returns 0.0 when nothing numeric is present.
    """
    cleaned = "".join(c for c in raw if c.isdigit() or c in ".,")
    if not cleaned:
        return 0.0

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned or "." in cleaned:
        sep = "," if "," in cleaned else "."
        after = cleaned[cleaned.find(sep) + 1:]
        if 0 < len(after) <= 2 and cleaned.count(sep) == 1:
            cleaned = cleaned.replace(sep, ".")
        else:
            cleaned = cleaned.replace(sep, "")

    try:
        return float(cleaned)
    except ValueError:
        return 0.0


_LINK_PATTERN = re.compile(r"\[([^\]]*)\]\([^)]*\)")


def clean_markdown(text: str) -> str:
    """Strip markdown the model sometimes adds; WhatsApp shows it literally."""
    for token in ("###", "##", "**", "__", "```"):
        text = text.replace(token, "")
    text = text.replace("# ", "")
    text = _LINK_PATTERN.sub(r"\1", text)
    return "\n".join(line.rstrip() for line in text.splitlines()).strip()
