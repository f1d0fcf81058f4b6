"""
Text processing utilities for leaderboard extraction.

Provides:
- Amount parsing (currency symbols, k/m/b suffixes, US and EU separators)
- Username cleaning, normalization and validation
- Half-up rounding of confidence and quality scores
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Optional

MAX_USERNAME_LENGTH = 100

_CURRENCY_CHARS = re.compile(r"[$€£¥₹฿₿©®™◆♦💎🪙💰🎰🎲🏆⭐✨🔥💵🤑\s]")
_UNIT_SUFFIX = re.compile(r"(coins?|credits?|points?|xp|gems?|tokens?|chips?|btc|eth|ltc|usd)$", re.IGNORECASE)
_UNIT_PREFIX = re.compile(r"^(xp|coins?|credits?|points?|gems?|tokens?|chips?|usd)", re.IGNORECASE)
_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")

# Single words that are page chrome, never usernames
UI_WORDS = frozenset({
    "other", "leaders", "leader", "total", "prize", "prizes", "pool", "bonus",
    "bonuses", "all", "view", "more", "remaining", "wagered", "wager", "reward",
    "rewards", "leaderboard", "leaderboards", "rank", "status", "active",
    "inactive", "tournament", "tournaments", "free", "login", "register",
    "browse", "join", "enter", "vip", "premium", "loading", "home", "menu",
    "history", "past", "results", "competition", "race", "challenge", "user",
    "username", "player", "place", "position", "amount", "points", "ends",
    "in", "days", "hours", "minutes", "seconds", "show", "hide", "previous",
    "next", "current", "claim", "rules", "faq", "terms",
})

_UI_PHRASES = [
    re.compile(r"^other\s+(leaders?|players?)", re.IGNORECASE),
    re.compile(r"^(total|prize)\s+(wagered|pool|prizes?)", re.IGNORECASE),
    re.compile(r"^(ends|starts)\s+in\b", re.IGNORECASE),
    re.compile(r"^(sign|log)\s*(in|up|out)$", re.IGNORECASE),
    re.compile(r"^(view|show|load)\s+(all|more)", re.IGNORECASE),
    re.compile(r"^(wagered|wager|prize|reward|bonus):?\s*[$€£]?[\d,.]+$", re.IGNORECASE),
]


def round_half_up(value: float) -> int:
    """0.5 rounds away from zero for positive scores (66.5 -> 67)."""
    return int(math.floor(round(value, 6) + 0.5))


def parse_amount(value: Any) -> float:
    """
    Parses a monetary amount from a string or number.

    Handles "$1,234.56", "1.234,56", "10k", "1.5M", "◆ 2,500 coins" and
    markdown image currency icons. Unparseable input returns 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return 0.0
        return float(value)

    s = _MARKDOWN_IMAGE.sub("", str(value)).strip()
    if s in ("", "-"):
        return 0.0
    s = _CURRENCY_CHARS.sub("", s)
    s = _UNIT_SUFFIX.sub("", s)
    s = _UNIT_PREFIX.sub("", s)

    mult = 1.0
    lowered = s.lower()
    if lowered.endswith("b"):
        mult, s = 1_000_000_000.0, s[:-1]
    elif lowered.endswith("m"):
        mult, s = 1_000_000.0, s[:-1]
    elif lowered.endswith("k"):
        mult, s = 1_000.0, s[:-1]

    if "," in s and "." in s:
        if s.rfind(".") > s.rfind(","):
            s = s.replace(",", "")
        else:
            s = s.replace(".", "").replace(",", ".")
    elif "," in s:
        parts = s.split(",")
        if len(parts) == 2 and len(parts[1]) <= 2:
            s = s.replace(",", ".")
        else:
            s = s.replace(",", "")

    match = re.match(r"^-?\d+(\.\d+)?", s)
    if not match:
        return 0.0
    return float(match.group(0)) * mult


def clean_username(text: Optional[str]) -> Optional[str]:
    """Strips rank prefixes ("#4 ", "4. ", "RANK 4", "4th") and badge suffixes."""
    if not text:
        return None
    clean = str(text).strip()
    clean = re.sub(r"^RANK[_\s]*\d+\s*", "", clean, flags=re.IGNORECASE)
    clean = re.sub(r"^#\d+\s*[-:.]?\s*", "", clean)
    clean = re.sub(r"^\d+[.)]\s*", "", clean)
    clean = re.sub(r"^(1st|2nd|3rd|\d+th)\s*[-:.]?\s*", "", clean, flags=re.IGNORECASE)
    clean = re.sub(r"\s*\[.*?\]\s*$", "", clean)
    clean = clean.strip()
    return clean or None


def normalize_username(username: Optional[str]) -> str:
    """Case-folds and strips every non-alphanumeric character."""
    if not username or not isinstance(username, str):
        return ""
    return "".join(ch for ch in username.casefold() if ch.isalnum())


def is_ui_text(text: str) -> bool:
    """True when *text* is navigation or label text rather than a username."""
    lowered = text.strip().lower()
    if lowered in UI_WORDS:
        return True
    if any(p.search(lowered) for p in _UI_PHRASES):
        return True
    words = lowered.split()
    return len(words) > 1 and all(w in UI_WORDS for w in words)


@dataclass(frozen=True)
class UsernameCheck:
    valid: bool
    confidence: float
    reason: str


def validate_username(text: Optional[str]) -> UsernameCheck:
    """
    Classifies a candidate username.

    Masked names ("Jo***", "****ster") are accepted; UI text, pure numbers,
    prose and over-long strings are rejected.
    """
    if not text:
        return UsernameCheck(False, 1.0, "empty")

    trimmed = text.strip().replace("�", "*")
    if trimmed == "[hidden]":
        return UsernameCheck(True, 0.60, "hidden_username_placeholder")
    if len(trimmed) > MAX_USERNAME_LENGTH:
        return UsernameCheck(False, 0.95, "too_long")
    if len(trimmed) == 1:
        if trimmed.isalnum():
            return UsernameCheck(True, 0.70, "single_character")
        return UsernameCheck(False, 0.95, "too_short")

    asterisks = trimmed.count("*")
    if not asterisks and is_ui_text(trimmed):
        return UsernameCheck(False, 0.98, "ui_text")

    if len(trimmed.split()) > 3:
        return UsernameCheck(False, 0.85, "too_many_words")

    letters = sum(1 for ch in trimmed if ch.isalpha())
    digits = sum(1 for ch in trimmed if ch.isdigit())

    if asterisks >= 2 or (asterisks == 1 and len(trimmed) <= 4):
        lowered = trimmed.lower()
        if letters >= 1 and not any(w in lowered for w in ("total", "prize", "pool", "bonus")):
            return UsernameCheck(True, 0.90, "censored_username")
        if asterisks >= 3 and 4 <= len(trimmed) <= 20:
            return UsernameCheck(True, 0.70, "fully_censored_username")

    if letters < 1:
        return UsernameCheck(False, 0.80, "no_letters")
    if letters < 2 and asterisks == 0:
        return UsernameCheck(False, 0.80, "insufficient_letters")
    if digits > len(trimmed) * 0.7 and letters < 3:
        return UsernameCheck(False, 0.75, "mostly_numbers")
    if re.match(r"^[A-Za-z0-9][A-Za-z0-9._\-*]{1,29}$", trimmed):
        return UsernameCheck(True, 0.95, "standard_pattern")
    if re.match(r"^[^\W_][\w.\-*\s]*$", trimmed):
        return UsernameCheck(True, 0.85, "unicode_pattern")
    return UsernameCheck(True, 0.60, "fallback_accepted")
