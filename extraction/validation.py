"""
Final clean-up of extracted entries.

Drops rows that are parsing artifacts rather than players: UI text, casino
or reward-site names, aggregate rows ("Total wagered"), empty ``[hidden]``
placeholders and rows with unusable wagers.
"""

import math
import re
from typing import Any, Dict, List, Sequence, Tuple

from common.logging.logger import get_logger
from common.text_utils import validate_username

logger = get_logger("validation")

HIDDEN_PLACEHOLDER = "[hidden]"

KNOWN_WEBSITE_NAMES = frozenset({
    "gamdom", "stake", "rollbit", "roobet", "duelbits", "shuffle", "bc.game", "bcgame",
    "packdraw", "hypedrop", "cases", "clash.gg", "clashgg", "csgoroll", "csgopolygon",
    "csgoempire", "lootbox", "datdrop", "keydrop", "farmskins", "hellcase", "csgoluck",
    "skinclub", "dmarket", "gameboost", "cscase", "skinhub", "csgo500", "wtfskins",
    "skinbaron", "skinport", "bitsler", "primedice", "bitskins", "csfloat", "clash",
    "leaderboard", "leaderboards", "rewards", "affiliates", "sponsored",
    "paxgambles", "wrewards", "devlrewards", "goatgambles", "betjuicy",
    "elliotrewards", "crunchyrewards", "augustrewards", "scrapesgambles",
})

_DOMAIN_PATTERNS = [
    re.compile(r"\.(com|gg|io|net|org|co)$", re.IGNORECASE),
    re.compile(r"^www\.", re.IGNORECASE),
    re.compile(r"^https?://", re.IGNORECASE),
]

AGGREGATE_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"^total$",
        r"^total\s+(prize|pool|wager|wagered|amount|bonus)",
        r"^(sum|average|volume|duration|ending|remaining|entries)$",
        r"^prize\s*pool$",
        r"^grand\s*total$",
        r"^participants?$",
        r"^players?$",
        r"^current\s+(volume|total|prize)",
        r"^all\s+(participants|players|entries)",
        r"^\d+\s*(days?|hours?|minutes?|seconds?)",
        r"^time\s*(left|remaining)",
    )
]


def looks_like_website(text: str) -> bool:
    """Known site names and bare domains; e-mail-like names are real users."""
    lowered = (text or "").strip().lower()
    if lowered in KNOWN_WEBSITE_NAMES:
        return True
    if "@" in lowered:
        return False
    return any(p.search(lowered) for p in _DOMAIN_PATTERNS)


def is_aggregate_row(text: str) -> bool:
    lowered = (text or "").strip()
    return any(p.search(lowered) for p in AGGREGATE_PATTERNS)


def rejection_reason(entry: Any) -> str:
    """Empty string when *entry* is a usable player row, else why it is not."""
    username = entry.username
    check = validate_username(username)
    if not check.valid:
        return check.reason
    if looks_like_website(username):
        return "website_name_as_username"
    if is_aggregate_row(username):
        return "aggregate_row"
    if username.strip() == HIDDEN_PLACEHOLDER and not entry.wager and not entry.prize:
        return "hidden_placeholder_no_data"
    wager = entry.wager
    if not isinstance(wager, (int, float)) or math.isnan(wager) or wager < 0:
        return "invalid_wager"
    return ""


def validate_and_clean_entries(entries: Sequence[Any]) -> Tuple[List[Any], List[Dict[str, Any]]]:
    """
    Splits entries into usable rows and rejects.

    Works on anything with ``username``, ``wager`` and ``prize`` attributes
    (strategy entries and fused entries alike). Order is preserved.

    Returns:
        (cleaned, rejected) where each reject is ``{"entry": e, "reason": str}``.
    """
    cleaned, rejected = [], []
    for entry in entries:
        reason = rejection_reason(entry)
        if reason:
            logger.info(f"Rejected entry: {entry.username!r} (reason: {reason})")
            rejected.append({"entry": entry, "reason": reason})
            continue
        cleaned.append(entry)
    return cleaned, rejected
