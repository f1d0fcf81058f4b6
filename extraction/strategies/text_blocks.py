"""Parsing of free-text leaderboard rows shared by the DOM, geometric and OCR strategies."""

import re
from typing import List, Optional

from common.models import LeaderboardEntry
from common.text_utils import clean_username, parse_amount, validate_username

_STRONG_HEADER = (
    "current volume", "total wagered", "community leaderboard",
    "prize distribution", "total participants",
)
_WEAK_HEADER = (
    "prize pool", "duration", "monthly", "weekly", "daily", "starts", "ends",
    "ending in", "time left", "countdown",
)
_LABELS = frozenset({"WAGERED", "WAGER", "REWARD", "PRIZE", "BONUS", "ACTIVE", "STATUS", "INACTIVE"})

RANK_TOKEN = re.compile(r"^#?(\d{1,3})(?:st|nd|rd|th)?\.?$", re.IGNORECASE)
AMOUNT_TOKEN = re.compile(
    r"^(?:[$€£◆♦]\s*)?[\d][\d,.]*\s*(?:[kmb]|coins?|credits?|points?)?$", re.IGNORECASE
)


_CURRENCY_WORDS = frozenset({"$", "€", "£", "◆", "♦"})
_UNIT_WORDS = frozenset({"coin", "coins", "credit", "credits", "point", "points", "k", "m"})


def _join_currency(words: List[str]) -> List[str]:
    """Glues detached symbols and units onto their number ("$ 1,234" -> "$1,234")."""
    joined: List[str] = []
    for word in words:
        if joined and joined[-1] in _CURRENCY_WORDS:
            joined[-1] += word
        elif joined and word.lower() in _UNIT_WORDS and AMOUNT_TOKEN.match(joined[-1]):
            joined[-1] += word
        else:
            joined.append(word)
    return joined


def _is_label(text: str) -> bool:
    return text.endswith(":") or text.rstrip(":").upper() in _LABELS


def is_header_block(text: str) -> bool:
    """True for page banners ("Total wagered", "Ends in ...") rather than rows."""
    lowered = text.lower()
    if any(marker in lowered for marker in _STRONG_HEADER):
        return True
    return sum(1 for marker in _WEAK_HEADER if marker in lowered) >= 3


def parse_entry_block(text: Optional[str], default_rank: int, column_order: Optional[str] = None,
                      source: str = "") -> Optional[LeaderboardEntry]:
    """
    Parses one visual row or card into an entry.

    Lines are classified as rank tokens, amounts, or username candidates.
    Without a column hint the largest amount is the wager and the second
    largest the prize.
    """
    if not text or is_header_block(text):
        return None

    username = None
    rank = default_rank
    amounts: List[float] = []
    for line in text.splitlines():
        words = _join_currency(line.split())
        if not words or _is_label(" ".join(words)):
            continue
        rank_match = RANK_TOKEN.match(words[0])
        if rank_match and int(rank_match.group(1)) <= 200 and not amounts and username is None:
            rank = int(rank_match.group(1))
            words = words[1:]
        # Trailing amount columns ("name $1,234 $50"), kept in reading order
        tail: List[float] = []
        while words and AMOUNT_TOKEN.match(words[-1]):
            tail.insert(0, parse_amount(words.pop()))
        amounts.extend(a for a in tail if a > 0)
        if words and username is None:
            cleaned = clean_username(" ".join(words))
            if cleaned and not _is_label(cleaned) and validate_username(cleaned).valid:
                username = cleaned

    if not username:
        return None
    return LeaderboardEntry(rank=rank, username=username, source=source,
                            **assign_amounts(amounts, column_order))


def assign_amounts(amounts: List[float], column_order: Optional[str]) -> dict:
    """Maps the amounts found on one row onto wager and prize."""
    if not amounts:
        return {"wager": 0.0, "prize": 0.0}
    if column_order == "wager_only":
        return {"wager": max(amounts), "prize": 0.0}
    if len(amounts) >= 2 and column_order == "prize_before_wager":
        return {"wager": amounts[1], "prize": amounts[0]}
    if len(amounts) >= 2 and column_order == "wager_before_prize":
        return {"wager": amounts[0], "prize": amounts[1]}
    ordered = sorted(amounts, reverse=True)
    return {"wager": ordered[0], "prize": ordered[1] if len(ordered) > 1 else 0.0}


def dedupe_by_username(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """
    Collapses repeated usernames, preferring the copy that carries a wager.

    Several copies with distinct wagers (rounded to 10) are kept: masked
    names like "Anonymous" can belong to different players.
    """
    groups = {}
    for entry in entries:
        groups.setdefault(entry.username.lower(), []).append(entry)

    unique = []
    for group in groups.values():
        with_wager = [e for e in group if e.wager > 0]
        if len(with_wager) <= 1:
            unique.append(with_wager[0] if with_wager else group[0])
            continue
        by_wager = {}
        for entry in with_wager:
            by_wager.setdefault(round(entry.wager / 10) * 10, entry)
        unique.extend(by_wager.values())
    return sorted(unique, key=lambda e: e.rank or 999)
