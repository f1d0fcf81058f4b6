"""
API response pre-processing.

Sites often split one leaderboard across several network calls (users in
one, prizes in another, pages 1..N) and also load unrelated leaderboards or
past periods on the same page. merge_api_responses() reduces the captured
responses to the ones that describe the current leaderboard, merged.
"""

import copy
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from common.logging.logger import get_logger
from common.models import RawJsonResponse
from extraction.json_search import (
    CONTAINER_KEYS,
    MERGED_POOL_KEY,
    MERGED_PRIZES_KEY,
    PRIZE_INJECTED_KEY,
    find_entry_arrays,
    find_prize_table,
    lookup_field,
)

logger = get_logger("api_merger")

RESPONSE_USERS = "users"
RESPONSE_PRIZES = "prizes"
RESPONSE_COMBINED = "combined"
RESPONSE_UNKNOWN = "unknown"

URL_PATTERNS = {
    RESPONSE_USERS: [
        re.compile(p, re.IGNORECASE) for p in (
            r"leaderboard.*users", r"leaderboard.*entries", r"leaderboard.*leaders",
            r"leaderboard.*ranking", r"leaderboard.*participants", r"[?&]ranking",
            r"/players\b", r"/entries\b", r"\bld-leaders\b", r"leaders\?.*viewState",
        )
    ],
    RESPONSE_PRIZES: [
        re.compile(p, re.IGNORECASE) for p in (
            r"leaderboard.*prizes", r"leaderboard-info\?", r"/prize.*pool",
            r"/prize.*table", r"/payouts\b", r"/rewards\b(?!\.)",
        )
    ],
    RESPONSE_COMBINED: [
        re.compile(p, re.IGNORECASE) for p in (
            r"leaderboard/data", r"leaderboard/full", r"leaderboard/current", r"leaderboard$",
        )
    ],
}

HISTORICAL_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"past-winners", r"previous-leaderboard", r"history", r"archived",
        r"\byear=\d{4}.*month=", r"\bmonth=\d+.*year=\d{4}", r"past-results",
        r"old-leaderboard", r"finished-leaderboard", r"list-winner",
    )
]

PAGINATION_PARAMS = frozenset({"page", "offset", "skip", "cursor", "limit", "per_page", "pagesize", "size"})

_USERNAME_KEYS = ("username", "user", "name", "player", "displayname", "display_name")
_WAGER_KEYS = ("wager", "wagered", "amount", "total", "bet", "wageredtotal", "totalwagered", "points", "gpoints")
_PRIZE_KEYS = ("prize", "reward", "payout", "winnings", "bonus", "prizeamount")
_RANK_KEYS = ("rank", "position", "place", "index", "pos")
_METADATA_KEYS = ("totalPrizePool", "additionalPrizes", "prizeCount", "startDate", "endDate", "durationDays")
_NUMBERED_PRIZE = re.compile(r"^prize\d+$", re.IGNORECASE)


def is_historical_url(url: Optional[str]) -> bool:
    """True when the URL points at past-period leaderboard data."""
    if not url:
        return False
    return any(p.search(url) for p in HISTORICAL_PATTERNS)


def mentions_other_leaderboard(url: Optional[str], site_name: str, known_keywords: Iterable[str]) -> Optional[str]:
    """
    Returns the foreign keyword when *url* names a different known leaderboard.

    Keywords shorter than three characters and the current site itself are
    ignored; a keyword matches only as a path segment, suffix, or query value.
    """
    if not url or not site_name:
        return None
    site = site_name.lower()
    lowered = url.lower()
    for keyword in known_keywords:
        kw = (keyword or "").lower()
        if len(kw) < 3 or kw == site:
            continue
        k = re.escape(kw)
        patterns = (
            rf"[/\-_]{k}[/\-_]",
            rf"[/\-_]{k}$",
            rf"[/\-_]{k}[?&]",
            rf"={k}(&|$)",
        )
        if any(re.search(p, lowered) for p in patterns):
            return kw
    return None


def _analyze_entry_array(items: List[Any]) -> str:
    has_user = has_wager = has_prize = has_rank = False
    for item in items[:5]:
        if not isinstance(item, dict):
            continue
        keys = {str(k).lower() for k in item}
        has_user = has_user or any(k in keys for k in _USERNAME_KEYS)
        has_wager = has_wager or any(k in keys for k in _WAGER_KEYS)
        has_prize = has_prize or any(k in keys for k in _PRIZE_KEYS)
        has_rank = has_rank or any(k in keys for k in _RANK_KEYS)

    if has_user and (has_wager or has_rank):
        return RESPONSE_COMBINED if has_prize else RESPONSE_USERS
    if has_prize and has_rank:
        return RESPONSE_PRIZES
    if has_user:
        return RESPONSE_USERS
    if has_prize:
        return RESPONSE_PRIZES
    return RESPONSE_UNKNOWN


def _is_leaderboard_metadata(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    numbered = any(_NUMBERED_PRIZE.match(str(k)) for k in data)
    has_state = data.get("state") in ("ACTIVE", "FINISHED", "PENDING")
    has_meta = any(data.get(k) is not None for k in _METADATA_KEYS)
    return numbered or (has_meta and has_state)


def analyze_data_content(data: Any, depth: int = 0) -> str:
    """Classifies a body by structure alone."""
    if depth > 4 or not data:
        return RESPONSE_UNKNOWN
    if isinstance(data, list):
        return _analyze_entry_array(data)
    if not isinstance(data, dict):
        return RESPONSE_UNKNOWN

    for key in ("leaderboard", "entries", "users", "players", "ranking", "leaders", "data"):
        value = data.get(key)
        if isinstance(value, list) and value:
            kind = _analyze_entry_array(value)
            if kind in (RESPONSE_USERS, RESPONSE_COMBINED):
                return kind

    if _is_leaderboard_metadata(data.get("data")) or _is_leaderboard_metadata(data):
        return RESPONSE_PRIZES

    for key in ("prizes", "prizeTable", "rewards", "payouts", "prizePool", "prize_table",
                "additionalPrizes", "additional_prizes", "totalPrizePool", "total_prize_pool"):
        if isinstance(data.get(key), (list, dict)):
            return RESPONSE_PRIZES

    for value in data.values():
        if isinstance(value, dict):
            kind = analyze_data_content(value, depth + 1)
            if kind != RESPONSE_UNKNOWN:
                return kind
    return RESPONSE_UNKNOWN


def detect_response_type(response: RawJsonResponse) -> str:
    """URL patterns first (prizes, users, combined), then structure."""
    if not response.data:
        return RESPONSE_UNKNOWN
    url = response.url or ""
    for kind in (RESPONSE_PRIZES, RESPONSE_USERS, RESPONSE_COMBINED):
        if any(p.search(url) for p in URL_PATTERNS[kind]):
            return kind
    return analyze_data_content(response.data)


def strip_pagination(url: str) -> str:
    """Drops pagination query parameters so pages of one endpoint compare equal."""
    parts = urlsplit(url or "")
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
             if k.lower() not in PAGINATION_PARAMS]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), ""))


def _dedupe(responses: Sequence[RawJsonResponse]) -> List[RawJsonResponse]:
    seen = set()
    unique = []
    for response in responses:
        try:
            body = json.dumps(response.data, sort_keys=True, default=str)
        except (TypeError, ValueError):
            body = repr(response.data)
        signature = (response.url, body)
        if signature in seen:
            continue
        seen.add(signature)
        unique.append(response)
    return unique


def _first_entry_array(data: Any) -> Optional[List[Any]]:
    for _path, array in find_entry_arrays(data):
        return array
    return None


def _with_entry_array(data: Any, entries: List[Any]) -> Any:
    """Deep copy of *data* with its first entry array replaced by *entries*."""
    if isinstance(data, list):
        return list(entries)
    merged = copy.deepcopy(data)
    target = _first_entry_array(merged)
    if target is None:
        return {"leaderboard": list(entries)}
    target[:] = entries
    return merged


def _latest_per_url(group: List[RawJsonResponse]) -> List[RawJsonResponse]:
    """One response per raw URL: re-polls of the same page keep the newest body."""
    latest: Dict[str, RawJsonResponse] = {}
    for response in group:
        current = latest.get(response.url)
        if current is None or (response.timestamp or 0) >= (current.timestamp or 0):
            latest[response.url] = response
    return list(latest.values())


def merge_paginated(responses: List[RawJsonResponse]) -> List[RawJsonResponse]:
    """
    Concatenates the entry arrays of responses that differ only by page params.

    Responses captured from the identical URL are not pages: the newest one
    by timestamp replaces the others. The merged response keeps the first
    page's URL and records the URLs it was built from in ``merged_from``.
    """
    groups: Dict[str, List[RawJsonResponse]] = {}
    for response in responses:
        groups.setdefault(strip_pagination(response.url), []).append(response)

    merged = []
    for base, group in groups.items():
        pages = _latest_per_url(group)
        if len(pages) < len(group):
            logger.info(f"Dropped {len(group) - len(pages)} stale re-polled responses from {base[-60:]}")
        if len(pages) == 1:
            merged.append(pages[0])
            continue
        entries: List[Any] = []
        for response in pages:
            entries.extend(_first_entry_array(response.data) or [])
        logger.info(f"Merged {len(pages)} paginated responses from {base[-60:]} ({len(entries)} entries)")
        merged.append(RawJsonResponse(
            url=pages[0].url,
            data=_with_entry_array(pages[0].data, entries),
            timestamp=pages[0].timestamp,
            merged_from=tuple(r.url for r in pages),
        ))
    return merged


def _entry_rank(item: Dict[str, Any]) -> Optional[int]:
    for key in ("rank", "position", "place"):
        value = lookup_field(item, key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
    return None


def inject_prizes(users: List[RawJsonResponse], prize_responses: List[RawJsonResponse]) -> List[RawJsonResponse]:
    """Attaches the combined prize table of *prize_responses* to each user response."""
    by_rank: Dict[int, float] = {}
    total_pool = 0.0
    for response in prize_responses:
        rows, pool = find_prize_table(response.data if isinstance(response.data, dict)
                                      else {"prizes": response.data})
        total_pool = max(total_pool, pool)
        for row in rows:
            if row.rank not in by_rank or by_rank[row.rank] < row.prize:
                by_rank[row.rank] = row.prize

    if not by_rank:
        return users

    table = [{"rank": rank, "prize": prize} for rank, prize in sorted(by_rank.items())]
    merged = []
    for response in users:
        data = copy.deepcopy(response.data)
        if isinstance(data, list):
            data = {"leaderboard": data}
        injected = 0
        for key in CONTAINER_KEYS:
            value = data.get(key) if isinstance(data, dict) else None
            if not isinstance(value, list):
                continue
            for item in value:
                if isinstance(item, dict):
                    rank = _entry_rank(item)
                    if rank in by_rank:
                        item["prize"] = by_rank[rank]
                        item[PRIZE_INJECTED_KEY] = True
                        injected += 1
        if injected == 0:
            array = _first_entry_array(data)
            for i, item in enumerate(array or []):
                if isinstance(item, dict):
                    rank = _entry_rank(item) or i + 1
                    if rank in by_rank:
                        item["prize"] = by_rank[rank]
                        item[PRIZE_INJECTED_KEY] = True
                        injected += 1
        data[MERGED_PRIZES_KEY] = table
        if total_pool > 0:
            data[MERGED_POOL_KEY] = total_pool
        logger.info(f"Injected {injected} prizes into {response.url[-60:]}")
        merged.append(RawJsonResponse(
            url=response.url,
            data=data,
            timestamp=response.timestamp,
            merged_from=(response.url,) + tuple(r.url for r in prize_responses),
        ))
    return merged


def merge_api_responses(
    responses: Sequence[RawJsonResponse],
    site_name: Optional[str] = None,
    known_keywords: Iterable[str] = (),
) -> List[RawJsonResponse]:
    """
    Reduces captured JSON responses to the ones describing the current leaderboard.

    Args:
        responses: Raw JSON bodies captured while the page loaded.
        site_name: Leaderboard being scraped, used with *known_keywords*.
        known_keywords: Names of other leaderboards hosted by the same site.

    Returns:
        New list of responses; the input is not modified.
    """
    if not responses:
        return []

    current = []
    for response in responses:
        if is_historical_url(response.url):
            logger.info(f"Dropping historical API response: {(response.url or 'unknown')[-80:]}")
            continue
        current.append(response)

    keywords = list(known_keywords or ())
    if site_name and keywords:
        kept = []
        for response in current:
            foreign = mentions_other_leaderboard(response.url, site_name, keywords)
            if foreign:
                logger.info(f"Dropping {response.url[-60:]}: belongs to '{foreign}', scraping '{site_name}'")
                continue
            kept.append(response)
        current = kept

    current = _dedupe(current)
    if len(current) <= 1:
        return current

    categorized: Dict[str, List[RawJsonResponse]] = {
        RESPONSE_USERS: [], RESPONSE_PRIZES: [], RESPONSE_COMBINED: [], RESPONSE_UNKNOWN: [],
    }
    for response in current:
        kind = detect_response_type(response)
        categorized[kind].append(response)
        logger.debug(f"Response {(response.url or 'unknown')[-50:]} categorized as {kind}")

    if categorized[RESPONSE_COMBINED]:
        return merge_paginated(categorized[RESPONSE_COMBINED])
    users = merge_paginated(categorized[RESPONSE_USERS])
    if users and categorized[RESPONSE_PRIZES]:
        return inject_prizes(users, categorized[RESPONSE_PRIZES])
    if users:
        return users
    if categorized[RESPONSE_PRIZES]:
        return categorized[RESPONSE_PRIZES]
    return categorized[RESPONSE_UNKNOWN]
