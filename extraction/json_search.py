"""
Structural search over arbitrary JSON response bodies.

Leaderboard APIs nest their entry arrays under unpredictable keys and name
their fields inconsistently. Everything here is a pure function over plain
JSON values (dict / list / scalars): a bounded breadth-first walk locates
candidate entry arrays, and ranked synonym lists map each item onto the
username / wager / prize / rank fields.
"""

import re
from collections import deque
from typing import Any, Dict, Iterator, List, Optional, Tuple

from common.models import LeaderboardEntry, PrizeRow, ensure_sequential_ranks
from common.text_utils import clean_username, parse_amount

FIELD_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "username": (
        "username", "user", "name", "player", "nickname", "displayName",
        "display_name", "userName", "playerName", "user_name", "user.name",
        "user.username",
    ),
    "wager": (
        "wager", "wagered", "amount", "total", "bet", "volume", "totalWager",
        "total_wager", "wagerAmount", "bets", "wageredTotal", "totalWagered",
        "wagered_total", "total_wagered", "points", "gpoints", "balance",
        "score", "value", "coins", "xp", "experience", "deposited", "spent",
    ),
    "prize": (
        "prize", "reward", "payout", "winnings", "bonus", "prizeAmount",
        "prize_amount", "rewards", "rewardAmount", "payoutAmount",
        "winningsAmount", "bonusAmount", "rankPrize", "positionPrize",
        "prizeValue", "rewardValue",
    ),
    "rank": ("rank", "position", "place", "index", "pos", "placement"),
}

# Keys that usually hold the entry array, checked before any other key
CONTAINER_KEYS = (
    "leaderboard", "leaderboards", "leaders", "ranking", "rankings", "entries",
    "users", "players", "winners", "data", "results", "participants", "top",
    "list", "items", "members", "wagers",
)

SPLIT_TOP_KEYS = ("top_three", "topThree")
SPLIT_REST_KEYS = ("rest_of_users", "rest", "restOfUsers")

PRIZE_TABLE_KEYS = (
    "prizes", "prizeTable", "rewards", "payouts", "prizePool", "prize_table",
    "reward_table", "topPrizes", "top_three_prizes", "rewardTiers",
    "prizeTiers", "prizeBreakdown", "leaderboardPrizes", "prizeStructure",
)

MERGED_PRIZES_KEY = "_mergedPrizes"
MERGED_POOL_KEY = "_totalPrizePool"
PRIZE_INJECTED_KEY = "_prizeInjected"

_NUMBERED_PRIZE = re.compile(r"^prize_?(\d+)$", re.IGNORECASE)


def lookup_field(obj: Dict[str, Any], name: str) -> Any:
    """
    Looks up *name* in *obj*: exact key, case-insensitive key, then dotted path.

    Returns None when the field is absent.
    """
    if not isinstance(obj, dict):
        return None
    if name in obj:
        return obj[name]
    lowered = name.lower()
    for key, value in obj.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    if "." in name:
        value: Any = obj
        for part in name.split("."):
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value
    return None


def _candidates(field: str, overrides: Optional[Dict[str, Any]]) -> List[str]:
    names = list(FIELD_SYNONYMS.get(field, (field,)))
    learned = (overrides or {}).get(field)
    if isinstance(learned, str) and learned:
        names.insert(0, learned)
    return names


def pick_field(obj: Dict[str, Any], field: str, overrides: Optional[Dict[str, Any]] = None) -> Any:
    """
    Returns the first usable value for a semantic field.

    - username: a string of at least two characters
    - rank: a positive number
    - wager / prize: the first synonym parsing to a positive amount, else 0.0
      when any synonym is present at all

    A learned field mapping (``overrides[field]``) is tried before the synonyms.
    """
    seen_amount = False
    for name in _candidates(field, overrides):
        value = lookup_field(obj, name)
        if value is None:
            continue
        if field == "username":
            if isinstance(value, str) and len(value.strip()) >= 2:
                return value
        elif field == "rank":
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                return int(value)
            if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
                return int(value)
        else:
            if isinstance(value, (dict, list)):
                continue
            seen_amount = True
            amount = parse_amount(value)
            if amount > 0:
                return amount
    if field in ("wager", "prize") and seen_amount:
        return 0.0
    return None


def _looks_like_entries(items: List[Any]) -> bool:
    dicts = [i for i in items[:5] if isinstance(i, dict)]
    if len(items) < 2 or not dicts:
        return False
    return any(pick_field(d, "username") is not None for d in dicts)


def find_entry_arrays(value: Any, max_depth: int = 6) -> Iterator[Tuple[str, List[Any]]]:
    """
    Breadth-first search for arrays that look like leaderboard entries.

    Yields ``(path, array)`` pairs, shallowest first; at each object the
    CONTAINER_KEYS are visited before other keys. Nothing deeper than
    *max_depth* levels is inspected.
    """
    queue = deque([("", value, 0)])
    while queue:
        path, node, depth = queue.popleft()
        if depth > max_depth:
            continue
        if isinstance(node, list):
            if _looks_like_entries(node):
                yield path, node
                continue
            for i, item in enumerate(node[:20]):
                if isinstance(item, (dict, list)):
                    queue.append((f"{path}[{i}]", item, depth + 1))
        elif isinstance(node, dict):
            preferred = [k for k in CONTAINER_KEYS if k in node]
            others = [k for k in node if k not in preferred and not str(k).startswith("_")]
            for key in preferred + others:
                child = node[key]
                if isinstance(child, (dict, list)):
                    queue.append((f"{path}.{key}" if path else str(key), child, depth + 1))


def entries_from_array(items: List[Any], field_mappings: Optional[Dict[str, Any]] = None,
                       source: str = "api") -> List[LeaderboardEntry]:
    """Standardizes raw JSON items into entries, sorted and renumbered when needed."""
    entries = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        username = clean_username(pick_field(item, "username", field_mappings))
        if not username:
            continue
        rank = pick_field(item, "rank", field_mappings) or i + 1
        entries.append(LeaderboardEntry(
            rank=rank,
            username=username,
            wager=pick_field(item, "wager", field_mappings) or 0.0,
            prize=pick_field(item, "prize", field_mappings) or 0.0,
            source=source,
            prize_injected=bool(item.get(PRIZE_INJECTED_KEY)),
        ))
    return ensure_sequential_ranks(entries)


def _rows_from_value(value: Any) -> List[PrizeRow]:
    rows = []
    if isinstance(value, list):
        for i, item in enumerate(value):
            if isinstance(item, dict):
                rank = pick_field(item, "rank") or i + 1
                prize = 0.0
                for name in ("prize", "reward", "amount", "value"):
                    if item.get(name) is not None:
                        prize = parse_amount(item[name])
                        break
            else:
                rank, prize = i + 1, parse_amount(item)
            if rank >= 1:
                rows.append(PrizeRow(rank=int(rank), prize=prize))
    elif isinstance(value, dict):
        for key, prize in value.items():
            if str(key).isdigit() and int(key) > 0:
                rows.append(PrizeRow(rank=int(key), prize=parse_amount(prize)))
    return sorted(rows, key=lambda r: r.rank)


def _numbered_prizes(obj: Dict[str, Any]) -> List[PrizeRow]:
    rows = []
    for key, value in obj.items():
        match = _NUMBERED_PRIZE.match(str(key))
        if match and int(match.group(1)) > 0:
            prize = parse_amount(value)
            if prize > 0:
                rows.append(PrizeRow(rank=int(match.group(1)), prize=prize))
    extra = obj.get("additionalPrizes")
    if isinstance(extra, list):
        for item in extra:
            if not isinstance(item, dict):
                continue
            raw_rank = item.get("prizeNumber") or item.get("position") or item.get("rank") or 0
            try:
                rank = int(raw_rank)
            except (TypeError, ValueError):
                continue
            prize = parse_amount(item.get("amount") or item.get("prize") or item.get("value"))
            if rank > 0:
                rows.append(PrizeRow(rank=rank, prize=prize))
    return rows


def find_prize_table(obj: Any, max_depth: int = 3) -> Tuple[List[PrizeRow], float]:
    """
    Locates a prize table in a JSON value.

    Recognizes, in order: a table attached by the API merger, numbered
    ``prize1..N`` fields with ``additionalPrizes``, named prize arrays or
    rank-keyed maps, and finally any top-level array of 4-150 numbers.

    Returns:
        (rows sorted by rank, total prize pool or 0.0)
    """
    if not isinstance(obj, dict) or max_depth < 0:
        return [], 0.0

    total = parse_amount(obj.get(MERGED_POOL_KEY) or obj.get("totalPrizePool")
                         or obj.get("total_prize_pool"))

    merged = obj.get(MERGED_PRIZES_KEY)
    if isinstance(merged, list) and merged:
        return _rows_from_value(merged), total

    numbered = _numbered_prizes(obj)
    if numbered:
        by_rank = {}
        for row in numbered:
            if row.rank not in by_rank or by_rank[row.rank].prize < row.prize:
                by_rank[row.rank] = row
        return sorted(by_rank.values(), key=lambda r: r.rank), total

    for key in PRIZE_TABLE_KEYS:
        value = obj.get(key)
        if isinstance(value, (list, dict)):
            rows = _rows_from_value(value)
            if rows:
                return rows, total

    for value in obj.values():
        if (isinstance(value, list) and 4 <= len(value) <= 150
                and all(isinstance(v, (int, float)) and not isinstance(v, bool) and v >= 0 for v in value)):
            return _rows_from_value(value), total

    for key, value in obj.items():
        if isinstance(value, dict):
            rows, nested_total = find_prize_table(value, max_depth - 1)
            if rows:
                return rows, max(total, nested_total)
    return [], total


def prize_table_from_entries(entries: List[LeaderboardEntry]) -> List[PrizeRow]:
    """Rows for entries that carry a positive prize only."""
    rows = [PrizeRow(rank=e.rank, prize=e.prize) for e in entries if e.rank >= 1 and e.prize > 0]
    return sorted(rows, key=lambda r: r.rank)


def merge_prize_tables(from_data: List[PrizeRow], from_entries: List[PrizeRow]) -> List[PrizeRow]:
    """Combines two tables rank by rank, preferring non-zero per-entry prizes."""
    if not from_entries:
        return list(from_data)
    if not from_data:
        return list(from_entries)
    data_by_rank = {r.rank: r.prize for r in from_data}
    entry_by_rank = {r.rank: r.prize for r in from_entries}
    max_rank = max(max(data_by_rank), max(entry_by_rank))
    merged = []
    for rank in range(1, max_rank + 1):
        prize_e = entry_by_rank.get(rank, 0.0)
        prize_d = data_by_rank.get(rank, 0.0)
        merged.append(PrizeRow(rank=rank, prize=prize_e if prize_e > 0 else prize_d))
    return merged


def split_format_entries(obj: Dict[str, Any], field_mappings: Optional[Dict[str, Any]] = None
                         ) -> Optional[List[LeaderboardEntry]]:
    """Handles ``{top_three: [...], rest_of_users: [...]}`` style bodies."""
    top_key = next((k for k in SPLIT_TOP_KEYS if isinstance(obj.get(k), list)), None)
    rest_key = next((k for k in SPLIT_REST_KEYS if isinstance(obj.get(k), list)), None)
    if not top_key or not rest_key:
        return None
    top = entries_from_array(obj[top_key], field_mappings)
    rest = entries_from_array(obj[rest_key], field_mappings)
    for entry in rest:
        entry.rank += len(top)
    combined = top + rest
    return combined if len(combined) >= 2 else None


def find_leaderboard(data: Any, field_mappings: Optional[Dict[str, Any]] = None,
                     max_depth: int = 6) -> Optional[Tuple[List[LeaderboardEntry], List[PrizeRow], float]]:
    """
    Finds the leaderboard in one response body.

    Returns:
        (entries, prizes, total_prize_pool), or None when no array with at
        least two usable entries exists within *max_depth*.
    """
    if data is None:
        return None

    entries = None
    if isinstance(data, dict):
        entries = split_format_entries(data, field_mappings)
    if entries is None:
        for _path, array in find_entry_arrays(data, max_depth):
            candidate = entries_from_array(array, field_mappings)
            if len(candidate) >= 2:
                entries = candidate
                break
    if not entries:
        return None

    rows, total = find_prize_table(data)
    prizes = merge_prize_tables(rows, prize_table_from_entries(entries))
    return entries, prizes, total


def score_leaderboard_quality(entries: List[LeaderboardEntry]) -> int:
    """Heuristic 0-100 score used to pick the best of several API responses."""
    if not entries:
        return 0
    n = len(entries)
    score = n * 2.0
    if all(e.username and len(e.username) >= 2 for e in entries):
        score += 20
    with_wager = sum(1 for e in entries if e.wager > 0)
    score += min(20.0, with_wager / n * 20)
    with_prize = sum(1 for e in entries if e.prize > 0)
    score += min(15.0, with_prize / n * 15)
    if all(e.rank == i + 1 for i, e in enumerate(entries)):
        score += 15
    return min(100, round(score))
