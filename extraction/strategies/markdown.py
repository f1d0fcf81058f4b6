"""
Markdown strategy: leaderboards in the page's markdown rendering.

Handles three layouts:
- pipe tables (``| Rank | Player | Wagered | Prize |``)
- ranked list lines (``#4 foxzaayy $30 783,116``)
- podium cards (``Z****o`` / ``Wagered: $285,750`` / ``$2,000``)
"""

import re
from typing import List, Optional

from common.config import config
from common.logging.logger import get_logger
from common.models import ExtractionInput, LeaderboardEntry, StrategyResult
from common.text_utils import clean_username, parse_amount, validate_username
from extraction.strategies.protocols import ExtractionStrategy
from extraction.strategies.text_blocks import AMOUNT_TOKEN, dedupe_by_username, parse_entry_block

logger = get_logger("strategy.markdown")

_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_BOLD = re.compile(r"(\*\*|__)([^*_]+?)\1")
_HEADING = re.compile(r"^#{1,6}\s+")
_LIST_LINE = re.compile(r"^(?:[-*+]\s+)?#?\d{1,3}(?:st|nd|rd|th)?[.)]?\s+\S")
_WAGER_LINE = re.compile(r"\bwager(?:ed)?\b\s*:?\s*(.+)$", re.IGNORECASE)

_HEADER_NAMES = {
    "rank": "rank", "#": "rank", "pos": "rank", "position": "rank", "place": "rank",
    "player": "username", "user": "username", "username": "username", "name": "username",
    "wager": "wager", "wagered": "wager", "amount": "wager", "bet": "wager", "total": "wager",
    "prize": "prize", "reward": "prize", "bonus": "prize", "win": "prize", "winnings": "prize",
}


def clean_markdown_line(line: str) -> str:
    """Removes images, links, bold markers and heading hashes, keeping masked names intact."""
    line = _IMAGE.sub(" ", line)
    line = _LINK.sub(r"\1", line)
    line = line.replace("\\*", "*")
    line = _BOLD.sub(r"\2", line)
    line = _HEADING.sub("", line.strip())
    return line.strip()


def _rank_from_cell(cell: str) -> int:
    match = re.search(r"(\d+)", cell)
    return int(match.group(1)) if match else 0


def parse_tables(markdown: str) -> List[LeaderboardEntry]:
    entries = []
    headers: List[str] = []
    in_table = False
    next_rank = 1
    for raw in markdown.splitlines():
        if "|" not in raw:
            in_table, headers = False, []
            continue
        if re.match(r"^[\s\-:|]+$", raw):
            continue
        cells = [clean_markdown_line(c) for c in raw.split("|")]
        cells = [c for c in cells if c]
        if len(cells) < 2:
            continue
        mapped = [_HEADER_NAMES.get(c.lower()) for c in cells]
        if not in_table and sum(1 for m in mapped if m) >= 2:
            headers, in_table = [m or "" for m in mapped], True
            continue
        if len(cells) < 3:
            continue

        if "username" in headers:
            fields = {h: c for h, c in zip(headers, cells) if h}
        else:
            fields = dict(zip(("rank", "username", "wager", "prize"), cells))
        username = clean_username(fields.get("username"))
        wager = parse_amount(fields.get("wager"))
        if not username or len(username) < 2 or wager <= 0:
            continue
        rank = _rank_from_cell(fields.get("rank", "")) or next_rank
        next_rank += 1
        entries.append(LeaderboardEntry(rank=rank, username=username, wager=wager,
                                        prize=parse_amount(fields.get("prize")), source="markdown"))
    return entries


def parse_list(markdown: str, column_order: Optional[str] = None) -> List[LeaderboardEntry]:
    entries = []
    for raw in markdown.splitlines():
        if "|" in raw:
            continue
        line = clean_markdown_line(raw)
        if not _LIST_LINE.match(line):
            continue
        line = re.sub(r"^[-*+]\s+", "", line)
        entry = parse_entry_block(line, default_rank=0, column_order=column_order, source="markdown")
        if entry and entry.rank > 0 and entry.wager > 0:
            entries.append(entry)
    return entries


def _is_amount_line(line: str) -> bool:
    return bool(AMOUNT_TOKEN.match(line.replace(" ", "")))


def parse_podium(markdown: str, podium_layout: Optional[str] = None) -> List[LeaderboardEntry]:
    """Finds up to three ``name / Wagered: $X / $prize`` cards and ranks them."""
    lines = [clean_markdown_line(l) for l in markdown.splitlines()]
    lines = [l for l in lines if l and "|" not in l]
    cards = []
    for i, line in enumerate(lines):
        match = _WAGER_LINE.search(line)
        if not match:
            continue
        wager = parse_amount(match.group(1))
        if wager <= 0:
            continue
        username = None
        for back in range(i - 1, max(-1, i - 3), -1):
            candidate = clean_username(lines[back])
            if candidate and not _is_amount_line(lines[back]) and validate_username(candidate).valid:
                username = candidate
                break
        if not username:
            continue
        prize = 0.0
        for ahead in range(i + 1, min(len(lines), i + 3)):
            if _is_amount_line(lines[ahead]):
                prize = parse_amount(lines[ahead])
                break
        cards.append(LeaderboardEntry(rank=0, username=username, wager=wager, prize=prize,
                                      source="markdown"))
        if len(cards) == 3:
            break

    if podium_layout == "center_first" and len(cards) == 3:
        order = [cards[1], cards[0], cards[2]]
    elif podium_layout == "left_to_right":
        order = list(cards)
    else:
        order = sorted(cards, key=lambda e: (-e.prize, -e.wager))
    for rank, entry in enumerate(order, start=1):
        entry.rank = rank
    return order


def markdown_confidence(entries: List[LeaderboardEntry]) -> int:
    if not entries:
        return 0
    n = len(entries)
    confidence = 50.0
    confidence += min(15.0, n * 1.5)
    valid_names = sum(1 for e in entries
                      if 3 <= len(e.username) <= 30 and re.search(r"[A-Za-z]", e.username))
    confidence += min(10.0, valid_names / n * 10)
    confidence += min(15.0, sum(1 for e in entries if e.wager > 0) / n * 15)
    confidence += min(5.0, sum(1 for e in entries if e.prize > 0) / n * 5)
    ranks = [e.rank for e in entries]
    if all(b == a + 1 for a, b in zip(ranks, ranks[1:])):
        confidence += 5
    return min(90, round(confidence))


class MarkdownStrategy(ExtractionStrategy):

    @property
    def name(self) -> str:
        return "markdown"

    @property
    def priority(self) -> float:
        return 1.5

    def can_extract(self, data: ExtractionInput) -> bool:
        return len(data.markdown or "") > config.get("strategies.markdown_min_length")

    async def extract(self, data: ExtractionInput) -> Optional[StrategyResult]:
        hints = data.hints
        column_order = hints.column_order if hints else None
        podium_layout = hints.podium_layout if hints else None

        found = {
            "tables": parse_tables(data.markdown),
            "list": parse_list(data.markdown, column_order),
            "podium": parse_podium(data.markdown, podium_layout),
        }
        for method, entries in found.items():
            if entries:
                logger.debug(f"markdown {method}: {len(entries)} entries")

        combined = found["podium"] + found["tables"] + found["list"]
        unique = dedupe_by_username(combined)
        if len(unique) < config.get("strategies.min_entries"):
            logger.debug(f"markdown: only {len(unique)} entries, not enough")
            return None

        confidence = markdown_confidence(unique)
        logger.info(f"Markdown: {len(unique)} entries (confidence {confidence})")
        return StrategyResult(
            entries=unique,
            confidence=confidence,
            metadata={
                "totalParsed": len(combined),
                "uniqueEntries": len(unique),
                "methodsUsed": [m for m, e in found.items() if e],
            },
        )
