"""DOM strategy: leaderboard rows in the static HTML, parsed with BeautifulSoup."""

import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from common.config import config
from common.logging.logger import get_logger
from common.models import ExtractionInput, LeaderboardEntry, StrategyResult
from extraction.strategies.protocols import ExtractionStrategy
from extraction.strategies.text_blocks import dedupe_by_username, parse_entry_block

logger = get_logger("strategy.dom")

# Repeated row-like containers, most specific first
ROW_SELECTORS = (
    '[class*="leaderboard"] [class*="row"]',
    '[class*="entry"]',
    '[class*="player"]',
    '[class*="rank"]',
    '[class*="row"]',
    'li',
)

MAX_ROW_TEXT = 300
_SIMPLE_USERNAME = re.compile(r"^[A-Za-z0-9_.*-]+$")


def _row_text(el: Tag) -> str:
    return el.get_text("\n", strip=True)


def rows_from_tables(soup: BeautifulSoup) -> List[List[str]]:
    """One text block per table, each block a list of row texts."""
    groups = []
    for table in soup.find_all("table"):
        rows = [_row_text(tr) for tr in table.find_all("tr") if tr.find("td")]
        if rows:
            groups.append(rows)
    return groups


def rows_from_containers(soup: BeautifulSoup) -> List[List[str]]:
    """Row texts for each selector, skipping containers that wrap other matches."""
    groups = []
    for selector in ROW_SELECTORS:
        matches = soup.select(selector)
        leaves = [el for el in matches
                  if not el.select_one(selector) and 0 < len(el.get_text(strip=True)) <= MAX_ROW_TEXT]
        if len(leaves) >= 3:
            groups.append([_row_text(el) for el in leaves])
    return groups


def parse_rows(rows: List[str], column_order: Optional[str] = None) -> List[LeaderboardEntry]:
    entries = []
    for i, text in enumerate(rows):
        entry = parse_entry_block(text, default_rank=i + 1, column_order=column_order, source="dom")
        if entry:
            entries.append(entry)
    return dedupe_by_username(entries)


def dom_confidence(entries: List[LeaderboardEntry]) -> int:
    if not entries:
        return 0
    n = len(entries)
    confidence = 40.0
    confidence += min(20.0, n * 2)
    simple = sum(1 for e in entries if 3 <= len(e.username) <= 20 and _SIMPLE_USERNAME.match(e.username))
    confidence += min(15.0, simple / n * 15)
    confidence += min(15.0, sum(1 for e in entries if e.wager > 0) / n * 15)
    confidence += min(10.0, sum(1 for e in entries if e.prize > 0) / n * 10)
    return min(95, round(confidence))


class DomStrategy(ExtractionStrategy):

    @property
    def name(self) -> str:
        return "dom"

    @property
    def priority(self) -> float:
        return 2.0

    def can_extract(self, data: ExtractionInput) -> bool:
        return data.page is not None or len(data.html or "") > config.get("strategies.dom_min_html_length")

    async def extract(self, data: ExtractionInput) -> Optional[StrategyResult]:
        html = data.html
        if not html and data.page is not None:
            html = await data.page.content()
        if not html:
            return None

        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        column_order = data.hints.column_order if data.hints else None
        best: List[LeaderboardEntry] = []
        for rows in rows_from_tables(soup) + rows_from_containers(soup):
            entries = parse_rows(rows, column_order)
            if len(entries) > len(best):
                best = entries

        if len(best) < config.get("strategies.min_entries"):
            logger.debug(f"DOM: only {len(best)} entries, not enough")
            return None

        confidence = dom_confidence(best)
        logger.info(f"DOM: {len(best)} entries (confidence {confidence})")
        return StrategyResult(
            entries=best,
            confidence=confidence,
            metadata={
                "method": "dom",
                "podiumLayout": data.hints.podium_layout if data.hints and data.hints.podium_layout else "unknown",
            },
        )
