"""OCR strategy: Tesseract over a full-page screenshot. Deferred and least trusted."""

import asyncio
import io
import re
from typing import Callable, List, Optional

import pytesseract
from PIL import Image

from common.config import config
from common.errors import StrategyError
from common.logging.logger import get_logger
from common.models import ExtractionInput, LeaderboardEntry, StrategyResult
from common.text_utils import is_ui_text, parse_amount, validate_username
from extraction.strategies.protocols import ExtractionStrategy

logger = get_logger("strategy.ocr")

_AMOUNT_LINE = re.compile(r"^[$◆♦€£]?\s*([\d,]+\.?\d*)$")
_ROW_PATTERN = re.compile(r"^(?:#?(\d+)[.)\s]+)?([a-zA-Z][a-zA-Z0-9_*.-]{2,20})\s+[$◆♦€£]?([\d,]+)")
_MIN_WAGER = 10


def recognize_text(image_bytes: bytes) -> str:
    """Runs Tesseract on PNG/JPEG bytes and returns the recognized text."""
    with Image.open(io.BytesIO(image_bytes)) as image:
        return pytesseract.image_to_string(image, lang=config.get("ocr.language"))


def _clean_ocr_username(text: str) -> str:
    cleaned = re.sub(r"^#?\d+[.)\s]+", "", text.strip())
    return re.sub(r"\s+[\d,]+$", "", cleaned).strip()


def parse_ocr_text(text: str) -> List[LeaderboardEntry]:
    """
    Pairs username lines with a wager on one of the next four lines; falls
    back to single-line ``1. name $1,234`` rows when that finds fewer than three.
    """
    lines = [l.strip() for l in (text or "").splitlines() if l.strip()]
    entries: List[LeaderboardEntry] = []
    seen = set()

    for i, line in enumerate(lines):
        if len(line) < 3 or re.match(r"^[\d,.$€£]+$", line):
            continue
        if is_ui_text(line) or not validate_username(line).valid:
            continue
        for following in lines[i + 1:i + 5]:
            match = _AMOUNT_LINE.match(following)
            if not match:
                continue
            wager = parse_amount(match.group(1))
            if wager > _MIN_WAGER and line.lower() not in seen:
                seen.add(line.lower())
                entries.append(LeaderboardEntry(rank=len(entries) + 1, username=_clean_ocr_username(line),
                                                wager=wager, source="ocr"))
                break

    if len(entries) >= 3:
        return entries

    for line in lines:
        match = _ROW_PATTERN.match(line)
        if not match:
            continue
        username = match.group(2)
        wager = parse_amount(match.group(3))
        if wager > _MIN_WAGER and username.lower() not in seen and not is_ui_text(username):
            seen.add(username.lower())
            rank = int(match.group(1)) if match.group(1) else len(entries) + 1
            entries.append(LeaderboardEntry(rank=rank, username=username, wager=wager, source="ocr"))
    return entries


class OcrStrategy(ExtractionStrategy):
    """
    Deferred: the engine only schedules it after the other strategies have
    finished, and skips it when one of them already produced a usable result.
    """

    def __init__(self, recognizer: Optional[Callable[[bytes], str]] = None):
        self._recognize = recognizer or recognize_text

    @property
    def name(self) -> str:
        return "ocr"

    @property
    def priority(self) -> float:
        return 4.0

    @property
    def deferred(self) -> bool:
        return True

    def can_extract(self, data: ExtractionInput) -> bool:
        return data.screenshot is not None or data.page is not None

    async def extract(self, data: ExtractionInput) -> Optional[StrategyResult]:
        image = data.screenshot
        if image is None:
            image = await data.page.screenshot(full_page=True)
        if not image:
            raise StrategyError(self.name, "empty screenshot")

        text = await asyncio.to_thread(self._recognize, image)
        entries = parse_ocr_text(text)
        if len(entries) < config.get("strategies.min_entries"):
            logger.debug(f"OCR: only {len(entries)} entries, not enough")
            return None

        confidence = min(60, 30 + len(entries) * 3)
        logger.info(f"OCR: {len(entries)} entries (confidence {confidence})")
        return StrategyResult(entries=entries, confidence=confidence, metadata={"method": "ocr"})
