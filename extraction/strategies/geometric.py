"""
Geometric strategy: leaderboards recognized by visual layout.

Collects the bounding box and text of candidate elements from the live page,
groups them by size similarity, then looks for a vertically stacked,
x-aligned list optionally preceded by a row of larger podium cards.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from common.config import config
from common.errors import StrategyError
from common.logging.logger import get_logger
from common.models import ExtractionInput, LeaderboardEntry, StrategyResult
from extraction.strategies.protocols import ExtractionStrategy
from extraction.strategies.text_blocks import parse_entry_block

logger = get_logger("strategy.geometric")

SIZE_TOLERANCE = 0.15
X_ALIGNMENT_TOLERANCE = 10.0

COLLECT_ELEMENTS_JS = """
() => {
  const selectors = 'li, tr, article, div, section, [class*="item"], [class*="rank"], '
    + '[class*="entry"], [class*="player"], [class*="user"], [class*="row"]';
  const results = [];
  for (const el of document.querySelectorAll(selectors)) {
    const rect = el.getBoundingClientRect();
    if (rect.width < 50 || rect.height < 20) continue;
    if (rect.width > window.innerWidth * 0.95 || rect.height > 300) continue;
    const text = (el.innerText || '').trim();
    if (text.length < 5 || text.length > 500) continue;
    results.push({x: rect.x, y: rect.y, width: rect.width, height: rect.height,
                  text: text.substring(0, 300)});
  }
  return results;
}
"""


@dataclass
class ElementBox:
    x: float
    y: float
    width: float
    height: float
    text: str

    @property
    def area(self) -> float:
        return self.width * self.height

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ElementBox":
        return cls(
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            width=float(data.get("width") or 0),
            height=float(data.get("height") or 0),
            text=str(data.get("text") or ""),
        )


@dataclass
class LayoutStructure:
    podium: List[ElementBox] = field(default_factory=list)
    rows: List[ElementBox] = field(default_factory=list)
    confidence: float = 0.0


def group_by_size(elements: List[ElementBox], tolerance: float = SIZE_TOLERANCE) -> List[List[ElementBox]]:
    """Greedy grouping against each group's first element; groups under 3 are dropped."""
    groups: List[List[ElementBox]] = []
    for el in elements:
        if el.width <= 0 or el.height <= 0:
            continue
        for group in groups:
            ref = group[0]
            if (abs(el.width - ref.width) / ref.width <= tolerance
                    and abs(el.height - ref.height) / ref.height <= tolerance):
                group.append(el)
                break
        else:
            groups.append([el])
    return [g for g in groups if len(g) >= 3]


def detect_structure(groups: List[List[ElementBox]],
                     x_tolerance: float = X_ALIGNMENT_TOLERANCE) -> Optional[LayoutStructure]:
    """Finds the podium + list layout among size-similar groups."""
    if not groups:
        return None
    groups = sorted(groups, key=len, reverse=True)

    rows: List[ElementBox] = []
    for group in groups:
        if len(group) < 5:
            continue
        avg_x = sum(el.x for el in group) / len(group)
        if all(abs(el.x - avg_x) <= x_tolerance for el in group):
            rows = sorted(group, key=lambda el: el.y)
            break

    podium: List[ElementBox] = []
    if rows:
        top_y = min(el.y for el in rows)
        areas = sorted(el.area for el in rows)
        median_area = areas[len(areas) // 2]
        for group in groups:
            if group is rows or not 2 <= len(group) <= 4:
                continue
            avg_area = sum(el.area for el in group) / len(group)
            if all(el.y < top_y for el in group) and avg_area > median_area * 1.2:
                podium = sorted(group, key=lambda el: el.x)
                break

    confidence = 0.0
    if rows:
        confidence += 0.4 + (0.2 if len(rows) >= 7 else 0.0)
    if podium:
        confidence += 0.3 + (0.1 if len(podium) == 3 else 0.0)
    return LayoutStructure(podium=podium, rows=rows, confidence=confidence)


def entries_from_structure(structure: LayoutStructure, column_order: Optional[str] = None,
                           podium_layout: Optional[str] = None) -> List[LeaderboardEntry]:
    podium = list(structure.podium[:3])
    if podium_layout == "center_first" and len(podium) == 3:
        podium = [podium[1], podium[0], podium[2]]

    entries = []
    for i, el in enumerate(podium):
        entry = parse_entry_block(el.text, i + 1, column_order, source="geometric")
        if entry:
            entries.append(entry)
    start = len(entries) + 1
    for i, el in enumerate(structure.rows):
        entry = parse_entry_block(el.text, start + i, column_order, source="geometric")
        if entry:
            entries.append(entry)
    return entries


class GeometricStrategy(ExtractionStrategy):

    @property
    def name(self) -> str:
        return "geometric"

    @property
    def priority(self) -> float:
        return 3.0

    def can_extract(self, data: ExtractionInput) -> bool:
        return data.page is not None

    async def extract(self, data: ExtractionInput) -> Optional[StrategyResult]:
        raw = await data.page.evaluate(COLLECT_ELEMENTS_JS)
        if raw is not None and not isinstance(raw, list):
            raise StrategyError(self.name, f"element collector returned {type(raw).__name__}")
        elements = [ElementBox.from_dict(r) for r in raw or []]
        if len(elements) < 5:
            logger.debug(f"geometric: {len(elements)} candidate elements, not enough")
            return None

        structure = detect_structure(group_by_size(elements))
        if structure is None or len(structure.rows) < 3:
            logger.debug("geometric: no leaderboard structure detected")
            return None

        hints = data.hints
        entries = entries_from_structure(
            structure,
            column_order=hints.column_order if hints else None,
            podium_layout=hints.podium_layout if hints else None,
        )
        if len(entries) < config.get("strategies.min_entries"):
            return None

        confidence = round(structure.confidence * 70 + 10)
        logger.info(f"Geometric: {len(entries)} entries (confidence {confidence})")
        return StrategyResult(
            entries=entries,
            confidence=confidence,
            metadata={
                "podiumCount": len(structure.podium),
                "listCount": len(structure.rows),
                "structureConfidence": structure.confidence,
            },
        )
