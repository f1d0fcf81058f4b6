"""
Source-ordering policies.

Three independent policies that used to share one "priority" number:

- execution_order(): scheduling hint only, never a gate
- tie_break_rank() / pick_best_source(): fixed comparator for equal confidences
- ExtractionMode: fusion (all strategies) vs legacy first-success mode
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional

SOURCE_TIE_BREAK_ORDER = ("api", "markdown", "dom", "geometric", "ocr")


class ExtractionMode(str, Enum):
    FUSION = "fusion"
    LEGACY = "legacy"

    @classmethod
    def parse(cls, value) -> "ExtractionMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.FUSION


def execution_order(strategies: Iterable) -> List:
    """Strategies sorted by priority; insertion order among equals."""
    return sorted(strategies, key=lambda s: s.priority)


def tie_break_rank(name: str) -> int:
    """Position in the fixed source order; unknown names sort last."""
    try:
        return SOURCE_TIE_BREAK_ORDER.index(name)
    except ValueError:
        return len(SOURCE_TIE_BREAK_ORDER)


def pick_best_source(confidences: Dict[str, float]) -> Optional[str]:
    """Highest confidence wins, ties resolved by SOURCE_TIE_BREAK_ORDER."""
    if not confidences:
        return None
    return min(confidences, key=lambda name: (-confidences[name], tie_break_rank(name), name))
