"""Entry completeness dimension."""

from common.models import FusedResult
from common.text_utils import round_half_up
from scoring.protocols import DimensionScore, QualityDimension, ScoringContext


def _is_complete(entry) -> bool:
    return (bool(entry.rank and entry.rank > 0) and bool(entry.username)
            and entry.wager is not None and entry.prize is not None)


class EntryCompletenessDimension(QualityDimension):
    """70 x complete-entry fraction, plus up to 20 for wager and 10 for prize coverage."""

    @property
    def name(self) -> str:
        return "entry_completeness"

    @property
    def default_weight(self) -> float:
        return 0.20

    def compute(self, result: FusedResult, context: ScoringContext) -> DimensionScore:
        entries = result.entries
        if not entries:
            return DimensionScore(0)
        n = len(entries)
        base = sum(1 for e in entries if _is_complete(e)) / n * 70
        wager_bonus = sum(1 for e in entries if (e.wager or 0) > 0) / n * 20
        prize_bonus = sum(1 for e in entries if (e.prize or 0) > 0) / n * 10
        return DimensionScore(min(100, round_half_up(base + wager_bonus + prize_bonus)))
