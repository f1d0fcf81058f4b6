"""Historical consistency dimension: username overlap with the previous extraction."""

from common.models import FusedResult
from common.text_utils import normalize_username
from scoring.protocols import DimensionScore, QualityDimension, ScoringContext

NEUTRAL = 70


def _names(entries) -> set:
    names = set()
    for e in entries:
        username = e["username"] if isinstance(e, dict) else e.username
        normalized = normalize_username(username)
        if normalized:
            names.add(normalized)
    return names


def overlap_score(overlap: float) -> int:
    """Some churn between runs is healthy; near-total or near-zero overlap is not."""
    if 0.5 <= overlap <= 0.9:
        return 90
    if 0.3 <= overlap < 0.5:
        return 70
    if overlap > 0.9:
        return 60
    return 40


class HistoricalConsistencyDimension(QualityDimension):

    @property
    def name(self) -> str:
        return "historical_consistency"

    @property
    def default_weight(self) -> float:
        return 0.15

    def compute(self, result: FusedResult, context: ScoringContext) -> DimensionScore:
        if not context.previous_entries:
            return DimensionScore(NEUTRAL)
        current = _names(result.entries)
        previous = _names(context.previous_entries)
        smaller = min(len(current), len(previous))
        if smaller == 0:
            return DimensionScore(overlap_score(0.0))
        return DimensionScore(overlap_score(len(current & previous) / smaller))
