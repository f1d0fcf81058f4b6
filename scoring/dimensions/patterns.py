"""Learned pattern match dimension."""

from common.models import FusedResult
from scoring.protocols import DimensionScore, QualityDimension, ScoringContext

BASELINE = 50


class LearnedPatternMatchDimension(QualityDimension):
    """Compares method and entry count against the site's learned profile."""

    @property
    def name(self) -> str:
        return "learned_pattern_match"

    @property
    def default_weight(self) -> float:
        return 0.10

    def compute(self, result: FusedResult, context: ScoringContext) -> DimensionScore:
        patterns = context.learned_patterns
        if patterns is None:
            return DimensionScore(BASELINE)

        score = BASELINE
        if patterns.preferred_source:
            score += 30 if result.extraction_method == patterns.preferred_source else -10

        if patterns.expected_entries:
            diff = abs(len(result.entries) - patterns.expected_entries)
            if diff == 0:
                score += 20
            elif diff <= 3:
                score += 10
            elif diff > 10:
                score -= 10

        return DimensionScore(max(0, min(100, score)))
