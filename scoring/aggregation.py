"""Score aggregation."""

from typing import Dict

from common.text_utils import round_half_up
from scoring.protocols import ScoreAggregator


class WeightedSumAggregator(ScoreAggregator):
    """Plain weighted sum; the built-in weights already sum to 1.0."""

    def aggregate(self, scores: Dict[str, int], weights: Dict[str, float]) -> int:
        total = 0.0
        for name, score in scores.items():
            if name in weights:
                total += score * weights[name]
        return max(0, min(100, round_half_up(total)))
