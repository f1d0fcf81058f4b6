"""Quality scorer pipeline: runs every dimension, aggregates, raises flags."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from common.logging.logger import get_logger
from common.models import FusedResult, QualityScoreReport
from scoring.aggregation import WeightedSumAggregator
from scoring.dimensions import BUILTIN_DIMENSIONS
from scoring.flags import identify_flags
from scoring.protocols import QualityDimension, ScoreAggregator, ScoringContext
from scoring.registry import DimensionRegistry

logger = get_logger("quality")


class QualityScorer:
    """
    Post-hoc grading of a fused result.

    Args:
        dimensions: Optional list of dimensions (defaults to BUILTIN_DIMENSIONS).
        aggregator: Optional aggregator (defaults to WeightedSumAggregator).
        weights: Optional weight overrides by dimension name.
    """

    def __init__(
        self,
        dimensions: Optional[List[QualityDimension]] = None,
        aggregator: Optional[ScoreAggregator] = None,
        weights: Optional[Dict[str, float]] = None,
    ):
        self.registry = DimensionRegistry()
        for d in (dimensions or BUILTIN_DIMENSIONS):
            self.registry.register(d)
        self.aggregator = aggregator or WeightedSumAggregator()
        self._weights = dict(weights) if weights else None

    @property
    def weights(self) -> Dict[str, float]:
        return dict(self._weights) if self._weights else self.registry.default_weights

    def score(self, result: FusedResult, context: Optional[ScoringContext] = None) -> QualityScoreReport:
        context = context or ScoringContext()
        breakdown: Dict[str, int] = {}
        anomalies = []
        for dimension in self.registry.dimensions:
            outcome = dimension.compute(result, context)
            breakdown[dimension.name] = outcome.score
            anomalies.extend(outcome.anomalies)

        weights = self.weights
        overall = self.aggregator.aggregate(breakdown, weights)
        flags, recommendations = identify_flags(breakdown, anomalies)

        logger.info(
            f"Quality score: {overall} (completeness: {breakdown.get('entry_completeness')}, "
            f"agreement: {breakdown.get('source_agreement')}, validity: {breakdown.get('data_validity')})"
        )
        return QualityScoreReport(
            overall=overall,
            breakdown=breakdown,
            weights=weights,
            anomalies=anomalies,
            flags=flags,
            recommendations=recommendations,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
