"""Source agreement dimension: step curve over the cross-validation agreement."""

from common.models import FusedResult
from scoring.protocols import DimensionScore, QualityDimension, ScoringContext

NEUTRAL = 50

# (minimum overall agreement, score), checked in order
AGREEMENT_STEPS = [(0.9, 100), (0.8, 90), (0.7, 80), (0.5, 60), (0.3, 40)]
FLOOR = 20


class SourceAgreementDimension(QualityDimension):

    @property
    def name(self) -> str:
        return "source_agreement"

    @property
    def default_weight(self) -> float:
        return 0.25

    def compute(self, result: FusedResult, context: ScoringContext) -> DimensionScore:
        report = result.cross_validation
        if report is None:
            return DimensionScore(NEUTRAL)
        for threshold, score in AGREEMENT_STEPS:
            if report.overall_agreement >= threshold:
                return DimensionScore(score)
        return DimensionScore(FLOOR)
