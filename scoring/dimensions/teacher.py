"""External LLM verification dimension."""

from common.models import FusedResult
from scoring.protocols import DimensionScore, QualityDimension, ScoringContext


class TeacherVerificationDimension(QualityDimension):

    @property
    def name(self) -> str:
        return "teacher_verification"

    @property
    def default_weight(self) -> float:
        return 0.10

    def compute(self, result: FusedResult, context: ScoringContext) -> DimensionScore:
        verification = context.teacher_verification
        if verification is None:
            return DimensionScore(50)
        if verification.verified:
            return DimensionScore(95)
        confidence = verification.confidence or 0
        if confidence >= 80:
            return DimensionScore(85)
        if confidence >= 60:
            return DimensionScore(70)
        return DimensionScore(50)
