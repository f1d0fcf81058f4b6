"""Abstract base classes for the quality scorer."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from common.models import Anomaly, FusedResult, LearnedPatterns, TeacherVerification


@dataclass(frozen=True)
class ScoringContext:
    """Out-of-band inputs supplied by the surrounding system; all optional."""
    previous_entries: Optional[Sequence] = None
    learned_patterns: Optional[LearnedPatterns] = None
    teacher_verification: Optional[TeacherVerification] = None


@dataclass(frozen=True)
class DimensionScore:
    score: int
    anomalies: List[Anomaly] = field(default_factory=list)


class QualityDimension(ABC):
    """Protocol for a single quality dimension."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique dimension name (e.g. 'source_agreement')."""
        ...

    @property
    def default_weight(self) -> float:
        return 0.1

    @abstractmethod
    def compute(self, result: FusedResult, context: ScoringContext) -> DimensionScore:
        """
        Grade one aspect of a fused result.

        Returns:
            DimensionScore with ``score`` in [0, 100].
        """
        ...


class ScoreAggregator(ABC):
    """Protocol for combining per-dimension scores into the overall score."""

    @abstractmethod
    def aggregate(self, scores: Dict[str, int], weights: Dict[str, float]) -> int:
        """Return a single score in [0, 100]."""
        ...
