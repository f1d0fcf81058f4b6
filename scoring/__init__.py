"""
Scoring package: post-hoc quality grading of fused leaderboard results.

Public API:
    QualityScorer, ScoringContext
    QualityDimension, ScoreAggregator, DimensionRegistry
    WeightedSumAggregator
"""

from scoring.aggregation import WeightedSumAggregator
from scoring.pipeline import QualityScorer
from scoring.protocols import DimensionScore, QualityDimension, ScoreAggregator, ScoringContext
from scoring.registry import DimensionRegistry

__all__ = [
    "QualityScorer",
    "ScoringContext",
    "DimensionScore",
    "QualityDimension",
    "ScoreAggregator",
    "DimensionRegistry",
    "WeightedSumAggregator",
]
