"""
Extraction package: multi-strategy leaderboard extraction with fusion.

Public API:
    LeaderboardExtractor: facade (fusion or legacy first-success mode)
    FusionEngine, FusionOptions, FusionSettings
    CrossValidator
    ExtractionMode
"""

from extraction.cross_validation import CrossValidator
from extraction.extractor import LeaderboardExtractor
from extraction.fusion import FusionEngine, FusionOptions, FusionSettings
from extraction.policies import ExtractionMode

__all__ = [
    "LeaderboardExtractor",
    "FusionEngine",
    "FusionOptions",
    "FusionSettings",
    "CrossValidator",
    "ExtractionMode",
]
