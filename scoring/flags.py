"""Quality flags and the recommendation attached to each."""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from common.config import config
from common.models import Anomaly, QualityFlag


@dataclass(frozen=True)
class FlagRule:
    dimension: str
    threshold_key: str
    type: str
    severity: str
    message: str
    recommendation: str


FLAG_RULES = [
    FlagRule("source_agreement", "quality.agreement_flag_below", "LOW_AGREEMENT", "high",
             "Multiple sources disagree significantly",
             "Run teacher mode to verify the correct extraction method"),
    FlagRule("entry_completeness", "quality.completeness_flag_below", "INCOMPLETE_DATA", "medium",
             "Missing fields in extracted entries",
             "Check field mappings - wager/prize fields may be missing"),
    FlagRule("historical_consistency", "quality.historical_flag_below", "HISTORICAL_DEVIATION", "medium",
             "Data differs significantly from previous extractions",
             "Verify page navigation - may be extracting the wrong leaderboard"),
    FlagRule("data_validity", "quality.validity_flag_below", "DATA_ANOMALIES", "high",
             "{anomalies} data anomalies detected",
             "Review extraction for parsing errors or UI text contamination"),
    FlagRule("learned_pattern_match", "quality.pattern_flag_below", "PATTERN_MISMATCH", "low",
             "Extraction differs from learned patterns",
             "Re-learn the site profile; the extraction method or entry count has changed"),
]


def identify_flags(scores: Dict[str, int], anomalies: List[Anomaly]) -> Tuple[List[QualityFlag], List[str]]:
    """Flags for every dimension below its threshold, with one recommendation each."""
    flags, recommendations = [], []
    for rule in FLAG_RULES:
        score = scores.get(rule.dimension)
        if score is None or score >= config.get(rule.threshold_key):
            continue
        flags.append(QualityFlag(rule.type, rule.severity, rule.message.format(anomalies=len(anomalies))))
        recommendations.append(rule.recommendation)
    return flags, recommendations
