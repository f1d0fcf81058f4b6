"""Data validity dimension: 100 minus anomaly penalties, floored at 0."""

from typing import List

import numpy as np

from common.models import Anomaly, FusedResult
from common.text_utils import normalize_username
from scoring.protocols import DimensionScore, QualityDimension, ScoringContext

WAGER_ORDER_PENALTY = 5
RANK_SEQUENCE_PENALTY = 10
OUTLIER_PENALTY = 15
DUPLICATE_PENALTY = 20
ALL_ZERO_PENALTY = 25

OUTLIER_FACTOR = 100


def detect_anomalies(entries) -> List[Anomaly]:
    """
    Anomalies of an entry list in its reported order.

    Each anomaly type maps to one penalty; wager-order violations are counted
    per adjacent pair.
    """
    anomalies = []

    for prev, cur in zip(entries, entries[1:]):
        if cur.wager > prev.wager and prev.wager > 0:
            anomalies.append(Anomaly("wager_order", f"Rank {cur.rank} has higher wager than rank {prev.rank}"))

    if [e.rank for e in entries] != list(range(1, len(entries) + 1)):
        anomalies.append(Anomaly("rank_sequence", "Ranks are not sequential (1, 2, 3...)"))

    wagers = [e.wager for e in entries if e.wager > 0]
    if len(wagers) >= 3:
        median = float(np.median(wagers))
        outliers = [e for e in entries if e.wager > median * OUTLIER_FACTOR]
        if outliers:
            anomalies.append(Anomaly("extreme_outlier",
                                     f"{len(outliers)} entries have wagers {OUTLIER_FACTOR}x above median"))

    names = [normalize_username(e.username) for e in entries]
    names = [n for n in names if n]
    if len(set(names)) < len(names):
        anomalies.append(Anomaly("duplicate_usernames",
                                 f"{len(names) - len(set(names))} duplicate usernames found"))

    if len(entries) > 3 and all(not e.wager for e in entries):
        anomalies.append(Anomaly("all_zero_wagers", "All wager values are 0 - likely extraction failure"))

    return anomalies


PENALTIES = {
    "wager_order": WAGER_ORDER_PENALTY,
    "rank_sequence": RANK_SEQUENCE_PENALTY,
    "extreme_outlier": OUTLIER_PENALTY,
    "duplicate_usernames": DUPLICATE_PENALTY,
    "all_zero_wagers": ALL_ZERO_PENALTY,
}


class DataValidityDimension(QualityDimension):

    @property
    def name(self) -> str:
        return "data_validity"

    @property
    def default_weight(self) -> float:
        return 0.20

    def compute(self, result: FusedResult, context: ScoringContext) -> DimensionScore:
        if not result.entries:
            return DimensionScore(0)
        anomalies = detect_anomalies(result.entries)
        penalty = sum(PENALTIES[a.type] for a in anomalies)
        return DimensionScore(max(0, 100 - penalty), anomalies)
