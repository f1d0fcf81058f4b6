"""Tests for the post-hoc quality scorer."""

from common.models import (
    CrossValidationReport,
    FusedResult,
    LeaderboardEntry,
    LearnedPatterns,
    TeacherVerification,
)
from common.text_utils import round_half_up
from extraction.fusion import single_source_entry
from scoring import QualityScorer, ScoringContext, WeightedSumAggregator
from scoring.dimensions import (
    DataValidityDimension,
    EntryCompletenessDimension,
    HistoricalConsistencyDimension,
    LearnedPatternMatchDimension,
    SourceAgreementDimension,
    TeacherVerificationDimension,
)
from scoring.dimensions.historical import overlap_score
from scoring.dimensions.validity import detect_anomalies
from scoring.flags import identify_flags
from scoring.protocols import DimensionScore, QualityDimension


def fused(rows, method="dom", report=None):
    entries = [single_source_entry(method, LeaderboardEntry(*row[:3], prize=row[3] if len(row) > 3 else 0.0), 80)
               for row in rows]
    return FusedResult(entries=entries, extraction_method=method, cross_validation=report, confidence=80)


CTX = ScoringContext()


class FixedDimension(QualityDimension):
    def __init__(self, name, score):
        self._name = name
        self._score = score

    @property
    def name(self):
        return self._name

    def compute(self, result, context):
        return DimensionScore(self._score)


# ── aggregation ─────────────────────────────────────────────

class TestAggregation:
    def test_weighted_sum_rounds_half_up(self):
        scores = {
            "entry_completeness": 70, "source_agreement": 80, "data_validity": 60,
            "historical_consistency": 70, "learned_pattern_match": 50, "teacher_verification": 50,
        }
        weights = QualityScorer().weights
        assert WeightedSumAggregator().aggregate(scores, weights) == 67

    def test_round_half_up(self):
        assert round_half_up(66.5) == 67
        assert round_half_up(66.49) == 66
        assert round_half_up(0.5) == 1

    def test_unweighted_scores_ignored(self):
        assert WeightedSumAggregator().aggregate({"a": 80, "b": 20}, {"a": 1.0}) == 80

    def test_clamped(self):
        assert WeightedSumAggregator().aggregate({"a": 100}, {"a": 2.0}) == 100

    def test_default_weights_sum_to_one(self):
        weights = QualityScorer().weights
        assert abs(sum(weights.values()) - 1.0) < 1e-9
        assert weights["source_agreement"] == 0.25


# ── dimensions ──────────────────────────────────────────────

class TestCompleteness:
    def test_wager_only(self, ten_rows):
        assert EntryCompletenessDimension().compute(fused(ten_rows), CTX).score == 90

    def test_wager_and_prize(self, ten_rows):
        rows = [row + (100.0,) for row in ten_rows]
        assert EntryCompletenessDimension().compute(fused(rows), CTX).score == 100

    def test_half_point_rounds_up(self, ten_rows):
        rows = [ten_rows[0] + (100.0,)] + ten_rows[1:4]
        assert EntryCompletenessDimension().compute(fused(rows), CTX).score == 93

    def test_empty(self):
        assert EntryCompletenessDimension().compute(fused([]), CTX).score == 0


class TestAgreement:
    def test_neutral_without_report(self, ten_rows):
        assert SourceAgreementDimension().compute(fused(ten_rows), CTX).score == 50

    def test_steps(self, ten_rows):
        dim = SourceAgreementDimension()
        expected = {0.95: 100, 0.85: 90, 0.75: 80, 0.6: 60, 0.4: 40, 0.1: 20}
        for agreement, score in expected.items():
            report = CrossValidationReport(overall_agreement=agreement)
            assert dim.compute(fused(ten_rows, report=report), CTX).score == score


class TestValidity:
    def test_clean(self, ten_rows):
        outcome = DataValidityDimension().compute(fused(ten_rows), CTX)
        assert outcome.score == 100
        assert outcome.anomalies == []

    def test_wager_order_per_pair(self):
        rows = [(1, "alpha", 100), (2, "bravo", 200), (3, "charlie", 50), (4, "delta", 80)]
        anomalies = detect_anomalies(fused(rows).entries)
        assert [a.type for a in anomalies] == ["wager_order", "wager_order"]
        assert DataValidityDimension().compute(fused(rows), CTX).score == 90

    def test_rank_gap(self):
        rows = [(1, "alpha", 300), (2, "bravo", 200), (4, "delta", 100)]
        assert DataValidityDimension().compute(fused(rows), CTX).score == 90

    def test_extreme_outlier(self):
        rows = [(1, "alpha", 1_000_000), (2, "bravo", 10), (3, "charlie", 10), (4, "delta", 10)]
        outcome = DataValidityDimension().compute(fused(rows), CTX)
        assert [a.type for a in outcome.anomalies] == ["extreme_outlier"]
        assert outcome.score == 85

    def test_duplicate_usernames(self):
        rows = [(1, "Alpha", 300), (2, "alpha_", 200), (3, "bravo", 100)]
        assert DataValidityDimension().compute(fused(rows), CTX).score == 80

    def test_all_zero_wagers(self):
        rows = [(1, "alpha", 0), (2, "bravo", 0), (3, "charlie", 0), (4, "delta", 0)]
        assert DataValidityDimension().compute(fused(rows), CTX).score == 75

    def test_floored_at_zero(self):
        rows = [(5, "a**", 0), (5, "a**", 0), (5, "a**", 0), (5, "a**", 0)]
        rows += [(6, "b", 1), (7, "c", 1_000_000), (8, "d", 2), (9, "e", 3), (10, "f", 4), (11, "g", 5)]
        assert DataValidityDimension().compute(fused(rows), CTX).score >= 0

    def test_empty(self):
        assert DataValidityDimension().compute(fused([]), CTX).score == 0


class TestHistorical:
    def test_neutral_without_history(self, ten_rows):
        assert HistoricalConsistencyDimension().compute(fused(ten_rows), CTX).score == 70

    def test_healthy_churn(self, ten_rows):
        previous = [{"username": name} for _, name, _ in ten_rows[:7]] + [{"username": "zulu"}]
        context = ScoringContext(previous_entries=previous)
        assert HistoricalConsistencyDimension().compute(fused(ten_rows), context).score == 90

    def test_identical_history(self, ten_rows):
        context = ScoringContext(previous_entries=fused(ten_rows).entries)
        assert HistoricalConsistencyDimension().compute(fused(ten_rows), context).score == 60

    def test_overlap_curve(self):
        assert overlap_score(0.5) == 90
        assert overlap_score(0.9) == 90
        assert overlap_score(0.3) == 70
        assert overlap_score(0.95) == 60
        assert overlap_score(0.1) == 40


class TestLearnedPatterns:
    def test_baseline(self, ten_rows):
        assert LearnedPatternMatchDimension().compute(fused(ten_rows), CTX).score == 50

    def test_full_match(self, ten_rows):
        context = ScoringContext(learned_patterns=LearnedPatterns(preferred_source="dom", expected_entries=10))
        assert LearnedPatternMatchDimension().compute(fused(ten_rows), context).score == 100

    def test_close_count(self, ten_rows):
        context = ScoringContext(learned_patterns=LearnedPatterns(expected_entries=12))
        assert LearnedPatternMatchDimension().compute(fused(ten_rows), context).score == 60

    def test_mismatch(self, ten_rows):
        context = ScoringContext(learned_patterns=LearnedPatterns(preferred_source="api", expected_entries=25))
        assert LearnedPatternMatchDimension().compute(fused(ten_rows), context).score == 30


class TestTeacherVerification:
    def test_levels(self, ten_rows):
        dim = TeacherVerificationDimension()
        result = fused(ten_rows)
        assert dim.compute(result, CTX).score == 50
        cases = [
            (TeacherVerification(verified=True), 95),
            (TeacherVerification(confidence=85), 85),
            (TeacherVerification(confidence=65), 70),
            (TeacherVerification(confidence=20), 50),
        ]
        for verification, score in cases:
            assert dim.compute(result, ScoringContext(teacher_verification=verification)).score == score


# ── flags ───────────────────────────────────────────────────

class TestFlags:
    def test_low_agreement(self):
        flags, recommendations = identify_flags({"source_agreement": 40}, [])
        assert [(f.type, f.severity) for f in flags] == [("LOW_AGREEMENT", "high")]
        assert len(recommendations) == 1

    def test_threshold_is_exclusive(self):
        flags, _ = identify_flags({"source_agreement": 50, "entry_completeness": 60}, [])
        assert flags == []

    def test_pattern_mismatch(self):
        flags, _ = identify_flags({"learned_pattern_match": 30}, [])
        assert [(f.type, f.severity) for f in flags] == [("PATTERN_MISMATCH", "low")]


# ── pipeline ────────────────────────────────────────────────

class TestQualityScorer:
    def test_clean_single_source(self, ten_rows):
        report = QualityScorer().score(fused(ten_rows))
        assert report.breakdown == {
            "entry_completeness": 90, "source_agreement": 50, "data_validity": 100,
            "historical_consistency": 70, "learned_pattern_match": 50, "teacher_verification": 50,
        }
        assert report.overall == 71
        assert report.flags == []
        assert report.timestamp

    def test_empty_result_flagged(self):
        report = QualityScorer().score(FusedResult())
        assert [f.type for f in report.flags] == ["INCOMPLETE_DATA", "DATA_ANOMALIES"]
        assert report.flags[1].message == "0 data anomalies detected"
        assert len(report.recommendations) == 2
        assert report.overall == 33

    def test_anomalies_reported(self):
        rows = [(1, "alpha", 100), (2, "bravo", 200), (3, "charlie", 50)]
        report = QualityScorer().score(fused(rows))
        assert [a.type for a in report.anomalies] == ["wager_order"]
        assert report.to_dict()["anomalies"][0]["type"] == "wager_order"

    def test_custom_dimensions_and_weights(self, ten_rows):
        scorer = QualityScorer(dimensions=[FixedDimension("x", 40), FixedDimension("y", 90)],
                               weights={"x": 0.5, "y": 0.5})
        report = scorer.score(fused(ten_rows))
        assert report.overall == 65
        assert report.weights == {"x": 0.5, "y": 0.5}

    def test_default_weight_of_custom_dimension(self):
        assert FixedDimension("x", 0).default_weight == 0.1
