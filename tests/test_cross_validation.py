"""Tests for cross-validation of strategy results."""

from common.models import AGREEMENT_AGREED, AGREEMENT_DISPUTED, AGREEMENT_UNIQUE
from extraction.cross_validation import CrossValidator, confidence_adjustment, wagers_match


def validator():
    return CrossValidator(wager_tolerance=0.05, rank_tolerance=1)


class TestHelpers:
    def test_wagers_match(self):
        assert wagers_match(1000, 1040, 0.05)
        assert not wagers_match(1000, 1100, 0.05)
        assert wagers_match(0, 0, 0.05)

    def test_confidence_adjustment(self):
        assert confidence_adjustment(0.95) == 10
        assert confidence_adjustment(0.7) == 5
        assert confidence_adjustment(0.5) == 0


class TestCrossValidator:
    def test_needs_two_sources(self, make_result, ten_rows):
        assert validator().validate({"markdown": make_result("markdown", ten_rows)}) is None

    def test_identical_sources_fully_agree(self, make_result, ten_rows):
        report = validator().validate({
            "markdown": make_result("markdown", ten_rows),
            "dom": make_result("dom", ten_rows),
        })
        assert report.overall_agreement == 1.0
        assert report.confidence_adjustment == 10
        assert report.discrepancies == []
        assert all(a.status == AGREEMENT_AGREED for a in report.key_agreement.values())
        assert report.key_agreement["1|50000"].sources == ("markdown", "dom")
        assert report.recommended_source == "markdown"
        assert report.source_stats["dom"]["agreedEntries"] == 10

    def test_wager_mismatch_is_disputed(self, make_result, ten_rows):
        dom_rows = [(1, "alpha", 45000.0)] + ten_rows[1:]
        report = validator().validate({
            "markdown": make_result("markdown", ten_rows, confidence=85),
            "dom": make_result("dom", dom_rows, confidence=80),
        })
        assert report.overall_agreement == 0.9
        assert report.entry_agreement["alpha"].status == AGREEMENT_DISPUTED
        assert report.key_agreement["1|45000"].status == AGREEMENT_DISPUTED
        assert len(report.discrepancies) == 1
        mismatch = report.discrepancies[0]["fieldMismatches"][0]
        assert mismatch["field"] == "wager"
        assert mismatch["source"] == "dom"

    def test_masked_usernames_align_by_key(self, make_result):
        report = validator().validate({
            "api": make_result("api", [(1, "John123", 5000), (2, "mary", 4000)]),
            "markdown": make_result("markdown", [(1, "Joh***", 5000), (2, "m**y", 4000)]),
        })
        assert report.overall_agreement == 1.0

    def test_unaligned_entry_is_unique(self, make_result, ten_rows):
        report = validator().validate({
            "markdown": make_result("markdown", ten_rows),
            "dom": make_result("dom", ten_rows + [(11, "kilo", 1000.0)]),
        })
        assert report.key_agreement["11|1000"].status == AGREEMENT_UNIQUE
        assert report.key_agreement["11|1000"].sources == ("dom",)
        assert report.overall_agreement == 1.0

    def test_recommends_most_agreed_source(self, make_result, ten_rows):
        shifted = [(rank, name, wager * 3) for rank, name, wager in ten_rows]
        report = validator().validate({
            "api": make_result("api", ten_rows, confidence=70),
            "dom": make_result("dom", ten_rows, confidence=70),
            "ocr": make_result("ocr", shifted, confidence=95),
        })
        assert report.recommended_source == "api"
