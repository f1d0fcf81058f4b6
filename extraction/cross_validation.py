"""
Cross-validation of strategy results.

Entries are identified across sources by ``rank|round(wager)`` rather than by
username, since usernames are masked differently per source ("Joh***" vs
"John123"). Alignment runs in three passes, each consuming what it aligns:

1. exact entry key shared by two or more sources
2. normalized username shared by still-unaligned entries
3. rank shared by still-unaligned entries

A group is ``agreed`` when every member matches its highest-confidence member
(rank within tolerance, wager within a relative tolerance), else ``disputed``.
Entries that align with nothing are ``unique``.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from common.config import config
from common.logging.logger import get_logger
from common.models import (
    AGREEMENT_AGREED,
    AGREEMENT_DISPUTED,
    AGREEMENT_UNIQUE,
    CrossValidationReport,
    EntryAgreement,
    LeaderboardEntry,
    StrategyResult,
)
from common.text_utils import normalize_username
from extraction.policies import tie_break_rank

logger = get_logger("cross_validation")

MIN_SOURCES_FOR_VERIFICATION = 2


@dataclass
class _Member:
    source: str
    entry: LeaderboardEntry
    confidence: float

    @property
    def key(self) -> str:
        return self.entry.key


def wagers_match(w1: float, w2: float, tolerance: float) -> bool:
    """Relative match; two zero wagers match."""
    w1, w2 = w1 or 0.0, w2 or 0.0
    return abs(w1 - w2) <= tolerance * max(w1, w2)


def confidence_adjustment(overall_agreement: float) -> int:
    if overall_agreement >= 0.9:
        return 10
    if overall_agreement >= 0.7:
        return 5
    return 0


class CrossValidator:
    """Compares two or more strategy results and reports their agreement."""

    def __init__(self, wager_tolerance: Optional[float] = None, rank_tolerance: Optional[int] = None):
        self.wager_tolerance = (wager_tolerance if wager_tolerance is not None
                                else config.get("cross_validation.wager_tolerance"))
        self.rank_tolerance = (rank_tolerance if rank_tolerance is not None
                               else config.get("cross_validation.rank_tolerance"))

    def validate(self, results: Dict[str, StrategyResult]) -> Optional[CrossValidationReport]:
        """
        Args:
            results: strategy name -> result, after threshold filtering.

        Returns:
            CrossValidationReport, or None with fewer than two results.
        """
        if len(results) < MIN_SOURCES_FOR_VERIFICATION:
            return None

        members = [
            _Member(source=name, entry=entry, confidence=result.confidence)
            for name, result in results.items()
            for entry in result.entries
        ]

        consumed = set()
        groups: List[List[_Member]] = []
        for hint in (lambda m: m.key,
                     lambda m: normalize_username(m.entry.username),
                     lambda m: m.entry.rank):
            groups.extend(self._align(members, consumed, hint))

        report = CrossValidationReport()
        agreed_by_source: Counter = Counter()
        agreed = 0
        for group in groups:
            status, mismatches = self._classify(group)
            sources = tuple(sorted({m.source for m in group}, key=tie_break_rank))
            agreement = EntryAgreement(status=status, sources=sources)
            ref = self._reference(group)
            name_key = normalize_username(ref.entry.username) or ref.key
            if name_key in report.entry_agreement:
                name_key = ref.key
            report.entry_agreement[name_key] = agreement
            for m in group:
                report.key_agreement[m.key] = agreement
            if status == AGREEMENT_AGREED:
                agreed += 1
                agreed_by_source.update(sources)
            else:
                report.discrepancies.append({
                    "username": ref.entry.username,
                    "key": ref.key,
                    "sources": list(sources),
                    "fieldMismatches": mismatches,
                })

        for m in members:
            if id(m) in consumed:
                continue
            unique = EntryAgreement(status=AGREEMENT_UNIQUE, sources=(m.source,))
            report.entry_agreement.setdefault(normalize_username(m.entry.username) or m.key, unique)
            report.key_agreement.setdefault(m.key, unique)

        report.overall_agreement = agreed / len(groups) if groups else 0.0
        report.confidence_adjustment = confidence_adjustment(report.overall_agreement)
        report.recommended_source = self._recommend(results, agreed_by_source)
        report.source_stats = {
            name: {
                "entryCount": len(result.entries),
                "confidence": result.confidence,
                "withWager": sum(1 for e in result.entries if e.wager > 0),
                "withPrize": sum(1 for e in result.entries if e.prize > 0),
                "agreedEntries": agreed_by_source.get(name, 0),
            }
            for name, result in results.items()
        }

        logger.info(
            f"Cross-validation: {len(groups)} aligned groups, agreement {report.overall_agreement:.0%}, "
            f"{len(report.discrepancies)} discrepancies, recommended {report.recommended_source}"
        )
        return report

    @staticmethod
    def _align(members: List[_Member], consumed: set, hint: Callable[[_Member], object]) -> List[List[_Member]]:
        buckets: Dict[object, Dict[str, _Member]] = {}
        for m in members:
            if id(m) in consumed:
                continue
            value = hint(m)
            if value in ("", None, 0):
                continue
            # One member per source per bucket, the best-ranked one
            per_source = buckets.setdefault(value, {})
            current = per_source.get(m.source)
            if current is None or m.entry.rank < current.entry.rank:
                per_source[m.source] = m

        groups = []
        for per_source in buckets.values():
            if len(per_source) < MIN_SOURCES_FOR_VERIFICATION:
                continue
            group = list(per_source.values())
            if any(id(m) in consumed for m in group):
                continue
            consumed.update(id(m) for m in group)
            groups.append(group)
        return groups

    @staticmethod
    def _reference(group: List[_Member]) -> _Member:
        return min(group, key=lambda m: (-m.confidence, tie_break_rank(m.source)))

    def _classify(self, group: List[_Member]):
        ref = self._reference(group)
        mismatches = []
        for m in group:
            if m is ref:
                continue
            if abs(m.entry.rank - ref.entry.rank) > self.rank_tolerance:
                mismatches.append({"field": "rank", "source": m.source,
                                   "expected": ref.entry.rank, "actual": m.entry.rank})
            if not wagers_match(m.entry.wager, ref.entry.wager, self.wager_tolerance):
                mismatches.append({"field": "wager", "source": m.source,
                                   "expected": ref.entry.wager, "actual": m.entry.wager})
        return (AGREEMENT_DISPUTED if mismatches else AGREEMENT_AGREED), mismatches

    @staticmethod
    def _recommend(results: Dict[str, StrategyResult], agreed_by_source: Counter) -> Optional[str]:
        """Most agreed groups first, then internal confidence, then the fixed source order."""
        if not results:
            return None
        return min(
            results,
            key=lambda name: (-agreed_by_source.get(name, 0), -results[name].confidence, tie_break_rank(name)),
        )
