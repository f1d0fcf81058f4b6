"""
Domain model dataclasses for leaderboard extraction.

Each model provides:
- to_dict(): returns a JSON-serializable dict with the caller-facing key names
- from_dict(): classmethod, on models that arrive from external collaborators
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

VERIFICATION_SINGLE_SOURCE = "single_source"
VERIFICATION_VERIFIED = "verified"
VERIFICATION_DISPUTED = "disputed"

AGREEMENT_AGREED = "agreed"
AGREEMENT_DISPUTED = "disputed"
AGREEMENT_UNIQUE = "unique"

COLUMN_ORDERS = ("prize_before_wager", "wager_before_prize", "wager_only")
PODIUM_LAYOUTS = ("center_first", "left_to_right", "no_podium")


@dataclass
class LeaderboardEntry:
    """One row of a leaderboard as reported by a single strategy."""
    rank: int
    username: str
    wager: float = 0.0
    prize: float = 0.0
    source: str = ""
    prize_injected: bool = False

    @property
    def key(self) -> str:
        """Cross-source identity: rank plus rounded wager."""
        return f"{self.rank}|{round(self.wager or 0)}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "") -> "LeaderboardEntry":
        return cls(
            rank=int(data.get("rank") or 0),
            username=str(data.get("username") or ""),
            wager=float(data.get("wager") or 0),
            prize=float(data.get("prize") or 0),
            source=data.get("source") or source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'username': self.username,
            'wager': self.wager,
            'prize': self.prize,
            'source': self.source,
        }


@dataclass(frozen=True)
class PrizeRow:
    rank: int
    prize: float

    def to_dict(self) -> Dict[str, Any]:
        return {'rank': self.rank, 'prize': self.prize}


@dataclass(frozen=True)
class RawJsonResponse:
    """A JSON body observed on the network while the page loaded."""
    url: str
    data: Any
    timestamp: Optional[float] = None
    merged_from: tuple = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawJsonResponse":
        return cls(url=data.get("url") or "", data=data.get("data"), timestamp=data.get("timestamp"))


@dataclass(frozen=True)
class ExpectedRank1:
    username: Optional[str] = None
    wager: float = 0.0
    prize: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpectedRank1":
        return cls(
            username=data.get("username"),
            wager=float(data.get("wager") or 0),
            prize=float(data.get("prize") or 0),
        )


@dataclass(frozen=True)
class TeacherHints:
    """Layout hints learned out-of-band by the vision teacher."""
    column_order: Optional[str] = None
    podium_layout: Optional[str] = None
    expected_rank1: Optional[ExpectedRank1] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeacherHints":
        column_order = data.get("column_order")
        podium_layout = data.get("podium_layout")
        expected = data.get("expectedRank1") or data.get("expected_rank1")
        return cls(
            column_order=column_order if column_order in COLUMN_ORDERS else None,
            podium_layout=podium_layout if podium_layout in PODIUM_LAYOUTS else None,
            expected_rank1=ExpectedRank1.from_dict(expected) if expected else None,
        )


@dataclass(frozen=True)
class LearnedPatterns:
    """Per-site profile produced by earlier successful runs."""
    preferred_source: Optional[str] = None
    expected_entries: Optional[int] = None
    field_mappings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearnedPatterns":
        return cls(
            preferred_source=data.get("preferredSource") or data.get("preferred_source"),
            expected_entries=data.get("expectedEntries") or data.get("expected_entries"),
            field_mappings=dict(data.get("fieldMappings") or data.get("field_mappings") or {}),
        )

    @classmethod
    def from_fused_result(cls, result: "FusedResult") -> "LearnedPatterns":
        """
        Derive a profile from a fused result so the caller can persist it.

        ``field_mappings`` lists, per field, the sources that supplied winning
        values, most frequent first. String-valued mappings (a JSON key per
        field) may also be stored by the caller; the engine hands those to
        the API strategy.
        """
        winners: Dict[str, Counter] = {}
        for entry in result.entries:
            for name, fs in entry.fusion.field_sources.items():
                winners.setdefault(name, Counter())[fs.source] += 1
        mappings = {name: [source for source, _ in counts.most_common()]
                    for name, counts in winners.items()}
        return cls(
            preferred_source=result.extraction_method if result.extraction_method != "none" else None,
            expected_entries=len(result.entries) or None,
            field_mappings=mappings,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'preferredSource': self.preferred_source,
            'expectedEntries': self.expected_entries,
            'fieldMappings': dict(self.field_mappings),
        }


@dataclass(frozen=True)
class TeacherVerification:
    """Outcome of an external LLM check of a fused result."""
    verified: bool = False
    confidence: Optional[float] = None


@dataclass(frozen=True)
class ExtractionInput:
    """
    Raw page capture handed to every strategy.

    Strategies treat it as read-only; the fusion engine derives copies with
    merged API responses and injected hints via dataclasses.replace().
    """
    html: str = ""
    markdown: str = ""
    api_calls: tuple = ()
    raw_json_responses: tuple = ()
    screenshot: Optional[bytes] = None
    page: Any = None
    site_name: Optional[str] = None
    hints: Optional[TeacherHints] = None
    field_mappings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionInput":
        return cls(
            html=data.get("html") or "",
            markdown=data.get("markdown") or "",
            api_calls=tuple(data.get("apiCalls") or ()),
            raw_json_responses=tuple(
                RawJsonResponse.from_dict(r) for r in data.get("rawJsonResponses") or ()
            ),
            site_name=data.get("siteName"),
        )


@dataclass
class StrategyResult:
    """Candidate output of one strategy. Confidence is strategy-local (0-100)."""
    entries: List[LeaderboardEntry]
    prizes: List[PrizeRow] = field(default_factory=list)
    confidence: float = 50.0
    api_url: Optional[str] = None
    total_prize_pool: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'entries': [e.to_dict() for e in self.entries],
            'prizes': [p.to_dict() for p in self.prizes],
            'confidence': self.confidence,
            'metadata': dict(self.metadata),
        }
        if self.api_url:
            data['apiUrl'] = self.api_url
        if self.total_prize_pool:
            data['totalPrizePool'] = self.total_prize_pool
        return data


@dataclass(frozen=True)
class FieldSource:
    source: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {'source': self.source, 'confidence': self.confidence}


@dataclass(frozen=True)
class FusionProvenance:
    sources: tuple
    agreement_score: float
    verification_status: str
    field_sources: Dict[str, FieldSource]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sources': list(self.sources),
            'agreementScore': self.agreement_score,
            'verificationStatus': self.verification_status,
            'fieldSources': {k: v.to_dict() for k, v in self.field_sources.items()},
        }


@dataclass(frozen=True)
class FusedEntry:
    """Terminal artifact of a fusion run; never mutated once built."""
    rank: int
    username: str
    wager: float
    prize: float
    source: str
    fusion: FusionProvenance

    @property
    def sources(self) -> tuple:
        return self.fusion.sources

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rank': self.rank,
            'username': self.username,
            'wager': self.wager,
            'prize': self.prize,
            'source': self.source,
            '_fusion': self.fusion.to_dict(),
        }


@dataclass(frozen=True)
class EntryAgreement:
    status: str
    sources: tuple

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status, 'sources': list(self.sources)}


@dataclass
class CrossValidationReport:
    overall_agreement: float = 0.0
    entry_agreement: Dict[str, EntryAgreement] = field(default_factory=dict)
    key_agreement: Dict[str, EntryAgreement] = field(default_factory=dict)
    recommended_source: Optional[str] = None
    confidence_adjustment: int = 0
    discrepancies: List[Dict[str, Any]] = field(default_factory=list)
    source_stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overallAgreement': self.overall_agreement,
            'entryAgreement': {k: v.to_dict() for k, v in self.entry_agreement.items()},
            'recommendedSource': self.recommended_source,
            'confidenceAdjustment': self.confidence_adjustment,
            'discrepancies': list(self.discrepancies),
            'sourceStats': dict(self.source_stats),
        }


@dataclass
class FusedResult:
    entries: List[FusedEntry] = field(default_factory=list)
    prizes: List[PrizeRow] = field(default_factory=list)
    total_prize_pool: float = 0.0
    confidence: int = 0
    extraction_method: str = "none"
    cross_validation: Optional[CrossValidationReport] = None
    source_breakdown: Dict[str, StrategyResult] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'entries': [e.to_dict() for e in self.entries],
            'prizes': [p.to_dict() for p in self.prizes],
            'confidence': self.confidence,
            'extractionMethod': self.extraction_method,
            'crossValidation': self.cross_validation.to_dict() if self.cross_validation else None,
            'sourceBreakdown': {k: v.to_dict() for k, v in self.source_breakdown.items()},
            'metadata': dict(self.metadata),
            'errors': list(self.errors),
        }
        if self.total_prize_pool:
            data['totalPrizePool'] = self.total_prize_pool
        return data


@dataclass(frozen=True)
class Anomaly:
    type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'message': self.message}


@dataclass(frozen=True)
class QualityFlag:
    type: str
    severity: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'severity': self.severity, 'message': self.message}


@dataclass
class QualityScoreReport:
    overall: int
    breakdown: Dict[str, int]
    weights: Dict[str, float]
    anomalies: List[Anomaly] = field(default_factory=list)
    flags: List[QualityFlag] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': self.overall,
            'breakdown': dict(self.breakdown),
            'weights': dict(self.weights),
            'anomalies': [a.to_dict() for a in self.anomalies],
            'flags': [f.to_dict() for f in self.flags],
            'recommendations': list(self.recommendations),
            'timestamp': self.timestamp,
        }


def ensure_sequential_ranks(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Sorts by rank and renumbers 1..N when the ranks are not exactly 1..N."""
    ordered = sorted(entries, key=lambda e: (e.rank if e.rank > 0 else 10**9, -(e.wager or 0)))
    if all(e.rank == i + 1 for i, e in enumerate(ordered)):
        return ordered
    for i, entry in enumerate(ordered):
        entry.rank = i + 1
    return ordered
