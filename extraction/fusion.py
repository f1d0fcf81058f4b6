"""
Multi-source fusion engine.

Runs every applicable strategy against the same captured input and merges
their partially overlapping results into one FusedResult:

    pre-process API responses -> run strategies (OCR deferred) ->
    drop low-confidence results -> drop stale API data ->
    teacher validation -> cross-validate -> merge entries and prizes ->
    final confidence -> extraction method

Usage:
    engine = FusionEngine(default_registry())
    result = asyncio.run(engine.fuse(ExtractionInput(html=..., markdown=...)))

Nothing in here raises to the caller: strategy failures are recorded in
``FusedResult.errors`` and an empty run yields ``extraction_method == "none"``.
"""

import asyncio
import dataclasses
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from common.config import config
from common.logging.logger import get_logger
from common.models import (
    AGREEMENT_AGREED,
    AGREEMENT_DISPUTED,
    VERIFICATION_DISPUTED,
    VERIFICATION_SINGLE_SOURCE,
    VERIFICATION_VERIFIED,
    CrossValidationReport,
    ExpectedRank1,
    ExtractionInput,
    FieldSource,
    FusedEntry,
    FusedResult,
    FusionProvenance,
    LeaderboardEntry,
    LearnedPatterns,
    PrizeRow,
    StrategyResult,
    TeacherHints,
)
from common.text_utils import round_half_up
from extraction.api_merger import merge_api_responses
from extraction.cross_validation import MIN_SOURCES_FOR_VERIFICATION, CrossValidator
from extraction.policies import pick_best_source, tie_break_rank
from extraction.strategies.protocols import ExtractionStrategy
from extraction.strategies.registry import StrategyRegistry

logger = get_logger("fusion")

NO_SOURCE = "none"


@dataclass(frozen=True)
class FusionSettings:
    """Tuned thresholds of the fusion algorithm; every value comes from ``fusion.*`` config."""
    min_confidence: float = 50.0
    concurrent: bool = True
    ocr_skip_min_entries: int = 2
    ocr_skip_min_confidence: float = 65.0
    stale_wager_tolerance: float = 0.01
    teacher_tolerance: float = 0.05
    teacher_boost: float = 15.0
    teacher_penalty: float = 20.0
    agreement_threshold: float = 0.75
    markdown_trust_confidence: float = 70.0
    markdown_extension_factor: float = 2.0
    markdown_extension_min_rank: int = 20
    dom_trust_confidence: float = 85.0
    dom_trust_min_entries: int = 5

    @classmethod
    def from_config(cls) -> "FusionSettings":
        return cls(**{f.name: config.get(f"fusion.{f.name}") for f in dataclasses.fields(cls)})


@dataclass(frozen=True)
class FusionOptions:
    min_confidence: Optional[float] = None
    site_name: Optional[str] = None
    known_keywords: Tuple[str, ...] = ()
    teacher_hints: Optional[TeacherHints] = None
    learned_patterns: Optional[LearnedPatterns] = None


# ── Intake ──────────────────────────────────────────────────────────────


def normalize_result(name: str, result: StrategyResult) -> StrategyResult:
    """
    Copy of *result* whose entries are owned by this run.

    Colliding ranks are resolved by re-ranking in ``(rank, -wager)`` order.
    """
    entries = [dataclasses.replace(e, source=e.source or name) for e in result.entries]
    ranks = [e.rank for e in entries]
    if len(set(ranks)) != len(ranks):
        logger.info(f"{name}: duplicate ranks in result, re-ranking {len(entries)} entries")
        entries.sort(key=lambda e: (e.rank, -(e.wager or 0)))
        for i, entry in enumerate(entries):
            entry.rank = i + 1
    return dataclasses.replace(result, entries=entries, prizes=list(result.prizes),
                               metadata=dict(result.metadata))


def drop_below_threshold(results: Dict[str, StrategyResult], min_confidence: float) -> Dict[str, StrategyResult]:
    kept = {}
    for name, result in results.items():
        if not result or not result.entries:
            logger.info(f"Strategy {name}: no entries found")
            continue
        if result.confidence < min_confidence:
            logger.info(f"Strategy {name}: {len(result.entries)} entries but confidence "
                        f"{result.confidence} < {min_confidence}, skipped")
            continue
        kept[name] = result
    return kept


# ── Stale source detection ──────────────────────────────────────────────


def _positive_wagers(result: StrategyResult) -> set:
    return {round(e.wager or 0) for e in result.entries if round(e.wager or 0) > 0}


def is_stale_api(api: StrategyResult, markdown: StrategyResult, tolerance: float) -> bool:
    """
    True when the API result shares no wager with the markdown result (exactly
    or within *tolerance*) and is not the larger of the two.
    """
    api_wagers = _positive_wagers(api)
    md_wagers = _positive_wagers(markdown)
    if not api_wagers or not md_wagers:
        return False
    if api_wagers & md_wagers:
        return False
    for a in api_wagers:
        for m in md_wagers:
            if abs(a - m) <= max(a, m) * tolerance:
                return False
    if len(api.entries) > len(markdown.entries):
        logger.info(f"API has more entries ({len(api.entries)}) than markdown ({len(markdown.entries)}), "
                    f"keeping it despite no wager matches")
        return False
    return True


def drop_stale_api(results: Dict[str, StrategyResult], tolerance: float) -> Dict[str, StrategyResult]:
    api, markdown = results.get("api"), results.get("markdown")
    if api is None or markdown is None:
        return results
    if not is_stale_api(api, markdown, tolerance):
        return results
    logger.info(f"Stale API data detected: no wager matches and API ({len(api.entries)} entries) "
                f"<= markdown ({len(markdown.entries)} entries), dropping API")
    return {name: r for name, r in results.items() if name != "api"}


# ── Teacher validation ──────────────────────────────────────────────────


def _within(expected: float, actual: float, tolerance: float) -> bool:
    return expected > 0 and abs(expected - (actual or 0)) / expected <= tolerance


def apply_teacher_validation(results: Dict[str, StrategyResult], expected: Optional[ExpectedRank1],
                             settings: FusionSettings) -> Dict[str, StrategyResult]:
    """
    Re-weights each result by whether its rank-1 entry matches the externally
    expected one. Compares wagers, or prizes when no wager is expected.
    """
    if expected is None or (expected.wager <= 0 and expected.prize <= 0):
        return results

    adjusted = {}
    for name, result in results.items():
        rank1 = next((e for e in result.entries if e.rank == 1), result.entries[0] if result.entries else None)
        if rank1 is None:
            adjusted[name] = result
            continue
        if expected.wager > 0:
            matched = _within(expected.wager, rank1.wager, settings.teacher_tolerance)
        else:
            matched = _within(expected.prize, rank1.prize, settings.teacher_tolerance)
        delta = settings.teacher_boost if matched else -settings.teacher_penalty
        confidence = max(0.0, min(100.0, result.confidence + delta))
        logger.info(f"{name}: rank #1 {'matches' if matched else 'does not match'} teacher "
                    f"(wager {rank1.wager}, expected {expected.wager}), confidence -> {confidence}")
        metadata = dict(result.metadata, teacherValidated=matched)
        adjusted[name] = dataclasses.replace(result, confidence=confidence, metadata=metadata)
    return adjusted


# ── Entry merge ─────────────────────────────────────────────────────────


def is_garbage_dom_prize(prize: float, rank: int) -> bool:
    """A DOM "prize" that is really the rank number picked up by the parser."""
    return (prize < 100 and abs(prize - rank) <= 15) or prize == rank


def single_source_entry(source: str, entry: LeaderboardEntry, confidence: float) -> FusedEntry:
    fs = FieldSource(source=source, confidence=confidence)
    return FusedEntry(
        rank=entry.rank,
        username=entry.username,
        wager=entry.wager,
        prize=entry.prize,
        source=entry.source or source,
        fusion=FusionProvenance(
            sources=(source,),
            agreement_score=0.0,
            verification_status=VERIFICATION_SINGLE_SOURCE,
            field_sources={"username": fs, "rank": fs, "wager": fs, "prize": fs},
        ),
    )


def fuse_entry(contributors: Sequence[Tuple[str, LeaderboardEntry, float]],
               report: Optional[CrossValidationReport],
               agreement_threshold: float) -> FusedEntry:
    """
    Field-wise merge of one entry key.

    Args:
        contributors: ``(source, entry, source confidence)`` for every source
            holding this key.
    """
    if len(contributors) == 1:
        return single_source_entry(*contributors[0])

    by_conf = sorted(contributors, key=lambda c: (-c[2], tie_break_rank(c[0])))
    top_source, top_entry, top_conf = by_conf[0]
    field_sources = {"username": FieldSource(top_source, top_conf)}

    votes: Dict[int, List[Tuple[str, float]]] = {}
    for source, entry, conf in by_conf:
        votes.setdefault(entry.rank, []).append((source, conf))
    rank, voters = min(votes.items(), key=lambda kv: (-len(kv[1]), -kv[1][0][1]))
    field_sources["rank"] = FieldSource(*voters[0])

    wager = 0.0
    field_sources["wager"] = FieldSource(NO_SOURCE, 0)
    for source, entry, conf in by_conf:
        if entry.wager > 0:
            wager = entry.wager
            field_sources["wager"] = FieldSource(source, conf)
            break

    prize = 0.0
    field_sources["prize"] = FieldSource(NO_SOURCE, 0)
    for source, entry, conf in by_conf:
        if entry.prize <= 0:
            continue
        if source == "dom" and is_garbage_dom_prize(entry.prize, entry.rank):
            logger.debug(f"Rejecting garbage DOM prize: rank {entry.rank} prize {entry.prize}")
            continue
        prize = entry.prize
        field_sources["prize"] = FieldSource(source, conf)
        break

    status = None
    if report is not None:
        agreement = report.key_agreement.get(top_entry.key)
        status = agreement.status if agreement else None
    score = 1.0 if status == AGREEMENT_AGREED else 0.5 if status == AGREEMENT_DISPUTED else 0.0

    return FusedEntry(
        rank=rank,
        username=top_entry.username,
        wager=wager,
        prize=prize,
        source=top_source,
        fusion=FusionProvenance(
            sources=tuple(sorted((c[0] for c in contributors), key=tie_break_rank)),
            agreement_score=score,
            verification_status=VERIFICATION_VERIFIED if score >= agreement_threshold else VERIFICATION_DISPUTED,
            field_sources=field_sources,
        ),
    )


def filter_noise(entries: List[FusedEntry], results: Dict[str, StrategyResult],
                 settings: FusionSettings) -> List[FusedEntry]:
    """
    Drops single-source entries that fall outside the trusted rank range or
    duplicate the wager of a multi-source entry.

    The trusted range is the highest rank confirmed by two sources or reported
    by the API, extended to a confident markdown or DOM source's range when
    that source reports a materially longer leaderboard.
    """
    max_verified = max((e.rank for e in entries if len(e.sources) > 1), default=0)
    max_api = max((e.rank for e in entries if "api" in e.sources), default=0)
    max_markdown = max((e.rank for e in entries if "markdown" in e.sources), default=0)
    max_dom = max((e.rank for e in entries if "dom" in e.sources), default=0)
    multi_wagers = {round(e.wager) for e in entries if len(e.sources) > 1 and round(e.wager) > 0}

    md = results.get("markdown")
    dom = results.get("dom")
    md_conf = md.confidence if md else 0.0
    dom_conf = dom.confidence if dom else 0.0

    trusted_max = max(max_verified, max_api)
    if (md_conf >= settings.markdown_trust_confidence
            and max_markdown > trusted_max * settings.markdown_extension_factor
            and max_markdown >= settings.markdown_extension_min_rank):
        logger.info(f"Trusting markdown ({md_conf}) range: max rank {max_markdown} vs {trusted_max}")
        trusted_max = max_markdown
    if (dom_conf >= settings.dom_trust_confidence
            and len(dom.entries) >= settings.dom_trust_min_entries
            and max_dom > trusted_max):
        logger.info(f"Trusting DOM ({dom_conf}) range: max rank {max_dom} vs {trusted_max}")
        trusted_max = max_dom

    kept = []
    for entry in entries:
        if len(entry.sources) > 1:
            kept.append(entry)
            continue
        source = entry.sources[0]
        if source == "api" or (source == "markdown" and md_conf >= settings.markdown_trust_confidence):
            kept.append(entry)
            continue
        if trusted_max > 0 and entry.rank > trusted_max:
            logger.info(f"Filtering out-of-range entry {entry.username} (rank {entry.rank}) "
                        f"beyond max rank {trusted_max} from single source {source}")
            continue
        wager = round(entry.wager)
        if wager > 0 and wager in multi_wagers:
            logger.info(f"Filtering {entry.username} (rank {entry.rank}): duplicate wager {wager} "
                        f"from single source {source}")
            continue
        kept.append(entry)
    return kept


def merge_entries(results: Dict[str, StrategyResult], report: Optional[CrossValidationReport],
                  settings: FusionSettings) -> List[FusedEntry]:
    """Keyed union of all sources' entries, merged field by field and noise-filtered."""
    if len(results) == 1:
        name, result = next(iter(results.items()))
        return [single_source_entry(name, e, result.confidence) for e in result.entries]

    by_key: Dict[str, List[Tuple[str, LeaderboardEntry, float]]] = {}
    for name, result in results.items():
        for entry in result.entries:
            by_key.setdefault(entry.key, []).append((name, entry, result.confidence))

    fused = [fuse_entry(contributors, report, settings.agreement_threshold) for contributors in by_key.values()]
    fused.sort(key=lambda e: (e.rank, -e.wager))
    return filter_noise(fused, results, settings)


# ── Prizes and confidence ───────────────────────────────────────────────


def fuse_prizes(results: Dict[str, StrategyResult]) -> Tuple[List[PrizeRow], float]:
    """The most complete prize table wins; the largest known prize pool is kept."""
    best: List[PrizeRow] = []
    total_pool = 0.0
    for result in results.values():
        if len(result.prizes) > len(best):
            best = list(result.prizes)
        total_pool = max(total_pool, result.total_prize_pool or 0.0)
    for result in results.values():
        injected = [PrizeRow(rank=e.rank, prize=e.prize) for e in result.entries
                    if e.prize_injected and e.prize > 0]
        if len(injected) > len(best):
            best = injected
    return sorted(best, key=lambda r: r.rank), total_pool


def source_count_bonus(count: int) -> int:
    if count >= 3:
        return 20
    if count == 2:
        return 10
    return -5


def final_confidence(results: Dict[str, StrategyResult], report: Optional[CrossValidationReport]) -> int:
    if not results:
        return 0
    mean = sum(r.confidence for r in results.values()) / len(results)
    adjustment = report.confidence_adjustment if report else 0
    return max(0, min(100, round_half_up(mean + source_count_bonus(len(results)) + adjustment)))


def extraction_method(results: Dict[str, StrategyResult], report: Optional[CrossValidationReport]) -> str:
    if report is not None and report.recommended_source:
        return report.recommended_source
    return pick_best_source({name: r.confidence for name, r in results.items()}) or NO_SOURCE


def empty_result(errors: List[str], breakdown: Optional[Dict[str, StrategyResult]] = None) -> FusedResult:
    return FusedResult(
        extraction_method=NO_SOURCE,
        source_breakdown=breakdown or {},
        metadata={"fusedAt": _now(), "sourcesUsed": [], "sourceCount": 0},
        errors=list(errors),
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Engine ──────────────────────────────────────────────────────────────


class FusionEngine:
    """Orchestrates strategies and fuses their results."""

    def __init__(self, registry: Optional[StrategyRegistry] = None,
                 settings: Optional[FusionSettings] = None,
                 validator: Optional[CrossValidator] = None):
        if registry is None:
            from extraction.strategies import default_registry
            registry = default_registry()
        self.registry = registry
        self.settings = settings or FusionSettings.from_config()
        self.validator = validator or CrossValidator()

    async def fuse(self, data: ExtractionInput, options: Optional[FusionOptions] = None) -> FusedResult:
        """
        Run every applicable strategy over *data* and fuse the results.

        Args:
            data: Captured page input. Not modified.
            options: Per-run options (threshold override, site name, hints).

        Returns:
            FusedResult; ``extraction_method == "none"`` when nothing usable was found.
        """
        options = options or FusionOptions()
        errors: List[str] = []
        prepared = self.prepare_input(data, options)
        if options.teacher_hints is None and prepared.hints is not None:
            options = dataclasses.replace(options, teacher_hints=prepared.hints)
        raw = await self.run_strategies(prepared, errors)
        return self.fuse_results(raw, options, errors)

    def prepare_input(self, data: ExtractionInput, options: FusionOptions) -> ExtractionInput:
        """Copy of *data* with merged API responses and injected hints."""
        site_name = options.site_name or data.site_name
        responses = data.raw_json_responses
        if responses:
            responses = tuple(merge_api_responses(responses, site_name, options.known_keywords))
            logger.info(f"API responses after merge: {len(responses)} of {len(data.raw_json_responses)}")

        mappings = dict(data.field_mappings)
        if options.learned_patterns:
            learned = {k: v for k, v in options.learned_patterns.field_mappings.items() if isinstance(v, str)}
            mappings.update(learned)
            if learned:
                logger.info(f"Applied learned field mappings: {sorted(learned)}")

        hints = options.teacher_hints or data.hints
        if hints and (hints.column_order or hints.podium_layout):
            logger.info(f"Layout hints: column_order={hints.column_order}, podium_layout={hints.podium_layout}")

        return dataclasses.replace(data, raw_json_responses=responses, site_name=site_name,
                                   hints=hints, field_mappings=mappings)

    async def run_strategies(self, data: ExtractionInput, errors: List[str]) -> Dict[str, StrategyResult]:
        """
        Runs applicable strategies: non-deferred ones first (concurrently when
        configured), then deferred ones once those have all finished.
        """
        applicable: List[ExtractionStrategy] = []
        for strategy in self.registry.execution_order():
            try:
                ok = strategy.can_extract(data)
            except Exception as e:
                logger.error(f"Strategy {strategy.name}: can_extract failed: {e}")
                errors.append(f"{strategy.name}: {e}")
                continue
            if ok:
                applicable.append(strategy)
            else:
                logger.debug(f"Strategy {strategy.name}: cannot extract (missing input)")

        immediate = [s for s in applicable if not s.deferred]
        deferred = [s for s in applicable if s.deferred]

        if self.settings.concurrent:
            outcomes = await asyncio.gather(*(self._run_one(s, data, errors) for s in immediate))
        else:
            outcomes = [await self._run_one(s, data, errors) for s in immediate]
        results = {s.name: r for s, r in zip(immediate, outcomes) if r is not None}

        for strategy in deferred:
            if self._has_sufficient_result(results):
                logger.info(f"Strategy {strategy.name}: skipped, another strategy already produced a usable result")
                continue
            result = await self._run_one(strategy, data, errors)
            if result is not None:
                results[strategy.name] = result
        return results

    async def _run_one(self, strategy: ExtractionStrategy, data: ExtractionInput,
                       errors: List[str]) -> Optional[StrategyResult]:
        try:
            return await strategy.extract(data)
        except Exception as e:
            logger.error(f"Strategy {strategy.name} error: {e}", exc_info=True)
            errors.append(f"{strategy.name}: {e}")
            return None

    def _has_sufficient_result(self, results: Dict[str, StrategyResult]) -> bool:
        return any(
            len(r.entries) >= self.settings.ocr_skip_min_entries
            and r.confidence >= self.settings.ocr_skip_min_confidence
            for r in results.values()
        )

    def fuse_results(self, raw: Dict[str, StrategyResult], options: Optional[FusionOptions] = None,
                     errors: Optional[List[str]] = None) -> FusedResult:
        """Fusion proper, from per-strategy results onwards."""
        options = options or FusionOptions()
        errors = errors if errors is not None else []
        min_confidence = (options.min_confidence if options.min_confidence is not None
                          else self.settings.min_confidence)

        results = drop_below_threshold(raw, min_confidence)
        results = {name: normalize_result(name, r) for name, r in results.items()}
        results = drop_stale_api(results, self.settings.stale_wager_tolerance)

        expected = options.teacher_hints.expected_rank1 if options.teacher_hints else None
        results = apply_teacher_validation(results, expected, self.settings)

        if not results:
            logger.info("No strategies produced usable results")
            return empty_result(errors)

        report = None
        if len(results) >= MIN_SOURCES_FOR_VERIFICATION:
            report = self.validator.validate(results)

        entries = merge_entries(results, report, self.settings)
        prizes, total_pool = fuse_prizes(results)
        confidence = final_confidence(results, report)
        method = extraction_method(results, report)

        statuses = Counter(e.fusion.verification_status for e in entries)
        logger.info(f"Fused {len(entries)} entries from {sorted(results)}, confidence {confidence}, "
                    f"method {method}, statuses {dict(statuses)}")

        return FusedResult(
            entries=entries,
            prizes=prizes,
            total_prize_pool=total_pool,
            confidence=confidence,
            extraction_method=method,
            cross_validation=report,
            source_breakdown=results,
            metadata={
                "fusedAt": _now(),
                "sourcesUsed": list(results),
                "sourceCount": len(results),
            },
            errors=list(errors),
        )
