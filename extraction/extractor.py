"""
Extraction facade.

Usage:
    extractor = LeaderboardExtractor()
    result = await extractor.extract(ExtractionInput(html=..., markdown=...))

Fusion mode runs every strategy and fuses the results; legacy mode returns
the first strategy whose cleaned entries reach the confidence threshold. A
fusion failure falls back to legacy mode when ``extraction.fallback_to_legacy``
is set.
"""

import dataclasses
from datetime import datetime, timezone
from typing import List, Optional, Union

from common.config import config
from common.logging.logger import get_logger
from common.models import ExtractionInput, FusedResult, StrategyResult
from common.text_utils import round_half_up
from extraction.fusion import FusionEngine, FusionOptions, empty_result, single_source_entry
from extraction.policies import ExtractionMode
from extraction.strategies.registry import StrategyRegistry
from extraction.validation import validate_and_clean_entries

logger = get_logger("extractor")


class LeaderboardExtractor:
    def __init__(self, registry: Optional[StrategyRegistry] = None,
                 mode: Union[ExtractionMode, str, None] = None,
                 engine: Optional[FusionEngine] = None):
        self.engine = engine or FusionEngine(registry)
        self.registry = registry if registry is not None else self.engine.registry
        self.mode = ExtractionMode.parse(mode if mode is not None else config.get("extraction.mode"))
        self.fallback_to_legacy = config.get("extraction.fallback_to_legacy")

    async def extract(self, data: ExtractionInput, options: Optional[FusionOptions] = None) -> FusedResult:
        options = options or FusionOptions()
        logger.info(f"Starting extraction (mode: {self.mode.value})")

        if self.mode is ExtractionMode.LEGACY:
            return await self.extract_legacy(data, options)

        try:
            fused = await self.engine.fuse(data, options)
        except Exception as e:
            if not self.fallback_to_legacy:
                raise
            logger.error(f"Fusion error: {e}, falling back to legacy extraction", exc_info=True)
            return await self.extract_legacy(data, options)

        return self._clean_fused(fused)

    def _clean_fused(self, fused: FusedResult) -> FusedResult:
        if not fused.entries:
            return fused
        cleaned, rejected = validate_and_clean_entries(fused.entries)
        if not cleaned:
            logger.info("Fusion found no valid entries")
            result = empty_result(fused.errors, fused.source_breakdown)
            result.cross_validation = fused.cross_validation
            result.metadata["rejectedEntries"] = len(rejected)
            return result

        logger.info(f"Fusion complete: {len(cleaned)} entries via {fused.extraction_method} "
                    f"(confidence: {fused.confidence})")
        metadata = dict(fused.metadata)
        if rejected:
            metadata["rejectedEntries"] = len(rejected)
        return dataclasses.replace(fused, entries=cleaned, metadata=metadata)

    async def extract_legacy(self, data: ExtractionInput, options: FusionOptions) -> FusedResult:
        """First strategy in execution order whose cleaned result reaches the threshold wins."""
        min_confidence = (options.min_confidence if options.min_confidence is not None
                          else self.engine.settings.min_confidence)
        prepared = self.engine.prepare_input(data, options)
        errors: List[str] = []
        tried: List[str] = []
        best_name, best = None, None

        logger.info("Using legacy sequential extraction")
        for strategy in self.registry.execution_order():
            tried.append(strategy.name)
            try:
                applicable = strategy.can_extract(prepared)
            except Exception as e:
                logger.error(f"Strategy {strategy.name}: can_extract failed: {e}")
                errors.append(f"{strategy.name}: {e}")
                continue
            if not applicable:
                logger.debug(f"Strategy {strategy.name}: cannot extract (missing input)")
                continue
            try:
                result = await strategy.extract(prepared)
            except Exception as e:
                logger.error(f"Strategy {strategy.name} error: {e}")
                errors.append(f"{strategy.name}: {e}")
                continue
            if not result or not result.entries:
                continue

            cleaned, _ = validate_and_clean_entries(result.entries)
            if not cleaned:
                continue
            candidate = dataclasses.replace(result, entries=cleaned)
            logger.info(f"Strategy {strategy.name}: {len(cleaned)} entries, confidence {candidate.confidence}")

            if candidate.confidence >= min_confidence:
                best_name, best = strategy.name, candidate
                break
            if best is None or candidate.confidence > best.confidence:
                best_name, best = strategy.name, candidate

        if best is None:
            logger.info("No entries extracted from any strategy")
            result = empty_result(errors)
            result.metadata.update(legacyMode=True, strategiesTried=tried)
            return result

        logger.info(f"Legacy result: {len(best.entries)} entries via {best_name} (confidence: {best.confidence})")
        return self._legacy_result(best_name, best, errors, tried)

    @staticmethod
    def _legacy_result(name: str, result: StrategyResult, errors: List[str], tried: List[str]) -> FusedResult:
        return FusedResult(
            entries=[single_source_entry(name, e, result.confidence) for e in result.entries],
            prizes=list(result.prizes),
            total_prize_pool=result.total_prize_pool,
            confidence=round_half_up(result.confidence),
            extraction_method=name,
            source_breakdown={name: result},
            metadata={
                "fusedAt": datetime.now(timezone.utc).isoformat(),
                "sourcesUsed": [name],
                "sourceCount": 1,
                "legacyMode": True,
                "strategiesTried": tried,
                "apiUrl": result.api_url,
            },
            errors=errors,
        )
