"""API strategy: leaderboards found in intercepted JSON responses."""

from typing import Optional

from common.logging.logger import get_logger
from common.models import ExtractionInput, StrategyResult
from extraction.json_search import find_leaderboard, score_leaderboard_quality
from extraction.strategies.protocols import ExtractionStrategy

logger = get_logger("strategy.api")


class ApiStrategy(ExtractionStrategy):
    """Picks the captured response whose entries score best."""

    @property
    def name(self) -> str:
        return "api"

    @property
    def priority(self) -> float:
        return 1.0

    def can_extract(self, data: ExtractionInput) -> bool:
        return len(data.raw_json_responses) > 0

    async def extract(self, data: ExtractionInput) -> Optional[StrategyResult]:
        best = None
        best_score = 0
        for response in data.raw_json_responses:
            found = find_leaderboard(response.data, data.field_mappings)
            if not found:
                continue
            entries, prizes, total_pool = found
            score = score_leaderboard_quality(entries)
            if score > best_score:
                best_score = score
                best = (response, entries, prizes, total_pool)

        if best is None:
            logger.debug("No leaderboard data found in API responses")
            return None

        response, entries, prizes, total_pool = best
        confidence = min(95, 70 + min(25, len(entries) * 2))
        logger.info(f"API: {len(entries)} entries from {response.url[-60:]} (confidence {confidence})")
        return StrategyResult(
            entries=entries,
            prizes=prizes,
            confidence=confidence,
            api_url=response.url,
            total_prize_pool=total_pool,
            metadata={
                "responseCount": len(data.raw_json_responses),
                "selectedUrl": response.url,
                "qualityScore": best_score,
                "mergedFrom": list(response.merged_from),
            },
        )
