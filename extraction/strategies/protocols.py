"""Abstract base class for extraction strategies."""

from abc import ABC, abstractmethod
from typing import Optional

from common.models import ExtractionInput, StrategyResult


class ExtractionStrategy(ABC):
    """Protocol for a single extraction technique."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique strategy name, also the source tag on its entries (e.g. 'api')."""
        ...

    @property
    def priority(self) -> float:
        """Scheduling hint; lower runs first. Never used to skip a strategy."""
        return 10.0

    @property
    def deferred(self) -> bool:
        """Deferred strategies run after the others have finished."""
        return False

    @abstractmethod
    def can_extract(self, data: ExtractionInput) -> bool:
        """Pure capability check over the captured input."""
        ...

    @abstractmethod
    async def extract(self, data: ExtractionInput) -> Optional[StrategyResult]:
        """
        Produce a candidate result.

        Args:
            data: Captured page input, read-only.

        Returns:
            StrategyResult, or None when nothing usable was found.
        """
        ...
