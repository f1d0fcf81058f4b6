"""Strategy registry for discovery and management."""

from typing import Dict, List, Optional

from extraction.policies import execution_order
from extraction.strategies.protocols import ExtractionStrategy


class StrategyRegistry:
    """Registry for extraction strategies: register, unregister, lookup by name."""

    def __init__(self):
        self._strategies: Dict[str, ExtractionStrategy] = {}

    def register(self, strategy: ExtractionStrategy) -> None:
        """Register a strategy (replaces existing with same name)."""
        self._strategies[strategy.name] = strategy

    def unregister(self, name: str) -> None:
        """Remove a strategy by name. No-op if not found."""
        self._strategies.pop(name, None)

    def get(self, name: str) -> Optional[ExtractionStrategy]:
        return self._strategies.get(name)

    @property
    def names(self) -> List[str]:
        """Registered strategy names in insertion order."""
        return list(self._strategies.keys())

    @property
    def strategies(self) -> List[ExtractionStrategy]:
        return list(self._strategies.values())

    def execution_order(self) -> List[ExtractionStrategy]:
        """Strategies sorted by their scheduling priority."""
        return execution_order(self._strategies.values())

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, name: str) -> bool:
        return name in self._strategies
