"""Dimension registry for discovery and management."""

from typing import Dict, List, Optional

from scoring.protocols import QualityDimension


class DimensionRegistry:
    """Registry for quality dimensions: register, unregister, lookup by name."""

    def __init__(self):
        self._dimensions: Dict[str, QualityDimension] = {}

    def register(self, dimension: QualityDimension) -> None:
        """Register a dimension (replaces existing with same name)."""
        self._dimensions[dimension.name] = dimension

    def unregister(self, name: str) -> None:
        self._dimensions.pop(name, None)

    def get(self, name: str) -> Optional[QualityDimension]:
        return self._dimensions.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._dimensions.keys())

    @property
    def dimensions(self) -> List[QualityDimension]:
        return list(self._dimensions.values())

    @property
    def default_weights(self) -> Dict[str, float]:
        """Dict of {name: default_weight} for all registered dimensions."""
        return {d.name: d.default_weight for d in self._dimensions.values()}

    def __len__(self) -> int:
        return len(self._dimensions)

    def __contains__(self, name: str) -> bool:
        return name in self._dimensions
