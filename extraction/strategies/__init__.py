"""
Extraction strategies.

Usage:
    from extraction.strategies import default_registry

    registry = default_registry()
    registry.unregister("ocr")
"""

from extraction.strategies.api import ApiStrategy
from extraction.strategies.dom import DomStrategy
from extraction.strategies.geometric import GeometricStrategy
from extraction.strategies.markdown import MarkdownStrategy
from extraction.strategies.ocr import OcrStrategy
from extraction.strategies.protocols import ExtractionStrategy
from extraction.strategies.registry import StrategyRegistry

BUILTIN_STRATEGIES = [
    ApiStrategy,
    MarkdownStrategy,
    DomStrategy,
    GeometricStrategy,
    OcrStrategy,
]


def default_registry() -> StrategyRegistry:
    """A registry holding one instance of every built-in strategy."""
    registry = StrategyRegistry()
    for cls in BUILTIN_STRATEGIES:
        registry.register(cls())
    return registry


__all__ = [
    "ExtractionStrategy",
    "StrategyRegistry",
    "BUILTIN_STRATEGIES",
    "default_registry",
    "ApiStrategy",
    "MarkdownStrategy",
    "DomStrategy",
    "GeometricStrategy",
    "OcrStrategy",
]
