"""Tests for the strategy registry and source-ordering policies."""

from extraction.policies import (
    SOURCE_TIE_BREAK_ORDER,
    ExtractionMode,
    execution_order,
    pick_best_source,
    tie_break_rank,
)
from extraction.strategies import BUILTIN_STRATEGIES, default_registry
from extraction.strategies.registry import StrategyRegistry


# ── registry ────────────────────────────────────────────────

class TestStrategyRegistry:
    def test_default_registry_holds_builtins(self):
        registry = default_registry()
        assert len(registry) == len(BUILTIN_STRATEGIES)
        assert registry.names == ["api", "markdown", "dom", "geometric", "ocr"]

    def test_register_replaces_same_name(self, fake_strategy):
        registry = StrategyRegistry()
        registry.register(fake_strategy("dom"))
        replacement = fake_strategy("dom", priority=9.0)
        registry.register(replacement)
        assert len(registry) == 1
        assert registry.get("dom") is replacement

    def test_unregister(self):
        registry = default_registry()
        registry.unregister("ocr")
        registry.unregister("missing")
        assert "ocr" not in registry
        assert "dom" in registry
        assert registry.get("ocr") is None

    def test_execution_order_by_priority(self, fake_strategy):
        registry = StrategyRegistry()
        registry.register(fake_strategy("ocr", priority=4.0))
        registry.register(fake_strategy("api", priority=1.0))
        registry.register(fake_strategy("dom", priority=2.0))
        assert [s.name for s in registry.execution_order()] == ["api", "dom", "ocr"]

    def test_builtin_execution_order(self):
        assert [s.name for s in default_registry().execution_order()] == list(SOURCE_TIE_BREAK_ORDER)


# ── policies ────────────────────────────────────────────────

class TestPolicies:
    def test_execution_order_stable_for_equal_priority(self, fake_strategy):
        first, second = fake_strategy("b", priority=1.0), fake_strategy("a", priority=1.0)
        assert execution_order([first, second]) == [first, second]

    def test_tie_break_rank(self):
        assert tie_break_rank("api") == 0
        assert tie_break_rank("ocr") == 4
        assert tie_break_rank("vision") == len(SOURCE_TIE_BREAK_ORDER)

    def test_pick_best_source_highest_confidence(self):
        assert pick_best_source({"dom": 80, "markdown": 70, "ocr": 90}) == "ocr"

    def test_pick_best_source_tie(self):
        assert pick_best_source({"dom": 80, "markdown": 80}) == "markdown"
        assert pick_best_source({"geometric": 60, "api": 60, "dom": 60}) == "api"

    def test_pick_best_source_empty(self):
        assert pick_best_source({}) is None

    def test_mode_parse(self):
        assert ExtractionMode.parse("LEGACY") is ExtractionMode.LEGACY
        assert ExtractionMode.parse(" fusion ") is ExtractionMode.FUSION
        assert ExtractionMode.parse(ExtractionMode.LEGACY) is ExtractionMode.LEGACY
        assert ExtractionMode.parse("bogus") is ExtractionMode.FUSION
