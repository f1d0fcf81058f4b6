"""
Exception hierarchy for the leaderboard extraction pipeline.

The fusion core never lets these escape to its caller: strategy errors are
caught at the per-strategy boundary and reported in the fused result's
``errors`` list. Configuration and capture errors surface to the CLI layer.
"""


class LeaderboardError(Exception):
    """Base exception for all extraction pipeline errors."""


class ConfigError(LeaderboardError):
    """Raised when a required configuration key is missing or invalid."""

    def __init__(self, key: str, reason: str = "missing or None"):
        self.key = key
        super().__init__(f"Configuration error for '{key}': {reason}")


class StrategyError(LeaderboardError):
    """Raised inside a strategy when its input cannot be parsed."""

    def __init__(self, strategy: str, detail: str):
        self.strategy = strategy
        super().__init__(f"Strategy '{strategy}' failed: {detail}")


class CaptureError(LeaderboardError):
    """Raised when the page-capture collaborator cannot load a page."""

    def __init__(self, url: str, detail: str):
        self.url = url
        super().__init__(f"Capture of {url} failed: {detail}")
