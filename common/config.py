import json
from pathlib import Path
from typing import Dict, Any

from common.errors import ConfigError
from common.logging.logger import get_logger

logger = get_logger("config")

# Centralized default values for all config keys used across the codebase.
# Each entry: (type, default_value)
# Types: str, int, float, bool, None (any)
CONFIG_SCHEMA: Dict[str, tuple] = {
    # Paths
    "paths.logs_dir":                       (str,   "logs"),

    # Extraction facade
    "extraction.mode":                      (str,   "fusion"),
    "extraction.fallback_to_legacy":        (bool,  True),

    # Fusion engine
    "fusion.min_confidence":                (float, 50.0),
    "fusion.concurrent":                    (bool,  True),
    "fusion.ocr_skip_min_entries":          (int,   2),
    "fusion.ocr_skip_min_confidence":       (float, 65.0),
    "fusion.stale_wager_tolerance":         (float, 0.01),
    "fusion.teacher_tolerance":             (float, 0.05),
    "fusion.teacher_boost":                 (float, 15.0),
    "fusion.teacher_penalty":               (float, 20.0),
    "fusion.agreement_threshold":           (float, 0.75),
    "fusion.markdown_trust_confidence":     (float, 70.0),
    "fusion.markdown_extension_factor":     (float, 2.0),
    "fusion.markdown_extension_min_rank":   (int,   20),
    "fusion.dom_trust_confidence":          (float, 85.0),
    "fusion.dom_trust_min_entries":         (int,   5),

    # Cross-validation
    "cross_validation.wager_tolerance":     (float, 0.05),
    "cross_validation.rank_tolerance":      (int,   1),

    # Strategies
    "strategies.markdown_min_length":       (int,   1000),
    "strategies.dom_min_html_length":       (int,   500),
    "strategies.min_entries":               (int,   3),

    # Page capture
    "capture.timeout_ms":                   (int,   30000),
    "capture.settle_ms":                    (int,   2500),
    "capture.user_agent":                   (str,   "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"),

    # OCR
    "ocr.language":                         (str,   "eng"),

    # Quality flags
    "quality.agreement_flag_below":         (int,   50),
    "quality.completeness_flag_below":      (int,   60),
    "quality.historical_flag_below":        (int,   40),
    "quality.validity_flag_below":          (int,   60),
    "quality.pattern_flag_below":           (int,   40),
}


class Config:
    _instance = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._load_config()
        return cls._instance

    def _load_config(self):
        config_path = Path("config.json")
        if not config_path.exists():
            self._config = {}
            return

        with open(config_path, "r") as f:
            self._config = json.load(f)

        # Ensure directories exist (best-effort, don't fail on inaccessible paths)
        self._ensure_dirs()

    def _ensure_dirs(self):
        paths = self._config.get("paths", {})
        for path in paths.values():
            if isinstance(path, str) and not path.endswith(('db', 'json', 'txt')):
                try:
                    Path(path).mkdir(parents=True, exist_ok=True)
                except OSError:
                    pass  # Skip inaccessible paths (e.g. unmounted volumes)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Gets a config value by dot-separated key.

        Lookup order:
        1. Value from config.json (if present and not None)
        2. Caller-provided default (if not None)
        3. Schema default from CONFIG_SCHEMA
        4. None
        """
        value = self._get_raw(key)

        if value is not None:
            return value

        if default is not None:
            return default

        schema_entry = CONFIG_SCHEMA.get(key)
        if schema_entry is not None:
            return schema_entry[1]

        return None

    def validate(self) -> list:
        """
        Validates the loaded config against CONFIG_SCHEMA.

        Returns a list of warning strings for type mismatches.
        Does NOT raise -- config.json values always take precedence.
        Integers are accepted where a float is expected.
        """
        warnings = []
        for key, (expected_type, _default) in CONFIG_SCHEMA.items():
            if expected_type is None:
                continue
            value = self._get_raw(key)
            if value is None:
                continue
            accepted = (int, float) if expected_type is float else expected_type
            if isinstance(value, bool) and expected_type is not bool:
                accepted = ()
            if not isinstance(value, accepted):
                warnings.append(
                    f"Config '{key}': expected {expected_type.__name__}, "
                    f"got {type(value).__name__} ({value!r})"
                )
        for w in warnings:
            logger.warning(w)
        return warnings

    def _get_raw(self, key: str) -> Any:
        """Gets value from config.json without schema fallback."""
        value = self._config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return None
            if value is None:
                return None
        return value

    def require(self, key: str) -> Any:
        """
        Requires a config value to be explicitly set in config.json.

        Raises ConfigError if missing.
        """
        value = self._get_raw(key)
        if value is None:
            logger.error(f"Missing required config key: {key}")
            raise ConfigError(key)
        return value


# Global accessor
config = Config()
