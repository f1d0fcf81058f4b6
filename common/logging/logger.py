import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class JsonFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per LogRecord.
    """
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
            "line": record.lineno
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


_MAX_BYTES = 10 * 1024 * 1024  # 10MB
_BACKUP_COUNT = 5
_CONSOLE_FMT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _default_log_dir() -> str:
    """Read paths.logs_dir from config.json without importing common.config."""
    config_file = Path("config.json")
    if config_file.exists():
        try:
            with open(config_file, "r") as fh:
                configured = json.load(fh).get("paths", {}).get("logs_dir")
            if configured:
                return configured
        except (OSError, ValueError):
            pass  # unreadable config falls back to ./logs
    return "logs"


def setup_logger(
    name: str,
    log_dir: Optional[str] = None,
    level: int = logging.INFO,
    console_output: bool = True,
) -> logging.Logger:
    """
    Sets up a logger with a JSONL file handler and a console handler.

    Args:
        name: Name of the logger (also the log file stem)
        log_dir: Directory to store log files (defaults to paths.logs_dir)
        level: Logging level
        console_output: Whether to output to console

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    log_path = Path(log_dir or _default_log_dir())
    try:
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / f"{name}.jsonl",
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT
        )
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)
    except OSError:
        # Read-only working directory: keep console logging only
        pass

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FMT))
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Convenience function to get a logger with default settings"""
    return setup_logger(name)
