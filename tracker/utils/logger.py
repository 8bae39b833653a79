"""
Listing Tracker - Logging
=========================

Loguru sinks built from the ``logging`` section of settings.yaml:
- ``console``: stderr
- ``file``: rotating run log
- ``error_file``: errors only, kept longer
- ``json``: serialized records for log shipping (off by default)

Modules log through ``get_logger(__name__)``; nothing is emitted to files until
``setup_logging`` runs, so tests and library use stay quiet.
"""

import sys
import time
from functools import wraps
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from tracker.core.config import Config

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

SINK_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "console": {"enabled": True, "colorize": True},
    "file": {
        "enabled": True,
        "path": "./logs/listing-tracker.log",
        "rotation": "50 MB",
        "retention": "14 days",
        "compression": "zip",
    },
    "error_file": {
        "enabled": True,
        "path": "./logs/errors.log",
        "level": "ERROR",
        "rotation": "10 MB",
        "retention": "30 days",
    },
    "json": {
        "enabled": False,
        "path": "./logs/listing-tracker.json",
        "rotation": "50 MB",
        "retention": "14 days",
    },
}

logger.configure(extra={"name": "tracker"})


class LoggerSetup:
    """Installs the configured loguru sinks, replacing any existing ones."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else (Config.get("logging") or {})
        self.level = self.config.get("level", "INFO")
        self.format = self.config.get("format") or DEFAULT_FORMAT
        self.sink_ids = []
        self._setup_logger()

    def _section(self, name: str) -> Dict[str, Any]:
        return {**SINK_DEFAULTS[name], **(self.config.get(name) or {})}

    def _file_sink(self, section: Dict[str, Any], **extra) -> int:
        path = Path(section["path"])
        path.parent.mkdir(parents=True, exist_ok=True)
        options = {"rotation": section.get("rotation"), "retention": section.get("retention")}
        if section.get("compression"):
            options["compression"] = section["compression"]
        return logger.add(path, **options, **extra)

    def _setup_logger(self):
        logger.remove()

        console = self._section("console")
        if console["enabled"]:
            self.sink_ids.append(
                logger.add(
                    sys.stderr,
                    format=self.format,
                    level=self.level,
                    colorize=console.get("colorize", True),
                    backtrace=True,
                    diagnose=False,
                )
            )

        run_log = self._section("file")
        if run_log["enabled"]:
            self.sink_ids.append(
                self._file_sink(run_log, format=self.format, level=self.level, backtrace=True, diagnose=False)
            )

        errors = self._section("error_file")
        if errors["enabled"]:
            self.sink_ids.append(
                self._file_sink(errors, format=self.format, level=errors.get("level", "ERROR"), backtrace=True)
            )

        records = self._section("json")
        if records["enabled"]:
            self.sink_ids.append(self._file_sink(records, format="{message}", level=self.level, serialize=True))


_logger_setup: Optional[LoggerSetup] = None


def setup_logging(config: Optional[Dict[str, Any]] = None) -> LoggerSetup:
    """Install sinks once at process start (``main.py``)."""
    global _logger_setup
    _logger_setup = LoggerSetup(config)
    logger.bind(name=__name__).info(f"Logging initialized at level {_logger_setup.level}")
    return _logger_setup


def get_logger(name: Optional[str] = None):
    """
    Logger bound to a module name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("[refresh] START 3 listings")
    """
    if name:
        return logger.bind(name=name)
    return logger


def log_execution_time(func):
    """Log how long an async call took, and how long it ran before failing."""

    @wraps(func)
    async def wrapper(*args, **kwargs):
        log = get_logger(func.__module__)
        start = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            log.error(f"{func.__qualname__} failed after {time.perf_counter() - start:.2f}s: {e}")
            raise
        log.info(f"{func.__qualname__} finished in {time.perf_counter() - start:.2f}s")
        return result

    return wrapper


__all__ = ["LoggerSetup", "setup_logging", "get_logger", "log_execution_time"]
