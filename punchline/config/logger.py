"""
Logger configuration for the Punchline caption engine using Loguru.

This module provides a comprehensive logging setup with:
- Structured logging with timestamps using Loguru
- File and console handlers with rotation
- A dedicated repair trail (every rewrite the engine applies to a line)
- Error tracking and performance monitoring
- Beautiful colored console output

Importing the engine never touches the process-wide loguru handlers. The
engine logs through `app_logger` into whatever sinks the host already has.
A host that wants the engine's own sinks calls configure_logging() once at
startup. File sinks are only added when LOG_TO_FILE (or to_file=True) asks
for them.
"""

import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from punchline.config.settings import settings


class LoguruConfig:
    """Loguru configuration class for the engine."""

    def __init__(self, app_name: str = settings.APP_NAME, logs_dir: str = settings.LOG_DIR):
        self.app_name = app_name
        self.logs_dir = Path(logs_dir)
        self._handler_ids: List[int] = []

    def setup_logger(self, log_level: str = "INFO", to_file: bool = False, console: bool = True) -> None:
        """
        Add the engine's sinks.

        Sinks the host added itself are left alone. Calling this again
        replaces only the sinks a previous call added.
        """
        self.reset()

        # Console handler with colors and formatting
        if console:
            self._handler_ids.append(logger.add(
                sys.stdout,
                format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
                level=log_level,
                colorize=True,
                backtrace=True,
                diagnose=True
            ))

        logger.debug(f"{self.app_name} v{settings.APP_VERSION} logging configured (level={log_level}, to_file={to_file})")

        if not to_file:
            return

        self.logs_dir.mkdir(parents=True, exist_ok=True)

        # General engine logs
        self._handler_ids.append(logger.add(
            self.logs_dir / "app.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            encoding="utf-8",
            backtrace=True,
            diagnose=True
        ))

        # Error logs only
        self._handler_ids.append(logger.add(
            self.logs_dir / "errors.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="ERROR",
            rotation="5 MB",
            retention="30 days",
            compression="zip",
            encoding="utf-8",
            backtrace=True,
            diagnose=True
        ))

        # Repair trail
        self._handler_ids.append(logger.add(
            self.logs_dir / "repairs.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            level="DEBUG",
            rotation="20 MB",
            retention="14 days",
            compression="zip",
            encoding="utf-8",
            filter=lambda record: "REPAIR" in record["message"]
        ))

        # Performance logs
        self._handler_ids.append(logger.add(
            self.logs_dir / "performance.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            level="INFO",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            encoding="utf-8",
            filter=lambda record: "PERFORMANCE" in record["message"]
        ))

    def reset(self) -> None:
        """Remove the sinks this config added."""
        for handler_id in self._handler_ids:
            logger.remove(handler_id)
        self._handler_ids.clear()

    @property
    def handler_count(self) -> int:
        return len(self._handler_ids)


def log_repair(stage: str, before: str, after: str, rule: str = "") -> None:
    """Log a single line rewrite when it actually changed the text."""
    if before == after:
        return
    logger.debug(
        "REPAIR [{stage}] {rule}: {before!r} -> {after!r}",
        stage=stage,
        rule=rule or "rewrite",
        before=before,
        after=after,
    )


def log_performance(operation: str, duration: float, **kwargs) -> None:
    """Log performance metrics using Loguru."""
    logger.info(
        "PERFORMANCE: {operation} completed in {duration:.4f}s",
        operation=operation,
        duration=duration,
        **kwargs
    )


def configure_logging(
    log_level: Optional[str] = None,
    to_file: Optional[bool] = None,
    logs_dir: Optional[str] = None,
    console: bool = True,
) -> LoguruConfig:
    """
    Opt in to the engine's console and file sinks.

    Unset arguments fall back to LOG_LEVEL, LOG_TO_FILE and LOG_DIR. Returns
    the config so the host can reset() it on shutdown.
    """
    global loguru_config
    if logs_dir is not None:
        loguru_config.reset()
        loguru_config = LoguruConfig(logs_dir=logs_dir)
    loguru_config.setup_logger(
        log_level=log_level or settings.LOG_LEVEL,
        to_file=settings.LOG_TO_FILE if to_file is None else to_file,
        console=console,
    )
    return loguru_config


# Engine sinks are added by configure_logging(), never at import
loguru_config = LoguruConfig()

# Export logger for use in other modules
app_logger = logger
