"""
logger.py

Centralized logging configuration for the sinkhole.
Provides consistent logging across all modules.

Per-contact lines are emitted at DEBUG, so the default INFO level only
shows listener lifecycle and errors; -v turns the contact trail on.
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from datetime import datetime

from utils.config import config

LOGGER_NAME = "sinkhole"


class LoggerSetup:
    """
    Configures application-wide logging with console and file output.
    """

    _initialized = False

    @classmethod
    def setup(cls) -> logging.Logger:
        """
        Initialize and return the main application logger.
        Only configures once, subsequent calls return existing logger.
        """
        logger = logging.getLogger(LOGGER_NAME)

        if cls._initialized:
            return logger

        log_level = config.get("logging.level", "INFO")
        logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

        # stdout carries the listener table
        if config.get("logging.console_output", True):
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        if config.get("logging.file_output", True):
            logger.addHandler(cls._file_handler(formatter))

        cls._initialized = True
        logger.debug("Logging system initialized")

        return logger

    @staticmethod
    def _file_handler(formatter: logging.Formatter) -> RotatingFileHandler:
        """Daily-named application log, size-rotated. Event records go elsewhere."""
        logs_path = Path(config.get("paths.logs_dir", "logs"))
        logs_path.mkdir(parents=True, exist_ok=True)

        prefix = config.get("logging.filename_prefix", LOGGER_NAME)
        log_file = logs_path / f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log"

        handler = RotatingFileHandler(
            log_file,
            maxBytes=config.get("logging.max_log_size_mb", 10) * 1024 * 1024,
            backupCount=config.get("logging.backup_count", 5),
            encoding="utf-8"
        )
        handler.setFormatter(formatter)
        return handler

    @staticmethod
    def set_verbosity(verbose: bool = False, quiet: bool = False) -> int:
        """
        Apply the -v / -q switches. Verbose wins when both are given.
        Returns the level now in effect.
        """
        logger = logging.getLogger(LOGGER_NAME)
        if verbose:
            logger.setLevel(logging.DEBUG)
        elif quiet:
            logger.setLevel(logging.WARNING)
        return logger.level


# Create global logger instance
app_logger = LoggerSetup.setup()
