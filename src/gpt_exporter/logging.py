"""Logging configuration for gpt-exporter.

Provides centralized logging setup with file output to ~/gpt-exporter/logs/.
"""

import logging
import sys
from pathlib import Path

# Default log directory
DEFAULT_LOG_DIR = Path.home() / "gpt-exporter" / "logs"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for a gpt-exporter component.

    Creates a logger with both file and optional console handlers.
    Log files are written to ~/gpt-exporter/logs/<name>.log.

    Args:
        name: Logger name (used for log filename)
        log_dir: Directory for log files (defaults to ~/gpt-exporter/logs/)
        level: Logging level (defaults to INFO)
        console: Whether to also log to console (defaults to True)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    # Ensure log directory exists
    log_dir.mkdir(parents=True, exist_ok=True)

    # Create logger
    logger = logging.getLogger(f"gpt_exporter.{name}")
    logger.setLevel(level)

    # Avoid adding duplicate handlers if already configured
    if logger.handlers:
        return logger

    # Log format with timestamp, level, and context
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler
    log_file = log_dir / f"{name}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Console handler (optional)
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a gpt-exporter component.

    This function returns an existing logger or creates a basic one.
    For full configuration with file output, use setup_logging().
    Child loggers (e.g. "export.pipeline") propagate to that component logger.

    Args:
        name: Logger name (will be prefixed with 'gpt_exporter.')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"gpt_exporter.{name}")
