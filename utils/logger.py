"""Logging configuration for the massage practice scheduling system."""

import logging
import sys
from pathlib import Path
from config.settings import config


def setup_logger(name: str) -> logging.Logger:
    """
    Setup and configure logger with console and file handlers.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    # Formatter
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if config.LOG_FILE:
        log_dir = Path(config.LOG_FILE).parent
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(config.LOG_FILE)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class ContextLogger:
    """Logger wrapper that adds contextual information to all log messages."""

    def __init__(self, logger: logging.Logger, **context):
        """
        Initialize context logger.

        Args:
            logger: Base logger instance
            **context: Context key-value pairs (e.g., appointment_id, client_id)
        """
        self.logger = logger
        self.context = context

    def _format_message(self, msg: str) -> str:
        """Add context to message."""
        context_str = " ".join(f"[{k}={v}]" for k, v in self.context.items() if v)
        return f"{context_str} {msg}" if context_str else msg

    def info(self, msg: str, *args, **kwargs):
        """Log info message with context."""
        self.logger.info(self._format_message(msg), *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """Log warning message with context."""
        self.logger.warning(self._format_message(msg), *args, **kwargs)

