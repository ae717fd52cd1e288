# core/logging_config.py
import logging

from core.config import LOG_LEVEL


def configure_logging() -> logging.Logger:
    """Configure root logging once and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return logging.getLogger("quiz_backend")
