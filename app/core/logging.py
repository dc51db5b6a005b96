"""Logging configuration."""

import logging
import os

# Third-party loggers that are chatty at INFO/DEBUG
NOISY_LOGGERS = ("pdfminer", "httpx", "httpcore", "openai")


def setup_logging(level: str | None = None) -> None:
    """Configure application logging.

    The level comes from the argument, then ``LOG_LEVEL``, then INFO.
    """
    resolved = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger().setLevel(resolved)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
