"""
Logger configuration.

One stdout handler on the root logger; modules use logging.getLogger(__name__).
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure Python logging with ISO timestamp and a plain text format."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
    root_logger.addHandler(handler)

    # Reduce noise from verbose third-party libraries
    for name in ("httpx", "httpcore", "openai", "multipart"):
        logging.getLogger(name).setLevel(logging.WARNING)
