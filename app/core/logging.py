"""
Logging utilities for the install/auth service.

Provides a consistent logging format for the API process and scripts.
"""

import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # Client libraries log full request lines at INFO; keep them at WARNING.
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
