"""Process-wide logging setup."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_NOISY_LOGGERS = ("botocore", "aiobotocore", "boto3", "s3transfer", "httpx", "httpcore")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once at startup.

    Args:
        level: Log level name, e.g. ``"INFO"`` or ``"DEBUG"``
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
