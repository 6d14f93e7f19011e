"""Logging setup shared by the API server and the terminal client."""

import logging

from src.core.config import get_settings

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once, using ``LOG_LEVEL`` by default."""
    level = (level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format=_FORMAT)
    # The OpenAI SDK and httpx log every request at INFO
    for noisy in ("httpx", "openai"):
        logging.getLogger(noisy).setLevel(max(logging.WARNING, logging.getLevelName(level)))
