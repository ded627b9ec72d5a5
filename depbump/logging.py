"""Shared logging configuration."""

import logging
import os
from collections.abc import Iterable

from .credentials import scrub
from .models import Credential

_ENV_LEVEL = os.environ.get("DEPBUMP_LOG_LEVEL")


def _resolve_level(value: int | str | None) -> int:
    if isinstance(value, int):
        return value
    for candidate in (value, _ENV_LEVEL):
        if isinstance(candidate, str):
            level = logging.getLevelName(candidate.strip().upper())
            if isinstance(level, int):
                return level
    return logging.INFO


def configure_logging(level: int | str | None = None) -> None:
    resolved = _resolve_level(level)
    root = logging.getLogger()
    if not root.hasHandlers():
        logging.basicConfig(
            level=resolved,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
    else:
        root.setLevel(resolved)
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))


class ScrubbingFilter(logging.Filter):
    """Drop credential material from log records before they are emitted."""

    def __init__(self, credentials: Iterable[Credential]):
        super().__init__()
        self.credentials = list(credentials)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = scrub(record.getMessage(), self.credentials)
        record.args = None
        return True
