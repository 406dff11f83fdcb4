"""Logging helpers shared across feed, cache and resolver modules.

Keeps structured ``extra=`` payloads consistent and makes sure URLs never
leak credentials or query strings into log output.
"""
from __future__ import annotations

import logging
import sys
import time
import urllib.parse
from typing import Any, Dict, Optional

from minrt.constants import Constants

def configure_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure the root logger for CLI use.

    Args:
        level: Level name, e.g. "DEBUG".
        logfile: Optional path; when given, records also go to this file.
    """
    handlers = [logging.StreamHandler(sys.stderr)]
    if logfile:
        handlers.append(logging.FileHandler(logfile, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=Constants.LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    ``None`` values are dropped so formatters only see populated fields. The
    whole payload is available as ``record.context``.
    """
    context = {k: v for k, v in fields.items() if v is not None}
    return {"context": context}


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(url: str) -> str:
    """Strip userinfo, query and fragment from a URL before logging it."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    if not parts.scheme:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urllib.parse.urlunsplit((parts.scheme, host, parts.path, "", ""))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Milliseconds elapsed so far (or in total once the block exited)."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
