"""Exception taxonomy for package resolution and asset acquisition.

Every resolution failure derives from ``MinRTError`` and carries its
package id, version, range or feed as attributes. ``CancellationError``
is not a ``MinRTError``; it derives from ``asyncio.CancelledError``.
"""
from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Sequence, Tuple


class MinRTError(Exception):
    """Base class for all resolution and acquisition failures."""


class ParseError(MinRTError, ValueError):
    """Malformed version, range, framework or runtime identifier text."""

    def __init__(self, kind: str, text: str, reason: Optional[str] = None):
        self.kind = kind
        self.text = text
        self.reason = reason
        message = f"Invalid {kind} '{text}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PackageNotFoundError(MinRTError):
    """No eligible feed offers a version satisfying the requested range."""

    def __init__(self, package_id: str, version_range, feeds: Iterable[str] = ()):
        self.package_id = package_id
        self.version_range = version_range
        self.feeds: Tuple[str, ...] = tuple(feeds)
        consulted = ", ".join(self.feeds) if self.feeds else "none"
        super().__init__(
            f"Package not found: {package_id} {version_range} (feeds consulted: {consulted})"
        )


class VersionConflictError(MinRTError):
    """The constraints recorded against one package id cannot all hold."""

    def __init__(self, package_id: str, constraints: Sequence, candidates: Sequence = ()):
        self.package_id = package_id
        self.constraints = list(constraints)
        self.candidates = list(candidates)
        details = "; ".join(f"{c.version_range} from {c.origin}" for c in self.constraints)
        super().__init__(f"Version conflict for {package_id}: {details}")


class FeedUnavailableError(MinRTError):
    """A single feed failed at the transport or parsing level."""

    def __init__(self, feed: str, reason: str, package_id: Optional[str] = None):
        self.feed = feed
        self.reason = reason
        self.package_id = package_id
        target = f" while querying {package_id}" if package_id else ""
        super().__init__(f"Feed '{feed}' unavailable{target}: {reason}")


class DownloadFailedError(MinRTError):
    """Archive fetch or extraction failed after a feed claimed the package."""

    def __init__(self, package_id: str, version, feed: str, reason: str):
        self.package_id = package_id
        self.version = version
        self.feed = feed
        self.reason = reason
        super().__init__(f"Failed to download {package_id} {version} from '{feed}': {reason}")


class ConfigError(MinRTError):
    """Unreadable or invalid configuration input."""

    def __init__(self, path: Optional[str], reason: str):
        self.path = path
        self.reason = reason
        where = f" in {path}" if path else ""
        super().__init__(f"Configuration error{where}: {reason}")


class LockFileError(MinRTError):
    """Unreadable or inconsistent lock file."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid lock file {path}: {reason}")


class CancellationError(asyncio.CancelledError):
    """Resolution was cancelled through a caller-supplied cancellation token."""

    def __init__(self, operation: str = "resolution", pending: Optional[List[str]] = None):
        self.operation = operation
        self.pending = list(pending or [])
        super().__init__(f"{operation} cancelled")
