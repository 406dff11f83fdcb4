"""Package source mapping: which feeds may serve which package ids.

Patterns are ``*``, a prefix ending in ``*`` (``Contoso.*``) or an exact id.
For a given id only the most specific matching pattern counts; every feed
that declares a pattern of that specificity is eligible.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F")


@dataclass(frozen=True)
class FeedSelection:
    """Feeds eligible for one package id."""
    feeds: Tuple
    fell_back: bool = False


def pattern_specificity(pattern: str, package_id: str) -> Optional[int]:
    """Score how specifically ``pattern`` matches ``package_id``; None if it does not."""
    p = pattern.strip().lower()
    pid = package_id.strip().lower()
    if not p:
        return None
    if p == "*":
        return 0
    if p.endswith("*"):
        prefix = p[:-1]
        return len(prefix) if pid.startswith(prefix) else None
    # An exact id outranks any prefix of the same length.
    return len(p) + 1 if p == pid else None


def eligible_feeds(
    package_id: str,
    feeds: Sequence[F],
    mapping: Optional[Mapping[str, Sequence[str]]] = None,
) -> FeedSelection:
    """Filter ``feeds`` (objects with a ``name``) for ``package_id``.

    Without a mapping every feed is eligible. When a mapping is configured but
    leaves no configured feed eligible, all feeds are returned with
    ``fell_back=True`` and a warning is logged.
    """
    if not mapping:
        return FeedSelection(tuple(feeds))

    best_score = None
    names = set()
    for feed_name, patterns in mapping.items():
        for pattern in patterns:
            score = pattern_specificity(pattern, package_id)
            if score is None:
                continue
            if best_score is None or score > best_score:
                best_score = score
                names = {feed_name.lower()}
            elif score == best_score:
                names.add(feed_name.lower())

    selected = tuple(feed for feed in feeds if feed.name.lower() in names)
    if selected:
        return FeedSelection(selected)

    logger.warning(
        "Package source mapping leaves no feed for '%s'; falling back to all %d configured feeds",
        package_id,
        len(feeds),
    )
    return FeedSelection(tuple(feeds), fell_back=True)
