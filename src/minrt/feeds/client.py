"""Multi-feed client used by the dependency collector.

Queries every eligible feed concurrently, downgrades per-feed failures to
warnings and picks one (version, feed) per request deterministically:
the best version across all feeds under the active behavior, served by the
earliest configured feed that lists it.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import aiohttp

from minrt.common.cancellation import CancellationToken, guarded
from minrt.common.logging_utils import extra_context
from minrt.errors import FeedUnavailableError, PackageNotFoundError
from minrt.frameworks.framework import TargetFramework
from minrt.versioning import DependencyBehavior, DependencyNode, Version, VersionRange

from .base import FeedSource, PackageFeed
from .http import HttpFeed
from .local import LocalFeed
from .mapping import FeedSelection, eligible_feeds

logger = logging.getLogger(__name__)


def create_feed(source: FeedSource, session: Optional[aiohttp.ClientSession] = None) -> PackageFeed:
    """Build the feed implementation for a configured source."""
    if source.is_local:
        return LocalFeed(source.name, source.url)
    return HttpFeed(source.name, source.url, source.username, source.password, session=session)


@dataclass(frozen=True)
class VersionPick:
    """Chosen version for one request and the feed that will serve it."""
    package_id: str
    version: Version
    feed: PackageFeed


class FeedClient:
    """Feed access for one resolution: filtering, fan-out, memoization."""

    def __init__(
        self,
        feeds: Sequence[PackageFeed],
        source_mapping: Optional[Mapping[str, Sequence[str]]] = None,
        behavior: DependencyBehavior = DependencyBehavior.LOWEST,
        token: Optional[CancellationToken] = None,
    ):
        if not feeds:
            raise ValueError("at least one feed is required")
        self.feeds: Tuple[PackageFeed, ...] = tuple(feeds)
        self.source_mapping = dict(source_mapping or {})
        self.behavior = behavior
        self.token = token
        self._selections: Dict[str, FeedSelection] = {}
        self._listings: Dict[Tuple[str, str], "asyncio.Future[Optional[List[Version]]]"] = {}

    @property
    def feed_names(self) -> List[str]:
        return [feed.name for feed in self.feeds]

    def feed_by_name(self, name: str) -> PackageFeed:
        """Look up a configured feed by (case-insensitive) name."""
        for feed in self.feeds:
            if feed.name.lower() == name.lower():
                return feed
        raise KeyError(name)

    def select_feeds(self, package_id: str) -> FeedSelection:
        """Eligible feeds for ``package_id`` after source mapping."""
        key = package_id.lower()
        selection = self._selections.get(key)
        if selection is None:
            selection = eligible_feeds(package_id, self.feeds, self.source_mapping)
            self._selections[key] = selection
        return selection

    async def _query_versions(self, feed: PackageFeed, package_id: str) -> Optional[List[Version]]:
        try:
            return await guarded(self.token, feed.list_versions(package_id), "feed query")
        except FeedUnavailableError as exc:
            logger.warning(
                "%s",
                exc,
                extra=extra_context(
                    event="feed_error",
                    component="feed_client",
                    action="list_versions",
                    outcome="skipped",
                    target=feed.name,
                    package_id=package_id,
                ),
            )
            return None

    async def list_versions(self, feed: PackageFeed, package_id: str) -> Optional[List[Version]]:
        """Versions of ``package_id`` on ``feed``; None when the feed failed.

        Each (feed, id) pair is queried at most once per client.
        """
        key = (feed.name.lower(), package_id.lower())
        future = self._listings.get(key)
        if future is None:
            future = asyncio.ensure_future(self._query_versions(feed, package_id))
            self._listings[key] = future
        return await asyncio.shield(future)

    async def find_best_version(self, package_id: str, version_range: VersionRange) -> VersionPick:
        """Best version satisfying ``version_range`` across eligible feeds.

        Raises:
            PackageNotFoundError: no eligible feed offers a satisfying version.
        """
        selection = self.select_feeds(package_id)
        listings = await asyncio.gather(
            *(self.list_versions(feed, package_id) for feed in selection.feeds)
        )
        available = [v for versions in listings if versions for v in versions]
        best = version_range.find_best_match(available, self.behavior)
        if best is None:
            raise PackageNotFoundError(package_id, version_range, [f.name for f in selection.feeds])
        for feed, versions in zip(selection.feeds, listings):
            if versions and best in versions:
                logger.debug(
                    "Picked %s %s from %s",
                    package_id,
                    best,
                    feed.name,
                    extra=extra_context(event="version_pick", component="feed_client", target=feed.name),
                )
                return VersionPick(package_id, best, feed)
        raise PackageNotFoundError(package_id, version_range, [f.name for f in selection.feeds])

    async def get_dependency_info(
        self, pick: VersionPick, framework: TargetFramework
    ) -> DependencyNode:
        """Dependency metadata for ``pick``, trying the winning feed first.

        Other eligible feeds that list the same version are tried in configured
        order when the winning feed has no manifest or fails.
        """
        candidates = [pick.feed]
        for feed in self.select_feeds(pick.package_id).feeds:
            if feed is pick.feed:
                continue
            versions = await self.list_versions(feed, pick.package_id)
            if versions and pick.version in versions:
                candidates.append(feed)

        for feed in candidates:
            try:
                node = await guarded(
                    self.token,
                    feed.get_dependency_info(pick.package_id, pick.version, framework),
                    "feed query",
                )
            except FeedUnavailableError as exc:
                logger.warning("%s", exc, extra=extra_context(
                    event="feed_error", component="feed_client", action="get_dependency_info",
                    outcome="skipped", target=feed.name, package_id=pick.package_id,
                ))
                continue
            if node is not None:
                return node
            logger.debug("%s has no manifest for %s %s", feed.name, pick.package_id, pick.version)
        raise PackageNotFoundError(
            pick.package_id, VersionRange.exact(pick.version), [f.name for f in candidates]
        )

    def cancel_pending(self) -> None:
        """Cancel version listings still in flight."""
        for future in self._listings.values():
            if not future.done():
                future.cancel()

    async def close(self) -> None:
        """Cancel outstanding listings and close every feed."""
        self.cancel_pending()
        for feed in self.feeds:
            await feed.close()

    async def __aenter__(self) -> "FeedClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
