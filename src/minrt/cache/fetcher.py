"""Concurrent fetching of a resolved package set into the cache."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional

from minrt.common.cancellation import CancellationToken
from minrt.common.logging_utils import Timer
from minrt.constants import Constants
from minrt.feeds.base import PackageFeed
from minrt.resolver.models import ResolvedPackage, ResolvedPackageSet

from .store import PackageCache

logger = logging.getLogger(__name__)


class ArtifactFetcher:
    """Ensures every resolved package is extracted, bounded by a semaphore."""

    def __init__(
        self,
        cache: PackageCache,
        feed_lookup: Callable[[str], Optional[PackageFeed]],
        max_concurrency: int = Constants.MAX_CONCURRENT_DOWNLOADS,
        token: Optional[CancellationToken] = None,
    ):
        self.cache = cache
        self.feed_lookup = feed_lookup
        self.max_concurrency = max(1, max_concurrency)
        self.token = token

    async def fetch_all(self, resolved: ResolvedPackageSet) -> Dict[str, str]:
        """Extract every package; returns lower-cased id -> cache directory.

        ``feed_lookup`` maps a package's source name to its feed and may
        return None for feeds that are not configured; such packages must
        already be cached. The first failure cancels the remaining fetches
        and propagates.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch(package: ResolvedPackage):
            async with semaphore:
                feed = self.feed_lookup(package.source)
                path = await self.cache.ensure_extracted(package.identity, feed, self.token)
                return package.identity.key, path

        tasks = [asyncio.ensure_future(fetch(package)) for package in resolved]
        with Timer() as t:
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    if not task.done():
                        task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        logger.info("Fetched %d packages in %d ms", len(results), t.duration_ms())
        return dict(results)
