"""Dependency graph collection.

The traversal is an explicit worklist processed one graph level at a time:
all ranges discovered on a level are resolved to versions concurrently,
the manifests of unseen versions are fetched concurrently, and their
dependencies form the next level. A visited set keyed by exact identity
makes cycles and diamonds terminate.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from minrt.common.cancellation import CancellationToken
from minrt.common.logging_utils import Timer, extra_context
from minrt.feeds.client import FeedClient, VersionPick
from minrt.frameworks.framework import TargetFramework
from minrt.versioning import PackageIdentity, PackageRequest, VersionRange

from .models import CollectedGraph

logger = logging.getLogger(__name__)


class DependencyCollector:
    """Walks the transitive closure of direct requests through a ``FeedClient``."""

    def __init__(
        self,
        client: FeedClient,
        framework: TargetFramework,
        token: Optional[CancellationToken] = None,
    ):
        self.client = client
        self.framework = framework
        self.token = token
        self._picks: Dict[Tuple[str, VersionRange], "asyncio.Future[VersionPick]"] = {}

    def _pick(self, package_id: str, version_range: VersionRange) -> "asyncio.Future[VersionPick]":
        key = (package_id.lower(), version_range)
        future = self._picks.get(key)
        if future is None:
            future = asyncio.ensure_future(self.client.find_best_version(package_id, version_range))
            self._picks[key] = future
        return future

    def _check_cancelled(self) -> None:
        if self.token is not None:
            self.token.raise_if_cancelled("dependency collection")

    async def collect(self, requests: Sequence[PackageRequest]) -> CollectedGraph:
        """Collect every reachable (id, version) node.

        Raises:
            PackageNotFoundError: some range at any depth has no satisfying version.
        """
        graph = CollectedGraph(tuple(requests))
        frontier: List[Tuple[str, VersionRange]] = [(r.id, r.version_range) for r in requests]
        depth = 0
        with Timer() as t:
            try:
                while frontier:
                    self._check_cancelled()
                    unique = list({(pid.lower(), rng): (pid, rng) for pid, rng in frontier}.values())
                    picks = await asyncio.gather(*(self._pick(pid, rng) for pid, rng in unique))

                    pending: List[VersionPick] = []
                    queued = set()
                    for pick in picks:
                        identity = PackageIdentity(pick.package_id, pick.version)
                        if identity in graph or identity in queued:
                            logger.debug("Already visited %s", identity)
                            continue
                        queued.add(identity)
                        pending.append(pick)

                    self._check_cancelled()
                    nodes = await asyncio.gather(
                        *(self.client.get_dependency_info(pick, self.framework) for pick in pending)
                    )
                    frontier = []
                    for node in nodes:
                        graph.add(node)
                        logger.debug(
                            "Collected %s from %s with %d dependencies",
                            node.identity,
                            node.source,
                            len(node.dependencies),
                            extra=extra_context(
                                event="collect", component="collector", target=str(node.identity), depth=depth
                            ),
                        )
                        frontier.extend((dep.id, dep.version_range) for dep in node.dependencies)
                    depth += 1
            finally:
                for future in self._picks.values():
                    if not future.done():
                        future.cancel()
                    elif not future.cancelled():
                        future.exception()
        logger.info("Collected %d package versions across %d levels in %d ms", len(graph), depth, t.duration_ms())
        return graph
