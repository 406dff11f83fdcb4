"""Public restore operations.

``resolve`` turns direct requests into a ``ResolvedPackageSet``;
``materialize_assets`` fetches that set into the package cache and selects
each package's assets. ``Restorer`` wires both together with configuration,
lock file output and a launch manifest::

    result = await (
        Restorer()
        .with_framework("net10.0")
        .with_runtime("linux-x64")
        .add_package("Newtonsoft.Json", "13.0.3")
        .restore()
    )
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from minrt.assets.layout import LaunchManifest, build_launch_manifest
from minrt.assets.selector import AssetSelection, select_assets
from minrt.cache.fetcher import ArtifactFetcher
from minrt.cache.store import PackageCache
from minrt.common.cancellation import CancellationToken, cancellation_scope
from minrt.common.logging_utils import Timer
from minrt.config import (
    RestoreConfig,
    default_source,
    load_default_nuget_config,
    load_nuget_config,
    source_from_value,
)
from minrt.constants import Constants
from minrt.feeds.base import FeedSource, PackageFeed
from minrt.feeds.client import FeedClient, create_feed
from minrt.feeds.nuspec import parse_nuspec
from minrt.frameworks.framework import TargetFramework
from minrt.frameworks.rid import DEFAULT_RID_GRAPH
from minrt.lockfile import LockFile, build_lock_file, write_lock_file
from minrt.resolver.collector import DependencyCollector
from minrt.resolver.conflicts import ConflictResolver
from minrt.resolver.models import ResolvedPackage, ResolvedPackageSet
from minrt.versioning import DependencyBehavior, PackageRequest, Version, VersionRange

logger = logging.getLogger(__name__)

Requests = Union[Sequence[PackageRequest], Mapping[str, str]]


def _coerce_requests(requests: Requests) -> List[PackageRequest]:
    if isinstance(requests, Mapping):
        return [PackageRequest(pid, VersionRange.parse(str(ver))) for pid, ver in requests.items()]
    return list(requests)


def _coerce_framework(framework: Union[str, TargetFramework, None]) -> TargetFramework:
    if isinstance(framework, TargetFramework):
        return framework
    return TargetFramework.parse(framework or Constants.DEFAULT_FRAMEWORK)


async def resolve(
    requests: Requests,
    feeds: Sequence[PackageFeed],
    framework: Union[str, TargetFramework, None] = None,
    rid: Optional[str] = None,
    behavior: DependencyBehavior = DependencyBehavior.LOWEST,
    source_mapping: Optional[Mapping[str, Sequence[str]]] = None,
    token: Optional[CancellationToken] = None,
) -> ResolvedPackageSet:
    """Resolve direct requests to one version per package id.

    Args:
        requests: ``PackageRequest`` objects, or a mapping of id to version text.
        feeds: Feeds to query, in priority order. They are not closed here.
        framework: Target framework moniker or object; defaults to ``net10.0``.
        rid: Runtime identifier recorded on the result for asset selection.
        behavior: Which satisfying version to prefer.
        source_mapping: Feed name -> package id patterns.
        token: Optional cancellation token.

    Raises:
        PackageNotFoundError: a request or dependency has no satisfying version.
        VersionConflictError: no version satisfies every constraint on an id.
        CancellationError: ``token`` fired.
    """
    target = _coerce_framework(framework)
    direct = _coerce_requests(requests)
    client = FeedClient(feeds, source_mapping, behavior, token)
    with Timer() as t:
        try:
            with cancellation_scope(token, "resolution"):
                graph = await DependencyCollector(client, target, token).collect(direct)
        finally:
            client.cancel_pending()
        resolved = ConflictResolver(behavior).resolve(graph)
    resolved.framework = str(target)
    resolved.runtime = rid
    logger.info("Resolved %d packages for %s in %d ms", len(resolved), target, t.duration_ms())
    return resolved


def _read_framework_reference_groups(package_dir: str, files: Iterable[str]):
    nuspecs = [f for f in files if "/" not in f and f.lower().endswith(".nuspec")]
    if not nuspecs:
        return ()
    with open(os.path.join(package_dir, nuspecs[0]), "rb") as handle:
        metadata = parse_nuspec(handle.read(), nuspecs[0])
    return tuple((g.framework, g.references) for g in metadata.framework_reference_groups)


def _select_package(
    cache: PackageCache,
    package: ResolvedPackage,
    package_dir: str,
    framework: TargetFramework,
    rid: Optional[str],
) -> AssetSelection:
    files = cache.list_files(package.identity)
    groups = _read_framework_reference_groups(package_dir, files)
    selection = select_assets(files, framework, rid, groups, DEFAULT_RID_GRAPH)
    selection.package_id = package.id
    selection.version = package.version.to_normalized_string()
    selection.root = package_dir
    return selection


async def materialize_assets(
    resolved: ResolvedPackageSet,
    cache: Union[PackageCache, str],
    framework: Union[str, TargetFramework, None] = None,
    rid: Optional[str] = None,
    feeds: Sequence[PackageFeed] = (),
    token: Optional[CancellationToken] = None,
    max_concurrency: int = Constants.MAX_CONCURRENT_DOWNLOADS,
) -> Dict[str, AssetSelection]:
    """Fetch every resolved package into ``cache`` and select its assets.

    ``framework`` and ``rid`` default to the ones recorded on ``resolved``.
    Packages whose feed is not in ``feeds`` must already be cached.

    Returns:
        Lower-cased package id -> ``AssetSelection`` with ``root`` set.

    Raises:
        DownloadFailedError: a package could not be fetched or extracted.
        CancellationError: ``token`` fired.
    """
    store = cache if isinstance(cache, PackageCache) else PackageCache(cache)
    target = _coerce_framework(framework or resolved.framework)
    runtime = rid if rid is not None else resolved.runtime
    by_name = {feed.name.lower(): feed for feed in feeds}

    fetcher = ArtifactFetcher(store, lambda name: by_name.get(name.lower()), max_concurrency, token)
    with cancellation_scope(token, "download"):
        paths = await fetcher.fetch_all(resolved)

    selections: Dict[str, AssetSelection] = {}
    for package in resolved:
        selections[package.identity.key] = await asyncio.to_thread(
            _select_package, store, package, paths[package.identity.key], target, runtime
        )
    return selections


@dataclass
class RestoreResult:
    """Everything one restore produced."""
    resolved: ResolvedPackageSet
    selections: Dict[str, AssetSelection]
    lock: LockFile
    manifest: LaunchManifest
    downloads: int = 0
    lock_file_path: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class Restorer:
    """Fluent builder for a complete restore: resolve, fetch, select, lock."""

    def __init__(self) -> None:
        self.framework: str = Constants.DEFAULT_FRAMEWORK
        self.runtime: Optional[str] = None
        self.behavior = DependencyBehavior.LOWEST
        self.packages_directory: str = Constants.DEFAULT_CACHE_DIR
        self.output_path: Optional[str] = None
        self.source_mapping: Dict[str, List[str]] = {}
        self.max_concurrency = Constants.MAX_CONCURRENT_DOWNLOADS
        self.token: Optional[CancellationToken] = None
        self._sources: List[FeedSource] = []
        self._feeds: List[PackageFeed] = []
        self._requests: List[PackageRequest] = []

    @classmethod
    def from_config(cls, config: RestoreConfig) -> "Restorer":
        """Build a restorer from a loaded ``RestoreConfig``."""
        restorer = cls()
        if config.framework:
            restorer.with_framework(config.framework)
        if config.runtime:
            restorer.with_runtime(config.runtime)
        if config.behavior:
            restorer.with_dependency_behavior(config.behavior)
        if config.packages_directory:
            restorer.with_packages_directory(config.packages_directory)
        for source in config.sources:
            restorer.add_source(source)
        if config.source_mapping:
            restorer.with_source_mapping(config.source_mapping)
        restorer._requests.extend(config.packages)
        return restorer

    def with_framework(self, framework: str) -> "Restorer":
        TargetFramework.parse(framework)
        self.framework = framework
        return self

    def with_runtime(self, rid: Optional[str]) -> "Restorer":
        self.runtime = rid or None
        return self

    def with_dependency_behavior(self, behavior: Union[str, DependencyBehavior]) -> "Restorer":
        self.behavior = behavior if isinstance(behavior, DependencyBehavior) else DependencyBehavior.parse(behavior)
        return self

    def with_packages_directory(self, path: str) -> "Restorer":
        self.packages_directory = os.path.expanduser(path)
        return self

    def with_output_path(self, path: Optional[str]) -> "Restorer":
        """Write the lock file to ``path``; a directory gets ``minrt.lock.json``."""
        self.output_path = path
        return self

    def with_cancellation(self, token: CancellationToken) -> "Restorer":
        self.token = token
        return self

    def with_max_concurrency(self, count: int) -> "Restorer":
        self.max_concurrency = max(1, int(count))
        return self

    def add_feed(
        self,
        url: str,
        name: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "Restorer":
        return self.add_source(FeedSource(name or url, url, username, password))

    def add_source(self, source: Union[FeedSource, str, Mapping]) -> "Restorer":
        if not isinstance(source, FeedSource):
            source = source_from_value(source)
        if all(s.url.rstrip("/").lower() != source.url.rstrip("/").lower() for s in self._sources):
            self._sources.append(source)
        return self

    def add_feed_instance(self, feed: PackageFeed) -> "Restorer":
        """Use an already constructed feed; the restorer never closes it."""
        self._feeds.append(feed)
        return self

    def with_source_mapping(self, mapping: Mapping[str, Sequence[str]]) -> "Restorer":
        for name, patterns in mapping.items():
            self.source_mapping[name] = list(patterns)
        return self

    def with_nuget_config(self, path: str) -> "Restorer":
        """Add the enabled sources and source mapping of one nuget.config."""
        config = load_nuget_config(path)
        for source in config.enabled_sources():
            self.add_source(source)
        return self.with_source_mapping(config.source_mapping)

    def use_default_nuget_config(self, root: Optional[str] = None) -> "Restorer":
        """Add sources from nuget.config files found from ``root`` upwards."""
        config = load_default_nuget_config(root)
        for source in config.enabled_sources():
            self.add_source(source)
        return self.with_source_mapping(config.source_mapping)

    def add_package(self, package_id: str, version: str, allow_newer: bool = False) -> "Restorer":
        """Request an exact version, or a minimum when ``allow_newer`` is set."""
        parsed = Version.parse(version)
        version_range = VersionRange.at_least(parsed) if allow_newer else VersionRange.exact(parsed)
        self._requests.append(PackageRequest(package_id, version_range))
        return self

    def add_package_range(self, package_id: str, version_range: str) -> "Restorer":
        self._requests.append(PackageRequest(package_id, VersionRange.parse(version_range)))
        return self

    @property
    def requests(self) -> List[PackageRequest]:
        return list(self._requests)

    @property
    def sources(self) -> List[FeedSource]:
        return list(self._sources)

    def lock_file_path(self) -> Optional[str]:
        if not self.output_path:
            return None
        if os.path.isdir(self.output_path) or self.output_path.endswith(("/", os.sep)):
            return os.path.join(self.output_path, Constants.LOCK_FILE_NAME)
        return self.output_path

    async def restore(self) -> RestoreResult:
        """Resolve, fetch and select; writes the lock file when an output path is set.

        Raises:
            MinRTError: any resolution, download or configuration failure.
            CancellationError: the cancellation token fired.
        """
        sources = list(self._sources)
        if not sources and not self._feeds:
            sources.append(default_source())
        created = [create_feed(source) for source in sources]
        feeds = list(self._feeds) + created
        logger.info(
            "Restoring %d packages for %s%s from %d feeds",
            len(self._requests),
            self.framework,
            f" ({self.runtime})" if self.runtime else "",
            len(feeds),
        )
        try:
            resolved = await resolve(
                self._requests,
                feeds,
                self.framework,
                self.runtime,
                self.behavior,
                self.source_mapping,
                self.token,
            )
            cache = PackageCache(self.packages_directory)
            selections = await materialize_assets(
                resolved,
                cache,
                self.framework,
                self.runtime,
                feeds,
                self.token,
                self.max_concurrency,
            )
        finally:
            for feed in created:
                await feed.close()

        lock = build_lock_file(resolved, selections, cache.root)
        lock_path = self.lock_file_path()
        if lock_path:
            write_lock_file(lock, lock_path)
        return RestoreResult(
            resolved=resolved,
            selections=selections,
            lock=lock,
            manifest=build_launch_manifest(selections.values()),
            downloads=cache.downloads,
            lock_file_path=lock_path,
            warnings=list(resolved.warnings),
        )
