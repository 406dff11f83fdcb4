"""minrt: NuGet package resolution, caching and asset selection.

Modules:
- versioning: versions, ranges, identities and dependency behaviors
- frameworks: target framework compatibility and runtime identifier graph
- feeds: HTTP and local package feeds, nuspec parsing, source mapping
- resolver: dependency graph collection and conflict resolution
- cache: on-disk package cache and concurrent fetching
- assets: per-package asset selection, launch manifest and layout
- lockfile, config, restore, cli
"""

from minrt.assets import AssetSelection, LaunchManifest, build_launch_manifest, layout
from minrt.common.cancellation import CancellationToken
from minrt.errors import (
    CancellationError,
    ConfigError,
    DownloadFailedError,
    FeedUnavailableError,
    LockFileError,
    MinRTError,
    PackageNotFoundError,
    ParseError,
    VersionConflictError,
)
from minrt.feeds import FeedSource, HttpFeed, LocalFeed, PackageFeed
from minrt.frameworks import RidGraph, TargetFramework
from minrt.resolver import ResolvedPackageSet
from minrt.restore import RestoreResult, Restorer, materialize_assets, resolve
from minrt.versioning import DependencyBehavior, PackageRequest, Version, VersionRange

__version__ = "0.4.0"

__all__ = [
    "AssetSelection",
    "CancellationError",
    "CancellationToken",
    "ConfigError",
    "DependencyBehavior",
    "DownloadFailedError",
    "FeedSource",
    "FeedUnavailableError",
    "HttpFeed",
    "LaunchManifest",
    "LocalFeed",
    "LockFileError",
    "MinRTError",
    "PackageFeed",
    "PackageNotFoundError",
    "PackageRequest",
    "ParseError",
    "ResolvedPackageSet",
    "RestoreResult",
    "Restorer",
    "RidGraph",
    "TargetFramework",
    "Version",
    "VersionConflictError",
    "VersionRange",
    "build_launch_manifest",
    "layout",
    "materialize_assets",
    "resolve",
]
