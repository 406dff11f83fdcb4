"""Package feeds.

This package provides access to NuGet-style package sources:
- base.py: the PackageFeed interface and FeedSource configuration
- http.py: NuGet V3 feeds (service index + flat container)
- local.py: local folders of .nupkg archives
- nuspec.py: manifest parsing
- mapping.py: package source mapping
- client.py: multi-feed querying for one resolution
"""

from .base import FeedSource, PackageFeed
from .client import FeedClient, VersionPick, create_feed
from .http import HttpFeed
from .local import LocalFeed, read_nuspec_from_archive
from .mapping import FeedSelection, eligible_feeds
from .nuspec import NuspecMetadata, parse_nuspec

__all__ = [
    "FeedClient",
    "FeedSelection",
    "FeedSource",
    "HttpFeed",
    "LocalFeed",
    "NuspecMetadata",
    "PackageFeed",
    "VersionPick",
    "create_feed",
    "eligible_feeds",
    "parse_nuspec",
    "read_nuspec_from_archive",
]
