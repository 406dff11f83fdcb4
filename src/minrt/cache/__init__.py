"""Package download cache."""

from .fetcher import ArtifactFetcher
from .store import PackageCache

__all__ = ["ArtifactFetcher", "PackageCache"]
