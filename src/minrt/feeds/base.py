"""Abstract package feed interface."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from minrt.frameworks.framework import DEFAULT_COMPATIBILITY, FrameworkCompatibility, TargetFramework
from minrt.versioning import DependencyNode, PackageIdentity, Version

from .nuspec import NuspecMetadata


@dataclass(frozen=True)
class FeedSource:
    """Configured feed endpoint: an HTTP(S) service index or a local directory."""
    name: str
    url: str
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    @property
    def is_local(self) -> bool:
        """True when ``url`` points at the file system rather than HTTP(S)."""
        lowered = self.url.lower()
        return not (lowered.startswith("http://") or lowered.startswith("https://"))


class PackageFeed(ABC):
    """A source of package versions, manifests and archives.

    Implementations return an empty list / ``None`` for packages they do not
    have and raise ``FeedUnavailableError`` for transport or parse failures.
    """

    def __init__(self, name: str, compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY):
        self.name = name
        self.compatibility = compatibility

    @abstractmethod
    async def list_versions(self, package_id: str) -> List[Version]:
        """All versions this feed offers for ``package_id``."""

    @abstractmethod
    async def get_metadata(self, package_id: str, version: Version) -> Optional[NuspecMetadata]:
        """Manifest for one package version, or None when absent."""

    @abstractmethod
    async def download(self, identity: PackageIdentity, destination: str) -> None:
        """Write the package archive to ``destination``.

        Raises:
            DownloadFailedError: the archive could not be fetched.
        """

    async def get_dependency_info(
        self, package_id: str, version: Version, framework: TargetFramework
    ) -> Optional[DependencyNode]:
        """Dependencies of ``package_id`` ``version`` for ``framework``, or None."""
        metadata = await self.get_metadata(package_id, version)
        if metadata is None:
            return None
        return DependencyNode(
            PackageIdentity(metadata.id or package_id, version),
            self.name,
            metadata.dependencies_for(framework, self.compatibility),
        )

    async def close(self) -> None:
        """Release held resources."""

    async def __aenter__(self) -> "PackageFeed":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"
