"""Local folder feed: a directory of ``.nupkg`` files.

Both layouts are understood: flat (``dir/Foo.1.0.0.nupkg``) and hierarchical
(``dir/foo/1.0.0/foo.1.0.0.nupkg``). Identity is read from the manifest
inside each archive, never from the file name.
"""
from __future__ import annotations

import asyncio
import logging
import os
import shutil
import zipfile
from typing import Dict, List, Optional

from minrt.errors import DownloadFailedError, FeedUnavailableError, ParseError
from minrt.frameworks.framework import DEFAULT_COMPATIBILITY, FrameworkCompatibility
from minrt.versioning import PackageIdentity, Version

from .base import PackageFeed
from .nuspec import NuspecMetadata, parse_nuspec

logger = logging.getLogger(__name__)


def read_nuspec_from_archive(path: str) -> NuspecMetadata:
    """Parse the root-level ``.nuspec`` of a package archive."""
    try:
        with zipfile.ZipFile(path) as archive:
            for name in archive.namelist():
                if "/" not in name and name.lower().endswith(".nuspec"):
                    return parse_nuspec(archive.read(name), source=path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ParseError("package archive", path, str(exc)) from exc
    raise ParseError("package archive", path, "no .nuspec at archive root")


class LocalFeed(PackageFeed):
    """Feed over a local directory of package archives."""

    def __init__(self, name: str, path: str, compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY):
        super().__init__(name, compatibility)
        self.path = os.path.abspath(os.path.expanduser(path))
        self._index: Optional[Dict[str, Dict[Version, str]]] = None
        self._lock: Optional[asyncio.Lock] = None

    def _scan(self) -> Dict[str, Dict[Version, str]]:
        if not os.path.isdir(self.path):
            raise FeedUnavailableError(self.name, f"directory not found: {self.path}")
        index: Dict[str, Dict[Version, str]] = {}
        for root, _dirs, files in os.walk(self.path):
            for file_name in sorted(files):
                if not file_name.lower().endswith(".nupkg"):
                    continue
                archive_path = os.path.join(root, file_name)
                try:
                    metadata = read_nuspec_from_archive(archive_path)
                except ParseError as exc:
                    logger.warning("Skipping unreadable package %s: %s", archive_path, exc)
                    continue
                index.setdefault(metadata.id.lower(), {}).setdefault(metadata.version, archive_path)
        logger.debug("Indexed %d package ids in %s", len(index), self.path)
        return index

    async def _get_index(self) -> Dict[str, Dict[Version, str]]:
        if self._index is not None:
            return self._index
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._index is None:
                self._index = await asyncio.to_thread(self._scan)
        return self._index

    def refresh(self) -> None:
        """Forget the directory index so new archives are picked up."""
        self._index = None

    async def _archive_path(self, package_id: str, version: Version) -> Optional[str]:
        index = await self._get_index()
        return index.get(package_id.lower(), {}).get(version)

    async def list_versions(self, package_id: str) -> List[Version]:
        index = await self._get_index()
        return sorted(index.get(package_id.lower(), {}))

    async def get_metadata(self, package_id: str, version: Version) -> Optional[NuspecMetadata]:
        archive_path = await self._archive_path(package_id, version)
        if archive_path is None:
            return None
        try:
            return await asyncio.to_thread(read_nuspec_from_archive, archive_path)
        except ParseError as exc:
            raise FeedUnavailableError(self.name, str(exc), package_id) from exc

    async def download(self, identity: PackageIdentity, destination: str) -> None:
        try:
            archive_path = await self._archive_path(identity.id, identity.version)
        except FeedUnavailableError as exc:
            raise DownloadFailedError(identity.id, identity.version, self.name, exc.reason) from exc
        if archive_path is None:
            raise DownloadFailedError(identity.id, identity.version, self.name, "package not present in folder")
        try:
            await asyncio.to_thread(shutil.copyfile, archive_path, destination)
        except OSError as exc:
            raise DownloadFailedError(identity.id, identity.version, self.name, str(exc)) from exc
