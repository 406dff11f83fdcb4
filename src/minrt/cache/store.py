"""On-disk package cache.

Layout: ``{root}/{id-lower}/{normalized-version-lower}/``. An entry is
complete only when its ``.nupkg.metadata`` marker exists. Extraction
happens in a staging directory next to the final path, the marker is
written last and the staging directory is renamed into place, so readers
never observe a partially extracted package.
"""
from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
import os
import shutil
import tempfile
import urllib.parse
import zipfile
from typing import Dict, List, Optional

from minrt.common.cancellation import CancellationToken, guarded
from minrt.common.logging_utils import extra_context
from minrt.constants import Constants
from minrt.errors import DownloadFailedError
from minrt.feeds.base import PackageFeed
from minrt.versioning import PackageIdentity

logger = logging.getLogger(__name__)


def _is_packaging_entry(name: str) -> bool:
    lowered = name.lower()
    for entry in Constants.PACKAGING_ENTRIES:
        entry = entry.lower()
        if entry.endswith("/"):
            if lowered.startswith(entry):
                return True
        elif lowered == entry:
            return True
    return False


def _content_hash(archive_path: str) -> str:
    digest = hashlib.sha512()
    with open(archive_path, "rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return base64.b64encode(digest.digest()).decode("ascii")


class PackageCache:
    """Write-once store of extracted packages."""

    def __init__(self, root: str = Constants.DEFAULT_CACHE_DIR):
        self.root = os.path.abspath(os.path.expanduser(root))
        self._locks: Dict[str, asyncio.Lock] = {}
        self.downloads = 0

    def package_path(self, identity: PackageIdentity) -> str:
        """Directory an identity extracts to."""
        return os.path.join(
            self.root, identity.key, identity.version.to_normalized_string().lower()
        )

    def is_extracted(self, identity: PackageIdentity) -> bool:
        """True when a complete extraction of ``identity`` is present."""
        return os.path.isfile(os.path.join(self.package_path(identity), Constants.METADATA_MARKER))

    def read_marker(self, identity: PackageIdentity) -> Optional[dict]:
        """Contents of the completion marker, or None for incomplete entries."""
        marker = os.path.join(self.package_path(identity), Constants.METADATA_MARKER)
        try:
            with open(marker, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError):
            return None

    def list_files(self, identity: PackageIdentity) -> List[str]:
        """Relative POSIX paths of every file in an extracted package."""
        base = self.package_path(identity)
        files = []
        for root, _dirs, names in os.walk(base):
            for name in names:
                rel = os.path.relpath(os.path.join(root, name), base)
                files.append(rel.replace(os.sep, "/"))
        return sorted(files)

    async def ensure_extracted(
        self,
        identity: PackageIdentity,
        feed: Optional[PackageFeed],
        token: Optional[CancellationToken] = None,
    ) -> str:
        """Return the extracted directory, downloading on a cache miss.

        ``feed`` may be None when the entry is expected to be cached already.

        Raises:
            DownloadFailedError: download or extraction failed.
            CancellationError: ``token`` fired before the entry was complete.
        """
        path = self.package_path(identity)
        if self.is_extracted(identity):
            logger.debug("Cache hit for %s", identity, extra=extra_context(
                event="cache_hit", component="package_cache", target=str(identity)))
            return path

        key = f"{identity.key}/{identity.version}"
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        lock = self._locks[key]
        async with lock:
            if self.is_extracted(identity):
                return path
            if feed is None:
                raise DownloadFailedError(identity.id, identity.version, "", "not cached and no feed configured")
            logger.debug("Cache miss for %s", identity, extra=extra_context(
                event="cache_miss", component="package_cache", target=str(identity), source=feed.name))
            downloads_dir = os.path.join(self.root, Constants.DOWNLOADS_DIR)
            os.makedirs(downloads_dir, exist_ok=True)
            fd, archive_path = tempfile.mkstemp(suffix=".nupkg", dir=downloads_dir)
            os.close(fd)
            try:
                await guarded(token, feed.download(identity, archive_path), "download")
                self.downloads += 1
                if token is not None:
                    token.raise_if_cancelled("download")
                await asyncio.to_thread(self._extract, archive_path, path, identity, feed.name)
            finally:
                try:
                    os.remove(archive_path)
                except FileNotFoundError:
                    pass
        if self._locks.get(key) is lock:
            del self._locks[key]
        logger.info("Extracted %s to %s", identity, path)
        return path

    def _extract(self, archive_path: str, path: str, identity: PackageIdentity, source: str) -> None:
        parent = os.path.dirname(path)
        os.makedirs(parent, exist_ok=True)
        staging = tempfile.mkdtemp(prefix=f".{os.path.basename(path)}.", dir=parent)
        try:
            try:
                with zipfile.ZipFile(archive_path) as archive:
                    self._extract_entries(archive, staging)
            except (zipfile.BadZipFile, OSError) as exc:
                raise DownloadFailedError(identity.id, identity.version, source, f"extraction failed: {exc}") from exc

            marker = {
                "version": 2,
                "contentHash": _content_hash(archive_path),
                "source": source,
            }
            with open(os.path.join(staging, Constants.METADATA_MARKER), "w", encoding="utf-8") as handle:
                json.dump(marker, handle)

            if os.path.isdir(path):
                if os.path.isfile(os.path.join(path, Constants.METADATA_MARKER)):
                    # Another writer finished first.
                    return
                logger.debug("Replacing incomplete cache entry %s", path)
                shutil.rmtree(path)
            try:
                os.rename(staging, path)
            except OSError:
                if not os.path.isfile(os.path.join(path, Constants.METADATA_MARKER)):
                    raise
        finally:
            if os.path.isdir(staging):
                shutil.rmtree(staging, ignore_errors=True)

    @staticmethod
    def _extract_entries(archive: zipfile.ZipFile, destination: str) -> None:
        root = os.path.realpath(destination)
        for info in archive.infolist():
            name = info.filename
            if name.endswith("/") or _is_packaging_entry(name):
                continue
            relative = urllib.parse.unquote(name)
            target = os.path.realpath(os.path.join(root, relative))
            if os.path.commonpath([root, target]) != root:
                raise zipfile.BadZipFile(f"entry escapes package directory: {name}")
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with archive.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
