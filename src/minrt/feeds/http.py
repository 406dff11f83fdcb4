"""NuGet V3 HTTP feed over the flat-container (``PackageBaseAddress``) resource."""
from __future__ import annotations

import asyncio
import logging
import urllib.parse
from typing import List, Optional

import aiohttp

from minrt.common.http_client import download_to_file, get_json, robust_get
from minrt.common.logging_utils import extra_context, safe_url
from minrt.constants import Constants
from minrt.errors import DownloadFailedError, FeedUnavailableError, ParseError
from minrt.frameworks.framework import DEFAULT_COMPATIBILITY, FrameworkCompatibility
from minrt.versioning import PackageIdentity, Version

from .base import PackageFeed
from .nuspec import NuspecMetadata, parse_nuspec

logger = logging.getLogger(__name__)


class HttpFeed(PackageFeed):
    """Feed backed by a NuGet V3 service index.

    A URL ending in ``.json`` is treated as a service index and the
    ``PackageBaseAddress/3.0.0`` resource is discovered from it; any other URL
    is used as the flat-container base directly.
    """

    def __init__(
        self,
        name: str,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: int = Constants.REQUEST_TIMEOUT,
        compatibility: FrameworkCompatibility = DEFAULT_COMPATIBILITY,
    ):
        """Initialize the feed.

        Args:
            name: Feed name used in logs, errors and source mapping.
            url: Service index or flat-container URL.
            username: Optional basic-auth user.
            password: Optional basic-auth password.
            session: Shared session; the feed creates and owns one when omitted.
            timeout: Request timeout in seconds.
        """
        super().__init__(name, compatibility)
        self.url = url
        self._auth = aiohttp.BasicAuth(username, password or "") if username else None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._base_address: Optional[str] = None
        self._base_lock: Optional[asyncio.Lock] = None

    async def start(self) -> None:
        """Start the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

    async def stop(self) -> None:
        """Stop the HTTP session if this feed created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def close(self) -> None:
        await self.stop()

    async def __aenter__(self) -> "HttpFeed":
        await self.start()
        return self

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            await self.start()
        assert self._session is not None
        return self._session

    async def base_address(self) -> str:
        """Flat-container base URL, discovered once per feed."""
        if self._base_address is not None:
            return self._base_address
        if self._base_lock is None:
            self._base_lock = asyncio.Lock()
        async with self._base_lock:
            if self._base_address is None:
                self._base_address = await self._discover_base_address()
        return self._base_address

    async def _discover_base_address(self) -> str:
        if not self.url.lower().endswith(".json"):
            return self.url.rstrip("/") + "/"
        session = await self._get_session()
        result, index = await get_json(session, self.url, auth=self._auth)
        if index is None:
            raise FeedUnavailableError(self.name, result.error or f"service index returned HTTP {result.status}")
        for resource in index.get("resources", []) if isinstance(index, dict) else []:
            types = resource.get("@type")
            if isinstance(types, str):
                types = [types]
            if Constants.PACKAGE_BASE_ADDRESS_TYPE in (types or []):
                base = str(resource.get("@id", "")).rstrip("/") + "/"
                logger.debug(
                    "Discovered package base address %s",
                    safe_url(base),
                    extra=extra_context(event="service_index", component="http_feed", target=self.name),
                )
                return base
        raise FeedUnavailableError(self.name, f"service index has no {Constants.PACKAGE_BASE_ADDRESS_TYPE} resource")

    async def _package_url(self, package_id: str, *parts: str) -> str:
        base = await self.base_address()
        lowered = urllib.parse.quote(package_id.lower(), safe="")
        return base + "/".join((lowered,) + parts)

    async def list_versions(self, package_id: str) -> List[Version]:
        session = await self._get_session()
        url = await self._package_url(package_id, "index.json")
        result, data = await get_json(session, url, auth=self._auth)
        if result.status == 404:
            return []
        if data is None:
            raise FeedUnavailableError(self.name, result.error or f"HTTP {result.status}", package_id)
        versions = []
        for text in data.get("versions", []) if isinstance(data, dict) else []:
            version = Version.try_parse(str(text))
            if version is None:
                logger.debug("Skipping unparseable version '%s' of %s on %s", text, package_id, self.name)
                continue
            versions.append(version)
        return versions

    async def get_metadata(self, package_id: str, version: Version) -> Optional[NuspecMetadata]:
        session = await self._get_session()
        normalized = version.to_normalized_string().lower()
        url = await self._package_url(package_id, normalized, f"{package_id.lower()}.nuspec")
        result = await robust_get(session, url, auth=self._auth)
        if result.status == 404:
            return None
        if not result.ok:
            raise FeedUnavailableError(self.name, result.error or f"HTTP {result.status}", package_id)
        try:
            return parse_nuspec(result.body, source=f"{package_id} {normalized}")
        except ParseError as exc:
            raise FeedUnavailableError(self.name, str(exc), package_id) from exc

    async def download(self, identity: PackageIdentity, destination: str) -> None:
        session = await self._get_session()
        normalized = identity.version.to_normalized_string().lower()
        try:
            url = await self._package_url(identity.id, normalized, f"{identity.key}.{normalized}.nupkg")
        except FeedUnavailableError as exc:
            raise DownloadFailedError(identity.id, identity.version, self.name, exc.reason) from exc
        result = await download_to_file(session, url, destination, auth=self._auth)
        if not result.ok:
            raise DownloadFailedError(identity.id, identity.version, self.name, result.error or f"HTTP {result.status}")
