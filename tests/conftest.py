"""Shared fixtures: package archive builders and an in-memory feed."""

import asyncio
import os
import zipfile
from typing import Dict, List

import pytest

from minrt.errors import DownloadFailedError, FeedUnavailableError
from minrt.feeds.base import PackageFeed
from minrt.feeds.nuspec import parse_nuspec
from minrt.versioning import Version

NUSPEC_NS = "http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd"


def make_nuspec(package_id, version, dependencies=None, framework_references=None) -> str:
    """Render a minimal .nuspec.

    ``dependencies`` is either ``{id: range}`` (one group without a target
    framework) or ``{tfm: {id: range}}``. ``framework_references`` is
    ``{tfm: [names]}``.
    """
    lines = [
        '<?xml version="1.0" encoding="utf-8"?>',
        f'<package xmlns="{NUSPEC_NS}">',
        "  <metadata>",
        f"    <id>{package_id}</id>",
        f"    <version>{version}</version>",
    ]
    if dependencies:
        grouped = all(isinstance(v, dict) for v in dependencies.values())
        groups = dependencies if grouped else {"": dependencies}
        lines.append("    <dependencies>")
        for tfm, deps in groups.items():
            attr = f' targetFramework="{tfm}"' if tfm else ""
            lines.append(f"      <group{attr}>")
            for dep_id, dep_range in deps.items():
                lines.append(f'        <dependency id="{dep_id}" version="{dep_range}" />')
            lines.append("      </group>")
        lines.append("    </dependencies>")
    if framework_references:
        lines.append("    <frameworkReferences>")
        for tfm, names in framework_references.items():
            lines.append(f'      <group targetFramework="{tfm}">')
            for name in names:
                lines.append(f'        <frameworkReference name="{name}" />')
            lines.append("      </group>")
        lines.append("    </frameworkReferences>")
    lines += ["  </metadata>", "</package>"]
    return "\n".join(lines)


def write_nupkg_file(path, package_id, version, dependencies=None, files=None, framework_references=None, nuspec=None) -> str:
    """Write a .nupkg zip to ``path``."""
    if nuspec is None:
        nuspec = make_nuspec(package_id, version, dependencies, framework_references)
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(f"{package_id}.nuspec", nuspec)
        archive.writestr("[Content_Types].xml", "<Types />")
        archive.writestr("_rels/.rels", "<Relationships />")
        for name, content in (files or {}).items():
            archive.writestr(name, content)
    return path


class FakeFeed(PackageFeed):
    """In-memory feed that builds archives on download and counts calls."""

    def __init__(self, name: str = "fake"):
        super().__init__(name)
        self.packages: Dict = {}
        self.downloads = 0
        self.list_calls: List[str] = []
        self.unavailable = False
        self.download_delay = 0.0

    def add(self, package_id, version, dependencies=None, files=None, framework_references=None) -> "FakeFeed":
        self.packages[(package_id.lower(), Version.parse(version))] = (
            package_id,
            version,
            make_nuspec(package_id, version, dependencies, framework_references),
            dict(files or {}),
        )
        return self

    async def list_versions(self, package_id: str) -> List[Version]:
        self.list_calls.append(package_id)
        if self.unavailable:
            raise FeedUnavailableError(self.name, "connection refused", package_id)
        return sorted(v for (key, v) in self.packages if key == package_id.lower())

    async def get_metadata(self, package_id: str, version: Version):
        entry = self.packages.get((package_id.lower(), version))
        if entry is None:
            return None
        return parse_nuspec(entry[2])

    async def download(self, identity, destination: str) -> None:
        entry = self.packages.get((identity.key, identity.version))
        if entry is None:
            raise DownloadFailedError(identity.id, identity.version, self.name, "not found")
        if self.download_delay:
            await asyncio.sleep(self.download_delay)
        self.downloads += 1
        package_id, version, nuspec, files = entry
        write_nupkg_file(destination, package_id, version, files=files, nuspec=nuspec)


@pytest.fixture
def nupkg(tmp_path):
    """Factory writing a .nupkg into a feed directory; returns the archive path."""
    feed_dir = tmp_path / "feed"
    feed_dir.mkdir(exist_ok=True)

    def _write(package_id, version, dependencies=None, files=None, framework_references=None, directory=None):
        target = directory or str(feed_dir)
        os.makedirs(target, exist_ok=True)
        path = os.path.join(target, f"{package_id}.{version}.nupkg")
        return write_nupkg_file(path, package_id, version, dependencies, files, framework_references)

    _write.directory = str(feed_dir)
    return _write


@pytest.fixture
def fake_feed():
    """Factory for ``FakeFeed`` instances."""
    def _make(name: str = "fake") -> FakeFeed:
        return FakeFeed(name)
    return _make


@pytest.fixture
def cache_dir(tmp_path) -> str:
    path = tmp_path / "packages"
    path.mkdir()
    return str(path)

