"""Tests for the lock file and the launch layout."""

import json
import logging
import os

import pytest

from minrt.assets import AssetSelection, build_launch_manifest, layout, selections_from_lock_file
from minrt.errors import LockFileError
from minrt.lockfile import LockFile, LockedPackage, build_lock_file, read_lock_file, write_lock_file
from minrt.resolver.models import ResolvedPackage, ResolvedPackageSet
from minrt.versioning import (
    DependencyBehavior,
    DependencyNode,
    PackageDependency,
    PackageIdentity,
    Version,
    VersionRange,
)


def resolved_set():
    resolved = ResolvedPackageSet(behavior=DependencyBehavior.HIGHEST, framework="net8.0", runtime="linux-x64")
    app = DependencyNode(
        PackageIdentity("App.Core", Version.parse("1.0")),
        "nuget.org",
        (PackageDependency("Native.Lib", VersionRange.parse("[2.0.0, )")),),
    )
    native = DependencyNode(PackageIdentity("Native.Lib", Version.parse("2.0.0-beta.1")), "internal")
    resolved.packages["app.core"] = ResolvedPackage(app)
    resolved.packages["native.lib"] = ResolvedPackage(native)
    return resolved


def selections():
    return {
        "app.core": AssetSelection(
            package_id="App.Core",
            runtime={"App.Core": "lib/net8.0/App.Core.dll"},
            framework_references=("Microsoft.AspNetCore.App",),
        ),
        "native.lib": AssetSelection(
            package_id="Native.Lib",
            native={"native": "runtimes/linux-x64/native/libnative.so"},
        ),
    }


def place(root, relative, content=b"x"):
    path = os.path.join(root, *relative.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as handle:
        handle.write(content)
    return path


class TestLockFile:
    """Building, writing and reading lock files."""

    def test_build_records_resolution(self, cache_dir):
        """Every resolved package appears with its source, path and assets."""
        lock = build_lock_file(resolved_set(), selections(), str(cache_dir))
        assert lock.framework == "net8.0"
        assert lock.runtime == "linux-x64"
        assert lock.behavior == "highest"
        assert [p.id for p in lock.packages] == ["App.Core", "Native.Lib"]
        app = lock.get("app.core")
        assert app.version == "1.0.0"
        assert app.path == "app.core/1.0.0"
        assert app.dependencies == {"Native.Lib": "[2.0.0, )"}
        assert app.runtime == ["lib/net8.0/App.Core.dll"]
        assert app.framework_references == ["Microsoft.AspNetCore.App"]
        native = lock.get("Native.Lib")
        assert native.source == "internal"
        assert native.path == "native.lib/2.0.0-beta.1"
        assert native.native == ["runtimes/linux-x64/native/libnative.so"]

    def test_write_then_read(self, tmp_path, cache_dir):
        """A written lock file reads back to the same content."""
        lock = build_lock_file(resolved_set(), selections(), str(cache_dir))
        path = str(tmp_path / "out" / "minrt.lock.json")
        write_lock_file(lock, path)
        assert read_lock_file(path).to_dict() == lock.to_dict()
        assert [n for n in os.listdir(tmp_path / "out")] == ["minrt.lock.json"]

    def test_json_shape(self, tmp_path, cache_dir):
        """Keys use the documented camelCase spelling."""
        path = str(tmp_path / "minrt.lock.json")
        write_lock_file(build_lock_file(resolved_set(), selections(), str(cache_dir)), path)
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
        assert data["version"] == 1
        assert data["packageFolders"] == [os.path.abspath(str(cache_dir))]
        assert "frameworkReferences" in data["packages"][0]

    def test_missing_file(self, tmp_path):
        """A missing lock file raises LockFileError."""
        with pytest.raises(LockFileError) as exc:
            read_lock_file(str(tmp_path / "nope.json"))
        assert "not found" in str(exc.value)

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[]",
            '{"version": 99, "packages": []}',
            '{"version": 1, "packages": {}}',
            '{"version": 1, "packages": [{"version": "1.0.0"}]}',
        ],
    )
    def test_malformed(self, tmp_path, content):
        """Malformed content raises LockFileError."""
        path = tmp_path / "minrt.lock.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(LockFileError):
            read_lock_file(str(path))

    def test_default_path_from_id_and_version(self):
        """Entries without a path derive it from id and version."""
        package = LockedPackage.from_dict({"id": "A.B", "version": "1.0.0-RC"}, "lock")
        assert package.path == "a.b/1.0.0-rc"


class TestLaunchManifest:
    """Flattening selections."""

    def test_absolute_paths_and_probing(self, tmp_path):
        """Assets become absolute paths with their folders as probing directories."""
        root = str(tmp_path / "pkg")
        manifest = build_launch_manifest(
            [
                AssetSelection(
                    package_id="A",
                    root=root,
                    runtime={"A": "lib/net8.0/A.dll"},
                    native={"a": "runtimes/linux-x64/native/liba.so"},
                    framework_references=("Microsoft.NETCore.App",),
                )
            ]
        )
        assert manifest.assemblies == {"A": os.path.join(root, "lib", "net8.0", "A.dll")}
        assert manifest.native_libraries["a"].endswith(os.path.join("native", "liba.so"))
        assert manifest.framework_references == {"Microsoft.NETCore.App": True}
        assert manifest.probing_directories == [
            os.path.join(root, "lib", "net8.0"),
            os.path.join(root, "runtimes", "linux-x64", "native"),
        ]

    def test_first_package_wins_name_clash(self, tmp_path, caplog):
        """The same assembly name from two packages keeps the first by id order."""
        first = AssetSelection(package_id="Alpha", root=str(tmp_path / "alpha"), runtime={"Shared": "lib/net8.0/Shared.dll"})
        second = AssetSelection(package_id="Beta", root=str(tmp_path / "beta"), runtime={"Shared": "lib/net8.0/Shared.dll"})
        with caplog.at_level(logging.WARNING):
            manifest = build_launch_manifest([second, first])
        assert manifest.assemblies["Shared"].startswith(str(tmp_path / "alpha"))
        assert "Beta" in caplog.text

    def test_selection_without_root(self):
        """A selection without a package root cannot be flattened."""
        with pytest.raises(ValueError):
            build_launch_manifest([AssetSelection(package_id="A", runtime={"A": "lib/A.dll"})])


class TestLayout:
    """Copying locked assets."""

    def _lock(self, cache_dir):
        return LockFile(
            framework="net8.0",
            runtime="linux-x64",
            package_folders=[str(cache_dir)],
            packages=[
                LockedPackage(
                    "A", "1.0.0", path="a/1.0.0",
                    runtime=["lib/net8.0/A.dll"],
                    native=["runtimes/linux-x64/native/liba.so"],
                ),
                LockedPackage("B", "2.0.0", path="b/2.0.0", runtime=["lib/net8.0/A.dll", "lib/net8.0/_._"]),
            ],
        )

    def test_copies_assets_flat(self, tmp_path, cache_dir):
        """Managed and native assets are copied into one directory."""
        place(str(cache_dir), "a/1.0.0/lib/net8.0/A.dll", b"MZ")
        place(str(cache_dir), "a/1.0.0/runtimes/linux-x64/native/liba.so")
        place(str(cache_dir), "b/2.0.0/lib/net8.0/A.dll")
        output = tmp_path / "app"
        result = layout(self._lock(cache_dir), str(output))
        assert sorted(result.copied) == ["A.dll", "liba.so"]
        assert result.skipped == ["B/lib/net8.0/A.dll"]
        assert result.missing == []
        assert (output / "A.dll").read_bytes() == b"MZ"

    def test_reports_missing_assets(self, tmp_path, cache_dir):
        """Assets absent from the cache are reported, not raised."""
        result = layout(self._lock(cache_dir), str(tmp_path / "app"))
        assert len(result.missing) == 3
        assert result.copied == []

    def test_reads_lock_file_from_path(self, tmp_path, cache_dir):
        """A lock file path is loaded before copying."""
        place(str(cache_dir), "a/1.0.0/lib/net8.0/A.dll")
        path = str(tmp_path / "minrt.lock.json")
        write_lock_file(self._lock(cache_dir), path)
        result = layout(path, str(tmp_path / "app"))
        assert "A.dll" in result.copied

    def test_packages_dir_override(self, tmp_path, cache_dir):
        """An explicit packages directory replaces the recorded folder."""
        other = tmp_path / "elsewhere"
        place(str(other), "a/1.0.0/lib/net8.0/A.dll")
        selected = selections_from_lock_file(self._lock(cache_dir), str(other))
        assert selected[0].root == os.path.join(str(other), "a", "1.0.0")
        assert selected[0].native == {"a": "runtimes/linux-x64/native/liba.so"}
